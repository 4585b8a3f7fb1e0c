"""
Audio tag reading for getlrc.

Uses mutagen's "easy" interface, which maps ID3 frames, Vorbis comments and
MP4 atoms onto common keys ("artist", "title", "album"), so one code path
covers every supported format.

A track is only usable for a lookup when it has a title; the artist may be
empty (LRCLIB still gets a query) and the album is optional.
"""

from dataclasses import dataclass
from pathlib import Path

import mutagen
from mutagen import MutagenError

from getlrc.core.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class TrackMetadata:
    """
    Tags needed for a lyrics lookup.

    Attributes:
        artist: Primary artist ("" if untagged).
        title: Track title (never empty).
        album: Album title ("" if untagged).
        duration: Length in whole seconds (0 if unknown).
    """
    artist: str
    title: str
    album: str = ""
    duration: int = 0

    @property
    def label(self) -> str:
        if self.artist:
            return f"{self.artist} - {self.title}"
        return self.title


def _first_tag(tags, key: str) -> str:
    values = tags.get(key) if tags is not None else None
    if not values:
        return ""
    return str(values[0]).strip()


def read_metadata(path: Path) -> TrackMetadata | None:
    """
    Read artist, title, album and duration from an audio file.

    Args:
        path: Audio file path.

    Returns:
        TrackMetadata, or None when the file cannot be parsed or has no title.
    """
    try:
        audio = mutagen.File(path, easy=True)
    except (MutagenError, OSError) as e:
        logger.warning(f"Failed to read tags from {path}: {e}")
        return None

    if audio is None:
        logger.debug(f"Unrecognized audio format: {path}")
        return None

    title = _first_tag(audio.tags, "title")
    if not title:
        logger.debug(f"No title tag in {path}")
        return None

    length = getattr(audio.info, "length", 0) or 0

    return TrackMetadata(
        artist=_first_tag(audio.tags, "artist"),
        title=title,
        album=_first_tag(audio.tags, "album"),
        duration=int(round(length)),
    )
