"""
Metadata normalization for lyrics matching.

Tags in real libraries are messy: "03 - Song_Name", "Artist & Other",
"Title (feat. Someone) [Live]". Before querying LRCLIB, and before
computing negative cache keys, artist and title are reduced to a canonical
lowercase form:

    clean_string("20. Song Name")              -> "song name"
    clean_string("Artist_Name-Here")           -> "artist name here"
    clean_title("P.I.M.P. (feat. Snoop Dogg)") -> "p i m p"
    clean_title("Song Name (Remix)")           -> "song name remix"

Featuring credits are dropped; other parenthetical content (Remix, Live,
Acoustic) is kept because LRCLIB stores those as distinct tracks.
"""

import hashlib
import re
from dataclasses import dataclass

from rapidfuzz.distance import JaroWinkler


_TRACK_NUMBER_PATTERN = re.compile(r"^\d+[\.\-\s]+")
_FEATURING_PATTERN = re.compile(
    # A bare "with" is part of real titles ("Stay With Me"), so only
    # "(with ...)" and "[with ...]" count as credits
    r"\s*(?:[\(\[]\s*(?:feat\.?|ft\.?|featuring|with|w/)\s+[^\)\]]*[\)\]]?"
    r"|\b(?:feat\.?|ft\.?|featuring|w/)\s+[^\)\]]*[\)\]]?)",
    re.IGNORECASE
)
_PUNCTUATION_PATTERN = re.compile(r"[_\-&\.]")
_WHITESPACE_PATTERN = re.compile(r"\s+")
_BRACKETS = str.maketrans({"(": " ", ")": " ", "[": " ", "]": " "})

# Keeps "a" + "bc" and "ab" + "c" from hashing to the same key
_FINGERPRINT_SEPARATOR = "\x1f"


@dataclass(frozen=True)
class NormalizedMetadata:
    """
    Cleaned query fields plus the original tags they came from.

    Attributes:
        artist: clean_string(original_artist).
        title: clean_title(original_title).
        album: clean_string(album tag).
        original_artist: Artist tag as read from the file.
        original_title: Title tag as read from the file.
    """
    artist: str
    title: str
    album: str
    original_artist: str
    original_title: str


def clean_string(value: str) -> str:
    """
    Strip a leading track number, turn _ - & . into spaces, collapse
    whitespace and lowercase.
    """
    result = _TRACK_NUMBER_PATTERN.sub("", value)
    result = _PUNCTUATION_PATTERN.sub(" ", result)
    result = _WHITESPACE_PATTERN.sub(" ", result)
    return result.strip().lower()


def clean_title(title: str) -> str:
    """Drop featuring credits, unwrap brackets, then clean_string()."""
    result = _FEATURING_PATTERN.sub("", title)
    result = result.translate(_BRACKETS)
    return clean_string(result)


def normalize_metadata(artist: str, title: str, album: str = "") -> NormalizedMetadata:
    return NormalizedMetadata(
        artist=clean_string(artist),
        title=clean_title(title),
        album=clean_string(album),
        original_artist=artist,
        original_title=title,
    )


def similarity(first: str, second: str) -> float:
    """
    Jaro-Winkler similarity of two strings.

    Args:
        first: First string.
        second: Second string.

    Returns:
        Score between 0.0 and 1.0. Comparison is case-insensitive; an empty
        string against a non-empty one is 0.0.
    """
    s1 = first.lower().strip()
    s2 = second.lower().strip()

    if s1 == s2:
        return 1.0
    if not s1 or not s2:
        return 0.0

    return JaroWinkler.similarity(s1, s2)


def fingerprint(artist: str, title: str) -> str:
    """
    Stable negative cache key for a track.

    SHA-256 hex digest of the normalized artist and title, so tag noise
    (track numbers, featuring credits, case) maps to the same entry.
    """
    key = f"{clean_string(artist)}{_FINGERPRINT_SEPARATOR}{clean_title(title)}"
    return hashlib.sha256(key.encode("utf-8")).hexdigest()
