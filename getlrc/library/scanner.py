"""
Audio file discovery.

Walks a directory tree and returns every supported audio file in a stable
order (directories and files sorted by name), so that two scans of an
unchanged library produce the same list and a saved session's pending
list stays a suffix of it.

Supported extensions (case-insensitive):
    flac, mp3, m4a, aac, opus, ogg, ape, wav

Hidden files and directories (leading dot) are skipped; this also keeps
in-flight sidecar temp files out of the scan.
"""

import os
from pathlib import Path

from getlrc.core.logger import get_logger

logger = get_logger(__name__)


AUDIO_EXTENSIONS = frozenset({
    ".flac", ".mp3", ".m4a", ".aac", ".opus", ".ogg", ".ape", ".wav",
})


def is_audio_file(path: Path) -> bool:
    return path.suffix.lower() in AUDIO_EXTENSIONS


def scan_directory(root: Path) -> list[Path]:
    """
    Recursively collect supported audio files under root.

    Args:
        root: Directory to scan.

    Returns:
        Absolute paths in discovery order.

    Behavior:
        Unreadable subdirectories are logged and skipped; symlinked
        directories are not followed.
    """
    root = Path(root)
    found: list[Path] = []

    def on_error(error: OSError) -> None:
        logger.warning(f"Skipping unreadable directory {error.filename}: {error.strerror}")

    for dirpath, dirnames, filenames in os.walk(root, onerror=on_error):
        # Sorting in place controls the order os.walk descends
        dirnames[:] = sorted(d for d in dirnames if not d.startswith("."))
        for name in sorted(filenames):
            if name.startswith("."):
                continue
            path = Path(dirpath) / name
            if is_audio_file(path):
                found.append(path.absolute())

    logger.info(f"Scan of {root} found {len(found)} audio files")
    return found
