"""
Music library access for getlrc.

This package discovers audio files under a root directory and reads the
tags needed for a lyrics lookup.

Modules:
    - scanner: Recursive discovery of supported audio files
    - metadata: Tag reading via mutagen
"""

from getlrc.library.metadata import TrackMetadata, read_metadata
from getlrc.library.scanner import AUDIO_EXTENSIONS, is_audio_file, scan_directory

__all__ = [
    "AUDIO_EXTENSIONS",
    "TrackMetadata",
    "is_audio_file",
    "read_metadata",
    "scan_directory",
]
