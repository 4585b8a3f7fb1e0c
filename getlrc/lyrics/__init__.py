"""
Lyrics lookup for getlrc.

Modules:
    - normalize: Metadata cleaning, string similarity and cache fingerprints
    - client: LRCLIB HTTP client returning Found / NotFound / TransientError
"""

from getlrc.lyrics.client import (
    Found,
    LookupResult,
    LrcLibClient,
    NotFound,
    TransientError,
)
from getlrc.lyrics.normalize import (
    NormalizedMetadata,
    clean_string,
    clean_title,
    fingerprint,
    normalize_metadata,
    similarity,
)

__all__ = [
    "Found",
    "LookupResult",
    "LrcLibClient",
    "NormalizedMetadata",
    "NotFound",
    "TransientError",
    "clean_string",
    "clean_title",
    "fingerprint",
    "normalize_metadata",
    "similarity",
]
