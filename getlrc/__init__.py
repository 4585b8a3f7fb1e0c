"""
getlrc: Fetch synchronized lyrics for a music library.

This package walks a directory tree of audio files, looks up synchronized
lyrics on LRCLIB and writes them as .lrc sidecar files next to each track.

Architecture:
    The run is driven by a resumable pipeline:

    DISCOVERY (library/): Find audio files and read their tags
        - Walk the target directory for supported audio extensions
        - Read artist/title/album/duration with mutagen

    PIPELINE (pipeline/): Process each file exactly once
        - Skip files that already have a .lrc sidecar
        - Consult the negative cache before any network call
        - Rate-limited lookup against LRCLIB
        - Atomic sidecar write
        - Checkpoint the session on pause/quit, delete it on completion

    DISPLAY (core/progress.py): Live dashboard fed by pipeline events
        - Progress bar and counters
        - Pause / resume / quit keys

Modules:
    core/       - Config, logging, exceptions, session store, cache, events
    library/    - Directory scanner and tag reader
    lyrics/     - LRCLIB client and metadata normalization
    pipeline/   - Orchestrator state machine
    cli.py      - Command-line interface

Usage:
    Command Line:
        getlrc ~/Music
        getlrc /mnt/media/music --plain

    Python API:
        from getlrc.core import load_config, NegativeCache, SessionStore
        from getlrc.pipeline import Orchestrator

Data Files:
    <user data dir>/getlrc/session.json       Resumable session checkpoint
    <user data dir>/getlrc/negative_cache.db  Tracks known to have no lyrics
    <user data dir>/getlrc/logs/              Run logs
"""

__version__ = "0.3.0"
__author__ = "getlrc contributors"
