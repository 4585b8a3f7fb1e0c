"""
File management for getlrc.

This module owns everything getlrc writes next to the user's music and the
preflight checks on the directories it needs.

Sidecar Layout:
    Music/
    └── Artist/
        └── Album/
            ├── 01 Song.flac
            ├── 01 Song.lrc          # sidecar: same stem, .lrc extension
            ├── 02 Other.mp3
            └── .02 Other.lrc.1a2b3c.tmp   # only while a write is in flight

Atomic, No-Clobber Writes:
    1. Write the lyrics to a hidden temp file in the target's directory
    2. flush + fsync
    3. os.link(temp, target), which fails if the target already exists
    4. Remove the temp file

    A reader therefore sees either no sidecar or a complete one, and a
    sidecar that appeared while we were fetching (another tool, a second
    run) is never overwritten. Hard links are preferred; on filesystems
    without hard link support we fall back to an exists-check followed by
    os.replace().

Usage:
    from getlrc.core.file_manager import SidecarWriter, sidecar_path

    writer = SidecarWriter()
    if not has_sidecar(audio_path):
        writer.write(sidecar_path(audio_path), lyrics)
"""

import errno
import os
import tempfile
from pathlib import Path

from getlrc.core.exceptions import LyricsError, PreflightError, WriteConflictError
from getlrc.core.logger import get_logger

logger = get_logger(__name__)


SIDECAR_EXTENSION = ".lrc"

# errno values meaning "this filesystem cannot hard link"
_LINK_UNSUPPORTED = {errno.EPERM, errno.EXDEV, errno.ENOTSUP, errno.EOPNOTSUPP, errno.EMLINK}


def sidecar_path(audio_path: Path) -> Path:
    """
    Get the sidecar lyrics path for an audio file.

    Example:
        sidecar_path(Path("/music/01 Song.flac"))
        # Returns: /music/01 Song.lrc
    """
    return Path(audio_path).with_suffix(SIDECAR_EXTENSION)


def has_sidecar(audio_path: Path) -> bool:
    return sidecar_path(audio_path).exists()


class SidecarWriter:
    """
    Writes .lrc files atomically without ever replacing an existing one.

    Attributes:
        encoding: Text encoding of the written file.
        files_written: Number of sidecars created by this writer.
    """

    def __init__(self, encoding: str = "utf-8") -> None:
        self.encoding = encoding
        self.files_written = 0

    def write(self, target_path: Path, contents: str) -> Path:
        """
        Atomically create target_path with contents.

        Args:
            target_path: Final sidecar path (usually sidecar_path(audio)).
            contents: Lyrics text (LRC format).

        Returns:
            target_path.

        Raises:
            LyricsError: The lyrics text cannot be encoded (e.g. lone surrogates).
            WriteConflictError: The target already exists.
            OSError: The temp file could not be written or moved into place.
        """
        target_path = Path(target_path)
        if target_path.exists():
            raise WriteConflictError(
                f"Sidecar already exists: {target_path}",
                details={"path": str(target_path)}
            )

        try:
            data = contents.encode(self.encoding)
        except UnicodeError as e:
            raise LyricsError(
                f"Lyrics text cannot be encoded as {self.encoding}: {e}",
                details={"path": str(target_path)}
            ) from e

        fd, temp_name = tempfile.mkstemp(
            prefix=f".{target_path.name}.",
            suffix=".tmp",
            dir=target_path.parent
        )
        temp_path = Path(temp_name)

        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            self._commit(temp_path, target_path)
        finally:
            temp_path.unlink(missing_ok=True)

        self.files_written += 1
        logger.debug(f"Sidecar written: {target_path}")
        return target_path

    def _commit(self, temp_path: Path, target_path: Path) -> None:
        try:
            os.link(temp_path, target_path)
            return
        except FileExistsError as e:
            raise WriteConflictError(
                f"Sidecar appeared during write: {target_path}",
                details={"path": str(target_path)}
            ) from e
        except OSError as e:
            if e.errno not in _LINK_UNSUPPORTED:
                raise
            logger.debug(f"Hard links unsupported in {target_path.parent}, using rename")

        if target_path.exists():
            raise WriteConflictError(
                f"Sidecar appeared during write: {target_path}",
                details={"path": str(target_path)}
            )
        os.replace(temp_path, target_path)


# =============================================================================
# Preflight checks
# =============================================================================

def ensure_directory(path: Path) -> Path:
    """
    Check that path is an existing, writable directory.

    Returns:
        The resolved path.

    Raises:
        PreflightError: If it is missing, not a directory, or not writable.
    """
    path = Path(path).expanduser()
    if not path.exists():
        raise PreflightError(
            f"Directory does not exist: {path}",
            details={"path": str(path)}
        )
    if not path.is_dir():
        raise PreflightError(
            f"Not a directory: {path}",
            details={"path": str(path)}
        )
    _check_writable(path)
    return path.resolve()


def ensure_data_dir(path: Path) -> Path:
    """
    Create the data directory (and parents) if needed and check it is writable.

    Raises:
        PreflightError: If it cannot be created or written to.
    """
    path = Path(path).expanduser()
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise PreflightError(
            f"Cannot create data directory {path}: {e}",
            details={"path": str(path)}
        ) from e
    if not path.is_dir():
        raise PreflightError(
            f"Data directory path is not a directory: {path}",
            details={"path": str(path)}
        )
    _check_writable(path)
    return path


def _check_writable(directory: Path) -> None:
    # os.access is unreliable on network and ACL filesystems; create a real file
    try:
        with tempfile.NamedTemporaryFile(prefix=".getlrc-write-check-", dir=directory):
            pass
    except OSError as e:
        raise PreflightError(
            f"Directory is not writable: {directory}",
            details={"path": str(directory), "original_error": str(e)}
        ) from e
