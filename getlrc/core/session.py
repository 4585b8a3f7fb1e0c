"""
Resumable session state for getlrc.

A session is the unit of work for one root directory: the files still to
process (in discovery order), four outcome counters and a capped history
of recent log entries used to repaint the dashboard on resume.

Persistence:
    The session is stored as JSON in <data_dir>/session.json:

        {
          "root_path": "/home/user/Music",
          "pending_files": ["/home/user/Music/a.flac", ...],
          "downloaded_count": 12,
          "cached_count": 3,
          "existing_count": 40,
          "failed_count": 2,
          "log_history": [{"filename": "a.flac", "status": "Downloaded"}, ...]
        }

    Saves go through a temporary file in the same directory followed by
    os.replace(), so readers only ever see a complete old or new file.

Invariants:
    - downloaded + cached + existing + failed == files removed from pending
    - pending_files is always a suffix of the original discovery order
    - log_history never holds more than MAX_LOG_HISTORY entries

Usage:
    store = SessionStore(config.paths.session_path)

    session = store.load(root) or Session.new(root, scan_directory(root))
    session.record_outcome(path, Outcome.DOWNLOADED)
    store.save(session)
"""

import json
import os
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Iterable

from getlrc.core.exceptions import SessionError
from getlrc.core.logger import get_logger

logger = get_logger(__name__)


MAX_LOG_HISTORY = 500
INTEGRITY_CHECK_SAMPLE_SIZE = 10
INTEGRITY_CHECK_THRESHOLD = 5

_COUNTER_FIELDS = ("downloaded_count", "cached_count", "existing_count", "failed_count")


class Outcome(Enum):
    """
    Final result of processing one track.

    The value is the tag written to session.json; parsing rejects any tag
    not listed here.
    """
    DOWNLOADED = "Downloaded"
    CACHED_MISS = "CachedMiss"
    ALREADY_EXISTS = "AlreadyExists"
    NOT_FOUND = "NotFound"
    ERROR = "Error"

    @property
    def symbol(self) -> str:
        return _OUTCOME_SYMBOLS[self]

    def format_log(self, filename: str) -> str:
        return f"{self.symbol} {filename}"


_OUTCOME_SYMBOLS = {
    Outcome.DOWNLOADED: "[✓]",
    Outcome.CACHED_MISS: "[~]",
    Outcome.ALREADY_EXISTS: "[○]",
    Outcome.NOT_FOUND: "[✗]",
    Outcome.ERROR: "[!]",
}


@dataclass(frozen=True)
class LogEntry:
    """One line of the dashboard log: the file name and how it ended."""
    filename: str
    status: Outcome

    def to_dict(self) -> dict[str, str]:
        return {"filename": self.filename, "status": self.status.value}


@dataclass(frozen=True)
class SessionCounts:
    """
    Immutable snapshot of the session counters.

    This is what the display receives; it never sees the Session itself.
    """
    downloaded: int
    cached: int
    existing: int
    failed: int
    pending: int

    @property
    def processed(self) -> int:
        return self.downloaded + self.cached + self.existing + self.failed

    @property
    def total(self) -> int:
        return self.processed + self.pending

    @property
    def percent(self) -> float:
        """Completion percentage; exactly 100.0 only when nothing is pending."""
        if self.pending == 0:
            return 100.0
        return min(99.99, (self.processed / self.total) * 100)


@dataclass
class Session:
    """
    Mutable session owned by the orchestrator.

    Attributes:
        root_path: Directory this session belongs to.
        pending_files: Files not processed yet, in discovery order.
        downloaded_count: Sidecars written this session.
        cached_count: Negative cache hits (no API call made).
        existing_count: Files that already had a sidecar.
        failed_count: NotFound and Error outcomes.
        log_history: Most recent log entries, oldest evicted first.
    """
    root_path: Path
    pending_files: deque = field(default_factory=deque)
    downloaded_count: int = 0
    cached_count: int = 0
    existing_count: int = 0
    failed_count: int = 0
    log_history: deque = field(default_factory=lambda: deque(maxlen=MAX_LOG_HISTORY))

    def __post_init__(self) -> None:
        self.root_path = Path(self.root_path)
        self.pending_files = deque(Path(p) for p in self.pending_files)
        self.log_history = deque(self.log_history, maxlen=MAX_LOG_HISTORY)

    @classmethod
    def new(cls, root_path: Path, files: Iterable[Path]) -> "Session":
        """Create a fresh session from a completed scan."""
        return cls(root_path=root_path, pending_files=deque(files))

    # =========================================================================
    # Progress accounting
    # =========================================================================

    @property
    def processed_count(self) -> int:
        return (
            self.downloaded_count
            + self.cached_count
            + self.existing_count
            + self.failed_count
        )

    @property
    def total_files(self) -> int:
        return self.processed_count + len(self.pending_files)

    @property
    def is_complete(self) -> bool:
        return not self.pending_files

    def next_file(self) -> Path:
        """Remove and return the next pending file."""
        return self.pending_files.popleft()

    def record_outcome(self, path: Path, outcome: Outcome) -> LogEntry:
        """
        Count an outcome for a file already taken from pending_files.

        Returns:
            The LogEntry appended to the history.
        """
        if outcome is Outcome.DOWNLOADED:
            self.downloaded_count += 1
        elif outcome is Outcome.CACHED_MISS:
            self.cached_count += 1
        elif outcome is Outcome.ALREADY_EXISTS:
            self.existing_count += 1
        else:
            self.failed_count += 1

        entry = LogEntry(filename=Path(path).name, status=outcome)
        self.log_history.append(entry)
        return entry

    def counts(self) -> SessionCounts:
        return SessionCounts(
            downloaded=self.downloaded_count,
            cached=self.cached_count,
            existing=self.existing_count,
            failed=self.failed_count,
            pending=len(self.pending_files),
        )

    # =========================================================================
    # Serialization
    # =========================================================================

    def to_dict(self) -> dict[str, Any]:
        return {
            "root_path": str(self.root_path),
            "pending_files": [str(p) for p in self.pending_files],
            "downloaded_count": self.downloaded_count,
            "cached_count": self.cached_count,
            "existing_count": self.existing_count,
            "failed_count": self.failed_count,
            "log_history": [entry.to_dict() for entry in self.log_history],
        }

    @classmethod
    def from_dict(cls, data: Any) -> "Session":
        """
        Build a Session from parsed JSON.

        Raises:
            ValueError: If the structure, a counter or a status tag is invalid.
        """
        if not isinstance(data, dict):
            raise ValueError("session root must be an object")

        root_path = data.get("root_path")
        if not isinstance(root_path, str) or not root_path:
            raise ValueError("'root_path' must be a non-empty string")

        pending = data.get("pending_files")
        if not isinstance(pending, list) or not all(isinstance(p, str) for p in pending):
            raise ValueError("'pending_files' must be a list of strings")

        counters = {}
        for name in _COUNTER_FIELDS:
            value = data.get(name)
            # bool is an int subclass; reject it explicitly
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise ValueError(f"'{name}' must be a non-negative integer")
            counters[name] = value

        raw_history = data.get("log_history", [])
        if not isinstance(raw_history, list):
            raise ValueError("'log_history' must be a list")

        history = []
        for item in raw_history:
            if not isinstance(item, dict) or not isinstance(item.get("filename"), str):
                raise ValueError("log entries must have a string 'filename'")
            try:
                status = Outcome(item.get("status"))
            except ValueError:
                raise ValueError(f"unknown log status: {item.get('status')!r}") from None
            history.append(LogEntry(filename=item["filename"], status=status))

        return cls(
            root_path=Path(root_path),
            pending_files=deque(Path(p) for p in pending),
            log_history=deque(history, maxlen=MAX_LOG_HISTORY),
            **counters,
        )


def check_integrity(session: Session) -> bool:
    """
    Shallow staleness check on the pending files.

    Samples the first INTEGRITY_CHECK_SAMPLE_SIZE pending paths; the
    session is considered stale when INTEGRITY_CHECK_THRESHOLD or more of
    them no longer exist (library moved or reorganised since the save).

    Returns:
        True if the session looks usable.
    """
    if not session.pending_files:
        logger.warning("Session has no pending files")
        return False

    sample = list(session.pending_files)[:INTEGRITY_CHECK_SAMPLE_SIZE]
    missing = [p for p in sample if not p.exists()]
    for path in missing:
        logger.debug(f"Missing file in session: {path}")

    if len(missing) >= INTEGRITY_CHECK_THRESHOLD:
        logger.warning(
            f"Session integrity check failed: {len(missing)}/{len(sample)} "
            f"sampled files are missing (threshold: {INTEGRITY_CHECK_THRESHOLD})"
        )
        return False

    logger.info(
        f"Session integrity check passed: {len(sample) - len(missing)}/{len(sample)} "
        f"sampled files exist"
    )
    return True


class SessionStore:
    """
    Durable storage for a single session file.

    The store never raises on load: a missing, corrupted, mismatched or
    stale file all mean "no usable session" and are only logged. Saves are
    atomic with respect to crashes; a mismatched file is left in place
    until a later save overwrites it.

    Attributes:
        path: Canonical session file path.
        temp_path: Scratch file used for atomic saves.
    """

    def __init__(self, path: Path) -> None:
        self.path = path
        self.temp_path = path.with_name(path.name + ".tmp")

    def load(self, root_path: Path) -> Session | None:
        """
        Load the persisted session for root_path.

        Args:
            root_path: The directory being processed. Must match the
                       persisted root_path exactly.

        Returns:
            The restored Session, or None if there is no usable session.
        """
        if not self.path.exists():
            logger.debug(f"No session file at {self.path}")
            return None

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.warning(f"Failed to read session file {self.path}: {e}")
            return None

        try:
            session = Session.from_dict(data)
        except ValueError as e:
            logger.warning(f"Malformed session file {self.path}: {e}")
            return None

        if str(session.root_path) != str(root_path):
            logger.info(
                f"Session belongs to a different directory "
                f"({session.root_path} != {root_path}), ignoring it"
            )
            return None

        if not check_integrity(session):
            return None

        logger.info(
            f"Session loaded from {self.path} ({len(session.pending_files)} pending files, "
            f"{len(session.log_history)} log entries)"
        )
        return session

    def save(self, session: Session) -> None:
        """
        Persist the session atomically.

        Writes the JSON to temp_path, flushes and fsyncs it, then renames
        it over the canonical path.

        Raises:
            SessionError: If the file cannot be written or renamed.
        """
        payload = json.dumps(session.to_dict(), indent=2, ensure_ascii=False)

        try:
            with open(self.temp_path, "w", encoding="utf-8") as f:
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())
            os.replace(self.temp_path, self.path)
        except OSError as e:
            self._discard_temp()
            raise SessionError(
                f"Failed to save session: {e}",
                details={"path": str(self.path), "original_error": str(e)}
            ) from e

        _fsync_directory(self.path.parent)
        logger.info(
            f"Session saved atomically to {self.path} "
            f"({len(session.pending_files)} pending files, {len(session.log_history)} log entries)"
        )

    def delete(self) -> None:
        """
        Remove the session file and any leftover temp file.

        Idempotent: a missing file is not an error.

        Raises:
            SessionError: If an existing file cannot be removed.
        """
        try:
            self.path.unlink(missing_ok=True)
        except OSError as e:
            raise SessionError(
                f"Failed to delete session file: {e}",
                details={"path": str(self.path)}
            ) from e
        self._discard_temp()
        logger.info(f"Session file deleted: {self.path}")

    def _discard_temp(self) -> None:
        try:
            self.temp_path.unlink(missing_ok=True)
        except OSError as e:
            logger.debug(f"Could not remove temp session file {self.temp_path}: {e}")


def _fsync_directory(directory: Path) -> None:
    # Directory fsync makes the rename itself durable; not available on Windows
    if not hasattr(os, "O_DIRECTORY"):
        return
    try:
        fd = os.open(directory, os.O_RDONLY | os.O_DIRECTORY)
    except OSError:
        return
    try:
        os.fsync(fd)
    except OSError:
        pass
    finally:
        os.close(fd)
