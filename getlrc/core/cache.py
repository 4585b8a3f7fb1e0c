"""
Thread-safe SQLite negative cache for getlrc.

The negative cache remembers tracks for which LRCLIB confirmed that no
synchronized lyrics exist, so later runs (on any directory) skip the API
call entirely. It is the program's long-lived memory: entries are only
ever inserted or refreshed, never deleted.

Schema:
    negative_cache:
        signature TEXT PRIMARY KEY   -- track fingerprint (see lyrics.normalize)
        timestamp INTEGER NOT NULL   -- UNIX time of the last negative lookup

Transient failures (timeouts, connection errors) are NEVER written here;
those tracks must stay eligible for a retry on the next run.

Usage:
    cache = NegativeCache(config.paths.cache_path)

    if cache.contains(signature):
        ...  # skip the API
    else:
        ...  # look up; on confirmed "no lyrics":
        cache.put(signature)
"""

import sqlite3
import threading
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Generator

from getlrc.core.exceptions import CacheError
from getlrc.core.logger import get_logger

logger = get_logger(__name__)


_SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS negative_cache (
    signature TEXT PRIMARY KEY,
    timestamp INTEGER NOT NULL
);
"""


class NegativeCache:
    """
    Thread-safe SQLite key -> timestamp store.

    Uses a single persistent connection with thread locking for safety.
    All public methods acquire self._lock before executing. The
    orchestrator is the only writer; WAL mode lets other processes read
    while a run is in progress.
    """

    def __init__(self, db_path: Path) -> None:
        self.db_path = db_path
        self._lock = threading.Lock()
        self._conn: sqlite3.Connection | None = None

        if not db_path.parent.exists():
            raise CacheError(
                f"Parent directory does not exist: {db_path.parent}",
                details={"path": str(db_path.parent)}
            )

        try:
            with self._get_connection() as conn:
                conn.executescript(_SCHEMA_SQL)
                conn.commit()
        except sqlite3.Error as e:
            raise CacheError(
                f"Failed to initialize negative cache: {e}",
                details={"path": str(db_path)}
            ) from e

        logger.info(f"Negative cache opened: {db_path}")

    @contextmanager
    def _get_connection(self) -> Generator[sqlite3.Connection, None, None]:
        """
        Get the persistent database connection as a context manager.

        The connection is created once and reused for all operations.
        """
        if self._conn is None:
            self._conn = sqlite3.connect(
                str(self.db_path),
                timeout=30.0,
                check_same_thread=False  # We handle thread safety with _lock
            )
            self._conn.execute("PRAGMA journal_mode = WAL")
        yield self._conn

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None

    def __enter__(self) -> "NegativeCache":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def contains(self, signature: str) -> bool:
        """
        Check whether a fingerprint is in the negative cache.

        Raises:
            CacheError: On database failure.
        """
        with self._lock:
            try:
                with self._get_connection() as conn:
                    cursor = conn.execute(
                        "SELECT 1 FROM negative_cache WHERE signature = ?", (signature,)
                    )
                    return cursor.fetchone() is not None
            except sqlite3.Error as e:
                raise CacheError(
                    f"Negative cache lookup failed: {e}",
                    details={"signature": signature}
                ) from e

    def put(self, signature: str) -> None:
        """
        Record a negative lookup for a fingerprint (insert or refresh).

        Raises:
            CacheError: On database failure.
        """
        timestamp = int(time.time())
        with self._lock:
            try:
                with self._get_connection() as conn:
                    conn.execute(
                        "INSERT OR REPLACE INTO negative_cache (signature, timestamp) VALUES (?, ?)",
                        (signature, timestamp)
                    )
                    conn.commit()
            except sqlite3.Error as e:
                raise CacheError(
                    f"Negative cache write failed: {e}",
                    details={"signature": signature}
                ) from e
        logger.debug(f"Negative cache entry stored: {signature}")

    def get_timestamp(self, signature: str) -> int | None:
        """Return the UNIX time of the last negative lookup, or None."""
        with self._lock:
            with self._get_connection() as conn:
                cursor = conn.execute(
                    "SELECT timestamp FROM negative_cache WHERE signature = ?", (signature,)
                )
                row = cursor.fetchone()
                return row[0] if row else None

    def count(self) -> int:
        with self._lock:
            with self._get_connection() as conn:
                cursor = conn.execute("SELECT COUNT(*) FROM negative_cache")
                return cursor.fetchone()[0]
