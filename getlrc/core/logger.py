"""
Logging configuration for getlrc.

This module sets up the logging system with multiple outputs:
    - getlrc_<timestamp>.log: Complete log of all events (DEBUG and above)
    - errors_<timestamp>.log: Only ERROR and CRITICAL level messages
    - lyrics_failures_<timestamp>.log: Tracks that ended without lyrics
    - Console (optional): Coloured, tqdm-compatible output for plain mode

The live dashboard owns the terminal while it runs, so console logging is
only enabled for plain/verbose runs. Everything else goes to files.

Usage:
    from getlrc.core.logger import setup_logging, get_logger

    setup_logging(config.paths.log_dir)  # Call once at startup
    logger = get_logger(__name__)        # Get logger for each module

    logger.info("Starting scan")
"""

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import TextIO

from tqdm import tqdm


LOG_FULL_PREFIX = "getlrc"
LOG_ERRORS_PREFIX = "errors"
LYRICS_FAILURES_PREFIX = "lyrics_failures"

# Log format for file output (detailed with timestamp)
FILE_LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(threadName)s | %(name)s | %(message)s"
FILE_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Third-party loggers that are too chatty at DEBUG
_QUIET_LOGGERS = ("urllib3", "requests", "charset_normalizer")


class Colors:
    """ANSI color codes for terminal output."""
    RESET = "\033[0m"
    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    BLUE = "\033[34m"
    WHITE = "\033[37m"
    BOLD = "\033[1m"


class ColoredConsoleFormatter(logging.Formatter):
    """
    Custom formatter that adds colors to console output.

    Colors:
        - DEBUG: Blue
        - INFO: Green
        - WARNING: Yellow
        - ERROR: Red
        - CRITICAL: Bold Red
    """

    LEVEL_COLORS = {
        logging.DEBUG: Colors.BLUE,
        logging.INFO: Colors.GREEN,
        logging.WARNING: Colors.YELLOW,
        logging.ERROR: Colors.RED,
        logging.CRITICAL: Colors.BOLD + Colors.RED,
    }

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelno, Colors.WHITE)
        colored_levelname = f"{color}{record.levelname}{Colors.RESET}"
        return f"{colored_levelname}: {record.getMessage()}"


class TqdmLoggingHandler(logging.Handler):
    """
    Logging handler that writes to the console without breaking tqdm bars.

    Uses tqdm.write() which coordinates with any active progress bar, so
    messages appear above the bar instead of tearing it.
    """

    def __init__(self, stream: TextIO | None = None) -> None:
        super().__init__()
        self.stream = stream or sys.stderr

    def emit(self, record: logging.LogRecord) -> None:
        try:
            msg = self.format(record)
            tqdm.write(msg, file=self.stream)
        except Exception:
            self.handleError(record)


class LyricsFailedTrackHandler(logging.Handler):
    """
    Handler that captures tracks which ended without lyrics.

    Listens for log records carrying 'lyrics_failed_path' and writes them
    to lyrics_failures.log in a simple, human-readable format:

        /music/Artist/Album/01 Song.flac
        NotFound: Artist - Song

        /music/Artist/Album/02 Other.flac
        Error: connection timed out

    Only records containing the extra fields are written.

    Usage:
        log_lyrics_failure(logger, path, status="NotFound", reason="Artist - Song")
    """

    def __init__(self, report_path: Path) -> None:
        super().__init__()
        self.report_path = report_path
        self.report_file: TextIO | None = None

    def open(self) -> None:
        """Open the report file for writing (overwrites existing content)."""
        self.report_file = open(self.report_path, "w", encoding="utf-8")

    def emit(self, record: logging.LogRecord) -> None:
        if not hasattr(record, "lyrics_failed_path"):
            return

        if self.report_file is None:
            return

        try:
            path = getattr(record, "lyrics_failed_path", "")
            status = getattr(record, "lyrics_failed_status", "Error")
            reason = getattr(record, "lyrics_failed_reason", "")

            self.acquire()
            try:
                self.report_file.write(f"{path}\n")
                self.report_file.write(f"{status}: {reason}\n\n")
                self.report_file.flush()
            finally:
                self.release()
        except Exception:
            self.handleError(record)

    def close(self) -> None:
        if self.report_file is not None:
            try:
                self.report_file.close()
            except OSError:
                pass
            self.report_file = None
        super().close()


class ErrorOnlyFilter(logging.Filter):
    """
    Filter that only allows ERROR and CRITICAL level records.

    Used by the error log file handler to exclude DEBUG, INFO, and WARNING.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno >= logging.ERROR


def setup_logging(log_dir: Path, console: bool = False, verbose: bool = False) -> Path:
    """
    Configure the logging system for the application.

    This function should be called ONCE at application startup, after
    the configuration is loaded and the preflight checks passed.

    Args:
        log_dir: Directory where log files will be created.
        console: Also log to the terminal (plain mode only; the live
                 dashboard owns the screen otherwise).
        verbose: Lower the console level from WARNING to DEBUG.

    Returns:
        Path of the full log file for this run.

    Behavior:
        1. Create log_dir if it doesn't exist
        2. Configure root logger level to DEBUG
        3. Full log file handler (DEBUG, detailed format)
        4. Error log file handler (ERROR+ via ErrorOnlyFilter)
        5. Lyrics failures report handler
        6. Optional console handler (TqdmLoggingHandler with colors)

    Thread Safety:
        NOT thread-safe. Call it from the main thread before the
        orchestrator thread is started.
    """
    log_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y-%m-%d_%H-%M-%S")

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)

    # Remove any existing handlers
    root_logger.handlers.clear()

    full_log_path = log_dir / f"{LOG_FULL_PREFIX}_{timestamp}.log"
    full_handler = logging.FileHandler(full_log_path, mode="w", encoding="utf-8")
    full_handler.setLevel(logging.DEBUG)
    full_handler.setFormatter(logging.Formatter(FILE_LOG_FORMAT, FILE_DATE_FORMAT))
    root_logger.addHandler(full_handler)

    error_log_path = log_dir / f"{LOG_ERRORS_PREFIX}_{timestamp}.log"
    error_handler = logging.FileHandler(error_log_path, mode="w", encoding="utf-8")
    error_handler.setLevel(logging.DEBUG)  # Filter handles the level restriction
    error_handler.setFormatter(logging.Formatter(FILE_LOG_FORMAT, FILE_DATE_FORMAT))
    error_handler.addFilter(ErrorOnlyFilter())
    root_logger.addHandler(error_handler)

    lyrics_failures_path = log_dir / f"{LYRICS_FAILURES_PREFIX}_{timestamp}.log"
    lyrics_handler = LyricsFailedTrackHandler(lyrics_failures_path)
    lyrics_handler.open()
    root_logger.addHandler(lyrics_handler)

    if console:
        console_handler = TqdmLoggingHandler()
        console_handler.setLevel(logging.DEBUG if verbose else logging.WARNING)
        console_handler.setFormatter(ColoredConsoleFormatter())
        root_logger.addHandler(console_handler)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return full_log_path


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance for a module.

    Args:
        name: The logger name, typically __name__ of the calling module.
              This creates a hierarchy like 'getlrc.core.session'.

    Example:
        logger = get_logger(__name__)
        logger.debug("Checking negative cache")
    """
    return logging.getLogger(name)


def log_lyrics_failure(
    logger: logging.Logger,
    path: str,
    status: str,
    reason: str
) -> None:
    """
    Log a track that ended without lyrics.

    Attaches the extra fields LyricsFailedTrackHandler picks up for the
    lyrics_failures report. NotFound tracks are logged at INFO, Errors at
    WARNING so they also show up in the full log's warnings.

    Args:
        logger: The logger to use for the message.
        path: Audio file path.
        status: Outcome tag ("NotFound" or "Error").
        reason: Short explanation (track label or error text).
    """
    level = logging.INFO if status == "NotFound" else logging.WARNING
    logger.log(
        level,
        f"No lyrics ({status}) for {path}: {reason}",
        extra={
            "lyrics_failed_path": path,
            "lyrics_failed_status": status,
            "lyrics_failed_reason": reason,
        }
    )


def shutdown_logging() -> None:
    """
    Properly shut down the logging system.

    Flushes and closes every handler on the root logger and removes them.
    Typically called in a finally block at application exit.
    """
    root_logger = logging.getLogger()

    for handler in root_logger.handlers[:]:
        try:
            handler.flush()
            handler.close()
        except (OSError, ValueError):
            pass
        root_logger.removeHandler(handler)
