"""
Exception classes for getlrc.

This module defines all custom exceptions used throughout the application.
Each exception carries a human-readable message plus an optional details
dictionary, and the hierarchy separates fatal startup problems from
per-track failures that the pipeline absorbs.

Exception Hierarchy:
    GetLrcError (base)
        ConfigError - Configuration file issues (FATAL)
        PreflightError - Directory/permission checks before the run (FATAL)
        CacheError - Negative cache database issues (FATAL when opening)
        SessionError - Session file could not be written or removed
        LyricsError - Lyrics text that cannot be stored (per-track, never fatal)
        WriteConflictError - Sidecar target appeared during the write (per-track)
"""


class GetLrcError(Exception):
    """
    Base exception for all getlrc errors.

    All custom exceptions in this project inherit from this class,
    allowing callers to catch every getlrc error with a single
    except clause if desired.

    Attributes:
        message: Human-readable error description.
        details: Optional dictionary with additional context (e.g., paths).

    Example:
        try:
            store.save(session)
        except GetLrcError as e:
            logger.error(f"Operation failed: {e.message}")
            if e.details:
                logger.debug(f"Details: {e.details}")
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        """
        Initialize the base exception.

        Args:
            message: Human-readable error description shown to the user.
            details: Optional dictionary containing additional context about
                     the error. Common keys include:
                     - 'path': File or directory involved in the error
                     - 'field': Configuration field that failed validation
                     - 'original_error': The underlying exception text
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        """Return the error message for display."""
        return self.message


class ConfigError(GetLrcError):
    """
    Raised when there's an issue with the configuration file.

    This is a CRITICAL error that stops the program before any
    processing begins.

    Common causes:
        - Explicit --config path does not exist
        - config.yaml has invalid YAML syntax
        - Invalid field values (e.g., non-positive rate limit)

    Example:
        raise ConfigError(
            "'rate_limit.requests_per_second' must be a positive integer",
            details={'field': 'rate_limit.requests_per_second', 'value': 0}
        )
    """
    pass


class PreflightError(GetLrcError):
    """
    Raised when a startup precondition fails.

    This is a CRITICAL error. It is raised before the orchestrator
    starts and before any session file is read or written.

    Common causes:
        - Target path does not exist or is not a directory
        - Target directory is not writable (sidecars cannot be created)
        - Data directory cannot be created or is not writable
    """
    pass


class CacheError(GetLrcError):
    """
    Raised when the negative cache database cannot be opened or queried.

    Opening failures are CRITICAL (raised at startup). Failures during a
    run are absorbed per track and recorded as an Error outcome.
    """
    pass


class SessionError(GetLrcError):
    """
    Raised when the session file cannot be written or removed.

    Loading never raises: an unreadable or mismatched session is treated
    as "no session" and a fresh scan is performed instead.
    """
    pass


class LyricsError(GetLrcError):
    """
    Raised when lyrics returned by the service cannot be stored.

    This is a NON-CRITICAL error. The track is recorded with an Error
    outcome and is not added to the negative cache, so a later run
    looks it up again.

    Common causes:
        - Lone surrogates or other text the sidecar encoding rejects
    """
    pass


class WriteConflictError(GetLrcError):
    """
    Raised when a sidecar file appeared between the existence check and
    the write.

    This is a NON-CRITICAL error: the existing file is left untouched and
    the track is recorded with an Error outcome.

    Example:
        raise WriteConflictError(
            "Sidecar already exists",
            details={'path': '/music/Artist/01 Song.lrc'}
        )
    """
    pass
