"""
Core module for getlrc.

This module provides the foundational components used throughout the application:
    - exceptions: Custom exception classes for error handling
    - config: Configuration loading and validation
    - logger: Logging system with multiple outputs
    - cache: Thread-safe SQLite negative cache
    - session: Resumable session state and its atomic store
    - ratelimit: Sliding-window limiter for outbound requests
    - file_manager: Atomic sidecar writes and preflight checks
    - events: Event bus between the pipeline and the display

The progress module (Rich/tqdm display) is imported directly by the CLI.

Usage:
    from getlrc.core import (
        Config, load_config,
        NegativeCache, SessionStore,
        setup_logging, get_logger,
        GetLrcError, ConfigError, CacheError
    )
"""

from getlrc.core.cache import NegativeCache
from getlrc.core.config import (
    ApiConfig,
    Config,
    PathsConfig,
    RateLimitConfig,
    SessionConfig,
    load_config,
)
from getlrc.core.events import EventBus, Intent, PipelineState
from getlrc.core.exceptions import (
    CacheError,
    ConfigError,
    GetLrcError,
    LyricsError,
    PreflightError,
    SessionError,
    WriteConflictError,
)
from getlrc.core.file_manager import (
    SidecarWriter,
    ensure_data_dir,
    ensure_directory,
    has_sidecar,
    sidecar_path,
)
from getlrc.core.logger import (
    get_logger,
    log_lyrics_failure,
    setup_logging,
    shutdown_logging,
)
from getlrc.core.ratelimit import RateLimiter
from getlrc.core.session import Outcome, Session, SessionStore

__all__ = [
    # Config
    "Config",
    "ApiConfig",
    "RateLimitConfig",
    "PathsConfig",
    "SessionConfig",
    "load_config",
    # Storage
    "NegativeCache",
    "Session",
    "SessionStore",
    "Outcome",
    # Pipeline plumbing
    "EventBus",
    "Intent",
    "PipelineState",
    "RateLimiter",
    "SidecarWriter",
    "has_sidecar",
    "sidecar_path",
    "ensure_directory",
    "ensure_data_dir",
    # Exceptions
    "GetLrcError",
    "ConfigError",
    "PreflightError",
    "CacheError",
    "SessionError",
    "LyricsError",
    "WriteConflictError",
    # Logger
    "setup_logging",
    "get_logger",
    "log_lyrics_failure",
    "shutdown_logging",
]
