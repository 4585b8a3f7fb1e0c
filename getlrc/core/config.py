"""
Configuration management for getlrc.

This module handles loading, validating, and providing access to the
application configuration stored in an optional config.yaml.

The configuration file contains:
    - Lyrics API settings (base URL, timeout, user agent)
    - Rate limit for outbound API requests
    - Data directory for the session file, negative cache and logs
    - Session behavior when a saved session is restored

Configuration File Location:
    An explicit path given with --config, otherwise config.yaml inside
    the data directory. When no file exists the defaults are used.

Example config.yaml:
    api:
      base_url: "https://lrclib.net/api"
      timeout: 15

    rate_limit:
      requests_per_second: 10

    paths:
      data_dir: "~/.local/share/getlrc"

    session:
      start_paused_on_resume: true
      checkpoint_interval: 25
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Any

import appdirs
import yaml

from getlrc import __version__
from getlrc.core.exceptions import ConfigError


APP_NAME = "getlrc"
CONFIG_FILENAME = "config.yaml"
SESSION_FILENAME = "session.json"
CACHE_FILENAME = "negative_cache.db"
LOGS_DIRNAME = "logs"

DEFAULT_BASE_URL = "https://lrclib.net/api"
DEFAULT_TIMEOUT = 15.0
DEFAULT_REQUESTS_PER_SECOND = 10
DEFAULT_CHECKPOINT_INTERVAL = 25


@dataclass(frozen=True)
class ApiConfig:
    """
    Lyrics service configuration.

    Attributes:
        base_url: Root of the LRCLIB API, without trailing slash.
        timeout: Per-request timeout in seconds.
        user_agent: User-Agent header sent with every request.
    """
    base_url: str
    timeout: float
    user_agent: str


@dataclass(frozen=True)
class RateLimitConfig:
    """
    Outbound request budget.

    Attributes:
        requests_per_second: Maximum admitted lookups in any one-second window.
    """
    requests_per_second: int


@dataclass(frozen=True)
class PathsConfig:
    """
    Durable storage locations.

    Attributes:
        data_dir: Directory holding session.json, negative_cache.db and logs/.
    """
    data_dir: Path

    @property
    def session_path(self) -> Path:
        return self.data_dir / SESSION_FILENAME

    @property
    def cache_path(self) -> Path:
        return self.data_dir / CACHE_FILENAME

    @property
    def log_dir(self) -> Path:
        return self.data_dir / LOGS_DIRNAME


@dataclass(frozen=True)
class SessionConfig:
    """
    Session restore behavior.

    Attributes:
        start_paused_on_resume: When a saved session is restored in the
                                interactive display, start in the Paused
                                state so the user can review before resuming.
        checkpoint_interval: Save the session every N processed files so a
                             crash loses at most N outcomes (0 disables).
    """
    start_paused_on_resume: bool
    checkpoint_interval: int = DEFAULT_CHECKPOINT_INTERVAL


@dataclass(frozen=True)
class Config:
    """
    Complete application configuration.

    Created by load_config() and treated as immutable.

    Example:
        config = load_config()
        print(f"Session file: {config.paths.session_path}")
        print(f"Rate limit: {config.rate_limit.requests_per_second}/s")
    """
    api: ApiConfig
    rate_limit: RateLimitConfig
    paths: PathsConfig
    session: SessionConfig


def default_data_dir() -> Path:
    """Return the per-user data directory (e.g. ~/.local/share/getlrc on Linux)."""
    return Path(appdirs.user_data_dir(APP_NAME)).expanduser()


def load_config(config_path: Path | None = None) -> Config:
    """
    Load and validate configuration from config.yaml.

    Args:
        config_path: Optional explicit path to the config file. It must
                     exist when given. If None, <data_dir>/config.yaml is
                     used when present, otherwise pure defaults.

    Returns:
        Config: A frozen dataclass containing all configuration values.

    Raises:
        ConfigError: If an explicit file is missing, the YAML is invalid,
                     or any field has an invalid value.
    """
    if config_path is not None:
        if not config_path.exists():
            raise ConfigError(
                f"Configuration file not found: {config_path}",
                details={"file_path": str(config_path)}
            )
        raw_config = _read_yaml(config_path)
    else:
        implicit_path = default_data_dir() / CONFIG_FILENAME
        raw_config = _read_yaml(implicit_path) if implicit_path.exists() else {}

    return parse_config(raw_config)


def parse_config(raw_config: dict[str, Any]) -> Config:
    """
    Build a Config from an already-parsed dictionary, applying defaults.

    Raises:
        ConfigError: If a section is not a mapping or a value is invalid.
    """
    for section in ("api", "rate_limit", "paths", "session"):
        value = raw_config.get(section)
        if value is not None and not isinstance(value, dict):
            raise ConfigError(
                f"Section '{section}' must be a dictionary",
                details={"section": section}
            )

    return Config(
        api=_parse_api_config(raw_config.get("api") or {}),
        rate_limit=_parse_rate_limit_config(raw_config.get("rate_limit") or {}),
        paths=_parse_paths_config(raw_config.get("paths") or {}),
        session=_parse_session_config(raw_config.get("session") or {}),
    )


def _read_yaml(config_path: Path) -> dict[str, Any]:
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            content = f.read()
    except OSError as e:
        raise ConfigError(
            f"Failed to read configuration file: {e}",
            details={"file_path": str(config_path), "original_error": str(e)}
        ) from e

    try:
        raw_config = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ConfigError(
            f"Invalid YAML syntax in configuration file: {e}",
            details={"file_path": str(config_path), "original_error": str(e)}
        ) from e

    # An empty file parses to None
    if raw_config is None:
        return {}

    if not isinstance(raw_config, dict):
        raise ConfigError(
            "Configuration file must contain a YAML dictionary",
            details={"file_path": str(config_path)}
        )
    return raw_config


def _parse_api_config(api_section: dict[str, Any]) -> ApiConfig:
    base_url = api_section.get("base_url", DEFAULT_BASE_URL)
    if not isinstance(base_url, str) or not base_url.strip():
        raise ConfigError(
            "'api.base_url' must be a non-empty string",
            details={"field": "api.base_url"}
        )

    timeout = api_section.get("timeout", DEFAULT_TIMEOUT)
    if isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or timeout <= 0:
        raise ConfigError(
            "'api.timeout' must be a positive number",
            details={"field": "api.timeout", "value": timeout}
        )

    user_agent = api_section.get("user_agent", f"{APP_NAME}/{__version__}")
    if not isinstance(user_agent, str) or not user_agent.strip():
        raise ConfigError(
            "'api.user_agent' must be a non-empty string",
            details={"field": "api.user_agent"}
        )

    return ApiConfig(
        base_url=base_url.strip().rstrip("/"),
        timeout=float(timeout),
        user_agent=user_agent.strip()
    )


def _parse_rate_limit_config(rate_section: dict[str, Any]) -> RateLimitConfig:
    rps = rate_section.get("requests_per_second", DEFAULT_REQUESTS_PER_SECOND)
    if isinstance(rps, bool) or not isinstance(rps, int) or rps < 1:
        raise ConfigError(
            "'rate_limit.requests_per_second' must be a positive integer",
            details={"field": "rate_limit.requests_per_second", "value": rps}
        )
    return RateLimitConfig(requests_per_second=rps)


def _parse_paths_config(paths_section: dict[str, Any]) -> PathsConfig:
    raw_dir = paths_section.get("data_dir")
    if raw_dir is None:
        return PathsConfig(data_dir=default_data_dir())

    if not isinstance(raw_dir, str) or not raw_dir.strip():
        raise ConfigError(
            "'paths.data_dir' must be a non-empty string or null",
            details={"field": "paths.data_dir"}
        )
    # Expand ~ and make absolute
    return PathsConfig(data_dir=Path(raw_dir.strip()).expanduser().resolve())


def _parse_session_config(session_section: dict[str, Any]) -> SessionConfig:
    start_paused = session_section.get("start_paused_on_resume", True)
    if not isinstance(start_paused, bool):
        raise ConfigError(
            "'session.start_paused_on_resume' must be true or false",
            details={"field": "session.start_paused_on_resume", "value": start_paused}
        )
    interval = session_section.get("checkpoint_interval", DEFAULT_CHECKPOINT_INTERVAL)
    if isinstance(interval, bool) or not isinstance(interval, int) or interval < 0:
        raise ConfigError(
            "'session.checkpoint_interval' must be a non-negative integer",
            details={"field": "session.checkpoint_interval", "value": interval}
        )

    return SessionConfig(start_paused_on_resume=start_paused, checkpoint_interval=interval)
