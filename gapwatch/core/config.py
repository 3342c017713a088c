"""
Centralized configuration management for gapwatch.

This module provides a single source of truth for all configuration values,
supporting:
- JSON configuration file (config.json)
- Environment variable overrides
- Programmatic defaults

Configuration is loaded in priority order:
1. Environment variables (highest priority)
2. JSON config file
3. Dataclass defaults (lowest priority)
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from gapwatch.core.constants import (
    ANALYSIS_TIMEOUT_MINUTES,
    DEFAULT_FAST_POLL_SECONDS,
    DEFAULT_MONITORING_INTERVAL_MINUTES,
    ERROR_TEXT_LIMIT,
    PAGE_SIZE,
)
from gapwatch.core.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

# Default config file locations (searched in order)
CONFIG_FILE_PATHS = [
    Path("config.json"),
    Path("./config/config.json"),
    Path.home() / ".gapwatch" / "config.json",
    Path("/etc/gapwatch/config.json"),
]

CONFIG_FILE_ENV = "GAPWATCH_CONFIG_FILE"


def _load_config_file() -> dict[str, Any]:
    """Load configuration from JSON file.

    Searches for config file in standard locations, or uses
    GAPWATCH_CONFIG_FILE environment variable if set.

    Returns:
        Dictionary of configuration values, or empty dict if no file found.
    """
    env_config_path = os.getenv(CONFIG_FILE_ENV)
    if env_config_path:
        config_path = Path(env_config_path)
        if config_path.exists():
            with config_path.open() as f:
                return json.load(f)
        logger.warning(f"{CONFIG_FILE_ENV} specified but not found: {env_config_path}")

    for path in CONFIG_FILE_PATHS:
        if path.exists():
            with path.open() as f:
                return json.load(f)

    return {}


def _get_env_or_config(
    env_key: str,
    config_dict: dict[str, Any],
    config_key: str,
    default: Any,
    type_cast: type | None = None,
) -> Any:
    """Get value from environment, config file, or default (in priority order)."""
    env_value = os.getenv(env_key)
    if env_value is not None:
        if type_cast is bool:
            return env_value.lower() in ("true", "1", "yes")
        try:
            return type_cast(env_value) if type_cast else env_value
        except ValueError as e:
            raise ConfigurationError(env_key, reason="cannot parse environment value", value=env_value) from e

    if config_key in config_dict:
        return config_dict[config_key]

    return default


def _require_positive(parameter: str, value: float) -> None:
    if value <= 0:
        raise ConfigurationError(parameter, reason="must be greater than zero", value=value)


@dataclass(frozen=True)
class BackendConfig:
    """Configuration for the alert backend REST client."""

    base_url: str = "http://localhost:8080"
    request_timeout_seconds: float = 30.0
    connect_retries: int = 2
    # Must match the backend's own worst-case analysis budget
    analysis_timeout_minutes: float = ANALYSIS_TIMEOUT_MINUTES
    action_timeout_minutes: float = ANALYSIS_TIMEOUT_MINUTES
    error_text_limit: int = ERROR_TEXT_LIMIT
    send_idempotency_key: bool = True

    def __post_init__(self) -> None:
        _require_positive("request_timeout_seconds", self.request_timeout_seconds)
        _require_positive("analysis_timeout_minutes", self.analysis_timeout_minutes)
        _require_positive("action_timeout_minutes", self.action_timeout_minutes)
        _require_positive("error_text_limit", self.error_text_limit)
        if self.connect_retries < 0:
            raise ConfigurationError("connect_retries", reason="cannot be negative", value=self.connect_retries)

    @property
    def analysis_timeout_seconds(self) -> float:
        return self.analysis_timeout_minutes * 60

    @property
    def action_timeout_seconds(self) -> float:
        return self.action_timeout_minutes * 60

    @classmethod
    def from_config(cls, config: dict[str, Any]) -> BackendConfig:
        """Create configuration from config dict with environment overrides."""
        backend = config.get("backend", {})
        return cls(
            base_url=_get_env_or_config("GAPWATCH_API_URL", backend, "base_url", cls.base_url),
            request_timeout_seconds=_get_env_or_config(
                "GAPWATCH_REQUEST_TIMEOUT", backend, "request_timeout_seconds", cls.request_timeout_seconds, float
            ),
            connect_retries=backend.get("connect_retries", cls.connect_retries),
            analysis_timeout_minutes=_get_env_or_config(
                "GAPWATCH_ANALYSIS_TIMEOUT_MINUTES", backend, "analysis_timeout_minutes",
                cls.analysis_timeout_minutes, float,
            ),
            action_timeout_minutes=backend.get("action_timeout_minutes", cls.action_timeout_minutes),
            error_text_limit=backend.get("error_text_limit", cls.error_text_limit),
            send_idempotency_key=_get_env_or_config(
                "GAPWATCH_IDEMPOTENCY_KEY", backend, "send_idempotency_key", cls.send_idempotency_key, bool
            ),
        )

    @classmethod
    def from_env(cls) -> BackendConfig:
        """Create configuration from environment variables and config file."""
        return cls.from_config(_load_config_file())


@dataclass(frozen=True)
class DashboardConfig:
    """Configuration for the alert list, polling and event log."""

    page_size: int = PAGE_SIZE
    default_monitoring_interval_minutes: int = DEFAULT_MONITORING_INTERVAL_MINUTES
    fast_poll_seconds: float = DEFAULT_FAST_POLL_SECONDS
    event_log_size: int = 200

    def __post_init__(self) -> None:
        _require_positive("page_size", self.page_size)
        _require_positive("default_monitoring_interval_minutes", self.default_monitoring_interval_minutes)
        _require_positive("fast_poll_seconds", self.fast_poll_seconds)
        _require_positive("event_log_size", self.event_log_size)

    @classmethod
    def from_config(cls, config: dict[str, Any]) -> DashboardConfig:
        """Create configuration from config dict with environment overrides."""
        dashboard = config.get("dashboard", {})
        return cls(
            page_size=dashboard.get("page_size", cls.page_size),
            default_monitoring_interval_minutes=dashboard.get(
                "default_monitoring_interval_minutes", cls.default_monitoring_interval_minutes
            ),
            fast_poll_seconds=_get_env_or_config(
                "GAPWATCH_FAST_POLL_SECONDS", dashboard, "fast_poll_seconds", cls.fast_poll_seconds, float
            ),
            event_log_size=dashboard.get("event_log_size", cls.event_log_size),
        )


@dataclass
class AppConfig:
    """Root configuration aggregating all sub-configurations."""

    backend: BackendConfig = field(default_factory=BackendConfig)
    dashboard: DashboardConfig = field(default_factory=DashboardConfig)

    # Track which config file was loaded (if any)
    config_file_path: str | None = None

    @classmethod
    def from_file(cls, file_path: str | Path) -> AppConfig:
        """Load configuration from a specific JSON file.

        Raises:
            FileNotFoundError: If the config file doesn't exist.
            json.JSONDecodeError: If the file contains invalid JSON.
        """
        path = Path(file_path)
        with path.open() as f:
            config_dict = json.load(f)
        return cls.from_config(config_dict, config_file_path=str(path))

    @classmethod
    def from_config(cls, config: dict[str, Any], config_file_path: str | None = None) -> AppConfig:
        """Create full configuration from config dictionary."""
        return cls(
            backend=BackendConfig.from_config(config),
            dashboard=DashboardConfig.from_config(config),
            config_file_path=config_file_path,
        )

    @classmethod
    def from_env(cls) -> AppConfig:
        """Create full configuration from config file and environment variables.

        Searches for config file in standard locations, then applies
        environment variable overrides.
        """
        config_dict = _load_config_file()

        config_path = None
        env_config = os.getenv(CONFIG_FILE_ENV)
        if env_config and Path(env_config).exists():
            config_path = env_config
        else:
            for path in CONFIG_FILE_PATHS:
                if path.exists():
                    config_path = str(path)
                    break

        return cls.from_config(config_dict, config_file_path=config_path)

    @classmethod
    def default(cls) -> AppConfig:
        """Create configuration with all defaults (no file loading)."""
        return cls()


# Global configuration instance - can be overridden for testing
_config: AppConfig | None = None


def get_config() -> AppConfig:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = AppConfig.from_env()
    return _config


def set_config(config: AppConfig) -> None:
    """Set the global configuration instance (useful for testing)."""
    global _config
    _config = config


def reset_config() -> None:
    """Reset configuration to be reloaded on next access."""
    global _config
    _config = None
