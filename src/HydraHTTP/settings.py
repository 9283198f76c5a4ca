"""Typed configuration for the HydraHTTP adapter.

Settings are Pydantic v2 ``BaseSettings`` models so every field can be
overridden from the environment with a consistent prefix:

- ``HYDRAHTTP_ENGINE_*``   adapter-level default engine options
- ``HYDRAHTTP_PARALLEL_*`` parallel execution manager sizing
- ``HYDRAHTTP_LOG_*``      logging level and output format

Example:
    >>> import os
    >>> os.environ["HYDRAHTTP_PARALLEL_MAX_CONCURRENCY"] = "16"
    >>> reset_settings()
    >>> get_settings().parallel.max_concurrency
    16
"""

from __future__ import annotations

import enum
import logging
import threading
from typing import Any, Mapping, Optional

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from HydraHTTP.errors import ConfigurationError

__all__ = [
    "LogFormat",
    "EngineDefaults",
    "ParallelSettings",
    "LoggingSettings",
    "AdapterSettings",
    "get_settings",
    "reset_settings",
]


class LogFormat(str, enum.Enum):
    """Output format for log records."""

    CONSOLE = "console"
    JSON = "json"


class EngineDefaults(BaseSettings):
    """Engine options applied to every request before per-request mapping.

    These carry the lowest precedence: TLS, proxy, timeout and bind
    descriptors on the request environment overwrite whatever is set here.
    """

    model_config = SettingsConfigDict(
        env_prefix="HYDRAHTTP_ENGINE_",
        case_sensitive=False,
        extra="ignore",
        validate_assignment=True,
    )

    follow_redirects: bool = Field(False, description="Follow 3xx responses inside the engine")
    max_redirects: int = Field(5, ge=0, le=50, description="Maximum redirect hops when following")
    http2: bool = Field(False, description="Negotiate HTTP/2 when the h2 package is installed")
    verify: bool = Field(True, description="Verify peer certificates when no TLS descriptor is set")
    timeout_s: Optional[float] = Field(
        None, gt=0, description="Default total timeout in seconds (unset: no deadline)"
    )
    open_timeout_s: Optional[float] = Field(
        None, gt=0, description="Default connect timeout in seconds (unset: no deadline)"
    )


class ParallelSettings(BaseSettings):
    """Sizing of the parallel execution manager."""

    model_config = SettingsConfigDict(
        env_prefix="HYDRAHTTP_PARALLEL_",
        case_sensitive=False,
        extra="ignore",
        validate_assignment=True,
    )

    max_concurrency: int = Field(
        200, ge=1, le=1024, description="Requests executed at the same time by one manager"
    )
    thread_name_prefix: str = Field("hydra-http", min_length=1)


class LoggingSettings(BaseSettings):
    """Logging level and output format."""

    model_config = SettingsConfigDict(
        env_prefix="HYDRAHTTP_LOG_",
        case_sensitive=False,
        extra="ignore",
    )

    level: str = Field("INFO", description="Logging level (DEBUG, INFO, WARNING, ERROR)")
    format: LogFormat = Field(LogFormat.CONSOLE, description="Pretty console or structured JSON")

    @field_validator("level")
    @classmethod
    def _validate_level(cls, value: str) -> str:
        upper = value.upper()
        if upper not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Invalid logging level: {value}")
        return upper

    @property
    def level_number(self) -> int:
        return logging.getLevelName(self.level)


class AdapterSettings(BaseSettings):
    """Aggregate configuration for one adapter instance."""

    model_config = SettingsConfigDict(env_prefix="HYDRAHTTP_", case_sensitive=False, extra="ignore")

    engine: EngineDefaults = Field(default_factory=EngineDefaults)
    parallel: ParallelSettings = Field(default_factory=ParallelSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "AdapterSettings":
        """Validate a nested mapping, translating failures to :class:`ConfigurationError`."""
        try:
            return cls.model_validate(dict(data))
        except ValidationError as exc:
            raise ConfigurationError(f"Invalid adapter settings: {exc}") from exc


_settings_lock = threading.Lock()
_settings: Optional[AdapterSettings] = None


def get_settings() -> AdapterSettings:
    """Return the process settings, loading them from the environment once."""
    global _settings
    with _settings_lock:
        if _settings is None:
            try:
                _settings = AdapterSettings()
            except ValidationError as exc:
                raise ConfigurationError(f"Invalid HYDRAHTTP_* environment: {exc}") from exc
        return _settings


def reset_settings() -> None:
    """Drop cached settings (primarily for tests)."""
    global _settings
    with _settings_lock:
        _settings = None
