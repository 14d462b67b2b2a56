from __future__ import annotations

import structlog
from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from sdx_guard.logging import configure_structlog, get_log_level_value

SETTINGS_ENV_PREFIX = "CIRCUIT_BREAKER_"


def prefixed_settings_config(prefix: str) -> SettingsConfigDict:
    """Build standard Pydantic settings config for prefixed environments."""
    return SettingsConfigDict(env_prefix=prefix, case_sensitive=False)


class CircuitBreakerSettings(BaseSettings):
    """Process-wide defaults for commands that do not configure a value."""

    model_config = prefixed_settings_config(SETTINGS_ENV_PREFIX)

    timeout_milliseconds: float = 1000
    request_volume_threshold: int = 20
    error_threshold_percentage: float = 50
    sleep_window_milliseconds: float = 5000
    log_level: str = "INFO"

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalize_log_level(cls, value: object) -> object:
        if not isinstance(value, str):
            return value
        normalized = value.strip().upper()
        get_log_level_value(normalized)
        return normalized

    @model_validator(mode="after")
    def _validate_circuit_defaults(self) -> CircuitBreakerSettings:
        if self.timeout_milliseconds <= 0:
            raise ValueError("timeout_milliseconds must be > 0")
        if self.request_volume_threshold < 0:
            raise ValueError("request_volume_threshold must be >= 0")
        if not 0 <= self.error_threshold_percentage <= 100:
            raise ValueError("error_threshold_percentage must be between 0 and 100")
        if self.sleep_window_milliseconds < 0:
            raise ValueError("sleep_window_milliseconds must be >= 0")
        return self

    @property
    def timeout(self) -> float:
        """Default action deadline in seconds."""
        return self.timeout_milliseconds / 1000

    @property
    def sleep_window(self) -> float:
        """Default open-state duration in seconds."""
        return self.sleep_window_milliseconds / 1000

    def configure_logging(self) -> structlog.stdlib.BoundLogger:
        """Configure process logging at ``log_level``.

        Entry point for services running commands; call once at startup.
        """
        return configure_structlog(log_level=self.log_level)
