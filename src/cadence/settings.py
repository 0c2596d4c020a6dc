"""Scheduler settings.

Retry backoff constants, tick cadence, time-zone handling and logging are
read from ``CADENCE_*`` environment variables (and an optional ``.env``
file) through pydantic-settings, validated once at startup.

Fields
──────
retry_base_seconds    : First retry delay after a failure (default 5)
retry_max_seconds     : Cap for the retry delay (default 900)
retry_multiplier      : Growth factor per consecutive failure (default 1.659)
tick_interval_seconds : Dispatch loop cadence (default 1.0)
tz_offset_seconds     : Pin the local offset, seconds west of UTC (default: system)
log_level             : structlog level
log_json              : True for JSON logs, False for console, None to auto-detect

Examples:
    >>> from cadence.settings import get_settings
    >>> get_settings().retry_base_seconds
    5
"""

from __future__ import annotations

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class CadenceSettings(BaseSettings):
    """Validated scheduler configuration."""

    model_config = SettingsConfigDict(
        env_prefix="CADENCE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Retry backoff ────────────────────────────────────────────
    retry_base_seconds: int = Field(default=5, gt=0)
    retry_max_seconds: int = Field(default=900, gt=0)
    # 1.659 produces the ladder 5, 8, 13, 22, 36, 60, 100...
    retry_multiplier: float = Field(default=1.659, ge=1.0)

    # ── Dispatch loop ────────────────────────────────────────────
    tick_interval_seconds: float = Field(default=1.0, gt=0)
    tz_offset_seconds: int | None = Field(
        default=None,
        description="Local offset in seconds west of UTC; None reads it from the system",
    )

    # ── Observability ────────────────────────────────────────────
    log_level: str = Field(default="INFO")
    log_json: bool | None = Field(default=None)

    @model_validator(mode="after")
    def _validate_backoff(self) -> CadenceSettings:
        if self.retry_max_seconds < self.retry_base_seconds:
            raise ValueError(
                f"retry_max_seconds ({self.retry_max_seconds}) must be >= "
                f"retry_base_seconds ({self.retry_base_seconds})"
            )
        return self


_settings_cache: dict[str, CadenceSettings] = {}


def get_settings(*, _force_reload: bool = False) -> CadenceSettings:
    """Load, validate, and cache a :class:`CadenceSettings` instance."""
    if not _force_reload and "default" in _settings_cache:
        return _settings_cache["default"]

    settings = CadenceSettings()
    _settings_cache["default"] = settings
    return settings


def clear_settings_cache() -> None:
    """Clear the settings cache (primarily for testing)."""
    _settings_cache.clear()


__all__ = ["CadenceSettings", "get_settings", "clear_settings_cache"]
