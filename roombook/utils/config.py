"""Environment-driven runtime settings."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional


def _env_str(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value.strip()


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return int(value)


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return float(value)


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_optional_int(name: str) -> Optional[int]:
    value = os.getenv(name)
    if value is None or not value.strip():
        return None
    return int(value)


@dataclass(frozen=True)
class Settings:
    app_name: str
    app_version: str
    log_level: str
    host: str
    port: int
    sweeper_enabled: bool
    sweep_interval_seconds: float
    sweep_promotion_policy: str
    aging_max_wait_hours: float
    aging_priority_high: int
    aging_priority_low: int
    default_base_priority: int
    fallback_room_id: Optional[int]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Read settings once per process; call ``get_settings.cache_clear()`` to reload."""
    return Settings(
        app_name=_env_str("APP_NAME", "Room Booking Service"),
        app_version=_env_str("APP_VERSION", "1.0.0"),
        log_level=_env_str("LOG_LEVEL", "INFO"),
        host=_env_str("HOST", "127.0.0.1"),
        port=_env_int("PORT", 5000),
        sweeper_enabled=_env_bool("SWEEPER_ENABLED", True),
        sweep_interval_seconds=_env_float("SWEEP_INTERVAL_SECONDS", 60.0),
        sweep_promotion_policy=_env_str("SWEEP_PROMOTION_POLICY", "per_tick"),
        aging_max_wait_hours=_env_float("AGING_MAX_WAIT_HOURS", 48.0),
        aging_priority_high=_env_int("AGING_PRIORITY_HIGH", 5),
        aging_priority_low=_env_int("AGING_PRIORITY_LOW", 1),
        default_base_priority=_env_int("DEFAULT_BASE_PRIORITY", 1),
        fallback_room_id=_env_optional_int("FALLBACK_ROOM_ID"),
    )
