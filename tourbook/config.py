"""
Centralized configuration with environment variable overrides.

Opening hours, the slot grid, conductor status timings and the remote
store connection are configurable here. Nothing is hardcoded in the
scheduling or conductor logic.
"""

import logging
import os
import re
from dataclasses import dataclass, field

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

_HHMM = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")

DEFAULT_TIME_SLOTS = "09:00,10:30,12:00,14:00,15:30,17:00,18:30"


def _safe_int(env_var: str, default: str) -> int:
    """Parse an integer from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return int(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid integer for {env_var}: {raw!r}"
        ) from None


def _safe_float(env_var: str, default: str) -> float:
    """Parse a float from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return float(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid float for {env_var}: {raw!r}"
        ) from None


def _safe_list(env_var: str, default: str) -> tuple[str, ...]:
    """Parse a comma-separated list from an env var, dropping blanks."""
    raw = os.getenv(env_var, default)
    return tuple(item.strip() for item in raw.split(",") if item.strip())


@dataclass(frozen=True)
class ScheduleConfig:
    """Service-day hours and the bookable slot grid."""

    opening_time: str = os.getenv("OPENING_TIME", "08:00")
    closing_time: str = os.getenv("CLOSING_TIME", "20:00")
    time_slots: tuple[str, ...] = _safe_list("TIME_SLOTS", DEFAULT_TIME_SLOTS)
    slot_interval_minutes: int = _safe_int("SLOT_INTERVAL_MINUTES", "90")
    default_tour_duration: int = _safe_int("DEFAULT_TOUR_DURATION", "45")


@dataclass(frozen=True)
class ConductorConfig:
    """Conductor status polling and busy-window limits."""

    status_poll_interval_sec: float = _safe_float("STATUS_POLL_INTERVAL", "15.0")
    default_busy_minutes: int = _safe_int("DEFAULT_BUSY_MINUTES", "60")
    max_busy_minutes: int = _safe_int("MAX_BUSY_MINUTES", "180")


@dataclass(frozen=True)
class StoreConfig:
    """Remote data store (PostgREST / Supabase) connection settings."""

    url: str = os.getenv("STORE_URL", "")
    api_key: str = os.getenv("STORE_API_KEY", "")
    timeout_sec: float = _safe_float("STORE_TIMEOUT", "10.0")


@dataclass(frozen=True)
class AppConfig:
    """Root configuration aggregating all sub-configs."""

    schedule: ScheduleConfig = field(default_factory=ScheduleConfig)
    conductor: ConductorConfig = field(default_factory=ConductorConfig)
    store: StoreConfig = field(default_factory=StoreConfig)
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    app_name: str = os.getenv("APP_NAME", "tourbook")


def _validate_config(config: AppConfig) -> None:
    """Validate configuration values are within acceptable ranges."""
    schedule = config.schedule
    for name, value in [
        ("OPENING_TIME", schedule.opening_time),
        ("CLOSING_TIME", schedule.closing_time),
    ]:
        if not _HHMM.match(value):
            raise ValueError(f"{name} must be in HH:MM format, got {value!r}")
    if schedule.opening_time >= schedule.closing_time:
        raise ValueError(
            f"OPENING_TIME must be before CLOSING_TIME, got "
            f"{schedule.opening_time} >= {schedule.closing_time}"
        )

    if not schedule.time_slots:
        raise ValueError("TIME_SLOTS must contain at least one slot")
    for slot in schedule.time_slots:
        if not _HHMM.match(slot):
            raise ValueError(f"TIME_SLOTS entries must be HH:MM, got {slot!r}")
    if list(schedule.time_slots) != sorted(set(schedule.time_slots)):
        raise ValueError("TIME_SLOTS must be strictly ascending without repeats")

    if schedule.slot_interval_minutes < 1:
        raise ValueError(
            f"SLOT_INTERVAL_MINUTES must be >= 1, got {schedule.slot_interval_minutes}"
        )
    if schedule.default_tour_duration < 1:
        raise ValueError(
            f"DEFAULT_TOUR_DURATION must be >= 1, got {schedule.default_tour_duration}"
        )

    conductor = config.conductor
    if conductor.status_poll_interval_sec <= 0:
        raise ValueError(
            "STATUS_POLL_INTERVAL must be > 0, "
            f"got {conductor.status_poll_interval_sec}"
        )
    if conductor.max_busy_minutes < 1:
        raise ValueError(
            f"MAX_BUSY_MINUTES must be >= 1, got {conductor.max_busy_minutes}"
        )
    if not 1 <= conductor.default_busy_minutes <= conductor.max_busy_minutes:
        raise ValueError(
            "DEFAULT_BUSY_MINUTES must be between 1 and MAX_BUSY_MINUTES, "
            f"got {conductor.default_busy_minutes}"
        )

    if config.store.timeout_sec <= 0:
        raise ValueError(f"STORE_TIMEOUT must be > 0, got {config.store.timeout_sec}")


def load_config() -> AppConfig:
    """Load and validate application configuration."""
    config = AppConfig()
    _validate_config(config)
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    logger.info("Configuration loaded for '%s'", config.app_name)
    return config


# Singleton instance
settings = load_config()
