"""
Centralized configuration with environment variable overrides.

Slot granularity, duration bounds, the recurrence ceiling and the
calendar pixel scale are configurable here. Engine functions accept
every one of these as a keyword argument and only fall back to
``settings`` when the caller passes nothing.
"""

import logging
import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)


def _safe_int(env_var: str, default: str) -> int:
    """Parse an integer from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return int(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid integer for {env_var}: {raw!r}"
        ) from None


def _hhmm_to_minutes(env_var: str, raw: str) -> int:
    try:
        hours, minutes = raw.strip().split(":")
        return int(hours) * 60 + int(minutes)
    except (ValueError, AttributeError):
        raise ValueError(f"Invalid HH:MM for {env_var}: {raw!r}") from None


@dataclass(frozen=True)
class SchedulingConfig:
    """Slot granularity and duration bounds for booking inputs."""

    slot_granularity_minutes: int = _safe_int("SLOT_GRANULARITY_MINUTES", "15")
    min_duration_minutes: int = _safe_int("MIN_DURATION_MINUTES", "15")
    max_duration_minutes: int = _safe_int("MAX_DURATION_MINUTES", "480")
    max_wait_minutes: int = _safe_int("MAX_WAIT_MINUTES", "240")
    candidate_interval_minutes: int = _safe_int("CANDIDATE_INTERVAL_MINUTES", "15")


@dataclass(frozen=True)
class RecurrenceConfig:
    """Limits for weekly recurring bookings."""

    max_occurrences: int = _safe_int("MAX_RECURRING_OCCURRENCES", "60")


@dataclass(frozen=True)
class CalendarConfig:
    """Day-view geometry shared by every caller that positions blocks."""

    slot_height_px: int = _safe_int("SLOT_HEIGHT_PX", "24")
    view_start: str = os.getenv("CALENDAR_VIEW_START", "08:00")
    view_end: str = os.getenv("CALENDAR_VIEW_END", "20:00")


@dataclass(frozen=True)
class AppConfig:
    """Root configuration aggregating all sub-configs."""

    scheduling: SchedulingConfig = field(default_factory=SchedulingConfig)
    recurrence: RecurrenceConfig = field(default_factory=RecurrenceConfig)
    calendar: CalendarConfig = field(default_factory=CalendarConfig)
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    business_name: str = os.getenv("BUSINESS_NAME", "Salon")


def _validate_config(config: AppConfig) -> None:
    """Validate configuration values are within acceptable ranges."""
    sched = config.scheduling
    if sched.slot_granularity_minutes < 1:
        raise ValueError(
            f"SLOT_GRANULARITY_MINUTES must be >= 1, got {sched.slot_granularity_minutes}"
        )
    if sched.candidate_interval_minutes < 1:
        raise ValueError(
            f"CANDIDATE_INTERVAL_MINUTES must be >= 1, got {sched.candidate_interval_minutes}"
        )
    if sched.min_duration_minutes < 0:
        raise ValueError(
            f"MIN_DURATION_MINUTES must be >= 0, got {sched.min_duration_minutes}"
        )
    if sched.max_duration_minutes < sched.min_duration_minutes:
        raise ValueError(
            "MAX_DURATION_MINUTES must be >= MIN_DURATION_MINUTES, "
            f"got {sched.max_duration_minutes} < {sched.min_duration_minutes}"
        )
    if sched.max_wait_minutes < 0:
        raise ValueError(f"MAX_WAIT_MINUTES must be >= 0, got {sched.max_wait_minutes}")

    if config.recurrence.max_occurrences < 1:
        raise ValueError(
            f"MAX_RECURRING_OCCURRENCES must be >= 1, got {config.recurrence.max_occurrences}"
        )

    cal = config.calendar
    if cal.slot_height_px < 1:
        raise ValueError(f"SLOT_HEIGHT_PX must be >= 1, got {cal.slot_height_px}")
    view_start = _hhmm_to_minutes("CALENDAR_VIEW_START", cal.view_start)
    view_end = _hhmm_to_minutes("CALENDAR_VIEW_END", cal.view_end)
    if view_end <= view_start:
        raise ValueError(
            f"CALENDAR_VIEW_END must be after CALENDAR_VIEW_START, got {cal.view_start}-{cal.view_end}"
        )


def load_config() -> AppConfig:
    """Load and validate application configuration."""
    config = AppConfig()
    _validate_config(config)
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    logger.info("Configuration loaded for '%s'", config.business_name)
    return config


# Singleton instance
settings = load_config()
