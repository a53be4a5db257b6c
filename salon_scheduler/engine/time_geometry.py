"""
Local calendar-day arithmetic and the shared day-view scale.

Every booking block is measured in minutes from the local midnight of
its day key (YYYY-MM-DD). A minute offset can be negative or exceed
1440 when the instant falls outside the named day; callers handle both.

The pixel scale (slot height / slot minutes) lives here so that grid
labels and booking blocks are positioned by the same formula.
"""

import logging
import math
from dataclasses import dataclass
from datetime import date, datetime, timedelta, tzinfo
from typing import Optional

from salon_scheduler.config import settings
from salon_scheduler.errors import InvalidScheduleInput

logger = logging.getLogger(__name__)

MINUTES_PER_DAY = 24 * 60

# date.weekday(): Monday == 0
WEEKDAY_KEYS = ["mon", "tue", "wed", "thu", "fri", "sat", "sun"]


def parse_day_key(day_key: str) -> date:
    """Parse a YYYY-MM-DD day key."""
    try:
        return datetime.strptime(day_key.strip(), "%Y-%m-%d").date()
    except (ValueError, AttributeError):
        raise InvalidScheduleInput(
            "invalid_day_key", f"Day key must be YYYY-MM-DD, got {day_key!r}"
        ) from None


def day_key_for(value: date) -> str:
    """Format a date (or the local date of a datetime) as a day key."""
    if isinstance(value, datetime):
        value = value.date()
    return value.strftime("%Y-%m-%d")


def weekday_key(day_key: str) -> str:
    """Return the weekday key (``mon``..``sun``) for a day key."""
    return WEEKDAY_KEYS[parse_day_key(day_key).weekday()]


def day_start(day_key: str, tz: Optional[tzinfo] = None) -> datetime:
    """Local midnight for a day key (naive unless ``tz`` is given)."""
    d = parse_day_key(day_key)
    return datetime(d.year, d.month, d.day, tzinfo=tz)


def minutes_since_day_start(day_key: str, instant: datetime) -> int:
    """Whole minutes from the day's local midnight to ``instant``.

    Naive instants are read as local wall-clock time. Aware instants are
    measured against midnight in their own zone as elapsed time.
    """
    if instant.tzinfo is None:
        delta = instant - day_start(day_key)
        return math.floor(delta.total_seconds() / 60)
    start = day_start(day_key, instant.tzinfo)
    return math.floor((instant.timestamp() - start.timestamp()) / 60)


def at_minutes(day_key: str, minutes: int, tz: Optional[tzinfo] = None) -> datetime:
    """The instant ``minutes`` after the day's local midnight."""
    return day_start(day_key, tz) + timedelta(minutes=minutes)


def time_to_minutes(value: str) -> int:
    """Convert ``HH:MM`` to minutes since midnight."""
    try:
        hours_str, minutes_str = value.strip().split(":")
        hours, minutes = int(hours_str), int(minutes_str)
    except (ValueError, AttributeError):
        raise InvalidScheduleInput(
            "invalid_time", f"Time must be HH:MM, got {value!r}"
        ) from None
    if not (0 <= hours <= 24 and 0 <= minutes < 60) or (hours == 24 and minutes):
        raise InvalidScheduleInput("invalid_time", f"Time out of range: {value!r}")
    return hours * 60 + minutes


def minutes_to_time(minutes: int) -> str:
    """Convert minutes since midnight to ``HH:MM``."""
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def snap_to_granularity(
    value: object,
    granularity: Optional[int] = None,
    min_value: Optional[int] = None,
    max_value: Optional[int] = None,
) -> int:
    """
    Snap a duration/minute input to the nearest multiple of ``granularity``.

    Halves round up (7.5 with granularity 15 snaps to 15). The snapped
    value is then clamped to ``[min_value, max_value]`` when given.
    Non-numeric or non-finite input yields 0.
    """
    step = granularity if granularity is not None else settings.scheduling.slot_granularity_minutes
    if step < 1:
        raise InvalidScheduleInput("invalid_granularity", f"Granularity must be >= 1, got {step}")
    try:
        parsed = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return 0
    if not math.isfinite(parsed):
        return 0
    snapped = math.floor(parsed / step + 0.5) * step
    if min_value is not None and snapped < min_value:
        return min_value
    if max_value is not None and snapped > max_value:
        return max_value
    return snapped


# ── Day-view geometry ────────────────────────────────────────────────────


@dataclass(frozen=True)
class BlockPosition:
    """Vertical placement of one booking block in a day view."""

    top_px: float
    height_px: float
    minutes_from_day_start: int
    duration_minutes: int


def px_per_minute(
    slot_height_px: Optional[int] = None,
    slot_minutes: Optional[int] = None,
) -> float:
    """Pixels per minute for the day grid (24px per 15-minute slot by default)."""
    height = slot_height_px if slot_height_px is not None else settings.calendar.slot_height_px
    minutes = slot_minutes if slot_minutes is not None else settings.scheduling.slot_granularity_minutes
    return height / minutes


def block_position(
    day_key: str,
    start: datetime,
    end: datetime,
    view_start_minutes: Optional[int] = None,
    view_end_minutes: Optional[int] = None,
    scale: Optional[float] = None,
) -> Optional[BlockPosition]:
    """
    Position a block in the visible range of a day view.

    Phase 1 and phase 2 blocks use this same formula; there is no
    phase-specific offset and no rounding. Returns None for empty blocks
    and for blocks entirely outside the view.
    """
    view_start = (
        view_start_minutes
        if view_start_minutes is not None
        else time_to_minutes(settings.calendar.view_start)
    )
    view_end = (
        view_end_minutes
        if view_end_minutes is not None
        else time_to_minutes(settings.calendar.view_end)
    )
    ppm = scale if scale is not None else px_per_minute()

    offset = minutes_since_day_start(day_key, start)
    duration = math.floor((end - start).total_seconds() / 60)
    if duration <= 0:
        return None
    if offset >= view_end or offset + duration <= view_start:
        return None
    return BlockPosition(
        top_px=(offset - view_start) * ppm,
        height_px=duration * ppm,
        minutes_from_day_start=offset,
        duration_minutes=duration,
    )


def time_to_top_px(value: str, view_start_minutes: int, scale: Optional[float] = None) -> float:
    """Top offset of a grid line / time label, using the block formula."""
    ppm = scale if scale is not None else px_per_minute()
    return (time_to_minutes(value) - view_start_minutes) * ppm
