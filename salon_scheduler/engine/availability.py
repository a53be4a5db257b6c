"""
Worker availability and booking conflicts for one calendar day.

Everything here works on an in-memory snapshot of the day's bookings
and the worker/business configuration. A conflict check is advisory:
the store may still reject a write that raced with another one.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional, Sequence

from salon_scheduler.config import settings
from salon_scheduler.engine.breaks import (
    any_service_segment_overlaps_breaks,
    intervals_overlap,
    merge_breaks,
)
from salon_scheduler.engine.phases import compute_phases
from salon_scheduler.engine.time_geometry import (
    at_minutes,
    minutes_since_day_start,
    minutes_to_time,
    parse_day_key,
    time_to_minutes,
    weekday_key,
)
from salon_scheduler.errors import InvalidScheduleInput
from salon_scheduler.schemas.booking_schema import Booking
from salon_scheduler.schemas.worker_schema import BreakRange, BusinessHours, Worker

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MinuteWindow:
    """An open/close window in minutes since midnight."""

    start_min: int
    end_min: int

    @property
    def is_empty(self) -> bool:
        return self.end_min <= self.start_min

    def contains(self, start_min: int, end_min: int) -> bool:
        return self.start_min <= start_min and end_min <= self.end_min


@dataclass(frozen=True)
class BusyInterval:
    start_min: int
    end_min: int
    booking_id: str


@dataclass(frozen=True)
class ConflictingBooking:
    id: str
    start_at: datetime
    end_at: datetime
    start_min: int
    end_min: int

    @property
    def time_range(self) -> str:
        """``HH:MM-HH:MM`` for messages shown to staff."""
        return f"{self.start_at:%H:%M}-{self.end_at:%H:%M}"


@dataclass(frozen=True)
class ConflictResult:
    has_conflict: bool
    conflicting_booking: Optional[ConflictingBooking] = None


def _check_interval(start_min: int, end_min: int) -> None:
    if end_min < start_min:
        raise InvalidScheduleInput(
            "invalid_interval", f"Interval end {end_min} precedes start {start_min}"
        )


def _blocking_bookings(
    bookings: Iterable[Booking],
    worker_id: str,
    day_key: str,
    exclude_booking_ids: Iterable[str] = (),
) -> list[Booking]:
    excluded = set(exclude_booking_ids)
    return [
        b
        for b in bookings
        if b.id not in excluded
        and b.worker_id == worker_id
        and b.day_key == day_key
        and not b.is_cancelled
    ]


# ── Conflicts and busy time ──────────────────────────────────────────────


def worker_busy_intervals(
    bookings: Iterable[Booking],
    worker_id: str,
    day_key: str,
    exclude_booking_ids: Iterable[str] = (),
) -> list[BusyInterval]:
    """
    Busy minutes for a worker on a day.

    Each booking record is a single block (phase 1, phase 2 or legacy),
    so the wait between a client's two phases is never busy time.
    """
    return [
        BusyInterval(
            start_min=minutes_since_day_start(day_key, b.start_at),
            end_min=minutes_since_day_start(day_key, b.end_at),
            booking_id=b.id,
        )
        for b in _blocking_bookings(bookings, worker_id, day_key, exclude_booking_ids)
    ]


def has_conflict(
    day_key: str,
    worker_id: str,
    start_min: int,
    end_min: int,
    bookings: Iterable[Booking],
    exclude_booking_ids: Iterable[str] = (),
) -> ConflictResult:
    """
    Check a candidate ``[start_min, end_min)`` against the worker's bookings.

    Cancelled bookings and ``exclude_booking_ids`` (the booking being
    edited, and its linked phase) are ignored. Back-to-back bookings that
    only touch do not conflict.
    """
    _check_interval(start_min, end_min)
    for b in _blocking_bookings(bookings, worker_id, day_key, exclude_booking_ids):
        b_start = minutes_since_day_start(day_key, b.start_at)
        b_end = minutes_since_day_start(day_key, b.end_at)
        if intervals_overlap(start_min, end_min, b_start, b_end):
            logger.debug(
                "Worker %s: %s-%s conflicts with booking %s",
                worker_id,
                minutes_to_time(start_min),
                minutes_to_time(end_min),
                b.id,
            )
            return ConflictResult(
                has_conflict=True,
                conflicting_booking=ConflictingBooking(
                    id=b.id,
                    start_at=b.start_at,
                    end_at=b.end_at,
                    start_min=b_start,
                    end_min=b_end,
                ),
            )
    return ConflictResult(has_conflict=False)


# ── Windows ──────────────────────────────────────────────────────────────


def worker_window_for(worker: Worker, day_key: str) -> Optional[MinuteWindow]:
    """The worker's open/close for the day's weekday. None means not available."""
    config = worker.day_config(weekday_key(day_key))
    if config is None or not config.is_working:
        return None
    window = MinuteWindow(time_to_minutes(config.open), time_to_minutes(config.close))
    return None if window.is_empty else window


def business_window_for(
    hours: Optional[BusinessHours], day_key: str
) -> Optional[MinuteWindow]:
    """Business open/close for a day, or None when the business is closed."""
    if is_business_closed_all_day(hours, day_key):
        return None
    day = hours.day(weekday_key(day_key))
    return MinuteWindow(time_to_minutes(day.start), time_to_minutes(day.end))


def effective_window(
    window: Optional[MinuteWindow], business_window: Optional[MinuteWindow] = None
) -> Optional[MinuteWindow]:
    """Intersection of worker and business windows; None when empty."""
    if window is None:
        return None
    if business_window is None:
        return window
    merged = MinuteWindow(
        max(window.start_min, business_window.start_min),
        min(window.end_min, business_window.end_min),
    )
    return None if merged.is_empty else merged


def is_within_window(
    start_min: int,
    end_min: int,
    window: Optional[MinuteWindow],
    business_window: Optional[MinuteWindow] = None,
) -> bool:
    _check_interval(start_min, end_min)
    effective = effective_window(window, business_window)
    return effective is not None and effective.contains(start_min, end_min)


def is_closed_date(hours: Optional[BusinessHours], day_key: str) -> bool:
    """True if the day is one of the business's specific closed dates."""
    if hours is None or not hours.closed_dates:
        return False
    return parse_day_key(day_key) in hours.closed_dates


def is_business_closed_all_day(hours: Optional[BusinessHours], day_key: str) -> bool:
    """
    True if the business has zero working minutes on the day.

    Missing settings, a closed date, a disabled or unconfigured weekday
    and a zero-length day all count as closed. Worker schedules are not
    considered.
    """
    if hours is None:
        return True
    if is_closed_date(hours, day_key):
        return True
    day = hours.day(weekday_key(day_key))
    if day is None or not day.enabled:
        return True
    return time_to_minutes(day.start) >= time_to_minutes(day.end)


# ── Capability ───────────────────────────────────────────────────────────


def can_worker_perform_service(worker: Worker, service: Optional[str]) -> bool:
    """
    Whether ``worker`` can perform ``service``.

    Inactive workers can't. A worker with no services listed can perform
    every service, which is how workers created before service
    assignment behave.
    """
    if not worker.active:
        return False
    if not service or not service.strip():
        return False
    if not worker.services:
        return True
    return service.strip() in worker.services


def workers_who_can_perform(workers: Iterable[Worker], service: Optional[str]) -> list[Worker]:
    if not service or not service.strip():
        return []
    return [w for w in workers if can_worker_perform_service(w, service)]


# ── Start times ──────────────────────────────────────────────────────────


def effective_breaks_for(
    worker: Optional[Worker], hours: Optional[BusinessHours], day_key: str
) -> list[BreakRange]:
    """Business breaks (when the day is enabled) merged with the worker's own breaks."""
    weekday = weekday_key(day_key)
    business_breaks: list[BreakRange] = []
    if hours is not None:
        day = hours.day(weekday)
        if day is not None and day.enabled:
            business_breaks = day.breaks
    worker_breaks: list[BreakRange] = []
    if worker is not None:
        config = worker.day_config(weekday)
        if config is not None:
            worker_breaks = config.breaks
    return merge_breaks(business_breaks, worker_breaks)


def candidate_start_times(
    window: MinuteWindow, duration_minutes: int, interval_minutes: Optional[int] = None
) -> list[int]:
    """Every ``interval_minutes`` from the window start at which ``duration_minutes`` still fits."""
    step = (
        interval_minutes
        if interval_minutes is not None
        else settings.scheduling.candidate_interval_minutes
    )
    if step < 1:
        raise InvalidScheduleInput("invalid_interval", f"Interval must be >= 1, got {step}")
    if duration_minutes < 0:
        raise InvalidScheduleInput(
            "negative_duration", f"Duration must be >= 0, got {duration_minutes}"
        )
    return list(range(window.start_min, window.end_min - duration_minutes + 1, step))


def available_start_times(
    worker: Worker,
    day_key: str,
    primary_duration_minutes: int,
    bookings: Sequence[Booking],
    wait_minutes: int = 0,
    follow_up_duration_minutes: int = 0,
    business_hours: Optional[BusinessHours] = None,
    exclude_booking_ids: Iterable[str] = (),
    interval_minutes: Optional[int] = None,
) -> list[str]:
    """
    ``HH:MM`` starts at which ``worker`` can do the whole booking themselves.

    Both service segments must fit the effective window, avoid breaks and
    avoid the worker's other bookings. The wait may cross a break. When
    ``business_hours`` is given, closed days yield no starts.
    """
    if business_hours is not None and is_business_closed_all_day(business_hours, day_key):
        logger.debug("Business closed on %s", day_key)
        return []
    window = effective_window(
        worker_window_for(worker, day_key),
        business_window_for(business_hours, day_key) if business_hours is not None else None,
    )
    if window is None:
        return []

    excluded = list(exclude_booking_ids)
    breaks = effective_breaks_for(worker, business_hours, day_key)
    total = primary_duration_minutes + wait_minutes + follow_up_duration_minutes
    starts = []
    for start in candidate_start_times(window, total, interval_minutes):
        phases = compute_phases(
            at_minutes(day_key, start),
            primary_duration_minutes,
            wait_minutes,
            follow_up_duration_minutes,
        )
        segments = phases.service_segments(day_key)
        if any_service_segment_overlaps_breaks(segments, breaks):
            continue
        if any(
            has_conflict(day_key, worker.id, s.start_min, s.end_min, bookings, excluded).has_conflict
            for s in segments
        ):
            continue
        starts.append(minutes_to_time(start))
    return starts
