"""
Weekly recurring bookings.

``expand_weekly`` turns a rule into concrete dates, never more than the
configured ceiling, and says so when the ceiling cut the series short.
``create_recurring_bookings`` then creates them one at a time through a
caller-supplied function. A failed date is recorded and the loop moves
on; nothing already created is rolled back.
"""

from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Callable, Optional

from salon_scheduler.config import settings
from salon_scheduler.engine.time_geometry import day_key_for
from salon_scheduler.logging_context import get_request_logger
from salon_scheduler.schemas.recurrence_schema import RecurrenceMode, RecurrenceRule

logger = get_request_logger(__name__)

WEEK = timedelta(days=7)


@dataclass(frozen=True)
class Occurrence:
    day: date
    time: str

    @property
    def day_key(self) -> str:
        return day_key_for(self.day)


@dataclass
class RecurrenceExpansion:
    occurrences: list[Occurrence] = field(default_factory=list)
    capped: bool = False
    issues: list[str] = field(default_factory=list)


def expand_weekly(
    rule: RecurrenceRule, max_occurrences: Optional[int] = None
) -> RecurrenceExpansion:
    """
    Weekly dates from ``rule.start_date``.

    Count mode yields ``min(count, ceiling)`` dates. End-date mode yields
    every weekly date up to and including the end date, up to the ceiling.
    """
    ceiling = (
        max_occurrences if max_occurrences is not None else settings.recurrence.max_occurrences
    )
    expansion = RecurrenceExpansion()
    if ceiling < 1:
        expansion.issues.append(f"Occurrence ceiling must be >= 1, got {ceiling}")
        return expansion

    if rule.mode == RecurrenceMode.COUNT:
        target = min(rule.count, ceiling)
        if rule.count > ceiling:
            expansion.capped = True
            expansion.issues.append(
                f"Requested {rule.count} occurrences; limited to {ceiling}"
            )
        current = rule.start_date
        for _ in range(target):
            expansion.occurrences.append(Occurrence(current, rule.time))
            current += WEEK
        return expansion

    current = rule.start_date
    while current <= rule.end_date:
        if len(expansion.occurrences) >= ceiling:
            expansion.capped = True
            expansion.issues.append(
                f"Series until {rule.end_date} exceeds {ceiling} occurrences; "
                f"last date is {expansion.occurrences[-1].day}"
            )
            break
        expansion.occurrences.append(Occurrence(current, rule.time))
        current += WEEK
    return expansion


@dataclass(frozen=True)
class FailedOccurrence:
    day_key: str
    time: str
    error: str


@dataclass
class RecurringCreationResult:
    created_ids: list[str] = field(default_factory=list)
    failed: list[FailedOccurrence] = field(default_factory=list)
    stopped_early: bool = False

    @property
    def attempted(self) -> int:
        return len(self.created_ids) + len(self.failed)


def create_recurring_bookings(
    expansion: RecurrenceExpansion,
    create_one: Callable[[Occurrence], str],
    on_progress: Optional[Callable[[int, int], None]] = None,
    should_continue: Optional[Callable[[], bool]] = None,
) -> RecurringCreationResult:
    """
    Create each occurrence in order via ``create_one``, which returns the new booking id.

    ``should_continue`` is polled before each date; returning False stops
    the series and leaves the created bookings in place.
    """
    result = RecurringCreationResult()
    total = len(expansion.occurrences)
    for index, occurrence in enumerate(expansion.occurrences, start=1):
        if should_continue is not None and not should_continue():
            result.stopped_early = True
            logger.info("Recurring creation stopped after %d of %d", index - 1, total)
            break
        if on_progress is not None:
            on_progress(index, total)
        try:
            booking_id = create_one(occurrence)
        except Exception as e:
            logger.warning(
                "Recurring booking for %s %s failed: %s",
                occurrence.day_key,
                occurrence.time,
                e,
            )
            result.failed.append(FailedOccurrence(occurrence.day_key, occurrence.time, str(e)))
            continue
        result.created_ids.append(booking_id)

    logger.info(
        "Recurring creation: %d created, %d failed", len(result.created_ids), len(result.failed)
    )
    return result
