"""
Phase boundaries for two-segment bookings.

A booking is a primary service (phase 1), an optional wait during which
nobody works on the client, and an optional follow-up service (phase 2)
that may be done by another worker. ``compute_phases`` is the only place
that adds those durations together; everything that needs phase-2 times
calls it.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from salon_scheduler.engine.breaks import ServiceSegment
from salon_scheduler.engine.time_geometry import minutes_since_day_start
from salon_scheduler.errors import InvalidScheduleInput
from salon_scheduler.schemas.booking_schema import Booking

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PhaseTimes:
    """The four instants bounding phase 1 and phase 2."""

    phase1_start: datetime
    phase1_end: datetime
    phase2_start: datetime
    phase2_end: datetime
    primary_duration_minutes: int
    wait_minutes: int
    follow_up_duration_minutes: int

    @property
    def has_follow_up(self) -> bool:
        """A zero-length phase 2 means there is no follow-up segment."""
        return self.follow_up_duration_minutes > 0

    @property
    def total_minutes(self) -> int:
        return self.primary_duration_minutes + self.wait_minutes + self.follow_up_duration_minutes

    def service_segments(self, day_key: str) -> list[ServiceSegment]:
        """Minute segments where work happens; the wait gap is never included."""
        start = minutes_since_day_start(day_key, self.phase1_start)
        segments = [ServiceSegment(start, start + self.primary_duration_minutes)]
        if self.has_follow_up:
            p2_start = start + self.primary_duration_minutes + self.wait_minutes
            segments.append(ServiceSegment(p2_start, p2_start + self.follow_up_duration_minutes))
        return segments


def compute_phases(
    start_at: datetime,
    primary_duration_minutes: int,
    wait_minutes: int = 0,
    follow_up_duration_minutes: int = 0,
) -> PhaseTimes:
    """Compute phase boundaries in whole minutes from ``start_at``."""
    for name, value in (
        ("primary_duration_minutes", primary_duration_minutes),
        ("wait_minutes", wait_minutes),
        ("follow_up_duration_minutes", follow_up_duration_minutes),
    ):
        if not isinstance(value, int) or isinstance(value, bool):
            raise InvalidScheduleInput("invalid_duration", f"{name} must be an integer, got {value!r}")
        if value < 0:
            raise InvalidScheduleInput("negative_duration", f"{name} must be >= 0, got {value}")

    phase1_end = start_at + timedelta(minutes=primary_duration_minutes)
    phase2_start = phase1_end + timedelta(minutes=wait_minutes)
    phase2_end = phase2_start + timedelta(minutes=follow_up_duration_minutes)
    return PhaseTimes(
        phase1_start=start_at,
        phase1_end=phase1_end,
        phase2_start=phase2_start,
        phase2_end=phase2_end,
        primary_duration_minutes=primary_duration_minutes,
        wait_minutes=wait_minutes,
        follow_up_duration_minutes=follow_up_duration_minutes,
    )


def phase_gap_minutes(phase1: Booking, phase2: Booking) -> int:
    """Minutes between the end of phase 1 and the start of phase 2 as stored."""
    return int((phase2.start_at - phase1.end_at).total_seconds() // 60)


@dataclass
class PhaseLinkCheck:
    """Result of checking a stored phase-1/phase-2 pair for consistency."""

    ok: bool
    gap_minutes: int
    issues: list[str] = field(default_factory=list)


def check_phase_link(phase1: Booking, phase2: Booking) -> PhaseLinkCheck:
    """
    Sanity-check a persisted phase pair.

    Records written by older clients or edited in place can drift: the
    parent link may be wrong, or the stored gap may no longer equal the
    wait duration recorded on phase 1.
    """
    issues = []
    if phase1.phase not in (1, None):
        issues.append(f"Booking {phase1.id} is not a phase-1 booking")
    if phase2.phase != 2:
        issues.append(f"Booking {phase2.id} is not a phase-2 booking")
    if phase2.parent_booking_id != phase1.id:
        issues.append(
            f"Booking {phase2.id} links to {phase2.parent_booking_id!r}, expected {phase1.id!r}"
        )
    gap = phase_gap_minutes(phase1, phase2)
    if gap != phase1.wait_minutes:
        issues.append(f"Gap is {gap} min but wait is {phase1.wait_minutes} min")

    if issues:
        logger.warning("Phase link %s -> %s inconsistent: %s", phase1.id, phase2.id, "; ".join(issues))
    return PhaseLinkCheck(ok=not issues, gap_minutes=gap, issues=issues)
