"""
Phase 2 (follow-up) worker assignment.

The same rules gate which phase-1 start times are offered and pick the
worker when the booking is created:

1. Keep the phase-1 worker if they can do the follow-up service and are
   free for the whole phase-2 interval.
2. Otherwise pick among the other eligible workers: fewest busy
   intervals that day, then lowest worker id.
3. If nobody is eligible the booking cannot be completed.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional, Sequence

from salon_scheduler.engine.availability import (
    MinuteWindow,
    can_worker_perform_service,
    effective_window,
    has_conflict,
    worker_busy_intervals,
)
from salon_scheduler.engine.breaks import ServiceSegment, segment_overlaps_breaks
from salon_scheduler.engine.phases import compute_phases
from salon_scheduler.engine.time_geometry import at_minutes
from salon_scheduler.errors import InvalidScheduleInput
from salon_scheduler.schemas.booking_schema import Booking
from salon_scheduler.schemas.worker_schema import BreakRange, Worker

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AssignedWorker:
    id: str
    name: str


@dataclass
class Phase2Request:
    """Everything needed to decide who performs a follow-up segment."""

    primary_worker: AssignedWorker
    day_key: str
    phase1_start_min: int
    phase1_duration_minutes: int
    wait_minutes: int
    follow_up_duration_minutes: int
    follow_up_service: str
    workers: Sequence[Worker]
    bookings: Sequence[Booking]
    # Keyed by worker id. When given, a worker missing from it is not eligible.
    worker_windows: Optional[dict[str, Optional[MinuteWindow]]] = None
    business_window: Optional[MinuteWindow] = None
    # Keyed by worker id: business breaks merged with the worker's own.
    worker_breaks: Optional[dict[str, list[BreakRange]]] = None
    exclude_booking_ids: tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        if self.follow_up_duration_minutes < 1:
            raise InvalidScheduleInput(
                "no_follow_up",
                f"Follow-up duration must be >= 1, got {self.follow_up_duration_minutes}",
            )

    def phase2_segment(self) -> ServiceSegment:
        phases = compute_phases(
            at_minutes(self.day_key, self.phase1_start_min),
            self.phase1_duration_minutes,
            self.wait_minutes,
            self.follow_up_duration_minutes,
        )
        return phases.service_segments(self.day_key)[-1]


def eligible_phase2_workers(request: Phase2Request) -> list[Worker]:
    """Workers who can do the follow-up service and are free for the phase-2 interval.

    Free means no booking, and when given, inside their window and clear of
    their breaks.
    """
    segment = request.phase2_segment()
    eligible = []
    for worker in request.workers:
        if not can_worker_perform_service(worker, request.follow_up_service):
            continue
        conflict = has_conflict(
            request.day_key,
            worker.id,
            segment.start_min,
            segment.end_min,
            request.bookings,
            request.exclude_booking_ids,
        )
        if conflict.has_conflict:
            continue
        if request.worker_windows is not None:
            window = effective_window(
                request.worker_windows.get(worker.id), request.business_window
            )
            if window is None or not window.contains(segment.start_min, segment.end_min):
                continue
        if request.worker_breaks is not None and segment_overlaps_breaks(
            segment.start_min, segment.end_min, request.worker_breaks.get(worker.id)
        ):
            logger.debug("%s is on a break during phase 2 on %s", worker.id, request.day_key)
            continue
        eligible.append(worker)
    return eligible


def auto_assign_phase2_worker(
    eligible: Sequence[Worker],
    day_key: str,
    bookings: Sequence[Booking],
    exclude_booking_ids: Sequence[str] = (),
) -> Optional[AssignedWorker]:
    """Least busy eligible worker, ties broken by worker id ascending."""
    if not eligible:
        return None

    def rank(worker: Worker) -> tuple[int, str]:
        busy = worker_busy_intervals(bookings, worker.id, day_key, exclude_booking_ids)
        return len(busy), worker.id

    chosen = min(eligible, key=rank)
    return AssignedWorker(id=chosen.id, name=chosen.name)


def resolve_phase2_worker(request: Phase2Request) -> Optional[AssignedWorker]:
    """Pick the phase-2 worker, or None when nobody can take it."""
    eligible = eligible_phase2_workers(request)
    primary_id = request.primary_worker.id
    if any(w.id == primary_id for w in eligible):
        logger.debug("Phase 2 on %s stays with %s", request.day_key, primary_id)
        return request.primary_worker

    assigned = auto_assign_phase2_worker(
        eligible, request.day_key, request.bookings, request.exclude_booking_ids
    )
    if assigned is None:
        logger.info(
            "No worker can take '%s' on %s after %s",
            request.follow_up_service,
            request.day_key,
            primary_id,
        )
    else:
        logger.debug("Phase 2 on %s reassigned %s -> %s", request.day_key, primary_id, assigned.id)
    return assigned
