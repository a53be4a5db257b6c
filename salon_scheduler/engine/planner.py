"""
Booking planner: runs the engine in order for one booking request.

duration snapping -> business/worker window -> breaks (service segments
only) -> conflicts -> phase boundaries -> phase-2 worker -> combo match.

The result is a decision with the booking payloads ready to persist.
Nothing is written here, and the conflict check is only as current as
the snapshot the caller passed in.
"""

import uuid
from dataclasses import dataclass, field
from typing import Optional

from salon_scheduler.config import settings
from salon_scheduler.engine.availability import (
    ConflictingBooking,
    business_window_for,
    can_worker_perform_service,
    effective_breaks_for,
    has_conflict,
    is_business_closed_all_day,
    is_within_window,
    worker_window_for,
)
from salon_scheduler.engine.breaks import any_service_segment_overlaps_breaks
from salon_scheduler.engine.combos import ComboMatch, match_combo
from salon_scheduler.engine.phase2_assignment import (
    AssignedWorker,
    Phase2Request,
    resolve_phase2_worker,
)
from salon_scheduler.engine.phases import PhaseTimes, compute_phases
from salon_scheduler.engine.time_geometry import (
    at_minutes,
    minutes_to_time,
    parse_day_key,
    snap_to_granularity,
    time_to_minutes,
)
from salon_scheduler.errors import InvalidScheduleInput
from salon_scheduler.logging_context import get_request_logger
from salon_scheduler.schemas.booking_schema import Booking, BookingStatus
from salon_scheduler.schemas.combo_schema import Combo
from salon_scheduler.schemas.worker_schema import BusinessHours, Worker

logger = get_request_logger(__name__)


@dataclass
class BookingRequest:
    """A booking as entered by staff or a client, before validation."""

    day_key: str
    start_time: str
    worker_id: str
    service_name: str
    primary_duration_minutes: float
    wait_minutes: float = 0
    follow_up_duration_minutes: float = 0
    follow_up_service: Optional[str] = None
    client_id: Optional[str] = None
    customer_phone: Optional[str] = None
    customer_name: Optional[str] = None
    service_type_id: Optional[str] = None
    service_type: Optional[str] = None
    selected_service_ids: list[str] = field(default_factory=list)
    # Ids of the booking being edited and its linked phase.
    editing_booking_ids: tuple[str, ...] = ()
    booking_id: Optional[str] = None
    status: BookingStatus = BookingStatus.BOOKED


@dataclass
class DaySnapshot:
    """The caller's view of the day: roster, bookings and settings."""

    workers: list[Worker]
    bookings: list[Booking] = field(default_factory=list)
    business_hours: Optional[BusinessHours] = None
    combos: list[Combo] = field(default_factory=list)

    def worker(self, worker_id: str) -> Optional[Worker]:
        for w in self.workers:
            if w.id == worker_id:
                return w
        return None


@dataclass
class BookingDecision:
    success: bool
    reason: Optional[str] = None
    message: Optional[str] = None
    phases: Optional[PhaseTimes] = None
    phase1: Optional[Booking] = None
    phase2: Optional[Booking] = None
    phase2_worker: Optional[AssignedWorker] = None
    combo: Optional[ComboMatch] = None
    conflict: Optional[ConflictingBooking] = None


def _reject(reason: str, message: str, **extra) -> BookingDecision:
    logger.info("Booking rejected (%s): %s", reason, message)
    return BookingDecision(success=False, reason=reason, message=message, **extra)


def _snap_durations(
    request: BookingRequest,
    granularity: Optional[int],
    min_duration: Optional[int],
    max_duration: Optional[int],
    max_wait: Optional[int],
) -> tuple[int, int, int]:
    sched = settings.scheduling
    min_duration = min_duration if min_duration is not None else sched.min_duration_minutes
    max_duration = max_duration if max_duration is not None else sched.max_duration_minutes
    max_wait = max_wait if max_wait is not None else sched.max_wait_minutes

    for name, raw in (
        ("primary_duration_minutes", request.primary_duration_minutes),
        ("wait_minutes", request.wait_minutes),
        ("follow_up_duration_minutes", request.follow_up_duration_minutes),
    ):
        if isinstance(raw, (int, float)) and raw < 0:
            raise InvalidScheduleInput("negative_duration", f"{name} must be >= 0, got {raw}")

    primary = snap_to_granularity(
        request.primary_duration_minutes, granularity, min_duration, max_duration
    )
    wait = snap_to_granularity(request.wait_minutes, granularity, 0, max_wait)
    follow_up = 0
    if request.follow_up_duration_minutes:
        # A requested follow-up gets the same floor as the primary service.
        follow_up = snap_to_granularity(
            request.follow_up_duration_minutes, granularity, min_duration, max_duration
        )
        if follow_up < 1:
            raise InvalidScheduleInput(
                "invalid_follow_up",
                f"follow_up_duration_minutes is not a usable duration: "
                f"{request.follow_up_duration_minutes!r}",
            )
    return primary, wait, follow_up


def plan_booking(
    request: BookingRequest,
    snapshot: DaySnapshot,
    granularity: Optional[int] = None,
    min_duration: Optional[int] = None,
    max_duration: Optional[int] = None,
    max_wait: Optional[int] = None,
) -> BookingDecision:
    """Validate a booking request against the snapshot and build its payloads."""
    try:
        parse_day_key(request.day_key)
        start_min = time_to_minutes(request.start_time)
        primary, wait, follow_up = _snap_durations(
            request, granularity, min_duration, max_duration, max_wait
        )
    except InvalidScheduleInput as e:
        return _reject(e.reason, e.message)

    worker = snapshot.worker(request.worker_id)
    if worker is None:
        return _reject("unknown_worker", f"Worker {request.worker_id} does not exist.")
    if not can_worker_perform_service(worker, request.service_name):
        return _reject(
            "worker_cannot_perform",
            f"{worker.name} does not perform {request.service_name}.",
        )

    hours = snapshot.business_hours
    if hours is not None and is_business_closed_all_day(hours, request.day_key):
        return _reject("business_closed", f"The business is closed on {request.day_key}.")

    phases = compute_phases(at_minutes(request.day_key, start_min), primary, wait, follow_up)
    segments = phases.service_segments(request.day_key)
    phase1_seg = segments[0]

    worker_window = worker_window_for(worker, request.day_key)
    if worker_window is None:
        return _reject("worker_unavailable", f"{worker.name} does not work on {request.day_key}.")
    business_window = business_window_for(hours, request.day_key) if hours is not None else None
    if not is_within_window(phase1_seg.start_min, phase1_seg.end_min, worker_window, business_window):
        return _reject(
            "outside_working_hours",
            f"{minutes_to_time(phase1_seg.start_min)}-{minutes_to_time(phase1_seg.end_min)} "
            f"is outside {worker.name}'s working hours.",
        )

    # Phase 1 against the primary worker's breaks; phase 2 only against
    # business-wide breaks here, personal breaks are checked per candidate.
    if any_service_segment_overlaps_breaks(
        [phase1_seg], effective_breaks_for(worker, hours, request.day_key)
    ) or any_service_segment_overlaps_breaks(
        segments[1:], effective_breaks_for(None, hours, request.day_key)
    ):
        return _reject("overlaps_break", "The service would take place during a break.")

    conflict = has_conflict(
        request.day_key,
        worker.id,
        phase1_seg.start_min,
        phase1_seg.end_min,
        snapshot.bookings,
        request.editing_booking_ids,
    )
    if conflict.has_conflict:
        booked = conflict.conflicting_booking
        return _reject(
            "conflict",
            f"{worker.name} already has a booking at {booked.time_range}.",
            conflict=booked,
        )

    phase1_worker = AssignedWorker(worker.id, worker.name)
    phase2_worker = None
    if phases.has_follow_up:
        follow_up_service = request.follow_up_service or request.service_name
        phase2_worker = resolve_phase2_worker(
            Phase2Request(
                primary_worker=phase1_worker,
                day_key=request.day_key,
                phase1_start_min=start_min,
                phase1_duration_minutes=primary,
                wait_minutes=wait,
                follow_up_duration_minutes=follow_up,
                follow_up_service=follow_up_service,
                workers=snapshot.workers,
                bookings=snapshot.bookings,
                worker_windows={w.id: worker_window_for(w, request.day_key) for w in snapshot.workers},
                business_window=business_window,
                worker_breaks={
                    w.id: effective_breaks_for(w, hours, request.day_key) for w in snapshot.workers
                },
                exclude_booking_ids=tuple(request.editing_booking_ids),
            )
        )
        if phase2_worker is None:
            return _reject(
                "no_phase2_worker",
                f"No one is available for {follow_up_service} at "
                f"{phases.phase2_start:%H:%M}.",
                phases=phases,
            )

    combo = match_combo(snapshot.combos, request.selected_service_ids)

    booking_id = request.booking_id or f"BK-{uuid.uuid4().hex[:8].upper()}"
    common = dict(
        day_key=request.day_key,
        status=request.status,
        primary_duration_minutes=primary,
        wait_minutes=wait,
        follow_up_duration_minutes=follow_up,
        client_id=request.client_id,
        customer_phone=request.customer_phone,
        customer_name=request.customer_name,
        service_type_id=request.service_type_id,
        service_type=request.service_type,
    )
    phase1 = Booking(
        id=booking_id,
        start_at=phases.phase1_start,
        end_at=phases.phase1_end,
        worker_id=worker.id,
        worker_name=worker.name,
        phase=1,
        service_name=request.service_name,
        **common,
    )
    phase2 = None
    if phase2_worker is not None:
        phase2 = Booking(
            id=f"{booking_id}-2",
            start_at=phases.phase2_start,
            end_at=phases.phase2_end,
            worker_id=phase2_worker.id,
            worker_name=phase2_worker.name,
            phase=2,
            parent_booking_id=booking_id,
            service_name=request.follow_up_service or request.service_name,
            **common,
        )

    logger.info(
        "Planned %s on %s at %s with %s%s",
        booking_id,
        request.day_key,
        minutes_to_time(start_min),
        worker.id,
        f", phase 2 with {phase2_worker.id}" if phase2_worker else "",
    )
    return BookingDecision(
        success=True,
        phases=phases,
        phase1=phase1,
        phase2=phase2,
        phase2_worker=phase2_worker,
        combo=combo,
    )
