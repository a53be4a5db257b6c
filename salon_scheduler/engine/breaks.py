"""
Break overlap checks.

Intervals are half-open ``[start, end)`` in minutes since the day's
midnight. A segment that ends exactly when a break starts (or starts
exactly when it ends) does not overlap it, so work can be scheduled
back to back around a lunch break.

Only service segments are checked. The wait gap between phase 1 and
phase 2 may cross a break.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

from salon_scheduler.engine.time_geometry import time_to_minutes
from salon_scheduler.errors import InvalidScheduleInput
from salon_scheduler.schemas.worker_schema import BreakRange

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ServiceSegment:
    """A span of minutes during which a worker actually performs a service."""

    start_min: int
    end_min: int

    def __post_init__(self) -> None:
        if self.end_min < self.start_min:
            raise InvalidScheduleInput(
                "invalid_segment",
                f"Segment end {self.end_min} precedes start {self.start_min}",
            )

    @property
    def duration(self) -> int:
        return self.end_min - self.start_min


def intervals_overlap(a_start: int, a_end: int, b_start: int, b_end: int) -> bool:
    """Half-open overlap; touching endpoints do not overlap and an empty interval overlaps nothing."""
    if a_start >= a_end or b_start >= b_end:
        return False
    return a_start < b_end and a_end > b_start


def segment_overlaps_breaks(
    start_min: int, end_min: int, breaks: Optional[Sequence[BreakRange]]
) -> bool:
    """True iff ``[start_min, end_min)`` intersects any break."""
    if end_min < start_min:
        raise InvalidScheduleInput(
            "invalid_segment", f"Segment end {end_min} precedes start {start_min}"
        )
    if not breaks:
        return False
    for b in breaks:
        if intervals_overlap(start_min, end_min, b.start_minutes, b.end_minutes):
            return True
    return False


def any_service_segment_overlaps_breaks(
    segments: Sequence[ServiceSegment], breaks: Optional[Sequence[BreakRange]]
) -> bool:
    """True iff any service segment overlaps any break. Gaps between segments are ignored."""
    if not breaks or not segments:
        return False
    for seg in segments:
        if segment_overlaps_breaks(seg.start_min, seg.end_min, breaks):
            logger.debug(
                "Segment %d-%d overlaps a break in %s",
                seg.start_min,
                seg.end_min,
                [(b.start, b.end) for b in breaks],
            )
            return True
    return False


def filter_times_by_breaks(
    candidate_times: Iterable[str],
    duration_minutes: int,
    breaks: Optional[Sequence[BreakRange]],
) -> list[str]:
    """Keep the ``HH:MM`` start times whose ``[t, t + duration)`` avoids every break."""
    if duration_minutes < 0:
        raise InvalidScheduleInput(
            "negative_duration", f"Duration must be >= 0, got {duration_minutes}"
        )
    times = list(candidate_times)
    if not breaks:
        return times
    kept = []
    for t in times:
        start = time_to_minutes(t)
        if not segment_overlaps_breaks(start, start + duration_minutes, breaks):
            kept.append(t)
    return kept


def merge_breaks(*sources: Optional[Iterable[BreakRange]]) -> list[BreakRange]:
    """Combine business and worker break lists into one ordered list without duplicates."""
    seen: set[tuple[int, int]] = set()
    merged: list[BreakRange] = []
    for source in sources:
        for b in source or ():
            key = (b.start_minutes, b.end_minutes)
            if key in seen:
                continue
            seen.add(key)
            merged.append(b)
    merged.sort(key=lambda b: (b.start_minutes, b.end_minutes))
    return merged
