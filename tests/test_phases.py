"""Tests for phase boundary computation and stored phase-link checks."""

import pytest

from salon_scheduler.engine.breaks import ServiceSegment
from salon_scheduler.engine.phases import check_phase_link, compute_phases, phase_gap_minutes
from salon_scheduler.errors import InvalidScheduleInput
from tests.conftest import DAY, at, make_booking


class TestComputePhases:
    def test_boundaries(self):
        phases = compute_phases(at("10:00"), 60, 30, 45)
        assert phases.phase1_start == at("10:00")
        assert phases.phase1_end == at("11:00")
        assert phases.phase2_start == at("11:30")
        assert phases.phase2_end == at("12:15")
        assert phases.has_follow_up
        assert phases.total_minutes == 135

    @pytest.mark.parametrize("primary", [15, 45, 90])
    @pytest.mark.parametrize("wait", [0, 15, 60, 240])
    @pytest.mark.parametrize("follow_up", [0, 30])
    def test_gap_always_equals_wait(self, primary, wait, follow_up):
        phases = compute_phases(at("09:15"), primary, wait, follow_up)
        gap = (phases.phase2_start - phases.phase1_end).total_seconds() / 60
        assert gap == wait

    def test_no_follow_up_is_zero_length(self):
        phases = compute_phases(at("10:00"), 60, 30)
        assert not phases.has_follow_up
        assert phases.phase2_start == phases.phase2_end == at("11:30")

    def test_negative_duration_raises(self):
        with pytest.raises(InvalidScheduleInput) as exc:
            compute_phases(at("10:00"), 60, -15)
        assert exc.value.reason == "negative_duration"

    def test_non_integer_duration_raises(self):
        with pytest.raises(InvalidScheduleInput):
            compute_phases(at("10:00"), 22.5)


class TestServiceSegments:
    def test_two_segments_skip_the_wait(self):
        phases = compute_phases(at("11:30"), 30, 60, 30)
        assert phases.service_segments(DAY) == [ServiceSegment(690, 720), ServiceSegment(780, 810)]

    def test_single_segment_without_follow_up(self):
        phases = compute_phases(at("11:30"), 30, 60, 0)
        assert phases.service_segments(DAY) == [ServiceSegment(690, 720)]


class TestPhaseLink:
    def test_consistent_pair(self):
        p1 = make_booking("p1", "w-1", "10:00", "11:00", phase=1, wait_minutes=30)
        p2 = make_booking("p1-2", "w-2", "11:30", "12:00", phase=2, parent_booking_id="p1")
        check = check_phase_link(p1, p2)
        assert check.ok
        assert check.gap_minutes == 30
        assert phase_gap_minutes(p1, p2) == 30

    def test_gap_drift_reported(self):
        p1 = make_booking("p1", "w-1", "10:00", "11:00", phase=1, wait_minutes=30)
        p2 = make_booking("p1-2", "w-2", "11:45", "12:15", phase=2, parent_booking_id="p1")
        check = check_phase_link(p1, p2)
        assert not check.ok
        assert check.gap_minutes == 45
        assert any("wait is 30" in issue for issue in check.issues)

    def test_wrong_parent_reported(self):
        p1 = make_booking("p1", "w-1", "10:00", "11:00", phase=1)
        p2 = make_booking("other-2", "w-1", "11:00", "11:30", phase=2, parent_booking_id="other")
        check = check_phase_link(p1, p2)
        assert not check.ok
        assert any("links to" in issue for issue in check.issues)
