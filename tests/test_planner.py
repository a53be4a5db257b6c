"""End-to-end tests for planning a booking against a day snapshot."""

from datetime import date

import pytest

from salon_scheduler.engine.planner import BookingRequest, DaySnapshot, plan_booking
from salon_scheduler.logging_context import set_request_id
from tests.conftest import DAY, at, make_booking, make_business_hours, make_combo, make_worker


@pytest.fixture
def day(roster, business_hours):
    return DaySnapshot(
        workers=roster,
        bookings=[
            make_booking("b-1", "w-dana", "10:00", "11:00"),
            make_booking("n-1", "w-noa", "10:00", "10:30"),
            make_booking("n-2", "w-noa", "11:00", "11:30"),
            make_booking("n-3", "w-noa", "14:00", "14:30"),
            make_booking("m-1", "w-maya", "09:00", "09:30"),
        ],
        business_hours=business_hours,
        combos=[make_combo("color-blow", ["color", "blow-dry"])],
    )


def color_request(**overrides) -> BookingRequest:
    fields = dict(
        day_key=DAY,
        start_time="11:00",
        worker_id="w-dana",
        service_name="Color",
        primary_duration_minutes=60,
        wait_minutes=60,
        follow_up_duration_minutes=30,
        follow_up_service="Blow-dry",
        booking_id="BK-1",
    )
    fields.update(overrides)
    return BookingRequest(**fields)


def on_break(worker, start: str, end: str):
    """Copy of a roster worker with a personal break on every working day."""
    config = worker.availability[0]
    return make_worker(
        worker.id,
        worker.name,
        services=worker.services,
        open_time=config.open,
        close_time=config.close,
        breaks=[{"start": start, "end": end}],
    )


class TestPlanBooking:
    def test_two_phase_booking_across_lunch(self, day):
        set_request_id("REQ-test")
        decision = plan_booking(color_request(selected_service_ids=["blow-dry", "color"]), day)
        assert decision.success
        assert decision.phase1.start_at == at("11:00")
        assert decision.phase1.end_at == at("12:00")
        assert decision.phase1.phase == 1
        assert decision.phase2.start_at == at("13:00")
        assert decision.phase2.end_at == at("13:30")
        assert decision.phase2.phase == 2
        assert decision.phase2.parent_booking_id == "BK-1"
        assert decision.phase2_worker.id == "w-maya"
        assert decision.phase2.worker_id == "w-maya"
        assert decision.combo.combo.id == "color-blow"

    def test_single_phase_booking(self, day):
        decision = plan_booking(
            color_request(service_name="Cut", start_time="13:00", wait_minutes=0, follow_up_duration_minutes=0),
            day,
        )
        assert decision.success
        assert decision.phase2 is None
        assert decision.phase2_worker is None
        assert decision.phase1.id == "BK-1"

    def test_generated_id(self, day):
        decision = plan_booking(
            color_request(booking_id=None, start_time="13:00", follow_up_duration_minutes=0), day
        )
        assert decision.phase1.id.startswith("BK-")

    def test_durations_snapped(self, day):
        decision = plan_booking(
            color_request(start_time="09:00", primary_duration_minutes=52, wait_minutes=58), day
        )
        assert decision.success
        assert decision.phases.primary_duration_minutes == 45
        assert decision.phases.wait_minutes == 60

    def test_short_duration_clamped_to_minimum(self, day):
        decision = plan_booking(
            color_request(start_time="13:00", primary_duration_minutes=7, follow_up_duration_minutes=0), day
        )
        assert decision.phases.primary_duration_minutes == 15

    def test_conflict_rejected_with_booking(self, day):
        decision = plan_booking(color_request(start_time="10:30", follow_up_duration_minutes=0), day)
        assert not decision.success
        assert decision.reason == "conflict"
        assert decision.conflict.id == "b-1"
        assert "10:00-11:00" in decision.message

    def test_editing_excludes_own_booking(self, day):
        decision = plan_booking(
            color_request(start_time="10:30", follow_up_duration_minutes=0, editing_booking_ids=("b-1",)),
            day,
        )
        assert decision.success

    def test_service_during_break_rejected(self, day):
        decision = plan_booking(color_request(start_time="11:30", follow_up_duration_minutes=0), day)
        assert decision.reason == "overlaps_break"

    def test_follow_up_during_break_rejected(self, day):
        decision = plan_booking(color_request(wait_minutes=15), day)
        assert decision.reason == "overlaps_break"

    def test_follow_up_skips_worker_on_personal_break(self, day):
        day.workers[1] = on_break(day.workers[1], "14:30", "15:00")
        decision = plan_booking(color_request(start_time="13:00", wait_minutes=30), day)
        assert decision.success
        assert decision.phase2.start_at == at("14:30")
        assert decision.phase2_worker.id == "w-noa"

    def test_only_candidate_on_break_leaves_no_phase2_worker(self, day):
        day.workers = [day.workers[0], on_break(day.workers[1], "14:30", "15:00")]
        decision = plan_booking(color_request(start_time="13:00", wait_minutes=30), day)
        assert decision.reason == "no_phase2_worker"

    def test_primary_break_during_follow_up_hands_it_over(self, day):
        day.workers[0] = on_break(day.workers[0], "14:30", "15:00")
        decision = plan_booking(
            color_request(start_time="13:00", wait_minutes=30, follow_up_service="Cut"), day
        )
        assert decision.success
        assert decision.phase1.worker_id == "w-dana"
        assert decision.phase2_worker.id == "w-maya"

    def test_short_follow_up_clamped_to_minimum(self, day):
        decision = plan_booking(color_request(follow_up_duration_minutes=7), day)
        assert decision.success
        assert decision.phases.follow_up_duration_minutes == 15
        assert decision.phase2.end_at == at("13:15")

    def test_unusable_follow_up_rejected(self, day):
        decision = plan_booking(color_request(follow_up_duration_minutes=float("nan")), day)
        assert not decision.success
        assert decision.reason == "invalid_follow_up"

    def test_outside_hours_rejected(self, day):
        decision = plan_booking(color_request(start_time="16:30", follow_up_duration_minutes=0), day)
        assert decision.reason == "outside_working_hours"

    def test_no_phase2_worker(self, day):
        day.workers = [w for w in day.workers if w.id == "w-dana"]
        decision = plan_booking(color_request(), day)
        assert not decision.success
        assert decision.reason == "no_phase2_worker"

    def test_closed_date(self, day):
        day.business_hours = make_business_hours(closed_dates=[date(2025, 3, 12)])
        assert plan_booking(color_request(), day).reason == "business_closed"

    def test_worker_cannot_perform(self, day):
        assert plan_booking(color_request(worker_id="w-noa"), day).reason == "worker_cannot_perform"

    def test_unknown_worker(self, day):
        assert plan_booking(color_request(worker_id="w-nobody"), day).reason == "unknown_worker"

    def test_negative_duration_is_a_validation_failure(self, day):
        decision = plan_booking(color_request(wait_minutes=-15), day)
        assert not decision.success
        assert decision.reason == "negative_duration"

    def test_bad_time_is_a_validation_failure(self, day):
        assert plan_booking(color_request(start_time="9am"), day).reason == "invalid_time"

    def test_without_business_hours(self, day):
        day.business_hours = None
        decision = plan_booking(color_request(start_time="12:00", follow_up_duration_minutes=0), day)
        assert decision.success
