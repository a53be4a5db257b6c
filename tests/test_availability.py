"""Tests for conflicts, working windows, capability and start times."""

from datetime import date

import pytest

from salon_scheduler.engine.availability import (
    MinuteWindow,
    available_start_times,
    business_window_for,
    can_worker_perform_service,
    candidate_start_times,
    effective_breaks_for,
    has_conflict,
    is_business_closed_all_day,
    is_closed_date,
    is_within_window,
    worker_busy_intervals,
    worker_window_for,
    workers_who_can_perform,
)
from salon_scheduler.errors import InvalidScheduleInput
from salon_scheduler.schemas.booking_schema import BookingStatus
from tests.conftest import DAY, make_booking, make_business_hours, make_worker


class TestHasConflict:
    def test_overlapping_booking_identified(self):
        bookings = [make_booking("b-1", "w-1", "10:00", "11:00")]
        result = has_conflict(DAY, "w-1", 630, 690, bookings)
        assert result.has_conflict
        assert result.conflicting_booking.id == "b-1"
        assert result.conflicting_booking.start_min == 600
        assert result.conflicting_booking.end_min == 660
        assert result.conflicting_booking.time_range == "10:00-11:00"

    def test_touching_bookings_do_not_conflict(self):
        bookings = [make_booking("b-1", "w-1", "10:00", "11:00")]
        assert not has_conflict(DAY, "w-1", 660, 720, bookings).has_conflict
        assert not has_conflict(DAY, "w-1", 540, 600, bookings).has_conflict

    def test_other_workers_ignored(self):
        bookings = [make_booking("b-1", "w-2", "10:00", "11:00")]
        assert not has_conflict(DAY, "w-1", 630, 690, bookings).has_conflict

    def test_other_days_ignored(self):
        bookings = [make_booking("b-1", "w-1", "10:00", "11:00", day_key="2025-03-13")]
        assert not has_conflict(DAY, "w-1", 630, 690, bookings).has_conflict

    @pytest.mark.parametrize("status", ["cancelled", "canceled", "Cancelled"])
    def test_cancelled_ignored(self, status):
        bookings = [make_booking("b-1", "w-1", "10:00", "11:00", status=status)]
        assert not has_conflict(DAY, "w-1", 630, 690, bookings).has_conflict

    def test_excluded_ids_ignored(self):
        bookings = [make_booking("b-1", "w-1", "10:00", "11:00")]
        assert not has_conflict(DAY, "w-1", 630, 690, bookings, exclude_booking_ids=["b-1"]).has_conflict

    @pytest.mark.parametrize(
        "a,b",
        [
            (("10:00", "11:00"), ("10:30", "11:30")),
            (("10:00", "11:00"), ("11:00", "12:00")),
            (("09:00", "12:00"), ("10:00", "10:15")),
            (("13:00", "13:30"), ("09:00", "10:00")),
        ],
    )
    def test_conflict_is_symmetric(self, a, b):
        booking_a = make_booking("a", "w-1", *a)
        booking_b = make_booking("b", "w-1", *b)
        interval_a = (booking_a.start_at.hour * 60 + booking_a.start_at.minute,
                      booking_a.end_at.hour * 60 + booking_a.end_at.minute)
        interval_b = (booking_b.start_at.hour * 60 + booking_b.start_at.minute,
                      booking_b.end_at.hour * 60 + booking_b.end_at.minute)
        a_vs_b = has_conflict(DAY, "w-1", *interval_a, [booking_b]).has_conflict
        b_vs_a = has_conflict(DAY, "w-1", *interval_b, [booking_a]).has_conflict
        assert a_vs_b == b_vs_a

    def test_window_scenario(self):
        worker = make_worker("w-1", open_time="09:00", close_time="17:00")
        window = worker_window_for(worker, DAY)
        assert is_within_window(630, 690, window)
        result = has_conflict(DAY, "w-1", 630, 690, [make_booking("b-10", "w-1", "10:00", "11:00")])
        assert result.has_conflict
        assert result.conflicting_booking.id == "b-10"

    def test_reversed_interval_raises(self):
        with pytest.raises(InvalidScheduleInput):
            has_conflict(DAY, "w-1", 690, 630, [])


class TestBusyIntervals:
    def test_each_phase_is_its_own_interval(self):
        bookings = [
            make_booking("p1", "w-1", "10:00", "11:00", phase=1, wait_minutes=30),
            make_booking("p1-2", "w-1", "11:30", "12:00", phase=2, parent_booking_id="p1"),
            make_booking("x", "w-1", "14:00", "15:00", status=BookingStatus.CANCELLED),
        ]
        intervals = worker_busy_intervals(bookings, "w-1", DAY)
        assert [(i.start_min, i.end_min) for i in intervals] == [(600, 660), (690, 720)]

    def test_exclusions(self):
        bookings = [make_booking("p1", "w-1", "10:00", "11:00")]
        assert worker_busy_intervals(bookings, "w-1", DAY, exclude_booking_ids=["p1"]) == []


class TestWindows:
    def test_worker_window(self):
        window = worker_window_for(make_worker("w-1", open_time="10:00", close_time="16:00"), DAY)
        assert window == MinuteWindow(600, 960)

    def test_missing_day_means_unavailable(self):
        worker = make_worker("w-1", days=("sun", "mon"))
        assert worker_window_for(worker, DAY) is None

    def test_day_without_hours_means_unavailable(self):
        worker = make_worker("w-1", open_time=None, close_time=None)
        assert worker_window_for(worker, DAY) is None

    def test_effective_window_is_intersection(self):
        worker_window = MinuteWindow(540, 1020)
        business = MinuteWindow(600, 1080)
        assert not is_within_window(570, 630, worker_window, business)
        assert is_within_window(600, 1020, worker_window, business)
        assert not is_within_window(990, 1050, worker_window, business)

    def test_disjoint_windows_never_fit(self):
        assert not is_within_window(600, 615, MinuteWindow(540, 600), MinuteWindow(600, 700))

    def test_no_window_never_fits(self):
        assert not is_within_window(600, 660, None)

    def test_business_window(self):
        hours = make_business_hours(start="08:30", end="19:00")
        assert business_window_for(hours, DAY) == MinuteWindow(510, 1140)

    def test_business_window_closed_day(self):
        hours = make_business_hours(closed_days=("wed",))
        assert business_window_for(hours, DAY) is None


class TestClosedDays:
    def test_closed_date(self):
        hours = make_business_hours(closed_dates=[date(2025, 3, 12)])
        assert is_closed_date(hours, DAY)
        assert is_business_closed_all_day(hours, DAY)

    def test_numeric_day_keys_from_settings(self):
        hours = make_business_hours()
        stored = {"days": {"3": {"enabled": False}}, "closed_dates": []}
        from salon_scheduler.schemas.worker_schema import BusinessHours

        assert is_business_closed_all_day(BusinessHours.model_validate(stored), DAY)
        assert not is_business_closed_all_day(hours, DAY)

    def test_missing_settings_means_closed(self):
        assert is_business_closed_all_day(None, DAY)
        assert not is_closed_date(None, DAY)

    def test_unconfigured_weekday_is_closed(self):
        from salon_scheduler.schemas.worker_schema import BusinessHours

        assert is_business_closed_all_day(BusinessHours(days={}), DAY)


class TestCapability:
    def test_listed_service(self):
        assert can_worker_perform_service(make_worker("w", services=["Cut"]), "Cut")

    def test_unlisted_service(self):
        assert not can_worker_perform_service(make_worker("w", services=["Cut"]), "Color")

    def test_empty_services_can_do_everything(self):
        assert can_worker_perform_service(make_worker("w", services=[]), "Color")

    def test_inactive_worker(self):
        assert not can_worker_perform_service(make_worker("w", active=False), "Cut")

    def test_blank_service(self):
        assert not can_worker_perform_service(make_worker("w"), "  ")

    def test_filter_roster(self, roster):
        assert [w.id for w in workers_who_can_perform(roster, "Blow-dry")] == ["w-maya", "w-noa"]
        assert workers_who_can_perform(roster, "") == []


class TestStartTimes:
    def test_candidate_start_times(self):
        assert candidate_start_times(MinuteWindow(540, 660), 60, 30) == [540, 570, 600]

    def test_candidate_interval_must_be_positive(self):
        with pytest.raises(InvalidScheduleInput):
            candidate_start_times(MinuteWindow(540, 660), 60, 0)

    def test_effective_breaks_merge_business_and_worker(self, lunch_break):
        worker = make_worker("w", breaks=[{"start": "15:00", "end": "15:30"}])
        hours = make_business_hours(breaks=lunch_break)
        breaks = effective_breaks_for(worker, hours, DAY)
        assert [(b.start, b.end) for b in breaks] == [("12:00", "13:00"), ("15:00", "15:30")]

    def test_available_start_times(self, lunch_break):
        worker = make_worker("w-1", open_time="09:00", close_time="14:00")
        hours = make_business_hours(breaks=lunch_break)
        bookings = [make_booking("b-1", "w-1", "10:00", "11:00")]
        starts = available_start_times(
            worker, DAY, 60, bookings, business_hours=hours, interval_minutes=30
        )
        assert starts == ["09:00", "11:00", "13:00"]

    def test_wait_may_cross_break(self, lunch_break):
        worker = make_worker("w-1", open_time="11:00", close_time="14:00")
        hours = make_business_hours(breaks=lunch_break)
        starts = available_start_times(
            worker, DAY, 30, [], wait_minutes=60, follow_up_duration_minutes=30,
            business_hours=hours, interval_minutes=30,
        )
        assert "11:30" in starts
        assert "11:00" not in starts

    def test_closed_day_has_no_starts(self):
        hours = make_business_hours(closed_days=("wed",))
        assert available_start_times(make_worker("w-1"), DAY, 30, [], business_hours=hours) == []
