"""
Offline console demo: plays a scripted salon day through the real engine.

No store and no network. Every decision printed here comes from the
same functions a booking screen or cleanup job would call.

Usage:
    python console_demo.py
    python console_demo.py --scenario conflict
    python console_demo.py --scenario recurring
    python console_demo.py --scenario archive
"""

import argparse
from datetime import date, datetime

from salon_scheduler.config import settings
from salon_scheduler.engine.availability import available_start_times
from salon_scheduler.engine.cleanup import apply_archive, plan_archive
from salon_scheduler.engine.planner import BookingRequest, DaySnapshot, plan_booking
from salon_scheduler.engine.recurrence import (
    Occurrence,
    create_recurring_bookings,
    expand_weekly,
)
from salon_scheduler.logging_context import request_scope
from salon_scheduler.schemas.booking_schema import Booking
from salon_scheduler.schemas.combo_schema import Combo
from salon_scheduler.schemas.recurrence_schema import RecurrenceRule
from salon_scheduler.schemas.worker_schema import BusinessHours, DayAvailability, Worker

GREEN = "\033[92m"
YELLOW = "\033[93m"
RED = "\033[91m"
DIM = "\033[2m"
RESET = "\033[0m"
BOLD = "\033[1m"

DEMO_DAY = "2025-03-12"  # a Wednesday
SCENARIOS = ["color", "conflict", "recurring", "archive"]


def _weekdays(open_time: str, close_time: str) -> list[DayAvailability]:
    return [
        DayAvailability(day=d, open=open_time, close=close_time)
        for d in ("sun", "mon", "tue", "wed", "thu")
    ]


def _booking(
    booking_id: str, worker_id: str, start: str, end: str, day_key: str = DEMO_DAY, **fields
) -> Booking:
    return Booking(
        id=booking_id,
        day_key=day_key,
        start_at=datetime.fromisoformat(f"{day_key}T{start}"),
        end_at=datetime.fromisoformat(f"{day_key}T{end}"),
        worker_id=worker_id,
        **fields,
    )


def build_demo_day() -> DaySnapshot:
    """Three workers, a lunch break, and a few existing bookings."""
    hours = BusinessHours(
        days={
            day: {
                "enabled": True,
                "start": "09:00",
                "end": "18:00",
                "breaks": [{"start": "12:00", "end": "13:00"}],
            }
            for day in ("sun", "mon", "tue", "wed", "thu")
        },
        closed_dates=[date(2025, 4, 13)],
    )
    workers = [
        Worker(id="w-dana", name="Dana", services=["Color", "Cut"], availability=_weekdays("09:00", "17:00")),
        Worker(id="w-maya", name="Maya", services=["Blow-dry", "Cut"], availability=_weekdays("09:00", "18:00")),
        Worker(id="w-noa", name="Noa", services=["Blow-dry"], availability=_weekdays("10:00", "18:00")),
    ]
    bookings = [
        _booking("b-1", "w-dana", "10:00", "11:00", service_name="Cut"),
        _booking("b-2", "w-maya", "09:00", "09:30", service_name="Cut"),
        _booking("b-3", "w-noa", "10:00", "10:30", service_name="Blow-dry"),
        _booking("b-4", "w-noa", "11:00", "11:30", service_name="Blow-dry"),
        _booking("b-5", "w-noa", "14:00", "14:30", service_name="Blow-dry"),
    ]
    combos = [
        Combo(
            id="c-color-blow",
            name="Color + blow-dry",
            is_active=True,
            trigger_service_type_ids=["color", "blow-dry"],
            ordered_service_type_ids=["color", "blow-dry"],
        )
    ]
    return DaySnapshot(workers=workers, bookings=bookings, business_hours=hours, combos=combos)


class ConsoleDemo:
    """Prints one scripted scenario."""

    def __init__(self) -> None:
        self.day = build_demo_day()

    def say(self, text: str, color: str = GREEN) -> None:
        print(f"{color}{text}{RESET}")

    def system_log(self, text: str) -> None:
        print(f"{DIM}  >> {text}{RESET}")

    def run_scenario(self, scenario: str) -> None:
        handler = getattr(self, f"_scenario_{scenario}", None)
        if handler is None:
            print(f"{RED}Unknown scenario: {scenario}{RESET}")
            return
        with request_scope(prefix=f"DEMO-{scenario}") as request_id:
            print()
            print(f"{BOLD}{'=' * 60}{RESET}")
            print(f"{BOLD}  SALON SCHEDULER - Scenario: {scenario}{RESET}")
            print(f"{BOLD}  Business: {settings.business_name}  Day: {DEMO_DAY}{RESET}")
            print(f"{BOLD}  Request: {request_id}{RESET}")
            print(f"{BOLD}{'=' * 60}{RESET}")
            handler()
            print(f"{BOLD}{'=' * 60}{RESET}")

    # ------------------------------------------------------------------ #
    # Scenarios
    # ------------------------------------------------------------------ #

    def _scenario_color(self) -> None:
        request = BookingRequest(
            day_key=DEMO_DAY,
            start_time="11:00",
            worker_id="w-dana",
            service_name="Color",
            primary_duration_minutes=55,
            wait_minutes=60,
            follow_up_duration_minutes=30,
            follow_up_service="Blow-dry",
            customer_name="Rina",
            selected_service_ids=["blow-dry", "color"],
        )
        self.say("Color with Dana at 11:00, 60 min wait over lunch, then a blow-dry.")
        decision = plan_booking(request, self.day)
        if not decision.success:
            self.say(f"Rejected: {decision.message}", RED)
            return
        phases = decision.phases
        self.system_log(f"Phase 1 {phases.phase1_start:%H:%M}-{phases.phase1_end:%H:%M} with Dana")
        self.system_log(f"Wait    {phases.phase1_end:%H:%M}-{phases.phase2_start:%H:%M} (crosses the break)")
        self.system_log(
            f"Phase 2 {phases.phase2_start:%H:%M}-{phases.phase2_end:%H:%M} "
            f"with {decision.phase2_worker.name}"
        )
        if decision.combo is not None:
            self.system_log(f"Combo: {decision.combo.combo.name} -> {decision.combo.service_ids}")
        self.say(f"Booked {decision.phase1.id} and {decision.phase2.id}.")

    def _scenario_conflict(self) -> None:
        request = BookingRequest(
            day_key=DEMO_DAY,
            start_time="10:30",
            worker_id="w-dana",
            service_name="Cut",
            primary_duration_minutes=60,
        )
        self.say("Cut with Dana at 10:30 for an hour.")
        decision = plan_booking(request, self.day)
        if decision.success:
            self.say(f"Booked {decision.phase1.id}.")
            return
        self.say(f"Rejected ({decision.reason}): {decision.message}", YELLOW)
        dana = self.day.worker("w-dana")
        starts = available_start_times(
            dana, DEMO_DAY, 60, self.day.bookings, business_hours=self.day.business_hours
        )
        self.system_log(f"Dana is free for an hour at: {', '.join(starts)}")

    def _scenario_recurring(self) -> None:
        rule = RecurrenceRule(start_date=date(2025, 3, 16), time="10:00", mode="count", count=8)
        expansion = expand_weekly(rule)
        self.say(f"Weekly cut on Sundays at 10:00, {rule.count} times.")
        for issue in expansion.issues:
            self.system_log(issue)

        hours = self.day.business_hours

        def create_one(occurrence: Occurrence) -> str:
            if occurrence.day in hours.closed_dates:
                raise RuntimeError("Business closed")
            return f"BK-{occurrence.day:%m%d}"

        result = create_recurring_bookings(
            expansion,
            create_one,
            on_progress=lambda i, n: self.system_log(f"Creating {i}/{n}"),
        )
        self.say(f"Created {len(result.created_ids)}: {', '.join(result.created_ids)}")
        for failed in result.failed:
            self.say(f"Failed {failed.day_key} {failed.time}: {failed.error}", YELLOW)

    def _scenario_archive(self) -> None:
        older = _booking(
            "b-old", "w-dana", "10:00", "10:30", day_key="2025-02-01",
            customer_phone="050-123 4567", service_type_id="haircut",
        )
        newer = _booking(
            "b-new", "w-dana", "10:00", "10:30",
            customer_phone="050-123 4567", service_type_id="haircut",
        )
        plan = plan_archive(newer)
        self.say(f"Archiving two haircuts for 050-123 4567 under key {plan.key}.")
        archive = apply_archive({}, older, datetime(2025, 2, 2))
        archive = apply_archive(archive, newer, datetime(2025, 3, 13))
        for key, record in archive.items():
            self.system_log(f"{key}: booking {record.booking_id} on {record.day_key}")
        self.say(f"{len(archive)} archive record(s) kept.")


def main() -> None:
    parser = argparse.ArgumentParser(description="Offline salon scheduling demo")
    parser.add_argument(
        "--scenario",
        choices=SCENARIOS,
        default="color",
        help="Which scripted scenario to play",
    )
    args = parser.parse_args()
    ConsoleDemo().run_scenario(args.scenario)


if __name__ == "__main__":
    main()
