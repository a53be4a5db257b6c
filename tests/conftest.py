"""Shared test fixtures and helpers."""

from datetime import datetime
from typing import Optional

import pytest

from salon_scheduler.schemas.booking_schema import Booking
from salon_scheduler.schemas.combo_schema import AutoStep, Combo
from salon_scheduler.schemas.worker_schema import BusinessHours, DayAvailability, Worker

# 2025-03-12 is a Wednesday.
DAY = "2025-03-12"
WEEKDAYS = ("sun", "mon", "tue", "wed", "thu", "fri", "sat")


def at(time: str, day_key: str = DAY) -> datetime:
    """Naive local datetime for ``HH:MM`` on ``day_key``."""
    return datetime.fromisoformat(f"{day_key}T{time}")


def make_booking(
    booking_id: str,
    worker_id: Optional[str],
    start: str,
    end: str,
    day_key: str = DAY,
    **fields,
) -> Booking:
    """Helper to create a Booking from ``HH:MM`` times."""
    return Booking(
        id=booking_id,
        day_key=day_key,
        start_at=at(start, day_key),
        end_at=at(end, day_key),
        worker_id=worker_id,
        **fields,
    )


def make_worker(
    worker_id: str,
    name: Optional[str] = None,
    services: Optional[list[str]] = None,
    open_time: Optional[str] = "09:00",
    close_time: Optional[str] = "17:00",
    days: tuple[str, ...] = WEEKDAYS,
    breaks: Optional[list[dict]] = None,
    active: bool = True,
) -> Worker:
    """Helper to create a Worker with the same hours on every listed day."""
    return Worker(
        id=worker_id,
        name=name or worker_id.title(),
        services=services or [],
        active=active,
        availability=[
            DayAvailability(day=d, open=open_time, close=close_time, breaks=breaks or [])
            for d in days
        ],
    )


def make_business_hours(
    start: str = "09:00",
    end: str = "18:00",
    breaks: Optional[list[dict]] = None,
    closed_days: tuple[str, ...] = (),
    closed_dates: Optional[list] = None,
) -> BusinessHours:
    return BusinessHours(
        days={
            d: {
                "enabled": d not in closed_days,
                "start": start,
                "end": end,
                "breaks": breaks or [],
            }
            for d in WEEKDAYS
        },
        closed_dates=closed_dates or [],
    )


def make_combo(
    combo_id: str,
    trigger: list[str],
    ordered: Optional[list[str]] = None,
    active: bool = True,
    updated_at: Optional[datetime] = None,
    auto_steps: Optional[list[AutoStep]] = None,
) -> Combo:
    return Combo(
        id=combo_id,
        name=combo_id,
        is_active=active,
        trigger_service_type_ids=trigger,
        ordered_service_type_ids=ordered if ordered is not None else list(trigger),
        auto_steps=auto_steps or [],
        updated_at=updated_at,
    )


@pytest.fixture
def lunch_break():
    return [{"start": "12:00", "end": "13:00"}]


@pytest.fixture
def business_hours(lunch_break):
    return make_business_hours(breaks=lunch_break)


@pytest.fixture
def colorist():
    return make_worker("w-dana", "Dana", services=["Color", "Cut"])


@pytest.fixture
def roster(colorist):
    return [
        colorist,
        make_worker("w-maya", "Maya", services=["Blow-dry", "Cut"], close_time="18:00"),
        make_worker("w-noa", "Noa", services=["Blow-dry"], open_time="10:00", close_time="18:00"),
    ]
