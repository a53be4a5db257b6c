"""Worker, business-hours and break data models."""

from datetime import date
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from salon_scheduler.engine.time_geometry import time_to_minutes

Weekday = Literal["sun", "mon", "tue", "wed", "thu", "fri", "sat"]


class BreakRange(BaseModel):
    """A break inside a working day, e.g. lunch 12:00-13:00."""

    start: str
    end: str

    @model_validator(mode="after")
    def _start_before_end(self) -> "BreakRange":
        if self.start_minutes >= self.end_minutes:
            raise ValueError(f"Break start {self.start} must be before end {self.end}")
        return self

    @property
    def start_minutes(self) -> int:
        return time_to_minutes(self.start)

    @property
    def end_minutes(self) -> int:
        return time_to_minutes(self.end)


def _check_breaks_inside(
    breaks: list[BreakRange], open_time: Optional[str], close_time: Optional[str]
) -> None:
    if not breaks:
        return
    if open_time is None or close_time is None:
        raise ValueError("Breaks require open and close times")
    open_min, close_min = time_to_minutes(open_time), time_to_minutes(close_time)
    for b in breaks:
        if b.start_minutes < open_min or b.end_minutes > close_min:
            raise ValueError(
                f"Break {b.start}-{b.end} must lie within {open_time}-{close_time}"
            )


class DayAvailability(BaseModel):
    """A worker's configured hours for one weekday. open/close None = not working."""

    day: Weekday
    open: Optional[str] = None
    close: Optional[str] = None
    breaks: list[BreakRange] = Field(default_factory=list)

    @model_validator(mode="after")
    def _validate_window(self) -> "DayAvailability":
        if self.open is not None and self.close is not None:
            if time_to_minutes(self.open) >= time_to_minutes(self.close):
                raise ValueError(f"{self.day}: open {self.open} must be before close {self.close}")
        _check_breaks_inside(self.breaks, self.open, self.close)
        return self

    @property
    def is_working(self) -> bool:
        return self.open is not None and self.close is not None


class Worker(BaseModel):
    """A staff member who can be assigned bookings."""

    id: str
    name: str
    services: list[str] = Field(default_factory=list)
    active: bool = True
    availability: list[DayAvailability] = Field(default_factory=list)

    def day_config(self, weekday: str) -> Optional[DayAvailability]:
        """The availability entry for a weekday key, if configured."""
        for entry in self.availability:
            if entry.day == weekday:
                return entry
        return None


class BusinessDay(BaseModel):
    """Business-wide hours for one weekday."""

    enabled: bool = False
    start: str = "09:00"
    end: str = "17:00"
    breaks: list[BreakRange] = Field(default_factory=list)

    @model_validator(mode="after")
    def _validate_breaks(self) -> "BusinessDay":
        if self.enabled and time_to_minutes(self.start) >= time_to_minutes(self.end):
            raise ValueError(f"Business day start {self.start} must be before end {self.end}")
        _check_breaks_inside(self.breaks, self.start, self.end)
        ordered = sorted(self.breaks, key=lambda b: b.start_minutes)
        for prev, nxt in zip(ordered, ordered[1:]):
            if nxt.start_minutes < prev.end_minutes:
                raise ValueError(
                    f"Breaks {prev.start}-{prev.end} and {nxt.start}-{nxt.end} overlap"
                )
        return self


class BusinessHours(BaseModel):
    """Weekly business hours plus specific closed dates (holidays)."""

    days: dict[Weekday, BusinessDay] = Field(default_factory=dict)
    closed_dates: list[date] = Field(default_factory=list)

    @field_validator("days", mode="before")
    @classmethod
    def _accept_numeric_day_keys(cls, value: object) -> object:
        # Stored settings key days "0".."6" with Sunday == "0".
        if not isinstance(value, dict):
            return value
        numeric = ["sun", "mon", "tue", "wed", "thu", "fri", "sat"]
        converted = {}
        for key, day in value.items():
            key_str = str(key)
            if key_str.isdigit() and 0 <= int(key_str) <= 6:
                key_str = numeric[int(key_str)]
            converted[key_str] = day
        return converted

    def day(self, weekday: str) -> Optional[BusinessDay]:
        return self.days.get(weekday)  # type: ignore[call-overload]
