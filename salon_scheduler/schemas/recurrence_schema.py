"""Weekly recurrence rule for series bookings."""

from datetime import date
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from salon_scheduler.engine.time_geometry import time_to_minutes


class RecurrenceMode(str, Enum):
    END_DATE = "endDate"
    COUNT = "count"


class RecurrenceRule(BaseModel):
    """Repeat a booking weekly from ``start_date`` until ``end_date`` or for ``count`` occurrences."""

    start_date: date
    time: str
    mode: RecurrenceMode
    end_date: Optional[date] = None
    count: Optional[int] = Field(default=None, ge=1)

    @field_validator("time")
    @classmethod
    def _valid_time(cls, value: str) -> str:
        minutes = time_to_minutes(value)
        if minutes >= 24 * 60:
            raise ValueError(f"Time of day must be before 24:00, got {value}")
        return value.strip()

    @model_validator(mode="after")
    def _check_mode_fields(self) -> "RecurrenceRule":
        if self.mode == RecurrenceMode.END_DATE:
            if self.end_date is None:
                raise ValueError("end_date is required when mode is endDate")
            if self.end_date < self.start_date:
                raise ValueError(
                    f"end_date {self.end_date} must not be before start_date {self.start_date}"
                )
        elif self.count is None:
            raise ValueError("count is required when mode is count")
        return self
