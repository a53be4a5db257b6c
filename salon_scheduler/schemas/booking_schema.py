"""Booking and archive data models."""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Literal, Optional

from pydantic import BaseModel, field_validator, model_validator

from salon_scheduler.utils import clean_str

logger = logging.getLogger(__name__)

UNKNOWN_SERVICE_TYPE = "unknown"
DEFAULT_LEGACY_DURATION_MINUTES = 60


class BookingStatus(str, Enum):
    BOOKED = "booked"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    ACTIVE = "active"


@dataclass(frozen=True)
class ServiceTypeRef:
    """
    How a booking identifies its service type, normalised once at the boundary.

    Historical records name the service by id, by a free-text label, or by
    a deprecated name field; everything downstream works with this tag.
    """

    kind: Literal["id", "label", "unknown"]
    value: Optional[str] = None

    @classmethod
    def from_fields(
        cls,
        service_type_id: Optional[str] = None,
        service_type: Optional[str] = None,
        service_name: Optional[str] = None,
    ) -> "ServiceTypeRef":
        type_id = clean_str(service_type_id)
        if type_id:
            return cls("id", type_id)
        label = clean_str(service_type) or clean_str(service_name)
        if label:
            return cls("label", label)
        return cls("unknown")

    @property
    def key(self) -> str:
        return self.value if self.kind != "unknown" and self.value else UNKNOWN_SERVICE_TYPE

    @property
    def is_known(self) -> bool:
        return self.kind != "unknown"


class Booking(BaseModel):
    """One calendar block: a phase-1 primary segment, a phase-2 follow-up, or a legacy single block."""

    id: str
    day_key: str
    start_at: datetime
    end_at: datetime
    worker_id: Optional[str] = None
    worker_name: Optional[str] = None
    status: BookingStatus = BookingStatus.BOOKED
    phase: Optional[Literal[1, 2]] = None
    parent_booking_id: Optional[str] = None
    primary_duration_minutes: int = 0
    wait_minutes: int = 0
    follow_up_duration_minutes: int = 0
    is_archived: bool = False
    client_id: Optional[str] = None
    customer_phone: Optional[str] = None
    customer_name: Optional[str] = None
    service_type_id: Optional[str] = None
    service_type: Optional[str] = None
    service_name: Optional[str] = None
    updated_at: Optional[datetime] = None

    @field_validator("status", mode="before")
    @classmethod
    def _normalize_status(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = value.strip().lower()
            if value == "canceled":
                return BookingStatus.CANCELLED
        return value

    @field_validator("primary_duration_minutes", "wait_minutes", "follow_up_duration_minutes")
    @classmethod
    def _non_negative(cls, value: int) -> int:
        if value < 0:
            raise ValueError(f"Duration must be >= 0, got {value}")
        return value

    @model_validator(mode="after")
    def _check_invariants(self) -> "Booking":
        if self.end_at < self.start_at:
            raise ValueError(f"Booking {self.id}: end_at precedes start_at")
        if self.phase == 2 and not self.parent_booking_id:
            raise ValueError(f"Booking {self.id}: phase 2 requires parent_booking_id")
        if self.phase != 2 and self.parent_booking_id:
            raise ValueError(f"Booking {self.id}: only phase 2 may reference a parent booking")
        return self

    @property
    def is_cancelled(self) -> bool:
        return self.status == BookingStatus.CANCELLED

    @property
    def service_type_ref(self) -> ServiceTypeRef:
        return ServiceTypeRef.from_fields(
            self.service_type_id, self.service_type, self.service_name
        )

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "Booking":
        """
        Build a Booking from a raw store record, tolerating legacy shapes.

        Accepts camelCase keys, ``date``/``dateISO``/``dateStr`` for the day,
        ``start``/``startAt``, ``waitMin``/``waitMinutes`` and a missing end
        (derived from the primary duration). Invalid legacy numbers fall
        back to zero rather than failing the whole record.
        """

        def first(*keys: str) -> Any:
            for key in keys:
                if record.get(key) is not None:
                    return record[key]
            return None

        def minutes(*keys: str) -> int:
            raw = first(*keys)
            try:
                value = int(raw)
            except (TypeError, ValueError):
                return 0
            return value if value >= 0 else 0

        start_at = _to_datetime(first("start_at", "startAt", "start"))
        day_key = clean_str(first("day_key", "dateISO", "date", "dateStr"))
        if day_key is None and start_at is not None:
            day_key = start_at.strftime("%Y-%m-%d")

        primary = minutes("primary_duration_minutes", "primaryDurationMin", "durationMin")
        end_at = _to_datetime(first("end_at", "endAt", "end"))
        if end_at is None and start_at is not None:
            duration = primary or DEFAULT_LEGACY_DURATION_MINUTES
            end_at = start_at + timedelta(minutes=duration)
            logger.debug("Booking %s has no end, derived %d min", record.get("id"), duration)

        phase = first("phase")
        parent = clean_str(first("parent_booking_id", "parentBookingId"))
        if phase not in (1, 2):
            phase = None
        if phase == 2 and parent is None:
            # Orphaned follow-up: keep it as a plain block rather than dropping it.
            logger.warning("Phase-2 booking %s has no parent; treating as legacy", record.get("id"))
            phase = None
        if phase != 2:
            parent = None

        status = first("status") or BookingStatus.BOOKED.value
        if record.get("cancelled") is True:
            status = BookingStatus.CANCELLED.value

        return cls(
            id=str(first("id")),
            day_key=day_key,
            start_at=start_at,
            end_at=end_at,
            worker_id=clean_str(first("worker_id", "workerId")),
            worker_name=clean_str(first("worker_name", "workerName")),
            status=status,
            phase=phase,
            parent_booking_id=parent,
            primary_duration_minutes=primary,
            wait_minutes=minutes("wait_minutes", "waitMin", "waitMinutes"),
            follow_up_duration_minutes=minutes(
                "follow_up_duration_minutes", "secondaryDurationMin", "followUpDurationMin"
            ),
            is_archived=bool(first("is_archived", "isArchived")),
            client_id=clean_str(first("client_id", "clientId")),
            customer_phone=clean_str(first("customer_phone", "customerPhone", "phone")),
            customer_name=clean_str(first("customer_name", "customerName", "clientName")),
            service_type_id=clean_str(first("service_type_id", "serviceTypeId")),
            service_type=clean_str(first("service_type", "serviceType")),
            service_name=clean_str(first("service_name", "serviceName")),
            updated_at=_to_datetime(first("updated_at", "updatedAt")),
        )


def _to_datetime(value: Any) -> Optional[datetime]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value
    if hasattr(value, "to_datetime"):
        return value.to_datetime()
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value)
        except ValueError:
            return None
    return None


class ArchiveRecord(BaseModel):
    """Snapshot of one expired booking, at most one per (client, service type)."""

    key: str
    client_key: str
    service_type_key: str
    booking_id: str
    day_key: str
    start_at: datetime
    worker_id: Optional[str] = None
    customer_name: Optional[str] = None
    service_name: Optional[str] = None
    status: BookingStatus = BookingStatus.BOOKED
    archived_at: datetime
