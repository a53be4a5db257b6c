"""
Archive keys for expired bookings.

At most one archive record is kept per (client, service type). A
booking whose service type is unknown gets a key of its own that
includes the booking id, and never replaces anything.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Mapping, Optional

from salon_scheduler.schemas.booking_schema import (
    UNKNOWN_SERVICE_TYPE,
    ArchiveRecord,
    Booking,
)
from salon_scheduler.utils import clean_str, normalize_phone

logger = logging.getLogger(__name__)

UNKNOWN_CLIENT = "unknown"


def resolve_client_key(client_id: Optional[str], phone: Optional[str]) -> str:
    """Explicit client id, else the normalised phone, else ``"unknown"``."""
    cid = clean_str(client_id)
    if cid:
        return cid
    raw_phone = clean_str(phone)
    if raw_phone:
        normalized = normalize_phone(raw_phone)
        if normalized.lstrip("+"):
            return normalized
    return UNKNOWN_CLIENT


def archive_key(client_key: str, service_type_key: str, booking_id: str) -> str:
    if service_type_key == UNKNOWN_SERVICE_TYPE:
        return f"{client_key}__{UNKNOWN_SERVICE_TYPE}__{booking_id}"
    return f"{client_key}__{service_type_key}"


@dataclass(frozen=True)
class ArchivePlan:
    key: str
    client_key: str
    service_type_key: str
    # Delete other records for the same (client, service type) when writing.
    replace_existing: bool


def plan_archive(booking: Booking) -> ArchivePlan:
    client_key = resolve_client_key(booking.client_id, booking.customer_phone)
    ref = booking.service_type_ref
    if not ref.is_known:
        logger.warning("Booking %s has no service type; archiving under its own key", booking.id)
    return ArchivePlan(
        key=archive_key(client_key, ref.key, booking.id),
        client_key=client_key,
        service_type_key=ref.key,
        replace_existing=ref.is_known,
    )


def _recency(record: ArchiveRecord) -> tuple[datetime, datetime]:
    return record.start_at, record.archived_at


def build_archive_record(booking: Booking, plan: ArchivePlan, archived_at: datetime) -> ArchiveRecord:
    return ArchiveRecord(
        key=plan.key,
        client_key=plan.client_key,
        service_type_key=plan.service_type_key,
        booking_id=booking.id,
        day_key=booking.day_key,
        start_at=booking.start_at,
        worker_id=booking.worker_id,
        customer_name=booking.customer_name,
        service_name=booking.service_name,
        status=booking.status,
        archived_at=archived_at,
    )


def apply_archive(
    archive: Mapping[str, ArchiveRecord], booking: Booking, archived_at: datetime
) -> dict[str, ArchiveRecord]:
    """
    Return a new archive mapping with ``booking`` archived into it.

    For a known service type every other record of the same client and
    type is dropped, and whichever booking started later survives. The
    input mapping is not modified.
    """
    plan = plan_archive(booking)
    record = build_archive_record(booking, plan, archived_at)
    updated = dict(archive)
    if plan.replace_existing:
        stale_keys = [
            key
            for key, r in updated.items()
            if r.client_key == plan.client_key and r.service_type_key == plan.service_type_key
        ]
        same_pair = [updated.pop(key) for key in stale_keys]
        newest = max([record, *same_pair], key=lambda r: r.start_at)
        if newest is not record:
            logger.debug("Archive %s keeps newer booking %s", plan.key, newest.booking_id)
            record = newest.model_copy(update={"key": plan.key})
        elif same_pair:
            logger.debug("Archive %s replaced %d record(s)", plan.key, len(same_pair))
    updated[plan.key] = record
    return updated


def dedupe_archive_records(records: Iterable[ArchiveRecord]) -> list[ArchiveRecord]:
    """
    Collapse legacy duplicates to the newest record per (client, service type).

    Records with an unknown service type are all kept.
    """
    newest: dict[tuple[str, str], ArchiveRecord] = {}
    kept_unknown: list[ArchiveRecord] = []
    for record in records:
        if record.service_type_key == UNKNOWN_SERVICE_TYPE:
            kept_unknown.append(record)
            continue
        pair = (record.client_key, record.service_type_key)
        current = newest.get(pair)
        if current is None or _recency(record) >= _recency(current):
            newest[pair] = record
    return [*newest.values(), *kept_unknown]


def expired_bookings(bookings: Iterable[Booking], today_key: str) -> list[Booking]:
    """Unarchived bookings on days before ``today_key``, oldest first."""
    expired = [b for b in bookings if not b.is_archived and b.day_key < today_key]
    expired.sort(key=lambda b: (b.day_key, b.start_at))
    return expired
