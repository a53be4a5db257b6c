"""Combo rules: a trigger set of services that expands into an ordered plan."""

import logging
from datetime import datetime
from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)


class AutoStep(BaseModel):
    """A service inserted automatically into a combo's plan with a fixed duration."""

    service_id: str
    duration_minutes_override: int = Field(ge=1)
    position: Union[Literal["end"], int] = "end"

    @field_validator("service_id")
    @classmethod
    def _service_id_required(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("service_id is required")
        return value

    @field_validator("position")
    @classmethod
    def _position_non_negative(cls, value: Union[str, int]) -> Union[str, int]:
        if isinstance(value, int) and value < 0:
            raise ValueError(f'position must be "end" or a non-negative number, got {value}')
        return value


class Combo(BaseModel):
    """
    An administrator-defined combo.

    Trigger ids are compared as a set; ordered ids are a sequence. The
    model itself does not reject a trigger id missing from the ordered
    list, since stored combos can be malformed; the matcher skips those.
    """

    id: str
    name: str = ""
    is_active: bool = False
    trigger_service_type_ids: list[str] = Field(default_factory=list)
    ordered_service_type_ids: list[str] = Field(default_factory=list)
    auto_steps: list[AutoStep] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_well_formed(self) -> bool:
        trigger, ordered = self.trigger_service_type_ids, self.ordered_service_type_ids
        if not trigger or not ordered:
            return False
        if len(ordered) != len(set(ordered)):
            return False
        return set(trigger) <= set(ordered)

    @classmethod
    def from_record(cls, combo_id: str, record: dict[str, Any]) -> "Combo":
        """
        Build a Combo from a stored document.

        Records written before trigger/ordered ids existed carry
        ``triggerServiceIds``/``orderedServiceIds`` or a single
        ``serviceIds`` list. Malformed auto steps are dropped.
        """

        def str_list(value: Any) -> list[str]:
            if not isinstance(value, list):
                return []
            return [item for item in value if isinstance(item, str)]

        trigger = str_list(record.get("triggerServiceTypeIds"))
        ordered = str_list(record.get("orderedServiceTypeIds"))
        if not trigger and not ordered:
            legacy_trigger = str_list(record.get("triggerServiceIds"))
            legacy_ordered = str_list(record.get("orderedServiceIds"))
            if legacy_trigger or legacy_ordered:
                trigger, ordered = legacy_trigger, legacy_ordered or legacy_trigger
            else:
                trigger = ordered = str_list(record.get("serviceIds"))

        auto_steps = []
        for raw in record.get("autoSteps") or []:
            if not isinstance(raw, dict):
                continue
            service_id = raw.get("serviceId")
            duration = raw.get("durationMinutesOverride")
            position = raw.get("position")
            if not isinstance(service_id, str) or not service_id.strip():
                continue
            if isinstance(duration, bool) or not isinstance(duration, (int, float)) or duration < 1:
                logger.debug("Combo %s: dropping auto step %r", combo_id, raw)
                continue
            if position != "end" and (isinstance(position, bool) or not isinstance(position, int) or position < 0):
                position = "end"
            auto_steps.append(
                AutoStep(
                    service_id=service_id,
                    duration_minutes_override=int(duration),
                    position=position,
                )
            )

        return cls(
            id=combo_id,
            name=record.get("name") if isinstance(record.get("name"), str) else "",
            is_active=record.get("isActive") is True,
            trigger_service_type_ids=trigger,
            ordered_service_type_ids=ordered,
            auto_steps=auto_steps,
            created_at=_parse_timestamp(record.get("createdAt")),
            updated_at=_parse_timestamp(record.get("updatedAt")),
        )


def _parse_timestamp(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value)
        except ValueError:
            return None
    return None
