"""
Combo matching.

A combo matches when its trigger services are exactly the customer's
selection, compared as sets. The matched combo expands into its ordered
service list with any auto steps spliced in.
"""

import logging
import math
from dataclasses import dataclass
from typing import Any, Iterable, Iterator, Literal, Mapping, Optional, Sequence

from salon_scheduler.schemas.combo_schema import Combo

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ServiceSet:
    """An unordered set of service ids. Blank ids are dropped, duplicates collapse."""

    ids: frozenset[str]

    @classmethod
    def of(cls, service_ids: Optional[Iterable[str]]) -> "ServiceSet":
        cleaned = set()
        for sid in service_ids or ():
            if isinstance(sid, str) and sid.strip():
                cleaned.add(sid.strip())
        return cls(frozenset(cleaned))

    def __len__(self) -> int:
        return len(self.ids)

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self.ids))

    def __contains__(self, service_id: object) -> bool:
        return service_id in self.ids

    def issubset(self, other: "ServiceSet") -> bool:
        return self.ids <= other.ids


@dataclass(frozen=True)
class ComboStep:
    service_id: str
    source: Literal["ordered", "auto"]
    duration_minutes_override: Optional[int] = None


@dataclass(frozen=True)
class ComboMatch:
    combo: Combo
    steps: list[ComboStep]

    @property
    def service_ids(self) -> list[str]:
        return [s.service_id for s in self.steps]


def _updated_sort_key(combo: Combo) -> float:
    return combo.updated_at.timestamp() if combo.updated_at else 0.0


def find_matching_combo(
    combos: Iterable[Combo], selected: Optional[Iterable[str]]
) -> Optional[Combo]:
    """
    The active, well-formed combo whose trigger set equals ``selected``.

    If several match, the larger trigger set wins, then the most recently
    updated. An empty selection never matches.
    """
    selection = ServiceSet.of(selected)
    if not selection:
        return None

    matches = []
    for combo in combos:
        if not combo.is_active:
            continue
        if not combo.is_well_formed:
            logger.debug("Skipping malformed combo %s", combo.id)
            continue
        if ServiceSet.of(combo.trigger_service_type_ids) == selection:
            matches.append(combo)

    if not matches:
        return None
    matches.sort(
        key=lambda c: (len(ServiceSet.of(c.trigger_service_type_ids)), _updated_sort_key(c)),
        reverse=True,
    )
    if len(matches) > 1:
        logger.info(
            "%d combos match %s; using %s", len(matches), sorted(selection.ids), matches[0].id
        )
    return matches[0]


def expand_combo_steps(combo: Combo) -> list[ComboStep]:
    """
    Ordered steps for a combo.

    Auto steps are applied in declared order. A numeric position inserts
    before that index in the list built so far, clamped to the end.
    """
    steps = [ComboStep(sid, "ordered") for sid in combo.ordered_service_type_ids]
    for auto in combo.auto_steps:
        step = ComboStep(auto.service_id, "auto", auto.duration_minutes_override)
        if auto.position == "end":
            steps.append(step)
        else:
            steps.insert(min(auto.position, len(steps)), step)
    return steps


def match_combo(
    combos: Iterable[Combo], selected: Optional[Iterable[str]]
) -> Optional[ComboMatch]:
    combo = find_matching_combo(combos, selected)
    if combo is None:
        return None
    return ComboMatch(combo=combo, steps=expand_combo_steps(combo))


@dataclass(frozen=True)
class ComboValidation:
    valid: bool
    error: Optional[str] = None


def validate_combo_input(
    trigger_service_type_ids: Sequence[str],
    ordered_service_type_ids: Sequence[str],
    auto_steps: Optional[Sequence[Mapping[str, Any]]] = None,
) -> ComboValidation:
    """Validate combo fields from an admin form before they are saved."""
    if not trigger_service_type_ids:
        return ComboValidation(False, "trigger_service_type_ids cannot be empty")
    if not ordered_service_type_ids:
        return ComboValidation(False, "ordered_service_type_ids cannot be empty")
    ordered = set(ordered_service_type_ids)
    if len(ordered) != len(ordered_service_type_ids):
        return ComboValidation(False, "ordered_service_type_ids must not contain duplicates")
    if not set(trigger_service_type_ids) <= ordered:
        return ComboValidation(
            False, "ordered_service_type_ids must contain every trigger_service_type_id"
        )

    for i, step in enumerate(auto_steps or ()):
        service_id = step.get("service_id")
        if not isinstance(service_id, str) or not service_id.strip():
            return ComboValidation(False, f"auto_steps[{i}]: service_id is required")
        duration = step.get("duration_minutes_override")
        if (
            isinstance(duration, bool)
            or not isinstance(duration, (int, float))
            or not math.isfinite(duration)
            or duration < 1
        ):
            return ComboValidation(
                False, f"auto_steps[{i}]: duration_minutes_override must be at least 1"
            )
        position = step.get("position", "end")
        if position != "end" and (
            isinstance(position, bool) or not isinstance(position, int) or position < 0
        ):
            return ComboValidation(
                False, f'auto_steps[{i}]: position must be "end" or a non-negative number'
            )
    return ComboValidation(True)
