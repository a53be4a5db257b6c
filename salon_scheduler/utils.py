"""Shared utilities used across the scheduling engine."""

import re
from typing import Optional


def normalize_phone(value: str) -> str:
    """Normalize a phone number by stripping everything except digits and a leading +.

    Examples:
        >>> normalize_phone("050-123 4567")
        '0501234567'
        >>> normalize_phone("+972 (50) 123-4567")
        '+972501234567'
    """
    value = value.strip()
    if value.startswith("+"):
        return "+" + re.sub(r"[^\d]", "", value[1:])
    return re.sub(r"[^\d]", "", value)


def clean_str(value: object) -> Optional[str]:
    """Return a stripped string, or None for missing/blank values."""
    if value is None:
        return None
    text = str(value).strip()
    return text or None
