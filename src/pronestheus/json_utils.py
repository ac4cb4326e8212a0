"""Helpers for pulling values out of loosely documented JSON payloads."""

import math
import re
from datetime import datetime, timezone
from typing import Any, Optional

_MISSING = object()

# Python only parses up to microsecond precision
_FRACTION = re.compile(r"(\.\d{6})\d+")


def dig(document: Any, *path: str, default: Any = None) -> Any:
    """
    Walk nested dicts by key and return the value at ``path``.

    Keys are used literally, so dotted trait names such as
    ``"sdm.devices.traits.Info"`` work as a single step.

    Args:
        document: Parsed JSON value
        *path: Keys to follow
        default: Returned when any step is missing or not a dict

    Returns:
        The value found, or ``default``
    """
    current = document
    for key in path:
        if not isinstance(current, dict):
            return default
        current = current.get(key, _MISSING)
        if current is _MISSING:
            return default
    return current


def dig_float(document: Any, *path: str) -> Optional[float]:
    """Like ``dig`` but returns a float, or None when absent, non-numeric or not finite."""
    value = dig(document, *path)
    if isinstance(value, bool) or value is None:
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    # "nan" and "inf" parse as floats but are never valid readings
    if not math.isfinite(number):
        return None
    return number


def dig_str(document: Any, *path: str) -> str:
    """Like ``dig`` but always returns a string (empty when absent)."""
    value = dig(document, *path)
    if value is None:
        return ""
    return str(value)


def parse_rfc3339(value: str) -> datetime:
    """
    Parse an RFC3339 timestamp into a timezone-aware datetime.

    Accepts a trailing ``Z`` and fractional seconds longer than six digits.

    Raises:
        ValueError: If the string is not a valid timestamp
    """
    normalized = _FRACTION.sub(r"\1", value.strip())
    if normalized.endswith(("Z", "z")):
        normalized = normalized[:-1] + "+00:00"
    parsed = datetime.fromisoformat(normalized)
    if parsed.tzinfo is None:
        raise ValueError(f"timestamp has no UTC offset: {value}")
    return parsed.astimezone(timezone.utc)
