"""Total coercion helpers for loosely typed client payloads.

Every function here returns None instead of raising, so callers can skip a
single bad field without losing the rest of a report.
"""

import math
from typing import Any, Optional


def coerce_str(value: Any) -> Optional[str]:
    """Coerce a scalar to a non-empty string.

    Strings pass through, ints and finite floats are formatted. Containers,
    booleans, None and empty strings yield None.
    """
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, str):
        return value or None
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float) and math.isfinite(value):
        return str(int(value)) if value.is_integer() else str(value)
    return None


def coerce_count(value: Any) -> Optional[int]:
    """Coerce a count to a non-negative integer.

    Accepts ints, finite floats (truncated) and numeric strings. NaN,
    infinities, negatives, booleans and anything else yield None.
    """
    if isinstance(value, bool) or value is None:
        return None

    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            return None

    if isinstance(value, float):
        if not math.isfinite(value):
            return None
        value = int(value)

    if not isinstance(value, int) or value < 0:
        return None

    return value


def clamp(value: str, max_length: int) -> str:
    """Truncate a string to fit a storage column."""
    return value[:max_length]
