"""Numeric coercion and rounding shared by the scoring engines."""
import math
from typing import Any


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves going up (2.5 -> 3)."""
    return int(math.floor(value + 0.5))


def coerce_number(value: Any) -> float:
    """Coerce a numeric input to a finite float; anything else becomes 0."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    return number if math.isfinite(number) else 0.0
