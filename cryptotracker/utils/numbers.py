"""
Number Utilities
================

Coercion and formatting helpers for prices and quantities read from
storage, user input, or API responses.
"""

import math
from typing import Any, Optional


def to_finite_float(value: Any) -> Optional[float]:
    """
    Coerce a stored or user-supplied value to a finite float.

    Accepts ints, floats and numeric strings ("50000", " 1e3 ").
    Booleans, None, containers, NaN and infinities give None.
    """
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None

    if not math.isfinite(number):
        return None
    return number


def to_positive_float(value: Any) -> Optional[float]:
    """Like to_finite_float, but also rejects zero and negatives."""
    number = to_finite_float(value)
    if number is None or number <= 0:
        return None
    return number


def is_price(value: Any) -> bool:
    """True for a real JSON number that can be compared against a target."""
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and math.isfinite(value)
    )


def format_usd(value: float) -> str:
    """
    Format a USD amount for display.

    Examples: 51000 -> "$51,000.00", 0.45 -> "$0.45", 0.00001234 -> "$0.000012"
    """
    if abs(value) >= 0.01 or value == 0:
        return f"${value:,.2f}"
    return f"${value:.6f}"
