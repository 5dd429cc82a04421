"""Shared exchange utilities.

Centralized helpers used across all gateway implementations.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Any

_ZERO = Decimal("0")


def to_decimal(value: float | str) -> Decimal:
    """Convert a float or string to Decimal safely.

    For string values (from REST APIs): Decimal(str_value) directly.
    For float values: Decimal(str(float_value)) to avoid IEEE 754
    precision issues.
    """
    if isinstance(value, str):
        return Decimal(value)
    return Decimal(str(value))


def parse_decimal(value: Any) -> Decimal:
    """Lenient numeric parsing: malformed or missing values become zero.

    Exchange payloads carry numbers as strings. A field that does not
    parse is treated as 0 rather than failing the whole record.
    """
    if value is None or isinstance(value, bool):
        return _ZERO
    try:
        result = value if isinstance(value, Decimal) else to_decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        return _ZERO
    if not result.is_finite():
        return _ZERO
    return result
