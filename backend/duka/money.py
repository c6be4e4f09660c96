from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Optional

CENT = Decimal("0.01")
ZERO = Decimal("0.00")

# Largest value a Numeric(12, 2) column holds
MAX_AMOUNT = Decimal("9999999999.99")


def quantize(value: Decimal) -> Decimal:
    """Round to whole cents (half-up, the way receipts are rounded)."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def to_decimal(value: Any) -> Decimal:
    """
    Coerce JSON input into a Decimal.

    Floats go through str() so 0.1 stays 0.1 rather than its binary expansion.
    Raises ValueError for anything that is not a finite number.
    """
    if isinstance(value, bool):
        raise ValueError("boolean is not a number")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, float)):
        result = Decimal(str(value))
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValueError("empty string is not a number")
        try:
            result = Decimal(stripped)
        except InvalidOperation:
            raise ValueError(f"{value!r} is not a number")
    else:
        raise ValueError(f"{value!r} is not a number")

    if not result.is_finite():
        raise ValueError("amount must be finite")
    return result


def line_total(quantity: int, unit_price: Decimal) -> Decimal:
    return quantize(Decimal(quantity) * unit_price)


def money_str(value: Optional[Decimal]) -> Optional[str]:
    """Serialize a money value for JSON as a fixed two-place string."""
    if value is None:
        return None
    return str(quantize(Decimal(value)))
