"""Integer money helpers.

All monetary values in the engine are integer minor units (cents).  The
budgeting service reports amounts in milliunits (1000 = 1.00) while
manually entered accounts carry plain major-unit numbers, so both are
converted here before any arithmetic happens.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

MILLIUNITS_PER_CENT = 10
CENTS_PER_UNIT = 100


def _to_decimal(value: Any) -> Decimal:
    if isinstance(value, bool) or value is None:
        raise ValueError(f"Not a monetary amount: {value!r}")
    if isinstance(value, str):
        value = value.strip().replace(",", "").replace("$", "")
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise ValueError(f"Not a monetary amount: {value!r}") from exc
    if not amount.is_finite():
        raise ValueError(f"Not a monetary amount: {value!r}")
    return amount


def milliunits_to_cents(milliunits: Any) -> int:
    """Convert a budgeting-service milliunit amount to cents.

    Halves round away from zero, so ``-1005`` milliunits become ``-101`` cents.
    """
    amount = _to_decimal(milliunits) / MILLIUNITS_PER_CENT
    return int(amount.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def major_to_cents(value: Any) -> int:
    """Convert a major-unit amount (``12.34``, ``"1,200"``) to cents."""
    amount = _to_decimal(value) * CENTS_PER_UNIT
    return int(amount.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def cents_to_major(cents: float) -> float:
    """Convert cents back to major units for presentation only."""
    return cents / CENTS_PER_UNIT


def round_half_up(value: Any) -> int:
    """Round to a whole number with halves going away from zero (``2.5`` -> ``3``)."""
    return int(_to_decimal(value).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
