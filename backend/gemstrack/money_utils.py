from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP
from typing import Optional


CENT = Decimal("0.01")
MILLIGRAM = Decimal("0.001")
ZERO = Decimal("0")


def quantize_money(value: Decimal) -> Decimal:
    """Round a money amount to whole cents (half-up, as shop tills do)."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def quantize_weight(value: Decimal) -> Decimal:
    """Round a weight in grams to whole milligrams."""
    return value.quantize(MILLIGRAM, rounding=ROUND_HALF_UP)


def decimal_to_str(value: Optional[Decimal]) -> Optional[str]:
    """
    Serialize a Decimal for JSON output.
    Strings keep exact cents; floats would not.
    """
    if value is None:
        return None
    return str(value)
