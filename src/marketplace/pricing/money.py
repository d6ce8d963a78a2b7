"""Cent rounding for monetary Float fields."""

from decimal import ROUND_HALF_UP, Decimal

_CENT = Decimal("0.01")


def to_money(value) -> float:
    """Round half-up to whole cents.

    Goes through ``str`` so binary artifacts like ``8.160000000000001`` round
    the way a person would round the printed amount.
    """
    return float(Decimal(str(value or 0)).quantize(_CENT, rounding=ROUND_HALF_UP))


def money_equal(left, right) -> bool:
    return abs(to_money(left) - to_money(right)) < 0.005
