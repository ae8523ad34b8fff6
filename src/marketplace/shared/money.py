"""Decimal helpers for amounts held in the currency's minor unit."""

from decimal import ROUND_HALF_UP, Decimal

MINOR_UNIT = Decimal("0.01")


def to_decimal(value) -> Decimal:
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    # str() keeps float inputs at their printed precision (0.1 -> "0.1")
    return Decimal(str(value))


def round_money(value) -> Decimal:
    return to_decimal(value).quantize(MINOR_UNIT, rounding=ROUND_HALF_UP)


def as_float(value) -> float:
    """Round to the minor unit and convert for storage in Float fields."""
    return float(round_money(value))
