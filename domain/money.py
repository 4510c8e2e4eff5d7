"""
Domain: Money arithmetic.

Prices are Decimals in major currency units (rupees). The gateway accepts
whole minor units (paise). Rounding is half-up everywhere.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

# Smallest chargeable amount in major units; the resolver and the order
# issuer never go below it for a paid course.
MINIMUM_CHARGE: Decimal = Decimal("1")

# Minor units per major unit (paise per rupee).
MINOR_UNITS_PER_MAJOR: int = 100


def round_half_up(value: Decimal) -> Decimal:
    """Round to a whole number, halves away from zero."""

    return value.quantize(Decimal("1"), rounding=ROUND_HALF_UP)


def to_minor_units(amount: Decimal) -> int:
    """
    Convert a major-unit amount to whole minor units.

    Example:
        to_minor_units(Decimal("719"))  # 71900
    """

    if amount < 0:
        raise ValueError("amount must be >= 0")
    return int(round_half_up(amount * MINOR_UNITS_PER_MAJOR))


def from_minor_units(amount_minor: int) -> Decimal:
    """Convert whole minor units back to a major-unit Decimal."""

    return (Decimal(amount_minor) / MINOR_UNITS_PER_MAJOR).quantize(Decimal("0.01"))


__all__ = [
    "MINIMUM_CHARGE",
    "MINOR_UNITS_PER_MAJOR",
    "round_half_up",
    "to_minor_units",
    "from_minor_units",
]
