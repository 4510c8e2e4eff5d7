"""
Domain: Coupons.

A coupon is a code-redeemable discount, scoped either to one course or
global (course_id is None). Codes are case-insensitive: they are stored and
compared trimmed and uppercased.

Exactly one discount mode applies:
- PERCENTAGE: discount = round_half_up(price * pct / 100), pct in [0, 100]
- AMOUNT: discount = fixed amount (>= 0)
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Iterable, Optional
from uuid import UUID

from .money import round_half_up
from .time import require_utc_timestamp


class DiscountMode(str, Enum):
    PERCENTAGE = "percentage"
    AMOUNT = "amount"


def normalize_code(code: str) -> str:
    """Canonical coupon code form: trimmed and uppercased."""

    return code.strip().upper()


@dataclass(frozen=True, slots=True)
class Coupon:
    """
    Immutable coupon.

    Construction rejects coupons that carry both discount fields, or neither.
    """

    coupon_id: UUID
    code: str
    expires_at: datetime
    course_id: Optional[UUID] = None
    discount_percentage: Optional[Decimal] = None
    discount_amount: Optional[Decimal] = None

    def __post_init__(self) -> None:
        require_utc_timestamp("expires_at", self.expires_at)

        if not normalize_code(self.code):
            raise ValueError("code must not be empty")
        if normalize_code(self.code) != self.code:
            # Frozen dataclass: write the canonical form through object.__setattr__
            object.__setattr__(self, "code", normalize_code(self.code))

        has_pct = self.discount_percentage is not None
        has_amount = self.discount_amount is not None
        if has_pct and has_amount:
            raise ValueError("coupon must not carry both discount_percentage and discount_amount")
        if not has_pct and not has_amount:
            raise ValueError("coupon must carry discount_percentage or discount_amount")

        if has_pct and not (0 <= self.discount_percentage <= 100):
            raise ValueError("discount_percentage must be between 0 and 100")
        if has_amount and self.discount_amount < 0:
            raise ValueError("discount_amount must be >= 0")

    @property
    def mode(self) -> DiscountMode:
        if self.discount_percentage is not None:
            return DiscountMode.PERCENTAGE
        return DiscountMode.AMOUNT

    @property
    def is_global(self) -> bool:
        return self.course_id is None

    def is_expired(self, at: datetime) -> bool:
        """A coupon is usable only while expires_at > at."""

        require_utc_timestamp("at", at)
        return self.expires_at <= at

    def applies_to(self, course_id: UUID) -> bool:
        return self.course_id is None or self.course_id == course_id

    def discount_for(self, price: Decimal) -> Decimal:
        """Discount this coupon grants against `price` (not floored)."""

        if self.discount_percentage is not None:
            return round_half_up(price * self.discount_percentage / 100)
        return self.discount_amount


def pick_coupon(coupons: Iterable[Coupon], course_id: UUID) -> Optional[Coupon]:
    """
    Choose the coupon for a course among same-code candidates.

    A course-scoped coupon wins over a global one.
    """

    fallback: Optional[Coupon] = None
    for coupon in coupons:
        if not coupon.applies_to(course_id):
            continue
        if coupon.course_id == course_id:
            return coupon
        if fallback is None:
            fallback = coupon
    return fallback


__all__ = ["Coupon", "DiscountMode", "normalize_code", "pick_coupon"]
