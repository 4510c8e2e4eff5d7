"""
Pricing service for resolving course prices.

Resolves the chargeable price for a course from:
1. the base price,
2. an active time-boxed sale, which replaces the base price,
3. an optional coupon, which discounts whichever of the two was active.

An unknown or expired coupon code is a hard failure; the resolver never
falls back to the undiscounted price.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Optional
from uuid import UUID

from supabase import Client  # type: ignore[import-not-found]

from domain.coupon import Coupon, normalize_code, pick_coupon
from domain.course import Course
from domain.errors import ExpiredCoupon, InvalidCoupon, NotFound
from domain.money import MINIMUM_CHARGE
from domain.sale import Sale, pick_active_sale
from domain.time import require_utc_timestamp, utc_now
from repositories.coupon_repository import find_coupons_for_course
from repositories.course_repository import get_course_by_id
from repositories.sale_repository import list_sales_started_by

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class PriceQuote:
    """
    Resolved price with its breakdown.

    Includes:
    - original_price: course base price
    - sale_price: active sale amount, if any
    - sale_discount: base price minus sale price (0 without a sale)
    - coupon_discount: price before coupon minus final price (0 without a coupon)
    - savings: original price minus final price, never negative
    - sale/coupon: references kept for the payment audit trail
    """
    course: Course
    original_price: Decimal
    sale_price: Optional[Decimal]
    sale_discount: Decimal
    coupon_discount: Decimal
    final_price: Decimal
    currency: str
    sale: Optional[Sale] = None
    coupon: Optional[Coupon] = None
    priced_at: Optional[datetime] = None

    @property
    def savings(self) -> Decimal:
        return max(self.original_price - self.final_price, Decimal("0"))

    @property
    def sale_id(self) -> Optional[UUID]:
        return self.sale.sale_id if self.sale else None

    @property
    def coupon_id(self) -> Optional[UUID]:
        return self.coupon.coupon_id if self.coupon else None

    def breakdown(self) -> Dict[str, Any]:
        """Pricing breakdown as shown to the buyer."""
        return {
            "original_price": self.original_price,
            "sale_price": self.sale_price,
            "sale_discount": self.sale_discount,
            "coupon_code": self.coupon.code if self.coupon else None,
            "coupon_discount": self.coupon_discount,
            "savings": self.savings,
            "final_price": self.final_price,
            "currency": self.currency,
        }


def apply_pricing(
    course: Course,
    sale: Optional[Sale],
    coupon: Optional[Coupon],
    now: datetime,
) -> PriceQuote:
    """
    Compute the price for a course with an already-selected sale and coupon.

    Pure function: no I/O. Raises ExpiredCoupon/InvalidCoupon if the coupon
    cannot be used for this course at `now`. A sale that is not active at
    `now` is ignored.

    Example:
        # base 999, sale 799, coupon SAVE10 (10%)
        quote = apply_pricing(course, sale, coupon, now)
        quote.final_price  # Decimal('719')
    """
    require_utc_timestamp("now", now)

    original_price = course.price
    current_price = original_price
    sale_price: Optional[Decimal] = None
    active_sale = sale if sale is not None and sale.course_id == course.course_id and sale.is_active(now) else None

    if active_sale is not None:
        sale_price = active_sale.amount
        current_price = active_sale.amount

    coupon_discount = Decimal("0")
    final_price = current_price

    if coupon is not None:
        if not coupon.applies_to(course.course_id):
            raise InvalidCoupon("Invalid coupon code")
        if coupon.is_expired(now):
            raise ExpiredCoupon("Coupon has expired")

        final_price = max(current_price - coupon.discount_for(current_price), MINIMUM_CHARGE)
        coupon_discount = max(current_price - final_price, Decimal("0"))

    return PriceQuote(
        course=course,
        original_price=original_price,
        sale_price=sale_price,
        sale_discount=(original_price - sale_price) if sale_price is not None else Decimal("0"),
        coupon_discount=coupon_discount,
        final_price=final_price,
        currency=course.currency,
        sale=active_sale,
        coupon=coupon,
        priced_at=now,
    )


def lookup_coupon(db: Client, code: str, course_id: UUID, now: datetime) -> Coupon:
    """
    Find a usable coupon for a course.

    Raises:
        InvalidCoupon: no coupon with that code is scoped to the course or global
        ExpiredCoupon: the matching coupon's expiry has passed
    """
    normalized = normalize_code(code)
    if not normalized:
        raise InvalidCoupon("Invalid coupon code")

    coupon = pick_coupon(find_coupons_for_course(db, normalized, course_id), course_id)
    if coupon is None:
        logger.warning("Rejected unknown coupon %s for course %s", normalized, course_id)
        raise InvalidCoupon("Invalid coupon code")

    if coupon.is_expired(now):
        logger.warning("Rejected expired coupon %s for course %s", normalized, course_id)
        raise ExpiredCoupon("Coupon has expired")

    return coupon


def resolve_price(
    db: Client,
    course_id: UUID,
    coupon_code: Optional[str] = None,
    now: Optional[datetime] = None,
) -> PriceQuote:
    """
    Resolve the chargeable price for a course.

    Args:
        course_id: Course being priced
        coupon_code: Optional code as typed by the buyer
        now: Pricing instant (default: current UTC time)

    Returns:
        PriceQuote with breakdown and applied sale/coupon references

    Raises:
        NotFound: course does not exist
        InvalidCoupon / ExpiredCoupon: coupon code supplied but unusable
    """
    now = now or utc_now()

    course = get_course_by_id(db, course_id)
    if course is None:
        raise NotFound("Course not found")

    sale = pick_active_sale(list_sales_started_by(db, course_id, now), now)

    coupon: Optional[Coupon] = None
    if coupon_code is not None:
        coupon = lookup_coupon(db, coupon_code, course_id, now)

    return apply_pricing(course, sale, coupon, now)


__all__ = [
    "PriceQuote",
    "apply_pricing",
    "lookup_coupon",
    "resolve_price",
]
