"""
Order service for issuing gateway checkout orders.

Handles:
- Purchase preconditions (course exists, published, paid, not already held)
- Price resolution (sale, then coupon)
- Gateway order creation with the metadata bag
- The local pending-order record consulted at settlement
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4

from supabase import Client  # type: ignore[import-not-found]

from domain.errors import AlreadyPurchased, CourseNotPurchasable, InvalidOrderData
from domain.money import MINIMUM_CHARGE, to_minor_units
from domain.payment import OrderIntent
from domain.time import utc_now
from repositories.course_repository import get_student_by_id
from repositories.order_repository import insert_pending_order
from services.payment_gateway import PaymentGateway
from services.pricing_service import PriceQuote, resolve_price

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class OrderRequest:
    """
    Request to open a checkout for one course.
    """
    user_id: UUID
    course_id: UUID
    coupon_code: Optional[str] = None
    payment_option: Optional[str] = None  # upi, card, netbanking, ...
    card_brand: Optional[str] = None  # only meaningful with payment_option == "card"


@dataclass(frozen=True, slots=True)
class IssuedOrder:
    """
    Gateway order handed back to the checkout widget.

    order_id: Gateway order id
    amount_minor: Amount requested from the gateway, in minor units
    currency: Currency code
    key_id: Public gateway key for the checkout widget
    quote: Price resolution behind the amount
    """
    order_id: str
    amount_minor: int
    currency: str
    key_id: str
    quote: PriceQuote


def _new_receipt() -> str:
    # Razorpay caps receipts at 40 characters
    return f"rcpt_{uuid4().hex[:30]}"


def issue_order(
    db: Client,
    gateway: PaymentGateway,
    request: OrderRequest,
    now: Optional[datetime] = None,
) -> IssuedOrder:
    """
    Issue a gateway order for a course purchase.

    Process:
    1. Reject if the user already holds the course
    2. Resolve the price (raises NotFound / InvalidCoupon / ExpiredCoupon)
    3. Reject unpublished and free courses
    4. Floor the amount at the minimum charge and convert to minor units
    5. Create the gateway order carrying the metadata bag
    6. Record the pending order locally

    Raises:
        AlreadyPurchased, NotFound, CourseNotPurchasable, InvalidCoupon,
        ExpiredCoupon, GatewayError

    Example:
        issued = issue_order(db, gateway, OrderRequest(user_id, course_id, "SAVE10"))
        issued.amount_minor  # 71900 for a 799 sale with 10% off
    """
    now = now or utc_now()

    student = get_student_by_id(db, request.user_id)
    if student is not None and student.owns(request.course_id):
        raise AlreadyPurchased("You have already purchased this course")

    quote = resolve_price(db, request.course_id, request.coupon_code, now=now)
    course = quote.course

    if not course.is_published:
        raise CourseNotPurchasable("This course is not available for purchase yet")
    if course.is_free:
        raise CourseNotPurchasable("This course is free; enroll instead of paying")

    charge = max(quote.final_price, MINIMUM_CHARGE)
    amount_minor = to_minor_units(charge)
    receipt = _new_receipt()

    payment_option = request.payment_option or "upi"
    card_brand = request.card_brand if payment_option == "card" else None

    # The notes bag does not carry the order id, so a placeholder is enough
    # until the gateway assigns one.
    draft = OrderIntent(
        gateway_order_id="pending",
        user_id=request.user_id,
        course_id=course.course_id,
        original_price=quote.original_price,
        final_price=quote.final_price,
        amount_minor=amount_minor,
        currency=quote.currency,
        receipt=receipt,
        sale_id=quote.sale_id,
        coupon_id=quote.coupon_id,
        payment_option=payment_option,
        card_brand=card_brand,
        created_at=now,
    )

    order = gateway.create_order(amount_minor, quote.currency, receipt, draft.to_notes())
    order_id = order.get("id")
    if not order_id:
        raise InvalidOrderData("Gateway returned an order without an id")

    intent = replace(draft, gateway_order_id=str(order_id))

    try:
        insert_pending_order(db, intent)
    except RuntimeError:
        # Settlement falls back to the gateway notes bag for this order
        logger.exception("Failed to record pending order %s", intent.gateway_order_id)

    logger.info(
        "Issued order %s for course %s (user %s, amount %d %s)",
        intent.gateway_order_id, course.course_id, request.user_id, amount_minor, quote.currency,
    )

    return IssuedOrder(
        order_id=intent.gateway_order_id,
        amount_minor=amount_minor,
        currency=quote.currency,
        key_id=gateway.key_id,
        quote=quote,
    )


__all__ = ["OrderRequest", "IssuedOrder", "issue_order"]
