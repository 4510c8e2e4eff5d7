"""
Domain: Payments and order intent.

OrderIntent is what the service knew when it created a gateway order: who
is buying, which course, at what price, with which discounts. It is stored
locally as a pending order keyed by the gateway order id, and mirrored into
the gateway's notes bag so an order can still be settled if the local record
is missing.

PaymentRecord is the immutable, priced audit row written exactly once per
settled gateway payment.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Dict, Mapping, Optional
from uuid import UUID

from .errors import InvalidOrderData
from .time import require_utc_timestamp


class PaymentStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class OrderStatus(str, Enum):
    CREATED = "created"
    SETTLED = "settled"


# Keys written into the gateway notes bag. The gateway rejects null values,
# so optional keys are omitted when absent.
_REQUIRED_NOTE_KEYS = ("course_id", "user_id", "original_price", "final_amount")


@dataclass(frozen=True, slots=True)
class OrderIntent:
    """
    Domain intent behind a gateway order.

    amount_minor is the amount actually requested from the gateway, after
    the minimum-charge floor; final_price is the resolver's output.
    """

    gateway_order_id: str
    user_id: UUID
    course_id: UUID
    original_price: Decimal
    final_price: Decimal
    amount_minor: int
    currency: str = "INR"
    receipt: Optional[str] = None
    sale_id: Optional[UUID] = None
    coupon_id: Optional[UUID] = None
    payment_option: Optional[str] = None
    card_brand: Optional[str] = None
    status: OrderStatus = OrderStatus.CREATED
    created_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        if self.amount_minor <= 0:
            raise ValueError("amount_minor must be > 0")
        if self.created_at is not None:
            require_utc_timestamp("created_at", self.created_at)

    @property
    def savings(self) -> Decimal:
        return max(self.original_price - self.final_price, Decimal("0"))

    def to_notes(self) -> Dict[str, str]:
        """Render the gateway notes bag. No secrets, no card data."""

        notes: Dict[str, str] = {
            "course_id": str(self.course_id),
            "user_id": str(self.user_id),
            "original_price": str(self.original_price),
            "final_amount": str(self.final_price),
        }
        if self.sale_id is not None:
            notes["sale_id"] = str(self.sale_id)
        if self.coupon_id is not None:
            notes["coupon_id"] = str(self.coupon_id)
        if self.payment_option:
            notes["payment_option"] = self.payment_option
        if self.card_brand:
            notes["card_brand"] = self.card_brand
        return notes

    @staticmethod
    def from_gateway_order(order: Mapping[str, Any]) -> "OrderIntent":
        """
        Rebuild intent from a fetched gateway order.

        Raises InvalidOrderData when the notes bag is missing or malformed.
        """

        notes = order.get("notes")
        if not isinstance(notes, Mapping) or not notes:
            raise InvalidOrderData("Order notes not found")

        missing = [key for key in _REQUIRED_NOTE_KEYS if not notes.get(key)]
        if missing:
            raise InvalidOrderData(f"Order notes missing fields: {', '.join(missing)}")

        try:
            return OrderIntent(
                gateway_order_id=str(order["id"]),
                user_id=UUID(str(notes["user_id"])),
                course_id=UUID(str(notes["course_id"])),
                original_price=Decimal(str(notes["original_price"])),
                final_price=Decimal(str(notes["final_amount"])),
                amount_minor=int(order["amount"]),
                currency=str(order.get("currency") or "INR"),
                receipt=order.get("receipt"),
                sale_id=UUID(str(notes["sale_id"])) if notes.get("sale_id") else None,
                coupon_id=UUID(str(notes["coupon_id"])) if notes.get("coupon_id") else None,
                payment_option=notes.get("payment_option"),
                card_brand=notes.get("card_brand"),
            )
        except (KeyError, TypeError, ValueError, InvalidOperation) as e:
            raise InvalidOrderData(f"Invalid order data: {e}") from e


@dataclass(frozen=True, slots=True)
class PaymentRecord:
    """
    Immutable completed payment.

    gateway_payment_id is unique across all records; it is the idempotency
    key for settlement.
    """

    payment_id: UUID
    student_id: UUID
    course_id: UUID
    amount: Decimal
    original_amount: Decimal
    gateway_order_id: str
    gateway_payment_id: str
    currency: str = "INR"
    status: PaymentStatus = PaymentStatus.COMPLETED
    coupon_id: Optional[UUID] = None
    sale_id: Optional[UUID] = None
    payment_option: Optional[str] = None
    card_brand: Optional[str] = None
    created_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        if self.amount < 0:
            raise ValueError("amount must be >= 0")
        if self.created_at is not None:
            require_utc_timestamp("created_at", self.created_at)


__all__ = ["OrderIntent", "OrderStatus", "PaymentRecord", "PaymentStatus"]
