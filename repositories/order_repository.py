"""
Pending order repository.

Stores the local record of intent for every gateway order, keyed by the
gateway order id. Settlement consults this record first; the gateway's notes
bag is only a fallback.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Mapping, Optional
from uuid import UUID

from supabase import Client  # type: ignore[import-not-found]

from domain.payment import OrderIntent, OrderStatus
from domain.time import parse_utc_datetime, utc_now

_ORDERS_TABLE: str = "payment_orders"


def _row_to_intent(row: Mapping[str, Any]) -> OrderIntent:
    """Convert a Supabase row into an OrderIntent."""

    return OrderIntent(
        gateway_order_id=str(row["gateway_order_id"]),
        user_id=UUID(str(row["user_id"])),
        course_id=UUID(str(row["course_id"])),
        original_price=Decimal(str(row["original_price"])),
        final_price=Decimal(str(row["final_price"])),
        amount_minor=int(row["amount_minor"]),
        currency=str(row.get("currency") or "INR"),
        receipt=row.get("receipt"),
        sale_id=UUID(str(row["sale_id"])) if row.get("sale_id") else None,
        coupon_id=UUID(str(row["coupon_id"])) if row.get("coupon_id") else None,
        payment_option=row.get("payment_option"),
        card_brand=row.get("card_brand"),
        status=OrderStatus(str(row.get("status") or OrderStatus.CREATED.value)),
        created_at=parse_utc_datetime(row["created_at_utc"]) if row.get("created_at_utc") else None,
    )


def insert_pending_order(db: Client, intent: OrderIntent) -> OrderIntent:
    """
    Record a freshly created gateway order.

    Returns:
        The stored OrderIntent
    """

    payload: dict[str, Any] = {
        "gateway_order_id": intent.gateway_order_id,
        "user_id": str(intent.user_id),
        "course_id": str(intent.course_id),
        "original_price": str(intent.original_price),
        "final_price": str(intent.final_price),
        "amount_minor": intent.amount_minor,
        "currency": intent.currency,
        "receipt": intent.receipt,
        "sale_id": str(intent.sale_id) if intent.sale_id else None,
        "coupon_id": str(intent.coupon_id) if intent.coupon_id else None,
        "payment_option": intent.payment_option,
        "card_brand": intent.card_brand,
        "status": OrderStatus.CREATED.value,
        "created_at_utc": (intent.created_at or utc_now()).isoformat(),
    }

    response = db.table(_ORDERS_TABLE).insert(payload).execute()
    error = getattr(response, "error", None)
    if error:
        raise RuntimeError(f"Failed to record pending order: {error}")

    return intent


def get_pending_order(db: Client, gateway_order_id: str) -> Optional[OrderIntent]:
    """
    Get the local intent for a gateway order.

    Returns:
        OrderIntent or None if the order was never recorded locally
    """

    response = (
        db.table(_ORDERS_TABLE)
        .select("*")
        .eq("gateway_order_id", gateway_order_id)
        .limit(1)
        .execute()
    )

    error = getattr(response, "error", None)
    if error:
        raise RuntimeError(f"Failed to fetch pending order: {error}")

    rows = getattr(response, "data", None) or []
    if not rows:
        return None

    return _row_to_intent(rows[0])


__all__ = ["insert_pending_order", "get_pending_order"]
