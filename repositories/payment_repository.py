"""
Payment repository.

Settlement writes go through the settle_course_payment() PostgreSQL
function, which inserts the payment and updates both entitlement sets in a
single transaction. The UNIQUE constraint on gateway_payment_id makes a
replayed settlement return the existing payment instead of a new one.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, List, Mapping, Optional
from uuid import UUID

from supabase import Client  # type: ignore[import-not-found]

from domain.payment import OrderIntent, PaymentRecord, PaymentStatus
from domain.time import parse_utc_datetime

_PAYMENTS_TABLE: str = "payments"


@dataclass(frozen=True, slots=True)
class AtomicSettlementResult:
    """Result from the settle_course_payment PostgreSQL function."""
    success: bool
    payment_id: Optional[UUID]
    already_settled: bool
    error_code: Optional[str]
    error_message: Optional[str]


def _row_to_payment(row: Mapping[str, Any]) -> PaymentRecord:
    """Convert a Supabase row into a PaymentRecord."""

    return PaymentRecord(
        payment_id=UUID(str(row["payment_id"])),
        student_id=UUID(str(row["student_id"])),
        course_id=UUID(str(row["course_id"])),
        amount=Decimal(str(row["amount"])),
        original_amount=Decimal(str(row["original_amount"])),
        gateway_order_id=str(row["gateway_order_id"]),
        gateway_payment_id=str(row["gateway_payment_id"]),
        currency=str(row.get("currency") or "INR"),
        status=PaymentStatus(str(row.get("status") or PaymentStatus.COMPLETED.value)),
        coupon_id=UUID(str(row["coupon_id"])) if row.get("coupon_id") else None,
        sale_id=UUID(str(row["sale_id"])) if row.get("sale_id") else None,
        payment_option=row.get("payment_option"),
        card_brand=row.get("card_brand"),
        created_at=parse_utc_datetime(row["created_at_utc"]) if row.get("created_at_utc") else None,
    )


def _parse_rpc_result(result: Mapping[str, Any]) -> AtomicSettlementResult:
    if result.get("success"):
        return AtomicSettlementResult(
            success=True,
            payment_id=UUID(str(result["payment_id"])),
            already_settled=bool(result.get("already_settled", False)),
            error_code=None,
            error_message=None,
        )
    return AtomicSettlementResult(
        success=False,
        payment_id=None,
        already_settled=False,
        error_code=result.get("error"),
        error_message=result.get("message"),
    )


def settle_payment_atomic(
    db: Client,
    intent: OrderIntent,
    gateway_payment_id: str,
    amount: Decimal,
) -> AtomicSettlementResult:
    """
    Execute settlement via PostgreSQL function.

    Calls settle_course_payment() which, in a single transaction:
    - Inserts a completed payment (ON CONFLICT (gateway_payment_id) DO NOTHING)
    - Adds the course to the student's purchased_courses
    - Adds the student to the course's purchaser_ids and bumps counters
    - Marks the pending order settled

    Args:
        intent: Order intent being settled
        gateway_payment_id: Gateway payment identifier (idempotency key)
        amount: Charged amount in major units

    Returns:
        AtomicSettlementResult with the payment id or error details
    """
    from postgrest.exceptions import APIError

    params = {
        "p_gateway_order_id": intent.gateway_order_id,
        "p_gateway_payment_id": gateway_payment_id,
        "p_student_id": str(intent.user_id),
        "p_course_id": str(intent.course_id),
        "p_amount": str(amount),
        "p_original_amount": str(intent.original_price),
        "p_currency": intent.currency,
        "p_coupon_id": str(intent.coupon_id) if intent.coupon_id else None,
        "p_sale_id": str(intent.sale_id) if intent.sale_id else None,
        "p_payment_option": intent.payment_option,
        "p_card_brand": intent.card_brand,
    }

    try:
        response = db.rpc("settle_course_payment", params).execute()

        error = getattr(response, "error", None)
        if error:
            return AtomicSettlementResult(
                success=False,
                payment_id=None,
                already_settled=False,
                error_code="RPC_ERROR",
                error_message=str(error),
            )

        return _parse_rpc_result(response.data or {})

    except APIError as e:
        # supabase-py raises APIError when the function returns a bare JSON
        # object, for success and error payloads alike
        try:
            error_data = e.json() if callable(getattr(e, "json", None)) else {}
        except (TypeError, ValueError):
            error_data = {}

        if error_data.get("success") is True:
            return _parse_rpc_result(error_data)

        return AtomicSettlementResult(
            success=False,
            payment_id=None,
            already_settled=False,
            error_code=error_data.get("error", "API_ERROR"),
            error_message=error_data.get("message", str(e)),
        )


def list_payments_by_student(db: Client, student_id: UUID) -> List[PaymentRecord]:
    """
    Retrieve all payments for a student (purchase history).

    Returns:
        List[PaymentRecord] (possibly empty)
    """

    response = (
        db.table(_PAYMENTS_TABLE)
        .select("*")
        .eq("student_id", str(student_id))
        .order("created_at_utc", desc=True)
        .execute()
    )
    error = getattr(response, "error", None)
    if error:
        raise RuntimeError(f"Failed to list payments: {error}")

    rows = getattr(response, "data", None) or []
    return [_row_to_payment(row) for row in rows]


__all__ = [
    "AtomicSettlementResult",
    "settle_payment_atomic",
    "list_payments_by_student",
]
