"""
Coupon repository.

Looks up coupons by canonical code. Expiry is deliberately not filtered
here so the pricing service can tell an expired coupon from an unknown one.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, List, Mapping, Optional
from uuid import UUID, uuid4

from supabase import Client  # type: ignore[import-not-found]

from domain.coupon import Coupon, normalize_code
from domain.time import parse_utc_datetime, to_iso_utc, utc_now

_COUPONS_TABLE: str = "coupons"


def _row_to_coupon(row: Mapping[str, Any]) -> Coupon:
    """Convert a Supabase row into a Coupon."""

    pct = row.get("discount_percentage")
    amount = row.get("discount_amount")
    return Coupon(
        coupon_id=UUID(str(row["coupon_id"])),
        code=str(row["code"]),
        expires_at=parse_utc_datetime(row["expires_at_utc"]),
        course_id=UUID(str(row["course_id"])) if row.get("course_id") else None,
        discount_percentage=Decimal(str(pct)) if pct is not None else None,
        discount_amount=Decimal(str(amount)) if amount is not None else None,
    )


def find_coupons_for_course(db: Client, code: str, course_id: UUID) -> List[Coupon]:
    """
    Get coupons matching `code` that are scoped to the course or global.

    Args:
        code: Coupon code as typed by the user (normalized here)
        course_id: Course being priced

    Returns:
        List[Coupon] (possibly empty), expired ones included
    """

    response = (
        db.table(_COUPONS_TABLE)
        .select("*")
        .eq("code", normalize_code(code))
        .or_(f"course_id.eq.{course_id},course_id.is.null")
        .execute()
    )

    error = getattr(response, "error", None)
    if error:
        raise RuntimeError(f"Failed to fetch coupon: {error}")

    rows = getattr(response, "data", None) or []
    return [_row_to_coupon(row) for row in rows]


def create_coupon(
    db: Client,
    code: str,
    expires_at: datetime,
    course_id: Optional[UUID] = None,
    discount_percentage: Optional[Decimal] = None,
    discount_amount: Optional[Decimal] = None,
) -> Coupon:
    """
    Insert a coupon.

    Raises:
        ValueError: discount fields are both set, both missing, or out of range
        RuntimeError: the insert failed (e.g. duplicate code)
    """

    coupon = Coupon(
        coupon_id=uuid4(),
        code=code,
        expires_at=expires_at,
        course_id=course_id,
        discount_percentage=discount_percentage,
        discount_amount=discount_amount,
    )

    payload: dict[str, Any] = {
        "coupon_id": str(coupon.coupon_id),
        "code": coupon.code,
        "expires_at_utc": to_iso_utc(expires_at, name="expires_at"),
        "course_id": str(course_id) if course_id else None,
        "discount_percentage": str(discount_percentage) if discount_percentage is not None else None,
        "discount_amount": str(discount_amount) if discount_amount is not None else None,
        "created_at_utc": utc_now().isoformat(),
    }

    response = db.table(_COUPONS_TABLE).insert(payload).execute()
    error = getattr(response, "error", None)
    if error:
        raise RuntimeError(f"Failed to create coupon: {error}")

    return coupon


__all__ = ["find_coupons_for_course", "create_coupon"]
