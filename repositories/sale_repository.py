"""
Sale repository (persistence).

This module provides *only* persistence operations for the Sale domain
entity. It does not decide which sale wins; it fetches candidates ordered
most-recently-started first and leaves the choice to the pricing service.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, List, Mapping, Optional
from uuid import UUID, uuid4

from supabase import Client  # type: ignore[import-not-found]

from domain.sale import Sale
from domain.time import parse_utc_datetime, to_iso_utc, utc_now

# Supabase table name for sale windows.
# Keep this aligned with sql/schema.sql.
_SALES_TABLE: str = "sales"


def _row_to_sale(row: Mapping[str, Any]) -> Sale:
    """Convert a Supabase row into a Sale."""

    return Sale(
        sale_id=UUID(str(row["sale_id"])),
        course_id=UUID(str(row["course_id"])),
        teacher_id=UUID(str(row["teacher_id"])),
        amount=Decimal(str(row["amount"])),
        starts_at=parse_utc_datetime(row["starts_at_utc"]),
        expires_at=parse_utc_datetime(row["expires_at_utc"]) if row.get("expires_at_utc") else None,
        currency=str(row.get("currency") or "INR"),
        platform=row.get("platform"),
        notes=row.get("notes"),
    )


def list_sales_started_by(db: Client, course_id: UUID, at: datetime) -> List[Sale]:
    """
    Retrieve sales for a course that started at or before `at`.

    The expiry side of the window is filtered as well, so the result holds
    only sales active at `at`, newest start first.
    """

    at_iso = to_iso_utc(at, name="at")
    response = (
        db.table(_SALES_TABLE)
        .select("*")
        .eq("course_id", str(course_id))
        .lte("starts_at_utc", at_iso)
        .or_(f"expires_at_utc.is.null,expires_at_utc.gte.{at_iso}")
        .order("starts_at_utc", desc=True)
        .execute()
    )

    error = getattr(response, "error", None)
    if error:
        raise RuntimeError(f"Failed to fetch sales: {error}")

    rows = getattr(response, "data", None) or []
    return [_row_to_sale(row) for row in rows]


def list_sales_by_course(db: Client, course_id: UUID) -> List[Sale]:
    """
    Retrieve every sale recorded for a course, newest start first.

    Returns:
        List[Sale] (possibly empty)
    """

    response = (
        db.table(_SALES_TABLE)
        .select("*")
        .eq("course_id", str(course_id))
        .order("starts_at_utc", desc=True)
        .execute()
    )
    error = getattr(response, "error", None)
    if error:
        raise RuntimeError(f"Failed to list sales: {error}")

    rows = getattr(response, "data", None) or []
    return [_row_to_sale(row) for row in rows]


def record_sale(
    db: Client,
    course_id: UUID,
    teacher_id: UUID,
    amount: Decimal,
    starts_at: datetime,
    expires_at: Optional[datetime] = None,
    currency: str = "INR",
    platform: Optional[str] = None,
    notes: Optional[str] = None,
) -> Sale:
    """
    Insert a new sale window.

    Args:
        course_id: Course the sale overrides the price of
        teacher_id: Teacher who created the sale
        amount: Absolute sale price in major units
        starts_at: UTC activation time
        expires_at: Optional UTC expiry time
        currency: Currency code (default: INR)

    Returns:
        Sale domain model with the recorded window
    """

    # Validate before touching the database
    sale = Sale(
        sale_id=uuid4(),
        course_id=course_id,
        teacher_id=teacher_id,
        amount=amount,
        starts_at=starts_at,
        expires_at=expires_at,
        currency=currency,
        platform=platform,
        notes=notes,
    )

    payload: dict[str, Any] = {
        "sale_id": str(sale.sale_id),
        "course_id": str(course_id),
        "teacher_id": str(teacher_id),
        "amount": str(amount),
        "starts_at_utc": to_iso_utc(starts_at, name="starts_at"),
        "expires_at_utc": to_iso_utc(expires_at, name="expires_at") if expires_at else None,
        "currency": currency,
        "platform": platform,
        "notes": notes,
        "created_at_utc": utc_now().isoformat(),
    }

    response = db.table(_SALES_TABLE).insert(payload).execute()
    error = getattr(response, "error", None)
    if error:
        raise RuntimeError(f"Failed to record sale: {error}")

    return sale


__all__ = [
    "list_sales_started_by",
    "list_sales_by_course",
    "record_sale",
]
