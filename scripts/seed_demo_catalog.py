"""
Seed a demo catalog for checkout testing.

Creates (if missing):
- a paid course priced 999 with an open-ended sale at 799
- a course-scoped coupon SAVE10 (10% off, valid 30 days)
- a free course

Then prints the resolved price with and without the coupon, which should
be 799 and 719 (71900 paise).
"""

from __future__ import annotations

from datetime import timedelta
from decimal import Decimal
from uuid import UUID

from api.settings import Settings
from domain.money import to_minor_units
from domain.time import utc_now
from repositories.client import create_supabase_client
from repositories.coupon_repository import create_coupon, find_coupons_for_course
from repositories.sale_repository import list_sales_by_course, record_sale
from services.pricing_service import resolve_price

DEMO_TEACHER_ID = UUID("123e4567-e89b-12d3-a456-426614174100")
DEMO_PAID_COURSE_ID = UUID("123e4567-e89b-12d3-a456-426614174101")
DEMO_FREE_COURSE_ID = UUID("123e4567-e89b-12d3-a456-426614174102")


def _ensure_course(db, course_id: UUID, title: str, price: str) -> None:
    existing = db.table("courses").select("course_id").eq("course_id", str(course_id)).execute()
    if existing.data:
        print(f"Course already exists: {title} ({course_id})")
        return

    db.table("courses").insert({
        "course_id": str(course_id),
        "title": title,
        "price": price,
        "currency": "INR",
        "is_published": True,
        "teacher_id": str(DEMO_TEACHER_ID),
        "created_at_utc": utc_now().isoformat(),
    }).execute()
    print(f"[SUCCESS] Created course: {title} at {price}")


def seed_demo_catalog() -> None:
    settings = Settings.from_env()
    db = create_supabase_client(settings.supabase_url, settings.supabase_key)
    now = utc_now()

    _ensure_course(db, DEMO_PAID_COURSE_ID, "Demo Paid Course", "999")
    _ensure_course(db, DEMO_FREE_COURSE_ID, "Demo Free Course", "0")

    if not list_sales_by_course(db, DEMO_PAID_COURSE_ID):
        record_sale(
            db,
            course_id=DEMO_PAID_COURSE_ID,
            teacher_id=DEMO_TEACHER_ID,
            amount=Decimal("799"),
            starts_at=now - timedelta(minutes=1),
        )
        print("[SUCCESS] Opened sale at 799")

    if not find_coupons_for_course(db, "SAVE10", DEMO_PAID_COURSE_ID):
        create_coupon(
            db,
            code="SAVE10",
            expires_at=now + timedelta(days=30),
            course_id=DEMO_PAID_COURSE_ID,
            discount_percentage=Decimal("10"),
        )
        print("[SUCCESS] Created coupon SAVE10")

    plain = resolve_price(db, DEMO_PAID_COURSE_ID)
    with_coupon = resolve_price(db, DEMO_PAID_COURSE_ID, "save10")
    print(f"\nPrice without coupon: {plain.final_price} {plain.currency}")
    print(f"Price with SAVE10:    {with_coupon.final_price} {with_coupon.currency}"
          f" ({to_minor_units(with_coupon.final_price)} minor units)")


if __name__ == "__main__":
    seed_demo_catalog()
