"""
Catalog pricing administration.

Teacher-facing operations around a course's price: time-boxed sales,
coupons, coupon previews, and free enrollment for zero-priced courses.
"""

from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from supabase import Client  # type: ignore[import-not-found]

from domain.coupon import Coupon
from domain.course import Course
from domain.errors import (
    AlreadyPurchased,
    CourseNotPurchasable,
    Forbidden,
    NotFound,
    PersistenceError,
)
from domain.sale import Sale
from domain.time import utc_now
from repositories.coupon_repository import create_coupon as insert_coupon
from repositories.course_repository import (
    enroll_free_course_atomic,
    get_course_by_id,
    get_student_by_id,
)
from repositories.sale_repository import list_sales_by_course, record_sale
from services.pricing_service import PriceQuote, apply_pricing, lookup_coupon, resolve_price

logger = logging.getLogger(__name__)


def _require_owned_course(db: Client, teacher_id: UUID, course_id: UUID) -> Course:
    course = get_course_by_id(db, course_id)
    if course is None:
        raise NotFound("Course not found")
    if course.teacher_id != teacher_id:
        raise Forbidden("Only the course's teacher can change its pricing")
    return course


def create_sale(
    db: Client,
    teacher_id: UUID,
    course_id: UUID,
    amount: Decimal,
    starts_at: datetime,
    expires_at: Optional[datetime] = None,
    currency: str = "INR",
    platform: Optional[str] = None,
    notes: Optional[str] = None,
) -> Sale:
    """
    Open a sale window on a course the teacher owns.

    Raises:
        NotFound, Forbidden, ValueError (negative amount, inverted window)
    """
    _require_owned_course(db, teacher_id, course_id)
    sale = record_sale(
        db,
        course_id=course_id,
        teacher_id=teacher_id,
        amount=amount,
        starts_at=starts_at,
        expires_at=expires_at,
        currency=currency,
        platform=platform,
        notes=notes,
    )
    logger.info("Teacher %s opened sale %s on course %s at %s", teacher_id, sale.sale_id, course_id, amount)
    return sale


def list_sales(db: Client, course_id: UUID) -> List[Sale]:
    """All sales for a course, newest start first."""
    if get_course_by_id(db, course_id) is None:
        raise NotFound("Course not found")
    return list_sales_by_course(db, course_id)


def create_coupon(
    db: Client,
    teacher_id: UUID,
    course_id: UUID,
    code: str,
    expires_at: datetime,
    discount_percentage: Optional[Decimal] = None,
    discount_amount: Optional[Decimal] = None,
) -> Coupon:
    """
    Create a coupon scoped to one course owned by `teacher_id`.

    Global coupons are not created here; they are seeded directly in the
    database.

    Raises:
        NotFound, Forbidden, ValueError (discount fields invalid),
        PersistenceError (e.g. duplicate code)
    """
    _require_owned_course(db, teacher_id, course_id)

    try:
        coupon = insert_coupon(
            db,
            code=code,
            expires_at=expires_at,
            course_id=course_id,
            discount_percentage=discount_percentage,
            discount_amount=discount_amount,
        )
    except RuntimeError as e:
        logger.exception("Coupon creation failed for code %s", code)
        raise PersistenceError(str(e)) from e

    logger.info("Created coupon %s for course %s", coupon.code, coupon.course_id)
    return coupon


def preview_coupon(
    db: Client,
    course_id: UUID,
    code: str,
    now: Optional[datetime] = None,
) -> PriceQuote:
    """
    Price a course with a coupon, without side effects.

    Same rules as checkout: the active sale (if any) is discounted.

    Raises:
        NotFound, InvalidCoupon, ExpiredCoupon
    """
    now = now or utc_now()
    base_quote = resolve_price(db, course_id, None, now=now)
    coupon = lookup_coupon(db, code, course_id, now)
    return apply_pricing(base_quote.course, base_quote.sale, coupon, now)


def enroll_free(db: Client, user_id: UUID, course_id: UUID) -> Course:
    """
    Enroll a user in a published, zero-priced course.

    Raises:
        NotFound, CourseNotPurchasable (unpublished or paid), AlreadyPurchased,
        PersistenceError
    """
    course = get_course_by_id(db, course_id)
    if course is None:
        raise NotFound("Course not found")
    if not course.is_published:
        raise CourseNotPurchasable("This course is not available for enrollment yet")
    if not course.is_free:
        raise CourseNotPurchasable("Payment required for this course")

    student = get_student_by_id(db, user_id)
    if student is not None and student.owns(course_id):
        raise AlreadyPurchased("You are already enrolled in this course")

    try:
        enrolled = enroll_free_course_atomic(db, user_id, course_id)
    except RuntimeError as e:
        logger.exception("Free enrollment of user %s in course %s failed", user_id, course_id)
        raise PersistenceError(str(e)) from e

    if not enrolled:
        raise AlreadyPurchased("You are already enrolled in this course")

    logger.info("Enrolled user %s in free course %s", user_id, course_id)
    return course


__all__ = [
    "create_sale",
    "list_sales",
    "create_coupon",
    "preview_coupon",
    "enroll_free",
]
