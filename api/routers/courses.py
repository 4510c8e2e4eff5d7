"""
Courses API Endpoints.

Entitlement checks, free enrollment, coupon previews, and sale/coupon
administration for course pricing.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from supabase import Client  # type: ignore[import-not-found]

from api.dependencies import (
    get_current_user_id,
    get_db,
    get_optional_user_id,
    require_course_access,
)
from api.errors import to_http_exception
from api.models import (
    AccessResponse,
    CouponApplyRequest,
    CouponApplyResponse,
    CouponCreateRequest,
    CouponResponse,
    EnrollResponse,
    PricingBreakdown,
    SaleCreateRequest,
    SaleListResponse,
    SaleResponse,
)
from domain.errors import PaymentError
from domain.sale import Sale
from domain.time import parse_utc_datetime
from repositories.course_repository import get_course_by_id
from services.catalog_service import (
    create_coupon,
    create_sale,
    enroll_free,
    list_sales,
    preview_coupon,
)
from services.entitlement_service import is_entitled

router = APIRouter()


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    return parse_utc_datetime(value) if value is not None else None


def _sale_response(sale: Sale) -> SaleResponse:
    return SaleResponse(
        sale_id=sale.sale_id,
        course_id=sale.course_id,
        amount=sale.amount,
        starts_at=sale.starts_at,
        expires_at=sale.expires_at,
        currency=sale.currency,
        platform=sale.platform,
        notes=sale.notes,
    )


@router.get(
    "/courses/{course_id}/access",
    response_model=AccessResponse,
    summary="Check Course Access",
    description="Whether the caller may access the course's content."
)
def course_access(
    course_id: UUID,
    user_id: Optional[UUID] = Depends(get_optional_user_id),
    db: Client = Depends(get_db),
):
    """
    Check entitlement for the calling user.

    Free courses are open to any signed-in user; paid courses require a
    completed purchase. Anonymous callers are never entitled.
    """
    try:
        return AccessResponse(course_id=course_id, entitled=is_entitled(db, user_id, course_id))

    except Exception as e:
        raise HTTPException(
            status_code=500,
            detail=f"Failed to check access: {str(e)}"
        )


@router.get(
    "/courses/{course_id}/content",
    summary="Course Content Manifest",
    description="Content manifest for entitled users; 403 otherwise."
)
def course_content(
    course_id: UUID = Depends(require_course_access),
    db: Client = Depends(get_db),
):
    course = get_course_by_id(db, course_id)
    if course is None:
        raise HTTPException(status_code=404, detail="Course not found")
    return {
        "courseId": str(course.course_id),
        "title": course.title,
        "category": course.category,
        "duration": course.duration,
    }


@router.post(
    "/courses/{course_id}/enroll",
    response_model=EnrollResponse,
    summary="Enroll in Free Course",
    description="Enroll the caller in a published course priced at zero."
)
def enroll_in_course(
    course_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    db: Client = Depends(get_db),
):
    try:
        course = enroll_free(db, user_id, course_id)
        return EnrollResponse(
            course_id=course.course_id,
            course_name=course.title,
            message="Successfully enrolled in course!",
        )

    except PaymentError as e:
        raise to_http_exception(e)
    except Exception as e:
        raise HTTPException(
            status_code=500,
            detail=f"Failed to enroll: {str(e)}"
        )


@router.post(
    "/courses/{course_id}/coupon/apply",
    response_model=CouponApplyResponse,
    summary="Preview Coupon",
    description="Show the discount a coupon gives on a course. Nothing is reserved."
)
def apply_coupon(
    course_id: UUID,
    request: CouponApplyRequest,
    db: Client = Depends(get_db),
):
    try:
        quote = preview_coupon(db, course_id, request.code)
        return CouponApplyResponse(
            code=quote.coupon.code,
            discount=quote.coupon_discount,
            final_price=quote.final_price,
            pricing_breakdown=PricingBreakdown(**quote.breakdown()),
            message="Coupon applied successfully",
        )

    except PaymentError as e:
        raise to_http_exception(e)
    except Exception as e:
        raise HTTPException(
            status_code=500,
            detail=f"Failed to apply coupon: {str(e)}"
        )


@router.get(
    "/courses/{course_id}/sales",
    response_model=SaleListResponse,
    summary="List Course Sales",
)
def get_course_sales(course_id: UUID, db: Client = Depends(get_db)):
    try:
        return SaleListResponse(sales=[_sale_response(s) for s in list_sales(db, course_id)])

    except PaymentError as e:
        raise to_http_exception(e)
    except Exception as e:
        raise HTTPException(
            status_code=500,
            detail=f"Failed to list sales: {str(e)}"
        )


@router.post(
    "/courses/{course_id}/sales",
    response_model=SaleResponse,
    status_code=201,
    summary="Create Course Sale",
    description="Open a time-boxed sale price on a course owned by the caller."
)
def post_course_sale(
    course_id: UUID,
    request: SaleCreateRequest,
    user_id: UUID = Depends(get_current_user_id),
    db: Client = Depends(get_db),
):
    try:
        sale = create_sale(
            db,
            teacher_id=user_id,
            course_id=course_id,
            amount=request.amount,
            starts_at=_as_utc(request.starts_at),
            expires_at=_as_utc(request.expires_at),
            currency=request.currency,
            platform=request.platform,
            notes=request.notes,
        )
        return _sale_response(sale)

    except PaymentError as e:
        raise to_http_exception(e)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except Exception as e:
        raise HTTPException(
            status_code=500,
            detail=f"Failed to create sale: {str(e)}"
        )


@router.post(
    "/courses/{course_id}/coupon",
    response_model=CouponResponse,
    status_code=201,
    summary="Create Course Coupon",
    description="Create a coupon for a course you teach, with one discount mode."
)
def post_coupon(
    course_id: UUID,
    request: CouponCreateRequest,
    user_id: UUID = Depends(get_current_user_id),
    db: Client = Depends(get_db),
):
    try:
        coupon = create_coupon(
            db,
            teacher_id=user_id,
            course_id=course_id,
            code=request.code,
            expires_at=_as_utc(request.expires_at),
            discount_percentage=request.discount_percentage,
            discount_amount=request.discount_amount,
        )
        return CouponResponse(
            coupon_id=coupon.coupon_id,
            code=coupon.code,
            expires_at=coupon.expires_at,
            course_id=coupon.course_id,
            discount_percentage=coupon.discount_percentage,
            discount_amount=coupon.discount_amount,
        )

    except PaymentError as e:
        raise to_http_exception(e)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except Exception as e:
        raise HTTPException(
            status_code=500,
            detail=f"Failed to create coupon: {str(e)}"
        )
