"""
Payments API Endpoints.

Endpoints for pricing a course, opening a gateway order, verifying the
browser confirmation, and receiving gateway webhooks.
"""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Header, HTTPException, Request
from fastapi.concurrency import run_in_threadpool
from supabase import Client  # type: ignore[import-not-found]

from api.dependencies import get_current_user_id, get_db, get_gateway
from api.errors import to_http_exception
from api.models import (
    OrderRequest as APIOrderRequest,
    OrderResponse,
    PaymentHistoryItem,
    PricingBreakdown,
    QuoteRequest,
    QuoteResponse,
    VerifyRequest,
    VerifyResponse,
    WebhookResponse,
)
from domain.errors import InvalidSignature, PaymentError
from domain.money import MINIMUM_CHARGE, to_minor_units
from repositories.payment_repository import list_payments_by_student
from services.order_service import OrderRequest, issue_order
from services.payment_gateway import PaymentGateway
from services.pricing_service import PriceQuote, resolve_price
from services.settlement_service import settle_confirmation, settle_webhook

router = APIRouter()


def _breakdown(quote: PriceQuote) -> PricingBreakdown:
    return PricingBreakdown(**quote.breakdown())


@router.post(
    "/payment/quote",
    response_model=QuoteResponse,
    summary="Price a Course",
    description="Resolve the price of a course with any active sale and an optional coupon."
)
def quote_course(request: QuoteRequest, db: Client = Depends(get_db)):
    """
    Resolve the chargeable price for a course.

    **Pricing order:**
    1. Base price
    2. Active sale amount replaces the base price
    3. Coupon discount applies to whichever price was active

    An invalid or expired coupon is rejected with 400; it is never ignored.
    """
    try:
        quote = resolve_price(db, request.course_id, request.coupon_code)
        amount = to_minor_units(max(quote.final_price, MINIMUM_CHARGE)) if not quote.course.is_free else 0
        return QuoteResponse(
            course_id=request.course_id,
            amount=amount,
            pricing_breakdown=_breakdown(quote),
        )

    except PaymentError as e:
        raise to_http_exception(e)
    except Exception as e:
        raise HTTPException(
            status_code=500,
            detail=f"Failed to calculate price: {str(e)}"
        )


@router.post(
    "/payment/order",
    response_model=OrderResponse,
    summary="Create Payment Order",
    description="Create a gateway order for a course at its resolved price."
)
def create_payment_order(
    request: APIOrderRequest,
    user_id: UUID = Depends(get_current_user_id),
    db: Client = Depends(get_db),
    gateway: PaymentGateway = Depends(get_gateway),
):
    """
    Open a hosted checkout for a course.

    **Rejections:**
    - 404 course not found
    - 409 course already purchased
    - 400 invalid or expired coupon, unpublished or free course
    - 502 payment gateway unavailable

    **Example request:**
    ```json
    {
      "courseId": "123e4567-e89b-12d3-a456-426614174000",
      "couponCode": "SAVE10",
      "paymentOption": "upi"
    }
    ```
    """
    try:
        issued = issue_order(
            db,
            gateway,
            OrderRequest(
                user_id=user_id,
                course_id=request.course_id,
                coupon_code=request.coupon_code,
                payment_option=request.payment_option,
                card_brand=request.card_brand,
            ),
        )
        return OrderResponse(
            order_id=issued.order_id,
            amount=issued.amount_minor,
            currency=issued.currency,
            key_id=issued.key_id,
            pricing_breakdown=_breakdown(issued.quote),
        )

    except PaymentError as e:
        raise to_http_exception(e)
    except Exception as e:
        raise HTTPException(
            status_code=500,
            detail=f"Failed to create payment order: {str(e)}"
        )


@router.put(
    "/payment/verify",
    response_model=VerifyResponse,
    summary="Verify Payment",
    description="Verify the checkout callback signature and grant the course."
)
def verify_payment(
    request: VerifyRequest,
    user_id: UUID = Depends(get_current_user_id),
    db: Client = Depends(get_db),
    gateway: PaymentGateway = Depends(get_gateway),
):
    """
    Settle a payment confirmed by the checkout widget.

    **Process:**
    1. Verifies HMAC-SHA256(orderId|paymentId) against the signature
    2. Loads the order's recorded intent
    3. Checks the caller is the buyer the order was issued to
    4. Records the payment and grants access in one transaction

    Retrying the same payment is safe: the response reports
    `alreadySettled: true` and nothing new is written.
    """
    try:
        result = settle_confirmation(
            db,
            gateway,
            acting_user_id=user_id,
            order_id=request.order_id,
            payment_id=request.payment_id,
            signature=request.signature,
        )
        return VerifyResponse(
            payment_id=result.payment_id,
            gateway_payment_id=result.gateway_payment_id,
            course_id=result.course_id,
            amount=result.amount,
            savings=result.savings,
            already_settled=result.already_settled,
            message="Payment already verified" if result.already_settled else "Payment verified successfully",
        )

    except PaymentError as e:
        raise to_http_exception(e)
    except Exception as e:
        raise HTTPException(
            status_code=500,
            detail=f"Failed to verify payment: {str(e)}"
        )


@router.post(
    "/payment/webhook",
    response_model=WebhookResponse,
    summary="Gateway Webhook",
    description="Receive signed gateway events; payment.captured settles the order."
)
async def payment_webhook(
    request: Request,
    x_razorpay_signature: Optional[str] = Header(default=None),
    db: Client = Depends(get_db),
    gateway: PaymentGateway = Depends(get_gateway),
):
    """
    Handle a gateway webhook delivery.

    The signature header is checked against the raw body before anything
    is parsed. A bad signature answers 403 with no further processing.
    """
    raw_body = await request.body()
    try:
        outcome = await run_in_threadpool(settle_webhook, db, gateway, raw_body, x_razorpay_signature)
        return WebhookResponse(
            status="ok" if outcome.handled else "ignored",
            event=outcome.event,
        )

    except InvalidSignature as e:
        raise to_http_exception(e, status_code=403)
    except PaymentError as e:
        raise to_http_exception(e)
    except Exception as e:
        raise HTTPException(
            status_code=500,
            detail=f"Webhook handler error: {str(e)}"
        )


@router.get(
    "/payment/history",
    response_model=List[PaymentHistoryItem],
    summary="Payment History",
    description="Completed payments of the calling user, newest first."
)
def payment_history(
    user_id: UUID = Depends(get_current_user_id),
    db: Client = Depends(get_db),
):
    try:
        return [
            PaymentHistoryItem(
                payment_id=p.payment_id,
                course_id=p.course_id,
                amount=p.amount,
                original_amount=p.original_amount,
                currency=p.currency,
                status=p.status.value,
                gateway_payment_id=p.gateway_payment_id,
                created_at=p.created_at,
            )
            for p in list_payments_by_student(db, user_id)
        ]

    except Exception as e:
        raise HTTPException(
            status_code=500,
            detail=f"Failed to list payments: {str(e)}"
        )
