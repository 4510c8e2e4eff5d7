"""
API Request and Response Models.

Pydantic models for validating API requests and serializing responses.
Wire names are camelCase (matching the checkout frontend); Python
attributes are snake_case.
"""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator


def _blank_to_none(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


# ============================================================================
# Pricing Models
# ============================================================================

class PricingBreakdown(BaseModel):
    """How the final price was reached."""
    original_price: Decimal = Field(..., alias="originalPrice")
    sale_price: Optional[Decimal] = Field(None, alias="salePrice")
    sale_discount: Decimal = Field(..., alias="saleDiscount")
    coupon_code: Optional[str] = Field(None, alias="couponCode")
    coupon_discount: Decimal = Field(..., alias="couponDiscount")
    savings: Decimal
    final_price: Decimal = Field(..., alias="finalPrice")
    currency: str

    class Config:
        populate_by_name = True
        json_schema_extra = {
            "example": {
                "originalPrice": "999",
                "salePrice": "799",
                "saleDiscount": "200",
                "couponCode": "SAVE10",
                "couponDiscount": "80",
                "savings": "280",
                "finalPrice": "719",
                "currency": "INR"
            }
        }


class QuoteRequest(BaseModel):
    """Request to price a course."""
    course_id: UUID = Field(..., alias="courseId")
    coupon_code: Optional[str] = Field(None, alias="couponCode", max_length=50)

    @field_validator("coupon_code")
    @classmethod
    def normalize_coupon_code(cls, value: Optional[str]) -> Optional[str]:
        return _blank_to_none(value)

    class Config:
        populate_by_name = True
        json_schema_extra = {
            "example": {
                "courseId": "123e4567-e89b-12d3-a456-426614174000",
                "couponCode": "SAVE10"
            }
        }


class QuoteResponse(BaseModel):
    """Resolved price for a course."""
    course_id: UUID = Field(..., alias="courseId")
    amount: int = Field(..., description="Chargeable amount in minor units (paise)")
    pricing_breakdown: PricingBreakdown = Field(..., alias="pricingBreakdown")

    class Config:
        populate_by_name = True


# ============================================================================
# Order Models
# ============================================================================

class OrderRequest(BaseModel):
    """Request to open a gateway checkout for a course."""
    course_id: UUID = Field(..., alias="courseId")
    coupon_code: Optional[str] = Field(None, alias="couponCode", max_length=50)
    payment_option: Optional[str] = Field(None, alias="paymentOption", max_length=32)
    card_brand: Optional[str] = Field(None, alias="cardBrand", max_length=32)

    @field_validator("coupon_code")
    @classmethod
    def normalize_coupon_code(cls, value: Optional[str]) -> Optional[str]:
        return _blank_to_none(value)

    class Config:
        populate_by_name = True
        json_schema_extra = {
            "example": {
                "courseId": "123e4567-e89b-12d3-a456-426614174000",
                "couponCode": "SAVE10",
                "paymentOption": "upi"
            }
        }


class OrderResponse(BaseModel):
    """Gateway order for the checkout widget."""
    order_id: str = Field(..., alias="orderId")
    amount: int = Field(..., description="Amount in minor units (paise)")
    currency: str
    key_id: str = Field(..., alias="keyId")
    pricing_breakdown: PricingBreakdown = Field(..., alias="pricingBreakdown")

    class Config:
        populate_by_name = True
        json_schema_extra = {
            "example": {
                "orderId": "order_NXh0aU8sAbCdEf",
                "amount": 71900,
                "currency": "INR",
                "keyId": "rzp_test_xxxxxxxx",
                "pricingBreakdown": {}
            }
        }


# ============================================================================
# Verification Models
# ============================================================================

class VerifyRequest(BaseModel):
    """Browser callback fields returned by the checkout widget."""
    order_id: str = Field(..., alias="orderId", min_length=1)
    payment_id: str = Field(..., alias="paymentId", min_length=1)
    signature: str = Field(..., min_length=1)

    class Config:
        populate_by_name = True


class VerifyResponse(BaseModel):
    """Settled payment."""
    payment_id: UUID = Field(..., alias="paymentId")
    gateway_payment_id: str = Field(..., alias="gatewayPaymentId")
    course_id: UUID = Field(..., alias="courseId")
    amount: Decimal
    savings: Decimal
    already_settled: bool = Field(..., alias="alreadySettled")
    message: str

    class Config:
        populate_by_name = True


class WebhookResponse(BaseModel):
    status: str
    event: Optional[str] = None


class PaymentHistoryItem(BaseModel):
    payment_id: UUID = Field(..., alias="paymentId")
    course_id: UUID = Field(..., alias="courseId")
    amount: Decimal
    original_amount: Decimal = Field(..., alias="originalAmount")
    currency: str
    status: str
    gateway_payment_id: str = Field(..., alias="gatewayPaymentId")
    created_at: Optional[datetime] = Field(None, alias="createdAt")

    class Config:
        populate_by_name = True


# ============================================================================
# Course Models
# ============================================================================

class AccessResponse(BaseModel):
    course_id: UUID = Field(..., alias="courseId")
    entitled: bool

    class Config:
        populate_by_name = True


class EnrollResponse(BaseModel):
    course_id: UUID = Field(..., alias="courseId")
    course_name: str = Field(..., alias="courseName")
    message: str

    class Config:
        populate_by_name = True


class CouponApplyRequest(BaseModel):
    code: str = Field(..., min_length=1, max_length=50)


class CouponApplyResponse(BaseModel):
    code: str
    discount: Decimal
    final_price: Decimal = Field(..., alias="finalPrice")
    pricing_breakdown: PricingBreakdown = Field(..., alias="pricingBreakdown")
    message: str

    class Config:
        populate_by_name = True


class SaleCreateRequest(BaseModel):
    amount: Decimal = Field(..., ge=0)
    starts_at: datetime = Field(..., alias="saleTime")
    expires_at: Optional[datetime] = Field(None, alias="expiryTime")
    currency: str = "INR"
    platform: Optional[str] = None
    notes: Optional[str] = None

    class Config:
        populate_by_name = True
        json_schema_extra = {
            "example": {
                "amount": "799",
                "saleTime": "2025-01-01T00:00:00Z",
                "expiryTime": "2025-01-08T00:00:00Z"
            }
        }


class SaleResponse(BaseModel):
    sale_id: UUID = Field(..., alias="saleId")
    course_id: UUID = Field(..., alias="courseId")
    amount: Decimal
    starts_at: datetime = Field(..., alias="saleTime")
    expires_at: Optional[datetime] = Field(None, alias="expiryTime")
    currency: str
    platform: Optional[str] = None
    notes: Optional[str] = None

    class Config:
        populate_by_name = True


class SaleListResponse(BaseModel):
    sales: List[SaleResponse]


class CouponCreateRequest(BaseModel):
    code: str = Field(..., min_length=1, max_length=50)
    expires_at: datetime = Field(..., alias="expiresAt")
    discount_percentage: Optional[Decimal] = Field(None, alias="discountPercentage", ge=0, le=100)
    discount_amount: Optional[Decimal] = Field(None, alias="discountAmount", ge=0)

    class Config:
        populate_by_name = True


class CouponResponse(BaseModel):
    coupon_id: UUID = Field(..., alias="couponId")
    code: str
    expires_at: datetime = Field(..., alias="expiresAt")
    course_id: Optional[UUID] = Field(None, alias="courseId")
    discount_percentage: Optional[Decimal] = Field(None, alias="discountPercentage")
    discount_amount: Optional[Decimal] = Field(None, alias="discountAmount")

    class Config:
        populate_by_name = True

