"""
Domain: Payment and entitlement errors.

Every failure in the pricing, order, verification and settlement flow is
raised as a subclass of PaymentError. Each carries the HTTP status the API
layer answers with, so routers can translate them uniformly.
"""

from __future__ import annotations


class PaymentError(Exception):
    """Base class for all payment-flow failures."""

    status_code: int = 400

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotFound(PaymentError):
    """Course, student, order or coupon record does not exist."""

    status_code = 404


class AlreadyPurchased(PaymentError):
    """The user already holds the course."""

    status_code = 409


class CourseNotPurchasable(PaymentError):
    """Course is unpublished, or its price makes it unsuitable for this flow."""

    status_code = 400


class InvalidCoupon(PaymentError):
    """No coupon with that code applies to the course."""

    status_code = 400


class ExpiredCoupon(PaymentError):
    """Coupon exists for the course but its expiry has passed."""

    status_code = 400


class InvalidSignature(PaymentError):
    """Gateway signature did not match the expected HMAC."""

    status_code = 400


class UserMismatch(PaymentError):
    """Verifying user differs from the user the order was issued to."""

    status_code = 403


class Forbidden(PaymentError):
    """Caller may not modify this course's pricing."""

    status_code = 403


class InvalidOrderData(PaymentError):
    """Order intent is missing fields or disagrees with the captured payment."""

    status_code = 400


class GatewayError(PaymentError):
    """Transport or server failure talking to the payment gateway."""

    status_code = 502


class PersistenceError(PaymentError):
    """Write failure while settling or enrolling."""

    status_code = 500


__all__ = [
    "PaymentError",
    "NotFound",
    "AlreadyPurchased",
    "CourseNotPurchasable",
    "InvalidCoupon",
    "ExpiredCoupon",
    "InvalidSignature",
    "UserMismatch",
    "Forbidden",
    "InvalidOrderData",
    "GatewayError",
    "PersistenceError",
]
