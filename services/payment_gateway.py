"""
Payment gateway client (Razorpay).

Wraps the razorpay SDK behind a small object that is constructed once from
settings and injected into handlers. It owns the key secret (client
signatures) and the webhook secret (webhook bodies).

Gateway failures are translated to domain.errors.GatewayError; signature
mismatches to domain.errors.InvalidSignature.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Mapping

import razorpay
import requests
from razorpay import errors as razorpay_errors

from domain.errors import GatewayError, InvalidSignature

logger = logging.getLogger(__name__)

_TRANSPORT_ERRORS = (
    razorpay_errors.BadRequestError,
    razorpay_errors.ServerError,
    razorpay_errors.GatewayError,
    requests.RequestException,
)


class PaymentGateway:
    """
    Razorpay client with explicit lifecycle.

    Example:
        gateway = PaymentGateway(key_id, key_secret, webhook_secret)
        order = gateway.create_order(71900, "INR", "rcpt_...", {"course_id": "..."})
    """

    def __init__(
        self,
        key_id: str,
        key_secret: str,
        webhook_secret: str,
        client: Any = None,
    ) -> None:
        if not key_id or not key_secret:
            raise RuntimeError("Razorpay key id and key secret are required")
        if not webhook_secret:
            raise RuntimeError("Razorpay webhook secret is required")

        self.key_id = key_id
        self._webhook_secret = webhook_secret
        self._client = client or razorpay.Client(auth=(key_id, key_secret))

    def create_order(
        self,
        amount_minor: int,
        currency: str,
        receipt: str,
        notes: Mapping[str, str],
    ) -> Dict[str, Any]:
        """
        Create a hosted-checkout order.

        Args:
            amount_minor: Amount in minor units (paise)
            currency: Currency code
            receipt: Merchant receipt id (unique per order)
            notes: Metadata bag carried back at verification time

        Returns:
            Gateway order dict (contains "id", "amount", "currency", "notes")
        """

        try:
            return self._client.order.create({
                "amount": amount_minor,
                "currency": currency,
                "receipt": receipt,
                "payment_capture": 1,
                "notes": dict(notes),
            })
        except _TRANSPORT_ERRORS as e:
            logger.exception("Razorpay order creation failed for receipt %s", receipt)
            raise GatewayError(f"Failed to create payment order: {e}") from e

    def fetch_order(self, order_id: str) -> Dict[str, Any]:
        """Fetch an order, including its notes bag."""

        try:
            return self._client.order.fetch(order_id)
        except _TRANSPORT_ERRORS as e:
            logger.exception("Razorpay order fetch failed for %s", order_id)
            raise GatewayError(f"Failed to fetch payment order: {e}") from e

    def verify_payment_signature(self, order_id: str, payment_id: str, signature: str) -> None:
        """
        Check HMAC-SHA256(order_id|payment_id, key_secret) against `signature`.

        Raises:
            InvalidSignature: on mismatch
        """

        try:
            verified = self._client.utility.verify_payment_signature({
                "razorpay_order_id": order_id,
                "razorpay_payment_id": payment_id,
                "razorpay_signature": signature,
            })
        except razorpay_errors.SignatureVerificationError as e:
            raise InvalidSignature("Invalid payment signature") from e
        if verified is False:
            raise InvalidSignature("Invalid payment signature")

    def verify_webhook_signature(self, raw_body: bytes, signature: str) -> None:
        """
        Check HMAC-SHA256(raw_body, webhook_secret) against `signature`.

        Raises:
            InvalidSignature: on mismatch or undecodable body
        """

        try:
            body = raw_body.decode("utf-8")
        except UnicodeDecodeError as e:
            raise InvalidSignature("Webhook body is not valid UTF-8") from e

        try:
            verified = self._client.utility.verify_webhook_signature(
                body, signature, self._webhook_secret
            )
        except razorpay_errors.SignatureVerificationError as e:
            raise InvalidSignature("Invalid webhook signature") from e
        if verified is False:
            raise InvalidSignature("Invalid webhook signature")


__all__ = ["PaymentGateway"]
