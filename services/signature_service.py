"""
Signature verification for gateway callbacks.

This is the only authentication boundary in front of settlement: both
checks run to completion, and raise, before any order intent is read or
any record is written.
"""

from __future__ import annotations

import logging
from typing import Optional

from domain.errors import InvalidSignature
from services.payment_gateway import PaymentGateway

logger = logging.getLogger(__name__)


def verify_payment_confirmation(
    gateway: PaymentGateway,
    order_id: Optional[str],
    payment_id: Optional[str],
    signature: Optional[str],
) -> None:
    """
    Verify a browser-submitted payment confirmation.

    The expected signature is HMAC-SHA256 over "order_id|payment_id" keyed
    with the gateway key secret, hex encoded.

    Raises:
        InvalidSignature: a field is missing or the signature does not match
    """
    if not (order_id and payment_id and signature):
        logger.warning("Payment confirmation missing correlation fields")
        raise InvalidSignature("Missing payment verification fields")

    try:
        gateway.verify_payment_signature(order_id, payment_id, signature)
    except InvalidSignature:
        logger.warning("Payment signature mismatch for order %s", order_id)
        raise


def verify_webhook(gateway: PaymentGateway, raw_body: bytes, signature: Optional[str]) -> None:
    """
    Verify an asynchronous webhook delivery.

    The expected signature is HMAC-SHA256 over the raw request body keyed
    with the webhook secret.

    Raises:
        InvalidSignature: the header is missing or the signature does not match
    """
    if not signature:
        logger.warning("Webhook delivered without a signature header")
        raise InvalidSignature("Missing webhook signature")

    try:
        gateway.verify_webhook_signature(raw_body, signature)
    except InvalidSignature:
        logger.warning("Webhook signature mismatch (%d byte body)", len(raw_body))
        raise


__all__ = ["verify_payment_confirmation", "verify_webhook"]
