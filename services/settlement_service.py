"""
Settlement service for verified gateway payments.

Handles:
- Signature verification before anything else is read or written
- Recovery of order intent (local pending order first, gateway notes second)
- Buyer identity check against the intent
- Atomic, idempotent commit via the settle_course_payment() PostgreSQL function

A replayed gateway payment id (client retry, webhook redelivery, or both
racing each other) settles once; later attempts report already_settled.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Mapping, Optional
from uuid import UUID

from supabase import Client  # type: ignore[import-not-found]

from domain.errors import InvalidOrderData, PersistenceError, UserMismatch
from domain.money import from_minor_units
from domain.payment import OrderIntent
from repositories.order_repository import get_pending_order
from repositories.payment_repository import settle_payment_atomic
from services.payment_gateway import PaymentGateway
from services.signature_service import verify_payment_confirmation, verify_webhook

logger = logging.getLogger(__name__)

CAPTURED_EVENT: str = "payment.captured"


@dataclass(frozen=True, slots=True)
class SettlementResult:
    """
    Outcome of a settlement attempt.

    payment_id: Local payment record id
    gateway_payment_id: Gateway payment id (idempotency key)
    amount: Charged amount in major units
    savings: Original price minus final price
    already_settled: True if this payment id had been settled before
    """
    payment_id: UUID
    gateway_payment_id: str
    course_id: UUID
    user_id: UUID
    amount: Decimal
    savings: Decimal
    already_settled: bool


@dataclass(frozen=True, slots=True)
class WebhookOutcome:
    """Result of processing one webhook delivery."""
    event: str
    handled: bool
    settlement: Optional[SettlementResult] = None


def load_order_intent(db: Client, gateway: PaymentGateway, order_id: str) -> OrderIntent:
    """
    Recover what the order was issued for.

    The local pending order is authoritative; orders without one are
    rebuilt from the gateway's notes bag.

    Raises:
        InvalidOrderData: notes bag missing or malformed
        GatewayError: order fetch failed
        PersistenceError: local lookup failed
    """
    try:
        intent = get_pending_order(db, order_id)
    except RuntimeError as e:
        logger.exception("Pending order lookup failed for %s", order_id)
        raise PersistenceError(f"Failed to load order: {e}") from e

    if intent is not None:
        return intent

    logger.info("No local record for order %s; using gateway notes", order_id)
    order = gateway.fetch_order(order_id)
    intent = OrderIntent.from_gateway_order(order)
    if intent.gateway_order_id != order_id:
        raise InvalidOrderData("Gateway returned a different order")
    return intent


def _commit(db: Client, intent: OrderIntent, gateway_payment_id: str) -> SettlementResult:
    amount = from_minor_units(intent.amount_minor)

    try:
        result = settle_payment_atomic(db, intent, gateway_payment_id, amount)
    except Exception as e:
        logger.exception("Settlement of payment %s failed", gateway_payment_id)
        raise PersistenceError(f"Failed to record payment: {e}") from e

    if not result.success or result.payment_id is None:
        logger.error(
            "Settlement of payment %s rejected: %s %s",
            gateway_payment_id, result.error_code, result.error_message,
        )
        raise PersistenceError(f"Failed to record payment: {result.error_message or result.error_code}")

    if result.already_settled:
        logger.info("Payment %s was already settled; nothing written", gateway_payment_id)
    else:
        logger.info(
            "Settled payment %s: course %s granted to user %s (%s %s)",
            gateway_payment_id, intent.course_id, intent.user_id, amount, intent.currency,
        )

    return SettlementResult(
        payment_id=result.payment_id,
        gateway_payment_id=gateway_payment_id,
        course_id=intent.course_id,
        user_id=intent.user_id,
        amount=amount,
        savings=intent.savings,
        already_settled=result.already_settled,
    )


def settle_confirmation(
    db: Client,
    gateway: PaymentGateway,
    acting_user_id: UUID,
    order_id: Optional[str],
    payment_id: Optional[str],
    signature: Optional[str],
) -> SettlementResult:
    """
    Settle a browser-submitted payment confirmation.

    Process:
    1. Verify the signature (InvalidSignature, nothing else happens)
    2. Load the order intent
    3. Check the verifying user is the buyer (UserMismatch, nothing written)
    4. Commit atomically

    Returns:
        SettlementResult
    """
    verify_payment_confirmation(gateway, order_id, payment_id, signature)

    intent = load_order_intent(db, gateway, order_id)

    if intent.user_id != acting_user_id:
        logger.warning(
            "User %s tried to settle order %s issued to %s",
            acting_user_id, order_id, intent.user_id,
        )
        raise UserMismatch("This order belongs to a different user")

    return _commit(db, intent, payment_id)


def _captured_payment(payload: Mapping[str, Any]) -> Mapping[str, Any]:
    try:
        entity = payload["payload"]["payment"]["entity"]
    except (KeyError, TypeError) as e:
        raise InvalidOrderData("Webhook payload has no payment entity") from e
    if not isinstance(entity, Mapping) or not entity.get("id") or not entity.get("order_id"):
        raise InvalidOrderData("Webhook payment entity is missing id or order_id")
    return entity


def settle_webhook(
    db: Client,
    gateway: PaymentGateway,
    raw_body: bytes,
    signature: Optional[str],
) -> WebhookOutcome:
    """
    Process a signed webhook delivery.

    Only payment.captured settles; other events are acknowledged and
    ignored. The captured amount must match the amount the order was issued
    for.

    Raises:
        InvalidSignature: signature missing or wrong (no processing at all)
        InvalidOrderData: payload malformed or amount mismatch
    """
    verify_webhook(gateway, raw_body, signature)

    try:
        payload = json.loads(raw_body)
    except ValueError as e:
        raise InvalidOrderData("Webhook body is not valid JSON") from e
    if not isinstance(payload, Mapping):
        raise InvalidOrderData("Webhook body is not a JSON object")

    event = str(payload.get("event") or "")
    if event != CAPTURED_EVENT:
        logger.info("Ignoring webhook event %r", event)
        return WebhookOutcome(event=event, handled=False)

    entity = _captured_payment(payload)
    order_id = str(entity["order_id"])
    intent = load_order_intent(db, gateway, order_id)

    captured_amount = entity.get("amount")
    if captured_amount is not None:
        try:
            captured_minor = int(captured_amount)
        except (TypeError, ValueError) as e:
            logger.warning("Non-numeric captured amount %r for order %s", captured_amount, order_id)
            raise InvalidOrderData("Captured amount is not a number") from e

        if captured_minor != intent.amount_minor:
            logger.warning(
                "Captured amount %s does not match order %s amount %d",
                captured_amount, order_id, intent.amount_minor,
            )
            raise InvalidOrderData("Captured amount does not match the order")

    settlement = _commit(db, intent, str(entity["id"]))
    return WebhookOutcome(event=event, handled=True, settlement=settlement)


__all__ = [
    "CAPTURED_EVENT",
    "SettlementResult",
    "WebhookOutcome",
    "load_order_intent",
    "settle_confirmation",
    "settle_webhook",
]
