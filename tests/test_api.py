"""
Tests for the HTTP layer (`api/main.py`, `api/routers/*`).

Covers contract rules:
- Domain errors map to their HTTP statuses (400/401/403/404/409).
- Checkout end to end: quote, order, verify, replayed verify, access.
- Webhook signature failures answer 403; other events are acknowledged.
- Sale and coupon administration is limited to the course's teacher.

The application lifespan is not run; the database and gateway are
supplied through dependency overrides.
"""

from __future__ import annotations

import json
from datetime import timedelta
from decimal import Decimal
from typing import Callable, Dict, Iterator
from uuid import UUID

import pytest
from fastapi.testclient import TestClient

from api.dependencies import get_db, get_gateway
from api.main import app
from conftest import BUYER_ID, COURSE_ID, FREE_COURSE_ID, NOW, OTHER_USER_ID, TEACHER_ID, FakeStore
from services.payment_gateway import PaymentGateway

BUYER = {"X-User-Id": str(BUYER_ID)}
OTHER = {"X-User-Id": str(OTHER_USER_ID)}
TEACHER = {"X-User-Id": str(TEACHER_ID)}


@pytest.fixture
def client(store: FakeStore, gateway: PaymentGateway) -> Iterator[TestClient]:
    db = object()
    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_gateway] = lambda: gateway
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def _order(client: TestClient, headers: Dict[str, str] = BUYER, **body: str) -> Dict:
    response = client.post("/api/v1/payment/order", json={"courseId": str(COURSE_ID), **body}, headers=headers)
    assert response.status_code == 200, response.text
    return response.json()


def test_health(client: TestClient) -> None:
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_quote_with_sale_and_coupon(client: TestClient, store: FakeStore) -> None:
    store.add_course()
    store.add_sale("799", starts_at=NOW - timedelta(days=1))
    store.add_coupon("SAVE10", expires_at=NOW + timedelta(days=3650), discount_percentage="10")

    response = client.post("/api/v1/payment/quote", json={"courseId": str(COURSE_ID), "couponCode": "save10"})

    assert response.status_code == 200
    body = response.json()
    assert body["amount"] == 71900
    assert Decimal(body["pricingBreakdown"]["finalPrice"]) == Decimal("719")
    assert Decimal(body["pricingBreakdown"]["savings"]) == Decimal("280")
    assert body["pricingBreakdown"]["couponCode"] == "SAVE10"


def test_quote_invalid_coupon_is_400(client: TestClient, store: FakeStore) -> None:
    store.add_course()

    response = client.post("/api/v1/payment/quote", json={"courseId": str(COURSE_ID), "couponCode": "NOPE"})

    assert response.status_code == 400
    assert response.json()["detail"] == "Invalid coupon code"


def test_quote_unknown_course_is_404(client: TestClient) -> None:
    response = client.post("/api/v1/payment/quote", json={"courseId": str(COURSE_ID)})

    assert response.status_code == 404


def test_order_requires_identity(client: TestClient, store: FakeStore) -> None:
    store.add_course()

    assert client.post("/api/v1/payment/order", json={"courseId": str(COURSE_ID)}).status_code == 401
    assert client.post(
        "/api/v1/payment/order", json={"courseId": str(COURSE_ID)}, headers={"X-User-Id": "not-a-uuid"}
    ).status_code == 400


def test_order_already_purchased_is_409(client: TestClient, store: FakeStore) -> None:
    store.add_course()
    store.add_student(BUYER_ID, COURSE_ID)

    response = client.post("/api/v1/payment/order", json={"courseId": str(COURSE_ID)}, headers=BUYER)

    assert response.status_code == 409


def test_checkout_end_to_end(
    client: TestClient, store: FakeStore, sign_payment: Callable[[str, str], str]
) -> None:
    store.add_course()
    content_url = f"/api/v1/courses/{COURSE_ID}/content"
    assert client.get(content_url, headers=BUYER).status_code == 403

    order = _order(client, paymentOption="upi")
    assert order["amount"] == 99900
    assert order["keyId"]

    verify = {
        "orderId": order["orderId"],
        "paymentId": "pay_00000000000001",
        "signature": sign_payment(order["orderId"], "pay_00000000000001"),
    }
    first = client.put("/api/v1/payment/verify", json=verify, headers=BUYER)
    second = client.put("/api/v1/payment/verify", json=verify, headers=BUYER)

    assert first.status_code == 200, first.text
    assert first.json()["alreadySettled"] is False
    assert second.status_code == 200
    assert second.json()["alreadySettled"] is True
    assert second.json()["paymentId"] == first.json()["paymentId"]

    access = client.get(f"/api/v1/courses/{COURSE_ID}/access", headers=BUYER)
    assert access.json() == {"courseId": str(COURSE_ID), "entitled": True}
    assert client.get(content_url, headers=BUYER).status_code == 200

    history = client.get("/api/v1/payment/history", headers=BUYER).json()
    assert len(history) == 1
    assert history[0]["gatewayPaymentId"] == "pay_00000000000001"


def test_verify_by_other_user_is_403(
    client: TestClient, store: FakeStore, sign_payment: Callable[[str, str], str]
) -> None:
    store.add_course()
    order = _order(client)
    verify = {
        "orderId": order["orderId"],
        "paymentId": "pay_1",
        "signature": sign_payment(order["orderId"], "pay_1"),
    }

    response = client.put("/api/v1/payment/verify", json=verify, headers=OTHER)

    assert response.status_code == 403
    assert store.payments == {}


def test_verify_bad_signature_is_400(client: TestClient, store: FakeStore) -> None:
    store.add_course()
    order = _order(client)

    response = client.put(
        "/api/v1/payment/verify",
        json={"orderId": order["orderId"], "paymentId": "pay_1", "signature": "f" * 64},
        headers=BUYER,
    )

    assert response.status_code == 400
    assert store.payments == {}


def test_webhook_bad_signature_is_403(client: TestClient, store: FakeStore) -> None:
    response = client.post(
        "/api/v1/payment/webhook",
        content=b'{"event":"payment.captured"}',
        headers={"X-Razorpay-Signature": "0" * 64, "Content-Type": "application/json"},
    )

    assert response.status_code == 403
    assert store.settle_calls == 0


def test_webhook_captured_settles(
    client: TestClient, store: FakeStore, sign_webhook: Callable[[bytes], str]
) -> None:
    store.add_course()
    order = _order(client)
    body = json.dumps({
        "event": "payment.captured",
        "payload": {"payment": {"entity": {
            "id": "pay_hook_1",
            "order_id": order["orderId"],
            "amount": order["amount"],
        }}},
    }).encode("utf-8")

    response = client.post(
        "/api/v1/payment/webhook",
        content=body,
        headers={"X-Razorpay-Signature": sign_webhook(body), "Content-Type": "application/json"},
    )

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "event": "payment.captured"}
    assert store.students[BUYER_ID].owns(COURSE_ID)


def test_webhook_non_numeric_amount_is_400(
    client: TestClient, store: FakeStore, sign_webhook: Callable[[bytes], str]
) -> None:
    store.add_course()
    order = _order(client)
    body = json.dumps({
        "event": "payment.captured",
        "payload": {"payment": {"entity": {
            "id": "pay_hook_1",
            "order_id": order["orderId"],
            "amount": "abc",
        }}},
    }).encode("utf-8")

    response = client.post(
        "/api/v1/payment/webhook",
        content=body,
        headers={"X-Razorpay-Signature": sign_webhook(body), "Content-Type": "application/json"},
    )

    assert response.status_code == 400
    assert store.settle_calls == 0


def test_webhook_other_event_is_ignored(client: TestClient, sign_webhook: Callable[[bytes], str]) -> None:
    body = b'{"event":"order.paid","payload":{}}'

    response = client.post(
        "/api/v1/payment/webhook",
        content=body,
        headers={"X-Razorpay-Signature": sign_webhook(body), "Content-Type": "application/json"},
    )

    assert response.status_code == 200
    assert response.json() == {"status": "ignored", "event": "order.paid"}


def test_enroll_free_course(client: TestClient, store: FakeStore) -> None:
    store.add_course(course_id=FREE_COURSE_ID, price=Decimal("0"))
    url = f"/api/v1/courses/{FREE_COURSE_ID}/enroll"

    first = client.post(url, headers=BUYER)
    second = client.post(url, headers=BUYER)

    assert first.status_code == 200
    assert first.json()["courseId"] == str(FREE_COURSE_ID)
    assert second.status_code == 409


def test_enroll_paid_course_is_400(client: TestClient, store: FakeStore) -> None:
    store.add_course()

    response = client.post(f"/api/v1/courses/{COURSE_ID}/enroll", headers=BUYER)

    assert response.status_code == 400


def test_coupon_apply_preview(client: TestClient, store: FakeStore) -> None:
    store.add_course()
    store.add_coupon("FLAT100", expires_at=NOW + timedelta(days=3650), discount_amount="100")

    response = client.post(f"/api/v1/courses/{COURSE_ID}/coupon/apply", json={"code": "flat100"})

    assert response.status_code == 200
    body = response.json()
    assert body["code"] == "FLAT100"
    assert Decimal(body["discount"]) == Decimal("100")
    assert Decimal(body["finalPrice"]) == Decimal("899")


def test_sale_admin_is_teacher_only(client: TestClient, store: FakeStore) -> None:
    store.add_course()
    url = f"/api/v1/courses/{COURSE_ID}/sales"
    sale = {"amount": "799", "saleTime": "2025-06-01T00:00:00Z", "expiryTime": "2025-06-08T00:00:00Z"}

    assert client.post(url, json=sale, headers=OTHER).status_code == 403
    created = client.post(url, json=sale, headers=TEACHER)

    assert created.status_code == 201, created.text
    listed = client.get(url).json()["sales"]
    assert [s["saleId"] for s in listed] == [created.json()["saleId"]]
    assert UUID(listed[0]["courseId"]) == COURSE_ID


def test_sale_with_inverted_window_is_422(client: TestClient, store: FakeStore) -> None:
    store.add_course()

    response = client.post(
        f"/api/v1/courses/{COURSE_ID}/sales",
        json={"amount": "799", "saleTime": "2025-06-08T00:00:00Z", "expiryTime": "2025-06-01T00:00:00Z"},
        headers=TEACHER,
    )

    assert response.status_code == 422


def test_coupon_creation_by_non_teacher_is_403(client: TestClient, store: FakeStore) -> None:
    store.add_course()
    coupon = {"code": "FREEBIE", "expiresAt": "2030-01-01T00:00:00Z", "discountPercentage": "100"}

    response = client.post(f"/api/v1/courses/{COURSE_ID}/coupon", json=coupon, headers=BUYER)

    assert response.status_code == 403
    assert store.coupons == []
    quote = client.post("/api/v1/payment/quote", json={"courseId": str(COURSE_ID), "couponCode": "FREEBIE"})
    assert quote.status_code == 400
    assert client.post("/api/v1/payment/quote", json={"courseId": str(COURSE_ID)}).json()["amount"] == 99900


def test_global_coupon_route_is_gone(client: TestClient, store: FakeStore) -> None:
    coupon = {"code": "FREEBIE", "expiresAt": "2030-01-01T00:00:00Z", "discountPercentage": "100"}

    response = client.post("/api/v1/coupons", json=coupon, headers=BUYER)

    assert response.status_code == 404
    assert store.coupons == []


def test_teacher_creates_course_coupon(client: TestClient, store: FakeStore) -> None:
    store.add_course()
    coupon = {"code": "launch20", "expiresAt": "2030-01-01T00:00:00Z", "discountPercentage": "20"}

    response = client.post(f"/api/v1/courses/{COURSE_ID}/coupon", json=coupon, headers=TEACHER)

    assert response.status_code == 201, response.text
    body = response.json()
    assert body["code"] == "LAUNCH20"
    assert UUID(body["courseId"]) == COURSE_ID
    quote = client.post("/api/v1/payment/quote", json={"courseId": str(COURSE_ID), "couponCode": "LAUNCH20"})
    assert quote.json()["amount"] == 79900
