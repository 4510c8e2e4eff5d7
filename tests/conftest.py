"""
Pytest configuration and shared fixtures.

Service tests run against an in-memory FakeStore that replaces the
repository functions imported by the service and router modules, and a
PaymentGateway wrapping a fake Razorpay client whose `order` resource is
in-memory but whose `utility` (HMAC verification) is the real SDK.
"""

from __future__ import annotations

import hashlib
import hmac
from dataclasses import replace
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional
from uuid import UUID, uuid4

import pytest
import razorpay
from razorpay import errors as razorpay_errors

from domain.coupon import Coupon, normalize_code
from domain.course import Course, Student
from domain.payment import OrderIntent, OrderStatus, PaymentRecord
from domain.sale import Sale
from repositories.payment_repository import AtomicSettlementResult
from services.payment_gateway import PaymentGateway

KEY_ID = "rzp_test_1DP5mmOlF5G5ag"
KEY_SECRET = "test_key_secret"
WEBHOOK_SECRET = "test_webhook_secret"

TEACHER_ID = UUID("00000000-0000-0000-0000-0000000000a1")
BUYER_ID = UUID("00000000-0000-0000-0000-0000000000b1")
OTHER_USER_ID = UUID("00000000-0000-0000-0000-0000000000b2")
COURSE_ID = UUID("00000000-0000-0000-0000-0000000000c1")
FREE_COURSE_ID = UUID("00000000-0000-0000-0000-0000000000c2")

NOW = datetime(2025, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


class FakeOrders:
    """In-memory stand-in for razorpay.Client().order."""

    def __init__(self) -> None:
        self.created: List[Dict[str, Any]] = []
        self.orders: Dict[str, Dict[str, Any]] = {}
        self.fail_with: Optional[Exception] = None

    def create(self, data: Dict[str, Any]) -> Dict[str, Any]:
        if self.fail_with is not None:
            raise self.fail_with
        order_id = f"order_{len(self.created) + 1:014d}"
        order = {
            "id": order_id,
            "entity": "order",
            "amount": data["amount"],
            "currency": data["currency"],
            "receipt": data["receipt"],
            "notes": dict(data["notes"]),
            "status": "created",
        }
        self.created.append(data)
        self.orders[order_id] = order
        return order

    def fetch(self, order_id: str) -> Dict[str, Any]:
        if self.fail_with is not None:
            raise self.fail_with
        if order_id not in self.orders:
            raise razorpay_errors.BadRequestError("The id provided does not exist")
        return self.orders[order_id]


class FakeRazorpayClient:
    def __init__(self, key_id: str, key_secret: str) -> None:
        real = razorpay.Client(auth=(key_id, key_secret))
        self.auth = real.auth
        self.utility = real.utility
        self.order = FakeOrders()


class FakeStore:
    """
    In-memory persistence with the same contracts as the repositories.

    settle_payment_atomic mirrors the settle_course_payment() SQL function:
    one payment per gateway payment id, set-semantics entitlement updates.
    """

    def __init__(self) -> None:
        self.courses: Dict[UUID, Course] = {}
        self.students: Dict[UUID, Student] = {}
        self.sales: List[Sale] = []
        self.coupons: List[Coupon] = []
        self.orders: Dict[str, OrderIntent] = {}
        self.payments: Dict[str, PaymentRecord] = {}
        self.settle_calls = 0
        self.fail_order_insert = False
        self.fail_settlement = False

    # -- seeding ----------------------------------------------------------

    def add_course(self, **overrides: Any) -> Course:
        values: Dict[str, Any] = {
            "course_id": COURSE_ID,
            "title": "Python for Data Analysis",
            "price": Decimal("999"),
            "teacher_id": TEACHER_ID,
            "is_published": True,
        }
        values.update(overrides)
        course = Course(**values)
        self.courses[course.course_id] = course
        return course

    def add_student(self, student_id: UUID, *course_ids: UUID) -> Student:
        student = Student(student_id=student_id, purchased_courses=frozenset(course_ids))
        self.students[student_id] = student
        return student

    def add_sale(self, amount: str, starts_at: datetime, expires_at: Optional[datetime] = None,
                 course_id: UUID = COURSE_ID) -> Sale:
        sale = Sale(
            sale_id=uuid4(),
            course_id=course_id,
            teacher_id=TEACHER_ID,
            amount=Decimal(amount),
            starts_at=starts_at,
            expires_at=expires_at,
        )
        self.sales.append(sale)
        return sale

    def add_coupon(self, code: str, expires_at: datetime, course_id: Optional[UUID] = COURSE_ID,
                   discount_percentage: Optional[str] = None,
                   discount_amount: Optional[str] = None) -> Coupon:
        coupon = Coupon(
            coupon_id=uuid4(),
            code=code,
            expires_at=expires_at,
            course_id=course_id,
            discount_percentage=Decimal(discount_percentage) if discount_percentage is not None else None,
            discount_amount=Decimal(discount_amount) if discount_amount is not None else None,
        )
        self.coupons.append(coupon)
        return coupon

    # -- repository contracts ---------------------------------------------

    def get_course_by_id(self, db: Any, course_id: UUID) -> Optional[Course]:
        return self.courses.get(course_id)

    def get_student_by_id(self, db: Any, student_id: UUID) -> Optional[Student]:
        return self.students.get(student_id)

    def list_sales_started_by(self, db: Any, course_id: UUID, at: datetime) -> List[Sale]:
        rows = [
            s for s in self.sales
            if s.course_id == course_id and s.starts_at <= at and (s.expires_at is None or s.expires_at >= at)
        ]
        return sorted(rows, key=lambda s: s.starts_at, reverse=True)

    def list_sales_by_course(self, db: Any, course_id: UUID) -> List[Sale]:
        rows = [s for s in self.sales if s.course_id == course_id]
        return sorted(rows, key=lambda s: s.starts_at, reverse=True)

    def record_sale(self, db: Any, course_id: UUID, teacher_id: UUID, amount: Decimal, starts_at: datetime,
                    expires_at: Optional[datetime] = None, currency: str = "INR",
                    platform: Optional[str] = None, notes: Optional[str] = None) -> Sale:
        sale = Sale(
            sale_id=uuid4(),
            course_id=course_id,
            teacher_id=teacher_id,
            amount=amount,
            starts_at=starts_at,
            expires_at=expires_at,
            currency=currency,
            platform=platform,
            notes=notes,
        )
        self.sales.append(sale)
        return sale

    def find_coupons_for_course(self, db: Any, code: str, course_id: UUID) -> List[Coupon]:
        return [c for c in self.coupons if c.code == code and c.course_id in (None, course_id)]

    def create_coupon(self, db: Any, code: str, expires_at: datetime, course_id: Optional[UUID] = None,
                      discount_percentage: Optional[Decimal] = None,
                      discount_amount: Optional[Decimal] = None) -> Coupon:
        if any(c.code == normalize_code(code) for c in self.coupons):
            raise RuntimeError("Failed to create coupon: duplicate key value violates unique constraint")
        coupon = Coupon(
            coupon_id=uuid4(),
            code=code,
            expires_at=expires_at,
            course_id=course_id,
            discount_percentage=discount_percentage,
            discount_amount=discount_amount,
        )
        self.coupons.append(coupon)
        return coupon

    def insert_pending_order(self, db: Any, intent: OrderIntent) -> OrderIntent:
        if self.fail_order_insert:
            raise RuntimeError("Failed to record pending order: connection reset")
        self.orders[intent.gateway_order_id] = intent
        return intent

    def get_pending_order(self, db: Any, gateway_order_id: str) -> Optional[OrderIntent]:
        return self.orders.get(gateway_order_id)

    def _grant(self, student_id: UUID, course_id: UUID, amount: Decimal) -> None:
        student = self.students.get(student_id) or Student(student_id=student_id)
        self.students[student_id] = replace(
            student, purchased_courses=student.purchased_courses | {course_id}
        )
        course = self.courses[course_id]
        if student_id not in course.purchaser_ids:
            self.courses[course_id] = replace(
                course,
                purchaser_ids=course.purchaser_ids | {student_id},
                students_count=course.students_count + 1,
                revenue=course.revenue + amount,
            )

    def settle_payment_atomic(self, db: Any, intent: OrderIntent, gateway_payment_id: str,
                              amount: Decimal) -> AtomicSettlementResult:
        self.settle_calls += 1
        if self.fail_settlement:
            return AtomicSettlementResult(
                success=False,
                payment_id=None,
                already_settled=False,
                error_code="RPC_ERROR",
                error_message="could not serialize access",
            )

        existing = self.payments.get(gateway_payment_id)
        if existing is not None:
            return AtomicSettlementResult(True, existing.payment_id, True, None, None)

        record = PaymentRecord(
            payment_id=uuid4(),
            student_id=intent.user_id,
            course_id=intent.course_id,
            amount=amount,
            original_amount=intent.original_price,
            gateway_order_id=intent.gateway_order_id,
            gateway_payment_id=gateway_payment_id,
            currency=intent.currency,
            coupon_id=intent.coupon_id,
            sale_id=intent.sale_id,
            payment_option=intent.payment_option,
            card_brand=intent.card_brand,
            created_at=NOW,
        )
        self.payments[gateway_payment_id] = record
        self._grant(intent.user_id, intent.course_id, amount)
        if intent.gateway_order_id in self.orders:
            self.orders[intent.gateway_order_id] = replace(
                self.orders[intent.gateway_order_id], status=OrderStatus.SETTLED
            )
        return AtomicSettlementResult(True, record.payment_id, False, None, None)

    def enroll_free_course_atomic(self, db: Any, student_id: UUID, course_id: UUID) -> bool:
        student = self.students.get(student_id)
        if student is not None and student.owns(course_id):
            return False
        self._grant(student_id, course_id, Decimal("0"))
        return True

    def list_payments_by_student(self, db: Any, student_id: UUID) -> List[PaymentRecord]:
        return [p for p in self.payments.values() if p.student_id == student_id]


_PATCHES = {
    "services.pricing_service": ("get_course_by_id", "list_sales_started_by", "find_coupons_for_course"),
    "services.order_service": ("get_student_by_id", "insert_pending_order"),
    "services.settlement_service": ("get_pending_order", "settle_payment_atomic"),
    "services.entitlement_service": ("get_course_by_id", "get_student_by_id"),
    "services.catalog_service": (
        "get_course_by_id",
        "get_student_by_id",
        "enroll_free_course_atomic",
        "list_sales_by_course",
        "record_sale",
    ),
    "api.routers.courses": ("get_course_by_id",),
    "api.routers.payments": ("list_payments_by_student",),
}


@pytest.fixture
def store(monkeypatch: pytest.MonkeyPatch) -> FakeStore:
    """FakeStore wired into every module that reads or writes persistence."""

    import importlib

    fake = FakeStore()
    for module_name, names in _PATCHES.items():
        module = importlib.import_module(module_name)
        for name in names:
            monkeypatch.setattr(module, name, getattr(fake, name))
    # catalog_service imports the repository's create_coupon under another name
    monkeypatch.setattr("services.catalog_service.insert_coupon", fake.create_coupon)
    return fake


@pytest.fixture
def gateway() -> PaymentGateway:
    return PaymentGateway(
        KEY_ID,
        KEY_SECRET,
        WEBHOOK_SECRET,
        client=FakeRazorpayClient(KEY_ID, KEY_SECRET),
    )


@pytest.fixture
def sign_payment() -> Callable[[str, str], str]:
    """Checkout-widget signature: HMAC-SHA256(order_id|payment_id, key_secret)."""

    def _sign(order_id: str, payment_id: str) -> str:
        message = f"{order_id}|{payment_id}".encode("utf-8")
        return hmac.new(KEY_SECRET.encode("utf-8"), message, hashlib.sha256).hexdigest()

    return _sign


@pytest.fixture
def sign_webhook() -> Callable[[bytes], str]:
    """Webhook signature: HMAC-SHA256(raw_body, webhook_secret)."""

    def _sign(raw_body: bytes) -> str:
        return hmac.new(WEBHOOK_SECRET.encode("utf-8"), raw_body, hashlib.sha256).hexdigest()

    return _sign
