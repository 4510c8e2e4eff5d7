"""
Domain: Courses and students.

A Course carries the base price and the set of students who purchased it.
A Student carries the set of purchased course ids. Both sets have set
semantics; settlement and free enrollment are the only writers.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import FrozenSet, Optional
from uuid import UUID

from .time import require_utc_timestamp


@dataclass(frozen=True, slots=True)
class Course:
    """
    Sellable course.

    price is in major currency units (e.g. rupees) and must be non-negative.
    A price of zero means open enrollment.
    """

    course_id: UUID
    title: str
    price: Decimal
    teacher_id: UUID
    currency: str = "INR"
    is_published: bool = False
    purchaser_ids: FrozenSet[UUID] = field(default_factory=frozenset)
    students_count: int = 0
    revenue: Decimal = Decimal("0")
    category: Optional[str] = None
    duration: Optional[str] = None
    created_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        if self.price < 0:
            raise ValueError("price must be >= 0")
        if self.created_at is not None:
            require_utc_timestamp("created_at", self.created_at)

    @property
    def is_free(self) -> bool:
        return self.price == 0


@dataclass(frozen=True, slots=True)
class Student:
    """Buyer account as seen by the payment flow."""

    student_id: UUID
    purchased_courses: FrozenSet[UUID] = field(default_factory=frozenset)

    def owns(self, course_id: UUID) -> bool:
        return course_id in self.purchased_courses


__all__ = ["Course", "Student"]
