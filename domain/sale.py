"""
Domain: Time-boxed course sales.

A Sale is an absolute price override for one course, not a delta:
while it is active its amount replaces the course's base price.

Activity window:
- active iff starts_at <= now, and expires_at is absent or now <= expires_at.

Overlapping sales for one course are a data-entry problem; pick_active_sale
takes the first active match and does not try to reconcile them.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Iterable, Optional
from uuid import UUID

from .time import require_utc_timestamp


@dataclass(frozen=True, slots=True)
class Sale:
    """
    Immutable sale window for a course.

    All timestamps must be UTC and are passed explicitly.
    """

    sale_id: UUID
    course_id: UUID
    teacher_id: UUID
    amount: Decimal
    starts_at: datetime
    expires_at: Optional[datetime] = None
    currency: str = "INR"
    platform: Optional[str] = None
    notes: Optional[str] = None

    def __post_init__(self) -> None:
        if self.amount < 0:
            raise ValueError("amount must be >= 0")
        require_utc_timestamp("starts_at", self.starts_at)
        if self.expires_at is not None:
            require_utc_timestamp("expires_at", self.expires_at)
            if self.expires_at < self.starts_at:
                raise ValueError("expires_at must be >= starts_at")

    def is_active(self, at: datetime) -> bool:
        """True iff the sale window contains `at` (both ends inclusive)."""

        require_utc_timestamp("at", at)
        if self.starts_at > at:
            return False
        return self.expires_at is None or at <= self.expires_at


def pick_active_sale(sales: Iterable[Sale], at: datetime) -> Optional[Sale]:
    """Return the first sale active at `at`, or None."""

    for sale in sales:
        if sale.is_active(at):
            return sale
    return None


__all__ = ["Sale", "pick_active_sale"]
