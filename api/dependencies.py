"""
FastAPI dependencies.

The Supabase client and payment gateway are created in the application
lifespan and stored on app.state; handlers receive them through Depends so
tests can swap them with app.dependency_overrides.

Identity comes from the upstream auth proxy as an X-User-Id header.
"""

from __future__ import annotations

from typing import Optional
from uuid import UUID

from fastapi import Depends, Header, HTTPException, Request
from supabase import Client  # type: ignore[import-not-found]

from services.entitlement_service import is_entitled
from services.payment_gateway import PaymentGateway


def get_db(request: Request) -> Client:
    return request.app.state.db


def get_gateway(request: Request) -> PaymentGateway:
    return request.app.state.gateway


def get_optional_user_id(x_user_id: Optional[str] = Header(default=None)) -> Optional[UUID]:
    """Authenticated user id, or None for anonymous requests."""
    if not x_user_id:
        return None
    try:
        return UUID(x_user_id)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid X-User-Id header")


def get_current_user_id(user_id: Optional[UUID] = Depends(get_optional_user_id)) -> UUID:
    """Authenticated user id; 401 for anonymous requests."""
    if user_id is None:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return user_id


def require_course_access(
    course_id: UUID,
    user_id: Optional[UUID] = Depends(get_optional_user_id),
    db: Client = Depends(get_db),
) -> UUID:
    """
    Gate for course content endpoints.

    Raises 403 unless the caller is entitled to the course.
    """
    if not is_entitled(db, user_id, course_id):
        raise HTTPException(status_code=403, detail="You do not have access to this course")
    return course_id
