"""
Translation of domain errors to HTTP errors.
"""

from fastapi import HTTPException

from domain.errors import PaymentError


def to_http_exception(error: PaymentError, status_code: int | None = None) -> HTTPException:
    """HTTPException carrying the error's status (or an override) and message."""
    return HTTPException(
        status_code=status_code or error.status_code,
        detail=error.message,
    )
