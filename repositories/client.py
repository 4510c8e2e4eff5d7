"""
Supabase client construction.

This module contains *only* the database connection setup. The client is
built once at application startup from Settings and passed explicitly to
repository functions; there is no module-level client.
"""

from __future__ import annotations

# The dependency is `supabase` (supabase-py). If your editor can't resolve it,
# install it in your environment: `pip install supabase`.
from supabase import Client, create_client  # type: ignore[import-not-found]


def create_supabase_client(url: str, key: str) -> Client:
    """
    Create the Supabase client used by every repository.

    Args:
        url: Supabase project URL
        key: Server-side Supabase API key
    """

    if not url:
        raise RuntimeError("Supabase URL must not be empty")
    if not key:
        raise RuntimeError("Supabase key must not be empty")
    return create_client(url, key)


__all__ = ["Client", "create_supabase_client"]
