"""
Application settings.

Loaded once at startup from the environment (and a .env file next to the
project root, if present). Missing required variables fail fast with a
RuntimeError naming the variable.

Environment variables required:
- SUPABASE_URL: Your Supabase project URL
- SUPABASE_KEY: Your Supabase API key (use a server-side key only on the backend)
- RAZORPAY_KEY_ID / RAZORPAY_KEY_SECRET: Razorpay API key pair
- RAZORPAY_WEBHOOK_SECRET: Secret configured on the Razorpay webhook

Optional:
- LOG_LEVEL (default: INFO)
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv

_ENV_PATH = Path(__file__).parent.parent / ".env"

_REQUIRED = (
    ("SUPABASE_URL", "Set SUPABASE_URL to your Supabase project URL."),
    ("SUPABASE_KEY", "Set SUPABASE_KEY to your Supabase API key."),
    ("RAZORPAY_KEY_ID", "Set RAZORPAY_KEY_ID to your Razorpay key id."),
    ("RAZORPAY_KEY_SECRET", "Set RAZORPAY_KEY_SECRET to your Razorpay key secret."),
    ("RAZORPAY_WEBHOOK_SECRET", "Set RAZORPAY_WEBHOOK_SECRET to the secret of your Razorpay webhook."),
)


@dataclass(frozen=True, slots=True)
class Settings:
    supabase_url: str
    supabase_key: str
    razorpay_key_id: str
    razorpay_key_secret: str = field(repr=False)
    razorpay_webhook_secret: str = field(repr=False)
    log_level: str = "INFO"

    @staticmethod
    def from_env(environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """
        Build settings from `environ` (default: os.environ after loading .env).

        Raises:
            RuntimeError: a required variable is missing or empty
        """

        if environ is None:
            load_dotenv(dotenv_path=_ENV_PATH)
            environ = os.environ

        for name, hint in _REQUIRED:
            if not environ.get(name):
                raise RuntimeError(f"Missing environment variable: {name}. {hint}")

        return Settings(
            supabase_url=environ["SUPABASE_URL"],
            supabase_key=environ["SUPABASE_KEY"],
            razorpay_key_id=environ["RAZORPAY_KEY_ID"],
            razorpay_key_secret=environ["RAZORPAY_KEY_SECRET"],
            razorpay_webhook_secret=environ["RAZORPAY_WEBHOOK_SECRET"],
            log_level=(environ.get("LOG_LEVEL") or "INFO").upper(),
        )


__all__ = ["Settings"]
