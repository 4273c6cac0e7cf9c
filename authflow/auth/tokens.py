"""Generators for verification codes, reset tokens and session tokens."""

from __future__ import annotations

import secrets
from datetime import datetime

from authflow.core.security import build_signed_token

VERIFICATION_CODE_DIGITS = 6
RESET_TOKEN_BYTES = 32


def new_verification_code() -> str:
    """Return a uniformly drawn, zero-padded six digit code."""
    return str(secrets.randbelow(10**VERIFICATION_CODE_DIGITS)).zfill(
        VERIFICATION_CODE_DIGITS
    )


def new_reset_token() -> str:
    """Return 32 random bytes as 64 hex characters."""
    return secrets.token_hex(RESET_TOKEN_BYTES)


def new_session_token(
    account_id: str,
    display_name: str,
    secret: str,
    ttl_seconds: int,
    *,
    now: datetime | None = None,
) -> str:
    """Return a signed session token bound to ``account_id``."""
    return build_signed_token(
        {"id": account_id, "name": display_name},
        secret,
        ttl_seconds=ttl_seconds,
        now=now,
    )
