"""Security primitives for password hashing and session token signing."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

import bcrypt
import jwt

from authflow.auth.errors import HashingError

JWT_ALGORITHM = "HS256"


def hash_password(password: str, rounds: int = 10) -> str:
    """Hash password with bcrypt; salt and cost are embedded in the result."""
    try:
        salt = bcrypt.gensalt(rounds=rounds)
        return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")
    except (ValueError, TypeError) as exc:
        raise HashingError(f"Password hashing failed: {exc}") from exc


def verify_password(password: str, password_hash: str) -> bool:
    """Verify password against a stored bcrypt hash."""
    if not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


def build_signed_token(
    claims: dict[str, Any],
    secret_key: str,
    *,
    ttl_seconds: int,
    now: datetime | None = None,
) -> str:
    """Create an HS256 JWT carrying ``claims`` plus ``iat``/``exp``."""
    issued_at = now or datetime.now(timezone.utc)
    payload = dict(claims)
    payload["iat"] = issued_at
    payload["exp"] = issued_at + timedelta(seconds=ttl_seconds)
    return jwt.encode(payload, secret_key, algorithm=JWT_ALGORITHM)


def decode_signed_token(token: str, secret_key: str) -> dict[str, Any]:
    """Decode and verify a JWT.

    Raises ``jwt.ExpiredSignatureError`` when the signature is valid but the
    token has expired and ``jwt.InvalidTokenError`` for every other failure.
    """
    return jwt.decode(
        token,
        secret_key,
        algorithms=[JWT_ALGORITHM],
        options={"require": ["exp", "iat"]},
    )
