"""Pydantic models for the account domain."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


def utc_now() -> datetime:
    """Return the current timezone-aware UTC time."""
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes read back from storage."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class PendingToken(BaseModel):
    """One-time token bound to its expiry; both exist or neither does."""

    model_config = ConfigDict(frozen=True)

    token: str = Field(min_length=1)
    expires_at: datetime

    def is_live(self, now: datetime) -> bool:
        """Return whether the token is still within its validity window."""
        return as_utc(self.expires_at) > as_utc(now)


class Account(BaseModel):
    """Persisted account record."""

    account_id: str
    email: str
    display_name: str
    password_hash: str = Field(min_length=1)
    is_verified: bool = False
    last_login_at: datetime = Field(default_factory=utc_now)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    verification: PendingToken | None = None
    reset: PendingToken | None = None

    def public_view(self) -> dict[str, Any]:
        """Return the client-facing representation without secrets."""
        return {
            "id": self.account_id,
            "email": self.email,
            "name": self.display_name,
            "isVerified": self.is_verified,
            "lastLogin": as_utc(self.last_login_at).isoformat(),
            "createdAt": as_utc(self.created_at).isoformat(),
            "updatedAt": as_utc(self.updated_at).isoformat(),
        }


class AuthResult(BaseModel):
    """Account paired with a freshly issued session token."""

    account: Account
    session_token: str


class SignupRequest(BaseModel):
    """Signup request payload; bounds are enforced by the lifecycle service."""

    email: str = ""
    password: str = ""
    name: str = ""


class LoginRequest(BaseModel):
    """Login request payload."""

    email: str = ""
    password: str = ""


class VerifyEmailRequest(BaseModel):
    """Email verification request payload."""

    model_config = ConfigDict(populate_by_name=True)

    verification_token: str = Field(default="", alias="verificationToken")


class ForgotPasswordRequest(BaseModel):
    """Forgot-password request payload."""

    email: str = ""


class ResetPasswordRequest(BaseModel):
    """Reset-password request payload."""

    password: str = ""
