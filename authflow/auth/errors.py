"""Domain errors raised by the account lifecycle core.

The HTTP layer maps these to status codes in ``authflow.api.errors``; the core
never decides transport semantics itself.
"""

from __future__ import annotations


class AuthError(Exception):
    """Base class for account lifecycle failures."""

    default_message = "Authentication error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(AuthError):
    """Malformed or out-of-bounds input."""

    default_message = "Invalid input"


class ConflictError(AuthError):
    """Resource already exists."""

    default_message = "Email already exists"


class InvalidCredentialsError(AuthError):
    """Unknown email or wrong password; never says which."""

    default_message = "Invalid email or password"


class InvalidTokenError(AuthError):
    """Token is wrong, consumed, expired, or has a bad signature."""

    default_message = "Invalid or expired token"


class ExpiredTokenError(AuthError):
    """Session token signature is valid but its expiry has elapsed."""

    default_message = "Session expired"


class MissingTokenError(AuthError):
    """No session token was presented."""

    default_message = "Unauthorized - No token provided"


class NotFoundError(AuthError):
    """Account does not exist."""

    default_message = "User not found"


class RateLimitedError(AuthError):
    """Request quota for the caller is exhausted."""

    default_message = "Too many requests, please try again later"

    def __init__(self, message: str | None = None, *, retry_after: int = 0) -> None:
        super().__init__(message)
        self.retry_after = max(0, int(retry_after))


class HashingError(AuthError):
    """Password hashing failed in the underlying library."""

    default_message = "Password hashing failed"


class NotificationError(AuthError):
    """Transactional email could not be dispatched."""

    default_message = "Failed to send email"
