"""Shared API error types and helpers."""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from fastapi import HTTPException

from authflow.auth.errors import (
    AuthError,
    ConflictError,
    ExpiredTokenError,
    HashingError,
    InvalidCredentialsError,
    InvalidTokenError,
    MissingTokenError,
    NotFoundError,
    NotificationError,
    RateLimitedError,
    ValidationError,
)


class ApiErrorCode(StrEnum):
    """Machine-readable API error codes."""

    VALIDATION_ERROR = "VALIDATION_ERROR"
    AUTH_MISSING_TOKEN = "AUTH_MISSING_TOKEN"
    AUTH_INVALID_CREDENTIALS = "AUTH_INVALID_CREDENTIALS"
    AUTH_TOKEN_INVALID = "AUTH_TOKEN_INVALID"
    AUTH_TOKEN_EXPIRED = "AUTH_TOKEN_EXPIRED"
    AUTH_RATE_LIMITED = "AUTH_RATE_LIMITED"
    ACCOUNT_CONFLICT = "ACCOUNT_CONFLICT"
    ACCOUNT_NOT_FOUND = "ACCOUNT_NOT_FOUND"
    REQUEST_TOO_LARGE = "REQUEST_TOO_LARGE"
    INTERNAL_SERVER_ERROR = "INTERNAL_SERVER_ERROR"


class ApiError(HTTPException):
    """HTTP exception carrying stable API error envelope."""

    def __init__(
        self,
        *,
        status_code: int,
        error_code: ApiErrorCode,
        message: str,
        headers: dict[str, str] | None = None,
    ) -> None:
        """Build an HTTP exception with standard detail structure."""
        super().__init__(
            status_code=status_code,
            detail={"error_code": str(error_code), "message": message},
            headers=headers,
        )


# Looked up along the exception MRO.
DOMAIN_ERROR_STATUS: dict[type[AuthError], tuple[int, ApiErrorCode]] = {
    ValidationError: (400, ApiErrorCode.VALIDATION_ERROR),
    ConflictError: (409, ApiErrorCode.ACCOUNT_CONFLICT),
    InvalidCredentialsError: (401, ApiErrorCode.AUTH_INVALID_CREDENTIALS),
    MissingTokenError: (401, ApiErrorCode.AUTH_MISSING_TOKEN),
    InvalidTokenError: (403, ApiErrorCode.AUTH_TOKEN_INVALID),
    ExpiredTokenError: (403, ApiErrorCode.AUTH_TOKEN_EXPIRED),
    NotFoundError: (404, ApiErrorCode.ACCOUNT_NOT_FOUND),
    RateLimitedError: (429, ApiErrorCode.AUTH_RATE_LIMITED),
    HashingError: (500, ApiErrorCode.INTERNAL_SERVER_ERROR),
    NotificationError: (500, ApiErrorCode.INTERNAL_SERVER_ERROR),
}


def api_error_from(exc: AuthError, *, status_code: int | None = None) -> ApiError:
    """Translate a domain error into an ``ApiError``.

    ``status_code`` overrides the default status for routes whose contract
    reports the same domain error differently.
    """
    default_status, error_code = 500, ApiErrorCode.INTERNAL_SERVER_ERROR
    for klass in type(exc).__mro__:
        if klass in DOMAIN_ERROR_STATUS:
            default_status, error_code = DOMAIN_ERROR_STATUS[klass]
            break

    status = status_code or default_status
    message = exc.message if status < 500 else "Internal server error"
    headers = None
    if isinstance(exc, RateLimitedError) and exc.retry_after:
        headers = {"Retry-After": str(exc.retry_after)}
    return ApiError(
        status_code=status, error_code=error_code, message=message, headers=headers
    )


def to_error_payload(detail: Any, status_code: int) -> dict[str, str]:
    """Normalize HTTP exception detail into stable error payload."""
    if isinstance(detail, dict):
        error_code = str(detail.get("error_code") or f"HTTP_{status_code}")
        message = str(detail.get("message") or detail.get("detail") or "HTTP error")
        return {"error_code": error_code, "message": message}
    return {
        "error_code": f"HTTP_{status_code}",
        "message": str(detail or "HTTP error"),
    }
