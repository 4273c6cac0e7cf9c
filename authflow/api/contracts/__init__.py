"""Public API response contracts."""

from authflow.api.contracts.models import (
    ApiErrorResponse,
    AuthUserResponse,
    CheckAuthResponse,
    HealthResponse,
    MessageResponse,
    SignupResponse,
)

__all__ = [
    "ApiErrorResponse",
    "AuthUserResponse",
    "CheckAuthResponse",
    "HealthResponse",
    "MessageResponse",
    "SignupResponse",
]
