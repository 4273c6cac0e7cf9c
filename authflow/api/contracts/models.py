"""Pydantic API response models used in OpenAPI contracts."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field


class ApiErrorResponse(BaseModel):
    """Stable error envelope for API responses."""

    success: bool = False
    error_code: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error message")


class HealthResponse(BaseModel):
    """Health check response payload."""

    status: Literal["ok"]


class SignupResponse(BaseModel):
    """Signup response payload."""

    user: dict[str, Any]
    message: str


class AuthUserResponse(BaseModel):
    """Login and verify-email response payload."""

    success: bool = True
    message: str
    user: dict[str, Any]


class CheckAuthResponse(BaseModel):
    """Current session account payload."""

    success: bool = True
    user: dict[str, Any]


class MessageResponse(BaseModel):
    """Plain acknowledgement payload."""

    success: bool = True
    message: str
