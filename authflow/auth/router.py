"""Authentication API router."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

from fastapi import APIRouter, Depends, Request, Response

from authflow.api.contracts import (
    ApiErrorResponse,
    AuthUserResponse,
    CheckAuthResponse,
    MessageResponse,
    SignupResponse,
)
from authflow.api.errors import api_error_from
from authflow.auth.errors import InvalidTokenError
from authflow.auth.middleware import create_session_guard
from authflow.auth.models import (
    ForgotPasswordRequest,
    LoginRequest,
    ResetPasswordRequest,
    SignupRequest,
    VerifyEmailRequest,
)
from authflow.auth.rate_limiter import RequestQuotaLimiter
from authflow.auth.service import AccountLifecycleService
from authflow.auth.sessions import (
    SessionValidator,
    clear_session_cookie,
    set_session_cookie,
)
from authflow.core.config import AuthConfig


def _client_ip(request: Request) -> str:
    return (request.client.host if request.client else "") or "unknown"


def create_auth_router(
    service: AccountLifecycleService,
    validator: SessionValidator,
    limiter: RequestQuotaLimiter,
    config: AuthConfig,
) -> APIRouter:
    """Build the signup/login/logout/verify/reset router."""
    router = APIRouter(prefix="/api/auth", tags=["auth"])
    require_session = create_session_guard(validator, config.cookie_name)

    @contextmanager
    def quota(scope: str, request: Request) -> Iterator[None]:
        client_ip = _client_ip(request)
        limiter.assert_allowed(scope=scope, client_ip=client_ip)
        try:
            yield
        except Exception:
            limiter.record(scope=scope, client_ip=client_ip, succeeded=False)
            raise
        limiter.record(scope=scope, client_ip=client_ip, succeeded=True)

    @router.post(
        "/signup",
        status_code=201,
        response_model=SignupResponse,
        responses={
            400: {"model": ApiErrorResponse},
            409: {"model": ApiErrorResponse},
            429: {"model": ApiErrorResponse},
        },
    )
    def signup(req: SignupRequest, request: Request, response: Response) -> SignupResponse:
        """Register an account and start its session."""
        with quota("signup", request):
            result = service.register(req.email, req.password, req.name)
        set_session_cookie(response, result.session_token, config)
        return SignupResponse(
            user=result.account.public_view(), message="User registered successfully"
        )

    @router.post(
        "/login",
        response_model=AuthUserResponse,
        responses={401: {"model": ApiErrorResponse}, 429: {"model": ApiErrorResponse}},
    )
    def login(req: LoginRequest, request: Request, response: Response) -> AuthUserResponse:
        """Authenticate credentials and set the session cookie."""
        with quota("login", request):
            result = service.login(req.email, req.password)
        set_session_cookie(response, result.session_token, config)
        return AuthUserResponse(message="Login successful", user=result.account.public_view())

    @router.post("/logout", response_model=MessageResponse)
    def logout(response: Response) -> MessageResponse:
        """Drop the client-held session cookie."""
        service.logout()
        clear_session_cookie(response, config)
        return MessageResponse(message="Logout successful")

    @router.get(
        "/check-auth",
        response_model=CheckAuthResponse,
        responses={
            401: {"model": ApiErrorResponse},
            403: {"model": ApiErrorResponse},
            404: {"model": ApiErrorResponse},
        },
    )
    def check_auth(account_id: str = Depends(require_session)) -> CheckAuthResponse:
        """Return the live account behind the current session."""
        account = service.current_account(account_id)
        return CheckAuthResponse(user=account.public_view())

    @router.post(
        "/verify-email",
        response_model=AuthUserResponse,
        responses={400: {"model": ApiErrorResponse}, 429: {"model": ApiErrorResponse}},
    )
    def verify_email(req: VerifyEmailRequest, request: Request) -> AuthUserResponse:
        """Confirm email ownership with the six digit code."""
        with quota("verify-email", request):
            try:
                account = service.verify_email(req.verification_token)
            except InvalidTokenError as exc:
                raise api_error_from(exc, status_code=400) from exc
        return AuthUserResponse(
            message="Email verified successfully", user=account.public_view()
        )

    @router.post(
        "/forgot-password",
        response_model=MessageResponse,
        responses={404: {"model": ApiErrorResponse}, 429: {"model": ApiErrorResponse}},
    )
    def forgot_password(req: ForgotPasswordRequest, request: Request) -> MessageResponse:
        """Email a password reset link."""
        with quota("forgot-password", request):
            service.forgot_password(req.email)
        return MessageResponse(message="Password reset link sent to your email address")

    @router.post(
        "/reset-password/{token}",
        response_model=MessageResponse,
        responses={
            400: {"model": ApiErrorResponse},
            404: {"model": ApiErrorResponse},
            429: {"model": ApiErrorResponse},
        },
    )
    def reset_password(
        token: str, req: ResetPasswordRequest, request: Request
    ) -> MessageResponse:
        """Set a new password using a reset token."""
        with quota("reset-password", request):
            try:
                service.reset_password(token, req.password)
            except InvalidTokenError as exc:
                raise api_error_from(exc, status_code=404) from exc
        return MessageResponse(message="Password reset successfully")

    return router
