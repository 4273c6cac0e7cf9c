"""Request guard that resolves the caller's session to an account id."""

from __future__ import annotations

from typing import Callable

from fastapi import Request

from authflow.auth.sessions import SessionValidator


def _extract_bearer_token(authorization: str) -> str:
    """Extract bearer token from authorization header value."""
    parts = (authorization or "").strip().split(" ", 1)
    if len(parts) != 2 or parts[0].lower() != "bearer":
        return ""
    return parts[1].strip()


def create_session_guard(
    validator: SessionValidator, cookie_name: str
) -> Callable[[Request], str]:
    """Build a FastAPI dependency returning the authenticated account id.

    The session cookie is preferred; an ``Authorization: Bearer`` header is
    accepted for non-browser clients.
    """

    def require_session(request: Request) -> str:
        token = request.cookies.get(cookie_name) or _extract_bearer_token(
            request.headers.get("authorization", "")
        )
        account_id = validator.validate(token)
        request.state.account_id = account_id
        return account_id

    return require_session
