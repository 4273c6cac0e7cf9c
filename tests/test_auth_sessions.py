from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from fastapi import Response

from authflow.auth.errors import ExpiredTokenError, InvalidTokenError, MissingTokenError
from authflow.auth.sessions import SessionValidator, clear_session_cookie, set_session_cookie
from authflow.auth.tokens import new_session_token
from authflow.core.config import AuthConfig
from authflow.core.security import build_signed_token


def _auth_config(*, cookie_secure: bool = False) -> AuthConfig:
    return AuthConfig(
        secret_key="test-secret",
        session_ttl_seconds=14 * 24 * 3600,
        verification_ttl_seconds=24 * 3600,
        reset_ttl_seconds=3600,
        bcrypt_rounds=4,
        cookie_name="jwt",
        cookie_secure=cookie_secure,
        client_url="http://localhost:5173",
    )


def test_session_validator_returns_account_id() -> None:
    validator = SessionValidator("test-secret")
    token = new_session_token("acc-1", "Ann", "test-secret", 300)

    assert validator.validate(token) == "acc-1"


@pytest.mark.parametrize("token", [None, "", "   "])
def test_session_validator_missing_token(token: str | None) -> None:
    with pytest.raises(MissingTokenError):
        SessionValidator("test-secret").validate(token)


def test_session_validator_rejects_bad_signature() -> None:
    token = new_session_token("acc-1", "Ann", "someone-else", 300)

    with pytest.raises(InvalidTokenError):
        SessionValidator("test-secret").validate(token)


def test_session_validator_rejects_malformed_token() -> None:
    with pytest.raises(InvalidTokenError):
        SessionValidator("test-secret").validate("not.a.jwt")


def test_session_validator_rejects_token_without_account_id() -> None:
    token = build_signed_token({"name": "Ann"}, "test-secret", ttl_seconds=300)

    with pytest.raises(InvalidTokenError):
        SessionValidator("test-secret").validate(token)


def test_session_validator_distinguishes_expired_token() -> None:
    issued = datetime.now(timezone.utc) - timedelta(days=15)
    token = new_session_token(
        "acc-1", "Ann", "test-secret", 14 * 24 * 3600, now=issued
    )

    with pytest.raises(ExpiredTokenError):
        SessionValidator("test-secret").validate(token)


def test_set_session_cookie_is_http_only_and_strict() -> None:
    response = Response()

    set_session_cookie(response, "tok", _auth_config(cookie_secure=True))

    header = response.headers["set-cookie"]
    assert header.startswith("jwt=tok")
    assert "HttpOnly" in header
    assert "SameSite=strict" in header
    assert "Secure" in header
    assert f"Max-Age={14 * 24 * 3600}" in header


def test_clear_session_cookie_expires_cookie() -> None:
    response = Response()

    clear_session_cookie(response, _auth_config())

    header = response.headers["set-cookie"]
    assert header.startswith("jwt=")
    assert "Max-Age=0" in header
    assert "Secure" not in header
