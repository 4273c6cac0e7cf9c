"""Session token validation and cookie transport."""

from __future__ import annotations

import jwt
from fastapi import Response

from authflow.auth.errors import ExpiredTokenError, InvalidTokenError, MissingTokenError
from authflow.core.config import AuthConfig
from authflow.core.security import decode_signed_token


class SessionValidator:
    """Resolve a presented session token to an account id.

    Trust is placed in the signature alone; the account store is not read.
    """

    def __init__(self, secret_key: str) -> None:
        self._secret_key = secret_key

    def validate(self, token: str | None) -> str:
        """Return the account id bound to ``token``."""
        if not token or not token.strip():
            raise MissingTokenError()
        try:
            claims = decode_signed_token(token.strip(), self._secret_key)
        except jwt.ExpiredSignatureError as exc:
            raise ExpiredTokenError() from exc
        except jwt.InvalidTokenError as exc:
            raise InvalidTokenError("Unauthorized - Invalid token") from exc

        account_id = claims.get("id")
        if not isinstance(account_id, str) or not account_id:
            raise InvalidTokenError("Unauthorized - Invalid token")
        return account_id


def set_session_cookie(response: Response, token: str, config: AuthConfig) -> None:
    """Attach the session token as an HTTP-only, same-site strict cookie."""
    response.set_cookie(
        key=config.cookie_name,
        value=token,
        max_age=config.session_ttl_seconds,
        httponly=True,
        samesite="strict",
        secure=config.cookie_secure,
    )


def clear_session_cookie(response: Response, config: AuthConfig) -> None:
    """Instruct the client to discard its session cookie."""
    response.delete_cookie(
        key=config.cookie_name,
        httponly=True,
        samesite="strict",
        secure=config.cookie_secure,
    )
