"""Account lifecycle: registration, verification, login and password reset."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta
from typing import Callable, Protocol

from authflow.auth.errors import (
    ConflictError,
    InvalidCredentialsError,
    InvalidTokenError,
    NotFoundError,
    ValidationError,
)
from authflow.auth.models import Account, AuthResult, PendingToken, utc_now
from authflow.auth.repository import normalize_email
from authflow.auth.tokens import new_reset_token, new_session_token, new_verification_code
from authflow.core.config import AuthConfig
from authflow.core.logging import mask_email
from authflow.core.security import hash_password, verify_password

LOGGER = logging.getLogger(__name__)

EMAIL_MAX_LENGTH = 50
NAME_MIN_LENGTH = 2
NAME_MAX_LENGTH = 30
PASSWORD_MIN_LENGTH = 6
# bcrypt only reads the first 72 bytes of its input
PASSWORD_MAX_BYTES = 72

VERIFICATION_FAILED_MESSAGE = "Invalid or expired verification token"
RESET_FAILED_MESSAGE = "Invalid or expired token"
INVALID_CHARACTERS_MESSAGE = "Input contains invalid characters"


class AccountStore(Protocol):
    def find_by_email(self, email: str) -> Account | None: ...

    def find_by_id(self, account_id: str) -> Account | None: ...

    def find_by_reset_token(self, token: str, not_expired_at: datetime) -> Account | None: ...

    def insert(self, account: Account) -> Account: ...

    def consume_verification_token(self, token: str, now: datetime) -> Account | None: ...

    def consume_reset_token(
        self, token: str, now: datetime, password_hash: str
    ) -> Account | None: ...

    def set_reset_token(
        self, account_id: str, pending: PendingToken, now: datetime
    ) -> Account | None: ...

    def record_login(self, account_id: str, at: datetime) -> Account | None: ...


class Notifier(Protocol):
    def send_verification_email(self, account: Account, code: str) -> None: ...

    def send_welcome_email(self, account: Account) -> None: ...

    def send_password_reset_email(self, account: Account, token: str) -> None: ...

    def send_reset_success_email(self, account: Account) -> None: ...


def _require_encodable(*values: str) -> None:
    """Reject strings that cannot be stored or hashed as UTF-8."""
    for value in values:
        try:
            value.encode("utf-8")
        except UnicodeEncodeError:
            raise ValidationError(INVALID_CHARACTERS_MESSAGE) from None


def _validate_password(password: str) -> None:
    if len(password) < PASSWORD_MIN_LENGTH:
        raise ValidationError(
            f"Password must be at least {PASSWORD_MIN_LENGTH} characters"
        )
    if len(password.encode("utf-8")) > PASSWORD_MAX_BYTES:
        raise ValidationError(f"Password must be at most {PASSWORD_MAX_BYTES} bytes")


class AccountLifecycleService:
    """State machine owning every account transition.

    State changes are persisted before the matching email is dispatched, so a
    failed notification leaves committed state behind and surfaces as
    ``NotificationError`` to the caller.
    """

    def __init__(
        self,
        repo: AccountStore,
        notifier: Notifier,
        config: AuthConfig,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """Initialize service dependencies."""
        self._repo = repo
        self._notifier = notifier
        self._config = config
        self._clock = clock

    def _issue_session(self, account: Account) -> str:
        return new_session_token(
            account.account_id,
            account.display_name,
            self._config.secret_key,
            self._config.session_ttl_seconds,
        )

    def register(self, email: str, password: str, name: str) -> AuthResult:
        """Create an unverified account and send its verification code."""
        email = normalize_email(email or "")
        name = (name or "").strip()
        password = password or ""
        if not email or not password or not name:
            raise ValidationError("All fields are required")
        _require_encodable(email, password, name)
        if len(email) > EMAIL_MAX_LENGTH or "@" not in email:
            raise ValidationError(
                f"Email must be a valid address of at most {EMAIL_MAX_LENGTH} characters"
            )
        if not NAME_MIN_LENGTH <= len(name) <= NAME_MAX_LENGTH:
            raise ValidationError(
                f"Name must be between {NAME_MIN_LENGTH} and {NAME_MAX_LENGTH} characters"
            )
        _validate_password(password)

        if self._repo.find_by_email(email) is not None:
            raise ConflictError()

        now = self._clock()
        code = new_verification_code()
        account = Account(
            account_id=uuid.uuid4().hex,
            email=email,
            display_name=name,
            password_hash=hash_password(password, self._config.bcrypt_rounds),
            last_login_at=now,
            verification=PendingToken(
                token=code,
                expires_at=now + timedelta(seconds=self._config.verification_ttl_seconds),
            ),
        )
        # the store's unique email index settles concurrent registrations
        created = self._repo.insert(account)
        session_token = self._issue_session(created)
        LOGGER.info("account_registered", extra={"account_id": created.account_id})

        self._notifier.send_verification_email(created, code)
        return AuthResult(account=created, session_token=session_token)

    def verify_email(self, code: str) -> Account:
        """Consume a pending verification code and mark the account verified."""
        code = (code or "").strip()
        _require_encodable(code)
        account = self._repo.consume_verification_token(code, self._clock()) if code else None
        if account is None:
            raise InvalidTokenError(VERIFICATION_FAILED_MESSAGE)
        LOGGER.info("email_verified", extra={"account_id": account.account_id})

        self._notifier.send_welcome_email(account)
        return account

    def login(self, email: str, password: str) -> AuthResult:
        """Check credentials and issue a new session token."""
        _require_encodable(email or "", password or "")
        account = self._repo.find_by_email(email) if (email or "").strip() else None
        if account is None or not verify_password(password or "", account.password_hash):
            LOGGER.info("login_failed", extra={"email": mask_email(email)})
            raise InvalidCredentialsError()

        updated = self._repo.record_login(account.account_id, self._clock()) or account
        LOGGER.info("login_succeeded", extra={"account_id": updated.account_id})
        return AuthResult(account=updated, session_token=self._issue_session(updated))

    def logout(self) -> None:
        """Sessions are not stored server-side; the transport drops the cookie."""
        return None

    def forgot_password(self, email: str) -> None:
        """Issue a fresh reset token, invalidating any earlier one."""
        _require_encodable(email or "")
        account = self._repo.find_by_email(email) if (email or "").strip() else None
        if account is None:
            LOGGER.info("password_reset_unknown_email", extra={"email": mask_email(email)})
            raise NotFoundError()

        now = self._clock()
        pending = PendingToken(
            token=new_reset_token(),
            expires_at=now + timedelta(seconds=self._config.reset_ttl_seconds),
        )
        updated = self._repo.set_reset_token(account.account_id, pending, now)
        if updated is None:
            raise NotFoundError()
        LOGGER.info("password_reset_requested", extra={"account_id": updated.account_id})

        self._notifier.send_password_reset_email(updated, pending.token)

    def reset_password(self, token: str, new_password: str) -> None:
        """Replace the password if ``token`` is the live pending reset token."""
        new_password = new_password or ""
        _require_encodable(token or "", new_password)
        _validate_password(new_password)

        token = (token or "").strip()
        if not token or self._repo.find_by_reset_token(token, self._clock()) is None:
            raise InvalidTokenError(RESET_FAILED_MESSAGE)

        password_hash = hash_password(new_password, self._config.bcrypt_rounds)
        account = self._repo.consume_reset_token(token, self._clock(), password_hash)
        if account is None:
            raise InvalidTokenError(RESET_FAILED_MESSAGE)
        LOGGER.info("password_reset_completed", extra={"account_id": account.account_id})

        self._notifier.send_reset_success_email(account)

    def current_account(self, account_id: str) -> Account:
        """Return the live account behind a validated session."""
        account = self._repo.find_by_id(account_id)
        if account is None:
            raise NotFoundError()
        return account
