"""Lifecycle notifications sent on behalf of the account service."""

from __future__ import annotations

import logging
from typing import Any, Protocol
from urllib.parse import urlencode

from authflow.auth.models import Account
from authflow.mail.templates import (
    PASSWORD_RESET_REQUEST_EMAIL,
    PASSWORD_RESET_SUCCESS_EMAIL,
    VERIFICATION_EMAIL,
    WELCOME_EMAIL,
    EmailTemplate,
)

LOGGER = logging.getLogger(__name__)


class MailSender(Protocol):
    def send(
        self, recipient: str, template: EmailTemplate, values: dict[str, str]
    ) -> dict[str, Any]: ...


class AuthNotifier:
    """Send the four account lifecycle emails.

    With no sender configured, delivery is disabled and each email is only
    logged, which keeps local development usable without provider credentials.
    """

    def __init__(self, sender: MailSender | None, *, client_url: str) -> None:
        self._sender = sender
        self._client_url = client_url.rstrip("/")

    def reset_url(self, token: str) -> str:
        return f"{self._client_url}/reset-password?{urlencode({'token': token})}"

    def _dispatch(
        self, account: Account, template: EmailTemplate, values: dict[str, str]
    ) -> None:
        if self._sender is None:
            LOGGER.warning(
                "email_delivery_disabled",
                extra={
                    "account_id": account.account_id,
                    "email_category": template.category,
                },
            )
            return
        self._sender.send(account.email, template, values)

    def send_verification_email(self, account: Account, code: str) -> None:
        self._dispatch(
            account,
            VERIFICATION_EMAIL,
            {"username": account.display_name, "verificationCode": code},
        )

    def send_welcome_email(self, account: Account) -> None:
        self._dispatch(account, WELCOME_EMAIL, {"username": account.display_name})

    def send_password_reset_email(self, account: Account, token: str) -> None:
        self._dispatch(
            account,
            PASSWORD_RESET_REQUEST_EMAIL,
            {"username": account.display_name, "resetURL": self.reset_url(token)},
        )

    def send_reset_success_email(self, account: Account) -> None:
        self._dispatch(
            account, PASSWORD_RESET_SUCCESS_EMAIL, {"username": account.display_name}
        )
