"""Transactional email sender backed by the Mailtrap send API."""

from __future__ import annotations

import logging
from typing import Any

import requests

from authflow.auth.errors import NotificationError
from authflow.core.config import MailConfig
from authflow.mail.templates import EmailTemplate

LOGGER = logging.getLogger(__name__)


class MailtrapClient:
    """Send rendered templates to a single recipient over HTTPS."""

    def __init__(self, config: MailConfig, session: requests.Session | None = None) -> None:
        self._config = config
        self._session = session or requests.Session()
        self._session.headers.update(
            {
                "Authorization": f"Bearer {config.api_token}",
                "Content-Type": "application/json",
            }
        )

    def send(
        self, recipient: str, template: EmailTemplate, values: dict[str, str]
    ) -> dict[str, Any]:
        """Render ``template`` with ``values`` and deliver it to ``recipient``."""
        body = {
            "from": {
                "email": self._config.sender_email,
                "name": self._config.sender_name,
            },
            "to": [{"email": recipient}],
            "subject": template.subject,
            "html": template.render(values),
            "category": template.category,
        }
        try:
            response = self._session.post(
                self._config.api_url,
                json=body,
                timeout=self._config.timeout_seconds,
            )
            response.raise_for_status()
        except requests.RequestException as exc:
            LOGGER.error(
                "email_send_failed",
                extra={"email_category": template.category},
            )
            raise NotificationError(
                f"Failed to send {template.category.lower()}: {exc}"
            ) from exc

        LOGGER.info("email_sent", extra={"email_category": template.category})
        try:
            payload = response.json()
        except ValueError:
            return {}
        return payload if isinstance(payload, dict) else {}

    def close(self) -> None:
        self._session.close()
