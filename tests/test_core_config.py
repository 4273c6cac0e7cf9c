from __future__ import annotations

import json
import logging

import pytest

from authflow.core.config import AppConfig
from authflow.core.logging import JsonLogFormatter, mask_email, set_correlation_id, setup_logging


def test_app_config_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("JWT_SECRET", "MONGODB_URI", "MAILTRAP_API_TOKEN", "COOKIE_SECURE", "APP_ENV"):
        monkeypatch.delenv(name, raising=False)

    config = AppConfig.from_env()

    assert config.auth.session_ttl_seconds == 14 * 24 * 3600
    assert config.auth.bcrypt_rounds == 10
    assert config.auth.cookie_name == "jwt"
    assert config.auth.cookie_secure is False
    assert config.mongo.uri == ""
    assert config.mail.api_token == ""
    assert config.security.quotas["login"].count_successful is False
    assert config.security.quotas["signup"].limit == 15
    assert config.security.quotas["forgot-password"].window_seconds == 3600


def test_app_config_reads_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("JWT_SECRET", "from-env")
    monkeypatch.delenv("COOKIE_SECURE", raising=False)
    monkeypatch.setenv("APP_ENV", "production")
    monkeypatch.setenv("CLIENT_URL", "https://app.test/")
    monkeypatch.setenv("RATE_LIMIT_LOGIN_MAX", "9")
    monkeypatch.delenv("CORS_ALLOWED_ORIGINS", raising=False)

    config = AppConfig.from_env()

    assert config.auth.secret_key == "from-env"
    assert config.auth.cookie_secure is True
    assert config.auth.client_url == "https://app.test"
    assert config.security.cors_allowed_origins == ["https://app.test"]
    assert config.security.quotas["login"].limit == 9


def test_cookie_secure_flag_overrides_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("APP_ENV", "production")
    monkeypatch.setenv("COOKIE_SECURE", "false")

    assert AppConfig.from_env().auth.cookie_secure is False


def test_json_log_formatter_includes_correlation_and_extras() -> None:
    set_correlation_id("corr-1")
    record = logging.LogRecord(
        name="authflow.test",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg="account_registered",
        args=(),
        exc_info=None,
    )
    record.account_id = "a1"
    record.scope = ""

    payload = json.loads(JsonLogFormatter().format(record))
    set_correlation_id("")
    without_correlation = json.loads(JsonLogFormatter().format(record))

    assert payload["event"] == "account_registered"
    assert payload["correlation_id"] == "corr-1"
    assert payload["account_id"] == "a1"
    assert "scope" not in payload
    assert "correlation_id" not in without_correlation


@pytest.mark.parametrize(
    ("email", "masked"),
    [
        ("Alice@Example.com", "a***@example.com"),
        ("", "***"),
        ("no-at-sign", "***"),
    ],
)
def test_mask_email_hides_local_part(email: str, masked: str) -> None:
    assert mask_email(email) == masked


def test_setup_logging_routes_server_loggers_to_root() -> None:
    root = logging.getLogger()
    saved_handlers, saved_level = list(root.handlers), root.level
    try:
        setup_logging("debug")

        assert root.level == logging.DEBUG
        assert isinstance(root.handlers[0].formatter, JsonLogFormatter)
        assert logging.getLogger("uvicorn.access").handlers == []
        assert logging.getLogger("uvicorn.access").propagate is True
    finally:
        root.handlers[:] = saved_handlers
        root.setLevel(saved_level)
