"""Application configuration loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass


def _env_flag(name: str, default: str = "0") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class AuthConfig:
    """Authentication-related configuration."""

    secret_key: str
    session_ttl_seconds: int
    verification_ttl_seconds: int
    reset_ttl_seconds: int
    bcrypt_rounds: int
    cookie_name: str
    cookie_secure: bool
    client_url: str


@dataclass(frozen=True)
class MongoConfig:
    """Document store connection settings."""

    uri: str
    database: str


@dataclass(frozen=True)
class MailConfig:
    """Transactional email provider settings."""

    api_token: str
    api_url: str
    sender_email: str
    sender_name: str
    timeout_seconds: int


@dataclass(frozen=True)
class LoggingConfig:
    """Structured logging configuration."""

    level: str


@dataclass(frozen=True)
class QuotaPolicy:
    """Request quota for one endpoint scope."""

    limit: int
    window_seconds: int
    count_successful: bool = True


@dataclass(frozen=True)
class SecurityConfig:
    """API perimeter security settings."""

    cors_allowed_origins: list[str]
    request_max_bytes: int
    quota_sqlite_path: str
    quotas: dict[str, QuotaPolicy]


@dataclass(frozen=True)
class AppConfig:
    """Top-level application configuration."""

    auth: AuthConfig
    mongo: MongoConfig
    mail: MailConfig
    logging: LoggingConfig
    security: SecurityConfig

    @staticmethod
    def from_env() -> "AppConfig":
        """Build app config from process environment."""
        secret_key = (
            os.getenv("JWT_SECRET", "").strip() or "dev-insecure-secret-change-me"
        )
        session_ttl = int(os.getenv("AUTH_SESSION_TTL_SECONDS", str(14 * 24 * 3600)))
        verification_ttl = int(
            os.getenv("AUTH_VERIFICATION_TTL_SECONDS", str(24 * 3600))
        )
        reset_ttl = int(os.getenv("AUTH_RESET_TTL_SECONDS", "3600"))
        bcrypt_rounds = int(os.getenv("AUTH_BCRYPT_ROUNDS", "10"))
        if os.getenv("COOKIE_SECURE", "").strip():
            cookie_secure = _env_flag("COOKIE_SECURE")
        else:
            cookie_secure = os.getenv("APP_ENV", "").strip().lower() == "production"
        client_url = (
            os.getenv("CLIENT_URL", "http://localhost:5173").strip().rstrip("/")
            or "http://localhost:5173"
        )

        mongo_uri = os.getenv("MONGODB_URI", "").strip()
        mongo_db = os.getenv("MONGODB_DB", "authflow").strip() or "authflow"

        mail_token = os.getenv("MAILTRAP_API_TOKEN", "").strip()
        mail_url = (
            os.getenv("MAILTRAP_API_URL", "https://send.api.mailtrap.io/api/send").strip()
            or "https://send.api.mailtrap.io/api/send"
        )
        sender_email = os.getenv("MAIL_SENDER_EMAIL", "no-reply@example.com").strip()
        sender_name = (
            os.getenv("MAIL_SENDER_NAME", "auth-verification-service").strip()
            or "auth-verification-service"
        )
        mail_timeout = int(os.getenv("MAIL_TIMEOUT_SECONDS", "10"))

        log_level = os.getenv("LOG_LEVEL", "INFO").strip() or "INFO"
        cors_allowed_origins = [
            origin.strip()
            for origin in os.getenv("CORS_ALLOWED_ORIGINS", client_url).split(",")
            if origin.strip()
        ]
        request_max_bytes = int(os.getenv("REQUEST_MAX_BYTES", str(1024 * 1024)))
        quota_sqlite_path = (
            os.getenv("QUOTA_SQLITE_PATH", "runtime/app_state.db").strip()
            or "runtime/app_state.db"
        )
        quotas = {
            "signup": QuotaPolicy(
                limit=int(os.getenv("RATE_LIMIT_SIGNUP_MAX", "15")),
                window_seconds=int(os.getenv("RATE_LIMIT_SIGNUP_WINDOW_SECONDS", "900")),
            ),
            "login": QuotaPolicy(
                limit=int(os.getenv("RATE_LIMIT_LOGIN_MAX", "5")),
                window_seconds=int(os.getenv("RATE_LIMIT_LOGIN_WINDOW_SECONDS", "900")),
                count_successful=False,
            ),
            "verify-email": QuotaPolicy(
                limit=int(os.getenv("RATE_LIMIT_VERIFY_MAX", "10")),
                window_seconds=int(os.getenv("RATE_LIMIT_VERIFY_WINDOW_SECONDS", "3600")),
            ),
            "forgot-password": QuotaPolicy(
                limit=int(os.getenv("RATE_LIMIT_FORGOT_MAX", "3")),
                window_seconds=int(os.getenv("RATE_LIMIT_FORGOT_WINDOW_SECONDS", "3600")),
            ),
            "reset-password": QuotaPolicy(
                limit=int(os.getenv("RATE_LIMIT_RESET_MAX", "5")),
                window_seconds=int(os.getenv("RATE_LIMIT_RESET_WINDOW_SECONDS", "900")),
                count_successful=False,
            ),
        }

        return AppConfig(
            auth=AuthConfig(
                secret_key=secret_key,
                session_ttl_seconds=session_ttl,
                verification_ttl_seconds=verification_ttl,
                reset_ttl_seconds=reset_ttl,
                bcrypt_rounds=bcrypt_rounds,
                cookie_name=os.getenv("AUTH_COOKIE_NAME", "jwt").strip() or "jwt",
                cookie_secure=cookie_secure,
                client_url=client_url,
            ),
            mongo=MongoConfig(uri=mongo_uri, database=mongo_db),
            mail=MailConfig(
                api_token=mail_token,
                api_url=mail_url,
                sender_email=sender_email,
                sender_name=sender_name,
                timeout_seconds=mail_timeout,
            ),
            logging=LoggingConfig(level=log_level),
            security=SecurityConfig(
                cors_allowed_origins=cors_allowed_origins,
                request_max_bytes=request_max_bytes,
                quota_sqlite_path=quota_sqlite_path,
                quotas=quotas,
            ),
        )
