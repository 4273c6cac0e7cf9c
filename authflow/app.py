"""Application factory wiring the account lifecycle into FastAPI."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from authflow.api.contracts import HealthResponse
from authflow.api.http_setup import register_exception_handlers, register_http_middleware
from authflow.auth.rate_limiter import RequestQuotaLimiter
from authflow.auth.repository import AccountRepository
from authflow.auth.router import create_auth_router
from authflow.auth.service import AccountLifecycleService
from authflow.auth.sessions import SessionValidator
from authflow.core.config import AppConfig
from authflow.core.mongo import MongoResources
from authflow.mail.client import MailtrapClient
from authflow.mail.notifier import AuthNotifier, MailSender

LOGGER = logging.getLogger(__name__)


def create_app(
    config: AppConfig,
    *,
    app_root: Path,
    mail_sender: MailSender | None = None,
) -> FastAPI:
    """Create the API app.

    Process-wide resources (Mongo client, quota database, mail client) are
    opened here and released when the app shuts down. ``mail_sender``
    overrides the Mailtrap client built from configuration.
    """
    mongo = MongoResources(config.mongo)
    database = mongo.connect()

    mail_client: MailtrapClient | None = None
    if mail_sender is None and config.mail.api_token:
        mail_client = MailtrapClient(config.mail)
        mail_sender = mail_client

    limiter = RequestQuotaLimiter(
        database_path=(app_root / config.security.quota_sqlite_path).resolve(),
        policies=config.security.quotas,
    )

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        LOGGER.info("app_started")
        try:
            yield
        finally:
            limiter.close()
            if mail_client is not None:
                mail_client.close()
            mongo.close()
            LOGGER.info("app_stopped")

    app = FastAPI(title="Auth Service API", version="1.0.0", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.security.cors_allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )
    register_http_middleware(app, config=config, logger=LOGGER)
    register_exception_handlers(app, logger=LOGGER)

    repo = AccountRepository(app_root, database)
    notifier = AuthNotifier(mail_sender, client_url=config.auth.client_url)
    service = AccountLifecycleService(repo, notifier, config.auth)
    validator = SessionValidator(config.auth.secret_key)
    app.include_router(create_auth_router(service, validator, limiter, config.auth))

    @app.get("/health", response_model=HealthResponse)
    def health() -> HealthResponse:
        return HealthResponse(status="ok")

    return app
