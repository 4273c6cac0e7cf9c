"""MongoDB client lifecycle and versioned index migrations."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable

import pymongo
from pymongo.database import Database
from pymongo.errors import PyMongoError

from authflow.core.config import MongoConfig
from authflow.core.logging import CORRELATION_ID_CTX

LOGGER = logging.getLogger(__name__)

MigrationFn = Callable[[Any], None]

ACCOUNTS_COLLECTION = "accounts"


def _migration_20260301_01_account_indexes(db: Any) -> None:
    accounts = db[ACCOUNTS_COLLECTION]
    accounts.create_index("account_id", unique=True)
    accounts.create_index("email", unique=True)
    accounts.create_index("verification.token", sparse=True)
    accounts.create_index("reset.token", sparse=True)


MIGRATIONS: list[tuple[str, MigrationFn]] = [
    ("20260301_01_account_indexes", _migration_20260301_01_account_indexes),
]


def apply_mongo_migrations(db: Any) -> list[str]:
    """Apply pending migrations and return the ids that ran."""
    migration_collection = db["schema_migrations"]
    migration_collection.create_index("migration_id", unique=True)

    applied: list[str] = []
    for migration_id, migration_fn in MIGRATIONS:
        if migration_collection.find_one({"migration_id": migration_id}):
            continue
        migration_fn(db)
        migration_collection.insert_one(
            {
                "migration_id": migration_id,
                "applied_at": datetime.now(timezone.utc),
                "correlation_id": CORRELATION_ID_CTX.get(),
            }
        )
        applied.append(migration_id)
    return applied


class MongoResources:
    """Process-wide MongoDB client opened at startup and closed at shutdown."""

    def __init__(self, config: MongoConfig) -> None:
        self._config = config
        self._client: pymongo.MongoClient | None = None

    @property
    def enabled(self) -> bool:
        return bool(self._config.uri)

    def connect(self) -> Database | None:
        """Open the client, verify connectivity and run migrations.

        Returns ``None`` when no URI is configured.
        """
        if not self.enabled:
            LOGGER.warning("mongo_disabled_using_file_store")
            return None
        if self._client is None:
            client: pymongo.MongoClient = pymongo.MongoClient(
                self._config.uri, serverSelectionTimeoutMS=3000, tz_aware=True
            )
            try:
                client.admin.command("ping")
            except PyMongoError:
                client.close()
                LOGGER.exception("mongo_connection_failed")
                raise
            self._client = client
            LOGGER.info("mongo_connected")
        db = self._client[self._config.database]
        apply_mongo_migrations(db)
        return db

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None
