"""Per-endpoint request quotas backed by SQLite runtime state."""

from __future__ import annotations

import logging
import math
import sqlite3
import time
from pathlib import Path
from threading import Lock
from typing import Callable

from authflow.auth.errors import RateLimitedError
from authflow.core.config import QuotaPolicy
from authflow.core.migrations.runner import apply_migrations

LOGGER = logging.getLogger(__name__)


class RequestQuotaLimiter:
    """Fixed-window request counter keyed by ``(scope, client_ip)``.

    Scopes whose policy sets ``count_successful=False`` only spend quota on
    failed requests.
    """

    def __init__(
        self,
        *,
        database_path: Path,
        policies: dict[str, QuotaPolicy],
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize limiter storage and policy parameters."""
        apply_migrations(database_path)
        self._connection = sqlite3.connect(str(database_path), check_same_thread=False)
        self._connection.row_factory = sqlite3.Row
        self._lock = Lock()
        self._policies = dict(policies)
        self._clock = clock

    def _policy(self, scope: str) -> QuotaPolicy:
        try:
            return self._policies[scope]
        except KeyError:
            raise ValueError(f"No quota policy configured for scope {scope!r}") from None

    def assert_allowed(self, *, scope: str, client_ip: str) -> None:
        """Raise ``RateLimitedError`` when the caller exhausted the scope quota."""
        policy = self._policy(scope)
        now = int(self._clock())
        key_ip = client_ip.strip() or "unknown"
        with self._lock:
            row = self._connection.execute(
                """
                SELECT hits, window_started_at
                FROM request_quota
                WHERE scope = ? AND client_ip = ?
                """,
                (scope, key_ip),
            ).fetchone()
            if row is None:
                return

            window_started_at = int(row["window_started_at"] or 0)
            window_ends_at = window_started_at + max(1, policy.window_seconds)
            if now >= window_ends_at:
                self._connection.execute(
                    "DELETE FROM request_quota WHERE scope = ? AND client_ip = ?",
                    (scope, key_ip),
                )
                self._connection.commit()
                return

            if int(row["hits"] or 0) >= max(1, policy.limit):
                retry_after = window_ends_at - now
                LOGGER.warning("request_quota_exceeded", extra={"scope": scope})
                raise RateLimitedError(
                    f"Too many {scope.replace('-', ' ')} attempts. "
                    f"Please try again in {math.ceil(retry_after / 60)} minutes.",
                    retry_after=retry_after,
                )

    def record(self, *, scope: str, client_ip: str, succeeded: bool = False) -> None:
        """Count one request against the caller's quota for ``scope``."""
        policy = self._policy(scope)
        if succeeded and not policy.count_successful:
            return
        now = int(self._clock())
        key_ip = client_ip.strip() or "unknown"
        with self._lock:
            row = self._connection.execute(
                """
                SELECT hits, window_started_at
                FROM request_quota
                WHERE scope = ? AND client_ip = ?
                """,
                (scope, key_ip),
            ).fetchone()

            if row is None:
                hits = 1
                window_started_at = now
            else:
                previous_start = int(row["window_started_at"] or 0)
                if now - previous_start >= max(1, policy.window_seconds):
                    hits = 1
                    window_started_at = now
                else:
                    hits = int(row["hits"] or 0) + 1
                    window_started_at = previous_start

            self._connection.execute(
                """
                INSERT INTO request_quota(scope, client_ip, hits, window_started_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(scope, client_ip) DO UPDATE SET
                  hits = excluded.hits,
                  window_started_at = excluded.window_started_at
                """,
                (scope, key_ip, hits, window_started_at),
            )
            self._connection.commit()

    def close(self) -> None:
        """Close SQLite resources."""
        with self._lock:
            self._connection.close()
