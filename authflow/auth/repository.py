"""Account store with MongoDB primary and file-store fallback."""

from __future__ import annotations

import json
import os
import tempfile
from datetime import datetime
from pathlib import Path
from threading import Lock
from typing import Any, Callable

from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from authflow.auth.errors import ConflictError, NotFoundError, ValidationError
from authflow.auth.models import Account, PendingToken, as_utc, utc_now
from authflow.core.mongo import ACCOUNTS_COLLECTION

_NO_ID = {"_id": 0}


def normalize_email(email: str) -> str:
    """Return the canonical, case-insensitive form of an email."""
    return email.strip().lower()


class AccountRepository:
    """Persistence for accounts and their pending one-time tokens.

    Every mutating method is a single atomic operation per account: Mongo
    uses conditional ``find_one_and_update`` and the file store serializes
    read-modify-write cycles behind one lock.
    """

    def __init__(self, app_root: Path, database: Any | None = None) -> None:
        """Initialize repository storage backends."""
        self._mongo_accounts = (
            database[ACCOUNTS_COLLECTION] if database is not None else None
        )
        self._fallback_dir = app_root / "runtime" / "auth_store"
        self._accounts_file = self._fallback_dir / "accounts.json"
        self._lock = Lock()
        if self._mongo_accounts is None:
            self._fallback_dir.mkdir(parents=True, exist_ok=True)

    def _read_json_file(self) -> list[dict[str, Any]]:
        """Read list payload from JSON file with empty fallback."""
        if not self._accounts_file.exists():
            return []
        try:
            payload = json.loads(self._accounts_file.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            return []
        return payload if isinstance(payload, list) else []

    def _write_json_file(self, items: list[dict[str, Any]]) -> None:
        """Persist list payload to JSON file.

        The payload is encoded up front and swapped in with ``os.replace``;
        a failed write leaves the previous file untouched.
        """
        try:
            data = json.dumps(items, ensure_ascii=False, indent=2).encode("utf-8")
        except UnicodeEncodeError as exc:
            raise ValidationError("Input contains invalid characters") from exc
        fd, tmp_name = tempfile.mkstemp(
            dir=self._fallback_dir, prefix=".accounts-", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "wb") as handle:
                handle.write(data)
            os.replace(tmp_name, self._accounts_file)
        except OSError:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def _file_accounts(self) -> list[Account]:
        return [Account.model_validate(row) for row in self._read_json_file()]

    def _file_find(self, predicate: Callable[[Account], bool]) -> Account | None:
        with self._lock:
            for account in self._file_accounts():
                if predicate(account):
                    return account
        return None

    def _file_mutate(
        self,
        predicate: Callable[[Account], bool],
        mutate: Callable[[Account], Account],
    ) -> Account | None:
        """Apply ``mutate`` to the first matching account under the store lock."""
        with self._lock:
            accounts = self._file_accounts()
            for index, account in enumerate(accounts):
                if not predicate(account):
                    continue
                updated = mutate(account)
                accounts[index] = updated
                self._write_json_file(
                    [row.model_dump(mode="json", exclude_none=True) for row in accounts]
                )
                return updated
        return None

    @staticmethod
    def _from_doc(doc: dict[str, Any] | None) -> Account | None:
        return Account.model_validate(doc) if doc else None

    def find_by_email(self, email: str) -> Account | None:
        """Get account by email."""
        key = normalize_email(email)
        if self._mongo_accounts is not None:
            return self._from_doc(self._mongo_accounts.find_one({"email": key}, _NO_ID))
        return self._file_find(lambda account: account.email == key)

    def find_by_id(self, account_id: str) -> Account | None:
        """Get account by id."""
        if self._mongo_accounts is not None:
            return self._from_doc(
                self._mongo_accounts.find_one({"account_id": account_id}, _NO_ID)
            )
        return self._file_find(lambda account: account.account_id == account_id)

    def find_by_verification_token(
        self, token: str, not_expired_at: datetime
    ) -> Account | None:
        """Get account whose pending verification matches and is still live."""
        if not token:
            return None
        if self._mongo_accounts is not None:
            return self._from_doc(
                self._mongo_accounts.find_one(
                    {
                        "verification.token": token,
                        "verification.expires_at": {"$gt": not_expired_at},
                    },
                    _NO_ID,
                )
            )
        return self._file_find(
            lambda account: _token_matches(account.verification, token, not_expired_at)
        )

    def find_by_reset_token(self, token: str, not_expired_at: datetime) -> Account | None:
        """Get account whose pending reset matches and is still live."""
        if not token:
            return None
        if self._mongo_accounts is not None:
            return self._from_doc(
                self._mongo_accounts.find_one(
                    {"reset.token": token, "reset.expires_at": {"$gt": not_expired_at}},
                    _NO_ID,
                )
            )
        return self._file_find(
            lambda account: _token_matches(account.reset, token, not_expired_at)
        )

    def insert(self, account: Account) -> Account:
        """Create a new account; duplicate email raises ``ConflictError``."""
        now = utc_now()
        created = account.model_copy(
            update={
                "email": normalize_email(account.email),
                "created_at": now,
                "updated_at": now,
            }
        )
        if self._mongo_accounts is not None:
            try:
                self._mongo_accounts.insert_one(created.model_dump(exclude_none=True))
            except DuplicateKeyError as exc:
                raise ConflictError() from exc
            return created

        with self._lock:
            accounts = self._file_accounts()
            for existing in accounts:
                if existing.email == created.email or existing.account_id == created.account_id:
                    raise ConflictError()
            accounts.append(created)
            self._write_json_file(
                [row.model_dump(mode="json", exclude_none=True) for row in accounts]
            )
        return created

    def update(self, account: Account) -> Account:
        """Replace the stored document for ``account.account_id``."""
        updated = account.model_copy(update={"updated_at": utc_now()})
        if self._mongo_accounts is not None:
            result = self._mongo_accounts.replace_one(
                {"account_id": account.account_id},
                updated.model_dump(exclude_none=True),
            )
            if result.matched_count == 0:
                raise NotFoundError()
            return updated

        replaced = self._file_mutate(
            lambda row: row.account_id == account.account_id, lambda _row: updated
        )
        if replaced is None:
            raise NotFoundError()
        return replaced

    def consume_verification_token(self, token: str, now: datetime) -> Account | None:
        """Mark the matching account verified and clear its pending code."""
        if not token:
            return None
        if self._mongo_accounts is not None:
            return _find_and_update(
                self._mongo_accounts,
                {"verification.token": token, "verification.expires_at": {"$gt": now}},
                {
                    "$set": {"is_verified": True, "updated_at": now},
                    "$unset": {"verification": ""},
                },
            )
        return self._file_mutate(
            lambda account: _token_matches(account.verification, token, now),
            lambda account: account.model_copy(
                update={"is_verified": True, "verification": None, "updated_at": now}
            ),
        )

    def consume_reset_token(
        self, token: str, now: datetime, password_hash: str
    ) -> Account | None:
        """Swap in ``password_hash`` and clear the matching pending reset."""
        if not token:
            return None
        if self._mongo_accounts is not None:
            return _find_and_update(
                self._mongo_accounts,
                {"reset.token": token, "reset.expires_at": {"$gt": now}},
                {
                    "$set": {"password_hash": password_hash, "updated_at": now},
                    "$unset": {"reset": ""},
                },
            )
        return self._file_mutate(
            lambda account: _token_matches(account.reset, token, now),
            lambda account: account.model_copy(
                update={"password_hash": password_hash, "reset": None, "updated_at": now}
            ),
        )

    def set_reset_token(
        self, account_id: str, pending: PendingToken, now: datetime
    ) -> Account | None:
        """Overwrite any pending reset with ``pending`` in one write."""
        if self._mongo_accounts is not None:
            return _find_and_update(
                self._mongo_accounts,
                {"account_id": account_id},
                {"$set": {"reset": pending.model_dump(), "updated_at": now}},
            )
        return self._file_mutate(
            lambda account: account.account_id == account_id,
            lambda account: account.model_copy(update={"reset": pending, "updated_at": now}),
        )

    def record_login(self, account_id: str, at: datetime) -> Account | None:
        """Stamp ``last_login_at`` for the account."""
        if self._mongo_accounts is not None:
            return _find_and_update(
                self._mongo_accounts,
                {"account_id": account_id},
                {"$set": {"last_login_at": at, "updated_at": at}},
            )
        return self._file_mutate(
            lambda account: account.account_id == account_id,
            lambda account: account.model_copy(
                update={"last_login_at": at, "updated_at": at}
            ),
        )


def _token_matches(pending: PendingToken | None, token: str, now: datetime) -> bool:
    return pending is not None and pending.token == token and pending.is_live(as_utc(now))


def _find_and_update(
    collection: Any, query: dict[str, Any], update: dict[str, Any]
) -> Account | None:
    """Apply ``update`` to the first document matching ``query`` and return it."""
    doc = collection.find_one_and_update(
        query,
        update,
        projection=_NO_ID,
        return_document=ReturnDocument.AFTER,
    )
    return Account.model_validate(doc) if doc else None
