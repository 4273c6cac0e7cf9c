#!/usr/bin/env python3
"""One-shot account migration from JSON fallback storage to MongoDB."""

from __future__ import annotations

import argparse
import json
import os
import sys
from pathlib import Path
from typing import Any

import pymongo
from pymongo.errors import PyMongoError
from pydantic import ValidationError

from authflow.auth.models import Account
from authflow.auth.repository import normalize_email
from authflow.core.mongo import ACCOUNTS_COLLECTION, apply_mongo_migrations

DEFAULT_ACCOUNTS_FILE = Path("runtime") / "auth_store" / "accounts.json"
DEFAULT_DB_NAME = "authflow"
MAX_PREVIEW_ITEMS = 10


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Check and migrate accounts from JSON to MongoDB."
    )
    parser.add_argument(
        "--accounts-file",
        type=Path,
        default=DEFAULT_ACCOUNTS_FILE,
        help="Path to fallback accounts.json file.",
    )
    parser.add_argument(
        "--check",
        action="store_true",
        help="Only print diff/check report and do not write into MongoDB.",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Validate and print migration plan without writing into MongoDB.",
    )
    return parser.parse_args(argv)


def load_source_rows(accounts_file: Path) -> list[dict[str, Any]]:
    """Load raw rows from the fallback JSON file."""
    if not accounts_file.exists():
        return []
    payload = json.loads(accounts_file.read_text(encoding="utf-8"))
    if not isinstance(payload, list):
        raise ValueError(
            f"Expected list in {accounts_file}, got {type(payload).__name__}"
        )
    return [item for item in payload if isinstance(item, dict)]


def normalize_source_accounts(rows: list[dict[str, Any]]) -> tuple[dict[str, Account], list[str], int]:
    """Validate rows keyed by normalized email.

    Returns the account map, the duplicated emails (last row wins) and the
    count of rows that failed validation.
    """
    accounts: dict[str, Account] = {}
    duplicates: set[str] = set()
    invalid_count = 0
    for row in rows:
        try:
            account = Account.model_validate(row)
        except ValidationError:
            invalid_count += 1
            continue
        email = normalize_email(account.email)
        if email in accounts:
            duplicates.add(email)
        accounts[email] = account.model_copy(update={"email": email})
    return accounts, sorted(duplicates), invalid_count


def target_email_set(collection: Any) -> set[str]:
    """Return normalized email set from the target collection."""
    return {
        normalize_email(str(row.get("email", "")))
        for row in collection.find({}, {"_id": 0, "email": 1})
    }


def migrate_accounts(
    source_map: dict[str, Account], collection: Any, dry_run: bool
) -> tuple[int, int]:
    """Upsert source accounts into the target collection by email."""
    if not source_map:
        return 0, 0

    missing_before = set(source_map) - target_email_set(collection)
    if dry_run:
        return len(source_map), len(missing_before)

    for email, account in source_map.items():
        collection.update_one(
            {"email": email},
            {"$set": account.model_dump(exclude_none=True)},
            upsert=True,
        )
    return len(source_map), len(missing_before)


def _print_check_report(
    accounts_file: Path,
    source_total_rows: int,
    invalid_count: int,
    source_map: dict[str, Account],
    duplicate_emails: list[str],
    target_emails: set[str],
) -> None:
    missing_in_target = sorted(set(source_map) - target_emails)
    extra_in_target = sorted(target_emails - set(source_map))

    print(f"Source file: {accounts_file}")
    print(f"Source rows total: {source_total_rows}")
    print(f"Source valid accounts: {len(source_map)}")
    print(f"Source invalid rows skipped: {invalid_count}")
    print(f"Source duplicate emails: {len(duplicate_emails)}")
    if duplicate_emails:
        print(f"Duplicate preview: {', '.join(duplicate_emails[:MAX_PREVIEW_ITEMS])}")
    print(f"Target accounts total: {len(target_emails)}")
    print(f"Missing in target: {len(missing_in_target)}")
    if missing_in_target:
        print(f"Missing preview: {', '.join(missing_in_target[:MAX_PREVIEW_ITEMS])}")
    print(f"Extra in target: {len(extra_in_target)}")
    if extra_in_target:
        print(f"Extra preview: {', '.join(extra_in_target[:MAX_PREVIEW_ITEMS])}")


def main(argv: list[str] | None = None) -> int:
    """Execute check or migration flow."""
    args = _parse_args(argv)

    source_rows = load_source_rows(args.accounts_file)
    source_map, duplicate_emails, invalid_count = normalize_source_accounts(source_rows)

    mongo_uri = os.getenv("MONGODB_URI", "").strip()
    if not mongo_uri:
        print("ERROR: MONGODB_URI is empty. Set env var before running script.", file=sys.stderr)
        return 1
    mongo_db = os.getenv("MONGODB_DB", DEFAULT_DB_NAME).strip() or DEFAULT_DB_NAME

    client: pymongo.MongoClient = pymongo.MongoClient(
        mongo_uri, serverSelectionTimeoutMS=5000, tz_aware=True
    )
    try:
        client.admin.command("ping")
        db = client[mongo_db]
        apply_mongo_migrations(db)
        collection = db[ACCOUNTS_COLLECTION]

        if args.check:
            _print_check_report(
                accounts_file=args.accounts_file,
                source_total_rows=len(source_rows),
                invalid_count=invalid_count,
                source_map=source_map,
                duplicate_emails=duplicate_emails,
                target_emails=target_email_set(collection),
            )
            return 0

        processed, inserted_candidates = migrate_accounts(
            source_map=source_map, collection=collection, dry_run=args.dry_run
        )
        print(f"Source rows total: {len(source_rows)}")
        print(f"Source valid accounts: {len(source_map)}")
        print(f"Source invalid rows skipped: {invalid_count}")
        print(f"Processed accounts: {processed}")
        print(f"Potentially inserted accounts: {inserted_candidates}")
        print(f"Mode: {'dry-run' if args.dry_run else 'write'}")
        print(f"Target accounts total now: {collection.count_documents({})}")
        return 0
    except PyMongoError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1
    finally:
        client.close()


if __name__ == "__main__":
    raise SystemExit(main())
