from __future__ import annotations

import json
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from authflow.auth.errors import (
    ConflictError,
    InvalidCredentialsError,
    InvalidTokenError,
    NotFoundError,
    NotificationError,
    ValidationError,
)
from authflow.auth.models import Account
from authflow.auth.repository import AccountRepository
from authflow.auth.service import AccountLifecycleService
from authflow.auth.sessions import SessionValidator
from authflow.core.config import AuthConfig


@dataclass
class _Notifier:
    verification_codes: list[tuple[str, str]] = field(default_factory=list)
    welcomed: list[str] = field(default_factory=list)
    reset_tokens: list[tuple[str, str]] = field(default_factory=list)
    reset_confirmed: list[str] = field(default_factory=list)
    fail: bool = False

    def send_verification_email(self, account: Account, code: str) -> None:
        if self.fail:
            raise NotificationError("provider down")
        self.verification_codes.append((account.email, code))

    def send_welcome_email(self, account: Account) -> None:
        self.welcomed.append(account.email)

    def send_password_reset_email(self, account: Account, token: str) -> None:
        self.reset_tokens.append((account.email, token))

    def send_reset_success_email(self, account: Account) -> None:
        self.reset_confirmed.append(account.email)


@dataclass
class _Clock:
    now: datetime = field(
        default_factory=lambda: datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
    )

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta: float) -> None:
        self.now = self.now + timedelta(**delta)


def _auth_config() -> AuthConfig:
    return AuthConfig(
        secret_key="test-secret",
        session_ttl_seconds=14 * 24 * 3600,
        verification_ttl_seconds=24 * 3600,
        reset_ttl_seconds=3600,
        bcrypt_rounds=4,
        cookie_name="jwt",
        cookie_secure=False,
        client_url="http://localhost:5173",
    )


def _build_service(
    tmp_path: Path, clock: _Clock | None = None
) -> tuple[AccountLifecycleService, AccountRepository, _Notifier]:
    repo = AccountRepository(tmp_path)
    notifier = _Notifier()
    service = AccountLifecycleService(
        repo=repo, notifier=notifier, config=_auth_config(), clock=clock or _Clock()
    )
    return service, repo, notifier


def test_register_creates_unverified_account_with_pending_code(tmp_path: Path) -> None:
    service, repo, notifier = _build_service(tmp_path)

    result = service.register("a@x.com", "secret1", "Ann")
    stored = repo.find_by_email("a@x.com")

    assert stored is not None
    assert stored.is_verified is False
    assert stored.verification is not None
    assert stored.verification.token
    assert stored.password_hash != "secret1"
    assert notifier.verification_codes == [("a@x.com", stored.verification.token)]
    assert SessionValidator("test-secret").validate(result.session_token) == stored.account_id


def test_register_sets_24_hour_verification_window(tmp_path: Path) -> None:
    clock = _Clock()
    service, repo, _ = _build_service(tmp_path, clock)

    service.register("a@x.com", "secret1", "Ann")

    pending = repo.find_by_email("a@x.com").verification
    assert pending.expires_at == clock.now + timedelta(hours=24)


@pytest.mark.parametrize(
    ("email", "password", "name"),
    [
        ("", "secret1", "Ann"),
        ("a@x.com", "", "Ann"),
        ("a@x.com", "secret1", ""),
        ("a@x.com", "secret1", "A"),
        ("a@x.com", "secret1", "N" * 31),
        ("a" * 45 + "@x.com", "secret1", "Ann"),
        ("not-an-email", "secret1", "Ann"),
        ("a@x.com", "short", "Ann"),
    ],
)
def test_register_rejects_invalid_fields(
    tmp_path: Path, email: str, password: str, name: str
) -> None:
    service, repo, notifier = _build_service(tmp_path)

    with pytest.raises(ValidationError):
        service.register(email, password, name)

    assert notifier.verification_codes == []


def test_register_rejects_duplicate_email(tmp_path: Path) -> None:
    service, _, _ = _build_service(tmp_path)
    service.register("a@x.com", "secret1", "Ann")

    with pytest.raises(ConflictError):
        service.register("A@X.com", "secret2", "Other")


def test_concurrent_registration_with_same_email_admits_one(tmp_path: Path) -> None:
    service, repo, _ = _build_service(tmp_path)
    barrier = threading.Barrier(2)
    outcomes: list[str] = []
    lock = threading.Lock()

    def worker() -> None:
        barrier.wait()
        try:
            service.register("race@x.com", "secret1", "Racer")
            outcome = "ok"
        except ConflictError:
            outcome = "conflict"
        with lock:
            outcomes.append(outcome)

    threads = [threading.Thread(target=worker) for _ in range(2)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert sorted(outcomes) == ["conflict", "ok"]
    rows = json.loads(
        (tmp_path / "runtime" / "auth_store" / "accounts.json").read_text(encoding="utf-8")
    )
    assert [row["email"] for row in rows] == ["race@x.com"]
    assert repo.find_by_email("race@x.com") is not None


def test_register_commits_account_even_if_email_fails(tmp_path: Path) -> None:
    service, repo, notifier = _build_service(tmp_path)
    notifier.fail = True

    with pytest.raises(NotificationError):
        service.register("a@x.com", "secret1", "Ann")

    assert repo.find_by_email("a@x.com") is not None


def test_verify_email_succeeds_exactly_once(tmp_path: Path) -> None:
    service, repo, notifier = _build_service(tmp_path)
    service.register("a@x.com", "secret1", "Ann")
    code = notifier.verification_codes[0][1]

    account = service.verify_email(code)

    assert account.is_verified is True
    assert account.verification is None
    assert notifier.welcomed == ["a@x.com"]
    with pytest.raises(InvalidTokenError):
        service.verify_email(code)
    assert repo.find_by_email("a@x.com").is_verified is True


def test_verify_email_expired_code_matches_wrong_code_error(tmp_path: Path) -> None:
    clock = _Clock()
    service, _, notifier = _build_service(tmp_path, clock)
    service.register("a@x.com", "secret1", "Ann")
    code = notifier.verification_codes[0][1]
    wrong = "000000" if code != "000000" else "111111"

    with pytest.raises(InvalidTokenError) as wrong_exc:
        service.verify_email(wrong)
    clock.advance(hours=24)
    with pytest.raises(InvalidTokenError) as expired_exc:
        service.verify_email(code)

    assert type(wrong_exc.value) is type(expired_exc.value)
    assert wrong_exc.value.message == expired_exc.value.message
    assert notifier.welcomed == []


def test_login_allowed_before_verification(tmp_path: Path) -> None:
    clock = _Clock()
    service, _, _ = _build_service(tmp_path, clock)
    service.register("a@x.com", "secret1", "Ann")
    clock.advance(minutes=5)

    result = service.login("a@x.com", "secret1")

    assert result.account.is_verified is False
    assert result.account.last_login_at == clock.now
    assert SessionValidator("test-secret").validate(result.session_token) == result.account.account_id


def test_login_errors_are_uniform(tmp_path: Path) -> None:
    service, _, _ = _build_service(tmp_path)
    service.register("a@x.com", "secret1", "Ann")

    with pytest.raises(InvalidCredentialsError) as unknown:
        service.login("nobody@x.com", "secret1")
    with pytest.raises(InvalidCredentialsError) as mismatch:
        service.login("a@x.com", "wrong-password")

    assert unknown.value.message == mismatch.value.message


def test_logout_does_not_touch_store(tmp_path: Path) -> None:
    service, repo, _ = _build_service(tmp_path)
    service.register("a@x.com", "secret1", "Ann")
    before = repo.find_by_email("a@x.com")

    service.logout()

    assert repo.find_by_email("a@x.com") == before


def test_forgot_password_unknown_email(tmp_path: Path) -> None:
    service, _, _ = _build_service(tmp_path)

    with pytest.raises(NotFoundError):
        service.forgot_password("nobody@x.com")


def test_forgot_password_sets_one_hour_token(tmp_path: Path) -> None:
    clock = _Clock()
    service, repo, notifier = _build_service(tmp_path, clock)
    service.register("a@x.com", "secret1", "Ann")

    service.forgot_password("a@x.com")

    pending = repo.find_by_email("a@x.com").reset
    assert pending is not None
    assert pending.expires_at == clock.now + timedelta(hours=1)
    assert notifier.reset_tokens == [("a@x.com", pending.token)]


def test_second_forgot_password_invalidates_first_token(tmp_path: Path) -> None:
    service, _, notifier = _build_service(tmp_path)
    service.register("a@x.com", "secret1", "Ann")
    service.forgot_password("a@x.com")
    service.forgot_password("a@x.com")
    first, second = (token for _, token in notifier.reset_tokens)

    with pytest.raises(InvalidTokenError):
        service.reset_password(first, "longenough1")
    service.reset_password(second, "longenough1")

    assert service.login("a@x.com", "longenough1").account.email == "a@x.com"


def test_reset_password_short_password_keeps_token(tmp_path: Path) -> None:
    service, repo, notifier = _build_service(tmp_path)
    service.register("a@x.com", "secret1", "Ann")
    service.forgot_password("a@x.com")
    token = notifier.reset_tokens[0][1]

    with pytest.raises(ValidationError):
        service.reset_password(token, "12345")

    assert repo.find_by_email("a@x.com").reset is not None
    service.reset_password(token, "123456")
    assert repo.find_by_email("a@x.com").reset is None


@pytest.mark.parametrize(
    ("email", "password", "name"),
    [
        ("b@x.com", "secret1", "Sa\ud800m"),
        ("b@x.com", "abc\ud800def", "Bob"),
        ("b\udfff@x.com", "secret1", "Bob"),
    ],
)
def test_register_rejects_unencodable_text_and_keeps_store(
    tmp_path: Path, email: str, password: str, name: str
) -> None:
    service, repo, notifier = _build_service(tmp_path)
    service.register("a@x.com", "secret1", "Ann")

    with pytest.raises(ValidationError):
        service.register(email, password, name)

    assert len(notifier.verification_codes) == 1
    assert repo.find_by_email("b@x.com") is None
    assert service.login("a@x.com", "secret1").account.email == "a@x.com"


def test_unencodable_text_is_a_validation_error_everywhere(tmp_path: Path) -> None:
    service, repo, notifier = _build_service(tmp_path)
    service.register("a@x.com", "secret1", "Ann")
    service.forgot_password("a@x.com")
    token = notifier.reset_tokens[0][1]

    with pytest.raises(ValidationError):
        service.reset_password(token, "abc\ud800def")
    with pytest.raises(ValidationError):
        service.login("a@x.com", "abc\ud800def")
    with pytest.raises(ValidationError):
        service.forgot_password("a\ud800@x.com")
    with pytest.raises(ValidationError):
        service.verify_email("12\ud8003")

    assert repo.find_by_email("a@x.com").reset is not None


def test_file_store_keeps_accounts_when_write_fails(tmp_path: Path) -> None:
    service, repo, _ = _build_service(tmp_path)
    service.register("a@x.com", "secret1", "Ann")
    accounts_file = tmp_path / "runtime" / "auth_store" / "accounts.json"
    before = accounts_file.read_bytes()

    bad = repo.find_by_email("a@x.com").model_copy(
        update={"account_id": "other", "email": "b@x.com", "display_name": "Sa\ud800m"}
    )
    with pytest.raises(ValidationError):
        repo.insert(bad)

    assert accounts_file.read_bytes() == before
    assert list(accounts_file.parent.glob("*.tmp")) == []
    assert repo.find_by_email("a@x.com") is not None


def test_reset_password_expired_token(tmp_path: Path) -> None:
    clock = _Clock()
    service, _, notifier = _build_service(tmp_path, clock)
    service.register("a@x.com", "secret1", "Ann")
    service.forgot_password("a@x.com")
    token = notifier.reset_tokens[0][1]
    clock.advance(hours=1, seconds=1)

    with pytest.raises(InvalidTokenError):
        service.reset_password(token, "longenough1")


def test_password_reset_scenario(tmp_path: Path) -> None:
    service, _, notifier = _build_service(tmp_path)
    service.register("a@x.com", "secret1", "Ann")
    service.forgot_password("a@x.com")
    token = notifier.reset_tokens[0][1]

    with pytest.raises(ValidationError):
        service.reset_password(token, "short")
    service.reset_password(token, "longenough1")

    assert notifier.reset_confirmed == ["a@x.com"]
    with pytest.raises(InvalidCredentialsError):
        service.login("a@x.com", "secret1")
    assert service.login("a@x.com", "longenough1").session_token
    with pytest.raises(InvalidTokenError):
        service.reset_password(token, "anotherpass1")


def test_concurrent_reset_with_same_token_succeeds_once(tmp_path: Path) -> None:
    service, _, notifier = _build_service(tmp_path)
    service.register("a@x.com", "secret1", "Ann")
    service.forgot_password("a@x.com")
    token = notifier.reset_tokens[0][1]
    barrier = threading.Barrier(2)
    outcomes: list[str] = []
    lock = threading.Lock()

    def worker(password: str) -> None:
        barrier.wait()
        try:
            service.reset_password(token, password)
            outcome = password
        except InvalidTokenError:
            outcome = "invalid"
        with lock:
            outcomes.append(outcome)

    threads = [
        threading.Thread(target=worker, args=(password,))
        for password in ("first-pass", "second-pass")
    ]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert outcomes.count("invalid") == 1
    winner = next(outcome for outcome in outcomes if outcome != "invalid")
    assert service.login("a@x.com", winner).account.email == "a@x.com"
    assert notifier.reset_confirmed == ["a@x.com"]


def test_current_account_for_missing_account(tmp_path: Path) -> None:
    service, _, _ = _build_service(tmp_path)

    with pytest.raises(NotFoundError):
        service.current_account("gone")


def test_signup_verify_scenario(tmp_path: Path) -> None:
    service, _, notifier = _build_service(tmp_path)

    registered = service.register("a@x.com", "secret1", "Ann")
    assert registered.account.public_view()["isVerified"] is False
    assert service.login("a@x.com", "secret1").session_token
    code = notifier.verification_codes[0][1]
    wrong = "000000" if code != "000000" else "111111"

    with pytest.raises(InvalidTokenError):
        service.verify_email(wrong)
    assert service.verify_email(code).public_view()["isVerified"] is True
    with pytest.raises(InvalidTokenError):
        service.verify_email(code)
