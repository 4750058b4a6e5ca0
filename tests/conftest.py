from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from typing import Any

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from credential_service.api import routes
from credential_service.config import Settings
from credential_service.domain.account import Account
from credential_service.domain.contracts import NewAccountInput
from credential_service.domain.errors import DuplicateEmailError
from credential_service.domain.service import CredentialService
from credential_service.notifications import NotificationKind
from credential_service.security.codes import CodeGenerator
from credential_service.security.passwords import PasswordHasher
from credential_service.security.session import SessionGuard
from credential_service.security.tokens import TokenIssuer


class FakeAccountStore:
    """In-memory store mimicking the Postgres repository behaviours."""

    def __init__(self) -> None:
        self._accounts: dict[str, Account] = {}
        self.audit_log: list[FakeAuditRecord] = []
        self.credential_writes = 0

    def find_by_email(self, email: str) -> Account | None:
        for account in self._accounts.values():
            if account.email.lower() == email.lower():
                return account
        return None

    def find_by_id(self, account_id: str) -> Account | None:
        return self._accounts.get(account_id)

    def find_by_reset_token(self, token_hash: str) -> Account | None:
        for account in self._accounts.values():
            if account.password_reset_token_hash == token_hash:
                return account
        return None

    def insert(self, payload: NewAccountInput) -> Account:
        if any(a.email.lower() == payload.email.lower() for a in self._accounts.values()):
            raise DuplicateEmailError(payload.email)
        now = datetime.now(timezone.utc)
        account = Account(
            account_id=str(uuid.uuid4()),
            email=payload.email,
            password_hash=payload.password_hash,
            status=payload.status,
            role=payload.role,
            verification_code=payload.verification_code,
            company_name=payload.company_name,
            company_tax_id=payload.company_tax_id,
            company_address=payload.company_address,
            is_self_employed=payload.is_self_employed,
            created_at=now,
            updated_at=now,
        )
        self._accounts[account.account_id] = account
        return account

    def update(self, account: Account, *, credential_changed: bool = False) -> Account:
        existing = self._accounts.get(account.account_id)
        if existing is None:
            raise LookupError(f"account {account.account_id} no longer exists")
        if credential_changed:
            self.credential_writes += 1
        else:
            account = replace(account, password_hash=existing.password_hash)
        account = replace(account, updated_at=datetime.now(timezone.utc))
        self._accounts[account.account_id] = account
        return account

    def delete(self, account_id: str) -> bool:
        return self._accounts.pop(account_id, None) is not None

    def write_audit_event(
        self,
        *,
        account_id: str | None,
        event_type: str,
        actor: str | None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        self.audit_log.append(
            FakeAuditRecord(
                account_id=account_id,
                event_type=event_type,
                actor=actor,
                metadata=metadata or {},
            )
        )

    def event_types(self, account_id: str) -> list[str]:
        return [record.event_type for record in self.audit_log if record.account_id == account_id]


@dataclass
class FakeAuditRecord:
    account_id: str | None
    event_type: str
    actor: str | None
    metadata: dict


@dataclass
class RecordingNotifier:
    sent: list[tuple[NotificationKind, str, dict]] = field(default_factory=list)

    def send(self, kind: NotificationKind, email: str, payload: dict[str, Any]) -> None:
        self.sent.append((kind, email, payload))

    def last_code(self, email: str) -> str:
        for kind, recipient, payload in reversed(self.sent):
            if recipient == email and "code" in payload:
                return payload["code"]
        raise AssertionError(f"no code delivered to {email}")


class MutableClock:
    """Settable UTC clock used to simulate the passage of time."""

    def __init__(self) -> None:
        self.now = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        jwt_secret="conftest-signing-key-0123456789abcdef",
        jwt_issuer="credential-service.test",
        jwt_ttl_seconds=900,
        bcrypt_rounds=4,
        require_verified_login=False,
    )


@pytest.fixture
def store() -> FakeAccountStore:
    return FakeAccountStore()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def clock() -> MutableClock:
    return MutableClock()


@pytest.fixture
def token_issuer(settings: Settings) -> TokenIssuer:
    return TokenIssuer(
        secret=settings.jwt_secret,
        issuer=settings.jwt_issuer,
        ttl_seconds=settings.jwt_ttl_seconds,
    )


@pytest.fixture
def hasher(settings: Settings) -> PasswordHasher:
    return PasswordHasher(rounds=settings.bcrypt_rounds)


@pytest.fixture
def service(store, hasher, token_issuer, notifier, settings, clock) -> CredentialService:
    return CredentialService(
        store,
        hasher=hasher,
        tokens=token_issuer,
        codes=CodeGenerator(),
        notifier=notifier,
        settings=settings,
        clock=clock,
    )


@pytest.fixture
def api_client(service, store, token_issuer):
    """Provide a FastAPI test client with isolated state."""
    app = FastAPI()
    app.include_router(routes.router)
    app.state.credential_service = service
    app.state.token_issuer = token_issuer
    app.state.session_guard = SessionGuard(token_issuer, store)

    with TestClient(app) as client:
        yield client
