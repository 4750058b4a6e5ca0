"""Tests for the Postgres repository against a stubbed connection pool."""

from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime, timezone

import pytest
from psycopg import errors as pg_errors

from credential_service.domain.account import (
    MAX_VERIFICATION_ATTEMPTS,
    Account,
    AccountRole,
    AccountStatus,
)
from credential_service.domain.contracts import NewAccountInput
from credential_service.domain.errors import DuplicateEmailError
from credential_service.repository import SCHEMA_SQL, AccountRepository

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)

ROW = (
    "acc-1",
    "a@x.com",
    "$2b$04$hash",
    "pending",
    "guest",
    "123456",
    2,
    None,
    None,
    "Ada",
    "Lovelace",
    "T-1",
    "Acme",
    "B123",
    "1 Main St",
    False,
    None,
    NOW,
    NOW,
)


class StubCursor:
    def __init__(self, conn: "StubConnection") -> None:
        self._conn = conn
        self.rowcount = conn.rowcount

    def __enter__(self) -> "StubCursor":
        return self

    def __exit__(self, *exc) -> None:
        return None

    def execute(self, query, params=None) -> None:
        self._conn.executed.append((query, params))
        if self._conn.error is not None:
            raise self._conn.error

    def fetchone(self):
        return self._conn.row


class StubConnection:
    def __init__(self, row=None, error: Exception | None = None, rowcount: int = 0) -> None:
        self.row = row
        self.error = error
        self.rowcount = rowcount
        self.executed: list[tuple[str, object]] = []
        self.commits = 0

    def cursor(self, row_factory=None) -> StubCursor:
        return StubCursor(self)

    def commit(self) -> None:
        self.commits += 1


class StubPool:
    def __init__(self, conn: StubConnection) -> None:
        self.conn = conn

    @contextmanager
    def connection(self):
        yield self.conn


def test_schema_enforces_unique_email_and_attempt_bounds(service):
    assert "CREATE UNIQUE INDEX IF NOT EXISTS accounts_email_key ON accounts (lower(email))" in SCHEMA_SQL
    assert "CHECK (verification_attempts BETWEEN 0 AND 5)" in SCHEMA_SQL
    assert "'{}'::jsonb" in SCHEMA_SQL
    # the service never records more failures than the column allows
    assert service.max_attempts == MAX_VERIFICATION_ATTEMPTS == 5


def test_find_by_id_maps_row_to_account():
    repo = AccountRepository(StubPool(StubConnection(row=ROW)))

    account = repo.find_by_id("acc-1")

    assert account.account_id == "acc-1"
    assert account.status is AccountStatus.pending
    assert account.role is AccountRole.guest
    assert account.verification_attempts == 2
    assert account.company_name == "Acme"


def test_find_returns_none_when_missing():
    repo = AccountRepository(StubPool(StubConnection(row=None)))
    assert repo.find_by_email("nobody@x.com") is None


def test_insert_translates_unique_violation():
    conn = StubConnection(error=pg_errors.UniqueViolation("duplicate key"))
    repo = AccountRepository(StubPool(conn))

    with pytest.raises(DuplicateEmailError):
        repo.insert(NewAccountInput(email="a@x.com", password_hash="h", verification_code="123456"))


def test_update_writes_password_hash_only_when_credential_changed():
    conn = StubConnection(row=ROW)
    repo = AccountRepository(StubPool(conn))
    account = Account(account_id="acc-1", email="a@x.com", password_hash="$2b$04$new")

    repo.update(account)
    profile_query, profile_params = conn.executed[-1]
    assert "password_hash = %s" not in profile_query
    assert "$2b$04$new" not in profile_params

    repo.update(account, credential_changed=True)
    credential_query, credential_params = conn.executed[-1]
    assert "password_hash = %s" in credential_query
    assert credential_params[-2:] == ["$2b$04$new", "acc-1"]


def test_delete_reports_whether_a_row_was_removed():
    assert AccountRepository(StubPool(StubConnection(rowcount=1))).delete("acc-1") is True
    assert AccountRepository(StubPool(StubConnection(rowcount=0))).delete("acc-1") is False
