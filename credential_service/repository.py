"""Database repository for account credential data."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any

from psycopg import errors as pg_errors
from psycopg.rows import tuple_row
from psycopg.types.json import Json
from psycopg_pool import ConnectionPool

from .domain.account import MAX_VERIFICATION_ATTEMPTS, Account, AccountRole, AccountStatus
from .domain.contracts import NewAccountInput
from .domain.errors import DuplicateEmailError

SCHEMA_SQL = f"""
CREATE TABLE IF NOT EXISTS accounts (
    account_id TEXT PRIMARY KEY,
    email TEXT NOT NULL,
    password_hash TEXT NOT NULL,
    status TEXT NOT NULL DEFAULT 'pending',
    role TEXT NOT NULL DEFAULT 'user',
    verification_code TEXT,
    verification_attempts INTEGER NOT NULL DEFAULT 0
        CHECK (verification_attempts BETWEEN 0 AND {MAX_VERIFICATION_ATTEMPTS}),
    password_reset_token_hash TEXT,
    password_reset_expires TIMESTAMPTZ,
    first_name TEXT,
    last_name TEXT,
    tax_id TEXT,
    company_name TEXT,
    company_tax_id TEXT,
    company_address TEXT,
    is_self_employed BOOLEAN NOT NULL DEFAULT FALSE,
    logo TEXT,
    created_at TIMESTAMPTZ NOT NULL,
    updated_at TIMESTAMPTZ NOT NULL,
    CHECK ((password_reset_token_hash IS NULL) = (password_reset_expires IS NULL))
);
CREATE UNIQUE INDEX IF NOT EXISTS accounts_email_key ON accounts (lower(email));
CREATE UNIQUE INDEX IF NOT EXISTS accounts_reset_token_key
    ON accounts (password_reset_token_hash)
    WHERE password_reset_token_hash IS NOT NULL;
CREATE TABLE IF NOT EXISTS account_audit_log (
    audit_id BIGSERIAL PRIMARY KEY,
    account_id TEXT,
    event_type TEXT NOT NULL,
    actor TEXT,
    metadata JSONB NOT NULL DEFAULT '{{}}'::jsonb,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);
"""

_COLUMNS = (
    "account_id, email, password_hash, status, role, verification_code, "
    "verification_attempts, password_reset_token_hash, password_reset_expires, "
    "first_name, last_name, tax_id, company_name, company_tax_id, company_address, "
    "is_self_employed, logo, created_at, updated_at"
)


class AccountRepository:
    """Postgres-backed account persistence enforcing email uniqueness with an index."""

    def __init__(self, pool: ConnectionPool) -> None:
        """Store the connection pool used for all database interactions."""
        self._pool = pool

    def ensure_schema(self) -> None:
        """Create the account and audit tables when they do not exist yet."""
        with self._pool.connection() as conn:
            with conn.cursor() as cur:
                cur.execute(SCHEMA_SQL)
                conn.commit()

    def find_by_email(self, email: str) -> Account | None:
        return self._fetch_one("lower(email) = lower(%s)", (email,))

    def find_by_id(self, account_id: str) -> Account | None:
        return self._fetch_one("account_id = %s", (account_id,))

    def find_by_reset_token(self, token_hash: str) -> Account | None:
        """Return the account bound to a reset token digest, expired or not."""
        return self._fetch_one("password_reset_token_hash = %s", (token_hash,))

    def insert(self, payload: NewAccountInput) -> Account:
        """Persist a new account; raises ``DuplicateEmailError`` on an email collision."""
        account_id = str(uuid.uuid4())
        now = datetime.now(timezone.utc)
        try:
            with self._pool.connection() as conn:
                with conn.cursor(row_factory=tuple_row) as cur:
                    cur.execute(
                        f"""
                        INSERT INTO accounts (
                            account_id, email, password_hash, status, role,
                            verification_code, verification_attempts,
                            company_name, company_tax_id, company_address,
                            is_self_employed, created_at, updated_at
                        )
                        VALUES (%s, %s, %s, %s, %s, %s, 0, %s, %s, %s, %s, %s, %s)
                        RETURNING {_COLUMNS}
                        """,
                        (
                            account_id,
                            payload.email,
                            payload.password_hash,
                            payload.status.value,
                            payload.role.value,
                            payload.verification_code,
                            payload.company_name,
                            payload.company_tax_id,
                            payload.company_address,
                            payload.is_self_employed,
                            now,
                            now,
                        ),
                    )
                    record = cur.fetchone()
                    conn.commit()
        except pg_errors.UniqueViolation as exc:
            raise DuplicateEmailError(payload.email) from exc
        return self._map_record(record)

    def update(self, account: Account, *, credential_changed: bool = False) -> Account:
        """Write the mutable fields of ``account``.

        ``password_hash`` is only written when ``credential_changed`` is set, so
        profile edits can never clobber a credential.
        """
        assignments = [
            "status = %s",
            "role = %s",
            "verification_code = %s",
            "verification_attempts = %s",
            "password_reset_token_hash = %s",
            "password_reset_expires = %s",
            "first_name = %s",
            "last_name = %s",
            "tax_id = %s",
            "company_name = %s",
            "company_tax_id = %s",
            "company_address = %s",
            "is_self_employed = %s",
            "logo = %s",
            "updated_at = %s",
        ]
        params: list[Any] = [
            account.status.value,
            account.role.value,
            account.verification_code,
            account.verification_attempts,
            account.password_reset_token_hash,
            account.password_reset_expires,
            account.first_name,
            account.last_name,
            account.tax_id,
            account.company_name,
            account.company_tax_id,
            account.company_address,
            account.is_self_employed,
            account.logo,
            datetime.now(timezone.utc),
        ]
        if credential_changed:
            assignments.append("password_hash = %s")
            params.append(account.password_hash)
        params.append(account.account_id)

        with self._pool.connection() as conn:
            with conn.cursor(row_factory=tuple_row) as cur:
                cur.execute(
                    f"""
                    UPDATE accounts
                    SET {", ".join(assignments)}
                    WHERE account_id = %s
                    RETURNING {_COLUMNS}
                    """,
                    params,
                )
                record = cur.fetchone()
                conn.commit()
        if record is None:
            raise LookupError(f"account {account.account_id} no longer exists")
        return self._map_record(record)

    def delete(self, account_id: str) -> bool:
        """Erase an account record; returns ``False`` when nothing was deleted."""
        with self._pool.connection() as conn:
            with conn.cursor() as cur:
                cur.execute("DELETE FROM accounts WHERE account_id = %s", (account_id,))
                deleted = cur.rowcount > 0
                conn.commit()
        return deleted

    def write_audit_event(
        self,
        *,
        account_id: str | None,
        event_type: str,
        actor: str | None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        """Record an audit trail entry capturing credential workflow activity."""
        with self._pool.connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    INSERT INTO account_audit_log (account_id, event_type, actor, metadata)
                    VALUES (%s, %s, %s, %s)
                    """,
                    (account_id, event_type, actor, Json(metadata or {})),
                )
                conn.commit()

    def _fetch_one(self, where_sql: str, params: tuple[Any, ...]) -> Account | None:
        with self._pool.connection() as conn:
            with conn.cursor(row_factory=tuple_row) as cur:
                cur.execute(f"SELECT {_COLUMNS} FROM accounts WHERE {where_sql}", params)
                row = cur.fetchone()
                if not row:
                    return None
        return self._map_record(row)

    @staticmethod
    def _map_record(row: tuple) -> Account:
        """Convert a raw database tuple into the domain ``Account`` dataclass."""
        return Account(
            account_id=row[0],
            email=row[1],
            password_hash=row[2],
            status=AccountStatus(row[3]),
            role=AccountRole(row[4]),
            verification_code=row[5],
            verification_attempts=row[6],
            password_reset_token_hash=row[7],
            password_reset_expires=row[8],
            first_name=row[9],
            last_name=row[10],
            tax_id=row[11],
            company_name=row[12],
            company_tax_id=row[13],
            company_address=row[14],
            is_self_employed=row[15],
            logo=row[16],
            created_at=row[17],
            updated_at=row[18],
        )
