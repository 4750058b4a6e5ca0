"""Domain-level contracts shared by multiple layers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol

from .account import Account, AccountRole, AccountStatus


@dataclass(slots=True)
class NewAccountInput:
    """Validated inputs required to insert an account record."""

    email: str
    password_hash: str
    verification_code: str
    role: AccountRole = AccountRole.user
    status: AccountStatus = AccountStatus.pending
    company_name: str | None = None
    company_tax_id: str | None = None
    company_address: str | None = None
    is_self_employed: bool = False


@dataclass(slots=True)
class AuthResult:
    """Session token returned together with the authenticated account."""

    token: str
    account: Account


@dataclass(slots=True)
class InviteResult:
    """Credentials handed to the inviter for out-of-band relay."""

    email: str
    generated_password: str


class AccountStore(Protocol):
    """Keyed account storage; ``insert`` must enforce email uniqueness itself."""

    def find_by_email(self, email: str) -> Account | None: ...

    def find_by_id(self, account_id: str) -> Account | None: ...

    def find_by_reset_token(self, token_hash: str) -> Account | None: ...

    def insert(self, payload: NewAccountInput) -> Account: ...

    def update(self, account: Account, *, credential_changed: bool = False) -> Account: ...

    def delete(self, account_id: str) -> bool: ...

    def write_audit_event(
        self,
        *,
        account_id: str | None,
        event_type: str,
        actor: str | None,
        metadata: dict[str, Any] | None = None,
    ) -> None: ...
