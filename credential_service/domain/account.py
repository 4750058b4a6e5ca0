from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum

MAX_VERIFICATION_ATTEMPTS = 5


class AccountStatus(str, Enum):
    pending = "pending"
    verified = "verified"
    removed = "removed"


class AccountRole(str, Enum):
    user = "user"
    admin = "admin"
    guest = "guest"


@dataclass(frozen=True, slots=True)
class Account:
    """Aggregate root for a single credential-bearing identity.

    Instances are immutable; every state transition returns a new value that
    the caller persists explicitly through the account store.
    """

    account_id: str
    email: str
    password_hash: str
    status: AccountStatus = AccountStatus.pending
    role: AccountRole = AccountRole.user
    verification_code: str | None = None
    verification_attempts: int = 0
    password_reset_token_hash: str | None = None
    password_reset_expires: datetime | None = None
    first_name: str | None = None
    last_name: str | None = None
    tax_id: str | None = None
    company_name: str | None = None
    company_tax_id: str | None = None
    company_address: str | None = None
    is_self_employed: bool = False
    logo: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_removed(self) -> bool:
        return self.status is AccountStatus.removed

    @property
    def is_verified(self) -> bool:
        return self.status is AccountStatus.verified

    def public_profile(self) -> dict[str, str]:
        """Subset of fields returned alongside a freshly issued session token."""
        return {"email": self.email, "status": self.status.value, "role": self.role.value}

    def mark_verified(self) -> "Account":
        return replace(
            self,
            status=AccountStatus.verified,
            verification_code=None,
            verification_attempts=0,
        )

    def record_failed_attempt(self, max_attempts: int) -> "Account":
        return replace(
            self,
            verification_attempts=min(self.verification_attempts + 1, max_attempts),
        )

    def with_verification_code(self, code: str) -> "Account":
        """Bind a freshly issued code and restart the attempt counter."""
        return replace(self, verification_code=code, verification_attempts=0)

    def with_reset_token(self, token_hash: str, expires_at: datetime) -> "Account":
        return replace(
            self,
            password_reset_token_hash=token_hash,
            password_reset_expires=expires_at,
        )

    def clear_reset_token(self) -> "Account":
        return replace(self, password_reset_token_hash=None, password_reset_expires=None)

    def reset_token_expired(self, now: datetime) -> bool:
        return self.password_reset_expires is None or self.password_reset_expires <= now

    def with_password_hash(self, password_hash: str) -> "Account":
        return replace(self, password_hash=password_hash)

    def with_personal_data(self, first_name: str, last_name: str, tax_id: str) -> "Account":
        return replace(self, first_name=first_name, last_name=last_name, tax_id=tax_id)

    def with_company_data(
        self,
        *,
        company_name: str | None,
        company_tax_id: str | None,
        company_address: str | None,
        is_self_employed: bool,
    ) -> "Account":
        # self-employed accounts invoice under their own name and tax id
        if is_self_employed:
            full_name = " ".join(part for part in (self.first_name, self.last_name) if part)
            return replace(
                self,
                is_self_employed=True,
                company_name=full_name,
                company_tax_id=self.tax_id,
                company_address="",
            )
        return replace(
            self,
            is_self_employed=False,
            company_name=company_name,
            company_tax_id=company_tax_id,
            company_address=company_address,
        )

    def mark_removed(self) -> "Account":
        return replace(self, status=AccountStatus.removed)
