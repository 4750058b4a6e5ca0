"""Credential service orchestrating registration, verification, sessions and recovery."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

from .account import MAX_VERIFICATION_ATTEMPTS, Account, AccountRole, AccountStatus
from .contracts import AccountStore, AuthResult, InviteResult, NewAccountInput
from .errors import (
    AttemptsExhausted,
    Conflict,
    DuplicateEmailError,
    InvalidCredentials,
    InvalidOrExpiredToken,
    NotFound,
    ValidationError,
    VerificationMismatch,
)
from . import validators
from ..config import Settings, get_settings
from ..metrics import record_event
from ..notifications import LoggingNotifier, NotificationKind, Notifier
from ..security.codes import CodeGenerator, hash_reset_token
from ..security.passwords import PasswordHasher
from ..security.tokens import TokenIssuer

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CredentialService:
    """Account credential workflows backed by an :class:`AccountStore`.

    Each operation performs at most one read-then-write against the store. The
    sequence is not atomic; concurrent verification attempts on the same
    account can under-count unless the store serialises updates.
    """

    def __init__(
        self,
        store: AccountStore,
        *,
        hasher: PasswordHasher,
        tokens: TokenIssuer,
        codes: CodeGenerator | None = None,
        notifier: Notifier | None = None,
        settings: Settings | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        """Store dependencies used to orchestrate persistence and token issuance."""
        self._store = store
        self._hasher = hasher
        self._tokens = tokens
        self._codes = codes or CodeGenerator()
        self._notifier = notifier or LoggingNotifier()
        self._settings = settings or get_settings()
        self._clock = clock

    @property
    def max_attempts(self) -> int:
        return MAX_VERIFICATION_ATTEMPTS

    @property
    def reset_token_ttl_seconds(self) -> int:
        return self._settings.reset_token_ttl_seconds

    def register(self, email: str, password: str) -> AuthResult:
        """Create a pending account and sign it in.

        The verification code is delivered through the notifier only; it is never
        part of the returned result.
        """
        normalized = validators.normalize_email(email)
        errors: dict[str, str] = {}
        if normalized is None:
            errors["email"] = "Email is invalid"
        elif self._store.find_by_email(normalized) is not None:
            errors["email"] = "exists"
        errors.update(validators.password_errors(password, self._settings.password_min_length))
        if errors:
            record_event("register", "rejected")
            raise ValidationError(errors)

        code = self._codes.verification_code()
        try:
            account = self._store.insert(
                NewAccountInput(
                    email=normalized,
                    password_hash=self._hasher.hash(password),
                    verification_code=code,
                )
            )
        except DuplicateEmailError:
            # lost a race with a concurrent registration for the same address
            record_event("register", "rejected")
            raise ValidationError({"email": "exists"}) from None

        self._audit(account, "account.registered", {"email": account.email})
        self._notify(NotificationKind.verification_code, account.email, {"code": code})
        logger.info("registered account %s", account.account_id)
        record_event("register", "success")
        return AuthResult(token=self._tokens.issue(account.account_id), account=account)

    def verify_email(self, account: Account, code: str) -> Account:
        """Consume a verification code for a pending account.

        Raises
        ------
        ValidationError
            When the code is not exactly six ASCII digits.
        AttemptsExhausted
            Once the attempt counter has reached the fixed maximum of five.
        VerificationMismatch
            When the code is wrong; the incremented counter is persisted first.
        """
        errors = validators.verification_code_errors(code)
        if errors:
            raise ValidationError(errors)

        if account.verification_attempts >= self.max_attempts:
            logger.warning("verification attempts exhausted for account %s", account.account_id)
            record_event("verify_email", "exhausted")
            raise AttemptsExhausted()

        if account.verification_code is None or code != account.verification_code:
            updated = self._store.update(account.record_failed_attempt(self.max_attempts))
            attempts_left = self.max_attempts - updated.verification_attempts
            self._audit(updated, "verification.failed", {"attempts_left": attempts_left})
            logger.info(
                "verification mismatch for account %s, %d attempts left",
                account.account_id,
                attempts_left,
            )
            record_event("verify_email", "mismatch")
            raise VerificationMismatch(attempts_left=attempts_left)

        verified = self._store.update(account.mark_verified())
        self._audit(verified, "account.verified")
        record_event("verify_email", "success")
        return verified

    def reissue_verification_code(self, account: Account) -> Account:
        """Bind a new code to a pending account and restart its attempt counter."""
        if account.is_verified:
            raise Conflict("Account is already verified")
        code = self._codes.verification_code()
        updated = self._store.update(account.with_verification_code(code))
        self._audit(updated, "verification.reissued")
        self._notify(NotificationKind.verification_code, updated.email, {"code": code})
        record_event("reissue_code", "success")
        return updated

    def login(self, email: str, password: str) -> AuthResult:
        """Authenticate with email and password.

        Unknown addresses, removed accounts and wrong passwords all fail with the
        same :class:`InvalidCredentials` error.
        """
        normalized = validators.normalize_email(email)
        errors: dict[str, str] = {}
        if normalized is None:
            errors["email"] = "Email is invalid"
        if not password:
            errors["password"] = "Password field is required"
        if errors:
            raise ValidationError(errors)

        account = self._store.find_by_email(normalized)
        if account is None or account.is_removed:
            # unknown and removed accounts still pay one bcrypt check
            self._hasher.verify(password, self._hasher.dummy_hash)
            matched = False
        else:
            matched = self._hasher.verify(password, account.password_hash)
        if not matched or (self._settings.require_verified_login and not account.is_verified):
            if account is not None:
                self._audit(account, "login.failed")
            logger.info("login failed")
            record_event("login", "failure")
            raise InvalidCredentials()

        self._audit(account, "login.succeeded")
        record_event("login", "success")
        return AuthResult(token=self._tokens.issue(account.account_id), account=account)

    def forgot_password(self, email: str) -> str:
        """Issue a reset token valid for ``reset_token_ttl_seconds`` and return it."""
        normalized = validators.normalize_email(email)
        account = self._store.find_by_email(normalized) if normalized else None
        if account is None or account.is_removed:
            record_event("forgot_password", "not_found")
            raise NotFound()

        token = self._codes.reset_token()
        expires_at = self._clock() + timedelta(seconds=self._settings.reset_token_ttl_seconds)
        updated = self._store.update(account.with_reset_token(hash_reset_token(token), expires_at))
        self._audit(updated, "password.reset_requested", {"expires_at": expires_at.isoformat()})
        self._notify(NotificationKind.password_reset, updated.email, {"reset_token": token})
        record_event("forgot_password", "success")
        return token

    def reset_password(self, reset_token: str, new_password: str) -> str:
        """Replace the credential of the account bound to ``reset_token``.

        The token is single use: a successful reset clears it, and an expired
        token is cleared as soon as it is presented.
        """
        account = self._store.find_by_reset_token(hash_reset_token(reset_token or ""))
        if account is None or account.is_removed:
            record_event("reset_password", "rejected")
            raise InvalidOrExpiredToken()
        if account.reset_token_expired(self._clock()):
            self._store.update(account.clear_reset_token())
            logger.info("expired reset token presented for account %s", account.account_id)
            record_event("reset_password", "rejected")
            raise InvalidOrExpiredToken()

        errors = validators.password_errors(new_password, self._settings.password_min_length)
        if errors:
            raise ValidationError(errors)

        updated = self._save_credential(account.clear_reset_token(), new_password)
        self._audit(updated, "password.reset")
        record_event("reset_password", "success")
        return self._tokens.issue(updated.account_id)

    def invite_colleague(self, inviting_account: Account, email: str) -> InviteResult:
        """Provision a pending guest account sharing the inviter's company context."""
        normalized = validators.normalize_email(email)
        if normalized is None:
            raise ValidationError({"email": "Please provide a valid email"})
        if self._store.find_by_email(normalized) is not None:
            raise Conflict()

        generated_password = self._codes.temporary_password()
        code = self._codes.verification_code()
        try:
            guest = self._store.insert(
                NewAccountInput(
                    email=normalized,
                    password_hash=self._hasher.hash(generated_password),
                    verification_code=code,
                    role=AccountRole.guest,
                    status=AccountStatus.pending,
                    company_name=inviting_account.company_name,
                    company_tax_id=inviting_account.company_tax_id,
                    company_address=inviting_account.company_address,
                    is_self_employed=False,
                )
            )
        except DuplicateEmailError:
            raise Conflict() from None

        self._audit(
            guest,
            "account.invited",
            {"invited_by": inviting_account.account_id},
            actor=inviting_account.account_id,
        )
        self._notify(NotificationKind.guest_invitation, guest.email, {"code": code})
        logger.info("account %s invited guest %s", inviting_account.account_id, guest.account_id)
        record_event("invite", "success")
        return InviteResult(email=guest.email, generated_password=generated_password)

    def update_personal_data(
        self, account: Account, *, first_name: str, last_name: str, tax_id: str
    ) -> Account:
        first_name, last_name, tax_id = (
            (value or "").strip() for value in (first_name, last_name, tax_id)
        )
        errors = validators.personal_data_errors(first_name, last_name, tax_id)
        if errors:
            raise ValidationError(errors)
        return self._store.update(account.with_personal_data(first_name, last_name, tax_id))

    def update_company_data(
        self,
        account: Account,
        *,
        company_name: str | None,
        company_tax_id: str | None,
        company_address: str | None,
        is_self_employed: bool,
    ) -> Account:
        company_name, company_tax_id, company_address = (
            value.strip() if value else value
            for value in (company_name, company_tax_id, company_address)
        )
        errors = validators.company_data_errors(
            company_name, company_tax_id, company_address, is_self_employed
        )
        if errors:
            raise ValidationError(errors)
        return self._store.update(
            account.with_company_data(
                company_name=company_name,
                company_tax_id=company_tax_id,
                company_address=company_address,
                is_self_employed=is_self_employed,
            )
        )

    def get_current_account(self, account: Account) -> Account:
        return account

    def delete_account(self, account: Account, *, hard: bool = False) -> None:
        """Soft-delete (status ``removed``) or erase the account; repeat calls are no-ops."""
        if hard:
            erased = self._store.delete(account.account_id)
            if erased:
                self._audit(account, "account.deleted")
                logger.info("hard-deleted account %s", account.account_id)
            return
        if account.is_removed:
            return
        removed = self._store.update(account.mark_removed())
        self._audit(removed, "account.removed")
        logger.info("soft-deleted account %s", account.account_id)

    def _save_credential(self, account: Account, new_password: str) -> Account:
        """Hash ``new_password`` and persist it; the only path that rewrites a credential."""
        hashed = account.with_password_hash(self._hasher.hash(new_password))
        return self._store.update(hashed, credential_changed=True)

    def _notify(self, kind: NotificationKind, email: str, payload: dict[str, Any]) -> None:
        try:
            self._notifier.send(kind, email, payload)
        except Exception:
            logger.exception("notification %s for %s failed", kind.value, email)

    def _audit(
        self,
        account: Account,
        event_type: str,
        metadata: dict[str, Any] | None = None,
        *,
        actor: str | None = None,
    ) -> None:
        self._store.write_audit_event(
            account_id=account.account_id,
            event_type=event_type,
            actor=actor or account.account_id,
            metadata=metadata,
        )
