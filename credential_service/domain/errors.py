"""Failure taxonomy raised by the credential workflows.

Every error derives from :class:`CredentialError` (itself a ``ValueError``) and
carries a stable ``code`` the HTTP layer uses to pick a status and a payload.
Store or infrastructure outages are not part of this hierarchy.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class CredentialError(ValueError):
    """Base class for recoverable, caller-facing workflow failures."""

    code = "credential_error"
    message = "request could not be processed"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.message)

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.code, "message": str(self)}


class ValidationError(CredentialError):
    """Malformed or out-of-range input, scoped to individual fields."""

    code = "validation_error"
    message = "invalid input"

    def __init__(self, errors: dict[str, str]) -> None:
        super().__init__()
        self.errors = dict(errors)

    def to_dict(self) -> dict[str, Any]:
        return {**super().to_dict(), "errors": self.errors}


class InvalidCredentials(CredentialError):
    code = "invalid_credentials"
    message = "Invalid credentials"


class InvalidOrExpiredToken(CredentialError):
    code = "invalid_or_expired_token"
    message = "Invalid or expired reset token"


class VerificationMismatch(CredentialError):
    code = "verification_mismatch"
    message = "Invalid verification code"

    def __init__(self, attempts_left: int) -> None:
        super().__init__()
        self.attempts_left = attempts_left

    def to_dict(self) -> dict[str, Any]:
        return {**super().to_dict(), "attempts_left": self.attempts_left}


class AttemptsExhausted(CredentialError):
    code = "attempts_exhausted"
    message = "Maximum verification attempts reached"


class NotFound(CredentialError):
    code = "not_found"
    message = "No account found with that email"


class Conflict(CredentialError):
    code = "conflict"
    message = "Account already exists"


class RejectionReason(str, Enum):
    no_token = "no_token"
    invalid_token = "invalid_token"
    no_such_account = "no_such_account"


class SessionRejected(CredentialError):
    """Raised by the session guard when a request cannot be authenticated."""

    code = "session_rejected"
    message = "Not authorized"

    def __init__(self, reason: RejectionReason) -> None:
        super().__init__(f"Not authorized: {reason.value}")
        self.reason = reason

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.reason.value, "message": str(self)}


class DuplicateEmailError(Exception):
    """Raised by an account store when the unique email constraint is violated."""

    def __init__(self, email: str) -> None:
        super().__init__(f"account already exists for email={email}")
        self.email = email
