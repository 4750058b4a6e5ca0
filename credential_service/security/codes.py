"""Generators for verification codes, reset tokens and temporary passwords."""

from __future__ import annotations

import hashlib
import secrets
import string

_UPPER = string.ascii_uppercase
_LOWER = string.ascii_lowercase
_DIGITS = string.digits
_SPECIAL = "!@#$%^&*-_+="
_ALPHABET = _UPPER + _LOWER + _DIGITS + _SPECIAL


class CodeGenerator:
    """Source of unpredictable one-time values used by the credential flows."""

    def __init__(self, temporary_password_length: int = 12) -> None:
        self._temporary_password_length = temporary_password_length

    def verification_code(self) -> str:
        """Return a 6-digit code drawn uniformly from 100000-999999."""
        return str(100000 + secrets.randbelow(900000))

    def reset_token(self) -> str:
        """Return an opaque URL-safe reset token (256 bits of entropy)."""
        return secrets.token_urlsafe(32)

    def temporary_password(self) -> str:
        """Generate a random password with at least one character of each class.

        Uses rejection sampling, so the result is uniform over qualifying strings.
        """
        while True:
            candidate = "".join(
                secrets.choice(_ALPHABET) for _ in range(self._temporary_password_length)
            )
            if (
                any(c in _UPPER for c in candidate)
                and any(c in _LOWER for c in candidate)
                and any(c in _DIGITS for c in candidate)
                and any(c in _SPECIAL for c in candidate)
            ):
                return candidate


def hash_reset_token(token: str) -> str:
    """Return the SHA-256 hex digest stored in place of a raw reset token."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()
