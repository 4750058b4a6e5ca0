"""Bcrypt password hashing."""

from __future__ import annotations

import logging

import bcrypt

logger = logging.getLogger(__name__)

# bcrypt only considers the first 72 bytes of its input
MAX_PASSWORD_BYTES = 72


class PasswordHasher:
    """Salted, adaptive-cost one-way hashing for account credentials."""

    def __init__(self, rounds: int = 12) -> None:
        """Store the bcrypt cost factor used for new hashes."""
        self._rounds = rounds
        self._dummy_hash: str | None = None

    def hash(self, password: str) -> str:
        """Hash a plaintext password; every call produces a fresh salt."""
        salt = bcrypt.gensalt(rounds=self._rounds)
        return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")

    def verify(self, password: str, password_hash: str) -> bool:
        """Return ``True`` when the plaintext matches; never raises on bad digests."""
        try:
            return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
        except (TypeError, ValueError) as exc:
            logger.warning("password verification rejected malformed input: %s", type(exc).__name__)
            return False

    @property
    def dummy_hash(self) -> str:
        """Digest at the configured cost, checked when no account matches a login."""
        if self._dummy_hash is None:
            self._dummy_hash = self.hash("credential-service-placeholder")
        return self._dummy_hash
