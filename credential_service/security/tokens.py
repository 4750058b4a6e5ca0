"""Utilities for issuing and validating session JWTs."""

from __future__ import annotations

import time
from typing import Any

import jwt


class InvalidSessionToken(Exception):
    """Raised for any token that must not be trusted (tampered, malformed or expired)."""


class TokenIssuer:
    """Stateless HS256 session tokens carrying an account identifier."""

    algorithm = "HS256"

    def __init__(self, *, secret: str, issuer: str, ttl_seconds: int) -> None:
        self._secret = secret
        self._issuer = issuer
        self._ttl_seconds = ttl_seconds

    @property
    def ttl_seconds(self) -> int:
        return self._ttl_seconds

    def issue(self, account_id: str) -> str:
        """Create a signed JWT representing an authenticated account.

        Parameters
        ----------
        account_id:
            Account identifier to embed in the token `sub` claim.

        Returns
        -------
        str
            The encoded JWT, valid for the configured TTL.
        """

        now = int(time.time())
        payload: dict[str, Any] = {
            "iss": self._issuer,
            "sub": account_id,
            "iat": now,
            "exp": now + self._ttl_seconds,
        }
        # PyJWT returns str for HS256 even in PyJWT>=2
        return jwt.encode(payload, self._secret, algorithm=self.algorithm)

    def validate(self, token: str) -> str:
        """Verify a JWT and return the account identifier it was issued for.

        Parameters
        ----------
        token:
            Encoded JWT issued by this service.

        Raises
        ------
        InvalidSessionToken
            When the signature, issuer, expiry or subject checks fail. The
            underlying cause is not exposed to callers.
        """

        try:
            claims = jwt.decode(
                token,
                self._secret,
                algorithms=[self.algorithm],
                issuer=self._issuer,
                options={"require": ["exp", "iat", "sub"]},
            )
        except jwt.PyJWTError as exc:
            raise InvalidSessionToken("invalid session token") from exc

        subject = claims.get("sub")
        if not isinstance(subject, str) or not subject:
            raise InvalidSessionToken("invalid session token")
        return subject
