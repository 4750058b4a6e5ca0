"""Request-boundary session resolution."""

from __future__ import annotations

import logging

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ..domain.account import Account
from ..domain.contracts import AccountStore
from ..domain.errors import RejectionReason, SessionRejected
from .tokens import InvalidSessionToken, TokenIssuer

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


class SessionGuard:
    """Resolve a bearer token to a live account using only the token and the store."""

    def __init__(self, tokens: TokenIssuer, store: AccountStore) -> None:
        self._tokens = tokens
        self._store = store

    def resolve(self, token: str | None) -> Account:
        """Return the authenticated account or raise :class:`SessionRejected`."""
        if not token:
            raise SessionRejected(RejectionReason.no_token)
        try:
            account_id = self._tokens.validate(token)
        except InvalidSessionToken:
            raise SessionRejected(RejectionReason.invalid_token) from None

        account = self._store.find_by_id(account_id)
        if account is None or account.is_removed:
            logger.info("session rejected for unavailable account %s", account_id)
            raise SessionRejected(RejectionReason.no_such_account)
        return account


def get_session_guard(request: Request) -> SessionGuard:
    """Resolve the `SessionGuard` stored on the FastAPI application state."""
    guard: SessionGuard = request.app.state.session_guard
    return guard


def current_account(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    guard: SessionGuard = Depends(get_session_guard),
) -> Account:
    """FastAPI dependency injecting the authenticated account into a route."""
    token = credentials.credentials if credentials else None
    try:
        return guard.resolve(token)
    except SessionRejected as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=exc.to_dict(),
            headers={"WWW-Authenticate": "Bearer"},
        ) from exc
