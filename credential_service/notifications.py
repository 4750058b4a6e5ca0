"""Outbound delivery of verification codes, reset tokens and invitations."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Protocol

logger = logging.getLogger(__name__)


class NotificationKind(str, Enum):
    verification_code = "verification_code"
    password_reset = "password_reset"
    guest_invitation = "guest_invitation"


class Notifier(Protocol):
    """Fire-and-forget sink; callers must not depend on delivery succeeding."""

    def send(self, kind: NotificationKind, email: str, payload: dict[str, Any]) -> None: ...


class LoggingNotifier:
    """Default sink that records the delivery request without the secret values."""

    def send(self, kind: NotificationKind, email: str, payload: dict[str, Any]) -> None:
        logger.info(
            "notification %s queued for %s (fields: %s)",
            kind.value,
            email,
            ", ".join(sorted(payload)),
        )
