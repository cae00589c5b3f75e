"""Announcing approval transitions.

Delivery is out of scope; the engine only needs fire-and-collect-errors
semantics. Failures are logged and returned to the caller, never raised.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Protocol
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from workforce_api.common.logging import log_context
from workforce_api.core.models import Notification, NotificationType, User

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class NotificationPayload:
    user_id: UUID
    title: str
    message: str
    type: NotificationType = NotificationType.VACATION
    related_id: UUID | None = None


@dataclass(frozen=True, slots=True)
class NotificationFailure:
    user_id: UUID
    title: str
    error: str


class NotificationDispatcher(Protocol):
    async def dispatch(self, payload: NotificationPayload) -> None: ...


class DatabaseNotificationDispatcher:
    """Default dispatcher: writes an in-app inbox row in the caller's transaction."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def dispatch(self, payload: NotificationPayload) -> None:
        if await self._session.get(User, payload.user_id) is None:
            raise LookupError(f"Unknown notification recipient {payload.user_id}")
        self._session.add(
            Notification(
                user_id=payload.user_id,
                title=payload.title,
                message=payload.message,
                type=payload.type,
                related_id=payload.related_id,
            )
        )


class NullNotificationDispatcher:
    async def dispatch(self, payload: NotificationPayload) -> None:
        return None


async def dispatch_all(
    dispatcher: NotificationDispatcher,
    payloads: Iterable[NotificationPayload],
) -> list[NotificationFailure]:
    failures: list[NotificationFailure] = []
    for payload in payloads:
        try:
            await dispatcher.dispatch(payload)
        except Exception as exc:
            logger.warning(
                "approvals.notify.failed",
                extra=log_context(
                    user_id=payload.user_id,
                    request_id=payload.related_id,
                    error=type(exc).__name__,
                ),
            )
            failures.append(
                NotificationFailure(user_id=payload.user_id, title=payload.title, error=str(exc))
            )
    return failures


__all__ = [
    "DatabaseNotificationDispatcher",
    "NotificationDispatcher",
    "NotificationFailure",
    "NotificationPayload",
    "NullNotificationDispatcher",
    "dispatch_all",
]
