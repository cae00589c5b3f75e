"""Realtime Invalidation Bridge.

Turns change events into "mark stale" calls on the caches that depend on
them. The bridge never computes derived state; owners refetch on next read.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Protocol
from uuid import UUID

from workforce_api.common.logging import log_context

from .events import TABLES_BY_ENTITY, ChangeEvent, EntityKind
from .feed import ChangeFeed, Subscription

logger = logging.getLogger(__name__)


class UserScopedCache(Protocol):
    def invalidate(self, user_id: UUID | None = None) -> None: ...


class RecordScopedCache(Protocol):
    def invalidate(self, record_id: UUID | None = None) -> None: ...


class InvalidationBridge:
    def __init__(self, feed: ChangeFeed) -> None:
        self._feed = feed
        self._subscriptions: list[Subscription] = []
        self._disposed = False

    def subscribe(
        self,
        entity_kind: EntityKind | str,
        on_change: Callable[[ChangeEvent], None],
    ) -> Subscription:
        """Call ``on_change`` for insert/update/delete on any table of ``entity_kind``."""
        if self._disposed:
            raise RuntimeError("InvalidationBridge has been disposed")
        kind = EntityKind(entity_kind)
        children = [self._feed.subscribe(table, on_change) for table in TABLES_BY_ENTITY[kind]]

        def _release() -> None:
            for child in children:
                child.unsubscribe()

        subscription = Subscription(_release=_release)
        self._subscriptions.append(subscription)
        return subscription

    def connect(
        self,
        *,
        scopes: UserScopedCache | None = None,
        modules: UserScopedCache | None = None,
        approvals: RecordScopedCache | None = None,
    ) -> None:
        """Wire the standard invalidation rules for one session's caches."""

        def _on_role_change(change: ChangeEvent) -> None:
            logger.debug(
                "realtime.invalidate.roles",
                extra=log_context(user_id=change.user_id, change_kind=change.change_kind),
            )
            if scopes is not None:
                scopes.invalidate(change.user_id)
            if modules is not None:
                modules.invalidate(change.user_id)

        def _on_grant_change(change: ChangeEvent) -> None:
            logger.debug(
                "realtime.invalidate.modules",
                extra=log_context(user_id=change.user_id, table=change.table),
            )
            if modules is not None:
                modules.invalidate(change.user_id)

        def _on_approval_change(change: ChangeEvent) -> None:
            logger.debug(
                "realtime.invalidate.approvals",
                extra=log_context(request_id=change.record_id, table=change.table),
            )
            if approvals is not None:
                approvals.invalidate(change.record_id)

        self.subscribe(EntityKind.ROLE_ASSIGNMENTS, _on_role_change)
        self.subscribe(EntityKind.MODULE_GRANTS, _on_grant_change)
        self.subscribe(EntityKind.APPROVAL_REQUESTS, _on_approval_change)

    @property
    def active_subscriptions(self) -> int:
        return sum(1 for subscription in self._subscriptions if subscription.active)

    def dispose(self) -> None:
        """Release every subscription made through this bridge. Safe to repeat."""
        for subscription in self._subscriptions:
            subscription.unsubscribe()
        self._subscriptions.clear()
        self._disposed = True


__all__ = ["InvalidationBridge", "RecordScopedCache", "UserScopedCache"]
