"""In-process publish/subscribe channel keyed by table name and change kind."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from uuid import uuid4

from workforce_api.common.logging import log_context

from .events import ChangeEvent, ChangeKind

logger = logging.getLogger(__name__)

ChangeListener = Callable[[ChangeEvent], None]

# ``None`` as the change kind means "any".
_ChannelKey = tuple[str, ChangeKind | None]


@dataclass(eq=False)
class Subscription:
    """Handle returned by :meth:`ChangeFeed.subscribe`.

    ``unsubscribe`` is idempotent; once it returns, the listener is never
    called again.
    """

    _release: Callable[[], None]
    id: str = field(default_factory=lambda: str(uuid4()))
    _active: bool = True

    @property
    def active(self) -> bool:
        return self._active

    def unsubscribe(self) -> None:
        if not self._active:
            return
        self._active = False
        self._release()


class ChangeFeed:
    def __init__(self) -> None:
        self._channels: dict[_ChannelKey, dict[str, tuple[Subscription, ChangeListener]]] = {}
        self._lock = threading.RLock()

    def subscribe(
        self,
        table: str,
        listener: ChangeListener,
        *,
        change_kind: ChangeKind | None = None,
    ) -> Subscription:
        key: _ChannelKey = (table, ChangeKind(change_kind) if change_kind else None)
        subscription = Subscription(_release=lambda: None)
        subscription._release = lambda: self._remove(key, subscription.id)
        with self._lock:
            self._channels.setdefault(key, {})[subscription.id] = (subscription, listener)
        return subscription

    def _remove(self, key: _ChannelKey, subscription_id: str) -> None:
        with self._lock:
            channel = self._channels.get(key)
            if not channel:
                return
            channel.pop(subscription_id, None)
            if not channel:
                self._channels.pop(key, None)

    def publish(self, event: ChangeEvent) -> int:
        """Deliver ``event`` to matching listeners; returns how many were called.

        A failing listener is logged and skipped so the others still run.
        """
        with self._lock:
            targets = [
                entry
                for key in ((event.table, event.change_kind), (event.table, None))
                for entry in self._channels.get(key, {}).values()
            ]

        delivered = 0
        for subscription, listener in targets:
            # may have been released by an earlier listener in this loop
            if not subscription.active:
                continue
            try:
                listener(event)
            except Exception:
                logger.exception(
                    "realtime.listener.failed",
                    extra=log_context(
                        table=event.table,
                        change_kind=event.change_kind,
                        subscription_id=subscription.id,
                    ),
                )
                continue
            delivered += 1
        return delivered

    def subscriber_count(self, table: str | None = None) -> int:
        with self._lock:
            return sum(
                len(channel)
                for (channel_table, _), channel in self._channels.items()
                if table is None or channel_table == table
            )


__all__ = ["ChangeFeed", "ChangeListener", "Subscription"]
