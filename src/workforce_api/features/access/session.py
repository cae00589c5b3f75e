"""Per-actor access state with an explicit lifecycle.

One :class:`AccessSession` is built per authenticated actor (per request in
the HTTP layer) and handed to every consumer. ``init(user_id)`` loads the
capability matrix and wires cache invalidation; ``dispose()`` releases the
change-feed subscriptions and drops cached state.
"""

from __future__ import annotations

import logging
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from workforce_api.common.logging import log_context
from workforce_api.core.errors import AccessDenied
from workforce_api.core.rbac.types import ModuleKey
from workforce_api.features.approvals.notifications import (
    DatabaseNotificationDispatcher,
    NotificationDispatcher,
)
from workforce_api.features.approvals.service import ApprovalWorkflowEngine
from workforce_api.features.modules.service import CapabilityMatrix, ModuleAccessResolver
from workforce_api.features.org.repository import OrgRepository
from workforce_api.features.realtime.bridge import InvalidationBridge
from workforce_api.features.realtime.feed import ChangeFeed
from workforce_api.features.roles.scopes import ScopeResolver
from workforce_api.features.roles.store import RoleAssignmentStore
from workforce_api.settings import Settings

logger = logging.getLogger(__name__)


class AccessSession:
    def __init__(
        self,
        *,
        session: AsyncSession,
        settings: Settings,
        feed: ChangeFeed | None = None,
        dispatcher: NotificationDispatcher | None = None,
    ) -> None:
        self.org = OrgRepository(session)
        self.store = RoleAssignmentStore(session=session)
        self.scopes = ScopeResolver(store=self.store, org=self.org)
        self.modules = ModuleAccessResolver(session=session)
        self.approvals = ApprovalWorkflowEngine(
            session=session,
            scopes=self.scopes,
            settings=settings,
            org=self.org,
            dispatcher=dispatcher or DatabaseNotificationDispatcher(session),
        )
        self._bridge = InvalidationBridge(feed) if feed is not None else None
        self._user_id: UUID | None = None
        self._disposed = False

    @property
    def user_id(self) -> UUID:
        if self._user_id is None:
            raise RuntimeError("AccessSession not initialized; call init(user_id)")
        return self._user_id

    @property
    def bridge(self) -> InvalidationBridge | None:
        return self._bridge

    async def init(self, user_id: UUID) -> CapabilityMatrix:
        if self._disposed:
            raise RuntimeError("AccessSession has been disposed")
        if self._bridge is not None and self._user_id is None:
            self._bridge.connect(
                scopes=self.scopes,
                modules=self.modules,
                approvals=self.approvals.views,
            )
        if self._user_id is not None and self._user_id != user_id:
            self.store.invalidate()
        self._user_id = user_id
        matrix = await self.modules.load_access(user_id)
        logger.debug(
            "access.session.init",
            extra=log_context(user_id=user_id, modules=len(matrix.grants)),
        )
        return matrix

    def require_module(self, module_key: ModuleKey) -> None:
        """Raise :class:`AccessDenied` unless the actor can view ``module_key``."""
        if not self.modules.has_access(module_key):
            raise AccessDenied(
                f"Module '{ModuleKey(module_key).value}' is not available to this user",
                user_id=self._user_id,
            )

    def dispose(self) -> None:
        if self._disposed:
            return
        if self._bridge is not None:
            self._bridge.dispose()
        self.modules.clear()
        self.store.invalidate()
        self.approvals.views.invalidate()
        self._disposed = True

    async def __aenter__(self) -> AccessSession:
        return self

    async def __aexit__(self, *_exc: object) -> None:
        self.dispose()


__all__ = ["AccessSession"]
