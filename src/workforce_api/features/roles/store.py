"""Role Assignment Store: cached, immutable snapshots of a user's roles."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from workforce_api.common.logging import log_context
from workforce_api.core.models import RoleAssignment
from workforce_api.core.rbac.types import AppRole

from .repository import RoleAssignmentsRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class AssignmentRecord:
    id: UUID
    user_id: UUID
    role: AppRole
    workspace_id: UUID | None
    facility_id: UUID | None
    department_id: UUID | None

    @classmethod
    def from_model(cls, assignment: RoleAssignment) -> AssignmentRecord:
        return cls(
            id=assignment.id,
            user_id=assignment.user_id,
            role=AppRole(assignment.role),
            workspace_id=assignment.workspace_id,
            facility_id=assignment.facility_id,
            department_id=assignment.department_id,
        )


class RoleAssignmentStore:
    """Per-user assignment cache, ordered by assignment id.

    Entries stay until :meth:`invalidate` marks them stale; the next read
    refetches.
    """

    def __init__(self, *, session: AsyncSession) -> None:
        self._repo = RoleAssignmentsRepository(session)
        self._cache: dict[UUID, tuple[AssignmentRecord, ...]] = {}

    async def assignments(self, user_id: UUID) -> tuple[AssignmentRecord, ...]:
        cached = self._cache.get(user_id)
        if cached is not None:
            return cached
        rows = await self._repo.list_for_user(user_id)
        records = tuple(AssignmentRecord.from_model(row) for row in rows)
        self._cache[user_id] = records
        logger.debug(
            "roles.assignments.loaded",
            extra=log_context(user_id=user_id, count=len(records)),
        )
        return records

    async def for_role(self, user_id: UUID, role: AppRole) -> tuple[AssignmentRecord, ...]:
        role = AppRole(role)
        return tuple(record for record in await self.assignments(user_id) if record.role is role)

    async def holders(
        self,
        role: AppRole,
        *,
        pointer: str | None = None,
        scope_id: UUID | None = None,
    ) -> tuple[AssignmentRecord, ...]:
        """Uncached lookup of every assignment of ``role`` at one org unit."""
        rows = await self._repo.list_holders(AppRole(role), pointer=pointer, scope_id=scope_id)
        return tuple(AssignmentRecord.from_model(row) for row in rows)

    def invalidate(self, user_id: UUID | None = None) -> None:
        """Mark one user's snapshot stale, or every snapshot when ``user_id`` is None."""
        if user_id is None:
            self._cache.clear()
        else:
            self._cache.pop(user_id, None)

    def is_cached(self, user_id: UUID) -> bool:
        return user_id in self._cache


__all__ = ["AssignmentRecord", "RoleAssignmentStore"]
