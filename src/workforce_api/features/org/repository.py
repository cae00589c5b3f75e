"""Read helpers over the org hierarchy."""

from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from workforce_api.core.models import Department, Facility, StaffMember, Workspace
from workforce_api.core.rbac.types import ScopeType


@dataclass(frozen=True, slots=True)
class OrgLineage:
    """An org unit plus every ancestor id up to its workspace."""

    scope_type: ScopeType
    scope_id: UUID
    workspace_id: UUID
    facility_id: UUID | None = None
    department_id: UUID | None = None

    def id_at(self, scope_type: ScopeType) -> UUID | None:
        """Ancestor (or self) id at ``scope_type``; ``None`` below this unit."""
        if scope_type is ScopeType.WORKSPACE:
            return self.workspace_id
        if scope_type is ScopeType.FACILITY:
            return self.facility_id
        if scope_type is ScopeType.DEPARTMENT:
            return self.department_id
        return None


class OrgRepository:
    """Query helpers for workspaces, facilities, departments and staff."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session
        self._lineage: dict[tuple[ScopeType, UUID], OrgLineage | None] = {}

    async def get_workspace(self, workspace_id: UUID) -> Workspace | None:
        return await self._session.get(Workspace, workspace_id)

    async def get_facility(self, facility_id: UUID) -> Facility | None:
        return await self._session.get(Facility, facility_id)

    async def get_department(self, department_id: UUID) -> Department | None:
        return await self._session.get(Department, department_id)

    async def lineage(self, scope_type: ScopeType, scope_id: UUID) -> OrgLineage | None:
        """Walk department → facility → workspace; ``None`` for unknown units."""
        key = (ScopeType(scope_type), scope_id)
        if key not in self._lineage:
            self._lineage[key] = await self._load_lineage(*key)
        return self._lineage[key]

    async def _load_lineage(self, scope_type: ScopeType, scope_id: UUID) -> OrgLineage | None:
        if scope_type is ScopeType.WORKSPACE:
            workspace = await self.get_workspace(scope_id)
            if workspace is None:
                return None
            return OrgLineage(scope_type=scope_type, scope_id=scope_id, workspace_id=workspace.id)

        if scope_type is ScopeType.FACILITY:
            facility = await self.get_facility(scope_id)
            if facility is None:
                return None
            return OrgLineage(
                scope_type=scope_type,
                scope_id=scope_id,
                workspace_id=facility.workspace_id,
                facility_id=facility.id,
            )

        if scope_type is ScopeType.DEPARTMENT:
            stmt = (
                select(Department.id, Facility.id, Facility.workspace_id)
                .join(Facility, Facility.id == Department.facility_id)
                .where(Department.id == scope_id)
            )
            row = (await self._session.execute(stmt)).one_or_none()
            if row is None:
                return None
            department_id, facility_id, workspace_id = row
            return OrgLineage(
                scope_type=scope_type,
                scope_id=scope_id,
                workspace_id=workspace_id,
                facility_id=facility_id,
                department_id=department_id,
            )

        return None

    async def staff_user_ids(self, scope_type: ScopeType, scope_id: UUID) -> set[UUID]:
        """Distinct active staff placed anywhere under the org unit."""
        stmt = select(StaffMember.user_id).where(StaffMember.is_active.is_(True)).distinct()
        scope_type = ScopeType(scope_type)
        if scope_type is ScopeType.DEPARTMENT:
            stmt = stmt.where(StaffMember.department_id == scope_id)
        elif scope_type is ScopeType.FACILITY:
            stmt = stmt.join(Department, Department.id == StaffMember.department_id).where(
                Department.facility_id == scope_id
            )
        elif scope_type is ScopeType.WORKSPACE:
            stmt = (
                stmt.join(Department, Department.id == StaffMember.department_id)
                .join(Facility, Facility.id == Department.facility_id)
                .where(Facility.workspace_id == scope_id)
            )
        else:
            return set()
        result = await self._session.execute(stmt)
        return set(result.scalars().all())


__all__ = ["OrgLineage", "OrgRepository"]
