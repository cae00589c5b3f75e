"""The ``get_user_modules`` aggregate behind the capability matrix."""

from __future__ import annotations

from typing import TypedDict
from uuid import UUID

from sqlalchemy import Integer, and_, cast, false, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from workforce_api.core.models import (
    Module,
    RoleAssignment,
    RoleModuleAccess,
    UserModuleAccess,
    WorkspaceModuleAccess,
)
from workforce_api.core.rbac.types import ModuleKey


class UserModuleRow(TypedDict):
    module_id: UUID
    module_key: ModuleKey
    module_name: str
    can_view: bool
    can_edit: bool
    can_delete: bool
    can_admin: bool


_FLAGS = ("can_view", "can_edit", "can_delete", "can_admin")


class ModulesRepository:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_user_modules(self, user_id: UUID) -> list[UserModuleRow]:
        """Resolve every module the user has a grant for, in one round trip.

        Override rows on ``user_module_access`` win outright. Otherwise each
        flag is OR-ed over the role grants of all the user's assignments,
        skipping grants whose assignment workspace has the module disabled.
        Inactive modules and modules with no grant at all are omitted.
        Rows are ordered by module name.
        """
        overrides = (
            select(
                UserModuleAccess.module_id.label("module_id"),
                *(getattr(UserModuleAccess, flag).label(flag) for flag in _FLAGS),
            )
            .where(
                UserModuleAccess.user_id == user_id,
                UserModuleAccess.is_override.is_(True),
            )
            .cte("user_overrides")
        )

        role_grants = (
            select(
                Module.id.label("module_id"),
                *(
                    func.max(cast(getattr(RoleModuleAccess, flag), Integer)).label(flag)
                    for flag in _FLAGS
                ),
            )
            .join(RoleModuleAccess, RoleModuleAccess.module_id == Module.id)
            .join(RoleAssignment, RoleAssignment.role == RoleModuleAccess.role)
            .outerjoin(
                WorkspaceModuleAccess,
                and_(
                    WorkspaceModuleAccess.module_id == Module.id,
                    WorkspaceModuleAccess.workspace_id == RoleAssignment.workspace_id,
                ),
            )
            .where(
                RoleAssignment.user_id == user_id,
                Module.is_active.is_(True),
                or_(
                    WorkspaceModuleAccess.module_id.is_(None),
                    WorkspaceModuleAccess.is_enabled.is_(True),
                ),
            )
            .group_by(Module.id)
            .cte("role_permissions")
        )

        stmt = (
            select(
                Module.id,
                Module.key,
                Module.name,
                *(
                    func.coalesce(overrides.c[flag], role_grants.c[flag], false()).label(flag)
                    for flag in _FLAGS
                ),
            )
            .outerjoin(overrides, overrides.c.module_id == Module.id)
            .outerjoin(role_grants, role_grants.c.module_id == Module.id)
            .where(
                Module.is_active.is_(True),
                or_(overrides.c.module_id.is_not(None), role_grants.c.module_id.is_not(None)),
            )
            .order_by(Module.name)
        )

        result = await self._session.execute(stmt)
        return [
            UserModuleRow(
                module_id=row.id,
                module_key=ModuleKey(row.key),
                module_name=row.name,
                can_view=bool(row.can_view),
                can_edit=bool(row.can_edit),
                can_delete=bool(row.can_delete),
                can_admin=bool(row.can_admin),
            )
            for row in result
        ]


__all__ = ["ModulesRepository", "UserModuleRow"]
