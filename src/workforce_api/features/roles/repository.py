"""Persistence helpers for role assignments."""

from __future__ import annotations

from collections.abc import Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from workforce_api.core.models import RoleAssignment
from workforce_api.core.rbac.types import AppRole


class RoleAssignmentsRepository:
    """Query helpers for the ``user_roles`` table."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def list_for_user(self, user_id: UUID) -> Sequence[RoleAssignment]:
        stmt = (
            select(RoleAssignment)
            .where(RoleAssignment.user_id == user_id)
            .order_by(RoleAssignment.id)
        )
        result = await self._session.execute(stmt)
        return result.scalars().all()

    async def list_holders(
        self,
        role: AppRole,
        *,
        pointer: str | None = None,
        scope_id: UUID | None = None,
    ) -> Sequence[RoleAssignment]:
        """Assignments of ``role``, optionally filtered on one pointer column."""
        stmt = select(RoleAssignment).where(RoleAssignment.role == role)
        if pointer is not None:
            stmt = stmt.where(getattr(RoleAssignment, pointer) == scope_id)
        stmt = stmt.order_by(RoleAssignment.id)
        result = await self._session.execute(stmt)
        return result.scalars().all()


__all__ = ["RoleAssignmentsRepository"]
