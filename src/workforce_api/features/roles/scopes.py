"""Scope Resolver: which org unit a user's role lets them operate over.

Only the role's authoritative pointer is read (``workspace_id`` for workplace
supervisors and general admins, ``facility_id`` for facility supervisors,
``department_id`` for department heads). A matching assignment whose
authoritative pointer is null is a data integrity problem and raises
:class:`ScopeResolutionError`; it is never defaulted.

Authorization questions are answered as a union over every assignment the
user holds, never from a single "current role".
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from uuid import UUID

from workforce_api.common.logging import log_context
from workforce_api.core.errors import ScopeResolutionError
from workforce_api.core.rbac.registry import role_definition
from workforce_api.core.rbac.types import AppRole, ScopeType
from workforce_api.features.org.repository import OrgRepository

from .store import AssignmentRecord, RoleAssignmentStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ResolvedScope:
    """Effective scope of one assignment.

    ``managerial`` is false for staff, whose scope is the most specific org
    unit they are placed in and grants no authority.
    """

    role: AppRole
    scope_type: ScopeType | None
    scope_id: UUID | None
    assignment_id: UUID
    managerial: bool = True


def _membership_context(record: AssignmentRecord) -> tuple[ScopeType | None, UUID | None]:
    if record.department_id is not None:
        return ScopeType.DEPARTMENT, record.department_id
    if record.facility_id is not None:
        return ScopeType.FACILITY, record.facility_id
    if record.workspace_id is not None:
        return ScopeType.WORKSPACE, record.workspace_id
    return None, None


def scope_for_assignment(record: AssignmentRecord) -> ResolvedScope:
    definition = role_definition(record.role)

    if not definition.managerial:
        scope_type, scope_id = _membership_context(record)
        return ResolvedScope(
            role=record.role,
            scope_type=scope_type,
            scope_id=scope_id,
            assignment_id=record.id,
            managerial=False,
        )

    if definition.pointer is None:
        return ResolvedScope(
            role=record.role,
            scope_type=definition.scope_type,
            scope_id=None,
            assignment_id=record.id,
        )

    scope_id = getattr(record, definition.pointer)
    if scope_id is None:
        raise ScopeResolutionError(
            f"Assignment for role '{record.role.value}' is missing its {definition.pointer}",
            user_id=record.user_id,
            role=record.role.value,
            assignment_id=record.id,
        )
    return ResolvedScope(
        role=record.role,
        scope_type=definition.scope_type,
        scope_id=scope_id,
        assignment_id=record.id,
    )


class ScopeResolver:
    def __init__(self, *, store: RoleAssignmentStore, org: OrgRepository) -> None:
        self._store = store
        self._org = org

    async def resolve_scopes(self, user_id: UUID, role: AppRole | str) -> list[ResolvedScope]:
        """Every scope ``user_id`` holds for ``role``, ordered by assignment id."""
        records = await self._store.for_role(user_id, AppRole(role))
        return [scope_for_assignment(record) for record in records]

    async def resolve_scope(self, user_id: UUID, role: AppRole | str) -> ResolvedScope | None:
        """Default scope for ``role``: the first by assignment id, ``None`` when not held."""
        scopes = await self.resolve_scopes(user_id, role)
        if len(scopes) > 1:
            logger.debug(
                "roles.scope.multiple",
                extra=log_context(user_id=user_id, role=AppRole(role), count=len(scopes)),
            )
        return scopes[0] if scopes else None

    async def require_scope(self, user_id: UUID, role: AppRole | str) -> ResolvedScope:
        scope = await self.resolve_scope(user_id, role)
        if scope is None:
            raise ScopeResolutionError(
                f"User holds no '{AppRole(role).value}' assignment",
                user_id=user_id,
                role=AppRole(role).value,
            )
        return scope

    async def managed_scopes(self, user_id: UUID) -> list[ResolvedScope]:
        """All managerial scopes across every role the user holds."""
        scopes: list[ResolvedScope] = []
        seen: set[tuple[AppRole, ScopeType | None, UUID | None]] = set()
        for record in await self._store.assignments(user_id):
            scope = scope_for_assignment(record)
            key = (scope.role, scope.scope_type, scope.scope_id)
            if not scope.managerial or key in seen:
                continue
            seen.add(key)
            scopes.append(scope)
        return scopes

    async def covers(
        self,
        user_id: UUID,
        role: AppRole | str,
        scope_type: ScopeType | str,
        scope_id: UUID,
    ) -> bool:
        """Whether any of the user's ``role`` scopes contains the org unit."""
        scopes = [scope for scope in await self.resolve_scopes(user_id, role) if scope.managerial]
        if not scopes:
            return False
        if any(scope.scope_type is ScopeType.TENANT for scope in scopes):
            return True
        lineage = await self._org.lineage(ScopeType(scope_type), scope_id)
        if lineage is None:
            return False
        return any(
            scope.scope_type is not None and lineage.id_at(scope.scope_type) == scope.scope_id
            for scope in scopes
        )

    async def eligible_approvers(
        self,
        role: AppRole | str,
        scope_type: ScopeType | str,
        scope_id: UUID,
    ) -> list[UUID]:
        """Users whose ``role`` assignment covers the org unit, in assignment order."""
        definition = role_definition(role)
        if not definition.managerial:
            return []
        if definition.pointer is None:
            holders = await self._store.holders(definition.role)
        else:
            lineage = await self._org.lineage(ScopeType(scope_type), scope_id)
            anchor = lineage.id_at(definition.scope_type) if lineage is not None else None
            if anchor is None:
                return []
            holders = await self._store.holders(
                definition.role, pointer=definition.pointer, scope_id=anchor
            )
        return list(dict.fromkeys(record.user_id for record in holders))

    def invalidate(self, user_id: UUID | None = None) -> None:
        self._store.invalidate(user_id)


__all__ = ["ResolvedScope", "ScopeResolver", "scope_for_assignment"]
