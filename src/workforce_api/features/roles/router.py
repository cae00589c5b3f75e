"""Scope endpoints for the calling user."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Query, status

from workforce_api.api.deps import AccessDep
from workforce_api.common.schema import BaseSchema
from workforce_api.core.rbac.types import AppRole, ScopeType

from .scopes import ResolvedScope, scope_for_assignment

router = APIRouter(prefix="/me", tags=["roles"])


class ScopeOut(BaseSchema):
    role: AppRole
    scope_type: ScopeType | None = None
    scope_id: UUID | None = None
    assignment_id: UUID
    managerial: bool


class ScopesOut(BaseSchema):
    user_id: UUID
    scopes: list[ScopeOut]


def _serialize(scope: ResolvedScope) -> ScopeOut:
    return ScopeOut(
        role=scope.role,
        scope_type=scope.scope_type,
        scope_id=scope.scope_id,
        assignment_id=scope.assignment_id,
        managerial=scope.managerial,
    )


@router.get(
    "/scopes",
    response_model=ScopesOut,
    status_code=status.HTTP_200_OK,
    summary="Scopes granted by the caller's role assignments",
)
async def read_my_scopes(
    access: AccessDep,
    role: AppRole | None = Query(default=None, description="Only scopes for this role."),
    managed_only: bool = Query(default=False, description="Only managerial scopes."),
) -> ScopesOut:
    user_id = access.user_id
    if role is not None:
        scopes = await access.scopes.resolve_scopes(user_id, role)
    elif managed_only:
        scopes = await access.scopes.managed_scopes(user_id)
    else:
        scopes = [scope_for_assignment(record) for record in await access.store.assignments(user_id)]
    if managed_only:
        scopes = [scope for scope in scopes if scope.managerial]
    return ScopesOut(user_id=user_id, scopes=[_serialize(scope) for scope in scopes])
