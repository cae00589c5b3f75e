"""Canonical role catalog and approval chains.

Only the pointer named by a role's definition is consulted for authorization.
The other pointers on an assignment are display context.
"""

from __future__ import annotations

from workforce_api.core.rbac.types import AppRole, RoleDef, ScopeType

ROLES: tuple[RoleDef, ...] = (
    RoleDef(
        role=AppRole.SUPER_ADMIN,
        label="Super administrator",
        scope_type=ScopeType.TENANT,
        pointer=None,
    ),
    RoleDef(
        role=AppRole.GENERAL_ADMIN,
        label="General administrator",
        scope_type=ScopeType.WORKSPACE,
        pointer="workspace_id",
    ),
    RoleDef(
        role=AppRole.WORKPLACE_SUPERVISOR,
        label="Workplace supervisor",
        scope_type=ScopeType.WORKSPACE,
        pointer="workspace_id",
    ),
    RoleDef(
        role=AppRole.FACILITY_SUPERVISOR,
        label="Facility supervisor",
        scope_type=ScopeType.FACILITY,
        pointer="facility_id",
    ),
    RoleDef(
        role=AppRole.DEPARTMENT_HEAD,
        label="Department head",
        scope_type=ScopeType.DEPARTMENT,
        pointer="department_id",
    ),
    RoleDef(
        role=AppRole.STAFF,
        label="Staff",
        scope_type=None,
        pointer=None,
        managerial=False,
    ),
)

ROLE_BY_KEY: dict[AppRole, RoleDef] = {definition.role: definition for definition in ROLES}

# Org-unit depth, outermost first.
SCOPE_DEPTH: dict[ScopeType, int] = {
    ScopeType.TENANT: 0,
    ScopeType.WORKSPACE: 1,
    ScopeType.FACILITY: 2,
    ScopeType.DEPARTMENT: 3,
}

# Approver role per level (index 0 is level 1), keyed by the request's scope.
APPROVAL_CHAINS: dict[ScopeType, tuple[AppRole, ...]] = {
    ScopeType.DEPARTMENT: (
        AppRole.DEPARTMENT_HEAD,
        AppRole.FACILITY_SUPERVISOR,
        AppRole.WORKPLACE_SUPERVISOR,
    ),
    ScopeType.FACILITY: (
        AppRole.FACILITY_SUPERVISOR,
        AppRole.WORKPLACE_SUPERVISOR,
    ),
    ScopeType.WORKSPACE: (AppRole.WORKPLACE_SUPERVISOR,),
}

MAX_APPROVAL_LEVELS = max(len(chain) for chain in APPROVAL_CHAINS.values())


def role_definition(role: AppRole | str) -> RoleDef:
    return ROLE_BY_KEY[AppRole(role)]


def approval_chain(scope_type: ScopeType | str) -> tuple[AppRole, ...]:
    """Return the approver roles for ``scope_type``; empty when requests cannot target it."""
    return APPROVAL_CHAINS.get(ScopeType(scope_type), ())


def approver_role(scope_type: ScopeType | str, level: int) -> AppRole | None:
    chain = approval_chain(scope_type)
    if 1 <= level <= len(chain):
        return chain[level - 1]
    return None


__all__ = [
    "APPROVAL_CHAINS",
    "MAX_APPROVAL_LEVELS",
    "ROLES",
    "ROLE_BY_KEY",
    "SCOPE_DEPTH",
    "approval_chain",
    "approver_role",
    "role_definition",
]
