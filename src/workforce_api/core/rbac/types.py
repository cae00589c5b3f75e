"""RBAC type definitions used across the stack."""

from __future__ import annotations

import enum
from dataclasses import dataclass


class AppRole(str, enum.Enum):
    """Closed catalog of roles a user can be assigned."""

    SUPER_ADMIN = "super_admin"
    GENERAL_ADMIN = "general_admin"
    WORKPLACE_SUPERVISOR = "workplace_supervisor"
    FACILITY_SUPERVISOR = "facility_supervisor"
    DEPARTMENT_HEAD = "department_head"
    STAFF = "staff"


class ScopeType(str, enum.Enum):
    """Org-unit kinds a role or an approval request can be scoped to."""

    TENANT = "tenant"
    WORKSPACE = "workspace"
    FACILITY = "facility"
    DEPARTMENT = "department"


class ModuleKey(str, enum.Enum):
    """Functional areas gated by the capability matrix."""

    TASK_MANAGEMENT = "task_management"
    VACATION_PLANNING = "vacation_planning"
    SCHEDULING = "scheduling"
    MESSAGING = "messaging"
    NOTIFICATIONS = "notifications"
    TRAINING = "training"
    ORGANIZATION = "organization"
    USER_MANAGEMENT = "user_management"
    REPORTS = "reports"

    @classmethod
    def parse(cls, value: object) -> ModuleKey | None:
        """Return the member for ``value`` or ``None`` when the key is unknown."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value))
        except ValueError:
            return None


@dataclass(frozen=True)
class RoleDef:
    """Static role definition.

    ``scope_type`` names the org-unit level the role has authority over and
    ``pointer`` the assignment column that is authoritative for it. Roles with
    no pointer are either tenant-wide or carry no managerial scope.
    """

    role: AppRole
    label: str
    scope_type: ScopeType | None
    pointer: str | None
    managerial: bool = True
