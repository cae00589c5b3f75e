"""Central exports for workforce SQLAlchemy models."""

from .approvals import (
    COUNTED_STATUSES,
    PENDING_STATUSES,
    TERMINAL_STATUSES,
    ApprovalRequest,
    ApprovalStatus,
    ApprovalStep,
    StepDecision,
)
from .modules import Module, RoleModuleAccess, UserModuleAccess, WorkspaceModuleAccess
from .notifications import Notification, NotificationType
from .org import Department, Facility, StaffMember, Workspace
from .rbac import RoleAssignment
from .user import User

__all__ = [
    "COUNTED_STATUSES",
    "PENDING_STATUSES",
    "TERMINAL_STATUSES",
    "ApprovalRequest",
    "ApprovalStatus",
    "ApprovalStep",
    "Department",
    "Facility",
    "Module",
    "Notification",
    "NotificationType",
    "RoleAssignment",
    "RoleModuleAccess",
    "StaffMember",
    "StepDecision",
    "User",
    "UserModuleAccess",
    "Workspace",
    "WorkspaceModuleAccess",
]
