"""Initial workforce schema: org hierarchy, role assignments, module grants, approvals.

UUID primary keys are generated in the application layer
(:func:`workforce_api.common.ids.generate_id`).
"""

from __future__ import annotations

import uuid
from typing import Optional

import sqlalchemy as sa
from alembic import op

from workforce_api.db.types import UTCDateTime, UUIDType

# Revision identifiers, used by Alembic.
revision = "0001_initial_schema"
down_revision: Optional[str] = None
branch_labels: Optional[str] = None
depends_on: Optional[str] = None


# ---------------------------------------------------------------------------
# Types / enums
# ---------------------------------------------------------------------------


def _timestamps() -> tuple[sa.Column, sa.Column]:
    """Common created_at / updated_at pair."""
    return (
        sa.Column("created_at", UTCDateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", UTCDateTime(), nullable=False, server_default=sa.func.now()),
    )


def _enum(name: str, *values: str) -> sa.Enum:
    return sa.Enum(*values, name=name, native_enum=False, length=40)


APP_ROLE = (
    "super_admin",
    "general_admin",
    "workplace_supervisor",
    "facility_supervisor",
    "department_head",
    "staff",
)

SCOPE_TYPE = ("tenant", "workspace", "facility", "department")

MODULES = (
    ("task_management", "Task Management"),
    ("vacation_planning", "Vacation Planning"),
    ("scheduling", "Scheduling"),
    ("messaging", "Messaging"),
    ("notifications", "Notifications"),
    ("training", "Training"),
    ("organization", "Organization"),
    ("user_management", "User Management"),
    ("reports", "Reports"),
)

APPROVAL_STATUS = (
    "draft",
    "submitted",
    "level_1_pending",
    "level_2_pending",
    "level_3_pending",
    "fully_approved",
    "rejected",
    "cancelled",
)


def _capability_flags() -> list[sa.Column]:
    return [
        sa.Column(flag, sa.Boolean(), nullable=False, server_default=sa.false())
        for flag in ("can_view", "can_edit", "can_delete", "can_admin")
    ]


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------


def upgrade() -> None:
    _create_users()
    _create_org()
    _create_user_roles()
    _create_modules()
    _create_approvals()
    _create_notifications()
    _seed_modules()


def downgrade() -> None:
    for table in (
        "notifications",
        "approval_steps",
        "approval_requests",
        "user_module_access",
        "workspace_module_access",
        "role_module_access",
        "modules",
        "user_roles",
        "staff_members",
        "departments",
        "facilities",
        "workspaces",
        "users",
    ):
        op.drop_table(table)


# ---------------------------------------------------------------------------
# Tables
# ---------------------------------------------------------------------------


def _create_users() -> None:
    op.create_table(
        "users",
        sa.Column("id", UUIDType(), primary_key=True),
        sa.Column("email", sa.String(320), nullable=False),
        sa.Column("full_name", sa.String(255), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.UniqueConstraint("email", name="users_email_key"),
    )


def _create_org() -> None:
    op.create_table(
        "workspaces",
        sa.Column("id", UUIDType(), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("slug", sa.String(100), nullable=False),
        sa.Column("min_staff_coverage", sa.Integer(), nullable=True),
        sa.Column("max_concurrent_absences", sa.Integer(), nullable=True),
        sa.Column(
            "min_vacation_notice_days", sa.Integer(), nullable=False, server_default="14"
        ),
        *_timestamps(),
        sa.UniqueConstraint("slug", name="workspaces_slug_key"),
    )
    op.create_table(
        "facilities",
        sa.Column("id", UUIDType(), primary_key=True),
        sa.Column(
            "workspace_id",
            UUIDType(),
            sa.ForeignKey("workspaces.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("name", sa.String(255), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_facilities_workspace", "facilities", ["workspace_id"])
    op.create_table(
        "departments",
        sa.Column("id", UUIDType(), primary_key=True),
        sa.Column(
            "facility_id",
            UUIDType(),
            sa.ForeignKey("facilities.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("name", sa.String(255), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_departments_facility", "departments", ["facility_id"])
    op.create_table(
        "staff_members",
        sa.Column("id", UUIDType(), primary_key=True),
        sa.Column(
            "user_id", UUIDType(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column(
            "department_id",
            UUIDType(),
            sa.ForeignKey("departments.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("position", sa.String(120), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.UniqueConstraint("user_id", "department_id", name="uq_staff_member_department"),
    )
    op.create_index("ix_staff_members_department", "staff_members", ["department_id"])


def _create_user_roles() -> None:
    op.create_table(
        "user_roles",
        sa.Column("id", UUIDType(), primary_key=True),
        sa.Column(
            "user_id", UUIDType(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("role", _enum("app_role", *APP_ROLE), nullable=False),
        sa.Column(
            "workspace_id",
            UUIDType(),
            sa.ForeignKey("workspaces.id", ondelete="CASCADE"),
            nullable=True,
        ),
        sa.Column(
            "facility_id",
            UUIDType(),
            sa.ForeignKey("facilities.id", ondelete="CASCADE"),
            nullable=True,
        ),
        sa.Column(
            "department_id",
            UUIDType(),
            sa.ForeignKey("departments.id", ondelete="CASCADE"),
            nullable=True,
        ),
        *_timestamps(),
    )
    op.create_index("ix_user_roles_user_role", "user_roles", ["user_id", "role"])
    op.create_index("ix_user_roles_role", "user_roles", ["role"])


def _create_modules() -> None:
    op.create_table(
        "modules",
        sa.Column("id", UUIDType(), primary_key=True),
        sa.Column("key", _enum("module_key", *(key for key, _ in MODULES)), nullable=False),
        sa.Column("name", sa.String(150), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.UniqueConstraint("key", name="modules_key_key"),
    )
    op.create_table(
        "role_module_access",
        sa.Column("id", UUIDType(), primary_key=True),
        sa.Column("role", _enum("app_role", *APP_ROLE), nullable=False),
        sa.Column(
            "module_id",
            UUIDType(),
            sa.ForeignKey("modules.id", ondelete="CASCADE"),
            nullable=False,
        ),
        *_capability_flags(),
        *_timestamps(),
        sa.UniqueConstraint("role", "module_id", name="uq_role_module_access"),
    )
    op.create_table(
        "workspace_module_access",
        sa.Column(
            "workspace_id",
            UUIDType(),
            sa.ForeignKey("workspaces.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column(
            "module_id",
            UUIDType(),
            sa.ForeignKey("modules.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("is_enabled", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_table(
        "user_module_access",
        sa.Column("id", UUIDType(), primary_key=True),
        sa.Column(
            "user_id", UUIDType(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column(
            "module_id",
            UUIDType(),
            sa.ForeignKey("modules.id", ondelete="CASCADE"),
            nullable=False,
        ),
        *_capability_flags(),
        sa.Column("is_override", sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
        sa.UniqueConstraint("user_id", "module_id", name="uq_user_module_access"),
    )


def _create_approvals() -> None:
    op.create_table(
        "approval_requests",
        sa.Column("id", UUIDType(), primary_key=True),
        sa.Column(
            "requester_id",
            UUIDType(),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("scope_type", _enum("approval_scope", *SCOPE_TYPE), nullable=False),
        sa.Column("scope_id", UUIDType(), nullable=False),
        sa.Column("status", _enum("approval_status", *APPROVAL_STATUS), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("max_level", sa.Integer(), nullable=False),
        sa.Column("has_conflict", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("conflict_details", sa.JSON(), nullable=True),
        sa.Column("submitted_at", UTCDateTime(), nullable=True),
        sa.Column("completed_at", UTCDateTime(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("start_date < end_date", name="interval"),
    )
    op.create_index(
        "ix_approval_requests_scope_status",
        "approval_requests",
        ["scope_type", "scope_id", "status"],
    )
    op.create_index("ix_approval_requests_requester", "approval_requests", ["requester_id"])
    op.create_table(
        "approval_steps",
        sa.Column("id", UUIDType(), primary_key=True),
        sa.Column(
            "request_id",
            UUIDType(),
            sa.ForeignKey("approval_requests.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("level", sa.Integer(), nullable=False),
        sa.Column("approver_role", _enum("app_role", *APP_ROLE), nullable=False),
        sa.Column(
            "decision",
            _enum("step_decision", "pending", "approved", "rejected"),
            nullable=False,
            server_default="pending",
        ),
        sa.Column(
            "decided_by", UUIDType(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True
        ),
        sa.Column("decided_at", UTCDateTime(), nullable=True),
        sa.Column("comments", sa.Text(), nullable=True),
        sa.Column("has_conflict", sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
        sa.UniqueConstraint("request_id", "level", name="uq_approval_step_level"),
        sa.CheckConstraint("level >= 1", name="level_positive"),
    )


def _create_notifications() -> None:
    op.create_table(
        "notifications",
        sa.Column("id", UUIDType(), primary_key=True),
        sa.Column(
            "user_id", UUIDType(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column(
            "type",
            _enum("notification_type", "task", "vacation", "system", "message"),
            nullable=False,
        ),
        sa.Column("related_id", UUIDType(), nullable=True),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
    )
    op.create_index("ix_notifications_user_unread", "notifications", ["user_id", "is_read"])


# ---------------------------------------------------------------------------
# Seed data
# ---------------------------------------------------------------------------


def _seed_modules() -> None:
    modules = sa.table(
        "modules",
        sa.column("id", UUIDType()),
        sa.column("key", sa.String()),
        sa.column("name", sa.String()),
        sa.column("is_active", sa.Boolean()),
    )
    op.bulk_insert(
        modules,
        [
            {"id": uuid.uuid4(), "key": key, "name": name, "is_active": True}
            for key, name in MODULES
        ],
    )
