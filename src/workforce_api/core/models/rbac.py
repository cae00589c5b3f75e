"""Role assignment records."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column

from workforce_api.core.rbac.types import AppRole
from workforce_api.db import Base, TimestampMixin, UUIDPrimaryKeyMixin, UUIDType
from workforce_api.db.enums import enum_column


class RoleAssignment(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """One (role, scope pointers) pair held by a user.

    A user may hold several assignments at once. Which pointer is
    authoritative depends on the role; see ``core.rbac.registry``.
    """

    __tablename__ = "user_roles"

    user_id: Mapped[UUID] = mapped_column(
        UUIDType(), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    role: Mapped[AppRole] = mapped_column(enum_column(AppRole, "app_role"), nullable=False)
    workspace_id: Mapped[UUID | None] = mapped_column(
        UUIDType(), ForeignKey("workspaces.id", ondelete="CASCADE"), nullable=True
    )
    facility_id: Mapped[UUID | None] = mapped_column(
        UUIDType(), ForeignKey("facilities.id", ondelete="CASCADE"), nullable=True
    )
    department_id: Mapped[UUID | None] = mapped_column(
        UUIDType(), ForeignKey("departments.id", ondelete="CASCADE"), nullable=True
    )

    __table_args__ = (
        Index("ix_user_roles_user_role", "user_id", "role"),
        Index("ix_user_roles_role", "role"),
    )


__all__ = ["RoleAssignment"]
