"""Module catalog and the grant tables feeding the capability matrix."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, String, Text, UniqueConstraint, false, true
from sqlalchemy.orm import Mapped, mapped_column

from workforce_api.core.rbac.types import AppRole, ModuleKey
from workforce_api.db import Base, TimestampMixin, UUIDPrimaryKeyMixin, UUIDType
from workforce_api.db.enums import enum_column


class Module(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "modules"

    key: Mapped[ModuleKey] = mapped_column(
        enum_column(ModuleKey, "module_key"), nullable=False, unique=True
    )
    name: Mapped[str] = mapped_column(String(150), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, server_default=true()
    )


class _CapabilityFlags:
    can_view: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=false()
    )
    can_edit: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=false()
    )
    can_delete: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=false()
    )
    can_admin: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=false()
    )


class RoleModuleAccess(UUIDPrimaryKeyMixin, _CapabilityFlags, TimestampMixin, Base):
    """Capabilities a role grants on a module."""

    __tablename__ = "role_module_access"

    role: Mapped[AppRole] = mapped_column(enum_column(AppRole, "app_role"), nullable=False)
    module_id: Mapped[UUID] = mapped_column(
        UUIDType(), ForeignKey("modules.id", ondelete="CASCADE"), nullable=False
    )

    __table_args__ = (UniqueConstraint("role", "module_id", name="uq_role_module_access"),)


class WorkspaceModuleAccess(TimestampMixin, Base):
    """Per-workspace switch; a disabled module grants nothing through roles there."""

    __tablename__ = "workspace_module_access"

    workspace_id: Mapped[UUID] = mapped_column(
        UUIDType(), ForeignKey("workspaces.id", ondelete="CASCADE"), primary_key=True
    )
    module_id: Mapped[UUID] = mapped_column(
        UUIDType(), ForeignKey("modules.id", ondelete="CASCADE"), primary_key=True
    )
    is_enabled: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, server_default=true()
    )


class UserModuleAccess(UUIDPrimaryKeyMixin, _CapabilityFlags, TimestampMixin, Base):
    """Per-user grant. With ``is_override`` set it replaces the role-derived flags."""

    __tablename__ = "user_module_access"

    user_id: Mapped[UUID] = mapped_column(
        UUIDType(), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    module_id: Mapped[UUID] = mapped_column(
        UUIDType(), ForeignKey("modules.id", ondelete="CASCADE"), nullable=False
    )
    is_override: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=false()
    )

    __table_args__ = (UniqueConstraint("user_id", "module_id", name="uq_user_module_access"),)


__all__ = [
    "Module",
    "RoleModuleAccess",
    "UserModuleAccess",
    "WorkspaceModuleAccess",
]
