"""Organization hierarchy: workspace ⊃ facility ⊃ department ⊃ staff.

Read-only from the access-control core; administration happens elsewhere.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from workforce_api.db import Base, TimestampMixin, UUIDPrimaryKeyMixin, UUIDType

DEFAULT_MIN_VACATION_NOTICE_DAYS = 14


class Workspace(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """Tenant-level org unit carrying the vacation rules for everything below it."""

    __tablename__ = "workspaces"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    min_staff_coverage: Mapped[int | None] = mapped_column(Integer, nullable=True)
    max_concurrent_absences: Mapped[int | None] = mapped_column(Integer, nullable=True)
    min_vacation_notice_days: Mapped[int] = mapped_column(
        Integer, nullable=False, default=DEFAULT_MIN_VACATION_NOTICE_DAYS
    )

    facilities: Mapped[list[Facility]] = relationship("Facility", back_populates="workspace")


class Facility(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "facilities"

    workspace_id: Mapped[UUID] = mapped_column(
        UUIDType(), ForeignKey("workspaces.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    workspace: Mapped[Workspace] = relationship("Workspace", back_populates="facilities")
    departments: Mapped[list[Department]] = relationship("Department", back_populates="facility")

    __table_args__ = (Index("ix_facilities_workspace", "workspace_id"),)


class Department(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "departments"

    facility_id: Mapped[UUID] = mapped_column(
        UUIDType(), ForeignKey("facilities.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    facility: Mapped[Facility] = relationship("Facility", back_populates="departments")

    __table_args__ = (Index("ix_departments_facility", "facility_id"),)


class StaffMember(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """Placement of a user in a department; the headcount behind coverage checks."""

    __tablename__ = "staff_members"

    user_id: Mapped[UUID] = mapped_column(
        UUIDType(), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    department_id: Mapped[UUID] = mapped_column(
        UUIDType(), ForeignKey("departments.id", ondelete="CASCADE"), nullable=False
    )
    position: Mapped[str | None] = mapped_column(String(120), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    __table_args__ = (
        UniqueConstraint("user_id", "department_id", name="uq_staff_member_department"),
        Index("ix_staff_members_department", "department_id"),
    )


__all__ = [
    "DEFAULT_MIN_VACATION_NOTICE_DAYS",
    "Department",
    "Facility",
    "StaffMember",
    "Workspace",
]
