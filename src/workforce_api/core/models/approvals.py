"""Approval requests and their per-level steps."""

from __future__ import annotations

import enum
from datetime import date, datetime
from typing import Any
from uuid import UUID

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Date,
    ForeignKey,
    Index,
    Integer,
    Text,
    UniqueConstraint,
    false,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from workforce_api.core.rbac.registry import MAX_APPROVAL_LEVELS
from workforce_api.core.rbac.types import AppRole, ScopeType
from workforce_api.db import Base, TimestampMixin, UTCDateTime, UUIDPrimaryKeyMixin, UUIDType
from workforce_api.db.enums import enum_column


class ApprovalStatus(str, enum.Enum):
    DRAFT = "draft"
    SUBMITTED = "submitted"
    LEVEL_1_PENDING = "level_1_pending"
    LEVEL_2_PENDING = "level_2_pending"
    LEVEL_3_PENDING = "level_3_pending"
    FULLY_APPROVED = "fully_approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"

    @classmethod
    def pending(cls, level: int) -> ApprovalStatus:
        return cls(f"level_{level}_pending")

    @property
    def pending_level(self) -> int | None:
        """Level awaiting a decision, or ``None`` outside the review states."""
        if self.value.startswith("level_") and self.value.endswith("_pending"):
            return int(self.value.split("_")[1])
        return None

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset(
    {ApprovalStatus.FULLY_APPROVED, ApprovalStatus.REJECTED, ApprovalStatus.CANCELLED}
)
PENDING_STATUSES = frozenset(
    ApprovalStatus.pending(level) for level in range(1, MAX_APPROVAL_LEVELS + 1)
)
# Requests whose absence counts against coverage.
COUNTED_STATUSES = PENDING_STATUSES | {ApprovalStatus.FULLY_APPROVED}


class StepDecision(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class ApprovalRequest(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """A vacation request evaluated against one org unit.

    The absence interval is half-open: ``[start_date, end_date)``.
    """

    __tablename__ = "approval_requests"

    requester_id: Mapped[UUID] = mapped_column(
        UUIDType(), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    scope_type: Mapped[ScopeType] = mapped_column(
        enum_column(ScopeType, "approval_scope"), nullable=False
    )
    scope_id: Mapped[UUID] = mapped_column(UUIDType(), nullable=False)
    status: Mapped[ApprovalStatus] = mapped_column(
        enum_column(ApprovalStatus, "approval_status"),
        nullable=False,
        default=ApprovalStatus.DRAFT,
    )
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    max_level: Mapped[int] = mapped_column(Integer, nullable=False)
    has_conflict: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=false()
    )
    conflict_details: Mapped[list[dict[str, Any]] | None] = mapped_column(JSON, nullable=True)
    submitted_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)

    steps: Mapped[list[ApprovalStep]] = relationship(
        "ApprovalStep",
        back_populates="request",
        cascade="all, delete-orphan",
        order_by="ApprovalStep.level",
        lazy="selectin",
    )

    __table_args__ = (
        CheckConstraint("start_date < end_date", name="interval"),
        Index("ix_approval_requests_scope_status", "scope_type", "scope_id", "status"),
        Index("ix_approval_requests_requester", "requester_id"),
    )


class ApprovalStep(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """One level of the sign-off chain. Exactly one row per (request, level)."""

    __tablename__ = "approval_steps"

    request_id: Mapped[UUID] = mapped_column(
        UUIDType(), ForeignKey("approval_requests.id", ondelete="CASCADE"), nullable=False
    )
    level: Mapped[int] = mapped_column(Integer, nullable=False)
    approver_role: Mapped[AppRole] = mapped_column(
        enum_column(AppRole, "app_role"), nullable=False
    )
    decision: Mapped[StepDecision] = mapped_column(
        enum_column(StepDecision, "step_decision"),
        nullable=False,
        default=StepDecision.PENDING,
    )
    decided_by: Mapped[UUID | None] = mapped_column(
        UUIDType(), ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    decided_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    comments: Mapped[str | None] = mapped_column(Text, nullable=True)
    has_conflict: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=false()
    )

    request: Mapped[ApprovalRequest] = relationship("ApprovalRequest", back_populates="steps")

    __table_args__ = (
        UniqueConstraint("request_id", "level", name="uq_approval_step_level"),
        CheckConstraint("level >= 1", name="level_positive"),
    )


__all__ = [
    "COUNTED_STATUSES",
    "PENDING_STATUSES",
    "TERMINAL_STATUSES",
    "ApprovalRequest",
    "ApprovalStatus",
    "ApprovalStep",
    "StepDecision",
]
