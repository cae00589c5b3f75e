"""Schemas for approval request payloads and responses."""

from __future__ import annotations

import enum
from datetime import date, datetime
from typing import Any
from uuid import UUID

from pydantic import Field, model_validator

from workforce_api.common.schema import BaseSchema
from workforce_api.core.models import ApprovalStatus, StepDecision
from workforce_api.core.rbac.types import AppRole, ScopeType


class Decision(str, enum.Enum):
    APPROVE = "approve"
    REJECT = "reject"

    @property
    def step_decision(self) -> StepDecision:
        return StepDecision.APPROVED if self is Decision.APPROVE else StepDecision.REJECTED


class ApprovalRequestCreate(BaseSchema):
    scope_type: ScopeType
    scope_id: UUID
    start_date: date
    end_date: date = Field(description="Exclusive end of the absence.")
    reason: str | None = Field(default=None, max_length=2000)

    @model_validator(mode="after")
    def _check_interval(self) -> ApprovalRequestCreate:
        if self.start_date >= self.end_date:
            raise ValueError("end_date must be after start_date")
        return self


class ApprovalDecisionIn(BaseSchema):
    level: int = Field(ge=1)
    decision: Decision
    comments: str | None = Field(default=None, max_length=2000)


class ApprovalStepOut(BaseSchema):
    level: int
    approver_role: AppRole
    decision: StepDecision
    decided_by: UUID | None = None
    decided_at: datetime | None = None
    comments: str | None = None
    has_conflict: bool = False


class ApprovalRequestOut(BaseSchema):
    id: UUID
    requester_id: UUID
    scope_type: ScopeType
    scope_id: UUID
    status: ApprovalStatus
    start_date: date
    end_date: date
    reason: str | None = None
    max_level: int
    has_conflict: bool
    conflict_details: list[dict[str, Any]] | None = None
    submitted_at: datetime | None = None
    completed_at: datetime | None = None
    steps: list[ApprovalStepOut] = Field(default_factory=list)


class NotificationFailureOut(BaseSchema):
    user_id: UUID
    title: str
    error: str


class TransitionResultOut(BaseSchema):
    request: ApprovalRequestOut
    notification_errors: list[NotificationFailureOut] = Field(default_factory=list)


class ConflictDayOut(BaseSchema):
    day: date
    absent: int
    staff_count: int
    remaining: int
    min_coverage: int
    max_concurrent_absences: int | None = None
    conflicting_request_ids: list[UUID]


class ConflictReportOut(BaseSchema):
    request_id: UUID
    has_conflict: bool
    days: list[ConflictDayOut]
    overlapping_request_ids: list[UUID]


__all__ = [
    "ApprovalDecisionIn",
    "ApprovalRequestCreate",
    "ApprovalRequestOut",
    "ApprovalStepOut",
    "ConflictDayOut",
    "ConflictReportOut",
    "Decision",
    "NotificationFailureOut",
    "TransitionResultOut",
]
