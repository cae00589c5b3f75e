"""Persistence helpers for approval requests and steps."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import date, datetime
from typing import Any
from uuid import UUID

from sqlalchemy import ColumnElement, and_, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from workforce_api.core.models import (
    ApprovalRequest,
    ApprovalStatus,
    ApprovalStep,
    Department,
    Facility,
    StepDecision,
)
from workforce_api.core.rbac.types import AppRole, ScopeType
from workforce_api.features.realtime.capture import RECORD_ID_OPTION


def _within_unit(scope_type: ScopeType, scope_id: UUID) -> ColumnElement[bool]:
    """Match requests filed against the unit itself or any unit beneath it."""
    clauses = [
        and_(ApprovalRequest.scope_type == scope_type, ApprovalRequest.scope_id == scope_id)
    ]
    if scope_type is ScopeType.FACILITY:
        departments = select(Department.id).where(Department.facility_id == scope_id)
        clauses.append(
            and_(
                ApprovalRequest.scope_type == ScopeType.DEPARTMENT,
                ApprovalRequest.scope_id.in_(departments),
            )
        )
    elif scope_type is ScopeType.WORKSPACE:
        facilities = select(Facility.id).where(Facility.workspace_id == scope_id)
        departments = select(Department.id).where(Department.facility_id.in_(facilities))
        clauses.append(
            and_(
                ApprovalRequest.scope_type == ScopeType.FACILITY,
                ApprovalRequest.scope_id.in_(facilities),
            )
        )
        clauses.append(
            and_(
                ApprovalRequest.scope_type == ScopeType.DEPARTMENT,
                ApprovalRequest.scope_id.in_(departments),
            )
        )
    return or_(*clauses)


class ApprovalsRepository:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, request_id: UUID, *, fresh: bool = False) -> ApprovalRequest | None:
        """Load a request with its steps; ``fresh`` overwrites identity-map state."""
        stmt = (
            select(ApprovalRequest)
            .options(selectinload(ApprovalRequest.steps))
            .where(ApprovalRequest.id == request_id)
        )
        if fresh:
            stmt = stmt.execution_options(populate_existing=True)
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def add(self, request: ApprovalRequest) -> ApprovalRequest:
        self._session.add(request)
        await self._session.flush()
        return request

    async def add_steps(self, request_id: UUID, roles: Iterable[AppRole]) -> list[ApprovalStep]:
        steps = [
            ApprovalStep(request_id=request_id, level=level, approver_role=role)
            for level, role in enumerate(roles, start=1)
        ]
        self._session.add_all(steps)
        await self._session.flush()
        return steps

    async def transition(
        self,
        request_id: UUID,
        *,
        expected: ApprovalStatus,
        target: ApprovalStatus,
        **values: Any,
    ) -> bool:
        """Move ``expected`` → ``target`` only if the stored status still matches.

        This is the first write of every transition; a ``False`` return means
        a concurrent writer got there first.
        """
        stmt = (
            update(ApprovalRequest)
            .where(ApprovalRequest.id == request_id, ApprovalRequest.status == expected)
            .values(status=target, **values)
            .execution_options(synchronize_session=False, **{RECORD_ID_OPTION: request_id})
        )
        result = await self._session.execute(stmt)
        return result.rowcount == 1

    async def record_decision(
        self,
        request_id: UUID,
        level: int,
        *,
        decision: StepDecision,
        decided_by: UUID,
        decided_at: datetime,
        comments: str | None,
        has_conflict: bool,
    ) -> bool:
        stmt = (
            update(ApprovalStep)
            .where(
                ApprovalStep.request_id == request_id,
                ApprovalStep.level == level,
                ApprovalStep.decision == StepDecision.PENDING,
            )
            .values(
                decision=decision,
                decided_by=decided_by,
                decided_at=decided_at,
                comments=comments,
                has_conflict=has_conflict,
                updated_at=decided_at,
            )
            .execution_options(synchronize_session=False, **{RECORD_ID_OPTION: request_id})
        )
        result = await self._session.execute(stmt)
        return result.rowcount == 1

    async def overlapping(
        self,
        *,
        scope_type: ScopeType,
        scope_id: UUID,
        start_date: date,
        end_date: date,
        statuses: Iterable[ApprovalStatus],
        exclude_id: UUID | None = None,
    ) -> Sequence[ApprovalRequest]:
        """Requests in the org unit or below it whose interval overlaps ``[start, end)``."""
        stmt = select(ApprovalRequest).where(
            _within_unit(ScopeType(scope_type), scope_id),
            ApprovalRequest.status.in_(list(statuses)),
            ApprovalRequest.start_date < end_date,
            ApprovalRequest.end_date > start_date,
        )
        if exclude_id is not None:
            stmt = stmt.where(ApprovalRequest.id != exclude_id)
        result = await self._session.execute(stmt.order_by(ApprovalRequest.start_date))
        return result.scalars().all()


__all__ = ["ApprovalsRepository"]
