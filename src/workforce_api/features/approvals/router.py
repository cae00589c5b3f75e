"""HTTP surface for the approval workflow."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Path, status

from workforce_api.api.deps import AccessDep
from workforce_api.core.rbac.types import ModuleKey

from .schemas import (
    ApprovalDecisionIn,
    ApprovalRequestCreate,
    ApprovalRequestOut,
    ConflictDayOut,
    ConflictReportOut,
    NotificationFailureOut,
    TransitionResultOut,
)
from .service import TransitionResult

router = APIRouter(prefix="/approvals", tags=["approvals"])

RequestIdPath = Path(description="Approval request identifier.")


def _result(result: TransitionResult) -> TransitionResultOut:
    return TransitionResultOut(
        request=ApprovalRequestOut.model_validate(result.request),
        notification_errors=[
            NotificationFailureOut(user_id=failure.user_id, title=failure.title, error=failure.error)
            for failure in result.notification_errors
        ],
    )


@router.post(
    "",
    response_model=ApprovalRequestOut,
    status_code=status.HTTP_201_CREATED,
    summary="Create a draft vacation request",
)
async def create_request(payload: ApprovalRequestCreate, access: AccessDep) -> ApprovalRequestOut:
    access.require_module(ModuleKey.VACATION_PLANNING)
    request = await access.approvals.create_request(
        requester_id=access.user_id,
        scope_type=payload.scope_type,
        scope_id=payload.scope_id,
        start_date=payload.start_date,
        end_date=payload.end_date,
        reason=payload.reason,
    )
    return await access.approvals.get_view(request.id)


@router.get("/{request_id}", response_model=ApprovalRequestOut)
async def read_request(
    access: AccessDep,
    request_id: UUID = RequestIdPath,
) -> ApprovalRequestOut:
    access.require_module(ModuleKey.VACATION_PLANNING)
    return await access.approvals.get_view(request_id)


@router.post("/{request_id}/submit", response_model=TransitionResultOut)
async def submit_request(
    access: AccessDep,
    request_id: UUID = RequestIdPath,
) -> TransitionResultOut:
    access.require_module(ModuleKey.VACATION_PLANNING)
    return _result(await access.approvals.submit(request_id, access.user_id))


@router.post("/{request_id}/route", response_model=TransitionResultOut)
async def route_request(
    access: AccessDep,
    request_id: UUID = RequestIdPath,
) -> TransitionResultOut:
    access.require_module(ModuleKey.VACATION_PLANNING)
    return _result(await access.approvals.route(request_id, access.user_id))


@router.post("/{request_id}/decisions", response_model=TransitionResultOut)
async def decide_request(
    payload: ApprovalDecisionIn,
    access: AccessDep,
    request_id: UUID = RequestIdPath,
) -> TransitionResultOut:
    access.require_module(ModuleKey.VACATION_PLANNING)
    result = await access.approvals.decide(
        request_id,
        payload.level,
        payload.decision,
        access.user_id,
        comments=payload.comments,
    )
    return _result(result)


@router.post("/{request_id}/cancel", response_model=TransitionResultOut)
async def cancel_request(
    access: AccessDep,
    request_id: UUID = RequestIdPath,
) -> TransitionResultOut:
    access.require_module(ModuleKey.VACATION_PLANNING)
    return _result(await access.approvals.cancel(request_id, access.user_id))


@router.get("/{request_id}/conflicts", response_model=ConflictReportOut)
async def read_conflicts(
    access: AccessDep,
    request_id: UUID = RequestIdPath,
) -> ConflictReportOut:
    access.require_module(ModuleKey.VACATION_PLANNING)
    report = await access.approvals.evaluate_conflicts(request_id)
    return ConflictReportOut(
        request_id=request_id,
        has_conflict=report.has_conflict,
        days=[
            ConflictDayOut(
                day=day.day,
                absent=day.absent,
                staff_count=day.staff_count,
                remaining=day.remaining,
                min_coverage=day.min_coverage,
                max_concurrent_absences=day.max_concurrent_absences,
                conflicting_request_ids=list(day.conflicting_request_ids),
            )
            for day in report.days
        ],
        overlapping_request_ids=list(report.overlapping_request_ids),
    )
