"""Approval Workflow Engine.

States::

    draft → submitted → level_1_pending → … → level_N_pending → fully_approved
                  ↘ cancelled            ↘ rejected (from any level_k_pending)

``N`` is the length of the approval chain for the request's scope type. Each
transition validates everything before writing. Its first write is a
conditional ``UPDATE … WHERE status = <expected>``, so of two concurrent
deciders only one can move the request. The other gets a typed error after
re-reading the stored state.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from workforce_api.common.logging import log_context
from workforce_api.core.errors import (
    AccessDenied,
    ApprovalRequestNotFound,
    ApprovalValidationError,
    DuplicateDecision,
    InvalidTransition,
    NoApproverConfigured,
    RequestAlreadyTerminal,
)
from workforce_api.core.models import (
    ApprovalRequest,
    ApprovalStatus,
    ApprovalStep,
    StepDecision,
)
from workforce_api.core.rbac.registry import approval_chain, approver_role
from workforce_api.core.rbac.types import ScopeType
from workforce_api.db import utc_now
from workforce_api.features.org.repository import OrgRepository
from workforce_api.features.roles.scopes import ScopeResolver
from workforce_api.settings import Settings

from .conflicts import ConflictEvaluator, ConflictReport
from .notifications import (
    NotificationDispatcher,
    NotificationFailure,
    NotificationPayload,
    NullNotificationDispatcher,
    dispatch_all,
)
from .repository import ApprovalsRepository
from .schemas import ApprovalRequestOut, Decision

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class TransitionResult:
    request: ApprovalRequest
    step: ApprovalStep | None = None
    notification_errors: list[NotificationFailure] = field(default_factory=list)


class ApprovalViewCache:
    """Serialized request views, dropped when the request changes."""

    def __init__(self) -> None:
        self._views: dict[UUID, ApprovalRequestOut] = {}

    def get(self, request_id: UUID) -> ApprovalRequestOut | None:
        return self._views.get(request_id)

    def put(self, view: ApprovalRequestOut) -> None:
        self._views[view.id] = view

    def invalidate(self, record_id: UUID | None = None) -> None:
        if record_id is None:
            self._views.clear()
        else:
            self._views.pop(record_id, None)

    def __contains__(self, request_id: object) -> bool:
        return request_id in self._views


def _step_at(request: ApprovalRequest, level: int) -> ApprovalStep | None:
    for step in request.steps:
        if step.level == level:
            return step
    return None


def check_decidable(request: ApprovalRequest, level: int) -> int:
    """Raise the typed error explaining why ``level`` cannot be decided now.

    Returns the pending level when the decision is allowed.
    """
    status = ApprovalStatus(request.status)
    step = _step_at(request, level)
    if step is not None and step.decision is not StepDecision.PENDING:
        raise DuplicateDecision(
            f"Level {level} was already {StepDecision(step.decision).value}",
            request_id=request.id,
            status=status.value,
            level=level,
        )
    if status.is_terminal:
        raise RequestAlreadyTerminal(
            f"Request is {status.value}; no further decisions are accepted",
            request_id=request.id,
            status=status.value,
            level=level,
        )
    pending = status.pending_level
    if pending is None:
        raise InvalidTransition(
            f"Request is {status.value}; it is not awaiting a decision",
            request_id=request.id,
            status=status.value,
            level=level,
        )
    if not 1 <= level <= request.max_level or level != pending:
        raise InvalidTransition(
            f"Level {pending} is awaiting a decision, not level {level}",
            request_id=request.id,
            status=status.value,
            level=level,
        )
    return pending


class ApprovalWorkflowEngine:
    def __init__(
        self,
        *,
        session: AsyncSession,
        scopes: ScopeResolver,
        settings: Settings,
        org: OrgRepository | None = None,
        dispatcher: NotificationDispatcher | None = None,
        views: ApprovalViewCache | None = None,
    ) -> None:
        self._session = session
        self._scopes = scopes
        self._settings = settings
        self._org = org or OrgRepository(session)
        self._repo = ApprovalsRepository(session)
        self._conflicts = ConflictEvaluator(repository=self._repo, org=self._org, settings=settings)
        if dispatcher is None or not settings.approval_notifications_enabled:
            dispatcher = NullNotificationDispatcher()
        self._dispatcher = dispatcher
        self.views = views or ApprovalViewCache()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_request(self, request_id: UUID) -> ApprovalRequest:
        request = await self._repo.get(request_id)
        if request is None:
            raise ApprovalRequestNotFound(request_id)
        return request

    async def get_view(self, request_id: UUID) -> ApprovalRequestOut:
        cached = self.views.get(request_id)
        if cached is not None:
            return cached
        view = ApprovalRequestOut.model_validate(await self.get_request(request_id))
        self.views.put(view)
        return view

    async def evaluate_conflicts(self, request_id: UUID) -> ConflictReport:
        return await self._conflicts.evaluate(await self.get_request(request_id))

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    async def create_request(
        self,
        *,
        requester_id: UUID,
        scope_type: ScopeType | str,
        scope_id: UUID,
        start_date: date,
        end_date: date,
        reason: str | None = None,
    ) -> ApprovalRequest:
        """Create a ``draft`` request against one org unit."""
        scope_type = ScopeType(scope_type)
        chain = approval_chain(scope_type)
        if not chain:
            raise ApprovalValidationError(
                f"Requests cannot target a {scope_type.value} scope",
                scope_type=scope_type.value,
            )
        if start_date >= end_date:
            raise ApprovalValidationError(
                "end_date must be after start_date",
                start_date=start_date.isoformat(),
                end_date=end_date.isoformat(),
            )
        if await self._org.lineage(scope_type, scope_id) is None:
            raise ApprovalValidationError(
                f"Unknown {scope_type.value} {scope_id}",
                scope_type=scope_type.value,
                scope_id=str(scope_id),
            )

        request = await self._repo.add(
            ApprovalRequest(
                requester_id=requester_id,
                scope_type=scope_type,
                scope_id=scope_id,
                status=ApprovalStatus.DRAFT,
                start_date=start_date,
                end_date=end_date,
                reason=reason,
                max_level=len(chain),
                steps=[],
            )
        )
        logger.info(
            "approvals.create.success",
            extra=log_context(
                request_id=request.id,
                user_id=requester_id,
                scope_type=scope_type,
                scope_id=scope_id,
            ),
        )
        return request

    async def submit(self, request_id: UUID, actor_id: UUID) -> TransitionResult:
        """``draft`` → ``submitted``, and on to ``level_1_pending`` when auto-routing."""
        request = await self.get_request(request_id)
        self._require_requester(request, actor_id, action="submit")
        self._require_status(request, ApprovalStatus.DRAFT)
        approvers = await self._level_approvers(request, 1)

        auto_route = self._settings.approval_auto_route
        target = ApprovalStatus.pending(1) if auto_route else ApprovalStatus.SUBMITTED
        report = await self._conflicts.evaluate(request) if auto_route else None

        values: dict[str, object] = {"submitted_at": utc_now(), "updated_at": utc_now()}
        if report is not None:
            values.update(has_conflict=report.has_conflict, conflict_details=report.details())
        await self._move(request, ApprovalStatus.DRAFT, target, **values)
        await self._repo.add_steps(request.id, approval_chain(request.scope_type))
        request = await self._reload(request.id)

        logger.info(
            "approvals.submit.success",
            extra=log_context(request_id=request.id, user_id=actor_id, status=request.status),
        )
        result = TransitionResult(request=request)
        if auto_route:
            result.notification_errors = await self._announce_level(request, 1, approvers)
        return result

    async def route(self, request_id: UUID, actor_id: UUID) -> TransitionResult:
        """``submitted`` → ``level_1_pending`` for requests submitted without auto-routing.

        Only the requester or an eligible level 1 approver may open review.
        """
        request = await self.get_request(request_id)
        await self._require_router(request, actor_id)
        self._require_status(request, ApprovalStatus.SUBMITTED)
        approvers = await self._level_approvers(request, 1)
        report = await self._conflicts.evaluate(request)

        await self._move(
            request,
            ApprovalStatus.SUBMITTED,
            ApprovalStatus.pending(1),
            has_conflict=report.has_conflict,
            conflict_details=report.details(),
            updated_at=utc_now(),
        )
        request = await self._reload(request.id)
        logger.info(
            "approvals.route.success",
            extra=log_context(request_id=request.id, user_id=actor_id, level=1),
        )
        return TransitionResult(
            request=request,
            notification_errors=await self._announce_level(request, 1, approvers),
        )

    async def decide(
        self,
        request_id: UUID,
        level: int,
        decision: Decision | str,
        approver_id: UUID,
        comments: str | None = None,
    ) -> TransitionResult:
        decision = Decision(decision)
        request = await self.get_request(request_id)
        pending = check_decidable(request, level)

        role = approver_role(request.scope_type, level)
        if role is None or not await self._scopes.covers(
            approver_id, role, request.scope_type, request.scope_id
        ):
            raise AccessDenied(
                f"Approver has no {role.value if role else 'approver'} scope over this request",
                user_id=approver_id,
                required_role=role.value if role else None,
                scope_type=ScopeType(request.scope_type).value,
                scope_id=request.scope_id,
            )

        report = await self._conflicts.evaluate(request)
        if decision is Decision.REJECT:
            target = ApprovalStatus.REJECTED
        elif level == request.max_level:
            target = ApprovalStatus.FULLY_APPROVED
        else:
            target = ApprovalStatus.pending(level + 1)
        next_approvers: list[UUID] = []
        if target.pending_level is not None:
            next_approvers = await self._scopes.eligible_approvers(
                approver_role(request.scope_type, target.pending_level),
                request.scope_type,
                request.scope_id,
            )

        now = utc_now()
        values: dict[str, object] = {
            "has_conflict": report.has_conflict,
            "conflict_details": report.details(),
            "updated_at": now,
        }
        if target.is_terminal:
            values["completed_at"] = now
        await self._move(request, ApprovalStatus.pending(pending), target, level=level, **values)

        recorded = await self._repo.record_decision(
            request.id,
            level,
            decision=decision.step_decision,
            decided_by=approver_id,
            decided_at=now,
            comments=comments,
            has_conflict=report.has_conflict,
        )
        if not recorded:
            raise DuplicateDecision(
                f"Level {level} was decided concurrently",
                request_id=request.id,
                level=level,
            )

        request = await self._reload(request.id)
        step = _step_at(request, level)
        logger.info(
            f"approvals.decide.{StepDecision(decision.step_decision).value}",
            extra=log_context(
                request_id=request.id,
                user_id=approver_id,
                level=level,
                status=request.status,
                has_conflict=report.has_conflict,
            ),
        )

        if target is ApprovalStatus.FULLY_APPROVED:
            payloads = [
                NotificationPayload(
                    user_id=request.requester_id,
                    title="Vacation Approved",
                    message=f"Your vacation from {_span(request)} has been fully approved.",
                    related_id=request.id,
                )
            ]
        elif target is ApprovalStatus.REJECTED:
            payloads = [
                NotificationPayload(
                    user_id=request.requester_id,
                    title="Vacation Rejected",
                    message=(
                        f"Your vacation from {_span(request)} was rejected at level {level}."
                        + (f" Comment: {comments}" if comments else "")
                    ),
                    related_id=request.id,
                )
            ]
        else:
            payloads = self._level_payloads(request, level + 1, next_approvers)

        return TransitionResult(
            request=request,
            step=step,
            notification_errors=await dispatch_all(self._dispatcher, payloads),
        )

    async def cancel(self, request_id: UUID, actor_id: UUID) -> TransitionResult:
        """Withdraw a ``draft`` or ``submitted`` request; requester only."""
        request = await self.get_request(request_id)
        self._require_requester(request, actor_id, action="cancel")
        status = ApprovalStatus(request.status)
        if status.is_terminal:
            raise RequestAlreadyTerminal(
                f"Request is already {status.value}",
                request_id=request.id,
                status=status.value,
            )
        if status not in (ApprovalStatus.DRAFT, ApprovalStatus.SUBMITTED):
            raise InvalidTransition(
                f"Request under review ({status.value}) cannot be cancelled",
                request_id=request.id,
                status=status.value,
            )
        now = utc_now()
        await self._move(
            request, status, ApprovalStatus.CANCELLED, completed_at=now, updated_at=now
        )
        request = await self._reload(request.id)
        logger.info(
            "approvals.cancel.success",
            extra=log_context(request_id=request.id, user_id=actor_id),
        )
        return TransitionResult(request=request)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _require_requester(request: ApprovalRequest, actor_id: UUID, *, action: str) -> None:
        if request.requester_id != actor_id:
            raise AccessDenied(
                f"Only the requester can {action} this request",
                user_id=actor_id,
                scope_type=ScopeType(request.scope_type).value,
                scope_id=request.scope_id,
            )

    async def _require_router(self, request: ApprovalRequest, actor_id: UUID) -> None:
        if request.requester_id == actor_id:
            return
        role = approver_role(request.scope_type, 1)
        if role is not None and await self._scopes.covers(
            actor_id, role, request.scope_type, request.scope_id
        ):
            return
        raise AccessDenied(
            "Only the requester or a level 1 approver can route this request",
            user_id=actor_id,
            required_role=role.value if role else None,
            scope_type=ScopeType(request.scope_type).value,
            scope_id=request.scope_id,
        )

    @staticmethod
    def _require_status(request: ApprovalRequest, expected: ApprovalStatus) -> None:
        status = ApprovalStatus(request.status)
        if status is expected:
            return
        if status.is_terminal:
            raise RequestAlreadyTerminal(
                f"Request is already {status.value}",
                request_id=request.id,
                status=status.value,
            )
        raise InvalidTransition(
            f"Request is {status.value}, expected {expected.value}",
            request_id=request.id,
            status=status.value,
        )

    async def _level_approvers(self, request: ApprovalRequest, level: int) -> list[UUID]:
        role = approver_role(request.scope_type, level)
        approvers = (
            await self._scopes.eligible_approvers(role, request.scope_type, request.scope_id)
            if role is not None
            else []
        )
        if not approvers:
            raise NoApproverConfigured(
                f"No {role.value if role else 'approver'} covers this request at level {level}",
                request_id=request.id,
                level=level,
                approver_role=role.value if role else None,
            )
        return approvers

    async def _move(
        self,
        request: ApprovalRequest,
        expected: ApprovalStatus,
        target: ApprovalStatus,
        *,
        level: int | None = None,
        **values: object,
    ) -> None:
        moved = await self._repo.transition(request.id, expected=expected, target=target, **values)
        self.views.invalidate(request.id)
        if moved:
            return
        # Lost a race: explain the state we lost to.
        current = await self._reload(request.id)
        logger.info(
            "approvals.transition.lost",
            extra=log_context(
                request_id=request.id,
                expected=expected,
                target=target,
                status=current.status,
            ),
        )
        if level is not None:
            check_decidable(current, level)
        else:
            self._require_status(current, expected)
        raise InvalidTransition(
            f"Request moved to {ApprovalStatus(current.status).value} concurrently",
            request_id=request.id,
            status=ApprovalStatus(current.status).value,
        )

    async def _reload(self, request_id: UUID) -> ApprovalRequest:
        request = await self._repo.get(request_id, fresh=True)
        if request is None:
            raise ApprovalRequestNotFound(request_id)
        return request

    def _level_payloads(
        self, request: ApprovalRequest, level: int, approvers: list[UUID]
    ) -> list[NotificationPayload]:
        title = (
            "Vacation Needs Final Approval"
            if level == request.max_level and level > 1
            else f"Vacation Needs Level {level} Approval"
        )
        return [
            NotificationPayload(
                user_id=approver_id,
                title=title,
                message=f"A vacation request for {_span(request)} is awaiting your decision.",
                related_id=request.id,
            )
            for approver_id in approvers
        ]

    async def _announce_level(
        self, request: ApprovalRequest, level: int, approvers: list[UUID]
    ) -> list[NotificationFailure]:
        return await dispatch_all(self._dispatcher, self._level_payloads(request, level, approvers))


def _span(request: ApprovalRequest) -> str:
    return f"{request.start_date.isoformat()} to {request.end_date.isoformat()}"


__all__ = [
    "ApprovalViewCache",
    "ApprovalWorkflowEngine",
    "TransitionResult",
    "check_decidable",
]
