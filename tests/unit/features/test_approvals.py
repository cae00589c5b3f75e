from __future__ import annotations

from datetime import date

import pytest
from sqlalchemy import select, update

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
    Notification,
    StepDecision,
)
from workforce_api.core.rbac.types import AppRole, ScopeType
from workforce_api.features.approvals.notifications import (
    DatabaseNotificationDispatcher,
    NotificationPayload,
)
from workforce_api.features.approvals.schemas import Decision
from workforce_api.features.approvals.service import ApprovalWorkflowEngine
from workforce_api.features.org.repository import OrgRepository
from workforce_api.features.roles.scopes import ScopeResolver
from workforce_api.features.roles.store import RoleAssignmentStore

JUNE_10 = date(2024, 6, 10)
JUNE_15 = date(2024, 6, 15)


class _FailingDispatcher:
    def __init__(self) -> None:
        self.payloads: list[NotificationPayload] = []

    async def dispatch(self, payload: NotificationPayload) -> None:
        self.payloads.append(payload)
        raise RuntimeError("inbox unavailable")


def _engine(session, settings, dispatcher=None) -> ApprovalWorkflowEngine:
    org = OrgRepository(session)
    scopes = ScopeResolver(store=RoleAssignmentStore(session=session), org=org)
    return ApprovalWorkflowEngine(
        session=session,
        scopes=scopes,
        settings=settings,
        org=org,
        dispatcher=dispatcher or DatabaseNotificationDispatcher(session),
    )


@pytest.fixture()
async def chain(org):
    """A department with a full three-level approver chain and one requester."""
    tree = await org.tree()
    requester = (await org.staff(tree.department))[0]
    head = await org.user("head")
    facility_sup = await org.user("facility")
    workplace_sup = await org.user("workplace")
    await org.assign(head, AppRole.DEPARTMENT_HEAD, department_id=tree.department.id)
    await org.assign(facility_sup, AppRole.FACILITY_SUPERVISOR, facility_id=tree.facility.id)
    await org.assign(workplace_sup, AppRole.WORKPLACE_SUPERVISOR, workspace_id=tree.workspace.id)
    return {
        "tree": tree,
        "requester": requester,
        "approvers": (head, facility_sup, workplace_sup),
    }


async def _submitted(engine: ApprovalWorkflowEngine, chain) -> ApprovalRequest:
    request = await engine.create_request(
        requester_id=chain["requester"].id,
        scope_type=ScopeType.DEPARTMENT,
        scope_id=chain["tree"].department.id,
        start_date=JUNE_10,
        end_date=JUNE_15,
        reason="Family trip",
    )
    result = await engine.submit(request.id, chain["requester"].id)
    return result.request


async def test_three_level_chain_ends_fully_approved(session, settings, chain) -> None:
    engine = _engine(session, settings)
    head, facility_sup, workplace_sup = chain["approvers"]

    request = await _submitted(engine, chain)
    assert request.status == ApprovalStatus.LEVEL_1_PENDING
    assert request.max_level == 3
    assert [step.approver_role for step in request.steps] == [
        AppRole.DEPARTMENT_HEAD,
        AppRole.FACILITY_SUPERVISOR,
        AppRole.WORKPLACE_SUPERVISOR,
    ]

    first = await engine.decide(request.id, 1, Decision.APPROVE, head.id)
    assert first.request.status == ApprovalStatus.LEVEL_2_PENDING
    assert first.step is not None and first.step.decided_by == head.id

    second = await engine.decide(request.id, 2, Decision.APPROVE, facility_sup.id)
    assert second.request.status == ApprovalStatus.LEVEL_3_PENDING

    final = await engine.decide(request.id, 3, "approve", workplace_sup.id, comments="Enjoy")
    assert final.request.status == ApprovalStatus.FULLY_APPROVED
    assert final.request.completed_at is not None
    assert [step.decision for step in final.request.steps] == [StepDecision.APPROVED] * 3
    assert final.notification_errors == []

    titles = (
        await session.execute(
            select(Notification.title).where(Notification.user_id == chain["requester"].id)
        )
    ).scalars().all()
    assert titles == ["Vacation Approved"]


async def test_out_of_order_decision_is_rejected(session, settings, chain) -> None:
    engine = _engine(session, settings)
    _, facility_sup, _ = chain["approvers"]
    request = await _submitted(engine, chain)

    with pytest.raises(InvalidTransition) as excinfo:
        await engine.decide(request.id, 2, Decision.REJECT, facility_sup.id)

    assert excinfo.value.code == "invalid_transition"
    refreshed = await engine.get_request(request.id)
    assert refreshed.status == ApprovalStatus.LEVEL_1_PENDING


async def test_level_outside_the_chain_is_rejected(session, settings, chain) -> None:
    engine = _engine(session, settings)
    head, _, _ = chain["approvers"]
    request = await _submitted(engine, chain)

    with pytest.raises(InvalidTransition):
        await engine.decide(request.id, 4, Decision.APPROVE, head.id)


async def test_second_decision_on_a_level_is_a_duplicate(session, settings, chain) -> None:
    engine = _engine(session, settings)
    head, _, _ = chain["approvers"]
    request = await _submitted(engine, chain)
    await engine.decide(request.id, 1, Decision.APPROVE, head.id)

    with pytest.raises(DuplicateDecision) as excinfo:
        await engine.decide(request.id, 1, Decision.APPROVE, head.id)

    assert excinfo.value.to_detail()["level"] == 1


async def test_rejection_is_terminal(session, settings, chain) -> None:
    engine = _engine(session, settings)
    head, facility_sup, _ = chain["approvers"]
    request = await _submitted(engine, chain)

    result = await engine.decide(request.id, 1, Decision.REJECT, head.id, comments="Short staffed")
    assert result.request.status == ApprovalStatus.REJECTED
    assert result.request.completed_at is not None

    with pytest.raises(RequestAlreadyTerminal):
        await engine.decide(request.id, 2, Decision.APPROVE, facility_sup.id)
    with pytest.raises(RequestAlreadyTerminal):
        await engine.cancel(request.id, chain["requester"].id)

    messages = (
        await session.execute(
            select(Notification.message).where(Notification.user_id == chain["requester"].id)
        )
    ).scalars().all()
    assert len(messages) == 1
    assert "Short staffed" in messages[0]


async def test_approver_outside_scope_is_denied(session, settings, chain, org) -> None:
    engine = _engine(session, settings)
    other = await org.tree()
    stranger = await org.user("stranger")
    await org.assign(stranger, AppRole.DEPARTMENT_HEAD, department_id=other.department.id)
    request = await _submitted(engine, chain)

    with pytest.raises(AccessDenied) as excinfo:
        await engine.decide(request.id, 1, Decision.APPROVE, stranger.id)

    assert excinfo.value.to_detail()["required_role"] == "department_head"


async def test_submit_without_approver_fails(session, settings, org) -> None:
    tree = await org.tree()
    requester = (await org.staff(tree.department))[0]
    engine = _engine(session, settings)
    request = await engine.create_request(
        requester_id=requester.id,
        scope_type=ScopeType.DEPARTMENT,
        scope_id=tree.department.id,
        start_date=JUNE_10,
        end_date=JUNE_15,
    )

    with pytest.raises(NoApproverConfigured):
        await engine.submit(request.id, requester.id)

    assert (await engine.get_request(request.id)).status == ApprovalStatus.DRAFT


async def test_submit_is_limited_to_the_requester(session, settings, chain) -> None:
    engine = _engine(session, settings)
    head, _, _ = chain["approvers"]
    request = await engine.create_request(
        requester_id=chain["requester"].id,
        scope_type=ScopeType.DEPARTMENT,
        scope_id=chain["tree"].department.id,
        start_date=JUNE_10,
        end_date=JUNE_15,
    )

    with pytest.raises(AccessDenied):
        await engine.submit(request.id, head.id)


async def test_submit_announces_level_one(session, settings, chain) -> None:
    engine = _engine(session, settings)
    head, _, _ = chain["approvers"]

    await _submitted(engine, chain)

    titles = (
        await session.execute(select(Notification.title).where(Notification.user_id == head.id))
    ).scalars().all()
    assert titles == ["Vacation Needs Level 1 Approval"]


async def test_notification_failures_are_collected(session, settings, chain) -> None:
    dispatcher = _FailingDispatcher()
    engine = _engine(session, settings, dispatcher=dispatcher)
    head, _, _ = chain["approvers"]

    request = await _submitted(engine, chain)
    result = await engine.decide(request.id, 1, Decision.APPROVE, head.id)

    assert result.request.status == ApprovalStatus.LEVEL_2_PENDING
    assert [failure.title for failure in result.notification_errors] == [
        "Vacation Needs Level 2 Approval"
    ]
    assert result.notification_errors[0].error == "inbox unavailable"


async def test_manual_routing_when_auto_route_is_off(session, settings, chain) -> None:
    engine = _engine(session, settings.model_copy(update={"approval_auto_route": False}))

    request = await _submitted(engine, chain)
    assert request.status == ApprovalStatus.SUBMITTED
    assert request.submitted_at is not None

    routed = await engine.route(request.id, chain["requester"].id)
    assert routed.request.status == ApprovalStatus.LEVEL_1_PENDING

    with pytest.raises(InvalidTransition):
        await engine.route(request.id, chain["requester"].id)


async def test_routing_is_limited_to_requester_and_level_one_approvers(
    session, settings, chain, org
) -> None:
    engine = _engine(session, settings.model_copy(update={"approval_auto_route": False}))
    head, facility_sup, _ = chain["approvers"]
    stranger = await org.user("stranger")
    request = await _submitted(engine, chain)

    for actor in (stranger, facility_sup):
        with pytest.raises(AccessDenied) as excinfo:
            await engine.route(request.id, actor.id)
        assert excinfo.value.required_role == "department_head"
    assert (await engine.get_request(request.id)).status == ApprovalStatus.SUBMITTED

    routed = await engine.route(request.id, head.id)
    assert routed.request.status == ApprovalStatus.LEVEL_1_PENDING


async def test_decisions_wait_for_review_to_open(session, settings, chain) -> None:
    engine = _engine(session, settings.model_copy(update={"approval_auto_route": False}))
    head, _, _ = chain["approvers"]
    draft = await engine.create_request(
        requester_id=chain["requester"].id,
        scope_type=ScopeType.DEPARTMENT,
        scope_id=chain["tree"].department.id,
        start_date=JUNE_10,
        end_date=JUNE_15,
    )

    with pytest.raises(InvalidTransition) as excinfo:
        await engine.decide(draft.id, 1, Decision.APPROVE, head.id)
    assert excinfo.value.status == "draft"
    assert not isinstance(excinfo.value, (DuplicateDecision, RequestAlreadyTerminal))

    submitted = (await engine.submit(draft.id, chain["requester"].id)).request
    with pytest.raises(InvalidTransition) as excinfo:
        await engine.decide(submitted.id, 1, Decision.APPROVE, head.id)
    assert excinfo.value.status == "submitted"
    assert (await engine.get_request(submitted.id)).steps[0].decision == StepDecision.PENDING


async def test_cancel_only_before_review(session, settings, chain) -> None:
    engine = _engine(session, settings)
    draft = await engine.create_request(
        requester_id=chain["requester"].id,
        scope_type=ScopeType.DEPARTMENT,
        scope_id=chain["tree"].department.id,
        start_date=JUNE_10,
        end_date=JUNE_15,
    )
    head, _, _ = chain["approvers"]

    with pytest.raises(AccessDenied):
        await engine.cancel(draft.id, head.id)

    cancelled = await engine.cancel(draft.id, chain["requester"].id)
    assert cancelled.request.status == ApprovalStatus.CANCELLED

    pending = await _submitted(engine, chain)
    with pytest.raises(InvalidTransition):
        await engine.cancel(pending.id, chain["requester"].id)


async def test_lost_race_reports_the_winning_state(session, settings, chain) -> None:
    engine = _engine(session, settings)
    head, _, _ = chain["approvers"]
    request = await _submitted(engine, chain)

    # a concurrent writer rejects the request behind the engine's back
    await session.execute(
        update(ApprovalRequest)
        .where(ApprovalRequest.id == request.id)
        .values(status=ApprovalStatus.REJECTED)
        .execution_options(synchronize_session=False)
    )

    with pytest.raises(RequestAlreadyTerminal):
        await engine.decide(request.id, 1, Decision.APPROVE, head.id)

    refreshed = await engine.get_request(request.id)
    assert refreshed.status == ApprovalStatus.REJECTED
    assert refreshed.steps[0].decision == StepDecision.PENDING


async def test_create_request_validates_target(session, settings, chain) -> None:
    engine = _engine(session, settings)

    with pytest.raises(ApprovalValidationError):
        await engine.create_request(
            requester_id=chain["requester"].id,
            scope_type=ScopeType.TENANT,
            scope_id=chain["tree"].workspace.id,
            start_date=JUNE_10,
            end_date=JUNE_15,
        )
    with pytest.raises(ApprovalValidationError):
        await engine.create_request(
            requester_id=chain["requester"].id,
            scope_type=ScopeType.DEPARTMENT,
            scope_id=chain["tree"].facility.id,
            start_date=JUNE_10,
            end_date=JUNE_15,
        )
    with pytest.raises(ApprovalValidationError):
        await engine.create_request(
            requester_id=chain["requester"].id,
            scope_type=ScopeType.DEPARTMENT,
            scope_id=chain["tree"].department.id,
            start_date=JUNE_15,
            end_date=JUNE_15,
        )


async def test_unknown_request_is_not_found(session, settings, chain) -> None:
    engine = _engine(session, settings)

    with pytest.raises(ApprovalRequestNotFound):
        await engine.get_request(chain["tree"].department.id)


async def test_view_cache_is_dropped_on_transition(session, settings, chain) -> None:
    engine = _engine(session, settings)
    head, _, _ = chain["approvers"]
    request = await _submitted(engine, chain)

    view = await engine.get_view(request.id)
    assert request.id in engine.views
    assert view.status == ApprovalStatus.LEVEL_1_PENDING.value

    await engine.decide(request.id, 1, Decision.APPROVE, head.id)
    assert request.id not in engine.views
    assert (await engine.get_view(request.id)).status == ApprovalStatus.LEVEL_2_PENDING.value


async def test_facility_coverage_conflict_is_flagged_not_rejected(session, settings, org) -> None:
    workspace = await org.workspace(min_staff_coverage=3)
    facility = await org.facility(workspace, "F1")
    department = await org.department(facility)
    staff = await org.staff(department, count=5)
    supervisor = await org.user("facility")
    await org.assign(supervisor, AppRole.FACILITY_SUPERVISOR, facility_id=facility.id)
    for member in staff[:2]:
        await org.request(member, ScopeType.FACILITY, facility.id, start=JUNE_10, end=JUNE_15)
    engine = _engine(session, settings)

    request = await engine.create_request(
        requester_id=staff[2].id,
        scope_type=ScopeType.FACILITY,
        scope_id=facility.id,
        start_date=JUNE_10,
        end_date=JUNE_15,
    )
    result = await engine.submit(request.id, staff[2].id)

    assert result.request.status == ApprovalStatus.LEVEL_1_PENDING
    assert result.request.has_conflict is True
    details = result.request.conflict_details
    assert [detail["day"] for detail in details] == [
        "2024-06-10",
        "2024-06-11",
        "2024-06-12",
        "2024-06-13",
        "2024-06-14",
    ]
    assert {detail["remaining"] for detail in details} == {2}


async def test_coverage_within_minimum_has_no_conflict(session, settings, org) -> None:
    workspace = await org.workspace(min_staff_coverage=3)
    facility = await org.facility(workspace, "F1")
    department = await org.department(facility)
    staff = await org.staff(department, count=5)
    supervisor = await org.user("facility")
    await org.assign(supervisor, AppRole.FACILITY_SUPERVISOR, facility_id=facility.id)
    await org.request(staff[0], ScopeType.FACILITY, facility.id, start=JUNE_10, end=JUNE_15)
    # drafts and cancelled requests do not count against coverage
    await org.request(
        staff[1],
        ScopeType.FACILITY,
        facility.id,
        start=JUNE_10,
        end=JUNE_15,
        status=ApprovalStatus.CANCELLED,
    )
    engine = _engine(session, settings)

    request = await engine.create_request(
        requester_id=staff[2].id,
        scope_type=ScopeType.FACILITY,
        scope_id=facility.id,
        start_date=JUNE_10,
        end_date=JUNE_15,
    )
    result = await engine.submit(request.id, staff[2].id)

    assert result.request.has_conflict is False
    assert result.request.conflict_details is None


async def test_absences_booked_in_child_units_count_toward_coverage(
    session, settings, org
) -> None:
    workspace = await org.workspace(min_staff_coverage=3)
    facility = await org.facility(workspace, "F1")
    department = await org.department(facility)
    staff = await org.staff(department, count=5)
    supervisor = await org.user("facility")
    await org.assign(supervisor, AppRole.FACILITY_SUPERVISOR, facility_id=facility.id)
    booked = [
        await org.request(member, ScopeType.DEPARTMENT, department.id, start=JUNE_10, end=JUNE_15)
        for member in staff[:2]
    ]
    # a sibling facility's absences stay out of the count
    other_facility = await org.facility(workspace, "F2")
    other_department = await org.department(other_facility)
    outsider = (await org.staff(other_department))[0]
    await org.request(
        outsider, ScopeType.DEPARTMENT, other_department.id, start=JUNE_10, end=JUNE_15
    )
    engine = _engine(session, settings)

    request = await engine.create_request(
        requester_id=staff[2].id,
        scope_type=ScopeType.FACILITY,
        scope_id=facility.id,
        start_date=JUNE_10,
        end_date=JUNE_15,
    )
    report = await engine.evaluate_conflicts(request.id)

    assert report.has_conflict is True
    assert set(report.overlapping_request_ids) == {row.id for row in booked}
    assert {day.remaining for day in report.days} == {2}
