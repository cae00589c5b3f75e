"""HTTP coverage for scopes, module capabilities and the approval workflow."""

from __future__ import annotations

from uuid import uuid4

import pytest
from httpx import AsyncClient

from workforce_api.core.rbac.types import AppRole, ModuleKey


def _as(user) -> dict[str, str]:
    return {"X-User-Id": str(user.id)}


@pytest.fixture()
async def vacation_org(org, session):
    """Department with staff, a full approver chain and vacation planning granted to all roles."""
    tree = await org.tree()
    vacations = await org.module(ModuleKey.VACATION_PLANNING)
    for role in (
        AppRole.STAFF,
        AppRole.DEPARTMENT_HEAD,
        AppRole.FACILITY_SUPERVISOR,
        AppRole.WORKPLACE_SUPERVISOR,
    ):
        await org.grant_role(role, vacations, can_view=True, can_edit=True)
    requester = (await org.staff(tree.department))[0]
    await org.assign(requester, AppRole.STAFF, department_id=tree.department.id)
    head = await org.user("head")
    facility_sup = await org.user("facility")
    workplace_sup = await org.user("workplace")
    await org.assign(
        head,
        AppRole.DEPARTMENT_HEAD,
        department_id=tree.department.id,
        workspace_id=tree.workspace.id,
    )
    await org.assign(facility_sup, AppRole.FACILITY_SUPERVISOR, facility_id=tree.facility.id)
    await org.assign(workplace_sup, AppRole.WORKPLACE_SUPERVISOR, workspace_id=tree.workspace.id)
    outsider = await org.user("outsider")
    await session.commit()
    return {
        "tree": tree,
        "requester": requester,
        "approvers": (head, facility_sup, workplace_sup),
        "outsider": outsider,
    }


async def _create(client: AsyncClient, vacation_org) -> dict:
    response = await client.post(
        "/api/v1/approvals",
        headers=_as(vacation_org["requester"]),
        json={
            "scope_type": "department",
            "scope_id": str(vacation_org["tree"].department.id),
            "start_date": "2024-06-10",
            "end_date": "2024-06-15",
            "reason": "Family trip",
        },
    )
    assert response.status_code == 201, response.text
    return response.json()


async def test_health_endpoint_returns_ok(async_client: AsyncClient) -> None:
    response = await async_client.get("/api/v1/health")

    assert response.status_code == 200
    assert response.headers.get("X-Request-ID")
    assert response.json()["status"] == "ok"
    assert response.json()["database"] == "ok"


async def test_request_id_header_is_echoed(async_client: AsyncClient) -> None:
    response = await async_client.get("/api/v1/health", headers={"X-Request-ID": "abc-123"})

    assert response.headers["X-Request-ID"] == "abc-123"


async def test_caller_identity_is_required(async_client: AsyncClient) -> None:
    missing = await async_client.get("/api/v1/me/modules")
    malformed = await async_client.get("/api/v1/me/modules", headers={"X-User-Id": "nope"})

    assert missing.status_code == 401
    assert malformed.status_code == 401


async def test_my_modules_lists_granted_capabilities(
    async_client: AsyncClient, vacation_org
) -> None:
    response = await async_client.get("/api/v1/me/modules", headers=_as(vacation_org["requester"]))

    assert response.status_code == 200
    payload = response.json()
    assert payload["user_id"] == str(vacation_org["requester"].id)
    assert [module["module_key"] for module in payload["modules"]] == ["vacation_planning"]
    assert payload["modules"][0]["can_edit"] is True


async def test_my_scopes_use_authoritative_pointers(
    async_client: AsyncClient, vacation_org
) -> None:
    head = vacation_org["approvers"][0]

    response = await async_client.get("/api/v1/me/scopes", headers=_as(head))
    filtered = await async_client.get(
        "/api/v1/me/scopes",
        headers=_as(head),
        params={"role": "facility_supervisor"},
    )

    assert response.status_code == 200
    scopes = response.json()["scopes"]
    assert len(scopes) == 1
    assert scopes[0]["scope_type"] == "department"
    assert scopes[0]["scope_id"] == str(vacation_org["tree"].department.id)
    assert filtered.json()["scopes"] == []


async def test_staff_scopes_are_excluded_when_managed_only(
    async_client: AsyncClient, vacation_org
) -> None:
    response = await async_client.get(
        "/api/v1/me/scopes",
        headers=_as(vacation_org["requester"]),
        params={"managed_only": "true"},
    )

    assert response.status_code == 200
    assert response.json()["scopes"] == []


async def test_approvals_require_vacation_module(async_client: AsyncClient, vacation_org) -> None:
    response = await async_client.get(
        f"/api/v1/approvals/{uuid4()}", headers=_as(vacation_org["outsider"])
    )

    assert response.status_code == 403
    assert response.json()["detail"]["error"] == "access_denied"


async def test_full_approval_flow(async_client: AsyncClient, vacation_org) -> None:
    created = await _create(async_client, vacation_org)
    request_id = created["id"]
    assert created["status"] == "draft"

    submitted = await async_client.post(
        f"/api/v1/approvals/{request_id}/submit", headers=_as(vacation_org["requester"])
    )
    assert submitted.status_code == 200, submitted.text
    assert submitted.json()["request"]["status"] == "level_1_pending"
    assert [step["level"] for step in submitted.json()["request"]["steps"]] == [1, 2, 3]

    statuses = []
    for level, approver in enumerate(vacation_org["approvers"], start=1):
        decided = await async_client.post(
            f"/api/v1/approvals/{request_id}/decisions",
            headers=_as(approver),
            json={"level": level, "decision": "approve"},
        )
        assert decided.status_code == 200, decided.text
        assert decided.json()["notification_errors"] == []
        statuses.append(decided.json()["request"]["status"])

    assert statuses == ["level_2_pending", "level_3_pending", "fully_approved"]

    read = await async_client.get(
        f"/api/v1/approvals/{request_id}", headers=_as(vacation_org["requester"])
    )
    assert read.json()["status"] == "fully_approved"
    assert read.json()["completed_at"] is not None


async def test_duplicate_decision_is_a_conflict(async_client: AsyncClient, vacation_org) -> None:
    created = await _create(async_client, vacation_org)
    request_id = created["id"]
    head = vacation_org["approvers"][0]
    await async_client.post(
        f"/api/v1/approvals/{request_id}/submit", headers=_as(vacation_org["requester"])
    )
    body = {"level": 1, "decision": "approve"}

    first = await async_client.post(
        f"/api/v1/approvals/{request_id}/decisions", headers=_as(head), json=body
    )
    second = await async_client.post(
        f"/api/v1/approvals/{request_id}/decisions", headers=_as(head), json=body
    )

    assert first.status_code == 200
    assert second.status_code == 409
    assert second.json()["detail"]["error"] == "duplicate_decision"
    assert second.json()["detail"]["level"] == 1


async def test_decision_outside_scope_is_forbidden(
    async_client: AsyncClient, vacation_org
) -> None:
    created = await _create(async_client, vacation_org)
    await async_client.post(
        f"/api/v1/approvals/{created['id']}/submit", headers=_as(vacation_org["requester"])
    )

    response = await async_client.post(
        f"/api/v1/approvals/{created['id']}/decisions",
        headers=_as(vacation_org["approvers"][1]),
        json={"level": 1, "decision": "approve"},
    )

    assert response.status_code == 403
    assert response.json()["detail"]["required_role"] == "department_head"


async def test_rejection_then_cancel_reports_terminal_state(
    async_client: AsyncClient, vacation_org
) -> None:
    created = await _create(async_client, vacation_org)
    request_id = created["id"]
    await async_client.post(
        f"/api/v1/approvals/{request_id}/submit", headers=_as(vacation_org["requester"])
    )

    rejected = await async_client.post(
        f"/api/v1/approvals/{request_id}/decisions",
        headers=_as(vacation_org["approvers"][0]),
        json={"level": 1, "decision": "reject", "comments": "Short staffed"},
    )
    cancelled = await async_client.post(
        f"/api/v1/approvals/{request_id}/cancel", headers=_as(vacation_org["requester"])
    )

    assert rejected.json()["request"]["status"] == "rejected"
    assert cancelled.status_code == 409
    assert cancelled.json()["detail"]["error"] == "request_terminal"


async def test_conflict_report_endpoint(async_client: AsyncClient, vacation_org) -> None:
    created = await _create(async_client, vacation_org)

    response = await async_client.get(
        f"/api/v1/approvals/{created['id']}/conflicts", headers=_as(vacation_org["requester"])
    )

    assert response.status_code == 200
    assert response.json()["request_id"] == created["id"]
    assert response.json()["has_conflict"] in (True, False)


async def test_unknown_request_is_not_found(async_client: AsyncClient, vacation_org) -> None:
    response = await async_client.get(
        f"/api/v1/approvals/{uuid4()}", headers=_as(vacation_org["requester"])
    )

    assert response.status_code == 404
    assert response.json()["detail"]["error"] == "not_found"


async def test_invalid_interval_is_rejected_by_schema(
    async_client: AsyncClient, vacation_org
) -> None:
    response = await async_client.post(
        "/api/v1/approvals",
        headers=_as(vacation_org["requester"]),
        json={
            "scope_type": "department",
            "scope_id": str(vacation_org["tree"].department.id),
            "start_date": "2024-06-15",
            "end_date": "2024-06-10",
        },
    )

    assert response.status_code == 422
