from __future__ import annotations

from uuid import uuid4

import pytest

from workforce_api.core.rbac.types import AppRole, ModuleKey
from workforce_api.features.modules.repository import ModulesRepository
from workforce_api.features.modules.schemas import CapabilityMatrixOut
from workforce_api.features.modules.service import CapabilityMatrix, ModuleAccessResolver


async def test_unknown_module_is_denied(session, org) -> None:
    user = await org.user()
    resolver = ModuleAccessResolver(session=session)

    await resolver.load_access(user.id)

    assert resolver.has_access("payroll") is False
    assert resolver.can_admin("payroll") is False
    assert resolver.has_access(ModuleKey.REPORTS) is False


def test_predicates_are_false_before_load() -> None:
    resolver = ModuleAccessResolver(repository=ModulesRepository(session=None))  # type: ignore[arg-type]

    assert resolver.matrix is None
    assert resolver.has_access(ModuleKey.TASK_MANAGEMENT) is False
    assert resolver.can_edit(ModuleKey.TASK_MANAGEMENT) is False


async def test_role_grants_are_unioned_across_assignments(session, org) -> None:
    tree = await org.tree()
    tasks = await org.module(ModuleKey.TASK_MANAGEMENT)
    await org.grant_role(AppRole.STAFF, tasks, can_view=True)
    await org.grant_role(AppRole.DEPARTMENT_HEAD, tasks, can_view=True, can_edit=True)
    user = await org.user()
    await org.assign(user, AppRole.STAFF, department_id=tree.department.id)
    await org.assign(
        user,
        AppRole.DEPARTMENT_HEAD,
        department_id=tree.department.id,
        workspace_id=tree.workspace.id,
    )
    resolver = ModuleAccessResolver(session=session)

    await resolver.load_access(user.id)

    assert resolver.has_access(ModuleKey.TASK_MANAGEMENT)
    assert resolver.can_edit(ModuleKey.TASK_MANAGEMENT)
    assert not resolver.can_delete(ModuleKey.TASK_MANAGEMENT)
    assert not resolver.can_admin(ModuleKey.TASK_MANAGEMENT)


async def test_override_replaces_role_grants(session, org) -> None:
    tree = await org.tree()
    reports = await org.module(ModuleKey.REPORTS)
    await org.grant_role(
        AppRole.WORKPLACE_SUPERVISOR, reports, can_view=True, can_edit=True, can_admin=True
    )
    user = await org.user()
    await org.assign(user, AppRole.WORKPLACE_SUPERVISOR, workspace_id=tree.workspace.id)
    await org.grant_user(user, reports, can_view=True)
    resolver = ModuleAccessResolver(session=session)

    matrix = await resolver.load_access(user.id)

    assert matrix.capabilities(ModuleKey.REPORTS).can_view is True
    assert matrix.capabilities(ModuleKey.REPORTS).can_edit is False
    assert matrix.capabilities(ModuleKey.REPORTS).can_admin is False


async def test_non_override_user_rows_do_not_grant(session, org) -> None:
    reports = await org.module(ModuleKey.REPORTS)
    user = await org.user()
    await org.grant_user(user, reports, is_override=False, can_view=True)
    resolver = ModuleAccessResolver(session=session)

    matrix = await resolver.load_access(user.id)

    assert ModuleKey.REPORTS not in matrix.grants


async def test_workspace_toggle_disables_role_grants(session, org) -> None:
    tree = await org.tree()
    scheduling = await org.module(ModuleKey.SCHEDULING)
    await org.grant_role(AppRole.WORKPLACE_SUPERVISOR, scheduling, can_view=True)
    await org.toggle_module(tree.workspace, scheduling, enabled=False)
    user = await org.user()
    await org.assign(user, AppRole.WORKPLACE_SUPERVISOR, workspace_id=tree.workspace.id)
    resolver = ModuleAccessResolver(session=session)

    await resolver.load_access(user.id)

    assert resolver.has_access(ModuleKey.SCHEDULING) is False


async def test_inactive_modules_are_omitted(session, org) -> None:
    training = await org.module(ModuleKey.TRAINING, is_active=False)
    user = await org.user()
    await org.grant_user(user, training, can_view=True)
    resolver = ModuleAccessResolver(session=session)

    matrix = await resolver.load_access(user.id)

    assert matrix.grants == {}


async def test_rows_are_ordered_by_module_name(session, org) -> None:
    user = await org.user()
    for key, name in (
        (ModuleKey.TRAINING, "Training"),
        (ModuleKey.MESSAGING, "Messaging"),
        (ModuleKey.REPORTS, "Analytics"),
    ):
        module = await org.module(key, name=name)
        await org.grant_user(user, module, can_view=True)

    rows = await ModulesRepository(session).get_user_modules(user.id)

    assert [row["module_name"] for row in rows] == ["Analytics", "Messaging", "Training"]


async def test_inconsistent_flags_are_reported(session, org, caplog) -> None:
    messaging = await org.module(ModuleKey.MESSAGING)
    user = await org.user()
    await org.grant_user(user, messaging, can_admin=True)
    resolver = ModuleAccessResolver(session=session)

    with caplog.at_level("WARNING", logger="workforce_api.features.modules.service"):
        matrix = await resolver.load_access(user.id)

    assert matrix.inconsistencies == ("messaging:can_admin_without_can_view",)
    assert not matrix.is_consistent
    assert resolver.has_access(ModuleKey.MESSAGING) is False
    assert resolver.can_admin(ModuleKey.MESSAGING) is True
    assert any(record.getMessage() == "modules.matrix.inconsistent" for record in caplog.records)


class _CountingRepository:
    def __init__(self, rows: list[dict]) -> None:
        self.rows = rows
        self.calls = 0

    async def get_user_modules(self, user_id):
        self.calls += 1
        return list(self.rows)


async def test_load_is_cached_until_invalidated() -> None:
    repo = _CountingRepository([])
    resolver = ModuleAccessResolver(repository=repo)  # type: ignore[arg-type]
    user_id = uuid4()

    first = await resolver.load_access(user_id)
    second = await resolver.load_access(user_id)
    assert first is second
    assert repo.calls == 1

    resolver.invalidate(uuid4())
    await resolver.load_access(user_id)
    assert repo.calls == 1

    resolver.invalidate(user_id)
    assert resolver.is_stale
    await resolver.load_access(user_id)
    assert repo.calls == 2


async def test_identity_change_drops_previous_matrix() -> None:
    module_id = uuid4()
    repo = _CountingRepository(
        [
            {
                "module_id": module_id,
                "module_key": ModuleKey.TASK_MANAGEMENT,
                "module_name": "Task Management",
                "can_view": True,
                "can_edit": False,
                "can_delete": False,
                "can_admin": False,
            }
        ]
    )
    resolver = ModuleAccessResolver(repository=repo)  # type: ignore[arg-type]
    first_user, second_user = uuid4(), uuid4()

    await resolver.load_access(first_user)
    repo.rows = []
    await resolver.load_access(second_user)

    assert resolver.user_id == second_user
    assert resolver.has_access(ModuleKey.TASK_MANAGEMENT) is False
    assert repo.calls == 2


async def test_reload_requires_a_loaded_user() -> None:
    resolver = ModuleAccessResolver(repository=_CountingRepository([]))  # type: ignore[arg-type]

    with pytest.raises(RuntimeError):
        await resolver.reload()


def test_matrix_serializes_in_grant_order() -> None:
    user_id = uuid4()
    rows = [
        {
            "module_id": uuid4(),
            "module_key": key,
            "module_name": name,
            "can_view": True,
            "can_edit": edit,
            "can_delete": False,
            "can_admin": False,
        }
        for key, name, edit in (
            (ModuleKey.MESSAGING, "Messaging", False),
            (ModuleKey.VACATION_PLANNING, "Vacation Planning", True),
        )
    ]

    out = CapabilityMatrixOut.from_matrix(CapabilityMatrix.from_rows(user_id, rows))

    assert [module.module_key for module in out.modules] == ["messaging", "vacation_planning"]
    assert out.modules[1].can_edit is True
    assert out.inconsistencies == []
