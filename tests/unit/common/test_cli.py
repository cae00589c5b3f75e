from __future__ import annotations

from uuid import uuid4

import pytest
from typer.testing import CliRunner

from workforce_api import cli
from workforce_api.core.errors import ScopeResolutionError

runner = CliRunner()


def test_scopes_reports_unresolvable_assignment(monkeypatch: pytest.MonkeyPatch) -> None:
    user_id = uuid4()

    async def _broken(_user_id):
        raise ScopeResolutionError(
            "facility_supervisor assignment has no facility_id",
            user_id=_user_id,
            role="facility_supervisor",
        )

    monkeypatch.setattr(cli, "_load_scopes", _broken)

    result = runner.invoke(cli.app, ["scopes", str(user_id)])

    assert result.exit_code == 1
    assert "has no facility_id" in result.output
    assert not isinstance(result.exception, ScopeResolutionError)


def test_scopes_prints_resolved_json(monkeypatch: pytest.MonkeyPatch) -> None:
    async def _resolved(_user_id):
        return [{"role": "staff", "scope_type": "department", "scope_id": "d1", "managerial": False}]

    monkeypatch.setattr(cli, "_load_scopes", _resolved)

    result = runner.invoke(cli.app, ["scopes", str(uuid4())])

    assert result.exit_code == 0
    assert '"role": "staff"' in result.output


def test_scopes_rejects_malformed_user_id() -> None:
    result = runner.invoke(cli.app, ["scopes", "not-a-uuid"])

    assert result.exit_code == 2
