from __future__ import annotations

import pytest
from pydantic import ValidationError

from workforce_api.settings import Settings, get_settings, reload_settings


def test_defaults_point_at_local_sqlite(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("WFM_DATABASE_URL", raising=False)

    settings = Settings(_env_file=None)

    assert settings.database_url == "sqlite+aiosqlite:///data/db/workforce.sqlite"
    assert settings.approval_auto_route is True
    assert settings.approval_min_coverage == 1
    assert settings.alembic_ini_path.name == "alembic.ini"


def test_sync_sqlite_urls_are_upgraded_to_aiosqlite() -> None:
    settings = Settings(_env_file=None, database_url="sqlite:///./tmp/app.sqlite")

    assert settings.database_url.startswith("sqlite+aiosqlite:///")


def test_non_sqlite_urls_are_rejected() -> None:
    with pytest.raises(ValidationError):
        Settings(_env_file=None, database_url="postgresql://localhost/wfm")


def test_env_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("WFM_SERVER_CORS_ORIGINS", "http://a.test, http://b.test,http://a.test")
    monkeypatch.setenv("WFM_LOGGING_LEVEL", "debug")
    monkeypatch.setenv("WFM_APPROVAL_AUTO_ROUTE", "false")

    settings = Settings(_env_file=None)

    assert settings.server_cors_origins == ["http://a.test", "http://b.test"]
    assert settings.logging_level == "DEBUG"
    assert settings.approval_auto_route is False


def test_cors_accepts_json_arrays(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("WFM_SERVER_CORS_ORIGINS", '["http://c.test"]')

    assert Settings(_env_file=None).server_cors_origins == ["http://c.test"]


def test_reload_settings_rebuilds_cache(monkeypatch: pytest.MonkeyPatch) -> None:
    first = get_settings()
    monkeypatch.setenv("WFM_APP_NAME", "Roster")

    reloaded = reload_settings()

    assert reloaded is not first
    assert reloaded.app_name == "Roster"
    monkeypatch.delenv("WFM_APP_NAME")
    reload_settings()
