"""Programmatic Alembic runner used by ``wfm migrate`` and migrate-on-startup."""

from __future__ import annotations

import asyncio
import logging

from alembic import command
from alembic.config import Config
from sqlalchemy.engine import make_url

from workforce_api.common.logging import log_context
from workforce_api.settings import Settings, get_settings

from .database import DatabaseConfig, build_sync_url, ensure_sqlite_parent_dir

__all__ = ["alembic_config", "run_migrations", "run_migrations_async"]

logger = logging.getLogger(__name__)


def alembic_config(settings: Settings) -> Config:
    alembic_ini = settings.alembic_ini_path
    if not alembic_ini.exists():
        raise FileNotFoundError(f"Alembic config not found at {alembic_ini}")

    sync_url = build_sync_url(DatabaseConfig.from_settings(settings))
    ensure_sqlite_parent_dir(make_url(sync_url))

    cfg = Config(str(alembic_ini))
    cfg.set_main_option("script_location", str(settings.alembic_migrations_dir))
    # Percent signs are interpolation markers in ConfigParser.
    cfg.set_main_option("sqlalchemy.url", sync_url.replace("%", "%%"))
    return cfg


def run_migrations(settings: Settings | None = None, *, revision: str = "head") -> None:
    resolved = settings or get_settings()
    logger.info("db.migrations.start", extra=log_context(revision=revision))
    command.upgrade(alembic_config(resolved), revision)
    logger.info("db.migrations.complete", extra=log_context(revision=revision))


async def run_migrations_async(
    settings: Settings | None = None,
    *,
    revision: str = "head",
) -> None:
    await asyncio.to_thread(run_migrations, settings, revision=revision)
