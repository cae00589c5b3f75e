"""Database engine + session factory (SQLite via aiosqlite).

- One engine per process, created at app startup
- One session per request (FastAPI dependency)
- Commit on success, rollback on exception
- SQLite: WAL + busy_timeout + foreign keys, a single pooled connection
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from sqlalchemy import event
from sqlalchemy.engine import URL, make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from workforce_api.settings import Settings

__all__ = [
    "Database",
    "DatabaseConfig",
    "build_async_url",
    "build_sync_url",
    "db",
    "session_scope",
]


@dataclass(frozen=True, slots=True)
class DatabaseConfig:
    url: str
    echo: bool = False
    pool_timeout: int = 30
    sqlite_journal_mode: str = "WAL"
    sqlite_synchronous: str = "NORMAL"
    sqlite_busy_timeout_ms: int = 30_000

    @classmethod
    def from_settings(cls, settings: Settings) -> DatabaseConfig:
        return cls(
            url=settings.database_url or "sqlite+aiosqlite:///./data/db/workforce.sqlite",
            echo=bool(settings.database_echo),
            pool_timeout=int(settings.database_pool_timeout),
            sqlite_busy_timeout_ms=int(settings.database_sqlite_busy_timeout_ms),
        )


# ---- URL helpers ------------------------------------------------------------


def _require_sqlite(url: URL) -> None:
    if url.get_backend_name() != "sqlite":
        raise ValueError("Only SQLite databases are supported.")


def is_sqlite_memory(url: URL) -> bool:
    database = (url.database or "").strip()
    if not database or database == ":memory:":
        return True
    return database.startswith("file:") and (url.query or {}).get("mode") == "memory"


def ensure_sqlite_parent_dir(url: URL) -> None:
    database = (url.database or "").strip()
    if not database or database == ":memory:" or database.startswith("file:"):
        return
    path = Path(database)
    if not path.is_absolute():
        path = (Path.cwd() / path).resolve()
    path.parent.mkdir(parents=True, exist_ok=True)


def build_sync_url(cfg: DatabaseConfig) -> str:
    """Return the *sync* URL string (for Alembic)."""
    url = make_url(cfg.url)
    _require_sqlite(url)
    return url.set(drivername="sqlite").render_as_string(hide_password=False)


def build_async_url(cfg: DatabaseConfig) -> str:
    """Return the *async* URL string (for runtime)."""
    url = make_url(cfg.url)
    _require_sqlite(url)
    return url.set(drivername="sqlite+aiosqlite").render_as_string(hide_password=False)


def _build_engine_kwargs(url: URL, cfg: DatabaseConfig) -> dict[str, Any]:
    kwargs: dict[str, Any] = {
        "echo": cfg.echo,
        "pool_pre_ping": True,
        "connect_args": {
            "check_same_thread": False,
            "timeout": cfg.sqlite_busy_timeout_ms / 1000.0,
        },
    }
    if is_sqlite_memory(url):
        kwargs["poolclass"] = StaticPool
    else:
        kwargs.update(pool_size=1, max_overflow=0, pool_timeout=max(1, cfg.pool_timeout))
    return kwargs


def install_sqlite_pragmas(engine: AsyncEngine, cfg: DatabaseConfig) -> None:
    journal_mode = cfg.sqlite_journal_mode
    synchronous = cfg.sqlite_synchronous
    busy_ms = int(cfg.sqlite_busy_timeout_ms)

    @event.listens_for(engine.sync_engine, "connect")
    def _sqlite_on_connect(dbapi_conn, _):
        cur = dbapi_conn.cursor()
        try:
            cur.execute("PRAGMA foreign_keys=ON")
            cur.execute(f"PRAGMA busy_timeout={busy_ms}")
            cur.execute(f"PRAGMA journal_mode={journal_mode}")
            cur.execute(f"PRAGMA synchronous={synchronous}")
        finally:
            cur.close()


# ---- Database object --------------------------------------------------------


class Database:
    """Holds the process-wide engine + sessionmaker.

    Call ``init(cfg)`` once on startup and ``await dispose()`` on shutdown.
    """

    def __init__(self) -> None:
        self._cfg: DatabaseConfig | None = None
        self._engine: AsyncEngine | None = None
        self._sessionmaker: async_sessionmaker[AsyncSession] | None = None

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            raise RuntimeError("Database not initialized. Call db.init(...) at startup.")
        return self._engine

    @property
    def sessionmaker(self) -> async_sessionmaker[AsyncSession]:
        if self._sessionmaker is None:
            raise RuntimeError("Database not initialized. Call db.init(...) at startup.")
        return self._sessionmaker

    @property
    def config(self) -> DatabaseConfig:
        if self._cfg is None:
            raise RuntimeError("Database not initialized.")
        return self._cfg

    def init(self, cfg: DatabaseConfig) -> None:
        """Create engine + sessionmaker (idempotent for identical config)."""
        if self._cfg == cfg and self._engine is not None:
            return

        self._cfg = cfg
        async_url = build_async_url(cfg)
        url = make_url(async_url)
        ensure_sqlite_parent_dir(url)

        engine = create_async_engine(async_url, **_build_engine_kwargs(url, cfg))
        install_sqlite_pragmas(engine, cfg)

        self._engine = engine
        self._sessionmaker = async_sessionmaker(
            bind=engine,
            expire_on_commit=False,
            autoflush=False,
        )

    async def dispose(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()
        self._engine = None
        self._sessionmaker = None
        self._cfg = None


db = Database()


async def close_session(session: AsyncSession) -> None:
    await asyncio.shield(session.close())


@asynccontextmanager
async def session_scope() -> AsyncIterator[AsyncSession]:
    """Transactional session: commit on success, rollback on error."""
    session = db.sessionmaker()
    try:
        yield session
        await session.commit()
    except Exception:
        await session.rollback()
        raise
    finally:
        await close_session(session)

