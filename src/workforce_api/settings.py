"""Workforce API settings (conventional Pydantic v2)."""

from __future__ import annotations

import json
from functools import lru_cache
from pathlib import Path
from typing import Annotated, Any, ClassVar, Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict
from sqlalchemy.engine import make_url

# ---- Defaults ---------------------------------------------------------------

MODULE_DIR = Path(__file__).resolve().parent
DEFAULT_API_ROOT = MODULE_DIR.parent.parent
DEFAULT_ALEMBIC_INI = DEFAULT_API_ROOT / "alembic.ini"
DEFAULT_ALEMBIC_MIGRATIONS = DEFAULT_API_ROOT / "migrations"
DEFAULT_STORAGE_ROOT = Path("./data")
DEFAULT_DB_FILENAME = "workforce.sqlite"
DEFAULT_SQLITE_PATH = DEFAULT_STORAGE_ROOT / "db" / DEFAULT_DB_FILENAME
DEFAULT_CORS_ORIGINS = ["http://localhost:5173"]
DEFAULT_MIN_COVERAGE = 1

LogLevel = Literal["CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG", "NOTSET"]


# ---- Helpers ----------------------------------------------------------------


def _list_from_env(value: Any, *, default: list[str]) -> list[str]:
    """JSON array or comma string; strip empties; dedupe preserving order."""
    if value in (None, "", []):
        items = list(default)
    elif isinstance(value, str):
        s = value.strip()
        if not s:
            items = list(default)
        elif s.startswith("["):
            try:
                parsed = json.loads(s)
            except json.JSONDecodeError as exc:
                raise ValueError("Expected a JSON array") from exc
            if not isinstance(parsed, list):
                raise ValueError("Expected a JSON array")
            items = [str(x).strip() for x in parsed if str(x).strip()]
        else:
            items = [part.strip() for part in s.split(",") if part.strip()]
    elif isinstance(value, (list, tuple, set)):
        items = [str(x).strip() for x in value if str(x).strip()]
    else:
        raise TypeError("Expected a list or comma separated string")
    return list(dict.fromkeys(items))


# ---- Settings ---------------------------------------------------------------


class Settings(BaseSettings):
    """Runtime configuration loaded from ``WFM_*`` environment variables."""

    model_config: ClassVar[SettingsConfigDict] = SettingsConfigDict(
        env_file=".env",
        env_prefix="WFM_",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="Workforce API", description="Human readable API name.")
    app_version: str = Field(default="0.1.0", description="API version string.")
    debug: bool = Field(default=False, description="Enable FastAPI debug mode.")
    api_docs_enabled: bool = Field(
        default=False,
        description="Expose interactive API documentation endpoints.",
    )
    docs_url: str = "/docs"
    redoc_url: str = "/redoc"
    openapi_url: str = "/openapi.json"
    logging_level: LogLevel = Field(
        default="INFO",
        description="Root log level for the backend process.",
    )

    # Server
    server_host: str = Field(default="localhost", description="uvicorn bind host.")
    server_port: int = Field(default=8000, ge=1, le=65535)
    # NoDecode keeps the raw env string so comma lists parse in the validator.
    server_cors_origins: Annotated[list[str], NoDecode] = Field(
        default_factory=lambda: list(DEFAULT_CORS_ORIGINS),
        description="Allowed CORS origins (comma list or JSON array).",
    )

    # Database
    database_url: str | None = Field(
        default=None,
        description="SQLAlchemy URL. Defaults to a SQLite file under ./data/db.",
    )
    database_echo: bool = False
    database_pool_timeout: int = Field(default=30, gt=0)
    database_sqlite_busy_timeout_ms: int = Field(default=30_000, ge=0)
    migrate_on_startup: bool = Field(
        default=False,
        description="Run Alembic migrations when the API process starts.",
    )
    alembic_ini_path: Path = DEFAULT_ALEMBIC_INI
    alembic_migrations_dir: Path = DEFAULT_ALEMBIC_MIGRATIONS

    # Approvals
    approval_auto_route: bool = Field(
        default=True,
        description="Open level 1 review as part of submission.",
    )
    approval_min_coverage: int = Field(
        default=DEFAULT_MIN_COVERAGE,
        ge=0,
        description="Staff that must remain present in a scope when no workspace rule is set.",
    )
    approval_notifications_enabled: bool = Field(
        default=True,
        description="Announce approval transitions through the notification dispatcher.",
    )

    @field_validator("server_cors_origins", mode="before")
    @classmethod
    def _v_cors(cls, value: Any) -> list[str]:
        return _list_from_env(value, default=DEFAULT_CORS_ORIGINS)

    @field_validator("logging_level", mode="before")
    @classmethod
    def _v_log_level(cls, value: Any) -> str:
        if value in (None, ""):
            return "INFO"
        return str(value).strip().upper()

    @model_validator(mode="after")
    def _finalize(self) -> Settings:
        if not self.database_url:
            self.database_url = f"sqlite+aiosqlite:///{DEFAULT_SQLITE_PATH.as_posix()}"

        url = make_url(self.database_url)
        backend = url.get_backend_name()
        if backend != "sqlite":
            raise ValueError("WFM_DATABASE_URL must point at a SQLite database")
        if not url.drivername.startswith("sqlite+aiosqlite"):
            url = url.set(drivername="sqlite+aiosqlite")
        self.database_url = url.render_as_string(hide_password=False)
        return self


@lru_cache(maxsize=1)
def _build_settings() -> Settings:
    return Settings()


def get_settings() -> Settings:
    return _build_settings()


def reload_settings() -> Settings:
    _build_settings.cache_clear()
    return _build_settings()


__all__ = [
    "DEFAULT_MIN_COVERAGE",
    "Settings",
    "get_settings",
    "reload_settings",
]
