"""``wfm`` command line: serve the API, migrate the database, inspect access."""

from __future__ import annotations

import asyncio
import json
from uuid import UUID

import typer
import uvicorn

from workforce_api.common.logging import setup_logging
from workforce_api.core.errors import AccessControlError
from workforce_api.db import DatabaseConfig, db, session_scope
from workforce_api.db.migrations import run_migrations
from workforce_api.features.modules.schemas import CapabilityMatrixOut
from workforce_api.features.modules.service import ModuleAccessResolver
from workforce_api.features.roles.scopes import scope_for_assignment
from workforce_api.features.roles.store import RoleAssignmentStore
from workforce_api.settings import get_settings

app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    help="Workforce access-control API (start/migrate/modules/scopes).",
)


def _parse_user_id(value: str) -> UUID:
    try:
        return UUID(value)
    except ValueError as exc:
        raise typer.BadParameter(f"{value!r} is not a UUID") from exc


@app.command(help="Run the API server with uvicorn.")
def start(
    host: str | None = typer.Option(None, help="Bind host (defaults to WFM_SERVER_HOST)."),
    port: int | None = typer.Option(None, help="Bind port (defaults to WFM_SERVER_PORT)."),
    reload: bool = typer.Option(False, help="Reload on code changes."),
) -> None:
    settings = get_settings()
    uvicorn.run(
        "workforce_api.main:create_app",
        factory=True,
        host=host or settings.server_host,
        port=port or settings.server_port,
        reload=reload,
        log_level=None if settings.logging_level == "NOTSET" else settings.logging_level.lower(),
    )


@app.command(help="Apply Alembic migrations.")
def migrate(
    revision: str = typer.Argument("head", help="Target revision."),
) -> None:
    settings = get_settings()
    setup_logging(settings)
    run_migrations(settings, revision=revision)
    typer.echo(f"Database upgraded to {revision}.")


async def _load_modules(user_id: UUID) -> CapabilityMatrixOut:
    settings = get_settings()
    db.init(DatabaseConfig.from_settings(settings))
    try:
        async with session_scope() as session:
            matrix = await ModuleAccessResolver(session=session).load_access(user_id)
            return CapabilityMatrixOut.from_matrix(matrix)
    finally:
        await db.dispose()


async def _load_scopes(user_id: UUID) -> list[dict[str, str | bool | None]]:
    settings = get_settings()
    db.init(DatabaseConfig.from_settings(settings))
    try:
        async with session_scope() as session:
            store = RoleAssignmentStore(session=session)
            return [
                {
                    "role": scope.role.value,
                    "scope_type": scope.scope_type.value if scope.scope_type else None,
                    "scope_id": str(scope.scope_id) if scope.scope_id else None,
                    "managerial": scope.managerial,
                }
                for scope in (scope_for_assignment(record) for record in await store.assignments(user_id))
            ]
    finally:
        await db.dispose()


@app.command(help="Print the resolved module capability matrix for a user.")
def modules(user_id: str = typer.Argument(..., help="User UUID.")) -> None:
    matrix = asyncio.run(_load_modules(_parse_user_id(user_id)))
    typer.echo(matrix.model_dump_json(indent=2))


@app.command(help="Print the scopes granted by a user's role assignments.")
def scopes(user_id: str = typer.Argument(..., help="User UUID.")) -> None:
    try:
        resolved = asyncio.run(_load_scopes(_parse_user_id(user_id)))
    except AccessControlError as exc:
        typer.echo(f"error: {exc.message}", err=True)
        raise typer.Exit(1) from exc
    typer.echo(json.dumps(resolved, indent=2))


if __name__ == "__main__":  # pragma: no cover
    app()
