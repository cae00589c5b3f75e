"""API routes for the health module."""

from __future__ import annotations

from typing import Literal

from fastapi import APIRouter, status
from sqlalchemy import text

from workforce_api.api.deps import SessionDep, SettingsDep
from workforce_api.common.schema import BaseSchema

router = APIRouter()


class HealthCheckResponse(BaseSchema):
    status: Literal["ok"]
    version: str
    database: Literal["ok"]


@router.get(
    "",
    response_model=HealthCheckResponse,
    status_code=status.HTTP_200_OK,
    summary="Service health status",
)
async def read_health(session: SessionDep, settings: SettingsDep) -> HealthCheckResponse:
    """Return the current health information, touching the database once."""
    await session.execute(text("SELECT 1"))
    return HealthCheckResponse(status="ok", version=settings.app_version, database="ok")
