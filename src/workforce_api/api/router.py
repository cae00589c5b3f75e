"""API router composition for the workforce FastAPI application."""

from __future__ import annotations

from fastapi import APIRouter

from workforce_api.features.approvals.router import router as approvals_router
from workforce_api.features.health.router import router as health_router
from workforce_api.features.modules.router import router as modules_router
from workforce_api.features.roles.router import router as roles_router

api_router = APIRouter(prefix="/v1")
api_router.include_router(health_router, prefix="/health", tags=["health"])
api_router.include_router(roles_router)
api_router.include_router(modules_router)
api_router.include_router(approvals_router)

__all__ = ["api_router"]
