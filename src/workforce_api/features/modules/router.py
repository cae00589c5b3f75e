"""Capability matrix endpoints."""

from __future__ import annotations

from fastapi import APIRouter, status

from workforce_api.api.deps import AccessDep

from .schemas import CapabilityMatrixOut

router = APIRouter(prefix="/me", tags=["modules"])


@router.get(
    "/modules",
    response_model=CapabilityMatrixOut,
    status_code=status.HTTP_200_OK,
    summary="Resolved module capabilities for the caller",
)
async def read_my_modules(access: AccessDep) -> CapabilityMatrixOut:
    matrix = await access.modules.load_access(access.user_id)
    return CapabilityMatrixOut.from_matrix(matrix)
