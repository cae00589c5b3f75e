"""Schemas for the capability matrix."""

from __future__ import annotations

from uuid import UUID

from workforce_api.common.schema import BaseSchema
from workforce_api.core.rbac.types import ModuleKey

from .service import CapabilityMatrix


class ModuleAccessOut(BaseSchema):
    module_id: UUID
    module_key: ModuleKey
    module_name: str
    can_view: bool
    can_edit: bool
    can_delete: bool
    can_admin: bool


class CapabilityMatrixOut(BaseSchema):
    """The caller's resolved module grants, ordered by module name."""

    user_id: UUID
    modules: list[ModuleAccessOut]
    inconsistencies: list[str]

    @classmethod
    def from_matrix(cls, matrix: CapabilityMatrix) -> CapabilityMatrixOut:
        return cls(
            user_id=matrix.user_id,
            modules=[
                ModuleAccessOut(
                    module_id=grant.module_id,
                    module_key=grant.module_key,
                    module_name=grant.module_name,
                    can_view=grant.capabilities.can_view,
                    can_edit=grant.capabilities.can_edit,
                    can_delete=grant.capabilities.can_delete,
                    can_admin=grant.capabilities.can_admin,
                )
                for grant in matrix.grants.values()
            ],
            inconsistencies=list(matrix.inconsistencies),
        )


__all__ = ["CapabilityMatrixOut", "ModuleAccessOut"]
