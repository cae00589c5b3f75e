"""Module Access Resolver: the per-user capability matrix and its predicates.

The matrix is fetched once per user through ``get_user_modules`` and cached.
It is recomputed only on :meth:`ModuleAccessResolver.reload`, on an identity
change, or after :meth:`ModuleAccessResolver.invalidate` marks it stale.

Predicates are total and synchronous: unknown keys and an unloaded matrix
resolve to ``False``.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from workforce_api.common.logging import log_context
from workforce_api.core.rbac.types import ModuleKey

from .repository import ModulesRepository, UserModuleRow

logger = logging.getLogger(__name__)

# Flags that only make sense on a module the user can see.
_VIEW_IMPLIED_BY = ("can_edit", "can_delete", "can_admin")


@dataclass(frozen=True, slots=True)
class Capabilities:
    can_view: bool = False
    can_edit: bool = False
    can_delete: bool = False
    can_admin: bool = False


NO_CAPABILITIES = Capabilities()


@dataclass(frozen=True, slots=True)
class ModuleGrant:
    module_id: UUID
    module_key: ModuleKey
    module_name: str
    capabilities: Capabilities


@dataclass(frozen=True)
class CapabilityMatrix:
    """Closed mapping from module key to its four flags; fail-closed on lookup."""

    user_id: UUID
    grants: Mapping[ModuleKey, ModuleGrant] = field(default_factory=dict)
    inconsistencies: tuple[str, ...] = ()

    @classmethod
    def from_rows(cls, user_id: UUID, rows: Iterable[UserModuleRow]) -> CapabilityMatrix:
        grants: dict[ModuleKey, ModuleGrant] = {}
        for row in rows:
            key = ModuleKey(row["module_key"])
            grants[key] = ModuleGrant(
                module_id=row["module_id"],
                module_key=key,
                module_name=row["module_name"],
                capabilities=Capabilities(
                    can_view=bool(row["can_view"]),
                    can_edit=bool(row["can_edit"]),
                    can_delete=bool(row["can_delete"]),
                    can_admin=bool(row["can_admin"]),
                ),
            )
        return cls(
            user_id=user_id,
            grants=MappingProxyType(grants),
            inconsistencies=_find_inconsistencies(grants),
        )

    def capabilities(self, module_key: ModuleKey | str) -> Capabilities:
        key = ModuleKey.parse(module_key)
        if key is None:
            return NO_CAPABILITIES
        grant = self.grants.get(key)
        return grant.capabilities if grant is not None else NO_CAPABILITIES

    @property
    def is_consistent(self) -> bool:
        return not self.inconsistencies


def _find_inconsistencies(grants: Mapping[ModuleKey, ModuleGrant]) -> tuple[str, ...]:
    found: list[str] = []
    for key, grant in grants.items():
        if grant.capabilities.can_view:
            continue
        for flag in _VIEW_IMPLIED_BY:
            if getattr(grant.capabilities, flag):
                found.append(f"{key.value}:{flag}_without_can_view")
    return tuple(found)


class ModuleAccessResolver:
    """Holds the matrix for the session's actor and answers gating predicates."""

    def __init__(
        self,
        *,
        session: AsyncSession | None = None,
        repository: ModulesRepository | None = None,
    ) -> None:
        if repository is None:
            if session is None:
                raise ValueError("ModuleAccessResolver needs a session or a repository")
            repository = ModulesRepository(session)
        self._repo = repository
        self._user_id: UUID | None = None
        self._matrix: CapabilityMatrix | None = None
        self._stale = True

    @property
    def user_id(self) -> UUID | None:
        return self._user_id

    @property
    def matrix(self) -> CapabilityMatrix | None:
        """Last successfully loaded matrix, possibly stale."""
        return self._matrix

    @property
    def is_stale(self) -> bool:
        return self._stale

    async def load_access(self, user_id: UUID) -> CapabilityMatrix:
        if user_id != self._user_id:
            # identity change drops the previous actor's matrix
            self._user_id = user_id
            self._matrix = None
            self._stale = True
        if self._matrix is not None and not self._stale:
            return self._matrix
        return await self._fetch(user_id)

    async def reload(self) -> CapabilityMatrix:
        if self._user_id is None:
            raise RuntimeError("No user loaded; call load_access() first")
        return await self._fetch(self._user_id)

    async def _fetch(self, user_id: UUID) -> CapabilityMatrix:
        rows = await self._repo.get_user_modules(user_id)
        matrix = CapabilityMatrix.from_rows(user_id, rows)
        if matrix.inconsistencies:
            logger.warning(
                "modules.matrix.inconsistent",
                extra=log_context(user_id=user_id, issues=",".join(matrix.inconsistencies)),
            )
        # a newer identity may have been loaded while this fetch was in flight
        if user_id == self._user_id:
            self._matrix = matrix
            self._stale = False
        logger.debug(
            "modules.load.complete",
            extra=log_context(user_id=user_id, modules=len(matrix.grants)),
        )
        return matrix

    def invalidate(self, user_id: UUID | None = None) -> None:
        """Mark the matrix stale when it belongs to ``user_id`` (or unconditionally)."""
        if user_id is None or user_id == self._user_id:
            self._stale = True

    def clear(self) -> None:
        self._user_id = None
        self._matrix = None
        self._stale = True

    # -- predicates ---------------------------------------------------------

    def _capabilities(self, module_key: ModuleKey | str) -> Capabilities:
        if self._matrix is None:
            return NO_CAPABILITIES
        return self._matrix.capabilities(module_key)

    def has_access(self, module_key: ModuleKey | str) -> bool:
        return self._capabilities(module_key).can_view

    def can_edit(self, module_key: ModuleKey | str) -> bool:
        return self._capabilities(module_key).can_edit

    def can_delete(self, module_key: ModuleKey | str) -> bool:
        return self._capabilities(module_key).can_delete

    def can_admin(self, module_key: ModuleKey | str) -> bool:
        return self._capabilities(module_key).can_admin


__all__ = [
    "Capabilities",
    "CapabilityMatrix",
    "ModuleAccessResolver",
    "ModuleGrant",
    "NO_CAPABILITIES",
]
