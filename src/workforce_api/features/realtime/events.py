"""Typed change events and the table → entity-kind mapping."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from uuid import UUID


class ChangeKind(str, enum.Enum):
    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"


class EntityKind(str, enum.Enum):
    """Record families whose changes invalidate derived views."""

    ROLE_ASSIGNMENTS = "role_assignments"
    MODULE_GRANTS = "module_grants"
    APPROVAL_REQUESTS = "approval_requests"


TABLES_BY_ENTITY: dict[EntityKind, tuple[str, ...]] = {
    EntityKind.ROLE_ASSIGNMENTS: ("user_roles",),
    EntityKind.MODULE_GRANTS: (
        "modules",
        "role_module_access",
        "workspace_module_access",
        "user_module_access",
    ),
    EntityKind.APPROVAL_REQUESTS: ("approval_requests", "approval_steps"),
}

ENTITY_BY_TABLE: dict[str, EntityKind] = {
    table: kind for kind, tables in TABLES_BY_ENTITY.items() for table in tables
}


@dataclass(frozen=True, slots=True)
class ChangeEvent:
    """One committed row change.

    ``record_id`` and ``user_id`` are hints; listeners must treat an event
    without them as "anything in this table may have changed".
    """

    table: str
    change_kind: ChangeKind
    record_id: UUID | None = None
    user_id: UUID | None = None

    @property
    def entity_kind(self) -> EntityKind | None:
        return ENTITY_BY_TABLE.get(self.table)


__all__ = [
    "ENTITY_BY_TABLE",
    "TABLES_BY_ENTITY",
    "ChangeEvent",
    "ChangeKind",
    "EntityKind",
]
