"""Feed committed row changes from a SQLAlchemy session into a :class:`ChangeFeed`.

Changes are collected on flush (and on ORM bulk ``UPDATE``/``DELETE``
statements) and published only after the transaction commits; a rollback
discards them.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any
from uuid import UUID

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import ORMExecuteState, Session

from .events import ENTITY_BY_TABLE, ChangeEvent, ChangeKind
from .feed import ChangeFeed

_PENDING_KEY = "realtime.pending_changes"

# Execution option naming the row touched by a bulk UPDATE/DELETE.
RECORD_ID_OPTION = "change_record_id"

# Columns that identify the affected record / user when ``id`` / ``user_id`` don't.
_RECORD_ID_ATTR: dict[str, str] = {
    "approval_steps": "request_id",
    "workspace_module_access": "module_id",
}
_USER_ID_ATTR: dict[str, str] = {"approval_requests": "requester_id"}


def _event_for(obj: Any, kind: ChangeKind) -> ChangeEvent | None:
    table = getattr(getattr(obj, "__table__", None), "name", None)
    if table not in ENTITY_BY_TABLE:
        return None
    record_id = getattr(obj, _RECORD_ID_ATTR.get(table, "id"), None)
    user_id = getattr(obj, _USER_ID_ATTR.get(table, "user_id"), None)
    return ChangeEvent(
        table=table,
        change_kind=kind,
        record_id=record_id if isinstance(record_id, UUID) else None,
        user_id=user_id if isinstance(user_id, UUID) else None,
    )


def _pending(session: Session) -> list[ChangeEvent]:
    return session.info.setdefault(_PENDING_KEY, [])


def install_change_capture(session: AsyncSession, feed: ChangeFeed) -> Callable[[], None]:
    """Publish this session's committed changes to ``feed``; returns an uninstall hook."""
    sync_session = session.sync_session

    def _after_flush(flushed: Session, _flush_context: Any) -> None:
        pending = _pending(flushed)
        for objects, kind in (
            (flushed.new, ChangeKind.INSERT),
            (flushed.dirty, ChangeKind.UPDATE),
            (flushed.deleted, ChangeKind.DELETE),
        ):
            for obj in objects:
                if kind is ChangeKind.UPDATE and not flushed.is_modified(obj):
                    continue
                change = _event_for(obj, kind)
                if change is not None:
                    pending.append(change)

    def _on_execute(state: ORMExecuteState) -> None:
        if not (state.is_update or state.is_delete) or state.bind_mapper is None:
            return
        table = state.bind_mapper.local_table.name
        if table not in ENTITY_BY_TABLE:
            return
        record_id = state.execution_options.get(RECORD_ID_OPTION)
        _pending(state.session).append(
            ChangeEvent(
                table=table,
                change_kind=ChangeKind.UPDATE if state.is_update else ChangeKind.DELETE,
                record_id=record_id if isinstance(record_id, UUID) else None,
            )
        )

    def _after_commit(committed: Session) -> None:
        changes = committed.info.pop(_PENDING_KEY, [])
        for change in dict.fromkeys(changes):
            feed.publish(change)

    def _after_rollback(rolled_back: Session) -> None:
        rolled_back.info.pop(_PENDING_KEY, None)

    listeners: tuple[tuple[str, Callable[..., None]], ...] = (
        ("after_flush", _after_flush),
        ("do_orm_execute", _on_execute),
        ("after_commit", _after_commit),
        ("after_rollback", _after_rollback),
    )
    for name, listener in listeners:
        event.listen(sync_session, name, listener)

    def uninstall() -> None:
        for name, listener in listeners:
            if event.contains(sync_session, name, listener):
                event.remove(sync_session, name, listener)

    return uninstall


__all__ = ["RECORD_ID_OPTION", "install_change_capture"]
