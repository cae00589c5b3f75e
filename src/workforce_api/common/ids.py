"""Identifier helpers."""

from __future__ import annotations

import uuid
from collections.abc import Callable

__all__ = ["generate_id"]


def _resolve_factory() -> Callable[[], uuid.UUID]:
    # uuid.uuid7 exists from Python 3.14; ids then sort by creation time.
    maybe_uuid7 = getattr(uuid, "uuid7", None)
    if callable(maybe_uuid7):
        return maybe_uuid7
    return uuid.uuid4


_id_factory = _resolve_factory()


def generate_id() -> uuid.UUID:
    """Return a new primary key, time-sortable where the interpreter supports it."""
    return _id_factory()
