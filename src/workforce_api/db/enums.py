"""Helpers for configuring SQLAlchemy Enum columns."""

from __future__ import annotations

from enum import Enum

from sqlalchemy import Enum as SAEnum


def enum_values(enum_cls: type[Enum]) -> list[str]:
    """Return the member values of ``enum_cls`` for ``values_callable``."""
    return [member.value for member in enum_cls]


def enum_column(enum_cls: type[Enum], name: str) -> SAEnum:
    """String-backed enum column storing member values, not names."""
    return SAEnum(
        enum_cls,
        name=name,
        native_enum=False,
        length=40,
        values_callable=enum_values,
        validate_strings=True,
    )


__all__ = ["enum_column", "enum_values"]
