"""User identity records, created by the external auth collaborator."""

from __future__ import annotations

from sqlalchemy import Boolean, String
from sqlalchemy.orm import Mapped, mapped_column, validates

from workforce_api.db import Base, TimestampMixin, UUIDPrimaryKeyMixin


class User(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "users"

    email: Mapped[str] = mapped_column(String(320), nullable=False, unique=True)
    full_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    @validates("email")
    def _normalise_email(self, _key: str, value: str) -> str:
        cleaned = value.strip().lower()
        if not cleaned:
            raise ValueError("Email must not be empty")
        return cleaned


__all__ = ["User"]
