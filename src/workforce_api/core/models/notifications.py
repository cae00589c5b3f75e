"""In-app notification inbox rows."""

from __future__ import annotations

import enum
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, String, Text, false
from sqlalchemy.orm import Mapped, mapped_column

from workforce_api.db import Base, TimestampMixin, UUIDPrimaryKeyMixin, UUIDType
from workforce_api.db.enums import enum_column


class NotificationType(str, enum.Enum):
    TASK = "task"
    VACATION = "vacation"
    SYSTEM = "system"
    MESSAGE = "message"


class Notification(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "notifications"

    user_id: Mapped[UUID] = mapped_column(
        UUIDType(), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    type: Mapped[NotificationType] = mapped_column(
        enum_column(NotificationType, "notification_type"), nullable=False
    )
    related_id: Mapped[UUID | None] = mapped_column(UUIDType(), nullable=True)
    is_read: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=false()
    )

    __table_args__ = (Index("ix_notifications_user_unread", "user_id", "is_read"),)


__all__ = ["Notification", "NotificationType"]
