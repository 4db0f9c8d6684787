"""
models/notification.py — Notification table definition.

No business logic. No imports from services or routes.
"""

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from backend.app.extensions import db
from backend.app.models.base import JSONType, enum_column_type, utcnow


class NotificationType(str, enum.Enum):
    FRIEND_REQUEST = "friend_request"
    MESSAGE        = "message"
    TRIP_INVITE    = "trip_invite"
    ACHIEVEMENT    = "achievement"
    SYSTEM         = "system"


class Notification(db.Model):
    __tablename__ = "notifications"

    __table_args__ = (
        Index("idx_notifications_user_read_created", "user_id", "read", "created_at"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )

    type: Mapped[NotificationType] = mapped_column(
        enum_column_type(NotificationType, "notification_type_enum"),
        nullable=False,
    )

    title: Mapped[str] = mapped_column(String(150), nullable=False)
    message: Mapped[str] = mapped_column(String(500), nullable=False)
    data: Mapped[dict | None] = mapped_column(JSONType)

    read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    read_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    action_url: Mapped[str | None] = mapped_column(String(500))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )

    def __repr__(self) -> str:  # pragma: no cover
        return f"<Notification id={self.id} user_id={self.user_id} type={self.type.value}>"
