"""
models/message.py — Message table definition.

No business logic. No imports from services or routes.

A message goes either to one user (recipient_id) or to one group (group_id),
never both and never neither.
"""

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Float,
    ForeignKey,
    Index,
    String,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backend.app.extensions import db
from backend.app.models.base import JSONType, enum_column_type, utcnow


class MessageType(str, enum.Enum):
    TEXT     = "text"
    LOCATION = "location"
    IMAGE    = "image"
    ROUTE    = "route"


class Message(db.Model):
    __tablename__ = "messages"

    __table_args__ = (
        CheckConstraint(
            "(recipient_id IS NULL) <> (group_id IS NULL)",
            name="ck_messages_recipient_xor_group",
        ),
        CheckConstraint("LENGTH(TRIM(content)) > 0", name="ck_messages_content_nonempty"),
        Index("idx_messages_sender_recipient", "sender_id", "recipient_id", "created_at"),
        Index("idx_messages_group_created", "group_id", "created_at"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    sender_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    recipient_id: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        index=True,
    )
    group_id: Mapped[int | None] = mapped_column(
        ForeignKey("groups.id", ondelete="CASCADE"),
    )

    content: Mapped[str] = mapped_column(String(2000), nullable=False)

    type: Mapped[MessageType] = mapped_column(
        enum_column_type(MessageType, "message_type_enum"),
        nullable=False,
        default=MessageType.TEXT,
    )

    location_lng: Mapped[float | None] = mapped_column(Float)
    location_lat: Mapped[float | None] = mapped_column(Float)

    # [{"url", "type", "filename"}]
    attachments: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)

    # Set for type='route' messages produced by sharing a route.
    route_id: Mapped[int | None] = mapped_column(
        ForeignKey("routes.id", ondelete="SET NULL"),
    )

    read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    read_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
    )

    sender: Mapped["User"] = relationship(  # noqa: F821
        "User",
        foreign_keys=[sender_id],
        lazy="joined",
    )

    def __repr__(self) -> str:  # pragma: no cover
        target = f"recipient={self.recipient_id}" if self.recipient_id else f"group={self.group_id}"
        return f"<Message id={self.id} sender={self.sender_id} {target}>"
