"""
models/friendship.py — Friendship and FriendRequest table definitions.

No business logic. No imports from services or routes.

A friendship between A and B is two rows: (A, B) and (B, A). social_service
writes and deletes both rows inside one transaction so the pair can never be
observed half-written.
"""

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backend.app.extensions import db
from backend.app.models.base import enum_column_type, utcnow


class FriendRequestStatus(str, enum.Enum):
    PENDING  = "pending"
    ACCEPTED = "accepted"


class Friendship(db.Model):
    __tablename__ = "friendships"

    __table_args__ = (
        CheckConstraint("user_id <> friend_id", name="ck_friendships_not_self"),
    )

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
    )
    friend_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
        index=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )

    friend: Mapped["User"] = relationship(  # noqa: F821
        "User",
        foreign_keys=[friend_id],
    )

    def __repr__(self) -> str:  # pragma: no cover
        return f"<Friendship {self.user_id} -> {self.friend_id}>"


class FriendRequest(db.Model):
    __tablename__ = "friend_requests"

    __table_args__ = (
        CheckConstraint("from_user_id <> to_user_id", name="ck_friend_requests_not_self"),
        Index("idx_friend_requests_to_status", "to_user_id", "status"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    from_user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    to_user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )

    status: Mapped[FriendRequestStatus] = mapped_column(
        enum_column_type(FriendRequestStatus, "friend_request_status_enum"),
        nullable=False,
        default=FriendRequestStatus.PENDING,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )
    responded_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    sender: Mapped["User"] = relationship(  # noqa: F821
        "User",
        foreign_keys=[from_user_id],
    )
    recipient: Mapped["User"] = relationship(  # noqa: F821
        "User",
        foreign_keys=[to_user_id],
    )

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<FriendRequest id={self.id} "
            f"{self.from_user_id} -> {self.to_user_id} "
            f"status={self.status.value}>"
        )
