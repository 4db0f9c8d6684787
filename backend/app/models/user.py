"""
models/user.py — User table definition.

No business logic. No imports from services or routes.

The friends list is the `friendships` table (models/friendship.py); both
directions of a friendship are stored as separate rows.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, CheckConstraint, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backend.app.extensions import db
from backend.app.models.base import JSONType, utcnow


DEFAULT_PREFERENCES: dict = {
    "language": "en",
    "units": "metric",
    "theme": "auto",
    "voice_enabled": True,
    "notifications": {"push": True, "email": True, "sms": False},
}


def default_preferences() -> dict:
    return {
        **DEFAULT_PREFERENCES,
        "notifications": dict(DEFAULT_PREFERENCES["notifications"]),
    }


class User(db.Model):
    __tablename__ = "users"

    __table_args__ = (
        CheckConstraint(
            "LENGTH(TRIM(name)) > 0",
            name="ck_users_name_nonempty",
        ),
        CheckConstraint(
            "email LIKE '%@%'",
            name="ck_users_email_format",
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    # Stored lower-cased; uniqueness is case-insensitive in practice.
    email: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        unique=True,
    )

    password_hash: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    phone: Mapped[str | None] = mapped_column(String(30))
    avatar: Mapped[str | None] = mapped_column(String(500))

    email_verified: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default="false",
    )

    preferences: Mapped[dict] = mapped_column(
        JSONType,
        nullable=False,
        default=default_preferences,
    )

    # Gamification points. Trip totals are aggregated from trips, not stored.
    points: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        server_default="0",
    )

    last_login: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
        server_default="true",
    )

    # SHA-256 of the outstanding password-reset token, never the raw value.
    reset_password_token_hash: Mapped[str | None] = mapped_column(
        String(64),
        unique=True,
    )
    reset_password_expires_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
    )

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

    # ── Relationships ──────────────────────────────────────────────────────
    # Read-only navigation; no logic here.

    refresh_tokens: Mapped[list["RefreshToken"]] = relationship(  # noqa: F821
        "RefreshToken",
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self) -> str:  # pragma: no cover
        return f"<User id={self.id} email={self.email!r}>"
