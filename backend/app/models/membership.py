"""
models/membership.py — Group membership junction table definition.

No business logic. No imports from services or routes.
"""

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backend.app.extensions import db
from backend.app.models.base import enum_column_type, utcnow


class MemberRole(str, enum.Enum):
    ADMIN  = "admin"
    MEMBER = "member"


class Membership(db.Model):
    __tablename__ = "group_members"

    __table_args__ = (
        # A user can only belong to a group once.
        UniqueConstraint("user_id", "group_id", name="uq_group_members_user_group"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    group_id: Mapped[int] = mapped_column(
        ForeignKey("groups.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    role: Mapped[MemberRole] = mapped_column(
        enum_column_type(MemberRole, "member_role_enum"),
        nullable=False,
        default=MemberRole.MEMBER,
    )

    joined_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )

    # ── Relationships ──────────────────────────────────────────────────────

    user: Mapped["User"] = relationship(  # noqa: F821
        "User",
        lazy="joined",
    )

    group: Mapped["Group"] = relationship(  # noqa: F821
        "Group",
        back_populates="memberships",
    )

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<Membership id={self.id} "
            f"user_id={self.user_id} "
            f"group_id={self.group_id} "
            f"role={self.role.value}>"
        )
