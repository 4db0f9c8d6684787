"""
models/review.py — Review and ReviewVote table definitions.

No business logic. No imports from services or routes.

FK policy: place_id ON DELETE RESTRICT — reviews are not cascaded away with
their place; place_service refuses to delete a reviewed place.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backend.app.extensions import db
from backend.app.models.base import JSONType, utcnow


class Review(db.Model):
    __tablename__ = "reviews"

    __table_args__ = (
        CheckConstraint("rating >= 1 AND rating <= 5", name="ck_reviews_rating_range"),
        CheckConstraint("LENGTH(TRIM(comment)) > 0", name="ck_reviews_comment_nonempty"),
        Index("idx_reviews_place_created", "place_id", "created_at"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    place_id: Mapped[int] = mapped_column(
        ForeignKey("places.id", ondelete="RESTRICT"),
        nullable=False,
    )
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    rating: Mapped[int] = mapped_column(Integer, nullable=False)
    title: Mapped[str | None] = mapped_column(String(150))
    comment: Mapped[str] = mapped_column(String(1000), nullable=False)

    photos: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)

    reported: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

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

    author: Mapped["User"] = relationship("User", lazy="joined")  # noqa: F821

    votes: Mapped[list["ReviewVote"]] = relationship(
        "ReviewVote",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="selectin",
    )

    @property
    def helpful(self) -> list[int]:
        return sorted(vote.user_id for vote in self.votes)

    def __repr__(self) -> str:  # pragma: no cover
        return f"<Review id={self.id} place_id={self.place_id} rating={self.rating}>"


class ReviewVote(db.Model):
    """One 'helpful' vote by one user on one review."""

    __tablename__ = "review_votes"

    review_id: Mapped[int] = mapped_column(
        ForeignKey("reviews.id", ondelete="CASCADE"),
        primary_key=True,
    )
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
    )
