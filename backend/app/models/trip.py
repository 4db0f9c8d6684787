"""
models/trip.py — Trip and TripShare table definitions.

No business logic. No imports from services or routes.

duration / distance / average_speed are derived by trip_service from
start_time, end_time and path; they are stored for listing, not authoritative.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Float, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backend.app.extensions import db
from backend.app.models.base import JSONType, utcnow


class Trip(db.Model):
    __tablename__ = "trips"

    __table_args__ = (
        # List endpoint: owner's trips by start_time desc.
        Index("idx_trips_user_start", "user_id", "start_time"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )

    # Deleting a route leaves its trips in place.
    route_id: Mapped[int | None] = mapped_column(
        ForeignKey("routes.id", ondelete="SET NULL"),
        index=True,
    )

    name: Mapped[str | None] = mapped_column(String(150))

    start_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    duration: Mapped[float | None] = mapped_column(Float)          # seconds
    distance: Mapped[float | None] = mapped_column(Float)          # metres
    average_speed: Mapped[float | None] = mapped_column(Float)     # km/h
    max_speed: Mapped[float | None] = mapped_column(Float)         # km/h
    fuel_used: Mapped[float | None] = mapped_column(Float)         # litres
    carbon_footprint: Mapped[float | None] = mapped_column(Float)  # kg CO2

    path: Mapped[list | None] = mapped_column(JSONType)
    stats: Mapped[dict | None] = mapped_column(JSONType)
    incidents: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    photos: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)

    is_completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

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

    shares: Mapped[list["TripShare"]] = relationship(
        "TripShare",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="selectin",
    )

    @property
    def shared_with(self) -> list[int]:
        return sorted(share.user_id for share in self.shares)

    def __repr__(self) -> str:  # pragma: no cover
        return f"<Trip id={self.id} user_id={self.user_id} start={self.start_time}>"


class TripShare(db.Model):
    """A user the trip owner granted read access to."""

    __tablename__ = "trip_shares"

    trip_id: Mapped[int] = mapped_column(
        ForeignKey("trips.id", ondelete="CASCADE"),
        primary_key=True,
    )
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
        index=True,
    )
