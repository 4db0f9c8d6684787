"""
models/place.py — Place and SavedPlace table definitions.

No business logic. No imports from services or routes.

Location is a (lng, lat) column pair with a composite index; place_service
narrows nearby queries with a bounding box on that index, then applies the
exact geodesic radius.

rating_average / rating_count are recomputed by place_service on every review
write, inside the same transaction as the write.
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
    Integer,
    String,
)
from sqlalchemy.orm import Mapped, mapped_column

from backend.app.extensions import db
from backend.app.models.base import JSONType, enum_column_type, utcnow


class PlaceCategory(str, enum.Enum):
    RESTAURANT  = "restaurant"
    GAS_STATION = "gas-station"
    PARKING     = "parking"
    HOTEL       = "hotel"
    ATTRACTION  = "attraction"
    SHOPPING    = "shopping"
    HOSPITAL    = "hospital"
    OTHER       = "other"


class Place(db.Model):
    __tablename__ = "places"

    __table_args__ = (
        CheckConstraint("lng BETWEEN -180 AND 180", name="ck_places_lng_range"),
        CheckConstraint("lat BETWEEN -90 AND 90", name="ck_places_lat_range"),
        CheckConstraint(
            "rating_average >= 0 AND rating_average <= 5",
            name="ck_places_rating_range",
        ),
        CheckConstraint(
            "price_level IS NULL OR (price_level >= 1 AND price_level <= 4)",
            name="ck_places_price_level_range",
        ),
        Index("idx_places_location", "lng", "lat"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    name: Mapped[str] = mapped_column(String(200), nullable=False)

    lng: Mapped[float] = mapped_column(Float, nullable=False)
    lat: Mapped[float] = mapped_column(Float, nullable=False)

    # {street, city, state, country, postal_code, formatted}
    address: Mapped[dict | None] = mapped_column(JSONType)

    category: Mapped[PlaceCategory] = mapped_column(
        enum_column_type(PlaceCategory, "place_category_enum"),
        nullable=False,
        default=PlaceCategory.OTHER,
        index=True,
    )

    phone: Mapped[str | None] = mapped_column(String(30))
    website: Mapped[str | None] = mapped_column(String(500))

    # {"monday": {"open": "09:00", "close": "17:00"}, ...}
    hours: Mapped[dict | None] = mapped_column(JSONType)

    rating_average: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    rating_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    photos: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    amenities: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)

    price_level: Mapped[int | None] = mapped_column(Integer)
    verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    added_by: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"),
        index=True,
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

    def __repr__(self) -> str:  # pragma: no cover
        return f"<Place id={self.id} name={self.name!r} at=({self.lng}, {self.lat})>"


class SavedPlace(db.Model):
    """A place bookmarked by a user."""

    __tablename__ = "saved_places"

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
    )
    place_id: Mapped[int] = mapped_column(
        ForeignKey("places.id", ondelete="CASCADE"),
        primary_key=True,
        index=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )
