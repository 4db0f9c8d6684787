"""
models/route.py — Route table definition.

No business logic. No imports from services or routes.

Waypoint shape (origin, destination, each entry of waypoints):
    {"coordinates": [lng, lat], "address": str | None, "name": str | None}
`waypoints` keeps the client's order. `geometry` holds LineString coordinates.
"""

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import Boolean, CheckConstraint, DateTime, Float, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from backend.app.extensions import db
from backend.app.models.base import JSONType, enum_column_type, utcnow


class RouteType(str, enum.Enum):
    FASTEST        = "fastest"
    SHORTEST       = "shortest"
    ECO            = "eco"
    AVOID_HIGHWAYS = "avoid-highways"


class TransportMode(str, enum.Enum):
    DRIVING = "driving"
    WALKING = "walking"
    CYCLING = "cycling"
    TRANSIT = "transit"


class Route(db.Model):
    __tablename__ = "routes"

    __table_args__ = (
        CheckConstraint("distance >= 0", name="ck_routes_distance_nonnegative"),
        CheckConstraint("duration >= 0", name="ck_routes_duration_nonnegative"),
        # List endpoint: owner's routes, newest first.
        Index("idx_routes_user_created", "user_id", "created_at"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )

    name: Mapped[str | None] = mapped_column(String(150))

    origin: Mapped[dict] = mapped_column(JSONType, nullable=False)
    destination: Mapped[dict] = mapped_column(JSONType, nullable=False)
    waypoints: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)

    # Metres / seconds.
    distance: Mapped[float] = mapped_column(Float, nullable=False)
    duration: Mapped[float] = mapped_column(Float, nullable=False)

    geometry: Mapped[list | None] = mapped_column(JSONType)

    route_type: Mapped[RouteType] = mapped_column(
        enum_column_type(RouteType, "route_type_enum"),
        nullable=False,
        default=RouteType.FASTEST,
    )
    transport_mode: Mapped[TransportMode] = mapped_column(
        enum_column_type(TransportMode, "transport_mode_enum"),
        nullable=False,
        default=TransportMode.DRIVING,
    )

    traffic_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    is_saved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

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
        return f"<Route id={self.id} user_id={self.user_id} name={self.name!r}>"
