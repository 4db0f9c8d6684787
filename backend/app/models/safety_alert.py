"""
models/safety_alert.py — SafetyAlert table definition.

No business logic. No imports from services or routes.

Visibility is gated at query time by `expired` and `expires_at`; nothing
sweeps stale alerts.
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
from backend.app.models.base import enum_column_type, utcnow


class AlertType(str, enum.Enum):
    SPEED_CAMERA = "speed_camera"
    POLICE       = "police"
    ACCIDENT     = "accident"
    HAZARD       = "hazard"
    CONSTRUCTION = "construction"
    TRAFFIC      = "traffic"


class AlertSeverity(str, enum.Enum):
    LOW    = "low"
    MEDIUM = "medium"
    HIGH   = "high"


class SafetyAlert(db.Model):
    __tablename__ = "safety_alerts"

    __table_args__ = (
        CheckConstraint("lng BETWEEN -180 AND 180", name="ck_safety_alerts_lng_range"),
        CheckConstraint("lat BETWEEN -90 AND 90", name="ck_safety_alerts_lat_range"),
        CheckConstraint("confirmed >= 0", name="ck_safety_alerts_confirmed_nonnegative"),
        Index("idx_safety_alerts_location", "lng", "lat"),
        Index("idx_safety_alerts_type_expired", "type", "expired"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    type: Mapped[AlertType] = mapped_column(
        enum_column_type(AlertType, "alert_type_enum"),
        nullable=False,
    )

    lng: Mapped[float] = mapped_column(Float, nullable=False)
    lat: Mapped[float] = mapped_column(Float, nullable=False)

    description: Mapped[str | None] = mapped_column(String(500))

    severity: Mapped[AlertSeverity] = mapped_column(
        enum_column_type(AlertSeverity, "alert_severity_enum"),
        nullable=False,
        default=AlertSeverity.MEDIUM,
    )

    reported_by: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"),
        index=True,
    )

    confirmed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    expired: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

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
        return f"<SafetyAlert id={self.id} type={self.type.value} expired={self.expired}>"
