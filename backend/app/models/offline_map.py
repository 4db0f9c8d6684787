"""
models/offline_map.py — OfflineMap table definition.

No business logic. No imports from services or routes.

Allowed status transitions live in maps_service.OFFLINE_MAP_TRANSITIONS.
"""

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import BigInteger, CheckConstraint, DateTime, Float, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from backend.app.extensions import db
from backend.app.models.base import enum_column_type, utcnow


class OfflineMapStatus(str, enum.Enum):
    DOWNLOADING = "downloading"
    COMPLETED   = "completed"
    FAILED      = "failed"
    OUTDATED    = "outdated"


class OfflineMap(db.Model):
    __tablename__ = "offline_maps"

    __table_args__ = (
        CheckConstraint("size >= 0", name="ck_offline_maps_size_nonnegative"),
        CheckConstraint("ne_lat >= sw_lat", name="ck_offline_maps_bounds_order"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    name: Mapped[str] = mapped_column(String(150), nullable=False)
    region: Mapped[str] = mapped_column(String(150), nullable=False)

    ne_lat: Mapped[float] = mapped_column(Float, nullable=False)
    ne_lng: Mapped[float] = mapped_column(Float, nullable=False)
    sw_lat: Mapped[float] = mapped_column(Float, nullable=False)
    sw_lng: Mapped[float] = mapped_column(Float, nullable=False)

    size: Mapped[int] = mapped_column(BigInteger, nullable=False)  # bytes

    downloaded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )
    last_updated: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    version: Mapped[str | None] = mapped_column(String(50))

    status: Mapped[OfflineMapStatus] = mapped_column(
        enum_column_type(OfflineMapStatus, "offline_map_status_enum"),
        nullable=False,
        default=OfflineMapStatus.COMPLETED,
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
        return f"<OfflineMap id={self.id} region={self.region!r} status={self.status.value}>"
