"""
models/base.py — Column helpers shared by every table definition.

No business logic. No imports from services or routes.

  - Enum columns store the enum *value* ('gas-station'), never the member name,
    and are non-native so the same schema works on PostgreSQL and SQLite.
  - Structured sub-documents use JSON (JSONB on PostgreSQL).
  - Timestamps are timezone-aware UTC, stamped in Python so rows flushed in
    the same transaction already carry them.
"""

from __future__ import annotations

import enum
from datetime import datetime, timezone

from sqlalchemy import JSON, Enum
from sqlalchemy.dialects.postgresql import JSONB


JSONType = JSON().with_variant(JSONB(), "postgresql")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    """SQLite hands back naive datetimes; all stored values are UTC."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def _enum_values(enum_cls: type[enum.Enum]) -> list[str]:
    """Ensure SQLAlchemy stores enum values (e.g. 'gas-station'), not names."""
    return [member.value for member in enum_cls]


def enum_column_type(enum_cls: type[enum.Enum], name: str) -> Enum:
    return Enum(
        enum_cls,
        name=name,
        native_enum=False,
        length=32,
        values_callable=_enum_values,
        validate_strings=True,
    )


def point_dict(lng: float | None, lat: float | None) -> dict | None:
    """GeoJSON Point for a stored (lng, lat) column pair."""
    if lng is None or lat is None:
        return None
    return {"type": "Point", "coordinates": [lng, lat]}


def line_dict(coordinates: list | None) -> dict | None:
    """GeoJSON LineString for a stored coordinate array."""
    if not coordinates:
        return None
    return {"type": "LineString", "coordinates": coordinates}


def isoformat(value: datetime | None) -> str | None:
    """ISO-8601 with an explicit UTC offset, or None."""
    if value is None:
        return None
    return as_utc(value).isoformat()
