"""
services/trip_service.py — Recorded trips, sharing, exports and photos.

Derived metrics:
  duration      = end_time - start_time            (seconds)
  distance      = great-circle length of `path`    (metres)
  average_speed = distance / duration              (km/h)
  Each is recomputed whenever its inputs are present; otherwise the client's
  value is kept.

Visibility:
  - The owner reads and writes.
  - Users in shared_with may read (GET, export). For everyone else the trip
    is TRIP_NOT_FOUND (404).

Layer rules:
  - No Flask imports. Pure Python with a SQLAlchemy session parameter.
  - Commits are the route's responsibility; only flush here.
  - Storage uploads happen before any row changes.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from backend.app.errors import AppError, ErrorCode, not_found
from backend.app.models.base import as_utc, isoformat, line_dict, utcnow
from backend.app.models.notification import NotificationType
from backend.app.models.trip import Trip, TripShare
from backend.app.services import notification_service, social_service
from backend.app.services.route_service import get_owned_route_or_404
from backend.app.utils.geo import path_length
from backend.app.utils.pagination import paginate
from backend.app.utils.trip_export import render_trip

_MUTABLE_FIELDS = (
    "route_id",
    "name",
    "start_time",
    "end_time",
    "duration",
    "distance",
    "average_speed",
    "max_speed",
    "fuel_used",
    "carbon_footprint",
    "path",
    "stats",
    "incidents",
    "photos",
    "is_completed",
)

# Fields holding datetimes inside JSON sub-documents.
_NESTED_TIMESTAMP_FIELDS = ("incidents", "photos")


def _jsonable_items(items: list | None) -> list:
    """AwareDateTime values inside list-of-dict JSON columns are stored as ISO strings."""
    return [
        {k: (isoformat(v) if isinstance(v, datetime) else v) for k, v in item.items()}
        for item in items or []
    ]


def build_trip_dict(trip: Trip) -> dict:
    return {
        "id": trip.id,
        "user_id": trip.user_id,
        "route_id": trip.route_id,
        "name": trip.name,
        "start_time": isoformat(trip.start_time),
        "end_time": isoformat(trip.end_time),
        "duration": trip.duration,
        "distance": trip.distance,
        "average_speed": trip.average_speed,
        "max_speed": trip.max_speed,
        "fuel_used": trip.fuel_used,
        "carbon_footprint": trip.carbon_footprint,
        "path": line_dict(trip.path),
        "stats": trip.stats,
        "incidents": trip.incidents,
        "photos": trip.photos,
        "is_completed": trip.is_completed,
        "shared_with": trip.shared_with,
        "created_at": isoformat(trip.created_at),
        "updated_at": isoformat(trip.updated_at),
    }


def derive_metrics(trip: Trip) -> None:
    """Recomputes duration, distance and average_speed from their inputs."""
    if trip.start_time is not None and trip.end_time is not None:
        trip.duration = (as_utc(trip.end_time) - as_utc(trip.start_time)).total_seconds()
    if trip.path and len(trip.path) >= 2:
        trip.distance = path_length(trip.path)
    if trip.end_time is not None and trip.path and trip.duration:
        trip.average_speed = (trip.distance or 0.0) / trip.duration * 3.6


def _get_owned_trip_or_404(trip_id: int, user_id: int, session: Session) -> Trip:
    trip = session.execute(
        select(Trip).where(Trip.id == trip_id, Trip.user_id == user_id)
    ).scalar_one_or_none()
    if trip is None:
        raise not_found(ErrorCode.TRIP_NOT_FOUND, "Trip", trip_id)
    return trip


def _get_visible_trip_or_404(trip_id: int, user_id: int, session: Session) -> Trip:
    shared = select(TripShare.trip_id).where(TripShare.user_id == user_id)
    trip = session.execute(
        select(Trip).where(
            Trip.id == trip_id,
            or_(Trip.user_id == user_id, Trip.id.in_(shared)),
        )
    ).scalar_one_or_none()
    if trip is None:
        raise not_found(ErrorCode.TRIP_NOT_FOUND, "Trip", trip_id)
    return trip


def _apply_shares(trip: Trip, owner_id: int, user_ids: list[int], session: Session) -> None:
    """Replaces the share list; newly added friends get a trip invite."""
    wanted = [uid for uid in dict.fromkeys(user_ids) if uid != owner_id]
    social_service.require_friends(owner_id, wanted, session)

    current = {share.user_id: share for share in trip.shares}
    for user_id, share in current.items():
        if user_id not in wanted:
            trip.shares.remove(share)
    for user_id in wanted:
        if user_id not in current:
            trip.shares.append(TripShare(user_id=user_id))
            notification_service.notify(
                user_id=user_id,
                type=NotificationType.TRIP_INVITE,
                title="A trip was shared with you",
                message=f"{trip.name or 'A trip'} was shared with you.",
                data={"trip_id": trip.id, "owner_id": owner_id},
                session=session,
            )


def _assign(trip: Trip, data: dict) -> None:
    for key in _MUTABLE_FIELDS:
        if key in data:
            value = data[key]
            if key in _NESTED_TIMESTAMP_FIELDS:
                value = _jsonable_items(value)
            setattr(trip, key, value)


# ── CRUD ───────────────────────────────────────────────────────────────────

def create_trip(user_id: int, data: dict, session: Session) -> dict:
    """
    Raises:
      AppError(ROUTE_NOT_FOUND, 404) — route_id is not one of the caller's routes
      AppError(NOT_FRIENDS, 400)     — shared_with names a non-friend
    """
    if data.get("route_id") is not None:
        get_owned_route_or_404(data["route_id"], user_id, session)

    trip = Trip(user_id=user_id)
    _assign(trip, data)
    derive_metrics(trip)
    session.add(trip)
    session.flush()  # populate trip.id before shares and notifications

    _apply_shares(trip, user_id, data.get("shared_with", []), session)
    session.flush()
    return {"trip": build_trip_dict(trip)}


def list_trips(
        user_id: int,
        page: int,
        limit: int,
        session: Session,
        completed: bool | None = None,
) -> dict:
    stmt = select(Trip).where(Trip.user_id == user_id)
    if completed is not None:
        stmt = stmt.where(Trip.is_completed.is_(completed))
    stmt = stmt.order_by(Trip.start_time.desc(), Trip.id.desc())

    items, pagination = paginate(stmt, page, limit, session)
    return {
        "trips": [build_trip_dict(t) for t in items],
        "pagination": pagination,
    }


def get_trip(trip_id: int, user_id: int, session: Session) -> dict:
    return {"trip": build_trip_dict(_get_visible_trip_or_404(trip_id, user_id, session))}


def update_trip(trip_id: int, user_id: int, changes: dict, session: Session) -> dict:
    """
    Raises:
      AppError(TRIP_NOT_FOUND, 404)
      AppError(ROUTE_NOT_FOUND, 404)
      AppError(INVALID_FIELD, 400) — the merged end_time precedes start_time
    """
    trip = _get_owned_trip_or_404(trip_id, user_id, session)
    if changes.get("route_id") is not None:
        get_owned_route_or_404(changes["route_id"], user_id, session)

    start = changes.get("start_time", trip.start_time)
    end = changes.get("end_time", trip.end_time)
    if start is not None and end is not None and as_utc(end) < as_utc(start):
        raise AppError(
            ErrorCode.INVALID_FIELD,
            "end_time must not be before start_time.",
            400,
            field="end_time",
        )

    _assign(trip, changes)
    derive_metrics(trip)
    if "shared_with" in changes:
        _apply_shares(trip, user_id, changes["shared_with"], session)
    session.flush()
    return {"trip": build_trip_dict(trip)}


def delete_trip(trip_id: int, user_id: int, session: Session) -> None:
    trip = _get_owned_trip_or_404(trip_id, user_id, session)
    session.delete(trip)
    session.flush()


# ── Export & photos ────────────────────────────────────────────────────────

def export_trip(trip_id: int, user_id: int, fmt: str, storage, session: Session) -> dict:
    """
    Renders the trip, uploads the file and returns a time-limited download
    link. Readable by the owner and by users the trip is shared with.
    """
    trip = _get_visible_trip_or_404(trip_id, user_id, session)
    body, filename, content_type = render_trip(build_trip_dict(trip), fmt)

    url = storage.upload_file(body, filename, content_type, prefix=f"exports/{user_id}")
    signed = storage.signed_url(storage.key_from_url(url))
    return {
        "export_url": signed,
        "format": fmt,
        "filename": filename,
        "expires_in": storage.signed_url_expires,
    }


def add_photos(trip_id: int, user_id: int, files: list, storage, session: Session) -> dict:
    """
    Uploads every file concurrently, then appends the URLs to trip.photos.
    All-or-nothing: if any upload fails the trip is left unchanged.

    `files` is a list of (data, filename, content_type) tuples.
    """
    trip = _get_owned_trip_or_404(trip_id, user_id, session)
    urls = storage.upload_many(files, prefix=f"trips/{trip_id}")

    taken_at = isoformat(utcnow())
    trip.photos = [
        *(trip.photos or []),
        *({"url": url, "coordinates": None, "timestamp": taken_at} for url in urls),
    ]
    session.flush()
    return {"trip": build_trip_dict(trip), "uploaded": urls}
