"""
services/route_service.py — Saved routes, sharing, and routing look-ups.

Saved routes are owner-scoped: every read and write filters by user_id, so a
route belonging to someone else is ROUTE_NOT_FOUND (404).

Optimisation, directions and distance matrices are delegated to the Mapbox
client passed in by the route; no routing is computed here.

Layer rules:
  - No Flask imports. Pure Python with a SQLAlchemy session parameter.
  - Commits are the route's responsibility; only flush here.
"""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from backend.app.errors import ErrorCode, not_found
from backend.app.models.base import isoformat, line_dict, utcnow
from backend.app.models.message import MessageType
from backend.app.models.route import Route
from backend.app.services import social_service
from backend.app.utils.pagination import paginate

_MUTABLE_FIELDS = (
    "name",
    "origin",
    "destination",
    "waypoints",
    "distance",
    "duration",
    "geometry",
    "route_type",
    "transport_mode",
    "traffic_enabled",
    "is_saved",
)


def build_route_dict(route: Route) -> dict:
    return {
        "id": route.id,
        "user_id": route.user_id,
        "name": route.name,
        "origin": route.origin,
        "destination": route.destination,
        "waypoints": route.waypoints,
        "distance": route.distance,
        "duration": route.duration,
        "geometry": line_dict(route.geometry),
        "route_type": route.route_type.value,
        "transport_mode": route.transport_mode.value,
        "traffic_enabled": route.traffic_enabled,
        "is_saved": route.is_saved,
        "is_completed": route.is_completed,
        "completed_at": isoformat(route.completed_at),
        "created_at": isoformat(route.created_at),
        "updated_at": isoformat(route.updated_at),
    }


def get_owned_route_or_404(route_id: int, user_id: int, session: Session) -> Route:
    route = session.execute(
        select(Route).where(Route.id == route_id, Route.user_id == user_id)
    ).scalar_one_or_none()
    if route is None:
        raise not_found(ErrorCode.ROUTE_NOT_FOUND, "Route", route_id)
    return route


def _set_completed(route: Route, is_completed: bool) -> None:
    if is_completed and not route.is_completed:
        route.completed_at = utcnow()
    elif not is_completed:
        route.completed_at = None
    route.is_completed = is_completed


# ── CRUD ───────────────────────────────────────────────────────────────────

def create_route(user_id: int, data: dict, session: Session) -> dict:
    route = Route(user_id=user_id, **{k: data[k] for k in _MUTABLE_FIELDS if k in data})
    route.is_completed = False
    _set_completed(route, data.get("is_completed", False))
    session.add(route)
    session.flush()
    return {"route": build_route_dict(route)}


def list_routes(
        user_id: int,
        page: int,
        limit: int,
        session: Session,
        saved: bool | None = None,
        completed: bool | None = None,
) -> dict:
    stmt = select(Route).where(Route.user_id == user_id)
    if saved is not None:
        stmt = stmt.where(Route.is_saved.is_(saved))
    if completed is not None:
        stmt = stmt.where(Route.is_completed.is_(completed))
    stmt = stmt.order_by(Route.created_at.desc(), Route.id.desc())

    items, pagination = paginate(stmt, page, limit, session)
    return {
        "routes": [build_route_dict(r) for r in items],
        "pagination": pagination,
    }


def get_route(route_id: int, user_id: int, session: Session) -> dict:
    return {"route": build_route_dict(get_owned_route_or_404(route_id, user_id, session))}


def update_route(route_id: int, user_id: int, changes: dict, session: Session) -> dict:
    """Applies a partial update. Setting is_completed stamps completed_at once."""
    route = get_owned_route_or_404(route_id, user_id, session)
    for key in _MUTABLE_FIELDS:
        if key in changes:
            setattr(route, key, changes[key])
    if "is_completed" in changes:
        _set_completed(route, changes["is_completed"])
    session.flush()
    return {"route": build_route_dict(route)}


def delete_route(route_id: int, user_id: int, session: Session) -> None:
    route = get_owned_route_or_404(route_id, user_id, session)
    session.delete(route)
    session.flush()


# ── Sharing ────────────────────────────────────────────────────────────────

def share_route(
        route_id: int,
        owner_id: int,
        user_ids: list[int],
        session: Session,
        note: str | None = None,
) -> dict:
    """
    Sends the route to each friend in `user_ids` as a `route` message, which
    also notifies them.

    Raises:
      AppError(ROUTE_NOT_FOUND, 404) — not the caller's route
      AppError(NOT_FRIENDS, 400)     — a recipient is not a friend
    """
    route = get_owned_route_or_404(route_id, owner_id, session)
    recipients = list(dict.fromkeys(user_ids))
    social_service.require_friends(owner_id, recipients, session)

    content = note or f"Shared a route: {route.name or 'Untitled route'}"
    messages = [
        social_service.create_message(
            sender_id=owner_id,
            recipient_id=recipient_id,
            content=content,
            type=MessageType.ROUTE,
            route_id=route.id,
            session=session,
        )
        for recipient_id in recipients
    ]
    session.flush()
    return {"messages": [social_service.build_message_dict(m) for m in messages]}


# ── Provider look-ups ──────────────────────────────────────────────────────

def optimize_route(data: dict, mapbox) -> dict:
    result = mapbox.optimize(
        waypoints=data["waypoints"],
        profile=data.get("profile", "driving"),
        source=data.get("source", "first"),
        destination=data.get("destination", "last"),
        roundtrip=data.get("roundtrip", False),
    )
    return {"optimized_route": result}


def get_directions(data: dict, mapbox) -> dict:
    result = mapbox.get_route(
        origin=data["origin"],
        destination=data["destination"],
        waypoints=data.get("waypoints", []),
        profile=data.get("profile"),
        alternatives=data.get("alternatives", True),
        traffic=data.get("traffic", True),
    )
    return {"directions": result}


def distance_matrix(data: dict, mapbox) -> dict:
    return mapbox.distance_matrix(
        origins=data["origins"],
        destinations=data["destinations"],
        profile=data.get("profile"),
    )
