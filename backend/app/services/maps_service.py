"""
services/maps_service.py — Offline map regions and safety alerts.

Offline map status machine:

  downloading ─► completed ─► outdated ─► downloading
       │                                      ▲
       ├─► outdated                           │
       └─► failed ────────────────────────────┘

  Any other change raises INVALID_STATUS_TRANSITION (409). Re-sending the
  current status is accepted and changes nothing.

Safety alerts:
  - Visible while `expired` is false and `expires_at` is unset or in the future.
  - Only the reporter may update or delete an alert; everyone else gets
    SAFETY_ALERT_NOT_FOUND (404).
  - Confirmation increments the counter in a single UPDATE statement so
    concurrent confirmations are never lost.

Layer rules:
  - No Flask imports. Pure Python with a SQLAlchemy session parameter.
  - Commits are the route's responsibility; only flush here.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import or_, select, update
from sqlalchemy.orm import Session

from backend.app.errors import AppError, ErrorCode, not_found
from backend.app.models.base import isoformat, point_dict, utcnow
from backend.app.models.offline_map import OfflineMap, OfflineMapStatus
from backend.app.models.safety_alert import AlertType, SafetyAlert
from backend.app.utils.geo import bounding_box, haversine
from backend.app.utils.pagination import paginate

OFFLINE_MAP_TRANSITIONS: dict[OfflineMapStatus, frozenset[OfflineMapStatus]] = {
    OfflineMapStatus.DOWNLOADING: frozenset({
        OfflineMapStatus.COMPLETED,
        OfflineMapStatus.FAILED,
        OfflineMapStatus.OUTDATED,
    }),
    OfflineMapStatus.COMPLETED: frozenset({OfflineMapStatus.OUTDATED}),
    OfflineMapStatus.FAILED: frozenset({OfflineMapStatus.DOWNLOADING}),
    OfflineMapStatus.OUTDATED: frozenset({OfflineMapStatus.DOWNLOADING}),
}

ALERT_DEFAULT_RADIUS_M = 10000
ALERT_MAX_RESULTS = 100


# ── Offline maps ───────────────────────────────────────────────────────────

def build_offline_map_dict(offline_map: OfflineMap) -> dict:
    return {
        "id": offline_map.id,
        "user_id": offline_map.user_id,
        "name": offline_map.name,
        "region": offline_map.region,
        "bounds": {
            "northeast": {"lat": offline_map.ne_lat, "lng": offline_map.ne_lng},
            "southwest": {"lat": offline_map.sw_lat, "lng": offline_map.sw_lng},
        },
        "size": offline_map.size,
        "version": offline_map.version,
        "status": offline_map.status.value,
        "downloaded_at": isoformat(offline_map.downloaded_at),
        "last_updated": isoformat(offline_map.last_updated),
        "created_at": isoformat(offline_map.created_at),
        "updated_at": isoformat(offline_map.updated_at),
    }


def _get_owned_offline_map_or_404(map_id: int, user_id: int, session: Session) -> OfflineMap:
    offline_map = session.execute(
        select(OfflineMap).where(OfflineMap.id == map_id, OfflineMap.user_id == user_id)
    ).scalar_one_or_none()
    if offline_map is None:
        raise not_found(ErrorCode.OFFLINE_MAP_NOT_FOUND, "Offline map", map_id)
    return offline_map


def _apply_bounds(offline_map: OfflineMap, bounds: dict) -> None:
    offline_map.ne_lat = bounds["northeast"]["lat"]
    offline_map.ne_lng = bounds["northeast"]["lng"]
    offline_map.sw_lat = bounds["southwest"]["lat"]
    offline_map.sw_lng = bounds["southwest"]["lng"]


def check_transition(current: OfflineMapStatus, target: OfflineMapStatus) -> None:
    """Raises AppError(INVALID_STATUS_TRANSITION, 409) unless current → target is allowed."""
    if target is current or target in OFFLINE_MAP_TRANSITIONS[current]:
        return
    raise AppError(
        ErrorCode.INVALID_STATUS_TRANSITION,
        f"Cannot change an offline map from '{current.value}' to '{target.value}'.",
        409,
        field="status",
    )


def list_offline_maps(user_id: int, page: int, limit: int, session: Session) -> dict:
    stmt = (
        select(OfflineMap)
        .where(OfflineMap.user_id == user_id)
        .order_by(OfflineMap.created_at.desc(), OfflineMap.id.desc())
    )
    items, pagination = paginate(stmt, page, limit, session)
    return {
        "maps": [build_offline_map_dict(m) for m in items],
        "pagination": pagination,
    }


def create_offline_map(user_id: int, data: dict, session: Session) -> dict:
    offline_map = OfflineMap(
        user_id=user_id,
        name=data["name"].strip(),
        region=data["region"].strip(),
        size=data["size"],
        version=data.get("version"),
        status=data.get("status", OfflineMapStatus.COMPLETED),
    )
    _apply_bounds(offline_map, data["bounds"])
    session.add(offline_map)
    session.flush()
    return {"map": build_offline_map_dict(offline_map)}


def update_offline_map(map_id: int, user_id: int, changes: dict, session: Session) -> dict:
    """
    Raises:
      AppError(OFFLINE_MAP_NOT_FOUND, 404)
      AppError(INVALID_STATUS_TRANSITION, 409)
    """
    offline_map = _get_owned_offline_map_or_404(map_id, user_id, session)

    if "status" in changes:
        target = changes["status"]
        check_transition(offline_map.status, target)
        if target is OfflineMapStatus.COMPLETED and offline_map.status is not target:
            offline_map.last_updated = utcnow()
        offline_map.status = target

    for key in ("name", "region"):
        if key in changes:
            setattr(offline_map, key, changes[key].strip())
    for key in ("size", "version"):
        if key in changes:
            setattr(offline_map, key, changes[key])
    if "bounds" in changes:
        _apply_bounds(offline_map, changes["bounds"])

    session.flush()
    return {"map": build_offline_map_dict(offline_map)}


def delete_offline_map(map_id: int, user_id: int, session: Session) -> None:
    offline_map = _get_owned_offline_map_or_404(map_id, user_id, session)
    session.delete(offline_map)
    session.flush()


# ── Safety alerts ──────────────────────────────────────────────────────────

def build_alert_dict(alert: SafetyAlert, distance: float | None = None) -> dict:
    result = {
        "id": alert.id,
        "type": alert.type.value,
        "location": point_dict(alert.lng, alert.lat),
        "description": alert.description,
        "severity": alert.severity.value,
        "reported_by": alert.reported_by,
        "confirmed": alert.confirmed,
        "expired": alert.expired,
        "expires_at": isoformat(alert.expires_at),
        "created_at": isoformat(alert.created_at),
        "updated_at": isoformat(alert.updated_at),
    }
    if distance is not None:
        result["distance"] = round(distance, 1)
    return result


def _to_utc(value: datetime | None) -> datetime | None:
    return value.astimezone(timezone.utc) if value is not None else None


def _active_alert_filter():
    return (
        SafetyAlert.expired.is_(False),
        or_(SafetyAlert.expires_at.is_(None), SafetyAlert.expires_at > utcnow()),
    )


def _get_alert_or_404(alert_id: int, session: Session) -> SafetyAlert:
    alert = session.get(SafetyAlert, alert_id)
    if alert is None:
        raise not_found(ErrorCode.SAFETY_ALERT_NOT_FOUND, "Safety alert", alert_id)
    return alert


def _get_reported_alert_or_404(alert_id: int, user_id: int, session: Session) -> SafetyAlert:
    alert = _get_alert_or_404(alert_id, session)
    if alert.reported_by != user_id:
        raise not_found(ErrorCode.SAFETY_ALERT_NOT_FOUND, "Safety alert", alert_id)
    return alert


def nearby_alerts(
        lng: float,
        lat: float,
        session: Session,
        radius: float | None = None,
        type: AlertType | None = None,
) -> dict:
    """Active alerts within `radius` metres (default 10000), nearest first."""
    radius = radius or ALERT_DEFAULT_RADIUS_M
    min_lng, min_lat, max_lng, max_lat = bounding_box(lng, lat, radius)

    stmt = select(SafetyAlert).where(
        SafetyAlert.lng.between(min_lng, max_lng),
        SafetyAlert.lat.between(min_lat, max_lat),
        *_active_alert_filter(),
    )
    if type is not None:
        stmt = stmt.where(SafetyAlert.type == type)

    hits = sorted(
        (
            (haversine(lng, lat, alert.lng, alert.lat), alert.id, alert)
            for alert in session.execute(stmt).scalars()
        ),
        key=lambda hit: (hit[0], hit[1]),
    )
    return {
        "alerts": [
            build_alert_dict(alert, distance=distance)
            for distance, _, alert in hits
            if distance <= radius
        ][:ALERT_MAX_RESULTS]
    }


def create_alert(user_id: int, data: dict, session: Session) -> dict:
    lng, lat = data["location"]["coordinates"]
    alert = SafetyAlert(
        type=data["type"],
        lng=lng,
        lat=lat,
        description=data.get("description"),
        severity=data["severity"],
        expires_at=_to_utc(data.get("expires_at")),
        expired=data.get("expired", False),
        reported_by=user_id,
    )
    session.add(alert)
    session.flush()
    return {"alert": build_alert_dict(alert)}


def update_alert(alert_id: int, user_id: int, changes: dict, session: Session) -> dict:
    alert = _get_reported_alert_or_404(alert_id, user_id, session)
    for key in ("type", "description", "severity", "expired"):
        if key in changes:
            setattr(alert, key, changes[key])
    if "expires_at" in changes:
        alert.expires_at = _to_utc(changes["expires_at"])
    if "location" in changes:
        alert.lng, alert.lat = changes["location"]["coordinates"]
    session.flush()
    return {"alert": build_alert_dict(alert)}


def delete_alert(alert_id: int, user_id: int, session: Session) -> None:
    alert = _get_reported_alert_or_404(alert_id, user_id, session)
    session.delete(alert)
    session.flush()


def confirm_alert(alert_id: int, session: Session) -> dict:
    """Adds one confirmation. Expired alerts can no longer be confirmed."""
    alert = _get_alert_or_404(alert_id, session)
    result = session.execute(
        update(SafetyAlert)
        .where(SafetyAlert.id == alert_id, *_active_alert_filter())
        .values(confirmed=SafetyAlert.confirmed + 1)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise not_found(ErrorCode.SAFETY_ALERT_NOT_FOUND, "Safety alert", alert_id)
    session.refresh(alert)
    return {"alert": build_alert_dict(alert)}
