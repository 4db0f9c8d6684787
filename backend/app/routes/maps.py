"""
routes/maps.py — Offline map regions and safety alerts.

Endpoints (base url_prefix=/api/v1/maps, all auth):
  GET    /maps/offline                        → 200  ?page=&limit=
  POST   /maps/offline                        → 201
  POST   /maps/offline/download               → 201  same as POST /maps/offline
  PUT    /maps/offline/:id                    → 200  status transitions checked
  DELETE /maps/offline/:id                    → 200
  GET    /maps/safety-alerts                  → 200  ?lng=&lat=&radius=&type=
  POST   /maps/safety-alerts                  → 201
  PUT    /maps/safety-alerts/:id              → 200  reporter only
  DELETE /maps/safety-alerts/:id              → 200  reporter only
  POST   /maps/safety-alerts/:id/confirm      → 200
"""

from __future__ import annotations

from flask import Blueprint, g, jsonify, request

from backend.app.extensions import db
from backend.app.middleware.auth_middleware import require_auth
from backend.app.schemas.common_schema import PaginationQuerySchema, update_schema
from backend.app.schemas.maps_schema import (
    OfflineMapSchema,
    SafetyAlertQuerySchema,
    SafetyAlertSchema,
)
from backend.app.services import maps_service

maps_bp = Blueprint("maps", __name__)


# ── Offline maps ───────────────────────────────────────────────────────────

@maps_bp.route("/offline", methods=["GET"])
@require_auth
def list_offline_maps():
    query = PaginationQuerySchema().load(request.args)
    result = maps_service.list_offline_maps(
        user_id=g.user_id,
        page=query["page"],
        limit=query["limit"],
        session=db.session,
    )
    return jsonify({"success": True, "data": result}), 200


@maps_bp.route("/offline", methods=["POST"])
@maps_bp.route("/offline/download", methods=["POST"])
@require_auth
def create_offline_map():
    data = OfflineMapSchema().load(request.get_json(force=True) or {})
    result = maps_service.create_offline_map(user_id=g.user_id, data=data, session=db.session)
    db.session.commit()
    return jsonify({"success": True, "data": result}), 201


@maps_bp.route("/offline/<int:map_id>", methods=["PUT"])
@require_auth
def update_offline_map(map_id: int):
    changes = update_schema(OfflineMapSchema).load(request.get_json(force=True) or {})
    result = maps_service.update_offline_map(
        map_id=map_id,
        user_id=g.user_id,
        changes=changes,
        session=db.session,
    )
    db.session.commit()
    return jsonify({"success": True, "data": result}), 200


@maps_bp.route("/offline/<int:map_id>", methods=["DELETE"])
@require_auth
def delete_offline_map(map_id: int):
    maps_service.delete_offline_map(map_id=map_id, user_id=g.user_id, session=db.session)
    db.session.commit()
    return jsonify({"success": True, "message": "Offline map deleted."}), 200


# ── Safety alerts ──────────────────────────────────────────────────────────

@maps_bp.route("/safety-alerts", methods=["GET"])
@require_auth
def nearby_alerts():
    """GET /maps/safety-alerts — Active alerts only, nearest first."""
    query = SafetyAlertQuerySchema().load(request.args)
    result = maps_service.nearby_alerts(
        lng=query["lng"],
        lat=query["lat"],
        radius=query["radius"],
        type=query["type"],
        session=db.session,
    )
    return jsonify({"success": True, "data": result}), 200


@maps_bp.route("/safety-alerts", methods=["POST"])
@require_auth
def create_alert():
    data = SafetyAlertSchema().load(request.get_json(force=True) or {})
    result = maps_service.create_alert(user_id=g.user_id, data=data, session=db.session)
    db.session.commit()
    return jsonify({"success": True, "data": result}), 201


@maps_bp.route("/safety-alerts/<int:alert_id>", methods=["PUT"])
@require_auth
def update_alert(alert_id: int):
    changes = update_schema(SafetyAlertSchema).load(request.get_json(force=True) or {})
    result = maps_service.update_alert(
        alert_id=alert_id,
        user_id=g.user_id,
        changes=changes,
        session=db.session,
    )
    db.session.commit()
    return jsonify({"success": True, "data": result}), 200


@maps_bp.route("/safety-alerts/<int:alert_id>", methods=["DELETE"])
@require_auth
def delete_alert(alert_id: int):
    maps_service.delete_alert(alert_id=alert_id, user_id=g.user_id, session=db.session)
    db.session.commit()
    return jsonify({"success": True, "message": "Safety alert deleted."}), 200


@maps_bp.route("/safety-alerts/<int:alert_id>/confirm", methods=["POST"])
@require_auth
def confirm_alert(alert_id: int):
    result = maps_service.confirm_alert(alert_id=alert_id, session=db.session)
    db.session.commit()
    return jsonify({"success": True, "data": result}), 200
