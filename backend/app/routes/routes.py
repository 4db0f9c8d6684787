"""
routes/routes.py — Saved navigation routes and routing look-ups.

Layer rules:
  - Parse, validate, call ONE service, commit, return envelope.
  - No business logic. No DB queries. No bare SQL.

Endpoints (base url_prefix=/api/v1/routes, all auth):
  POST   /routes               → 201  create route
  GET    /routes               → 200  list caller's routes   ?saved=&completed=&page=&limit=
  GET    /routes/:id           → 200
  PUT    /routes/:id           → 200  partial update
  DELETE /routes/:id           → 200
  POST   /routes/optimize      → 200  provider optimisation
  POST   /routes/directions    → 200  provider directions
  POST   /routes/matrix        → 200  distance matrix
  POST   /routes/:id/share     → 201  send to friends as messages
"""

from __future__ import annotations

from flask import Blueprint, g, jsonify, request

from backend.app.extensions import db, get_mapbox
from backend.app.middleware.auth_middleware import require_auth
from backend.app.schemas.common_schema import update_schema
from backend.app.schemas.route_schema import (
    DirectionsSchema,
    MatrixSchema,
    OptimizeSchema,
    RouteListQuerySchema,
    RouteSchema,
    ShareRouteSchema,
)
from backend.app.services import route_service

routes_bp = Blueprint("routes", __name__)


@routes_bp.route("/", methods=["POST"])
@require_auth
def create_route():
    data = RouteSchema().load(request.get_json(force=True) or {})
    result = route_service.create_route(user_id=g.user_id, data=data, session=db.session)
    db.session.commit()
    return jsonify({"success": True, "data": result}), 201


@routes_bp.route("/", methods=["GET"])
@require_auth
def list_routes():
    """GET /routes — Newest first, paginated."""
    query = RouteListQuerySchema().load(request.args)
    result = route_service.list_routes(
        user_id=g.user_id,
        page=query["page"],
        limit=query["limit"],
        saved=query["saved"],
        completed=query["completed"],
        session=db.session,
    )
    return jsonify({"success": True, "data": result}), 200


@routes_bp.route("/<int:route_id>", methods=["GET"])
@require_auth
def get_route(route_id: int):
    result = route_service.get_route(route_id=route_id, user_id=g.user_id, session=db.session)
    return jsonify({"success": True, "data": result}), 200


@routes_bp.route("/<int:route_id>", methods=["PUT"])
@require_auth
def update_route(route_id: int):
    changes = update_schema(RouteSchema).load(request.get_json(force=True) or {})
    result = route_service.update_route(
        route_id=route_id,
        user_id=g.user_id,
        changes=changes,
        session=db.session,
    )
    db.session.commit()
    return jsonify({"success": True, "data": result}), 200


@routes_bp.route("/<int:route_id>", methods=["DELETE"])
@require_auth
def delete_route(route_id: int):
    route_service.delete_route(route_id=route_id, user_id=g.user_id, session=db.session)
    db.session.commit()
    return jsonify({"success": True, "message": "Route deleted."}), 200


@routes_bp.route("/optimize", methods=["POST"])
@require_auth
def optimize_route():
    """POST /routes/optimize — Best visiting order for 2–12 waypoints."""
    data = OptimizeSchema().load(request.get_json(force=True) or {})
    result = route_service.optimize_route(data=data, mapbox=get_mapbox())
    return jsonify({"success": True, "data": result}), 200


@routes_bp.route("/directions", methods=["POST"])
@require_auth
def get_directions():
    data = DirectionsSchema().load(request.get_json(force=True) or {})
    result = route_service.get_directions(data=data, mapbox=get_mapbox())
    return jsonify({"success": True, "data": result}), 200


@routes_bp.route("/matrix", methods=["POST"])
@require_auth
def distance_matrix():
    """POST /routes/matrix — Fails as a whole if any pair fails."""
    data = MatrixSchema().load(request.get_json(force=True) or {})
    result = route_service.distance_matrix(data=data, mapbox=get_mapbox())
    return jsonify({"success": True, "data": result}), 200


@routes_bp.route("/<int:route_id>/share", methods=["POST"])
@require_auth
def share_route(route_id: int):
    data = ShareRouteSchema().load(request.get_json(force=True) or {})
    result = route_service.share_route(
        route_id=route_id,
        owner_id=g.user_id,
        user_ids=data["user_ids"],
        note=data["message"],
        session=db.session,
    )
    db.session.commit()
    return jsonify({"success": True, "data": result}), 201
