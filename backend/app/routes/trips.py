"""
routes/trips.py — Recorded trips.

Endpoints (base url_prefix=/api/v1/trips, all auth):
  POST   /trips               → 201
  GET    /trips               → 200  ?completed=&page=&limit=  (start_time desc)
  GET    /trips/:id           → 200  owner or shared_with
  PUT    /trips/:id           → 200  owner only
  DELETE /trips/:id           → 200  owner only
  POST   /trips/:id/export    → 200  {format: gpx|csv|geojson}
  POST   /trips/:id/photos    → 201  multipart field "files" (repeatable)
"""

from __future__ import annotations

from flask import Blueprint, current_app, g, jsonify, request

from backend.app.extensions import db, get_storage
from backend.app.middleware.auth_middleware import require_auth
from backend.app.schemas.common_schema import update_schema
from backend.app.schemas.trip_schema import ExportTripSchema, TripListQuerySchema, TripSchema
from backend.app.services import trip_service
from backend.app.utils.uploads import read_uploads

trips_bp = Blueprint("trips", __name__)


@trips_bp.route("/", methods=["POST"])
@require_auth
def create_trip():
    data = TripSchema().load(request.get_json(force=True) or {})
    result = trip_service.create_trip(user_id=g.user_id, data=data, session=db.session)
    db.session.commit()
    return jsonify({"success": True, "data": result}), 201


@trips_bp.route("/", methods=["GET"])
@require_auth
def list_trips():
    query = TripListQuerySchema().load(request.args)
    result = trip_service.list_trips(
        user_id=g.user_id,
        page=query["page"],
        limit=query["limit"],
        completed=query["completed"],
        session=db.session,
    )
    return jsonify({"success": True, "data": result}), 200


@trips_bp.route("/<int:trip_id>", methods=["GET"])
@require_auth
def get_trip(trip_id: int):
    result = trip_service.get_trip(trip_id=trip_id, user_id=g.user_id, session=db.session)
    return jsonify({"success": True, "data": result}), 200


@trips_bp.route("/<int:trip_id>", methods=["PUT"])
@require_auth
def update_trip(trip_id: int):
    changes = update_schema(TripSchema).load(request.get_json(force=True) or {})
    result = trip_service.update_trip(
        trip_id=trip_id,
        user_id=g.user_id,
        changes=changes,
        session=db.session,
    )
    db.session.commit()
    return jsonify({"success": True, "data": result}), 200


@trips_bp.route("/<int:trip_id>", methods=["DELETE"])
@require_auth
def delete_trip(trip_id: int):
    trip_service.delete_trip(trip_id=trip_id, user_id=g.user_id, session=db.session)
    db.session.commit()
    return jsonify({"success": True, "message": "Trip deleted."}), 200


@trips_bp.route("/<int:trip_id>/export", methods=["POST"])
@require_auth
def export_trip(trip_id: int):
    """POST /trips/:id/export — Render, upload, and return a signed download URL."""
    data = ExportTripSchema().load(request.get_json(silent=True) or {})
    result = trip_service.export_trip(
        trip_id=trip_id,
        user_id=g.user_id,
        fmt=data["format"],
        storage=get_storage(),
        session=db.session,
    )
    return jsonify({"success": True, "data": result}), 200


@trips_bp.route("/<int:trip_id>/photos", methods=["POST"])
@require_auth
def add_photos(trip_id: int):
    """POST /trips/:id/photos — All files upload or none are recorded."""
    files = read_uploads(
        request.files.getlist("files"),
        current_app.config["ALLOWED_UPLOAD_TYPES"],
    )
    result = trip_service.add_photos(
        trip_id=trip_id,
        user_id=g.user_id,
        files=files,
        storage=get_storage(),
        session=db.session,
    )
    db.session.commit()
    return jsonify({"success": True, "data": result}), 201
