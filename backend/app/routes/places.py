"""
routes/places.py — Places, reviews, bookmarks and provider look-ups.

Search, nearby, place detail and review listing are public; everything else
requires a bearer token.

Endpoints (base url_prefix=/api/v1/places):
  GET    /places/search                          → 200  public
  GET    /places/nearby                          → 200  public
  GET    /places/saved                           → 200
  GET    /places/geocode                         → 200
  GET    /places/reverse-geocode                 → 200
  GET    /places/discover                        → 200
  POST   /places                                 → 201
  GET    /places/:id                             → 200  public
  PUT    /places/:id                             → 200  creator only
  DELETE /places/:id                             → 200  creator only
  GET    /places/:id/reviews                     → 200  public, newest first
  POST   /places/:id/reviews                     → 201
  PUT    /places/:id/reviews/:rid                → 200  author only
  DELETE /places/:id/reviews/:rid                → 200  author only
  POST   /places/:id/reviews/:rid/helpful        → 200  toggle
  POST   /places/:id/save                        → 200  idempotent
  DELETE /places/:id/save                        → 200
"""

from __future__ import annotations

from flask import Blueprint, g, jsonify, request

from backend.app.extensions import db, get_mapbox
from backend.app.middleware.auth_middleware import require_auth
from backend.app.schemas.common_schema import PaginationQuerySchema, update_schema
from backend.app.schemas.place_schema import (
    DiscoverQuerySchema,
    GeocodeQuerySchema,
    PlaceNearbyQuerySchema,
    PlaceSchema,
    PlaceSearchQuerySchema,
    ReverseGeocodeQuerySchema,
    ReviewSchema,
)
from backend.app.services import place_service

places_bp = Blueprint("places", __name__)


# ── Discovery ──────────────────────────────────────────────────────────────

@places_bp.route("/search", methods=["GET"])
def search_places():
    query = PlaceSearchQuerySchema().load(request.args)
    result = place_service.search_places(
        query=query["q"],
        category=query["category"],
        limit=query["limit"],
        session=db.session,
    )
    return jsonify({"success": True, "data": result}), 200


@places_bp.route("/nearby", methods=["GET"])
def nearby_places():
    """GET /places/nearby — Nearest first; each place carries its distance in metres."""
    query = PlaceNearbyQuerySchema().load(request.args)
    result = place_service.nearby_places(
        lng=query["lng"],
        lat=query["lat"],
        radius=query["radius"],
        category=query["category"],
        session=db.session,
    )
    return jsonify({"success": True, "data": result}), 200


@places_bp.route("/saved", methods=["GET"])
@require_auth
def list_saved_places():
    query = PaginationQuerySchema().load(request.args)
    result = place_service.list_saved_places(
        user_id=g.user_id,
        page=query["page"],
        limit=query["limit"],
        session=db.session,
    )
    return jsonify({"success": True, "data": result}), 200


@places_bp.route("/geocode", methods=["GET"])
@require_auth
def geocode():
    query = GeocodeQuerySchema().load(request.args)
    result = place_service.geocode(query=query["q"], mapbox=get_mapbox())
    return jsonify({"success": True, "data": result}), 200


@places_bp.route("/reverse-geocode", methods=["GET"])
@require_auth
def reverse_geocode():
    query = ReverseGeocodeQuerySchema().load(request.args)
    result = place_service.reverse_geocode(lng=query["lng"], lat=query["lat"], mapbox=get_mapbox())
    return jsonify({"success": True, "data": result}), 200


@places_bp.route("/discover", methods=["GET"])
@require_auth
def discover():
    query = DiscoverQuerySchema().load(request.args)
    result = place_service.discover(
        query=query["q"],
        lng=query["lng"],
        lat=query["lat"],
        limit=query["limit"],
        mapbox=get_mapbox(),
    )
    return jsonify({"success": True, "data": result}), 200


# ── Place CRUD ─────────────────────────────────────────────────────────────

@places_bp.route("/", methods=["POST"])
@require_auth
def create_place():
    data = PlaceSchema().load(request.get_json(force=True) or {})
    result = place_service.create_place(user_id=g.user_id, data=data, session=db.session)
    db.session.commit()
    return jsonify({"success": True, "data": result}), 201


@places_bp.route("/<int:place_id>", methods=["GET"])
def get_place(place_id: int):
    result = place_service.get_place(place_id=place_id, session=db.session)
    return jsonify({"success": True, "data": result}), 200


@places_bp.route("/<int:place_id>", methods=["PUT"])
@require_auth
def update_place(place_id: int):
    changes = update_schema(PlaceSchema).load(request.get_json(force=True) or {})
    result = place_service.update_place(
        place_id=place_id,
        user_id=g.user_id,
        changes=changes,
        session=db.session,
    )
    db.session.commit()
    return jsonify({"success": True, "data": result}), 200


@places_bp.route("/<int:place_id>", methods=["DELETE"])
@require_auth
def delete_place(place_id: int):
    place_service.delete_place(place_id=place_id, user_id=g.user_id, session=db.session)
    db.session.commit()
    return jsonify({"success": True, "message": "Place deleted."}), 200


# ── Reviews ────────────────────────────────────────────────────────────────

@places_bp.route("/<int:place_id>/reviews", methods=["GET"])
def list_reviews(place_id: int):
    query = PaginationQuerySchema().load(request.args)
    result = place_service.list_reviews(
        place_id=place_id,
        page=query["page"],
        limit=query["limit"],
        session=db.session,
    )
    return jsonify({"success": True, "data": result}), 200


@places_bp.route("/<int:place_id>/reviews", methods=["POST"])
@require_auth
def create_review(place_id: int):
    """POST /places/:id/reviews — Also recomputes the place's rating."""
    data = ReviewSchema().load(request.get_json(force=True) or {})
    result = place_service.create_review(
        place_id=place_id,
        user_id=g.user_id,
        data=data,
        session=db.session,
    )
    db.session.commit()
    return jsonify({"success": True, "data": result}), 201


@places_bp.route("/<int:place_id>/reviews/<int:review_id>", methods=["PUT"])
@require_auth
def update_review(place_id: int, review_id: int):
    changes = update_schema(ReviewSchema).load(request.get_json(force=True) or {})
    result = place_service.update_review(
        place_id=place_id,
        review_id=review_id,
        user_id=g.user_id,
        changes=changes,
        session=db.session,
    )
    db.session.commit()
    return jsonify({"success": True, "data": result}), 200


@places_bp.route("/<int:place_id>/reviews/<int:review_id>", methods=["DELETE"])
@require_auth
def delete_review(place_id: int, review_id: int):
    result = place_service.delete_review(
        place_id=place_id,
        review_id=review_id,
        user_id=g.user_id,
        session=db.session,
    )
    db.session.commit()
    return jsonify({"success": True, "data": result, "message": "Review deleted."}), 200


@places_bp.route("/<int:place_id>/reviews/<int:review_id>/helpful", methods=["POST"])
@require_auth
def toggle_helpful(place_id: int, review_id: int):
    result = place_service.toggle_helpful(
        place_id=place_id,
        review_id=review_id,
        user_id=g.user_id,
        session=db.session,
    )
    db.session.commit()
    return jsonify({"success": True, "data": result}), 200


# ── Bookmarks ──────────────────────────────────────────────────────────────

@places_bp.route("/<int:place_id>/save", methods=["POST"])
@require_auth
def save_place(place_id: int):
    result = place_service.save_place(place_id=place_id, user_id=g.user_id, session=db.session)
    db.session.commit()
    return jsonify({"success": True, "data": result}), 200


@places_bp.route("/<int:place_id>/save", methods=["DELETE"])
@require_auth
def unsave_place(place_id: int):
    result = place_service.unsave_place(place_id=place_id, user_id=g.user_id, session=db.session)
    db.session.commit()
    return jsonify({"success": True, "data": result}), 200
