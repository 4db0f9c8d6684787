"""
routes/users.py — Profile, preferences, stats, avatar and notifications.

Endpoints (base url_prefix=/api/v1/users, all auth):
  GET    /users/profile                    → 200
  PUT    /users/profile                    → 200
  PUT    /users/preferences                → 200
  GET    /users/stats                      → 200
  POST   /users/avatar                     → 200  multipart field "file"
  GET    /users/notifications              → 200  ?page=&limit=&unread=
  POST   /users/notifications/:id/read     → 200
"""

from __future__ import annotations

from flask import Blueprint, current_app, g, jsonify, request

from backend.app.extensions import db, get_storage
from backend.app.middleware.auth_middleware import require_auth
from backend.app.schemas.user_schema import (
    NotificationsQuerySchema,
    PreferencesSchema,
    UpdateProfileSchema,
)
from backend.app.services import notification_service, user_service
from backend.app.utils.uploads import read_upload

users_bp = Blueprint("users", __name__)


@users_bp.route("/profile", methods=["GET"])
@require_auth
def get_profile():
    """GET /users/profile — The caller's profile with a friends summary."""
    result = user_service.get_profile(user_id=g.user_id, session=db.session)
    return jsonify({"success": True, "data": result}), 200


@users_bp.route("/profile", methods=["PUT"])
@require_auth
def update_profile():
    changes = UpdateProfileSchema().load(request.get_json(force=True) or {})
    result = user_service.update_profile(
        user_id=g.user_id,
        changes=changes,
        session=db.session,
    )
    db.session.commit()
    return jsonify({"success": True, "data": result}), 200


@users_bp.route("/preferences", methods=["PUT"])
@require_auth
def update_preferences():
    """PUT /users/preferences — Merges the given keys into stored preferences."""
    changes = PreferencesSchema().load(request.get_json(force=True) or {})
    result = user_service.update_preferences(
        user_id=g.user_id,
        changes=changes,
        session=db.session,
    )
    db.session.commit()
    return jsonify({"success": True, "data": result}), 200


@users_bp.route("/stats", methods=["GET"])
@require_auth
def get_stats():
    result = user_service.get_stats(user_id=g.user_id, session=db.session)
    return jsonify({"success": True, "data": result}), 200


@users_bp.route("/avatar", methods=["POST"])
@require_auth
def upload_avatar():
    """POST /users/avatar — Upload an image and make it the profile avatar."""
    data, filename, content_type = read_upload(
        request.files.get("file"),
        current_app.config["ALLOWED_UPLOAD_TYPES"],
    )
    result = user_service.upload_avatar(
        user_id=g.user_id,
        data=data,
        filename=filename,
        content_type=content_type,
        storage=get_storage(),
        session=db.session,
    )
    db.session.commit()
    return jsonify({"success": True, "data": result}), 200


@users_bp.route("/notifications", methods=["GET"])
@require_auth
def list_notifications():
    query = NotificationsQuerySchema().load(request.args)
    result = notification_service.list_notifications(
        user_id=g.user_id,
        page=query["page"],
        limit=query["limit"],
        unread=query["unread"],
        session=db.session,
    )
    return jsonify({"success": True, "data": result}), 200


@users_bp.route("/notifications/<int:notification_id>/read", methods=["POST"])
@require_auth
def mark_notification_read(notification_id: int):
    result = notification_service.mark_read(
        notification_id=notification_id,
        user_id=g.user_id,
        session=db.session,
    )
    db.session.commit()
    return jsonify({"success": True, "data": result}), 200
