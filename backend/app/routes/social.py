"""
routes/social.py — Friends, messages and groups.

Layer rules:
  - Parse, validate, call ONE service, commit, return envelope.
  - No business logic. No DB queries. No bare SQL.

Endpoints (base url_prefix=/api/v1/social, all auth):
  GET    /social/friends                          → 200
  POST   /social/friends/request                  → 201  {to}
  GET    /social/friends/requests                 → 200  incoming, pending
  POST   /social/friends/accept/:id               → 200
  DELETE /social/friends/:id                      → 200
  GET    /social/messages                         → 200  ?with=&group=&page=&limit=
  POST   /social/messages                         → 201
  POST   /social/messages/:id/read                → 200
  GET    /social/groups                           → 200  ?page=&limit=
  POST   /social/groups                           → 201
  GET    /social/groups/:id                       → 200  members only
  PUT    /social/groups/:id                       → 200  owner only
  DELETE /social/groups/:id                       → 200  owner only
  POST   /social/groups/:id/members               → 201  admins
  DELETE /social/groups/:id/members/:uid          → 200  admin or self
"""

from __future__ import annotations

from flask import Blueprint, g, jsonify, request

from backend.app.extensions import db
from backend.app.middleware.auth_middleware import require_auth
from backend.app.schemas.common_schema import PaginationQuerySchema, update_schema
from backend.app.schemas.social_schema import (
    AddMemberSchema,
    FriendRequestSchema,
    GroupSchema,
    MessageListQuerySchema,
    SendMessageSchema,
)
from backend.app.services import group_service, social_service

social_bp = Blueprint("social", __name__)


# ── Friends ────────────────────────────────────────────────────────────────

@social_bp.route("/friends", methods=["GET"])
@require_auth
def list_friends():
    result = social_service.list_friends(user_id=g.user_id, session=db.session)
    return jsonify({"success": True, "data": result}), 200


@social_bp.route("/friends/request", methods=["POST"])
@require_auth
def send_friend_request():
    data = FriendRequestSchema().load(request.get_json(force=True) or {})
    result = social_service.send_friend_request(
        from_user_id=g.user_id,
        to_user_id=data["to"],
        session=db.session,
    )
    db.session.commit()
    return jsonify({"success": True, "data": result}), 201


@social_bp.route("/friends/requests", methods=["GET"])
@require_auth
def list_friend_requests():
    result = social_service.list_friend_requests(user_id=g.user_id, session=db.session)
    return jsonify({"success": True, "data": result}), 200


@social_bp.route("/friends/accept/<int:request_id>", methods=["POST"])
@require_auth
def accept_friend_request(request_id: int):
    """POST /social/friends/accept/:id — Recipient only; both directions in one commit."""
    result = social_service.accept_friend_request(
        request_id=request_id,
        user_id=g.user_id,
        session=db.session,
    )
    db.session.commit()
    return jsonify({"success": True, "data": result}), 200


@social_bp.route("/friends/<int:friend_id>", methods=["DELETE"])
@require_auth
def remove_friend(friend_id: int):
    social_service.remove_friend(user_id=g.user_id, friend_id=friend_id, session=db.session)
    db.session.commit()
    return jsonify({"success": True, "message": "Friend removed."}), 200


# ── Messages ───────────────────────────────────────────────────────────────

@social_bp.route("/messages", methods=["GET"])
@require_auth
def list_messages():
    query = MessageListQuerySchema().load(request.args)
    result = social_service.list_messages(
        user_id=g.user_id,
        page=query["page"],
        limit=query["limit"],
        with_user=query["with_user"],
        group_id=query["group"],
        session=db.session,
    )
    return jsonify({"success": True, "data": result}), 200


@social_bp.route("/messages", methods=["POST"])
@require_auth
def send_message():
    data = SendMessageSchema().load(request.get_json(force=True) or {})
    result = social_service.send_message(sender_id=g.user_id, data=data, session=db.session)
    db.session.commit()
    return jsonify({"success": True, "data": result}), 201


@social_bp.route("/messages/<int:message_id>/read", methods=["POST"])
@require_auth
def mark_message_read(message_id: int):
    result = social_service.mark_message_read(
        message_id=message_id,
        user_id=g.user_id,
        session=db.session,
    )
    db.session.commit()
    return jsonify({"success": True, "data": result}), 200


# ── Groups ─────────────────────────────────────────────────────────────────

@social_bp.route("/groups", methods=["GET"])
@require_auth
def list_groups():
    query = PaginationQuerySchema().load(request.args)
    result = group_service.list_groups(
        user_id=g.user_id,
        page=query["page"],
        limit=query["limit"],
        session=db.session,
    )
    return jsonify({"success": True, "data": result}), 200


@social_bp.route("/groups", methods=["POST"])
@require_auth
def create_group():
    """POST /social/groups — Caller becomes owner and first (admin) member."""
    data = GroupSchema().load(request.get_json(force=True) or {})
    result = group_service.create_group(owner_id=g.user_id, data=data, session=db.session)
    db.session.commit()
    return jsonify({"success": True, "data": result}), 201


@social_bp.route("/groups/<int:group_id>", methods=["GET"])
@require_auth
def get_group(group_id: int):
    result = group_service.get_group(group_id=group_id, caller_id=g.user_id, session=db.session)
    return jsonify({"success": True, "data": result}), 200


@social_bp.route("/groups/<int:group_id>", methods=["PUT"])
@require_auth
def update_group(group_id: int):
    changes = update_schema(GroupSchema).load(request.get_json(force=True) or {})
    result = group_service.update_group(
        group_id=group_id,
        caller_id=g.user_id,
        changes=changes,
        session=db.session,
    )
    db.session.commit()
    return jsonify({"success": True, "data": result}), 200


@social_bp.route("/groups/<int:group_id>", methods=["DELETE"])
@require_auth
def delete_group(group_id: int):
    group_service.delete_group(group_id=group_id, caller_id=g.user_id, session=db.session)
    db.session.commit()
    return jsonify({"success": True, "message": "Group deleted."}), 200


@social_bp.route("/groups/<int:group_id>/members", methods=["POST"])
@require_auth
def add_member(group_id: int):
    data = AddMemberSchema().load(request.get_json(force=True) or {})
    result = group_service.add_member(
        group_id=group_id,
        caller_id=g.user_id,
        target_user_id=data["user_id"],
        role=data["role"],
        session=db.session,
    )
    db.session.commit()
    return jsonify({"success": True, "data": result}), 201


@social_bp.route("/groups/<int:group_id>/members/<int:target_uid>", methods=["DELETE"])
@require_auth
def remove_member(group_id: int, target_uid: int):
    """DELETE /social/groups/:id/members/:uid — Admins remove others; anyone removes self."""
    group_service.remove_member(
        group_id=group_id,
        caller_id=g.user_id,
        target_user_id=target_uid,
        session=db.session,
    )
    db.session.commit()
    return jsonify({
        "success": True,
        "data": {
            "removed": True,
            "group_id": group_id,
            "user_id": target_uid,
        },
    }), 200
