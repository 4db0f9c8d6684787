"""
routes/auth.py — Authentication route handlers.

Layer rules:
  - Parse request body
  - Validate with the appropriate schema (raises ValidationError on bad input)
  - Call exactly ONE service function
  - Commit the DB session
  - Return the standard response envelope: {"success": true, "data": {...}}

No business logic here. No DB queries. No bare SQL.
AppError propagates to the global error handler in app/__init__.py; routes
never catch it.

Endpoints (base url_prefix=/api/v1/auth):
  POST   /auth/signup           → 201
  POST   /auth/login            → 200
  POST   /auth/logout           → 200
  POST   /auth/refresh          → 200
  POST   /auth/verify-email     → 200
  POST   /auth/forgot-password  → 200
  POST   /auth/reset-password   → 200
  GET    /auth/me               → 200
"""

from __future__ import annotations

from flask import Blueprint, current_app, g, jsonify, request

from backend.app.extensions import db
from backend.app.middleware.auth_middleware import require_auth
from backend.app.schemas.auth_schema import (
    ForgotPasswordSchema,
    LoginSchema,
    RefreshTokenSchema,
    ResetPasswordSchema,
    SignupSchema,
    VerifyEmailSchema,
)
from backend.app.services import auth_service

auth_bp = Blueprint("auth", __name__)


@auth_bp.route("/signup", methods=["POST"])
def signup():
    """POST /auth/signup — Create account; return tokens. (No auth required.)"""
    data = SignupSchema().load(request.get_json(force=True) or {})
    result = auth_service.signup(
        email=data["email"],
        password=data["password"],
        name=data["name"],
        phone=data.get("phone"),
        expose_action_tokens=current_app.config["EXPOSE_ACTION_TOKENS"],
        session=db.session,
    )
    db.session.commit()
    return jsonify({"success": True, "data": result}), 201


@auth_bp.route("/login", methods=["POST"])
def login():
    """POST /auth/login — Authenticate; return tokens. (No auth required.)"""
    data = LoginSchema().load(request.get_json(force=True) or {})
    result = auth_service.login(
        email=data["email"],
        password=data["password"],
        session=db.session,
    )
    db.session.commit()
    return jsonify({"success": True, "data": result}), 200


@auth_bp.route("/refresh", methods=["POST"])
def refresh():
    """POST /auth/refresh — Exchange a refresh token for a new access token."""
    data = RefreshTokenSchema().load(request.get_json(force=True) or {})
    result = auth_service.refresh_access_token(
        raw_refresh_token=data["refresh_token"],
        session=db.session,
    )
    db.session.commit()
    return jsonify({"success": True, "data": result}), 200


@auth_bp.route("/logout", methods=["POST"])
@require_auth
def logout():
    """POST /auth/logout — Revoke the given refresh token. (Auth required.)"""
    data = RefreshTokenSchema().load(request.get_json(force=True) or {})
    auth_service.logout(
        raw_refresh_token=data["refresh_token"],
        user_id=g.user_id,
        session=db.session,
    )
    db.session.commit()
    return jsonify({"success": True, "message": "Logged out successfully."}), 200


@auth_bp.route("/verify-email", methods=["POST"])
def verify_email():
    data = VerifyEmailSchema().load(request.get_json(force=True) or {})
    result = auth_service.verify_email(token=data["token"], session=db.session)
    db.session.commit()
    return jsonify({"success": True, "data": result, "message": "Email verified."}), 200


@auth_bp.route("/forgot-password", methods=["POST"])
def forgot_password():
    """POST /auth/forgot-password — Same answer whether or not the account exists."""
    data = ForgotPasswordSchema().load(request.get_json(force=True) or {})
    result = auth_service.forgot_password(
        email=data["email"],
        expose_action_tokens=current_app.config["EXPOSE_ACTION_TOKENS"],
        session=db.session,
    )
    db.session.commit()
    message = result.pop("message")
    return jsonify({"success": True, "data": result, "message": message}), 200


@auth_bp.route("/reset-password", methods=["POST"])
def reset_password():
    data = ResetPasswordSchema().load(request.get_json(force=True) or {})
    auth_service.reset_password(
        token=data["token"],
        new_password=data["password"],
        session=db.session,
    )
    db.session.commit()
    return jsonify({"success": True, "message": "Password has been reset."}), 200


@auth_bp.route("/me", methods=["GET"])
@require_auth
def me():
    """GET /auth/me — Return the authenticated user's profile."""
    result = auth_service.get_current_user(user_id=g.user_id, session=db.session)
    return jsonify({"success": True, "data": result}), 200
