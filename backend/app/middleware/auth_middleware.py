"""
middleware/auth_middleware.py — JWT authentication decorators.

@require_auth:
  1. Reads the Authorization header (expected: "Bearer <token>")
  2. Decodes and verifies the JWT signature and expiry
  3. Requires a numeric `sub` claim and `type == "access"`
  4. Attaches user_id (int) to flask.g for the duration of the request

@optional_auth does the same when a header is present and leaves
g.user_id = None when it is not. Used by public endpoints that personalise
their output for signed-in callers.

Responsibility boundary:
  - This module authenticates only. Ownership and membership are checked in
    the service layer, which answers 404 for records the caller cannot see.
  - Read-only: never touches the database.

Error codes:
  TOKEN_MISSING  (401) — no Authorization header
  TOKEN_INVALID  (401) — malformed header, bad signature, wrong token type
  TOKEN_EXPIRED  (401) — valid token but exp claim is in the past
"""

from __future__ import annotations

import functools
from typing import Callable

import jwt
from flask import current_app, g, request

from backend.app.errors import AppError, ErrorCode

ACCESS_TOKEN_TYPE = "access"


def require_auth(f: Callable) -> Callable:
    """
    Route decorator that enforces JWT authentication.

    Raises AppError for all auth failures; the global error handler converts
    these to the JSON envelope. Routes never catch AppError.
    """
    @functools.wraps(f)
    def decorated(*args, **kwargs):
        _authenticate_request()
        return f(*args, **kwargs)

    return decorated


def optional_auth(f: Callable) -> Callable:
    """Like require_auth, but an absent header yields g.user_id = None."""
    @functools.wraps(f)
    def decorated(*args, **kwargs):
        if request.headers.get("Authorization"):
            _authenticate_request()
        else:
            g.user_id = None
        return f(*args, **kwargs)

    return decorated


def decode_token(raw_token: str, expected_type: str) -> dict:
    """
    Verifies a JWT issued by this service and checks its `type` claim.

    Shared with auth_service for single-purpose tokens (e-mail verification).
    Raises jwt.InvalidTokenError subclasses; callers map them to AppError.
    """
    payload = jwt.decode(
        raw_token,
        current_app.config["JWT_SECRET_KEY"],
        algorithms=[current_app.config.get("JWT_ALGORITHM", "HS256")],
        options={"require": ["exp", "sub"]},
    )
    if payload.get("type") != expected_type:
        raise jwt.InvalidTokenError(f"Expected a {expected_type} token.")
    return payload


def _authenticate_request() -> None:
    """
    Performs the full JWT authentication sequence and sets flask.g.user_id.

    Separated from the decorators so tests can call it inside a request
    context without wrapping a view function.
    """
    auth_header = request.headers.get("Authorization", "")

    # ── Step 1: Require Authorization header ──────────────────────────────
    if not auth_header:
        raise AppError(
            ErrorCode.TOKEN_MISSING,
            "Authentication required. Provide a Bearer token in the Authorization header.",
            401,
        )

    # ── Step 2: Parse "Bearer <token>" format ─────────────────────────────
    parts = auth_header.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise AppError(
            ErrorCode.TOKEN_INVALID,
            "Authorization header must be in the format: Bearer <token>.",
            401,
        )

    # ── Step 3: Decode and verify the JWT ─────────────────────────────────
    try:
        payload = decode_token(parts[1], ACCESS_TOKEN_TYPE)
    except jwt.ExpiredSignatureError:
        raise AppError(
            ErrorCode.TOKEN_EXPIRED,
            "The access token has expired. Use POST /auth/refresh to obtain a new one.",
            401,
        )
    except jwt.InvalidTokenError:
        # Bad signature, malformed token, missing claims or wrong token type.
        raise AppError(
            ErrorCode.TOKEN_INVALID,
            "The access token is invalid or has been tampered with.",
            401,
        )

    # ── Step 4: Extract the sub (user_id) claim ───────────────────────────
    try:
        user_id = int(payload["sub"])
    except (TypeError, ValueError):
        raise AppError(
            ErrorCode.TOKEN_INVALID,
            "The 'sub' claim in the access token is not a valid user ID.",
            401,
        )

    g.user_id = user_id
