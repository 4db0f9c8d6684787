"""
services/auth_service.py — Authentication business logic.

Responsibilities:
  - Sign-up and credential validation
  - JWT access token creation (HS256)
  - Refresh token lifecycle (creation, validation, revocation)
  - E-mail verification and password reset action tokens
  - Password hashing (bcrypt) and verification

Layer rules:
  - No imports from routes or schemas
  - No use of flask.request, flask.g, or HTTP status codes
  - current_app.config is read ONLY for JWT secrets, token lifetimes and the
    bcrypt cost; everything else arrives as arguments.

Token design:
  - Access token: JWT, HS256, sub = user_id (str), type = "access"
  - Refresh token: random hex string, stored in DB as SHA-256 hash (never
    the raw value). Revoked on logout and on password reset.
  - Verification token: JWT, type = "verify_email", stateless.
  - Password reset token: random URL-safe string, stored hashed on the user
    row with an expiry; single use.

Password storage:
  - Hashed with bcrypt (cost from BCRYPT_LOG_ROUNDS)
  - Raw password is never stored, never logged
"""

from __future__ import annotations

import hashlib
import secrets
from datetime import datetime, timezone

import bcrypt
import jwt
from flask import current_app
from sqlalchemy import select, update
from sqlalchemy.orm import Session

from backend.app.errors import AppError, ErrorCode
from backend.app.middleware.auth_middleware import ACCESS_TOKEN_TYPE, decode_token
from backend.app.models.base import as_utc
from backend.app.models.refresh_token import RefreshToken
from backend.app.models.user import User, default_preferences
from backend.app.services.user_service import build_user_dict, get_user_or_404

VERIFY_EMAIL_TOKEN_TYPE = "verify_email"

FORGOT_PASSWORD_MESSAGE = "If an account exists for that email, a password reset link has been sent."


# ── Private helpers ────────────────────────────────────────────────────────

def _hash_token(raw_token: str) -> str:
    """SHA-256 hex digest of a raw token string. Used for refresh and reset tokens."""
    return hashlib.sha256(raw_token.encode("utf-8")).hexdigest()


def _hash_password(password: str) -> str:
    rounds = current_app.config.get("BCRYPT_LOG_ROUNDS", 12)
    return bcrypt.hashpw(
        password.encode("utf-8"),
        bcrypt.gensalt(rounds=rounds),
    ).decode("utf-8")


def _encode_jwt(user_id: int, token_type: str, lifetime) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "type": token_type,
        "iat": now,
        "exp": now + lifetime,
        # Guarantees each issued token is unique even if generated in the same second.
        "jti": secrets.token_hex(8),
    }
    return jwt.encode(
        payload,
        current_app.config["JWT_SECRET_KEY"],
        algorithm=current_app.config.get("JWT_ALGORITHM", "HS256"),
    )


def _create_access_token(user_id: int) -> str:
    return _encode_jwt(user_id, ACCESS_TOKEN_TYPE, current_app.config["JWT_ACCESS_TOKEN_EXPIRES"])


def _create_verification_token(user_id: int) -> str:
    return _encode_jwt(user_id, VERIFY_EMAIL_TOKEN_TYPE, current_app.config["EMAIL_VERIFICATION_EXPIRES"])


def _create_refresh_token(user_id: int, session: Session) -> str:
    """
    Creates a new refresh token, stores its SHA-256 hash in the DB,
    and returns the raw token to be sent to the client once.
    """
    raw_token = secrets.token_hex(32)
    expires_at = datetime.now(timezone.utc) + current_app.config["JWT_REFRESH_TOKEN_EXPIRES"]

    session.add(RefreshToken(
        user_id=user_id,
        token_hash=_hash_token(raw_token),
        expires_at=expires_at,
    ))
    # flush so the row exists before we return; commit is the route's job
    session.flush()

    return raw_token


def _build_token_pair(user_id: int, session: Session) -> dict:
    return {
        "access_token": _create_access_token(user_id),
        "refresh_token": _create_refresh_token(user_id, session),
    }


def _find_live_refresh_token(raw_refresh_token: str, session: Session) -> RefreshToken | None:
    record = session.execute(
        select(RefreshToken).where(RefreshToken.token_hash == _hash_token(raw_refresh_token))
    ).scalar_one_or_none()
    if record is None or record.revoked:
        return None
    if as_utc(record.expires_at) <= datetime.now(timezone.utc):
        return None
    return record


# ── Public service functions ───────────────────────────────────────────────

def signup(
        email: str,
        password: str,
        name: str,
        session: Session,
        phone: str | None = None,
        expose_action_tokens: bool = False,
) -> dict:
    """
    Creates a new account and issues an access + refresh token pair.

    Raises:
      AppError(DUPLICATE_EMAIL, 409) — email already registered

    Returns: {"user": {...}, "access_token", "refresh_token"
              [, "verification_token"]}
    """
    existing = session.execute(
        select(User).where(User.email == email)
    ).scalar_one_or_none()
    if existing is not None:
        raise AppError(
            ErrorCode.DUPLICATE_EMAIL,
            f"The email address '{email}' is already registered.",
            409,
            field="email",
        )

    user = User(
        email=email,
        password_hash=_hash_password(password),
        name=name.strip(),
        phone=phone,
        preferences=default_preferences(),
    )
    session.add(user)
    session.flush()  # populate user.id before creating refresh token

    result = {
        "user": build_user_dict(user),
        **_build_token_pair(user.id, session),
    }
    if expose_action_tokens:
        result["verification_token"] = _create_verification_token(user.id)
    return result


def login(email: str, password: str, session: Session) -> dict:
    """
    Validates credentials, stamps last_login and issues a new token pair.

    Raises:
      AppError(INVALID_CREDENTIALS, 401) — unknown email, wrong password or
      deactivated account. One error for all three avoids account enumeration.
    """
    user = session.execute(
        select(User).where(User.email == email)
    ).scalar_one_or_none()

    # bcrypt.checkpw compares in constant time.
    if user is None or not user.is_active or not bcrypt.checkpw(
            password.encode("utf-8"),
            user.password_hash.encode("utf-8"),
    ):
        raise AppError(
            ErrorCode.INVALID_CREDENTIALS,
            "The email or password is incorrect.",
            401,
        )

    user.last_login = datetime.now(timezone.utc)
    tokens = _build_token_pair(user.id, session)

    return {
        "user": build_user_dict(user),
        **tokens,
    }


def refresh_access_token(raw_refresh_token: str, session: Session) -> dict:
    """
    Validates a refresh token and issues a new access token.

    The refresh token itself is not rotated on use; it stays valid until it
    expires or is revoked.

    Raises:
      AppError(REFRESH_TOKEN_INVALID, 401) — not found, revoked, expired, or
      the account has been deactivated.
    """
    record = _find_live_refresh_token(raw_refresh_token, session)
    if record is None or not record.user.is_active:
        raise AppError(
            ErrorCode.REFRESH_TOKEN_INVALID,
            "The refresh token is invalid, expired, or has been revoked.",
            401,
        )

    return {"access_token": _create_access_token(record.user_id)}


def logout(raw_refresh_token: str, user_id: int, session: Session) -> None:
    """
    Revokes one of the caller's refresh tokens.

    Access tokens are short-lived and are not revocable without a server-side
    denylist.

    Raises:
      AppError(REFRESH_TOKEN_INVALID, 401) — token unknown, already revoked,
      or issued to another user.
    """
    record = _find_live_refresh_token(raw_refresh_token, session)
    if record is None or record.user_id != user_id:
        raise AppError(
            ErrorCode.REFRESH_TOKEN_INVALID,
            "The refresh token is invalid or has already been revoked.",
            401,
        )

    record.revoked = True
    session.flush()


def verify_email(token: str, session: Session) -> dict:
    """
    Marks the token's user as verified. Idempotent for an already-verified
    account.

    Raises:
      AppError(VERIFICATION_TOKEN_INVALID, 400) — bad signature, expired,
      wrong token type, or the user no longer exists.
    """
    invalid = AppError(
        ErrorCode.VERIFICATION_TOKEN_INVALID,
        "The verification link is invalid or has expired.",
        400,
        field="token",
    )
    try:
        payload = decode_token(token, VERIFY_EMAIL_TOKEN_TYPE)
        user_id = int(payload["sub"])
    except (jwt.InvalidTokenError, TypeError, ValueError):
        raise invalid

    user = session.get(User, user_id)
    if user is None or not user.is_active:
        raise invalid

    user.email_verified = True
    session.flush()
    return {"user": build_user_dict(user)}


def forgot_password(email: str, session: Session, expose_action_tokens: bool = False) -> dict:
    """
    Issues a single-use password reset token when the account exists.

    The response is identical whether or not the e-mail is registered. The
    raw token is returned only when `expose_action_tokens` is set (local
    development and tests); otherwise it would go out by e-mail.
    """
    result: dict = {"message": FORGOT_PASSWORD_MESSAGE}

    user = session.execute(
        select(User).where(User.email == email)
    ).scalar_one_or_none()
    if user is None or not user.is_active:
        return result

    raw_token = secrets.token_urlsafe(32)
    user.reset_password_token_hash = _hash_token(raw_token)
    user.reset_password_expires_at = (
        datetime.now(timezone.utc) + current_app.config["PASSWORD_RESET_EXPIRES"]
    )
    session.flush()

    if expose_action_tokens:
        result["reset_token"] = raw_token
    return result


def reset_password(token: str, new_password: str, session: Session) -> None:
    """
    Sets a new password, consumes the reset token and revokes every refresh
    token of the account so other sessions must sign in again.

    Raises:
      AppError(RESET_TOKEN_INVALID, 400) — unknown, used or expired token.
    """
    user = session.execute(
        select(User).where(User.reset_password_token_hash == _hash_token(token))
    ).scalar_one_or_none()

    expires_at = as_utc(user.reset_password_expires_at) if user is not None else None
    if user is None or expires_at is None or expires_at <= datetime.now(timezone.utc):
        raise AppError(
            ErrorCode.RESET_TOKEN_INVALID,
            "The password reset token is invalid or has expired.",
            400,
            field="token",
        )

    user.password_hash = _hash_password(new_password)
    user.reset_password_token_hash = None
    user.reset_password_expires_at = None

    session.execute(
        update(RefreshToken)
        .where(RefreshToken.user_id == user.id, RefreshToken.revoked.is_(False))
        .values(revoked=True)
    )
    session.flush()


def get_current_user(user_id: int, session: Session) -> dict:
    """
    Returns the account of the authenticated user.

    Raises:
      AppError(USER_NOT_FOUND, 404) — the account was removed or deactivated
      after the token was issued.
    """
    return {"user": build_user_dict(get_user_or_404(user_id, session))}
