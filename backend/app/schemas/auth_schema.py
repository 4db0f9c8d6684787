"""
schemas/auth_schema.py — Marshmallow schemas for authentication endpoints.

Validation responsibility:
  - This file: field types, lengths, formats, password strength.
  - services/auth_service.py: DUPLICATE_EMAIL and token checks (require a
    DB lookup or a signature check, not a schema concern).

IMPORTANT: All schemas inherit from marshmallow.Schema directly.
           Do NOT use flask-marshmallow's ma.Schema; it needs an active
           Flask app context and breaks unit tests.
"""

from __future__ import annotations

from marshmallow import Schema, ValidationError, fields, pre_load, validate, validates

from backend.app.schemas.common_schema import validate_non_empty_after_trim


def _validate_password_strength(value: str) -> None:
    """Min 8 chars, at least one letter and one digit."""
    if len(value) < 8:
        raise ValidationError("Password must be at least 8 characters long.")
    if not any(c.isalpha() for c in value):
        raise ValidationError("Password must contain at least one letter.")
    if not any(c.isdigit() for c in value):
        raise ValidationError("Password must contain at least one digit.")


class _EmailNormalisingSchema(Schema):
    """Lower-cases and strips `email` before validation so lookups are case-insensitive."""

    @pre_load
    def normalise_email(self, data, **kwargs):
        if isinstance(data, dict) and isinstance(data.get("email"), str):
            data = {**data, "email": data["email"].strip().lower()}
        return data


class SignupSchema(_EmailNormalisingSchema):
    """
    POST /auth/signup

    Field rules:
      email    : valid email format, max 255
      password : min 8 chars, at least one letter and one digit
      name     : non-empty after trim, max 100
    """

    email = fields.Email(required=True, validate=validate.Length(max=255))
    password = fields.Str(required=True, load_only=True)
    name = fields.Str(
        required=True,
        validate=[
            validate.Length(min=1, max=100, error="Name must be between 1 and 100 characters."),
            validate_non_empty_after_trim,
        ],
    )
    phone = fields.Str(load_default=None, validate=validate.Length(max=30))

    @validates("password")
    def validate_password(self, value: str, **kwargs) -> None:
        _validate_password_strength(value)


class LoginSchema(_EmailNormalisingSchema):
    """
    POST /auth/login

    Credential correctness is checked in auth_service.py
    (INVALID_CREDENTIALS, 401).
    """

    email = fields.Email(required=True)
    password = fields.Str(required=True, load_only=True)


class RefreshTokenSchema(Schema):
    """POST /auth/refresh and POST /auth/logout — the raw refresh token."""

    refresh_token = fields.Str(required=True, validate=validate.Length(min=1))


class VerifyEmailSchema(Schema):
    """POST /auth/verify-email"""

    token = fields.Str(required=True, validate=validate.Length(min=1))


class ForgotPasswordSchema(_EmailNormalisingSchema):
    """POST /auth/forgot-password"""

    email = fields.Email(required=True)


class ResetPasswordSchema(Schema):
    """POST /auth/reset-password — new password follows the signup rules."""

    token = fields.Str(required=True, validate=validate.Length(min=1))
    password = fields.Str(required=True, load_only=True)

    @validates("password")
    def validate_password(self, value: str, **kwargs) -> None:
        _validate_password_strength(value)
