"""
schemas/user_schema.py — Profile, preferences and notification queries.

Preferences are validated field by field and merged into the stored object by
user_service, so a client may send only the keys it wants to change.
"""

from __future__ import annotations

from marshmallow import EXCLUDE, Schema, fields, validate

from backend.app.schemas.common_schema import PaginationQuerySchema, validate_non_empty_after_trim

LANGUAGES = ("en", "es", "fr", "de", "it", "pt", "ja", "ko", "zh")
UNITS = ("metric", "imperial")
THEMES = ("light", "dark", "auto")


class UpdateProfileSchema(Schema):
    """PUT /users/profile — every field optional; null clears phone/avatar."""

    name = fields.Str(
        validate=[
            validate.Length(min=1, max=100, error="Name must be between 1 and 100 characters."),
            validate_non_empty_after_trim,
        ],
    )
    phone = fields.Str(allow_none=True, validate=validate.Length(max=30))
    avatar = fields.Url(allow_none=True, validate=validate.Length(max=500))


class NotificationPreferencesSchema(Schema):
    push = fields.Bool()
    email = fields.Bool()
    sms = fields.Bool()


class PreferencesSchema(Schema):
    """PUT /users/preferences"""

    language = fields.Str(validate=validate.OneOf(LANGUAGES))
    units = fields.Str(validate=validate.OneOf(UNITS))
    theme = fields.Str(validate=validate.OneOf(THEMES))
    voice_enabled = fields.Bool()
    notifications = fields.Nested(NotificationPreferencesSchema)


class NotificationsQuerySchema(PaginationQuerySchema):
    """GET /users/notifications?unread=true"""

    class Meta:
        unknown = EXCLUDE

    unread = fields.Bool(load_default=None)
