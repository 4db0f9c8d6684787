"""
schemas/common_schema.py — Validators and query-string schemas shared by
several resources.

Query-string schemas use unknown=EXCLUDE so that cache-busting or tracking
parameters never turn a GET into a 400. Body schemas keep marshmallow's
default (RAISE) so that typos in a JSON body are reported.

IMPORTANT: All schemas inherit from marshmallow.Schema directly.
"""

from __future__ import annotations

from marshmallow import EXCLUDE, Schema, ValidationError, fields, validate

DEFAULT_PAGE_LIMIT = 20
MAX_PAGE_LIMIT = 100


# ── Shared validators ─────────────────────────────────────────────────────

def validate_non_empty_after_trim(value: str) -> None:
    """validate.Length(min=1) alone accepts "   "; strip first, then check."""
    if not value.strip():
        raise ValidationError("This field must not be blank or contain only whitespace.")


def validate_lng_lat(value: list) -> None:
    """A GeoJSON position: exactly [lng, lat] within WGS-84 bounds."""
    if len(value) != 2:
        raise ValidationError("Coordinates must be [longitude, latitude].")
    lng, lat = value
    if not -180 <= lng <= 180:
        raise ValidationError("Longitude must be between -180 and 180.")
    if not -90 <= lat <= 90:
        raise ValidationError("Latitude must be between -90 and 90.")


def coordinates_field(**kwargs) -> fields.List:
    return fields.List(fields.Float(allow_nan=False), validate=validate_lng_lat, **kwargs)


def line_field(**kwargs) -> fields.List:
    """A LineString coordinate array: a list of [lng, lat] positions."""
    return fields.List(coordinates_field(), **kwargs)


def longitude_field(**kwargs) -> fields.Float:
    return fields.Float(
        validate=validate.Range(min=-180, max=180, error="Longitude must be between -180 and 180."),
        allow_nan=False,
        **kwargs,
    )


def latitude_field(**kwargs) -> fields.Float:
    return fields.Float(
        validate=validate.Range(min=-90, max=90, error="Latitude must be between -90 and 90."),
        allow_nan=False,
        **kwargs,
    )


class WaypointSchema(Schema):
    """{coordinates: [lng, lat], address?, name?} — route origin, destination, stops."""

    coordinates = coordinates_field(required=True)
    address = fields.Str(load_default=None, validate=validate.Length(max=255))
    name = fields.Str(load_default=None, validate=validate.Length(max=150))


class LocationSchema(Schema):
    """A bare GeoJSON Point body: {coordinates: [lng, lat]}."""

    type = fields.Str(load_default="Point", validate=validate.Equal("Point"))
    coordinates = coordinates_field(required=True)


def update_schema(schema_cls: type[Schema]) -> Schema:
    """
    The schema for a PUT body: every top-level field becomes optional, but a
    nested object that is sent must still be complete.

    Only top-level names are partial; fields.Nested sees an empty partial.
    """
    return schema_cls(partial=tuple(schema_cls._declared_fields))


# ── Query-string schemas ──────────────────────────────────────────────────

class PaginationQuerySchema(Schema):
    """?page=&limit= — page is 1-based; limit is capped at MAX_PAGE_LIMIT."""

    class Meta:
        unknown = EXCLUDE

    page = fields.Int(
        load_default=1,
        validate=validate.Range(min=1, error="page must be 1 or greater."),
    )
    limit = fields.Int(
        load_default=DEFAULT_PAGE_LIMIT,
        validate=validate.Range(
            min=1,
            max=MAX_PAGE_LIMIT,
            error=f"limit must be between 1 and {MAX_PAGE_LIMIT}.",
        ),
    )


class NearbyQuerySchema(Schema):
    """?lng=&lat=&radius= — radius in metres; the default is set per endpoint."""

    class Meta:
        unknown = EXCLUDE

    lng = longitude_field(required=True)
    lat = latitude_field(required=True)
    radius = fields.Float(
        load_default=None,
        allow_nan=False,
        validate=validate.Range(
            min=0,
            max=100_000,
            min_inclusive=False,
            error="radius must be greater than 0 and at most 100000 metres.",
        ),
    )
