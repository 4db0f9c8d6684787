"""
schemas/route_schema.py — Saved routes and the Mapbox pass-through endpoints.

PUT /routes/:id loads RouteSchema through update_schema, so an update is
held to the same constraints as a create.
"""

from __future__ import annotations

from marshmallow import EXCLUDE, Schema, ValidationError, fields, validate, validates_schema

from backend.app.clients.mapbox_client import DIRECTIONS_PROFILES, OPTIMIZATION_PROFILES
from backend.app.models.route import RouteType, TransportMode
from backend.app.schemas.common_schema import (
    PaginationQuerySchema,
    WaypointSchema,
    coordinates_field,
    line_field,
    validate_non_empty_after_trim,
)

MIN_OPTIMIZE_WAYPOINTS = 2
MAX_OPTIMIZE_WAYPOINTS = 12
MAX_MATRIX_POINTS = 10


class RouteSchema(Schema):
    """POST /routes, PUT /routes/:id"""

    name = fields.Str(
        load_default=None,
        validate=[
            validate.Length(min=1, max=150, error="Route name must be between 1 and 150 characters."),
            validate_non_empty_after_trim,
        ],
    )
    origin = fields.Nested(WaypointSchema, required=True)
    destination = fields.Nested(WaypointSchema, required=True)
    waypoints = fields.List(fields.Nested(WaypointSchema), load_default=list)

    # metres / seconds, as reported by the directions lookup that produced the route
    distance = fields.Float(
        required=True,
        allow_nan=False,
        validate=validate.Range(min=0, error="distance must not be negative."),
    )
    duration = fields.Float(
        required=True,
        allow_nan=False,
        validate=validate.Range(min=0, error="duration must not be negative."),
    )
    geometry = line_field(load_default=None)

    route_type = fields.Enum(RouteType, by_value=True, load_default=RouteType.FASTEST)
    transport_mode = fields.Enum(TransportMode, by_value=True, load_default=TransportMode.DRIVING)

    traffic_enabled = fields.Bool(load_default=True)
    is_saved = fields.Bool(load_default=False)
    is_completed = fields.Bool(load_default=False)


class RouteListQuerySchema(PaginationQuerySchema):
    """GET /routes?saved=&completed="""

    class Meta:
        unknown = EXCLUDE

    saved = fields.Bool(load_default=None)
    completed = fields.Bool(load_default=None)


class OptimizeSchema(Schema):
    """
    POST /routes/optimize

    Mapbox's Optimization API accepts between 2 and 12 coordinates per
    request; anything outside that range is rejected here instead of costing
    an upstream call.
    """

    waypoints = fields.List(
        coordinates_field(),
        required=True,
        validate=validate.Length(
            min=MIN_OPTIMIZE_WAYPOINTS,
            max=MAX_OPTIMIZE_WAYPOINTS,
            error=f"Between {MIN_OPTIMIZE_WAYPOINTS} and {MAX_OPTIMIZE_WAYPOINTS} waypoints are required.",
        ),
    )
    profile = fields.Str(load_default="driving", validate=validate.OneOf(OPTIMIZATION_PROFILES))
    source = fields.Str(load_default="first", validate=validate.OneOf(("any", "first")))
    destination = fields.Str(load_default="last", validate=validate.OneOf(("any", "last")))
    roundtrip = fields.Bool(load_default=False)

    @validates_schema
    def validate_open_trip(self, data, **kwargs):
        # Mapbox only supports non-roundtrip requests with fixed endpoints.
        if not data.get("roundtrip", False) and (
                data.get("source") == "any" or data.get("destination") == "any"
        ):
            raise ValidationError(
                "source='first' and destination='last' are required when roundtrip is false.",
                "roundtrip",
            )


class DirectionsSchema(Schema):
    """POST /routes/directions"""

    origin = coordinates_field(required=True)
    destination = coordinates_field(required=True)
    waypoints = fields.List(
        coordinates_field(),
        load_default=list,
        validate=validate.Length(max=23, error="At most 23 intermediate waypoints are allowed."),
    )
    profile = fields.Str(load_default=None, validate=validate.OneOf(DIRECTIONS_PROFILES))
    alternatives = fields.Bool(load_default=True)
    traffic = fields.Bool(load_default=True)


class MatrixSchema(Schema):
    """POST /routes/matrix — one routing call per origin/destination pair."""

    origins = fields.List(
        coordinates_field(),
        required=True,
        validate=validate.Length(min=1, max=MAX_MATRIX_POINTS),
    )
    destinations = fields.List(
        coordinates_field(),
        required=True,
        validate=validate.Length(min=1, max=MAX_MATRIX_POINTS),
    )
    profile = fields.Str(load_default=None, validate=validate.OneOf(DIRECTIONS_PROFILES))


class ShareRouteSchema(Schema):
    """POST /routes/:id/share"""

    user_ids = fields.List(
        fields.Int(strict=True, validate=validate.Range(min=1)),
        required=True,
        validate=validate.Length(min=1, max=50, error="Between 1 and 50 recipients are required."),
    )
    message = fields.Str(load_default=None, validate=validate.Length(max=500))
