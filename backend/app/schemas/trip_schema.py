"""
schemas/trip_schema.py — Recorded trips, exports and photo metadata.

duration, distance and average_speed are accepted for trips recorded without
a path or end time; trip_service recomputes them whenever start_time,
end_time and path make them derivable.
"""

from __future__ import annotations

from datetime import timezone

from marshmallow import EXCLUDE, Schema, ValidationError, fields, validate, validates_schema

from backend.app.schemas.common_schema import (
    PaginationQuerySchema,
    coordinates_field,
    line_field,
    validate_non_empty_after_trim,
)

EXPORT_FORMATS = ("gpx", "csv", "geojson")
INCIDENT_TYPES = ("traffic", "accident", "construction", "hazard", "police")


def _non_negative(name: str) -> fields.Float:
    return fields.Float(
        load_default=None,
        allow_nan=False,
        validate=validate.Range(min=0, error=f"{name} must not be negative."),
    )


def _timestamp(**kwargs) -> fields.AwareDateTime:
    # Naive timestamps from clients are taken as UTC.
    return fields.AwareDateTime(default_timezone=timezone.utc, **kwargs)


class TripStatsSchema(Schema):
    stops = fields.Int(validate=validate.Range(min=0))
    idle_time = fields.Float(validate=validate.Range(min=0))
    moving_time = fields.Float(validate=validate.Range(min=0))
    calories = fields.Float(validate=validate.Range(min=0))


class IncidentSchema(Schema):
    type = fields.Str(required=True, validate=validate.OneOf(INCIDENT_TYPES))
    coordinates = coordinates_field(load_default=None)
    timestamp = _timestamp(load_default=None)
    description = fields.Str(load_default=None, validate=validate.Length(max=500))


class TripPhotoSchema(Schema):
    url = fields.Url(required=True, validate=validate.Length(max=500))
    coordinates = coordinates_field(load_default=None)
    timestamp = _timestamp(load_default=None)


class TripSchema(Schema):
    """POST /trips, PUT /trips/:id (PUT loads via update_schema)"""

    route_id = fields.Int(load_default=None, strict=True, validate=validate.Range(min=1))
    name = fields.Str(
        load_default=None,
        validate=[validate.Length(min=1, max=150), validate_non_empty_after_trim],
    )
    start_time = _timestamp(required=True)
    end_time = _timestamp(load_default=None)

    duration = _non_negative("duration")
    distance = _non_negative("distance")
    average_speed = _non_negative("average_speed")
    max_speed = _non_negative("max_speed")
    fuel_used = _non_negative("fuel_used")
    carbon_footprint = _non_negative("carbon_footprint")

    path = line_field(load_default=None)
    stats = fields.Nested(TripStatsSchema, load_default=None)
    incidents = fields.List(fields.Nested(IncidentSchema), load_default=list)
    photos = fields.List(fields.Nested(TripPhotoSchema), load_default=list)

    is_completed = fields.Bool(load_default=False)
    shared_with = fields.List(
        fields.Int(strict=True, validate=validate.Range(min=1)),
        load_default=list,
        validate=validate.Length(max=50),
    )

    @validates_schema
    def validate_time_order(self, data, **kwargs):
        start, end = data.get("start_time"), data.get("end_time")
        if start is not None and end is not None and end < start:
            raise ValidationError("end_time must not be before start_time.", "end_time")


class ExportTripSchema(Schema):
    """POST /trips/:id/export"""

    format = fields.Str(load_default="gpx", validate=validate.OneOf(EXPORT_FORMATS))


class TripListQuerySchema(PaginationQuerySchema):
    class Meta:
        unknown = EXCLUDE

    completed = fields.Bool(load_default=None)
