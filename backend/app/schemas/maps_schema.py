"""
schemas/maps_schema.py — Offline map regions and crowd-sourced safety alerts.

Status transitions of an offline map depend on its stored status and are
checked in maps_service.py, not here.
"""

from __future__ import annotations

from datetime import timezone

from marshmallow import EXCLUDE, Schema, ValidationError, fields, validate, validates_schema

from backend.app.models.offline_map import OfflineMapStatus
from backend.app.models.safety_alert import AlertSeverity, AlertType
from backend.app.schemas.common_schema import (
    LocationSchema,
    NearbyQuerySchema,
    latitude_field,
    longitude_field,
    validate_non_empty_after_trim,
)


class CornerSchema(Schema):
    lat = latitude_field(required=True)
    lng = longitude_field(required=True)


class BoundsSchema(Schema):
    northeast = fields.Nested(CornerSchema, required=True)
    southwest = fields.Nested(CornerSchema, required=True)

    @validates_schema
    def validate_corner_order(self, data, **kwargs):
        ne, sw = data.get("northeast"), data.get("southwest")
        if ne and sw and ne["lat"] < sw["lat"]:
            raise ValidationError("The northeast corner must not be south of the southwest corner.", "northeast")


class OfflineMapSchema(Schema):
    """POST /maps/offline, PUT /maps/offline/:id (PUT loads via update_schema)"""

    name = fields.Str(
        required=True,
        validate=[validate.Length(min=1, max=150), validate_non_empty_after_trim],
    )
    region = fields.Str(
        required=True,
        validate=[validate.Length(min=1, max=150), validate_non_empty_after_trim],
    )
    bounds = fields.Nested(BoundsSchema, required=True)
    size = fields.Int(
        required=True,
        strict=True,
        validate=validate.Range(min=0, error="size must not be negative."),
    )
    version = fields.Str(load_default=None, validate=validate.Length(max=50))
    status = fields.Enum(OfflineMapStatus, by_value=True, load_default=OfflineMapStatus.COMPLETED)


class SafetyAlertSchema(Schema):
    """POST /maps/safety-alerts, PUT /maps/safety-alerts/:id (PUT loads via update_schema)"""

    type = fields.Enum(AlertType, by_value=True, required=True)
    location = fields.Nested(LocationSchema, required=True)
    description = fields.Str(load_default=None, validate=validate.Length(max=500))
    severity = fields.Enum(AlertSeverity, by_value=True, load_default=AlertSeverity.MEDIUM)
    expires_at = fields.AwareDateTime(default_timezone=timezone.utc, load_default=None)
    expired = fields.Bool(load_default=False)


class SafetyAlertQuerySchema(NearbyQuerySchema):
    """GET /maps/safety-alerts?lng=&lat=&radius=&type="""

    class Meta:
        unknown = EXCLUDE

    type = fields.Enum(AlertType, by_value=True, load_default=None)
