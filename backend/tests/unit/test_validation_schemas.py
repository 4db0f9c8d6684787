"""
tests/unit/test_validation_schemas.py — Unit tests for the marshmallow schemas.

What this file proves:
  - Every schema accepts valid input and fills in its defaults
  - Field rules (type, range, enum, length, coordinate bounds) reject bad input
    with the error keyed on the offending field
  - Cross-field rules that need no database (time order, corner order,
    recipient XOR group) live in the schemas
  - Rules that need DB state (friendship, ownership, status transitions) are
    NOT tested here; they belong in services

Unit test constraints:
  - No database and no Flask application context.
    Schemas inherit from marshmallow.Schema directly, which is why they can be
    instantiated bare.
"""

from __future__ import annotations

from datetime import datetime, timezone

import pytest
from marshmallow import ValidationError

from backend.app.models.message import MessageType
from backend.app.models.offline_map import OfflineMapStatus
from backend.app.models.place import PlaceCategory
from backend.app.models.route import RouteType, TransportMode
from backend.app.models.safety_alert import AlertSeverity
from backend.app.schemas.auth_schema import ResetPasswordSchema, SignupSchema
from backend.app.schemas.common_schema import LocationSchema, PaginationQuerySchema, update_schema
from backend.app.schemas.maps_schema import OfflineMapSchema, SafetyAlertQuerySchema, SafetyAlertSchema
from backend.app.schemas.place_schema import PlaceSchema, ReviewSchema
from backend.app.schemas.route_schema import DirectionsSchema, OptimizeSchema, RouteSchema
from backend.app.schemas.social_schema import MessageListQuerySchema, SendMessageSchema
from backend.app.schemas.trip_schema import ExportTripSchema, TripSchema
from backend.app.schemas.user_schema import PreferencesSchema


def _errors(schema, data, **kwargs) -> dict:
    with pytest.raises(ValidationError) as exc_info:
        schema.load(data, **kwargs)
    return exc_info.value.messages


# ═══════════════════════════════════════════════════════════════════════════
# Auth
# ═══════════════════════════════════════════════════════════════════════════

class TestSignupSchema:

    def test_email_is_normalised(self):
        result = SignupSchema().load({
            "email": "  Alice@Example.COM ",
            "password": "Secure123",
            "name": "Alice",
        })
        assert result["email"] == "alice@example.com"
        assert result["phone"] is None

    @pytest.mark.parametrize("password", ["short1", "allletters", "12345678"])
    def test_weak_passwords_rejected(self, password):
        errors = _errors(SignupSchema(), {"email": "a@b.com", "password": password, "name": "A"})
        assert "password" in errors

    def test_blank_name_rejected(self):
        errors = _errors(SignupSchema(), {"email": "a@b.com", "password": "Secure123", "name": "   "})
        assert "name" in errors

    def test_reset_password_uses_same_strength_rule(self):
        errors = _errors(ResetPasswordSchema(), {"token": "t", "password": "password"})
        assert "password" in errors


# ═══════════════════════════════════════════════════════════════════════════
# Shared
# ═══════════════════════════════════════════════════════════════════════════

class TestCommonSchemas:

    def test_pagination_defaults(self):
        assert PaginationQuerySchema().load({}) == {"page": 1, "limit": 20}

    def test_pagination_ignores_unknown_params(self):
        assert PaginationQuerySchema().load({"page": "2", "_": "123"}) == {"page": 2, "limit": 20}

    @pytest.mark.parametrize("params", [{"limit": "101"}, {"limit": "0"}, {"page": "0"}])
    def test_pagination_bounds(self, params):
        errors = _errors(PaginationQuerySchema(), params)
        assert set(errors) == set(params)

    def test_location_rejects_out_of_range_latitude(self):
        errors = _errors(LocationSchema(), {"coordinates": [10, 91]})
        assert "coordinates" in errors

    def test_location_rejects_three_values(self):
        errors = _errors(LocationSchema(), {"coordinates": [10, 20, 30]})
        assert "coordinates" in errors

    def test_update_schema_makes_top_level_fields_optional(self):
        assert update_schema(PlaceSchema).load({"name": "Renamed"}) == {"name": "Renamed"}

    def test_update_schema_keeps_nested_objects_complete(self):
        errors = _errors(update_schema(PlaceSchema), {"location": {}})
        assert errors == {"location": {"coordinates": ["Missing data for required field."]}}

    def test_update_schema_requires_both_bounds_corners(self):
        errors = _errors(update_schema(OfflineMapSchema), {"bounds": {"northeast": {"lat": 1}}})
        assert set(errors["bounds"]) == {"northeast", "southwest"}
        assert "lng" in errors["bounds"]["northeast"]

    def test_update_schema_requires_waypoint_coordinates(self):
        errors = _errors(update_schema(RouteSchema), {"origin": {"name": "x"}})
        assert "coordinates" in errors["origin"]


# ═══════════════════════════════════════════════════════════════════════════
# Routes
# ═══════════════════════════════════════════════════════════════════════════

class TestRouteSchemas:

    ROUTE = {
        "origin": {"coordinates": [-122.42, 37.77]},
        "destination": {"coordinates": [-122.27, 37.80]},
        "distance": 1000,
        "duration": 120,
    }

    def test_route_defaults(self):
        result = RouteSchema().load(self.ROUTE)
        assert result["route_type"] is RouteType.FASTEST
        assert result["transport_mode"] is TransportMode.DRIVING
        assert result["waypoints"] == []
        assert result["traffic_enabled"] is True

    def test_partial_update_skips_required_fields(self):
        assert RouteSchema().load({"is_saved": True}, partial=True) == {"is_saved": True}

    def test_unknown_route_type_rejected(self):
        errors = _errors(RouteSchema(), {**self.ROUTE, "route_type": "scenic"})
        assert "route_type" in errors

    def test_directions_defaults(self):
        result = DirectionsSchema().load({"origin": [0, 0], "destination": [1, 1]})
        assert result["traffic"] is True
        assert result["profile"] is None
        assert result["waypoints"] == []

    def test_optimize_open_trip_needs_fixed_endpoints(self):
        errors = _errors(OptimizeSchema(), {"waypoints": [[0, 0], [1, 1]], "source": "any"})
        assert "roundtrip" in errors

    def test_optimize_roundtrip_allows_any_source(self):
        result = OptimizeSchema().load({"waypoints": [[0, 0], [1, 1]], "source": "any", "roundtrip": True})
        assert result["source"] == "any"

    def test_optimize_waypoint_limit(self):
        errors = _errors(OptimizeSchema(), {"waypoints": [[0, i / 10] for i in range(13)]})
        assert "waypoints" in errors


# ═══════════════════════════════════════════════════════════════════════════
# Trips
# ═══════════════════════════════════════════════════════════════════════════

class TestTripSchema:

    def test_naive_timestamp_taken_as_utc(self):
        result = TripSchema().load({"start_time": "2026-03-01T08:00:00"})
        assert result["start_time"] == datetime(2026, 3, 1, 8, 0, tzinfo=timezone.utc)

    def test_end_before_start_keyed_on_end_time(self):
        errors = _errors(TripSchema(), {
            "start_time": "2026-03-01T08:00:00Z",
            "end_time": "2026-03-01T07:00:00Z",
        })
        assert "end_time" in errors

    def test_negative_metric_rejected(self):
        errors = _errors(TripSchema(), {"start_time": "2026-03-01T08:00:00Z", "distance": -5})
        assert "distance" in errors

    def test_shared_with_rejects_strings(self):
        errors = _errors(TripSchema(), {"start_time": "2026-03-01T08:00:00Z", "shared_with": ["2"]})
        assert "shared_with" in errors

    def test_export_defaults_to_gpx(self):
        assert ExportTripSchema().load({}) == {"format": "gpx"}


# ═══════════════════════════════════════════════════════════════════════════
# Places
# ═══════════════════════════════════════════════════════════════════════════

class TestPlaceSchemas:

    def test_place_defaults(self):
        result = PlaceSchema().load({"name": "Tartine", "location": {"coordinates": [-122.42, 37.76]}})
        assert result["category"] is PlaceCategory.OTHER
        assert result["location"]["type"] == "Point"
        assert result["amenities"] == []

    def test_hours_need_known_days(self):
        errors = _errors(PlaceSchema(), {
            "name": "Tartine",
            "location": {"coordinates": [-122.42, 37.76]},
            "hours": {"funday": {"open": "08:00", "close": "17:00"}},
        })
        assert "hours" in errors

    def test_hours_need_hh_mm(self):
        errors = _errors(PlaceSchema(), {
            "name": "Tartine",
            "location": {"coordinates": [-122.42, 37.76]},
            "hours": {"monday": {"open": "8am", "close": "17:00"}},
        })
        assert "hours" in errors

    @pytest.mark.parametrize("rating", [0, 6, 4.5, "5"])
    def test_review_rating_is_integer_one_to_five(self, rating):
        errors = _errors(ReviewSchema(), {"rating": rating, "comment": "ok"})
        assert "rating" in errors


# ═══════════════════════════════════════════════════════════════════════════
# Social
# ═══════════════════════════════════════════════════════════════════════════

class TestSocialSchemas:

    def test_direct_message_defaults(self):
        result = SendMessageSchema().load({"recipient": 2, "content": "hi"})
        assert result["type"] is MessageType.TEXT
        assert result["group"] is None

    @pytest.mark.parametrize("target", [{}, {"recipient": 2, "group": 3}])
    def test_exactly_one_target(self, target):
        errors = _errors(SendMessageSchema(), {**target, "content": "hi"})
        assert "recipient" in errors

    def test_location_message_needs_location(self):
        errors = _errors(SendMessageSchema(), {"recipient": 2, "content": "here", "type": "location"})
        assert "location" in errors

    def test_message_query_reads_with_param(self):
        result = MessageListQuerySchema().load({"with": "7"})
        assert result["with_user"] == 7
        assert result["group"] is None

    def test_message_query_rejects_both_filters(self):
        errors = _errors(MessageListQuerySchema(), {"with": "7", "group": "3"})
        assert "with" in errors


# ═══════════════════════════════════════════════════════════════════════════
# Users
# ═══════════════════════════════════════════════════════════════════════════

class TestPreferencesSchema:

    def test_partial_notifications(self):
        result = PreferencesSchema().load({"notifications": {"sms": True}})
        assert result == {"notifications": {"sms": True}}

    def test_unknown_theme_rejected(self):
        errors = _errors(PreferencesSchema(), {"theme": "neon"})
        assert "theme" in errors


# ═══════════════════════════════════════════════════════════════════════════
# Maps
# ═══════════════════════════════════════════════════════════════════════════

class TestMapsSchemas:

    BOUNDS = {"northeast": {"lat": 38.0, "lng": -122.0}, "southwest": {"lat": 37.0, "lng": -123.0}}

    def test_offline_map_defaults_to_completed(self):
        result = OfflineMapSchema().load({"name": "Bay", "region": "CA", "bounds": self.BOUNDS, "size": 10})
        assert result["status"] is OfflineMapStatus.COMPLETED

    def test_inverted_corners_rejected(self):
        errors = _errors(OfflineMapSchema(), {
            "name": "Bay",
            "region": "CA",
            "bounds": {"northeast": self.BOUNDS["southwest"], "southwest": self.BOUNDS["northeast"]},
            "size": 10,
        })
        assert "northeast" in errors["bounds"]

    def test_size_must_be_integer(self):
        errors = _errors(OfflineMapSchema(), {"name": "Bay", "region": "CA", "bounds": self.BOUNDS, "size": 1.5})
        assert "size" in errors

    def test_alert_defaults(self):
        result = SafetyAlertSchema().load({"type": "hazard", "location": {"coordinates": [0, 0]}})
        assert result["severity"] is AlertSeverity.MEDIUM
        assert result["expired"] is False
        assert result["expires_at"] is None

    @pytest.mark.parametrize("radius", ["0", "100001", "-5"])
    def test_alert_query_radius_bounds(self, radius):
        errors = _errors(SafetyAlertQuerySchema(), {"lng": "0", "lat": "0", "radius": radius})
        assert "radius" in errors
