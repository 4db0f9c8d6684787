"""
schemas/place_schema.py — Places, reviews and place-search queries.

Validation responsibility:
  - This file: field types, enum values, rating bounds, comment length.
  - services/place_service.py: creator/author ownership, rating aggregates,
    PLACE_HAS_REVIEWS (all require DB state).
"""

from __future__ import annotations

from marshmallow import EXCLUDE, Schema, fields, validate

from backend.app.models.place import PlaceCategory
from backend.app.schemas.common_schema import (
    LocationSchema,
    NearbyQuerySchema,
    latitude_field,
    longitude_field,
    validate_non_empty_after_trim,
)

DAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")
SEARCH_DEFAULT_LIMIT = 20

_HHMM = validate.Regexp(r"^([01]\d|2[0-3]):[0-5]\d$", error="Times must be HH:MM (24-hour).")


class AddressSchema(Schema):
    street = fields.Str(validate=validate.Length(max=200))
    city = fields.Str(validate=validate.Length(max=100))
    state = fields.Str(validate=validate.Length(max=100))
    country = fields.Str(validate=validate.Length(max=100))
    postal_code = fields.Str(validate=validate.Length(max=20))
    formatted = fields.Str(validate=validate.Length(max=300))


class OpeningHoursSchema(Schema):
    open = fields.Str(required=True, validate=_HHMM)
    close = fields.Str(required=True, validate=_HHMM)


class PhotoSchema(Schema):
    url = fields.Url(required=True, validate=validate.Length(max=500))
    caption = fields.Str(load_default=None, validate=validate.Length(max=200))


class PlaceSchema(Schema):
    """POST /places, PUT /places/:id (PUT loads via update_schema)"""

    name = fields.Str(
        required=True,
        validate=[
            validate.Length(min=1, max=200, error="Place name must be between 1 and 200 characters."),
            validate_non_empty_after_trim,
        ],
    )
    location = fields.Nested(LocationSchema, required=True)
    address = fields.Nested(AddressSchema, load_default=None)
    category = fields.Enum(PlaceCategory, by_value=True, load_default=PlaceCategory.OTHER)
    phone = fields.Str(load_default=None, validate=validate.Length(max=30))
    website = fields.Url(load_default=None, validate=validate.Length(max=500))
    hours = fields.Dict(
        keys=fields.Str(validate=validate.OneOf(DAYS)),
        values=fields.Nested(OpeningHoursSchema),
        load_default=None,
    )
    photos = fields.List(fields.Nested(PhotoSchema), load_default=list)
    amenities = fields.List(
        fields.Str(validate=validate.Length(min=1, max=50)),
        load_default=list,
    )
    price_level = fields.Int(
        load_default=None,
        strict=True,
        validate=validate.Range(min=1, max=4, error="price_level must be between 1 and 4."),
    )


class ReviewSchema(Schema):
    """POST /places/:id/reviews, PUT /places/:id/reviews/:rid (PUT loads via update_schema)"""

    rating = fields.Int(
        required=True,
        strict=True,
        validate=validate.Range(min=1, max=5, error="rating must be between 1 and 5."),
    )
    title = fields.Str(load_default=None, validate=validate.Length(max=150))
    comment = fields.Str(
        required=True,
        validate=[
            validate.Length(min=1, max=1000, error="comment must be between 1 and 1000 characters."),
            validate_non_empty_after_trim,
        ],
    )
    photos = fields.List(fields.Nested(PhotoSchema), load_default=list)


# ── Query-string schemas ──────────────────────────────────────────────────

class PlaceSearchQuerySchema(Schema):
    """GET /places/search?q=&category=&limit="""

    class Meta:
        unknown = EXCLUDE

    q = fields.Str(required=True, validate=[validate.Length(min=1, max=200), validate_non_empty_after_trim])
    category = fields.Enum(PlaceCategory, by_value=True, load_default=None)
    limit = fields.Int(load_default=SEARCH_DEFAULT_LIMIT, validate=validate.Range(min=1, max=100))


class PlaceNearbyQuerySchema(NearbyQuerySchema):
    """GET /places/nearby?lng=&lat=&radius=&category="""

    class Meta:
        unknown = EXCLUDE

    category = fields.Enum(PlaceCategory, by_value=True, load_default=None)


class GeocodeQuerySchema(Schema):
    class Meta:
        unknown = EXCLUDE

    q = fields.Str(required=True, validate=[validate.Length(min=1, max=256), validate_non_empty_after_trim])


class ReverseGeocodeQuerySchema(Schema):
    class Meta:
        unknown = EXCLUDE

    lng = longitude_field(required=True)
    lat = latitude_field(required=True)


class DiscoverQuerySchema(Schema):
    """GET /places/discover?q=&lng=&lat=&limit= — provider POI search."""

    class Meta:
        unknown = EXCLUDE

    q = fields.Str(required=True, validate=[validate.Length(min=1, max=256), validate_non_empty_after_trim])
    lng = longitude_field(load_default=None)
    lat = latitude_field(load_default=None)
    limit = fields.Int(load_default=10, validate=validate.Range(min=1, max=10))
