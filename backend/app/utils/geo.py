"""
utils/geo.py — Great-circle helpers for proximity queries and trip metrics.

Coordinates are always (lng, lat) in degrees, matching GeoJSON order.
Distances are metres on a spherical Earth (mean radius), which stays within
~0.5% of the WGS-84 ellipsoid — adequate for "what is near me" queries.
"""

from __future__ import annotations

from math import asin, cos, degrees, radians, sin, sqrt
from typing import Iterable, Sequence

EARTH_RADIUS_M = 6_371_008.8


def haversine(lng1: float, lat1: float, lng2: float, lat2: float) -> float:
    """Great-circle distance in metres between two (lng, lat) points."""
    lng1, lat1, lng2, lat2 = map(radians, [lng1, lat1, lng2, lat2])
    dlat = lat2 - lat1
    dlng = lng2 - lng1
    a = sin(dlat / 2) ** 2 + cos(lat1) * cos(lat2) * sin(dlng / 2) ** 2
    return 2 * EARTH_RADIUS_M * asin(min(1.0, sqrt(a)))


def bounding_box(lng: float, lat: float, radius_m: float) -> tuple[float, float, float, float]:
    """
    Returns (min_lng, min_lat, max_lng, max_lat) enclosing the circle.

    Used as an index-friendly pre-filter; callers still apply haversine().
    Near the poles, or when the circle crosses the antimeridian, the longitude
    span widens to the full [-180, 180] range rather than wrapping.
    """
    angular = radius_m / EARTH_RADIUS_M
    delta_lat = degrees(angular)
    min_lat = max(-90.0, lat - delta_lat)
    max_lat = min(90.0, lat + delta_lat)

    if min_lat <= -90.0 or max_lat >= 90.0:
        return -180.0, min_lat, 180.0, max_lat

    delta_lng = degrees(asin(min(1.0, sin(angular) / cos(radians(lat)))))
    min_lng = lng - delta_lng
    max_lng = lng + delta_lng
    if min_lng < -180.0 or max_lng > 180.0:
        return -180.0, min_lat, 180.0, max_lat
    return min_lng, min_lat, max_lng, max_lat


def path_length(coordinates: Iterable[Sequence[float]]) -> float:
    """Sum of great-circle segment lengths of a LineString, in metres."""
    total = 0.0
    previous = None
    for point in coordinates:
        if previous is not None:
            total += haversine(previous[0], previous[1], point[0], point[1])
        previous = point
    return total
