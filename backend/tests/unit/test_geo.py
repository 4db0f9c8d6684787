"""
tests/unit/test_geo.py — Great-circle helpers and pagination metadata.

Pure functions only: no database, no Flask app.
"""

from __future__ import annotations

import pytest

from backend.app.utils.geo import bounding_box, haversine, path_length
from backend.app.utils.pagination import pagination_meta


# ═══════════════════════════════════════════════════════════════════════════
# haversine
# ═══════════════════════════════════════════════════════════════════════════

class TestHaversine:

    def test_same_point_is_zero(self):
        assert haversine(-122.4, 37.8, -122.4, 37.8) == 0.0

    def test_one_degree_of_latitude(self):
        # 2πR / 360 with R = 6 371 008.8 m
        assert haversine(0, 0, 0, 1) == pytest.approx(111_195.1, abs=1)

    def test_is_symmetric(self):
        a = haversine(-122.42, 37.77, -73.99, 40.73)
        b = haversine(-73.99, 40.73, -122.42, 37.77)
        assert a == pytest.approx(b)

    def test_san_francisco_to_new_york(self):
        assert haversine(-122.42, 37.77, -73.99, 40.73) == pytest.approx(4_130_000, rel=0.01)

    def test_antipodes_do_not_overflow(self):
        assert haversine(0, 0, 180, 0) == pytest.approx(20_015_115, rel=1e-4)


# ═══════════════════════════════════════════════════════════════════════════
# bounding_box
# ═══════════════════════════════════════════════════════════════════════════

class TestBoundingBox:

    def test_box_contains_circle(self):
        min_lng, min_lat, max_lng, max_lat = bounding_box(-122.4, 37.8, 1000)
        assert min_lng < -122.4 < max_lng
        assert min_lat < 37.8 < max_lat
        assert haversine(-122.4, 37.8, -122.4, max_lat) == pytest.approx(1000, rel=1e-6)
        assert haversine(-122.4, 37.8, max_lng, 37.8) >= 1000

    def test_longitude_span_widens_with_latitude(self):
        equator = bounding_box(0, 0, 5000)
        north = bounding_box(0, 60, 5000)
        assert (north[2] - north[0]) > (equator[2] - equator[0])

    def test_near_pole_spans_all_longitudes(self):
        min_lng, _, max_lng, max_lat = bounding_box(10, 89.99, 5000)
        assert (min_lng, max_lng) == (-180.0, 180.0)
        assert max_lat == 90.0

    def test_antimeridian_spans_all_longitudes(self):
        min_lng, _, max_lng, _ = bounding_box(179.99, 0, 5000)
        assert (min_lng, max_lng) == (-180.0, 180.0)


# ═══════════════════════════════════════════════════════════════════════════
# path_length
# ═══════════════════════════════════════════════════════════════════════════

class TestPathLength:

    @pytest.mark.parametrize("path", [[], [[0, 0]]])
    def test_fewer_than_two_points(self, path):
        assert path_length(path) == 0.0

    def test_sums_segments(self):
        path = [[0, 0], [0, 1], [0, 2]]
        assert path_length(path) == pytest.approx(2 * haversine(0, 0, 0, 1))

    def test_accepts_tuples_and_generators(self):
        path = ((0, i / 100) for i in range(3))
        assert path_length(path) == pytest.approx(haversine(0, 0, 0, 0.02))


# ═══════════════════════════════════════════════════════════════════════════
# pagination_meta
# ═══════════════════════════════════════════════════════════════════════════

class TestPaginationMeta:

    @pytest.mark.parametrize("total, pages", [(0, 0), (1, 1), (20, 1), (21, 2), (100, 5)])
    def test_pages_is_ceiling(self, total, pages):
        assert pagination_meta(1, 20, total) == {"page": 1, "limit": 20, "total": total, "pages": pages}

    def test_page_beyond_last_is_reported_as_requested(self):
        assert pagination_meta(9, 10, 15)["page"] == 9
