"""
tests/unit/test_trip_export.py — GPX / CSV / GeoJSON rendering of a trip dict.
"""

from __future__ import annotations

import csv
import io
import json
import xml.etree.ElementTree as ET

import pytest

from backend.app.utils.trip_export import CONTENT_TYPES, GPX_NAMESPACE, render_trip

TRIP = {
    "id": 42,
    "name": "Sunday Loop!",
    "start_time": "2026-03-01T08:00:00+00:00",
    "end_time": "2026-03-01T09:00:00+00:00",
    "duration": 3600.0,
    "distance": 2224.0,
    "average_speed": 2.2,
    "max_speed": None,
    "is_completed": True,
    "path": {"type": "LineString", "coordinates": [[-122.4, 37.8], [-122.4, 37.81], [-122.4, 37.82]]},
}


class TestFilenames:

    @pytest.mark.parametrize("fmt", ["gpx", "csv", "geojson"])
    def test_filename_and_content_type(self, fmt):
        _, filename, content_type = render_trip(TRIP, fmt)
        assert filename == f"sunday-loop-42.{fmt}"
        assert content_type == CONTENT_TYPES[fmt]

    def test_unnamed_trip_falls_back(self):
        _, filename, _ = render_trip({**TRIP, "name": None}, "csv")
        assert filename == "trip-42.csv"


class TestGpx:

    def test_one_trackpoint_per_coordinate(self):
        body, _, _ = render_trip(TRIP, "gpx")
        assert body.startswith(b"<?xml")

        root = ET.fromstring(body)
        ns = {"g": GPX_NAMESPACE}
        points = root.findall("./g:trk/g:trkseg/g:trkpt", ns)
        assert [(p.get("lon"), p.get("lat")) for p in points] == [
            ("-122.400000", "37.800000"),
            ("-122.400000", "37.810000"),
            ("-122.400000", "37.820000"),
        ]
        assert root.find("./g:metadata/g:name", ns).text == "Sunday Loop!"
        assert root.find("./g:metadata/g:time", ns).text == TRIP["start_time"]

    def test_trip_without_path_has_empty_segment(self):
        body, _, _ = render_trip({**TRIP, "path": None}, "gpx")
        root = ET.fromstring(body)
        assert root.findall(f".//{{{GPX_NAMESPACE}}}trkpt") == []


class TestCsv:

    def test_running_distance(self):
        body, _, _ = render_trip(TRIP, "csv")
        rows = list(csv.reader(io.StringIO(body.decode("utf-8"))))
        assert rows[0] == ["sequence", "longitude", "latitude", "distance_m"]
        assert len(rows) == 4
        assert rows[1] == ["0", "-122.4", "37.8", "0.0"]
        assert float(rows[2][3]) == pytest.approx(1111.95, abs=0.1)
        assert float(rows[3][3]) == pytest.approx(2223.9, abs=0.2)


class TestGeoJson:

    def test_feature_carries_path_and_properties(self):
        body, _, _ = render_trip(TRIP, "geojson")
        feature = json.loads(body)
        assert feature["type"] == "Feature"
        assert feature["id"] == 42
        assert feature["geometry"] == TRIP["path"]
        assert feature["properties"]["name"] == "Sunday Loop!"
        assert feature["properties"]["is_completed"] is True
        assert "path" not in feature["properties"]
