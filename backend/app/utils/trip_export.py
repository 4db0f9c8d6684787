"""
utils/trip_export.py — Renders a serialised trip as GPX, CSV or GeoJSON.

Pure functions: input is the dict produced by trip_service.build_trip_dict,
output is (bytes, filename, content_type) ready for the storage client.
"""

from __future__ import annotations

import csv
import io
import json
import xml.etree.ElementTree as ET

from slugify import slugify

from backend.app.utils.geo import haversine

GPX_NAMESPACE = "http://www.topografix.com/GPX/1/1"

CONTENT_TYPES = {
    "gpx": "application/gpx+xml",
    "csv": "text/csv",
    "geojson": "application/geo+json",
}


def _coordinates(trip: dict) -> list:
    path = trip.get("path") or {}
    return path.get("coordinates") or []


def _filename(trip: dict, extension: str) -> str:
    stem = slugify(trip.get("name") or "") or "trip"
    return f"{stem}-{trip['id']}.{extension}"


def render_gpx(trip: dict) -> bytes:
    ET.register_namespace("", GPX_NAMESPACE)
    root = ET.Element(f"{{{GPX_NAMESPACE}}}gpx", {"version": "1.1", "creator": "Wayfarer"})

    metadata = ET.SubElement(root, f"{{{GPX_NAMESPACE}}}metadata")
    ET.SubElement(metadata, f"{{{GPX_NAMESPACE}}}name").text = trip.get("name") or f"Trip {trip['id']}"
    if trip.get("start_time"):
        ET.SubElement(metadata, f"{{{GPX_NAMESPACE}}}time").text = trip["start_time"]

    track = ET.SubElement(root, f"{{{GPX_NAMESPACE}}}trk")
    ET.SubElement(track, f"{{{GPX_NAMESPACE}}}name").text = trip.get("name") or f"Trip {trip['id']}"
    segment = ET.SubElement(track, f"{{{GPX_NAMESPACE}}}trkseg")
    for lng, lat in _coordinates(trip):
        ET.SubElement(segment, f"{{{GPX_NAMESPACE}}}trkpt", {"lat": f"{lat:.6f}", "lon": f"{lng:.6f}"})

    return ET.tostring(root, encoding="utf-8", xml_declaration=True)


def render_csv(trip: dict) -> bytes:
    """One row per path point with the running distance in metres."""
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow(["sequence", "longitude", "latitude", "distance_m"])

    travelled = 0.0
    previous = None
    for index, (lng, lat) in enumerate(_coordinates(trip)):
        if previous is not None:
            travelled += haversine(previous[0], previous[1], lng, lat)
        writer.writerow([index, round(lng, 6), round(lat, 6), round(travelled, 1)])
        previous = (lng, lat)

    return buffer.getvalue().encode("utf-8")


def render_geojson(trip: dict) -> bytes:
    feature = {
        "type": "Feature",
        "id": trip["id"],
        "geometry": trip.get("path"),
        "properties": {
            key: trip.get(key)
            for key in (
                "name",
                "start_time",
                "end_time",
                "duration",
                "distance",
                "average_speed",
                "max_speed",
                "is_completed",
            )
        },
    }
    return json.dumps(feature).encode("utf-8")


_RENDERERS = {
    "gpx": render_gpx,
    "csv": render_csv,
    "geojson": render_geojson,
}


def render_trip(trip: dict, fmt: str) -> tuple[bytes, str, str]:
    """Returns (body, filename, content_type). `fmt` must be a key of CONTENT_TYPES."""
    return _RENDERERS[fmt](trip), _filename(trip, fmt), CONTENT_TYPES[fmt]
