"""
tests/integration/test_trips.py — Recorded trips, sharing, exports and photos.

Endpoints covered:
  POST   /trips               → 201
  GET    /trips               → 200
  GET    /trips/:id           → 200  owner or shared user
  PUT    /trips/:id           → 200  owner only
  DELETE /trips/:id           → 200  owner only
  POST   /trips/:id/export    → 200
  POST   /trips/:id/photos    → 201
"""

from __future__ import annotations

import io

import pytest

from .conftest import auth_headers, make_friends, make_route, signup

# Two points ~1.11 km apart along a meridian.
PATH = [[-122.4, 37.8], [-122.4, 37.81]]


def make_trip(client, token: str, **overrides):
    payload = {
        "name": "Morning ride",
        "start_time": "2026-03-01T08:00:00Z",
        "end_time": "2026-03-01T08:10:00Z",
        "path": PATH,
    }
    payload.update(overrides)
    return client.post("/api/v1/trips/", json=payload, headers=auth_headers(token))


# ═══════════════════════════════════════════════════════════════════════════
# CRUD and derived metrics
# ═══════════════════════════════════════════════════════════════════════════

class TestTripCrud:

    def test_metrics_are_derived_from_times_and_path(self, client):
        alice = signup(client)
        resp = make_trip(client, alice["access_token"], distance=1.0, duration=1.0)
        assert resp.status_code == 201
        trip = resp.get_json()["data"]["trip"]
        assert trip["duration"] == 600.0
        assert trip["distance"] == pytest.approx(1112.0, rel=0.01)
        assert trip["average_speed"] == pytest.approx(trip["distance"] / 600.0 * 3.6)
        assert trip["path"]["type"] == "LineString"

    def test_client_values_kept_without_inputs(self, client):
        alice = signup(client)
        resp = make_trip(client, alice["access_token"], end_time=None, path=None, distance=5000.0, duration=900.0)
        trip = resp.get_json()["data"]["trip"]
        assert trip["distance"] == 5000.0
        assert trip["duration"] == 900.0

    def test_end_before_start_rejected(self, client):
        alice = signup(client)
        resp = make_trip(client, alice["access_token"], end_time="2026-03-01T07:00:00Z")
        assert resp.status_code == 400
        assert resp.get_json()["field"] == "end_time"

    def test_update_cannot_move_end_before_stored_start(self, client):
        alice = signup(client)
        trip_id = make_trip(client, alice["access_token"]).get_json()["data"]["trip"]["id"]
        resp = client.put(
            f"/api/v1/trips/{trip_id}",
            json={"end_time": "2026-03-01T07:59:00Z"},
            headers=auth_headers(alice["access_token"]),
        )
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "INVALID_FIELD"

    def test_update_recomputes_duration(self, client):
        alice = signup(client)
        trip_id = make_trip(client, alice["access_token"]).get_json()["data"]["trip"]["id"]
        resp = client.put(
            f"/api/v1/trips/{trip_id}",
            json={"end_time": "2026-03-01T08:30:00Z"},
            headers=auth_headers(alice["access_token"]),
        )
        assert resp.status_code == 200
        assert resp.get_json()["data"]["trip"]["duration"] == 1800.0

    def test_route_must_belong_to_caller(self, client):
        alice = signup(client, name="Alice")
        bob = signup(client, name="Bob")
        route_id = make_route(client, bob["access_token"]).get_json()["data"]["route"]["id"]

        resp = make_trip(client, alice["access_token"], route_id=route_id)
        assert resp.status_code == 404
        assert resp.get_json()["error"] == "ROUTE_NOT_FOUND"

    def test_list_newest_first(self, client):
        alice = signup(client)
        make_trip(client, alice["access_token"], name="Older", start_time="2026-01-01T08:00:00Z", end_time=None)
        make_trip(client, alice["access_token"], name="Newer", start_time="2026-02-01T08:00:00Z", end_time=None)

        resp = client.get("/api/v1/trips/", headers=auth_headers(alice["access_token"]))
        data = resp.get_json()["data"]
        assert [t["name"] for t in data["trips"]] == ["Newer", "Older"]
        assert data["pagination"]["total"] == 2

    def test_delete_trip(self, client):
        alice = signup(client)
        headers = auth_headers(alice["access_token"])
        trip_id = make_trip(client, alice["access_token"]).get_json()["data"]["trip"]["id"]
        assert client.delete(f"/api/v1/trips/{trip_id}", headers=headers).status_code == 200
        assert client.get(f"/api/v1/trips/{trip_id}", headers=headers).status_code == 404


# ═══════════════════════════════════════════════════════════════════════════
# Sharing
# ═══════════════════════════════════════════════════════════════════════════

class TestTripSharing:

    def test_shared_friend_can_read_but_not_edit(self, client):
        alice = signup(client, name="Alice")
        bob = signup(client, name="Bob")
        make_friends(client, alice, bob)
        trip_id = make_trip(
            client, alice["access_token"], shared_with=[bob["user"]["id"]],
        ).get_json()["data"]["trip"]["id"]

        bob_headers = auth_headers(bob["access_token"])
        resp = client.get(f"/api/v1/trips/{trip_id}", headers=bob_headers)
        assert resp.status_code == 200
        assert resp.get_json()["data"]["trip"]["shared_with"] == [bob["user"]["id"]]

        resp = client.put(f"/api/v1/trips/{trip_id}", json={"name": "Mine now"}, headers=bob_headers)
        assert resp.status_code == 404

    def test_sharing_notifies_friend(self, client):
        alice = signup(client, name="Alice")
        bob = signup(client, name="Bob")
        make_friends(client, alice, bob)
        make_trip(client, alice["access_token"], shared_with=[bob["user"]["id"]])

        notes = client.get(
            "/api/v1/users/notifications", headers=auth_headers(bob["access_token"]),
        ).get_json()["data"]["notifications"]
        assert "trip_invite" in [n["type"] for n in notes]

    def test_stranger_cannot_see_trip(self, client):
        alice = signup(client, name="Alice")
        carol = signup(client, name="Carol")
        trip_id = make_trip(client, alice["access_token"]).get_json()["data"]["trip"]["id"]

        resp = client.get(f"/api/v1/trips/{trip_id}", headers=auth_headers(carol["access_token"]))
        assert resp.status_code == 404
        assert resp.get_json()["error"] == "TRIP_NOT_FOUND"

    def test_sharing_with_non_friend_rejected(self, client):
        alice = signup(client, name="Alice")
        carol = signup(client, name="Carol")
        resp = make_trip(client, alice["access_token"], shared_with=[carol["user"]["id"]])
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "NOT_FRIENDS"


# ═══════════════════════════════════════════════════════════════════════════
# Export and photos
# ═══════════════════════════════════════════════════════════════════════════

class TestTripExport:

    def test_export_gpx_uploads_and_signs(self, client, s3):
        alice = signup(client)
        trip_id = make_trip(client, alice["access_token"]).get_json()["data"]["trip"]["id"]

        resp = client.post(
            f"/api/v1/trips/{trip_id}/export",
            json={"format": "gpx"},
            headers=auth_headers(alice["access_token"]),
        )
        assert resp.status_code == 200
        data = resp.get_json()["data"]
        assert data["format"] == "gpx"
        assert data["filename"] == f"morning-ride-{trip_id}.gpx"
        assert data["export_url"].startswith("https://signed.test/wayfarer-test/exports/")

        (stored,) = s3.objects.values()
        assert stored["content_type"] == "application/gpx+xml"
        assert b"<trkpt" in stored["body"]

    def test_export_defaults_to_gpx_without_body(self, client):
        alice = signup(client)
        trip_id = make_trip(client, alice["access_token"]).get_json()["data"]["trip"]["id"]
        resp = client.post(f"/api/v1/trips/{trip_id}/export", headers=auth_headers(alice["access_token"]))
        assert resp.status_code == 200
        assert resp.get_json()["data"]["format"] == "gpx"

    def test_unknown_format_rejected(self, client):
        alice = signup(client)
        trip_id = make_trip(client, alice["access_token"]).get_json()["data"]["trip"]["id"]
        resp = client.post(
            f"/api/v1/trips/{trip_id}/export",
            json={"format": "kml"},
            headers=auth_headers(alice["access_token"]),
        )
        assert resp.status_code == 400
        assert resp.get_json()["field"] == "format"


class TestTripPhotos:

    def test_photos_are_appended(self, client, s3):
        alice = signup(client)
        headers = auth_headers(alice["access_token"])
        trip_id = make_trip(client, alice["access_token"]).get_json()["data"]["trip"]["id"]

        resp = client.post(
            f"/api/v1/trips/{trip_id}/photos",
            data={"files": [
                (io.BytesIO(b"one"), "summit.jpg", "image/jpeg"),
                (io.BytesIO(b"two"), "lake.png", "image/png"),
            ]},
            content_type="multipart/form-data",
            headers=headers,
        )
        assert resp.status_code == 201
        data = resp.get_json()["data"]
        assert len(data["uploaded"]) == 2
        assert data["uploaded"][0].endswith("-summit.jpg")
        assert data["uploaded"][1].endswith("-lake.png")
        assert [p["url"] for p in data["trip"]["photos"]] == data["uploaded"]
        assert len(s3.objects) == 2

    def test_one_bad_file_rejects_the_batch(self, client, s3):
        alice = signup(client)
        trip_id = make_trip(client, alice["access_token"]).get_json()["data"]["trip"]["id"]

        resp = client.post(
            f"/api/v1/trips/{trip_id}/photos",
            data={"files": [
                (io.BytesIO(b"one"), "summit.jpg", "image/jpeg"),
                (io.BytesIO(b"two"), "notes.txt", "text/plain"),
            ]},
            content_type="multipart/form-data",
            headers=auth_headers(alice["access_token"]),
        )
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "INVALID_FILE_TYPE"
        assert s3.objects == {}

    def test_upload_failure_leaves_trip_unchanged(self, client, s3):
        alice = signup(client)
        headers = auth_headers(alice["access_token"])
        trip_id = make_trip(client, alice["access_token"]).get_json()["data"]["trip"]["id"]
        s3.fail_uploads = True

        resp = client.post(
            f"/api/v1/trips/{trip_id}/photos",
            data={"files": [(io.BytesIO(b"one"), "summit.jpg", "image/jpeg")]},
            content_type="multipart/form-data",
            headers=headers,
        )
        assert resp.status_code == 502

        trip = client.get(f"/api/v1/trips/{trip_id}", headers=headers).get_json()["data"]["trip"]
        assert trip["photos"] == []
