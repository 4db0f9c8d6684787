"""
tests/integration/test_users.py — Profile, preferences, stats, avatar and
notifications.

Endpoints covered:
  GET  /users/profile                     → 200
  PUT  /users/profile                     → 200
  PUT  /users/preferences                 → 200
  GET  /users/stats                       → 200
  POST /users/avatar                      → 200
  GET  /users/notifications               → 200
  POST /users/notifications/:id/read      → 200
"""

from __future__ import annotations

import io

from .conftest import auth_headers, make_friends, signup


class TestProfile:

    def test_profile_lists_friends(self, client):
        alice = signup(client, name="Alice")
        bob = signup(client, name="Bob")
        make_friends(client, alice, bob)

        resp = client.get("/api/v1/users/profile", headers=auth_headers(alice["access_token"]))
        assert resp.status_code == 200
        user = resp.get_json()["data"]["user"]
        assert user["email"] == "alice@test.com"
        assert [f["id"] for f in user["friends"]] == [bob["user"]["id"]]

    def test_update_profile_changes_only_given_fields(self, client):
        alice = signup(client)
        resp = client.put(
            "/api/v1/users/profile",
            json={"name": "  Alice Cooper ", "phone": "+1 555 0100"},
            headers=auth_headers(alice["access_token"]),
        )
        assert resp.status_code == 200
        user = resp.get_json()["data"]["user"]
        assert user["name"] == "Alice Cooper"
        assert user["phone"] == "+1 555 0100"
        assert user["email"] == "alice@test.com"

    def test_unknown_profile_field_is_rejected(self, client):
        alice = signup(client)
        resp = client.put(
            "/api/v1/users/profile",
            json={"email": "new@test.com"},
            headers=auth_headers(alice["access_token"]),
        )
        assert resp.status_code == 400
        assert resp.get_json()["field"] == "email"


class TestPreferences:

    def test_partial_update_merges_notifications(self, client):
        alice = signup(client)
        resp = client.put(
            "/api/v1/users/preferences",
            json={"theme": "dark", "notifications": {"sms": True}},
            headers=auth_headers(alice["access_token"]),
        )
        assert resp.status_code == 200
        prefs = resp.get_json()["data"]["preferences"]
        assert prefs["theme"] == "dark"
        assert prefs["units"] == "metric"
        assert prefs["notifications"] == {"push": True, "email": True, "sms": True}

    def test_invalid_units_rejected(self, client):
        alice = signup(client)
        resp = client.put(
            "/api/v1/users/preferences",
            json={"units": "furlongs"},
            headers=auth_headers(alice["access_token"]),
        )
        assert resp.status_code == 400
        assert resp.get_json()["field"] == "units"


class TestStats:

    def test_stats_sum_trips(self, client):
        alice = signup(client)
        headers = auth_headers(alice["access_token"])
        for distance, duration in ((1000.0, 600.0), (2500.0, 900.0)):
            resp = client.post("/api/v1/trips/", json={
                "start_time": "2026-03-01T08:00:00Z",
                "distance": distance,
                "duration": duration,
            }, headers=headers)
            assert resp.status_code == 201

        resp = client.get("/api/v1/users/stats", headers=headers)
        assert resp.status_code == 200
        stats = resp.get_json()["data"]["stats"]
        assert stats["total_trips"] == 2
        assert stats["total_distance"] == 3500.0
        assert stats["total_duration"] == 1500.0

    def test_stats_for_new_user_are_zero(self, client):
        alice = signup(client)
        resp = client.get("/api/v1/users/stats", headers=auth_headers(alice["access_token"]))
        stats = resp.get_json()["data"]["stats"]
        assert stats["total_trips"] == 0
        assert stats["total_distance"] == 0.0


class TestAvatar:

    def test_upload_sets_avatar_url(self, client, s3):
        alice = signup(client)
        resp = client.post(
            "/api/v1/users/avatar",
            data={"file": (io.BytesIO(b"\x89PNG fake"), "Me At The Beach.png", "image/png")},
            content_type="multipart/form-data",
            headers=auth_headers(alice["access_token"]),
        )
        assert resp.status_code == 200
        avatar = resp.get_json()["data"]["user"]["avatar"]
        assert avatar.startswith("https://wayfarer-test.s3.us-east-1.amazonaws.com/avatars/")
        assert avatar.endswith("-me-at-the-beach.png")

        (key, stored), = s3.objects.items()
        assert avatar.endswith(key)
        assert stored["content_type"] == "image/png"
        assert stored["body"] == b"\x89PNG fake"

    def test_wrong_type_is_rejected(self, client, s3):
        alice = signup(client)
        resp = client.post(
            "/api/v1/users/avatar",
            data={"file": (io.BytesIO(b"%PDF"), "cv.pdf", "application/pdf")},
            content_type="multipart/form-data",
            headers=auth_headers(alice["access_token"]),
        )
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "INVALID_FILE_TYPE"
        assert s3.objects == {}

    def test_missing_file_is_rejected(self, client):
        alice = signup(client)
        resp = client.post(
            "/api/v1/users/avatar",
            data={"caption": "no file attached"},
            content_type="multipart/form-data",
            headers=auth_headers(alice["access_token"]),
        )
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "MISSING_FIELD"

    def test_storage_failure_leaves_profile_unchanged(self, client, s3):
        alice = signup(client)
        headers = auth_headers(alice["access_token"])
        s3.fail_uploads = True

        resp = client.post(
            "/api/v1/users/avatar",
            data={"file": (io.BytesIO(b"img"), "me.jpg", "image/jpeg")},
            content_type="multipart/form-data",
            headers=headers,
        )
        assert resp.status_code == 502
        assert resp.get_json()["error"] == "INTEGRATION_ERROR"

        profile = client.get("/api/v1/users/profile", headers=headers).get_json()["data"]["user"]
        assert profile["avatar"] is None


class TestNotifications:

    def test_friend_request_creates_notification(self, client):
        alice = signup(client, name="Alice")
        bob = signup(client, name="Bob")
        client.post(
            "/api/v1/social/friends/request",
            json={"to": bob["user"]["id"]},
            headers=auth_headers(alice["access_token"]),
        )

        resp = client.get("/api/v1/users/notifications", headers=auth_headers(bob["access_token"]))
        assert resp.status_code == 200
        data = resp.get_json()["data"]
        assert data["pagination"]["total"] == 1
        note = data["notifications"][0]
        assert note["type"] == "friend_request"
        assert note["read"] is False

    def test_mark_read_and_filter_unread(self, client):
        alice = signup(client, name="Alice")
        bob = signup(client, name="Bob")
        client.post(
            "/api/v1/social/friends/request",
            json={"to": bob["user"]["id"]},
            headers=auth_headers(alice["access_token"]),
        )
        headers = auth_headers(bob["access_token"])
        note_id = client.get("/api/v1/users/notifications", headers=headers).get_json()["data"]["notifications"][0]["id"]

        resp = client.post(f"/api/v1/users/notifications/{note_id}/read", headers=headers)
        assert resp.status_code == 200
        assert resp.get_json()["data"]["notification"]["read"] is True

        resp = client.get("/api/v1/users/notifications?unread=true", headers=headers)
        assert resp.get_json()["data"]["notifications"] == []

    def test_cannot_read_someone_elses_notification(self, client):
        alice = signup(client, name="Alice")
        bob = signup(client, name="Bob")
        client.post(
            "/api/v1/social/friends/request",
            json={"to": bob["user"]["id"]},
            headers=auth_headers(alice["access_token"]),
        )
        note_id = client.get(
            "/api/v1/users/notifications", headers=auth_headers(bob["access_token"])
        ).get_json()["data"]["notifications"][0]["id"]

        resp = client.post(
            f"/api/v1/users/notifications/{note_id}/read",
            headers=auth_headers(alice["access_token"]),
        )
        assert resp.status_code == 404
        assert resp.get_json()["error"] == "NOTIFICATION_NOT_FOUND"
