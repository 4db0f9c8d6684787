"""
tests/integration/conftest.py — Fixtures and helpers for all integration tests.

Design:
  - Tests run against an in-memory SQLite database (TestingConfig).
  - The app is created once per session using create_app("testing").
  - All tables are created once via db.create_all() at session start.
  - Between tests, all rows are deleted in reverse dependency order so tests
    are isolated.
  - The Mapbox and S3 adapters are real adapter objects wired to fakes:
      Mapbox → httpx.MockTransport answering from canned bodies
      S3     → FakeS3, an in-memory stand-in for the boto3 client
    Both are reinstalled per test so call logs never leak between tests.

Helper functions (not fixtures) are provided for common operations:
  - signup(client, ...)            → dict with user + tokens
  - auth_headers(token)            → {"Authorization": "Bearer <token>"}
  - make_friends(client, a, b)     → makes two signed-up users friends
  - make_route(client, token, ...) → HTTP response
  - make_place(client, token, ...) → HTTP response

These are plain functions (not pytest fixtures) so they can be called with
arbitrary arguments in any test without fixture parameterization overhead.
"""

from __future__ import annotations

import threading

import httpx
import pytest
from botocore.exceptions import ClientError

from backend.app import create_app
from backend.app.clients.mapbox_client import MapboxClient
from backend.app.clients.storage_client import S3Storage
from backend.app.extensions import db as _db

MAPBOX_TEST_BASE_URL = "https://mapbox.test"


# ═══════════════════════════════════════════════════════════════════════════
# Fake providers
# ═══════════════════════════════════════════════════════════════════════════

class FakeMapboxAPI:
    """
    Answers Mapbox REST paths with small canned bodies.

    `fail_paths` holds path prefixes that should answer 500; every request
    path is recorded in `calls`.
    """

    def __init__(self):
        self.calls: list[str] = []
        self.fail_paths: list[str] = []
        self._lock = threading.Lock()

    def __call__(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        with self._lock:
            self.calls.append(path)

        if any(path.startswith(prefix) for prefix in self.fail_paths):
            return httpx.Response(500, json={"message": "upstream failure"})

        if path.startswith("/directions/v5/"):
            return httpx.Response(200, json={
                "code": "Ok",
                "routes": [{
                    "distance": 1200.0,
                    "duration": 180.0,
                    "geometry": {"type": "LineString", "coordinates": [[-122.4, 37.8], [-122.41, 37.81]]},
                    "legs": [{"steps": []}],
                }],
                "waypoints": [],
            })
        if path.startswith("/optimized-trips/v1/"):
            return httpx.Response(200, json={
                "code": "Ok",
                "trips": [{"distance": 3400.0, "duration": 600.0}],
                "waypoints": [{"waypoint_index": 0}, {"waypoint_index": 2}, {"waypoint_index": 1}],
            })
        if path.startswith("/geocoding/v5/"):
            return httpx.Response(200, json={
                "features": [{
                    "id": "poi.1",
                    "text": "Ferry Building",
                    "place_name": "Ferry Building, San Francisco, California",
                    "place_type": ["poi"],
                    "relevance": 1,
                    "geometry": {"type": "Point", "coordinates": [-122.3937, 37.7955]},
                    "context": [],
                }],
            })
        return httpx.Response(404, json={"message": "Not Found"})


class FakeS3:
    """The subset of the boto3 S3 client used by S3Storage."""

    def __init__(self):
        self.objects: dict[str, dict] = {}
        self.deleted: list[str] = []
        self.fail_uploads = False
        self._lock = threading.Lock()

    def upload_fileobj(self, Fileobj, Bucket, Key, ExtraArgs=None):
        if self.fail_uploads:
            raise ClientError({"Error": {"Code": "500", "Message": "boom"}}, "PutObject")
        with self._lock:
            self.objects[Key] = {
                "bucket": Bucket,
                "body": Fileobj.read(),
                "content_type": (ExtraArgs or {}).get("ContentType"),
            }

    def delete_object(self, Bucket, Key):
        self.deleted.append(Key)
        self.objects.pop(Key, None)

    def generate_presigned_url(self, ClientMethod, Params, ExpiresIn):
        return f"https://signed.test/{Params['Bucket']}/{Params['Key']}?expires={ExpiresIn}"


# ═══════════════════════════════════════════════════════════════════════════
# Session-scoped app fixture
# ═══════════════════════════════════════════════════════════════════════════

@pytest.fixture(scope="session")
def app():
    """
    Creates the Flask application in 'testing' mode once for the entire test session.

    Steps:
      1. Create app with TestingConfig (in-memory SQLite, shared connection).
      2. Run db.create_all() to create all tables.
      3. Yield the app for the test session.
      4. Drop all tables at teardown.
    """
    flask_app = create_app("testing")

    with flask_app.app_context():
        _db.create_all()

    yield flask_app

    with flask_app.app_context():
        _db.drop_all()


# ═══════════════════════════════════════════════════════════════════════════
# Function-scoped test isolation
# ═══════════════════════════════════════════════════════════════════════════

@pytest.fixture(autouse=True)
def clean_tables(app):
    """
    Deletes all rows between tests.

    Child tables are emptied before the tables they reference.
    """
    yield  # run the test

    with app.app_context():
        _db.session.rollback()  # discard any uncommitted state from a failed test
        for table in reversed(_db.metadata.sorted_tables):
            _db.session.execute(table.delete())
        _db.session.commit()


@pytest.fixture
def mapbox_api():
    return FakeMapboxAPI()


@pytest.fixture
def s3():
    return FakeS3()


@pytest.fixture(autouse=True)
def fake_adapters(app, mapbox_api, s3):
    """Swaps the app's Mapbox and S3 adapters for ones backed by the fakes."""
    original = (app.extensions["mapbox"], app.extensions["storage"])

    app.extensions["mapbox"] = MapboxClient(
        access_token=app.config["MAPBOX_ACCESS_TOKEN"],
        max_concurrency=2,
        http_client=httpx.Client(
            base_url=MAPBOX_TEST_BASE_URL,
            transport=httpx.MockTransport(mapbox_api),
        ),
    )
    app.extensions["storage"] = S3Storage(
        bucket=app.config["S3_BUCKET_NAME"],
        region="us-east-1",
        max_concurrency=2,
        s3_client=s3,
    )

    yield

    app.extensions["mapbox"].close()
    app.extensions["mapbox"], app.extensions["storage"] = original


# ═══════════════════════════════════════════════════════════════════════════
# Client fixture
# ═══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def client(app):
    """Flask test client. Each test gets a fresh client (function-scoped)."""
    return app.test_client()


# ═══════════════════════════════════════════════════════════════════════════
# Shared helper functions (not fixtures)
# ═══════════════════════════════════════════════════════════════════════════

def signup(
    client,
    name: str = "Alice",
    email: str | None = None,
    password: str = "Password1",
) -> dict:
    """
    Signs up a new user and returns the full response data dict.
    Returns: {"user": {...}, "access_token", "refresh_token", "verification_token"}
    """
    if email is None:
        email = f"{name.lower()}@test.com"
    resp = client.post(
        "/api/v1/auth/signup",
        json={"name": name, "email": email, "password": password},
    )
    assert resp.status_code == 201, f"signup failed: {resp.get_json()}"
    return resp.get_json()["data"]


def auth_headers(token: str) -> dict:
    """Returns the Authorization header dict for use in test requests."""
    return {"Authorization": f"Bearer {token}"}


def make_friends(client, a: dict, b: dict) -> None:
    """`a` sends a friend request to `b`, and `b` accepts it."""
    resp = client.post(
        "/api/v1/social/friends/request",
        json={"to": b["user"]["id"]},
        headers=auth_headers(a["access_token"]),
    )
    assert resp.status_code == 201, f"friend request failed: {resp.get_json()}"
    request_id = resp.get_json()["data"]["request"]["id"]

    resp = client.post(
        f"/api/v1/social/friends/accept/{request_id}",
        headers=auth_headers(b["access_token"]),
    )
    assert resp.status_code == 200, f"accept failed: {resp.get_json()}"


def route_payload(**overrides) -> dict:
    payload = {
        "name": "Commute",
        "origin": {"coordinates": [-122.4194, 37.7749], "address": "Market St"},
        "destination": {"coordinates": [-122.2711, 37.8044], "address": "Oakland"},
        "distance": 13400.0,
        "duration": 1260.0,
        "geometry": [[-122.4194, 37.7749], [-122.2711, 37.8044]],
    }
    payload.update(overrides)
    return payload


def make_route(client, token: str, **overrides):
    """Creates a saved route and returns the HTTP response."""
    return client.post(
        "/api/v1/routes/",
        json=route_payload(**overrides),
        headers=auth_headers(token),
    )


def make_place(
    client,
    token: str,
    lng: float = -122.4,
    lat: float = 37.8,
    name: str = "Blue Bottle",
    category: str = "restaurant",
    **overrides,
):
    """Creates a place and returns the HTTP response."""
    payload = {
        "name": name,
        "location": {"type": "Point", "coordinates": [lng, lat]},
        "category": category,
    }
    payload.update(overrides)
    return client.post("/api/v1/places/", json=payload, headers=auth_headers(token))
