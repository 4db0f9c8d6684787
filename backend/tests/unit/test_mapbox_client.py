"""
tests/unit/test_mapbox_client.py — Request shaping and failure mapping of the
Mapbox adapter, driven through httpx.MockTransport (no network).
"""

from __future__ import annotations

import threading

import httpx
import pytest

from backend.app.clients.mapbox_client import MapboxClient
from backend.app.errors import ErrorCode, IntegrationError


def _client(handler, max_concurrency: int = 4) -> MapboxClient:
    return MapboxClient(
        access_token="pk.test",
        max_concurrency=max_concurrency,
        http_client=httpx.Client(base_url="https://mapbox.test", transport=httpx.MockTransport(handler)),
    )


def _route_body(distance: float = 1000.0, duration: float = 100.0) -> dict:
    return {"code": "Ok", "routes": [{"distance": distance, "duration": duration, "legs": []}]}


# ═══════════════════════════════════════════════════════════════════════════
# Directions
# ═══════════════════════════════════════════════════════════════════════════

class TestGetRoute:

    def test_builds_path_and_query(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=_route_body())

        _client(handler).get_route([1.5, 2.5], [3, 4], waypoints=[[2, 3]], alternatives=False)

        (request,) = seen
        assert request.url.path == "/directions/v5/mapbox/driving-traffic/1.5,2.5;2,3;3,4"
        assert request.url.params["access_token"] == "pk.test"
        assert request.url.params["geometries"] == "geojson"
        assert request.url.params["alternatives"] == "false"

    def test_explicit_profile_wins_over_traffic(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request.url.path)
            return httpx.Response(200, json=_route_body())

        _client(handler).get_route([0, 0], [1, 1], profile="cycling", traffic=True)
        assert seen == ["/directions/v5/mapbox/cycling/0,0;1,1"]

    def test_http_error_becomes_integration_error(self):
        client = _client(lambda request: httpx.Response(503, json={"message": "down"}))
        with pytest.raises(IntegrationError) as exc_info:
            client.get_route([0, 0], [1, 1])
        err = exc_info.value
        assert err.code == ErrorCode.INTEGRATION_ERROR
        assert err.http_status == 502
        assert err.message == "Failed to get route."
        assert isinstance(err.__cause__, httpx.HTTPStatusError)

    def test_transport_error_becomes_integration_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectTimeout("timed out", request=request)

        with pytest.raises(IntegrationError):
            _client(handler).get_route([0, 0], [1, 1])

    def test_non_json_body_becomes_integration_error(self):
        client = _client(lambda request: httpx.Response(200, text="<html>"))
        with pytest.raises(IntegrationError):
            client.get_route([0, 0], [1, 1])

    def test_no_routes_is_an_error(self):
        client = _client(lambda request: httpx.Response(200, json={"code": "NoRoute", "routes": []}))
        with pytest.raises(IntegrationError):
            client.get_route([0, 0], [1, 1])

    def test_list_body_becomes_integration_error(self):
        client = _client(lambda request: httpx.Response(200, json=[{"routes": []}]))
        with pytest.raises(IntegrationError) as exc_info:
            client.get_route([0, 0], [1, 1])
        assert exc_info.value.message == "Failed to get route."
        assert exc_info.value.__cause__ is None


# ═══════════════════════════════════════════════════════════════════════════
# Geocoding and optimisation
# ═══════════════════════════════════════════════════════════════════════════

class TestGeocoding:

    def test_geocode_returns_first_feature(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.params["limit"] == "1"
            return httpx.Response(200, json={"features": [{
                "geometry": {"coordinates": [-122.39, 37.79]},
                "place_name": "Ferry Building",
                "place_type": ["poi"],
            }]})

        result = _client(handler).geocode("Ferry Building")
        assert result["coordinates"] == [-122.39, 37.79]
        assert result["place_name"] == "Ferry Building"
        assert result["context"] is None

    def test_geocode_without_features(self):
        client = _client(lambda request: httpx.Response(200, json={"features": []}))
        with pytest.raises(IntegrationError) as exc_info:
            client.geocode("nowhere at all")
        assert exc_info.value.message == "Address not found."

    def test_geocode_escapes_slashes(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request.url.raw_path)
            return httpx.Response(200, json={"features": [{"geometry": {"coordinates": [0, 0]}}]})

        _client(handler).geocode("1/2 Main St")
        assert seen[0].startswith(b"/geocoding/v5/mapbox.places/1%2F2%20Main%20St.json")

    def test_geocode_feature_without_geometry(self):
        client = _client(lambda request: httpx.Response(200, json={"features": [{"place_name": "Somewhere"}]}))
        with pytest.raises(IntegrationError) as exc_info:
            client.geocode("Somewhere")
        assert exc_info.value.message == "Failed to geocode address."
        assert isinstance(exc_info.value.__cause__, KeyError)

    def test_search_places_with_malformed_features(self):
        client = _client(lambda request: httpx.Response(200, json={"features": ["poi.9"]}))
        with pytest.raises(IntegrationError) as exc_info:
            client.search_places("cafe")
        assert exc_info.value.message == "Failed to search places."

    def test_search_places_sends_proximity(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request.url.params)
            return httpx.Response(200, json={"features": [{"id": "poi.9", "text": "Cafe"}]})

        results = _client(handler).search_places("cafe", proximity=[-122.4, 37.8], limit=3)
        assert results[0]["id"] == "poi.9"
        assert results[0]["coordinates"] is None
        assert seen[0]["proximity"] == "-122.4,37.8"
        assert seen[0]["types"] == "poi,address"
        assert seen[0]["limit"] == "3"

    def test_optimize_rejects_non_ok_code(self):
        client = _client(lambda request: httpx.Response(200, json={"code": "NoTrips"}))
        with pytest.raises(IntegrationError) as exc_info:
            client.optimize([[0, 0], [1, 1]])
        assert exc_info.value.message == "Failed to optimize route."


# ═══════════════════════════════════════════════════════════════════════════
# Distance matrix fan-out
# ═══════════════════════════════════════════════════════════════════════════

class TestDistanceMatrix:

    def test_cells_follow_input_order(self):
        lock = threading.Lock()
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            origin, destination = request.url.path.rsplit("/", 1)[1].split(";")
            with lock:
                calls.append(request.url.path)
            # distance encodes the pair so order can be checked
            distance = float(origin.split(",")[0]) * 10 + float(destination.split(",")[0])
            return httpx.Response(200, json=_route_body(distance=distance, duration=distance / 10))

        result = _client(handler, max_concurrency=3).distance_matrix(
            origins=[[1, 0], [2, 0]],
            destinations=[[3, 0], [4, 0], [5, 0]],
        )

        assert len(calls) == 6
        assert [[cell["distance"] for cell in row] for row in result["matrix"]] == [
            [13.0, 14.0, 15.0],
            [23.0, 24.0, 25.0],
        ]
        assert result["matrix"][1][2]["duration"] == 2.5

    def test_two_by_two_makes_four_calls(self):
        lock = threading.Lock()
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            with lock:
                calls.append(request.url.path)
            return httpx.Response(200, json=_route_body())

        result = _client(handler).distance_matrix(
            origins=[[1, 0], [2, 0]],
            destinations=[[3, 0], [4, 0]],
        )

        assert len(calls) == 4
        assert len(set(calls)) == 4
        assert result["matrix"] == [
            [{"distance": 1000.0, "duration": 100.0}] * 2,
            [{"distance": 1000.0, "duration": 100.0}] * 2,
        ]

    def test_third_failed_call_fails_the_matrix(self):
        lock = threading.Lock()
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            with lock:
                calls.append(request.url.path)
                position = len(calls)
            if position == 3:
                return httpx.Response(500)
            return httpx.Response(200, json=_route_body())

        with pytest.raises(IntegrationError) as exc_info:
            _client(handler, max_concurrency=1).distance_matrix(
                origins=[[1, 0], [2, 0]],
                destinations=[[3, 0], [4, 0]],
            )

        err = exc_info.value
        assert err.message == "Failed to calculate distance matrix."
        assert err.http_status == 502
        assert 3 <= len(calls) <= 4
        assert calls[2].endswith("2,0;3,0")

    def test_cell_without_distance_fails_the_matrix(self):
        client = _client(lambda request: httpx.Response(200, json={"routes": [{"geometry": {}}]}))
        with pytest.raises(IntegrationError) as exc_info:
            client.distance_matrix([[0, 0]], [[1, 1]])
        err = exc_info.value
        assert err.message == "Failed to calculate distance matrix."
        assert isinstance(err.__cause__, IntegrationError)
        assert isinstance(err.__cause__.__cause__, KeyError)
