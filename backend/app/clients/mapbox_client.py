"""
clients/mapbox_client.py — Routing, geocoding and optimisation via Mapbox.

A thin adapter: it shapes inputs into Mapbox REST calls and shapes responses
back. No routing or optimisation logic runs here.

Failure contract:
  Any transport error, timeout, non-2xx status or unusable body is logged and
  re-raised as IntegrationError. Callers never see httpx exception types.
  Nothing is retried.

Coordinates are (lng, lat) pairs throughout, matching Mapbox and GeoJSON.
"""

from __future__ import annotations

import logging
from concurrent.futures import FIRST_EXCEPTION, ThreadPoolExecutor, wait
from typing import Any, Sequence
from urllib.parse import quote

import httpx

from backend.app.errors import IntegrationError

logger = logging.getLogger(__name__)

Coordinate = Sequence[float]

DIRECTIONS_PROFILES = ("driving-traffic", "driving", "walking", "cycling")
OPTIMIZATION_PROFILES = ("driving", "walking", "cycling")


def _format_coordinates(coordinates: Sequence[Coordinate]) -> str:
    return ";".join(f"{lng},{lat}" for lng, lat in coordinates)


class MapboxClient:

    def __init__(
            self,
            access_token: str,
            base_url: str = "https://api.mapbox.com",
            timeout: float = 10.0,
            max_concurrency: int = 4,
            http_client: httpx.Client | None = None,
    ) -> None:
        self.access_token = access_token
        self.max_concurrency = max(1, max_concurrency)
        # httpx.Client is thread-safe; one pool is shared by fan-out calls.
        self._http = http_client or httpx.Client(
            base_url=base_url,
            timeout=httpx.Timeout(timeout),
        )

    def close(self) -> None:
        self._http.close()

    # ── Transport ─────────────────────────────────────────────────────────

    def _get(self, path: str, params: dict[str, Any], operation: str) -> dict:
        query = {k: v for k, v in params.items() if v is not None}
        query["access_token"] = self.access_token
        try:
            response = self._http.get(path, params=query)
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPStatusError as exc:
            logger.warning(
                "Mapbox %s failed with status %s",
                operation,
                exc.response.status_code,
            )
            raise IntegrationError(f"Failed to {operation}.") from exc
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("Mapbox %s failed: %s", operation, type(exc).__name__)
            raise IntegrationError(f"Failed to {operation}.") from exc
        if not isinstance(body, dict):
            logger.warning("Mapbox %s returned a %s body", operation, type(body).__name__)
            raise IntegrationError(f"Failed to {operation}.")
        return body

    # ── Directions ────────────────────────────────────────────────────────

    def get_route(
            self,
            origin: Coordinate,
            destination: Coordinate,
            waypoints: Sequence[Coordinate] = (),
            profile: str | None = None,
            alternatives: bool = True,
            traffic: bool = True,
    ) -> dict:
        """
        Returns the Directions API body: {"routes": [{geometry, distance,
        duration, legs: [{steps}]}], "waypoints": [...], ...}.

        `traffic` selects the driving-traffic profile when no profile is given.
        """
        if profile is None:
            profile = "driving-traffic" if traffic else "driving"
        coordinates = [origin, *waypoints, destination]
        body = self._get(
            f"/directions/v5/mapbox/{profile}/{_format_coordinates(coordinates)}",
            {
                "geometries": "geojson",
                "overview": "full",
                "steps": "true",
                "alternatives": "true" if alternatives else "false",
                "continue_straight": "false",
                "annotations": "distance,duration,speed",
            },
            operation="get route",
        )
        if not body.get("routes"):
            raise IntegrationError("Failed to get route.")
        return body

    # ── Geocoding ─────────────────────────────────────────────────────────

    def geocode(self, address: str) -> dict:
        body = self._get(
            f"/geocoding/v5/mapbox.places/{quote(address, safe='')}.json",
            {"limit": 1},
            operation="geocode address",
        )
        features = body.get("features") or []
        if not features:
            raise IntegrationError("Address not found.")
        try:
            feature = features[0]
            return {
                "coordinates": feature["geometry"]["coordinates"],
                "place_name": feature.get("place_name"),
                "place_type": feature.get("place_type"),
                "context": feature.get("context"),
            }
        except (KeyError, TypeError, IndexError, AttributeError) as exc:
            logger.warning("Mapbox geocode address returned an unusable feature")
            raise IntegrationError("Failed to geocode address.") from exc

    def reverse_geocode(self, lng: float, lat: float) -> dict:
        body = self._get(
            f"/geocoding/v5/mapbox.places/{lng},{lat}.json",
            {"limit": 1},
            operation="reverse geocode",
        )
        features = body.get("features") or []
        if not features:
            raise IntegrationError("Location not found.")
        feature = features[0]
        return {
            "address": feature.get("place_name"),
            "place_type": feature.get("place_type"),
            "context": feature.get("context"),
        }

    def search_places(
            self,
            query: str,
            proximity: Coordinate | None = None,
            types: Sequence[str] = ("poi", "address"),
            limit: int = 10,
    ) -> list[dict]:
        body = self._get(
            f"/geocoding/v5/mapbox.places/{quote(query, safe='')}.json",
            {
                "proximity": f"{proximity[0]},{proximity[1]}" if proximity else None,
                "types": ",".join(types),
                "limit": limit,
            },
            operation="search places",
        )
        try:
            return [
                {
                    "id": feature.get("id"),
                    "name": feature.get("text"),
                    "place_name": feature.get("place_name"),
                    "coordinates": feature.get("geometry", {}).get("coordinates"),
                    "place_type": feature.get("place_type"),
                    "relevance": feature.get("relevance"),
                }
                for feature in body.get("features") or []
            ]
        except (AttributeError, TypeError) as exc:
            logger.warning("Mapbox search places returned an unusable feature")
            raise IntegrationError("Failed to search places.") from exc

    # ── Optimization ──────────────────────────────────────────────────────

    def optimize(
            self,
            waypoints: Sequence[Coordinate],
            profile: str = "driving",
            source: str = "first",
            destination: str = "last",
            roundtrip: bool = False,
    ) -> dict:
        """Returns the Optimization API body: {"trips": [...], "waypoints": [...]}."""
        body = self._get(
            f"/optimized-trips/v1/mapbox/{profile}/{_format_coordinates(waypoints)}",
            {
                "geometries": "geojson",
                "overview": "full",
                "steps": "true",
                "source": source,
                "destination": destination,
                "roundtrip": "true" if roundtrip else "false",
            },
            operation="optimize route",
        )
        if body.get("code", "Ok") != "Ok":
            logger.warning("Mapbox optimize returned code %s", body.get("code"))
            raise IntegrationError("Failed to optimize route.")
        return body

    # ── Distance matrix ───────────────────────────────────────────────────

    def distance_matrix(
            self,
            origins: Sequence[Coordinate],
            destinations: Sequence[Coordinate],
            profile: str | None = None,
    ) -> dict:
        """
        One get_route() call per (origin, destination) pair, at most
        `max_concurrency` in flight. All-or-nothing: the first failed cell
        cancels queued cells and fails the whole matrix.

        Returns {"matrix": [[{"distance", "duration"}, ...], ...]} with
        matrix[i][j] for origins[i] → destinations[j].
        """
        def cell(origin: Coordinate, destination: Coordinate) -> dict:
            body = self.get_route(origin, destination, profile=profile, alternatives=False)
            try:
                best = body["routes"][0]
                return {"distance": best["distance"], "duration": best["duration"]}
            except (KeyError, TypeError, IndexError) as exc:
                logger.warning("Mapbox route for a matrix cell had no distance or duration")
                raise IntegrationError("Failed to get route.") from exc

        matrix: list[list[dict | None]] = [[None] * len(destinations) for _ in origins]
        with ThreadPoolExecutor(max_workers=self.max_concurrency) as pool:
            futures = {
                pool.submit(cell, origin, destination): (i, j)
                for i, origin in enumerate(origins)
                for j, destination in enumerate(destinations)
            }
            done, pending = wait(futures, return_when=FIRST_EXCEPTION)
            for future in pending:
                future.cancel()
            for future in done:
                exc = future.exception()
                if exc is not None:
                    raise IntegrationError("Failed to calculate distance matrix.") from exc
                i, j = futures[future]
                matrix[i][j] = future.result()

        return {"matrix": matrix}
