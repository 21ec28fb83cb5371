"""
Mapbox clients for geocoding and driving routes.

Both clients share one ``httpx.AsyncClient`` (opened in the app lifespan)
and bound every request with ``asyncio.wait_for``:

* geocoding  -- 30 s, raises ``ProviderTimeout``
* directions -- 60 s, returns ``None`` (routes with many waypoints are slow)

The geocoder distinguishes "no match" (``LocationNotFound``, the user can
fix it) from provider faults (``ProviderUnavailable``).  The directions
client never raises to its caller: any failure means "no route", and the
evaluator falls back to straight-line distance.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional, Sequence
from urllib.parse import quote

import httpx

from truckcheck.domain.distance import DEFAULT_ROUTE_SAMPLES, max_distance_from_base
from truckcheck.domain.entities import (
    GeoPoint,
    LocationNotFound,
    ProviderTimeout,
    ProviderUnavailable,
    RouteMetrics,
)
from truckcheck.infrastructure.cache import GeocodeCache

logger = logging.getLogger(__name__)
fault_logger = logging.getLogger("truckcheck.faults")

GEOCODING = "mapbox-geocoding"
DIRECTIONS = "mapbox-directions"


class MapboxGeocoder:
    def __init__(
        self,
        client: httpx.AsyncClient,
        access_token: str,
        base_url: str = "https://api.mapbox.com",
        country: str = "AU",
        timeout_seconds: float = 30.0,
        cache: Optional[GeocodeCache] = None,
    ):
        self.client = client
        self.access_token = access_token
        self.base_url = base_url.rstrip("/")
        self.country = country
        self.timeout_seconds = timeout_seconds
        self.cache = cache

    async def geocode(self, address: str) -> GeoPoint:
        """Resolve *address* to its best (first) match."""
        if not address or not address.strip():
            raise ValueError("Empty address")
        if not self.access_token:
            raise ProviderUnavailable(GEOCODING, "access token is not configured")

        if self.cache is not None:
            cached = await self.cache.get(self.country, address)
            if cached is not None:
                return cached

        url = f"{self.base_url}/geocoding/v5/mapbox.places/{quote(address, safe='')}.json"
        params = {"country": self.country, "limit": 1, "access_token": self.access_token}
        try:
            response = await asyncio.wait_for(
                self.client.get(url, params=params), timeout=self.timeout_seconds
            )
        except (asyncio.TimeoutError, httpx.TimeoutException):
            raise ProviderTimeout(GEOCODING, self.timeout_seconds) from None
        except httpx.HTTPError as exc:
            raise ProviderUnavailable(GEOCODING, str(exc)) from exc

        if response.is_error:
            raise ProviderUnavailable(
                GEOCODING, f"HTTP {response.status_code} {response.reason_phrase}"
            )

        try:
            features = response.json().get("features") or []
        except (ValueError, AttributeError):
            raise ProviderUnavailable(GEOCODING, "malformed response") from None
        if not features:
            raise LocationNotFound(address)

        try:
            feature = features[0]
            lng, lat = feature["center"]
            point = GeoPoint(lat=float(lat), lng=float(lng), place_name=feature["place_name"])
        except (ValueError, KeyError, TypeError):
            raise ProviderUnavailable(GEOCODING, "malformed response") from None
        logger.debug("Geocoded %r to %s, %s", address, point.lat, point.lng)

        if self.cache is not None:
            await self.cache.set(self.country, address, point)
        return point


class MapboxDirections:
    def __init__(
        self,
        client: httpx.AsyncClient,
        access_token: str,
        base_url: str = "https://api.mapbox.com",
        timeout_seconds: float = 60.0,
        samples: int = DEFAULT_ROUTE_SAMPLES,
    ):
        self.client = client
        self.access_token = access_token
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self.samples = samples

    async def route_distance(
        self, base: GeoPoint, waypoints: Sequence[GeoPoint]
    ) -> Optional[RouteMetrics]:
        """Driving route base -> waypoints (in order), or ``None`` on any failure."""
        if not self.access_token or not waypoints:
            return None

        coordinates = ";".join(f"{p.lng},{p.lat}" for p in [base, *waypoints])
        url = f"{self.base_url}/directions/v5/mapbox/driving/{coordinates}"
        params = {
            "geometries": "geojson",
            "overview": "full",
            "access_token": self.access_token,
        }
        try:
            response = await asyncio.wait_for(
                self.client.get(url, params=params), timeout=self.timeout_seconds
            )
        except (asyncio.TimeoutError, httpx.TimeoutException):
            fault_logger.error(
                "%s: no response within %.0fs", DIRECTIONS, self.timeout_seconds
            )
            return None
        except httpx.HTTPError as exc:
            fault_logger.error("%s unavailable: %s", DIRECTIONS, exc)
            return None

        if response.is_error:
            fault_logger.error("%s: HTTP %d", DIRECTIONS, response.status_code)
            return None

        try:
            routes = response.json().get("routes") or []
            if not routes:
                logger.info("No driving route found for %d waypoint(s)", len(waypoints))
                return None
            route = routes[0]
            geometry = route.get("geometry")
            path = (geometry or {}).get("coordinates") or []
            furthest = max_distance_from_base(base.lat, base.lng, path, self.samples)
            return RouteMetrics(
                distance_km=float(route["distance"]) / 1000,
                max_distance_from_base_km=furthest,
                geometry=geometry,
            )
        except (ValueError, KeyError, TypeError, IndexError):
            logger.exception("Malformed directions response")
            return None
