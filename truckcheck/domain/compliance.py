"""
Route Compliance Evaluator
==========================

Turns raw distance measurements into the final ``RouteResult``.

Rule
----
A work diary (logbook) is required when the driver goes *more than*
100 km from base, measured in a straight line.  With a road route
available the furthest sampled point along it is used; otherwise the
straight-line distance to the final destination stands in.

  effective_distance = max_distance_from_base ?? distance
  logbook_required   = effective_distance > 100        (strict)

Round trips
-----------
When the final destination is back at base (< 1 km away) the
straight-line distance is meaningless for display, so the reported
``distance`` becomes the furthest distance reached instead.

Near threshold
--------------
Effective distances within 95-105 km carry an advisory
(``JUST_UNDER`` / ``JUST_OVER``).  The advisory is derived from the very
same ``effective_distance`` and never changes ``logbook_required``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Protocol, Sequence

from .distance import haversine_km
from .entities import (
    GeocodingError,
    GeoPoint,
    RouteMetrics,
    RouteResult,
    Stop,
    StopResolutionError,
)
from .enums import NearThreshold

logger = logging.getLogger(__name__)


# ── Collaborators ─────────────────────────────────────────────────────


class Geocoder(Protocol):
    async def geocode(self, address: str) -> GeoPoint: ...


class RouteProvider(Protocol):
    async def route_distance(
        self, base: GeoPoint, waypoints: Sequence[GeoPoint]
    ) -> Optional[RouteMetrics]: ...


# ── Rule parameters ───────────────────────────────────────────────────


@dataclass(frozen=True)
class ComplianceRule:
    threshold_km: float = 100.0
    near_lower_km: float = 95.0
    near_upper_km: float = 105.0
    round_trip_radius_km: float = 1.0

    @classmethod
    def from_settings(cls, settings) -> "ComplianceRule":
        return cls(
            threshold_km=settings.logbook_threshold_km,
            near_lower_km=settings.near_threshold_lower_km,
            near_upper_km=settings.near_threshold_upper_km,
            round_trip_radius_km=settings.round_trip_radius_km,
        )

    def requires_logbook(self, effective_distance: float) -> bool:
        return effective_distance > self.threshold_km

    def classify(self, effective_distance: float) -> Optional[NearThreshold]:
        if not self.near_lower_km <= effective_distance <= self.near_upper_km:
            return None
        if effective_distance < self.threshold_km:
            return NearThreshold.JUST_UNDER
        return NearThreshold.JUST_OVER


DEFAULT_RULE = ComplianceRule()


# ── Pure evaluation ───────────────────────────────────────────────────


def evaluate_distances(
    base: GeoPoint,
    stops: Sequence[Stop],
    metrics: Optional[RouteMetrics],
    rule: ComplianceRule = DEFAULT_RULE,
) -> RouteResult:
    """Combine straight-line and route metrics into a verdict.  O(1)."""
    if not stops:
        raise ValueError("At least one stop is required")
    destination = stops[-1].location
    if destination is None:
        raise ValueError("Final destination has not been geocoded")

    distance = haversine_km(base.lat, base.lng, destination.lat, destination.lng)

    driving_distance: Optional[float] = None
    max_from_base: Optional[float] = None
    geometry = None
    if metrics is not None:
        driving_distance = metrics.distance_km
        max_from_base = metrics.max_distance_from_base_km
        geometry = metrics.geometry

    effective = max_from_base if max_from_base is not None else distance
    logbook_required = rule.requires_logbook(effective)

    if (
        distance < rule.round_trip_radius_km
        and max_from_base is not None
        and max_from_base > 0
    ):
        distance = max_from_base

    return RouteResult(
        distance=distance,
        driving_distance=driving_distance,
        max_distance_from_base=max_from_base,
        logbook_required=logbook_required,
        base_location=base,
        stops=tuple(stops),
        route_geometry=geometry,
        effective_distance=effective,
        near_threshold=rule.classify(effective),
    )


# ── Async orchestration ───────────────────────────────────────────────


async def resolve_stops(
    stops: Sequence[Stop], geocoder: Geocoder
) -> list[Stop]:
    """
    Geocode every stop whose location is missing or stale, in order.

    Raises ``StopResolutionError`` carrying the 1-indexed position of the
    first stop that could not be resolved.
    """
    resolved: list[Stop] = []
    for position, stop in enumerate(stops, start=1):
        if stop.is_resolved:
            resolved.append(stop)
            continue
        if not stop.address.strip():
            raise StopResolutionError(
                position, f"Please enter an address for stop {position}"
            )
        try:
            location = await geocoder.geocode(stop.address)
        except GeocodingError as exc:
            raise StopResolutionError(position, str(exc), cause=exc) from exc
        resolved.append(stop.with_location(location))
    return resolved


async def evaluate_route(
    base: GeoPoint,
    stops: Sequence[Stop],
    geocoder: Geocoder,
    router: RouteProvider,
    rule: ComplianceRule = DEFAULT_RULE,
) -> RouteResult:
    """Resolve stops, fetch route metrics, and evaluate the 100 km rule."""
    resolved = await resolve_stops(stops, geocoder)

    waypoints = [s.location for s in resolved]
    metrics = await router.route_distance(base, waypoints)
    if metrics is None:
        logger.info("No route available; falling back to straight-line distance")

    result = evaluate_distances(base, resolved, metrics, rule)
    logger.debug(
        "Evaluated %d stop(s): effective=%.1f km logbook=%s",
        len(resolved),
        result.effective_distance,
        result.logbook_required,
    )
    return result
