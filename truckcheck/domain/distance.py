"""
Distance calculation using the Haversine formula.

Straight-line ("as the crow flies") distance is what the 100 km work
diary rule is measured against, so every compliance decision bottoms out
in ``haversine_km``.  Road distances come from the routing provider and
are only used for display and for sampling the furthest point reached.

Complexity: O(1) per call.
"""

from __future__ import annotations

import math
from typing import Sequence

EARTH_RADIUS_KM = 6_371.0
DEFAULT_ROUTE_SAMPLES = 20


def haversine_km(
    lat1: float, lng1: float, lat2: float, lng2: float
) -> float:
    """Return the great-circle distance in **km** between two points."""
    lat1_r, lat2_r = math.radians(lat1), math.radians(lat2)
    dlat = math.radians(lat2 - lat1)
    dlng = math.radians(lng2 - lng1)

    a = (
        math.sin(dlat / 2) ** 2
        + math.cos(lat1_r) * math.cos(lat2_r) * math.sin(dlng / 2) ** 2
    )
    return 2 * EARTH_RADIUS_KM * math.asin(math.sqrt(a))


def max_distance_from_base(
    base_lat: float,
    base_lng: float,
    coordinates: Sequence[Sequence[float]],
    samples: int = DEFAULT_ROUTE_SAMPLES,
) -> float:
    """
    Furthest straight-line distance from base reached along a route.

    ``coordinates`` is a GeoJSON line string, i.e. ``[lng, lat]`` pairs.
    Roughly ``samples`` evenly spaced vertices are checked
    (stride = max(1, n // samples)); the final vertex is always checked
    as well because the stride may step over it.

    Complexity: O(samples).
    """
    if not coordinates:
        return 0.0

    stride = max(1, len(coordinates) // samples)
    furthest = 0.0
    for i in range(0, len(coordinates), stride):
        lng, lat = coordinates[i][0], coordinates[i][1]
        furthest = max(furthest, haversine_km(base_lat, base_lng, lat, lng))

    final_lng, final_lat = coordinates[-1][0], coordinates[-1][1]
    return max(furthest, haversine_km(base_lat, base_lng, final_lat, final_lng))
