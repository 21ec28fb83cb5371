"""
Share / Restore codec for result links.

Query-string layout (public, bookmarked by users, keep stable)::

    baseName, baseLat, baseLng, distance, logbookRequired,
    stop0Name, stop0Lat, stop0Lng, stop1Name, ...

Stop indices are contiguous from 0; the decoder stops at the first
missing index.  Links issued before multi-stop support carry a single
``destName`` / ``destLat`` / ``destLng`` triple instead, which still
decodes to a one-stop result.

Floats are written with ``repr`` so a decode reproduces them exactly.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Mapping, Optional
from urllib.parse import parse_qsl, urlencode

from .entities import GeoPoint, RouteMetrics, RouteResult, ShareLinkError, Stop
from .compliance import DEFAULT_RULE, ComplianceRule

_LEGACY_DEST_KEYS = ("destName", "destLat", "destLng")


def encode_result(result: RouteResult) -> dict[str, str]:
    params = {
        "baseName": result.base_location.place_name,
        "baseLat": repr(result.base_location.lat),
        "baseLng": repr(result.base_location.lng),
        "distance": repr(result.distance),
        "logbookRequired": "true" if result.logbook_required else "false",
    }
    for n, stop in enumerate(result.stops):
        point = stop.location
        if point is None:
            raise ValueError(f"Stop {n + 1} has no location to share")
        params[f"stop{n}Name"] = point.place_name
        params[f"stop{n}Lat"] = repr(point.lat)
        params[f"stop{n}Lng"] = repr(point.lng)
    return params


def to_query_string(result: RouteResult) -> str:
    return urlencode(encode_result(result))


def parse_query_string(query: str) -> dict[str, str]:
    return dict(parse_qsl(query.lstrip("?"), keep_blank_values=True))


def _float(params: Mapping[str, str], key: str) -> float:
    try:
        return float(params[key])
    except KeyError:
        raise ShareLinkError(f"Missing parameter: {key}") from None
    except ValueError:
        raise ShareLinkError(f"Invalid number for {key}: {params[key]!r}") from None


def _point(params: Mapping[str, str], name: str, lat: str, lng: str) -> GeoPoint:
    if not params.get(name):
        raise ShareLinkError(f"Missing parameter: {name}")
    return GeoPoint(lat=_float(params, lat), lng=_float(params, lng), place_name=params[name])


def _decode_stops(params: Mapping[str, str]) -> list[Stop]:
    stops: list[Stop] = []
    n = 0
    while f"stop{n}Name" in params:
        point = _point(params, f"stop{n}Name", f"stop{n}Lat", f"stop{n}Lng")
        stops.append(Stop.from_point(point, stop_id=f"stop-{n + 1}"))
        n += 1

    if not stops and all(key in params for key in _LEGACY_DEST_KEYS):
        point = _point(params, *_LEGACY_DEST_KEYS)
        stops.append(Stop.from_point(point, stop_id="stop-1"))
    return stops


def decode_query(
    params: Mapping[str, str],
    entitled: bool,
    rule: ComplianceRule = DEFAULT_RULE,
) -> RouteResult:
    """
    Rebuild a ``RouteResult`` from share parameters.

    Multi-stop links opened by a session without multi-stop entitlement
    are returned in full but flagged ``view_only``; the stop list is
    never truncated on a read path.
    """
    base = _point(params, "baseName", "baseLat", "baseLng")
    stops = _decode_stops(params)
    if not stops:
        raise ShareLinkError("Share link contains no stops")

    distance = _float(params, "distance")
    logbook_required = params.get("logbookRequired") == "true"

    return RouteResult(
        distance=distance,
        driving_distance=None,
        max_distance_from_base=None,
        logbook_required=logbook_required,
        base_location=base,
        stops=tuple(stops),
        effective_distance=distance,
        near_threshold=rule.classify(distance),
        view_only=len(stops) > 1 and not entitled,
    )


def with_route_metrics(
    shared: RouteResult,
    metrics: Optional[RouteMetrics],
    rule: ComplianceRule = DEFAULT_RULE,
) -> RouteResult:
    """
    Attach freshly fetched route metrics to a restored result for display.

    The shared verdict (``distance`` and ``logbook_required``) is kept
    verbatim; only the advisory follows the new effective distance.
    """
    if metrics is None:
        return shared
    effective = metrics.max_distance_from_base_km
    return replace(
        shared,
        driving_distance=metrics.distance_km,
        max_distance_from_base=effective,
        route_geometry=metrics.geometry,
        effective_distance=effective,
        near_threshold=rule.classify(effective),
    )
