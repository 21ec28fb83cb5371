"""
Persisted search / history records.

Rows written by older releases store a single ``destination`` object;
newer rows store a ``stops`` array.  Both are normalised here, on read,
so everything past this boundary sees one canonical shape.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Mapping, Optional

from .entities import GeoPoint, RouteResult, Stop


@dataclass(frozen=True)
class SearchRecord:
    base_location: GeoPoint
    stops: tuple[GeoPoint, ...]
    distance: float
    logbook_required: bool
    id: Optional[str] = None
    created_at: Optional[datetime] = None

    def to_stops(self) -> list[Stop]:
        return [
            Stop.from_point(point, stop_id=f"stop-{i + 1}")
            for i, point in enumerate(self.stops)
        ]


def point_from_json(raw: Mapping[str, Any]) -> GeoPoint:
    """Accept both ``placeName`` (stored JSON) and ``place_name`` keys."""
    name = raw.get("placeName", raw.get("place_name"))
    if name is None:
        raise ValueError("Location is missing a place name")
    return GeoPoint(lat=float(raw["lat"]), lng=float(raw["lng"]), place_name=str(name))


def point_to_json(point: GeoPoint) -> dict[str, Any]:
    return {"placeName": point.place_name, "lat": point.lat, "lng": point.lng}


def normalize_search_record(raw: Mapping[str, Any]) -> SearchRecord:
    """Convert a stored row (either shape) into a ``SearchRecord``."""
    base_raw = raw.get("base_location") or raw.get("baseLocation")
    if not base_raw:
        raise ValueError("Record has no base location")

    stops_raw = raw.get("stops")
    if not stops_raw:
        destination = raw.get("destination")
        if not destination:
            raise ValueError("Record has neither stops nor a destination")
        stops_raw = [destination]

    logbook = raw.get("logbook_required", raw.get("logbookRequired", False))
    record_id = raw.get("id")
    return SearchRecord(
        base_location=point_from_json(base_raw),
        stops=tuple(point_from_json(s) for s in stops_raw),
        distance=float(raw["distance"]),
        logbook_required=bool(logbook),
        id=str(record_id) if record_id is not None else None,
        created_at=raw.get("created_at"),
    )


def result_to_record(result: RouteResult) -> dict[str, Any]:
    """JSON-ready payload for recent searches and calculation history."""
    return {
        "base_location": point_to_json(result.base_location),
        "stops": [point_to_json(s.location) for s in result.stops if s.location],
        "distance": result.distance,
        "driving_distance": result.driving_distance,
        "max_distance_from_base": result.max_distance_from_base,
        "logbook_required": result.logbook_required,
    }
