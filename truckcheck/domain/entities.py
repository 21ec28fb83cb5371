"""
Domain entities and the exceptions they raise.

Patterns used
-------------
- ``GeoPoint``, ``Stop``, ``RouteMetrics`` and ``RouteResult`` are frozen
  value objects: a changed address produces a *new* ``Stop``, a new
  calculation produces a *new* ``RouteResult``.
- A stop "needs re-geocoding" exactly when its address no longer equals
  the place name of its resolved location.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from typing import Any, Optional

from .enums import Feature, NearThreshold


# ── Exceptions ────────────────────────────────────────────────────────


class InvalidStateTransition(Exception):
    """Raised when a calculation status change violates the state machine."""


class UpgradeRequired(Exception):
    """Raised when a caller without a pro subscription uses a pro feature."""

    def __init__(self, feature: Feature):
        self.feature = feature
        super().__init__(f"Pro subscription required: {feature.value}")


class StopNotFound(Exception):
    def __init__(self, stop_id: str):
        self.stop_id = stop_id
        super().__init__(f"Stop not found: {stop_id}")


class ShareLinkError(ValueError):
    """Raised when a share query string cannot be decoded."""


class GeocodingError(Exception):
    """Base class for address resolution failures."""


class LocationNotFound(GeocodingError):
    """The provider answered but had no match. User-correctable."""

    def __init__(self, address: str):
        self.address = address
        super().__init__(f"Could not find location: {address}")


class ProviderUnavailable(GeocodingError):
    """The provider could not be reached or answered with an error."""

    def __init__(self, provider: str, reason: str):
        self.provider = provider
        self.reason = reason
        super().__init__(f"{provider} unavailable: {reason}")


class ProviderTimeout(ProviderUnavailable):
    def __init__(self, provider: str, timeout_seconds: float):
        self.timeout_seconds = timeout_seconds
        super().__init__(provider, f"no response within {timeout_seconds:g}s")


class StopResolutionError(Exception):
    """A stop could not be resolved; ``position`` is 1-indexed."""

    def __init__(self, position: int, message: str, cause: Optional[Exception] = None):
        self.position = position
        self.cause = cause
        super().__init__(message)


# ── Value Objects ─────────────────────────────────────────────────────


@dataclass(frozen=True)
class GeoPoint:
    lat: float
    lng: float
    place_name: str


def new_stop_id() -> str:
    return f"stop-{uuid.uuid4().hex[:12]}"


@dataclass(frozen=True)
class Stop:
    id: str = field(default_factory=new_stop_id)
    address: str = ""
    location: Optional[GeoPoint] = None

    @property
    def is_resolved(self) -> bool:
        return self.location is not None and self.location.place_name == self.address

    def with_address(self, address: str) -> "Stop":
        """Return a copy with *address*; the location survives only if it still matches."""
        location = self.location
        if location is not None and location.place_name != address:
            location = None
        return replace(self, address=address, location=location)

    def with_location(self, location: GeoPoint) -> "Stop":
        return replace(self, location=location)

    @classmethod
    def from_point(cls, point: GeoPoint, stop_id: Optional[str] = None) -> "Stop":
        return cls(id=stop_id or new_stop_id(), address=point.place_name, location=point)


@dataclass(frozen=True)
class RouteMetrics:
    """What the routing provider reports for base -> waypoints in order."""

    distance_km: float
    max_distance_from_base_km: float
    geometry: Any = None


@dataclass(frozen=True)
class RouteResult:
    """
    Final verdict of one calculation.  Handed read-only to rendering,
    export and persistence; never partially populated.
    """

    distance: float
    driving_distance: Optional[float]
    max_distance_from_base: Optional[float]
    logbook_required: bool
    base_location: GeoPoint
    stops: tuple[Stop, ...]
    route_geometry: Any = None
    effective_distance: float = 0.0
    near_threshold: Optional[NearThreshold] = None
    view_only: bool = False

    @property
    def destination(self) -> Stop:
        return self.stops[-1]
