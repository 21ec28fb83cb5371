"""Pydantic request / response schemas for the REST API."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field

from truckcheck.domain.entities import GeoPoint, RouteResult, Stop
from truckcheck.domain.enums import CalculationStatus, NearThreshold
from truckcheck.domain.records import SearchRecord
from truckcheck.domain.session import CalculationSession


# ── Shared ────────────────────────────────────────────────────────────


class GeoPointSchema(BaseModel):
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)
    place_name: str = Field(..., min_length=1, max_length=500)

    @classmethod
    def from_domain(cls, point: GeoPoint) -> "GeoPointSchema":
        return cls(lat=point.lat, lng=point.lng, place_name=point.place_name)

    def to_domain(self) -> GeoPoint:
        return GeoPoint(lat=self.lat, lng=self.lng, place_name=self.place_name)


class StopSchema(BaseModel):
    id: str
    address: str
    location: Optional[GeoPointSchema] = None

    @classmethod
    def from_domain(cls, stop: Stop) -> "StopSchema":
        return cls(
            id=stop.id,
            address=stop.address,
            location=GeoPointSchema.from_domain(stop.location) if stop.location else None,
        )


# ── Requests ──────────────────────────────────────────────────────────


class BaseAddressRequest(BaseModel):
    address: str = Field("", max_length=500)
    location: Optional[GeoPointSchema] = Field(
        None, description="Autocomplete selection; skips geocoding when given."
    )


class StopUpdateRequest(BaseModel):
    address: Optional[str] = Field(None, max_length=500)
    location: Optional[GeoPointSchema] = None


class ReorderRequest(BaseModel):
    from_index: int = Field(..., ge=0)
    to_index: int = Field(..., ge=0)


class RestoreRequest(BaseModel):
    query: str = Field(..., description="Share link query string, with or without '?'.")


class CsvImportRequest(BaseModel):
    csv: str = Field(..., max_length=1_000_000)
    base_column: Optional[int] = Field(None, ge=0)
    stop_columns: Optional[list[int]] = None


class DepotCreateRequest(BaseModel):
    name: Optional[str] = Field(None, max_length=120)
    address: str = Field(..., min_length=1, max_length=500)
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)


# ── Responses ─────────────────────────────────────────────────────────


class RouteResultResponse(BaseModel):
    distance: float
    driving_distance: Optional[float] = None
    max_distance_from_base: Optional[float] = None
    effective_distance: float
    logbook_required: bool
    near_threshold: Optional[NearThreshold] = None
    view_only: bool = False
    base_location: GeoPointSchema
    stops: list[StopSchema]
    route_geometry: Optional[Any] = None

    @classmethod
    def from_domain(cls, result: RouteResult) -> "RouteResultResponse":
        return cls(
            distance=result.distance,
            driving_distance=result.driving_distance,
            max_distance_from_base=result.max_distance_from_base,
            effective_distance=result.effective_distance,
            logbook_required=result.logbook_required,
            near_threshold=result.near_threshold,
            view_only=result.view_only,
            base_location=GeoPointSchema.from_domain(result.base_location),
            stops=[StopSchema.from_domain(s) for s in result.stops],
            route_geometry=result.route_geometry,
        )


class SessionResponse(BaseModel):
    id: str
    entitled: bool
    base_address: str
    base_location: Optional[GeoPointSchema] = None
    stops: list[StopSchema]
    status: CalculationStatus
    loading: bool
    error: Optional[str] = None
    failed_stop: Optional[int] = Field(None, description="1-indexed stop that failed")
    view_only: bool
    result: Optional[RouteResultResponse] = None

    @classmethod
    def from_domain(cls, session: CalculationSession) -> "SessionResponse":
        return cls(
            id=session.id,
            entitled=session.entitled,
            base_address=session.base_address,
            base_location=(
                GeoPointSchema.from_domain(session.base_location)
                if session.base_location
                else None
            ),
            stops=[StopSchema.from_domain(s) for s in session.stops],
            status=session.status,
            loading=session.loading,
            error=session.error,
            failed_stop=session.failed_stop,
            view_only=session.view_only,
            result=(
                RouteResultResponse.from_domain(session.result) if session.result else None
            ),
        )


class ShareResponse(BaseModel):
    query: str
    params: dict[str, str]


class RecentSearchResponse(BaseModel):
    id: Optional[str] = None
    base_location: GeoPointSchema
    stops: list[GeoPointSchema]
    distance: float
    logbook_required: bool
    created_at: Optional[datetime] = None

    @classmethod
    def from_domain(cls, record: SearchRecord) -> "RecentSearchResponse":
        return cls(
            id=record.id,
            base_location=GeoPointSchema.from_domain(record.base_location),
            stops=[GeoPointSchema.from_domain(p) for p in record.stops],
            distance=record.distance,
            logbook_required=record.logbook_required,
            created_at=record.created_at,
        )


class CalculationHistoryResponse(BaseModel):
    id: int
    base_location: dict[str, Any]
    stops: list[dict[str, Any]]
    distance: float
    driving_distance: Optional[float] = None
    max_distance_from_base: Optional[float] = None
    logbook_required: bool
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class DepotResponse(BaseModel):
    id: int
    address: str
    lat: float
    lng: float
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class DeletedResponse(BaseModel):
    deleted: int


class HealthResponse(BaseModel):
    status: str = "ok"
    sessions: int = 0


class ErrorResponse(BaseModel):
    detail: str
