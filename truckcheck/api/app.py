"""
FastAPI application factory.

* Registers routes for calculation sessions, saved searches and admin.
* Opens / closes the shared Mapbox HTTP client and geocode cache via
  lifespan events.
* Maps domain exceptions to HTTP responses; entitlement failures are a
  distinct 402 "upgrade required" answer, never a generic error.
* Applies rate-limiting middleware.
* Swagger / OpenAPI UI available at ``/docs``.
"""

from contextlib import asynccontextmanager
import logging

import httpx
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from truckcheck.api.middleware import limiter
from truckcheck.api.routes import admin, history, sessions
from truckcheck.config import settings
from truckcheck.domain.compliance import ComplianceRule
from truckcheck.domain.csv_io import CsvImportError
from truckcheck.domain.entities import (
    InvalidStateTransition,
    ShareLinkError,
    StopNotFound,
    UpgradeRequired,
)
from truckcheck.domain.session import SessionNotFound, SessionRegistry
from truckcheck.infrastructure.cache import GeocodeCache
from truckcheck.infrastructure.mapbox import MapboxDirections, MapboxGeocoder

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the Mapbox client and geocode cache; close them on shutdown."""
    client = httpx.AsyncClient()
    cache = GeocodeCache.from_url(settings.redis_url, settings.geocode_cache_ttl_seconds)
    app.state.geocoder = MapboxGeocoder(
        client,
        settings.mapbox_access_token,
        base_url=settings.mapbox_base_url,
        country=settings.geocode_country,
        timeout_seconds=settings.geocode_timeout_seconds,
        cache=cache,
    )
    app.state.router = MapboxDirections(
        client,
        settings.mapbox_access_token,
        base_url=settings.mapbox_base_url,
        timeout_seconds=settings.route_timeout_seconds,
        samples=settings.route_sample_count,
    )
    if not settings.mapbox_access_token:
        logger.warning("MAPBOX_ACCESS_TOKEN is not set; geocoding will fail")
    yield
    await client.aclose()
    await cache.close()


# ── Exception handlers ────────────────────────────────────────────────


async def _upgrade_required(request: Request, exc: UpgradeRequired):
    return JSONResponse(
        status_code=402,
        content={
            "detail": str(exc),
            "upgrade_required": True,
            "feature": exc.feature.value,
        },
    )


def _status_handler(status_code: int):
    async def handler(request: Request, exc: Exception):
        return JSONResponse(status_code=status_code, content={"detail": str(exc)})

    return handler


def create_app() -> FastAPI:
    app = FastAPI(
        title="TruckCheck Logbook API",
        description=(
            "Works out whether an Australian truck driver needs a work diary "
            "(logbook) for a trip: geocodes the base and every stop, follows "
            "the driving route and applies the NHVR 100 km rule."
        ),
        version="1.0.0",
        lifespan=lifespan,
    )

    app.state.sessions = SessionRegistry(
        rule=ComplianceRule.from_settings(settings),
        timeout_seconds=settings.calculation_timeout_seconds,
        ttl_seconds=settings.session_ttl_seconds,
    )

    # Rate limiter
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    # Domain errors
    app.add_exception_handler(UpgradeRequired, _upgrade_required)
    app.add_exception_handler(SessionNotFound, _status_handler(404))
    app.add_exception_handler(StopNotFound, _status_handler(404))
    app.add_exception_handler(InvalidStateTransition, _status_handler(409))
    app.add_exception_handler(ShareLinkError, _status_handler(422))
    app.add_exception_handler(CsvImportError, _status_handler(422))

    # Routers
    app.include_router(sessions.router, prefix="/api/v1")
    app.include_router(history.router, prefix="/api/v1")
    app.include_router(admin.router, prefix="/api/v1")

    return app
