"""
Calculation session endpoints
=============================

POST   /api/v1/sessions                           -- start a session
POST   /api/v1/sessions/restore                   -- open a share link
GET    /api/v1/sessions/{id}                      -- current state
DELETE /api/v1/sessions/{id}                      -- end a session
POST   /api/v1/sessions/{id}/reset                -- clear everything
PUT    /api/v1/sessions/{id}/base                 -- set the base address
POST   /api/v1/sessions/{id}/stops                -- add a stop (pro for 2+)
PATCH  /api/v1/sessions/{id}/stops/{stop_id}      -- edit address / location
DELETE /api/v1/sessions/{id}/stops/{stop_id}      -- remove a stop
POST   /api/v1/sessions/{id}/stops/reorder        -- move a stop
POST   /api/v1/sessions/{id}/calculate            -- run the 100 km check
GET    /api/v1/sessions/{id}/share                -- share link for the result
GET    /api/v1/sessions/{id}/export.csv           -- CSV export (pro)
POST   /api/v1/sessions/{id}/import               -- CSV import (pro)
POST   /api/v1/sessions/{id}/recent/{search_id}   -- re-run a recent search (pro)
"""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from truckcheck.api.dependencies import (
    Caller,
    get_caller,
    get_db,
    get_geocoder,
    get_registry,
    get_route_provider,
    get_session_factory,
)
from truckcheck.api.middleware import limiter
from truckcheck.api.schemas import (
    BaseAddressRequest,
    CsvImportRequest,
    ReorderRequest,
    RestoreRequest,
    SessionResponse,
    ShareResponse,
    StopSchema,
    StopUpdateRequest,
)
from truckcheck.config import settings
from truckcheck.domain.compliance import Geocoder, RouteProvider
from truckcheck.domain.csv_io import (
    ColumnMapping,
    detect_columns,
    export_csv,
    import_first_row,
    parse_csv,
)
from truckcheck.domain.entities import RouteResult
from truckcheck.domain.enums import Feature
from truckcheck.domain.records import result_to_record
from truckcheck.domain.session import CalculationSession, SessionRegistry
from truckcheck.domain.share import encode_result, parse_query_string, to_query_string
from truckcheck.infrastructure.repositories import (
    CalculationRepository,
    RecentSearchRepository,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sessions", tags=["sessions"])


def _session(registry: SessionRegistry, session_id: str, caller: Caller) -> CalculationSession:
    """Look up a session and bring its entitlement in line with the caller."""
    session = registry.get(session_id)
    session.entitled = caller.entitled
    return session


async def persist_result(
    factory: async_sessionmaker[AsyncSession], user_id: int, result: RouteResult
) -> None:
    """Fire-and-forget: a failed history write never affects the response."""
    record = result_to_record(result)
    try:
        async with factory() as db:
            await CalculationRepository(db).save(user_id, record)
            await RecentSearchRepository(db).save(user_id, record)
            await db.commit()
    except Exception:
        logger.exception("Failed to persist calculation for user %s", user_id)


# ── Lifecycle ─────────────────────────────────────────────────────────


@router.post("", status_code=201, response_model=SessionResponse, summary="Start a session")
@limiter.limit(settings.rate_limit)
async def create_session(
    request: Request,
    caller: Caller = Depends(get_caller),
    registry: SessionRegistry = Depends(get_registry),
):
    return SessionResponse.from_domain(registry.create(entitled=caller.entitled))


@router.post(
    "/restore",
    status_code=201,
    response_model=SessionResponse,
    summary="Open a share link",
    description=(
        "Decodes a share query string into a new session.  Multi-stop links "
        "opened without a pro subscription are shown in full but flagged "
        "``view_only``."
    ),
)
@limiter.limit(settings.rate_limit)
async def restore_session(
    request: Request,
    body: RestoreRequest,
    caller: Caller = Depends(get_caller),
    registry: SessionRegistry = Depends(get_registry),
    route_provider: RouteProvider = Depends(get_route_provider),
):
    session = registry.create(entitled=caller.entitled)
    await session.restore(parse_query_string(body.query), route_provider)
    return SessionResponse.from_domain(session)


@router.get("/{session_id}", response_model=SessionResponse, summary="Get session state")
@limiter.limit(settings.rate_limit)
async def get_session(
    request: Request,
    session_id: str,
    caller: Caller = Depends(get_caller),
    registry: SessionRegistry = Depends(get_registry),
):
    return SessionResponse.from_domain(_session(registry, session_id, caller))


@router.delete("/{session_id}", status_code=204, summary="End a session")
@limiter.limit(settings.rate_limit)
async def end_session(
    request: Request,
    session_id: str,
    registry: SessionRegistry = Depends(get_registry),
):
    registry.get(session_id).reset()  # orphans an in-flight calculation
    registry.discard(session_id)
    return Response(status_code=204)


@router.post("/{session_id}/reset", response_model=SessionResponse, summary="Reset a session")
@limiter.limit(settings.rate_limit)
async def reset_session(
    request: Request,
    session_id: str,
    caller: Caller = Depends(get_caller),
    registry: SessionRegistry = Depends(get_registry),
):
    session = _session(registry, session_id, caller)
    session.reset()
    return SessionResponse.from_domain(session)


# ── Editing ───────────────────────────────────────────────────────────


@router.put("/{session_id}/base", response_model=SessionResponse, summary="Set base location")
@limiter.limit(settings.rate_limit)
async def set_base(
    request: Request,
    session_id: str,
    body: BaseAddressRequest,
    caller: Caller = Depends(get_caller),
    registry: SessionRegistry = Depends(get_registry),
):
    session = _session(registry, session_id, caller)
    if body.location is not None:
        session.set_base_location(body.location.to_domain())
    else:
        session.set_base_address(body.address)
    return SessionResponse.from_domain(session)


@router.post(
    "/{session_id}/stops",
    status_code=201,
    response_model=StopSchema,
    summary="Add a stop",
    responses={402: {"description": "Multiple stops need a pro subscription."}},
)
@limiter.limit(settings.rate_limit)
async def add_stop(
    request: Request,
    session_id: str,
    caller: Caller = Depends(get_caller),
    registry: SessionRegistry = Depends(get_registry),
):
    session = _session(registry, session_id, caller)
    return StopSchema.from_domain(session.add_stop())


@router.patch(
    "/{session_id}/stops/{stop_id}", response_model=StopSchema, summary="Edit a stop"
)
@limiter.limit(settings.rate_limit)
async def update_stop(
    request: Request,
    session_id: str,
    stop_id: str,
    body: StopUpdateRequest,
    caller: Caller = Depends(get_caller),
    registry: SessionRegistry = Depends(get_registry),
):
    session = _session(registry, session_id, caller)
    session.ensure_editable()
    if body.address is None and body.location is None:
        raise HTTPException(status_code=422, detail="Provide an address or a location")

    stop = None
    if body.address is not None:
        stop = session.stops.update_address(stop_id, body.address)
    if body.location is not None:
        stop = session.stops.update_location(stop_id, body.location.to_domain())
    return StopSchema.from_domain(stop)


@router.delete(
    "/{session_id}/stops/{stop_id}", response_model=SessionResponse, summary="Remove a stop"
)
@limiter.limit(settings.rate_limit)
async def remove_stop(
    request: Request,
    session_id: str,
    stop_id: str,
    caller: Caller = Depends(get_caller),
    registry: SessionRegistry = Depends(get_registry),
):
    session = _session(registry, session_id, caller)
    session.stops.remove_stop(stop_id)
    return SessionResponse.from_domain(session)


@router.post(
    "/{session_id}/stops/reorder", response_model=SessionResponse, summary="Move a stop"
)
@limiter.limit(settings.rate_limit)
async def reorder_stops(
    request: Request,
    session_id: str,
    body: ReorderRequest,
    caller: Caller = Depends(get_caller),
    registry: SessionRegistry = Depends(get_registry),
):
    session = _session(registry, session_id, caller)
    session.ensure_editable()
    try:
        session.stops.reorder(body.from_index, body.to_index)
    except IndexError as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    return SessionResponse.from_domain(session)


# ── Calculation ───────────────────────────────────────────────────────


@router.post(
    "/{session_id}/calculate",
    response_model=SessionResponse,
    summary="Check whether a logbook is required",
    description=(
        "Geocodes the base and every unresolved stop, fetches the driving "
        "route and applies the 100 km rule.  Failures end in status FAILED "
        "with an ``error`` message (and ``failed_stop`` when a stop could not "
        "be found) rather than an HTTP error."
    ),
)
@limiter.limit(settings.rate_limit)
async def calculate(
    request: Request,
    session_id: str,
    background_tasks: BackgroundTasks,
    caller: Caller = Depends(get_caller),
    registry: SessionRegistry = Depends(get_registry),
    geocoder: Geocoder = Depends(get_geocoder),
    route_provider: RouteProvider = Depends(get_route_provider),
    factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
):
    session = _session(registry, session_id, caller)
    outcome = await session.calculate(geocoder, route_provider)

    if outcome.applied and outcome.ok and caller.entitled and caller.user_id is not None:
        background_tasks.add_task(persist_result, factory, caller.user_id, outcome.result)
    return SessionResponse.from_domain(session)


@router.get("/{session_id}/share", response_model=ShareResponse, summary="Share link")
@limiter.limit(settings.rate_limit)
async def share(
    request: Request,
    session_id: str,
    caller: Caller = Depends(get_caller),
    registry: SessionRegistry = Depends(get_registry),
):
    session = _session(registry, session_id, caller)
    if session.result is None:
        raise HTTPException(status_code=409, detail="Nothing to share yet")
    return ShareResponse(
        query=to_query_string(session.result), params=encode_result(session.result)
    )


# ── CSV ───────────────────────────────────────────────────────────────


@router.get("/{session_id}/export.csv", summary="Export the result as CSV (pro)")
@limiter.limit(settings.rate_limit)
async def export_result(
    request: Request,
    session_id: str,
    caller: Caller = Depends(get_caller),
    registry: SessionRegistry = Depends(get_registry),
):
    caller.require(Feature.CSV_EXPORT)
    session = _session(registry, session_id, caller)
    if session.result is None:
        raise HTTPException(status_code=409, detail="Nothing to export yet")

    now = datetime.now(timezone.utc)
    return Response(
        content=export_csv(session.result, now),
        media_type="text/csv; charset=utf-8",
        headers={
            "Content-Disposition": (
                f'attachment; filename="logbook-calculation-{now.date().isoformat()}.csv"'
            )
        },
    )


@router.post(
    "/{session_id}/import", response_model=SessionResponse, summary="Import stops from CSV (pro)"
)
@limiter.limit(settings.rate_limit)
async def import_route(
    request: Request,
    session_id: str,
    body: CsvImportRequest,
    caller: Caller = Depends(get_caller),
    registry: SessionRegistry = Depends(get_registry),
    geocoder: Geocoder = Depends(get_geocoder),
):
    caller.require(Feature.CSV_IMPORT)
    session = _session(registry, session_id, caller)

    headers, rows = parse_csv(body.csv)
    mapping = detect_columns(headers, rows)
    if body.base_column is not None:
        mapping = ColumnMapping(
            base=body.base_column,
            stops=[i for i in mapping.stops if i != body.base_column],
        )
    if body.stop_columns is not None:
        mapping = ColumnMapping(base=mapping.base, stops=list(body.stop_columns))

    base, stops = await import_first_row(rows, mapping, geocoder)
    session.set_base_location(base)
    session.stops.replace(stops)
    return SessionResponse.from_domain(session)


# ── Recent searches ───────────────────────────────────────────────────


@router.post(
    "/{session_id}/recent/{search_id}",
    response_model=SessionResponse,
    summary="Load a recent search (pro)",
)
@limiter.limit(settings.rate_limit)
async def load_recent_search(
    request: Request,
    session_id: str,
    search_id: int,
    caller: Caller = Depends(get_caller),
    registry: SessionRegistry = Depends(get_registry),
    route_provider: RouteProvider = Depends(get_route_provider),
    db: AsyncSession = Depends(get_db),
):
    caller.require(Feature.RECENT_SEARCHES)
    session = _session(registry, session_id, caller)
    record = await RecentSearchRepository(db).get(caller.user_id, search_id)
    if record is None:
        raise HTTPException(status_code=404, detail="Recent search not found")
    await session.load_recent(record, route_provider)
    return SessionResponse.from_domain(session)
