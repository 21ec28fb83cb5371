"""
Saved data endpoints (pro)
==========================

GET    /api/v1/recent-searches        -- last 20 searches, newest first
DELETE /api/v1/recent-searches        -- clear all recent searches
DELETE /api/v1/recent-searches/{id}   -- delete one recent search
GET    /api/v1/depots                 -- saved depots
POST   /api/v1/depots                 -- save a depot
DELETE /api/v1/depots/{id}            -- delete a depot
GET    /api/v1/history                -- calculation history (retention window)
"""

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from truckcheck.api.dependencies import Caller, get_db, require_user
from truckcheck.api.middleware import limiter
from truckcheck.api.schemas import (
    CalculationHistoryResponse,
    DeletedResponse,
    DepotCreateRequest,
    DepotResponse,
    RecentSearchResponse,
)
from truckcheck.config import settings
from truckcheck.domain.enums import Feature
from truckcheck.infrastructure.repositories import (
    CalculationRepository,
    DepotRepository,
    RecentSearchRepository,
)

router = APIRouter(tags=["history"])


# ── Recent searches ───────────────────────────────────────────────────


@router.get(
    "/recent-searches",
    response_model=list[RecentSearchResponse],
    summary="List recent searches",
)
@limiter.limit(settings.rate_limit)
async def list_recent_searches(
    request: Request,
    caller: Caller = Depends(require_user),
    db: AsyncSession = Depends(get_db),
):
    caller.require(Feature.RECENT_SEARCHES)
    records = await RecentSearchRepository(db).list_for_user(
        caller.user_id, limit=settings.recent_search_limit
    )
    return [RecentSearchResponse.from_domain(r) for r in records]


@router.delete(
    "/recent-searches", response_model=DeletedResponse, summary="Clear recent searches"
)
@limiter.limit(settings.rate_limit)
async def clear_recent_searches(
    request: Request,
    caller: Caller = Depends(require_user),
    db: AsyncSession = Depends(get_db),
):
    caller.require(Feature.RECENT_SEARCHES)
    deleted = await RecentSearchRepository(db).clear(caller.user_id)
    return DeletedResponse(deleted=deleted)


@router.delete(
    "/recent-searches/{search_id}",
    response_model=DeletedResponse,
    summary="Delete a recent search",
)
@limiter.limit(settings.rate_limit)
async def delete_recent_search(
    request: Request,
    search_id: int,
    caller: Caller = Depends(require_user),
    db: AsyncSession = Depends(get_db),
):
    caller.require(Feature.RECENT_SEARCHES)
    if not await RecentSearchRepository(db).delete(caller.user_id, search_id):
        raise HTTPException(status_code=404, detail="Recent search not found")
    return DeletedResponse(deleted=1)


# ── Depots ────────────────────────────────────────────────────────────


@router.get("/depots", response_model=list[DepotResponse], summary="List saved depots")
@limiter.limit(settings.rate_limit)
async def list_depots(
    request: Request,
    caller: Caller = Depends(require_user),
    db: AsyncSession = Depends(get_db),
):
    caller.require(Feature.DEPOTS)
    return await DepotRepository(db).list_for_user(caller.user_id)


@router.post(
    "/depots", status_code=201, response_model=DepotResponse, summary="Save a depot"
)
@limiter.limit(settings.rate_limit)
async def create_depot(
    request: Request,
    body: DepotCreateRequest,
    caller: Caller = Depends(require_user),
    db: AsyncSession = Depends(get_db),
):
    caller.require(Feature.DEPOTS)
    name = body.name.strip() if body.name else None
    return await DepotRepository(db).save(
        caller.user_id, address=body.address, lat=body.lat, lng=body.lng, name=name
    )


@router.delete("/depots/{depot_id}", response_model=DeletedResponse, summary="Delete a depot")
@limiter.limit(settings.rate_limit)
async def delete_depot(
    request: Request,
    depot_id: int,
    caller: Caller = Depends(require_user),
    db: AsyncSession = Depends(get_db),
):
    caller.require(Feature.DEPOTS)
    if not await DepotRepository(db).delete(caller.user_id, depot_id):
        raise HTTPException(status_code=404, detail="Depot not found")
    return DeletedResponse(deleted=1)


# ── Calculation history ───────────────────────────────────────────────


@router.get(
    "/history",
    response_model=list[CalculationHistoryResponse],
    summary="Calculation history",
    description="Calculations saved within the retention window, newest first.",
)
@limiter.limit(settings.rate_limit)
async def list_history(
    request: Request,
    caller: Caller = Depends(require_user),
    db: AsyncSession = Depends(get_db),
):
    caller.require(Feature.HISTORY)
    return await CalculationRepository(db).list_for_user(
        caller.user_id, retention_days=settings.history_retention_days
    )
