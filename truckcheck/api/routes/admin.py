"""
Admin / observability endpoints
===============================

GET /api/v1/admin/health -- simple health check with the live session count
"""

from fastapi import APIRouter, Depends

from truckcheck.api.dependencies import get_registry
from truckcheck.api.schemas import HealthResponse
from truckcheck.domain.session import SessionRegistry

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/health", response_model=HealthResponse, summary="Health check")
async def health(registry: SessionRegistry = Depends(get_registry)):
    return HealthResponse(sessions=len(registry))
