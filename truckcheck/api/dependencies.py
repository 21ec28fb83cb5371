"""FastAPI dependency injection helpers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Header, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from truckcheck.domain.compliance import Geocoder, RouteProvider
from truckcheck.domain.entities import UpgradeRequired
from truckcheck.domain.enums import Feature
from truckcheck.domain.session import SessionRegistry
from truckcheck.infrastructure.database import async_session_factory
from truckcheck.infrastructure.repositories import UserRepository


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    return async_session_factory


async def get_db(
    factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> AsyncSession:  # type: ignore[misc]
    """Yield an async DB session; commit on success, rollback on error."""
    async with factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


def get_registry(request: Request) -> SessionRegistry:
    return request.app.state.sessions


def get_geocoder(request: Request) -> Geocoder:
    return request.app.state.geocoder


def get_route_provider(request: Request) -> RouteProvider:
    return request.app.state.router


# ── Entitlement ───────────────────────────────────────────────────────


@dataclass(frozen=True)
class Caller:
    user_id: Optional[int] = None
    entitled: bool = False

    def require(self, feature: Feature) -> None:
        """Explicit capability check; the write path never trusts the client."""
        if not self.entitled:
            raise UpgradeRequired(feature)


async def get_caller(
    x_user_id: Optional[int] = Header(default=None),
    db: AsyncSession = Depends(get_db),
) -> Caller:
    """Resolve the ``X-User-Id`` header; anonymous callers are never entitled."""
    if x_user_id is None:
        return Caller()
    users = UserRepository(db)
    user = await users.get_by_id(x_user_id)
    if user is None:
        return Caller()
    return Caller(user_id=user.id, entitled=await users.is_pro(user.id))


async def require_user(caller: Caller = Depends(get_caller)) -> Caller:
    if caller.user_id is None:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return caller
