"""
Shared test fixtures.

Uses an in-memory SQLite database (via aiosqlite) so tests run without
Docker / PostgreSQL / Redis.  The production models only use portable
column types, so ``Base.metadata`` is created as-is.  Mapbox is replaced
by the fakes in ``tests/fakes.py``.
"""

from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine

from tests.fakes import FREE_USER_ID, PRO_USER_ID, FakeClock, FakeGeocoder, FakeRouter
from truckcheck.domain.session import SessionRegistry
from truckcheck.infrastructure.database import Base, build_session_factory
from truckcheck.infrastructure.models import UserModel

# ── Test DB (SQLite in-memory) ────────────────────────────────────────

TEST_DB_URL = "sqlite+aiosqlite:///:memory:"


# ── Fixtures ──────────────────────────────────────────────────────────


@pytest_asyncio.fixture
async def session_factory():
    """Fresh schema per test; yields a factory bound to it."""
    engine = create_async_engine(TEST_DB_URL, echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = build_session_factory(engine)
    async with factory() as session:
        session.add(UserModel(id=FREE_USER_ID, name="Free User", email="free@example.com"))
        session.add(
            UserModel(
                id=PRO_USER_ID,
                name="Pro User",
                email="pro@example.com",
                subscription_status="pro",
            )
        )
        await session.commit()

    yield factory

    await engine.dispose()

@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session

@pytest.fixture
def geocoder() -> FakeGeocoder:
    return FakeGeocoder()

@pytest.fixture
def route_provider() -> FakeRouter:
    return FakeRouter()

@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()

@pytest.fixture
def registry(clock) -> SessionRegistry:
    return SessionRegistry(ttl_seconds=3600, clock=clock)

@pytest_asyncio.fixture
async def client(session_factory, geocoder, route_provider, registry):
    """AsyncClient over the real app with DB and Mapbox dependencies overridden."""
    from truckcheck.api.app import create_app
    from truckcheck.api.dependencies import (
        get_geocoder,
        get_registry,
        get_route_provider,
        get_session_factory,
    )
    from truckcheck.api.middleware import limiter

    app = create_app()
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_geocoder] = lambda: geocoder
    app.dependency_overrides[get_route_provider] = lambda: route_provider
    app.dependency_overrides[get_registry] = lambda: registry
    limiter.reset()

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
