"""
Shared test fixtures.

Uses a throwaway SQLite database file (via aiosqlite) per test so tests run
without Docker / PostgreSQL / Redis.  Routing goes through
``StubDistanceProvider``, a fixed table of leg distances, so fares are
exactly predictable.
"""

from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from order_service.config import settings
from order_service.domain.entities import Location
from order_service.domain.errors import ServiceAreaUnavailable
from order_service.domain.fare import FareEngine, FarePolicy
from order_service.domain.result import Err, Ok
from order_service.infrastructure import models  # noqa: F401  (registers tables)
from order_service.infrastructure.database import Base
from order_service.infrastructure.routing import DistanceProvider, ServiceArea


# ── Reference locations ───────────────────────────────────────────────

STOP_A = Location(22.344674, 114.124651)  # Lai Chi Kok
STOP_B = Location(22.375384, 114.182446)  # Sha Tin
STOP_C = Location(22.297620, 114.172240)  # Tsim Sha Tsui
TAIWAN = Location(23.49069256622041, 120.45595775037833)

LEG_TABLE = {
    (STOP_A, STOP_B): 10605,
    (STOP_B, STOP_A): 10460,
    (STOP_B, STOP_C): 9876,
    (STOP_A, STOP_C): 1500,
}

HONG_KONG = ServiceArea.from_settings(settings)


def as_json(location: Location) -> dict:
    return {"lat": location.lat, "lng": location.lng}


class StubDistanceProvider(DistanceProvider):
    """
    Fixed leg table inside the Hong Kong service area.

    ``failures`` are returned, in order, before the table is consulted,
    which lets tests script transient outages.
    """

    def __init__(self, legs=None, failures=None, service_area=HONG_KONG):
        super().__init__(service_area)
        self.legs = dict(LEG_TABLE if legs is None else legs)
        self.failures = list(failures or [])
        self.calls: list[tuple[Location, Location]] = []

    async def _measure(self, origin, destination):
        self.calls.append((origin, destination))
        if self.failures:
            return Err(self.failures.pop(0))
        if (origin, destination) not in self.legs:
            return Err(ServiceAreaUnavailable("No route in stub table"))
        return Ok(self.legs[(origin, destination)])


# ── Fixtures ──────────────────────────────────────────────────────────


@pytest_asyncio.fixture
async def session_factory(tmp_path) -> AsyncGenerator[async_sessionmaker, None]:
    """Fresh SQLite file with all tables; disposed after the test."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'orders.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def stub_router() -> StubDistanceProvider:
    return StubDistanceProvider()


@pytest.fixture
def fare_engine() -> FareEngine:
    return FareEngine(FarePolicy())


@pytest_asyncio.fixture
async def client(session_factory, stub_router, fare_engine):
    """AsyncClient backed by SQLite and the stub router."""
    from order_service.api.app import create_app
    from order_service.api.dependencies import (
        get_db,
        get_distance_provider,
        get_fare_engine,
    )
    from order_service.api.middleware import limiter

    # DB session dependency
    async def _test_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app = create_app()
    app.dependency_overrides[get_db] = _test_db
    app.dependency_overrides[get_distance_provider] = lambda: stub_router
    app.dependency_overrides[get_fare_engine] = lambda: fare_engine

    limiter_was_enabled = limiter.enabled
    limiter.enabled = False
    try:
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            yield ac
    finally:
        limiter.enabled = limiter_was_enabled
