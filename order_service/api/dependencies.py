"""FastAPI dependency injection helpers."""

from functools import lru_cache

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from order_service.config import settings
from order_service.domain.fare import FareEngine, FarePolicy
from order_service.infrastructure.database import async_session_factory
from order_service.infrastructure.redis_client import get_redis
from order_service.infrastructure.repositories import OrderRepository
from order_service.infrastructure.routing import DistanceProvider, build_distance_provider
from order_service.services.orders import OrderService


async def get_db() -> AsyncSession:  # type: ignore[misc]
    """Yield an async DB session; commit on success, rollback on error."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


@lru_cache
def get_distance_provider() -> DistanceProvider:
    """Process-wide provider so the HTTP client's connection pool is shared."""
    redis_client = get_redis() if settings.distance_cache_ttl_seconds > 0 else None
    return build_distance_provider(settings, redis_client)


@lru_cache
def get_fare_engine() -> FareEngine:
    return FareEngine(FarePolicy.from_settings(settings))


def get_order_service(
    db: AsyncSession = Depends(get_db),
    distances: DistanceProvider = Depends(get_distance_provider),
    fares: FareEngine = Depends(get_fare_engine),
) -> OrderService:
    return OrderService(
        OrderRepository(db),
        distances,
        fares,
        timeout_seconds=settings.routing_timeout_seconds,
        max_attempts=settings.routing_max_attempts,
        retry_backoff_seconds=settings.routing_retry_backoff_seconds,
    )
