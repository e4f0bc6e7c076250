"""
Routing providers  (Adapter Pattern)
====================================

Every provider answers one question: the driving distance, in whole
meters, between two stops.  Failures come back as ``Err`` values:

* ``ServiceAreaUnavailable``   -- a stop is outside the operator's region,
  or the provider cannot route between the points.  Never retried.
* ``TransientProviderFailure`` -- timeouts, transport errors, quota or
  server errors.  The lifecycle controller retries these.
* ``ProviderRejectedRequest``  -- the provider refused the request itself
  (``REQUEST_DENIED``, ``INVALID_REQUEST``).  Never retried.

Providers
---------
* ``GoogleDistanceMatrixProvider`` -- Distance Matrix JSON API via ``httpx``.
* ``HaversineDistanceProvider``    -- offline fallback (no API key needed).
* ``CachedDistanceProvider``       -- Redis read-through cache around another
  provider.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, Union

import httpx
import redis.asyncio as aioredis
from redis.exceptions import RedisError

from order_service.domain.distance import haversine_m
from order_service.domain.entities import Location
from order_service.domain.errors import (
    ProviderRejectedRequest,
    ServiceAreaUnavailable,
    TransientProviderFailure,
)
from order_service.domain.result import Err, Ok, Result

logger = logging.getLogger(__name__)

DistanceResult = Result[
    int, Union[ServiceAreaUnavailable, TransientProviderFailure, ProviderRejectedRequest]
]

# Distance Matrix element statuses meaning "no drivable route exists"
UNROUTABLE_STATUSES = {"ZERO_RESULTS", "NOT_FOUND"}

# Top-level statuses worth another attempt; anything else is permanent
RETRYABLE_STATUSES = {"OVER_QUERY_LIMIT", "UNKNOWN_ERROR"}


@dataclass(frozen=True)
class ServiceArea:
    """Axis-aligned lat/lng bounding box the operator serves."""

    min_lat: float
    max_lat: float
    min_lng: float
    max_lng: float

    @classmethod
    def from_settings(cls, settings) -> ServiceArea:
        return cls(
            min_lat=settings.service_area_min_lat,
            max_lat=settings.service_area_max_lat,
            min_lng=settings.service_area_min_lng,
            max_lng=settings.service_area_max_lng,
        )

    def contains(self, point: Location) -> bool:
        return (
            self.min_lat <= point.lat <= self.max_lat
            and self.min_lng <= point.lng <= self.max_lng
        )


# ── Provider hierarchy ────────────────────────────────────────────────


class DistanceProvider(ABC):
    def __init__(self, service_area: Optional[ServiceArea] = None):
        self.service_area = service_area

    async def distance(self, origin: Location, destination: Location) -> DistanceResult:
        """Driving distance in meters, or a typed failure."""
        if self.service_area is not None:
            for point in (origin, destination):
                if not self.service_area.contains(point):
                    return Err(ServiceAreaUnavailable(
                        f"Location ({point.lat}, {point.lng}) is outside the service area"
                    ))
        return await self._measure(origin, destination)

    @abstractmethod
    async def _measure(self, origin: Location, destination: Location) -> DistanceResult: ...

    async def aclose(self) -> None:
        """Release any held connections."""


class HaversineDistanceProvider(DistanceProvider):
    """Great-circle distance scaled by a road factor; needs no network."""

    def __init__(self, service_area: Optional[ServiceArea] = None, road_factor: float = 1.3):
        super().__init__(service_area)
        self.road_factor = road_factor

    async def _measure(self, origin: Location, destination: Location) -> DistanceResult:
        meters = haversine_m(origin.lat, origin.lng, destination.lat, destination.lng)
        return Ok(round(meters * self.road_factor))


class GoogleDistanceMatrixProvider(DistanceProvider):
    def __init__(
        self,
        api_key: str,
        *,
        service_area: Optional[ServiceArea] = None,
        base_url: str = "https://maps.googleapis.com/maps/api/distancematrix/json",
        timeout: float = 5.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        super().__init__(service_area)
        self.api_key = api_key
        self.base_url = base_url
        self.client = client or httpx.AsyncClient(timeout=timeout)

    async def _measure(self, origin: Location, destination: Location) -> DistanceResult:
        params = {
            "origins": f"{origin.lat},{origin.lng}",
            "destinations": f"{destination.lat},{destination.lng}",
            "mode": "driving",
            "units": "metric",
            "key": self.api_key,
        }
        try:
            response = await self.client.get(self.base_url, params=params)
            response.raise_for_status()
            data = response.json()
        except httpx.TimeoutException as exc:
            return Err(TransientProviderFailure(f"Routing provider timed out: {exc!r}"))
        except (httpx.HTTPError, ValueError) as exc:
            return Err(TransientProviderFailure(f"Routing provider error: {exc!r}"))

        status = data.get("status")
        if status in RETRYABLE_STATUSES:
            return Err(TransientProviderFailure(f"Routing provider returned {status}"))
        if status != "OK":
            error = data.get("error_message") or status
            logger.error("Routing provider rejected request: %s", error)
            return Err(ProviderRejectedRequest(f"Routing provider rejected request: {error}"))

        try:
            element = data["rows"][0]["elements"][0]
        except (KeyError, IndexError, TypeError):
            return Err(TransientProviderFailure("Malformed routing provider response"))

        element_status = element.get("status")
        if element_status in UNROUTABLE_STATUSES:
            return Err(ServiceAreaUnavailable(
                f"No driving route between ({origin.lat}, {origin.lng}) "
                f"and ({destination.lat}, {destination.lng})"
            ))
        if element_status != "OK":
            return Err(TransientProviderFailure(f"Route lookup returned {element_status}"))

        return Ok(int(element["distance"]["value"]))

    async def aclose(self) -> None:
        await self.client.aclose()


class CachedDistanceProvider(DistanceProvider):
    """
    Read-through Redis cache for successful leg distances.

    Only ``Ok`` results are cached.  Redis being unreachable degrades to
    calling the wrapped provider directly.
    """

    def __init__(self, inner: DistanceProvider, client: aioredis.Redis, ttl_seconds: int):
        super().__init__(service_area=None)
        self.inner = inner
        self.redis = client
        self.ttl = ttl_seconds

    @staticmethod
    def cache_key(origin: Location, destination: Location) -> str:
        return f"distance:{origin.lat},{origin.lng}:{destination.lat},{destination.lng}"

    async def _measure(self, origin: Location, destination: Location) -> DistanceResult:
        key = self.cache_key(origin, destination)
        try:
            cached = await self.redis.get(key)
        except RedisError:
            logger.warning("Distance cache read failed for %s", key, exc_info=True)
            cached = None
        if cached is not None:
            return Ok(int(cached))

        result = await self.inner.distance(origin, destination)
        if isinstance(result, Ok):
            try:
                await self.redis.set(key, result.value, ex=self.ttl)
            except RedisError:
                logger.warning("Distance cache write failed for %s", key, exc_info=True)
        return result

    async def aclose(self) -> None:
        await self.inner.aclose()


# ── Factory ───────────────────────────────────────────────────────────


def build_distance_provider(settings, redis_client: Optional[aioredis.Redis] = None) -> DistanceProvider:
    """Pick the provider stack described by *settings*."""
    area = ServiceArea.from_settings(settings)
    provider: DistanceProvider
    if settings.google_maps_api_key:
        provider = GoogleDistanceMatrixProvider(
            settings.google_maps_api_key,
            service_area=area,
            base_url=settings.google_maps_base_url,
            timeout=settings.routing_timeout_seconds,
        )
    else:
        logger.warning("No routing API key configured; using haversine approximation")
        provider = HaversineDistanceProvider(area, settings.haversine_road_factor)

    if settings.distance_cache_ttl_seconds > 0 and redis_client is not None:
        provider = CachedDistanceProvider(
            provider, redis_client, settings.distance_cache_ttl_seconds
        )
    return provider
