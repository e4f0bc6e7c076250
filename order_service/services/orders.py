"""
Order Lifecycle Controller
==========================

Creation
--------
1. Measure every leg (consecutive stop pair) concurrently.  Each provider
   call is bounded by a timeout; transient failures are retried with
   linear backoff, service-area failures are not.
2. Any failed leg fails the whole creation -- nothing is persisted.
3. Compute the fare from the leg distances and the trip time.
4. Insert the order in ``ASSIGNING``.

Transitions
-----------
``take`` / ``complete`` / ``cancel`` read the order (``OrderNotFound`` if
absent), check legality against the state machine (``IllegalTransition``)
and then apply a compare-and-swap UPDATE keyed on the status just read.
If another request moved the order in between, the UPDATE matches no row
and the caller gets ``IllegalTransition``.

Every public method returns a ``Result``; nothing raises across this
boundary for expected failures.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Callable, Union

from order_service.domain.entities import Location, Order, OrderRequest
from order_service.domain.enums import OrderAction
from order_service.domain.errors import (
    IllegalTransition,
    OrderNotFound,
    ProviderRejectedRequest,
    ServiceAreaUnavailable,
    TransientProviderFailure,
)
from order_service.domain.fare import FareEngine
from order_service.domain.result import Err, Ok, Result
from order_service.infrastructure.repositories import OrderRepository
from order_service.infrastructure.routing import DistanceProvider, DistanceResult

logger = logging.getLogger(__name__)

CreateError = Union[ServiceAreaUnavailable, TransientProviderFailure, ProviderRejectedRequest]
TransitionError = Union[OrderNotFound, IllegalTransition]

# Order ids are a 32-bit serial column; larger ids cannot exist
MAX_ORDER_ID = 2**31 - 1


def is_valid_order_id(order_id: int) -> bool:
    return 1 <= order_id <= MAX_ORDER_ID


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class OrderService:
    def __init__(
        self,
        repository: OrderRepository,
        distances: DistanceProvider,
        fares: FareEngine,
        *,
        timeout_seconds: float = 5.0,
        max_attempts: int = 3,
        retry_backoff_seconds: float = 0.2,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.repository = repository
        self.distances = distances
        self.fares = fares
        self.timeout_seconds = timeout_seconds
        self.max_attempts = max(1, max_attempts)
        self.retry_backoff_seconds = retry_backoff_seconds
        self.clock = clock

    # ── Creation ──────────────────────────────────────────────────────

    async def create_order(self, request: OrderRequest) -> Result[Order, CreateError]:
        measured = await self.measure_legs(request.legs)
        if isinstance(measured, Err):
            logger.info("Order rejected: %s", measured.error)
            return measured

        now = self.clock()
        trip_time = request.order_at or now
        fare = self.fares.calculate(measured.value, trip_time)

        order = await self.repository.create_order(
            stops=request.stops,
            driving_distances_m=measured.value,
            fare=fare,
            created_time=now,
            order_date_time=trip_time,
        )
        logger.info(
            "Order %d created: %d legs, %s %s",
            order.id, len(order.driving_distances_m),
            fare.formatted_amount, fare.currency,
        )
        return Ok(order)

    async def measure_legs(
        self, legs: list[tuple[Location, Location]]
    ) -> Result[list[int], CreateError]:
        """Measure all legs concurrently; the first failure wins, area errors first."""
        results = await asyncio.gather(*(self._measure_leg(a, b) for a, b in legs))

        failures = [r.error for r in results if isinstance(r, Err)]
        if failures:
            area = [f for f in failures if isinstance(f, ServiceAreaUnavailable)]
            return Err(area[0] if area else failures[0])
        return Ok([r.value for r in results])

    async def _measure_leg(self, origin: Location, destination: Location) -> DistanceResult:
        result: DistanceResult = Err(TransientProviderFailure("Routing provider not called"))
        for attempt in range(1, self.max_attempts + 1):
            try:
                result = await asyncio.wait_for(
                    self.distances.distance(origin, destination),
                    timeout=self.timeout_seconds,
                )
            except asyncio.TimeoutError:
                result = Err(TransientProviderFailure(
                    f"Routing provider timed out after {self.timeout_seconds}s"
                ))

            if isinstance(result, Ok):
                if result.value < 0:
                    return Err(TransientProviderFailure(
                        f"Routing provider returned negative distance {result.value}"
                    ))
                return result
            if not isinstance(result.error, TransientProviderFailure):
                return result

            logger.warning(
                "Leg %s -> %s attempt %d/%d failed: %s",
                origin, destination, attempt, self.max_attempts, result.error,
            )
            if attempt < self.max_attempts:
                await asyncio.sleep(self.retry_backoff_seconds * attempt)
        return result

    # ── Queries ───────────────────────────────────────────────────────

    async def get_order(self, order_id: int) -> Result[Order, OrderNotFound]:
        if not is_valid_order_id(order_id):
            return Err(OrderNotFound(order_id))
        order = await self.repository.get_by_id(order_id)
        if order is None:
            return Err(OrderNotFound(order_id))
        return Ok(order)

    async def list_orders(self, page: int = 1, limit: int = 10) -> list[Order]:
        return await self.repository.list_orders(offset=(page - 1) * limit, limit=limit)

    # ── Transitions ───────────────────────────────────────────────────

    async def take(self, order_id: int) -> Result[Order, TransitionError]:
        return await self.apply(order_id, OrderAction.TAKE)

    async def complete(self, order_id: int) -> Result[Order, TransitionError]:
        return await self.apply(order_id, OrderAction.COMPLETE)

    async def cancel(self, order_id: int) -> Result[Order, TransitionError]:
        return await self.apply(order_id, OrderAction.CANCEL)

    async def apply(self, order_id: int, action: OrderAction) -> Result[Order, TransitionError]:
        if not is_valid_order_id(order_id):
            return Err(OrderNotFound(order_id))
        current = await self.repository.get_by_id(order_id)
        if current is None:
            return Err(OrderNotFound(order_id))

        now = self.clock()
        try:
            updated = current.applied(action, now)
        except IllegalTransition as exc:
            logger.info("Rejected %s on order %d: %s", action.value, order_id, exc)
            return Err(exc)

        swapped = await self.repository.compare_and_set_status(
            order_id,
            expected=current.status,
            new=updated.status,
            timestamp_field=action.timestamp_field,
            at=now,
        )
        if not swapped:
            logger.info("Lost race applying %s to order %d", action.value, order_id)
            return Err(IllegalTransition(
                f"Order {order_id} is no longer {current.status.value}"
            ))

        logger.info(
            "Order %d: %s -> %s", order_id, current.status.value, updated.status.value
        )
        return Ok(updated)
