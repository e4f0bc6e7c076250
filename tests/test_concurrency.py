"""
Concurrency safety tests.

Demonstrates:
1. The compare-and-swap UPDATE refuses a transition based on a stale read.
2. Two simultaneous transitions on one order: exactly one wins.
"""

from __future__ import annotations

import asyncio
import dataclasses
from datetime import datetime, timezone

import pytest

from order_service.domain.entities import Order, OrderRequest
from order_service.domain.enums import OrderAction, OrderStatus
from order_service.domain.errors import IllegalTransition
from order_service.domain.fare import FareEngine
from order_service.domain.result import Err, Ok
from order_service.infrastructure.repositories import OrderRepository
from order_service.services.orders import OrderService
from tests.conftest import STOP_A, STOP_B

NOW = datetime(2026, 10, 19, 7, 0, tzinfo=timezone.utc)


async def _create(session_factory, router) -> int:
    async with session_factory() as session:
        service = OrderService(OrderRepository(session), router, FareEngine())
        result = await service.create_order(OrderRequest(stops=(STOP_A, STOP_B)))
        await session.commit()
        return result.value.id


class TestCompareAndSwap:
    """Repository-level guard against lost updates."""

    @pytest.mark.asyncio
    async def test_stale_read_cannot_transition(self, session_factory, stub_router):
        order_id = await _create(session_factory, stub_router)

        async with session_factory() as slow, session_factory() as fast:
            stale = await OrderRepository(slow).get_by_id(order_id)
            assert stale.status == OrderStatus.ASSIGNING

            won = await OrderRepository(fast).compare_and_set_status(
                order_id,
                expected=OrderStatus.ASSIGNING,
                new=OrderStatus.ONGOING,
                timestamp_field="ongoing_time",
                at=NOW,
            )
            await fast.commit()

            lost = await OrderRepository(slow).compare_and_set_status(
                order_id,
                expected=stale.status,
                new=OrderStatus.CANCELLED,
                timestamp_field="cancelled_at",
                at=NOW,
            )
            await slow.commit()

        assert won is True
        assert lost is False

        async with session_factory() as session:
            stored = await OrderRepository(session).get_by_id(order_id)
        assert stored.status == OrderStatus.ONGOING
        assert stored.cancelled_at is None

    @pytest.mark.asyncio
    async def test_unknown_id_matches_nothing(self, db_session):
        swapped = await OrderRepository(db_session).compare_and_set_status(
            404,
            expected=OrderStatus.ASSIGNING,
            new=OrderStatus.ONGOING,
            timestamp_field="ongoing_time",
            at=NOW,
        )
        assert swapped is False


class _InterleavingRepository:
    """
    In-memory repository that yields to the event loop after every read,
    so concurrent callers all observe the same status before any writes.
    """

    def __init__(self, order: Order):
        self.order = order
        self.lock = asyncio.Lock()

    async def get_by_id(self, order_id: int):
        snapshot = dataclasses.replace(self.order)
        await asyncio.sleep(0)
        return snapshot if order_id == self.order.id else None

    async def compare_and_set_status(self, order_id, *, expected, new, timestamp_field, at):
        async with self.lock:
            if self.order.status != expected:
                return False
            self.order = dataclasses.replace(
                self.order, status=new, **{timestamp_field: at}
            )
            return True


class TestSimultaneousTransitions:
    def _service(self, repo, stub_router) -> OrderService:
        return OrderService(repo, stub_router, FareEngine(), clock=lambda: NOW)

    @pytest.mark.asyncio
    async def test_two_takes_exactly_one_wins(self, stub_router):
        repo = _InterleavingRepository(Order(id=1, status=OrderStatus.ASSIGNING))
        service = self._service(repo, stub_router)

        results = await asyncio.gather(service.take(1), service.take(1))

        wins = [r for r in results if isinstance(r, Ok)]
        losses = [r for r in results if isinstance(r, Err)]
        assert len(wins) == 1
        assert len(losses) == 1
        assert isinstance(losses[0].error, IllegalTransition)
        assert repo.order.status == OrderStatus.ONGOING

    @pytest.mark.asyncio
    async def test_take_and_cancel_race_leaves_one_outcome(self, stub_router):
        repo = _InterleavingRepository(Order(id=1, status=OrderStatus.ASSIGNING))
        service = self._service(repo, stub_router)

        take, cancel = await asyncio.gather(
            service.apply(1, OrderAction.TAKE), service.apply(1, OrderAction.CANCEL)
        )

        assert isinstance(take, Ok) != isinstance(cancel, Ok)
        if isinstance(take, Ok):
            assert repo.order.status == OrderStatus.ONGOING
            assert repo.order.cancelled_at is None
        else:
            assert repo.order.status == OrderStatus.CANCELLED
            assert repo.order.ongoing_time is None

    @pytest.mark.asyncio
    async def test_many_concurrent_takes(self, stub_router):
        repo = _InterleavingRepository(Order(id=7, status=OrderStatus.ASSIGNING))
        service = self._service(repo, stub_router)

        results = await asyncio.gather(*(service.take(7) for _ in range(10)))
        assert sum(isinstance(r, Ok) for r in results) == 1
