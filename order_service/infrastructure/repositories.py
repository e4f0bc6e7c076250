"""
Repository Pattern -- abstracts DB access so domain logic stays DB-agnostic.

The repository receives an ``AsyncSession`` (unit-of-work), exposes
domain-relevant queries only and hands back ``Order`` entities rather than
ORM rows.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional, Sequence

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from .models import OrderModel
from order_service.domain.entities import Fare, Location, Order
from order_service.domain.enums import OrderStatus


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite drops tzinfo on the way back; everything is stored in UTC.
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def _to_utc(value: datetime) -> datetime:
    # Naive values are rejected upstream; SQLite would store the wall clock.
    return value.astimezone(timezone.utc)


def to_entity(row: OrderModel) -> Order:
    return Order(
        id=row.id,
        stops=tuple(Location(lat=s["lat"], lng=s["lng"]) for s in row.stops),
        driving_distances_m=tuple(int(d) for d in row.driving_distances_m),
        fare=Fare(amount=Decimal(row.fare_amount), currency=row.fare_currency),
        status=OrderStatus(row.status),
        created_time=_as_utc(row.created_time),
        order_date_time=_as_utc(row.order_date_time),
        ongoing_time=_as_utc(row.ongoing_time),
        completed_at=_as_utc(row.completed_at),
        cancelled_at=_as_utc(row.cancelled_at),
    )


class OrderRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create_order(
        self,
        *,
        stops: Sequence[Location],
        driving_distances_m: Sequence[int],
        fare: Fare,
        created_time: datetime,
        order_date_time: datetime,
    ) -> Order:
        """Insert a new ASSIGNING order; the database assigns its id."""
        row = OrderModel(
            stops=[{"lat": s.lat, "lng": s.lng} for s in stops],
            driving_distances_m=list(driving_distances_m),
            fare_amount=fare.amount,
            fare_currency=fare.currency,
            status=OrderStatus.ASSIGNING,
            created_time=_to_utc(created_time),
            order_date_time=_to_utc(order_date_time),
        )
        self.session.add(row)
        await self.session.flush()
        return to_entity(row)

    async def get_by_id(self, order_id: int) -> Optional[Order]:
        # populate_existing: status may have changed under a bulk UPDATE
        row = await self.session.get(OrderModel, order_id, populate_existing=True)
        return to_entity(row) if row else None

    async def list_orders(self, *, offset: int = 0, limit: int = 10) -> list[Order]:
        result = await self.session.execute(
            select(OrderModel)
            .order_by(OrderModel.created_time.desc(), OrderModel.id.desc())
            .offset(offset)
            .limit(limit)
        )
        return [to_entity(row) for row in result.scalars().all()]

    async def count(self, status: OrderStatus | None = None) -> int:
        query = select(func.count()).select_from(OrderModel)
        if status is not None:
            query = query.where(OrderModel.status == status)
        result = await self.session.execute(query)
        return result.scalar() or 0

    async def compare_and_set_status(
        self,
        order_id: int,
        *,
        expected: OrderStatus,
        new: OrderStatus,
        timestamp_field: str,
        at: datetime,
    ) -> bool:
        """
        Conditional UPDATE keyed on the status the caller last read.

        Returns False when no row matched, i.e. another transaction moved
        the order first.  Concurrent writers on the same row serialize on
        the row lock, so at most one of them sees its expected status.
        """
        result = await self.session.execute(
            update(OrderModel)
            .where(OrderModel.id == order_id, OrderModel.status == expected)
            .values({"status": new, timestamp_field: _to_utc(at)})
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1
