"""
Seed script -- populates the database with sample orders for reviewers.

Run after migrations:
    python seed.py

Creates one order per lifecycle state around Kowloon / Hong Kong Island,
priced with the configured fare policy and the offline haversine router.
"""

import asyncio
from datetime import datetime, timedelta, timezone

from sqlalchemy import text

from order_service.config import settings
from order_service.domain.entities import Location
from order_service.domain.enums import OrderAction
from order_service.domain.fare import FareEngine, FarePolicy
from order_service.domain.result import Err
from order_service.infrastructure.database import async_session_factory, engine
from order_service.infrastructure.repositories import OrderRepository
from order_service.infrastructure.routing import HaversineDistanceProvider, ServiceArea

PLACES = {
    "Lai Chi Kok": Location(22.344674, 114.124651),
    "Sha Tin": Location(22.375384, 114.182446),
    "Tsim Sha Tsui": Location(22.297620, 114.172240),
    "Central": Location(22.281900, 114.158200),
    "Kai Tak": Location(22.330500, 114.199000),
}

# (stops, actions applied after creation, hours until the trip)
ORDERS = [
    (["Lai Chi Kok", "Sha Tin"], [], 0),
    (["Tsim Sha Tsui", "Central", "Kai Tak"], [], 20),
    (["Central", "Tsim Sha Tsui"], [OrderAction.TAKE], 0),
    (["Kai Tak", "Sha Tin"], [OrderAction.TAKE, OrderAction.COMPLETE], 0),
    (["Sha Tin", "Lai Chi Kok"], [OrderAction.CANCEL], 0),
]


async def seed():
    router = HaversineDistanceProvider(
        ServiceArea.from_settings(settings), settings.haversine_road_factor
    )
    fares = FareEngine(FarePolicy.from_settings(settings))

    async with async_session_factory() as session:
        # Check if already seeded
        result = await session.execute(text("SELECT count(*) FROM orders"))
        if result.scalar() > 0:
            print("Database already seeded. Skipping.")
            return

        repo = OrderRepository(session)
        now = datetime.now(timezone.utc)

        for names, actions, hours_ahead in ORDERS:
            stops = [PLACES[n] for n in names]
            distances = []
            for origin, destination in zip(stops, stops[1:]):
                measured = await router.distance(origin, destination)
                if isinstance(measured, Err):
                    raise measured.error
                distances.append(measured.value)

            trip_time = now + timedelta(hours=hours_ahead)
            order = await repo.create_order(
                stops=stops,
                driving_distances_m=distances,
                fare=fares.calculate(distances, trip_time),
                created_time=now,
                order_date_time=trip_time,
            )
            for action in actions:
                updated = order.applied(action, now)
                await repo.compare_and_set_status(
                    order.id,
                    expected=order.status,
                    new=updated.status,
                    timestamp_field=action.timestamp_field,
                    at=now,
                )
                order = updated
            print(f"  Order {order.id}: {' -> '.join(names)} [{order.status.value}]")

        await session.commit()
        print("\nSeed complete!")


async def main():
    print("Seeding database...")
    await seed()
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
