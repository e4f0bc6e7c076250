"""Pydantic request / response schemas for the REST API (camelCase JSON)."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from order_service.domain.entities import Order


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ── Requests ──────────────────────────────────────────────────────────


class Stop(CamelModel):
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)


class OrderCreateRequest(CamelModel):
    stops: list[Stop]
    order_at: Optional[datetime] = Field(
        None,
        description="ISO-8601 time for an advanced order; omit for immediate dispatch.",
    )


# ── Responses ─────────────────────────────────────────────────────────


class FareResponse(CamelModel):
    amount: str = Field(..., pattern=r"^\d+\.\d{2}$")
    currency: str = Field(..., pattern=r"^[A-Z]{3}$")


class OrderCreatedResponse(CamelModel):
    id: int
    driving_distances_in_meters: list[int]
    fare: FareResponse

    @classmethod
    def from_entity(cls, order: Order) -> OrderCreatedResponse:
        return cls(
            id=order.id,
            driving_distances_in_meters=list(order.driving_distances_m),
            fare=FareResponse(
                amount=order.fare.formatted_amount, currency=order.fare.currency
            ),
        )


class OrderResponse(OrderCreatedResponse):
    stops: list[Stop]
    status: str
    created_time: datetime
    order_date_time: datetime
    ongoing_time: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None

    @classmethod
    def from_entity(cls, order: Order) -> OrderResponse:
        created = OrderCreatedResponse.from_entity(order)
        return cls(
            **created.model_dump(),
            stops=[Stop(lat=s.lat, lng=s.lng) for s in order.stops],
            status=order.status.value,
            created_time=order.created_time,
            order_date_time=order.order_date_time,
            ongoing_time=order.ongoing_time,
            completed_at=order.completed_at,
            cancelled_at=order.cancelled_at,
        )


class OrderTakenResponse(CamelModel):
    id: int
    status: str
    ongoing_time: datetime


class OrderCompletedResponse(CamelModel):
    id: int
    status: str
    completed_at: datetime


class OrderCancelledResponse(CamelModel):
    id: int
    status: str
    cancelled_at: datetime


class PingResponse(BaseModel):
    msg: str = "pong"
