"""
Validation gate for order creation.

Turns an untrusted JSON payload into an ``OrderRequest`` or a
``MalformedRequest``.  Runs before any routing or pricing work and performs
no I/O.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any
from zoneinfo import ZoneInfo

from pydantic import ValidationError

from order_service.api.schemas import OrderCreateRequest
from order_service.domain.entities import Location, OrderRequest
from order_service.domain.errors import InvalidStopCount, MalformedRequest
from order_service.domain.result import Err, Ok, Result

MIN_STOPS = 2

# Clients stamping orderAt with "now" arrive slightly late.
ORDER_AT_GRACE = timedelta(minutes=1)


def _describe(exc: ValidationError) -> str:
    first = exc.errors()[0]
    where = ".".join(str(part) for part in first["loc"]) or "body"
    return f"Invalid {where}: {first['msg']}"


def validate_order_request(
    payload: Any, *, now: datetime, operator_timezone: str
) -> Result[OrderRequest, MalformedRequest]:
    if not isinstance(payload, dict) or "stops" not in payload:
        return Err(MalformedRequest("Request body must contain 'stops'"))

    try:
        body = OrderCreateRequest.model_validate(payload)
    except ValidationError as exc:
        return Err(MalformedRequest(_describe(exc)))

    if len(body.stops) < MIN_STOPS:
        return Err(InvalidStopCount(
            f"At least {MIN_STOPS} stops are required, got {len(body.stops)}"
        ))

    order_at = body.order_at
    if order_at is not None:
        tz = ZoneInfo(operator_timezone)
        if order_at.tzinfo is None:
            order_at = order_at.replace(tzinfo=tz)
        try:
            # stored in UTC, priced in operator-local time
            order_at.astimezone(timezone.utc)
            order_at.astimezone(tz)
        except OverflowError:
            return Err(MalformedRequest("orderAt is out of range"))
        if order_at < now - ORDER_AT_GRACE:
            return Err(MalformedRequest("orderAt must not be in the past"))

    return Ok(OrderRequest(
        stops=tuple(Location(lat=s.lat, lng=s.lng) for s in body.stops),
        order_at=order_at,
    ))
