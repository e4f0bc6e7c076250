"""
Order endpoints
===============

POST /v1/orders                     -- create an order (201 Created)
GET  /v1/orders                     -- list orders, newest first
GET  /v1/orders/{order_id}          -- full order record
PUT  /v1/orders/{order_id}/take     -- driver takes the order
PUT  /v1/orders/{order_id}/complete -- driver completes the trip
PUT  /v1/orders/{order_id}/cancel   -- cancel before completion
"""

from typing import Any, TypeVar

from fastapi import APIRouter, Body, Depends, HTTPException, Query, Request

from order_service.api.dependencies import get_order_service
from order_service.api.middleware import limiter
from order_service.api.schemas import (
    OrderCancelledResponse,
    OrderCompletedResponse,
    OrderCreatedResponse,
    OrderResponse,
    OrderTakenResponse,
)
from order_service.api.validation import validate_order_request
from order_service.config import settings
from order_service.domain.errors import (
    IllegalTransition,
    MalformedRequest,
    OrderNotFound,
    ProviderRejectedRequest,
    ServiceAreaUnavailable,
    TransientProviderFailure,
)
from order_service.domain.result import Err, Result
from order_service.services.orders import OrderService, utcnow

router = APIRouter(prefix="/orders", tags=["orders"])

T = TypeVar("T")

# Checked in order; subclasses (e.g. InvalidStopCount) map via their base.
ERROR_STATUS: dict[type[Exception], int] = {
    MalformedRequest: 400,
    OrderNotFound: 404,
    IllegalTransition: 422,
    ServiceAreaUnavailable: 503,
    TransientProviderFailure: 503,
    ProviderRejectedRequest: 503,
}

NOT_FOUND = {404: {"description": "Order not found"}}
TRANSITION_ERRORS = {
    **NOT_FOUND,
    422: {"description": "Order is not in a state that allows this action"},
}


def unwrap(result: Result[T, Exception]) -> T:
    """Return the success value or raise the matching ``HTTPException``."""
    if isinstance(result, Err):
        for error_type, status_code in ERROR_STATUS.items():
            if isinstance(result.error, error_type):
                raise HTTPException(status_code=status_code, detail=str(result.error))
        raise result.error
    return result.value


@router.post(
    "",
    status_code=201,
    response_model=OrderCreatedResponse,
    summary="Create an order",
    responses={
        400: {"description": "Missing stops, fewer than two stops, or bad coordinates"},
        503: {"description": "A stop is outside the service area, or routing is unavailable"},
    },
)
@limiter.limit(settings.rate_limit)
async def create_order(
    request: Request,
    payload: Any = Body(None),
    service: OrderService = Depends(get_order_service),
):
    order_request = unwrap(
        validate_order_request(
            payload, now=utcnow(), operator_timezone=settings.operator_timezone
        )
    )
    order = unwrap(await service.create_order(order_request))
    return OrderCreatedResponse.from_entity(order)


@router.get(
    "",
    response_model=list[OrderResponse],
    response_model_exclude_none=True,
    summary="List orders",
)
@limiter.limit(settings.rate_limit)
async def list_orders(
    request: Request,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    service: OrderService = Depends(get_order_service),
):
    orders = await service.list_orders(page=page, limit=limit)
    return [OrderResponse.from_entity(o) for o in orders]


@router.get(
    "/{order_id}",
    response_model=OrderResponse,
    response_model_exclude_none=True,
    summary="Get an order",
    responses=NOT_FOUND,
)
@limiter.limit(settings.rate_limit)
async def get_order(
    request: Request,
    order_id: int,
    service: OrderService = Depends(get_order_service),
):
    order = unwrap(await service.get_order(order_id))
    return OrderResponse.from_entity(order)


@router.put(
    "/{order_id}/take",
    response_model=OrderTakenResponse,
    summary="Take an order",
    description="Transitions an ASSIGNING order to ONGOING.",
    responses=TRANSITION_ERRORS,
)
@limiter.limit(settings.rate_limit)
async def take_order(
    request: Request,
    order_id: int,
    service: OrderService = Depends(get_order_service),
):
    order = unwrap(await service.take(order_id))
    return OrderTakenResponse(
        id=order.id, status=order.status.value, ongoing_time=order.ongoing_time
    )


@router.put(
    "/{order_id}/complete",
    response_model=OrderCompletedResponse,
    summary="Complete an order",
    description="Transitions an ONGOING order to COMPLETED.",
    responses=TRANSITION_ERRORS,
)
@limiter.limit(settings.rate_limit)
async def complete_order(
    request: Request,
    order_id: int,
    service: OrderService = Depends(get_order_service),
):
    order = unwrap(await service.complete(order_id))
    return OrderCompletedResponse(
        id=order.id, status=order.status.value, completed_at=order.completed_at
    )


@router.put(
    "/{order_id}/cancel",
    response_model=OrderCancelledResponse,
    summary="Cancel an order",
    description="Transitions an ASSIGNING or ONGOING order to CANCELLED.",
    responses=TRANSITION_ERRORS,
)
@limiter.limit(settings.rate_limit)
async def cancel_order(
    request: Request,
    order_id: int,
    service: OrderService = Depends(get_order_service),
):
    order = unwrap(await service.cancel(order_id))
    return OrderCancelledResponse(
        id=order.id, status=order.status.value, cancelled_at=order.cancelled_at
    )
