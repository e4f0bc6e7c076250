"""
Liveness endpoint
=================

GET /ping -- returns ``{"msg": "pong"}``
"""

from fastapi import APIRouter

from order_service.api.schemas import PingResponse

router = APIRouter(tags=["health"])


@router.get("/ping", response_model=PingResponse, summary="Liveness check")
async def ping():
    return PingResponse()
