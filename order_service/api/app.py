"""
FastAPI application factory.

* Registers the liveness and order routes.
* Answers unparseable requests with 400 instead of FastAPI's default 422,
  which is reserved for illegal order transitions.
* Applies rate-limiting middleware.
* Releases the routing client and DB pool on shutdown via lifespan events.
* Swagger / OpenAPI UI available at ``/docs``.
"""

from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from order_service.api.dependencies import get_distance_provider
from order_service.api.middleware import limiter
from order_service.api.routes import health, orders
from order_service.infrastructure.database import engine

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Nothing to start; close shared clients on shutdown."""
    yield
    if get_distance_provider.cache_info().currsize:
        await get_distance_provider().aclose()
        get_distance_provider.cache_clear()
    await engine.dispose()
    logger.info("Order service stopped")


async def _malformed_request_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(status_code=400, content={"detail": jsonable_encoder(exc.errors())})


def create_app() -> FastAPI:
    app = FastAPI(
        title="Ride Dispatch Order API",
        description=(
            "Creates trip orders from a sequence of stops, prices them from "
            "driving distance with day/night tariffs, and moves them through "
            "the ASSIGNING -> ONGOING -> COMPLETED | CANCELLED lifecycle."
        ),
        version="1.0.0",
        lifespan=lifespan,
    )

    # Rate limiter
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    app.add_exception_handler(RequestValidationError, _malformed_request_handler)

    # Routers
    app.include_router(health.router)
    app.include_router(orders.router, prefix="/v1")

    return app
