"""Main FastAPI application."""

import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from salon_recovery import __version__, metrics
from salon_recovery.config import config
from salon_recovery.container import ServiceContainer, build_container
from salon_recovery.errors import (
    BookingPlatformError,
    InvalidMessageTransitionError,
    MessageNotFoundError,
    UnsupportedPlatformError,
    ValidationError,
)
from salon_recovery.health import router as health_router
from salon_recovery.logging_config import logger
from salon_recovery.routers.core import router as core_router
from salon_recovery.routers.messages import router as messages_router
from salon_recovery.routers.rebooking import router as rebooking_router
from salon_recovery.routers.webhooks import router as webhooks_router


def _error_response(status_code: int, error: Exception, **extra) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"detail": str(error), **extra})


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(UnsupportedPlatformError)
    async def unsupported_platform(request: Request, exc: UnsupportedPlatformError):
        return _error_response(404, exc, platform=exc.platform)

    @app.exception_handler(MessageNotFoundError)
    async def message_not_found(request: Request, exc: MessageNotFoundError):
        return _error_response(404, exc)

    @app.exception_handler(ValidationError)
    async def validation_error(request: Request, exc: ValidationError):
        return _error_response(422, exc)

    @app.exception_handler(InvalidMessageTransitionError)
    async def invalid_transition(request: Request, exc: InvalidMessageTransitionError):
        return _error_response(409, exc, status=exc.current)

    @app.exception_handler(BookingPlatformError)
    async def booking_platform_error(request: Request, exc: BookingPlatformError):
        logger.error("booking_platform_error", platform=exc.platform, code=exc.code, error=str(exc))
        return _error_response(502, exc, platform=exc.platform, retryable=exc.retryable)


def create_app(container: Optional[ServiceContainer] = None) -> FastAPI:
    """Build the API around a service container (a fresh one from config by default)."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan - startup and shutdown."""
        logger.info("application_starting", version=__version__)
        logger.info("platforms_configured", platforms=sorted(app.state.container.adapters))

        yield

        logger.info("application_shutting_down")
        await app.state.container.aclose()

    app = FastAPI(
        title="Salon Recovery API",
        description="Rebooking suggestions and follow-up messaging for salon booking platforms",
        version=__version__,
        lifespan=lifespan
    )
    app.state.container = container or build_container(config)

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def record_request_metrics(request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        route = request.scope.get("route")
        endpoint = getattr(route, "path", "unmatched")
        metrics.api_requests_total.labels(
            method=request.method, endpoint=endpoint, status=response.status_code
        ).inc()
        metrics.api_request_duration.observe(time.perf_counter() - started)
        return response

    _register_exception_handlers(app)

    app.include_router(health_router)
    app.include_router(core_router)
    app.include_router(webhooks_router)
    app.include_router(rebooking_router)
    app.include_router(messages_router)

    # GET /metrics
    # Gets: nothing
    # Returns: Prometheus text exposition
    # Example:
    #   curl http://localhost:8000/metrics
    @app.get("/metrics")
    async def prometheus_metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    return app


app = create_app()
