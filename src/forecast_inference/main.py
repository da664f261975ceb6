"""Application entry point."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
import uvicorn
from fastapi import FastAPI
from prometheus_client import make_asgi_app

from forecast_inference import __version__
from forecast_inference.api.dependencies import Services, build_services
from forecast_inference.api.errors import (
    ProblemError,
    problem_error_handler,
    unhandled_error_handler,
)
from forecast_inference.api.routes import api_router, health_router
from forecast_inference.config import Settings, get_settings
from forecast_inference.middleware.logging import LoggingMiddleware, configure_logging

logger = structlog.get_logger()


def create_app(settings: Settings | None = None, services: Services | None = None) -> FastAPI:
    """Create and configure FastAPI application.

    ``services`` lets callers supply a pre-built service graph; otherwise
    one is built from ``settings``.
    """
    settings = settings or get_settings()
    services = services or build_services(settings)

    # Configure logging
    configure_logging(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logger.info(
            "Starting forecast inference API",
            version=__version__,
            cache_backend=settings.cache_backend,
            authentication_enabled=settings.authentication_enabled,
        )
        yield
        await services.aclose()

    # Create FastAPI app
    app = FastAPI(
        title="Forecast Inference API",
        description="Cached, model-annotated NWS forecasts",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.services = services

    # Add middleware
    app.add_middleware(LoggingMiddleware)
    app.add_exception_handler(ProblemError, problem_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    # Include routers
    app.include_router(api_router)
    app.include_router(health_router)

    # Mount Prometheus metrics endpoint
    if settings.metrics_enabled:
        app.mount("/metrics", make_asgi_app())

    return app


def run() -> None:
    """Run the application with uvicorn."""
    settings = get_settings()
    uvicorn.run(
        "forecast_inference.main:create_app",
        factory=True,
        host=settings.app_host,
        port=settings.app_port,
        reload=False,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()
