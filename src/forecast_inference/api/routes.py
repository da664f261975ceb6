"""API route definitions."""

from collections.abc import Awaitable, Callable
from typing import TypeVar

import structlog
from fastapi import APIRouter, Depends, HTTPException, status

from forecast_inference.api.dependencies import CacheDep, ForecastServiceDep, require_api_key
from forecast_inference.api.errors import PROBLEM_MEDIA_TYPE, ProblemError
from forecast_inference.api.schemas import (
    BreakdownProduct,
    HealthResponse,
    ProblemDetail,
    ReadinessResponse,
    SummaryProduct,
)
from forecast_inference.services.forecast import (
    ForecastTimeoutError,
    InferenceShapeError,
    ProductSerializationError,
)
from forecast_inference.services.inference import InferenceUnavailableError
from forecast_inference.services.nws import SourceUnavailableError

logger = structlog.get_logger()

ProductT = TypeVar("ProductT")

# API router for forecast endpoints
api_router = APIRouter(
    prefix="/api/v1",
    tags=["forecast"],
    dependencies=[Depends(require_api_key)],
)

# Health router for health checks
health_router = APIRouter(prefix="/health", tags=["health"])


_problem = {"model": ProblemDetail, "content": {PROBLEM_MEDIA_TYPE: {}}}
PROBLEM_RESPONSES: dict[int | str, dict] = {
    401: {**_problem, "description": "Missing or invalid API key"},
    500: {**_problem, "description": "Forecast source or inference failure"},
    504: {**_problem, "description": "Forecast generation timed out"},
}


async def _produce(label: str, produce: Callable[[], Awaitable[ProductT]]) -> ProductT:
    """Run a product call and translate failures into problem details."""
    try:
        return await produce()

    except SourceUnavailableError as e:
        logger.error("Forecast source unavailable", product=label, error=str(e))
        raise ProblemError(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "failed to get forecast periods",
            f"failed to get forecast periods: {e}",
        ) from e

    except InferenceUnavailableError as e:
        logger.error("Inference unavailable", product=label, error=str(e))
        raise ProblemError(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            f"failed to get {label}",
            f"failed to get {label}: {e}",
        ) from e

    except InferenceShapeError as e:
        logger.error("Inference reply rejected", product=label, error=str(e))
        raise ProblemError(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            f"failed to parse {label}",
            f"failed to parse {label}: {e}",
        ) from e

    except ProductSerializationError as e:
        logger.error("Forecast serialization failed", product=label, error=str(e))
        raise ProblemError(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            f"failed to marshal {label}",
            f"failed to marshal {label}: {e}",
        ) from e

    except ForecastTimeoutError as e:
        logger.error("Forecast generation timed out", product=label, error=str(e))
        raise ProblemError(
            status.HTTP_504_GATEWAY_TIMEOUT,
            f"timed out getting {label}",
            str(e),
        ) from e


@api_router.get(
    "/forecast/summary",
    response_model=SummaryProduct,
    responses=PROBLEM_RESPONSES,
)
async def get_forecast_summary(forecast_service: ForecastServiceDep) -> SummaryProduct:
    """Get a short narrative summary of the upcoming forecast.

    Results are cached and regenerated once the cache entry expires.
    """
    return await _produce("forecast summary", forecast_service.get_summary)


@api_router.get(
    "/forecast/detailed",
    response_model=BreakdownProduct,
    responses=PROBLEM_RESPONSES,
)
async def get_forecast_detailed(forecast_service: ForecastServiceDep) -> BreakdownProduct:
    """Get every forecast period annotated with an icon, time of day and Beaufort wind."""
    return await _produce("forecast periods information", forecast_service.get_breakdown)


@health_router.get("/live", response_model=HealthResponse)
async def liveness() -> HealthResponse:
    """Liveness probe - checks if the service is running."""
    return HealthResponse(status="ok")


@health_router.get("/ready", response_model=ReadinessResponse)
async def readiness(cache: CacheDep) -> ReadinessResponse:
    """Readiness probe - checks if the service is ready to accept traffic."""
    cache_status = "ok" if await cache.is_healthy() else "unhealthy"

    overall_status = "ok" if cache_status == "ok" else "unhealthy"

    response = ReadinessResponse(
        status=overall_status,
        checks={"cache": cache_status},
    )

    if overall_status != "ok":
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=response.model_dump(),
        )

    return response
