"""FastAPI dependencies."""

import hmac
from dataclasses import dataclass
from typing import Annotated

from fastapi import Depends, Request, status
from fastapi.security import APIKeyHeader

from forecast_inference.api.errors import ProblemError
from forecast_inference.config import Settings
from forecast_inference.services.cache import CacheService, create_backend
from forecast_inference.services.forecast import ForecastService
from forecast_inference.services.inference import InferenceClient
from forecast_inference.services.nws import NWSClient
from forecast_inference.services.prompts import load_templates


@dataclass
class Services:
    """Long-lived collaborators shared by all requests of one application."""

    settings: Settings
    cache: CacheService
    source: NWSClient
    inference: InferenceClient
    forecast: ForecastService

    async def aclose(self) -> None:
        """Close pooled connections."""
        await self.cache.close()
        await self.inference.close()


def build_services(settings: Settings) -> Services:
    """Construct the service graph from settings."""
    cache = CacheService(
        create_backend(settings),
        settings.cache_key_prefix,
        timeout_seconds=settings.cache_timeout_seconds,
    )
    source = NWSClient(settings)
    inference = InferenceClient(settings)
    forecast = ForecastService(
        cache,
        source,
        inference,
        load_templates(settings.prompt_templates_path),
        gridpoint=settings.nws_gridpoint,
        timeout_seconds=settings.handler_timeout_seconds,
        summary_period_count=settings.summary_period_count,
        summary_ttl_seconds=settings.summary_cache_ttl_seconds,
        breakdown_ttl_seconds=settings.breakdown_cache_ttl_seconds,
    )
    return Services(
        settings=settings,
        cache=cache,
        source=source,
        inference=inference,
        forecast=forecast,
    )


def get_services(request: Request) -> Services:
    """Get the service bundle attached to the application."""
    services: Services = request.app.state.services
    return services


def get_app_settings(services: Annotated[Services, Depends(get_services)]) -> Settings:
    """Get settings the application was built with."""
    return services.settings


def get_cache_service(services: Annotated[Services, Depends(get_services)]) -> CacheService:
    """Get cache service instance."""
    return services.cache


def get_forecast_service(
    services: Annotated[Services, Depends(get_services)],
) -> ForecastService:
    """Get forecast service instance."""
    return services.forecast


api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)


def require_api_key(
    settings: Annotated[Settings, Depends(get_app_settings)],
    api_key: Annotated[str | None, Depends(api_key_header)],
) -> None:
    """Reject requests without a valid X-API-Key when authentication is enabled."""
    if not settings.authentication_enabled:
        return

    if not api_key:
        raise ProblemError(
            status.HTTP_401_UNAUTHORIZED,
            "missing api key",
            "the X-API-Key header is required",
        )

    presented = api_key.encode("utf-8")
    if not any(hmac.compare_digest(presented, key.encode("utf-8")) for key in settings.api_key_list):
        raise ProblemError(
            status.HTTP_401_UNAUTHORIZED,
            "invalid api key",
            "the provided X-API-Key is not a valid api key",
        )


# Type aliases for dependency injection
CacheDep = Annotated[CacheService, Depends(get_cache_service)]
ForecastServiceDep = Annotated[ForecastService, Depends(get_forecast_service)]
