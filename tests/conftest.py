"""Test fixtures."""

import asyncio
import json
from collections.abc import Callable, Iterator
from typing import Any

import pytest
from fastapi.testclient import TestClient

from forecast_inference.config import Settings, get_settings
from forecast_inference.main import create_app
from forecast_inference.services.cache import CacheService, MemoryBackend
from forecast_inference.services.forecast import ForecastService
from forecast_inference.services.inference import InferenceClient
from forecast_inference.services.nws import NWSClient
from forecast_inference.services.prompts import DEFAULT_TEMPLATES


class FakeClock:
    """Manually advanced monotonic clock for cache expiry tests."""

    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class HangingBackend:
    """Cache backend whose reads and writes never complete."""

    async def get(self, key: str) -> str | None:
        await asyncio.sleep(3600)
        return None

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        await asyncio.sleep(3600)

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        return None


def make_period(
    name: str,
    start: str,
    end: str,
    *,
    temperature: int,
    is_daytime: bool,
    wind_speed: str = "2 to 6 mph",
    wind_direction: str = "W",
    short_forecast: str = "Mostly Cloudy",
) -> dict[str, Any]:
    """Build a period in NWS API format."""
    return {
        "number": 1,
        "name": name,
        "startTime": start,
        "endTime": end,
        "isDaytime": is_daytime,
        "temperature": temperature,
        "temperatureUnit": "F",
        "temperatureTrend": "",
        "probabilityOfPrecipitation": {"unitCode": "wmoUnit:percent", "value": 10},
        "windSpeed": wind_speed,
        "windDirection": wind_direction,
        "icon": "https://api.weather.gov/icons/land/night/bkn?size=medium",
        "shortForecast": short_forecast,
        "detailedForecast": f"{short_forecast}, with a temperature around {temperature}.",
    }


@pytest.fixture
def nws_periods() -> list[dict[str, Any]]:
    """Three chronological periods in NWS API format."""
    return [
        make_period(
            "Tonight",
            "2024-06-08T20:00:00-07:00",
            "2024-06-09T06:00:00-07:00",
            temperature=54,
            is_daytime=False,
            wind_speed="2 mph",
            wind_direction="E",
        ),
        make_period(
            "Sunday",
            "2024-06-09T06:00:00-07:00",
            "2024-06-09T18:00:00-07:00",
            temperature=74,
            is_daytime=True,
            wind_speed="1 to 6 mph",
            wind_direction="SW",
            short_forecast="Mostly Sunny",
        ),
        make_period(
            "Sunday Night",
            "2024-06-09T18:00:00-07:00",
            "2024-06-10T06:00:00-07:00",
            temperature=51,
            is_daytime=False,
        ),
    ]


@pytest.fixture
def nws_document(nws_periods: list[dict[str, Any]]) -> dict[str, Any]:
    """NWS gridpoint forecast document."""
    return {
        "type": "Feature",
        "properties": {
            "units": "us",
            "generatedAt": "2024-06-08T19:40:00+00:00",
            "periods": nws_periods,
        },
    }


@pytest.fixture
def anthropic_reply() -> Callable[[str], dict[str, Any]]:
    """Factory for Messages API responses carrying the given text."""

    def _reply(text: str) -> dict[str, Any]:
        return {
            "id": "msg_test",
            "type": "message",
            "role": "assistant",
            "model": "claude-sonnet-4-5",
            "content": [{"type": "text", "text": text}],
            "stop_reason": "end_turn",
            "stop_sequence": None,
            "usage": {"input_tokens": 120, "output_tokens": 40},
        }

    return _reply


@pytest.fixture
def summary_text() -> str:
    return json.dumps(
        {
            "summary": "Tonight, mostly cloudy with a low around 54. Sunday, mostly sunny.",
            "icon": "cloud-moon",
        }
    )


@pytest.fixture
def breakdown_text() -> str:
    return json.dumps(
        [
            {"name": "Tonight", "time_of_day": "night", "icon": "cloud-moon", "beaufort": "Light air"},
            {"name": "Sunday", "time_of_day": "day", "icon": "cloud-sun", "beaufort": "Light breeze"},
            {
                "name": "Sunday Night",
                "time_of_day": "night",
                "icon": "cloud-moon",
                "beaufort": "Light breeze",
            },
        ]
    )


@pytest.fixture
def settings() -> Settings:
    """Create test settings."""
    return Settings(
        anthropic_api_key="test-key",
        cache_backend="memory",
        cache_key_prefix="test",
        summary_cache_ttl_seconds=60,
        breakdown_cache_ttl_seconds=60,
        handler_timeout_seconds=5.0,
        log_level="DEBUG",
        log_format="text",
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def memory_backend(clock: FakeClock) -> MemoryBackend:
    return MemoryBackend(max_size=100, timer=clock)


@pytest.fixture
def cache_service(memory_backend: MemoryBackend, settings: Settings) -> CacheService:
    """Create test cache service."""
    return CacheService(memory_backend, settings.cache_key_prefix)


@pytest.fixture
def nws_client(settings: Settings) -> NWSClient:
    """Create test NWS client."""
    return NWSClient(settings)


@pytest.fixture
def inference_client(settings: Settings) -> InferenceClient:
    """Create test inference client."""
    return InferenceClient(settings)


@pytest.fixture
def forecast_service(
    cache_service: CacheService,
    nws_client: NWSClient,
    inference_client: InferenceClient,
    settings: Settings,
) -> ForecastService:
    """Create forecast service wired to the in-memory cache."""
    return ForecastService(
        cache_service,
        nws_client,
        inference_client,
        DEFAULT_TEMPLATES,
        gridpoint=settings.nws_gridpoint,
        timeout_seconds=settings.handler_timeout_seconds,
        summary_period_count=settings.summary_period_count,
        summary_ttl_seconds=settings.summary_cache_ttl_seconds,
        breakdown_ttl_seconds=settings.breakdown_cache_ttl_seconds,
    )


@pytest.fixture
def app(settings: Settings):
    """Create test application."""
    get_settings.cache_clear()
    return create_app(settings)


@pytest.fixture
def client(app) -> Iterator[TestClient]:
    """Create test client."""
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def hanging_cache() -> CacheService:
    """Create a cache service over a backend that never answers."""
    return CacheService(HangingBackend(), "test", timeout_seconds=0.05)
