"""National Weather Service forecast client."""

import json
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Literal

import httpx
import structlog
from prometheus_client import Counter, Histogram

from forecast_inference.config import Settings

logger = structlog.get_logger()


class SourceUnavailableError(Exception):
    """Raised when the forecast cannot be fetched or decoded."""


class SourceTimeoutError(SourceUnavailableError):
    """Raised when the NWS request times out."""


# Metrics
upstream_requests = Counter(
    "nws_requests_total",
    "Total NWS API requests",
    ["status"],
)
upstream_duration = Histogram(
    "nws_request_duration_seconds",
    "NWS request duration in seconds",
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)

PeriodCount = int | Literal["all"]


@dataclass(frozen=True)
class ForecastPeriod:
    """A single named forecast period."""

    name: str
    start_time: datetime
    end_time: datetime
    temperature: int
    temperature_unit: str
    wind_speed: str
    wind_direction: str
    short_forecast: str
    detailed_forecast: str
    is_daytime: bool

    def to_payload(self) -> dict[str, Any]:
        """Return the JSON-ready representation sent to the model."""
        return {
            "name": self.name,
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat(),
            "is_daytime": self.is_daytime,
            "temperature": self.temperature,
            "temperature_unit": self.temperature_unit,
            "wind_speed": self.wind_speed,
            "wind_direction": self.wind_direction,
            "short_forecast": self.short_forecast,
            "detailed_forecast": self.detailed_forecast,
        }


def serialize_periods(periods: Sequence[ForecastPeriod]) -> str:
    """Serialize periods into a stable JSON array string."""
    return json.dumps([period.to_payload() for period in periods], ensure_ascii=False)


class NWSClient:
    """HTTP client for the NWS gridpoint forecast API."""

    def __init__(self, settings: Settings) -> None:
        """Initialize client with settings."""
        self._base_url = settings.nws_base_url.rstrip("/")
        self._timeout = settings.nws_timeout_seconds
        self._headers = {
            "User-Agent": settings.nws_user_agent,
            "Accept": "application/geo+json",
        }

    def forecast_url(self, gridpoint: str) -> str:
        """Build the forecast URL for a gridpoint such as ``SEW/127,75``."""
        return f"{self._base_url}/gridpoints/{gridpoint}/forecast"

    async def get_forecast(self, gridpoint: str) -> list[ForecastPeriod]:
        """Fetch every forecast period for a gridpoint, in chronological order.

        Raises:
            SourceTimeoutError: If the request times out
            SourceUnavailableError: If the request fails or the body is malformed
        """
        url = self.forecast_url(gridpoint)
        logger.info("Fetching forecast", url=url)

        with upstream_duration.time():
            try:
                async with httpx.AsyncClient(timeout=self._timeout, headers=self._headers) as client:
                    response = await client.get(url)

                if response.status_code != 200:
                    upstream_requests.labels(status="error").inc()
                    raise SourceUnavailableError(
                        f"NWS API returned {response.status_code}: {response.text}"
                    )

                data = response.json()

            except httpx.TimeoutException as e:
                upstream_requests.labels(status="timeout").inc()
                raise SourceTimeoutError(
                    f"NWS API request timed out after {self._timeout}s"
                ) from e

            except httpx.RequestError as e:
                upstream_requests.labels(status="error").inc()
                raise SourceUnavailableError(f"NWS API request failed: {e}") from e

            except ValueError as e:
                upstream_requests.labels(status="error").inc()
                raise SourceUnavailableError(f"NWS API returned invalid JSON: {e}") from e

        periods = self._parse_response(data)
        upstream_requests.labels(status="success").inc()
        return periods

    async def get_periods(self, gridpoint: str, n: PeriodCount = "all") -> list[ForecastPeriod]:
        """Fetch the first ``n`` forecast periods, or all of them for ``"all"``.

        A count larger than the number of available periods is clamped.
        """
        if n != "all" and n < 1:
            raise ValueError(f"period count must be positive or 'all', got {n!r}")

        periods = await self.get_forecast(gridpoint)
        if n == "all":
            return periods
        return periods[:n]

    def _parse_response(self, data: Any) -> list[ForecastPeriod]:
        """Parse an NWS forecast document.

        Raises:
            SourceUnavailableError: If required fields are missing from response
        """
        if not isinstance(data, dict):
            raise SourceUnavailableError("Forecast document is not a JSON object")

        properties = data.get("properties")
        if not isinstance(properties, dict):
            raise SourceUnavailableError("Missing 'properties' field in response")

        raw_periods = properties.get("periods")
        if not isinstance(raw_periods, list):
            raise SourceUnavailableError("Missing 'periods' field in response")

        return [self._parse_period(raw) for raw in raw_periods]

    def _parse_period(self, raw: Any) -> ForecastPeriod:
        try:
            return ForecastPeriod(
                name=str(raw["name"]),
                start_time=datetime.fromisoformat(raw["startTime"]),
                end_time=datetime.fromisoformat(raw["endTime"]),
                temperature=int(raw["temperature"]),
                temperature_unit=str(raw.get("temperatureUnit") or "F"),
                wind_speed=str(raw.get("windSpeed") or ""),
                wind_direction=str(raw.get("windDirection") or ""),
                short_forecast=str(raw.get("shortForecast") or ""),
                detailed_forecast=str(raw.get("detailedForecast") or ""),
                is_daytime=bool(raw["isDaytime"]),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise SourceUnavailableError(f"Malformed forecast period: {e!r}") from e
