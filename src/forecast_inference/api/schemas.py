"""API request and response schemas."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

Icon = Literal[
    "cloud",
    "cloud-drizzle",
    "cloud-fog",
    "cloud-hail",
    "cloud-lightning",
    "cloud-moon",
    "cloud-moon-rain",
    "cloud-rain",
    "cloud-rain-wind",
    "cloud-snow",
    "cloud-sun",
    "cloud-sun-rain",
    "cloudy",
    "snowflake",
    "sun",
    "sun-snow",
    "thermometer-snowflake",
    "thermometer-sun",
    "wind",
]

TimeOfDay = Literal["day", "night"]

# Ordered from calmest to strongest
Beaufort = Literal[
    "Calm",
    "Light air",
    "Light breeze",
    "Gentle breeze",
    "Moderate breeze",
    "Fresh breeze",
    "Strong breeze",
    "Near gale",
    "Gale",
    "Strong gale",
    "Storm",
    "Violent storm",
    "Hurricane force",
]


class SummaryReply(BaseModel):
    """Summary object returned by the model."""

    model_config = ConfigDict(extra="ignore")

    summary: str = Field(..., min_length=1, description="Narrative forecast summary")
    icon: Icon | None = Field(default=None, description="Icon for the soonest weather")


class PeriodAnnotation(BaseModel):
    """Per-period classification returned by the model."""

    model_config = ConfigDict(extra="ignore")

    name: str = Field(..., description="Forecast period name")
    time_of_day: TimeOfDay = Field(..., description="Day or night")
    icon: Icon = Field(..., description="Icon that best fits the period")
    beaufort: Beaufort = Field(..., description="Beaufort scale wind descriptor")


class JoinedPeriod(BaseModel):
    """Forecast period combined with its annotation."""

    name: str
    time_of_day: TimeOfDay
    icon: Icon
    beaufort: Beaufort
    detailed_forecast: str
    short_forecast: str
    start_time: datetime
    end_time: datetime
    temperature: int
    temperature_unit: str
    wind_speed: str
    wind_direction: str
    is_daytime: bool


class SummaryProduct(BaseModel):
    """Forecast summary response."""

    summary: str = Field(..., description="Narrative forecast summary")
    icon: Icon | None = Field(default=None, description="Icon for the soonest weather")
    last_updated: datetime = Field(..., description="Time the summary was generated")


class BreakdownProduct(BaseModel):
    """Detailed per-period forecast response."""

    periods: list[JoinedPeriod] = Field(default_factory=list, description="Annotated periods")
    last_updated: datetime = Field(..., description="Time the breakdown was generated")


class ProblemDetail(BaseModel):
    """RFC 9457 problem detail body."""

    type: str = Field(default="about:blank", description="Problem type URI")
    title: str = Field(..., description="Short summary of the problem")
    status: int = Field(..., description="HTTP status code")
    detail: str = Field(..., description="Explanation specific to this occurrence")
    instance: str = Field(..., description="Request path that produced the problem")


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(..., description="Health status")


class ReadinessResponse(BaseModel):
    """Readiness check response."""

    status: str = Field(..., description="Readiness status")
    checks: dict[str, str] = Field(default_factory=dict, description="Component checks")
