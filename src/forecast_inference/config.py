"""Application configuration management."""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
    )

    # Server settings
    app_host: str = Field(default="0.0.0.0", description="Server bind host")
    app_port: int = Field(default=8080, description="Server bind port")

    # Request deadline covering cache read, generation and cache write
    handler_timeout_seconds: float = Field(
        default=10.0,
        description="Per-request deadline for producing a forecast",
        gt=0,
        le=300.0,
    )

    # Anthropic settings
    anthropic_api_key: str = Field(default="", description="Anthropic API key")
    anthropic_base_url: str = Field(
        default="https://api.anthropic.com",
        description="Anthropic API base URL",
    )
    anthropic_model: str = Field(
        default="claude-sonnet-4-5",
        description="Model used for forecast inference",
    )
    anthropic_max_tokens: int = Field(
        default=1024,
        description="Default token budget for inference replies",
        ge=1,
    )
    anthropic_timeout_seconds: float = Field(
        default=30.0,
        description="Inference request timeout in seconds",
        gt=0,
    )

    # NWS settings
    nws_base_url: str = Field(
        default="https://api.weather.gov",
        description="National Weather Service API base URL",
    )
    nws_gridpoint: str = Field(
        default="SEW/127,75",
        description="Gridpoint identifier (office/x,y) to forecast",
    )
    nws_user_agent: str = Field(
        default="forecast-inference-api (ops@example.com)",
        description="User-Agent sent to the NWS API",
    )
    nws_timeout_seconds: float = Field(
        default=5.0,
        description="NWS request timeout in seconds",
        ge=0.1,
        le=60.0,
    )

    # Authentication settings
    authentication_enabled: bool = Field(
        default=False,
        description="Require X-API-Key on /api routes",
    )
    api_keys: str = Field(
        default="",
        description="Comma-separated list of accepted API keys",
    )

    # Cache settings
    cache_backend: Literal["redis", "memory"] = Field(
        default="redis",
        description="Cache backend (redis or memory)",
    )
    cache_host: str = Field(default="localhost", description="Cache server host")
    cache_port: int = Field(default=6379, description="Cache server port")
    cache_password: str | None = Field(default=None, description="Cache server password")
    cache_key_prefix: str = Field(default="lfia", description="Cache key namespace prefix")
    cache_timeout_seconds: float = Field(
        default=1.0,
        description="Cache connect and operation timeout in seconds",
        gt=0,
        le=30.0,
    )
    summary_cache_ttl_seconds: int = Field(
        default=21600,
        description="Summary cache TTL in seconds",
        gt=0,
    )
    breakdown_cache_ttl_seconds: int = Field(
        default=21600,
        description="Detailed forecast cache TTL in seconds",
        gt=0,
    )
    cache_max_size: int = Field(
        default=1000,
        description="Maximum entries for the in-memory cache backend",
        ge=1,
        le=1000000,
    )

    # Product settings
    summary_period_count: int = Field(
        default=3,
        description="Number of forecast periods fed into the summary",
        ge=1,
    )
    prompt_templates_path: Path | None = Field(
        default=None,
        description="JSON file overriding the built-in prompt templates",
    )

    # Metrics settings
    metrics_enabled: bool = Field(default=True, description="Expose /metrics")

    # Logging settings
    log_level: str = Field(
        default="INFO",
        description="Logging level",
    )
    log_format: str = Field(
        default="json",
        description="Log format (json or text)",
    )

    @property
    def api_key_list(self) -> list[str]:
        """Return configured API keys with blanks removed."""
        return [key.strip() for key in self.api_keys.split(",") if key.strip()]


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()
