"""Forecast service orchestrating cache, forecast source and inference."""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TypeVar

import structlog
from pydantic import BaseModel, TypeAdapter, ValidationError
from pydantic_core import PydanticSerializationError

from forecast_inference.api.schemas import (
    BreakdownProduct,
    PeriodAnnotation,
    SummaryProduct,
    SummaryReply,
)
from forecast_inference.services.cache import CacheError, CacheService
from forecast_inference.services.inference import InferenceClient
from forecast_inference.services.joiner import join_periods
from forecast_inference.services.nws import NWSClient, PeriodCount, serialize_periods
from forecast_inference.services.prompts import ProductPrompt, PromptTemplates, build_prompt

logger = structlog.get_logger()

SUMMARY = "forecast-summary"
BREAKDOWN = "forecast-periods-information"

ProductT = TypeVar("ProductT", bound=BaseModel)
ReplyT = TypeVar("ReplyT")

_annotations_adapter = TypeAdapter(list[PeriodAnnotation])
_summary_adapter = TypeAdapter(SummaryReply)


class InferenceShapeError(Exception):
    """Raised when the model reply is not the expected JSON shape."""

    def __init__(self, product: str, message: str) -> None:
        super().__init__(message)
        self.product = product


class ProductSerializationError(Exception):
    """Raised when a generated product cannot be serialized."""


class ForecastTimeoutError(Exception):
    """Raised when producing a forecast exceeds the request deadline."""


@dataclass(frozen=True)
class ProductConfig:
    """Per-product generation settings."""

    name: str
    period_count: PeriodCount
    ttl_seconds: int
    prompt: ProductPrompt


def parse_reply(adapter: TypeAdapter[ReplyT], raw: str, product: str) -> ReplyT:
    """Parse a raw model reply strictly against the expected shape.

    Raises:
        InferenceShapeError: If the reply is not valid JSON of the right shape
    """
    try:
        return adapter.validate_json(raw)
    except ValidationError as e:
        raise InferenceShapeError(
            product,
            f"Model reply for {product} did not match the expected shape: "
            f"{e.error_count()} error(s), first: {e.errors()[0]['msg']}",
        ) from e


class ForecastService:
    """Cache-aside producer for the summary and detailed forecast products."""

    def __init__(
        self,
        cache: CacheService,
        source: NWSClient,
        inference: InferenceClient,
        templates: PromptTemplates,
        *,
        gridpoint: str,
        timeout_seconds: float,
        summary_period_count: int = 3,
        summary_ttl_seconds: int,
        breakdown_ttl_seconds: int,
    ) -> None:
        """Initialize service with its collaborators."""
        self._cache = cache
        self._source = source
        self._inference = inference
        self._gridpoint = gridpoint
        self._timeout = timeout_seconds
        self._summary = ProductConfig(
            name=SUMMARY,
            period_count=summary_period_count,
            ttl_seconds=summary_ttl_seconds,
            prompt=templates.summary,
        )
        self._breakdown = ProductConfig(
            name=BREAKDOWN,
            period_count="all",
            ttl_seconds=breakdown_ttl_seconds,
            prompt=templates.breakdown,
        )

    async def get_summary(self) -> SummaryProduct:
        """Get the narrative summary, generating it on a cache miss."""
        return await self._serve(self._summary, SummaryProduct, self._generate_summary)

    async def get_breakdown(self) -> BreakdownProduct:
        """Get the annotated per-period breakdown, generating it on a cache miss."""
        return await self._serve(self._breakdown, BreakdownProduct, self._generate_breakdown)

    async def _serve(
        self,
        product: ProductConfig,
        model: type[ProductT],
        generate: Callable[[ProductConfig], Awaitable[ProductT]],
    ) -> ProductT:
        """Run the cache-aside protocol for one product.

        Cache failures and undecodable cache entries fall through to
        generation. Everything up to and including the cache write shares
        a single deadline; a slow cache read times out on the cache's own,
        shorter budget and counts as a miss.

        Raises:
            ForecastTimeoutError: If the deadline passes before a result exists
        """
        deadline = asyncio.get_running_loop().time() + self._timeout

        try:
            async with asyncio.timeout_at(deadline):
                cached = await self._read_cached(product, model)
                if cached is not None:
                    return cached

                logger.info("Cache miss, generating forecast", product=product.name, cache_hit=False)
                result = await generate(product)
                blob = self._dump(product, result)
        except TimeoutError as e:
            raise ForecastTimeoutError(
                f"Producing {product.name} exceeded {self._timeout}s"
            ) from e

        await self._write_cached(product, blob, deadline)
        return result

    async def _read_cached(self, product: ProductConfig, model: type[ProductT]) -> ProductT | None:
        try:
            blob = await self._cache.get(product.name)
        except CacheError as e:
            logger.error("Could not read forecast from cache", product=product.name, error=str(e))
            return None

        if blob is None:
            return None

        try:
            cached = model.model_validate_json(blob)
        except ValidationError as e:
            logger.error(
                "Discarding undecodable cache entry",
                product=product.name,
                error_count=e.error_count(),
            )
            return None

        logger.info("Cache hit for forecast request", product=product.name, cache_hit=True)
        return cached

    async def _write_cached(self, product: ProductConfig, blob: str, deadline: float) -> None:
        try:
            async with asyncio.timeout_at(deadline):
                await self._cache.set(product.name, blob, product.ttl_seconds)
        except (CacheError, TimeoutError) as e:
            logger.error(
                "Could not write forecast to cache",
                product=product.name,
                error=str(e) or type(e).__name__,
            )

    @staticmethod
    def _dump(product: ProductConfig, result: BaseModel) -> str:
        try:
            return result.model_dump_json()
        except PydanticSerializationError as e:
            raise ProductSerializationError(f"Could not serialize {product.name}: {e}") from e

    async def _complete(self, product: ProductConfig, payload: str) -> str:
        prompt = product.prompt
        text = build_prompt(prompt.instruction, prompt.examples, payload)
        return await self._inference.complete(
            text,
            system=prompt.system,
            max_tokens=prompt.max_tokens,
        )

    async def _generate_summary(self, product: ProductConfig) -> SummaryProduct:
        periods = await self._source.get_periods(self._gridpoint, product.period_count)
        raw = await self._complete(product, serialize_periods(periods))
        reply = parse_reply(_summary_adapter, raw, product.name)

        return SummaryProduct(
            summary=reply.summary,
            icon=reply.icon,
            last_updated=datetime.now(UTC),
        )

    async def _generate_breakdown(self, product: ProductConfig) -> BreakdownProduct:
        periods = await self._source.get_periods(self._gridpoint, product.period_count)
        raw = await self._complete(product, serialize_periods(periods))
        annotations = parse_reply(_annotations_adapter, raw, product.name)

        joined = join_periods(periods, annotations)
        if len(joined) < len(periods):
            logger.warning(
                "Dropped periods without annotations",
                product=product.name,
                periods=len(periods),
                joined=len(joined),
            )

        return BreakdownProduct(periods=joined, last_updated=datetime.now(UTC))
