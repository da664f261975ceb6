"""Anthropic Messages API client."""

import anthropic
import httpx
import structlog
from prometheus_client import Counter, Histogram

from forecast_inference.config import Settings

logger = structlog.get_logger()


class InferenceUnavailableError(Exception):
    """Raised when the model call fails or returns no text."""


# Metrics
inference_requests = Counter(
    "inference_requests_total",
    "Total inference API requests",
    ["status"],
)
inference_duration = Histogram(
    "inference_request_duration_seconds",
    "Inference request duration in seconds",
    buckets=[0.5, 1.0, 2.5, 5.0, 10.0, 20.0, 30.0],
)


class InferenceClient:
    """Thin wrapper returning the raw text of a single model reply."""

    def __init__(self, settings: Settings, client: anthropic.AsyncAnthropic | None = None) -> None:
        """Initialize client with settings.

        A shared ``AsyncAnthropic`` instance is created when none is given,
        sending through its own ``httpx.AsyncClient`` pool. SDK retries are
        disabled; the caller decides what to do on failure.
        """
        self._model = settings.anthropic_model
        self._max_tokens = settings.anthropic_max_tokens
        self._client = client or anthropic.AsyncAnthropic(
            api_key=settings.anthropic_api_key,
            base_url=settings.anthropic_base_url,
            timeout=settings.anthropic_timeout_seconds,
            max_retries=0,
            http_client=httpx.AsyncClient(timeout=settings.anthropic_timeout_seconds),
        )

    async def complete(
        self,
        prompt: str,
        *,
        system: str | None = None,
        max_tokens: int | None = None,
    ) -> str:
        """Send ``prompt`` as a single user message and return the reply text.

        Args:
            prompt: User message text
            system: Optional system prompt
            max_tokens: Token budget, defaults to the configured budget

        Returns:
            Text of the first content block

        Raises:
            InferenceUnavailableError: If the request fails or the reply has no text
        """
        params = {
            "model": self._model,
            "max_tokens": max_tokens or self._max_tokens,
            "messages": [{"role": "user", "content": prompt}],
        }
        if system:
            params["system"] = system

        with inference_duration.time():
            try:
                message = await self._client.messages.create(**params)
            except anthropic.APITimeoutError as e:
                inference_requests.labels(status="timeout").inc()
                raise InferenceUnavailableError(f"Inference request timed out: {e}") from e
            except anthropic.APIError as e:
                inference_requests.labels(status="error").inc()
                raise InferenceUnavailableError(f"Inference request failed: {e}") from e

        if not message.content or message.content[0].type != "text":
            inference_requests.labels(status="empty").inc()
            raise InferenceUnavailableError("Inference reply contained no text block")

        inference_requests.labels(status="success").inc()
        logger.debug(
            "Inference completed",
            model=self._model,
            input_tokens=message.usage.input_tokens,
            output_tokens=message.usage.output_tokens,
            stop_reason=message.stop_reason,
        )
        return message.content[0].text

    async def close(self) -> None:
        """Release the underlying HTTP connection pool."""
        await self._client.close()
