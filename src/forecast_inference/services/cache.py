"""Key-value cache for generated forecast products."""

import asyncio
import time
from collections.abc import Callable
from typing import Protocol

import redis.asyncio as redis
from cachetools import TLRUCache
from prometheus_client import Counter
from redis.exceptions import RedisError

from forecast_inference.config import Settings

# Metrics
cache_hits = Counter("cache_hits_total", "Total cache hits", ["product"])
cache_misses = Counter("cache_misses_total", "Total cache misses", ["product"])
cache_errors = Counter(
    "cache_errors_total",
    "Total cache backend errors",
    ["product", "operation"],
)


class CacheError(Exception):
    """Raised when the cache backend cannot be read or written."""


class CacheBackend(Protocol):
    """Storage used by CacheService."""

    async def get(self, key: str) -> str | None: ...

    async def set(self, key: str, value: str, ttl_seconds: int) -> None: ...

    async def ping(self) -> bool: ...

    async def close(self) -> None: ...


class RedisBackend:
    """Backend for Redis-protocol servers such as Redis or Dragonfly."""

    def __init__(self, client: redis.Redis) -> None:
        self._client = client

    @classmethod
    def from_settings(cls, settings: Settings) -> "RedisBackend":
        """Create a pooled client; connections are opened lazily."""
        client = redis.Redis(
            host=settings.cache_host,
            port=settings.cache_port,
            password=settings.cache_password or None,
            db=0,
            decode_responses=True,
            socket_timeout=settings.cache_timeout_seconds,
            socket_connect_timeout=settings.cache_timeout_seconds,
        )
        return cls(client)

    async def get(self, key: str) -> str | None:
        try:
            value = await self._client.get(key)
        except RedisError as e:
            raise CacheError(f"Cache read failed for {key}: {e}") from e
        if isinstance(value, bytes):
            return value.decode("utf-8")
        return value

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        try:
            await self._client.set(key, value, ex=ttl_seconds)
        except RedisError as e:
            raise CacheError(f"Cache write failed for {key}: {e}") from e

    async def ping(self) -> bool:
        try:
            return bool(await self._client.ping())
        except RedisError:
            return False

    async def close(self) -> None:
        await self._client.aclose()


class MemoryBackend:
    """In-process backend with per-entry expiry."""

    def __init__(self, max_size: int, timer: Callable[[], float] = time.monotonic) -> None:
        self._cache: TLRUCache[str, tuple[str, int]] = TLRUCache(
            maxsize=max_size,
            ttu=lambda _key, entry, now: now + entry[1],
            timer=timer,
        )

    async def get(self, key: str) -> str | None:
        entry = self._cache.get(key)
        return entry[0] if entry is not None else None

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        self._cache[key] = (value, ttl_seconds)

    async def ping(self) -> bool:
        return isinstance(len(self._cache), int)

    async def close(self) -> None:
        self._cache.clear()

    @property
    def size(self) -> int:
        return len(self._cache)


def create_backend(settings: Settings) -> CacheBackend:
    """Create the backend selected by ``cache_backend``."""
    if settings.cache_backend == "memory":
        return MemoryBackend(settings.cache_max_size)
    return RedisBackend.from_settings(settings)


class CacheService:
    """Namespaced product cache.

    Keys take the form ``<prefix>-<product>``. Every write carries a TTL;
    reads never refresh it. Backend failures, including operations that
    outlive ``timeout_seconds``, surface as ``CacheError`` and are counted.
    """

    def __init__(
        self,
        backend: CacheBackend,
        key_prefix: str,
        timeout_seconds: float | None = None,
    ) -> None:
        """Initialize cache with a backend and key prefix."""
        self._backend = backend
        self._key_prefix = key_prefix
        self._timeout = timeout_seconds

    def make_key(self, product: str) -> str:
        """Create cache key for a product name."""
        return f"{self._key_prefix}-{product}"

    async def get(self, product: str) -> str | None:
        """Get the cached blob for a product, or None when absent or expired."""
        key = self.make_key(product)
        try:
            async with asyncio.timeout(self._timeout):
                value = await self._backend.get(key)
        except TimeoutError as e:
            cache_errors.labels(product=product, operation="read").inc()
            raise CacheError(f"Cache read timed out for {key}") from e
        except CacheError:
            cache_errors.labels(product=product, operation="read").inc()
            raise
        if value:
            cache_hits.labels(product=product).inc()
            return value
        cache_misses.labels(product=product).inc()
        return None

    async def set(self, product: str, value: str, ttl_seconds: int) -> None:
        """Store a product blob for ``ttl_seconds``."""
        if ttl_seconds <= 0:
            raise ValueError(f"cache TTL must be positive, got {ttl_seconds}")
        key = self.make_key(product)
        try:
            async with asyncio.timeout(self._timeout):
                await self._backend.set(key, value, ttl_seconds)
        except TimeoutError as e:
            cache_errors.labels(product=product, operation="write").inc()
            raise CacheError(f"Cache write timed out for {key}") from e
        except CacheError:
            cache_errors.labels(product=product, operation="write").inc()
            raise

    async def is_healthy(self) -> bool:
        """Check if the cache backend answers."""
        return await self._backend.ping()

    async def close(self) -> None:
        await self._backend.close()
