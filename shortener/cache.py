"""Best-effort Redis cache gateway for the URL shortener.

This module wraps one shared ``redis.asyncio`` client behind typed
get/set/delete/incr/exists operations. The cache only ever holds disposable
copies of store data, so every failure is logged and degraded to a miss or a
no-op instead of being raised.

Flow Diagram: CacheGateway.get()
=================================
::
    ┌─────────────┐
    │  get(key)   │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Redis GET   │──── RedisError / timeout ───┐
    └──────┬──────┘                             ▼
    FOUND?  │                          ┌─────────────┐
    ┌─────┴─────┐                      │ log, count  │
    │ NO         │ YES                 │ error,      │
    ▼            ▼                     │ return None │
┌─────────┐  ┌─────────┐               └─────────────┘
│ miss,   │  │ hit,    │
│ None    │  │ JSON    │
└─────────┘  │ decode  │
             └─────────┘

Key Layout
==========
::
    url:<shortCode>     JSON {"originalUrl", "shortCode"}   (TTL-bound)
    clicks:<shortCode>  integer                             (non-authoritative)

How to Use
===========
**Step 1: Build once at startup**::
    cache = CacheGateway.from_settings(settings)

**Step 2: Use anywhere**::
    await cache.set(url_key("abc123"), {"originalUrl": "...", "shortCode": "abc123"})
    payload = await cache.get(url_key("abc123"))

**Step 3: Cleanup on shutdown**::
    await cache.close()

Key Behaviours
===============
- A single client (and its connection pool) is shared across requests.
- Socket and connect timeouts are bounded; a timeout counts as an error.
- Every call updates ``shortener_cache_operations_total`` and ``metrics``.

Classes:
    CacheMetrics:  In-process hit/miss/error tally.
    CacheGateway:  The gateway itself.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any

import redis.asyncio as redis
from prometheus_client import Counter
from redis.exceptions import RedisError

from shortener.config import Settings
from shortener.enums import CacheStatus

__all__ = ["CacheGateway", "CacheMetrics", "clicks_key", "url_key"]

logger = logging.getLogger(__name__)

CACHE_OPERATIONS_TOTAL = Counter(
    "shortener_cache_operations_total",
    "Cache gateway operations by outcome",
    ["operation", "result"],
)

_CACHE_ERRORS = (RedisError, OSError)


def url_key(short_code: str) -> str:
    return f"url:{short_code}"


def clicks_key(short_code: str) -> str:
    return f"clicks:{short_code}"


@dataclass
class CacheMetrics:
    """Hit/miss/error counts observed by one gateway instance."""

    hits: int = 0
    misses: int = 0
    errors: int = 0

    @property
    def hit_rate(self) -> float:
        """Hit rate in percent over all lookups."""
        total_requests = self.hits + self.misses
        return (self.hits / max(total_requests, 1)) * 100


class CacheGateway:
    def __init__(self, client: redis.Redis, default_ttl: int = 3600):
        self._client = client
        self._default_ttl = default_ttl
        self.metrics = CacheMetrics()

    @classmethod
    def from_settings(cls, settings: Settings) -> "CacheGateway":
        if settings.REDIS_URL:
            client = redis.from_url(
                settings.REDIS_URL,
                encoding="utf-8",
                decode_responses=True,
                socket_timeout=settings.REDIS_SOCKET_TIMEOUT,
                socket_connect_timeout=settings.REDIS_SOCKET_TIMEOUT,
            )
        else:
            client = redis.Redis(
                host=settings.REDIS_HOST,
                port=settings.REDIS_PORT,
                password=settings.REDIS_PASSWORD,
                db=settings.REDIS_DB,
                encoding="utf-8",
                decode_responses=True,
                socket_timeout=settings.REDIS_SOCKET_TIMEOUT,
                socket_connect_timeout=settings.REDIS_SOCKET_TIMEOUT,
            )
        return cls(client, default_ttl=settings.REDIS_TTL)

    async def get(self, key: str) -> Any | None:
        try:
            raw = await self._client.get(key)
        except _CACHE_ERRORS as exc:
            self._record_error("get", key, exc)
            return None

        if raw is None:
            self.metrics.misses += 1
            CACHE_OPERATIONS_TOTAL.labels(operation="get", result=CacheStatus.MISS).inc()
            logger.debug(f"Cache MISS for key: {key}")
            return None

        try:
            value = json.loads(raw)
        except ValueError as exc:
            self._record_error("get", key, exc)
            return None

        self.metrics.hits += 1
        CACHE_OPERATIONS_TOTAL.labels(operation="get", result=CacheStatus.HIT).inc()
        logger.debug(f"Cache HIT for key: {key}")
        return value

    async def set(self, key: str, value: Any, ttl: int | None = None) -> bool:
        expiry = ttl if ttl is not None else self._default_ttl
        try:
            await self._client.set(key, json.dumps(value), ex=expiry)
        except (*_CACHE_ERRORS, TypeError) as exc:
            self._record_error("set", key, exc)
            return False
        CACHE_OPERATIONS_TOTAL.labels(operation="set", result=CacheStatus.OK).inc()
        logger.debug(f"Cache SET for key: {key} (TTL: {expiry}s)")
        return True

    async def delete(self, key: str) -> bool:
        try:
            await self._client.delete(key)
        except _CACHE_ERRORS as exc:
            self._record_error("delete", key, exc)
            return False
        CACHE_OPERATIONS_TOTAL.labels(operation="delete", result=CacheStatus.OK).inc()
        logger.debug(f"Cache DELETE for key: {key}")
        return True

    async def incr(self, key: str) -> int | None:
        try:
            value = await self._client.incr(key)
        except _CACHE_ERRORS as exc:
            self._record_error("incr", key, exc)
            return None
        CACHE_OPERATIONS_TOTAL.labels(operation="incr", result=CacheStatus.OK).inc()
        return int(value)

    async def exists(self, key: str) -> bool:
        try:
            count = await self._client.exists(key)
        except _CACHE_ERRORS as exc:
            self._record_error("exists", key, exc)
            return False
        result = CacheStatus.HIT if count else CacheStatus.MISS
        CACHE_OPERATIONS_TOTAL.labels(operation="exists", result=result).inc()
        return bool(count)

    async def ping(self) -> bool:
        try:
            return bool(await self._client.ping())
        except _CACHE_ERRORS as exc:
            self._record_error("ping", "-", exc)
            return False

    async def close(self) -> None:
        await self._client.aclose()

    def _record_error(self, operation: str, key: str, exc: Exception) -> None:
        self.metrics.errors += 1
        CACHE_OPERATIONS_TOTAL.labels(operation=operation, result=CacheStatus.ERROR).inc()
        logger.warning(f"Cache {operation.upper()} failed for key {key}: {exc}")
