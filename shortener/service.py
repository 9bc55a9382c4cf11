"""URL Shortener Service Layer - Core Business Logic

This module provides the resolution service that coordinates the code
generator, the cache gateway and the durable store for creating, resolving,
inspecting and deleting short URLs.

Architecture Overview
==================
::
    ┌─────────────────────────────────────────────────────────────┐
    │                  ResolutionService                          │
    │  ┌─────────────────┐  ┌─────────────────┐  ┌──────────────┐ │
    │  │ create_short_url│  │    resolve      │  │ get_stats /  │ │
    │  │                 │  │                 │  │ delete_url   │ │
    │  │ • Validate      │  │ • Cache first   │  │ • Store only │ │
    │  │ • Dedup lookup  │  │ • Store on miss │  │ • Evict keys │ │
    │  │ • Retry on      │  │ • Repopulate    │  │              │ │
    │  │   collision     │  │                 │  │              │ │
    │  └─────────────────┘  └─────────────────┘  └──────────────┘ │
    └─────────────────────────────────────────────────────────────┘
                │                    │                    │
                ▼                    ▼                    ▼
    ┌─────────────────┐  ┌─────────────────┐  ┌─────────────────┐
    │   PostgreSQL    │  │     Redis       │  │  Code Generator │
    │   (UrlStore)    │  │ (CacheGateway)  │  │   (codegen)     │
    └─────────────────┘  └─────────────────┘  └─────────────────┘

Request Flow Diagrams
=====================

URL Creation Flow
-----------------
::
    ┌─────────────┐
    │  POST /api  │
    │  /shorten    │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Validate &   │──── invalid ──► InvalidUrlError (400)
    │ normalize    │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Lookup by    │──── found ──► prime cache, isNew=false
    │ original URL │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Candidate    │◄──────────────┐
    │ short code   │               │ collision
    └──────┬──────┘               │ (attempts left)
           ▼                       │
    ┌─────────────┐               │
    │ INSERT       │───────────────┘
    │ (unique key) │──── attempts exhausted ──► CodeSpaceExhaustedError (500)
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Prime cache  │
    │ isNew=true   │
    └─────────────┘

URL Resolution Flow
-------------------
::
    ┌─────────────┐
    │  GET /:code  │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Cache GET    │
    │ url:<code>   │
    └──────┬──────┘
    HIT?  │
    ┌─────┴─────┐
    │ NO         │ YES
    ▼            ▼
┌─────────┐  ┌─────────┐
│ Store   │  │ source= │
│ lookup  │  │ "cache" │
└────┬────┘  └─────────┘
     │
  FOUND? ── NO ──► None (404)
     │
     ▼
┌─────────┐
│ Cache   │
│ SET     │
│ source= │
│"database"│
└─────────┘

Consistency Notes
=================
- The unique constraint on ``short_code`` is the only collision arbiter;
  candidates are not pre-checked.
- Deduplication by URL is a read-then-write race; two concurrent creations
  of the same URL can both insert. This is accepted.
- A resolve racing a delete may serve the cached entry until its TTL expires.
- Store failures propagate as ``StoreUnavailableError``; cache failures never
  propagate (the gateway swallows them).

Usage Examples
=============
```python
service = ResolutionService.from_context(ctx)
created = await service.create_short_url("https://example.com/a")
resolved = await service.resolve(created.short_code)
assert resolved.source == ResolutionSource.CACHE
```
"""

import logging
import time
from collections.abc import Callable
from typing import TYPE_CHECKING

from prometheus_client import Counter, Histogram
from pydantic import ValidationError

from shortener.cache import CacheGateway, clicks_key, url_key
from shortener.codegen import (
    deterministic_code,
    generate_short_code,
    is_valid_url,
    normalize_url,
    sequential_code,
)
from shortener.config import Settings
from shortener.enums import CodeStrategy, RequestStatus, ResolutionSource
from shortener.exceptions import CodeSpaceExhaustedError, InvalidUrlError, ShortCodeCollisionError
from shortener.models import UrlMapping
from shortener.schemas import CachedUrlPayload, ClickSummary, CreatedUrl, ResolvedUrl, UrlStats
from shortener.store import UrlStore

if TYPE_CHECKING:
    from shortener.dependencies import RequestContext

__all__ = ["ResolutionService"]


# ============================================================================
# PROMETHEUS METRICS
# ============================================================================

URL_CREATION_REQUESTS_TOTAL = Counter(
    "shortener_creation_requests_total",
    "Total URL creation requests",
    ["status"],
)
URL_RESOLUTION_REQUESTS_TOTAL = Counter(
    "shortener_resolution_requests_total",
    "Total short code resolutions",
    ["status", "source"],
)
URL_CREATION_DURATION = Histogram(
    "shortener_creation_duration_seconds",
    "Time taken to create short URLs",
    buckets=[0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)
URL_RESOLUTION_DURATION = Histogram(
    "shortener_resolution_duration_seconds",
    "Time taken to resolve short codes",
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25],
)
SHORT_CODE_COLLISIONS_TOTAL = Counter(
    "shortener_code_collisions_total",
    "Short code inserts rejected by the unique constraint",
)


# ============================================================================
# CORE SERVICE CLASS
# ============================================================================


class ResolutionService:
    """Coordinator for creation, resolution, stats and deletion.

    The service holds no state of its own between calls: the store and the
    cache are injected collaborators, so one instance per request is cheap.

    Example:
        >>> service = ResolutionService(UrlStore(session), cache, settings)
        >>> created = await service.create_short_url("https://example.com")
        >>> print(created.short_code, created.is_new)
    """

    def __init__(
        self,
        store: UrlStore,
        cache: CacheGateway,
        settings: Settings,
        logger: logging.Logger | logging.LoggerAdapter | None = None,
        generate_code: Callable[[int], str] | None = None,
    ):
        """Initialize the service with its collaborators.

        Args:
            store: Durable store gateway bound to a session.
            cache: Shared cache gateway.
            settings: Application settings.
            logger: Logger (usually the request-scoped adapter).
            generate_code: Random code source, ``generate_short_code`` by default.
        """
        self._store = store
        self._cache = cache
        self._settings = settings
        self._logger = logger or logging.getLogger(__name__)
        self._generate_code = generate_code or generate_short_code

    @classmethod
    def from_context(cls, ctx: "RequestContext") -> "ResolutionService":
        """Factory method to create the service from a RequestContext.

        Args:
            ctx: Request context with the session, shared cache and settings.

        Returns:
            ResolutionService: Service bound to the request's session.
        """
        return cls(UrlStore(ctx.database), ctx.cache, ctx.settings, logger=ctx.logger)

    # ========================================================================
    # PUBLIC API METHODS
    # ========================================================================

    async def create_short_url(self, raw_url: str) -> CreatedUrl:
        """Create (or reuse) a short code for ``raw_url``.

        Args:
            raw_url: URL as submitted by the client.

        Returns:
            CreatedUrl: The mapping, with ``is_new`` false on a dedup hit.

        Raises:
            InvalidUrlError: ``raw_url`` is not an absolute http(s) URL.
            CodeSpaceExhaustedError: Every attempt collided.
            StoreUnavailableError: The database could not be reached.
        """
        start_time = time.perf_counter()

        try:
            if not is_valid_url(raw_url):
                raise InvalidUrlError("Invalid URL format")
            original_url = normalize_url(raw_url)

            if self._settings.DEDUPLICATE_URLS:
                existing = await self._store.find_by_url(original_url)
                if existing is not None:
                    await self._prime_cache(existing.short_code, existing.original_url)
                    self._record_creation(RequestStatus.SUCCESS, start_time)
                    self._logger.info(f"Reusing existing short code {existing.short_code} for {original_url}")
                    return CreatedUrl(
                        short_code=existing.short_code,
                        original_url=existing.original_url,
                        created_at=existing.created_at,
                        is_new=False,
                    )

            mapping = await self._insert_with_retry(original_url)
            await self._prime_cache(mapping.short_code, mapping.original_url)

            duration = self._record_creation(RequestStatus.SUCCESS, start_time)
            self._logger.info(f"URL created successfully: {mapping.short_code} in {duration:.3f}s")
            return CreatedUrl(
                short_code=mapping.short_code,
                original_url=mapping.original_url,
                created_at=mapping.created_at,
                is_new=True,
            )

        except InvalidUrlError as exc:
            self._record_creation(RequestStatus.VALIDATION_ERROR, start_time)
            self._logger.warning(f"URL creation rejected: {exc}")
            raise

        except Exception as exc:
            self._record_creation(RequestStatus.ERROR, start_time)
            self._logger.error(f"URL creation error: {exc}")
            raise

    async def resolve(self, short_code: str) -> ResolvedUrl | None:
        """Resolve ``short_code`` cache-first.

        Args:
            short_code: Code taken from the request path.

        Returns:
            Optional[ResolvedUrl]: Target URL tagged with its source, or
            ``None`` when the code is unknown.
        """
        start_time = time.perf_counter()

        cached = await self._lookup_from_cache(short_code)
        if cached is not None:
            self._record_resolution(RequestStatus.SUCCESS, ResolutionSource.CACHE, start_time)
            self._logger.debug(f"Cache hit for {short_code}")
            return ResolvedUrl(
                original_url=cached.original_url,
                short_code=cached.short_code,
                source=ResolutionSource.CACHE,
            )

        mapping = await self._store.find_by_code(short_code)
        if mapping is None:
            self._record_resolution(RequestStatus.NOT_FOUND, ResolutionSource.DATABASE, start_time)
            self._logger.debug(f"Short code not found: {short_code}")
            return None

        await self._prime_cache(mapping.short_code, mapping.original_url)
        self._record_resolution(RequestStatus.SUCCESS, ResolutionSource.DATABASE, start_time)
        self._logger.debug(f"Database hit and cached for {short_code}")
        return ResolvedUrl(
            original_url=mapping.original_url,
            short_code=mapping.short_code,
            source=ResolutionSource.DATABASE,
        )

    async def get_stats(self, short_code: str) -> UrlStats | None:
        """Authoritative statistics straight from the store.

        The ephemeral ``clicks:<code>`` cache counter is deliberately not read.
        """
        mapping = await self._store.find_by_code(short_code)
        if mapping is None:
            self._logger.warning(f"Statistics not found for code: {short_code}")
            return None

        clicks = await self._store.recent_clicks(short_code, self._settings.RECENT_CLICKS_LIMIT)
        return UrlStats(
            short_code=mapping.short_code,
            original_url=mapping.original_url,
            click_count=mapping.click_count,
            created_at=mapping.created_at,
            last_accessed=mapping.last_accessed,
            recent_clicks=[ClickSummary.model_validate(click) for click in clicks],
        )

    async def delete_url(self, short_code: str) -> bool:
        """Evict both cache keys, then delete the row (clicks cascade).

        Returns:
            bool: True if a mapping was actually removed.
        """
        await self._cache.delete(url_key(short_code))
        await self._cache.delete(clicks_key(short_code))

        deleted = await self._store.delete(short_code)
        if deleted:
            self._logger.info(f"Deleted short code {short_code}")
        return deleted > 0

    # ========================================================================
    # PRIVATE HELPER METHODS
    # ========================================================================

    async def _insert_with_retry(self, original_url: str) -> UrlMapping:
        max_attempts = self._settings.MAX_CODE_ATTEMPTS
        for attempt in range(1, max_attempts + 1):
            short_code = await self._candidate_code(original_url, attempt)
            try:
                return await self._store.insert(short_code, original_url)
            except ShortCodeCollisionError:
                SHORT_CODE_COLLISIONS_TOTAL.inc()
                self._logger.warning(f"Short code collision on attempt {attempt}/{max_attempts}: {short_code}")

        self._logger.error(f"Code space exhausted after {max_attempts} attempts for {original_url}")
        raise CodeSpaceExhaustedError(max_attempts)

    async def _candidate_code(self, original_url: str, attempt: int) -> str:
        """First attempt follows CODE_STRATEGY; retries are always random."""
        length = self._settings.SHORT_CODE_LENGTH
        strategy = self._settings.CODE_STRATEGY

        if attempt == 1 and strategy == CodeStrategy.HASH:
            return deterministic_code(original_url, length)

        if attempt == 1 and strategy == CodeStrategy.SEQUENTIAL:
            counter = await self._cache.incr(self._settings.SEQUENCE_KEY)
            if counter is None:
                self._logger.warning("Sequence allocator unavailable, falling back to a random code")
            else:
                code = sequential_code(counter, length)
                if len(code) == length:
                    return code
                self._logger.warning(f"Sequence {counter} exceeds {length} symbols, falling back to a random code")

        return self._generate_code(length)

    async def _lookup_from_cache(self, short_code: str) -> CachedUrlPayload | None:
        cached = await self._cache.get(url_key(short_code))
        if cached is None:
            return None
        try:
            payload = CachedUrlPayload.model_validate(cached)
        except ValidationError as exc:
            self._logger.error(f"Cache deserialization error for {short_code}: {exc}")
            return None
        if payload.short_code != short_code:
            return None
        return payload

    async def _prime_cache(self, short_code: str, original_url: str) -> None:
        payload = CachedUrlPayload(original_url=original_url, short_code=short_code)
        if not await self._cache.set(url_key(short_code), payload.model_dump(by_alias=True)):
            self._logger.debug(f"Cache not primed for {short_code}")

    def _record_creation(self, status: RequestStatus, start_time: float) -> float:
        duration = time.perf_counter() - start_time
        URL_CREATION_DURATION.observe(duration)
        URL_CREATION_REQUESTS_TOTAL.labels(status=status).inc()
        return duration

    def _record_resolution(self, status: RequestStatus, source: ResolutionSource, start_time: float) -> None:
        URL_RESOLUTION_DURATION.observe(time.perf_counter() - start_time)
        URL_RESOLUTION_REQUESTS_TOTAL.labels(status=status, source=source).inc()
