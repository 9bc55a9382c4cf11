"""FastAPI route definitions for the URL shortener REST API.

This module provides all HTTP endpoints with dependency injection, error
translation and response serialization for the URL shortening service.

API Endpoint Overview
=====================
::
    POST   /api/shorten
        ├─ ShortenRequest (request body)
        └─ ShortenResponse (201 new / 200 existing) or 400

    GET    /api/stats/:short_code
        └─ StatsResponse (200) or 404

    DELETE /api/url/:short_code
        └─ MessageResponse (200) or 404

    GET    /api/health
        └─ HealthResponse (200)

    GET    /:short_code
        └─ 301 Redirect or 404

Request Flow Diagram
====================
::
    ┌─────────────┐
    │  HTTP       │
    │  Request    │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ FastAPI     │
    │ Router      │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Inject      │
    │ RequestCtx  │
    │ (DB, Cache) │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Resolution  │
    │ Service     │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Serialize   │
    │ (camelCase) │
    └─────────────┘

Key Behaviours
===============
- Service errors (``ShortenerError``) are rendered by the handlers in
  ``shortener.main`` as ``{"success": false, "error": ...}``.
- Redirects are 301 and enqueue click accounting without awaiting it.
- Codes containing a dot are treated as asset requests and answered with 404.
"""

import datetime

from fastapi import APIRouter, Depends, Response, status
from fastapi.responses import RedirectResponse
from sqlalchemy import text

from shortener.dependencies import RequestContext, get_request_context, get_resolution_service
from shortener.enums import HealthStatus
from shortener.exceptions import InvalidUrlError, NotFoundError
from shortener.schemas import (
    HealthResponse,
    MessageResponse,
    ShortenData,
    ShortenRequest,
    ShortenResponse,
    StatsResponse,
)
from shortener.service import ResolutionService

__all__ = ["router"]

router = APIRouter()


@router.post(
    "/api/shorten",
    response_model=ShortenResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["urls"],
)
async def shorten_url(
    payload: ShortenRequest,
    response: Response,
    ctx: RequestContext = Depends(get_request_context),
    service: ResolutionService = Depends(get_resolution_service),
) -> ShortenResponse:
    if not payload.url:
        raise InvalidUrlError("URL is required")

    ctx.logger.info(f"URL shortening requested: {payload.url}")
    created = await service.create_short_url(payload.url)
    if not created.is_new:
        response.status_code = status.HTTP_200_OK

    ctx.logger.info(
        f"URL shortened: {created.short_code} (new={created.is_new}) in {ctx.get_duration():.1f}ms"
    )
    return ShortenResponse(
        data=ShortenData(
            short_code=created.short_code,
            short_url=ctx.settings.short_url(created.short_code),
            original_url=created.original_url,
            is_new=created.is_new,
        )
    )


@router.get("/api/stats/{short_code}", response_model=StatsResponse, tags=["urls"])
async def get_stats(
    short_code: str,
    ctx: RequestContext = Depends(get_request_context),
    service: ResolutionService = Depends(get_resolution_service),
) -> StatsResponse:
    ctx.logger.info(f"Stats requested for short code: {short_code}")
    stats = await service.get_stats(short_code)
    if stats is None:
        raise NotFoundError()
    return StatsResponse(data=stats)


@router.delete("/api/url/{short_code}", response_model=MessageResponse, tags=["urls"])
async def delete_url(
    short_code: str,
    ctx: RequestContext = Depends(get_request_context),
    service: ResolutionService = Depends(get_resolution_service),
) -> MessageResponse:
    ctx.logger.info(f"Deletion requested for short code: {short_code}")
    if not await service.delete_url(short_code):
        raise NotFoundError()
    return MessageResponse(message="URL deleted successfully")


@router.get("/api/health", response_model=HealthResponse, tags=["health"])
async def health_check(ctx: RequestContext = Depends(get_request_context)) -> HealthResponse:
    db_status = HealthStatus.HEALTHY
    try:
        await ctx.database.execute(text("SELECT 1"))
    except Exception as e:
        ctx.logger.error(f"Database health check failed: {e}")
        db_status = HealthStatus.UNHEALTHY

    cache_status = HealthStatus.HEALTHY if await ctx.cache.ping() else HealthStatus.UNHEALTHY

    # The cache is best effort; only the database decides overall health.
    return HealthResponse(
        status=db_status,
        timestamp=datetime.datetime.now(datetime.timezone.utc),
        database=db_status,
        cache=cache_status,
    )


@router.get("/{short_code}", tags=["redirect"])
async def redirect_to_url(
    short_code: str,
    ctx: RequestContext = Depends(get_request_context),
    service: ResolutionService = Depends(get_resolution_service),
) -> RedirectResponse:
    if "." in short_code:
        raise NotFoundError("Not found")

    resolved = await service.resolve(short_code)
    if resolved is None:
        ctx.logger.warning(f"Redirect failed - short code not found: {short_code}")
        raise NotFoundError()

    ctx.accountant.record(short_code, ctx.click_metadata())

    ctx.logger.info(
        f"Redirect {short_code} -> {resolved.original_url} (source: {resolved.source}) "
        f"in {ctx.get_duration():.1f}ms"
    )
    return RedirectResponse(url=resolved.original_url, status_code=status.HTTP_301_MOVED_PERMANENTLY)
