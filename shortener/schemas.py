"""Pydantic schemas for service results and API payloads.

This module defines Pydantic models for API input validation, output
serialization and the JSON payload stored in the cache. Every model uses
camelCase aliases on the wire and snake_case attributes in Python.

Schema Hierarchy
=================
::
    ShortenRequest (Input)
    └─ url: str | None

    CachedUrlPayload (cache value at url:<shortCode>)
    ├─ originalUrl
    └─ shortCode

    Service results
    ├─ CreatedUrl   (shortCode, originalUrl, createdAt, isNew)
    ├─ ResolvedUrl  (originalUrl, shortCode, source)
    └─ UrlStats     (shortCode, originalUrl, clickCount, createdAt,
                     lastAccessed, recentClicks[ClickSummary])

    API envelopes
    ├─ ShortenResponse  {success, data: ShortenData}
    ├─ StatsResponse    {success, data: UrlStats}
    ├─ MessageResponse  {success, message}
    ├─ HealthResponse   {success, status, timestamp, database, cache}
    └─ ErrorResponse    {success: false, error}

How to Use
===========
**Step 1: Cache payload**::
    payload = CachedUrlPayload(original_url=url, short_code=code)
    await cache.set(url_key(code), payload.model_dump(by_alias=True))

**Step 2: From ORM rows**::
    stats = UrlStats.model_validate(mapping)

Key Behaviours
===============
- Field names serialize as camelCase (``shortCode``) through the alias generator.
- ``populate_by_name`` lets Python code build models with snake_case names.
- ``from_attributes`` lets ORM rows validate directly.

Classes:
    ShortenRequest:  Input schema for POST /api/shorten.
    ClickMetadata:  Request metadata captured for click accounting.
    CachedUrlPayload:  Cache value for a mapping.
    CreatedUrl, ResolvedUrl, UrlStats:  Service results.
    ShortenResponse, StatsResponse, MessageResponse, HealthResponse, ErrorResponse:  API envelopes.
"""

import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from shortener.enums import HealthStatus, ResolutionSource

__all__ = [
    "ShortenRequest",
    "ClickMetadata",
    "CachedUrlPayload",
    "CreatedUrl",
    "ResolvedUrl",
    "ClickSummary",
    "UrlStats",
    "ShortenData",
    "ShortenResponse",
    "StatsResponse",
    "MessageResponse",
    "HealthResponse",
    "ErrorResponse",
]


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class ShortenRequest(CamelModel):
    url: str | None = None


class ClickMetadata(CamelModel):
    ip_address: str | None = Field(None, max_length=45)
    user_agent: str | None = None
    referrer: str | None = None

    @property
    def has_data(self) -> bool:
        return any((self.ip_address, self.user_agent, self.referrer))


class CachedUrlPayload(CamelModel):
    """Redis cache payload for a mapping, stored at ``url:<shortCode>``."""

    original_url: str
    short_code: str


class CreatedUrl(CamelModel):
    short_code: str
    original_url: str
    created_at: datetime.datetime | None = None
    is_new: bool


class ResolvedUrl(CamelModel):
    original_url: str
    short_code: str
    source: ResolutionSource


class ClickSummary(CamelModel):
    clicked_at: datetime.datetime
    ip_address: str | None = None
    referrer: str | None = None


class UrlStats(CamelModel):
    short_code: str
    original_url: str
    click_count: int
    created_at: datetime.datetime
    last_accessed: datetime.datetime | None = None
    recent_clicks: list[ClickSummary] = Field(default_factory=list)


class ShortenData(CamelModel):
    short_code: str
    short_url: str
    original_url: str
    is_new: bool


class ShortenResponse(CamelModel):
    success: bool = True
    data: ShortenData


class StatsResponse(CamelModel):
    success: bool = True
    data: UrlStats


class MessageResponse(CamelModel):
    success: bool = True
    message: str


class HealthResponse(CamelModel):
    success: bool = True
    status: HealthStatus
    timestamp: datetime.datetime
    database: HealthStatus
    cache: HealthStatus


class ErrorResponse(CamelModel):
    success: bool = False
    error: str
