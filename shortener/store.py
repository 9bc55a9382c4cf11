"""Durable store gateway: typed queries over the ``urls`` and ``clicks`` tables.

Every query is a parameterized SQLAlchemy expression. Two failure modes are
translated into service errors here so the business logic never sees
driver exceptions:

- unique violation on ``short_code`` during insert → ``ShortCodeCollisionError``
- lost connection, pool exhaustion or timeout → ``StoreUnavailableError``
"""

import functools
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.ext.asyncio import AsyncSession

from shortener.exceptions import ShortCodeCollisionError, StoreUnavailableError
from shortener.models import ClickEvent, UrlMapping
from shortener.schemas import ClickMetadata

__all__ = ["UrlStore"]

logger = logging.getLogger(__name__)

_UNAVAILABLE_ERRORS = (OperationalError, InterfaceError, PoolTimeoutError, OSError)


def _guard(method: Callable[..., Awaitable[Any]]) -> Callable[..., Awaitable[Any]]:
    """Roll back and raise ``StoreUnavailableError`` on connectivity failures."""

    @functools.wraps(method)
    async def wrapper(store: "UrlStore", *args, **kwargs):
        try:
            return await method(store, *args, **kwargs)
        except _UNAVAILABLE_ERRORS as exc:
            await store._safe_rollback()
            logger.error(f"Store operation {method.__name__} failed: {exc}")
            raise StoreUnavailableError(f"Database unavailable during {method.__name__}") from exc

    return wrapper


class UrlStore:
    def __init__(self, session: AsyncSession):
        self._session = session

    @_guard
    async def find_by_code(self, short_code: str) -> UrlMapping | None:
        result = await self._session.execute(select(UrlMapping).where(UrlMapping.short_code == short_code))
        return result.scalar_one_or_none()

    @_guard
    async def find_by_url(self, original_url: str) -> UrlMapping | None:
        result = await self._session.execute(
            select(UrlMapping).where(UrlMapping.original_url == original_url).order_by(UrlMapping.id).limit(1)
        )
        return result.scalar_one_or_none()

    @_guard
    async def insert(self, short_code: str, original_url: str) -> UrlMapping:
        """Insert a new mapping.

        Raises:
            ShortCodeCollisionError: ``short_code`` is already taken.
        """
        mapping = UrlMapping(short_code=short_code, original_url=original_url)
        self._session.add(mapping)
        try:
            await self._session.commit()
        except IntegrityError as exc:
            await self._session.rollback()
            raise ShortCodeCollisionError(short_code) from exc
        await self._session.refresh(mapping)
        return mapping

    @_guard
    async def increment_clicks(self, short_code: str) -> bool:
        result = await self._session.execute(
            update(UrlMapping)
            .where(UrlMapping.short_code == short_code)
            .values(click_count=UrlMapping.click_count + 1, last_accessed=func.now())
            .execution_options(synchronize_session=False)
        )
        await self._session.commit()
        return result.rowcount > 0

    @_guard
    async def record_click(self, short_code: str, metadata: ClickMetadata) -> ClickEvent:
        event = ClickEvent(
            short_code=short_code,
            ip_address=metadata.ip_address,
            user_agent=metadata.user_agent,
            referrer=metadata.referrer,
        )
        self._session.add(event)
        try:
            await self._session.commit()
        except IntegrityError:
            await self._session.rollback()
            raise
        return event

    @_guard
    async def delete(self, short_code: str) -> int:
        result = await self._session.execute(
            delete(UrlMapping)
            .where(UrlMapping.short_code == short_code)
            .execution_options(synchronize_session=False)
        )
        await self._session.commit()
        return result.rowcount

    @_guard
    async def recent_clicks(self, short_code: str, limit: int = 10) -> list[ClickEvent]:
        result = await self._session.execute(
            select(ClickEvent)
            .where(ClickEvent.short_code == short_code)
            .order_by(ClickEvent.clicked_at.desc(), ClickEvent.id.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def _safe_rollback(self) -> None:
        try:
            await self._session.rollback()
        except Exception as exc:
            logger.debug(f"Rollback after store failure also failed: {exc}")
