"""Delete endpoint behavior tests."""

from unittest.mock import AsyncMock

import pytest
from httpx import AsyncClient
from sqlalchemy import func, select

from shortener.cache import url_key
from shortener.dependencies import ServiceManager
from shortener.exceptions import StoreUnavailableError
from shortener.models import ClickEvent
from shortener.store import UrlStore


@pytest.mark.asyncio
async def test_delete_existing_url(client: AsyncClient, fake_redis) -> None:
    create = await client.post("/api/shorten", json={"url": "https://www.example.com"})
    short_code = create.json()["data"]["shortCode"]

    response = await client.delete(f"/api/url/{short_code}")
    assert response.status_code == 200
    assert response.json() == {"success": True, "message": "URL deleted successfully"}
    assert url_key(short_code) not in fake_redis.data

    redirect = await client.get(f"/{short_code}", follow_redirects=False)
    assert redirect.status_code == 404
    assert (await client.get(f"/api/stats/{short_code}")).status_code == 404


@pytest.mark.asyncio
async def test_delete_unknown_url(client: AsyncClient) -> None:
    response = await client.delete("/api/url/zzzzzz")
    assert response.status_code == 404
    assert response.json() == {"success": False, "error": "Short URL not found"}


@pytest.mark.asyncio
async def test_delete_removes_click_history(client: AsyncClient, services: ServiceManager) -> None:
    create = await client.post("/api/shorten", json={"url": "https://www.example.com"})
    short_code = create.json()["data"]["shortCode"]
    await client.get(f"/{short_code}", headers={"User-Agent": "pytest"}, follow_redirects=False)
    await services.accountant.drain()

    assert (await client.delete(f"/api/url/{short_code}")).status_code == 200

    async with services.database.session_factory() as session:
        remaining = await session.scalar(
            select(func.count()).select_from(ClickEvent).where(ClickEvent.short_code == short_code)
        )
    assert remaining == 0


@pytest.mark.asyncio
async def test_delete_store_outage_returns_500(client: AsyncClient, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(UrlStore, "delete", AsyncMock(side_effect=StoreUnavailableError("Database unavailable")))

    response = await client.delete("/api/url/abc123")
    assert response.status_code == 500
    assert response.json() == {"success": False, "error": "Database unavailable"}
