"""Cache gateway behaviour, including degradation when Redis is down."""

import pytest

from shortener.cache import CacheGateway, clicks_key, url_key


def test_key_helpers() -> None:
    assert url_key("abc123") == "url:abc123"
    assert clicks_key("abc123") == "clicks:abc123"


@pytest.mark.asyncio
async def test_set_then_get_round_trips_json(cache: CacheGateway, fake_redis) -> None:
    payload = {"originalUrl": "https://example.com", "shortCode": "abc123"}

    assert await cache.set("url:abc123", payload)
    assert fake_redis.ttls["url:abc123"] == 60
    assert await cache.get("url:abc123") == payload
    assert cache.metrics.hits == 1


@pytest.mark.asyncio
async def test_set_with_explicit_ttl(cache: CacheGateway, fake_redis) -> None:
    await cache.set("k", "v", ttl=5)
    assert fake_redis.ttls["k"] == 5


@pytest.mark.asyncio
async def test_get_miss(cache: CacheGateway) -> None:
    assert await cache.get("url:missing") is None
    assert cache.metrics.misses == 1
    assert cache.metrics.errors == 0
    assert cache.metrics.hit_rate == 0


@pytest.mark.asyncio
async def test_incr_exists_delete(cache: CacheGateway) -> None:
    assert await cache.incr("clicks:abc123") == 1
    assert await cache.incr("clicks:abc123") == 2
    assert await cache.exists("clicks:abc123")

    assert await cache.delete("clicks:abc123")
    assert not await cache.exists("clicks:abc123")


@pytest.mark.asyncio
async def test_malformed_payload_reads_as_absent(cache: CacheGateway, fake_redis) -> None:
    fake_redis.data["url:broken"] = "{not json"

    assert await cache.get("url:broken") is None
    assert cache.metrics.errors == 1


@pytest.mark.asyncio
async def test_unserializable_value_is_not_stored(cache: CacheGateway, fake_redis) -> None:
    assert not await cache.set("k", object())
    assert "k" not in fake_redis.data


@pytest.mark.asyncio
async def test_outage_degrades_every_operation(cache: CacheGateway, fake_redis) -> None:
    await cache.set("url:abc123", {"originalUrl": "https://example.com", "shortCode": "abc123"})
    fake_redis.available = False

    assert await cache.get("url:abc123") is None
    assert await cache.set("url:abc123", {"a": 1}) is False
    assert await cache.delete("url:abc123") is False
    assert await cache.incr("clicks:abc123") is None
    assert await cache.exists("url:abc123") is False
    assert await cache.ping() is False
    assert cache.metrics.errors == 6


@pytest.mark.asyncio
async def test_ping_and_close(cache: CacheGateway, fake_redis) -> None:
    assert await cache.ping()
    await cache.close()
    assert fake_redis.closed
