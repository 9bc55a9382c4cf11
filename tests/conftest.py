"""Shared pytest fixtures for API, store, cache and service tests."""

from pathlib import Path
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from redis.exceptions import ConnectionError as RedisConnectionError
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine

from shortener.cache import CacheGateway
from shortener.config import Settings
from shortener.database import Database
from shortener.dependencies import ServiceManager
from shortener.main import app
from shortener.service import ResolutionService
from shortener.store import UrlStore


class InMemoryRedis:
    """The subset of ``redis.asyncio.Redis`` used by ``CacheGateway``.

    Setting ``available`` to False makes every call raise a connection
    error, the same way a dead Redis server would.
    """

    def __init__(self) -> None:
        self.data: dict[str, str] = {}
        self.ttls: dict[str, int] = {}
        self.available = True
        self.closed = False

    def _check(self) -> None:
        if not self.available:
            raise RedisConnectionError("Error 111 connecting to localhost:6379. Connection refused.")

    async def get(self, key: str) -> str | None:
        self._check()
        return self.data.get(key)

    async def set(self, key: str, value: str, ex: int | None = None) -> bool:
        self._check()
        self.data[key] = value
        if ex is not None:
            self.ttls[key] = ex
        return True

    async def delete(self, *keys: str) -> int:
        self._check()
        removed = 0
        for key in keys:
            if self.data.pop(key, None) is not None:
                removed += 1
            self.ttls.pop(key, None)
        return removed

    async def incr(self, key: str) -> int:
        self._check()
        value = int(self.data.get(key, "0")) + 1
        self.data[key] = str(value)
        return value

    async def exists(self, *keys: str) -> int:
        self._check()
        return sum(1 for key in keys if key in self.data)

    async def ping(self) -> bool:
        self._check()
        return True

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'shortener.db'}",
        BASE_URL="http://test",
        APP_ENV="test",
        LOG_LEVEL="WARNING",
        REDIS_TTL=60,
    )


@pytest.fixture
def fake_redis() -> InMemoryRedis:
    return InMemoryRedis()


@pytest.fixture
def cache(fake_redis: InMemoryRedis) -> CacheGateway:
    return CacheGateway(fake_redis, default_ttl=60)


@pytest_asyncio.fixture(scope="function")
async def database(settings: Settings) -> AsyncGenerator[Database, None]:
    engine = create_async_engine(settings.database_url)

    @event.listens_for(engine.sync_engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    db = Database(engine)
    await db.create_all()
    yield db
    await db.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(database: Database) -> AsyncGenerator[AsyncSession, None]:
    async with database.session_factory() as session:
        yield session


@pytest.fixture
def store(db_session: AsyncSession) -> UrlStore:
    return UrlStore(db_session)


@pytest.fixture
def service(store: UrlStore, cache: CacheGateway, settings: Settings) -> ResolutionService:
    return ResolutionService(store, cache, settings)


@pytest_asyncio.fixture(scope="function")
async def services(
    settings: Settings, database: Database, cache: CacheGateway
) -> AsyncGenerator[ServiceManager, None]:
    manager = ServiceManager(settings, database, cache)
    await manager.initialize()
    yield manager
    await manager.cleanup()


@pytest_asyncio.fixture(scope="function")
async def client(services: ServiceManager) -> AsyncGenerator[AsyncClient, None]:
    # ASGITransport does not run the lifespan, so the manager is installed directly.
    app.state.services = services

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.state.services = None
