"""Database engine and session management for the URL shortener.

This module provides SQLAlchemy async engine setup, session management,
and database lifecycle operations using PostgreSQL as the backend.

Flow Diagram: Database Operations
=================================
::
    ┌─────────────┐
    │  Application│
    │  Request    │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ get_db()     │
    │ dependency  │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Open session │
    │ from shared │
    │ pool        │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Yield to     │
    │ request     │
    │ handler     │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Auto-close   │
    │ (finally)    │
    └─────────────┘

How to Use
===========
**Step 1: Build once on startup**::
    database = Database.from_settings(settings)
    await database.create_all()

**Step 2: Use in FastAPI endpoints**::
    @router.get("/urls")
    async def list_urls(db: AsyncSession = Depends(get_db)):
        result = await db.execute(select(UrlMapping))
        return result.scalars().all()

**Step 3: Cleanup on shutdown**::
    await database.dispose()

Key Behaviours
===============
- The pool is bounded (pool_size + max_overflow); checkouts beyond the cap
  wait at most ``DB_POOL_TIMEOUT`` seconds.
- asyncpg connections get connect and per-command timeouts.
- Sessions are automatically closed after each request.
- Tables are created automatically on application startup.

Classes:
    Base:  SQLAlchemy declarative base for all models.
    Database:  Engine plus session factory with an explicit lifecycle.

Functions:
    get_db():  FastAPI dependency for database sessions.
"""

from collections.abc import AsyncGenerator

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from shortener.config import Settings

__all__ = ["Base", "Database", "get_db"]


class Base(DeclarativeBase):
    pass


class Database:
    def __init__(self, engine: AsyncEngine):
        self.engine = engine
        self.session_factory = async_sessionmaker(
            engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "Database":
        url = settings.database_url
        connect_args = {}
        if url.startswith("postgresql+asyncpg"):
            connect_args = {
                "timeout": settings.DB_CONNECT_TIMEOUT,
                "command_timeout": settings.DB_COMMAND_TIMEOUT,
            }
        engine = create_async_engine(
            url,
            echo=(settings.APP_ENV == "development" and settings.LOG_LEVEL.upper() == "DEBUG"),
            pool_size=settings.DB_POOL_SIZE,
            max_overflow=settings.DB_MAX_OVERFLOW,
            pool_timeout=settings.DB_POOL_TIMEOUT,
            pool_pre_ping=True,
            connect_args=connect_args,
        )
        return cls(engine)

    async def create_all(self) -> None:
        # Register the mapped tables before creating them.
        from shortener import models  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def dispose(self) -> None:
        await self.engine.dispose()


async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    database: Database = request.app.state.services.database
    async with database.session_factory() as session:
        try:
            yield session
        finally:
            await session.close()
