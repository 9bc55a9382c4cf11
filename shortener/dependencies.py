"""Dependency injection for shared resources and per-request context.

The ``ServiceManager`` owns every long-lived collaborator (database pool,
cache client, click accountant, logger). It is built once during application
startup, stored on ``app.state.services`` and torn down on shutdown; nothing
here is a module-level singleton, so tests can build their own manager around
an in-memory database and cache.
"""

import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Optional

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from shortener.cache import CacheGateway
from shortener.clicks import ClickAccountant
from shortener.config import Settings
from shortener.database import Database, get_db
from shortener.schemas import ClickMetadata
from shortener.service import ResolutionService

LOGGER_NAME = "shortener"


# ============================================================================
# SERVICE MANAGER
# ============================================================================


class ServiceManager:
    """Holder of shared resources with an explicit lifecycle.

    Lifecycle:
        ``initialize()`` at startup creates tables and starts the click
        worker; ``cleanup()`` at shutdown drains the worker and closes the
        cache client and the connection pool, in that order.
    """

    def __init__(
        self,
        settings: Settings,
        database: Database,
        cache: CacheGateway,
        accountant: ClickAccountant | None = None,
    ):
        self.settings = settings
        self.database = database
        self.cache = cache
        self.accountant = accountant or ClickAccountant(
            database.session_factory,
            cache,
            maxsize=settings.CLICK_QUEUE_MAXSIZE,
            drain_timeout=settings.CLICK_DRAIN_TIMEOUT_SECONDS,
        )
        self.logger = self._setup_logger()
        self._initialized = False

    @classmethod
    def from_settings(cls, settings: Settings) -> "ServiceManager":
        """Build the production collaborators from settings."""
        return cls(
            settings=settings,
            database=Database.from_settings(settings),
            cache=CacheGateway.from_settings(settings),
        )

    async def initialize(self) -> None:
        """Initialize shared resources once at startup."""
        if self._initialized:
            return
        await self.database.create_all()
        if not await self.cache.ping():
            self.logger.warning("Cache unreachable at startup, serving from the database only")
        self.accountant.start()
        self._initialized = True
        self.logger.info(f"{self.settings.APP_NAME} initialized ({self.settings.APP_ENV})")

    async def cleanup(self) -> None:
        """Release shared resources at shutdown."""
        await self.accountant.stop()
        await self.cache.close()
        await self.database.dispose()
        self._initialized = False

    def _setup_logger(self) -> logging.Logger:
        """Setup the package logger once."""
        logger = logging.getLogger(LOGGER_NAME)
        if not logger.handlers:
            handler = logging.StreamHandler()
            formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
            handler.setFormatter(formatter)
            logger.addHandler(handler)
        logger.setLevel(self.settings.LOG_LEVEL.upper())
        return logger


# ============================================================================
# REQUEST CONTEXT
# ============================================================================


@dataclass
class RequestContext:
    """Per-request view over the shared resources.

    Attributes:
        database: Async database session (the only per-request resource)
        service_manager: Shared resources
        request_id: Unique identifier for this request
        user_agent: Client user agent string
        client_ip: Client IP address
        referrer: Referer header, if any
        start_time: Request start timestamp
    """

    database: AsyncSession
    service_manager: ServiceManager
    request_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    user_agent: Optional[str] = None
    client_ip: Optional[str] = None
    referrer: Optional[str] = None
    start_time: float = field(default_factory=time.time)

    @property
    def cache(self) -> CacheGateway:
        return self.service_manager.cache

    @property
    def accountant(self) -> ClickAccountant:
        return self.service_manager.accountant

    @property
    def settings(self) -> Settings:
        return self.service_manager.settings

    @property
    def logger(self) -> logging.LoggerAdapter:
        """Shared logger carrying the request identity."""
        return logging.LoggerAdapter(
            self.service_manager.logger,
            {
                "request_id": self.request_id,
                "client_ip": self.client_ip,
                "user_agent": self.user_agent,
            },
        )

    def click_metadata(self) -> ClickMetadata:
        return ClickMetadata(
            ip_address=self.client_ip[:45] if self.client_ip else None,
            user_agent=self.user_agent,
            referrer=self.referrer,
        )

    def get_duration(self) -> float:
        """Get request duration in milliseconds."""
        return (time.time() - self.start_time) * 1000


# ============================================================================
# DEPENDENCY FUNCTIONS
# ============================================================================


async def get_service_manager(request: Request) -> ServiceManager:
    return request.app.state.services


async def get_request_context(
    request: Request,
    db: AsyncSession = Depends(get_db),
    manager: ServiceManager = Depends(get_service_manager),
) -> RequestContext:
    client_ip = request.client.host if request.client else None
    return RequestContext(
        database=db,
        service_manager=manager,
        request_id=request.headers.get("x-request-id") or str(uuid.uuid4()),
        user_agent=request.headers.get("user-agent"),
        client_ip=client_ip,
        referrer=request.headers.get("referer"),
    )


def get_resolution_service(ctx: RequestContext = Depends(get_request_context)) -> ResolutionService:
    return ResolutionService.from_context(ctx)
