"""Fire-and-forget click accounting.

A redirect only enqueues a ``ClickTask``; a background worker drains the
queue and applies each task with its own error boundary, so nothing in this
module can delay or fail a redirect.

Flow Diagram: one click
========================
::
    GET /:code ──► record() ──► put_nowait ──► (response returns)
                                   │
                                   ▼ worker
                        ┌──────────────────────┐
                        │ process(task)        │
                        │ 1. click_count + 1   │  each step:
                        │ 2. clicks row        │  try / log / continue
                        │    (if metadata)     │
                        │ 3. INCR clicks:<code>│
                        └──────────────────────┘

Key Behaviours
===============
- ``record`` never awaits I/O and never raises; a full queue drops the click.
- The three steps are independent: a store outage still lets the cache
  counter move, and vice versa.
- Each task opens its own database session from the shared pool.
- ``stop`` drains outstanding work for a bounded time, then cancels.
"""

import asyncio
import contextlib
import logging
from dataclasses import dataclass, field

from prometheus_client import Counter
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from shortener.cache import CacheGateway, clicks_key
from shortener.enums import RequestStatus
from shortener.schemas import ClickMetadata
from shortener.store import UrlStore

__all__ = ["ClickAccountant", "ClickTask"]

logger = logging.getLogger(__name__)

CLICK_TASKS_TOTAL = Counter(
    "shortener_click_tasks_total",
    "Click accounting tasks by outcome",
    ["status"],
)
CLICK_STEP_FAILURES_TOTAL = Counter(
    "shortener_click_step_failures_total",
    "Failed click accounting steps",
    ["step"],
)


@dataclass
class ClickTask:
    short_code: str
    metadata: ClickMetadata = field(default_factory=ClickMetadata)


class ClickAccountant:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        cache: CacheGateway,
        maxsize: int = 10000,
        drain_timeout: float = 5.0,
    ):
        self._session_factory = session_factory
        self._cache = cache
        self._queue: asyncio.Queue[ClickTask] = asyncio.Queue(maxsize=maxsize)
        self._drain_timeout = drain_timeout
        self._worker: asyncio.Task | None = None

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    @property
    def running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    def record(self, short_code: str, metadata: ClickMetadata | None = None) -> bool:
        """Enqueue a click without waiting. Returns False if it was dropped."""
        try:
            self._queue.put_nowait(ClickTask(short_code=short_code, metadata=metadata or ClickMetadata()))
        except asyncio.QueueFull:
            CLICK_TASKS_TOTAL.labels(status="dropped").inc()
            logger.warning(f"Click queue full, dropping click for {short_code}")
            return False
        return True

    async def process(self, task: ClickTask) -> None:
        """Apply one click. Every step failure is logged and swallowed."""
        failures = 0

        try:
            async with self._session_factory() as session:
                store = UrlStore(session)

                try:
                    await store.increment_clicks(task.short_code)
                except Exception as exc:
                    failures += 1
                    CLICK_STEP_FAILURES_TOTAL.labels(step="increment").inc()
                    logger.error(f"Error incrementing click count for {task.short_code}: {exc}")

                if task.metadata.has_data:
                    try:
                        await store.record_click(task.short_code, task.metadata)
                    except Exception as exc:
                        failures += 1
                        CLICK_STEP_FAILURES_TOTAL.labels(step="record").inc()
                        logger.error(f"Error recording click event for {task.short_code}: {exc}")
        except Exception as exc:
            failures += 1
            CLICK_STEP_FAILURES_TOTAL.labels(step="session").inc()
            logger.error(f"Error opening session for click on {task.short_code}: {exc}")

        if await self._cache.incr(clicks_key(task.short_code)) is None:
            failures += 1
            CLICK_STEP_FAILURES_TOTAL.labels(step="cache").inc()

        status = RequestStatus.SUCCESS if failures == 0 else RequestStatus.ERROR
        CLICK_TASKS_TOTAL.labels(status=status).inc()

    def start(self) -> None:
        if self.running:
            return
        self._worker = asyncio.create_task(self._run(), name="click-accountant")

    async def drain(self) -> None:
        """Wait until every queued click has been processed."""
        await self._queue.join()

    async def stop(self) -> None:
        if self._worker is None:
            return
        try:
            await asyncio.wait_for(self.drain(), timeout=self._drain_timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Click queue not drained on shutdown, {self.pending} clicks lost")
        self._worker.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._worker
        self._worker = None

    async def _run(self) -> None:
        while True:
            task = await self._queue.get()
            try:
                await self.process(task)
            except Exception:
                logger.warning("click accounting iteration failed", exc_info=True)
            finally:
                self._queue.task_done()
