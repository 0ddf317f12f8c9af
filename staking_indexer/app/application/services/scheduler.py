from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable

from staking_indexer.app.application.services.indexer_status import get_indexer_status
from staking_indexer.app.domain.models import IndexerStatus
from staking_indexer.app.domain.ports.out import IndexerCursor, StakingEventLog


logger = logging.getLogger(__name__)

TickFn = Callable[[], Awaitable[Any]]
BootstrapFn = Callable[..., Awaitable[Any]]
SleepFn = Callable[[float], Awaitable[None]]
ClockFn = Callable[[], float]


class PeriodicTask:
    """
    A tick function run on a fixed interval, never concurrently with itself.

    run_once() returns False without running when a tick is already in
    flight (from the loop or from a manual trigger). Tick exceptions are
    logged and recorded, never propagated: one bad tick must not end the loop.
    """

    def __init__(
        self,
        *,
        name: str,
        tick: TickFn,
        interval: float,
        sleep: SleepFn = asyncio.sleep,
        clock: ClockFn = time.monotonic,
    ) -> None:
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.name = name
        self.interval = interval
        self._tick = tick
        self._sleep = sleep
        self._clock = clock
        self._lock = asyncio.Lock()
        self._sleeping = False

        self.runs = 0
        self.failures = 0
        self.skipped = 0
        self.last_started_at: float | None = None
        self.last_finished_at: float | None = None
        self.last_error: str | None = None

    @property
    def in_flight(self) -> bool:
        return self._lock.locked()

    @property
    def sleeping(self) -> bool:
        return self._sleeping

    async def run_once(self) -> bool:
        if self._lock.locked():
            self.skipped += 1
            logger.debug("Task %s: previous tick still running, skipping", self.name)
            return False

        async with self._lock:
            self.last_started_at = self._clock()
            try:
                await self._tick()
                self.last_error = None
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                self.failures += 1
                self.last_error = f"{type(exc).__name__}: {exc}"
                logger.exception("Task %s: tick failed, will retry next interval", self.name)
            finally:
                self.runs += 1
                self.last_finished_at = self._clock()
        return True

    async def run_forever(self, stop: asyncio.Event) -> None:
        while not stop.is_set():
            await self.run_once()
            if stop.is_set():
                break
            self._sleeping = True
            try:
                await self._sleep(self.interval)
            finally:
                self._sleeping = False


class IndexerScheduler:
    """
    Owns the fetch and apply loops.

    start() runs the optional bootstrap, then spawns both loops on their own
    timers. The bootstrap receives the scheduler's stop event as `stop=`;
    when stop() is called before it returns, no loops are started. stop()
    cancels loops that are sleeping and waits for loops that are mid-tick,
    so a fetch tick is never interrupted between staging and cursor advance.
    """

    def __init__(
        self,
        *,
        fetch_task: PeriodicTask,
        apply_task: PeriodicTask,
        event_log: StakingEventLog,
        cursor: IndexerCursor,
        bootstrap: BootstrapFn | None = None,
    ) -> None:
        self._fetch = fetch_task
        self._apply = apply_task
        self._event_log = event_log
        self._cursor = cursor
        self._bootstrap = bootstrap

        self._stop = asyncio.Event()
        self._loops: dict[PeriodicTask, asyncio.Task[None]] = {}
        self._sync_tasks: set[asyncio.Task[None]] = set()
        self._running = False
        self._starting = False

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self) -> None:
        if self._running or self._starting:
            logger.warning("Indexer scheduler is already running")
            return

        self._stop.clear()
        if self._bootstrap is not None:
            logger.info("Running bootstrap before starting loops")
            self._starting = True
            try:
                await self._bootstrap(stop=self._stop)
            finally:
                self._starting = False
            if self._stop.is_set():
                logger.info("Stop requested during bootstrap; loops not started")
                return

        self._running = True
        for task in (self._fetch, self._apply):
            self._loops[task] = asyncio.create_task(
                task.run_forever(self._stop),
                name=f"indexer-{task.name}",
            )
        logger.info(
            "Indexer started: %s every %ss, %s every %ss",
            self._fetch.name,
            self._fetch.interval,
            self._apply.name,
            self._apply.interval,
        )

    def request_stop(self) -> None:
        """Signal-handler safe: ask a running bootstrap or the loops to wind down."""
        self._stop.set()

    async def stop(self) -> None:
        self._stop.set()
        if not self._running:
            return

        self._running = False

        for task, handle in self._loops.items():
            if task.sleeping:
                handle.cancel()

        pending = [*self._loops.values(), *self._sync_tasks]
        results = await asyncio.gather(*pending, return_exceptions=True)
        for result in results:
            if isinstance(result, Exception) and not isinstance(result, asyncio.CancelledError):
                logger.error("Indexer task ended with error during shutdown: %r", result)

        self._loops.clear()
        logger.info("Indexer stopped")

    async def wait(self) -> None:
        """Block until stop() is called."""
        await self._stop.wait()

    def trigger_sync(self) -> asyncio.Task[None]:
        """
        Operator "sync now": schedule one fetch + apply cycle and return at once.

        The cycle goes through the same PeriodicTask locks, so it is skipped
        (per step) if a timer-driven tick of that step is already running.
        """
        handle = asyncio.create_task(self.sync_once(), name="indexer-sync-now")
        self._sync_tasks.add(handle)
        handle.add_done_callback(self._sync_tasks.discard)
        logger.info("Manual sync triggered")
        return handle

    async def sync_once(self) -> None:
        await self._fetch.run_once()
        await self._apply.run_once()

    async def status(self) -> IndexerStatus:
        return await get_indexer_status(
            event_log=self._event_log,
            cursor=self._cursor,
            is_running=self._running,
        )
