from __future__ import annotations

import asyncio
import logging
import signal
from functools import partial

from staking_indexer.app.application.services.apply_staged_staking_events import (
    apply_staged_staking_events,
)
from staking_indexer.app.application.services.bootstrap_staking_indexer import (
    bootstrap_staking_indexer,
)
from staking_indexer.app.application.services.fetch_staking_events_for_block_range import (
    fetch_next_chunk,
)
from staking_indexer.app.application.services.scheduler import IndexerScheduler, PeriodicTask
from staking_indexer.app.config import Settings, settings
from staking_indexer.app.domain.events import TRACKED_EVENT_TYPES
from staking_indexer.app.infrastructure.factories.indexer_components import IndexerComponents
from staking_indexer.app.interface.tasks.runtime import indexer_runtime


logger = logging.getLogger(__name__)


def build_indexer_scheduler(
    components: IndexerComponents,
    *,
    config: Settings = settings,
) -> IndexerScheduler:
    """Fetch loop + apply loop + startup bootstrap over one set of ports."""
    fetch_task = PeriodicTask(
        name="fetch",
        interval=config.fetch_interval_seconds,
        tick=partial(
            fetch_next_chunk,
            chain_client=components.chain_client,
            event_log=components.event_log,
            cursor=components.cursor,
            event_types=TRACKED_EVENT_TYPES,
            chunk_size=config.fetch_chunk_size,
            start_block=config.deployment_block,
        ),
    )
    apply_task = PeriodicTask(
        name="apply",
        interval=config.apply_interval_seconds,
        tick=partial(
            apply_staged_staking_events,
            event_log=components.event_log,
            projection=components.projection,
            notifier=components.notifier,
            batch_size=config.apply_batch_size,
            cursor=components.cursor,
        ),
    )
    bootstrap = partial(
        bootstrap_staking_indexer,
        chain_client=components.chain_client,
        event_log=components.event_log,
        cursor=components.cursor,
        projection=components.projection,
        notifier=components.notifier,
        event_types=TRACKED_EVENT_TYPES,
        start_block=config.deployment_block,
        backfill_chunk_size=config.backfill_chunk_size,
        apply_batch_size=config.apply_batch_size,
        backfill_on_start=config.backfill_on_start,
        max_incremental_lag=config.fetch_chunk_size,
    )
    return IndexerScheduler(
        fetch_task=fetch_task,
        apply_task=apply_task,
        event_log=components.event_log,
        cursor=components.cursor,
        bootstrap=bootstrap,
    )


async def check_indexer_dependencies(components: IndexerComponents) -> None:
    """Fail at boot if either the database or the RPC endpoint is unreachable."""
    stored = await components.cursor.get()
    head = await components.chain_client.current_height()
    logger.info("Dependencies reachable: chain head=%s, stored cursor=%s", head, stored)


async def serve_staking_indexer_task(*, backend: str = "sqlalchemy") -> None:
    """
    Long-running service: bootstrap, then fetch and apply loops until
    SIGINT/SIGTERM. A signal during bootstrap ends it after the chunk in
    flight. SIGUSR1 triggers an immediate fetch + apply cycle.
    """
    async with indexer_runtime(backend=backend) as c:
        await check_indexer_dependencies(c)

        scheduler = build_indexer_scheduler(c)
        shutdown = asyncio.Event()

        def _on_shutdown_signal() -> None:
            shutdown.set()
            scheduler.request_stop()

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, _on_shutdown_signal)
        sigusr1 = getattr(signal, "SIGUSR1", None)
        if sigusr1 is not None:
            loop.add_signal_handler(sigusr1, scheduler.trigger_sync)

        try:
            if not shutdown.is_set():
                await scheduler.start()
            await shutdown.wait()
            logger.info("Shutdown signal received")
        finally:
            await scheduler.stop()
            for sig in (signal.SIGINT, signal.SIGTERM, sigusr1):
                if sig is not None:
                    loop.remove_signal_handler(sig)
