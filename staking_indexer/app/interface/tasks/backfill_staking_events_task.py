from __future__ import annotations

from staking_indexer.app.application.services.bootstrap_staking_indexer import (
    bootstrap_staking_indexer,
)
from staking_indexer.app.config import settings
from staking_indexer.app.domain.events import TRACKED_EVENT_TYPES
from staking_indexer.app.interface.tasks.runtime import indexer_runtime


async def backfill_staking_events_task(*, backend: str = "sqlalchemy") -> None:
    """
    Task: startup pass without the periodic loops.

    - stages history from the cursor (or DEPLOYMENT_BLOCK on first run)
      to the current head in BACKFILL_CHUNK_SIZE chunks,
    - drains the apply backlog.
    """
    async with indexer_runtime(backend=backend) as c:
        await bootstrap_staking_indexer(
            chain_client=c.chain_client,
            event_log=c.event_log,
            cursor=c.cursor,
            projection=c.projection,
            notifier=c.notifier,
            event_types=TRACKED_EVENT_TYPES,
            start_block=settings.deployment_block,
            backfill_chunk_size=settings.backfill_chunk_size,
            apply_batch_size=settings.apply_batch_size,
            backfill_on_start=True,
        )
