from __future__ import annotations

import logging

from staking_indexer.app.application.services.apply_staged_staking_events import (
    drain_staged_staking_events,
)
from staking_indexer.app.application.services.fetch_staking_events_for_block_range import (
    fetch_next_chunk,
)
from staking_indexer.app.config import settings
from staking_indexer.app.domain.events import TRACKED_EVENT_TYPES
from staking_indexer.app.interface.tasks.runtime import indexer_runtime


logger = logging.getLogger(__name__)


async def sync_staking_indexer_task(*, backend: str = "sqlalchemy") -> None:
    """One fetch chunk followed by a full apply drain."""
    async with indexer_runtime(backend=backend) as c:
        fetched = await fetch_next_chunk(
            chain_client=c.chain_client,
            event_log=c.event_log,
            cursor=c.cursor,
            event_types=TRACKED_EVENT_TYPES,
            chunk_size=settings.fetch_chunk_size,
            start_block=settings.deployment_block,
        )
        applied = await drain_staged_staking_events(
            event_log=c.event_log,
            projection=c.projection,
            notifier=c.notifier,
            batch_size=settings.apply_batch_size,
            cursor=c.cursor,
        )
        logger.info(
            "Sync done: staged=%s applied=%s skipped=%s head=%s",
            fetched.staged_events,
            applied.applied,
            applied.skipped,
            fetched.head,
        )
