from __future__ import annotations

from staking_indexer.app.application.services.apply_staged_staking_events import (
    apply_staged_staking_events,
    drain_staged_staking_events,
)
from staking_indexer.app.config import settings
from staking_indexer.app.interface.tasks.runtime import indexer_runtime


async def apply_staking_events_task(
    *,
    limit: int | None = None,
    backend: str = "sqlalchemy",
) -> None:
    """
    Task: project staged events into domain.* tables.

    - limit=None: drain the unprocessed backlog up to the fetch cursor in APPLY_BATCH_SIZE batches,
    - limit=N: apply a single batch of at most N events.
    """
    if limit is not None and limit <= 0:
        raise ValueError("limit must be positive when provided")

    async with indexer_runtime(backend=backend) as c:
        if limit is None:
            await drain_staged_staking_events(
                event_log=c.event_log,
                projection=c.projection,
                notifier=c.notifier,
                batch_size=settings.apply_batch_size,
                cursor=c.cursor,
            )
        else:
            await apply_staged_staking_events(
                event_log=c.event_log,
                projection=c.projection,
                notifier=c.notifier,
                batch_size=limit,
                cursor=c.cursor,
            )
