from __future__ import annotations

from staking_indexer.app.domain.models import IndexerStatus
from staking_indexer.app.domain.ports.out import IndexerCursor, StakingEventLog


async def get_indexer_status(
    *,
    event_log: StakingEventLog,
    cursor: IndexerCursor,
    is_running: bool,
) -> IndexerStatus:
    """Staleness snapshot for the API/status endpoint."""
    stats = await event_log.stats()
    return IndexerStatus(
        is_running=is_running,
        last_processed_block=stats.last_processed_block,
        last_fetched_block=await cursor.get(),
        unprocessed_count=stats.unprocessed_count,
        total_events=stats.total_count,
    )
