from __future__ import annotations

import logging

from staking_indexer.app.application.services.block_bounds import resolve_block_bounds_from_chain
from staking_indexer.app.application.services.fetch_staking_events_for_block_range import (
    BlockRange,
    fetch_next_chunk,
    stage_staking_events_for_block_range,
)
from staking_indexer.app.config import settings
from staking_indexer.app.domain.events import TRACKED_EVENT_TYPES
from staking_indexer.app.interface.tasks.runtime import indexer_runtime


logger = logging.getLogger(__name__)

_CURSOR = "cursor"


async def fetch_staking_events_task(
    *,
    from_block: int | str = _CURSOR,
    to_block: int | str = "latest",
    backend: str = "sqlalchemy",
) -> None:
    """
    Stages staking events into staging.staking_events.

    from_block can be:
    - "cursor" (default): one fetch-loop tick from the stored cursor,
      FETCH_CHUNK_SIZE blocks, advancing the cursor on success,
    - int / "earliest": re-query a fixed range [from_block, to_block]
      without touching the cursor (staging is an upsert, so this is safe).

    to_block can be an int or "latest" (current chain height).
    """
    async with indexer_runtime(backend=backend) as c:
        if isinstance(from_block, str) and from_block.strip().lower() in ("", _CURSOR):
            await fetch_next_chunk(
                chain_client=c.chain_client,
                event_log=c.event_log,
                cursor=c.cursor,
                event_types=TRACKED_EVENT_TYPES,
                chunk_size=settings.fetch_chunk_size,
                start_block=settings.deployment_block,
            )
            return

        resolved_from_block, resolved_to_block = await resolve_block_bounds_from_chain(
            chain_client=c.chain_client,
            from_block=from_block,
            to_block=to_block,
            earliest_block=settings.deployment_block,
        )
        block_range = BlockRange(from_block=resolved_from_block, to_block=resolved_to_block)
        block_range.validate()

        staged = 0
        current = block_range.from_block
        while current <= block_range.to_block:
            chunk = BlockRange(
                from_block=current,
                to_block=min(current + settings.fetch_chunk_size - 1, block_range.to_block),
            )
            staged += await stage_staking_events_for_block_range(
                chain_client=c.chain_client,
                event_log=c.event_log,
                event_types=TRACKED_EVENT_TYPES,
                block_range=chunk,
            )
            current = chunk.to_block + 1

        logger.info(
            "Re-staged blocks [%s, %s]: %s events",
            block_range.from_block,
            block_range.to_block,
            staged,
        )
