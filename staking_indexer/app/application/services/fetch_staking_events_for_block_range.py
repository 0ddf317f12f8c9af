from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Sequence

from staking_indexer.app.domain.events import RawEvent, StakingEventType
from staking_indexer.app.domain.ports.out import (
    IndexerCursor,
    StakingChainClient,
    StakingEventLog,
)


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BlockRange:
    from_block: int
    to_block: int

    def validate(self) -> None:
        if self.from_block < 0 or self.to_block < 0:
            raise ValueError("Block numbers must be non-negative")
        if self.from_block > self.to_block:
            raise ValueError("from_block must be <= to_block")


@dataclass(frozen=True)
class FetchResult:
    block_range: BlockRange | None
    staged_events: int
    head: int

    @property
    def advanced(self) -> bool:
        return self.block_range is not None


async def stage_staking_events_for_block_range(
    *,
    chain_client: StakingChainClient,
    event_log: StakingEventLog,
    event_types: Sequence[StakingEventType],
    block_range: BlockRange,
) -> int:
    """
    Fetch every tracked event type for a block range and stage it.

    All event types of the range are collected first and staged in a single
    append, so readers never see a range with only some types staged.
    Does not touch the cursor; callers decide when the range counts as done.
    """
    block_range.validate()

    collected: list[RawEvent] = []
    for event_type in event_types:
        events = await chain_client.fetch_events(
            event_type=event_type,
            from_block=block_range.from_block,
            to_block=block_range.to_block,
        )
        collected.extend(events)
        logger.debug(
            "Fetched %s %s events in blocks [%s, %s]",
            len(events),
            event_type.value,
            block_range.from_block,
            block_range.to_block,
        )

    if not collected:
        return 0
    collected.sort(key=lambda e: e.chain_position)
    return await event_log.append_many(collected)


async def fetch_next_chunk(
    *,
    chain_client: StakingChainClient,
    event_log: StakingEventLog,
    cursor: IndexerCursor,
    event_types: Sequence[StakingEventType],
    chunk_size: int,
    start_block: int = 0,
) -> FetchResult:
    """
    One fetch-loop tick.

    Stages events for [cursor + 1, min(cursor + chunk_size, head)] and only
    then advances the cursor. Any exception leaves the cursor where it was,
    so the next tick re-fetches the same range (staging is an upsert).
    """
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")
    if start_block < 0:
        raise ValueError("start_block must be non-negative")

    stored = await cursor.get()
    last_staged = stored if stored is not None else start_block - 1
    from_block = max(last_staged + 1, start_block)

    head = await chain_client.current_height()
    if from_block > head:
        return FetchResult(block_range=None, staged_events=0, head=head)

    block_range = BlockRange(
        from_block=from_block,
        to_block=min(from_block + chunk_size - 1, head),
    )

    staged = await stage_staking_events_for_block_range(
        chain_client=chain_client,
        event_log=event_log,
        event_types=event_types,
        block_range=block_range,
    )

    # Last step: everything in the range is durably staged.
    await cursor.advance(block_range.to_block)

    logger.info(
        "Fetched blocks [%s, %s] (head=%s): staged %s events",
        block_range.from_block,
        block_range.to_block,
        head,
        staged,
    )
    return FetchResult(block_range=block_range, staged_events=staged, head=head)
