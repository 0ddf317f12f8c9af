from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Sequence

from staking_indexer.app.application.services.apply_staged_staking_events import (
    ApplyResult,
    drain_staged_staking_events,
)
from staking_indexer.app.application.services.fetch_staking_events_for_block_range import (
    fetch_next_chunk,
)
from staking_indexer.app.domain.events import StakingEventType
from staking_indexer.app.domain.ports.out import (
    IndexerCursor,
    StakingChainClient,
    StakingEventLog,
    StakingNotifier,
    StakingProjection,
)


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BackfillResult:
    chunks: int
    staged_events: int
    last_block: int | None


@dataclass(frozen=True)
class BootstrapResult:
    first_run: bool
    backfill: BackfillResult | None
    apply: ApplyResult


async def backfill_staking_events(
    *,
    chain_client: StakingChainClient,
    event_log: StakingEventLog,
    cursor: IndexerCursor,
    event_types: Sequence[StakingEventType],
    chunk_size: int,
    start_block: int = 0,
    target_block: int | None = None,
    stop: asyncio.Event | None = None,
) -> BackfillResult:
    """
    Historical catch-up: run fetch chunks back to back until the cursor
    reaches `target_block` (default: head at call time).

    Uses the same fetch_next_chunk() as the periodic loop, just without a
    sleep between chunks, so cursor semantics are identical. `stop` is
    checked between chunks; a chunk in flight always completes.
    """
    if target_block is None:
        target_block = await chain_client.current_height()

    logger.info(
        "Backfilling staking events: start_block=%s, target_block=%s, chunk_size=%s",
        start_block,
        target_block,
        chunk_size,
    )

    chunks = 0
    staged = 0
    last_block: int | None = None
    while True:
        if stop is not None and stop.is_set():
            logger.info("Stop requested; leaving backfill at block %s", last_block)
            break

        result = await fetch_next_chunk(
            chain_client=chain_client,
            event_log=event_log,
            cursor=cursor,
            event_types=event_types,
            chunk_size=chunk_size,
            start_block=start_block,
        )
        if result.block_range is None:
            break

        chunks += 1
        staged += result.staged_events
        last_block = result.block_range.to_block
        if last_block >= target_block:
            break

    logger.info(
        "Finished backfill: chunks=%s, staged_events=%s, last_block=%s",
        chunks,
        staged,
        last_block,
    )
    return BackfillResult(chunks=chunks, staged_events=staged, last_block=last_block)


async def bootstrap_staking_indexer(
    *,
    chain_client: StakingChainClient,
    event_log: StakingEventLog,
    cursor: IndexerCursor,
    projection: StakingProjection,
    notifier: StakingNotifier | None,
    event_types: Sequence[StakingEventType],
    start_block: int,
    backfill_chunk_size: int,
    apply_batch_size: int,
    backfill_on_start: bool = True,
    max_incremental_lag: int = 0,
    stop: asyncio.Event | None = None,
) -> BootstrapResult:
    """
    Startup pass run before the periodic loops.

    Backfills whenever the cursor trails the chain head by more than
    `max_incremental_lag` blocks: on a first run (no cursor stored) that
    is the full history from the deployment block, after an interrupted
    backfill it is the remainder. Then drains the apply backlog, so the
    periodic loops start from a small incremental backlog.

    Setting `stop` ends the pass after the chunk or batch in flight.
    """
    stored = await cursor.get()
    first_run = stored is None

    backfill: BackfillResult | None = None
    if backfill_on_start:
        head = await chain_client.current_height()
        last_staged = stored if stored is not None else start_block - 1
        lag = head - last_staged
        if lag > max_incremental_lag:
            logger.info(
                "Cursor %s trails head %s by %s blocks; backfilling",
                stored,
                head,
                lag,
            )
            backfill = await backfill_staking_events(
                chain_client=chain_client,
                event_log=event_log,
                cursor=cursor,
                event_types=event_types,
                chunk_size=backfill_chunk_size,
                start_block=start_block,
                target_block=head,
                stop=stop,
            )

    applied = await drain_staged_staking_events(
        event_log=event_log,
        projection=projection,
        notifier=notifier,
        batch_size=apply_batch_size,
        cursor=cursor,
        stop=stop,
    )
    logger.info(
        "Bootstrap complete: first_run=%s, applied=%s, skipped=%s",
        first_run,
        applied.applied,
        applied.skipped,
    )
    return BootstrapResult(first_run=first_run, backfill=backfill, apply=applied)
