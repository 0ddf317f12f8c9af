from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from staking_indexer.app.domain.errors import MalformedEventError
from staking_indexer.app.domain.models import StakingNotification
from staking_indexer.app.domain.ports.out import (
    IndexerCursor,
    StakingEventLog,
    StakingNotifier,
    StakingProjection,
)


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ApplyResult:
    fetched: int
    applied: int
    skipped: int

    @property
    def processed(self) -> int:
        return self.applied + self.skipped


async def _notify(notifier: StakingNotifier | None, notification: StakingNotification) -> None:
    if notifier is None:
        return
    try:
        await notifier.notify(notification)
    except Exception:
        # Downstream delivery never affects indexer state.
        logger.exception(
            "Notifier failed for %s (tx=%s); continuing",
            notification.type,
            notification.tx_hash,
        )


async def apply_staged_staking_events(
    *,
    event_log: StakingEventLog,
    projection: StakingProjection,
    notifier: StakingNotifier | None = None,
    batch_size: int = 50,
    cursor: IndexerCursor | None = None,
) -> ApplyResult:
    """
    One apply-loop tick.

    Takes up to `batch_size` unprocessed events in (block_number, log_index)
    order and, one at a time: applies it, marks it processed, then notifies.

    - With a `cursor`, only events at or below the fetch cursor are taken,
      i.e. events of fully staged ranges. No stored cursor means nothing is
      eligible yet.
    - Malformed events are marked processed with a note and skipped.
    - Any other error stops the batch at that event (so later events are
      never applied ahead of it) and propagates; the next tick resumes there.
    """
    if batch_size <= 0:
        raise ValueError("batch_size must be positive")

    max_block: int | None = None
    if cursor is not None:
        max_block = await cursor.get()
        if max_block is None:
            return ApplyResult(fetched=0, applied=0, skipped=0)

    events = await event_log.list_unprocessed(limit=batch_size, max_block=max_block)
    if not events:
        return ApplyResult(fetched=0, applied=0, skipped=0)

    logger.info("Applying %s staged events", len(events))

    applied = 0
    skipped = 0
    for event in events:
        if event.id is None:
            raise ValueError("Staged event has no id")

        try:
            outcome = await projection.apply(event)
        except MalformedEventError as exc:
            logger.warning(
                "Skipping malformed event id=%s (%s tx=%s log=%s): %s",
                event.id,
                event.event_name,
                event.tx_hash,
                event.log_index,
                exc,
            )
            await event_log.mark_processed(event.id, note=f"malformed: {exc}")
            skipped += 1
            continue

        await event_log.mark_processed(event.id, note=outcome.note)

        if outcome.applied:
            applied += 1
        else:
            skipped += 1

        if outcome.notification is not None:
            await _notify(notifier, outcome.notification)

    logger.info(
        "Applied batch: applied=%s skipped=%s last_block=%s",
        applied,
        skipped,
        events[-1].block_number,
    )
    return ApplyResult(fetched=len(events), applied=applied, skipped=skipped)


async def drain_staged_staking_events(
    *,
    event_log: StakingEventLog,
    projection: StakingProjection,
    notifier: StakingNotifier | None = None,
    batch_size: int = 50,
    cursor: IndexerCursor | None = None,
    stop: asyncio.Event | None = None,
) -> ApplyResult:
    """
    Run apply batches until the eligible backlog is empty, or until `stop`
    is set (checked between batches).
    """
    applied = 0
    skipped = 0
    fetched = 0
    while True:
        if stop is not None and stop.is_set():
            logger.info("Stop requested; leaving apply drain after %s events", fetched)
            return ApplyResult(fetched=fetched, applied=applied, skipped=skipped)

        result = await apply_staged_staking_events(
            event_log=event_log,
            projection=projection,
            notifier=notifier,
            batch_size=batch_size,
            cursor=cursor,
        )
        fetched += result.fetched
        applied += result.applied
        skipped += result.skipped
        if result.fetched < batch_size:
            return ApplyResult(fetched=fetched, applied=applied, skipped=skipped)
