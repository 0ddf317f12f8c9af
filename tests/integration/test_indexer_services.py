"""Fetch, apply and bootstrap services over SQLite adapters and a fake chain."""

import asyncio

import pytest
from sqlalchemy import select

from staking_indexer.app.application.services.apply_staged_staking_events import (
    apply_staged_staking_events,
    drain_staged_staking_events,
)
from staking_indexer.app.application.services.bootstrap_staking_indexer import (
    backfill_staking_events,
    bootstrap_staking_indexer,
)
from staking_indexer.app.application.services.fetch_staking_events_for_block_range import (
    BlockRange,
    fetch_next_chunk,
    stage_staking_events_for_block_range,
)
from staking_indexer.app.application.services.indexer_status import get_indexer_status
from staking_indexer.app.domain.errors import TransientChainError
from staking_indexer.app.domain.events import TRACKED_EVENT_TYPES, StakingEventType
from staking_indexer.app.infrastructure.db.models.domain.pool_stats import PoolStatsDB
from staking_indexer.app.infrastructure.db.models.domain.stakes import StakesDB
from staking_indexer.app.infrastructure.db.models.domain.transactions import TransactionsDB
from staking_indexer.app.infrastructure.db.models.domain.user_stats import UserStatsDB
from staking_indexer.app.infrastructure.db.models.staging.staking_events import StakingEventsDB

from tests.helpers import (
    ALICE,
    BOB,
    CAROL,
    FakeChainClient,
    RecordingNotifier,
    fetch_rows,
    make_event,
    pool_created,
    staked,
    unstaked,
)


async def _fetch(chain, event_log, cursor, chunk_size=1000, start_block=0):
    return await fetch_next_chunk(
        chain_client=chain,
        event_log=event_log,
        cursor=cursor,
        event_types=TRACKED_EVENT_TYPES,
        chunk_size=chunk_size,
        start_block=start_block,
    )


class _FlakyChainClient(FakeChainClient):
    """Raises a transient error on one fetch_events call (1-based), then recovers."""

    def __init__(self, events, head, fail_on_fetch):
        super().__init__(events, head)
        self.fail_on_fetch = fail_on_fetch
        self.fetches = 0

    async def fetch_events(self, *, event_type, from_block, to_block):
        self.fetches += 1
        if self.fetches == self.fail_on_fetch:
            raise TransientChainError("rpc timeout")
        return await super().fetch_events(event_type=event_type, from_block=from_block, to_block=to_block)


class _PausingChainClient(FakeChainClient):
    """Holds the fetch_events call for one event type until resumed."""

    def __init__(self, events, head, pause_on):
        super().__init__(events, head)
        self.pause_on = pause_on
        self.paused = asyncio.Event()
        self.resume = asyncio.Event()

    async def fetch_events(self, *, event_type, from_block, to_block):
        events = await super().fetch_events(event_type=event_type, from_block=from_block, to_block=to_block)
        if event_type is self.pause_on:
            self.paused.set()
            await self.resume.wait()
        return events


# -----------------------------------------------------------------------------
# Fetch
# -----------------------------------------------------------------------------

class TestFetchNextChunk:
    async def test_first_chunk_starts_at_start_block(self, event_log, cursor):
        chain = FakeChainClient([staked(ALICE, 1, 100, block=150)], head=5000)

        result = await _fetch(chain, event_log, cursor, chunk_size=1000, start_block=100)

        assert result.block_range == BlockRange(100, 1099)
        assert result.staged_events == 1
        assert await cursor.get() == 1099
        assert {(f, t) for _, f, t in chain.calls} == {(100, 1099)}

    async def test_next_chunk_continues_from_cursor_and_clamps_to_head(self, event_log, cursor):
        chain = FakeChainClient(head=1500)
        await cursor.advance(999)

        result = await _fetch(chain, event_log, cursor)

        assert result.block_range == BlockRange(1000, 1500)
        assert await cursor.get() == 1500

    async def test_caught_up_is_a_no_op(self, event_log, cursor):
        chain = FakeChainClient(head=1500)
        await cursor.advance(1500)

        result = await _fetch(chain, event_log, cursor)

        assert not result.advanced
        assert chain.calls == []
        assert await cursor.get() == 1500

    async def test_head_below_start_block(self, event_log, cursor):
        result = await _fetch(FakeChainClient(head=50), event_log, cursor, start_block=100)
        assert not result.advanced
        assert await cursor.get() is None

    async def test_chain_error_leaves_cursor(self, event_log, cursor):
        chain = FakeChainClient(head=5000)
        chain.fail_with = TransientChainError("timeout")
        await cursor.advance(10)

        with pytest.raises(TransientChainError):
            await _fetch(chain, event_log, cursor)

        assert await cursor.get() == 10

    async def test_refetching_a_range_is_safe(self, engine, event_log):
        chain = FakeChainClient([staked(ALICE, 1, 100, block=5), unstaked(ALICE, 1, 100, block=7)], head=10)
        for _ in range(2):
            await stage_staking_events_for_block_range(
                chain_client=chain,
                event_log=event_log,
                event_types=TRACKED_EVENT_TYPES,
                block_range=BlockRange(0, 10),
            )
        assert len(await fetch_rows(engine, StakingEventsDB)) == 2

    async def test_chain_error_mid_range_stages_nothing(self, engine, event_log, cursor):
        chain = _FlakyChainClient([staked(ALICE, 1, 100, block=5)], head=10, fail_on_fetch=2)

        with pytest.raises(TransientChainError):
            await _fetch(chain, event_log, cursor)

        assert await fetch_rows(engine, StakingEventsDB) == []
        assert await cursor.get() is None

    async def test_invalid_range(self, event_log):
        with pytest.raises(ValueError):
            await stage_staking_events_for_block_range(
                chain_client=FakeChainClient(head=10),
                event_log=event_log,
                event_types=TRACKED_EVENT_TYPES,
                block_range=BlockRange(5, 4),
            )


# -----------------------------------------------------------------------------
# Apply
# -----------------------------------------------------------------------------

class FailingProjection:
    """Delegates to a real projection but fails on one block."""

    def __init__(self, inner, fail_block):
        self.inner = inner
        self.fail_block = fail_block

    async def apply(self, event):
        if event.block_number == self.fail_block:
            raise RuntimeError("database went away")
        return await self.inner.apply(event)


async def _processed_rows(engine):
    table = StakingEventsDB.__table__
    async with engine.connect() as conn:
        rows = await conn.execute(
            select(table.c.block_number, table.c.processed, table.c.processing_note).order_by(
                table.c.block_number, table.c.log_index
            )
        )
        return [tuple(r) for r in rows]


class TestApply:
    async def test_apply_marks_processed_and_notifies(self, engine, event_log, projection, notifier):
        await event_log.append_many([staked(ALICE, 1, 100, block=10), unstaked(ALICE, 1, 100, 50, block=20)])

        result = await apply_staged_staking_events(
            event_log=event_log, projection=projection, notifier=notifier, batch_size=10
        )

        assert (result.fetched, result.applied, result.skipped) == (2, 2, 0)
        assert [n.type for n in notifier.sent] == ["new_stake", "stake_unstaked"]
        assert await event_log.list_unprocessed(limit=10) == []
        assert len(await fetch_rows(engine, TransactionsDB)) == 3

    async def test_empty_backlog(self, event_log, projection):
        result = await apply_staged_staking_events(event_log=event_log, projection=projection)
        assert result.processed == 0

    async def test_orphan_unstake_is_acknowledged_with_note(self, engine, event_log, projection, notifier):
        await event_log.append_many([unstaked(ALICE, 1, 100, block=20), staked(BOB, 1, 5, block=21)])

        result = await apply_staged_staking_events(
            event_log=event_log, projection=projection, notifier=notifier
        )

        assert (result.applied, result.skipped) == (1, 1)
        rows = await _processed_rows(engine)
        assert rows[0][1] is True and rows[0][2].startswith("no active stake")
        assert rows[1] == (21, True, None)
        assert [n.type for n in notifier.sent] == ["new_stake"]

    async def test_malformed_event_is_skipped(self, engine, event_log, projection):
        await event_log.append_many([make_event("Bogus", block=5), staked(ALICE, 1, 100, block=6)])

        result = await apply_staged_staking_events(event_log=event_log, projection=projection)

        assert (result.applied, result.skipped) == (1, 1)
        rows = await _processed_rows(engine)
        assert rows[0][1] is True and rows[0][2].startswith("malformed:")
        assert len(await fetch_rows(engine, StakesDB)) == 1

    async def test_failure_stops_batch_in_order(self, engine, event_log, projection):
        await event_log.append_many(
            [staked(ALICE, 1, 1, block=1), staked(ALICE, 1, 2, block=2), staked(ALICE, 1, 3, block=3)]
        )

        with pytest.raises(RuntimeError):
            await apply_staged_staking_events(
                event_log=event_log, projection=FailingProjection(projection, fail_block=2)
            )

        assert [(b, p) for b, p, _ in await _processed_rows(engine)] == [(1, True), (2, False), (3, False)]

        # Next tick resumes at the failed event
        result = await apply_staged_staking_events(event_log=event_log, projection=projection)
        assert result.applied == 2
        assert len(await fetch_rows(engine, StakesDB)) == 3

    async def test_notifier_failure_does_not_affect_state(self, event_log, projection):
        await event_log.append_many([staked(ALICE, 1, 100, block=10)])

        result = await apply_staged_staking_events(
            event_log=event_log, projection=projection, notifier=RecordingNotifier(fail=True)
        )

        assert result.applied == 1
        assert await event_log.list_unprocessed(limit=10) == []

    async def test_crash_between_apply_and_mark_is_recovered(self, engine, event_log, projection):
        await event_log.append_many([staked(ALICE, 1, 100, block=10), unstaked(ALICE, 1, 100, 50, block=20)])
        first, second = await event_log.list_unprocessed(limit=10)

        # Both applied, only the first acknowledged
        await projection.apply(first)
        await event_log.mark_processed(first.id)
        await projection.apply(second)

        await apply_staged_staking_events(event_log=event_log, projection=projection)

        assert len(await fetch_rows(engine, TransactionsDB)) == 3
        (stats,) = await fetch_rows(engine, UserStatsDB)
        assert (stats["total_staked"], stats["total_rewards"]) == (0, 50)

    async def test_drain_runs_until_backlog_empty(self, event_log, projection):
        await event_log.append_many([staked(ALICE, 1, i + 1, block=i + 1) for i in range(7)])

        result = await drain_staged_staking_events(event_log=event_log, projection=projection, batch_size=3)

        assert result.applied == 7
        assert await event_log.list_unprocessed(limit=10) == []

    async def test_cursor_bounds_what_is_applied(self, event_log, projection, cursor):
        await event_log.append_many([staked(ALICE, 1, 100, block=10), staked(BOB, 1, 5, block=30)])

        result = await apply_staged_staking_events(event_log=event_log, projection=projection, cursor=cursor)
        assert result.fetched == 0

        await cursor.advance(20)
        result = await apply_staged_staking_events(event_log=event_log, projection=projection, cursor=cursor)
        assert (result.fetched, result.applied) == (1, 1)

        (waiting,) = await event_log.list_unprocessed(limit=10)
        assert waiting.block_number == 30

    async def test_drain_stops_between_batches(self, event_log, projection):
        await event_log.append_many([staked(ALICE, 1, i + 1, block=i + 1) for i in range(7)])
        stop = asyncio.Event()
        stop.set()

        result = await drain_staged_staking_events(event_log=event_log, projection=projection, batch_size=3, stop=stop)

        assert result.fetched == 0
        assert len(await event_log.list_unprocessed(limit=10)) == 7

    async def test_batch_size_must_be_positive(self, event_log, projection):
        with pytest.raises(ValueError):
            await apply_staged_staking_events(event_log=event_log, projection=projection, batch_size=0)


# -----------------------------------------------------------------------------
# End to end
# -----------------------------------------------------------------------------

async def test_stake_and_unstake_in_different_chunks(engine, event_log, cursor, projection):
    chain = FakeChainClient([staked(ALICE, 1, 100, block=5), unstaked(ALICE, 1, 100, 50, block=1500)], head=2000)

    await _fetch(chain, event_log, cursor)
    await drain_staged_staking_events(event_log=event_log, projection=projection)
    await _fetch(chain, event_log, cursor)
    await drain_staged_staking_events(event_log=event_log, projection=projection)

    (stake,) = await fetch_rows(engine, StakesDB)
    assert not stake["active"]
    (stats,) = await fetch_rows(engine, UserStatsDB)
    assert (stats["total_staked"], stats["total_rewards"]) == (0, 50)


async def test_apply_tick_during_fetch_tick_keeps_chain_order(engine, event_log, cursor, projection):
    # An unmatched Unstaked precedes the Staked it must not close.
    chain = _PausingChainClient(
        [unstaked(ALICE, 1, 1000, block=140), staked(ALICE, 1, 1000, block=150)],
        head=2000,
        pause_on=StakingEventType.UNSTAKED,
    )
    await cursor.advance(99)

    fetching = asyncio.create_task(_fetch(chain, event_log, cursor))
    await chain.paused.wait()

    during = await apply_staged_staking_events(event_log=event_log, projection=projection, cursor=cursor)
    assert during.fetched == 0

    chain.resume.set()
    await fetching
    await drain_staged_staking_events(event_log=event_log, projection=projection, cursor=cursor)

    (stats,) = await fetch_rows(engine, UserStatsDB)
    assert stats["total_staked"] == 1000
    (stake,) = await fetch_rows(engine, StakesDB)
    assert stake["active"]


async def test_pool_totals_are_conserved(engine, event_log, cursor, projection):
    chain = FakeChainClient(
        [
            pool_created(1, block=1),
            staked(ALICE, 1, 100, block=2),
            staked(BOB, 1, 250, block=3),
            staked(CAROL, 1, 40, block=4),
            staked(ALICE, 1, 60, block=5),
            unstaked(BOB, 1, 250, 10, block=6),
            unstaked(ALICE, 1, 60, 0, block=7),
            staked(BOB, 1, 5, block=8),
        ],
        head=100,
    )
    await _fetch(chain, event_log, cursor, chunk_size=3)
    while (await _fetch(chain, event_log, cursor, chunk_size=3)).advanced:
        pass
    await drain_staged_staking_events(event_log=event_log, projection=projection, batch_size=2)

    transactions = await fetch_rows(engine, TransactionsDB)
    staked_in = sum(t["amount"] for t in transactions if t["type"] == "stake")
    unstaked_out = sum(t["amount"] for t in transactions if t["type"] == "unstake")
    active = [s for s in await fetch_rows(engine, StakesDB) if s["active"]]
    (pool,) = await fetch_rows(engine, PoolStatsDB)

    assert pool["total_staked"] == staked_in - unstaked_out == sum(s["amount"] for s in active) == 145
    assert pool["active_stakers"] == 3
    assert pool["total_rewards_distributed"] == 10


# -----------------------------------------------------------------------------
# Bootstrap / status
# -----------------------------------------------------------------------------

async def test_backfill_walks_to_head(event_log, cursor):
    chain = FakeChainClient([staked(ALICE, 1, 1, block=150), staked(ALICE, 1, 2, block=11000)], head=12000)

    result = await backfill_staking_events(
        chain_client=chain,
        event_log=event_log,
        cursor=cursor,
        event_types=TRACKED_EVENT_TYPES,
        chunk_size=5000,
        start_block=100,
    )

    assert (result.chunks, result.staged_events, result.last_block) == (3, 2, 12000)
    assert await cursor.get() == 12000


async def test_bootstrap_first_run_then_restart(event_log, cursor, projection, notifier):
    chain = FakeChainClient([staked(ALICE, 1, 100, block=10)], head=500)
    kwargs = dict(
        chain_client=chain,
        event_log=event_log,
        cursor=cursor,
        projection=projection,
        notifier=notifier,
        event_types=TRACKED_EVENT_TYPES,
        start_block=0,
        backfill_chunk_size=200,
        apply_batch_size=50,
    )

    first = await bootstrap_staking_indexer(**kwargs)
    assert first.first_run
    assert first.backfill.last_block == 500
    assert first.apply.applied == 1

    chain.calls.clear()
    second = await bootstrap_staking_indexer(**kwargs)
    assert not second.first_run
    assert second.backfill is None
    assert chain.calls == []


def _bootstrap_kwargs(chain, event_log, cursor, projection, **overrides):
    kwargs = dict(
        chain_client=chain,
        event_log=event_log,
        cursor=cursor,
        projection=projection,
        notifier=None,
        event_types=TRACKED_EVENT_TYPES,
        start_block=0,
        backfill_chunk_size=1000,
        apply_batch_size=50,
        max_incremental_lag=1000,
    )
    kwargs.update(overrides)
    return kwargs


async def test_bootstrap_resumes_interrupted_backfill(event_log, cursor, projection):
    events = [staked(ALICE, 1, 100, block=500), staked(BOB, 1, 5, block=99_000)]
    # Four fetch_events calls per chunk; the 9th is the first call of chunk 3.
    chain = _FlakyChainClient(events, head=100_000, fail_on_fetch=9)

    with pytest.raises(TransientChainError):
        await bootstrap_staking_indexer(**_bootstrap_kwargs(chain, event_log, cursor, projection))
    assert await cursor.get() == 1999

    restarted = await bootstrap_staking_indexer(**_bootstrap_kwargs(chain, event_log, cursor, projection))

    assert not restarted.first_run
    assert restarted.backfill is not None
    assert restarted.backfill.last_block == 100_000
    assert await cursor.get() == 100_000
    assert restarted.apply.applied == 2


async def test_bootstrap_skips_backfill_within_incremental_lag(event_log, cursor, projection):
    chain = FakeChainClient(head=10_500)
    await cursor.advance(10_000)

    result = await bootstrap_staking_indexer(**_bootstrap_kwargs(chain, event_log, cursor, projection))

    assert result.backfill is None
    assert chain.calls == []
    assert await cursor.get() == 10_000


async def test_bootstrap_stops_between_backfill_chunks(event_log, cursor, projection):
    stop = asyncio.Event()

    class _StopAfterFirstChunk(FakeChainClient):
        async def fetch_events(self, *, event_type, from_block, to_block):
            if event_type is TRACKED_EVENT_TYPES[-1]:
                stop.set()
            return await super().fetch_events(event_type=event_type, from_block=from_block, to_block=to_block)

    chain = _StopAfterFirstChunk([staked(ALICE, 1, 100, block=10)], head=100_000)

    result = await bootstrap_staking_indexer(
        **_bootstrap_kwargs(chain, event_log, cursor, projection, stop=stop)
    )

    assert result.backfill.chunks == 1
    assert await cursor.get() == 999
    assert result.apply.fetched == 0


async def test_bootstrap_without_backfill(event_log, cursor, projection):
    chain = FakeChainClient([staked(ALICE, 1, 100, block=10)], head=500)

    result = await bootstrap_staking_indexer(
        chain_client=chain,
        event_log=event_log,
        cursor=cursor,
        projection=projection,
        notifier=None,
        event_types=TRACKED_EVENT_TYPES,
        start_block=0,
        backfill_chunk_size=200,
        apply_batch_size=50,
        backfill_on_start=False,
    )

    assert result.backfill is None
    assert await cursor.get() is None


async def test_indexer_status(event_log, cursor, projection):
    await event_log.append_many([staked(ALICE, 1, 1, block=10), staked(ALICE, 1, 2, block=20)])
    await cursor.advance(25)
    await apply_staged_staking_events(event_log=event_log, projection=projection, batch_size=1)

    status = await get_indexer_status(event_log=event_log, cursor=cursor, is_running=True)

    assert status.to_dict() == {
        "isRunning": True,
        "lastProcessedBlock": 10,
        "lastFetchedBlock": 25,
        "unprocessedCount": 1,
        "totalEvents": 2,
    }
