from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Final, Sequence

from sqlalchemy import case, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncEngine

from staking_indexer.app.domain.events import RawEvent
from staking_indexer.app.domain.models import EventLogStats
from staking_indexer.app.infrastructure.db.models.staging.staking_events import StakingEventsDB
from staking_indexer.app.infrastructure.db.upsert import dialect_insert


logger = logging.getLogger(__name__)

_DEFAULT_INSERT_BATCH_SIZE: Final[int] = 500

_events = StakingEventsDB.__table__


class SqlAlchemyStakingEventLog:
    """
    PostgreSQL/SQLAlchemy implementation of StakingEventLog.

    Appends are INSERT ... ON CONFLICT (tx_hash, log_index) DO UPDATE, where
    the update only fires when the stored row differs from the observed one.
    Re-fetching an unchanged range therefore touches nothing, while a changed
    observation (e.g. different block_hash) rewrites the row and puts it back
    into the unprocessed queue.
    """

    def __init__(
        self,
        *,
        engine: AsyncEngine,
        insert_batch_size: int = _DEFAULT_INSERT_BATCH_SIZE,
    ) -> None:
        if insert_batch_size <= 0:
            raise ValueError("insert_batch_size must be positive")
        self._engine = engine
        self._insert_batch_size = insert_batch_size

    async def append_many(self, events: Sequence[RawEvent]) -> int:
        if not events:
            return 0

        rows = [self._to_row(e) for e in events]

        async with self._engine.begin() as conn:
            stmt = dialect_insert(conn, _events)
            excluded = stmt.excluded
            stmt = stmt.on_conflict_do_update(
                index_elements=[_events.c.tx_hash, _events.c.log_index],
                set_={
                    "event_name": excluded.event_name,
                    "contract_address": excluded.contract_address,
                    "block_number": excluded.block_number,
                    "block_hash": excluded.block_hash,
                    "payload": excluded.payload,
                    "processed": False,
                    "processing_note": None,
                    "processed_at": None,
                },
                where=or_(
                    _events.c.event_name.is_distinct_from(excluded.event_name),
                    _events.c.contract_address.is_distinct_from(excluded.contract_address),
                    _events.c.block_number.is_distinct_from(excluded.block_number),
                    _events.c.block_hash.is_distinct_from(excluded.block_hash),
                    _events.c.payload.is_distinct_from(excluded.payload),
                ),
            )

            for start in range(0, len(rows), self._insert_batch_size):
                batch = rows[start:start + self._insert_batch_size]
                await conn.execute(stmt, batch)

        logger.debug("Staged %s events", len(rows))
        return len(rows)

    async def list_unprocessed(
        self,
        *,
        limit: int,
        max_block: int | None = None,
    ) -> list[RawEvent]:
        if limit <= 0:
            raise ValueError("limit must be positive")

        sql = select(_events).where(_events.c.processed.is_(False))
        if max_block is not None:
            sql = sql.where(_events.c.block_number <= max_block)
        sql = sql.order_by(_events.c.block_number, _events.c.log_index).limit(limit)

        async with self._engine.connect() as conn:
            result = await conn.execute(sql)
            return [self._from_row(r) for r in result.mappings().all()]

    async def mark_processed(self, event_id: int, *, note: str | None = None) -> None:
        sql = (
            update(_events)
            .where(_events.c.id == event_id)
            .values(
                processed=True,
                processing_note=note,
                processed_at=datetime.now(timezone.utc),
            )
        )
        async with self._engine.begin() as conn:
            await conn.execute(sql)

    async def stats(self) -> EventLogStats:
        sql = select(
            func.max(case((_events.c.processed.is_(True), _events.c.block_number))).label("last_processed_block"),
            func.sum(case((_events.c.processed.is_(False), 1), else_=0)).label("unprocessed_count"),
            func.count().label("total_count"),
        )
        async with self._engine.connect() as conn:
            row = (await conn.execute(sql)).one()

        return EventLogStats(
            last_processed_block=int(row.last_processed_block or 0),
            unprocessed_count=int(row.unprocessed_count or 0),
            total_count=int(row.total_count or 0),
        )

    @staticmethod
    def _to_row(event: RawEvent) -> dict[str, Any]:
        return {
            "event_name": event.event_name,
            "contract_address": event.contract_address.lower(),
            "tx_hash": event.tx_hash.lower(),
            "block_number": event.block_number,
            "block_hash": event.block_hash.lower(),
            "log_index": event.log_index,
            "payload": dict(event.payload),
            "processed": False,
        }

    @staticmethod
    def _from_row(row: Any) -> RawEvent:
        return RawEvent(
            id=row["id"],
            event_name=row["event_name"],
            contract_address=row["contract_address"],
            tx_hash=row["tx_hash"],
            block_number=row["block_number"],
            block_hash=row["block_hash"],
            log_index=row["log_index"],
            payload=row["payload"],
            processed=bool(row["processed"]),
        )
