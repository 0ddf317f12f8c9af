from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncEngine

from staking_indexer.app.infrastructure.db.models.staging.indexer_cursors import IndexerCursorsDB
from staking_indexer.app.infrastructure.db.upsert import dialect_insert


logger = logging.getLogger(__name__)

DEFAULT_CURSOR_NAME = "staking"

_cursors = IndexerCursorsDB.__table__


class SqlAlchemyIndexerCursor:
    """
    PostgreSQL/SQLAlchemy implementation of IndexerCursor.

    The watermark is a single row in staging.indexer_cursors. advance() is an
    upsert guarded by `stored < new`, so a stale or repeated call can never
    move it backwards.
    """

    def __init__(self, *, engine: AsyncEngine, name: str = DEFAULT_CURSOR_NAME) -> None:
        self._engine = engine
        self._name = name

    async def get(self) -> int | None:
        sql = select(_cursors.c.block_number).where(_cursors.c.name == self._name)
        async with self._engine.connect() as conn:
            value = (await conn.execute(sql)).scalar_one_or_none()
        return int(value) if value is not None else None

    async def advance(self, block_number: int) -> None:
        if block_number < 0:
            raise ValueError("Block numbers must be non-negative")

        async with self._engine.begin() as conn:
            stmt = dialect_insert(conn, _cursors).values(
                name=self._name,
                block_number=block_number,
                updated_at=datetime.now(timezone.utc),
            )
            stmt = stmt.on_conflict_do_update(
                index_elements=[_cursors.c.name],
                set_={
                    "block_number": stmt.excluded.block_number,
                    "updated_at": stmt.excluded.updated_at,
                },
                where=_cursors.c.block_number < stmt.excluded.block_number,
            )
            await conn.execute(stmt)

        logger.debug("Cursor %r advanced to block %s", self._name, block_number)
