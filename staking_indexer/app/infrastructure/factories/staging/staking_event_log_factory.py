from __future__ import annotations

from typing import Callable, Dict

from sqlalchemy.ext.asyncio import AsyncEngine

from staking_indexer.app.domain.ports.out import IndexerCursor, StakingEventLog
from staking_indexer.app.infrastructure.adapters.staging.indexer_cursor import (
    DEFAULT_CURSOR_NAME,
    SqlAlchemyIndexerCursor,
)
from staking_indexer.app.infrastructure.adapters.staging.staking_event_log import (
    SqlAlchemyStakingEventLog,
)


StakingEventLogFactory = Callable[[AsyncEngine], StakingEventLog]
IndexerCursorFactory = Callable[[AsyncEngine, str], IndexerCursor]

_STAKING_EVENT_LOG_REGISTRY: Dict[str, StakingEventLogFactory] = {
    "sqlalchemy": lambda engine: SqlAlchemyStakingEventLog(engine=engine),
}

_INDEXER_CURSOR_REGISTRY: Dict[str, IndexerCursorFactory] = {
    "sqlalchemy": lambda engine, name: SqlAlchemyIndexerCursor(engine=engine, name=name),
}


def staking_event_log_factory(
    *,
    backend: str,
    engine: AsyncEngine,
) -> StakingEventLog:
    try:
        factory = _STAKING_EVENT_LOG_REGISTRY[backend]
    except KeyError:
        raise ValueError(f"Unsupported staking event log backend: {backend!r}")
    return factory(engine)


def indexer_cursor_factory(
    *,
    backend: str,
    engine: AsyncEngine,
    name: str = DEFAULT_CURSOR_NAME,
) -> IndexerCursor:
    try:
        factory = _INDEXER_CURSOR_REGISTRY[backend]
    except KeyError:
        raise ValueError(f"Unsupported indexer cursor backend: {backend!r}")
    return factory(engine, name)
