from __future__ import annotations

from staking_indexer.app.application.services.indexer_status import get_indexer_status
from staking_indexer.app.domain.models import IndexerStatus
from staking_indexer.app.infrastructure.db.engine import create_app_async_engine
from staking_indexer.app.infrastructure.factories.staging.staking_event_log_factory import (
    indexer_cursor_factory,
    staking_event_log_factory,
)


async def indexer_status_task(*, backend: str = "sqlalchemy") -> IndexerStatus:
    """
    Task: read the indexer's staleness snapshot from staging.*.

    Reads the database only; no RPC connection is made. is_running is always
    False here since this process does not own the loops.
    """
    engine = create_app_async_engine()
    try:
        return await get_indexer_status(
            event_log=staking_event_log_factory(backend=backend, engine=engine),
            cursor=indexer_cursor_factory(backend=backend, engine=engine),
            is_running=False,
        )
    finally:
        await engine.dispose()
