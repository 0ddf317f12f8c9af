from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from staking_indexer.app.infrastructure.db.engine import create_app_async_engine
from staking_indexer.app.infrastructure.factories.indexer_components import (
    IndexerComponents,
    build_indexer_components,
)


@asynccontextmanager
async def indexer_runtime(*, backend: str = "sqlalchemy") -> AsyncIterator[IndexerComponents]:
    """Engine + wired ports for one task run; disposes the pool on exit."""
    engine = create_app_async_engine()
    components = build_indexer_components(engine=engine, backend=backend)
    try:
        yield components
    finally:
        close = getattr(components.notifier, "close", None)
        if close is not None:
            await close()
        await engine.dispose()
