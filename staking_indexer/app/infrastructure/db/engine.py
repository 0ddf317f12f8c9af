from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from staking_indexer.app.config import Settings, settings


def create_app_async_engine(*, config: Settings = settings) -> AsyncEngine:
    """
    Factory for AsyncEngine used by the indexer loops and CLI tasks.

    One engine (and therefore one connection pool) is shared by the fetch
    loop, the apply loop and any read-only consumers in the same process.
    The fetch and apply loops each hold at most one connection at a time,
    so DB_POOL_SIZE only needs headroom for manual syncs and readers.
    """
    return create_async_engine(
        config.database_url,  # postgresql+asyncpg://...
        echo=config.db_echo,
        pool_pre_ping=True,
        pool_size=config.db_pool_size,
        max_overflow=config.db_max_overflow,
        pool_recycle=config.db_pool_recycle_seconds,
    )
