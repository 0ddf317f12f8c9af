"""Pytest configuration and shared fixtures for all tests."""

import os

# Minimal environment so that `settings = Settings()` loads at import time
os.environ.setdefault("POSTGRES_USER", "test")
os.environ.setdefault("POSTGRES_PASSWORD", "test")
os.environ.setdefault("POSTGRES_SERVER", "localhost")
os.environ.setdefault("POSTGRES_PORT", "5432")
os.environ.setdefault("POSTGRES_DB", "staking_test")
os.environ.setdefault("RPC_URL", "http://localhost:8545")
os.environ.setdefault("STAKING_CONTRACT_ADDRESS", "0x" + "cc" * 20)

from datetime import datetime, timezone

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from staking_indexer.app.infrastructure.adapters.domain.staking_projection import (
    SqlAlchemyStakingProjection,
)
from staking_indexer.app.infrastructure.adapters.domain.staking_read_model import (
    SqlAlchemyStakingReadModel,
)
from staking_indexer.app.infrastructure.adapters.staging.indexer_cursor import SqlAlchemyIndexerCursor
from staking_indexer.app.infrastructure.adapters.staging.staking_event_log import (
    SqlAlchemyStakingEventLog,
)
from staking_indexer.app.infrastructure.db import models  # noqa: F401
from staking_indexer.app.infrastructure.db.db_base import BaseDB

from tests.helpers import FakeChainClient, RecordingNotifier


FIXED_NOW = datetime(2026, 1, 1, tzinfo=timezone.utc)


@pytest_asyncio.fixture
async def engine():
    """In-memory SQLite with the staging/domain schemas flattened away."""
    eng = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        execution_options={"schema_translate_map": {"staging": None, "domain": None}},
    )
    async with eng.begin() as conn:
        await conn.run_sync(BaseDB.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
def event_log(engine):
    return SqlAlchemyStakingEventLog(engine=engine)


@pytest.fixture
def cursor(engine):
    return SqlAlchemyIndexerCursor(engine=engine)


@pytest.fixture
def projection(engine):
    return SqlAlchemyStakingProjection(engine=engine, clock=lambda: FIXED_NOW)


@pytest.fixture
def read_model(engine):
    return SqlAlchemyStakingReadModel(engine=engine)


@pytest.fixture
def chain_client():
    return FakeChainClient()


@pytest.fixture
def notifier():
    return RecordingNotifier()
