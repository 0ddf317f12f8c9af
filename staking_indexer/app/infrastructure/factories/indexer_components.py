from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncEngine

from staking_indexer.app.domain.ports.out import (
    IndexerCursor,
    StakingChainClient,
    StakingEventLog,
    StakingNotifier,
    StakingProjection,
    StakingReadModel,
)
from staking_indexer.app.infrastructure.factories.chain_client_factory import (
    staking_chain_client_factory,
)
from staking_indexer.app.infrastructure.factories.domain.staking_projection_factory import (
    staking_projection_factory,
    staking_read_model_factory,
)
from staking_indexer.app.infrastructure.factories.notifier_factory import staking_notifier_factory
from staking_indexer.app.infrastructure.factories.staging.staking_event_log_factory import (
    indexer_cursor_factory,
    staking_event_log_factory,
)


@dataclass(frozen=True)
class IndexerComponents:
    chain_client: StakingChainClient
    event_log: StakingEventLog
    cursor: IndexerCursor
    projection: StakingProjection
    read_model: StakingReadModel
    notifier: StakingNotifier


def build_indexer_components(
    *,
    engine: AsyncEngine,
    backend: str = "sqlalchemy",
    chain_backend: str = "web3",
) -> IndexerComponents:
    """Wire every port the indexer tasks need around one shared engine."""
    return IndexerComponents(
        chain_client=staking_chain_client_factory(backend=chain_backend),
        event_log=staking_event_log_factory(backend=backend, engine=engine),
        cursor=indexer_cursor_factory(backend=backend, engine=engine),
        projection=staking_projection_factory(backend=backend, engine=engine),
        read_model=staking_read_model_factory(backend=backend, engine=engine),
        notifier=staking_notifier_factory(),
    )
