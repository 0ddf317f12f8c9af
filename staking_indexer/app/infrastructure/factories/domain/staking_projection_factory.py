from __future__ import annotations

from typing import Callable, Dict

from sqlalchemy.ext.asyncio import AsyncEngine

from staking_indexer.app.config import settings
from staking_indexer.app.domain.ports.out import StakingProjection, StakingReadModel
from staking_indexer.app.infrastructure.adapters.domain.staking_projection import (
    SqlAlchemyStakingProjection,
)
from staking_indexer.app.infrastructure.adapters.domain.staking_read_model import (
    SqlAlchemyStakingReadModel,
)


StakingProjectionFactory = Callable[[AsyncEngine], StakingProjection]
StakingReadModelFactory = Callable[[AsyncEngine], StakingReadModel]

_STAKING_PROJECTION_REGISTRY: Dict[str, StakingProjectionFactory] = {
    "sqlalchemy": lambda engine: SqlAlchemyStakingProjection(engine=engine),
}

_STAKING_READ_MODEL_REGISTRY: Dict[str, StakingReadModelFactory] = {
    "sqlalchemy": lambda engine: SqlAlchemyStakingReadModel(
        engine=engine,
        token_decimals=settings.token_decimals,
    ),
}


def staking_projection_factory(
    *,
    backend: str,
    engine: AsyncEngine,
) -> StakingProjection:
    """
    Create the projection that applies staged events to domain.* tables.
    """
    try:
        factory = _STAKING_PROJECTION_REGISTRY[backend]
    except KeyError:
        raise ValueError(f"Unsupported staking projection backend: {backend!r}")
    return factory(engine)


def staking_read_model_factory(
    *,
    backend: str,
    engine: AsyncEngine,
) -> StakingReadModel:
    try:
        factory = _STAKING_READ_MODEL_REGISTRY[backend]
    except KeyError:
        raise ValueError(f"Unsupported staking read model backend: {backend!r}")
    return factory(engine)
