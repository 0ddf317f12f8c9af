from __future__ import annotations

from datetime import datetime

from sqlalchemy import BigInteger, DateTime, Integer
from sqlalchemy.orm import Mapped, mapped_column

from staking_indexer.app.infrastructure.db.db_base import BaseDB
from staking_indexer.app.infrastructure.db.types import Uint256


class PoolStatsDB(BaseDB):
    """
    Pool registry + per-pool aggregates.

    Pool parameters come from PoolCreated; totals are recomputed from
    domain.stakes / domain.transactions whenever a stake in the pool changes.
    A row may exist before its PoolCreated event is applied (params are NULL
    until then).
    """

    __tablename__ = "pool_stats"
    __table_args__ = ({"schema": "domain"},)

    pool_id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False)

    # Pool config (PoolCreated)
    min_amount: Mapped[int | None] = mapped_column(Uint256, nullable=True)
    max_amount: Mapped[int | None] = mapped_column(Uint256, nullable=True)
    apy: Mapped[int | None] = mapped_column(Uint256, nullable=True)
    lock_period: Mapped[int | None] = mapped_column(Uint256, nullable=True)
    created_block: Mapped[int | None] = mapped_column(BigInteger, nullable=True)

    # Aggregates
    total_staked: Mapped[int] = mapped_column(Uint256, nullable=False, default=0)
    active_stakes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    active_stakers: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_rewards_distributed: Mapped[int] = mapped_column(Uint256, nullable=False, default=0)

    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
