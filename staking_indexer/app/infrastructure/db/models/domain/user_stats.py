from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from staking_indexer.app.infrastructure.db.db_base import BaseDB
from staking_indexer.app.infrastructure.db.types import Uint256


class UserStatsDB(BaseDB):
    """
    Per-wallet aggregates, recomputed from domain.stakes / domain.transactions.

    This is a read cache for the API; the source rows are authoritative.
    """

    __tablename__ = "user_stats"
    __table_args__ = ({"schema": "domain"},)

    wallet_address: Mapped[str] = mapped_column(String(42), primary_key=True)
    total_staked: Mapped[int] = mapped_column(Uint256, nullable=False, default=0)
    active_stakes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_stakes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_rewards: Mapped[int] = mapped_column(Uint256, nullable=False, default=0)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
