from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    BigInteger,
    Boolean,
    DateTime,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from staking_indexer.app.infrastructure.db.db_base import BaseDB
from staking_indexer.app.infrastructure.db.types import SurrogateId, Uint256


class StakesDB(BaseDB):
    """
    One row = one stake position opened by a Staked event.

    A stake is identified by (owner_address, pool_id, stake_key), where
    stake_key is the contract's stakeId when the event carries one and
    "<tx_hash>:<log_index>" of the Staked log otherwise.

    The matching Unstaked event flips `active` to false and records which log
    closed the position (unstake_tx_hash, unstake_log_index), which is what
    makes re-applying that Unstaked event a no-op.
    """

    __tablename__ = "stakes"
    __table_args__ = (
        UniqueConstraint(
            "owner_address",
            "pool_id",
            "stake_key",
            name="uq_stakes_owner_pool_stake_key",
        ),
        Index("ix_stakes_owner_active", "owner_address", "active"),
        Index("ix_stakes_pool_active", "pool_id", "active"),
        {"schema": "domain"},
    )

    id: Mapped[int] = mapped_column(SurrogateId, primary_key=True, autoincrement=True)

    # Identity
    owner_address: Mapped[str] = mapped_column(String(42), nullable=False)
    pool_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    stake_key: Mapped[str] = mapped_column(String(96), nullable=False)

    amount: Mapped[int] = mapped_column(Uint256, nullable=False)

    # Opening log
    tx_hash: Mapped[str] = mapped_column(String(66), nullable=False)
    log_index: Mapped[int] = mapped_column(Integer, nullable=False)
    block_number: Mapped[int] = mapped_column(BigInteger, nullable=False)
    staked_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    # Closing log
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    unstaked_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    unstake_tx_hash: Mapped[str | None] = mapped_column(String(66), nullable=True)
    unstake_log_index: Mapped[int | None] = mapped_column(Integer, nullable=True)
    reward: Mapped[int] = mapped_column(Uint256, nullable=False, default=0)
    early_unstake: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
