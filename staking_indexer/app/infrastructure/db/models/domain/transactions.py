from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    BigInteger,
    DateTime,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from staking_indexer.app.infrastructure.db.db_base import BaseDB
from staking_indexer.app.infrastructure.db.types import SurrogateId, Uint256


class TransactionsDB(BaseDB):
    """
    Append-only staking ledger.

    One row per (log, type): a Staked log yields a `stake` row, an Unstaked
    log yields an `unstake` row plus a `reward` row when reward > 0, and a
    RewardClaimed log yields a `reward` row.
    """

    __tablename__ = "transactions"
    __table_args__ = (
        UniqueConstraint(
            "tx_hash",
            "log_index",
            "type",
            name="uq_transactions_tx_hash_log_index_type",
        ),
        Index("ix_transactions_owner_block", "owner_address", "block_number"),
        Index("ix_transactions_block", "block_number"),
        {"schema": "domain"},
    )

    id: Mapped[int] = mapped_column(SurrogateId, primary_key=True, autoincrement=True)

    owner_address: Mapped[str] = mapped_column(String(42), nullable=False)
    tx_hash: Mapped[str] = mapped_column(String(66), nullable=False)
    log_index: Mapped[int] = mapped_column(Integer, nullable=False)

    """stake | unstake | reward"""
    type: Mapped[str] = mapped_column(String(16), nullable=False)

    amount: Mapped[int] = mapped_column(Uint256, nullable=False)
    pool_id: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    block_number: Mapped[int] = mapped_column(BigInteger, nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
