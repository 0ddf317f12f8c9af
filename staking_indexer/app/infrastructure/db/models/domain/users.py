from __future__ import annotations

from datetime import datetime

from sqlalchemy import BigInteger, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from staking_indexer.app.infrastructure.db.db_base import BaseDB


class UsersDB(BaseDB):
    """
    Wallets seen by the indexer.

    Created on first Staked / RewardClaimed event for an address.
    """

    __tablename__ = "users"
    __table_args__ = ({"schema": "domain"},)

    wallet_address: Mapped[str] = mapped_column(String(42), primary_key=True)
    first_seen_block: Mapped[int] = mapped_column(BigInteger, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
