from __future__ import annotations

from datetime import datetime

from sqlalchemy import BigInteger, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from staking_indexer.app.infrastructure.db.db_base import BaseDB


class IndexerCursorsDB(BaseDB):
    """
    Fetch watermarks.

    One row = highest block number whose events are durably staged in
    staging.staking_events for the named stream. Only moves forward.
    """

    __tablename__ = "indexer_cursors"
    __table_args__ = ({"schema": "staging"},)

    name: Mapped[str] = mapped_column(String(64), primary_key=True)
    block_number: Mapped[int] = mapped_column(BigInteger, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
