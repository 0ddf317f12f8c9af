from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import (
    BigInteger,
    Boolean,
    DateTime,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from staking_indexer.app.infrastructure.db.db_base import BaseDB
from staking_indexer.app.infrastructure.db.types import JsonPayload, SurrogateId


class StakingEventsDB(BaseDB):
    """
    Durable staging log of raw staking-contract events.

    Each row is one contract log, uniquely identified by (tx_hash, log_index).
    Rows are written by the fetch loop (idempotent upsert) and only ever
    mutated by the apply loop, which flips `processed` once the event has been
    projected into the domain tables. Rows are never deleted.

    The decoded event arguments are kept as JSON; uint256 values are stored
    as decimal strings inside the payload so no precision is lost.
    """

    __tablename__ = "staking_events"
    __table_args__ = (
        # Natural identity of a log
        UniqueConstraint("tx_hash", "log_index", name="uq_staking_events_tx_hash_log_index"),

        # Apply loop scan: unprocessed events in chain order
        Index(
            "ix_staking_events_processed_block_log",
            "processed",
            "block_number",
            "log_index",
        ),

        Index("ix_staking_events_event_name_block", "event_name", "block_number"),

        {"schema": "staging"},
    )

    """Surrogate key, referenced by mark_processed()."""
    id: Mapped[int] = mapped_column(SurrogateId, primary_key=True, autoincrement=True)

    # -------------------------------------------------------------------------
    # Event identity / chain position
    # -------------------------------------------------------------------------

    """Event name as declared in the ABI (Staked, Unstaked, ...)."""
    event_name: Mapped[str] = mapped_column(String(64), nullable=False)

    """Address of the contract that emitted the log (lowercase 0x-hex)."""
    contract_address: Mapped[str] = mapped_column(String(42), nullable=False)

    """Hash of the transaction that emitted the log (lowercase 0x-hex)."""
    tx_hash: Mapped[str] = mapped_column(String(66), nullable=False)

    """Number of the block in which the log was emitted."""
    block_number: Mapped[int] = mapped_column(BigInteger, nullable=False)

    """Hash of the block the log was observed in."""
    block_hash: Mapped[str] = mapped_column(String(66), nullable=False)

    """Index of the log within the block (0-based, deterministic ordering)."""
    log_index: Mapped[int] = mapped_column(Integer, nullable=False)

    # -------------------------------------------------------------------------
    # Payload / processing state
    # -------------------------------------------------------------------------

    """Decoded event arguments (JSON-safe)."""
    payload: Mapped[dict[str, Any]] = mapped_column(JsonPayload, nullable=False)

    processed: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=text("false"),
    )

    """Set when the event was acknowledged without being applied (data anomaly)."""
    processing_note: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
    processed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
