from __future__ import annotations

from typing import Any, Protocol, Sequence

from staking_indexer.app.domain.events import RawEvent, StakingEventType
from staking_indexer.app.domain.models import (
    ApplyOutcome,
    DashboardAnalytics,
    EventLogStats,
    Leaderboard,
    PoolStats,
    StakeView,
    StakingNotification,
    TransactionView,
    UserStats,
)


class StakingChainClient(Protocol):
    """
    Port for reading the staking contract's event log from a remote ledger.

    Implementations must:
    - return events ordered by (block_number, log_index) ascending,
    - return an empty list when from_block is above the current height,
    - raise TransientChainError for network failures and timeouts.
    """

    async def current_height(self) -> int:
        ...

    async def fetch_events(
        self,
        *,
        event_type: StakingEventType,
        from_block: int,
        to_block: int,
    ) -> list[RawEvent]:
        ...


class StakingEventDecoder(Protocol):
    @property
    def topic0(self) -> bytes:
        ...

    def decode(
        self,
        *,
        topics: Sequence[bytes],
        data: bytes,
    ) -> dict[str, Any] | None:
        """
        Decode an EVM log (topics + data) into a dict of typed fields.

        Return:
          - dict[str, Any] for decoded event fields
          - None if the log is not decodable / not the expected event
        """
        ...


class StakingEventLog(Protocol):
    """
    Port for the durable, append-only staging log of raw contract events.

    Rows are keyed by (tx_hash, log_index); appends are idempotent upserts.
    """

    async def append_many(self, events: Sequence[RawEvent]) -> int:
        ...

    async def list_unprocessed(
        self,
        *,
        limit: int,
        max_block: int | None = None,
    ) -> list[RawEvent]:
        """Oldest unprocessed events first; `max_block` caps block_number (inclusive)."""
        ...

    async def mark_processed(self, event_id: int, *, note: str | None = None) -> None:
        ...

    async def stats(self) -> EventLogStats:
        ...


class IndexerCursor(Protocol):
    """
    Port for the fetch watermark: the highest block whose events are staged.

    advance() must never move the stored value backwards.
    """

    async def get(self) -> int | None:
        ...

    async def advance(self, block_number: int) -> None:
        ...


class StakingProjection(Protocol):
    """
    Port for applying one staged event to the derived tables
    (users, stakes, transactions, user_stats, pool_stats).

    Implementations must be idempotent per event identity: applying the
    same event twice leaves the tables as after the first application.
    """

    async def apply(self, event: RawEvent) -> ApplyOutcome:
        ...


class StakingNotifier(Protocol):
    """Best-effort push channel for stake/unstake notifications."""

    async def notify(self, notification: StakingNotification) -> None:
        ...


class StakingReadModel(Protocol):
    """Read-only queries over the derived tables, for the API layer."""

    async def get_user_stats(self, wallet_address: str) -> UserStats | None:
        ...

    async def get_pool_stats(self, pool_id: int) -> PoolStats | None:
        ...

    async def list_pool_stats(self) -> list[PoolStats]:
        ...

    async def get_active_stakes(self, wallet_address: str) -> list[StakeView]:
        ...

    async def list_active_stakes(self, *, limit: int = 100, offset: int = 0) -> list[StakeView]:
        ...

    async def list_recent_transactions(
        self,
        *,
        limit: int = 50,
        owner_address: str | None = None,
    ) -> list[TransactionView]:
        ...

    async def get_leaderboard(self, *, limit: int = 50, offset: int = 0) -> Leaderboard:
        ...

    async def get_dashboard_analytics(self) -> DashboardAnalytics:
        ...
