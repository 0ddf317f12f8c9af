from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any


class TransactionType(str, Enum):
    STAKE = "stake"
    UNSTAKE = "unstake"
    REWARD = "reward"


TX_STATUS_CONFIRMED = "confirmed"


@dataclass(frozen=True)
class StakingNotification:
    """Payload pushed to the notifier after a Staked/Unstaked event is applied."""

    type: str
    user_address: str
    pool_id: int
    amount: int
    tx_hash: str
    block_number: int
    reward: int | None = None
    early_unstake: bool | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "type": self.type,
            "userAddress": self.user_address,
            "poolId": self.pool_id,
            "amount": str(self.amount),
            "txHash": self.tx_hash,
            "blockNumber": self.block_number,
        }
        if self.reward is not None:
            data["reward"] = str(self.reward)
        if self.early_unstake is not None:
            data["earlyUnstake"] = self.early_unstake
        return data


@dataclass(frozen=True)
class ApplyOutcome:
    """
    Result of applying one staged event to the derived tables.

    applied=False means the event was acknowledged without changing state
    (anomaly or already-applied); `note` says why.
    """

    applied: bool
    note: str | None = None
    notification: StakingNotification | None = None


@dataclass(frozen=True)
class EventLogStats:
    last_processed_block: int
    unprocessed_count: int
    total_count: int


@dataclass(frozen=True)
class IndexerStatus:
    is_running: bool
    last_processed_block: int
    last_fetched_block: int | None
    unprocessed_count: int
    total_events: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "isRunning": self.is_running,
            "lastProcessedBlock": self.last_processed_block,
            "lastFetchedBlock": self.last_fetched_block,
            "unprocessedCount": self.unprocessed_count,
            "totalEvents": self.total_events,
        }


# -----------------------------------------------------------------------------
# Read models (consumed by the API layer)
# -----------------------------------------------------------------------------

@dataclass(frozen=True)
class UserStats:
    wallet_address: str
    total_staked: int
    active_stakes: int
    total_stakes: int
    total_rewards: int
    updated_at: datetime | None = None


@dataclass(frozen=True)
class PoolStats:
    pool_id: int
    total_staked: int
    active_stakes: int
    active_stakers: int
    total_rewards_distributed: int
    min_amount: int | None = None
    max_amount: int | None = None
    apy: int | None = None
    lock_period: int | None = None
    created_block: int | None = None
    updated_at: datetime | None = None


@dataclass(frozen=True)
class StakeView:
    owner_address: str
    pool_id: int
    stake_key: str
    amount: int
    tx_hash: str
    block_number: int
    staked_at: datetime
    active: bool
    unstaked_at: datetime | None = None
    reward: int = 0
    early_unstake: bool = False


@dataclass(frozen=True)
class TransactionView:
    owner_address: str
    tx_hash: str
    log_index: int
    type: TransactionType
    amount: int
    block_number: int
    status: str
    pool_id: int | None = None
    created_at: datetime | None = None


@dataclass(frozen=True)
class Leaderboard:
    stakers: list[UserStats] = field(default_factory=list)
    total_stakers: int = 0
    has_more: bool = False


@dataclass(frozen=True)
class DashboardAnalytics:
    total_stakes: int
    active_stakes: int
    total_stakers: int
    total_pools: int
    total_value_locked: Decimal
    pools: list[PoolStats] = field(default_factory=list)
