from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Mapping

from staking_indexer.app.domain.errors import MalformedEventError


class StakingEventType(str, Enum):
    """Events emitted by the staking contract that the indexer tracks."""

    STAKED = "Staked"
    UNSTAKED = "Unstaked"
    REWARD_CLAIMED = "RewardClaimed"
    POOL_CREATED = "PoolCreated"


TRACKED_EVENT_TYPES: tuple[StakingEventType, ...] = tuple(StakingEventType)


@dataclass(frozen=True)
class RawEvent:
    """
    A single contract log as staged in the event log.

    Identity is (tx_hash, log_index). `payload` holds the decoded event
    arguments in JSON-safe form: integers are kept as decimal strings so that
    uint256 values survive serialisation without precision loss.

    `id` and `processed` are only populated for rows read back from the store.
    """

    event_name: str
    contract_address: str
    tx_hash: str
    block_number: int
    block_hash: str
    log_index: int
    payload: Mapping[str, Any] = field(default_factory=dict)
    processed: bool = False
    id: int | None = None

    @property
    def identity(self) -> tuple[str, int]:
        return self.tx_hash, self.log_index

    @property
    def chain_position(self) -> tuple[int, int]:
        return self.block_number, self.log_index

    @property
    def event_type(self) -> StakingEventType:
        try:
            return StakingEventType(self.event_name)
        except ValueError:
            raise MalformedEventError(f"Unknown event type: {self.event_name!r}") from None


# -----------------------------------------------------------------------------
# Payload parsing helpers
# -----------------------------------------------------------------------------

def _require(payload: Mapping[str, Any], *names: str) -> Any:
    """Return the first present key among `names` (ABI argument aliases)."""
    for name in names:
        if name in payload and payload[name] is not None:
            return payload[name]
    raise MalformedEventError(f"Missing field {names[0]!r} in payload {dict(payload)!r}")


def _optional(payload: Mapping[str, Any], *names: str) -> Any | None:
    for name in names:
        if name in payload and payload[name] is not None:
            return payload[name]
    return None


def parse_uint(value: Any, *, field_name: str) -> int:
    """Parse a uint from int or decimal/hex string. Floats are rejected."""
    if isinstance(value, bool):
        raise MalformedEventError(f"{field_name}: expected integer, got bool")
    if isinstance(value, int):
        result = value
    elif isinstance(value, str):
        s = value.strip()
        try:
            result = int(s, 16) if s.lower().startswith("0x") else int(s, 10)
        except ValueError:
            raise MalformedEventError(f"{field_name}: not an integer: {value!r}") from None
    else:
        raise MalformedEventError(f"{field_name}: expected integer, got {type(value).__name__}")

    if result < 0:
        raise MalformedEventError(f"{field_name}: negative value {result}")
    return result


def parse_address(value: Any, *, field_name: str) -> str:
    if not isinstance(value, str):
        raise MalformedEventError(f"{field_name}: expected address string")
    s = value.strip().lower()
    if not s.startswith("0x") or len(s) != 42:
        raise MalformedEventError(f"{field_name}: invalid address {value!r}")
    try:
        int(s[2:], 16)
    except ValueError:
        raise MalformedEventError(f"{field_name}: invalid address {value!r}") from None
    return s


def _parse_timestamp(value: Any | None) -> datetime | None:
    if value is None:
        return None
    seconds = parse_uint(value, field_name="timestamp")
    if seconds == 0:
        return None
    return datetime.fromtimestamp(seconds, tz=timezone.utc)


# -----------------------------------------------------------------------------
# Typed payloads (one per event variant)
# -----------------------------------------------------------------------------

@dataclass(frozen=True)
class StakedPayload:
    user: str
    pool_id: int
    amount: int
    stake_id: int | None = None
    timestamp: datetime | None = None

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "StakedPayload":
        stake_id = _optional(payload, "stakeId", "stake_id")
        return cls(
            user=parse_address(_require(payload, "user"), field_name="user"),
            pool_id=parse_uint(_require(payload, "poolId", "pool_id"), field_name="poolId"),
            amount=parse_uint(_require(payload, "amount"), field_name="amount"),
            stake_id=parse_uint(stake_id, field_name="stakeId") if stake_id is not None else None,
            timestamp=_parse_timestamp(_optional(payload, "timestamp")),
        )


@dataclass(frozen=True)
class UnstakedPayload:
    user: str
    pool_id: int
    amount: int
    reward: int
    stake_id: int | None = None
    timestamp: datetime | None = None

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "UnstakedPayload":
        stake_id = _optional(payload, "stakeId", "stake_id")
        reward = _optional(payload, "reward")
        return cls(
            user=parse_address(_require(payload, "user"), field_name="user"),
            pool_id=parse_uint(_require(payload, "poolId", "pool_id"), field_name="poolId"),
            amount=parse_uint(_require(payload, "amount"), field_name="amount"),
            reward=parse_uint(reward, field_name="reward") if reward is not None else 0,
            stake_id=parse_uint(stake_id, field_name="stakeId") if stake_id is not None else None,
            timestamp=_parse_timestamp(_optional(payload, "timestamp")),
        )


@dataclass(frozen=True)
class RewardClaimedPayload:
    user: str
    amount: int
    pool_id: int | None = None
    timestamp: datetime | None = None

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "RewardClaimedPayload":
        pool_id = _optional(payload, "poolId", "pool_id")
        return cls(
            user=parse_address(_require(payload, "user"), field_name="user"),
            amount=parse_uint(_require(payload, "amount"), field_name="amount"),
            pool_id=parse_uint(pool_id, field_name="poolId") if pool_id is not None else None,
            timestamp=_parse_timestamp(_optional(payload, "timestamp")),
        )


@dataclass(frozen=True)
class PoolCreatedPayload:
    pool_id: int
    min_amount: int
    max_amount: int
    apy: int
    lock_period: int

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "PoolCreatedPayload":
        return cls(
            pool_id=parse_uint(_require(payload, "poolId", "pool_id"), field_name="poolId"),
            min_amount=parse_uint(_require(payload, "minAmount", "min_amount"), field_name="minAmount"),
            max_amount=parse_uint(_require(payload, "maxAmount", "max_amount"), field_name="maxAmount"),
            apy=parse_uint(_require(payload, "apy"), field_name="apy"),
            lock_period=parse_uint(_require(payload, "lockPeriod", "lock_period"), field_name="lockPeriod"),
        )


def to_json_payload(decoded: Mapping[str, Any]) -> dict[str, Any]:
    """
    Convert decoded ABI values to a JSON-safe mapping.

    ints -> decimal strings, bytes -> 0x-hex, everything else as-is.
    """
    out: dict[str, Any] = {}
    for key, value in decoded.items():
        if isinstance(value, bool):
            out[key] = value
        elif isinstance(value, int):
            out[key] = str(value)
        elif isinstance(value, (bytes, bytearray, memoryview)):
            out[key] = "0x" + bytes(value).hex()
        else:
            out[key] = value
    return out
