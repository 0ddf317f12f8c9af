"""Builders and in-memory fakes shared by the test suite."""

from __future__ import annotations

from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncEngine

from staking_indexer.app.domain.events import RawEvent, StakingEventType
from staking_indexer.app.domain.models import StakingNotification

CONTRACT = "0x" + "cc" * 20
ALICE = "0x" + "a1" * 20
BOB = "0x" + "b2" * 20
CAROL = "0x" + "c3" * 20

ETH = 10**18


def tx_hash(n: int) -> str:
    return "0x" + f"{n:064x}"


def block_hash(n: int) -> str:
    return "0x" + f"{n:064x}".replace("0", "b")


def make_event(
    name: str,
    *,
    block: int,
    log_index: int = 0,
    tx: int | None = None,
    payload: dict[str, Any] | None = None,
) -> RawEvent:
    return RawEvent(
        event_name=name,
        contract_address=CONTRACT,
        tx_hash=tx_hash(tx if tx is not None else block * 1000 + log_index),
        block_number=block,
        block_hash=block_hash(block),
        log_index=log_index,
        payload=payload or {},
    )


def staked(user: str, pool_id: int, amount: int, *, block: int, log_index: int = 0, **extra: Any) -> RawEvent:
    payload = {"user": user, "poolId": str(pool_id), "amount": str(amount), **extra}
    return make_event("Staked", block=block, log_index=log_index, payload=payload)


def unstaked(
    user: str,
    pool_id: int,
    amount: int,
    reward: int = 0,
    *,
    block: int,
    log_index: int = 0,
    **extra: Any,
) -> RawEvent:
    payload = {
        "user": user,
        "poolId": str(pool_id),
        "amount": str(amount),
        "reward": str(reward),
        **extra,
    }
    return make_event("Unstaked", block=block, log_index=log_index, payload=payload)


def reward_claimed(user: str, amount: int, *, block: int, log_index: int = 0, timestamp: int = 0) -> RawEvent:
    payload = {"user": user, "amount": str(amount), "timestamp": str(timestamp)}
    return make_event("RewardClaimed", block=block, log_index=log_index, payload=payload)


def pool_created(
    pool_id: int,
    *,
    block: int,
    log_index: int = 0,
    min_amount: int = ETH,
    max_amount: int = 1000 * ETH,
    apy: int = 1200,
    lock_period: int = 30 * 86400,
) -> RawEvent:
    payload = {
        "poolId": str(pool_id),
        "minAmount": str(min_amount),
        "maxAmount": str(max_amount),
        "apy": str(apy),
        "lockPeriod": str(lock_period),
    }
    return make_event("PoolCreated", block=block, log_index=log_index, payload=payload)


async def fetch_rows(engine: AsyncEngine, db_model: Any, *order_by: Any) -> list[Any]:
    table = db_model.__table__
    sql = select(table)
    if order_by:
        sql = sql.order_by(*order_by)
    async with engine.connect() as conn:
        return list((await conn.execute(sql)).mappings().all())


class FakeChainClient:
    """StakingChainClient over a fixed list of events and a settable head."""

    def __init__(self, events: list[RawEvent] | None = None, head: int = 0) -> None:
        self.events = list(events or [])
        self.head = head
        self.calls: list[tuple[StakingEventType, int, int]] = []
        self.fail_with: Exception | None = None

    async def current_height(self) -> int:
        return self.head

    async def fetch_events(
        self,
        *,
        event_type: StakingEventType,
        from_block: int,
        to_block: int,
    ) -> list[RawEvent]:
        self.calls.append((event_type, from_block, to_block))
        if self.fail_with is not None:
            raise self.fail_with
        upper = min(to_block, self.head)
        matching = [
            e
            for e in self.events
            if e.event_name == event_type.value and from_block <= e.block_number <= upper
        ]
        return sorted(matching, key=lambda e: e.chain_position)


class RecordingNotifier:
    def __init__(self, fail: bool = False) -> None:
        self.sent: list[StakingNotification] = []
        self.fail = fail

    async def notify(self, notification: StakingNotification) -> None:
        if self.fail:
            raise ConnectionError("webhook down")
        self.sent.append(notification)
