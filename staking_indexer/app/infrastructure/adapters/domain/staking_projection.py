from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine

from staking_indexer.app.domain.events import (
    PoolCreatedPayload,
    RawEvent,
    RewardClaimedPayload,
    StakedPayload,
    StakingEventType,
    UnstakedPayload,
)
from staking_indexer.app.domain.models import (
    TX_STATUS_CONFIRMED,
    ApplyOutcome,
    StakingNotification,
    TransactionType,
)
from staking_indexer.app.infrastructure.db.models.domain.pool_stats import PoolStatsDB
from staking_indexer.app.infrastructure.db.models.domain.stakes import StakesDB
from staking_indexer.app.infrastructure.db.models.domain.transactions import TransactionsDB
from staking_indexer.app.infrastructure.db.models.domain.user_stats import UserStatsDB
from staking_indexer.app.infrastructure.db.models.domain.users import UsersDB
from staking_indexer.app.infrastructure.db.upsert import dialect_insert


logger = logging.getLogger(__name__)

_users = UsersDB.__table__
_stakes = StakesDB.__table__
_transactions = TransactionsDB.__table__
_user_stats = UserStatsDB.__table__
_pool_stats = PoolStatsDB.__table__

Clock = Callable[[], datetime]
_Handler = Callable[[AsyncConnection, RawEvent], Awaitable[ApplyOutcome]]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def stake_key_for(event: RawEvent, stake_id: int | None) -> str:
    """Stake identity: contract stakeId if present, else the Staked log identity."""
    if stake_id is not None:
        return str(stake_id)
    return f"{event.tx_hash}:{event.log_index}"


class SqlAlchemyStakingProjection:
    """
    Projects staged staking events into domain.* tables.

    Strategy:
    - one handler per StakingEventType, each running in a single transaction,
    - every write is keyed on the event's natural identity
      (INSERT ... ON CONFLICT DO NOTHING, or "already closed by this log" checks),
    - user_stats / pool_stats are recomputed from stakes + transactions after
      each change instead of being incremented.

    Together this makes apply() idempotent: re-running it for an event whose
    processed flag was never persisted leaves the tables unchanged.
    """

    def __init__(self, *, engine: AsyncEngine, clock: Clock = _utcnow) -> None:
        self._engine = engine
        self._clock = clock
        self._handlers: dict[StakingEventType, _Handler] = {
            StakingEventType.STAKED: self._apply_staked,
            StakingEventType.UNSTAKED: self._apply_unstaked,
            StakingEventType.REWARD_CLAIMED: self._apply_reward_claimed,
            StakingEventType.POOL_CREATED: self._apply_pool_created,
        }

    async def apply(self, event: RawEvent) -> ApplyOutcome:
        handler = self._handlers[event.event_type]
        async with self._engine.begin() as conn:
            return await handler(conn, event)

    # -------------------------------------------------------------------------
    # Handlers
    # -------------------------------------------------------------------------

    async def _apply_staked(self, conn: AsyncConnection, event: RawEvent) -> ApplyOutcome:
        p = StakedPayload.from_payload(event.payload)
        now = self._clock()
        stake_key = stake_key_for(event, p.stake_id)

        await self._ensure_user(conn, p.user, event.block_number, now)

        stmt = dialect_insert(conn, _stakes).values(
            owner_address=p.user,
            pool_id=p.pool_id,
            stake_key=stake_key,
            amount=p.amount,
            tx_hash=event.tx_hash,
            log_index=event.log_index,
            block_number=event.block_number,
            staked_at=p.timestamp or now,
            active=True,
            reward=0,
            early_unstake=False,
        )
        stmt = stmt.on_conflict_do_nothing(
            index_elements=[_stakes.c.owner_address, _stakes.c.pool_id, _stakes.c.stake_key],
        )
        result = await conn.execute(stmt)
        if not result.rowcount:
            logger.debug(
                "Stake already present: owner=%s pool=%s key=%s",
                p.user,
                p.pool_id,
                stake_key,
            )

        await self._insert_transaction(
            conn,
            event=event,
            owner=p.user,
            tx_type=TransactionType.STAKE,
            amount=p.amount,
            pool_id=p.pool_id,
            now=now,
        )

        await self._refresh_user_stats(conn, p.user, now)
        await self._refresh_pool_stats(conn, p.pool_id, now)

        logger.debug(
            "Applied Staked: owner=%s pool=%s amount=%s block=%s",
            p.user,
            p.pool_id,
            p.amount,
            event.block_number,
        )

        return ApplyOutcome(
            applied=True,
            notification=StakingNotification(
                type="new_stake",
                user_address=p.user,
                pool_id=p.pool_id,
                amount=p.amount,
                tx_hash=event.tx_hash,
                block_number=event.block_number,
            ),
        )

    async def _apply_unstaked(self, conn: AsyncConnection, event: RawEvent) -> ApplyOutcome:
        p = UnstakedPayload.from_payload(event.payload)
        now = self._clock()
        notification = StakingNotification(
            type="stake_unstaked",
            user_address=p.user,
            pool_id=p.pool_id,
            amount=p.amount,
            tx_hash=event.tx_hash,
            block_number=event.block_number,
            reward=p.reward,
            early_unstake=p.reward == 0,
        )

        # Already closed by this very log -> nothing to do.
        already_closed = (
            await conn.execute(
                select(_stakes.c.id).where(
                    _stakes.c.unstake_tx_hash == event.tx_hash,
                    _stakes.c.unstake_log_index == event.log_index,
                )
            )
        ).first()
        if already_closed is not None:
            logger.debug("Unstaked already applied: tx=%s log=%s", event.tx_hash, event.log_index)
            return ApplyOutcome(applied=True, notification=notification)

        stake = await self._find_active_stake(conn, event, p)
        if stake is None:
            logger.warning(
                "Anomaly: Unstaked without matching active stake "
                "(owner=%s pool=%s stake_id=%s amount=%s tx=%s log=%s); skipping",
                p.user,
                p.pool_id,
                p.stake_id,
                p.amount,
                event.tx_hash,
                event.log_index,
            )
            return ApplyOutcome(
                applied=False,
                note=f"no active stake for owner={p.user} pool={p.pool_id}",
            )

        await conn.execute(
            update(_stakes)
            .where(_stakes.c.id == stake["id"], _stakes.c.active.is_(True))
            .values(
                active=False,
                unstaked_at=p.timestamp or now,
                unstake_tx_hash=event.tx_hash,
                unstake_log_index=event.log_index,
                reward=p.reward,
                early_unstake=p.reward == 0,
            )
        )

        await self._ensure_user(conn, p.user, event.block_number, now)
        await self._insert_transaction(
            conn,
            event=event,
            owner=p.user,
            tx_type=TransactionType.UNSTAKE,
            amount=p.amount,
            pool_id=p.pool_id,
            now=now,
        )
        if p.reward > 0:
            await self._insert_transaction(
                conn,
                event=event,
                owner=p.user,
                tx_type=TransactionType.REWARD,
                amount=p.reward,
                pool_id=p.pool_id,
                now=now,
            )

        await self._refresh_user_stats(conn, p.user, now)
        await self._refresh_pool_stats(conn, p.pool_id, now)

        logger.debug(
            "Applied Unstaked: owner=%s pool=%s amount=%s reward=%s block=%s",
            p.user,
            p.pool_id,
            p.amount,
            p.reward,
            event.block_number,
        )
        return ApplyOutcome(applied=True, notification=notification)

    async def _apply_reward_claimed(self, conn: AsyncConnection, event: RawEvent) -> ApplyOutcome:
        p = RewardClaimedPayload.from_payload(event.payload)
        now = self._clock()

        await self._ensure_user(conn, p.user, event.block_number, now)
        await self._insert_transaction(
            conn,
            event=event,
            owner=p.user,
            tx_type=TransactionType.REWARD,
            amount=p.amount,
            pool_id=p.pool_id,
            now=now,
        )

        await self._refresh_user_stats(conn, p.user, now)
        if p.pool_id is not None:
            await self._refresh_pool_stats(conn, p.pool_id, now)

        return ApplyOutcome(applied=True)

    async def _apply_pool_created(self, conn: AsyncConnection, event: RawEvent) -> ApplyOutcome:
        p = PoolCreatedPayload.from_payload(event.payload)
        now = self._clock()

        params = {
            "min_amount": p.min_amount,
            "max_amount": p.max_amount,
            "apy": p.apy,
            "lock_period": p.lock_period,
            "created_block": event.block_number,
        }
        stmt = dialect_insert(conn, _pool_stats).values(
            pool_id=p.pool_id,
            total_staked=0,
            active_stakes=0,
            active_stakers=0,
            total_rewards_distributed=0,
            updated_at=now,
            **params,
        )
        # Row may already exist from a stake recompute: fill params, keep totals.
        stmt = stmt.on_conflict_do_update(
            index_elements=[_pool_stats.c.pool_id],
            set_={name: getattr(stmt.excluded, name) for name in params},
        )
        await conn.execute(stmt)

        logger.debug("Applied PoolCreated: pool=%s block=%s", p.pool_id, event.block_number)
        return ApplyOutcome(applied=True)

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    async def _ensure_user(
        self,
        conn: AsyncConnection,
        wallet_address: str,
        block_number: int,
        now: datetime,
    ) -> None:
        stmt = dialect_insert(conn, _users).values(
            wallet_address=wallet_address,
            first_seen_block=block_number,
            created_at=now,
        )
        await conn.execute(stmt.on_conflict_do_nothing(index_elements=[_users.c.wallet_address]))

    async def _insert_transaction(
        self,
        conn: AsyncConnection,
        *,
        event: RawEvent,
        owner: str,
        tx_type: TransactionType,
        amount: int,
        pool_id: int | None,
        now: datetime,
    ) -> None:
        stmt = dialect_insert(conn, _transactions).values(
            owner_address=owner,
            tx_hash=event.tx_hash,
            log_index=event.log_index,
            type=tx_type.value,
            amount=amount,
            pool_id=pool_id,
            block_number=event.block_number,
            status=TX_STATUS_CONFIRMED,
            created_at=now,
        )
        await conn.execute(
            stmt.on_conflict_do_nothing(
                index_elements=[
                    _transactions.c.tx_hash,
                    _transactions.c.log_index,
                    _transactions.c.type,
                ],
            )
        )

    async def _find_active_stake(
        self,
        conn: AsyncConnection,
        event: RawEvent,
        p: UnstakedPayload,
    ) -> dict[str, Any] | None:
        sql = (
            select(_stakes.c.id, _stakes.c.amount, _stakes.c.stake_key)
            .where(
                _stakes.c.owner_address == p.user,
                _stakes.c.pool_id == p.pool_id,
                _stakes.c.active.is_(True),
            )
            .order_by(_stakes.c.block_number, _stakes.c.log_index)
        )
        if p.stake_id is not None:
            sql = sql.where(_stakes.c.stake_key == stake_key_for(event, p.stake_id))

        candidates = [dict(r) for r in (await conn.execute(sql)).mappings().all()]
        if not candidates:
            return None

        # Without a stakeId, prefer the oldest position with the same amount.
        for candidate in candidates:
            if candidate["amount"] == p.amount:
                return candidate
        return candidates[0]

    async def _refresh_user_stats(self, conn: AsyncConnection, wallet_address: str, now: datetime) -> None:
        stake_rows = (
            await conn.execute(
                select(_stakes.c.amount, _stakes.c.active).where(
                    _stakes.c.owner_address == wallet_address
                )
            )
        ).all()
        reward_amounts = (
            await conn.execute(
                select(_transactions.c.amount).where(
                    _transactions.c.owner_address == wallet_address,
                    _transactions.c.type == TransactionType.REWARD.value,
                )
            )
        ).scalars().all()

        values = {
            "total_staked": sum(r.amount for r in stake_rows if r.active),
            "active_stakes": sum(1 for r in stake_rows if r.active),
            "total_stakes": len(stake_rows),
            "total_rewards": sum(reward_amounts),
            "updated_at": now,
        }

        stmt = dialect_insert(conn, _user_stats).values(wallet_address=wallet_address, **values)
        stmt = stmt.on_conflict_do_update(
            index_elements=[_user_stats.c.wallet_address],
            set_={name: getattr(stmt.excluded, name) for name in values},
        )
        await conn.execute(stmt)

    async def _refresh_pool_stats(self, conn: AsyncConnection, pool_id: int, now: datetime) -> None:
        active_rows = (
            await conn.execute(
                select(_stakes.c.owner_address, _stakes.c.amount).where(
                    _stakes.c.pool_id == pool_id,
                    _stakes.c.active.is_(True),
                )
            )
        ).all()
        reward_amounts = (
            await conn.execute(
                select(_transactions.c.amount).where(
                    _transactions.c.pool_id == pool_id,
                    _transactions.c.type == TransactionType.REWARD.value,
                )
            )
        ).scalars().all()

        values = {
            "total_staked": sum(r.amount for r in active_rows),
            "active_stakes": len(active_rows),
            "active_stakers": len({r.owner_address for r in active_rows}),
            "total_rewards_distributed": sum(reward_amounts),
            "updated_at": now,
        }

        stmt = dialect_insert(conn, _pool_stats).values(pool_id=pool_id, **values)
        stmt = stmt.on_conflict_do_update(
            index_elements=[_pool_stats.c.pool_id],
            set_={name: getattr(stmt.excluded, name) for name in values},
        )
        await conn.execute(stmt)
