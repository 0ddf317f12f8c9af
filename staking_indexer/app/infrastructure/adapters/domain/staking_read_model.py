from __future__ import annotations

from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncEngine

from staking_indexer.app.application.services.amounts import format_units
from staking_indexer.app.domain.models import (
    DashboardAnalytics,
    Leaderboard,
    PoolStats,
    StakeView,
    TransactionType,
    TransactionView,
    UserStats,
)
from staking_indexer.app.infrastructure.db.models.domain.pool_stats import PoolStatsDB
from staking_indexer.app.infrastructure.db.models.domain.stakes import StakesDB
from staking_indexer.app.infrastructure.db.models.domain.transactions import TransactionsDB
from staking_indexer.app.infrastructure.db.models.domain.user_stats import UserStatsDB

_stakes = StakesDB.__table__
_transactions = TransactionsDB.__table__
_user_stats = UserStatsDB.__table__
_pool_stats = PoolStatsDB.__table__


class SqlAlchemyStakingReadModel:
    """
    Read-only queries over domain.* for the API layer.

    Never writes. Amounts are returned as exact ints; conversion to token
    units happens through format_units() only where a display value is built.
    """

    def __init__(self, *, engine: AsyncEngine, token_decimals: int = 18) -> None:
        self._engine = engine
        self._token_decimals = token_decimals

    async def get_user_stats(self, wallet_address: str) -> UserStats | None:
        sql = select(_user_stats).where(_user_stats.c.wallet_address == wallet_address.lower())
        async with self._engine.connect() as conn:
            row = (await conn.execute(sql)).mappings().one_or_none()
        return self._user_stats(row) if row is not None else None

    async def get_pool_stats(self, pool_id: int) -> PoolStats | None:
        sql = select(_pool_stats).where(_pool_stats.c.pool_id == pool_id)
        async with self._engine.connect() as conn:
            row = (await conn.execute(sql)).mappings().one_or_none()
        return self._pool_stats(row) if row is not None else None

    async def list_pool_stats(self) -> list[PoolStats]:
        sql = select(_pool_stats).order_by(_pool_stats.c.pool_id)
        async with self._engine.connect() as conn:
            rows = (await conn.execute(sql)).mappings().all()
        return [self._pool_stats(r) for r in rows]

    async def get_active_stakes(self, wallet_address: str) -> list[StakeView]:
        sql = (
            select(_stakes)
            .where(
                _stakes.c.owner_address == wallet_address.lower(),
                _stakes.c.active.is_(True),
            )
            .order_by(_stakes.c.block_number.desc(), _stakes.c.log_index.desc())
        )
        async with self._engine.connect() as conn:
            rows = (await conn.execute(sql)).mappings().all()
        return [self._stake(r) for r in rows]

    async def list_active_stakes(self, *, limit: int = 100, offset: int = 0) -> list[StakeView]:
        sql = (
            select(_stakes)
            .where(_stakes.c.active.is_(True))
            .order_by(_stakes.c.block_number.desc(), _stakes.c.log_index.desc())
            .limit(limit)
            .offset(offset)
        )
        async with self._engine.connect() as conn:
            rows = (await conn.execute(sql)).mappings().all()
        return [self._stake(r) for r in rows]

    async def list_recent_transactions(
        self,
        *,
        limit: int = 50,
        owner_address: str | None = None,
    ) -> list[TransactionView]:
        sql = select(_transactions)
        if owner_address is not None:
            sql = sql.where(_transactions.c.owner_address == owner_address.lower())
        sql = sql.order_by(
            _transactions.c.block_number.desc(),
            _transactions.c.log_index.desc(),
            _transactions.c.id.desc(),
        ).limit(limit)

        async with self._engine.connect() as conn:
            rows = (await conn.execute(sql)).mappings().all()
        return [self._transaction(r) for r in rows]

    async def get_leaderboard(self, *, limit: int = 50, offset: int = 0) -> Leaderboard:
        # uint256 ordering is done in Python: SQLite keeps amounts as text.
        sql = select(_user_stats).where(_user_stats.c.active_stakes > 0)
        async with self._engine.connect() as conn:
            rows = (await conn.execute(sql)).mappings().all()

        ranked = sorted(
            (self._user_stats(r) for r in rows if r["total_staked"] > 0),
            key=lambda s: (-s.total_staked, s.wallet_address),
        )
        page = ranked[offset:offset + limit]
        return Leaderboard(
            stakers=page,
            total_stakers=len(ranked),
            has_more=offset + limit < len(ranked),
        )

    async def get_dashboard_analytics(self) -> DashboardAnalytics:
        async with self._engine.connect() as conn:
            total_stakes = (await conn.execute(select(func.count()).select_from(_stakes))).scalar_one()
            active_stakes = (
                await conn.execute(
                    select(func.count()).select_from(_stakes).where(_stakes.c.active.is_(True))
                )
            ).scalar_one()
            total_stakers = (
                await conn.execute(
                    select(func.count(func.distinct(_stakes.c.owner_address))).where(
                        _stakes.c.active.is_(True)
                    )
                )
            ).scalar_one()
            pool_rows = (
                await conn.execute(select(_pool_stats).order_by(_pool_stats.c.pool_id))
            ).mappings().all()

        pools = [self._pool_stats(r) for r in pool_rows]
        tvl = sum((p.total_staked for p in pools), 0)

        return DashboardAnalytics(
            total_stakes=int(total_stakes),
            active_stakes=int(active_stakes),
            total_stakers=int(total_stakers),
            total_pools=len(pools),
            total_value_locked=format_units(tvl, self._token_decimals),
            pools=pools,
        )

    # -------------------------------------------------------------------------
    # Row mapping
    # -------------------------------------------------------------------------

    @staticmethod
    def _user_stats(row: Any) -> UserStats:
        return UserStats(
            wallet_address=row["wallet_address"],
            total_staked=row["total_staked"],
            active_stakes=row["active_stakes"],
            total_stakes=row["total_stakes"],
            total_rewards=row["total_rewards"],
            updated_at=row["updated_at"],
        )

    @staticmethod
    def _pool_stats(row: Any) -> PoolStats:
        return PoolStats(
            pool_id=row["pool_id"],
            total_staked=row["total_staked"],
            active_stakes=row["active_stakes"],
            active_stakers=row["active_stakers"],
            total_rewards_distributed=row["total_rewards_distributed"],
            min_amount=row["min_amount"],
            max_amount=row["max_amount"],
            apy=row["apy"],
            lock_period=row["lock_period"],
            created_block=row["created_block"],
            updated_at=row["updated_at"],
        )

    @staticmethod
    def _stake(row: Any) -> StakeView:
        return StakeView(
            owner_address=row["owner_address"],
            pool_id=row["pool_id"],
            stake_key=row["stake_key"],
            amount=row["amount"],
            tx_hash=row["tx_hash"],
            block_number=row["block_number"],
            staked_at=row["staked_at"],
            active=bool(row["active"]),
            unstaked_at=row["unstaked_at"],
            reward=row["reward"],
            early_unstake=bool(row["early_unstake"]),
        )

    @staticmethod
    def _transaction(row: Any) -> TransactionView:
        return TransactionView(
            owner_address=row["owner_address"],
            tx_hash=row["tx_hash"],
            log_index=row["log_index"],
            type=TransactionType(row["type"]),
            amount=row["amount"],
            block_number=row["block_number"],
            status=row["status"],
            pool_id=row["pool_id"],
            created_at=row["created_at"],
        )
