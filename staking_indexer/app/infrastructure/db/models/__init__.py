from staking_indexer.app.infrastructure.db.models.domain.pool_stats import PoolStatsDB
from staking_indexer.app.infrastructure.db.models.domain.stakes import StakesDB
from staking_indexer.app.infrastructure.db.models.domain.transactions import TransactionsDB
from staking_indexer.app.infrastructure.db.models.domain.user_stats import UserStatsDB
from staking_indexer.app.infrastructure.db.models.domain.users import UsersDB
from staking_indexer.app.infrastructure.db.models.staging.indexer_cursors import IndexerCursorsDB
from staking_indexer.app.infrastructure.db.models.staging.staking_events import StakingEventsDB

__all__ = [
    "IndexerCursorsDB",
    "PoolStatsDB",
    "StakesDB",
    "StakingEventsDB",
    "TransactionsDB",
    "UserStatsDB",
    "UsersDB",
]
