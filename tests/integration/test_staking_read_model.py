"""Read-side queries over projected data."""

from decimal import Decimal

from staking_indexer.app.domain.models import TransactionType

from tests.helpers import ALICE, BOB, CAROL, ETH, pool_created, reward_claimed, staked, unstaked


async def _apply_all(projection, events):
    for event in events:
        await projection.apply(event)


async def test_user_and_pool_stats(projection, read_model):
    await _apply_all(
        projection,
        [
            pool_created(1, block=1, apy=1200),
            staked(ALICE, 1, 100, block=2),
            staked(ALICE, 1, 50, block=3),
            unstaked(ALICE, 1, 50, 5, block=4),
        ],
    )

    user = await read_model.get_user_stats(ALICE.upper().replace("0X", "0x"))
    assert (user.total_staked, user.active_stakes, user.total_stakes, user.total_rewards) == (100, 1, 2, 5)

    pool = await read_model.get_pool_stats(1)
    assert (pool.total_staked, pool.active_stakes, pool.apy) == (100, 1, 1200)
    assert [p.pool_id for p in await read_model.list_pool_stats()] == [1]


async def test_missing_rows(read_model):
    assert await read_model.get_user_stats(ALICE) is None
    assert await read_model.get_pool_stats(9) is None


async def test_active_stakes(projection, read_model):
    await _apply_all(
        projection,
        [
            staked(ALICE, 1, 100, block=2),
            staked(ALICE, 2, 70, block=3),
            staked(BOB, 1, 10, block=4),
            unstaked(ALICE, 1, 100, block=5),
        ],
    )

    mine = await read_model.get_active_stakes(ALICE)
    assert [(s.pool_id, s.amount, s.active) for s in mine] == [(2, 70, True)]

    everyone = await read_model.list_active_stakes(limit=10)
    assert [s.owner_address for s in everyone] == [BOB, ALICE]
    assert len(await read_model.list_active_stakes(limit=1, offset=1)) == 1


async def test_recent_transactions_newest_first(projection, read_model):
    await _apply_all(
        projection,
        [
            staked(ALICE, 1, 100, block=2),
            staked(BOB, 1, 10, block=3),
            unstaked(ALICE, 1, 100, 9, block=4),
            reward_claimed(BOB, 1, block=5),
        ],
    )

    recent = await read_model.list_recent_transactions(limit=3)
    assert [t.block_number for t in recent] == [5, 4, 4]
    assert recent[0].type is TransactionType.REWARD

    alice = await read_model.list_recent_transactions(owner_address=ALICE)
    assert {t.type for t in alice} == {TransactionType.STAKE, TransactionType.UNSTAKE, TransactionType.REWARD}


async def test_leaderboard(projection, read_model):
    await _apply_all(
        projection,
        [
            staked(ALICE, 1, 5 * ETH, block=2),
            staked(BOB, 1, 20 * ETH, block=3),
            staked(CAROL, 1, 9 * ETH, block=4),
            staked(CAROL, 2, 2 * ETH, block=5),
        ],
    )

    page = await read_model.get_leaderboard(limit=2)
    assert [s.wallet_address for s in page.stakers] == [BOB, CAROL]
    assert page.stakers[1].total_staked == 11 * ETH
    assert page.total_stakers == 3
    assert page.has_more

    rest = await read_model.get_leaderboard(limit=2, offset=2)
    assert [s.wallet_address for s in rest.stakers] == [ALICE]
    assert not rest.has_more


async def test_leaderboard_excludes_fully_unstaked(projection, read_model):
    await _apply_all(projection, [staked(ALICE, 1, 5, block=2), unstaked(ALICE, 1, 5, block=3)])
    board = await read_model.get_leaderboard()
    assert board.stakers == [] and board.total_stakers == 0


async def test_dashboard_analytics(projection, read_model):
    await _apply_all(
        projection,
        [
            pool_created(1, block=1),
            pool_created(2, block=1, log_index=1),
            staked(ALICE, 1, 3 * ETH // 2, block=2),
            staked(BOB, 2, 5 * ETH // 2, block=3),
            staked(BOB, 2, ETH, block=4),
            unstaked(BOB, 2, ETH, block=5),
        ],
    )

    dashboard = await read_model.get_dashboard_analytics()

    assert dashboard.total_stakes == 3
    assert dashboard.active_stakes == 2
    assert dashboard.total_stakers == 2
    assert dashboard.total_pools == 2
    assert dashboard.total_value_locked == Decimal("4")
