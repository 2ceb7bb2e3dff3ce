"""Unit tests for user leaderboards"""

import pytest
from datetime import datetime, timedelta

from gamify.gamification.rankings import EPOCH, assign_positions, period_bounds
from gamify.models import PointEntry, RankingType
from gamify.utils.datetime_helpers import UTC


NOW = datetime(2024, 3, 20, 12, 0, tzinfo=UTC)


async def add_points(store, user_id, amount, when):
    await store.add_point_entry(
        PointEntry(user_id=user_id, amount=amount, source="task_completed", description="Task", timestamp=when)
    )


def test_assign_positions_shares_ties():
    positions = assign_positions({"a": 10, "b": 20, "c": 20, "d": 5})

    assert positions == [("b", 20, 1), ("c", 20, 1), ("a", 10, 3), ("d", 5, 4)]


def test_period_bounds():
    assert period_bounds(RankingType.WEEKLY, NOW) == (NOW - timedelta(days=7), NOW)
    assert period_bounds(RankingType.MONTHLY, NOW) == (datetime(2024, 3, 1, tzinfo=UTC), NOW)
    assert period_bounds("all-time", NOW) == (EPOCH, NOW)


@pytest.mark.asyncio
async def test_weekly_rankings_use_recent_points_only(engine, store):
    await add_points(store, "alice", 50, NOW - timedelta(days=2))
    await add_points(store, "bob", 30, NOW - timedelta(days=1))
    await add_points(store, "bob", 100, NOW - timedelta(days=10))

    weekly = await engine.rankings.compute_rankings(RankingType.WEEKLY, now=NOW)
    all_time = await engine.rankings.compute_rankings(RankingType.ALL_TIME, now=NOW)

    assert [(r.user_id, r.points, r.position) for r in weekly] == [("alice", 50, 1), ("bob", 30, 2)]
    assert [(r.user_id, r.points, r.position) for r in all_time] == [("bob", 130, 1), ("alice", 50, 2)]


@pytest.mark.asyncio
async def test_recompute_replaces_snapshot(engine, store):
    await add_points(store, "alice", 50, NOW - timedelta(hours=1))
    await engine.rankings.compute_rankings(RankingType.MONTHLY, now=NOW)
    await add_points(store, "bob", 80, NOW - timedelta(hours=1))

    await engine.rankings.compute_rankings(RankingType.MONTHLY, now=NOW)

    top = await engine.rankings.get_top_rankings(RankingType.MONTHLY)
    assert [r.user_id for r in top] == ["bob", "alice"]


@pytest.mark.asyncio
async def test_top_rankings_limit(engine, store):
    for i in range(5):
        await add_points(store, f"user-{i}", (i + 1) * 10, NOW - timedelta(hours=1))
    await engine.rankings.compute_rankings(RankingType.WEEKLY, now=NOW)

    top = await engine.rankings.get_top_rankings(RankingType.WEEKLY, limit=3)

    assert [r.user_id for r in top] == ["user-4", "user-3", "user-2"]


@pytest.mark.asyncio
async def test_user_ranking_from_snapshot(engine, store):
    await add_points(store, "alice", 50, NOW - timedelta(hours=1))
    await add_points(store, "bob", 30, NOW - timedelta(hours=1))
    await engine.rankings.compute_rankings(RankingType.WEEKLY, now=NOW)

    ranking = await engine.rankings.get_user_ranking("bob", RankingType.WEEKLY, now=NOW)

    assert ranking.position == 2
    assert ranking.points == 30


@pytest.mark.asyncio
async def test_user_ranking_computed_without_snapshot(engine, store):
    await add_points(store, "alice", 50, NOW - timedelta(hours=1))
    await add_points(store, "bob", 30, NOW - timedelta(hours=1))

    ranking = await engine.rankings.get_user_ranking("carol", RankingType.WEEKLY, now=NOW)

    assert ranking.points == 0
    assert ranking.position == 3
