"""
End-to-end gamification scenarios

Each test drives the engine over the in-memory store the way the service
layer does and checks the ledger-level guarantees afterwards.
"""

import asyncio
import pytest
from datetime import date, timedelta

from gamify.gamification.engine import GamificationEngine
from gamify.models import (
    BadgeRarity,
    CriteriaType,
    GamificationConfig,
    PointEntry,
    Reward,
    RewardType,
    Streak,
)


# ============================================================================
# Currency
# ============================================================================

@pytest.mark.asyncio
async def test_balance_matches_full_ledger_after_truncation(store):
    engine = GamificationEngine(store, total_cache_ttl=0, currency_history_cap=10)
    user_id = "spender"

    for i in range(30):
        await engine.currency.add_transaction(user_id, "earn", i + 1, "manual", f"Earn {i}")
        if i % 3 == 0:
            await engine.currency.spend(user_id, i // 2, "manual", f"Spend {i}")

    account = await engine.currency.get_account(user_id)
    history = await engine.currency.get_transaction_history(user_id, limit=1000)

    assert len(account.transactions) == 10
    assert len(history) == await engine.currency.count_transactions(user_id) == 40
    assert account.balance == sum(t.signed_amount for t in history)


@pytest.mark.asyncio
async def test_conversion_can_repeat_on_same_points(engine):
    first = await engine.currency.convert_points_to_currency("converter", 25, rate=10)
    second = await engine.currency.convert_points_to_currency("converter", 25, rate=10)

    assert (first.currency_earned, first.account.balance) == (2, 2)
    assert (second.currency_earned, second.account.balance) == (2, 4)


# ============================================================================
# Badges
# ============================================================================

@pytest.mark.asyncio
async def test_concurrent_awards_grant_badge_once(engine, store, make_badge):
    badge = await make_badge("Contributor", CriteriaType.THRESHOLD, 50, rarity=BadgeRarity.RARE)

    await asyncio.gather(*[
        engine.points.award("racer", 20, "task_completed", f"Task {i}") for i in range(5)
    ])

    held = await store.get_user_badges("racer")
    bonuses = [e for e in await store.get_point_entries("racer") if e.source == "badge_earned"]
    assert [ub.badge_id for ub in held] == [badge.id]
    assert len(bonuses) == 1
    assert await engine.points.get_total("racer") == 100 + 50


@pytest.mark.asyncio
async def test_threshold_badge_fires_within_the_crossing_award(engine, store, make_badge):
    await store.add_point_entry(PointEntry(user_id="climber", amount=480, source="import", description="Start"))
    badge = await make_badge("Five hundred", CriteriaType.THRESHOLD, 500)

    result = await engine.points.award("climber", 40, "task_completed", "Task")

    assert [b.id for b in result.badges_earned] == [badge.id]
    assert await engine.points.get_total("climber") == 520 + 10


# ============================================================================
# Streaks
# ============================================================================

@pytest.mark.asyncio
async def test_streak_invariants_over_irregular_activity(engine):
    start = date(2024, 1, 1)
    offsets = [0, 1, 2, 3, 5, 6, 6, 7, 8, 9, 10, 11, 12, 20, 21, 4]
    longest_seen = 0

    for offset in offsets:
        update = await engine.streaks.update_streak("runner", "daily_tasks", start + timedelta(days=offset))
        streak = update.streak
        assert streak.consecutive_days <= streak.longest_streak
        assert streak.longest_streak >= longest_seen
        longest_seen = streak.longest_streak

    streak = await engine.streaks.get_current_streak("runner", "daily_tasks")
    assert streak.consecutive_days == 2
    assert streak.longest_streak == 8
    assert sorted(r.day for r in streak.rewards_received) == [3, 7]


@pytest.mark.asyncio
async def test_gap_resets_without_touching_history(engine, store):
    today = date(2024, 5, 20)
    await store.save_streak(
        Streak(user_id="lapsed", type="daily_tasks", consecutive_days=6, longest_streak=6, last_activity=today - timedelta(days=1))
    )

    await engine.streaks.update_streak("lapsed", "daily_tasks", today)
    update = await engine.streaks.update_streak("lapsed", "daily_tasks", today + timedelta(days=3))

    assert update.streak.consecutive_days == 1
    assert update.streak.longest_streak == 7
    assert [r.day for r in update.streak.rewards_received] == [7]


@pytest.mark.asyncio
async def test_seventh_day_milestone_paid_exactly_once(engine, store):
    today = date(2024, 5, 20)
    await store.save_streak(
        Streak(user_id="steady", type="daily_tasks", consecutive_days=6, longest_streak=6, last_activity=today - timedelta(days=1))
    )

    first = await engine.streaks.update_streak("steady", "daily_tasks", today)
    again = await engine.streaks.update_streak("steady", "daily_tasks", today)

    assert first.streak.consecutive_days == again.streak.consecutive_days == 7
    milestone_entries = [e for e in await store.get_point_entries("steady") if e.source == "streak_milestone"]
    assert len(milestone_entries) == 1
    assert milestone_entries[0].amount == 25


# ============================================================================
# Challenges
# ============================================================================

@pytest.mark.asyncio
async def test_team_progress_totals_and_ranks(engine, make_team_challenge):
    challenge = await make_team_challenge()
    updates = [("red", 3), ("blue", 4), ("green", 1), ("red", 2), ("green", 9), ("blue", 2)]

    for team_id, amount in updates:
        await engine.challenges.update_team_challenge_progress(challenge.id, team_id, "task_completed", amount)

    ranked = await engine.challenges.update_ranking(challenge.id)

    for progress in ranked:
        assert progress.total_progress == sum(p.current for p in progress.progress)
    assert [p.rank for p in ranked] == list(range(1, len(ranked) + 1))
    assert [p.team_id for p in ranked] == ["green", "blue", "red"]


@pytest.mark.asyncio
async def test_three_team_payout(engine, make_team_challenge):
    challenge = await make_team_challenge(points=100)
    for team_id, amount in [("first", 10), ("second", 7), ("third", 2)]:
        await engine.challenges.join_team_to_challenge(challenge.id, team_id)
        await engine.challenges.update_team_challenge_progress(challenge.id, team_id, "task_completed", amount)
        for n in range(2):
            await engine.challenges.add_team_member(team_id, f"{team_id}-{n}")

    assert await engine.challenges.distribute_rewards(challenge.id) is True
    assert await engine.challenges.distribute_rewards(challenge.id) is False

    expected = {"first": 50, "second": 35, "third": 25}
    for team_id, amount in expected.items():
        for n in range(2):
            assert await engine.points.get_total(f"{team_id}-{n}") == amount


# ============================================================================
# Full flow
# ============================================================================

@pytest.mark.asyncio
async def test_activity_to_redemption(engine, make_badge):
    await engine.points.save_points_config(GamificationConfig(action="task_completed", base_points=40))
    await make_badge("Busy bee", CriteriaType.COUNT, 3, description="task_completed: three tasks")
    mug = await engine.rewards.create_reward(Reward(name="Mug", cost=5, type=RewardType.REAL, category="merch", stock=1))

    for day in range(3):
        points = await engine.points.calculate_action_points("task_completed")
        await engine.points.award("worker", points, "task_completed", "Task", event_id=f"task-{day}")
        await engine.streaks.update_streak("worker", "daily_tasks", date(2024, 6, 1) + timedelta(days=day))

    # 3 x 40 + badge 10 + 3-day milestone 10
    total = await engine.points.get_total("worker")
    assert total == 140
    level = await engine.levels.get_level_progress("worker")
    assert level.current_level == 2

    conversion = await engine.currency.convert_points_to_currency("worker", total, rate=10)
    assert conversion.currency_earned == 14

    redemption = await engine.rewards.redeem_reward("worker", mug.id)
    assert redemption.cost == 5
    assert await engine.currency.get_balance("worker") == 9
