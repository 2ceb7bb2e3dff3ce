"""Unit tests for the points ledger and the award cascade"""

import pytest
from datetime import datetime, timedelta
from unittest.mock import patch

from gamify import config
from gamify.gamification.points_ledger import PointsLedger
from gamify.models import CriteriaType, GamificationConfig, PointEntry
from gamify.utils.datetime_helpers import UTC, now_utc


# ============================================================================
# Totals and idempotency
# ============================================================================

@pytest.mark.asyncio
async def test_total_is_sum_of_all_entries(engine, test_user_id):
    await engine.points.award(test_user_id, 30, "task_completed", "Task")
    await engine.points.award(test_user_id, 20, "report_submitted", "Report")
    await engine.points.award(test_user_id, -5, "correction", "Manual correction")

    assert await engine.points.get_total(test_user_id) == 45
    assert await engine.points.get_total("someone-else") == 0


@pytest.mark.asyncio
async def test_award_returns_stored_entry(engine, test_user_id):
    result = await engine.points.award(
        test_user_id, 10, "task_completed", "Task", metadata={"task_id": "t-1"}
    )

    assert result.duplicate is False
    assert result.entry.amount == 10
    assert result.entry.source == "task_completed"
    assert result.entry.metadata == {"task_id": "t-1"}
    assert result.entry.audited is False


@pytest.mark.asyncio
async def test_repeated_event_id_is_not_reapplied(engine, test_user_id):
    first = await engine.points.award(test_user_id, 10, "task_completed", "Task", event_id="evt-1")
    second = await engine.points.award(test_user_id, 10, "task_completed", "Task", event_id="evt-1")

    assert first.duplicate is False
    assert second.duplicate is True
    assert second.entry.id == first.entry.id
    assert await engine.points.get_total(test_user_id) == 10


@pytest.mark.asyncio
async def test_same_event_id_for_different_users_is_independent(engine):
    await engine.points.award("user-a", 10, "task_completed", "Task", event_id="evt-1")
    result = await engine.points.award("user-b", 10, "task_completed", "Task", event_id="evt-1")

    assert result.duplicate is False
    assert await engine.points.get_total("user-b") == 10


@pytest.mark.asyncio
async def test_award_tracks_metric(engine, test_user_id):
    with patch("gamify.gamification.points_ledger.track_points_awarded") as mock_track:
        await engine.points.award(test_user_id, 10, "task_completed", "Task")

    mock_track.assert_called_once_with("task_completed", 10)


# ============================================================================
# History and periods
# ============================================================================

@pytest.mark.asyncio
async def test_history_is_newest_first_and_limited(engine, store, test_user_id):
    base = datetime(2024, 3, 1, 12, 0, tzinfo=UTC)
    for i in range(5):
        await store.add_point_entry(
            PointEntry(
                user_id=test_user_id,
                amount=i + 1,
                source="task_completed",
                description=f"Task {i}",
                timestamp=base + timedelta(hours=i),
            )
        )

    history = await engine.points.get_points_history(test_user_id, limit=3)

    assert [e.amount for e in history] == [5, 4, 3]


@pytest.mark.asyncio
async def test_total_for_period(engine, store, test_user_id):
    await store.add_point_entry(
        PointEntry(
            user_id=test_user_id, amount=10, source="a", description="old",
            timestamp=datetime(2024, 1, 10, tzinfo=UTC),
        )
    )
    await store.add_point_entry(
        PointEntry(
            user_id=test_user_id, amount=25, source="a", description="recent",
            timestamp=datetime(2024, 2, 10, tzinfo=UTC),
        )
    )

    february = await engine.points.get_total_for_period(
        test_user_id, datetime(2024, 2, 1, tzinfo=UTC), datetime(2024, 2, 29, tzinfo=UTC)
    )

    assert february == 25
    assert await engine.points.get_total(test_user_id) == 35


# ============================================================================
# Points configuration
# ============================================================================

@pytest.mark.asyncio
async def test_department_config_wins_over_global(engine):
    await engine.points.save_points_config(GamificationConfig(action="task_completed", base_points=10))
    await engine.points.save_points_config(
        GamificationConfig(department="sales", action="task_completed", base_points=20)
    )

    assert await engine.points.get_points_config("task_completed", "sales") == 20
    assert await engine.points.get_points_config("task_completed", "support") == 10
    assert await engine.points.get_points_config("task_completed") == 10


@pytest.mark.asyncio
async def test_inactive_department_config_falls_back_to_global(engine):
    await engine.points.save_points_config(GamificationConfig(action="task_completed", base_points=10))
    await engine.points.save_points_config(
        GamificationConfig(department="sales", action="task_completed", base_points=20, active=False)
    )

    assert await engine.points.get_points_config("task_completed", "sales") == 10


@pytest.mark.asyncio
async def test_unknown_action_is_worth_zero(engine):
    assert await engine.points.get_points_config("never_configured", "sales") == 0


@pytest.mark.asyncio
async def test_calculate_action_points_applies_multipliers(engine):
    await engine.points.save_points_config(
        GamificationConfig(
            action="task_completed",
            base_points=10,
            multipliers={"urgent": 1.5, "weekend": 0.75},
        )
    )

    assert await engine.points.calculate_action_points("task_completed") == 10
    assert await engine.points.calculate_action_points("task_completed", modifiers=["urgent"]) == 15
    # 10 * 1.5 * 0.75 = 11.25
    assert await engine.points.calculate_action_points(
        "task_completed", modifiers=["urgent", "weekend"]
    ) == 11
    assert await engine.points.calculate_action_points("task_completed", modifiers=["unknown"]) == 10


@pytest.mark.asyncio
async def test_calculate_action_points_rounds_half_up(engine):
    await engine.points.save_points_config(
        GamificationConfig(action="report_submitted", base_points=5, multipliers={"urgent": 1.5})
    )

    # 7.5 -> 8
    assert await engine.points.calculate_action_points("report_submitted", modifiers=["urgent"]) == 8


@pytest.mark.asyncio
async def test_calculate_action_points_uses_department_multipliers(engine):
    await engine.points.save_points_config(
        GamificationConfig(action="task_completed", base_points=10, multipliers={"urgent": 2.0})
    )
    await engine.points.save_points_config(
        GamificationConfig(department="sales", action="task_completed", base_points=10, multipliers={"urgent": 3.0})
    )

    assert await engine.points.calculate_action_points("task_completed", "sales", ["urgent"]) == 30
    assert await engine.points.calculate_action_points("task_completed", "support", ["urgent"]) == 20


# ============================================================================
# Cascade
# ============================================================================

@pytest.mark.asyncio
async def test_award_grants_badges_in_same_call(engine, make_badge, test_user_id):
    badge = await make_badge("First steps", CriteriaType.THRESHOLD, 10)

    result = await engine.points.award(test_user_id, 10, "task_completed", "Task")

    assert [b.id for b in result.badges_earned] == [badge.id]
    # 10 points plus the common badge bonus
    assert await engine.points.get_total(test_user_id) == 20


@pytest.mark.asyncio
async def test_nested_badges_are_reported_by_outer_award(engine, make_badge, test_user_id):
    collector = await make_badge("Collector", CriteriaType.COUNT, 1, description="badge_earned: earn any badge")
    starter = await make_badge("Starter", CriteriaType.THRESHOLD, 10)

    result = await engine.points.award(test_user_id, 10, "task_completed", "Task")

    assert {b.id for b in result.badges_earned} == {starter.id, collector.id}
    # 10 + two common bonuses
    assert await engine.points.get_total(test_user_id) == 30


@pytest.mark.asyncio
async def test_cascade_stops_at_max_depth(engine, make_badge, monkeypatch, test_user_id):
    monkeypatch.setattr(config, "MAX_CASCADE_DEPTH", 1)
    collector = await make_badge("Collector", CriteriaType.COUNT, 1, description="badge_earned: earn any badge")
    starter = await make_badge("Starter", CriteriaType.THRESHOLD, 10)

    result = await engine.points.award(test_user_id, 10, "task_completed", "Task")

    # The starter bonus was written, but evaluation below depth 1 was skipped
    assert [b.id for b in result.badges_earned] == [starter.id]
    assert await engine.points.get_total(test_user_id) == 20
    assert not await engine.store.user_has_badge(test_user_id, collector.id)

    # The next top-level award picks the skipped badge up
    follow_up = await engine.points.award(test_user_id, 1, "task_completed", "Task")
    assert [b.id for b in follow_up.badges_earned] == [collector.id]


@pytest.mark.asyncio
async def test_award_at_max_depth_is_flagged(engine, make_badge, monkeypatch, test_user_id):
    monkeypatch.setattr(config, "MAX_CASCADE_DEPTH", 2)
    await make_badge("Starter", CriteriaType.THRESHOLD, 10)

    result = await engine.points.award(test_user_id, 10, "task_completed", "Task", cascade_depth=2)

    assert result.cascade_skipped is True
    assert result.badges_earned == []
    assert await engine.points.get_total(test_user_id) == 10


@pytest.mark.asyncio
async def test_level_up_detected_once(engine, test_user_id):
    result = await engine.points.award(test_user_id, 110, "task_completed", "Big task")

    assert result.level_up is not None
    assert result.level_up.old_level == 1
    assert result.level_up.new_level == 2

    again = await engine.points.award(test_user_id, 10, "task_completed", "Task")
    assert again.level_up is None


@pytest.mark.asyncio
async def test_small_award_does_not_level_up(engine, test_user_id):
    result = await engine.points.award(test_user_id, 50, "task_completed", "Task")

    assert result.level_up is None


# ============================================================================
# Derived total cache
# ============================================================================

@pytest.mark.asyncio
async def test_cached_total_is_invalidated_by_award(store, test_user_id):
    ledger = PointsLedger(store, total_cache_ttl=60)

    assert await ledger.get_total_cached(test_user_id) == 0
    await ledger.award(test_user_id, 15, "task_completed", "Task")

    assert await ledger.get_total_cached(test_user_id) == 15


@pytest.mark.asyncio
async def test_cached_total_lags_writes_that_bypass_the_ledger(store, test_user_id):
    ledger = PointsLedger(store, total_cache_ttl=60)
    await ledger.award(test_user_id, 15, "task_completed", "Task")
    assert await ledger.get_total_cached(test_user_id) == 15

    await store.add_point_entry(
        PointEntry(user_id=test_user_id, amount=5, source="import", description="Backfill", timestamp=now_utc())
    )

    assert await ledger.get_total_cached(test_user_id) == 15
    assert await ledger.get_total(test_user_id) == 20
