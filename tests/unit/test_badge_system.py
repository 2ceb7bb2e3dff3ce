"""Unit tests for automatic badge evaluation"""

import logging
import pytest
from unittest.mock import AsyncMock, patch

from gamify.exceptions import QueryError
from gamify.gamification.badge_system import (
    BADGE_RARITY_POINTS,
    criteria_source_tag,
    get_badge_points,
)
from gamify.models import (
    Badge,
    BadgeCriteria,
    BadgeRarity,
    CriteriaType,
    PointEntry,
    UserBadge,
)


# ============================================================================
# Helpers
# ============================================================================

def test_rarity_points():
    assert BADGE_RARITY_POINTS == {
        BadgeRarity.COMMON: 10,
        BadgeRarity.RARE: 50,
        BadgeRarity.EPIC: 150,
        BadgeRarity.LEGENDARY: 500,
    }
    assert get_badge_points(BadgeRarity.EPIC) == 150


def test_criteria_source_tag():
    with_tag = BadgeCriteria(type=CriteriaType.COUNT, value=5, description="task_completed: finish 5 tasks")
    without_tag = BadgeCriteria(type=CriteriaType.COMBO, value=5, description="")

    assert criteria_source_tag(with_tag, "report_submitted") == "task_completed"
    assert criteria_source_tag(without_tag, "report_submitted") == "report_submitted"
    assert criteria_source_tag(without_tag) is None


# ============================================================================
# Definitions
# ============================================================================

@pytest.mark.asyncio
async def test_create_badge_links_criteria(engine, store):
    criteria = BadgeCriteria(type=CriteriaType.THRESHOLD, value=100)
    badge = await engine.badges.create_badge(Badge(name="Centurion", category="points"), criteria)

    stored_criteria = await store.get_badge_criteria(badge.criteria_id)
    assert stored_criteria.badge_id == badge.id
    assert stored_criteria.value == 100


# ============================================================================
# Evaluation
# ============================================================================

@pytest.mark.asyncio
async def test_threshold_crossed_by_single_award(engine, store, make_badge, test_user_id):
    await store.add_point_entry(
        PointEntry(user_id=test_user_id, amount=480, source="import", description="Opening balance")
    )
    badge = await make_badge("Half a thousand", CriteriaType.THRESHOLD, 500, rarity=BadgeRarity.RARE)

    result = await engine.points.award(test_user_id, 40, "task_completed", "Task")

    assert [b.id for b in result.badges_earned] == [badge.id]
    assert await store.user_has_badge(test_user_id, badge.id)

    bonus = [e for e in await store.get_point_entries(test_user_id) if e.source == "badge_earned"]
    assert len(bonus) == 1
    assert bonus[0].amount == 50
    assert bonus[0].event_id == f"badge_earned:{badge.id}"
    assert await engine.points.get_total(test_user_id) == 570


@pytest.mark.asyncio
async def test_count_criteria_counts_matching_source(engine, make_badge, test_user_id):
    badge = await make_badge("Hat trick", CriteriaType.COUNT, 3, description="task_completed: three tasks")

    for _ in range(2):
        result = await engine.points.award(test_user_id, 1, "task_completed", "Task")
        assert result.badges_earned == []
    await engine.points.award(test_user_id, 1, "report_submitted", "Report")

    result = await engine.points.award(test_user_id, 1, "task_completed", "Task")

    assert [b.id for b in result.badges_earned] == [badge.id]


@pytest.mark.asyncio
async def test_combo_without_tag_counts_triggering_source(engine, make_badge, test_user_id):
    badge = await make_badge("Double", CriteriaType.COMBO, 2)

    await engine.points.award(test_user_id, 1, "task_completed", "Task")
    mixed = await engine.points.award(test_user_id, 1, "report_submitted", "Report")
    assert mixed.badges_earned == []

    result = await engine.points.award(test_user_id, 1, "report_submitted", "Report")
    assert [b.id for b in result.badges_earned] == [badge.id]


@pytest.mark.asyncio
async def test_badge_granted_once(engine, store, make_badge, test_user_id):
    badge = await make_badge("Starter", CriteriaType.THRESHOLD, 10)

    await engine.points.award(test_user_id, 10, "task_completed", "Task")
    second = await engine.points.award(test_user_id, 10, "task_completed", "Task")

    assert second.badges_earned == []
    held = await engine.badges.get_user_badges(test_user_id)
    assert [ub.badge_id for ub in held] == [badge.id]


@pytest.mark.asyncio
async def test_progress_is_tracked_per_user(engine, make_badge):
    badge = await make_badge("Hat trick", CriteriaType.COUNT, 3, description="task_completed: three tasks")

    await engine.points.award("user-a", 1, "task_completed", "Task")
    await engine.points.award("user-a", 1, "task_completed", "Task")
    await engine.points.award("user-b", 1, "task_completed", "Task")

    progress_a = {p.badge_id: p for p in await engine.badges.get_badge_progress("user-a")}
    progress_b = {p.badge_id: p for p in await engine.badges.get_badge_progress("user-b")}

    assert progress_a[badge.id].current == 2
    assert progress_a[badge.id].target == 3
    assert progress_a[badge.id].percentage == 66
    assert progress_b[badge.id].current == 1


@pytest.mark.asyncio
async def test_shared_criteria_progress_keeps_last_write(engine, store, make_badge):
    badge = await make_badge("Hat trick", CriteriaType.COUNT, 3, description="task_completed: three tasks")

    await engine.points.award("user-a", 1, "task_completed", "Task")
    await engine.points.award("user-a", 1, "task_completed", "Task")
    await engine.points.award("user-b", 1, "task_completed", "Task")

    criteria = await store.get_badge_criteria(badge.criteria_id)
    assert criteria.current_progress == 1


@pytest.mark.asyncio
async def test_progress_hides_earned_badges(engine, make_badge, test_user_id):
    earned = await make_badge("Starter", CriteriaType.THRESHOLD, 10)
    pending = await make_badge("Big", CriteriaType.THRESHOLD, 10_000)

    await engine.points.award(test_user_id, 10, "task_completed", "Task")

    progress_ids = {p.badge_id for p in await engine.badges.get_badge_progress(test_user_id)}
    assert pending.id in progress_ids
    assert earned.id not in progress_ids


@pytest.mark.asyncio
async def test_social_badges_are_not_auto_granted(engine, store, test_user_id):
    await engine.badges.create_badge(
        Badge(name="Helper", category="social", social_badge=True),
        BadgeCriteria(type=CriteriaType.THRESHOLD, value=1),
    )

    result = await engine.points.award(test_user_id, 10, "task_completed", "Task")

    assert result.badges_earned == []
    assert await store.get_user_badges(test_user_id) == []


@pytest.mark.asyncio
async def test_missing_criteria_is_skipped_with_warning(engine, store, test_user_id, caplog):
    await store.save_badge(Badge(name="Broken", category="general", criteria_id="missing"))

    with caplog.at_level(logging.WARNING, logger="gamify.gamification.badge_system"):
        result = await engine.points.award(test_user_id, 10, "task_completed", "Task")

    assert result.badges_earned == []
    assert "missing criteria" in caplog.text


@pytest.mark.asyncio
async def test_badge_earned_metric(engine, make_badge, test_user_id):
    await make_badge("Starter", CriteriaType.THRESHOLD, 10, rarity=BadgeRarity.EPIC)

    with patch("gamify.gamification.badge_system.track_badge_earned") as mock_track:
        await engine.points.award(test_user_id, 10, "task_completed", "Task")

    mock_track.assert_called_once_with("epic")


# ============================================================================
# Races and partial failure
# ============================================================================

@pytest.mark.asyncio
async def test_losing_the_insert_race_pays_no_bonus(engine, store, make_badge, test_user_id):
    badge = await make_badge("Starter", CriteriaType.THRESHOLD, 10)
    await store.add_point_entry(
        PointEntry(user_id=test_user_id, amount=10, source="task_completed", description="Task")
    )
    # Another evaluation inserted the badge after our existence check
    await store.insert_user_badge(UserBadge(user_id=test_user_id, badge_id=badge.id))

    with patch.object(store, "user_has_badge", AsyncMock(return_value=False)):
        earned = await engine.badges.check_badges(test_user_id, source="task_completed")

    assert earned == []
    assert await engine.points.get_total(test_user_id) == 10
    assert len(await store.get_user_badges(test_user_id)) == 1


@pytest.mark.asyncio
async def test_failed_bonus_leaves_badge_without_points(engine, store, make_badge, test_user_id):
    badge = await make_badge("Starter", CriteriaType.THRESHOLD, 10)
    original_add = store.add_point_entry

    async def fail_bonus(entry):
        if entry.source == "badge_earned":
            raise QueryError("insert into point_entries failed", query="INSERT INTO point_entries")
        return await original_add(entry)

    with patch.object(store, "add_point_entry", side_effect=fail_bonus):
        with pytest.raises(QueryError):
            await engine.points.award(test_user_id, 10, "task_completed", "Task")

    # The triggering entry and the badge stay; the bonus is missing
    assert await store.user_has_badge(test_user_id, badge.id)
    assert await engine.points.get_total(test_user_id) == 10

    # Later awards skip the held badge, so the bonus is never paid
    await engine.points.award(test_user_id, 1, "task_completed", "Task")
    assert await engine.points.get_total(test_user_id) == 11
