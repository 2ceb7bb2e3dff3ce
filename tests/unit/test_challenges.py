"""Unit tests for challenge progress, ranking and reward distribution"""

import pytest
from unittest.mock import patch

from gamify.exceptions import RecordNotFoundError, ValidationError
from gamify.gamification.challenges import apply_objective_progress, get_reward_multiplier
from gamify.models import (
    Badge,
    Challenge,
    ChallengeObjective,
    ChallengeRewards,
    ChallengeStatus,
    ChallengeTeamProgress,
)


async def add_members(engine, team_id, *user_ids):
    for user_id in user_ids:
        await engine.challenges.add_team_member(team_id, user_id)


# ============================================================================
# Pure helpers
# ============================================================================

@pytest.mark.parametrize("position,total,expected", [
    (1, 8, 1.0),
    (2, 8, 0.7),
    (3, 8, 0.5),
    (4, 8, 0.3),
    (5, 8, 0.1),
    (4, 7, 0.3),
    (5, 7, 0.1),
])
def test_reward_multiplier(position, total, expected):
    assert get_reward_multiplier(position, total) == expected


def test_apply_objective_progress_caps_and_completes():
    challenge = Challenge(
        title="Mixed",
        objectives=[
            ChallengeObjective(type="task_completed", target=3),
            ChallengeObjective(type="report_submitted", target=2),
        ],
        team_based=True,
    )
    progress = ChallengeTeamProgress.for_challenge(challenge, team_id="team-a")

    progress = apply_objective_progress(challenge, progress, "task_completed", 5)
    assert [p.current for p in progress.progress] == [3, 0]
    assert progress.progress[0].completed is True
    assert progress.total_progress == 3
    assert progress.completed is False
    assert progress.completed_at is None

    progress = apply_objective_progress(challenge, progress, "report_submitted", 2)
    assert progress.completed is True
    assert progress.total_progress == 5
    finished_at = progress.completed_at
    assert finished_at is not None

    progress = apply_objective_progress(challenge, progress, "report_submitted", 1)
    assert progress.completed_at == finished_at
    assert progress.total_progress == sum(p.current for p in progress.progress)


def test_unmatched_objective_type_changes_nothing():
    challenge = Challenge(title="Tasks", objectives=[ChallengeObjective(type="task_completed", target=3)])
    progress = ChallengeTeamProgress.for_challenge(challenge, team_id="team-a")

    progress = apply_objective_progress(challenge, progress, "report_submitted", 2)

    assert progress.total_progress == 0


# ============================================================================
# Definitions and participation
# ============================================================================

@pytest.mark.asyncio
async def test_challenge_needs_objectives(engine):
    with pytest.raises(ValidationError):
        await engine.challenges.create_challenge(Challenge(title="Empty", objectives=[]))


@pytest.mark.asyncio
async def test_set_challenge_status(engine, make_team_challenge):
    challenge = await make_team_challenge()

    updated = await engine.challenges.set_challenge_status(challenge.id, ChallengeStatus.ACTIVE)

    assert updated.status == ChallengeStatus.ACTIVE


@pytest.mark.asyncio
async def test_join_team_is_idempotent(engine, store, make_team_challenge):
    challenge = await make_team_challenge()

    first = await engine.challenges.join_team_to_challenge(challenge.id, "team-a")
    second = await engine.challenges.join_team_to_challenge(challenge.id, "team-a")

    assert first.version == second.version
    assert len(first.progress) == 1
    stored = await store.get_challenge(challenge.id)
    assert stored.participating_teams == ["team-a"]


@pytest.mark.asyncio
async def test_team_cannot_join_individual_challenge(engine):
    challenge = await engine.challenges.create_challenge(
        Challenge(title="Solo", objectives=[ChallengeObjective(type="task_completed", target=1)])
    )

    with pytest.raises(ValidationError):
        await engine.challenges.join_team_to_challenge(challenge.id, "team-a")


@pytest.mark.asyncio
async def test_user_cannot_join_team_challenge(engine, make_team_challenge):
    challenge = await make_team_challenge()

    with pytest.raises(ValidationError):
        await engine.challenges.join_challenge(challenge.id, "user-1")


# ============================================================================
# Progress and ranking
# ============================================================================

@pytest.mark.asyncio
async def test_update_unknown_challenge(engine):
    with pytest.raises(RecordNotFoundError):
        await engine.challenges.update_team_challenge_progress("missing", "team-a", "task_completed", 1)


@pytest.mark.asyncio
async def test_team_update_on_individual_challenge_is_ignored(engine):
    challenge = await engine.challenges.create_challenge(
        Challenge(title="Solo", objectives=[ChallengeObjective(type="task_completed", target=1)])
    )

    result = await engine.challenges.update_team_challenge_progress(challenge.id, "team-a", "task_completed", 1)

    assert result is None


@pytest.mark.asyncio
async def test_team_progress_is_created_on_first_update(engine, make_team_challenge):
    challenge = await make_team_challenge()

    progress = await engine.challenges.update_team_challenge_progress(challenge.id, "team-a", "task_completed", 4)

    assert progress.total_progress == 4
    assert progress.rank == 1
    assert progress.completed is False


@pytest.mark.asyncio
async def test_ranking_by_progress(engine, make_team_challenge):
    challenge = await make_team_challenge()

    await engine.challenges.update_team_challenge_progress(challenge.id, "team-a", "task_completed", 3)
    await engine.challenges.update_team_challenge_progress(challenge.id, "team-b", "task_completed", 7)
    await engine.challenges.update_team_challenge_progress(challenge.id, "team-c", "task_completed", 5)

    ranked = await engine.challenges.update_ranking(challenge.id)

    assert [(p.team_id, p.rank) for p in ranked] == [("team-b", 1), ("team-c", 2), ("team-a", 3)]
    leaderboard = await engine.challenges.get_team_leaderboard(challenge.id)
    assert [p.team_id for p in leaderboard] == ["team-b", "team-c", "team-a"]


@pytest.mark.asyncio
async def test_earliest_finisher_wins_a_tie(engine, make_team_challenge):
    challenge = await make_team_challenge()

    await engine.challenges.update_team_challenge_progress(challenge.id, "team-a", "task_completed", 10)
    await engine.challenges.update_team_challenge_progress(challenge.id, "team-b", "task_completed", 10)

    ranked = await engine.challenges.update_ranking(challenge.id)

    assert [p.team_id for p in ranked] == ["team-a", "team-b"]
    assert [p.rank for p in ranked] == [1, 2]


@pytest.mark.asyncio
async def test_ranking_is_stable_for_a_snapshot(engine, make_team_challenge):
    challenge = await make_team_challenge()
    for team_id, amount in [("team-a", 2), ("team-b", 2), ("team-c", 9)]:
        await engine.challenges.update_team_challenge_progress(challenge.id, team_id, "task_completed", amount)

    first = [(p.team_id, p.rank) for p in await engine.challenges.update_ranking(challenge.id)]
    second = [(p.team_id, p.rank) for p in await engine.challenges.update_ranking(challenge.id)]

    assert first == second
    assert [rank for _, rank in first] == [1, 2, 3]


@pytest.mark.asyncio
async def test_user_progress_in_individual_challenge(engine):
    challenge = await engine.challenges.create_challenge(
        Challenge(title="Solo", objectives=[ChallengeObjective(type="task_completed", target=2)])
    )
    await engine.challenges.join_challenge(challenge.id, "user-1")

    await engine.challenges.update_user_challenge_progress(challenge.id, "user-1", "task_completed", 1)
    progress = await engine.challenges.update_user_challenge_progress(challenge.id, "user-1", "task_completed", 1)

    assert progress.completed is True
    assert progress.completed_at is not None


# ============================================================================
# Reward distribution
# ============================================================================

@pytest.mark.asyncio
async def test_team_rewards_scaled_by_rank(engine, make_team_challenge):
    challenge = await make_team_challenge(points=100, currency=30)
    for team_id, amount in [("team-a", 10), ("team-b", 6), ("team-c", 3)]:
        await engine.challenges.join_team_to_challenge(challenge.id, team_id)
        await engine.challenges.update_team_challenge_progress(challenge.id, team_id, "task_completed", amount)
    await add_members(engine, "team-a", "a1", "a2")
    await add_members(engine, "team-b", "b1", "b2")
    await add_members(engine, "team-c", "c1", "c2")

    assert await engine.challenges.distribute_rewards(challenge.id) is True

    totals = {u: await engine.points.get_total(u) for u in ["a1", "a2", "b1", "b2", "c1", "c2"]}
    assert totals == {"a1": 50, "a2": 50, "b1": 35, "b2": 35, "c1": 25, "c2": 25}

    balances = {u: await engine.currency.get_balance(u) for u in ["a1", "b1", "c1"]}
    # 15, 10.5 and 7.5 rounded half-up
    assert balances == {"a1": 15, "b1": 11, "c1": 8}


@pytest.mark.asyncio
async def test_second_distribution_is_noop(engine, store, make_team_challenge):
    challenge = await make_team_challenge(points=100)
    await engine.challenges.update_team_challenge_progress(challenge.id, "team-a", "task_completed", 10)
    await add_members(engine, "team-a", "a1")

    assert await engine.challenges.distribute_rewards(challenge.id) is True
    assert await engine.challenges.distribute_rewards(challenge.id) is False

    assert await engine.points.get_total("a1") == 100
    assert (await store.get_challenge(challenge.id)).rewards_distributed is True


@pytest.mark.asyncio
async def test_team_without_active_members_is_skipped(engine, make_team_challenge):
    challenge = await make_team_challenge(points=100)
    await engine.challenges.update_team_challenge_progress(challenge.id, "team-a", "task_completed", 10)
    await engine.challenges.update_team_challenge_progress(challenge.id, "team-b", "task_completed", 5)
    await engine.challenges.add_team_member("team-a", "gone", active=False)
    await add_members(engine, "team-b", "b1")

    assert await engine.challenges.distribute_rewards(challenge.id) is True

    assert await engine.points.get_total("gone") == 0
    assert await engine.points.get_total("b1") == 70


@pytest.mark.asyncio
async def test_rerun_after_partial_payout_pays_nobody_twice(engine, store, make_team_challenge):
    challenge = await make_team_challenge(points=100)
    await engine.challenges.update_team_challenge_progress(challenge.id, "team-a", "task_completed", 10)
    await add_members(engine, "team-a", "a1", "a2")
    # a1 was paid by a run that failed before marking the challenge
    await engine.points.award(
        "a1", 50, "challenge_reward", "Reward",
        event_id=f"challenge:{challenge.id}:team:team-a:user:a1:points",
    )

    assert await engine.challenges.distribute_rewards(challenge.id) is True

    assert await engine.points.get_total("a1") == 50
    assert await engine.points.get_total("a2") == 50


@pytest.mark.asyncio
async def test_reward_badges_are_granted(engine, store, make_team_challenge):
    badge = await engine.badges.create_badge(Badge(name="Sprint winner", category="challenge"))
    challenge = await make_team_challenge(points=0, badges=[badge.id])
    await engine.challenges.update_team_challenge_progress(challenge.id, "team-a", "task_completed", 10)
    await add_members(engine, "team-a", "a1")

    await engine.challenges.distribute_rewards(challenge.id)

    assert await store.user_has_badge("a1", badge.id)
    assert await engine.points.get_total("a1") == 0


@pytest.mark.asyncio
async def test_individual_rewards_only_for_completed(engine):
    challenge = await engine.challenges.create_challenge(
        Challenge(
            title="Solo",
            objectives=[ChallengeObjective(type="task_completed", target=2)],
            rewards=ChallengeRewards(points=40, currency=5),
        )
    )
    for user_id in ["done", "halfway"]:
        await engine.challenges.join_challenge(challenge.id, user_id)
    await engine.challenges.update_user_challenge_progress(challenge.id, "done", "task_completed", 2)
    await engine.challenges.update_user_challenge_progress(challenge.id, "halfway", "task_completed", 1)

    assert await engine.challenges.distribute_rewards(challenge.id) is True

    assert await engine.points.get_total("done") == 40
    assert await engine.currency.get_balance("done") == 5
    assert await engine.points.get_total("halfway") == 0


@pytest.mark.asyncio
async def test_distribution_metric(engine, make_team_challenge):
    challenge = await make_team_challenge(points=10)

    with patch("gamify.gamification.challenges.track_challenge_distribution") as mock_track:
        await engine.challenges.distribute_rewards(challenge.id)

    mock_track.assert_called_once_with(True)
