"""
Challenge / Team Progress & Ranking Engine

Tracks objective progress per team (team challenges) or per user
(individual challenges), ranks teams, and pays out challenge rewards once.

Progress rules for every objective whose type matches the event:
    current = min(current + amount, target); completed = current >= target
and for the whole record:
    total_progress = sum(current); completed = all(objectives completed)
    completed_at is set the first time completed becomes true

Team reward multipliers by rank:
    1 -> 1.0, 2 -> 0.7, 3 -> 0.5, within top half -> 0.3, otherwise 0.1
"""

from typing import Dict, List, Optional, TYPE_CHECKING, TypeVar
import logging
import math

from gamify.db.store import GamificationStore
from gamify.exceptions import ConcurrencyError, RecordNotFoundError, ValidationError
from gamify.models import (
    Challenge,
    ChallengeProgress,
    ChallengeStatus,
    ChallengeTeamProgress,
    TeamMember,
    TransactionType,
    UserBadge,
)
from gamify.models.challenge import ObjectiveProgress
from gamify.monitoring import track_challenge_distribution
from gamify.resilience import retry_on_conflict
from gamify.utils.datetime_helpers import now_utc
from gamify.utils.locks import KeyedLock
from gamify.utils.numbers import round_half_up

if TYPE_CHECKING:
    from gamify.gamification.currency_system import CurrencyLedger
    from gamify.gamification.points_ledger import PointsLedger

logger = logging.getLogger(__name__)

CHALLENGE_REWARD_SOURCE = "challenge_reward"

P = TypeVar("P", ChallengeTeamProgress, ChallengeProgress)


def get_reward_multiplier(position: int, total_teams: int) -> float:
    if position == 1:
        return 1.0
    if position == 2:
        return 0.7
    if position == 3:
        return 0.5
    if position <= math.ceil(total_teams * 0.5):
        return 0.3
    return 0.1


def apply_objective_progress(challenge: Challenge, progress: P, objective_type: str, amount: int) -> P:
    """Advance matching objectives and recompute the aggregate fields (pure)"""
    by_index = {p.objective_index: p for p in progress.progress}
    items: List[ObjectiveProgress] = []

    for i, objective in enumerate(challenge.objectives):
        item = by_index.get(i) or ObjectiveProgress(objective_index=i)
        if objective.type == objective_type:
            current = min(item.current + amount, objective.target)
            item = ObjectiveProgress(
                objective_index=i,
                current=current,
                completed=current >= objective.target,
            )
        items.append(item)

    completed = bool(items) and all(item.completed for item in items)
    completed_at = progress.completed_at
    if completed and completed_at is None:
        completed_at = now_utc()

    return progress.model_copy(update={
        "progress": items,
        "total_progress": sum(item.current for item in items),
        "completed": completed,
        "completed_at": completed_at,
    })


def _ranking_key(progress: ChallengeTeamProgress):
    # Highest progress first; among equals the earliest finisher, unfinished last
    finished = progress.completed_at
    return (
        -progress.total_progress,
        finished is None,
        finished or progress.created_at,
        progress.created_at,
        progress.team_id,
    )


class ChallengeEngine:
    def __init__(
        self,
        store: GamificationStore,
        ledger: "PointsLedger",
        currency: "CurrencyLedger"
    ):
        self.store = store
        self.ledger = ledger
        self.currency = currency
        self._progress_locks = KeyedLock("challenge_progress")
        self._challenge_locks = KeyedLock("challenge")

    # ==========================================
    # Definitions and participation
    # ==========================================

    async def create_challenge(self, challenge: Challenge) -> Challenge:
        if not challenge.objectives:
            raise ValidationError("A challenge needs at least one objective", field="objectives")
        saved = await self.store.save_challenge(challenge)
        logger.info(f"Created challenge '{saved.title}' (team_based={saved.team_based})")
        return saved

    async def _get_challenge(self, challenge_id: str, operation: str) -> Challenge:
        challenge = await self.store.get_challenge(challenge_id)
        if challenge is None:
            raise RecordNotFoundError(
                f"Challenge {challenge_id} not found",
                record_type="challenge",
                record_id=challenge_id,
                operation=operation,
            )
        return challenge

    async def set_challenge_status(self, challenge_id: str, status: ChallengeStatus) -> Challenge:
        async with self._challenge_locks.hold(challenge_id):
            challenge = await self._get_challenge(challenge_id, "set_challenge_status")
            challenge.status = ChallengeStatus(status)
            saved = await self.store.save_challenge(challenge)
        logger.info(f"Challenge {challenge_id} is now {saved.status.value}")
        return saved

    async def join_team_to_challenge(self, challenge_id: str, team_id: str) -> ChallengeTeamProgress:
        """
        Add a team to a team challenge with zeroed progress (idempotent)

        Raises:
            RecordNotFoundError: unknown challenge
            ValidationError: challenge is not team based
        """
        async with self._challenge_locks.hold(challenge_id):
            challenge = await self._get_challenge(challenge_id, "join_team_to_challenge")
            if not challenge.team_based:
                raise ValidationError(
                    f"Challenge {challenge_id} is not team based",
                    field="challenge_id",
                    value=challenge_id,
                    operation="join_team_to_challenge",
                )
            if team_id not in challenge.participating_teams:
                challenge.participating_teams.append(team_id)
                await self.store.save_challenge(challenge)
                logger.info(f"Team {team_id} joined challenge {challenge_id}")

        existing = await self.store.get_team_progress(challenge_id, team_id)
        if existing is not None:
            return existing
        return await self._create_progress(
            ChallengeTeamProgress.for_challenge(challenge, team_id=team_id),
            lambda: self.store.get_team_progress(challenge_id, team_id),
            self.store.save_team_progress,
        )

    async def join_challenge(self, challenge_id: str, user_id: str) -> ChallengeProgress:
        """
        Add a user to an individual challenge with zeroed progress (idempotent)

        Raises:
            RecordNotFoundError: unknown challenge
            ValidationError: challenge is team based
        """
        async with self._challenge_locks.hold(challenge_id):
            challenge = await self._get_challenge(challenge_id, "join_challenge")
            if challenge.team_based:
                raise ValidationError(
                    f"Challenge {challenge_id} is team based; join through a team",
                    field="challenge_id",
                    value=challenge_id,
                    user_id=user_id,
                    operation="join_challenge",
                )
            if user_id not in challenge.participants:
                challenge.participants.append(user_id)
                await self.store.save_challenge(challenge)
                logger.info(f"User {user_id} joined challenge {challenge_id}")

        existing = await self.store.get_user_progress(challenge_id, user_id)
        if existing is not None:
            return existing
        return await self._create_progress(
            ChallengeProgress.for_challenge(challenge, user_id=user_id),
            lambda: self.store.get_user_progress(challenge_id, user_id),
            self.store.save_user_progress,
        )

    async def _create_progress(self, fresh, reload, save):
        try:
            return await save(fresh)
        except ConcurrencyError:
            # Created concurrently by another writer
            return await reload()

    async def add_team_member(self, team_id: str, user_id: str, active: bool = True) -> TeamMember:
        return await self.store.save_team_member(TeamMember(team_id=team_id, user_id=user_id, active=active))

    # ==========================================
    # Progress
    # ==========================================

    async def update_team_challenge_progress(
        self,
        challenge_id: str,
        team_id: str,
        objective_type: str,
        amount: int
    ) -> Optional[ChallengeTeamProgress]:
        """
        Advance a team's objectives of objective_type by amount, then re-rank

        Returns:
            The stored progress, or None when the challenge is not team based

        Raises:
            RecordNotFoundError: unknown challenge
        """
        challenge = await self._get_challenge(challenge_id, "update_team_challenge_progress")
        if not challenge.team_based:
            logger.info(f"Challenge {challenge_id} is not team based, team progress ignored")
            return None

        async def _apply() -> ChallengeTeamProgress:
            progress = await self.store.get_team_progress(challenge_id, team_id)
            if progress is None:
                progress = ChallengeTeamProgress.for_challenge(challenge, team_id=team_id)
            changed = apply_objective_progress(challenge, progress, objective_type, amount)
            return await self.store.save_team_progress(changed)

        async with self._progress_locks.hold((challenge_id, "team", team_id)):
            saved = await retry_on_conflict(_apply)

        logger.info(
            f"Team {team_id} progress in challenge {challenge_id}: "
            f"{saved.total_progress} (completed={saved.completed})"
        )
        await self.update_ranking(challenge_id)
        return await self.store.get_team_progress(challenge_id, team_id)

    async def update_user_challenge_progress(
        self,
        challenge_id: str,
        user_id: str,
        objective_type: str,
        amount: int
    ) -> Optional[ChallengeProgress]:
        """Per-user counterpart of update_team_challenge_progress (individual challenges)"""
        challenge = await self._get_challenge(challenge_id, "update_user_challenge_progress")
        if challenge.team_based:
            logger.info(f"Challenge {challenge_id} is team based, user progress ignored")
            return None

        async def _apply() -> ChallengeProgress:
            progress = await self.store.get_user_progress(challenge_id, user_id)
            if progress is None:
                progress = ChallengeProgress.for_challenge(challenge, user_id=user_id)
            changed = apply_objective_progress(challenge, progress, objective_type, amount)
            return await self.store.save_user_progress(changed)

        async with self._progress_locks.hold((challenge_id, "user", user_id)):
            saved = await retry_on_conflict(_apply)

        logger.info(
            f"User {user_id} progress in challenge {challenge_id}: "
            f"{saved.total_progress} (completed={saved.completed})"
        )
        return saved

    async def update_ranking(self, challenge_id: str) -> List[ChallengeTeamProgress]:
        """
        Assign ranks 1..n by (total_progress desc, completed_at asc)

        Returns:
            Team progress rows in rank order
        """
        teams = sorted(await self.store.list_team_progress(challenge_id), key=_ranking_key)
        ranks = {progress.team_id: position for position, progress in enumerate(teams, start=1)}
        await self.store.set_team_ranks(challenge_id, ranks)

        for progress in teams:
            progress.rank = ranks[progress.team_id]
        return teams

    async def get_team_leaderboard(self, challenge_id: str) -> List[ChallengeTeamProgress]:
        teams = await self.store.list_team_progress(challenge_id)
        return sorted(teams, key=_ranking_key)

    # ==========================================
    # Rewards
    # ==========================================

    async def distribute_rewards(self, challenge_id: str) -> bool:
        """
        Pay out the challenge rewards once

        Team challenges scale points and currency by rank and split them
        evenly (rounded) over the team's active members. Individual
        challenges pay the full reward to every completed participant.
        Member payouts carry deterministic event ids, so rerunning after a
        partial failure does not pay anyone twice.

        Returns:
            True if this call distributed, False if already distributed
        """
        async with self._challenge_locks.hold(challenge_id):
            challenge = await self._get_challenge(challenge_id, "distribute_rewards")
            if challenge.rewards_distributed:
                logger.info(f"Rewards for challenge {challenge_id} already distributed")
                return False

            if challenge.team_based:
                await self._distribute_team_rewards(challenge)
            else:
                await self._distribute_individual_rewards(challenge)

            if not await self.store.mark_rewards_distributed(challenge_id):
                logger.warning(f"Challenge {challenge_id} was marked distributed by another process")
                return False

        track_challenge_distribution(challenge.team_based)
        logger.info(f"Distributed rewards for challenge {challenge_id}")
        return True

    async def _distribute_team_rewards(self, challenge: Challenge) -> None:
        teams = await self.update_ranking(challenge.id)
        total_teams = len(teams)

        for progress in teams:
            members = await self.store.get_active_team_members(progress.team_id)
            if not members:
                logger.info(f"Team {progress.team_id} has no active members, nothing to pay")
                continue

            position = progress.rank or total_teams
            multiplier = get_reward_multiplier(position, total_teams)
            points_each = round_half_up(challenge.rewards.points * multiplier / len(members))
            currency_each = round_half_up(challenge.rewards.currency * multiplier / len(members))
            description = f'Reward for challenge "{challenge.title}" - team placed #{position}'
            metadata = {"challenge_id": challenge.id, "team_id": progress.team_id, "position": position}

            for member in members:
                await self._pay_member(
                    challenge,
                    member.user_id,
                    points_each,
                    currency_each,
                    description,
                    metadata,
                    event_prefix=f"challenge:{challenge.id}:team:{progress.team_id}:user:{member.user_id}",
                )

    async def _distribute_individual_rewards(self, challenge: Challenge) -> None:
        description = f'Reward for challenge "{challenge.title}"'
        for progress in await self.store.list_user_progress(challenge.id, completed=True):
            await self._pay_member(
                challenge,
                progress.user_id,
                challenge.rewards.points,
                challenge.rewards.currency,
                description,
                {"challenge_id": challenge.id},
                event_prefix=f"challenge:{challenge.id}:user:{progress.user_id}",
            )

    async def _pay_member(
        self,
        challenge: Challenge,
        user_id: str,
        points: int,
        currency: int,
        description: str,
        metadata: Dict,
        event_prefix: str
    ) -> None:
        if challenge.rewards.points > 0:
            await self.ledger.award(
                user_id,
                points,
                CHALLENGE_REWARD_SOURCE,
                description,
                metadata=metadata,
                event_id=f"{event_prefix}:points",
            )

        if challenge.rewards.currency > 0:
            await self.currency.add_transaction(
                user_id,
                TransactionType.EARN,
                currency,
                CHALLENGE_REWARD_SOURCE,
                description,
                metadata=metadata,
                event_id=f"{event_prefix}:currency",
            )

        for badge_id in challenge.rewards.badges:
            if await self.store.insert_user_badge(UserBadge(user_id=user_id, badge_id=badge_id)):
                logger.info(f"User {user_id} received badge {badge_id} from challenge {challenge.id}")
