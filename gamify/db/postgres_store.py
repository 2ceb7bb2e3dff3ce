"""
PostgreSQL store

GamificationStore backed by the psycopg pool in gamify.db.connection. Each
method delegates to a query module; driver errors are translated into the
gamify exception hierarchy so callers never see psycopg types.
"""

import logging
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

import psycopg

from gamify.db.queries import (
    badges as badge_queries,
    challenges as challenge_queries,
    currency as currency_queries,
    levels as level_queries,
    points as points_queries,
    quests as quest_queries,
    rankings as ranking_queries,
    recognition as recognition_queries,
    rewards as reward_queries,
    streaks as streak_queries,
)
from gamify.db.store import GamificationStore
from gamify.exceptions import wrap_external_exception
from gamify.models import (
    Badge,
    BadgeCriteria,
    BadgeProgress,
    Challenge,
    ChallengeProgress,
    ChallengeStatus,
    ChallengeTeamProgress,
    CurrencyAccount,
    CurrencyTransaction,
    GamificationConfig,
    Level,
    PeerRecognition,
    PointEntry,
    Quest,
    QuestProgress,
    QuestProgressStatus,
    QuestStatus,
    Ranking,
    RankingType,
    RedemptionStatus,
    Reward,
    RewardRedemption,
    SocialBadgeGrant,
    Streak,
    TeamMember,
    UserBadge,
)

logger = logging.getLogger(__name__)


class PostgresStore(GamificationStore):
    """Durable store using the global connection pool"""

    async def _run(
        self,
        operation: str,
        query: Callable[..., Awaitable[Any]],
        *args,
        user_id: Optional[str] = None,
        **kwargs
    ) -> Any:
        try:
            return await query(*args, **kwargs)
        except psycopg.Error as e:
            raise wrap_external_exception(e, operation=operation, user_id=user_id)

    # ==========================================
    # Points ledger
    # ==========================================

    async def add_point_entry(self, entry: PointEntry) -> Tuple[PointEntry, bool]:
        return await self._run("add_point_entry", points_queries.add_point_entry, entry, user_id=entry.user_id)

    async def get_point_entries(self, user_id: str, limit: Optional[int] = None) -> List[PointEntry]:
        return await self._run("get_point_entries", points_queries.get_point_entries, user_id, limit, user_id=user_id)

    async def sum_points(
        self,
        user_id: str,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None
    ) -> int:
        return await self._run("sum_points", points_queries.sum_points, user_id, since, until, user_id=user_id)

    async def count_point_entries(self, user_id: str, source: str) -> int:
        return await self._run(
            "count_point_entries", points_queries.count_point_entries, user_id, source, user_id=user_id
        )

    async def sum_points_by_user(self, since: datetime, until: datetime) -> Dict[str, int]:
        return await self._run("sum_points_by_user", points_queries.sum_points_by_user, since, until)

    # ==========================================
    # Points configuration
    # ==========================================

    async def get_points_config(self, action: str, department: Optional[str]) -> Optional[GamificationConfig]:
        return await self._run("get_points_config", points_queries.get_points_config, action, department)

    async def save_points_config(self, config: GamificationConfig) -> GamificationConfig:
        return await self._run("save_points_config", points_queries.save_points_config, config)

    # ==========================================
    # Levels
    # ==========================================

    async def get_levels(self) -> List[Level]:
        return await self._run("get_levels", level_queries.get_levels)

    async def save_level(self, level: Level) -> Level:
        return await self._run("save_level", level_queries.save_level, level)

    async def swap_last_known_level(self, user_id: str, level: int) -> Optional[int]:
        return await self._run(
            "swap_last_known_level", level_queries.swap_last_known_level, user_id, level, user_id=user_id
        )

    # ==========================================
    # Badges
    # ==========================================

    async def save_badge(self, badge: Badge) -> Badge:
        return await self._run("save_badge", badge_queries.save_badge, badge)

    async def get_badge(self, badge_id: str) -> Optional[Badge]:
        return await self._run("get_badge", badge_queries.get_badge, badge_id)

    async def get_badges(self, social: Optional[bool] = None) -> List[Badge]:
        return await self._run("get_badges", badge_queries.get_badges, social)

    async def save_badge_criteria(self, criteria: BadgeCriteria) -> BadgeCriteria:
        return await self._run("save_badge_criteria", badge_queries.save_badge_criteria, criteria)

    async def get_badge_criteria(self, criteria_id: str) -> Optional[BadgeCriteria]:
        return await self._run("get_badge_criteria", badge_queries.get_badge_criteria, criteria_id)

    async def user_has_badge(self, user_id: str, badge_id: str) -> bool:
        return await self._run("user_has_badge", badge_queries.user_has_badge, user_id, badge_id, user_id=user_id)

    async def insert_user_badge(self, user_badge: UserBadge) -> bool:
        return await self._run(
            "insert_user_badge", badge_queries.insert_user_badge, user_badge, user_id=user_badge.user_id
        )

    async def get_user_badges(self, user_id: str) -> List[UserBadge]:
        return await self._run("get_user_badges", badge_queries.get_user_badges, user_id, user_id=user_id)

    async def save_badge_progress(self, progress: BadgeProgress) -> BadgeProgress:
        return await self._run(
            "save_badge_progress", badge_queries.save_badge_progress, progress, user_id=progress.user_id
        )

    async def get_badge_progress(self, user_id: str) -> List[BadgeProgress]:
        return await self._run("get_badge_progress", badge_queries.get_badge_progress, user_id, user_id=user_id)

    async def add_social_badge_grant(self, grant: SocialBadgeGrant) -> SocialBadgeGrant:
        return await self._run(
            "add_social_badge_grant", badge_queries.add_social_badge_grant, grant, user_id=grant.from_user_id
        )

    async def count_social_badge_grants(self, to_user_id: str, badge_id: str, since: datetime) -> int:
        return await self._run(
            "count_social_badge_grants",
            badge_queries.count_social_badge_grants,
            to_user_id,
            badge_id,
            since,
            user_id=to_user_id,
        )

    # ==========================================
    # Streaks
    # ==========================================

    async def get_streak(self, user_id: str, streak_type: str) -> Optional[Streak]:
        return await self._run("get_streak", streak_queries.get_streak, user_id, streak_type, user_id=user_id)

    async def get_user_streaks(self, user_id: str) -> List[Streak]:
        return await self._run("get_user_streaks", streak_queries.get_user_streaks, user_id, user_id=user_id)

    async def save_streak(self, streak: Streak) -> Streak:
        return await self._run("save_streak", streak_queries.save_streak, streak, user_id=streak.user_id)

    # ==========================================
    # Currency
    # ==========================================

    async def get_currency_account(self, user_id: str) -> Optional[CurrencyAccount]:
        return await self._run(
            "get_currency_account", currency_queries.get_currency_account, user_id, user_id=user_id
        )

    async def apply_currency_transaction(
        self,
        transaction: CurrencyTransaction,
        history_cap: int
    ) -> Tuple[CurrencyAccount, CurrencyTransaction, bool]:
        return await self._run(
            "apply_currency_transaction",
            currency_queries.apply_currency_transaction,
            transaction,
            history_cap,
            user_id=transaction.user_id,
        )

    async def get_currency_transactions(self, user_id: str, limit: int = 50, offset: int = 0) -> List[CurrencyTransaction]:
        return await self._run(
            "get_currency_transactions",
            currency_queries.get_currency_transactions,
            user_id,
            limit,
            offset,
            user_id=user_id,
        )

    async def count_currency_transactions(self, user_id: str) -> int:
        return await self._run(
            "count_currency_transactions", currency_queries.count_currency_transactions, user_id, user_id=user_id
        )

    # ==========================================
    # Challenges
    # ==========================================

    async def save_challenge(self, challenge: Challenge) -> Challenge:
        return await self._run("save_challenge", challenge_queries.save_challenge, challenge)

    async def get_challenge(self, challenge_id: str) -> Optional[Challenge]:
        return await self._run("get_challenge", challenge_queries.get_challenge, challenge_id)

    async def list_challenges(
        self,
        status: Optional[ChallengeStatus] = None,
        team_id: Optional[str] = None
    ) -> List[Challenge]:
        return await self._run("list_challenges", challenge_queries.list_challenges, status, team_id)

    async def mark_rewards_distributed(self, challenge_id: str) -> bool:
        return await self._run("mark_rewards_distributed", challenge_queries.mark_rewards_distributed, challenge_id)

    async def get_team_progress(self, challenge_id: str, team_id: str) -> Optional[ChallengeTeamProgress]:
        return await self._run("get_team_progress", challenge_queries.get_team_progress, challenge_id, team_id)

    async def list_team_progress(self, challenge_id: str) -> List[ChallengeTeamProgress]:
        return await self._run("list_team_progress", challenge_queries.list_team_progress, challenge_id)

    async def save_team_progress(self, progress: ChallengeTeamProgress) -> ChallengeTeamProgress:
        return await self._run("save_team_progress", challenge_queries.save_team_progress, progress)

    async def set_team_ranks(self, challenge_id: str, ranks: Dict[str, int]) -> None:
        await self._run("set_team_ranks", challenge_queries.set_team_ranks, challenge_id, ranks)

    async def get_user_progress(self, challenge_id: str, user_id: str) -> Optional[ChallengeProgress]:
        return await self._run(
            "get_user_progress", challenge_queries.get_user_progress, challenge_id, user_id, user_id=user_id
        )

    async def list_user_progress(self, challenge_id: str, completed: Optional[bool] = None) -> List[ChallengeProgress]:
        return await self._run("list_user_progress", challenge_queries.list_user_progress, challenge_id, completed)

    async def save_user_progress(self, progress: ChallengeProgress) -> ChallengeProgress:
        return await self._run(
            "save_user_progress", challenge_queries.save_user_progress, progress, user_id=progress.user_id
        )

    async def save_team_member(self, member: TeamMember) -> TeamMember:
        return await self._run("save_team_member", challenge_queries.save_team_member, member, user_id=member.user_id)

    async def get_active_team_members(self, team_id: str) -> List[TeamMember]:
        return await self._run("get_active_team_members", challenge_queries.get_active_team_members, team_id)

    # ==========================================
    # Quests
    # ==========================================

    async def save_quest(self, quest: Quest) -> Quest:
        return await self._run("save_quest", quest_queries.save_quest, quest)

    async def get_quest(self, quest_id: str) -> Optional[Quest]:
        return await self._run("get_quest", quest_queries.get_quest, quest_id)

    async def list_quests(self, status: Optional[QuestStatus] = None) -> List[Quest]:
        return await self._run("list_quests", quest_queries.list_quests, status)

    async def get_quest_progress(self, quest_id: str, user_id: str) -> Optional[QuestProgress]:
        return await self._run(
            "get_quest_progress", quest_queries.get_quest_progress, quest_id, user_id, user_id=user_id
        )

    async def list_quest_progress(
        self,
        user_id: str,
        status: Optional[QuestProgressStatus] = None
    ) -> List[QuestProgress]:
        return await self._run(
            "list_quest_progress", quest_queries.list_quest_progress, user_id, status, user_id=user_id
        )

    async def save_quest_progress(self, progress: QuestProgress) -> QuestProgress:
        return await self._run(
            "save_quest_progress", quest_queries.save_quest_progress, progress, user_id=progress.user_id
        )

    # ==========================================
    # Peer recognition
    # ==========================================

    async def add_recognition(self, recognition: PeerRecognition) -> PeerRecognition:
        return await self._run(
            "add_recognition", recognition_queries.add_recognition, recognition, user_id=recognition.to_user_id
        )

    async def list_recognitions(
        self,
        public: Optional[bool] = None,
        to_user_id: Optional[str] = None,
        from_user_id: Optional[str] = None,
        limit: int = 50
    ) -> List[PeerRecognition]:
        return await self._run(
            "list_recognitions", recognition_queries.list_recognitions, public, to_user_id, from_user_id, limit
        )

    # ==========================================
    # Rewards
    # ==========================================

    async def save_reward(self, reward: Reward) -> Reward:
        return await self._run("save_reward", reward_queries.save_reward, reward)

    async def get_reward(self, reward_id: str) -> Optional[Reward]:
        return await self._run("get_reward", reward_queries.get_reward, reward_id)

    async def list_rewards(
        self,
        category: Optional[str] = None,
        reward_type: Optional[str] = None,
        active: Optional[bool] = True
    ) -> List[Reward]:
        return await self._run("list_rewards", reward_queries.list_rewards, category, reward_type, active)

    async def decrement_reward_stock(self, reward_id: str, quantity: int) -> bool:
        return await self._run("decrement_reward_stock", reward_queries.decrement_reward_stock, reward_id, quantity)

    async def restock_reward(self, reward_id: str, quantity: int) -> None:
        await self._run("restock_reward", reward_queries.restock_reward, reward_id, quantity)

    async def save_redemption(self, redemption: RewardRedemption) -> RewardRedemption:
        return await self._run(
            "save_redemption", reward_queries.save_redemption, redemption, user_id=redemption.user_id
        )

    async def get_redemption(self, redemption_id: str) -> Optional[RewardRedemption]:
        return await self._run("get_redemption", reward_queries.get_redemption, redemption_id)

    async def list_redemptions(
        self,
        user_id: str,
        status: Optional[RedemptionStatus] = None,
        limit: int = 50
    ) -> List[RewardRedemption]:
        return await self._run(
            "list_redemptions", reward_queries.list_redemptions, user_id, status, limit, user_id=user_id
        )

    # ==========================================
    # Rankings
    # ==========================================

    async def replace_rankings(self, ranking_type: RankingType, rankings: List[Ranking]) -> None:
        await self._run("replace_rankings", ranking_queries.replace_rankings, ranking_type, rankings)

    async def get_rankings(self, ranking_type: RankingType, limit: int = 100) -> List[Ranking]:
        return await self._run("get_rankings", ranking_queries.get_rankings, ranking_type, limit)

    async def get_user_ranking(self, ranking_type: RankingType, user_id: str) -> Optional[Ranking]:
        return await self._run(
            "get_user_ranking", ranking_queries.get_user_ranking, ranking_type, user_id, user_id=user_id
        )
