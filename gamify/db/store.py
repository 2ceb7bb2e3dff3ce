"""
Storage interface for the gamification engine

Every engine component talks to one GamificationStore. Implementations must
provide the atomic primitives documented on each method; the engine relies
on them (not on call ordering) to keep the ledger invariants under
concurrent requests.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Dict, List, Optional, Tuple

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


class GamificationStore(ABC):
    """Abstract persistence for all gamification entities"""

    # ==========================================
    # Points ledger
    # ==========================================

    @abstractmethod
    async def add_point_entry(self, entry: PointEntry) -> Tuple[PointEntry, bool]:
        """
        Append an entry. If entry.event_id is set and (user_id, event_id)
        already exists, return the stored entry and False without appending.
        """

    @abstractmethod
    async def get_point_entries(self, user_id: str, limit: Optional[int] = None) -> List[PointEntry]:
        """Entries for user, newest first"""

    @abstractmethod
    async def sum_points(
        self,
        user_id: str,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None
    ) -> int:
        """Sum of amounts for user, optionally bounded by timestamp (inclusive)"""

    @abstractmethod
    async def count_point_entries(self, user_id: str, source: str) -> int:
        """Number of entries for user with exactly this source"""

    @abstractmethod
    async def sum_points_by_user(self, since: datetime, until: datetime) -> Dict[str, int]:
        """Per-user totals for entries with since <= timestamp <= until"""

    # ==========================================
    # Points configuration
    # ==========================================

    @abstractmethod
    async def get_points_config(self, action: str, department: Optional[str]) -> Optional[GamificationConfig]:
        """Active config for exactly (department, action); department None means global"""

    @abstractmethod
    async def save_points_config(self, config: GamificationConfig) -> GamificationConfig:
        """Insert or replace the config for (department, action)"""

    # ==========================================
    # Levels
    # ==========================================

    @abstractmethod
    async def get_levels(self) -> List[Level]:
        """All levels, ascending by level number"""

    @abstractmethod
    async def save_level(self, level: Level) -> Level:
        """Insert or replace by level number"""

    @abstractmethod
    async def swap_last_known_level(self, user_id: str, level: int) -> Optional[int]:
        """Atomically store level as the user's last known level; return the previous one"""

    # ==========================================
    # Badges
    # ==========================================

    @abstractmethod
    async def save_badge(self, badge: Badge) -> Badge:
        pass

    @abstractmethod
    async def get_badge(self, badge_id: str) -> Optional[Badge]:
        pass

    @abstractmethod
    async def get_badges(self, social: Optional[bool] = None) -> List[Badge]:
        """All badges, optionally filtered on the social flag"""

    @abstractmethod
    async def save_badge_criteria(self, criteria: BadgeCriteria) -> BadgeCriteria:
        pass

    @abstractmethod
    async def get_badge_criteria(self, criteria_id: str) -> Optional[BadgeCriteria]:
        pass

    @abstractmethod
    async def user_has_badge(self, user_id: str, badge_id: str) -> bool:
        pass

    @abstractmethod
    async def insert_user_badge(self, user_badge: UserBadge) -> bool:
        """Insert unless (user, badge) exists; True only for the caller that inserted"""

    @abstractmethod
    async def get_user_badges(self, user_id: str) -> List[UserBadge]:
        """Badges held by user, most recently earned first"""

    @abstractmethod
    async def save_badge_progress(self, progress: BadgeProgress) -> BadgeProgress:
        """Upsert keyed by (user, badge)"""

    @abstractmethod
    async def get_badge_progress(self, user_id: str) -> List[BadgeProgress]:
        pass

    @abstractmethod
    async def add_social_badge_grant(self, grant: SocialBadgeGrant) -> SocialBadgeGrant:
        pass

    @abstractmethod
    async def count_social_badge_grants(self, to_user_id: str, badge_id: str, since: datetime) -> int:
        """Grants of badge to to_user_id with given_at >= since"""

    # ==========================================
    # Streaks
    # ==========================================

    @abstractmethod
    async def get_streak(self, user_id: str, streak_type: str) -> Optional[Streak]:
        pass

    @abstractmethod
    async def get_user_streaks(self, user_id: str) -> List[Streak]:
        """All streaks of user, longest current run first"""

    @abstractmethod
    async def save_streak(self, streak: Streak) -> Streak:
        """
        Versioned write. streak.version must equal the stored version (0 for
        a new streak) or ConcurrencyError is raised. Returns the stored copy
        with the incremented version.
        """

    # ==========================================
    # Currency
    # ==========================================

    @abstractmethod
    async def get_currency_account(self, user_id: str) -> Optional[CurrencyAccount]:
        pass

    @abstractmethod
    async def apply_currency_transaction(
        self,
        transaction: CurrencyTransaction,
        history_cap: int
    ) -> Tuple[CurrencyAccount, CurrencyTransaction, bool]:
        """
        Atomically: load-or-create the account, add (earn) or subtract with
        a floor of zero (spend), push onto the embedded list keeping the
        last history_cap items, and append to the durable ledger.

        A repeated (user_id, event_id) returns the current account, the
        original transaction and True, applying nothing.
        """

    @abstractmethod
    async def get_currency_transactions(self, user_id: str, limit: int = 50, offset: int = 0) -> List[CurrencyTransaction]:
        """Durable ledger page, newest first"""

    @abstractmethod
    async def count_currency_transactions(self, user_id: str) -> int:
        pass

    # ==========================================
    # Challenges
    # ==========================================

    @abstractmethod
    async def save_challenge(self, challenge: Challenge) -> Challenge:
        pass

    @abstractmethod
    async def get_challenge(self, challenge_id: str) -> Optional[Challenge]:
        pass

    @abstractmethod
    async def list_challenges(
        self,
        status: Optional[ChallengeStatus] = None,
        team_id: Optional[str] = None
    ) -> List[Challenge]:
        """Challenges filtered by status and/or participating team"""

    @abstractmethod
    async def mark_rewards_distributed(self, challenge_id: str) -> bool:
        """Compare-and-set rewards_distributed False -> True; True only for the winner"""

    @abstractmethod
    async def get_team_progress(self, challenge_id: str, team_id: str) -> Optional[ChallengeTeamProgress]:
        pass

    @abstractmethod
    async def list_team_progress(self, challenge_id: str) -> List[ChallengeTeamProgress]:
        pass

    @abstractmethod
    async def save_team_progress(self, progress: ChallengeTeamProgress) -> ChallengeTeamProgress:
        """Versioned write, see save_streak"""

    @abstractmethod
    async def set_team_ranks(self, challenge_id: str, ranks: Dict[str, int]) -> None:
        """Write rank for each team id without touching versions"""

    @abstractmethod
    async def get_user_progress(self, challenge_id: str, user_id: str) -> Optional[ChallengeProgress]:
        pass

    @abstractmethod
    async def list_user_progress(self, challenge_id: str, completed: Optional[bool] = None) -> List[ChallengeProgress]:
        pass

    @abstractmethod
    async def save_user_progress(self, progress: ChallengeProgress) -> ChallengeProgress:
        """Versioned write, see save_streak"""

    @abstractmethod
    async def save_team_member(self, member: TeamMember) -> TeamMember:
        pass

    @abstractmethod
    async def get_active_team_members(self, team_id: str) -> List[TeamMember]:
        pass

    # ==========================================
    # Quests
    # ==========================================

    @abstractmethod
    async def save_quest(self, quest: Quest) -> Quest:
        pass

    @abstractmethod
    async def get_quest(self, quest_id: str) -> Optional[Quest]:
        pass

    @abstractmethod
    async def list_quests(self, status: Optional[QuestStatus] = None) -> List[Quest]:
        """Quests newest first, optionally filtered on status"""

    @abstractmethod
    async def get_quest_progress(self, quest_id: str, user_id: str) -> Optional[QuestProgress]:
        pass

    @abstractmethod
    async def list_quest_progress(
        self,
        user_id: str,
        status: Optional[QuestProgressStatus] = None
    ) -> List[QuestProgress]:
        """Quest progress rows of user, most recently started first"""

    @abstractmethod
    async def save_quest_progress(self, progress: QuestProgress) -> QuestProgress:
        """Versioned write, see save_streak; version 0 inserts and fails if the row exists"""

    # ==========================================
    # Peer recognition
    # ==========================================

    @abstractmethod
    async def add_recognition(self, recognition: PeerRecognition) -> PeerRecognition:
        pass

    @abstractmethod
    async def list_recognitions(
        self,
        public: Optional[bool] = None,
        to_user_id: Optional[str] = None,
        from_user_id: Optional[str] = None,
        limit: int = 50
    ) -> List[PeerRecognition]:
        """Recognitions newest first"""

    # ==========================================
    # Rewards
    # ==========================================

    @abstractmethod
    async def save_reward(self, reward: Reward) -> Reward:
        pass

    @abstractmethod
    async def get_reward(self, reward_id: str) -> Optional[Reward]:
        pass

    @abstractmethod
    async def list_rewards(
        self,
        category: Optional[str] = None,
        reward_type: Optional[str] = None,
        active: Optional[bool] = True
    ) -> List[Reward]:
        """Rewards sorted by cost ascending, newest first on equal cost"""

    @abstractmethod
    async def decrement_reward_stock(self, reward_id: str, quantity: int) -> bool:
        """Atomically take quantity from stock; True if stock is unlimited or sufficient"""

    @abstractmethod
    async def restock_reward(self, reward_id: str, quantity: int) -> None:
        """Give quantity back to a limited stock"""

    @abstractmethod
    async def save_redemption(self, redemption: RewardRedemption) -> RewardRedemption:
        pass

    @abstractmethod
    async def get_redemption(self, redemption_id: str) -> Optional[RewardRedemption]:
        pass

    @abstractmethod
    async def list_redemptions(
        self,
        user_id: str,
        status: Optional[RedemptionStatus] = None,
        limit: int = 50
    ) -> List[RewardRedemption]:
        """Redemptions of user, newest first"""

    # ==========================================
    # Rankings
    # ==========================================

    @abstractmethod
    async def replace_rankings(self, ranking_type: RankingType, rankings: List[Ranking]) -> None:
        """Replace the snapshot for ranking_type"""

    @abstractmethod
    async def get_rankings(self, ranking_type: RankingType, limit: int = 100) -> List[Ranking]:
        """Current snapshot ordered by position"""

    @abstractmethod
    async def get_user_ranking(self, ranking_type: RankingType, user_id: str) -> Optional[Ranking]:
        pass
