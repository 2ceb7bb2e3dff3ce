"""
In-memory store

Dictionary-backed GamificationStore used by the test-suite and by
single-process deployments that do not need durability. Records are copied
on the way in and out so callers never share state with the store, the
same way a database round-trip behaves. Each method body runs without an
await, which makes every primitive atomic under asyncio.
"""

import logging
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from gamify.db.store import GamificationStore
from gamify.exceptions import ConcurrencyError
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


def _copy(model):
    return model.model_copy(deep=True) if model is not None else None


class InMemoryStore(GamificationStore):
    """Non-persistent store (process memory only)"""

    def __init__(self):
        self.reset()

    def reset(self) -> None:
        """Drop every record"""
        self._points: List[PointEntry] = []
        self._point_events: Dict[Tuple[str, str], PointEntry] = {}
        self._configs: Dict[Tuple[Optional[str], str], GamificationConfig] = {}
        self._levels: Dict[int, Level] = {}
        self._last_known_levels: Dict[str, int] = {}
        self._badges: Dict[str, Badge] = {}
        self._criteria: Dict[str, BadgeCriteria] = {}
        self._user_badges: Dict[Tuple[str, str], UserBadge] = {}
        self._badge_progress: Dict[Tuple[str, str], BadgeProgress] = {}
        self._social_grants: List[SocialBadgeGrant] = []
        self._streaks: Dict[Tuple[str, str], Streak] = {}
        self._accounts: Dict[str, CurrencyAccount] = {}
        self._currency_ledger: Dict[str, List[CurrencyTransaction]] = {}
        self._currency_events: Dict[Tuple[str, str], CurrencyTransaction] = {}
        self._challenges: Dict[str, Challenge] = {}
        self._team_progress: Dict[Tuple[str, str], ChallengeTeamProgress] = {}
        self._user_progress: Dict[Tuple[str, str], ChallengeProgress] = {}
        self._members: Dict[Tuple[str, str], TeamMember] = {}
        self._quests: Dict[str, Quest] = {}
        self._quest_progress: Dict[Tuple[str, str], QuestProgress] = {}
        self._recognitions: List[PeerRecognition] = []
        self._rewards: Dict[str, Reward] = {}
        self._redemptions: Dict[str, RewardRedemption] = {}
        self._rankings: Dict[RankingType, List[Ranking]] = {}

    # ==========================================
    # Points ledger
    # ==========================================

    async def add_point_entry(self, entry: PointEntry) -> Tuple[PointEntry, bool]:
        if entry.event_id is not None:
            existing = self._point_events.get((entry.user_id, entry.event_id))
            if existing is not None:
                return _copy(existing), False
            self._point_events[(entry.user_id, entry.event_id)] = entry
        self._points.append(entry)
        return _copy(entry), True

    async def get_point_entries(self, user_id: str, limit: Optional[int] = None) -> List[PointEntry]:
        entries = [e for e in reversed(self._points) if e.user_id == user_id]
        entries.sort(key=lambda e: e.timestamp, reverse=True)
        if limit is not None:
            entries = entries[:limit]
        return [_copy(e) for e in entries]

    async def sum_points(
        self,
        user_id: str,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None
    ) -> int:
        return sum(
            e.amount for e in self._points
            if e.user_id == user_id
            and (since is None or e.timestamp >= since)
            and (until is None or e.timestamp <= until)
        )

    async def count_point_entries(self, user_id: str, source: str) -> int:
        return sum(1 for e in self._points if e.user_id == user_id and e.source == source)

    async def sum_points_by_user(self, since: datetime, until: datetime) -> Dict[str, int]:
        totals: Dict[str, int] = {}
        for e in self._points:
            if since <= e.timestamp <= until:
                totals[e.user_id] = totals.get(e.user_id, 0) + e.amount
        return totals

    # ==========================================
    # Points configuration
    # ==========================================

    async def get_points_config(self, action: str, department: Optional[str]) -> Optional[GamificationConfig]:
        config = self._configs.get((department, action))
        if config is None or not config.active:
            return None
        return _copy(config)

    async def save_points_config(self, config: GamificationConfig) -> GamificationConfig:
        self._configs[(config.department, config.action)] = _copy(config)
        return _copy(config)

    # ==========================================
    # Levels
    # ==========================================

    async def get_levels(self) -> List[Level]:
        return [_copy(self._levels[k]) for k in sorted(self._levels)]

    async def save_level(self, level: Level) -> Level:
        self._levels[level.level] = _copy(level)
        return _copy(level)

    async def swap_last_known_level(self, user_id: str, level: int) -> Optional[int]:
        previous = self._last_known_levels.get(user_id)
        self._last_known_levels[user_id] = level
        return previous

    # ==========================================
    # Badges
    # ==========================================

    async def save_badge(self, badge: Badge) -> Badge:
        self._badges[badge.id] = _copy(badge)
        return _copy(badge)

    async def get_badge(self, badge_id: str) -> Optional[Badge]:
        return _copy(self._badges.get(badge_id))

    async def get_badges(self, social: Optional[bool] = None) -> List[Badge]:
        return [
            _copy(b) for b in self._badges.values()
            if social is None or b.social_badge == social
        ]

    async def save_badge_criteria(self, criteria: BadgeCriteria) -> BadgeCriteria:
        self._criteria[criteria.id] = _copy(criteria)
        return _copy(criteria)

    async def get_badge_criteria(self, criteria_id: str) -> Optional[BadgeCriteria]:
        return _copy(self._criteria.get(criteria_id))

    async def user_has_badge(self, user_id: str, badge_id: str) -> bool:
        return (user_id, badge_id) in self._user_badges

    async def insert_user_badge(self, user_badge: UserBadge) -> bool:
        key = (user_badge.user_id, user_badge.badge_id)
        if key in self._user_badges:
            return False
        self._user_badges[key] = _copy(user_badge)
        return True

    async def get_user_badges(self, user_id: str) -> List[UserBadge]:
        held = [_copy(ub) for (uid, _), ub in self._user_badges.items() if uid == user_id]
        held.sort(key=lambda ub: ub.earned_at, reverse=True)
        return held

    async def save_badge_progress(self, progress: BadgeProgress) -> BadgeProgress:
        self._badge_progress[(progress.user_id, progress.badge_id)] = _copy(progress)
        return _copy(progress)

    async def get_badge_progress(self, user_id: str) -> List[BadgeProgress]:
        return [_copy(p) for (uid, _), p in self._badge_progress.items() if uid == user_id]

    async def add_social_badge_grant(self, grant: SocialBadgeGrant) -> SocialBadgeGrant:
        self._social_grants.append(_copy(grant))
        return _copy(grant)

    async def count_social_badge_grants(self, to_user_id: str, badge_id: str, since: datetime) -> int:
        return sum(
            1 for g in self._social_grants
            if g.to_user_id == to_user_id and g.badge_id == badge_id and g.given_at >= since
        )

    # ==========================================
    # Streaks
    # ==========================================

    async def get_streak(self, user_id: str, streak_type: str) -> Optional[Streak]:
        return _copy(self._streaks.get((user_id, streak_type)))

    async def get_user_streaks(self, user_id: str) -> List[Streak]:
        streaks = [_copy(s) for (uid, _), s in self._streaks.items() if uid == user_id]
        streaks.sort(key=lambda s: s.consecutive_days, reverse=True)
        return streaks

    async def save_streak(self, streak: Streak) -> Streak:
        key = (streak.user_id, streak.type)
        stored = self._streaks.get(key)
        stored_version = stored.version if stored is not None else 0
        if stored_version != streak.version:
            raise ConcurrencyError(
                f"Streak {key} changed since it was read",
                record_type="streak",
                record_id=streak.id,
                expected_version=streak.version,
            )
        saved = streak.model_copy(deep=True, update={"version": stored_version + 1})
        self._streaks[key] = saved
        return _copy(saved)

    # ==========================================
    # Currency
    # ==========================================

    async def get_currency_account(self, user_id: str) -> Optional[CurrencyAccount]:
        return _copy(self._accounts.get(user_id))

    async def apply_currency_transaction(
        self,
        transaction: CurrencyTransaction,
        history_cap: int
    ) -> Tuple[CurrencyAccount, CurrencyTransaction, bool]:
        user_id = transaction.user_id
        account = self._accounts.get(user_id)
        if account is None:
            account = CurrencyAccount(user_id=user_id)
            self._accounts[user_id] = account

        if transaction.event_id is not None:
            original = self._currency_events.get((user_id, transaction.event_id))
            if original is not None:
                return _copy(account), _copy(original), True

        transaction = transaction.capped_to_balance(account.balance)
        if transaction.event_id is not None:
            self._currency_events[(user_id, transaction.event_id)] = _copy(transaction)

        account.balance = account.balance + transaction.signed_amount

        account.transactions.append(_copy(transaction))
        if len(account.transactions) > history_cap:
            account.transactions = account.transactions[-history_cap:]
        account.updated_at = transaction.timestamp

        self._currency_ledger.setdefault(user_id, []).append(_copy(transaction))
        return _copy(account), _copy(transaction), False

    async def get_currency_transactions(self, user_id: str, limit: int = 50, offset: int = 0) -> List[CurrencyTransaction]:
        ledger = list(reversed(self._currency_ledger.get(user_id, [])))
        ledger.sort(key=lambda t: t.timestamp, reverse=True)
        return [_copy(t) for t in ledger[offset:offset + limit]]

    async def count_currency_transactions(self, user_id: str) -> int:
        return len(self._currency_ledger.get(user_id, []))

    # ==========================================
    # Challenges
    # ==========================================

    async def save_challenge(self, challenge: Challenge) -> Challenge:
        self._challenges[challenge.id] = _copy(challenge)
        return _copy(challenge)

    async def get_challenge(self, challenge_id: str) -> Optional[Challenge]:
        return _copy(self._challenges.get(challenge_id))

    async def list_challenges(
        self,
        status: Optional[ChallengeStatus] = None,
        team_id: Optional[str] = None
    ) -> List[Challenge]:
        return [
            _copy(c) for c in self._challenges.values()
            if (status is None or c.status == status)
            and (team_id is None or team_id in c.participating_teams)
        ]

    async def mark_rewards_distributed(self, challenge_id: str) -> bool:
        challenge = self._challenges.get(challenge_id)
        if challenge is None or challenge.rewards_distributed:
            return False
        challenge.rewards_distributed = True
        return True

    async def get_team_progress(self, challenge_id: str, team_id: str) -> Optional[ChallengeTeamProgress]:
        return _copy(self._team_progress.get((challenge_id, team_id)))

    async def list_team_progress(self, challenge_id: str) -> List[ChallengeTeamProgress]:
        return [_copy(p) for (cid, _), p in self._team_progress.items() if cid == challenge_id]

    async def save_team_progress(self, progress: ChallengeTeamProgress) -> ChallengeTeamProgress:
        key = (progress.challenge_id, progress.team_id)
        saved = self._versioned_put(self._team_progress, key, progress, "challenge_team_progress")
        return saved

    async def set_team_ranks(self, challenge_id: str, ranks: Dict[str, int]) -> None:
        for team_id, rank in ranks.items():
            progress = self._team_progress.get((challenge_id, team_id))
            if progress is not None:
                progress.rank = rank

    async def get_user_progress(self, challenge_id: str, user_id: str) -> Optional[ChallengeProgress]:
        return _copy(self._user_progress.get((challenge_id, user_id)))

    async def list_user_progress(self, challenge_id: str, completed: Optional[bool] = None) -> List[ChallengeProgress]:
        return [
            _copy(p) for (cid, _), p in self._user_progress.items()
            if cid == challenge_id and (completed is None or p.completed == completed)
        ]

    async def save_user_progress(self, progress: ChallengeProgress) -> ChallengeProgress:
        key = (progress.challenge_id, progress.user_id)
        return self._versioned_put(self._user_progress, key, progress, "challenge_progress")

    def _versioned_put(self, table: dict, key, record, record_type: str):
        stored = table.get(key)
        stored_version = stored.version if stored is not None else 0
        if stored_version != record.version:
            raise ConcurrencyError(
                f"{record_type} {key} changed since it was read",
                record_type=record_type,
                record_id=str(key),
                expected_version=record.version,
            )
        saved = record.model_copy(deep=True, update={"version": stored_version + 1})
        table[key] = saved
        return _copy(saved)

    async def save_team_member(self, member: TeamMember) -> TeamMember:
        self._members[(member.team_id, member.user_id)] = _copy(member)
        return _copy(member)

    async def get_active_team_members(self, team_id: str) -> List[TeamMember]:
        return [
            _copy(m) for (tid, _), m in self._members.items()
            if tid == team_id and m.active
        ]

    # ==========================================
    # Quests
    # ==========================================

    async def save_quest(self, quest: Quest) -> Quest:
        self._quests[quest.id] = _copy(quest)
        return _copy(quest)

    async def get_quest(self, quest_id: str) -> Optional[Quest]:
        return _copy(self._quests.get(quest_id))

    async def list_quests(self, status: Optional[QuestStatus] = None) -> List[Quest]:
        quests = [q for q in self._quests.values() if status is None or q.status == status]
        quests.sort(key=lambda q: q.created_at, reverse=True)
        return [_copy(q) for q in quests]

    async def get_quest_progress(self, quest_id: str, user_id: str) -> Optional[QuestProgress]:
        return _copy(self._quest_progress.get((quest_id, user_id)))

    async def list_quest_progress(
        self,
        user_id: str,
        status: Optional[QuestProgressStatus] = None
    ) -> List[QuestProgress]:
        rows = [
            p for (_, uid), p in self._quest_progress.items()
            if uid == user_id and (status is None or p.status == status)
        ]
        rows.sort(key=lambda p: p.started_at, reverse=True)
        return [_copy(p) for p in rows]

    async def save_quest_progress(self, progress: QuestProgress) -> QuestProgress:
        key = (progress.quest_id, progress.user_id)
        return self._versioned_put(self._quest_progress, key, progress, "quest_progress")

    # ==========================================
    # Peer recognition
    # ==========================================

    async def add_recognition(self, recognition: PeerRecognition) -> PeerRecognition:
        self._recognitions.append(_copy(recognition))
        return _copy(recognition)

    async def list_recognitions(
        self,
        public: Optional[bool] = None,
        to_user_id: Optional[str] = None,
        from_user_id: Optional[str] = None,
        limit: int = 50
    ) -> List[PeerRecognition]:
        rows = [
            r for r in reversed(self._recognitions)
            if (public is None or r.public == public)
            and (to_user_id is None or r.to_user_id == to_user_id)
            and (from_user_id is None or r.from_user_id == from_user_id)
        ]
        rows.sort(key=lambda r: r.created_at, reverse=True)
        return [_copy(r) for r in rows[:limit]]

    # ==========================================
    # Rewards
    # ==========================================

    async def save_reward(self, reward: Reward) -> Reward:
        self._rewards[reward.id] = _copy(reward)
        return _copy(reward)

    async def get_reward(self, reward_id: str) -> Optional[Reward]:
        return _copy(self._rewards.get(reward_id))

    async def list_rewards(
        self,
        category: Optional[str] = None,
        reward_type: Optional[str] = None,
        active: Optional[bool] = True
    ) -> List[Reward]:
        rewards = [
            r for r in self._rewards.values()
            if (category is None or r.category == category)
            and (reward_type is None or r.type == reward_type)
            and (active is None or r.active == active)
        ]
        rewards.sort(key=lambda r: r.created_at, reverse=True)
        rewards.sort(key=lambda r: r.cost)
        return [_copy(r) for r in rewards]

    async def decrement_reward_stock(self, reward_id: str, quantity: int) -> bool:
        reward = self._rewards.get(reward_id)
        if reward is None:
            return False
        if reward.stock is None:
            return True
        if reward.stock < quantity:
            return False
        reward.stock -= quantity
        return True

    async def restock_reward(self, reward_id: str, quantity: int) -> None:
        reward = self._rewards.get(reward_id)
        if reward is not None and reward.stock is not None:
            reward.stock += quantity

    async def save_redemption(self, redemption: RewardRedemption) -> RewardRedemption:
        self._redemptions[redemption.id] = _copy(redemption)
        return _copy(redemption)

    async def get_redemption(self, redemption_id: str) -> Optional[RewardRedemption]:
        return _copy(self._redemptions.get(redemption_id))

    async def list_redemptions(
        self,
        user_id: str,
        status: Optional[RedemptionStatus] = None,
        limit: int = 50
    ) -> List[RewardRedemption]:
        redemptions = [
            r for r in self._redemptions.values()
            if r.user_id == user_id and (status is None or r.status == status)
        ]
        redemptions.sort(key=lambda r: r.redeemed_at, reverse=True)
        return [_copy(r) for r in redemptions[:limit]]

    # ==========================================
    # Rankings
    # ==========================================

    async def replace_rankings(self, ranking_type: RankingType, rankings: List[Ranking]) -> None:
        self._rankings[ranking_type] = [_copy(r) for r in rankings]

    async def get_rankings(self, ranking_type: RankingType, limit: int = 100) -> List[Ranking]:
        snapshot = sorted(self._rankings.get(ranking_type, []), key=lambda r: r.position)
        return [_copy(r) for r in snapshot[:limit]]

    async def get_user_ranking(self, ranking_type: RankingType, user_id: str) -> Optional[Ranking]:
        for r in self._rankings.get(ranking_type, []):
            if r.user_id == user_id:
                return _copy(r)
        return None
