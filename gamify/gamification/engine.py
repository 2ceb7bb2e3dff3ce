"""
GamificationEngine - wires every component to one store

    ledger   <-> badges  (award cascade)
    ledger    -> levels  (level-up detection)
    streaks   -> ledger  (milestone bonus)
    challenges -> ledger, currency
    quests    -> ledger, currency
    recognition -> ledger
    rewards   -> currency
"""

import logging
from typing import Optional

from gamify.db.store import GamificationStore
from gamify.gamification.badge_system import BadgeEvaluator
from gamify.gamification.challenges import ChallengeEngine
from gamify.gamification.currency_system import CurrencyLedger
from gamify.gamification.level_system import LevelCalculator
from gamify.gamification.points_ledger import PointsLedger
from gamify.gamification.quests import QuestEngine
from gamify.gamification.rankings import RankingEngine
from gamify.gamification.recognition import PeerRecognitions
from gamify.gamification.rewards import RewardShop
from gamify.gamification.social_badges import SocialBadges
from gamify.gamification.streak_system import StreakTracker

logger = logging.getLogger(__name__)


class GamificationEngine:
    def __init__(
        self,
        store: GamificationStore,
        total_cache_ttl: Optional[float] = None,
        currency_history_cap: Optional[int] = None
    ):
        self.store = store

        self.points = PointsLedger(store, total_cache_ttl=total_cache_ttl)
        self.levels = LevelCalculator(store)
        self.badges = BadgeEvaluator(store, self.points)
        self.points.badge_evaluator = self.badges
        self.points.level_calculator = self.levels

        self.social_badges = SocialBadges(store, self.points)
        self.streaks = StreakTracker(store, self.points)
        self.currency = CurrencyLedger(store, history_cap=currency_history_cap)
        self.challenges = ChallengeEngine(store, self.points, self.currency)
        self.rankings = RankingEngine(store)
        self.rewards = RewardShop(store, self.currency)
        self.quests = QuestEngine(store, self.points, self.currency)
        self.recognition = PeerRecognitions(store, self.points)

        logger.debug(f"GamificationEngine initialized with {store.__class__.__name__}")
