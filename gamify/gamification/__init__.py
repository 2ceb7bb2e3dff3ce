"""
Gamification engine

- Points ledger with badge/level cascade
- Badge evaluator and social badges
- Level calculator
- Streak tracker
- Currency ledger and reward shop
- Team/individual challenges and user leaderboards
- Quests and peer recognition
"""

from gamify.gamification.engine import GamificationEngine
from gamify.gamification.points_ledger import PointsLedger
from gamify.gamification.level_system import LevelCalculator, DEFAULT_LEVELS, calculate_level_progress
from gamify.gamification.badge_system import BadgeEvaluator, BADGE_RARITY_POINTS
from gamify.gamification.social_badges import SocialBadges
from gamify.gamification.streak_system import StreakTracker, MILESTONE_POINTS
from gamify.gamification.currency_system import CurrencyLedger
from gamify.gamification.challenges import ChallengeEngine, get_reward_multiplier
from gamify.gamification.rankings import RankingEngine
from gamify.gamification.rewards import RewardShop
from gamify.gamification.quests import QuestEngine
from gamify.gamification.recognition import PeerRecognitions

__all__ = [
    "GamificationEngine",
    "PointsLedger",
    "LevelCalculator",
    "DEFAULT_LEVELS",
    "calculate_level_progress",
    "BadgeEvaluator",
    "BADGE_RARITY_POINTS",
    "SocialBadges",
    "StreakTracker",
    "MILESTONE_POINTS",
    "CurrencyLedger",
    "ChallengeEngine",
    "get_reward_multiplier",
    "RankingEngine",
    "RewardShop",
    "QuestEngine",
    "PeerRecognitions",
]
