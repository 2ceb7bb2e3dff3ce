"""Pydantic models for every gamification entity"""
from gamify.models.points import PointEntry, GamificationConfig
from gamify.models.badge import (
    Badge,
    BadgeCriteria,
    BadgeProgress,
    BadgeRarity,
    CriteriaType,
    SocialBadgeGrant,
    UserBadge,
)
from gamify.models.level import Level, LevelProgress, LevelUpEvent
from gamify.models.streak import Streak, StreakReward, StreakUpdate
from gamify.models.currency import (
    ConversionResult,
    CurrencyAccount,
    CurrencyTransaction,
    TransactionResult,
    TransactionType,
)
from gamify.models.challenge import (
    Challenge,
    ChallengeObjective,
    ChallengeProgress,
    ChallengeRewards,
    ChallengeStatus,
    ChallengeTeamProgress,
    ObjectiveProgress,
    TeamMember,
)
from gamify.models.quest import Quest, QuestProgress, QuestProgressStatus, QuestStatus
from gamify.models.recognition import PeerRecognition, RecognitionType
from gamify.models.reward import Reward, RewardRedemption, RewardType, RedemptionStatus
from gamify.models.ranking import Ranking, RankingType
from gamify.models.award import AwardResult

__all__ = [
    "PointEntry",
    "GamificationConfig",
    "Badge",
    "BadgeCriteria",
    "BadgeProgress",
    "BadgeRarity",
    "CriteriaType",
    "SocialBadgeGrant",
    "UserBadge",
    "Level",
    "LevelProgress",
    "LevelUpEvent",
    "Streak",
    "StreakReward",
    "StreakUpdate",
    "ConversionResult",
    "CurrencyAccount",
    "CurrencyTransaction",
    "TransactionResult",
    "TransactionType",
    "Challenge",
    "ChallengeObjective",
    "ChallengeProgress",
    "ChallengeRewards",
    "ChallengeStatus",
    "ChallengeTeamProgress",
    "ObjectiveProgress",
    "TeamMember",
    "Quest",
    "QuestProgress",
    "QuestProgressStatus",
    "QuestStatus",
    "PeerRecognition",
    "RecognitionType",
    "Reward",
    "RewardRedemption",
    "RewardType",
    "RedemptionStatus",
    "Ranking",
    "RankingType",
    "AwardResult",
]
