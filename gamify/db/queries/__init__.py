"""Raw SQL query modules, one per gamification area"""
from gamify.db.queries import (
    badges,
    challenges,
    currency,
    levels,
    points,
    quests,
    rankings,
    recognition,
    rewards,
    streaks,
)

__all__ = [
    "badges",
    "challenges",
    "currency",
    "levels",
    "points",
    "quests",
    "rankings",
    "recognition",
    "rewards",
    "streaks",
]
