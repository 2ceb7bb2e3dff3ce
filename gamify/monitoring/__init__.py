"""Monitoring infrastructure for the gamification engine"""
from gamify.monitoring.prometheus_metrics import (
    metrics,
    track_points_awarded,
    track_badge_earned,
    track_level_up,
    track_streak_milestone,
    track_currency_transaction,
    track_challenge_distribution,
    track_conflict,
    track_quest_completed,
    track_recognition_sent,
)

__all__ = [
    "metrics",
    "track_points_awarded",
    "track_badge_earned",
    "track_level_up",
    "track_streak_milestone",
    "track_currency_transaction",
    "track_challenge_distribution",
    "track_conflict",
    "track_quest_completed",
    "track_recognition_sent",
]
