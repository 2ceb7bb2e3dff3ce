"""
Gamify - gamification engine for the task-collaboration platform

Points ledger, badges, levels, streaks, virtual currency, rewards,
rankings and team challenges.
"""

__version__ = "1.0.0"
