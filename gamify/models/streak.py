"""Streak models"""
from pydantic import BaseModel, Field, model_validator
from typing import Optional
from datetime import date, datetime

from gamify.models.points import new_id
from gamify.utils.datetime_helpers import now_utc


class StreakReward(BaseModel):
    """Milestone reward already paid for a streak"""
    day: int
    reward: str
    received_at: datetime = Field(default_factory=now_utc)


class Streak(BaseModel):
    """Consecutive-day counter for one (user, activity type)"""
    id: str = Field(default_factory=new_id)
    user_id: str
    type: str
    consecutive_days: int = Field(default=0, ge=0)
    longest_streak: int = Field(default=0, ge=0)
    last_activity: date
    rewards_received: list[StreakReward] = Field(default_factory=list)
    version: int = 0

    @model_validator(mode="after")
    def _longest_covers_current(self):
        if self.consecutive_days > self.longest_streak:
            raise ValueError("consecutive_days cannot exceed longest_streak")
        return self

    def has_reward_for(self, day: int) -> bool:
        return any(r.day == day for r in self.rewards_received)


class StreakUpdate(BaseModel):
    """Outcome of a single update_streak call"""
    streak: Streak
    is_new_record: bool = False
    reward: Optional[str] = None
    bonus_points: int = 0
    ignored: bool = False
