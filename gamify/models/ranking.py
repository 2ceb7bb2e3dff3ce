"""Leaderboard snapshot models"""
from enum import Enum
from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime

from gamify.utils.datetime_helpers import now_utc


class RankingType(str, Enum):
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    ALL_TIME = "all-time"


class Ranking(BaseModel):
    """A user's position for one period; recomputable from the points ledger"""
    type: RankingType
    user_id: str
    period_start: datetime
    period_end: datetime
    points: int
    position: int = Field(ge=1)
    department: Optional[str] = None
    computed_at: datetime = Field(default_factory=now_utc)
