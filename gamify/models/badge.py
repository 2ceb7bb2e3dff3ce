"""Badge models for gamification"""
from enum import Enum
from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime

from gamify.models.points import new_id
from gamify.utils.datetime_helpers import now_utc


class BadgeRarity(str, Enum):
    """Badge rarity, drives the bonus points on earning"""
    COMMON = "common"
    RARE = "rare"
    EPIC = "epic"
    LEGENDARY = "legendary"


class CriteriaType(str, Enum):
    """How progress toward a badge is measured"""
    COUNT = "count"          # number of ledger entries with a source tag
    THRESHOLD = "threshold"  # total points
    COMBO = "combo"          # counted like COUNT


class BadgeCriteria(BaseModel):
    """Target for a badge; description is "<source tag>:<free text>" """
    id: str = Field(default_factory=new_id)
    badge_id: Optional[str] = None
    type: CriteriaType
    value: int = Field(ge=1)
    current_progress: int = Field(default=0, ge=0)
    description: str = ""


class Badge(BaseModel):
    """Badge definition"""
    id: str = Field(default_factory=new_id)
    name: str
    description: str = ""
    icon: str = ""
    rarity: BadgeRarity = BadgeRarity.COMMON
    category: str
    criteria_id: Optional[str] = None
    social_badge: bool = False


class UserBadge(BaseModel):
    """A badge held by a user; at most one per (user, badge)"""
    id: str = Field(default_factory=new_id)
    user_id: str
    badge_id: str
    earned_at: datetime = Field(default_factory=now_utc)


class BadgeProgress(BaseModel):
    """Per-user progress toward one badge"""
    user_id: str
    badge_id: str
    current: int = 0
    target: int = 0
    updated_at: datetime = Field(default_factory=now_utc)

    @property
    def percentage(self) -> int:
        if self.target <= 0:
            return 0
        return min(100, int(self.current / self.target * 100))


class SocialBadgeGrant(BaseModel):
    """A peer giving a social badge to another user"""
    id: str = Field(default_factory=new_id)
    from_user_id: str
    to_user_id: str
    badge_id: str
    message: Optional[str] = None
    given_at: datetime = Field(default_factory=now_utc)
