"""Reward catalog and redemption models"""
from enum import Enum
from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime

from gamify.models.points import new_id
from gamify.utils.datetime_helpers import now_utc


class RewardType(str, Enum):
    VIRTUAL = "virtual"
    REAL = "real"


class RedemptionStatus(str, Enum):
    PENDING = "pending"
    FULFILLED = "fulfilled"
    CANCELLED = "cancelled"


class Reward(BaseModel):
    """Something a user can buy with currency; stock=None means unlimited"""
    id: str = Field(default_factory=new_id)
    name: str
    description: str = ""
    type: RewardType
    cost: int = Field(ge=0)
    category: str
    image: Optional[str] = None
    stock: Optional[int] = Field(default=None, ge=0)
    active: bool = True
    created_at: datetime = Field(default_factory=now_utc)


class RewardRedemption(BaseModel):
    id: str = Field(default_factory=new_id)
    user_id: str
    reward_id: str
    quantity: int = Field(default=1, ge=1)
    cost: int = Field(default=0, ge=0)
    status: RedemptionStatus = RedemptionStatus.PENDING
    redeemed_at: datetime = Field(default_factory=now_utc)
    fulfilled_at: Optional[datetime] = None
