"""Points ledger models"""
from pydantic import BaseModel, Field
from typing import Optional, Any
from datetime import datetime
from uuid import uuid4

from gamify.utils.datetime_helpers import now_utc


def new_id() -> str:
    return str(uuid4())


class PointEntry(BaseModel):
    """One immutable grant (or deduction) of points"""
    id: str = Field(default_factory=new_id)
    user_id: str
    amount: int
    source: str
    description: str
    timestamp: datetime = Field(default_factory=now_utc)
    audited: bool = False
    metadata: dict[str, Any] = Field(default_factory=dict)
    event_id: Optional[str] = None

    model_config = {"frozen": True}


class GamificationConfig(BaseModel):
    """Base points for an action, optionally scoped to a department (None = global)"""
    id: str = Field(default_factory=new_id)
    department: Optional[str] = None
    action: str
    base_points: int = Field(ge=0)
    multipliers: dict[str, float] = Field(default_factory=dict)
    active: bool = True
