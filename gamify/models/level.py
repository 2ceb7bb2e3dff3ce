"""Level models"""
from pydantic import BaseModel, Field
from typing import Optional


class Level(BaseModel):
    """Static level definition"""
    level: int = Field(ge=1)
    points_required: int = Field(ge=0)
    name: str = ""
    color: str = ""
    benefits: list[str] = Field(default_factory=list)


class LevelProgress(BaseModel):
    """Where a user's total sits between two levels"""
    total_points: int
    current_level: int
    next_level: Optional[int]
    points_current: int
    points_next: Optional[int]
    progress: float


class LevelUpEvent(BaseModel):
    """Emitted when an award moves a user past a level threshold"""
    user_id: str
    old_level: int
    new_level: int
