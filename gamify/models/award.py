"""Outcome of a points award and its cascade"""
from pydantic import BaseModel, Field
from typing import Optional

from gamify.models.badge import Badge
from gamify.models.level import LevelUpEvent
from gamify.models.points import PointEntry


class AwardResult(BaseModel):
    entry: PointEntry
    duplicate: bool = False
    badges_earned: list[Badge] = Field(default_factory=list)
    level_up: Optional[LevelUpEvent] = None
    cascade_skipped: bool = False
