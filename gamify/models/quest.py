"""Quest models"""
from enum import Enum
from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime

from gamify.models.challenge import ChallengeObjective, ChallengeRewards, ObjectiveProgress
from gamify.models.points import new_id
from gamify.utils.datetime_helpers import now_utc


class QuestStatus(str, Enum):
    AVAILABLE = "available"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"


class QuestProgressStatus(str, Enum):
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"


class Quest(BaseModel):
    """A personal storyline of objectives, started by each user on their own"""
    id: str = Field(default_factory=new_id)
    title: str
    description: str = ""
    narrative: str = ""
    objectives: list[ChallengeObjective]
    rewards: ChallengeRewards = Field(default_factory=ChallengeRewards)
    status: QuestStatus = QuestStatus.AVAILABLE
    created_by: Optional[str] = None
    related_challenge_id: Optional[str] = None
    prerequisites: list[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=now_utc)


class QuestProgress(BaseModel):
    quest_id: str
    user_id: str
    progress: list[ObjectiveProgress] = Field(default_factory=list)
    status: QuestProgressStatus = QuestProgressStatus.IN_PROGRESS
    started_at: datetime = Field(default_factory=now_utc)
    completed_at: Optional[datetime] = None
    version: int = 0

    @classmethod
    def start(cls, quest: Quest, user_id: str) -> "QuestProgress":
        return cls(
            quest_id=quest.id,
            user_id=user_id,
            progress=[ObjectiveProgress(objective_index=i) for i in range(len(quest.objectives))],
        )

    @property
    def completed(self) -> bool:
        return self.status == QuestProgressStatus.COMPLETED
