"""Challenge models"""
from enum import Enum
from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime

from gamify.models.points import new_id
from gamify.utils.datetime_helpers import now_utc


class ChallengeStatus(str, Enum):
    UPCOMING = "upcoming"
    ACTIVE = "active"
    ENDED = "ended"


class ChallengeObjective(BaseModel):
    """A measurable condition, e.g. type=task_completed target=10"""
    type: str
    target: int = Field(ge=1)
    description: str = ""


class ChallengeRewards(BaseModel):
    badges: list[str] = Field(default_factory=list)
    currency: int = Field(default=0, ge=0)
    points: int = Field(default=0, ge=0)


class Challenge(BaseModel):
    """Challenge definition"""
    id: str = Field(default_factory=new_id)
    title: str
    description: str = ""
    objectives: list[ChallengeObjective]
    rewards: ChallengeRewards = Field(default_factory=ChallengeRewards)
    team_based: bool = False
    participating_teams: list[str] = Field(default_factory=list)
    participants: list[str] = Field(default_factory=list)
    status: ChallengeStatus = ChallengeStatus.UPCOMING
    rewards_distributed: bool = False
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None


class ObjectiveProgress(BaseModel):
    objective_index: int
    current: int = 0
    completed: bool = False


class _ProgressBase(BaseModel):
    challenge_id: str
    progress: list[ObjectiveProgress] = Field(default_factory=list)
    total_progress: int = 0
    completed: bool = False
    completed_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=now_utc)
    version: int = 0

    @classmethod
    def for_challenge(cls, challenge: Challenge, **kwargs):
        """Zeroed progress, one row per objective"""
        return cls(
            challenge_id=challenge.id,
            progress=[
                ObjectiveProgress(objective_index=i)
                for i in range(len(challenge.objectives))
            ],
            **kwargs
        )


class ChallengeTeamProgress(_ProgressBase):
    """A team's progress inside a team-based challenge"""
    team_id: str
    rank: Optional[int] = None


class ChallengeProgress(_ProgressBase):
    """A single user's progress inside an individual challenge"""
    user_id: str


class TeamMember(BaseModel):
    team_id: str
    user_id: str
    active: bool = True
