"""Peer recognition models"""
from enum import Enum
from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime

from gamify.models.points import new_id
from gamify.utils.datetime_helpers import now_utc


class RecognitionType(str, Enum):
    KUDOS = "kudos"
    THANKS = "thanks"
    APPRECIATION = "appreciation"


class PeerRecognition(BaseModel):
    """Kudos from one user to another, optionally carrying points"""
    id: str = Field(default_factory=new_id)
    from_user_id: str
    to_user_id: str
    type: RecognitionType
    message: str = Field(min_length=1, max_length=500)
    points: Optional[int] = Field(default=None, ge=0)
    public: bool = True
    created_at: datetime = Field(default_factory=now_utc)
