"""
Actor progress and persisted snapshot schemas.
"""

from typing import List, Optional
from datetime import datetime, timezone

from pydantic import BaseModel, Field

from models.quests import QuestSection


class ActorProgress(BaseModel):
    """What the profile source reports about the current actor."""

    level: int = Field(default=0, ge=0)
    total_xp: int = Field(default=0, ge=0)
    total_stars: int = Field(default=0, ge=0)
    total_modules_completed: Optional[int] = Field(default=None, ge=0)
    total_time_spent_minutes: Optional[int] = Field(default=None, ge=0)

    model_config = {"extra": "allow"}


class ActorProfile(BaseModel):
    """Standing used to scale personalized objectives."""

    level: int = 0
    total_modules_completed: int = 0
    total_time_spent_minutes: int = 0


class QuestSnapshot(BaseModel):
    """The full persisted quest state of one actor."""

    sections: List[QuestSection] = []
    owner_actor_id: Optional[str] = None
    last_updated: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
