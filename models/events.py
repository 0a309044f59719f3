"""
Quest event envelope — the only way progress reaches the engine.
"""

import time
from enum import Enum
from typing import Any, Dict
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator

from models.quests import QuestType


class QuestEventType(str, Enum):
    STAR_EARNED = "STAR_EARNED"  # payload: {amount}
    LESSON_COMPLETED = "LESSON_COMPLETED"  # payload: {module_id}
    MODULE_COMPLETED = "MODULE_COMPLETED"  # payload: {module_id, score}
    LEVEL_REACHED = "LEVEL_REACHED"  # payload: {level}
    TIME_SPENT = "TIME_SPENT"  # payload: {minutes}
    PERFECT_SERIES = "PERFECT_SERIES"  # payload: {module_id}
    QUEST_COMPLETED = "QUEST_COMPLETED"  # payload: {quest, trigger}


# Progress events → the quest type they advance
EVENT_TO_QUEST_TYPE: Dict[QuestEventType, QuestType] = {
    QuestEventType.STAR_EARNED: QuestType.STAR_EARNED,
    QuestEventType.LESSON_COMPLETED: QuestType.LESSON_COMPLETED,
    QuestEventType.MODULE_COMPLETED: QuestType.MODULE_COMPLETED,
    QuestEventType.LEVEL_REACHED: QuestType.LEVEL_REACHED,
    QuestEventType.TIME_SPENT: QuestType.TIME_SPENT,
    QuestEventType.PERFECT_SERIES: QuestType.PERFECT_SERIES,
}


class QuestEvent(BaseModel):
    """A typed, timestamped notification. Never modified after publish."""

    id: str = Field(default_factory=lambda: f"event_{uuid4().hex}")
    type: QuestEventType
    payload: Dict[str, Any] = {}
    metadata: Dict[str, Any] = Field(default_factory=dict, validate_default=True)

    @field_validator("metadata")
    @classmethod
    def stamp_timestamp(cls, v):
        if "timestamp" not in v:
            v = {**v, "timestamp": time.time()}
        return v

    @property
    def timestamp(self) -> float:
        return self.metadata["timestamp"]
