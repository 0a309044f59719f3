"""
Pydantic v2 data models — the contract for all quest state.

Every record written to the key-value store passes through these models
first. If validation fails on load, the record is treated as corrupt.
"""

from models.quests import (
    Quest,
    QuestSection,
    QuestStatus,
    QuestType,
    Rewards,
    SectionScope,
    LevelObjective,
    ModuleObjective,
    TimeObjective,
    CounterObjective,
)
from models.events import QuestEvent, QuestEventType, EVENT_TO_QUEST_TYPE
from models.progress import ActorProgress, ActorProfile, QuestSnapshot

__all__ = [
    "Quest",
    "QuestSection",
    "QuestStatus",
    "QuestType",
    "Rewards",
    "SectionScope",
    "LevelObjective",
    "ModuleObjective",
    "TimeObjective",
    "CounterObjective",
    "QuestEvent",
    "QuestEventType",
    "EVENT_TO_QUEST_TYPE",
    "ActorProgress",
    "ActorProfile",
    "QuestSnapshot",
]
