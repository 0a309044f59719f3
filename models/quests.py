"""
Quest schemas — quests, their objectives, and the sections that own them.

A Section owns exactly its Quests. Quests are created by a generator and
mutated only by the QuestEngine through update_progress() / advance_to().
Every record crossing the storage boundary is validated by these models.
"""

from enum import Enum
from typing import Annotated, List, Optional, Union, Literal
from datetime import datetime, timezone
from uuid import uuid4

from pydantic import AliasChoices, BaseModel, Field, field_validator


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class QuestType(str, Enum):
    """Objective types. Each one is fed by exactly one progress event."""

    STAR_EARNED = "star_earned"
    LESSON_COMPLETED = "lesson_completed"
    MODULE_COMPLETED = "module_completed"
    LEVEL_REACHED = "level_reached"
    TIME_SPENT = "time_spent"
    PERFECT_SERIES = "perfect_series"


class QuestStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"


class SectionScope(str, Enum):
    """Cadence class of a section. Two scopes run side by side."""

    SHORT_CYCLE = "short_cycle"
    LONG_CYCLE = "long_cycle"

    @property
    def other(self) -> "SectionScope":
        if self is SectionScope.SHORT_CYCLE:
            return SectionScope.LONG_CYCLE
        return SectionScope.SHORT_CYCLE


# Values written before scopes were renamed
LEGACY_SCOPES = {
    "weekly": SectionScope.SHORT_CYCLE,
    "monthly": SectionScope.LONG_CYCLE,
}


def normalize_scope(v):
    if isinstance(v, str) and v.lower() in LEGACY_SCOPES:
        return LEGACY_SCOPES[v.lower()]
    return v


class Rewards(BaseModel):
    """Granted by the caller when a quest completes, never by the engine."""

    stars: int = Field(default=0, ge=0)
    xp: int = Field(default=0, ge=0)


# ---------------------------------------------------------------------------
# Objectives: how a quest's target was derived
# ---------------------------------------------------------------------------

class _ObjectiveBase(BaseModel):
    scope: Optional[SectionScope] = None
    start_value: int = Field(default=0, ge=0)
    generated_at: datetime = Field(default_factory=_utcnow)

    @field_validator("scope", mode="before")
    @classmethod
    def validate_scope(cls, v):
        return normalize_scope(v)


class LevelObjective(_ObjectiveBase):
    """Reach an absolute level. Progress is the actor's level itself."""

    kind: Literal["level"] = "level"


class ModuleObjective(_ObjectiveBase):
    """Complete N more lessons. Progress counts from zero at creation."""

    kind: Literal["module"] = "module"


class TimeObjective(_ObjectiveBase):
    """Spend N more minutes learning. Progress counts from zero at creation."""

    kind: Literal["time"] = "time"


class CounterObjective(_ObjectiveBase):
    """Catalog or externally created quest. Progress is the raw counter."""

    kind: Literal["counter"] = "counter"
    is_default: bool = False


Objective = Annotated[
    Union[LevelObjective, ModuleObjective, TimeObjective, CounterObjective],
    Field(discriminator="kind"),
]

RELATIVE_OBJECTIVES = (ModuleObjective, TimeObjective)


# ---------------------------------------------------------------------------
# Quest
# ---------------------------------------------------------------------------

class Quest(BaseModel):
    """A single bounded numeric objective with a reward."""

    id: str = Field(default_factory=lambda: f"quest_{uuid4().hex}")
    type: QuestType
    title: str
    description: str = ""
    target: int = Field(ge=1)
    progress: int = Field(default=0, ge=0)
    status: QuestStatus = QuestStatus.ACTIVE
    rewards: Rewards = Field(default_factory=Rewards)
    section_id: Optional[str] = None
    created_at: datetime = Field(default_factory=_utcnow)
    completed_at: Optional[datetime] = None
    objective: Objective = Field(default_factory=CounterObjective)

    @field_validator("progress")
    @classmethod
    def progress_cannot_exceed_target(cls, v, info):
        target = info.data.get("target")
        if target is not None and v > target:
            return target
        return v

    @property
    def is_active(self) -> bool:
        return self.status == QuestStatus.ACTIVE

    def is_completed(self) -> bool:
        return self.status == QuestStatus.COMPLETED or self.progress >= self.target

    def cumulative_value(self) -> int:
        """The actor's running total this quest observed for its kind."""
        if isinstance(self.objective, RELATIVE_OBJECTIVES):
            return self.objective.start_value + self.progress
        return self.progress

    def update_progress(self, amount: int) -> bool:
        """Add `amount` to progress, clamped to target.

        Returns True only on the ACTIVE → COMPLETED transition. Calls on a
        completed quest, or with a non-positive amount, change nothing.
        """
        if self.is_completed() or amount <= 0:
            return False
        self.progress = min(self.progress + amount, self.target)
        return self.complete_if_reached()

    def advance_to(self, value: int) -> bool:
        """Set progress to `value` (clamped), only ever moving forward.

        Used for level objectives where the event carries a level, not a delta.
        """
        if self.is_completed():
            return False
        new_progress = min(value, self.target)
        if new_progress <= self.progress:
            return False
        self.progress = new_progress
        return self.complete_if_reached()

    def complete_if_reached(self) -> bool:
        """ACTIVE -> COMPLETED once progress sits at target. True on the transition."""
        if self.progress >= self.target and self.status == QuestStatus.ACTIVE:
            self.status = QuestStatus.COMPLETED
            self.completed_at = _utcnow()
            return True
        return False


# ---------------------------------------------------------------------------
# Section
# ---------------------------------------------------------------------------

class QuestSection(BaseModel):
    """A fixed-size group of quests sharing one scope and one renewal."""

    id: str = Field(default_factory=lambda: f"section_{uuid4().hex}")
    title: str
    scope: SectionScope = Field(validation_alias=AliasChoices("scope", "type"))
    quests: List[Quest] = []
    created_at: datetime = Field(default_factory=_utcnow)
    completed_at: Optional[datetime] = None

    @field_validator("scope", mode="before")
    @classmethod
    def validate_scope(cls, v):
        return normalize_scope(v)

    def model_post_init(self, __context) -> None:
        for quest in self.quests:
            quest.section_id = self.id

    def is_completed(self) -> bool:
        """True when the section holds quests and all of them are completed."""
        return len(self.quests) > 0 and all(q.is_completed() for q in self.quests)

    def mark_completed(self) -> bool:
        """Stamp completed_at once. Returns False if it was already set."""
        if self.completed_at is not None:
            return False
        self.completed_at = _utcnow()
        return True

    def add_quest(self, quest: Quest) -> None:
        quest.section_id = self.id
        self.quests.append(quest)

    def active_quests(self) -> List[Quest]:
        return [q for q in self.quests if q.status == QuestStatus.ACTIVE]

    def completed_quests(self) -> List[Quest]:
        return [q for q in self.quests if q.is_completed()]
