"""
PersonalizedGenerator — Quest objectives scaled to the actor's standing.

Three objective kinds (level, module, time). Targets grow with the actor's
current value through tiered random increments; rewards are linear in the
increment. A kind already used by an ACTIVE quest of the other scope is
skipped, unless every kind is taken (then all kinds are allowed again, which
can leave both scopes with the same kinds).
"""

import random
import logging
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional, Set, Tuple

from models.progress import ActorProfile, ActorProgress
from models.quests import (
    LevelObjective,
    ModuleObjective,
    Quest,
    QuestSection,
    QuestStatus,
    QuestType,
    Rewards,
    SectionScope,
    TimeObjective,
)
from tools.collaborators import ProfileSource
from tools.quest_errors import QuestGenerationError
from tools.template_generator import QUESTS_PER_SECTION, SECTION_TITLES

logger = logging.getLogger("PersonalizedGenerator")

MAX_LEVEL = 1000
MAX_ATTEMPTS = 10


class PersonalizedKind(str, Enum):
    LEVEL = "LEVEL"
    MODULE = "MODULE"
    TIME_SPENT = "TIME_SPENT"


KIND_TO_QUEST_TYPE: Dict[PersonalizedKind, QuestType] = {
    PersonalizedKind.LEVEL: QuestType.LEVEL_REACHED,
    PersonalizedKind.MODULE: QuestType.LESSON_COMPLETED,
    PersonalizedKind.TIME_SPENT: QuestType.TIME_SPENT,
}

QUEST_TYPE_TO_KIND: Dict[QuestType, PersonalizedKind] = {
    QuestType.LEVEL_REACHED: PersonalizedKind.LEVEL,
    QuestType.LESSON_COMPLETED: PersonalizedKind.MODULE,
    QuestType.MODULE_COMPLETED: PersonalizedKind.MODULE,
    QuestType.TIME_SPENT: PersonalizedKind.TIME_SPENT,
}

# (upper bound of current value, min increment, max increment); last tier is open
LEVEL_TIERS: List[Tuple[Optional[int], int, int]] = [(5, 2, 4), (20, 5, 10), (50, 10, 15), (None, 10, 20)]
MODULE_TIERS: List[Tuple[Optional[int], int, int]] = [(5, 3, 5), (20, 5, 10), (40, 10, 15), (None, 15, 25)]
TIME_TIERS: List[Tuple[Optional[int], int, int]] = [(60, 15, 30), (300, 30, 60), (600, 60, 120), (None, 120, 240)]


def tiered_increment(rng: random.Random, current: int, tiers: List[Tuple[Optional[int], int, int]]) -> int:
    for bound, low, high in tiers:
        if bound is None or current < bound:
            return rng.randint(low, high)
    raise ValueError("tiers must end with an open tier")


def build_actor_profile(progress: ActorProgress, sections: Iterable[QuestSection]) -> ActorProfile:
    """Rebuild module and time totals from the given sections' quests.

    Personalized quests contribute start_value + progress; other ACTIVE
    lesson/module/time quests contribute their raw progress. Counters the
    profile source reports directly act as a floor.
    """
    total_modules = progress.total_modules_completed or 0
    total_time = progress.total_time_spent_minutes or 0

    for section in sections:
        for quest in section.quests:
            if isinstance(quest.objective, ModuleObjective):
                total_modules = max(total_modules, quest.cumulative_value())
            elif isinstance(quest.objective, TimeObjective):
                total_time = max(total_time, quest.cumulative_value())
            elif quest.status == QuestStatus.ACTIVE:
                if quest.type == QuestType.TIME_SPENT:
                    total_time = max(total_time, quest.progress)
                elif quest.type in (QuestType.LESSON_COMPLETED, QuestType.MODULE_COMPLETED):
                    total_modules = max(total_modules, quest.progress)

    return ActorProfile(
        level=progress.level,
        total_modules_completed=total_modules,
        total_time_spent_minutes=total_time,
    )


def used_kinds_in_other_scope(scope: SectionScope, sections: Iterable[QuestSection]) -> Set[PersonalizedKind]:
    """Kinds held by ACTIVE quests of the scope opposite to `scope`."""
    used: Set[PersonalizedKind] = set()
    for section in sections:
        if section.scope != scope.other:
            continue
        for quest in section.quests:
            if quest.status == QuestStatus.ACTIVE and quest.type in QUEST_TYPE_TO_KIND:
                used.add(QUEST_TYPE_TO_KIND[quest.type])
    return used


class PersonalizedGenerator:
    """Generates a section of personalized quests for one scope.

    Args:
        profile_source: Where the actor's level and counters come from.
        rng: Random source for increments. Seed it for reproducible runs.
        section_titles: Display title per scope.
    """

    def __init__(
        self,
        profile_source: ProfileSource,
        rng: Optional[random.Random] = None,
        section_titles: Optional[Dict[SectionScope, str]] = None,
    ):
        self.profile_source = profile_source
        self.rng = rng or random.Random()
        self.section_titles = dict(SECTION_TITLES)
        if section_titles:
            self.section_titles.update(section_titles)
        self._generators: Dict[PersonalizedKind, Callable[[ActorProfile, SectionScope], Optional[Quest]]] = {
            PersonalizedKind.LEVEL: self.generate_level_quest,
            PersonalizedKind.MODULE: self.generate_module_quest,
            PersonalizedKind.TIME_SPENT: self.generate_time_quest,
        }

    # ------------------------------------------------------------------
    # Profile
    # ------------------------------------------------------------------

    async def get_actor_profile(self, sections: Iterable[QuestSection] = ()) -> ActorProfile:
        try:
            progress = await self.profile_source.get_actor_progress()
        except Exception as e:
            logger.error(f"Profile read failed, using empty profile: {e}")
            progress = ActorProgress()
        return build_actor_profile(progress, sections)

    # ------------------------------------------------------------------
    # Per-kind objectives
    # ------------------------------------------------------------------

    def generate_level_quest(self, profile: ActorProfile, scope: SectionScope) -> Optional[Quest]:
        current = profile.level
        increment = tiered_increment(self.rng, current, LEVEL_TIERS)
        target = min(current + increment, MAX_LEVEL)
        if target <= current:
            return None
        difficulty = target - current
        return Quest(
            type=QuestType.LEVEL_REACHED,
            title=f"Reach level {target}",
            description=f"Climb to level {target}",
            target=target,
            progress=current,
            rewards=Rewards(stars=difficulty * 2, xp=difficulty * 10),
            objective=LevelObjective(scope=scope, start_value=current),
        )

    def generate_module_quest(self, profile: ActorProfile, scope: SectionScope) -> Optional[Quest]:
        current = profile.total_modules_completed
        increment = tiered_increment(self.rng, current, MODULE_TIERS)
        if current + increment <= current:
            return None
        return Quest(
            type=QuestType.LESSON_COMPLETED,
            title=f"Complete {increment} lessons",
            description=f"Finish {increment} more lessons ({current + increment} in total)",
            target=increment,
            progress=0,
            rewards=Rewards(stars=increment * 2, xp=increment * 10),
            objective=ModuleObjective(scope=scope, start_value=current),
        )

    def generate_time_quest(self, profile: ActorProfile, scope: SectionScope) -> Optional[Quest]:
        current = profile.total_time_spent_minutes
        increment = tiered_increment(self.rng, current, TIME_TIERS)
        if current + increment <= current:
            return None
        return Quest(
            type=QuestType.TIME_SPENT,
            title=f"Learn for {increment} minutes",
            description=f"Spend {increment} more minutes learning",
            target=increment,
            progress=0,
            rewards=Rewards(stars=increment // 10, xp=increment * 2),
            objective=TimeObjective(scope=scope, start_value=current),
        )

    # ------------------------------------------------------------------
    # Section
    # ------------------------------------------------------------------

    def usable_kinds(self, scope: SectionScope, other_sections: Iterable[QuestSection]) -> List[PersonalizedKind]:
        used = used_kinds_in_other_scope(scope, other_sections)
        available = [k for k in PersonalizedKind if k not in used]
        return available or list(PersonalizedKind)

    def _make(self, kind: PersonalizedKind, profile: ActorProfile, scope: SectionScope) -> Optional[Quest]:
        quest = self._generators[kind](profile, scope)
        if quest is None or quest.target <= quest.progress:
            return None
        return quest

    async def generate_section(
        self,
        scope: SectionScope,
        other_sections: Iterable[QuestSection] = (),
    ) -> QuestSection:
        """Build a section for `scope`, respecting kinds used by `other_sections`.

        Never raises: any failure yields an empty section, logged as an error.
        """
        other_sections = list(other_sections)
        section = QuestSection(title=self.section_titles[scope], scope=scope)
        try:
            profile = await self.get_actor_profile(other_sections)
            kinds = self.usable_kinds(scope, other_sections)

            selected: List[PersonalizedKind] = []
            for i in range(QUESTS_PER_SECTION):
                kind = kinds[i % len(kinds)]
                selected.append(kind if kind not in selected else kinds[0])

            for kind in selected:
                quest = self._make(kind, profile, scope)
                if quest is not None:
                    section.add_quest(quest)

            attempts = 0
            while len(section.quests) < QUESTS_PER_SECTION and attempts < MAX_ATTEMPTS:
                attempts += 1
                kind = kinds[len(section.quests) % len(kinds)]
                quest = self._make(kind, profile, scope)
                if quest is not None:
                    section.add_quest(quest)

            if not section.quests:
                raise QuestGenerationError(f"No valid objective for {scope.value}")
        except Exception as e:
            logger.error(f"Personalized generation failed for {scope.value}: {e}")
            return QuestSection(title=self.section_titles[scope], scope=scope)

        if len(section.quests) < QUESTS_PER_SECTION:
            logger.warning(f"Degraded {scope.value} section: {len(section.quests)} quests")
        logger.info(
            f"Generated {scope.value} section: "
            f"{[q.title for q in section.quests]} (kinds={[k.value for k in kinds]})"
        )
        return section
