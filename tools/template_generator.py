"""
TemplateGenerator — Stateless catalog of canned quest objectives.

For each quest type the catalog holds a few (target, rewards) pairs ordered
by increasing target. Selection picks the target just above the actor's
current cumulative value, so a catalog quest is never already satisfied.
Used as the top-up fallback when personalized generation comes up short.
"""

import logging
from typing import Dict, Iterable, List, Optional

from models.progress import ActorProgress
from models.quests import (
    CounterObjective,
    Quest,
    QuestSection,
    QuestStatus,
    QuestType,
    Rewards,
    SectionScope,
)

logger = logging.getLogger("TemplateGenerator")

QUESTS_PER_SECTION = 3

SECTION_TITLES: Dict[SectionScope, str] = {
    SectionScope.SHORT_CYCLE: "Weekly quests",
    SectionScope.LONG_CYCLE: "Monthly quests",
}


QUEST_TEMPLATES: Dict[QuestType, List[dict]] = {
    QuestType.STAR_EARNED: [
        {"title": "Earn 10 stars", "description": "Earn 10 stars by completing modules", "target": 10, "rewards": {"stars": 5, "xp": 50}},
        {"title": "Earn 25 stars", "description": "Earn 25 stars by completing modules", "target": 25, "rewards": {"stars": 10, "xp": 100}},
        {"title": "Earn 50 stars", "description": "Earn 50 stars by completing modules", "target": 50, "rewards": {"stars": 20, "xp": 200}},
    ],
    QuestType.LESSON_COMPLETED: [
        {"title": "Complete 3 lessons", "description": "Finish 3 full lessons", "target": 3, "rewards": {"stars": 10, "xp": 100}},
        {"title": "Complete 5 lessons", "description": "Finish 5 full lessons", "target": 5, "rewards": {"stars": 15, "xp": 150}},
        {"title": "Complete 10 lessons", "description": "Finish 10 full lessons", "target": 10, "rewards": {"stars": 30, "xp": 300}},
    ],
    QuestType.MODULE_COMPLETED: [
        {"title": "Complete 2 modules", "description": "Finish 2 modules with a score of at least 50%", "target": 2, "rewards": {"stars": 10, "xp": 100}},
        {"title": "Complete 5 modules", "description": "Finish 5 modules with a score of at least 50%", "target": 5, "rewards": {"stars": 25, "xp": 250}},
    ],
    QuestType.LEVEL_REACHED: [
        {"title": "Reach level 2", "description": "Climb to level 2", "target": 2, "rewards": {"stars": 20, "xp": 200}},
        {"title": "Reach level 5", "description": "Climb to level 5", "target": 5, "rewards": {"stars": 50, "xp": 500}},
        {"title": "Reach level 10", "description": "Climb to level 10", "target": 10, "rewards": {"stars": 100, "xp": 1000}},
    ],
    QuestType.TIME_SPENT: [
        {"title": "Learn for 10 minutes", "description": "Spend 10 minutes learning", "target": 10, "rewards": {"stars": 10, "xp": 100}},
        {"title": "Learn for 30 minutes", "description": "Spend 30 minutes learning", "target": 30, "rewards": {"stars": 30, "xp": 300}},
        {"title": "Learn for 60 minutes", "description": "Spend 60 minutes learning", "target": 60, "rewards": {"stars": 60, "xp": 600}},
    ],
    QuestType.PERFECT_SERIES: [
        {"title": "Score 3 perfect series", "description": "Score 100% on 3 modules", "target": 3, "rewards": {"stars": 30, "xp": 300}},
        {"title": "Score 5 perfect series", "description": "Score 100% on 5 modules", "target": 5, "rewards": {"stars": 50, "xp": 500}},
    ],
}


def select_template(
    quest_type: QuestType,
    current_value: int,
    current_level: int = 0,
    templates: Optional[List[dict]] = None,
) -> Optional[dict]:
    """Pick the template whose target sits just above `current_value`.

    Level objectives are special-cased: among targets above the current
    level, the smallest one wins. Returns None when every target has
    already been reached.
    """
    if templates is None:
        templates = QUEST_TEMPLATES.get(quest_type, [])
    valid = [t for t in templates if t["target"] > current_value]
    if not valid:
        return None

    if quest_type == QuestType.LEVEL_REACHED:
        above_level = [t for t in valid if t["target"] > current_level]
        if above_level:
            return min(above_level, key=lambda t: t["target"])

    return min(valid, key=lambda t: abs(t["target"] - current_value))


def current_values_from(progress: ActorProgress, sections: Iterable[QuestSection]) -> Dict[QuestType, int]:
    """Cumulative value per quest type, from the profile and the active quests."""
    values = {
        QuestType.STAR_EARNED: progress.total_stars,
        QuestType.LESSON_COMPLETED: progress.total_modules_completed or 0,
        QuestType.MODULE_COMPLETED: 0,
        QuestType.LEVEL_REACHED: progress.level,
        QuestType.TIME_SPENT: progress.total_time_spent_minutes or 0,
        QuestType.PERFECT_SERIES: 0,
    }
    for section in sections:
        for quest in section.quests:
            if quest.status != QuestStatus.ACTIVE or quest.type == QuestType.LEVEL_REACHED:
                continue
            values[quest.type] = max(values[quest.type], quest.cumulative_value())
    return values


class TemplateGenerator:
    """Builds catalog quests and full fallback sections."""

    def __init__(self, section_titles: Optional[Dict[SectionScope, str]] = None):
        self.section_titles = dict(SECTION_TITLES)
        if section_titles:
            self.section_titles.update(section_titles)

    def ordered_types(self, scope: SectionScope, level: int) -> List[QuestType]:
        """Deterministic shuffle of quest types, seeded by scope and level."""
        seed = (1 if scope == SectionScope.SHORT_CYCLE else 2) * 1000 + level
        shuffled = list(QUEST_TEMPLATES.keys())
        for i in range(len(shuffled) - 1, 0, -1):
            j = seed % (i + 1)
            shuffled[i], shuffled[j] = shuffled[j], shuffled[i]
        return shuffled

    def build_quest(self, quest_type: QuestType, template: dict, current_value: int, scope: SectionScope) -> Optional[Quest]:
        if current_value >= template["target"]:
            return None
        return Quest(
            type=quest_type,
            title=template["title"],
            description=template["description"],
            target=template["target"],
            progress=current_value,
            rewards=Rewards(**template["rewards"]),
            objective=CounterObjective(scope=scope, start_value=current_value),
        )

    def default_quest(self, index: int, scope: SectionScope, current_values: Dict[QuestType, int]) -> Optional[Quest]:
        """Synthesized objective used when the catalog runs dry."""
        defaults = [
            (QuestType.LESSON_COMPLETED, 3 + index, "Complete {n} more lessons", "Finish {n} more full lessons", 10 + index * 5, 100 + index * 50),
            (QuestType.STAR_EARNED, 10 + index * 5, "Earn {n} more stars", "Earn {n} more stars", 5 + index * 2, 50 + index * 25),
            (QuestType.TIME_SPENT, 10 + index * 5, "Learn for {n} more minutes", "Spend {n} more minutes learning", 10 + index * 5, 100 + index * 50),
        ]
        if index >= len(defaults):
            return None
        quest_type, offset, title, description, stars, xp = defaults[index]
        current = current_values.get(quest_type, 0)
        # Offsets sit above the current value so the objective is never satisfied
        target = current + offset
        return Quest(
            type=quest_type,
            title=title.format(n=offset),
            description=description.format(n=offset),
            target=target,
            progress=current,
            rewards=Rewards(stars=stars, xp=xp),
            objective=CounterObjective(scope=scope, start_value=current, is_default=True),
        )

    def generate_quests(
        self,
        scope: SectionScope,
        current_values: Dict[QuestType, int],
        count: int = QUESTS_PER_SECTION,
        exclude_types: Iterable[QuestType] = (),
    ) -> List[Quest]:
        """Up to `count` catalog quests, skipping `exclude_types`."""
        excluded = set(exclude_types)
        level = current_values.get(QuestType.LEVEL_REACHED, 0)
        quests: List[Quest] = []

        for quest_type in self.ordered_types(scope, level):
            if len(quests) >= count:
                break
            if quest_type in excluded:
                continue
            current = current_values.get(quest_type, 0)
            template = select_template(quest_type, current, level)
            if template is None:
                continue
            quest = self.build_quest(quest_type, template, current, scope)
            if quest is not None:
                quests.append(quest)

        index = 0
        while len(quests) < count:
            quest = self.default_quest(index, scope, current_values)
            if quest is None:
                break
            quests.append(quest)
            index += 1

        return quests

    def generate_section(self, scope: SectionScope, current_values: Dict[QuestType, int]) -> QuestSection:
        section = QuestSection(title=self.section_titles[scope], scope=scope)
        for quest in self.generate_quests(scope, current_values):
            section.add_quest(quest)
        logger.info(f"Generated catalog section {scope.value} with {len(section.quests)} quests")
        return section
