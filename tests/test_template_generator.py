"""
Tests for tools/template_generator.py — catalog selection and fallback quests.
"""

from models.progress import ActorProgress
from models.quests import ModuleObjective, QuestStatus, QuestType, SectionScope
from tools.template_generator import (
    QUEST_TEMPLATES,
    QUESTS_PER_SECTION,
    TemplateGenerator,
    current_values_from,
    select_template,
)


def _values(**overrides):
    values = {t: 0 for t in QuestType}
    for name, value in overrides.items():
        values[QuestType(name)] = value
    return values


class TestSelectTemplate:

    def test_picks_target_just_above_value(self):
        assert select_template(QuestType.STAR_EARNED, 7)["target"] == 10
        assert select_template(QuestType.STAR_EARNED, 12)["target"] == 25

    def test_none_when_every_target_reached(self):
        assert select_template(QuestType.STAR_EARNED, 50) is None

    def test_level_picks_smallest_target_above_level(self):
        assert select_template(QuestType.LEVEL_REACHED, 3, current_level=3)["target"] == 5
        assert select_template(QuestType.LEVEL_REACHED, 0, current_level=0)["target"] == 2

    def test_custom_templates(self):
        templates = [{"target": 4}, {"target": 40}]
        assert select_template(QuestType.TIME_SPENT, 30, templates=templates)["target"] == 40


class TestCurrentValues:

    def test_profile_and_active_quests(self, make_section, make_quest):
        progress = ActorProgress(level=3, total_stars=12, total_modules_completed=4)
        section = make_section(SectionScope.SHORT_CYCLE, [
            make_quest(QuestType.STAR_EARNED, target=25, progress=18),
            make_quest(QuestType.LESSON_COMPLETED, target=5, progress=2, objective=ModuleObjective(start_value=6)),
        ])
        values = current_values_from(progress, [section])
        assert values[QuestType.STAR_EARNED] == 18
        assert values[QuestType.LESSON_COMPLETED] == 8
        assert values[QuestType.LEVEL_REACHED] == 3
        assert values[QuestType.TIME_SPENT] == 0


class TestTemplateGenerator:

    def test_ordered_types_is_deterministic(self):
        gen = TemplateGenerator()
        first = gen.ordered_types(SectionScope.SHORT_CYCLE, 4)
        assert first == gen.ordered_types(SectionScope.SHORT_CYCLE, 4)
        assert sorted(first) == sorted(QUEST_TEMPLATES.keys())

    def test_generate_section_has_unsatisfied_quests(self):
        section = TemplateGenerator().generate_section(SectionScope.LONG_CYCLE, _values())
        assert section.scope == SectionScope.LONG_CYCLE
        assert section.title == "Monthly quests"
        assert len(section.quests) == QUESTS_PER_SECTION
        for quest in section.quests:
            assert quest.status == QuestStatus.ACTIVE
            assert quest.target > quest.progress
            assert quest.section_id == section.id

    def test_exclude_types(self):
        excluded = {QuestType.STAR_EARNED, QuestType.LEVEL_REACHED, QuestType.TIME_SPENT}
        quests = TemplateGenerator().generate_quests(SectionScope.SHORT_CYCLE, _values(), exclude_types=excluded)
        assert len(quests) == 3
        assert not any(q.type in excluded for q in quests)

    def test_default_quests_when_catalog_exhausted(self):
        values = {t: 10_000 for t in QuestType}
        quests = TemplateGenerator().generate_quests(SectionScope.SHORT_CYCLE, values)
        assert len(quests) == 3
        for quest in quests:
            assert quest.objective.is_default is True
            assert quest.progress == 10_000
            assert quest.target > quest.progress

    def test_custom_titles(self):
        gen = TemplateGenerator(section_titles={SectionScope.SHORT_CYCLE: "This week"})
        assert gen.generate_section(SectionScope.SHORT_CYCLE, _values()).title == "This week"
        assert gen.section_titles[SectionScope.LONG_CYCLE] == "Monthly quests"
