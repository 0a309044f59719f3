"""
Tests for tools/quest_integration.py — app hooks translated to quest events.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from models.progress import ActorProgress
from models.quests import QuestType
from tools.activity_tracker import ActivityTracker
from tools.collaborators import StaticProfileSource
from tools.quest_integration import QuestIntegration
from tools.series_tracker import SeriesTracker


class FakeClock:
    def __init__(self, now=0.0):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def mock_events():
    events = MagicMock()
    for name in ("star_earned", "lesson_completed", "module_completed", "level_reached", "time_spent", "perfect_series"):
        setattr(events, name, AsyncMock())
    return events


@pytest.fixture
def mock_engine():
    engine = MagicMock()
    engine.get_completed_quests_in_session.return_value = []
    return engine


def _integration(events, engine, level=0, clock=None):
    return QuestIntegration(
        events,
        engine,
        StaticProfileSource(ActorProgress(level=level)),
        activity=ActivityTracker(clock=clock or FakeClock()),
        series=SeriesTracker(),
    )


class TestModuleCompleted:

    def test_passing_module(self, mock_events, mock_engine):
        integration = _integration(mock_events, mock_engine, level=3)
        asyncio.run(integration.on_module_completed("m1", score=80, stars_earned=4))
        mock_events.lesson_completed.assert_awaited_once_with("m1")
        mock_events.module_completed.assert_awaited_once_with("m1", 80)
        mock_events.star_earned.assert_awaited_once_with(4)
        mock_events.level_reached.assert_awaited_once_with(3)
        mock_events.time_spent.assert_not_awaited()

    def test_failing_score_skips_module_event(self, mock_events, mock_engine):
        integration = _integration(mock_events, mock_engine)
        asyncio.run(integration.on_module_completed("m1", score=40))
        mock_events.lesson_completed.assert_awaited_once()
        mock_events.module_completed.assert_not_awaited()
        mock_events.star_earned.assert_not_awaited()
        mock_events.level_reached.assert_not_awaited()

    def test_reports_active_minutes_once(self, mock_events, mock_engine):
        clock = FakeClock()
        integration = _integration(mock_events, mock_engine, clock=clock)

        async def run():
            await integration.on_user_activity()
            clock.now = 130
            await integration.on_module_completed("m1")
            await integration.on_module_completed("m2")

        asyncio.run(run())
        mock_events.time_spent.assert_awaited_once_with(2)

    def test_errors_are_swallowed(self, mock_events, mock_engine):
        mock_events.lesson_completed.side_effect = RuntimeError("bus down")
        integration = _integration(mock_events, mock_engine)
        asyncio.run(integration.on_module_completed("m1"))
        mock_events.module_completed.assert_not_awaited()


class TestSeries:

    def test_perfect_series(self, mock_events, mock_engine):
        integration = _integration(mock_events, mock_engine)

        async def run():
            await integration.on_series_start()
            await integration.on_series_completed("s1")

        asyncio.run(run())
        mock_events.perfect_series.assert_awaited_once_with("s1")

    def test_series_with_error(self, mock_events, mock_engine):
        integration = _integration(mock_events, mock_engine)

        async def run():
            await integration.on_series_start()
            await integration.on_series_error()
            await integration.on_series_completed("s1")

        asyncio.run(run())
        mock_events.perfect_series.assert_not_awaited()
        assert integration.series.normal_completed == 1

    def test_flagged_perfect_overrides_errors(self, mock_events, mock_engine):
        integration = _integration(mock_events, mock_engine)

        async def run():
            await integration.on_series_error()
            await integration.on_series_completed("s1", is_perfect=True)

        asyncio.run(run())
        mock_events.perfect_series.assert_awaited_once_with("s1")


class TestOtherHooks:

    def test_stars(self, mock_events, mock_engine):
        integration = _integration(mock_events, mock_engine)
        asyncio.run(integration.on_stars_earned(0))
        mock_events.star_earned.assert_not_awaited()
        asyncio.run(integration.on_stars_earned(6))
        mock_events.star_earned.assert_awaited_once_with(6)

    def test_xp_checks_level(self, mock_events, mock_engine):
        integration = _integration(mock_events, mock_engine, level=9)
        asyncio.run(integration.on_xp_gained(150))
        mock_events.level_reached.assert_awaited_once_with(9)

    def test_reward_screen(self, mock_events, mock_engine):
        integration = _integration(mock_events, mock_engine)
        assert integration.should_show_reward_screen() is False
        mock_engine.get_completed_quests_in_session.return_value = [MagicMock()]
        assert integration.should_show_reward_screen() is True


class TestWithEngine:

    def test_module_completion_advances_lesson_quests(self, harness):
        integration = QuestIntegration(harness.events, harness.engine, harness.profile)

        async def run():
            await harness.engine.initialize()
            await integration.on_module_completed("m1", score=100)
            return await harness.engine.get_sections()

        sections = asyncio.run(run())
        lessons = [q for s in sections for q in s.quests if q.type == QuestType.LESSON_COMPLETED]
        assert lessons
        assert all(q.progress == 1 for q in lessons)
