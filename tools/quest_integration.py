"""
QuestIntegration — Hooks the host app calls at natural progress points.

Each hook translates one app-level occurrence (module finished, series
finished, stars earned...) into the quest events it implies. Quest
bookkeeping must never break the feature that triggered it, so every hook
logs and swallows its own errors.
"""

import logging
from typing import Optional

from tools.activity_tracker import ActivityTracker
from tools.collaborators import ProfileSource
from tools.quest_engine import QuestEngine
from tools.quest_events import QuestEvents
from tools.series_tracker import SeriesTracker

logger = logging.getLogger("QuestIntegration")

PASSING_SCORE = 50


class QuestIntegration:
    """App-facing hooks around QuestEvents."""

    def __init__(
        self,
        events: QuestEvents,
        engine: QuestEngine,
        profile_source: ProfileSource,
        activity: Optional[ActivityTracker] = None,
        series: Optional[SeriesTracker] = None,
    ):
        self.events = events
        self.engine = engine
        self.profile_source = profile_source
        self.activity = activity or ActivityTracker()
        self.series = series or SeriesTracker()

    async def on_module_completed(self, module_id: str, score: float = 100, stars_earned: int = 0) -> None:
        """A module was finished with `score` (0-100)."""
        try:
            logger.info(f"Module completed: {module_id} score={score} stars={stars_earned}")
            await self.events.lesson_completed(module_id)
            if score >= PASSING_SCORE:
                await self.events.module_completed(module_id, score)
            if stars_earned > 0:
                await self.events.star_earned(stars_earned)
            await self._report_time_spent()
            await self._report_level()
        except Exception as e:
            logger.error(f"Module completion hook failed for {module_id}: {e}")

    async def on_series_start(self) -> None:
        try:
            self.series.start_series()
        except Exception as e:
            logger.error(f"Series start hook failed: {e}")

    async def on_series_error(self) -> None:
        try:
            self.series.record_error()
        except Exception as e:
            logger.error(f"Series error hook failed: {e}")

    async def on_series_completed(self, series_id: str, is_perfect: bool = False) -> None:
        """A series ended. Perfect if flagged or if no error was recorded."""
        try:
            result = self.series.complete_series(series_id)
            if result.perfect or is_perfect:
                await self.events.perfect_series(series_id)
                logger.info(f"Perfect series recorded: {series_id}")
            await self._report_time_spent()
        except Exception as e:
            logger.error(f"Series completion hook failed for {series_id}: {e}")

    async def on_stars_earned(self, amount: int) -> None:
        try:
            if amount > 0:
                await self.events.star_earned(amount)
        except Exception as e:
            logger.error(f"Stars hook failed: {e}")

    async def on_xp_gained(self, xp_amount: int) -> None:
        """XP changes may change the level; re-check it."""
        try:
            if xp_amount > 0:
                await self._report_level()
        except Exception as e:
            logger.error(f"XP hook failed: {e}")

    async def on_user_activity(self) -> None:
        try:
            self.activity.record_activity()
        except Exception as e:
            logger.error(f"Activity hook failed: {e}")

    def should_show_reward_screen(self) -> bool:
        """True when quests were completed since the last screen was shown."""
        return len(self.engine.get_completed_quests_in_session()) > 0

    async def _report_time_spent(self) -> None:
        minutes = self.activity.consume_unreported_minutes()
        if minutes > 0:
            await self.events.time_spent(minutes)

    async def _report_level(self) -> None:
        progress = await self.profile_source.get_actor_progress()
        if progress.level > 0:
            await self.events.level_reached(progress.level)
