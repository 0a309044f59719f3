"""
ActivityTracker — Active learning time with automatic pause on inactivity.

The clock runs between interactions and stops when the gap between two
interactions exceeds the inactivity threshold. Minutes handed to the quest
engine are deltas since the previous report, so TIME_SPENT stays additive.
"""

import time
import logging
from typing import Callable, Optional

logger = logging.getLogger("ActivityTracker")

DEFAULT_INACTIVITY_SECONDS = 5 * 60


class ActivityTracker:
    """Accumulates active time for one session.

    Args:
        inactivity_seconds: Gap after which the clock is considered paused.
        clock: Seconds source, injectable for tests.
    """

    def __init__(
        self,
        inactivity_seconds: float = DEFAULT_INACTIVITY_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self.inactivity_seconds = inactivity_seconds
        self._clock = clock
        self.total_active_seconds = 0.0
        self.session_started_at: Optional[float] = None
        self.last_activity_at: Optional[float] = None
        self._reported_minutes = 0

    @property
    def is_running(self) -> bool:
        return self.session_started_at is not None

    def record_activity(self) -> None:
        """Note an interaction; resumes the clock after a pause."""
        now = self._clock()
        if self.is_running and self.last_activity_at is not None:
            if now - self.last_activity_at > self.inactivity_seconds:
                self._pause_at_last_activity()
                logger.debug("Inactivity detected, clock paused")
        if not self.is_running:
            self.session_started_at = now
        self.last_activity_at = now

    def end_session(self) -> None:
        now = self._clock()
        if self.is_running:
            self.total_active_seconds += now - self.session_started_at
        self.session_started_at = None
        self.last_activity_at = now

    def is_active(self) -> bool:
        """True while running and the last interaction is recent enough."""
        if not self.is_running:
            return False
        if self.last_activity_at is not None and self._clock() - self.last_activity_at > self.inactivity_seconds:
            self._pause_at_last_activity()
            return False
        return True

    def _pause_at_last_activity(self) -> None:
        # Credit only up to the last interaction before the gap
        if self.is_running and self.last_activity_at is not None:
            self.total_active_seconds += self.last_activity_at - self.session_started_at
        self.session_started_at = None

    def active_seconds(self) -> float:
        total = self.total_active_seconds
        if self.is_running:
            end = self._clock()
            # An idle gap past the threshold counts up to the last interaction only
            if self.last_activity_at is not None and end - self.last_activity_at > self.inactivity_seconds:
                end = self.last_activity_at
            total += end - self.session_started_at
        return total

    def active_minutes(self) -> int:
        return int(self.active_seconds() // 60)

    def consume_unreported_minutes(self) -> int:
        """Whole minutes accumulated since the previous call."""
        minutes = self.active_minutes()
        delta = minutes - self._reported_minutes
        if delta <= 0:
            return 0
        self._reported_minutes = minutes
        return delta

    def reset(self) -> None:
        """Start a new accounting period, keeping a running session running."""
        running = self.is_running
        now = self._clock()
        self.total_active_seconds = 0.0
        self._reported_minutes = 0
        self.session_started_at = now if running else None
        self.last_activity_at = now
