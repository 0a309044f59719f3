"""
SeriesTracker — Decides whether a finished series was perfect (no errors).
"""

import logging
from typing import Optional

from pydantic import BaseModel

logger = logging.getLogger("SeriesTracker")


class SeriesResult(BaseModel):
    series_id: Optional[str] = None
    errors: int = 0
    perfect: bool = False


class SeriesTracker:
    """Counts errors in the running series and totals finished ones."""

    def __init__(self):
        self.in_progress = False
        self.current_errors = 0
        self.perfect_completed = 0
        self.normal_completed = 0
        self.last_result: Optional[SeriesResult] = None

    @property
    def total_completed(self) -> int:
        return self.perfect_completed + self.normal_completed

    def start_series(self) -> None:
        self.in_progress = True
        self.current_errors = 0

    def record_error(self) -> None:
        if not self.in_progress:
            self.start_series()
        self.current_errors += 1

    def complete_series(self, series_id: Optional[str] = None) -> SeriesResult:
        """Close the running series. A series never started counts as perfect."""
        result = SeriesResult(
            series_id=series_id,
            errors=self.current_errors,
            perfect=self.current_errors == 0,
        )
        if result.perfect:
            self.perfect_completed += 1
        else:
            self.normal_completed += 1
        self.in_progress = False
        self.current_errors = 0
        self.last_result = result
        logger.debug(f"Series {series_id} completed: perfect={result.perfect} errors={result.errors}")
        return result

    def reset(self) -> None:
        self.in_progress = False
        self.current_errors = 0
        self.perfect_completed = 0
        self.normal_completed = 0
        self.last_result = None
