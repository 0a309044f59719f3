"""
QuestEvents — Publish helpers for upstream code.

Screens and services call these instead of building QuestEvent envelopes by
hand. Each helper resolves once every engine handler has settled; quest
state is only durable after that.
"""

from typing import Any, Dict, Optional

from models.events import QuestEvent, QuestEventType
from tools.event_bus import EventBus


class QuestEvents:
    """Typed publish helpers bound to one EventBus."""

    def __init__(self, bus: EventBus):
        self.bus = bus

    async def _emit(self, event_type: QuestEventType, payload: Dict[str, Any], metadata: Optional[Dict[str, Any]] = None) -> QuestEvent:
        event = QuestEvent(type=event_type, payload=payload, metadata=metadata or {})
        await self.bus.publish(event)
        return event

    async def star_earned(self, amount: int) -> QuestEvent:
        return await self._emit(QuestEventType.STAR_EARNED, {"amount": amount})

    async def lesson_completed(self, module_id: str) -> QuestEvent:
        return await self._emit(QuestEventType.LESSON_COMPLETED, {"module_id": module_id})

    async def module_completed(self, module_id: str, score: float) -> QuestEvent:
        return await self._emit(QuestEventType.MODULE_COMPLETED, {"module_id": module_id, "score": score})

    async def level_reached(self, level: int) -> QuestEvent:
        return await self._emit(QuestEventType.LEVEL_REACHED, {"level": level})

    async def time_spent(self, minutes: int) -> QuestEvent:
        return await self._emit(QuestEventType.TIME_SPENT, {"minutes": minutes})

    async def perfect_series(self, module_id: str) -> QuestEvent:
        return await self._emit(QuestEventType.PERFECT_SERIES, {"module_id": module_id})
