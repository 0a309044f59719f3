"""
EventBus — Async publish/subscribe dispatcher for quest events.

Handlers for one event run concurrently and publish() returns only once all
of them have settled. A failing handler is logged and never reaches the
publisher or its siblings. Side effects of handlers are not durable until
the publish() call has returned.
"""

import asyncio
import inspect
import logging
from collections import deque
from typing import Awaitable, Callable, Dict, List, Optional, Union

from models.events import QuestEvent, QuestEventType

logger = logging.getLogger("EventBus")

EventHandler = Callable[[QuestEvent], Union[Awaitable[None], None]]
Unsubscribe = Callable[[], None]

HISTORY_SIZE = 100


class EventBus:
    """Typed event dispatcher with a bounded diagnostic history.

    The history ring buffer is for debugging only; nothing in the engine
    reads it back.
    """

    def __init__(self, history_size: int = HISTORY_SIZE):
        self._handlers: Dict[QuestEventType, List[EventHandler]] = {}
        self._history: deque = deque(maxlen=history_size)

    def subscribe(self, event_type: QuestEventType, handler: EventHandler) -> Unsubscribe:
        """Register `handler` for `event_type`. Returns an idempotent unsubscribe."""
        self._handlers.setdefault(event_type, []).append(handler)

        def unsubscribe() -> None:
            handlers = self._handlers.get(event_type)
            if handlers and handler in handlers:
                handlers.remove(handler)

        return unsubscribe

    async def publish(self, event: QuestEvent) -> int:
        """Deliver `event` to every handler of its type.

        Returns the number of handlers notified.
        """
        self._history.append(event)
        handlers = list(self._handlers.get(event.type, []))
        if not handlers:
            logger.debug(f"No handlers for {event.type.value} (id={event.id[:14]})")
            return 0
        await asyncio.gather(*(self._invoke(handler, event) for handler in handlers))
        return len(handlers)

    async def _invoke(self, handler: EventHandler, event: QuestEvent) -> None:
        try:
            result = handler(event)
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception(f"Handler {getattr(handler, '__qualname__', handler)} failed for {event.type.value}")

    def handler_count(self, event_type: Optional[QuestEventType] = None) -> int:
        if event_type is not None:
            return len(self._handlers.get(event_type, []))
        return sum(len(h) for h in self._handlers.values())

    def history(self) -> List[QuestEvent]:
        """Return a copy of the most recent events, oldest first."""
        return list(self._history)

    def clear_history(self) -> None:
        self._history.clear()
