"""
Tests for tools/event_bus.py — subscribe/publish, failure isolation, history.
"""

import asyncio

from models.events import QuestEvent, QuestEventType
from tools.event_bus import EventBus


def _event(event_type=QuestEventType.STAR_EARNED, **payload):
    return QuestEvent(type=event_type, payload=payload)


class TestEventBus:

    def test_publish_reaches_handlers_of_type_only(self):
        bus = EventBus()
        stars, minutes = [], []

        async def on_stars(event):
            stars.append(event.payload["amount"])

        async def on_time(event):
            minutes.append(event.payload["minutes"])

        bus.subscribe(QuestEventType.STAR_EARNED, on_stars)
        bus.subscribe(QuestEventType.TIME_SPENT, on_time)

        notified = asyncio.run(bus.publish(_event(amount=3)))
        assert notified == 1
        assert stars == [3]
        assert minutes == []

    def test_publish_waits_for_all_handlers(self):
        bus = EventBus()
        done = []

        async def slow(event):
            await asyncio.sleep(0.01)
            done.append("slow")

        async def fast(event):
            done.append("fast")

        bus.subscribe(QuestEventType.STAR_EARNED, slow)
        bus.subscribe(QuestEventType.STAR_EARNED, fast)
        asyncio.run(bus.publish(_event(amount=1)))
        assert sorted(done) == ["fast", "slow"]

    def test_sync_handler_supported(self):
        bus = EventBus()
        seen = []
        bus.subscribe(QuestEventType.LEVEL_REACHED, lambda e: seen.append(e.payload["level"]))
        asyncio.run(bus.publish(_event(QuestEventType.LEVEL_REACHED, level=4)))
        assert seen == [4]

    def test_failing_handler_isolated(self):
        bus = EventBus()
        seen = []

        async def broken(event):
            raise RuntimeError("boom")

        async def healthy(event):
            seen.append(event.id)

        bus.subscribe(QuestEventType.STAR_EARNED, broken)
        bus.subscribe(QuestEventType.STAR_EARNED, healthy)
        event = _event(amount=1)
        assert asyncio.run(bus.publish(event)) == 2
        assert seen == [event.id]

    def test_no_handlers(self):
        bus = EventBus()
        assert asyncio.run(bus.publish(_event(amount=1))) == 0

    def test_unsubscribe_is_idempotent(self):
        bus = EventBus()
        seen = []
        unsubscribe = bus.subscribe(QuestEventType.STAR_EARNED, lambda e: seen.append(e))
        assert bus.handler_count(QuestEventType.STAR_EARNED) == 1
        unsubscribe()
        unsubscribe()
        assert bus.handler_count() == 0
        asyncio.run(bus.publish(_event(amount=1)))
        assert seen == []

    def test_history_is_bounded(self):
        bus = EventBus(history_size=3)

        async def run():
            for i in range(5):
                await bus.publish(_event(amount=i))

        asyncio.run(run())
        history = bus.history()
        assert [e.payload["amount"] for e in history] == [2, 3, 4]
        bus.clear_history()
        assert bus.history() == []
