"""
Shared pytest fixtures for the quest engine test suite.

Fakes for the collaborators the engine is built on (identity, profile
source, key-value store) plus an EngineHarness that wires a full engine
against an in-memory store with a seeded random source.
"""

import random
import asyncio
from typing import List, Optional

import pytest

from models.progress import ActorProgress, QuestSnapshot
from models.quests import CounterObjective, Quest, QuestSection, QuestType, SectionScope
from tools.event_bus import EventBus
from tools.kv_store import MemoryStore
from tools.personalized_generator import PersonalizedGenerator
from tools.quest_engine import QuestEngine
from tools.quest_events import QuestEvents
from tools.quest_storage import QuestStorage
from tools.template_generator import TemplateGenerator


# ---------------------------------------------------------------------------
# Collaborator fakes
# ---------------------------------------------------------------------------

class FakeIdentity:
    """Identity whose current actor tests change by assignment."""

    def __init__(self, actor_id: Optional[str] = "actor-1"):
        self.actor_id = actor_id

    async def get_current_actor_id(self):
        return self.actor_id


class FakeProfileSource:
    """Profile source that can fail or hold readers at a gate.

    Usage:
        profile.block()            # readers now wait on profile.gate
        await profile.entered.wait()
        profile.gate.set()
    """

    def __init__(self, level: int = 0, **kwargs):
        self.progress = ActorProgress(level=level, **kwargs)
        self.fail = False
        self.gate: Optional[asyncio.Event] = None
        self.entered: Optional[asyncio.Event] = None
        self.calls = 0

    def block(self):
        self.gate = asyncio.Event()
        self.entered = asyncio.Event()

    async def get_actor_progress(self):
        self.calls += 1
        if self.gate is not None:
            self.entered.set()
            await self.gate.wait()
        if self.fail:
            raise RuntimeError("profile unavailable")
        return self.progress.model_copy()


class FlakyStore(MemoryStore):
    """MemoryStore with switchable read/write failures and a write counter."""

    def __init__(self):
        super().__init__()
        self.fail_reads = False
        self.fail_writes = False
        self.writes = 0

    async def get(self, key):
        if self.fail_reads:
            raise OSError("store unavailable")
        return await super().get(key)

    async def set(self, key, value):
        if self.fail_writes:
            raise OSError("store unavailable")
        self.writes += 1
        await super().set(key, value)


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------

def build_quest(quest_type=QuestType.STAR_EARNED, target=10, progress=0, objective=None, title=None):
    return Quest(
        type=quest_type,
        title=title or f"{quest_type.value} x{target}",
        target=target,
        progress=progress,
        objective=objective or CounterObjective(),
    )


def build_section(scope=SectionScope.SHORT_CYCLE, quests: Optional[List[Quest]] = None):
    title = "Weekly quests" if scope == SectionScope.SHORT_CYCLE else "Monthly quests"
    return QuestSection(title=title, scope=scope, quests=quests or [])


def lesson_section(scope=SectionScope.LONG_CYCLE):
    """Three untouched lesson quests, used as the 'other' section."""
    return build_section(scope, [build_quest(QuestType.LESSON_COMPLETED, target=20 + i) for i in range(3)])


class EngineHarness:
    """A QuestEngine wired to fakes, plus the pieces tests poke at."""

    def __init__(self, actor_id="actor-1", level=0, store=None, seed=7, **progress):
        self.identity = FakeIdentity(actor_id)
        self.profile = FakeProfileSource(level=level, **progress)
        self.store = store if store is not None else FlakyStore()
        self.bus = EventBus()
        self.storage = QuestStorage(self.store)
        self.generator = PersonalizedGenerator(self.profile, rng=random.Random(seed))
        self.engine = QuestEngine(
            self.bus,
            self.storage,
            self.identity,
            self.profile,
            self.generator,
            template_generator=TemplateGenerator(),
        )
        self.events = QuestEvents(self.bus)

    async def seed(self, sections, actor_id=None):
        await self.storage.save(actor_id or self.identity.actor_id, QuestSnapshot(sections=sections))

    async def find(self, quest_id):
        for section in await self.engine.get_sections():
            for quest in section.quests:
                if quest.id == quest_id:
                    return quest
        return None


# ---------------------------------------------------------------------------
# Pytest fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def harness():
    return EngineHarness()


@pytest.fixture
def make_harness():
    return EngineHarness


@pytest.fixture
def make_quest():
    return build_quest


@pytest.fixture
def make_section():
    return build_section


@pytest.fixture
def make_lesson_section():
    return lesson_section
