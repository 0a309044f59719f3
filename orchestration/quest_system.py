"""
QuestSystem — Application context wiring the quest engine together.

One object per process: event bus, storage, generators, engine, publish
helpers and integration hooks. Hosts build it with build_quest_system() at
startup and call initialize() once an actor is known.
"""

import random
import logging
from typing import List, Optional

from models.quests import Quest, QuestSection
from orchestration.config import QuestSettings, load_settings
from tools.activity_tracker import ActivityTracker
from tools.collaborators import ActorIdentity, ProfileSource
from tools.event_bus import EventBus
from tools.kv_store import JsonFileStore, KeyValueStore, MemoryStore, MongoStore
from tools.personalized_generator import PersonalizedGenerator
from tools.quest_engine import QuestEngine
from tools.quest_errors import QuestStorageError
from tools.quest_events import QuestEvents
from tools.quest_integration import QuestIntegration
from tools.quest_storage import QuestStorage
from tools.series_tracker import SeriesTracker
from tools.template_generator import TemplateGenerator

logger = logging.getLogger("QuestSystem")


class QuestSystem:
    """Everything a host needs to run quests for the current actor."""

    def __init__(
        self,
        bus: EventBus,
        store: KeyValueStore,
        storage: QuestStorage,
        engine: QuestEngine,
        events: QuestEvents,
        integration: QuestIntegration,
    ):
        self.bus = bus
        self.store = store
        self.storage = storage
        self.engine = engine
        self.events = events
        self.integration = integration

    async def initialize(self) -> bool:
        """Start the engine for the current actor. Never raises."""
        try:
            ready = await self.engine.initialize()
        except Exception as e:
            logger.error(f"Quest system initialization failed (non-blocking): {e}")
            return False
        if ready:
            self.integration.activity.record_activity()
        return ready

    async def get_quest_sections(self) -> List[QuestSection]:
        """Sections of the current actor; follows an actor switch first."""
        await self.engine.initialize()
        return await self.engine.get_sections()

    async def reset(self) -> bool:
        """Drop in-memory state and start over for whoever is current now."""
        await self.engine.deinitialize()
        self.integration.activity.reset()
        self.integration.series.reset()
        return await self.initialize()

    def get_completed_quests_in_session(self) -> List[Quest]:
        return self.engine.get_completed_quests_in_session()

    def clear_completed_quests_in_session(self) -> None:
        self.engine.clear_completed_quests_in_session()

    async def shutdown(self) -> None:
        self.integration.activity.end_session()
        await self.engine.deinitialize()
        await self.store.close()
        logger.info("Quest system shut down")


async def create_store(settings: QuestSettings) -> KeyValueStore:
    """Storage backend named by settings. Mongo must be reachable."""
    if settings.storage_backend == "file":
        return JsonFileStore(settings.storage_dir)
    if settings.storage_backend == "mongo":
        store = MongoStore(uri=settings.mongodb_uri, db_name=settings.db_name)
        if not await store.connect():
            raise QuestStorageError(f"Could not connect to MongoDB at {settings.mongodb_uri}")
        return store
    return MemoryStore()


async def build_quest_system(
    identity: ActorIdentity,
    profile_source: ProfileSource,
    settings: Optional[QuestSettings] = None,
    store: Optional[KeyValueStore] = None,
) -> QuestSystem:
    """Wire a QuestSystem from settings (environment when omitted).

    Pass `store` to bypass the configured backend.
    """
    settings = settings or load_settings()
    if store is None:
        store = await create_store(settings)

    rng = random.Random(settings.random_seed)
    titles = settings.section_titles

    bus = EventBus()
    storage = QuestStorage(store, prefix=settings.storage_prefix)
    engine = QuestEngine(
        bus,
        storage,
        identity,
        profile_source,
        PersonalizedGenerator(profile_source, rng=rng, section_titles=titles),
        template_generator=TemplateGenerator(section_titles=titles),
    )
    events = QuestEvents(bus)
    integration = QuestIntegration(
        events,
        engine,
        profile_source,
        activity=ActivityTracker(inactivity_seconds=settings.inactivity_minutes * 60),
        series=SeriesTracker(),
    )
    logger.info(f"Quest system built with {settings.storage_backend} storage")
    return QuestSystem(bus, store, storage, engine, events, integration)
