"""
QuestEngine — The quest state machine for one actor at a time.

Listens to progress events, advances matching ACTIVE quests, completes them
exactly once, persists, and replaces a section with a freshly generated one
as soon as all its quests are done.

Concurrency: every read-modify-write runs under one asyncio.Lock, so two
near-simultaneous events never lose an update. Every save is gated by the
actor id captured when the operation started; after an actor switch, work
still in flight for the previous actor is dropped instead of written.

Failure policy: storage and generation errors are logged and degrade to an
empty-but-valid state. Nothing raises out of an event handler.
"""

import asyncio
import logging
from typing import Any, Callable, Dict, List, Optional

from models.events import QuestEvent, QuestEventType
from models.progress import ActorProgress, QuestSnapshot
from models.quests import Quest, QuestSection, QuestStatus, QuestType, SectionScope
from tools.collaborators import ActorIdentity, ProfileSource
from tools.event_bus import EventBus, Unsubscribe
from tools.personalized_generator import PersonalizedGenerator
from tools.quest_storage import QuestStorage
from tools.template_generator import QUESTS_PER_SECTION, TemplateGenerator, current_values_from

logger = logging.getLogger("QuestEngine")

# Progress events handled by the engine (QUEST_COMPLETED is emitted, not consumed)
PROGRESS_EVENTS = [
    QuestEventType.STAR_EARNED,
    QuestEventType.LESSON_COMPLETED,
    QuestEventType.MODULE_COMPLETED,
    QuestEventType.LEVEL_REACHED,
    QuestEventType.TIME_SPENT,
    QuestEventType.PERFECT_SERIES,
]

SCOPE_ORDER = [SectionScope.SHORT_CYCLE, SectionScope.LONG_CYCLE]


class QuestEngine:
    """Owns the sections of the current actor.

    Args:
        bus: Event bus to subscribe to and announce completions on.
        storage: Per-actor persistence gateway.
        identity: Resolves the current actor when initialize() gets no id.
        profile_source: Actor level and counters (level reconciliation).
        generator: Personalized section generator.
        template_generator: Catalog used to top up short sections. Optional.
    """

    def __init__(
        self,
        bus: EventBus,
        storage: QuestStorage,
        identity: ActorIdentity,
        profile_source: ProfileSource,
        generator: PersonalizedGenerator,
        template_generator: Optional[TemplateGenerator] = None,
    ):
        self.bus = bus
        self.storage = storage
        self.identity = identity
        self.profile_source = profile_source
        self.generator = generator
        self.template_generator = template_generator

        self._sections: List[QuestSection] = []
        self._completed_in_session: List[Quest] = []
        self._actor_id: Optional[str] = None
        self._initialized = False
        self._needs_reload = False
        self._unsubscribers: List[Unsubscribe] = []
        self._lock = asyncio.Lock()

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    @property
    def actor_id(self) -> Optional[str]:
        return self._actor_id

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def initialize(self, actor_id: Optional[str] = None) -> bool:
        """Load (or generate) the quests of `actor_id` and start listening.

        With no id, the identity collaborator is asked. No resolvable actor
        is a no-op: anonymous sessions never get quests. Returns True when
        the engine ends up initialized.
        """
        if actor_id is None:
            try:
                actor_id = await self.identity.get_current_actor_id()
            except Exception as e:
                logger.error(f"Actor resolution failed: {e}")
                actor_id = None
        if not actor_id:
            logger.info("No current actor, quest initialization deferred")
            return False

        if self._initialized:
            if self._actor_id == actor_id:
                return True
            logger.info(f"Actor changed ({self._actor_id} -> {actor_id}), reinitializing")
            await self.deinitialize()

        self._actor_id = actor_id
        self._subscribe()
        self._initialized = True

        completed: List[Quest] = []
        async with self._lock:
            if self._actor_id == actor_id:
                completed = await self._load(actor_id)
        await self._announce(completed, {"source": "load"})
        logger.info(f"QuestEngine initialized for {actor_id} with {len(self._sections)} sections")
        return True

    async def deinitialize(self) -> None:
        """Unsubscribe and forget the current actor. Safe to call repeatedly."""
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []
        # A fresh list: work in flight keeps mutating the old one harmlessly
        self._sections = []
        self._completed_in_session = []
        if self._actor_id is not None:
            logger.info(f"QuestEngine deinitialized for {self._actor_id}")
        self._actor_id = None
        self._initialized = False
        self._needs_reload = False

    async def load_quests(self) -> List[QuestSection]:
        """Reload the current actor's state from storage."""
        actor_id = self._actor_id
        if not actor_id:
            return []
        async with self._lock:
            if self._actor_id != actor_id:
                return []
            completed = await self._load(actor_id)
        await self._announce(completed, {"source": "load"})
        return list(self._sections)

    # ------------------------------------------------------------------
    # Progress updates
    # ------------------------------------------------------------------

    async def update_quests_by_type(
        self,
        quest_type: QuestType,
        amount: int,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> List[Quest]:
        """Add `amount` to every ACTIVE quest of `quest_type`.

        Returns the quests this call completed. Completed quests are skipped,
        so re-delivering an increment after completion does nothing.
        """
        actor_id = self._actor_id
        if not actor_id:
            return []
        async with self._lock:
            if not await self._ready(actor_id):
                return []
            completed = await self._apply(
                actor_id,
                quest_type,
                lambda quest: quest.update_progress(amount),
                always_save=True,
            )
        await self._announce(completed, {"quest_type": quest_type.value, "amount": amount, **(metadata or {})})
        return completed

    async def update_level_quests(self, level: int) -> List[Quest]:
        """Move level quests up to `level` (clamped to target, never backwards)."""
        actor_id = self._actor_id
        if not actor_id:
            return []
        async with self._lock:
            if not await self._ready(actor_id):
                return []
            completed = await self._apply(
                actor_id,
                QuestType.LEVEL_REACHED,
                lambda quest: quest.advance_to(level),
                always_save=False,
            )
        await self._announce(completed, {"quest_type": QuestType.LEVEL_REACHED.value, "level": level})
        return completed

    async def reconcile_level_quests(self) -> List[Quest]:
        """Catch level quests up with the actor's true level.

        Heals progress that drifted while levels changed through paths that
        never published LEVEL_REACHED.
        """
        if not self._actor_id:
            return []
        progress = await self._read_progress()
        if progress is None:
            return []
        return await self.update_level_quests(progress.level)

    async def check_and_renew_sections(self) -> int:
        """Replace every newly completed section. Returns how many were renewed."""
        actor_id = self._actor_id
        if not actor_id:
            return 0
        async with self._lock:
            if self._actor_id != actor_id:
                return 0
            return await self._renew_completed(actor_id)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_sections(self) -> List[QuestSection]:
        """All sections, after level reconciliation. Returns copies."""
        await self.reconcile_level_quests()
        async with self._lock:
            return [s.model_copy(deep=True) for s in self._sections]

    async def get_active_quests(self) -> List[Quest]:
        await self.reconcile_level_quests()
        async with self._lock:
            return [q.model_copy(deep=True) for s in self._sections for q in s.active_quests()]

    def get_section_by_id(self, section_id: str) -> Optional[QuestSection]:
        for section in self._sections:
            if section.id == section_id:
                return section.model_copy(deep=True)
        return None

    def get_completed_quests_in_session(self) -> List[Quest]:
        """Quests completed since the last clear, for the reward screen. Returns copies."""
        return [q.model_copy(deep=True) for q in self._completed_in_session]

    def clear_completed_quests_in_session(self) -> None:
        self._completed_in_session = []

    # ------------------------------------------------------------------
    # Event handling
    # ------------------------------------------------------------------

    def _subscribe(self) -> None:
        if self._unsubscribers:
            return
        for event_type in PROGRESS_EVENTS:
            self._unsubscribers.append(self.bus.subscribe(event_type, self._handle_event))

    async def _handle_event(self, event: QuestEvent) -> None:
        """Route one progress event. Never raises."""
        try:
            payload = event.payload
            if event.type == QuestEventType.STAR_EARNED:
                await self.update_quests_by_type(QuestType.STAR_EARNED, int(payload.get("amount", 0)))
            elif event.type == QuestEventType.LESSON_COMPLETED:
                await self.update_quests_by_type(
                    QuestType.LESSON_COMPLETED, 1, {"module_id": payload.get("module_id")}
                )
            elif event.type == QuestEventType.MODULE_COMPLETED:
                await self.update_quests_by_type(
                    QuestType.MODULE_COMPLETED,
                    1,
                    {"module_id": payload.get("module_id"), "score": payload.get("score")},
                )
            elif event.type == QuestEventType.LEVEL_REACHED:
                await self.update_level_quests(int(payload.get("level", 0)))
            elif event.type == QuestEventType.TIME_SPENT:
                await self.update_quests_by_type(QuestType.TIME_SPENT, int(payload.get("minutes", 0)))
            elif event.type == QuestEventType.PERFECT_SERIES:
                await self.update_quests_by_type(
                    QuestType.PERFECT_SERIES, 1, {"module_id": payload.get("module_id")}
                )
            else:
                logger.warning(f"Unrouted event type: {event.type}")
        except Exception:
            logger.exception(f"Quest update failed for {event.type.value} (id={event.id})")

    async def _announce(self, completed: List[Quest], trigger: Dict[str, Any]) -> None:
        """Publish QUEST_COMPLETED for each quest. Called outside the lock."""
        for quest in completed:
            logger.info(f"Quest completed: {quest.title} (+{quest.rewards.stars} stars, +{quest.rewards.xp} xp)")
            event = QuestEvent(
                type=QuestEventType.QUEST_COMPLETED,
                payload={"quest": quest.model_dump(mode="json"), "trigger": trigger},
            )
            try:
                await self.bus.publish(event)
            except Exception:
                logger.exception(f"Failed to announce completion of {quest.id}")

    # ------------------------------------------------------------------
    # Internals (caller holds the lock)
    # ------------------------------------------------------------------

    def _is_current(self, actor_id: str) -> bool:
        return self._initialized and self._actor_id == actor_id

    async def _ready(self, actor_id: str) -> bool:
        """True when `actor_id` is still current and its state is loaded."""
        if not self._is_current(actor_id):
            return False
        if self._needs_reload:
            await self._load(actor_id)
        return self._is_current(actor_id)

    async def _apply(
        self,
        actor_id: str,
        quest_type: QuestType,
        step: Callable[[Quest], bool],
        always_save: bool,
    ) -> List[Quest]:
        sections = self._sections
        matched = False
        changed = False
        completed: List[Quest] = []

        for section in sections:
            for quest in section.quests:
                if quest.type != quest_type or quest.status != QuestStatus.ACTIVE:
                    continue
                matched = True
                before = quest.progress
                just_completed = step(quest)
                if just_completed:
                    completed.append(quest)
                if just_completed or quest.progress != before:
                    changed = True

        if not matched:
            return []

        self._completed_in_session.extend(completed)
        if changed or always_save:
            await self._save(actor_id)
            await self._renew_completed(actor_id)
        return completed

    async def _load(self, actor_id: str) -> List[Quest]:
        """Replace in-memory state with the stored snapshot (or a fresh one)."""
        self._needs_reload = False
        try:
            snapshot = await self.storage.load(actor_id)
        except Exception as e:
            logger.error(f"Failed to load quests for {actor_id}, running empty: {e}")
            self._sections = []
            self._needs_reload = True
            return []
        if not self._is_current(actor_id):
            return []

        completed: List[Quest] = []
        if snapshot is None or not snapshot.sections:
            await self._initialize_default_sections(actor_id)
        elif snapshot.owner_actor_id and snapshot.owner_actor_id != actor_id:
            logger.warning(f"Stored quests belong to {snapshot.owner_actor_id}, regenerating for {actor_id}")
            await self._initialize_default_sections(actor_id)
        else:
            self._sections = list(snapshot.sections)
            completed = await self._repair(actor_id)

        if not self._is_current(actor_id):
            return []
        progress = await self._read_progress()
        if progress is None:
            return completed
        completed += await self._apply(
            actor_id,
            QuestType.LEVEL_REACHED,
            lambda quest: quest.advance_to(progress.level),
            always_save=False,
        )
        return completed

    async def _initialize_default_sections(self, actor_id: str) -> None:
        """Generate both scopes; the long cycle sees the short cycle's picks."""
        sections: List[QuestSection] = []
        for scope in SCOPE_ORDER:
            sections.append(await self._generate_section(scope, list(sections)))
            if not self._is_current(actor_id):
                return
        self._sections = sections
        await self._save(actor_id)

    async def _repair(self, actor_id: str) -> List[Quest]:
        """Fill missing scopes, regenerate empty sections, renew leftovers.

        Stored quests left ACTIVE at their target are completed here and
        returned, so the caller announces them like any other completion.
        """
        sections = self._sections
        changed = False

        for scope in SCOPE_ORDER:
            if any(s.scope == scope for s in sections):
                continue
            logger.warning(f"Stored quests of {actor_id} lack a {scope.value} section, generating one")
            sections.append(await self._generate_section(scope, list(sections)))
            changed = True
            if not self._is_current(actor_id):
                return []

        for i, section in enumerate(list(sections)):
            if section.quests:
                continue
            others = [s for j, s in enumerate(sections) if j != i]
            sections[i] = await self._generate_section(section.scope, others)
            changed = True
            if not self._is_current(actor_id):
                return []

        reached = [q for s in sections for q in s.quests if q.complete_if_reached()]
        if reached:
            logger.warning(f"Completing {len(reached)} stored quests of {actor_id} already at target")
            self._completed_in_session.extend(reached)
            changed = True

        if changed:
            await self._save(actor_id)
        await self._renew_completed(actor_id)
        return reached

    async def _renew_completed(self, actor_id: str) -> int:
        """One replacement per completed section, guarded by completed_at."""
        sections = self._sections
        renewed = 0
        for i, section in enumerate(list(sections)):
            if not section.is_completed() or section.completed_at is not None:
                continue
            logger.info(f"Section {section.title} ({section.scope.value}) completed, renewing")
            others = [s for j, s in enumerate(sections) if j != i]
            replacement = await self._generate_section(section.scope, others)
            if not self._is_current(actor_id):
                return renewed
            section.mark_completed()
            sections[i] = replacement
            renewed += 1
            await self._save(actor_id)
        return renewed

    async def _generate_section(self, scope: SectionScope, others: List[QuestSection]) -> QuestSection:
        section = await self.generator.generate_section(scope, others)
        missing = QUESTS_PER_SECTION - len(section.quests)
        if missing <= 0 or self.template_generator is None:
            return section
        try:
            progress = await self._read_progress() or ActorProgress()
            values = current_values_from(progress, others + [section])
            extra = self.template_generator.generate_quests(
                scope,
                values,
                count=missing,
                exclude_types={q.type for q in section.quests},
            )
            for quest in extra:
                section.add_quest(quest)
            logger.info(f"Topped up {scope.value} section with {len(extra)} catalog quests")
        except Exception as e:
            logger.error(f"Catalog top-up failed for {scope.value}: {e}")
        return section

    async def _read_progress(self) -> Optional[ActorProgress]:
        try:
            return await self.profile_source.get_actor_progress()
        except Exception as e:
            logger.error(f"Failed to read actor progress: {e}")
            return None

    async def _save(self, actor_id: str) -> bool:
        if not self._is_current(actor_id):
            logger.warning(f"Dropping save for {actor_id}: actor is no longer current")
            return False
        try:
            await self.storage.save(actor_id, QuestSnapshot(sections=self._sections))
            return True
        except Exception as e:
            logger.error(f"Failed to save quests for {actor_id}: {e}")
            return False
