"""
QuestStorage — Per-actor persistence gateway for quest state.

Every record is scoped to one actor id and tagged with its owner. A record
whose owner tag does not match the requesting actor is purged and reported
as missing. Records written before per-actor scoping (the bare prefix key)
are deleted on the first load.

Backend failures surface as QuestStorageError; the engine decides how to
degrade. A missing actor id is a caller bug and raises ActorRequiredError.
"""

import json
import logging
from typing import Optional
from datetime import datetime, timezone

from pydantic import ValidationError

from models.progress import QuestSnapshot
from tools.kv_store import KeyValueStore
from tools.quest_errors import ActorRequiredError, QuestStorageError

logger = logging.getLogger("QuestStorage")

DEFAULT_PREFIX = "quests_v2"


class QuestStorage:
    """save/load/clear of a QuestSnapshot, keyed by actor."""

    def __init__(self, store: KeyValueStore, prefix: str = DEFAULT_PREFIX):
        self.store = store
        self.prefix = prefix
        self._legacy_checked = False

    def storage_key(self, actor_id: Optional[str]) -> str:
        if not actor_id:
            raise ActorRequiredError("An actor id is required for quest storage.")
        return f"{self.prefix}_{actor_id}"

    @property
    def legacy_key(self) -> str:
        return self.prefix

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def save(self, actor_id: str, snapshot: QuestSnapshot) -> QuestSnapshot:
        """Persist `snapshot` for `actor_id`. Returns the stamped copy written."""
        key = self.storage_key(actor_id)
        stamped = snapshot.model_copy(update={
            "owner_actor_id": actor_id,
            "last_updated": datetime.now(timezone.utc),
        })
        doc = stamped.model_dump(mode="json")
        try:
            await self.store.set(key, doc)
        except Exception as e:
            raise QuestStorageError(f"Failed to save quests for {actor_id}: {e}") from e
        logger.debug(f"Saved {len(stamped.sections)} sections for {actor_id}")
        return stamped

    async def load(self, actor_id: str) -> Optional[QuestSnapshot]:
        """Load the snapshot of `actor_id`, or None when absent/stale/corrupt."""
        key = self.storage_key(actor_id)
        await self._migrate_legacy()

        try:
            raw = await self.store.get(key)
        except Exception as e:
            raise QuestStorageError(f"Failed to load quests for {actor_id}: {e}") from e
        if raw is None:
            return None

        try:
            if isinstance(raw, (str, bytes)):
                raw = json.loads(raw)
            snapshot = QuestSnapshot.model_validate(raw)
        except (ValidationError, ValueError) as e:
            logger.warning(f"Corrupt quest record for {actor_id}, purging: {e}")
            await self._purge(key)
            return None

        if snapshot.owner_actor_id and snapshot.owner_actor_id != actor_id:
            logger.warning(
                f"Quest record under {key} belongs to {snapshot.owner_actor_id}, "
                f"not {actor_id}. Purging."
            )
            await self._purge(key)
            return None

        return snapshot

    async def clear(self, actor_id: str) -> None:
        """Delete the stored quests of `actor_id` only."""
        key = self.storage_key(actor_id)
        try:
            await self.store.delete(key)
        except Exception as e:
            raise QuestStorageError(f"Failed to clear quests for {actor_id}: {e}") from e
        logger.info(f"Cleared quests for {actor_id}")

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _purge(self, key: str) -> None:
        try:
            await self.store.delete(key)
        except Exception as e:
            raise QuestStorageError(f"Failed to purge {key}: {e}") from e

    async def _migrate_legacy(self) -> None:
        """Drop the unscoped record once per gateway lifetime."""
        if self._legacy_checked:
            return
        try:
            legacy = await self.store.get(self.legacy_key)
            if legacy is not None:
                logger.info("Migration: removing legacy unscoped quest record")
                await self.store.delete(self.legacy_key)
        except Exception as e:
            raise QuestStorageError(f"Legacy quest migration failed: {e}") from e
        self._legacy_checked = True
