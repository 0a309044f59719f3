"""
Narrow interfaces the quest engine depends on.

The host application passes implementations at construction time; the
engine never reaches back into auth or progress modules on its own.
"""

from typing import Optional, Protocol

from models.progress import ActorProgress


class ActorIdentity(Protocol):
    """Resolves who is using the app right now."""

    async def get_current_actor_id(self) -> Optional[str]:
        ...


class ProfileSource(Protocol):
    """Source of truth for the actor's level, XP and cumulative counters."""

    async def get_actor_progress(self) -> ActorProgress:
        ...


class StaticIdentity:
    """Fixed actor id. Handy for scripts and single-user hosts."""

    def __init__(self, actor_id: Optional[str] = None):
        self.actor_id = actor_id

    async def get_current_actor_id(self) -> Optional[str]:
        return self.actor_id


class StaticProfileSource:
    """In-memory profile that callers update directly."""

    def __init__(self, progress: Optional[ActorProgress] = None):
        self.progress = progress or ActorProgress()

    async def get_actor_progress(self) -> ActorProgress:
        return self.progress.model_copy()
