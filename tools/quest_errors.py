"""
Quest Error Types — Structured exception hierarchy.

Separates caller bugs (missing actor) that must fail fast from transient
storage failures the engine absorbs and logs.
"""


class QuestError(Exception):
    """Base class for all quest engine errors."""
    pass


class ActorRequiredError(QuestError):
    """A storage call was made without an actor id. Caller bug, NOT retryable."""
    pass


class QuestStorageError(QuestError):
    """The key-value backend failed to read, write or delete. Transient."""
    pass


class QuestGenerationError(QuestError):
    """A generator could not build a section. Degrades to an empty section."""
    pass
