"""Error taxonomy shared by every layer."""


class LearnloopError(Exception):
    """Base class for all learnloop errors."""


class ValidationError(LearnloopError, ValueError):
    """Input rejected before anything was mutated (empty/duplicate id, bad outcome)."""


class NotFoundError(LearnloopError, LookupError):
    """An operation that requires an existing target could not find it."""


class PersistenceError(LearnloopError):
    """A snapshot or definition file could not be read or written."""
