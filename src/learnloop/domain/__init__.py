# Domain Package
from .errors import LearnloopError, NotFoundError, PersistenceError, ValidationError
from .models import (
    Card,
    CardWithState,
    Category,
    Deck,
    LadderOutcome,
    ProgressStats,
    Rating,
    ReviewState,
    ReviewStats,
)
from .ports import CardCatalog, CategoryStore, DeckStore, SnapshotStore
from .triggers import (
    Fired,
    NotFired,
    NotFiredReason,
    TriggerEvent,
    TriggerKind,
    TriggerResult,
)

__all__ = [
    "LearnloopError",
    "NotFoundError",
    "PersistenceError",
    "ValidationError",
    "Card",
    "CardWithState",
    "Category",
    "Deck",
    "LadderOutcome",
    "ProgressStats",
    "Rating",
    "ReviewState",
    "ReviewStats",
    "CardCatalog",
    "CategoryStore",
    "DeckStore",
    "SnapshotStore",
    "Fired",
    "NotFired",
    "NotFiredReason",
    "TriggerEvent",
    "TriggerKind",
    "TriggerResult",
]
