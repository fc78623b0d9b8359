"""
Domain models for cards, decks, categories and per-user review state.

These are pure data structures with no I/O or external dependencies.
"""

import enum
import time
from dataclasses import dataclass, field
from typing import Any

from .constants import (
    INITIAL_EASE_FACTOR,
    INITIAL_INTERVAL_DAYS,
    MIN_EASE_FACTOR,
)
from .errors import ValidationError


def _require_text(value: Any, what: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{what} cannot be empty")
    return value


def _scalar_text(value: Any) -> Any:
    """Numbers in deck files (`id: 101`) are read as text."""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return value


def _tags(value: Any) -> tuple[str, ...]:
    if not value:
        return ()
    if isinstance(value, str):
        return (value,)
    return tuple(str(t) for t in value)


# ---------------------------------------------------------------------------
# Outcomes
# ---------------------------------------------------------------------------


class Rating(enum.Enum):
    """
    Rating given after an adaptive (SM-2) review.

    The value doubles as the 0-3 quality used by the ease formula.
    """

    AGAIN = 0
    HARD = 1
    GOOD = 2
    EASY = 3

    @property
    def quality(self) -> int:
        return self.value

    @property
    def display_name(self) -> str:
        return self.name.capitalize()

    @property
    def is_pass(self) -> bool:
        return self is not Rating.AGAIN

    @classmethod
    def from_value(cls, value: "Rating | int | str") -> "Rating":
        """Accept a Rating, its quality (0-3) or its name (case-insensitive)."""
        if isinstance(value, cls):
            return value
        if isinstance(value, bool):
            raise ValidationError(f"Unknown rating: {value!r}")
        if isinstance(value, int):
            try:
                return cls(value)
            except ValueError:
                raise ValidationError(f"Unknown rating: {value!r}") from None
        if isinstance(value, str):
            key = value.strip().upper()
            if key.isdigit():
                return cls.from_value(int(key))
            try:
                return cls[key]
            except KeyError:
                raise ValidationError(f"Unknown rating: {value!r}") from None
        raise ValidationError(f"Unknown rating: {value!r}")


class LadderOutcome(enum.Enum):
    """Binary outcome used by the fixed-ladder algorithm."""

    FORGOT = "forgot"
    REMEMBERED = "remembered"

    @property
    def display_name(self) -> str:
        return "Forgot" if self is LadderOutcome.FORGOT else "Remember"

    @classmethod
    def from_value(cls, value: "LadderOutcome | str") -> "LadderOutcome":
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            key = value.strip().lower()
            if key in ("remember", "remembered"):
                return cls.REMEMBERED
            if key in ("forgot", "forget", "forgotten"):
                return cls.FORGOT
        raise ValidationError(f"Unknown ladder outcome: {value!r}")


# ---------------------------------------------------------------------------
# Content
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Card:
    """
    A single question/answer card. Immutable after creation.

    Attributes:
        id: Unique, non-empty identifier.
        front: Question text.
        back: Answer text.
        tags: Ordered tags.
        created_at: Epoch seconds.
    """

    id: str
    front: str
    back: str
    tags: tuple[str, ...] = ()
    created_at: float = field(default_factory=time.time)

    def __post_init__(self) -> None:
        _require_text(self.id, "Card id")
        _require_text(self.front, "Card front")
        _require_text(self.back, "Card back")
        if not isinstance(self.tags, tuple):
            object.__setattr__(self, "tags", tuple(self.tags))

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "question": self.front,
            "answer": self.back,
            "createdAt": self.created_at,
        }
        if self.tags:
            data["tags"] = list(self.tags)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Card":
        return cls(
            id=_scalar_text(data.get("id", "")),
            front=_scalar_text(data.get("question", data.get("front", ""))),
            back=_scalar_text(data.get("answer", data.get("back", ""))),
            tags=_tags(data.get("tags")),
            created_at=float(data.get("createdAt", time.time())),
        )


@dataclass
class Deck:
    """A named, enableable collection of cards, optionally inside a category."""

    id: str
    name: str
    description: str = ""
    enabled: bool = True
    category_id: str | None = None
    cards: list[Card] = field(default_factory=list)

    def __post_init__(self) -> None:
        _require_text(self.id, "Deck id")
        _require_text(self.name, "Deck name")
        seen: set[str] = set()
        for card in self.cards:
            if card.id in seen:
                raise ValidationError(f"Card with id {card.id} already exists in deck {self.id}")
            seen.add(card.id)
        self.cards = list(self.cards)

    @property
    def card_count(self) -> int:
        return len(self.cards)

    def add_card(self, card: Card) -> None:
        if self.has_card(card.id):
            raise ValidationError(f"Card with id {card.id} already exists in deck {self.id}")
        self.cards.append(card)

    def remove_card(self, card_id: str) -> bool:
        before = len(self.cards)
        self.cards = [c for c in self.cards if c.id != card_id]
        return len(self.cards) != before

    def get_card(self, card_id: str) -> Card | None:
        for card in self.cards:
            if card.id == card_id:
                return card
        return None

    def has_card(self, card_id: str) -> bool:
        return self.get_card(card_id) is not None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "enabled": self.enabled,
        }
        if self.category_id is not None:
            data["categoryId"] = self.category_id
        if self.cards:
            data["cards"] = [c.to_dict() for c in self.cards]
        return data


@dataclass
class Category:
    """
    Folder in the content hierarchy.

    Stored in a flat id-indexed table; nesting is expressed only through
    parent_id, and decks point at their category through Deck.category_id.
    """

    id: str
    name: str
    description: str = ""
    parent_id: str | None = None

    def __post_init__(self) -> None:
        _require_text(self.id, "Category id")
        _require_text(self.name, "Category name")
        if self.parent_id == self.id:
            raise ValidationError(f"Category {self.id} cannot be its own parent")

    @property
    def is_top_level(self) -> bool:
        return self.parent_id is None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"id": self.id, "name": self.name, "description": self.description}
        if self.parent_id is not None:
            data["parentId"] = self.parent_id
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Category":
        return cls(
            id=data.get("id", ""),
            name=data.get("name", ""),
            description=data.get("description") or "",
            parent_id=data.get("parentId"),
        )


# ---------------------------------------------------------------------------
# Review state
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ReviewState:
    """
    Learning state of one card for one user.

    Attributes:
        card_id: The card this state belongs to.
        interval_days: Days until the next review (>= 1).
        ease_factor: SM-2 multiplier (>= 1.3); untouched by the ladder.
        repetitions: Consecutive successes, or the rung under the ladder.
        last_reviewed_at: Epoch seconds of the last review, 0 if never.
        next_due_at: Epoch seconds when the card becomes due.
    """

    card_id: str
    interval_days: int = INITIAL_INTERVAL_DAYS
    ease_factor: float = INITIAL_EASE_FACTOR
    repetitions: int = 0
    last_reviewed_at: float = 0
    next_due_at: float = 0

    def __post_init__(self) -> None:
        _require_text(self.card_id, "Card id")
        object.__setattr__(self, "interval_days", max(1, int(self.interval_days)))
        object.__setattr__(self, "ease_factor", max(MIN_EASE_FACTOR, float(self.ease_factor)))
        object.__setattr__(self, "repetitions", max(0, int(self.repetitions)))

    @classmethod
    def new(cls, card_id: str, now: float | None = None) -> "ReviewState":
        """Default state for a card the user has never reviewed."""
        return cls(card_id=card_id, next_due_at=time.time() if now is None else now)

    @property
    def is_new(self) -> bool:
        return self.repetitions == 0 and self.last_reviewed_at == 0

    def is_due(self, now: float | None = None) -> bool:
        return (time.time() if now is None else now) >= self.next_due_at

    def to_dict(self) -> dict[str, Any]:
        return {
            "cardId": self.card_id,
            "interval": self.interval_days,
            "easeFactor": self.ease_factor,
            "repetitions": self.repetitions,
            "lastReview": self.last_reviewed_at,
            "nextReview": self.next_due_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ReviewState":
        if not isinstance(data, dict) or "cardId" not in data:
            raise ValidationError(f"Review state without cardId: {data!r}")
        return cls(
            card_id=str(data["cardId"]),
            interval_days=int(data.get("interval", INITIAL_INTERVAL_DAYS)),
            ease_factor=float(data.get("easeFactor", INITIAL_EASE_FACTOR)),
            repetitions=int(data.get("repetitions", 0)),
            last_reviewed_at=float(data.get("lastReview", 0)),
            next_due_at=float(data.get("nextReview", time.time())),
        )


# ---------------------------------------------------------------------------
# Aggregates
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CardWithState:
    """A due card paired with the state that made it due."""

    card: Card
    state: ReviewState


@dataclass(frozen=True)
class ReviewStats:
    """
    Scheduler view over the enabled catalog.

    Attributes:
        total: Cards in enabled decks.
        due: Cards with state whose due time has passed.
        new: Cards without state.
        reviewed_not_due: total - new - due.
    """

    total: int
    due: int
    new: int
    reviewed_not_due: int


@dataclass(frozen=True)
class ProgressStats:
    """Store view over everything a user has touched, bucketed by strength."""

    total: int = 0
    due: int = 0
    new: int = 0
    weak: int = 0
    middle: int = 0
    strong: int = 0
