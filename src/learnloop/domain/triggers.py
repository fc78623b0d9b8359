"""
Trigger events and decisions exchanged with the host application.

Inbound: TriggerEvent ("user did X").
Outbound: Fired (open a review for this card) or NotFired (with a reason).
"""

import enum
from dataclasses import dataclass

from .errors import ValidationError
from .models import Card, ReviewState, ReviewStats


class TriggerKind(str, enum.Enum):
    """Closed set of behavioral events that may lead to a review."""

    DEATH = "death"
    ADVANCEMENT = "advancement"  # completed a challenge
    BLOCK_BREAK = "block_break"
    BLOCK_PLACE = "block_place"
    ENTITY_KILL = "entity_kill"
    CHAT = "chat"  # free-text pattern match
    TIMER = "timer"  # elapsed wall-clock interval

    @classmethod
    def from_value(cls, value: "TriggerKind | str") -> "TriggerKind":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValidationError(f"Unknown trigger kind: {value!r}") from None


class NotFiredReason(str, enum.Enum):
    DISABLED = "disabled"
    FILTERED = "filtered"
    THRESHOLD_NOT_REACHED = "threshold_not_reached"
    COOLDOWN = "cooldown"
    NOTHING_DUE = "nothing_due"


@dataclass(frozen=True)
class TriggerEvent:
    """
    A single behavioral event reported by the host.

    Attributes:
        user_id: Who did it.
        kind: What kind of event.
        subject: Optional identifier of the thing involved (block, entity),
            matched against the kind's whitelist.
        text: Optional free text (chat message) matched against the chat pattern.
    """

    user_id: str
    kind: TriggerKind
    subject: str | None = None
    text: str | None = None


@dataclass(frozen=True)
class Fired:
    """Open a review for `card`; `review_state` is already materialised."""

    card: Card
    review_state: ReviewState
    kind: TriggerKind

    fired = True


@dataclass(frozen=True)
class NotFired:
    """Nothing to show. `stats` is populated for NOTHING_DUE."""

    reason: NotFiredReason
    kind: TriggerKind
    stats: ReviewStats | None = None

    fired = False


TriggerResult = Fired | NotFired
