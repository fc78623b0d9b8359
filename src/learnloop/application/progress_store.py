"""
Progress store — authoritative per-user review state.

Holds one in-memory map per user, loaded lazily from a SnapshotStore on first
touch. Every mutation synchronously rewrites the user's whole snapshot
(write-through). Persistence failures are logged, never raised: a failed load
behaves like a first-time user and a failed save keeps memory correct.
"""

import logging
import time
from collections.abc import Callable, Iterable, Mapping
from types import MappingProxyType

from learnloop.application.utils.locks import KeyedLocks
from learnloop.domain.constants import MIDDLE_BELOW, WEAK_BELOW
from learnloop.domain.errors import PersistenceError, ValidationError
from learnloop.domain.models import ProgressStats, ReviewState
from learnloop.domain.ports import SnapshotStore

logger = logging.getLogger(__name__)


def _require_user(user_id: str) -> str:
    if not isinstance(user_id, str) or not user_id.strip():
        raise ValidationError("User id cannot be empty")
    return user_id


class ProgressStore:
    """
    Per-user ReviewState repository.

    Follows Dependency Inversion: depends on the SnapshotStore abstraction,
    not a concrete file layout.
    """

    def __init__(
        self,
        snapshots: SnapshotStore,
        clock: Callable[[], float] = time.time,
        locks: KeyedLocks | None = None,
    ):
        """
        Args:
            snapshots: Where user snapshots are read from and written to.
            clock: Source of "now" in epoch seconds.
            locks: Per-user locks; share one instance with the trigger engine.
        """
        self._snapshots = snapshots
        self._clock = clock
        self.locks = locks or KeyedLocks()
        self._cache: dict[str, dict[str, ReviewState]] = {}

    # ---------- Loading / saving ----------

    def _states(self, user_id: str) -> dict[str, ReviewState]:
        """Return the user's live map, loading it on first touch. Caller holds the lock."""
        states = self._cache.get(user_id)
        if states is not None:
            return states
        try:
            states = dict(self._snapshots.load(user_id))
            logger.info(f"Loaded progress for {user_id}: {len(states)} cards")
        except PersistenceError as e:
            logger.error(f"Failed to load progress for {user_id}, starting empty: {e}")
            states = {}
        self._cache[user_id] = states
        return states

    def _persist(self, user_id: str, states: dict[str, ReviewState]) -> None:
        try:
            self._snapshots.save(user_id, dict(states))
            logger.debug(f"Saved progress for {user_id} ({len(states)} cards)")
        except PersistenceError as e:
            logger.error(f"Failed to save progress for {user_id}; latest change is in memory only: {e}")

    def is_loaded(self, user_id: str) -> bool:
        return user_id in self._cache

    # ---------- Reads ----------

    def get(self, user_id: str, card_id: str) -> ReviewState | None:
        """State for a card, or None if the user never touched it."""
        with self.locks(_require_user(user_id)):
            return self._states(user_id).get(card_id)

    def all_states(self, user_id: str) -> Mapping[str, ReviewState]:
        """Read-only copy of every state the user has."""
        with self.locks(_require_user(user_id)):
            return MappingProxyType(dict(self._states(user_id)))

    def due_card_ids(self, user_id: str) -> list[str]:
        now = self._clock()
        with self.locks(_require_user(user_id)):
            return [cid for cid, s in self._states(user_id).items() if s.is_due(now)]

    def new_card_ids(self, user_id: str, candidate_ids: Iterable[str]) -> list[str]:
        """Candidates the user has no state for, in the given order."""
        with self.locks(_require_user(user_id)):
            states = self._states(user_id)
            return [cid for cid in candidate_ids if cid not in states]

    def stats(self, user_id: str) -> ProgressStats:
        """
        Counts over every state the user has.

        Strength buckets by repetitions: weak < 3, middle < 5, strong >= 5.
        """
        now = self._clock()
        with self.locks(_require_user(user_id)):
            states = list(self._states(user_id).values())

        if not states:
            return ProgressStats()

        due = new = weak = middle = strong = 0
        for state in states:
            if state.is_new:
                new += 1
            if state.is_due(now):
                due += 1
            if state.repetitions < WEAK_BELOW:
                weak += 1
            elif state.repetitions < MIDDLE_BELOW:
                middle += 1
            else:
                strong += 1

        return ProgressStats(
            total=len(states), due=due, new=new, weak=weak, middle=middle, strong=strong
        )

    # ---------- Mutations ----------

    def get_or_create(self, user_id: str, card_id: str) -> ReviewState:
        """State for a card, creating and persisting a new one on first access."""
        if not isinstance(card_id, str) or not card_id.strip():
            raise ValidationError("Card id cannot be empty")
        with self.locks(_require_user(user_id)):
            states = self._states(user_id)
            state = states.get(card_id)
            if state is None:
                state = ReviewState.new(card_id, now=self._clock())
                states[card_id] = state
                logger.debug(f"Created new review state for {user_id} card {card_id}")
                self._persist(user_id, states)
            return state

    def update(self, user_id: str, state: ReviewState) -> None:
        """Replace the stored state for state.card_id and persist."""
        if not isinstance(state, ReviewState):
            raise ValidationError(f"Expected ReviewState, got {type(state).__name__}")
        with self.locks(_require_user(user_id)):
            states = self._states(user_id)
            states[state.card_id] = state
            self._persist(user_id, states)

    def reset(self, user_id: str, card_id: str) -> None:
        """Forget a card; the next access recreates it as new. Missing card is a no-op."""
        with self.locks(_require_user(user_id)):
            states = self._states(user_id)
            if states.pop(card_id, None) is None:
                return
            logger.info(f"Reset card {card_id} for {user_id}")
            self._persist(user_id, states)

    def clear_user(self, user_id: str) -> None:
        """Drop every state the user has and persist the empty snapshot."""
        with self.locks(_require_user(user_id)):
            states = self._states(user_id)
            states.clear()
            logger.info(f"Cleared all progress for {user_id}")
            self._persist(user_id, states)

    def unload(self, user_id: str) -> None:
        """Evict the in-memory map (session end). The snapshot stays on disk."""
        with self.locks(_require_user(user_id)):
            self._cache.pop(user_id, None)
