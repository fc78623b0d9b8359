"""
Review scheduler: chooses which card a user should see next.

Read-only over both the catalog and the progress store: nothing here creates
review state. Due cards win over new ones; among due cards the most overdue
comes first, with catalog order breaking exact ties.
"""

import logging
import time
from collections.abc import Callable

from learnloop.application.progress_store import ProgressStore
from learnloop.domain.models import Card, CardWithState, ReviewStats
from learnloop.domain.ports import CardCatalog

logger = logging.getLogger(__name__)


class ReviewScheduler:
    def __init__(
        self,
        catalog: CardCatalog,
        progress: ProgressStore,
        clock: Callable[[], float] = time.time,
    ):
        self.catalog = catalog
        self.progress = progress
        self._clock = clock

    def _partition(self, user_id: str) -> tuple[list[CardWithState], list[Card], int]:
        """Split enabled cards into (due, new, total), due sorted by next_due_at."""
        cards = self.catalog.enabled_cards()
        now = self._clock()
        states = self.progress.all_states(user_id)

        due: list[CardWithState] = []
        new: list[Card] = []
        for card in cards:
            state = states.get(card.id)
            if state is None:
                new.append(card)
            elif state.is_due(now):
                due.append(CardWithState(card=card, state=state))

        # sorted() is stable, so catalog order breaks ties
        due = sorted(due, key=lambda cws: cws.state.next_due_at)
        return due, new, len(cards)

    def pick_next(self, user_id: str) -> Card | None:
        """The most overdue due card, else the first new card, else None."""
        due, new, total = self._partition(user_id)
        if total == 0:
            logger.warning("No enabled cards to review; check that at least one deck is enabled")
            return None
        if due:
            return due[0].card
        if new:
            return new[0]
        logger.debug(f"Nothing due for {user_id}")
        return None

    def due_cards(self, user_id: str, limit: int) -> list[CardWithState]:
        due, _, _ = self._partition(user_id)
        return due[: max(0, limit)]

    def new_cards(self, user_id: str, limit: int) -> list[Card]:
        _, new, _ = self._partition(user_id)
        return new[: max(0, limit)]

    def stats(self, user_id: str) -> ReviewStats:
        due, new, total = self._partition(user_id)
        return ReviewStats(
            total=total,
            due=len(due),
            new=len(new),
            reviewed_not_due=total - len(new) - len(due),
        )
