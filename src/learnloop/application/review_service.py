"""Applies a user's answer to a card and offers interval previews."""

import logging
import time
from collections.abc import Callable
from typing import Any

from learnloop.application.algorithms import IntervalAlgorithm
from learnloop.application.progress_store import ProgressStore
from learnloop.domain.errors import NotFoundError, ValidationError
from learnloop.domain.models import ReviewState
from learnloop.domain.ports import CardCatalog

logger = logging.getLogger(__name__)


class ReviewService:
    def __init__(
        self,
        progress: ProgressStore,
        algorithm: IntervalAlgorithm,
        catalog: CardCatalog | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.progress = progress
        self.algorithm = algorithm
        self.catalog = catalog
        self._clock = clock

    def _check_card(self, card_id: str) -> None:
        if not isinstance(card_id, str) or not card_id.strip():
            raise ValidationError("Card id cannot be empty")
        if self.catalog is not None and self.catalog.find_card(card_id) is None:
            raise NotFoundError(f"Card not found: {card_id}")

    def submit(self, user_id: str, card_id: str, outcome: Any) -> ReviewState:
        """
        Record the answer to a review and persist the new state.

        The whole read-apply-write runs under the user's lock, so two answers
        for the same user are applied one after the other.
        """
        self._check_card(card_id)
        outcome = self.algorithm.parse_outcome(outcome)
        with self.progress.locks(user_id):
            current = self.progress.get_or_create(user_id, card_id)
            updated = self.algorithm.apply(current, outcome, now=self._clock())
            self.progress.update(user_id, updated)

        logger.info(
            f"Review {user_id}/{card_id}: {outcome.name} -> next in "
            f"{self.algorithm.describe(updated)} (reps={updated.repetitions})"
        )
        return updated

    def preview(self, user_id: str, card_id: str) -> dict[str, str]:
        """Interval text per outcome, e.g. {"Again": "1 day", "Good": "6 days"}. Creates no state."""
        self._check_card(card_id)
        state = self.progress.get(user_id, card_id) or ReviewState.new(card_id, now=self._clock())
        return {
            outcome.display_name: self.algorithm.preview_interval(state, outcome)
            for outcome in self.algorithm.outcomes()
        }
