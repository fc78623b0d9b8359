"""
Interval algorithms mapping (ReviewState, outcome) to the next ReviewState.

This is a pure computation module with no I/O. Every algorithm returns a new
state and never mutates its input, so previews are just applies whose
result is thrown away.
"""

import math
import time
from abc import ABC, abstractmethod
from dataclasses import replace
from typing import Any

from learnloop.domain.constants import (
    INITIAL_INTERVAL_DAYS,
    LADDER_INTERVALS_MINUTES,
    MIN_EASE_FACTOR,
    MINUTES_PER_DAY,
    PASSING_QUALITY,
    SECOND_INTERVAL_DAYS,
    SECONDS_PER_DAY,
    SECONDS_PER_MINUTE,
)
from learnloop.domain.errors import ValidationError
from learnloop.domain.models import LadderOutcome, Rating, ReviewState


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _plural(n: int, unit: str) -> str:
    return f"{n} {unit}" if n == 1 else f"{n} {unit}s"


class IntervalAlgorithm(ABC):
    """Strategy contract shared by the adaptive and fixed-ladder algorithms."""

    name: str = ""

    @abstractmethod
    def apply(self, state: ReviewState, outcome: Any, now: float | None = None) -> ReviewState:
        """Return the state after a review with `outcome`. Never mutates `state`."""
        pass

    @abstractmethod
    def outcomes(self) -> list[Any]:
        """Outcomes offered to the user, lowest first."""
        pass

    @abstractmethod
    def describe(self, state: ReviewState) -> str:
        """Human-readable interval stored in `state`."""
        pass

    @abstractmethod
    def parse_outcome(self, outcome: Any) -> Any:
        """Normalise `outcome` to this algorithm's type; raises ValidationError if it cannot."""
        pass

    def preview(self, state: ReviewState, outcome: Any, now: float | None = None) -> ReviewState:
        """Result of answering `outcome`, without persisting anything."""
        return self.apply(state, outcome, now)

    def preview_interval(self, state: ReviewState, outcome: Any) -> str:
        """E.g. "6 days": what the user gets if they answer `outcome`."""
        return self.describe(self.preview(state, outcome))


class AdaptiveAlgorithm(IntervalAlgorithm):
    """
    SM-2 on a 0-3 quality scale.

    - Again/Hard (quality < 2): repetitions reset, interval back to 1 day.
    - Good/Easy: repetitions + 1; intervals 1, 6, then interval * ease.
    - Ease moves by 0.1 - (3-q)(0.08 + (3-q)0.02) and never drops below 1.3.
    """

    name = "sm2"

    def apply(self, state: ReviewState, outcome: Any, now: float | None = None) -> ReviewState:
        rating = self.parse_outcome(outcome)
        now = time.time() if now is None else now
        q = rating.quality

        ease = max(MIN_EASE_FACTOR, state.ease_factor + (0.1 - (3 - q) * (0.08 + (3 - q) * 0.02)))

        if q < PASSING_QUALITY:
            repetitions = 0
            interval = INITIAL_INTERVAL_DAYS
        else:
            repetitions = state.repetitions + 1
            if repetitions == 1:
                interval = INITIAL_INTERVAL_DAYS
            elif repetitions == 2:
                interval = SECOND_INTERVAL_DAYS
            else:
                interval = _round_half_up(state.interval_days * ease)

        return replace(
            state,
            ease_factor=ease,
            repetitions=repetitions,
            interval_days=interval,
            last_reviewed_at=now,
            next_due_at=now + interval * SECONDS_PER_DAY,
        )

    def outcomes(self) -> list[Rating]:
        return list(Rating)

    def describe(self, state: ReviewState) -> str:
        return format_days(state.interval_days)

    @staticmethod
    def parse_outcome(outcome: Any) -> Rating:
        if isinstance(outcome, LadderOutcome):
            return Rating.AGAIN if outcome is LadderOutcome.FORGOT else Rating.GOOD
        if isinstance(outcome, str) and outcome.strip().lower() in ("forgot", "remembered", "remember"):
            return AdaptiveAlgorithm.parse_outcome(LadderOutcome.from_value(outcome))
        return Rating.from_value(outcome)


class LadderAlgorithm(IntervalAlgorithm):
    """
    Fixed ladder of intervals, two buttons.

    The rung index lives in ReviewState.repetitions. Remembering climbs one
    rung (capped at the top), forgetting drops back to rung 0 (10 minutes).
    """

    name = "ladder"

    def __init__(self, rungs_minutes: tuple[int, ...] = LADDER_INTERVALS_MINUTES):
        if not rungs_minutes or list(rungs_minutes) != sorted(rungs_minutes):
            raise ValidationError("Ladder rungs must be a non-empty ascending sequence")
        self.rungs_minutes = tuple(rungs_minutes)

    @property
    def max_level(self) -> int:
        return len(self.rungs_minutes) - 1

    def current_level(self, state: ReviewState) -> int:
        return min(state.repetitions, self.max_level)

    def remembered(self, state: ReviewState, now: float | None = None) -> ReviewState:
        return self._jump(state, min(self.current_level(state) + 1, self.max_level), now)

    def forgot(self, state: ReviewState, now: float | None = None) -> ReviewState:
        return self._jump(state, 0, now)

    def apply(self, state: ReviewState, outcome: Any, now: float | None = None) -> ReviewState:
        if self.parse_outcome(outcome) is LadderOutcome.REMEMBERED:
            return self.remembered(state, now)
        return self.forgot(state, now)

    def outcomes(self) -> list[LadderOutcome]:
        return [LadderOutcome.FORGOT, LadderOutcome.REMEMBERED]

    def describe(self, state: ReviewState) -> str:
        return format_minutes(self.rungs_minutes[self.current_level(state)])

    def _jump(self, state: ReviewState, level: int, now: float | None) -> ReviewState:
        now = time.time() if now is None else now
        minutes = self.rungs_minutes[level]
        return replace(
            state,
            repetitions=level,
            interval_days=max(1, minutes // MINUTES_PER_DAY),
            last_reviewed_at=now,
            next_due_at=now + minutes * SECONDS_PER_MINUTE,
        )

    @staticmethod
    def parse_outcome(outcome: Any) -> LadderOutcome:
        if isinstance(outcome, Rating):
            return LadderOutcome.REMEMBERED if outcome.is_pass else LadderOutcome.FORGOT
        if isinstance(outcome, LadderOutcome):
            return outcome
        try:
            return LadderOutcome.from_value(outcome)
        except ValidationError:
            return LadderAlgorithm.parse_outcome(Rating.from_value(outcome))


# ---------- Formatting ----------


def format_days(days: int) -> str:
    if days < 1:
        return "< 1 day"
    if days < 7:
        return _plural(days, "day")
    if days < 30:
        return _plural(days // 7, "week")
    if days < 365:
        return _plural(days // 30, "month")
    return _plural(days // 365, "year")


def format_minutes(minutes: int) -> str:
    if minutes < 60:
        return f"{minutes} min"
    if minutes < MINUTES_PER_DAY:
        return _plural(minutes // 60, "hour")
    return _plural(minutes // MINUTES_PER_DAY, "day")


# ---------- Registry ----------

_ALGORITHMS: dict[str, type[IntervalAlgorithm]] = {
    "sm2": AdaptiveAlgorithm,
    "adaptive": AdaptiveAlgorithm,
    "ladder": LadderAlgorithm,
    "simple": LadderAlgorithm,
}


def get_algorithm(name: str) -> IntervalAlgorithm:
    """Resolve a configured algorithm name to a fresh instance."""
    try:
        return _ALGORITHMS[name.strip().lower()]()
    except KeyError:
        raise ValidationError(
            f"Unknown algorithm '{name}'. Expected one of: {', '.join(sorted(_ALGORITHMS))}"
        ) from None
