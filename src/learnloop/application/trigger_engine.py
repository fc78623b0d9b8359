"""
Trigger engine: turns behavioral events into review decisions.

For every (user, kind) it keeps an event counter and the time a review was
last fired; per user it keeps a global last-fired time and the timer clock.
All of this is ephemeral session state: nothing here is persisted, and
end_session() forgets it.
"""

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field

from learnloop.application.config import TriggerSettings
from learnloop.application.progress_store import ProgressStore
from learnloop.application.scheduler import ReviewScheduler
from learnloop.domain.errors import ValidationError
from learnloop.domain.triggers import (
    Fired,
    NotFired,
    NotFiredReason,
    TriggerEvent,
    TriggerKind,
    TriggerResult,
)

logger = logging.getLogger(__name__)


@dataclass
class _SessionState:
    counters: dict[TriggerKind, int] = field(default_factory=dict)
    last_fired: dict[TriggerKind, float] = field(default_factory=dict)
    global_last_fired: float | None = None
    timer_last: float | None = None


class TriggerEngine:
    """
    Decides, per event, whether the user should get a review now.

    Holds the user's lock for the whole decision so that two concurrent
    events for one user can never both fire.
    """

    def __init__(
        self,
        settings: TriggerSettings,
        scheduler: ReviewScheduler,
        progress: ProgressStore,
        clock: Callable[[], float] = time.time,
    ):
        self.settings = settings
        self.scheduler = scheduler
        self.progress = progress
        self._clock = clock
        self._locks = progress.locks
        self._sessions: dict[str, _SessionState] = {}

    def _session(self, user_id: str) -> _SessionState:
        return self._sessions.setdefault(user_id, _SessionState())

    @staticmethod
    def _require_user(user_id: str) -> str:
        if not isinstance(user_id, str) or not user_id.strip():
            raise ValidationError("User id cannot be empty")
        return user_id

    # ---------- Public API ----------

    def handle(self, event: TriggerEvent) -> TriggerResult:
        return self.record_event(event.user_id, event.kind, subject=event.subject, text=event.text)

    def record_event(
        self,
        user_id: str,
        kind: TriggerKind | str,
        subject: str | None = None,
        text: str | None = None,
    ) -> TriggerResult:
        """Count one event and fire a review if threshold and cooldowns allow."""
        kind = TriggerKind.from_value(kind)
        if kind is TriggerKind.TIMER:
            return self.tick(user_id)

        rule = self.settings.rule(kind)
        with self._locks(self._require_user(user_id)):
            if not rule.enabled:
                return NotFired(NotFiredReason.DISABLED, kind)

            if not self._passes_filter(kind, subject, text):
                logger.debug(f"{kind.value} event for {user_id} filtered out (subject={subject!r})")
                return NotFired(NotFiredReason.FILTERED, kind)

            session = self._session(user_id)
            count = session.counters.get(kind, 0) + 1
            if count < rule.threshold:
                session.counters[kind] = count
                logger.debug(f"{kind.value} counter for {user_id}: {count}/{rule.threshold}")
                return NotFired(NotFiredReason.THRESHOLD_NOT_REACHED, kind)
            session.counters[kind] = 0

            now = self._clock()
            last = session.last_fired.get(kind)
            if last is not None and now - last < rule.cooldown_seconds:
                logger.debug(f"{kind.value} cooldown active for {user_id}")
                return NotFired(NotFiredReason.COOLDOWN, kind)

            return self._fire(user_id, kind, session, now)

    def tick(self, user_id: str) -> TriggerResult:
        """
        Advance the timer trigger.

        The first tick of a session is due at once. After that a review is
        attempted once timer_interval_minutes have passed since the last
        attempt; only the global cooldown applies.
        """
        kind = TriggerKind.TIMER
        with self._locks(self._require_user(user_id)):
            if not self.settings.timer.enabled:
                return NotFired(NotFiredReason.DISABLED, kind)

            session = self._session(user_id)
            now = self._clock()
            last = session.timer_last
            if last is not None and now - last < self.settings.timer_interval_seconds:
                return NotFired(NotFiredReason.THRESHOLD_NOT_REACHED, kind)
            session.timer_last = now

            return self._fire(user_id, kind, session, now)

    def end_session(self, user_id: str) -> None:
        """Forget counters, cooldowns and the timer clock for a user."""
        with self._locks(self._require_user(user_id)):
            self._sessions.pop(user_id, None)
        logger.debug(f"Ended trigger session for {user_id}")

    def counter(self, user_id: str, kind: TriggerKind | str) -> int:
        kind = TriggerKind.from_value(kind)
        with self._locks(self._require_user(user_id)):
            session = self._sessions.get(user_id)
            return session.counters.get(kind, 0) if session else 0

    # ---------- Internals ----------

    def _passes_filter(self, kind: TriggerKind, subject: str | None, text: str | None) -> bool:
        if not self.settings.rule(kind).allows(subject):
            return False
        if kind is TriggerKind.CHAT:
            pattern = self.settings.chat_pattern.strip().lower()
            if pattern and (text is None or pattern not in text.lower()):
                return False
        return True

    def _fire(self, user_id: str, kind: TriggerKind, session: _SessionState, now: float) -> TriggerResult:
        """Global cooldown, then scheduler pick. Caller holds the user's lock."""
        if (
            session.global_last_fired is not None
            and now - session.global_last_fired < self.settings.global_cooldown_seconds
        ):
            logger.debug(f"Global cooldown active for {user_id}")
            return NotFired(NotFiredReason.COOLDOWN, kind)

        card = self.scheduler.pick_next(user_id)
        if card is None:
            stats = self.scheduler.stats(user_id)
            logger.info(f"{kind.value} trigger for {user_id}: nothing due ({stats.total} cards enabled)")
            return NotFired(NotFiredReason.NOTHING_DUE, kind, stats=stats)

        session.last_fired[kind] = now
        session.global_last_fired = now
        state = self.progress.get_or_create(user_id, card.id)
        logger.info(f"{kind.value} trigger fired for {user_id}: card {card.id}")
        return Fired(card=card, review_state=state, kind=kind)
