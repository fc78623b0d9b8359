import threading

import pytest

from learnloop.application.catalog import DeckCatalog
from learnloop.application.config import TriggerRule, TriggerSettings
from learnloop.application.scheduler import ReviewScheduler
from learnloop.application.trigger_engine import TriggerEngine
from learnloop.domain.errors import ValidationError
from learnloop.domain.models import ReviewState
from learnloop.domain.triggers import Fired, NotFired, NotFiredReason, TriggerEvent, TriggerKind


def _engine(scheduler, progress, clock, **settings):
    settings.setdefault("global_cooldown_seconds", 0)
    return TriggerEngine(TriggerSettings(**settings), scheduler, progress, clock=clock)


@pytest.fixture
def engine(scheduler, progress, clock):
    return _engine(scheduler, progress, clock)


class TestThreshold:
    def test_default_death_fires_every_second_event(self, engine, progress):
        first = engine.record_event("alice", TriggerKind.DEATH)
        assert isinstance(first, NotFired)
        assert first.reason is NotFiredReason.THRESHOLD_NOT_REACHED
        assert engine.counter("alice", TriggerKind.DEATH) == 1

        second = engine.record_event("alice", "death")
        assert isinstance(second, Fired)
        assert second.fired
        assert second.card.id == "basics-1"
        assert second.review_state == progress.get("alice", "basics-1")
        assert engine.counter("alice", TriggerKind.DEATH) == 0

    def test_higher_threshold_accumulates(self, scheduler, progress, clock):
        engine = _engine(
            scheduler, progress, clock,
            entity_kill=TriggerRule(enabled=True, threshold=5),
        )
        for expected in range(1, 5):
            result = engine.record_event("alice", TriggerKind.ENTITY_KILL, subject="zombie")
            assert result.reason is NotFiredReason.THRESHOLD_NOT_REACHED
            assert engine.counter("alice", TriggerKind.ENTITY_KILL) == expected

        assert engine.record_event("alice", TriggerKind.ENTITY_KILL, subject="zombie").fired
        assert engine.counter("alice", TriggerKind.ENTITY_KILL) == 0

    def test_counters_are_per_user_and_kind(self, scheduler, progress, clock):
        engine = _engine(
            scheduler, progress, clock,
            block_place=TriggerRule(enabled=True, threshold=3),
        )
        engine.record_event("alice", TriggerKind.DEATH)
        engine.record_event("alice", TriggerKind.BLOCK_PLACE)
        engine.record_event("bob", TriggerKind.BLOCK_PLACE)
        assert engine.counter("alice", TriggerKind.DEATH) == 1
        assert engine.counter("alice", TriggerKind.BLOCK_PLACE) == 1
        assert engine.counter("bob", TriggerKind.BLOCK_PLACE) == 1

    def test_disabled_kind(self, engine):
        result = engine.record_event("alice", TriggerKind.BLOCK_BREAK, subject="stone")
        assert result.reason is NotFiredReason.DISABLED
        assert engine.counter("alice", TriggerKind.BLOCK_BREAK) == 0


class TestFilters:
    def test_whitelist_is_exact_match(self, scheduler, progress, clock):
        engine = _engine(
            scheduler, progress, clock,
            block_break=TriggerRule(enabled=True, threshold=1, whitelist=["stone"]),
        )
        filtered = engine.record_event("alice", TriggerKind.BLOCK_BREAK, subject="stone_bricks")
        assert filtered.reason is NotFiredReason.FILTERED
        assert engine.counter("alice", TriggerKind.BLOCK_BREAK) == 0

        assert engine.record_event("alice", TriggerKind.BLOCK_BREAK).reason is NotFiredReason.FILTERED
        assert engine.record_event("alice", TriggerKind.BLOCK_BREAK, subject="stone").fired

    def test_empty_whitelist_counts_everything(self, scheduler, progress, clock):
        engine = _engine(
            scheduler, progress, clock,
            entity_kill=TriggerRule(enabled=True, threshold=1, whitelist=[]),
        )
        assert engine.record_event("alice", TriggerKind.ENTITY_KILL, subject="pig").fired

    def test_chat_pattern_case_insensitive(self, scheduler, progress, clock):
        engine = _engine(
            scheduler, progress, clock,
            chat_pattern="edit",
            chat=TriggerRule(enabled=True, threshold=2),
        )
        assert engine.record_event("alice", TriggerKind.CHAT, text="hello").reason is NotFiredReason.FILTERED
        assert engine.record_event("alice", TriggerKind.CHAT).reason is NotFiredReason.FILTERED
        assert engine.counter("alice", TriggerKind.CHAT) == 0

        engine.record_event("alice", TriggerKind.CHAT, text="please EDIT this")
        assert engine.record_event("alice", TriggerKind.CHAT, text="Edited!").fired


class TestCooldowns:
    def test_per_kind_cooldown_consumes_event(self, scheduler, progress, clock):
        engine = _engine(
            scheduler, progress, clock,
            advancement=TriggerRule(enabled=True, threshold=1, cooldown_seconds=60),
        )
        assert engine.record_event("alice", TriggerKind.ADVANCEMENT).fired

        clock.advance(30)
        blocked = engine.record_event("alice", TriggerKind.ADVANCEMENT)
        assert blocked.reason is NotFiredReason.COOLDOWN
        assert engine.counter("alice", TriggerKind.ADVANCEMENT) == 0

        clock.advance(30)
        assert engine.record_event("alice", TriggerKind.ADVANCEMENT).fired

    def test_global_cooldown_spans_kinds(self, scheduler, progress, clock):
        engine = _engine(
            scheduler, progress, clock,
            global_cooldown_seconds=10,
            death=TriggerRule(enabled=True, threshold=1),
            entity_kill=TriggerRule(enabled=True, threshold=1),
        )
        assert engine.record_event("alice", TriggerKind.DEATH).fired
        assert engine.record_event("alice", TriggerKind.ENTITY_KILL, subject="zombie").reason is NotFiredReason.COOLDOWN
        assert engine.record_event("bob", TriggerKind.ENTITY_KILL, subject="zombie").fired

        clock.advance(10)
        assert engine.record_event("alice", TriggerKind.ENTITY_KILL, subject="zombie").fired


class TestNothingDue:
    def test_nothing_due_carries_stats_and_records_nothing(self, scheduler, progress, clock):
        engine = _engine(
            scheduler, progress, clock,
            global_cooldown_seconds=10,
            death=TriggerRule(enabled=True, threshold=1),
        )
        for i in (1, 2, 3):
            progress.update("alice", ReviewState(card_id=f"basics-{i}", repetitions=1, last_reviewed_at=clock.now, next_due_at=clock.now + 5))

        result = engine.record_event("alice", TriggerKind.DEATH)
        assert result.reason is NotFiredReason.NOTHING_DUE
        assert result.stats.total == 3
        assert result.stats.reviewed_not_due == 3

        # no timestamps were recorded, so no cooldown applies once cards are due
        clock.advance(5)
        assert engine.record_event("alice", TriggerKind.DEATH).fired

    def test_empty_catalog(self, progress, clock):
        scheduler = ReviewScheduler(DeckCatalog(), progress, clock=clock)
        engine = _engine(scheduler, progress, clock, death=TriggerRule(enabled=True, threshold=1))
        result = engine.record_event("alice", TriggerKind.DEATH)
        assert result.reason is NotFiredReason.NOTHING_DUE
        assert result.stats.total == 0


class TestTimer:
    @pytest.fixture
    def timer_engine(self, scheduler, progress, clock):
        return _engine(
            scheduler, progress, clock,
            global_cooldown_seconds=10,
            timer_interval_minutes=15,
            timer=TriggerRule(enabled=True),
            death=TriggerRule(enabled=True, threshold=1),
        )

    def test_disabled_by_default(self, engine):
        assert engine.tick("alice").reason is NotFiredReason.DISABLED

    def test_first_tick_fires_then_waits_for_interval(self, timer_engine, clock):
        first = timer_engine.tick("alice")
        assert first.fired
        assert first.kind is TriggerKind.TIMER
        clock.advance(14 * 60)
        assert timer_engine.tick("alice").reason is NotFiredReason.THRESHOLD_NOT_REACHED
        clock.advance(60)
        fired = timer_engine.tick("alice")
        assert fired.fired
        assert fired.kind is TriggerKind.TIMER
        assert timer_engine.tick("alice").reason is NotFiredReason.THRESHOLD_NOT_REACHED

    def test_timer_respects_global_cooldown(self, timer_engine, clock):
        assert timer_engine.tick("alice").fired
        clock.advance(15 * 60)
        assert timer_engine.record_event("alice", TriggerKind.DEATH).fired

        assert timer_engine.tick("alice").reason is NotFiredReason.COOLDOWN
        # the slot was consumed
        clock.advance(10)
        assert timer_engine.tick("alice").reason is NotFiredReason.THRESHOLD_NOT_REACHED

    def test_record_event_timer_delegates_to_tick(self, timer_engine, clock):
        assert timer_engine.record_event("alice", "timer").fired
        assert timer_engine.record_event("alice", "timer").reason is NotFiredReason.THRESHOLD_NOT_REACHED
        clock.advance(15 * 60)
        assert timer_engine.record_event("alice", TriggerKind.TIMER).fired

    def test_first_tick_is_subject_to_global_cooldown(self, timer_engine):
        assert timer_engine.record_event("alice", TriggerKind.DEATH).fired
        assert timer_engine.tick("alice").reason is NotFiredReason.COOLDOWN


class TestSession:
    def test_end_session_forgets_counters_and_cooldowns(self, scheduler, progress, clock):
        engine = _engine(
            scheduler, progress, clock,
            global_cooldown_seconds=600,
        )
        engine.record_event("alice", TriggerKind.DEATH)
        engine.end_session("alice")
        assert engine.counter("alice", TriggerKind.DEATH) == 0

        engine.record_event("alice", TriggerKind.DEATH)
        assert engine.record_event("alice", TriggerKind.DEATH).fired
        engine.end_session("alice")
        engine.record_event("alice", TriggerKind.DEATH)
        assert engine.record_event("alice", TriggerKind.DEATH).fired

    def test_handle_event(self, engine):
        engine.handle(TriggerEvent(user_id="alice", kind=TriggerKind.DEATH))
        assert engine.handle(TriggerEvent(user_id="alice", kind=TriggerKind.DEATH)).fired

    def test_invalid_input(self, engine):
        with pytest.raises(ValidationError):
            engine.record_event("alice", "jump")
        with pytest.raises(ValidationError):
            engine.record_event("", TriggerKind.DEATH)


def test_concurrent_events_fire_once(scheduler, progress, clock):
    engine = _engine(
        scheduler, progress, clock,
        global_cooldown_seconds=10,
        death=TriggerRule(enabled=True, threshold=1),
    )
    results = []
    barrier = threading.Barrier(8)

    def worker():
        barrier.wait()
        results.append(engine.record_event("alice", TriggerKind.DEATH))

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sum(1 for r in results if r.fired) == 1
    assert all(r.reason is NotFiredReason.COOLDOWN for r in results if not r.fired)
