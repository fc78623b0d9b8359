import os

import pytest

from learnloop.application.catalog import DeckCatalog
from learnloop.application.progress_store import ProgressStore
from learnloop.application.scheduler import ReviewScheduler
from learnloop.domain.models import Card, Deck
from learnloop.infrastructure.snapshot_store import InMemorySnapshotStore

T0 = 1_700_000_000.0


class FakeClock:
    """Manually advanced clock returning epoch seconds."""

    def __init__(self, now: float = T0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_deck(deck_id: str, n: int, enabled: bool = True, prefix: str | None = None, **kwargs) -> Deck:
    prefix = prefix or deck_id
    cards = [Card(id=f"{prefix}-{i}", front=f"Q{i}", back=f"A{i}", created_at=T0) for i in range(1, n + 1)]
    return Deck(id=deck_id, name=deck_id.title(), enabled=enabled, cards=cards, **kwargs)


@pytest.fixture(autouse=True)
def isolated_home(tmp_path, monkeypatch):
    """Keeps the user's real config and LEARNLOOP_* variables out of every test."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    for key in list(os.environ):
        if key.startswith("LEARNLOOP_"):
            monkeypatch.delenv(key)
    return home


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def snapshots():
    return InMemorySnapshotStore()


@pytest.fixture
def progress(snapshots, clock):
    return ProgressStore(snapshots, clock=clock)


@pytest.fixture
def catalog():
    return DeckCatalog(decks=[make_deck("basics", 3)])


@pytest.fixture
def scheduler(catalog, progress, clock):
    return ReviewScheduler(catalog, progress, clock=clock)
