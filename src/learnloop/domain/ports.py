"""
Ports (interfaces) for content and progress persistence.

These define the contract that infrastructure adapters must implement.
Application services depend on these abstractions, not concrete implementations.
"""

from abc import ABC, abstractmethod

from .models import Card, Category, Deck, ReviewState


class CardCatalog(ABC):
    """
    Port for the read-only card catalog consumed by the scheduler.

    Implementations:
        - DeckCatalog: In-memory decks loaded from definition files.
    """

    @abstractmethod
    def enabled_cards(self) -> list[Card]:
        """
        Return every card of every enabled deck, in catalog order.

        A card id appears at most once; the first deck holding it wins.
        """
        pass

    def find_card(self, card_id: str) -> Card | None:
        for card in self.enabled_cards():
            if card.id == card_id:
                return card
        return None


class SnapshotStore(ABC):
    """
    Port for per-user progress snapshots.

    A snapshot is the full set of (card_id, ReviewState) pairs for one user;
    it is always read and written whole.

    Implementations:
        - JsonSnapshotStore: One JSON file per user.
        - InMemorySnapshotStore: Process-local dict (tests, ephemeral hosts).
    """

    @abstractmethod
    def load(self, user_id: str) -> dict[str, ReviewState]:
        """
        Load a user's snapshot.

        Returns:
            An empty dict when no snapshot exists.

        Raises:
            PersistenceError: The snapshot exists but cannot be read or parsed.
        """
        pass

    @abstractmethod
    def save(self, user_id: str, states: dict[str, ReviewState]) -> None:
        """
        Replace a user's snapshot with `states`.

        Raises:
            PersistenceError: The snapshot could not be written.
        """
        pass


class DeckStore(ABC):
    """
    Port for durable deck definitions.

    Built-in decks ship read-only with the application; user decks are
    writable. Deleting a built-in deck is recorded as a tombstone instead.

    Implementations:
        - YamlDeckStore: One YAML/JSON file per deck plus tombstones.yaml.
    """

    @abstractmethod
    def load_builtin(self) -> list[Deck]:
        """Built-in decks in a stable order. Unreadable definitions are skipped."""
        pass

    @abstractmethod
    def load_user(self) -> list[Deck]:
        """User decks in a stable order. Unreadable definitions are skipped."""
        pass

    @abstractmethod
    def save(self, deck: Deck) -> None:
        """Create or replace the user definition of `deck`."""
        pass

    @abstractmethod
    def delete(self, deck_id: str) -> bool:
        """Remove the user definition of a deck. Returns False if there was none."""
        pass

    @abstractmethod
    def load_tombstones(self) -> set[str]:
        """Ids of built-in decks the user deleted."""
        pass

    @abstractmethod
    def save_tombstones(self, deck_ids: set[str]) -> None:
        pass


class CategoryStore(ABC):
    """
    Port for the flat category table.

    Implementations:
        - YamlCategoryStore: categories.yaml
    """

    @abstractmethod
    def load(self) -> list[Category]:
        pass

    @abstractmethod
    def save(self, categories: list[Category]) -> None:
        pass
