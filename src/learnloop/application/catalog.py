"""
Deck catalog: the in-memory content tree consumed by the scheduler.

Decks and categories are kept in flat id-indexed tables. A deck points at its
category through Deck.category_id; a category points at its parent through
Category.parent_id. Durable changes go through the DeckStore / CategoryStore
ports when they are attached; without them the catalog is purely in memory.
"""

import logging
import threading
from collections.abc import Iterable
from dataclasses import replace

from learnloop.domain.errors import NotFoundError, ValidationError
from learnloop.domain.models import Card, Category, Deck
from learnloop.domain.ports import CardCatalog, CategoryStore, DeckStore

logger = logging.getLogger(__name__)


class DeckCatalog(CardCatalog):
    """Thread-safe deck and category registry."""

    def __init__(
        self,
        deck_store: DeckStore | None = None,
        category_store: CategoryStore | None = None,
        decks: Iterable[Deck] = (),
        categories: Iterable[Category] = (),
    ):
        self._deck_store = deck_store
        self._category_store = category_store
        self._lock = threading.RLock()
        self._decks: dict[str, Deck] = {}
        self._builtin_ids: set[str] = set()
        self._tombstones: set[str] = set()
        self._categories: dict[str, Category] = {}

        for deck in decks:
            if deck.id in self._decks:
                raise ValidationError(f"Deck with id {deck.id} already exists")
            self._decks[deck.id] = deck
        for category in categories:
            self._categories[category.id] = category

    # ---------- Loading ----------

    def load(self) -> None:
        """
        Rebuild the catalog from the attached stores.

        Built-in decks come first, then user decks; a user deck with the same
        id replaces the built-in one in place. Tombstoned built-ins are skipped.
        """
        if self._deck_store is None and self._category_store is None:
            return

        with self._lock:
            if self._deck_store is not None:
                self._tombstones = self._deck_store.load_tombstones()
                decks: dict[str, Deck] = {}
                builtin_ids: set[str] = set()
                for deck in self._deck_store.load_builtin():
                    builtin_ids.add(deck.id)
                    if deck.id in self._tombstones:
                        logger.debug(f"Built-in deck {deck.id} was deleted by the user")
                        continue
                    decks[deck.id] = deck
                for deck in self._deck_store.load_user():
                    if deck.id in decks:
                        logger.debug(f"User deck {deck.id} overrides the built-in definition")
                    decks[deck.id] = deck
                self._decks = decks
                self._builtin_ids = builtin_ids

            if self._category_store is not None:
                self._categories = {c.id: c for c in self._category_store.load()}

            logger.info(
                f"Loaded {len(self._decks)} decks ({self.total_card_count()} cards) "
                f"and {len(self._categories)} categories"
            )

    def reload(self) -> None:
        self.load()

    # ---------- CardCatalog ----------

    def enabled_cards(self) -> list[Card]:
        with self._lock:
            seen: set[str] = set()
            cards: list[Card] = []
            for deck in self._decks.values():
                if not deck.enabled:
                    continue
                for card in deck.cards:
                    if card.id in seen:
                        continue
                    seen.add(card.id)
                    cards.append(card)
            return cards

    # ---------- Decks ----------

    def get_deck(self, deck_id: str) -> Deck | None:
        with self._lock:
            return self._decks.get(deck_id)

    def all_decks(self) -> list[Deck]:
        with self._lock:
            return list(self._decks.values())

    def enabled_decks(self) -> list[Deck]:
        with self._lock:
            return [d for d in self._decks.values() if d.enabled]

    def decks_in_category(self, category_id: str | None) -> list[Deck]:
        """Decks directly inside a category; None lists uncategorised decks."""
        with self._lock:
            return [d for d in self._decks.values() if d.category_id == category_id]

    def is_builtin(self, deck_id: str) -> bool:
        with self._lock:
            return deck_id in self._builtin_ids

    def total_card_count(self) -> int:
        with self._lock:
            return sum(d.card_count for d in self._decks.values())

    def add_deck(self, deck: Deck) -> None:
        with self._lock:
            if deck.id in self._decks:
                raise ValidationError(f"Deck with id {deck.id} already exists")
            self._check_category(deck.category_id)
            self._save_deck(deck)
            self._decks[deck.id] = deck
            logger.info(f"Added deck {deck.id} ({deck.card_count} cards)")

    def update_deck(self, deck: Deck) -> None:
        with self._lock:
            if deck.id not in self._decks:
                raise NotFoundError(f"Deck not found: {deck.id}")
            self._check_category(deck.category_id)
            self._save_deck(deck)
            self._decks[deck.id] = deck

    def set_enabled(self, deck_id: str, enabled: bool) -> Deck:
        with self._lock:
            deck = self._decks.get(deck_id)
            if deck is None:
                raise NotFoundError(f"Deck not found: {deck_id}")
            if deck.enabled == enabled:
                return deck
            updated = replace(deck, enabled=enabled, cards=list(deck.cards))
            self._save_deck(updated)
            self._decks[deck_id] = updated
            logger.info(f"Deck {deck_id} {'enabled' if enabled else 'disabled'}")
            return updated

    def toggle_enabled(self, deck_id: str) -> Deck:
        with self._lock:
            deck = self._decks.get(deck_id)
            if deck is None:
                raise NotFoundError(f"Deck not found: {deck_id}")
            return self.set_enabled(deck_id, not deck.enabled)

    def delete_deck(self, deck_id: str) -> bool:
        """
        Remove a deck.

        A built-in deck is tombstoned so it stays gone across reloads; any user
        override file for it is removed too. Returns False for unknown ids.
        """
        with self._lock:
            if deck_id not in self._decks:
                return False
            if self._deck_store is not None:
                self._deck_store.delete(deck_id)
                if deck_id in self._builtin_ids:
                    self._tombstones.add(deck_id)
                    self._deck_store.save_tombstones(self._tombstones)
            del self._decks[deck_id]
            logger.info(f"Deleted deck {deck_id}")
            return True

    def restore_deck(self, deck_id: str) -> bool:
        """Undo the deletion of a built-in deck. Returns False if it was not deleted."""
        with self._lock:
            if deck_id not in self._tombstones:
                return False
            self._tombstones.discard(deck_id)
            if self._deck_store is not None:
                self._deck_store.save_tombstones(self._tombstones)
            self.load()
            logger.info(f"Restored built-in deck {deck_id}")
            return True

    def deleted_builtin_ids(self) -> list[str]:
        with self._lock:
            return sorted(self._tombstones)

    def _save_deck(self, deck: Deck) -> None:
        if self._deck_store is not None:
            self._deck_store.save(deck)

    def _check_category(self, category_id: str | None) -> None:
        if category_id is not None and category_id not in self._categories:
            raise ValidationError(f"Unknown category: {category_id}")

    # ---------- Categories ----------

    def get_category(self, category_id: str) -> Category | None:
        with self._lock:
            return self._categories.get(category_id)

    def all_categories(self) -> list[Category]:
        with self._lock:
            return list(self._categories.values())

    def top_level_categories(self) -> list[Category]:
        """Categories without a parent, or whose parent no longer exists."""
        with self._lock:
            return [
                c for c in self._categories.values()
                if c.parent_id is None or c.parent_id not in self._categories
            ]

    def subcategories(self, parent_id: str) -> list[Category]:
        with self._lock:
            return [c for c in self._categories.values() if c.parent_id == parent_id]

    def ancestors(self, category_id: str) -> list[Category]:
        """Parents of a category, root first, excluding the category itself."""
        with self._lock:
            chain: list[Category] = []
            seen = {category_id}
            current = self._categories.get(category_id)
            while current is not None and current.parent_id is not None:
                if current.parent_id in seen:
                    logger.warning(f"Category cycle detected at {current.parent_id}")
                    break
                seen.add(current.parent_id)
                current = self._categories.get(current.parent_id)
                if current is not None:
                    chain.append(current)
            chain.reverse()
            return chain

    def add_category(self, category: Category) -> None:
        with self._lock:
            if category.id in self._categories:
                raise ValidationError(f"Category with id {category.id} already exists")
            self._check_parent(category)
            self._categories[category.id] = category
            self._save_categories()

    def update_category(self, category: Category) -> None:
        with self._lock:
            if category.id not in self._categories:
                raise NotFoundError(f"Category not found: {category.id}")
            self._check_parent(category)
            self._categories[category.id] = category
            self._save_categories()

    def delete_category(self, category_id: str) -> bool:
        """
        Remove a category. Its children move up to its parent and its decks
        become uncategorised. Returns False for unknown ids.
        """
        with self._lock:
            category = self._categories.pop(category_id, None)
            if category is None:
                return False

            for child in [c for c in self._categories.values() if c.parent_id == category_id]:
                self._categories[child.id] = replace(child, parent_id=category.parent_id)

            for deck in [d for d in self._decks.values() if d.category_id == category_id]:
                updated = replace(deck, category_id=None, cards=list(deck.cards))
                self._save_deck(updated)
                self._decks[deck.id] = updated

            self._save_categories()
            logger.info(f"Deleted category {category_id}")
            return True

    def _check_parent(self, category: Category) -> None:
        parent_id = category.parent_id
        if parent_id is None:
            return
        if parent_id not in self._categories:
            raise ValidationError(f"Unknown parent category: {parent_id}")
        # Walk up from the new parent; meeting ourselves means a cycle
        seen: set[str] = set()
        current: str | None = parent_id
        while current is not None and current not in seen:
            if current == category.id:
                raise ValidationError(f"Category {category.id} cannot be nested inside itself")
            seen.add(current)
            parent = self._categories.get(current)
            current = parent.parent_id if parent else None

    def _save_categories(self) -> None:
        if self._category_store is not None:
            self._category_store.save(list(self._categories.values()))
