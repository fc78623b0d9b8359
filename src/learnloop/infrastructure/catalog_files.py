"""
File-backed deck and category stores.

Deck files: one YAML or JSON document per deck, e.g.

    id: spanish-basics        # defaults to the file stem
    name: Spanish basics
    description: ...
    enabled: true
    categoryId: languages
    cards:
      - id: es_001
        question: "hola"
        answer: "hello"
        tags: [greeting]

Categories: categories.yaml, a flat list of {id, name, description, parentId}.
Tombstones: tombstones.yaml, a sorted list of deleted built-in deck ids.
"""

import json
import logging
import re
from pathlib import Path
from typing import Any

import yaml  # type: ignore

from learnloop.domain.constants import DECK_FILE_SUFFIXES
from learnloop.domain.errors import PersistenceError, ValidationError
from learnloop.domain.models import Card, Category, Deck
from learnloop.domain.ports import CategoryStore, DeckStore
from learnloop.infrastructure.utils.yaml_io import dump_yaml, load_yaml

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_.-]")


def iter_deck_files(directory: Path | None):
    """Deck definition files directly inside `directory`, sorted by name."""
    if directory is None or not directory.is_dir():
        return
    for path in sorted(directory.iterdir()):
        if path.is_file() and not path.name.startswith(".") and path.suffix.lower() in DECK_FILE_SUFFIXES:
            yield path


def parse_deck(data: Any, default_id: str, source: str = "<memory>") -> Deck:
    """
    Build a Deck from a parsed definition.

    Cards that fail validation, or repeat an earlier card id, are logged and
    skipped so one bad card never hides a whole deck.
    """
    if not isinstance(data, dict):
        raise ValidationError(f"{source}: deck definition must be a mapping")

    cards: list[Card] = []
    seen: set[str] = set()
    raw_cards = data.get("cards") or []
    if not isinstance(raw_cards, list):
        raise ValidationError(f"{source}: 'cards' must be a list")

    for idx, raw in enumerate(raw_cards, start=1):
        if not isinstance(raw, dict):
            logger.warning(f"{source}: card #{idx} is not a mapping, skipped")
            continue
        try:
            card = Card.from_dict(raw)
        except (ValidationError, TypeError, ValueError) as e:
            logger.warning(f"{source}: card #{idx} skipped: {e}")
            continue
        if card.id in seen:
            logger.warning(f"{source}: duplicate card id {card.id} skipped")
            continue
        seen.add(card.id)
        cards.append(card)

    deck_id = data.get("id") or default_id
    return Deck(
        id=str(deck_id),
        name=str(data.get("name") or deck_id),
        description=str(data.get("description") or ""),
        enabled=bool(data.get("enabled", True)),
        category_id=data.get("categoryId"),
        cards=cards,
    )


def deck_file_name(deck_id: str) -> str:
    name = _UNSAFE_CHARS.sub("_", deck_id.strip())
    if not name or set(name) <= {"."}:
        raise ValidationError(f"Deck id {deck_id!r} cannot be used as a file name")
    return f"{name}.yaml"


class YamlDeckStore(DeckStore):
    """
    Reads built-in decks from a read-only directory and user decks from a
    writable one.
    """

    def __init__(
        self,
        user_dir: Path,
        builtin_dir: Path | None = None,
        tombstones_file: Path | None = None,
    ):
        self.user_dir = Path(user_dir)
        self.builtin_dir = Path(builtin_dir) if builtin_dir else None
        self.tombstones_file = Path(tombstones_file) if tombstones_file else self.user_dir / "tombstones.yaml"
        # deck id -> file it was loaded from, so saves go back to the same file
        self._user_paths: dict[str, Path] = {}

    def _load_dir(self, directory: Path | None) -> list[tuple[Deck, Path]]:
        loaded: list[tuple[Deck, Path]] = []
        for path in iter_deck_files(directory):
            try:
                data = load_yaml(path)
                deck = parse_deck(data, default_id=path.stem, source=path.name)
            except (OSError, UnicodeDecodeError, yaml.YAMLError, ValidationError) as e:
                logger.error(f"Skipping unreadable deck file {path}: {e}")
                continue
            loaded.append((deck, path))
        return loaded

    def load_builtin(self) -> list[Deck]:
        return [deck for deck, _ in self._load_dir(self.builtin_dir)]

    def load_user(self) -> list[Deck]:
        loaded = self._load_dir(self.user_dir)
        self._user_paths = {deck.id: path for deck, path in loaded}
        return [deck for deck, _ in loaded]

    def path_for(self, deck_id: str) -> Path:
        return self._user_paths.get(deck_id) or self.user_dir / deck_file_name(deck_id)

    def save(self, deck: Deck) -> None:
        path = self.path_for(deck.id)
        data = deck.to_dict()
        try:
            if path.suffix.lower() == ".json":
                path.parent.mkdir(parents=True, exist_ok=True)
                path.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")
            else:
                dump_yaml(data, path)
        except OSError as e:
            raise PersistenceError(f"Could not write deck {deck.id} to {path}: {e}") from e
        self._user_paths[deck.id] = path
        logger.info(f"Saved deck {deck.id} to {path}")

    def delete(self, deck_id: str) -> bool:
        path = self.path_for(deck_id)
        self._user_paths.pop(deck_id, None)
        if not path.exists():
            return False
        try:
            path.unlink()
        except OSError as e:
            raise PersistenceError(f"Could not delete {path}: {e}") from e
        logger.info(f"Deleted deck file {path}")
        return True

    def load_tombstones(self) -> set[str]:
        if not self.tombstones_file.exists():
            return set()
        try:
            data = load_yaml(self.tombstones_file)
        except (OSError, UnicodeDecodeError, yaml.YAMLError) as e:
            logger.error(f"Ignoring unreadable tombstone file {self.tombstones_file}: {e}")
            return set()
        if not isinstance(data, list):
            if data is not None:
                logger.error(f"Ignoring malformed tombstone file {self.tombstones_file}")
            return set()
        return {str(x) for x in data}

    def save_tombstones(self, deck_ids: set[str]) -> None:
        try:
            dump_yaml(sorted(deck_ids), self.tombstones_file)
        except OSError as e:
            raise PersistenceError(f"Could not write {self.tombstones_file}: {e}") from e


class YamlCategoryStore(CategoryStore):
    def __init__(self, path: Path):
        self.path = Path(path)

    def load(self) -> list[Category]:
        if not self.path.exists():
            return []
        try:
            data = load_yaml(self.path)
        except (OSError, UnicodeDecodeError, yaml.YAMLError) as e:
            logger.error(f"Could not read categories from {self.path}: {e}")
            return []

        if data is None:
            return []
        if not isinstance(data, list):
            logger.error(f"Malformed category file {self.path}: expected a list")
            return []

        categories: list[Category] = []
        for raw in data:
            try:
                categories.append(Category.from_dict(raw))
            except (ValidationError, AttributeError) as e:
                logger.warning(f"Skipping invalid category in {self.path.name}: {e}")
        return categories

    def save(self, categories: list[Category]) -> None:
        try:
            dump_yaml([c.to_dict() for c in categories], self.path)
        except OSError as e:
            raise PersistenceError(f"Could not write {self.path}: {e}") from e
