import json
import logging

import pytest

from learnloop.domain.errors import ValidationError
from learnloop.domain.models import Category, Deck
from learnloop.infrastructure.catalog_files import (
    YamlCategoryStore,
    YamlDeckStore,
    deck_file_name,
    iter_deck_files,
    parse_deck,
)
from learnloop.infrastructure.utils.yaml_io import load_yaml


class TestParseDeck:
    def test_id_defaults_to_file_stem(self):
        deck = parse_deck({"name": "Verbs", "cards": []}, default_id="verbs")
        assert deck.id == "verbs"
        assert deck.enabled is True
        assert deck.category_id is None

    def test_invalid_and_duplicate_cards_skipped(self, caplog):
        data = {
            "id": "d",
            "name": "D",
            "categoryId": "lang",
            "cards": [
                {"id": "c1", "question": "q", "answer": "a", "tags": ["t"]},
                {"id": "c2", "question": "", "answer": "a"},
                "not a card",
                {"id": "c1", "question": "dup", "answer": "dup"},
                {"id": "c3", "front": "q3", "back": "a3"},
            ],
        }
        with caplog.at_level(logging.WARNING):
            deck = parse_deck(data, default_id="x", source="d.yaml")

        assert [c.id for c in deck.cards] == ["c1", "c3"]
        assert deck.cards[0].tags == ("t",)
        assert deck.category_id == "lang"
        assert "duplicate card id c1" in caplog.text

    def test_single_tag_string_and_numeric_fields(self):
        data = {
            "cards": [
                {"id": "c1", "question": "q", "answer": "a", "tags": "greeting"},
                {"id": 101, "question": "2 + 2?", "answer": 4},
            ]
        }
        deck = parse_deck(data, default_id="math")

        assert deck.cards[0].tags == ("greeting",)
        assert deck.cards[1].id == "101"
        assert deck.cards[1].back == "4"

    def test_boolean_card_id_is_skipped(self):
        deck = parse_deck({"cards": [{"id": True, "question": "q", "answer": "a"}]}, default_id="x")
        assert deck.cards == []

    def test_non_mapping_rejected(self):
        with pytest.raises(ValidationError):
            parse_deck(["nope"], default_id="x")

    def test_file_name_is_sanitised(self):
        assert deck_file_name("my deck/1") == "my_deck_1.yaml"
        with pytest.raises(ValidationError):
            deck_file_name("..")


class TestYamlDeckStore:
    def test_reads_yaml_and_json_skipping_bad_files(self, tmp_path, caplog):
        user = tmp_path / "decks"
        user.mkdir()
        (user / "a.yaml").write_text("name: A\ncards:\n  - {id: a1, question: q, answer: a}\n", encoding="utf-8")
        (user / "b.json").write_text(json.dumps({"id": "bee", "name": "B", "cards": []}), encoding="utf-8")
        (user / "broken.yaml").write_text("name: [unclosed\n", encoding="utf-8")
        (user / "dupkeys.yaml").write_text("name: A\nname: B\n", encoding="utf-8")
        (user / "notes.txt").write_text("ignored", encoding="utf-8")

        store = YamlDeckStore(user)
        with caplog.at_level(logging.ERROR):
            decks = store.load_user()

        assert [d.id for d in decks] == ["a", "bee"]
        assert "broken.yaml" in caplog.text
        assert "dupkeys.yaml" in caplog.text

    def test_save_round_trips_and_keeps_json_format(self, tmp_path):
        user = tmp_path / "decks"
        user.mkdir()
        (user / "b.json").write_text(json.dumps({"id": "bee", "name": "B"}), encoding="utf-8")
        store = YamlDeckStore(user)
        store.load_user()

        store.save(Deck(id="bee", name="B", enabled=False))
        assert json.loads((user / "b.json").read_text(encoding="utf-8"))["enabled"] is False

        store.save(Deck(id="new", name="New"))
        assert load_yaml(user / "new.yaml")["name"] == "New"
        assert [d.id for d in store.load_user()] == ["bee", "new"]

    def test_delete(self, tmp_path):
        store = YamlDeckStore(tmp_path / "decks")
        store.save(Deck(id="d", name="D"))
        assert store.delete("d") is True
        assert store.delete("d") is False

    def test_tombstones(self, tmp_path, caplog):
        store = YamlDeckStore(tmp_path / "decks", tombstones_file=tmp_path / "tombstones.yaml")
        assert store.load_tombstones() == set()

        store.save_tombstones({"b", "a"})
        assert load_yaml(tmp_path / "tombstones.yaml") == ["a", "b"]
        assert store.load_tombstones() == {"a", "b"}

        (tmp_path / "tombstones.yaml").write_text("{oops: [", encoding="utf-8")
        with caplog.at_level(logging.ERROR):
            assert store.load_tombstones() == set()

    def test_missing_dirs_yield_nothing(self, tmp_path):
        store = YamlDeckStore(tmp_path / "nope", builtin_dir=tmp_path / "also-nope")
        assert store.load_builtin() == []
        assert store.load_user() == []
        assert list(iter_deck_files(None)) == []


class TestYamlCategoryStore:
    def test_round_trip(self, tmp_path):
        store = YamlCategoryStore(tmp_path / "categories.yaml")
        assert store.load() == []

        store.save([Category(id="lang", name="Languages"), Category(id="es", name="Spanish", parent_id="lang")])
        loaded = store.load()
        assert [c.id for c in loaded] == ["lang", "es"]
        assert loaded[1].parent_id == "lang"

    def test_invalid_entries_skipped(self, tmp_path):
        path = tmp_path / "categories.yaml"
        path.write_text("- {id: ok, name: OK}\n- {id: '', name: Empty}\n- 42\n", encoding="utf-8")
        assert [c.id for c in YamlCategoryStore(path).load()] == ["ok"]

    def test_malformed_file_is_empty(self, tmp_path):
        path = tmp_path / "categories.yaml"
        path.write_text("just: a mapping\n", encoding="utf-8")
        assert YamlCategoryStore(path).load() == []
