import pytest

from learnloop.domain.errors import ValidationError
from learnloop.domain.models import (
    Card,
    Category,
    Deck,
    LadderOutcome,
    Rating,
    ReviewState,
)
from learnloop.domain.triggers import TriggerKind

T0 = 1_700_000_000.0


class TestCard:
    def test_empty_fields_rejected(self):
        with pytest.raises(ValidationError):
            Card(id="", front="q", back="a")
        with pytest.raises(ValidationError):
            Card(id="c1", front="  ", back="a")
        with pytest.raises(ValidationError):
            Card(id="c1", front="q", back="")

    def test_tags_become_tuple(self):
        card = Card(id="c1", front="q", back="a", tags=["x", "y"])
        assert card.tags == ("x", "y")

    def test_from_dict_accepts_question_answer_and_front_back(self):
        a = Card.from_dict({"id": "c1", "question": "q", "answer": "a", "createdAt": T0})
        b = Card.from_dict({"id": "c2", "front": "q", "back": "a"})
        assert (a.front, a.back, a.created_at) == ("q", "a", T0)
        assert (b.front, b.back) == ("q", "a")

    def test_to_dict_uses_file_keys(self):
        data = Card(id="c1", front="q", back="a", tags=("t",), created_at=T0).to_dict()
        assert data == {"id": "c1", "question": "q", "answer": "a", "createdAt": T0, "tags": ["t"]}


class TestDeck:
    def test_duplicate_card_ids_rejected_on_construction(self):
        c = Card(id="c1", front="q", back="a")
        with pytest.raises(ValidationError):
            Deck(id="d", name="D", cards=[c, c])

    def test_add_remove_get(self):
        deck = Deck(id="d", name="D")
        deck.add_card(Card(id="c1", front="q", back="a"))
        assert deck.card_count == 1
        assert deck.has_card("c1")

        with pytest.raises(ValidationError):
            deck.add_card(Card(id="c1", front="other", back="other"))

        assert deck.remove_card("c1") is True
        assert deck.remove_card("c1") is False
        assert deck.get_card("c1") is None

    def test_requires_id_and_name(self):
        with pytest.raises(ValidationError):
            Deck(id="", name="D")
        with pytest.raises(ValidationError):
            Deck(id="d", name="")


class TestCategory:
    def test_self_parent_rejected(self):
        with pytest.raises(ValidationError):
            Category(id="a", name="A", parent_id="a")

    def test_dict_round_trip_keeps_parent(self):
        cat = Category.from_dict({"id": "b", "name": "B", "parentId": "a"})
        assert cat.parent_id == "a"
        assert not cat.is_top_level
        assert cat.to_dict()["parentId"] == "a"


class TestReviewState:
    def test_new_state_defaults(self):
        state = ReviewState.new("c1", now=T0)
        assert state.interval_days == 1
        assert state.ease_factor == 2.5
        assert state.repetitions == 0
        assert state.last_reviewed_at == 0
        assert state.next_due_at == T0
        assert state.is_new
        assert state.is_due(T0)

    def test_out_of_range_values_are_clamped(self):
        state = ReviewState(card_id="c1", interval_days=0, ease_factor=0.5, repetitions=-3)
        assert state.interval_days == 1
        assert state.ease_factor == 1.3
        assert state.repetitions == 0

    def test_empty_card_id_rejected(self):
        with pytest.raises(ValidationError):
            ReviewState(card_id="")

    def test_is_due_boundary(self):
        state = ReviewState(card_id="c1", next_due_at=T0 + 10)
        assert not state.is_due(T0 + 9.999)
        assert state.is_due(T0 + 10)

    def test_from_dict_fills_defaults_and_requires_card_id(self):
        state = ReviewState.from_dict({"cardId": "c1", "repetitions": 4, "nextReview": T0})
        assert state.repetitions == 4
        assert state.ease_factor == 2.5
        assert state.interval_days == 1

        with pytest.raises(ValidationError):
            ReviewState.from_dict({"interval": 3})

    def test_to_dict_keys(self):
        data = ReviewState.new("c1", now=T0).to_dict()
        assert set(data) == {"cardId", "interval", "easeFactor", "repetitions", "lastReview", "nextReview"}


class TestOutcomes:
    @pytest.mark.parametrize(
        "value,expected",
        [(0, Rating.AGAIN), ("hard", Rating.HARD), ("GOOD", Rating.GOOD), ("3", Rating.EASY), (Rating.EASY, Rating.EASY)],
    )
    def test_rating_from_value(self, value, expected):
        assert Rating.from_value(value) is expected

    @pytest.mark.parametrize("value", [4, -1, "meh", True, None, 2.0])
    def test_rating_from_value_rejects(self, value):
        with pytest.raises(ValidationError):
            Rating.from_value(value)

    def test_rating_pass(self):
        assert not Rating.AGAIN.is_pass
        assert all(r.is_pass for r in (Rating.HARD, Rating.GOOD, Rating.EASY))

    def test_ladder_outcome_aliases(self):
        assert LadderOutcome.from_value("Remember") is LadderOutcome.REMEMBERED
        assert LadderOutcome.from_value("forgot") is LadderOutcome.FORGOT
        with pytest.raises(ValidationError):
            LadderOutcome.from_value("maybe")

    def test_trigger_kind_from_value(self):
        assert TriggerKind.from_value("Block_Break") is TriggerKind.BLOCK_BREAK
        with pytest.raises(ValidationError):
            TriggerKind.from_value("jump")
