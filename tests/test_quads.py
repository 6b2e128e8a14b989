"""Tests for the quad chain."""

from pathlib import Path
import random
import sys

sys.path.append(str(Path(__file__).resolve().parent.parent))

import quads  # noqa: E402
from quads import QuadModel, tokenize  # noqa: E402


def test_tokenize_alternates_words_and_punctuation():
    assert tokenize("The cat sat.") == ["The", " ", "cat", " ", "sat", "."]


def test_tokenize_trims_and_keeps_punctuation_runs():
    assert tokenize("  hi, you!?  ") == ["hi", ", ", "you", "!?"]


def test_short_sentence_learns_nothing():
    model = QuadModel()
    assert model.learn("hi there") == 0
    assert len(model) == 0
    assert model.to_dict() == {"quads": [], "next": [], "previous": []}


def test_learning_twice_keeps_one_quad_per_window():
    model = QuadModel()
    model.learn("one two three")
    model.learn("one two three")
    assert len(model) == 2


def test_flags_only_upgrade():
    model = QuadModel()
    model.learn("one two three")
    first = model.quad(("one", " ", "two", " "))
    assert first.can_start and not first.can_end

    # the same window in the middle of a sentence must not lose can_start
    model.learn("zero one two three four")
    assert first.can_start
    last = model.quad((" ", "two", " ", "three"))
    assert last.can_end


def test_window_seen_mid_sentence_can_become_start():
    model = QuadModel()
    model.learn("zero one two three four")
    middle = model.quad(("one", " ", "two", " "))
    assert not middle.can_start and not middle.can_end
    model.learn("one two three")
    assert middle.can_start
    assert model.quad((" ", "two", " ", "three")).can_end


def test_links_record_neighbours():
    model = QuadModel()
    model.learn("The cat sat on the mat.")
    assert model.following(("The", " ", "cat", " ")) == ["sat"]
    assert model.preceding((" ", "cat", " ", "sat")) == ["The"]
    assert model.following(("the", " ", "mat", ".")) == []


def test_generate_on_empty_model_returns_empty_string():
    assert QuadModel().generate() == ""
    assert QuadModel().generate("anything") == ""


def test_generate_reproduces_single_sentence():
    model = QuadModel(random.Random(1))
    model.learn("The cat sat on the mat.")
    assert model.generate("sat") == "The cat sat on the mat."
    assert model.generate() == "The cat sat on the mat."


def test_generate_with_unknown_seed_uses_any_quad():
    model = QuadModel(random.Random(3))
    model.learn("The cat sat on the mat.")
    assert model.generate("dog") == "The cat sat on the mat."


def test_generation_terminates_on_cycle():
    data = {
        "quads": [["a", "a", "a", "a", False, False]],
        "next": [[0, ["a"]]],
        "previous": [[0, ["a"]]],
    }
    model = QuadModel.from_dict(data, random.Random(0))
    sentence = model.generate("a")
    assert set(sentence) == {"a"}
    assert len(sentence) == 4 + 2 * quads.MAX_WALK


def test_missing_successor_ends_walk():
    data = {
        "quads": [["x", " ", "y", " ", False, False]],
        "next": [],
        "previous": [],
    }
    model = QuadModel.from_dict(data)
    assert model.generate() == "x y "


def test_end_to_end_vocabulary():
    model = QuadModel(random.Random(42))
    model.learn("The cat sat on the mat.")
    model.learn("The dog sat on the log.")
    vocabulary = {"the", "cat", "sat", "on", "mat", "dog", "log"}

    for _ in range(50):
        sentence = model.generate("sat")
        assert sentence
        assert sentence.endswith(".")
        assert sentence.startswith("The ")
        words = {t.lower() for t in tokenize(sentence) if t.isalnum()}
        assert words <= vocabulary
        assert "sat" in words


def test_dict_round_trip_preserves_generation():
    model = QuadModel()
    model.learn("The cat sat on the mat.")
    model.learn("The dog sat on the log.")
    copy = QuadModel.from_dict(model.to_dict())
    assert len(copy) == len(model)
    assert copy.to_dict() == model.to_dict()
    assert "dog" in copy
