from pathlib import Path
import gzip
import json
import random
import re
import sys
import threading

import pytest

sys.path.append(str(Path(__file__).resolve().parent.parent))

import storage  # noqa: E402
from brain import Brain  # noqa: E402
from config import Settings  # noqa: E402
from storage import (  # noqa: E402
    BrainAlreadyAttachedError,
    BrainFormatError,
    BrainHolder,
)
from words import PhraseAnalyzer, Word, WordType  # noqa: E402


def fake_parse(text):
    return [(w, "nsubj") for w in re.findall(r"\w+", text)]


def make_brain(seed=0):
    return Brain(PhraseAnalyzer(fake_parse), rng=random.Random(seed))


def trained_brain():
    b = make_brain()
    b.on_message("babble", "#pets", "alice", "The cat sat on the mat.")
    b.on_message("babble", "#pets", "carol", "The dog sat on the log.")
    return b


def test_dump_load_attach_round_trip():
    b = trained_brain()
    raw = storage.load(storage.dump(b))
    restored = storage.attach(raw, b.analyzer, b.settings)

    assert len(restored.model) == len(b.model)
    assert restored.people_names == ["alice", "carol"]
    state = restored.conversation("#pets")
    assert state.talkers == ["alice", "carol"]
    assert state.last_talker == "carol"
    assert state.words == b.conversation("#pets").words
    tokens = ("The", " ", "cat", " ")
    assert restored.model.quad(tokens).can_start
    assert restored.model.following(tokens) == b.model.following(tokens)


def test_dump_is_gzip_json():
    payload = json.loads(gzip.decompress(storage.dump(trained_brain())))
    assert payload["version"] == storage.FORMAT_VERSION
    assert set(payload) == {"version", "model", "people", "conversations"}


def test_attach_twice_is_refused():
    raw = storage.load(storage.dump(trained_brain()))
    analyzer = PhraseAnalyzer(fake_parse)
    storage.attach(raw, analyzer)
    with pytest.raises(BrainAlreadyAttachedError):
        storage.attach(raw, analyzer)


@pytest.mark.parametrize(
    "data",
    [
        b"",
        b"not a brain",
        gzip.compress(b"{broken json"),
        gzip.compress(b"[1, 2, 3]"),
        gzip.compress(json.dumps({"version": 99}).encode()),
        gzip.compress(json.dumps({"version": 1, "model": {"quads": [["a"]]}}).encode()),
    ],
)
def test_bad_data_raises_format_error(data):
    with pytest.raises(BrainFormatError):
        storage.load(data)


def test_attached_brain_uses_given_rng_and_settings():
    raw = storage.load(storage.dump(trained_brain()))
    settings = Settings(public_chance=50)
    rng = random.Random(3)
    restored = storage.attach(raw, PhraseAnalyzer(fake_parse), settings, rng)
    assert restored.settings is settings
    assert restored.rng is rng
    assert restored.model.rng is rng


def test_write_and_read_file(tmp_path):
    path = tmp_path / "brain.json.gz"
    b = trained_brain()
    assert storage.write_file(path, b) == path
    assert not (tmp_path / "brain.json.gz.tmp").exists()
    raw = storage.read_file(path)
    assert len(raw.model) == len(b.model)


def test_open_brain_without_file_starts_empty(tmp_path):
    b = storage.open_brain(tmp_path / "missing.json.gz", PhraseAnalyzer(fake_parse))
    assert len(b.model) == 0
    assert b.people_names == []


def test_open_brain_loads_existing_file(tmp_path):
    path = tmp_path / "brain.json.gz"
    storage.write_file(path, trained_brain())
    b = storage.open_brain(path, PhraseAnalyzer(fake_parse))
    assert "carol" in b.people_names
    assert "cat" in b.model


def test_holder_switch_saves_old_and_loads_new(tmp_path):
    first = tmp_path / "first.json.gz"
    second = tmp_path / "second.json.gz"
    storage.write_file(second, trained_brain())

    old = make_brain()
    old.add_sentence("Birds fly over the sea.")
    holder = BrainHolder(old, first)
    new = holder.switch(second)

    assert holder.brain is new
    assert holder.path == second
    assert new.analyzer is old.analyzer
    assert "carol" in new.people_names
    assert "Birds" in storage.open_brain(first, old.analyzer).model


def test_holder_switch_with_factory(tmp_path):
    holder = BrainHolder(make_brain(), tmp_path / "a.json.gz")
    fresh = make_brain(seed=9)
    seen = []

    def factory(path):
        seen.append(path)
        return fresh

    assert holder.switch(tmp_path / "b.json.gz", factory) is fresh
    assert seen == [tmp_path / "b.json.gz"]
    assert (tmp_path / "a.json.gz").exists()


def test_holder_save(tmp_path):
    holder = BrainHolder(trained_brain(), tmp_path / "brain.json.gz")
    path = holder.save()
    assert storage.read_file(path).people_names == ["alice", "carol"]


def test_conversation_words_survive_round_trip():
    b = make_brain()
    state = b.conversation("#x")
    state.add_word(Word("zebra", WordType.NOUN))
    state.add_word(Word("runs", WordType.VERB))
    restored = storage.attach(storage.load(storage.dump(b)), b.analyzer)
    assert restored.conversation("#x").words == [
        Word("zebra", WordType.NOUN),
        Word("runs", WordType.VERB),
    ]


def test_failed_write_leaves_no_temporary_file(tmp_path):
    target = tmp_path / "brain.json.gz"
    target.mkdir()
    with pytest.raises(OSError):
        storage.write_file(target, trained_brain())
    assert not (tmp_path / "brain.json.gz.tmp").exists()


def test_holder_snapshot_pairs_brain_and_path(tmp_path):
    holder = BrainHolder(make_brain(), tmp_path / "a.json.gz")
    new = holder.switch(tmp_path / "b.json.gz")
    assert holder.snapshot() == (new, tmp_path / "b.json.gz")


def test_dump_while_other_threads_learn_and_reply():
    b = trained_brain()
    errors = []

    def chat(n):
        try:
            for i in range(300):
                b.on_message("babble", f"#room{n}", f"user{n}x", f"the cat number {i} sat on the mat")
                b.generate_relevant_message(b.conversation(f"#room{n}"))
        except Exception as exc:
            errors.append(exc)

    threads = [threading.Thread(target=chat, args=(n,)) for n in range(4)]
    for t in threads:
        t.start()
    for _ in range(50):
        raw = storage.load(storage.dump(b))
        assert len(raw.model) > 0
    for t in threads:
        t.join()

    assert errors == []
    assert len(storage.load(storage.dump(b)).model) == len(b.model)
