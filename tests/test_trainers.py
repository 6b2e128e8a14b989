from pathlib import Path
import random
import re
import sys

import pytest

sys.path.append(str(Path(__file__).resolve().parent.parent))

import trainers  # noqa: E402
from brain import Brain  # noqa: E402
from words import PhraseAnalyzer  # noqa: E402


def fake_parse(text):
    return [(w, "dep") for w in re.findall(r"\w+", text)]


@pytest.fixture
def brain():
    return Brain(PhraseAnalyzer(fake_parse), rng=random.Random(0))


@pytest.mark.parametrize(
    "line, expected",
    [
        ("<alice> hello there", ("alice", "hello there")),
        ("12:00 <bob> hi all", ("bob", "hi all")),
        ("* alice waves", None),
    ],
)
def test_hexchat_line(line, expected):
    assert trainers.hexchat_line(line) == expected


@pytest.mark.parametrize(
    "line, expected",
    [
        ("12:00 < alice> hello there", ("alice", "hello there")),
        ("12:00 <@bob> hi all", ("bob", "hi all")),
        ("-!- carol has joined", None),
    ],
)
def test_irssi_line(line, expected):
    assert trainers.irssi_line(line) == expected


@pytest.mark.parametrize(
    "line, expected",
    [
        ("[12:00:01] <@alice> hello there", ("alice", "hello there")),
        ("[12:00:01] <+bob> hi all", ("bob", "hi all")),
        ("[12:00:01] <carol> plain", ("carol", "plain")),
        ("\r!nc\x02[12:00:01] <dave> colored\r", ("dave", "colored")),
        ("[12:00:01] *** eve joined", None),
    ],
)
def test_kvirc_line(line, expected):
    assert trainers.kvirc_line(line) == expected


def test_plain_line():
    assert trainers.plain_line("just some words") == (None, "just some words")


def test_train_file_learns_lines_and_names(tmp_path, brain):
    log = tmp_path / "chat.log"
    log.write_text(
        "<alice> the cat sat on the mat\n"
        "* alice waves\n"
        "<bobby> 12345\n"
        "<carol> the dog sat on the log\n",
        encoding="utf-8",
    )
    assert trainers.train_file(brain, log, trainers.hexchat_line) == 2
    assert brain.people_names == ["alice", "bobby", "carol"]
    assert "dog" in brain.model


def test_train_path_walks_directories(tmp_path, brain):
    (tmp_path / "a.txt").write_text("the cat sat on the mat\n", encoding="utf-8")
    (tmp_path / "b.txt").write_text("the dog sat on the log\nhi\n", encoding="utf-8")
    (tmp_path / "nested").mkdir()
    assert trainers.train_path(brain, tmp_path) == 2
    assert brain.people_names == []


def test_train_path_logs_unreadable_files(tmp_path, brain, caplog):
    assert trainers.train_path(brain, tmp_path / "nope.txt") == 0
    assert "Error while training file" in caplog.text


def test_train_continuous_uses_splitter(tmp_path, brain):
    text = tmp_path / "book.txt"
    text.write_text("The cat sat on the mat. The dog\nsat on the log.", encoding="utf-8")
    seen = []

    def split(content):
        seen.append(content)
        return [s.strip() + "." for s in content.split(".") if s.strip()]

    assert trainers.train_path(brain, text, "continuous", split=split) == 2
    assert "\n" not in seen[0]
    assert "log" in brain.model


def test_main_trains_and_writes_brain(tmp_path, monkeypatch):
    pytest.importorskip("spacy")
    import grammar
    import storage

    class FakeParser:
        def __init__(self, model):
            self.model = model

        def __call__(self, text):
            return fake_parse(text)

        def sentences(self, text):
            return [text]

    monkeypatch.setattr(grammar, "SpacyParser", FakeParser)
    log = tmp_path / "chat.log"
    log.write_text("<alice> the cat sat on the mat\n", encoding="utf-8")
    path = tmp_path / "brain.json.gz"

    assert trainers.main(["--format", "hexchat", "--brain", str(path), str(log)]) == 0
    assert storage.read_file(path).people_names == ["alice"]


def test_main_rejects_bad_config(tmp_path, capsys):
    pytest.importorskip("spacy")
    config_file = tmp_path / "settings.json"
    config_file.write_text('{"cooldown": 0}', encoding="utf-8")
    assert trainers.main(["--config", str(config_file), str(tmp_path)]) == 2
    assert "Cooldown" in capsys.readouterr().err


def test_continuous_training_needs_a_splitter(tmp_path, brain):
    text = tmp_path / "book.txt"
    text.write_text("The cat sat on the mat.", encoding="utf-8")
    with pytest.raises(ValueError):
        trainers.train_path(brain, text, "continuous")
