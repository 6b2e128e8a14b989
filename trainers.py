"""Bulk training from chat logs and text files.

One driver reads a file line by line and hands every line to an
extractor that knows the log format.  An extractor returns the speaker
(or ``None``) and the spoken text, or ``None`` when the line carries no
message at all.  Continuous prose is split into sentences with spaCy
instead.

Run ``python -m trainers --format hexchat logs/ --brain brain.json.gz`` to
train a stored brain.
"""

from __future__ import annotations

import argparse
import logging
import os
import re
import sys
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Tuple

logger = logging.getLogger(__name__)

Extracted = Optional[Tuple[Optional[str], str]]
Extractor = Callable[[str], Extracted]

KVIRC_LINE = re.compile(r"^.*\[.*\] <.*>.*$")


def plain_line(line: str) -> Extracted:
    """Every line is a sentence without a speaker."""
    return None, line


def _nick_and_text(line: str, skip: int, modes: str = "") -> Extracted:
    start = line.find("<")
    if start == -1:
        return None
    rest = line[start + skip:]
    if modes and rest[:1] in modes:
        rest = rest[1:]
    name, sep, text = rest.partition(">")
    if not sep or not name:
        return None
    return name, text[1:]


def hexchat_line(line: str) -> Extracted:
    """``<nick> text`` lines as written by HexChat."""
    return _nick_and_text(line, 1)


def irssi_line(line: str) -> Extracted:
    """``< nick>`` or ``<@nick>`` lines as written by irssi."""
    return _nick_and_text(line, 2)


def kvirc_line(line: str) -> Extracted:
    """``[time] <@nick> text`` lines as written by KVIrc, colors removed."""
    line = re.sub(r"\r!\w*", "", line)
    line = line.replace("\x02", "").replace("\r", "")
    if not KVIRC_LINE.match(line):
        return None
    return _nick_and_text(line, 1, modes="@+")


EXTRACTORS: Dict[str, Extractor] = {
    "plain": plain_line,
    "hexchat": hexchat_line,
    "irssi": irssi_line,
    "kvirc": kvirc_line,
}


def _files(path: Path) -> List[Path]:
    if path.is_dir():
        return sorted(p for p in path.iterdir() if p.is_file())
    return [path]


def train_file(brain, path: os.PathLike, extract: Extractor = plain_line) -> int:
    """Teach *brain* every line of *path*; return the number of lines learned."""
    path = Path(path)
    logger.info(f"Starting training session for the file: {path}")
    learned = 0
    with brain.lock, open(path, "r", encoding="utf-8", errors="replace") as f:
        for line in f:
            extracted = extract(line.rstrip("\r\n"))
            if extracted is None:
                continue
            name, text = extracted
            if name:
                brain.add_people_name(name)
            if brain.add_sentence(text):
                learned += 1
    logger.info(f"Done with the training of {path}: {learned} lines learned")
    return learned


def train_continuous(brain, path: os.PathLike, split: Callable[[str], Iterable[str]]) -> int:
    """Teach *brain* the sentences of a continuous text file."""
    path = Path(path)
    logger.info(f"Starting training of continuous text file: {path}")
    content = path.read_text(encoding="utf-8", errors="replace").replace("\n", " ")
    learned = 0
    with brain.lock:
        for sentence in split(content):
            logger.debug(f"Teaching the sentence: {sentence}")
            if brain.add_sentence(sentence):
                learned += 1
    logger.info(f"Done with the training of {path}: {learned} sentences learned")
    return learned


def train_path(brain, path: os.PathLike, fmt: str = "plain", split=None) -> int:
    """Train from a file or every file of a directory in the given format."""
    if fmt == "continuous" and split is None:
        raise ValueError("Continuous training needs a sentence splitter.")
    total = 0
    for file in _files(Path(path)):
        try:
            if fmt == "continuous":
                total += train_continuous(brain, file, split)
            else:
                total += train_file(brain, file, EXTRACTORS[fmt])
        except OSError:
            logger.exception(f"Error while training file: {file}")
    return total


def main(argv: Optional[List[str]] = None) -> int:
    import config
    import grammar
    import storage
    from words import PhraseAnalyzer

    ap = argparse.ArgumentParser(description="Train a babble brain from text.")
    ap.add_argument("paths", nargs="+", help="Files or directories to learn from.")
    ap.add_argument(
        "--format",
        choices=sorted([*EXTRACTORS, "continuous"]),
        default="plain",
        help="Layout of the input files.",
    )
    ap.add_argument("--brain", default=None, help="Brain file to update.")
    ap.add_argument("--config", default=None, help="JSON settings file.")
    args = ap.parse_args(argv)

    logging.basicConfig(level=os.environ.get("BABBLE_LOG_LEVEL", "INFO").upper())

    try:
        settings = config.load_settings(args.config)
    except (OSError, config.ConfigError) as exc:
        print(exc, file=sys.stderr)
        return 2

    parser = grammar.SpacyParser(settings.spacy_model)
    path = args.brain or settings.brain_path
    brain = storage.open_brain(path, PhraseAnalyzer(parser), settings)

    total = 0
    for p in args.paths:
        total += train_path(brain, p, args.format, split=parser.sentences)

    storage.write_file(path, brain)
    logger.info(f"Learned {total} lines, brain has {len(brain.model)} quads")
    return 0


if __name__ == "__main__":  # pragma: no cover - manual run
    sys.exit(main())
