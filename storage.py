"""Brain persistence.

A brain is stored as gzip compressed JSON.  Loading is done in two
steps: :func:`load` turns bytes into a :class:`RawState` holding only
plain data, and :func:`attach` combines that state with the parts that
cannot be stored, such as the grammar parser, into a working
:class:`~brain.Brain`.  A raw state can be attached exactly once.
"""

from __future__ import annotations

import gzip
import json
import logging
import os
import random
import threading
import zlib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional, Tuple, Union

from brain import Brain
from config import Settings
from memory import ConversationMemory, ConversationState
from quads import QuadModel
from words import PhraseAnalyzer

logger = logging.getLogger(__name__)

FORMAT_VERSION = 1

PathLike = Union[str, os.PathLike]


class BrainFormatError(ValueError):
    """Raised when stored brain data cannot be decoded."""


class BrainAlreadyAttachedError(RuntimeError):
    """Raised when a raw state is attached a second time."""


@dataclass
class RawState:
    """Decoded brain data that is not usable until attached."""

    model: QuadModel
    people_names: List[str] = field(default_factory=list)
    conversations: List[ConversationState] = field(default_factory=list)
    attached: bool = False


def dump(brain: Brain) -> bytes:
    """Serialize *brain* while holding its lock."""
    with brain.lock:
        payload = {
            "version": FORMAT_VERSION,
            "model": brain.model.to_dict(),
            "people": brain.people_names,
            "conversations": [s.to_dict() for s in brain.memory.states()],
        }
        text = json.dumps(payload, separators=(",", ":"))
    return gzip.compress(text.encode("utf-8"))


def load(data: bytes) -> RawState:
    """Decode bytes produced by :func:`dump`."""
    try:
        payload = json.loads(gzip.decompress(data).decode("utf-8"))
    except (OSError, EOFError, zlib.error, UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise BrainFormatError(f"Undecodable brain data: {exc}") from exc

    if not isinstance(payload, dict) or payload.get("version") != FORMAT_VERSION:
        raise BrainFormatError("Unsupported brain format version")

    try:
        return RawState(
            model=QuadModel.from_dict(payload["model"]),
            people_names=list(payload.get("people", [])),
            conversations=[
                ConversationState.from_dict(s) for s in payload.get("conversations", [])
            ],
        )
    except (KeyError, IndexError, TypeError, ValueError) as exc:
        raise BrainFormatError(f"Corrupt brain data: {exc}") from exc


def attach(
    raw: RawState,
    analyzer: PhraseAnalyzer,
    settings: Optional[Settings] = None,
    rng: Optional[random.Random] = None,
) -> Brain:
    """Turn *raw* into a brain using the given runtime collaborators."""
    if raw.attached:
        raise BrainAlreadyAttachedError("Can't attach the same brain state twice.")
    raw.attached = True

    memory = ConversationMemory()
    for state in raw.conversations:
        memory.add(state)

    return Brain(
        analyzer,
        settings=settings,
        model=raw.model,
        people_names=raw.people_names,
        memory=memory,
        rng=rng,
    )


def write_file(path: PathLike, brain: Brain) -> Path:
    """Write *brain* to *path*, replacing the file only once fully written."""
    path = Path(path)
    data = dump(brain)
    tmp = path.with_name(path.name + ".tmp")
    try:
        tmp.write_bytes(data)
        os.replace(tmp, path)
    except OSError:
        tmp.unlink(missing_ok=True)
        raise
    logger.debug(f"Wrote brain to {path} ({len(data)} bytes)")
    return path


def read_file(path: PathLike) -> RawState:
    return load(Path(path).read_bytes())


def open_brain(
    path: PathLike,
    analyzer: PhraseAnalyzer,
    settings: Optional[Settings] = None,
    rng: Optional[random.Random] = None,
) -> Brain:
    """Load the brain stored at *path* or start an empty one."""
    path = Path(path)
    if path.exists():
        logger.info(f"Loading brain from {path}")
        return attach(read_file(path), analyzer, settings, rng)
    logger.info(f"No brain at {path}, starting an empty one")
    return Brain(analyzer, settings=settings, rng=rng)


class BrainHolder:
    """The brain currently answering, switchable at runtime."""

    def __init__(self, brain: Brain, path: PathLike):
        self._brain = brain
        self._path = Path(path)
        self._lock = threading.Lock()

    @property
    def brain(self) -> Brain:
        return self._brain

    @property
    def path(self) -> Path:
        return self._path

    def snapshot(self) -> Tuple[Brain, Path]:
        """The current brain together with the path it belongs to."""
        with self._lock:
            return self._brain, self._path

    def save(self) -> Path:
        brain, path = self.snapshot()
        return write_file(path, brain)

    def switch(
        self,
        path: PathLike,
        factory: Optional[Callable[[Path], Brain]] = None,
    ) -> Brain:
        """Persist the current brain and publish the one stored at *path*.

        *factory* builds the new brain from its path; by default the new
        brain reuses the current brain's analyzer and settings.
        """
        with self._lock:
            old, old_path = self._brain, self._path
            write_file(old_path, old)

            new_path = Path(path)
            if factory is None:
                new = open_brain(new_path, old.analyzer, old.settings)
            else:
                new = factory(new_path)

            self._brain, self._path = new, new_path
        logger.info(f"Switched brain from {old_path} to {new_path}")
        return new
