"""Relevance ranking of the words in a phrase.

A dependency parse of the phrase tells us what role each word plays.
Roles map onto a small set of :class:`WordType` classes with a numeric
priority, and the ranked words are later used to pick the focus word that
seeds a reply.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)

# ``parse(text)`` returns (surface token, short relation tag) pairs.
Parse = Callable[[str], Sequence[Tuple[str, str]]]


class WordType(Enum):
    """Broad grammatical classes and their priorities."""

    OTHER = 0
    ADJECTIVE = 30
    VERB = 40
    OBJECT = 50
    SUBJECT = 55
    ROOT = 70
    NOUN = 80

    @property
    def priority(self) -> int:
        return self.value

    @classmethod
    def from_tag(cls, tag: str) -> "WordType":
        """Map a dependency relation tag to its word type."""
        if tag is None:
            raise ValueError("The given tag was None.")
        return RELATIONS.get(tag.lower(), cls.OTHER)


RELATIONS: Dict[str, WordType] = {
    "arg": WordType.SUBJECT,
    "subj": WordType.SUBJECT,
    "nsubj": WordType.SUBJECT,
    "csubj": WordType.SUBJECT,
    "obj": WordType.OBJECT,
    "dobj": WordType.OBJECT,
    "pobj": WordType.OBJECT,
    "ccomp": WordType.OBJECT,
    "xcomp": WordType.OBJECT,
    "amod": WordType.ADJECTIVE,
    "nn": WordType.NOUN,
    # spaCy's name for the noun compound relation
    "compound": WordType.NOUN,
    "prt": WordType.VERB,
    "root": WordType.ROOT,
}


@dataclass(frozen=True)
class Word:
    """A surface string together with its supposed type."""

    word: str
    type: WordType = WordType.OTHER

    def __post_init__(self):
        if self.word is None:
            raise ValueError("The given word string is None.")

    @property
    def priority(self) -> int:
        return self.type.priority


def rank_key(word: Word) -> Tuple[int, int, str]:
    """Ascending sort key: priority, then length, then the string itself."""
    return (word.type.priority, len(word.word), word.word)


def rank(words: Sequence[Word]) -> List[Word]:
    """Return *words* ordered from most to least relevant."""
    return sorted(words, key=rank_key, reverse=True)


class PhraseAnalyzer:
    """Extract ranked words from phrases using an injected parser."""

    def __init__(self, parse: Parse):
        self.parse = parse

    def analyze(self, phrase: Optional[str]) -> List[Word]:
        if phrase is None:
            raise ValueError("The given phrase was None.")
        if not phrase.strip():
            return []

        words = [Word(token, WordType.from_tag(tag)) for token, tag in self.parse(phrase)]
        ranked = rank(words)
        logger.debug(f"Ranked words for '{phrase}': {[w.word for w in ranked]}")
        return ranked
