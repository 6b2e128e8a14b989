"""Quad based Markov chain for the babble engine.

Learned text is cut into alternating runs of word characters and
punctuation.  Every overlapping window of four such tokens becomes a
:class:`Quad`.  Generation picks a quad and walks the chain forwards until
a quad that ended a learned sentence is reached, then backwards until one
that started a sentence is reached.  Tokens keep their original spacing,
so a generated sentence is simply the concatenation of its tokens.
"""

from __future__ import annotations

import logging
import random
import sys
from collections import deque
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple

logger = logging.getLogger(__name__)

# Characters that make up words.  Anything else is treated as punctuation.
WORD_CHARS = frozenset(
    "abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"
)

# Upper bound on tokens added in a single walk direction.
MAX_WALK = 512

Tokens = Tuple[str, str, str, str]


@dataclass
class Quad:
    """Four consecutive tokens of a learned sentence."""

    tokens: Tokens
    can_start: bool = False
    can_end: bool = False

    def __str__(self) -> str:
        return "".join(self.tokens)


def tokenize(sentence: str, word_chars: Iterable[str] = WORD_CHARS) -> List[str]:
    """Split *sentence* into alternating word and punctuation runs."""
    word_chars = word_chars if isinstance(word_chars, frozenset) else frozenset(word_chars)
    parts: List[str] = []
    buffer: List[str] = []
    in_word = None
    for ch in sentence.strip():
        is_word = ch in word_chars
        if is_word != in_word and buffer:
            parts.append(sys.intern("".join(buffer)))
            buffer = []
        in_word = is_word
        buffer.append(ch)
    if buffer:
        parts.append(sys.intern("".join(buffer)))
    return parts


class QuadModel:
    """Store of quads and the tokens observed around them."""

    def __init__(self, rng: Optional[random.Random] = None):
        self._quads: Dict[Tokens, Quad] = {}
        # token -> quads containing it, dicts are used as ordered sets
        self._words: Dict[str, Dict[Tokens, None]] = {}
        self._next: Dict[Tokens, Dict[str, None]] = {}
        self._previous: Dict[Tokens, Dict[str, None]] = {}
        self.rng = rng or random.Random()

    def __len__(self) -> int:
        return len(self._quads)

    def __contains__(self, token: object) -> bool:
        return token in self._words

    def quad(self, tokens: Tokens) -> Optional[Quad]:
        return self._quads.get(tuple(tokens))

    def following(self, tokens: Tokens) -> List[str]:
        """Tokens seen directly after *tokens*."""
        return list(self._next.get(tuple(tokens), ()))

    def preceding(self, tokens: Tokens) -> List[str]:
        """Tokens seen directly before *tokens*."""
        return list(self._previous.get(tuple(tokens), ()))

    def _put(self, tokens: Tokens, can_start: bool, can_end: bool) -> Quad:
        quad = self._quads.get(tokens)
        if quad is None:
            quad = Quad(tokens)
            self._quads[tokens] = quad
            for token in tokens:
                self._words.setdefault(token, {})[tokens] = None
        # flags are only ever upgraded
        if can_start:
            quad.can_start = True
        if can_end:
            quad.can_end = True
        return quad

    def learn(self, sentence: str) -> int:
        """Learn the quads of *sentence* and return how many windows were seen.

        Sentences with fewer than four tokens leave the model untouched.
        """
        parts = tokenize(sentence)
        if len(parts) < 4:
            logger.debug(f"Too few tokens to learn from: {parts}")
            return 0

        last = len(parts) - 4
        for i in range(last + 1):
            tokens: Tokens = tuple(parts[i:i + 4])  # type: ignore[assignment]
            self._put(tokens, i == 0, i == last)
            if i > 0:
                self._previous.setdefault(tokens, {})[parts[i - 1]] = None
            if i < last:
                self._next.setdefault(tokens, {})[parts[i + 4]] = None
        return last + 1

    def generate(self, seed: Optional[str] = None) -> str:
        """Random walk the chain around *seed* and return the sentence.

        Without a known seed the walk starts at any quad.  An empty model
        yields the empty string.
        """
        if seed is not None and seed in self._words:
            candidates = list(self._words[seed])
        else:
            candidates = list(self._quads)
        if not candidates:
            return ""

        middle = self._quads[self.rng.choice(candidates)]
        parts = deque(middle.tokens)

        quad = middle
        steps = 0
        while not quad.can_end and steps < MAX_WALK:
            choices = self._next.get(quad.tokens)
            if not choices:
                break
            token = self.rng.choice(list(choices))
            quad = self._quads[quad.tokens[1:] + (token,)]
            parts.append(token)
            steps += 1

        quad = middle
        steps = 0
        while not quad.can_start and steps < MAX_WALK:
            choices = self._previous.get(quad.tokens)
            if not choices:
                break
            token = self.rng.choice(list(choices))
            quad = self._quads[(token,) + quad.tokens[:3]]
            parts.appendleft(token)
            steps += 1

        return "".join(parts)

    def to_dict(self) -> Dict[str, list]:
        """Plain data view of the model for serialization."""
        index = {tokens: i for i, tokens in enumerate(self._quads)}
        return {
            "quads": [
                [*quad.tokens, quad.can_start, quad.can_end]
                for quad in self._quads.values()
            ],
            "next": [[index[t], list(tokens)] for t, tokens in self._next.items()],
            "previous": [
                [index[t], list(tokens)] for t, tokens in self._previous.items()
            ],
        }

    @classmethod
    def from_dict(
        cls, data: Dict[str, list], rng: Optional[random.Random] = None
    ) -> "QuadModel":
        """Rebuild a model produced by :meth:`to_dict`."""
        model = cls(rng)
        order: List[Tokens] = []
        for row in data.get("quads", []):
            tokens: Tokens = tuple(sys.intern(t) for t in row[:4])  # type: ignore[assignment]
            model._put(tokens, bool(row[4]), bool(row[5]))
            order.append(tokens)
        for i, tokens in data.get("next", []):
            model._next[order[i]] = {sys.intern(t): None for t in tokens}
        for i, tokens in data.get("previous", []):
            model._previous[order[i]] = {sys.intern(t): None for t in tokens}
        return model
