"""Rolling per-conversation memory.

Each conversation remembers the last few people who spoke in it and the
ranked words of the latest message.  Conversations themselves live in a
bounded least-recently-used cache, so memory of quiet conversations is
dropped once the capacity is reached.
"""

from __future__ import annotations

import logging
from collections import OrderedDict
from typing import Callable, Dict, Generic, Iterable, Iterator, List, Optional, TypeVar

from words import Word, WordType, rank_key

logger = logging.getLogger(__name__)

TALKER_LIMIT = 6
WORD_LIMIT = 12
CONVERSATION_LIMIT = 256

T = TypeVar("T")


class LimitedSortedSet(Generic[T]):
    """Sorted set that drops its lowest element once it grows past *limit*."""

    def __init__(self, limit: int, key: Callable[[T], object]):
        self.limit = limit
        self.key = key
        self._items: Dict[object, T] = {}

    def add(self, item: T) -> Optional[T]:
        """Insert *item* and return the evicted element, if any."""
        self._items[self.key(item)] = item
        if len(self._items) > self.limit:
            lowest = min(self._items)
            return self._items.pop(lowest)
        return None

    def clear(self) -> None:
        self._items.clear()

    def ascending(self) -> List[T]:
        return [self._items[k] for k in sorted(self._items)]

    def descending(self) -> List[T]:
        return [self._items[k] for k in sorted(self._items, reverse=True)]

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[T]:
        return iter(self.ascending())


class RecentSet:
    """Case-insensitive set of names that forgets the oldest beyond *limit*."""

    def __init__(self, limit: int):
        self.limit = limit
        self._names: "OrderedDict[str, str]" = OrderedDict()

    def add(self, name: str) -> Optional[str]:
        key = name.lower()
        self._names.pop(key, None)
        self._names[key] = name
        if len(self._names) > self.limit:
            return self._names.popitem(last=False)[1]
        return None

    def recent(self) -> List[str]:
        """Names from oldest to newest."""
        return list(self._names.values())

    def __len__(self) -> int:
        return len(self._names)

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self._names.values(), key=str.lower))

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.lower() in self._names


class ConversationState:
    """What a single conversation currently talks about and who talks."""

    def __init__(self, name: str):
        self.name = name
        self.last_talker: Optional[str] = None
        self._talkers = RecentSet(TALKER_LIMIT)
        self._words: LimitedSortedSet[Word] = LimitedSortedSet(WORD_LIMIT, rank_key)

    def add_talker(self, talker: str) -> None:
        self.last_talker = talker
        self._talkers.add(talker)

    def add_word(self, word: Word) -> None:
        self._words.add(word)

    def clear_words(self) -> None:
        self._words.clear()

    @property
    def talkers(self) -> List[str]:
        """Recent talkers in case-insensitive order."""
        return list(self._talkers)

    @property
    def recent_talkers(self) -> List[str]:
        return self._talkers.recent()

    @property
    def words(self) -> List[Word]:
        """Remembered words, most relevant first."""
        return self._words.descending()

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "last_talker": self.last_talker,
            "talkers": self.recent_talkers,
            "words": [[w.word, w.type.name] for w in self._words.ascending()],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ConversationState":
        state = cls(data["name"])
        for talker in data.get("talkers", []):
            state._talkers.add(talker)
        state.last_talker = data.get("last_talker")
        for word, type_name in data.get("words", []):
            state.add_word(Word(word, WordType[type_name]))
        return state

    def __repr__(self) -> str:
        return f"ConversationState({self.name!r})"


def retain_words(state: ConversationState, words: Iterable[Word]) -> None:
    """Replace the words remembered for *state* with *words*.

    An empty list keeps the previous words.
    """
    words = list(words)
    if not words:
        return
    state.clear_words()
    for word in words:
        state.add_word(word)
    logger.debug(f"Remembering words for {state.name}: {[w.word for w in state.words]}")


def retain_talker(state: ConversationState, talker: str) -> None:
    logger.debug(f"Remembering talker {talker} for the conversation {state.name}")
    state.add_talker(talker)


class ConversationMemory:
    """Least-recently-used cache of conversation states."""

    def __init__(self, capacity: int = CONVERSATION_LIMIT):
        self.capacity = capacity
        self._states: "OrderedDict[str, ConversationState]" = OrderedDict()

    def ensure_state(self, name: str) -> ConversationState:
        """Return the state for *name*, creating it on first use."""
        state = self._states.get(name)
        if state is None:
            logger.debug(f"No record found for conversation {name}. Creating one now.")
            state = ConversationState(name)
            self._states[name] = state
            while len(self._states) > self.capacity:
                evicted, _ = self._states.popitem(last=False)
                logger.debug(f"Forgetting conversation {evicted}")
        else:
            self._states.move_to_end(name)
        return state

    def states(self) -> List[ConversationState]:
        return list(self._states.values())

    def add(self, state: ConversationState) -> None:
        self._states[state.name] = state
        self._states.move_to_end(state.name)
        while len(self._states) > self.capacity:
            self._states.popitem(last=False)

    def __contains__(self, name: object) -> bool:
        return name in self._states

    def __len__(self) -> int:
        return len(self._states)
