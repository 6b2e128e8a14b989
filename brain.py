"""The babble brain.

A :class:`Brain` ties the quad chain, the word ranker and the
conversation memory together.  It learns from every message it sees and
composes replies around the words a conversation is currently about,
swapping in the names of the people present.  All work on a brain happens
while holding :attr:`Brain.lock`.
"""

from __future__ import annotations

import logging
import random
import re
import threading
from typing import Dict, Iterable, List, Optional

import highlight
from config import GENERATION_ATTEMPTS, Settings
from memory import (
    ConversationMemory,
    ConversationState,
    retain_talker,
    retain_words,
)
from quads import QuadModel
from sanitizer import beautify_message, empty_string, filter_message
from words import PhraseAnalyzer, Word

logger = logging.getLogger(__name__)

NICKNAME = re.compile(r"[a-zA-Z\-_]+")
MIN_NAME_LENGTH = 4
FALLBACK_REPLY = "I have no idea."

# Share of the ranked words that may be skipped when picking a focus.
FOCUS_SPREAD = 0.7


class Brain:
    """Markov chain plus per-conversation memory."""

    def __init__(
        self,
        analyzer: PhraseAnalyzer,
        settings: Optional[Settings] = None,
        model: Optional[QuadModel] = None,
        people_names: Iterable[str] = (),
        memory: Optional[ConversationMemory] = None,
        rng: Optional[random.Random] = None,
    ):
        self.analyzer = analyzer
        self.settings = settings or Settings()
        self.rng = rng or random.Random()
        self.model = model or QuadModel(self.rng)
        self.model.rng = self.rng
        self._people: Dict[str, None] = dict.fromkeys(people_names)
        self.memory = memory or ConversationMemory()
        self.lock = threading.RLock()

    @property
    def people_names(self) -> List[str]:
        return list(self._people)

    # Learning

    def add_sentence(self, sentence: str) -> bool:
        """Filter and learn *sentence*; return whether anything was learned."""
        with self.lock:
            filtered = filter_message(sentence)
            if filtered is None or empty_string(filtered):
                logger.debug(f"Message was empty after filtering: {sentence!r}")
                return False
            learned = self.model.learn(filtered)
            logger.debug(f"Learned {learned} quads from: {filtered}")
            return learned > 0

    def add_people_name(self, name: str) -> bool:
        """Remember *name* as somebody who chats."""
        with self.lock:
            if not self.settings.learn_names:
                return False
            if (
                len(name.strip()) < MIN_NAME_LENGTH
                or name in self._people
                or not NICKNAME.fullmatch(name)
            ):
                return False
            logger.debug(f"Remembering people name: {name}")
            self._people[name] = None
            return True

    def conversation(self, name: str) -> ConversationState:
        with self.lock:
            return self.memory.ensure_state(name)

    def _handle_message(self, bot: str, conversation: str, sender: str, message: str) -> None:
        logger.debug(f"Handling a message in {conversation} from {sender}: {message!r}")
        self.add_people_name(sender)
        self.add_sentence(message)
        state = self.memory.ensure_state(conversation)

        filtered = filter_message(message)
        words: List[Word] = self.analyzer.analyze(filtered) if filtered else []
        words = [w for w in words if w.word.lower() != bot.lower()]

        retain_words(state, words)
        if sender != bot:
            retain_talker(state, sender)

    def on_message(self, bot: str, conversation: str, sender: str, message: str) -> None:
        """Learn from a message sent to a multi-party *conversation*."""
        with self.lock:
            if self.settings.is_ignored(sender):
                return
            self._handle_message(bot, conversation, sender, message)

    def on_private_message(self, bot: str, sender: str, message: str) -> None:
        """Learn from a one-to-one message; the conversation is the sender."""
        with self.lock:
            if self.settings.is_ignored(sender) or message.startswith("!"):
                return
            self._handle_message(bot, sender, sender, message)

    # Generation

    def generate_original_message(self) -> str:
        """A reply without any focus word."""
        with self.lock:
            message = beautify_message(self.model.generate())
            logger.debug(f"Generated original message: {message}")
            return message or FALLBACK_REPLY

    def _attempt_generation(self, focus: str) -> str:
        for _ in range(GENERATION_ATTEMPTS):
            response = self.model.generate(focus)
            if response:
                return response
        return ""

    def _selection_start(self, size: int) -> int:
        if size > 1:
            bound = self.rng.randrange(int(size * FOCUS_SPREAD))
        else:
            bound = size
        return max(bound - 1, 0)

    def generate_relevant_message(self, state: ConversationState) -> str:
        """Compose a reply about what *state* currently talks about."""
        with self.lock:
            words = state.words
            if words:
                start = self._selection_start(len(words))
                logger.debug(f"Selecting word {start} of {len(words)} as the focus")
                for focus in words[start:]:
                    logger.debug(f"Focus word is: {focus.word}")
                    message = self._attempt_generation(focus.word)
                    if not message:
                        continue
                    message = self.appropriate_nicknames(message, state)
                    message = beautify_message(message)
                    if message:
                        logger.debug(f"Generated relevant message: {message}")
                        return message

            logger.debug("No focus word worked, falling back to an original message")
            return self.generate_original_message()

    def appropriate_nicknames(self, message: str, state: ConversationState) -> str:
        """Replace known names in *message* with the conversation's talkers."""
        if not self.settings.learn_names:
            return message

        talkers = list(state.talkers)
        self.rng.shuffle(talkers)

        contained: List[str] = []
        for person in self._people:
            if len(contained) == len(talkers):
                break
            if re.search(r"(?<!\w)" + re.escape(person) + r"(?!\w)", message):
                logger.debug(f"Found person to replace: {person}")
                contained.append(person)

        mapping = {old.lower(): new for old, new in zip(contained, talkers)}
        if not mapping:
            return message

        names = sorted(mapping, key=len, reverse=True)
        pattern = re.compile(
            r"(?<!\w)(?:" + "|".join(re.escape(n) for n in names) + r")(?!\w)",
            re.IGNORECASE,
        )
        replaced = pattern.sub(lambda m: mapping[m.group(0).lower()], message)
        logger.debug(f"Got message with new nicknames: {replaced}")
        return replaced

    def generate_relevant_public_message(
        self,
        bot: str,
        channel: str,
        sender: str,
        message: str,
        participants: Iterable[str] = (),
    ) -> str:
        """Learn from *message* and reply to it in *channel*."""
        with self.lock:
            self.on_message(bot, channel, sender, message)
            state = self.memory.ensure_state(channel)
            reply = self.generate_relevant_message(state)
            return highlight.prevent_highlighting(
                reply, participants, sender, bot, self.rng
            )

    def generate_relevant_private_message(self, bot: str, sender: str, message: str) -> str:
        """Learn from a private *message* and reply to it."""
        with self.lock:
            self.on_private_message(bot, sender, message)
            state = self.memory.ensure_state(sender)
            return self.generate_relevant_message(state)
