"""Response and greeting pipelines.

A pipeline is an ordered list of named stages.  Every stage looks at a
:class:`ChatEvent` and either returns a reply or ``None``; the first reply
wins.  Behaviour that makes the bot look more human, like cooldowns,
chance rolls and typing delays, is a stage wrapping a nested pipeline.
"""

from __future__ import annotations

import logging
import random
import re
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence, Tuple

import config
from config import Settings
from storage import BrainHolder

logger = logging.getLogger(__name__)


@dataclass
class ChatEvent:
    """A message (or join) seen by the bot."""

    bot: str
    conversation: str
    sender: str
    message: str = ""
    private: bool = False
    participants: Sequence[str] = field(default_factory=tuple)


Stage = Callable[[ChatEvent], Optional[str]]


class Pipeline:
    """Ordered named stages; the first non-empty reply is returned."""

    def __init__(self, stages: Sequence[Tuple[str, Stage]] = ()):
        self.stages: List[Tuple[str, Stage]] = list(stages)

    def add(self, name: str, stage: Stage) -> "Pipeline":
        self.stages.append((name, stage))
        return self

    def remove(self, name: str) -> None:
        self.stages = [(n, s) for n, s in self.stages if n != name]

    @property
    def names(self) -> List[str]:
        return [n for n, _ in self.stages]

    def __call__(self, event: ChatEvent) -> Optional[str]:
        return self.run(event)

    def run(self, event: ChatEvent) -> Optional[str]:
        for name, stage in self.stages:
            reply = stage(event)
            if reply:
                logger.debug(f"Stage {name} answered {event.sender} in {event.conversation}")
                return reply
        return None


class Cooldown:
    """Remembers when the bot last spoke."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self.clock = clock
        self.last: Optional[float] = None

    def ready(self, seconds: float) -> bool:
        return self.last is None or self.clock() - self.last > seconds

    def touch(self) -> None:
        self.last = self.clock()


def fixed_responses(
    responses: Dict[str, str],
    rng: Optional[random.Random] = None,
    chance: int = config.FIXED_CHANCE,
) -> Stage:
    """Answer messages that exactly match a trigger, some of the time."""

    def stage(event: ChatEvent) -> Optional[str]:
        if event.message in responses and config.roll_chance(chance, rng):
            return responses[event.message]
        return None

    return stage


def brain_reply(holder: BrainHolder) -> Stage:
    """Ask the current brain for a relevant reply."""

    def stage(event: ChatEvent) -> Optional[str]:
        brain = holder.brain
        if event.private:
            reply = brain.generate_relevant_private_message(
                event.bot, event.sender, event.message
            )
        else:
            if event.message.startswith("!"):
                return None
            reply = brain.generate_relevant_public_message(
                event.bot,
                event.conversation,
                event.sender,
                event.message,
                event.participants,
            )
        if not event.bot:
            return reply
        # talk back to the sender instead of about ourselves
        return re.sub(re.escape(event.bot), lambda m: event.sender, reply, flags=re.IGNORECASE)

    return stage


def anthro(
    inner: Stage,
    settings: Settings,
    rng: Optional[random.Random] = None,
    cooldown: Optional[Cooldown] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> Stage:
    """Gate *inner* behind a cooldown, a chance roll and a typing delay.

    Mentions of the bot skip the cooldown in public conversations and
    use the ping chance instead of the public one.
    """
    cooldown = cooldown or Cooldown()

    def stage(event: ChatEvent) -> Optional[str]:
        if event.private:
            if not cooldown.ready(settings.cooldown):
                return None
            response = inner(event)
            if response:
                config.simulate_delay(settings, rng, sleep)
                cooldown.touch()
            return response

        mentioned = bool(event.bot) and event.bot.lower() in event.message.lower()
        response = None
        if mentioned:
            if config.roll_chance(settings.ping_chance, rng):
                response = inner(event)
        elif cooldown.ready(settings.cooldown):
            if config.roll_chance(settings.public_chance, rng):
                response = inner(event)

        if response:
            config.simulate_delay(settings, rng, sleep)
            cooldown.touch()
            if mentioned and event.sender.lower() not in response.lower():
                response = f"{event.sender}: {response}"
        return response

    return stage


def fixed_greetings(
    join_messages: Sequence[str],
    greet_messages: Sequence[str],
    rng: Optional[random.Random] = None,
) -> Stage:
    """Greet with a random canned line; ``%user%`` and ``%channel%`` are filled in.

    The bot joining itself uses *join_messages*, anyone else
    *greet_messages*.
    """
    rng = rng or random.Random()

    def stage(event: ChatEvent) -> Optional[str]:
        choices = join_messages if event.sender == event.bot else greet_messages
        if not choices:
            return None
        message = rng.choice(list(choices))
        message = message.replace(config.CHANNEL_MASK, event.conversation)
        return message.replace(config.USER_MASK, event.sender)

    return stage


def anthro_greetings(
    inner: Stage,
    settings: Settings,
    rng: Optional[random.Random] = None,
    cooldown: Optional[Cooldown] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> Stage:
    """Greet only after a cooldown and a successful greet chance roll."""
    cooldown = cooldown or Cooldown()

    def stage(event: ChatEvent) -> Optional[str]:
        if not cooldown.ready(settings.cooldown):
            return None
        if not config.roll_chance(settings.greet_chance, rng):
            return None
        greeting = inner(event)
        if greeting:
            config.simulate_delay(settings, rng, sleep)
            cooldown.touch()
        return greeting

    return stage


def default_responder(
    holder: BrainHolder,
    settings: Settings,
    fixed: Optional[Dict[str, str]] = None,
    rng: Optional[random.Random] = None,
) -> Pipeline:
    """Fixed triggers first, then the brain, both behind the human touch."""
    inner = Pipeline(
        [
            ("fixed", fixed_responses(fixed or {}, rng)),
            ("brain", brain_reply(holder)),
        ]
    )
    return Pipeline([("anthro", anthro(inner, settings, rng))])


def default_greeter(
    settings: Settings,
    join_messages: Sequence[str] = (),
    greet_messages: Sequence[str] = (),
    rng: Optional[random.Random] = None,
) -> Pipeline:
    greeter = fixed_greetings(join_messages, greet_messages, rng)
    return Pipeline([("anthro", anthro_greetings(greeter, settings, rng))])


class Responder:
    """Feeds chat events to the brain and runs the pipelines."""

    def __init__(
        self,
        holder: BrainHolder,
        settings: Settings,
        responses: Optional[Pipeline] = None,
        greetings: Optional[Pipeline] = None,
    ):
        self.holder = holder
        self.settings = settings
        self.responses = responses if responses is not None else default_responder(holder, settings)
        self.greetings = greetings if greetings is not None else default_greeter(settings)

    def listen(self, event: ChatEvent) -> None:
        """Learn from *event* without answering."""
        brain = self.holder.brain
        if event.private:
            brain.on_private_message(event.bot, event.sender, event.message)
        else:
            brain.on_message(event.bot, event.conversation, event.sender, event.message)

    def respond(self, event: ChatEvent) -> Optional[str]:
        """Learn from *event* and maybe produce a reply."""
        if self.settings.is_ignored(event.sender):
            return None
        self.listen(event)
        return self.responses.run(event)

    def greet(self, event: ChatEvent) -> Optional[str]:
        return self.greetings.run(event)
