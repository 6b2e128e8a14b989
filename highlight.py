"""Accidental highlight prevention.

Chat clients notify a user whenever their nickname shows up in a
message.  Generated replies happily reuse learned nicknames, so before a
reply goes to a public conversation every present nickname in it gets one
character swapped for a look-alike.
"""

from __future__ import annotations

import logging
import random
import re
from typing import Dict, Iterable, Optional, Tuple

logger = logging.getLogger(__name__)

# Maximum attempts per occurrence before it is left as is
MAX_REPLACEMENT_TRIES = 10

REPLACEMENTS: Dict[str, Tuple[str, ...]] = {
    "a": ("e",),
    "b": ("d", "p"),
    "c": ("q", "k"),
    "d": ("b", "p"),
    "e": ("a",),
    "f": ("b",),
    "g": ("q",),
    "h": ("k",),
    "i": ("u", "y"),
    "j": ("y",),
    "k": ("c", "q"),
    "l": ("w", "r"),
    "m": ("n",),
    "n": ("m",),
    "o": ("u",),
    "p": ("b", "d"),
    "q": ("c", "k"),
    "r": ("l",),
    "s": ("c", "z"),
    "t": ("p", "d"),
    "u": ("o",),
    "v": ("f", "w"),
    "w": ("v",),
    "x": ("z",),
    "y": ("i",),
    "z": ("c", "x"),
}


def look_alike(ch: str, rng: random.Random) -> Optional[str]:
    """Return a replacement for *ch* or ``None`` if there is none."""
    if ch.isdigit():
        return str(rng.randrange(10))
    choices = REPLACEMENTS.get(ch.lower())
    if not choices:
        return None
    replacement = rng.choice(choices)
    return replacement.upper() if ch.isupper() else replacement


def _disguise(message: str, nick: str, rng: random.Random) -> str:
    chars = list(message)
    for match in re.finditer(re.escape(nick), message, re.IGNORECASE):
        for _ in range(MAX_REPLACEMENT_TRIES + 1):
            pos = rng.randrange(match.start(), match.end())
            replacement = look_alike(chars[pos], rng)
            if replacement is not None and replacement.lower() != chars[pos].lower():
                chars[pos] = replacement
                break
        else:
            logger.debug(f"Leaving an occurrence of {nick} unmodified")
    return "".join(chars)


def prevent_highlighting(
    message: str,
    participants: Iterable[str],
    sender: str,
    bot: str,
    rng: Optional[random.Random] = None,
) -> str:
    """Disguise every participant nickname found in *message*.

    The sender, the bot itself and single character nicknames are left
    alone, as is anything containing them.  Occurrences that cannot be
    disguised stay unmodified.
    """
    rng = rng or random.Random()
    sender_lower = sender.lower()
    bot_lower = bot.lower()

    for nick in participants:
        nick_lower = nick.lower()
        if len(nick) <= 1 or nick_lower in sender_lower or nick_lower in bot_lower:
            continue
        if re.search(re.escape(nick), message, re.IGNORECASE):
            message = _disguise(message, nick, rng)

    return message
