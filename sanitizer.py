"""Message cleanup before learning and after generation.

Incoming chat lines are full of commands, links and markup characters
that only add noise to the chain, so :func:`filter_message` strips them.
Generated lines get the opposite treatment in :func:`beautify_message`:
a capital first letter and tidier punctuation spacing.
All functions are pure stdlib.
"""

import re
import string
from typing import Optional

# Leading bang commands such as ``!seen`` anywhere in the line.
COMMAND = re.compile(r"!\w*")

URL = re.compile(
    r"\b(?:[\w-]+://?|www[.])[^\s()<>]+(?:\(\w+\)|[^\s"
    + re.escape(string.punctuation)
    + r"]|/?)",
    re.IGNORECASE,
)

SPACE = re.compile(r"\s*")

DIGITS = re.compile(r"\d*")

# Characters that turn up at random places in generated lines.
IGNORED = ("<", "@", "*", '"', "^")

# Over-spaced pieces the chain likes to produce.
REDUCE = (" , ", " . ", " ' ", " g ", "  ")

RUN_TOGETHER = re.compile(r"([.!?,])(?=[a-zA-Z])")


def filter_message(message: str) -> Optional[str]:
    """Strip commands, links and noise characters from *message*.

    Runs of two spaces are deleted outright, not collapsed.  Returns
    ``None`` when nothing but digits (or nothing at all) remains.
    """
    message = COMMAND.sub("", message)
    message = URL.sub("", message)
    message = message.strip()

    for ignore in IGNORED:
        message = message.replace(ignore, "")

    while "  " in message:
        message = message.replace("  ", "")

    if DIGITS.fullmatch(message):
        return None

    return message


def beautify_message(message: str) -> str:
    """Make a generated *message* presentable.

    Args:
        message: Raw chain output.

    Returns:
        The message starting at its first letter, capitalized, with
        over-spaced punctuation reduced, stray ``g`` tokens at either end
        removed and a space inserted after ``. ! ? ,`` that run into a
        letter.  No terminal punctuation is added.
    """
    b = re.sub(r"^[^a-zA-Z]*", "", message)
    if not b:
        return b
    b = b[0].upper() + b[1:]

    for reduction in REDUCE:
        while reduction in b:
            b = b.replace(reduction, reduction[1:])

    b = re.sub(r"^g ", "", b)
    b = re.sub(r" g$", "", b)
    b = RUN_TOGETHER.sub(r"\1 ", b)

    return b


def empty_string(word: str) -> bool:
    """Return ``True`` if *word* holds nothing but whitespace."""
    return SPACE.fullmatch(word) is not None
