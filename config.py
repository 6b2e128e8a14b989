"""Runtime settings for babble.

Settings come from an optional JSON file and ``BABBLE_*`` environment
variables.  The engine only ever reads them, at the moment it needs a
value, so they can be changed while the bot is running.
"""

from __future__ import annotations

import json
import logging
import os
import random
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Set

logger = logging.getLogger(__name__)

CHANCE_MAX = 100
FIXED_CHANCE = 30
GENERATION_ATTEMPTS = 32

USER_MASK = "%user%"
CHANNEL_MASK = "%channel%"

MIN_COOLDOWN = 1
MIN_MIN_DELAY = 100
MAX_MIN_DELAY = 60000
MIN_MAX_DELAY = 200

ENV_PREFIX = "BABBLE_"


class ConfigError(ValueError):
    """Raised for malformed or out of range settings."""


@dataclass
class Settings:
    """Mutable settings shared by the brain and the response pipeline."""

    min_delay: int = 2000
    max_delay: int = 4000
    cooldown: int = 5
    public_chance: int = 10
    ping_chance: int = 100
    greet_chance: int = 80
    learn_names: bool = True
    ignored: Set[str] = field(default_factory=set)
    spacy_model: str = "en_core_web_sm"
    brain_path: str = "brain.json.gz"

    def is_ignored(self, nick: str) -> bool:
        return nick.lower() in {n.lower() for n in self.ignored}

    def validate(self) -> "Settings":
        """Check every value and return ``self``."""
        if self.cooldown < MIN_COOLDOWN:
            raise ConfigError(f"Cooldown out of range: {self.cooldown}")
        for name in ("public_chance", "ping_chance", "greet_chance"):
            value = getattr(self, name)
            if value < 0 or value > CHANCE_MAX:
                raise ConfigError(f"{name} out of range: {value}")
        if self.min_delay < MIN_MIN_DELAY or self.min_delay > MAX_MIN_DELAY:
            raise ConfigError(f"Min delay out of range: {self.min_delay}")
        if self.max_delay < MIN_MAX_DELAY:
            raise ConfigError(f"Max delay out of range: {self.max_delay}")
        if self.max_delay < self.min_delay:
            raise ConfigError("Max delay is smaller than min delay.")
        return self


def _as_int(key: str, value: Any) -> int:
    if isinstance(value, bool):
        raise ConfigError(f"Malformed {key} value: {value!r}")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ConfigError(f"Malformed {key} value: {value!r}") from None


def _as_bool(key: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in {"1", "true", "yes", "on"}:
        return True
    if text in {"0", "false", "no", "off"}:
        return False
    raise ConfigError(f"Malformed {key} value: {value!r}")


def _as_names(key: str, value: Any) -> Set[str]:
    if isinstance(value, str):
        return {n.strip() for n in value.split(",") if n.strip()}
    if isinstance(value, (list, tuple, set)):
        return {str(n) for n in value}
    raise ConfigError(f"Malformed {key} value: {value!r}")


# file/env key -> (settings field, converter)
_KEYS: Dict[str, tuple[str, Callable[[str, Any], Any]]] = {
    "cooldown": ("cooldown", _as_int),
    "publicchance": ("public_chance", _as_int),
    "pingchance": ("ping_chance", _as_int),
    "greetchance": ("greet_chance", _as_int),
    "mindelay": ("min_delay", _as_int),
    "maxdelay": ("max_delay", _as_int),
    "learnnames": ("learn_names", _as_bool),
    "ignored": ("ignored", _as_names),
    "spacymodel": ("spacy_model", lambda key, value: str(value)),
    "brainpath": ("brain_path", lambda key, value: str(value)),
}


def apply(settings: Settings, values: Dict[str, Any]) -> Settings:
    """Apply raw *values* keyed like the JSON file onto *settings*."""
    for key, value in values.items():
        entry = _KEYS.get(key.lower())
        if entry is None:
            logger.warning(f"Ignoring unknown setting {key}")
            continue
        name, convert = entry
        setattr(settings, name, convert(key, value))
        logger.info(f"Set {name} to {getattr(settings, name)}")
    return settings


def load_settings(
    path: Optional[str] = None, environ: Optional[Dict[str, str]] = None
) -> Settings:
    """Build validated settings from the JSON file at *path* and the environment."""
    settings = Settings()

    if path is not None:
        try:
            with open(Path(path), "r", encoding="utf-8") as f:
                values = json.load(f)
        except json.JSONDecodeError as exc:
            raise ConfigError(f"Malformed config file {path}: {exc}") from exc
        if not isinstance(values, dict):
            raise ConfigError(f"Config file {path} must hold a JSON object")
        apply(settings, values)

    environ = os.environ if environ is None else environ
    overrides = {
        key[len(ENV_PREFIX):].lower(): value
        for key, value in environ.items()
        if key.startswith(ENV_PREFIX) and key[len(ENV_PREFIX):].lower() in _KEYS
    }
    apply(settings, overrides)

    return settings.validate()


def roll_chance(chance: int, rng: Optional[random.Random] = None) -> bool:
    """Return ``True`` with a probability of *chance* percent."""
    if chance >= CHANCE_MAX:
        return True
    if chance <= 0:
        return False
    rng = rng or random
    return chance > rng.randrange(CHANCE_MAX)


def simulate_delay(
    settings: Settings,
    rng: Optional[random.Random] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> float:
    """Sleep like a human typing and return the delay in seconds."""
    rng = rng or random
    delay = (rng.randrange(max(settings.max_delay, 1)) + settings.min_delay) / 1000.0
    sleep(delay)
    return delay
