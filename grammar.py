"""spaCy backed dependency parsing and sentence splitting.

The ranker in :mod:`words` only needs ``parse(text)`` returning token and
relation pairs.  :class:`SpacyParser` provides that on top of a spaCy
pipeline, loaded lazily and cached per model name so several brains share
one pipeline.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Tuple

import spacy

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "en_core_web_sm"

# Singleton pipeline cache keyed by model name
_nlp_cache: Dict[str, Any] = {}


def load_nlp(model: str = DEFAULT_MODEL):
    """Load the spaCy pipeline *model* (cached)."""
    if model not in _nlp_cache:
        _nlp_cache[model] = spacy.load(model, disable=["ner"])
        logger.info(f"Loaded spaCy model {model}")
    return _nlp_cache[model]


class SpacyParser:
    """Callable turning text into ``(token, relation)`` pairs."""

    def __init__(self, model: str = DEFAULT_MODEL, nlp: Optional[Any] = None):
        self.model = model
        self._nlp = nlp

    @property
    def nlp(self):
        if self._nlp is None:
            self._nlp = load_nlp(self.model)
        return self._nlp

    def __call__(self, text: str) -> List[Tuple[str, str]]:
        doc = self.nlp(text)
        # relation tags are lowercased so spaCy's ROOT matches "root"
        return [
            (token.text, token.dep_.lower())
            for token in doc
            if not (token.is_punct or token.is_space)
        ]

    def sentences(self, text: str) -> List[str]:
        """Split continuous *text* into sentences."""
        doc = self.nlp(text)
        return [s.text.strip() for s in doc.sents if s.text.strip()]
