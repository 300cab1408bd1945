"""
Bag-of-words encoder: deterministic text -> fixed-size numeric vector
over an immutable vocabulary.
"""

import re
from typing import Dict, Iterable, List, Sequence

import numpy as np

from ..core.errors import ConfigurationError

_NON_WORD = re.compile(r"[^\w\s]")
_WHITESPACE = re.compile(r"\s+")


def tokenize(text: str) -> List[str]:
    """Lowercase, drop non-word characters and split on whitespace runs."""
    if not isinstance(text, str):
        return []
    cleaned = _NON_WORD.sub("", text.lower())
    return [token for token in _WHITESPACE.split(cleaned) if token]


def encode(text: str, vocabulary: Sequence[str]) -> np.ndarray:
    """Encode text against a vocabulary without building an index first."""
    return VectorEncoder(vocabulary).encode(text)


class VectorEncoder:
    """Bag-of-words encoder bound to one vocabulary.

    Each vocabulary position is 1.0 when its token appears in the text and
    0.0 otherwise. Unknown tokens are ignored and repeated tokens do not
    accumulate.
    """

    def __init__(self, vocabulary: Iterable[str]):
        self.vocabulary = tuple(vocabulary)
        self._index: Dict[str, int] = {}
        for position, token in enumerate(self.vocabulary):
            if token in self._index:
                raise ConfigurationError(f"Duplicate vocabulary token '{token}' at position {position}")
            self._index[token] = position

    @property
    def size(self) -> int:
        return len(self.vocabulary)

    def encode(self, text: str) -> np.ndarray:
        bag = np.zeros(self.size, dtype=np.float64)
        for token in tokenize(text):
            position = self._index.get(token)
            if position is not None:
                bag[position] = 1.0
        return bag
