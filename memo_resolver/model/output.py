"""
Output decision policy - normalises raw scores, picks the arg-max category,
gates it on a confidence threshold and draws one of its responses.
"""

import random
from typing import Optional, Sequence

import numpy as np

from .types import Category, Resolution

DEFAULT_THRESHOLD = 0.7


def normalize(raw_output: Sequence[float]) -> np.ndarray:
    """Divide each score by the total so the result sums to 1.

    A zero total returns all zeros. When exp overflowed to infinity the mass
    is split evenly over the infinite entries, which is the limit of the
    ratio as those scores grow. NaN scores count as zero.
    """
    raw = np.asarray(raw_output, dtype=np.float64)
    if raw.size == 0:
        return raw
    raw = np.nan_to_num(raw, nan=0.0, posinf=np.inf, neginf=0.0)

    infinite = np.isposinf(raw)
    if infinite.any():
        return infinite.astype(np.float64) / infinite.sum()

    total = raw.sum()
    if total == 0:
        return np.zeros_like(raw)
    return raw / total


class OutputResolver:
    """Turns a raw output vector into an accepted category or a rejection."""

    def __init__(self, categories: Sequence[Category], threshold: float = DEFAULT_THRESHOLD,
                 rng: Optional[random.Random] = None):
        self.categories = tuple(categories)
        self.threshold = threshold
        self._rng = rng or random.Random()

    def resolve(self, raw_output: Sequence[float]) -> Resolution:
        probabilities = normalize(raw_output)
        if probabilities.size == 0:
            return Resolution(category=None, confidence=0.0, probabilities=[])

        # np.argmax returns the first occurrence on ties
        best = int(np.argmax(probabilities))
        confidence = float(probabilities[best])
        listed = probabilities.tolist()

        if confidence > self.threshold and best < len(self.categories):
            category = self.categories[best]
            return Resolution(
                category=category.tag,
                confidence=confidence,
                probabilities=listed,
                response=self._rng.choice(category.responses),
            )

        return Resolution(category=None, confidence=confidence, probabilities=listed)

    def predicted_tag(self, resolution: Resolution) -> Optional[str]:
        """Tag of the arg-max category whether or not it was accepted."""
        if not resolution.probabilities:
            return None
        best = int(np.argmax(resolution.probabilities))
        return self.categories[best].tag if best < len(self.categories) else None


def resolve(raw_output: Sequence[float], categories: Sequence[Category],
            threshold: float = DEFAULT_THRESHOLD) -> Resolution:
    return OutputResolver(categories, threshold).resolve(raw_output)
