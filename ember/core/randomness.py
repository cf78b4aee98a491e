"""
Injectable randomness for the progression engines.

Every probabilistic decision (weighted draws, Bernoulli trials, quantity and
quality rolls, mission shuffles) goes through a `RandomSource`. Engines never
touch the `random` module directly, so tests can pin outcomes with a seeded
source or a scripted one.

All integer and shuffle helpers are derived from `random()` alone, which keeps
a scripted source able to drive every branch with plain floats.
"""

from __future__ import annotations

import math
import random as _random
from typing import List, MutableSequence, Optional, Sequence, TypeVar

T = TypeVar("T")


class RandomSource:
    """
    Uniform random number source backed by `random.Random`.

    Args:
        seed: Optional seed; two sources with the same seed produce the same
            sequence.
    """

    def __init__(self, seed: Optional[int] = None) -> None:
        self._rng = _random.Random(seed)

    def random(self) -> float:
        """Uniform float in [0, 1)."""
        return self._rng.random()

    def chance(self, probability: float) -> bool:
        """Bernoulli trial: True with the given probability."""
        if probability <= 0:
            return False
        return self.random() < probability

    def randint(self, minimum: int, maximum: int) -> int:
        """
        Uniform integer in [minimum, maximum], both inclusive.

        Computed as ``floor(random() * (max - min + 1)) + min``. A reversed
        range is normalised rather than rejected.
        """
        lo, hi = (minimum, maximum) if minimum <= maximum else (maximum, minimum)
        value = math.floor(self.random() * (hi - lo + 1)) + lo
        return min(value, hi)

    def choice(self, items: Sequence[T]) -> T:
        if not items:
            raise IndexError("Cannot choose from an empty sequence")
        return items[self.randint(0, len(items) - 1)]

    def shuffle(self, items: MutableSequence[T]) -> None:
        """In-place Fisher-Yates shuffle."""
        for i in range(len(items) - 1, 0, -1):
            j = self.randint(0, i)
            items[i], items[j] = items[j], items[i]

    def shuffled(self, items: Sequence[T]) -> List[T]:
        result = list(items)
        self.shuffle(result)
        return result
