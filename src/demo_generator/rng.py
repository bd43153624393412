"""Seeded random number generation.

Every job owns one ``SeededRNG``. Named child streams are derived from the
seed itself (not from the parent's position), so any (phase, month) slice of
a job can be regenerated on its own when a chunked run resumes.

Stream layout used by the generators:

* ``provision``: team members and pipeline owner assignment
* ``companies:YYYY-MM``, ``contacts:YYYY-MM``, ``deals:YYYY-MM``,
  ``activities:YYYY-MM``: one stream per phase and month
* ``patch:YYYY-MM:<phase>``: records added by a patch job
"""
from __future__ import annotations

import math
import random
import secrets
from typing import Sequence, TypeVar

T = TypeVar("T")


def generate_seed() -> str:
    """Return a fresh 32 hex character seed."""
    return secrets.token_hex(16)


class SeededRNG:
    def __init__(self, seed: str | int):
        self.seed = str(seed)
        # str seeds are hashed with sha512 by ``random``: stable across processes.
        self._random = random.Random(self.seed)

    def __repr__(self):
        return f"SeededRNG({self.seed!r})"

    def child(self, name: str) -> "SeededRNG":
        return SeededRNG(f"{self.seed}:{name}")

    def next(self) -> float:
        """Uniform float in [0, 1)."""
        return self._random.random()

    def int(self, low: int, high: int) -> int:
        """Uniform integer in [low, high], both inclusive."""
        return self._random.randint(low, high)

    def float(self, low: float, high: float) -> float:
        return self._random.uniform(low, high)

    def bool(self, probability: float = 0.5) -> bool:
        return self._random.random() < probability

    def pick(self, items: Sequence[T]) -> T:
        if not items:
            raise ValueError("Cannot pick from an empty sequence")
        return items[self._random.randrange(len(items))]

    def pick_weighted(self, items: Sequence[T], weights: Sequence[float]) -> T:
        if not items:
            raise ValueError("Cannot pick from an empty sequence")
        return self._random.choices(items, weights=weights, k=1)[0]

    def shuffle(self, items: list[T]) -> list[T]:
        """Return a shuffled copy."""
        result = list(items)
        self._random.shuffle(result)
        return result

    def lognormal(self, mu: float = 0.0, sigma: float = 1.0) -> float:
        return self._random.lognormvariate(mu, sigma)

    def pareto(self, minimum: float, alpha: float) -> float:
        return minimum * self._random.paretovariate(alpha)

    def lognormal_around(self, mean: float, sigma: float = 0.6) -> float:
        """Log-normal sample whose expected value is ``mean``."""
        mu = math.log(mean) - sigma * sigma / 2
        return self._random.lognormvariate(mu, sigma)

    def hex(self, length: int = 8) -> str:
        return "".join(self._random.choice("0123456789abcdef") for _ in range(length))
