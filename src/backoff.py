"""
Delay strategies used between instance refresh status polls.
"""

import random
from typing import Callable


class FixedBackoff:
    """Always wait the same interval."""

    def __init__(self, interval: float = 30.0):
        self.interval = interval

    def delay(self, attempt: int) -> float:
        return self.interval


class ExponentialBackoff:
    """Exponential backoff with proportional jitter, capped at max_delay."""

    def __init__(
        self,
        base_delay: float = 5.0,
        factor: float = 2.0,
        max_delay: float = 300.0,
        jitter: float = 0.2,
        rng: Callable[[], float] = random.random,
    ):
        """
        Args:
            base_delay: Delay for the first retry (seconds)
            factor: Multiplier applied per attempt
            max_delay: Upper bound for any single delay (seconds)
            jitter: Fraction of the delay randomly added or removed
            rng: Source of uniform values in [0, 1)
        """
        self.base_delay = base_delay
        self.factor = factor
        self.max_delay = max_delay
        self.jitter = jitter
        self.rng = rng

    def delay(self, attempt: int) -> float:
        delay = min(self.base_delay * (self.factor**attempt), self.max_delay)
        jitter = delay * self.jitter * (2 * self.rng() - 1)
        return max(0.0, min(delay + jitter, self.max_delay))


def build_backoff(name: str, interval: float, max_interval: float = 300.0):
    """Return the backoff strategy called `name`."""
    if name == "fixed":
        return FixedBackoff(interval)
    if name == "exponential":
        return ExponentialBackoff(base_delay=interval, max_delay=max_interval)
    raise ValueError(f"Unknown backoff strategy: {name}")
