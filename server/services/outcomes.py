"""Outcome sources for the integration test simulators.

Every random number and every artificial delay a simulator needs is drawn
from an OutcomeSource. Production uses RandomOutcomes; tests substitute
FixedOutcomes to get deterministic results without sleeping.
"""

import asyncio
import random
from typing import Optional


class OutcomeSource:
    """Interface for simulator randomness."""

    async def delay(self, seconds: float) -> None:
        """Wait as if a remote call were in flight."""
        raise NotImplementedError

    def chance(self, probability: float) -> bool:
        """Return True with the given probability."""
        raise NotImplementedError

    def randint(self, low: int, high: int) -> int:
        """Integer in [low, high], both inclusive."""
        raise NotImplementedError

    def uniform(self, low: float, high: float) -> float:
        raise NotImplementedError

    def choice(self, options):
        raise NotImplementedError


class RandomOutcomes(OutcomeSource):
    """Pseudo-random outcomes with real asyncio delays.

    Args:
        seed: Optional seed for a reproducible sequence
        delay_scale: Multiplier applied to every delay (0 disables sleeping)
    """

    def __init__(self, seed: Optional[int] = None, delay_scale: float = 1.0):
        self.rng = random.Random(seed)
        self.delay_scale = delay_scale

    async def delay(self, seconds: float) -> None:
        if seconds > 0 and self.delay_scale > 0:
            await asyncio.sleep(seconds * self.delay_scale)

    def chance(self, probability: float) -> bool:
        return self.rng.random() < probability

    def randint(self, low: int, high: int) -> int:
        return self.rng.randint(low, high)

    def uniform(self, low: float, high: float) -> float:
        return self.rng.uniform(low, high)

    def choice(self, options):
        return self.rng.choice(list(options))


class FixedOutcomes(OutcomeSource):
    """Deterministic outcomes for tests.

    Every chance() returns `succeed` unless a queue of explicit results was
    given, in which case results are consumed in order first. Numeric draws
    return the low end of the range; choice() returns the first option.
    Delays are recorded but never slept.
    """

    def __init__(self, succeed: bool = True, results: Optional[list[bool]] = None):
        self.succeed = succeed
        self.results = list(results or [])
        self.delays: list[float] = []

    async def delay(self, seconds: float) -> None:
        self.delays.append(seconds)

    def chance(self, probability: float) -> bool:
        if self.results:
            return self.results.pop(0)
        return self.succeed

    def randint(self, low: int, high: int) -> int:
        return low

    def uniform(self, low: float, high: float) -> float:
        return low

    def choice(self, options):
        return list(options)[0]
