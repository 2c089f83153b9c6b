"""
Deterministic random source for tests.

Replays a fixed sequence of unit draws, so every stochastic branch
(slippage, latency, fill roll, trailing-stop capture) can be forced.
"""

from collections import deque
from collections.abc import Iterable


class ScriptedRandom:
    """
    Random source driven by a queue of values in [0, 1).

    uniform(a, b) maps the next value v to a + v * (b - a), so 0.0 yields
    the lower bound and 1.0 the upper bound. Once the queue is empty the
    default value is returned.
    """

    def __init__(self, values: Iterable[float] = (), default: float = 0.5) -> None:
        self._values = deque(values)
        self._default = default
        self.draws = 0

    def push(self, *values: float) -> None:
        self._values.extend(values)

    def _next(self) -> float:
        self.draws += 1
        return self._values.popleft() if self._values else self._default

    def random(self) -> float:
        return self._next()

    def uniform(self, a: float, b: float) -> float:
        return a + self._next() * (b - a)

    def gauss(self, mu: float, sigma: float) -> float:
        return mu
