"""
Per-session pipeline metrics.

Counts what each tick did (scanned, skipped, approved, traded, failed)
and keeps rolling tick and execution latencies. Trading performance
figures come from the statistics engine, not from here.
"""

import time
from collections import deque
from collections.abc import Callable
from dataclasses import asdict, dataclass, fields
from typing import Any

from arbsim.utils.math import safe_divide


@dataclass(slots=True, frozen=True)
class LatencyStats:
    """Percentiles over one latency window, in microseconds."""

    min_us: int = 0
    max_us: int = 0
    avg_us: float = 0.0
    p50_us: int = 0
    p95_us: int = 0
    p99_us: int = 0
    count: int = 0

    @classmethod
    def from_samples(cls, samples: list[int]) -> "LatencyStats":
        if not samples:
            return cls()
        ordered = sorted(samples)
        n = len(ordered)
        return cls(
            min_us=ordered[0],
            max_us=ordered[-1],
            avg_us=sum(ordered) / n,
            p50_us=ordered[n // 2],
            p95_us=ordered[min(int(n * 0.95), n - 1)],
            p99_us=ordered[min(int(n * 0.99), n - 1)],
            count=n,
        )

    def to_dict(self) -> dict[str, float]:
        return {
            "min": self.min_us,
            "max": self.max_us,
            "avg": self.avg_us,
            "p50": self.p50_us,
            "p95": self.p95_us,
            "p99": self.p99_us,
            "count": self.count,
        }


@dataclass(slots=True, frozen=True)
class SessionCounters:
    """Typed view over the counters a session increments."""

    ticks: int = 0
    ticks_skipped: int = 0
    ticks_capped: int = 0
    tick_errors: int = 0
    opportunities_found: int = 0
    opportunities_synthesized: int = 0
    opportunities_approved: int = 0
    opportunities_rejected: int = 0
    opportunities_reviewed: int = 0
    trades: int = 0

    @property
    def approval_rate(self) -> float:
        decided = self.opportunities_approved + self.opportunities_rejected
        return safe_divide(self.opportunities_approved, decided) * 100

    @property
    def error_rate(self) -> float:
        return safe_divide(self.tick_errors, self.ticks) * 100


_COUNTER_NAMES = frozenset(f.name for f in fields(SessionCounters))


class MetricsCollector:
    """
    Counters and rolling latency windows for one session.

    Counter names are free-form; the ones in SessionCounters get a typed
    view, others (per-status trade counts) only appear in to_dict().
    """

    def __init__(
        self,
        latency_window_size: int = 1000,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Initialize metrics collector.

        Args:
            latency_window_size: Samples kept per latency window.
            clock: Monotonic seconds, for uptime and per-minute rates.
        """
        self._window_size = latency_window_size
        self._clock = clock
        self._latencies: dict[str, deque[int]] = {}
        self._counters: dict[str, int] = {}
        self._started = clock()

    def record_latency(self, name: str, latency_us: int) -> None:
        """Add a sample to the `name` window ("tick" or "execution")."""
        window = self._latencies.get(name)
        if window is None:
            window = self._latencies[name] = deque(maxlen=self._window_size)
        window.append(latency_us)

    def increment_counter(self, name: str, value: int = 1) -> None:
        self._counters[name] = self._counters.get(name, 0) + value

    def get_counter(self, name: str) -> int:
        return self._counters.get(name, 0)

    def get_latency_stats(self, name: str) -> LatencyStats:
        return LatencyStats.from_samples(list(self._latencies.get(name, ())))

    def counters(self) -> SessionCounters:
        """Typed snapshot of the session counters."""
        return SessionCounters(
            **{name: v for name, v in self._counters.items() if name in _COUNTER_NAMES}
        )

    @property
    def uptime_seconds(self) -> float:
        return self._clock() - self._started

    def per_minute(self, name: str) -> float:
        """Average per-minute rate of a counter since start or reset."""
        return safe_divide(self.get_counter(name), self.uptime_seconds / 60)

    def to_dict(self) -> dict[str, Any]:
        """
        Export for the session status snapshot.

        Returns:
            Uptime, raw counters, typed counters with derived rates,
            per-minute tick and trade rates and latency percentiles.
        """
        counters = self.counters()
        return {
            "uptime_seconds": self.uptime_seconds,
            "counters": dict(self._counters),
            "session": {
                **asdict(counters),
                "approval_rate": counters.approval_rate,
                "error_rate": counters.error_rate,
            },
            "rates": {
                "ticks_per_min": self.per_minute("ticks"),
                "trades_per_min": self.per_minute("trades"),
            },
            "latencies": {
                name: self.get_latency_stats(name).to_dict() for name in self._latencies
            },
        }

    def reset(self) -> None:
        self._latencies.clear()
        self._counters.clear()
        self._started = self._clock()
