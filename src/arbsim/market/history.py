"""
Rolling mid-price history per symbol.

Feeds the trend, breakout, momentum and volatility rules with the
observation window they need.
"""

from collections import deque

from arbsim.config.constants import PRICE_HISTORY_SIZE


class PriceHistory:
    """Bounded, oldest-first price series per symbol."""

    def __init__(self, max_points: int = PRICE_HISTORY_SIZE) -> None:
        self._max_points = max_points
        self._series: dict[str, deque[float]] = {}

    def record(self, symbol: str, price: float) -> None:
        """Append an observation, evicting the oldest beyond capacity."""
        if price <= 0:
            return
        series = self._series.get(symbol)
        if series is None:
            series = deque(maxlen=self._max_points)
            self._series[symbol] = series
        series.append(price)

    def extend(self, symbol: str, prices: list[float]) -> None:
        for price in prices:
            self.record(symbol, price)

    def get(self, symbol: str) -> list[float]:
        """Snapshot of the series, oldest first."""
        return list(self._series.get(symbol, ()))

    def __len__(self) -> int:
        return len(self._series)
