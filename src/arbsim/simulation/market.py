"""
Simulated multi-venue market data source.

Generates bid/ask quotes for every symbol on every venue by jittering a
slowly drifting reference price with independent per-venue noise, so
cross-venue spreads open and close on their own.
"""

import asyncio
import logging
import random
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field

from arbsim.config.constants import (
    BOOK_HALF_SPREAD_PCT,
    DEFAULT_VENUES,
    MARKET_UPDATE_INTERVAL_MS,
    QUOTE_FRESHNESS_MS,
    REFERENCE_PRICES,
    REFERENCE_VOLATILITY,
    VENUE_JITTER_PCT,
    VENUE_VOLUME_RANGE,
)
from arbsim.config.settings import AppSettings
from arbsim.core.types import QuoteCallback, VenueQuote
from arbsim.market.quotes import QuoteBook
from arbsim.utils.time import get_timestamp_ms


logger = logging.getLogger(__name__)


@dataclass
class SimulatedSymbol:
    """Configuration for a simulated trading pair."""

    symbol: str
    reference_price: float
    volatility: float = REFERENCE_VOLATILITY
    current_price: float = field(init=False)

    def __post_init__(self) -> None:
        self.current_price = self.reference_price


class SimulatedMarket:
    """
    Simulates per-venue quotes for demo and paper sessions.

    Features:
    - Gaussian random walk of a shared reference price per symbol
    - Independent uniform jitter per venue (the source of spreads)
    - Per-venue bid/ask book spread and 24h volume
    - Read-only for consumers; safe to share between sessions
    """

    def __init__(
        self,
        symbols: Sequence[SimulatedSymbol] | None = None,
        venues: Sequence[str] = DEFAULT_VENUES,
        update_interval_ms: int = MARKET_UPDATE_INTERVAL_MS,
        venue_jitter_pct: float = VENUE_JITTER_PCT,
        half_spread_pct: float = BOOK_HALF_SPREAD_PCT,
        volume_range: tuple[float, float] = VENUE_VOLUME_RANGE,
        freshness_ms: int = QUOTE_FRESHNESS_MS,
        rng: random.Random | None = None,
    ) -> None:
        """
        Initialize market simulator.

        Args:
            symbols: Symbols to simulate (default: reference catalog).
            venues: Venues to quote on.
            update_interval_ms: Milliseconds between refreshes in run().
            venue_jitter_pct: Max absolute per-venue deviation from reference.
            half_spread_pct: Half of each venue's bid-ask spread.
            volume_range: Min/max simulated 24h notional volume.
            freshness_ms: Quote freshness window of the backing cache.
            rng: Random generator (seed it for reproducible runs).
        """
        if symbols is None:
            symbols = [SimulatedSymbol(s, p) for s, p in REFERENCE_PRICES.items()]
        self._symbols = {s.symbol: s for s in symbols}
        self._venues = tuple(venues)
        self._update_interval_ms = update_interval_ms
        self._jitter_pct = venue_jitter_pct
        self._half_spread_pct = half_spread_pct
        self._volume_range = volume_range
        self._rng = rng or random.Random()
        self._book = QuoteBook(freshness_ms=freshness_ms)

        self._running = False
        self._task: asyncio.Task[None] | None = None
        self._tick_count = 0

    @classmethod
    def from_settings(
        cls,
        settings: AppSettings,
        rng: random.Random | None = None,
    ) -> "SimulatedMarket":
        """Build a market for the configured symbols and venues."""
        symbols = [SimulatedSymbol(s, REFERENCE_PRICES.get(s, 100.0)) for s in settings.symbols]
        return cls(
            symbols=symbols,
            venues=settings.venues,
            update_interval_ms=settings.market_update_interval_ms,
            venue_jitter_pct=settings.venue_jitter_pct,
            freshness_ms=settings.quote_freshness_ms,
            rng=rng,
        )

    # =========================================================================
    # MarketDataSource protocol
    # =========================================================================

    def get_quote(self, symbol: str, venue: str) -> VenueQuote | None:
        """Get the latest fresh quote for a symbol on a venue."""
        return self._book.get_quote(symbol, venue)

    def subscribe(
        self,
        symbols: Iterable[str],
        venues: Iterable[str],
        on_update: QuoteCallback,
    ) -> Callable[[], None]:
        """Register for quote updates; returns an unsubscribe callable."""
        return self._book.subscribe(symbols, venues, on_update)

    # =========================================================================
    # Simulation
    # =========================================================================

    def _step_reference(self, symbol: SimulatedSymbol) -> None:
        """Advance the reference price one random-walk step."""
        shock = self._rng.gauss(0, symbol.volatility)
        symbol.current_price = max(symbol.current_price * (1 + shock), 1e-9)

    def _create_quote(self, symbol: SimulatedSymbol, venue: str, now_ms: int) -> VenueQuote:
        """Create one venue's quote around the reference price."""
        jitter = self._rng.uniform(-self._jitter_pct, self._jitter_pct) / 100
        mid = symbol.current_price * (1 + jitter)
        half_spread = mid * self._half_spread_pct / 100 * self._rng.uniform(0.8, 1.2)

        return VenueQuote(
            venue=venue,
            symbol=symbol.symbol,
            bid=mid - half_spread,
            ask=mid + half_spread,
            volume=self._rng.uniform(*self._volume_range),
            observed_at_ms=now_ms,
        )

    def refresh(self) -> int:
        """
        Generate one round of quotes for every symbol and venue.

        Returns:
            Number of quotes published.
        """
        self._tick_count += 1
        now_ms = get_timestamp_ms()
        published = 0

        for symbol in self._symbols.values():
            self._step_reference(symbol)
            for venue in self._venues:
                self._book.update(self._create_quote(symbol, venue, now_ms))
                published += 1

        return published

    async def run(self) -> None:
        """Run the simulation loop until stopped."""
        self._running = True
        logger.info(
            f"Market simulator started: {len(self._symbols)} symbols x "
            f"{len(self._venues)} venues every {self._update_interval_ms}ms"
        )

        while self._running:
            self.refresh()
            await asyncio.sleep(self._update_interval_ms / 1000)

    def start(self) -> asyncio.Task[None]:
        """Start simulation as a background task."""
        if self._task is None or self._task.done():
            self.refresh()
            self._task = asyncio.create_task(self.run())
        return self._task

    def stop(self) -> None:
        """Stop the simulation."""
        self._running = False
        if self._task:
            self._task.cancel()
            self._task = None
        logger.info(f"Market simulator stopped after {self._tick_count} refreshes")

    def set_reference_price(self, symbol: str, price: float) -> None:
        """Pin a symbol's reference price."""
        if symbol in self._symbols:
            self._symbols[symbol].current_price = price

    @property
    def symbols(self) -> tuple[str, ...]:
        return tuple(self._symbols)

    @property
    def venues(self) -> tuple[str, ...]:
        return self._venues

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def stats(self) -> dict[str, int]:
        """Get simulation statistics."""
        return {
            "ticks": self._tick_count,
            "symbols": len(self._symbols),
            "venues": len(self._venues),
            "quotes": self._book.update_count,
        }
