"""
Venue quote cache with a freshness window.

Maintains the latest bid/ask per (venue, symbol) and serves it as the
market snapshot the scanner reads. Quotes older than the freshness window
are reported as missing rather than served stale.
"""

import logging
from collections.abc import Callable, Iterable

from arbsim.config.constants import QUOTE_FRESHNESS_MS
from arbsim.core.types import QuoteCallback, VenueQuote
from arbsim.utils.time import get_timestamp_ms


logger = logging.getLogger(__name__)


class QuoteBook:
    """
    Quote cache with O(1) lookup by venue and symbol.

    Satisfies the MarketDataSource protocol, so it can be handed to the
    scanner directly or wrapped by a feed that populates it.
    """

    __slots__ = ("_cache", "_subscribers", "_freshness_ms", "_clock_ms", "_update_count")

    def __init__(
        self,
        freshness_ms: int = QUOTE_FRESHNESS_MS,
        clock_ms: Callable[[], int] = get_timestamp_ms,
    ) -> None:
        """
        Initialize empty quote cache.

        Args:
            freshness_ms: Maximum quote age served by get_quote().
            clock_ms: Millisecond clock used to age quotes.
        """
        self._cache: dict[tuple[str, str], VenueQuote] = {}
        self._subscribers: list[tuple[frozenset[str], frozenset[str], QuoteCallback]] = []
        self._freshness_ms = freshness_ms
        self._clock_ms = clock_ms
        self._update_count = 0

    def update(self, quote: VenueQuote) -> None:
        """
        Store a quote and notify matching subscribers.

        Args:
            quote: Fresh quote for one venue and symbol.
        """
        if quote.bid <= 0 or quote.ask <= 0 or quote.bid > quote.ask:
            logger.debug(f"Ignoring crossed or empty quote: {quote.venue} {quote.symbol}")
            return

        self._cache[(quote.venue, quote.symbol)] = quote
        self._update_count += 1

        for symbols, venues, callback in list(self._subscribers):
            if quote.symbol in symbols and quote.venue in venues:
                try:
                    callback(quote)
                except Exception as e:
                    logger.error(f"Quote subscriber error for {quote.symbol}@{quote.venue}: {e}")

    def get_quote(self, symbol: str, venue: str) -> VenueQuote | None:
        """
        Get the latest quote if it is still fresh.

        Args:
            symbol: Trading symbol.
            venue: Venue name.

        Returns:
            Quote, or None if missing or older than the freshness window.
        """
        quote = self._cache.get((venue, symbol))
        if quote is None:
            return None
        if self._clock_ms() - quote.observed_at_ms > self._freshness_ms:
            return None
        return quote

    def get_fresh_quotes(self, symbol: str, venues: Iterable[str]) -> list[VenueQuote]:
        """Fresh quotes for a symbol across venues, skipping stale ones."""
        quotes = []
        for venue in venues:
            quote = self.get_quote(symbol, venue)
            if quote is not None:
                quotes.append(quote)
        return quotes

    def subscribe(
        self,
        symbols: Iterable[str],
        venues: Iterable[str],
        on_update: QuoteCallback,
    ) -> Callable[[], None]:
        """
        Register a callback for quote updates.

        Returns:
            Callable that removes the subscription.
        """
        entry = (frozenset(symbols), frozenset(venues), on_update)
        self._subscribers.append(entry)

        def unsubscribe() -> None:
            if entry in self._subscribers:
                self._subscribers.remove(entry)

        return unsubscribe

    def clear(self) -> None:
        """Clear all cached data."""
        self._cache.clear()
        self._update_count = 0

    @property
    def update_count(self) -> int:
        """Get total number of updates processed."""
        return self._update_count

    @property
    def freshness_ms(self) -> int:
        return self._freshness_ms

    def __len__(self) -> int:
        return len(self._cache)
