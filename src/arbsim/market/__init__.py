"""Market data module: quote cache and price history."""

from arbsim.market.history import PriceHistory
from arbsim.market.quotes import QuoteBook


__all__ = [
    "PriceHistory",
    "QuoteBook",
]
