"""
Pytest configuration and shared fixtures.

Provides reusable test fixtures for all test modules.
"""

from collections.abc import Callable

import pytest

from arbsim.config.settings import RiskSettings
from arbsim.config.store import InMemorySettingsStore
from arbsim.market.history import PriceHistory
from arbsim.market.quotes import QuoteBook
from arbsim.strategy.scanner import OpportunityScanner
from tests.mocks import NOW_MS, FrozenClock, ScriptedRandom, make_quote


# =============================================================================
# Settings Fixtures
# =============================================================================


@pytest.fixture
def risk_settings() -> RiskSettings:
    """Default risk settings (0.15% minimum spread, 0.1% fee per leg)."""
    return RiskSettings()


@pytest.fixture
def settings_store() -> InMemorySettingsStore:
    """Settings store with default risk settings."""
    return InMemorySettingsStore()


# =============================================================================
# Clock and Randomness Fixtures
# =============================================================================


@pytest.fixture
def clock() -> FrozenClock:
    """Wall clock frozen at 2024-01-02 14:00 UTC."""
    return FrozenClock()


@pytest.fixture
def rng() -> ScriptedRandom:
    """Random source returning 0.5 unless scripted otherwise."""
    return ScriptedRandom()


# =============================================================================
# Market Fixtures
# =============================================================================


@pytest.fixture
def quote_book() -> QuoteBook:
    """Empty quote book whose clock is frozen at NOW_MS."""
    return QuoteBook(clock_ms=lambda: NOW_MS)


@pytest.fixture
def spread_book(quote_book: QuoteBook) -> QuoteBook:
    """
    Quote book with a 0.60% BTCUSDT spread from Binance to Bybit.

    Binance ask 100.00, Bybit bid 100.60, OKX in between.
    """
    quote_book.update(make_quote("Binance", 99.90, 100.00))
    quote_book.update(make_quote("Bybit", 100.60, 100.70))
    quote_book.update(make_quote("OKX", 100.10, 100.20))
    return quote_book


# =============================================================================
# Scanner Fixtures
# =============================================================================


@pytest.fixture
def make_scanner() -> Callable[..., OpportunityScanner]:
    """Factory for scanners with fixed 0.05% slippage and a frozen clock."""

    def _make(
        market: QuoteBook,
        venues: tuple[str, ...] = ("Binance", "Bybit", "OKX"),
        symbols: tuple[str, ...] = ("BTCUSDT",),
        **kwargs: object,
    ) -> OpportunityScanner:
        kwargs.setdefault("slippage_range_pct", (0.05, 0.05))
        kwargs.setdefault("clock_ms", lambda: NOW_MS)
        kwargs.setdefault("history", PriceHistory())
        return OpportunityScanner(market, symbols, venues, **kwargs)  # type: ignore[arg-type]

    return _make
