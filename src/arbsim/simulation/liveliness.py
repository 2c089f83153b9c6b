"""
Demo liveliness mode.

Keeps demo dashboards active by synthesizing an opportunity when a scan
finds nothing and by escalating some `review` verdicts to execution.
Kept apart from the realistic path and disabled unless configured.
"""

import logging
import random
from dataclasses import dataclass

from arbsim.config.constants import (
    LIVELINESS_FORCE_PROBABILITY,
    LIVELINESS_REVIEW_OVERRIDE_PROBABILITY,
    LIVELINESS_SPREAD_PREMIUM_PCT,
    LIVELINESS_SPREAD_RANGE_PCT,
    REFERENCE_PRICES,
    SLIPPAGE_RANGE_PCT,
    VENUE_VOLUME_RANGE,
)
from arbsim.config.settings import RiskSettings
from arbsim.core.types import MarketDataSource, Opportunity, RandomSource, VenueQuote
from arbsim.strategy.scanner import OpportunityScanner, SpreadPair
from arbsim.utils.math import mean


logger = logging.getLogger(__name__)


@dataclass
class LivelinessConfig:
    """Demo liveliness configuration."""

    enabled: bool = False
    force_probability: float = LIVELINESS_FORCE_PROBABILITY
    review_override_probability: float = LIVELINESS_REVIEW_OVERRIDE_PROBABILITY
    spread_premium_pct: float = LIVELINESS_SPREAD_PREMIUM_PCT
    spread_range_pct: float = LIVELINESS_SPREAD_RANGE_PCT


class DemoLiveliness:
    """Synthetic opportunity source and review override for demo sessions."""

    def __init__(
        self,
        scanner: OpportunityScanner,
        market: MarketDataSource,
        rng: RandomSource | None = None,
        config: LivelinessConfig | None = None,
    ) -> None:
        """
        Initialize liveliness helper.

        Args:
            scanner: Scanner that sizes and tracks synthesized opportunities.
            market: Market data used to anchor synthetic prices.
            rng: Random source for all rolls.
            config: Liveliness configuration.
        """
        self._scanner = scanner
        self._market = market
        self._rng = rng or random.Random()
        self._config = config or LivelinessConfig()
        self._synthesized = 0
        self._overrides = 0

    @property
    def enabled(self) -> bool:
        return self._config.enabled

    def _pick(self, items: tuple[str, ...]) -> str:
        index = min(int(self._rng.random() * len(items)), len(items) - 1)
        return items[index]

    def _anchor(self, symbol: str) -> tuple[float, float]:
        """Reference mid and per-venue volume for a symbol."""
        quotes = [
            quote
            for venue in self._scanner.venues
            if (quote := self._market.get_quote(symbol, venue)) is not None
        ]
        if quotes:
            return mean([q.mid for q in quotes]), min(q.volume for q in quotes)
        return REFERENCE_PRICES.get(symbol, 100.0), mean(list(VENUE_VOLUME_RANGE))

    def synthesize(self, settings: RiskSettings, now_ms: int) -> Opportunity | None:
        """
        Maybe create an opportunity when the scan found none.

        Net spread is minimum spread + premium + U(0, range); the gross
        spread is back-solved so net = gross - slippage - 2 x fee holds.

        Returns:
            Tracked synthetic opportunity, or None if disabled or the roll missed.
        """
        cfg = self._config
        if not cfg.enabled or self._rng.random() >= cfg.force_probability:
            return None

        symbol = self._pick(self._scanner.symbols)
        buy_venue = self._pick(self._scanner.venues)
        sell_venue = self._pick(tuple(v for v in self._scanner.venues if v != buy_venue))

        net = (
            settings.minimum_spread_pct
            + cfg.spread_premium_pct
            + self._rng.uniform(0.0, cfg.spread_range_pct)
        )
        slippage = min(self._rng.uniform(*SLIPPAGE_RANGE_PCT), settings.slippage_limit_pct)
        gross = net + slippage + settings.round_trip_fees_pct

        price, volume = self._anchor(symbol)
        sell_price = price * (1 + gross / 100)
        pair = SpreadPair(
            buy=VenueQuote(buy_venue, symbol, price, price, volume, now_ms),
            sell=VenueQuote(sell_venue, symbol, sell_price, sell_price, volume, now_ms),
            gross_spread_pct=gross,
        )

        opportunity = self._scanner.build_opportunity(symbol, pair, slippage, settings, now_ms)
        opportunity.synthetic = True
        self._scanner.add(opportunity)
        self._synthesized += 1

        logger.debug(f"Synthesized demo opportunity {symbol} net={net:.4f}%")
        return opportunity

    def override_review(self) -> bool:
        """Roll whether a `review` verdict is escalated to execution."""
        cfg = self._config
        if not cfg.enabled:
            return False
        if self._rng.random() < cfg.review_override_probability:
            self._overrides += 1
            return True
        return False

    @property
    def stats(self) -> dict[str, int]:
        return {"synthesized": self._synthesized, "review_overrides": self._overrides}
