"""
Market context for rule validation.

Bundles what the rule battery needs beyond the opportunity itself: recent
prices, liquidity, spread, the current time and the portfolio view.
"""

import random
from dataclasses import dataclass, field
from datetime import datetime

from arbsim.config.constants import REWARD_MULTIPLE_RANGE
from arbsim.config.settings import RiskSettings
from arbsim.core.types import Opportunity, PortfolioView, RandomSource
from arbsim.market.history import PriceHistory


@dataclass(slots=True, frozen=True)
class MarketContext:
    """Snapshot passed to every rule check."""

    prices: tuple[float, ...]
    volume: float
    spread: float  # fraction, 0.003 means 0.3%
    now: datetime
    portfolio: PortfolioView
    settings: RiskSettings = field(default_factory=RiskSettings)

    @property
    def last_price(self) -> float:
        return self.prices[-1] if self.prices else 0.0


class ContextBuilder:
    """Builds a MarketContext from the scanner's price history."""

    def __init__(self, history: PriceHistory) -> None:
        self._history = history

    def build(
        self,
        opportunity: Opportunity,
        portfolio: PortfolioView,
        settings: RiskSettings,
        now: datetime,
    ) -> MarketContext:
        """
        Assemble the context for one opportunity.

        Args:
            opportunity: Candidate being validated.
            portfolio: Ledger-derived portfolio facts.
            settings: Current risk settings.
            now: Session clock reading.
        """
        return MarketContext(
            prices=tuple(self._history.get(opportunity.symbol)),
            volume=opportunity.combined_volume,
            spread=opportunity.gross_spread_pct / 100,
            now=now,
            portfolio=portfolio,
            settings=settings,
        )


class RiskRewardEstimator:
    """
    Annotates opportunities with planned risk and reward.

    Risk is the stop distance from settings. Reward is that risk times a
    multiple drawn from a configured range, modelling the take-profit the
    strategy would set for the trade.
    """

    def __init__(
        self,
        rng: RandomSource | None = None,
        multiple_range: tuple[float, float] = REWARD_MULTIPLE_RANGE,
        enable_trailing_stop: bool = True,
    ) -> None:
        self._rng = rng or random.Random()
        self._multiple_range = multiple_range
        self._enable_trailing_stop = enable_trailing_stop

    def annotate(self, opportunity: Opportunity, settings: RiskSettings) -> Opportunity:
        """Set risk_pct, reward_pct and the trailing-stop flag in place."""
        risk = settings.stop_loss_pct
        opportunity.risk_pct = risk
        opportunity.reward_pct = risk * self._rng.uniform(*self._multiple_range)
        opportunity.enable_trailing_stop = self._enable_trailing_stop
        return opportunity
