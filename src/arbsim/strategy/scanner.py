"""
Cross-venue opportunity scanning and management.

Scans every symbol across every ordered venue pair, keeps the widest
spread per symbol, deducts slippage and two-sided fees, and maintains a
capped, TTL-bounded list of candidates for the session to act on.
"""

import logging
import random
import uuid
from collections import deque
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from arbsim.config.constants import (
    CONFIDENCE_SPREAD_SCALE_PCT,
    CONFIDENCE_VOLUME_SCALE,
    LOW_RISK_SPREAD_PCT,
    MEDIUM_RISK_SPREAD_PCT,
    OPPORTUNITY_CAPACITY,
    OPPORTUNITY_GRACE_MS,
    OPPORTUNITY_TTL_MS,
    SCANNER_FLOOR_PCT,
    SLIPPAGE_RANGE_PCT,
)
from arbsim.config.settings import RiskSettings
from arbsim.core.types import (
    MarketDataSource,
    Opportunity,
    OpportunityStatus,
    RandomSource,
    RiskLevel,
    VenueQuote,
)
from arbsim.execution.sizing import PositionSizer
from arbsim.market.history import PriceHistory
from arbsim.utils.math import EPSILON, mean
from arbsim.utils.time import get_timestamp_ms


logger = logging.getLogger(__name__)


@dataclass
class ScannerStats:
    """Statistics for opportunity scanning."""

    total_scans: int = 0
    symbols_skipped: int = 0
    opportunities_found: int = 0
    opportunities_expired: int = 0
    best_net_spread_pct: float = 0.0

    def record_opportunity(self, net_spread_pct: float) -> None:
        self.opportunities_found += 1
        if net_spread_pct > self.best_net_spread_pct:
            self.best_net_spread_pct = net_spread_pct


@dataclass(slots=True, frozen=True)
class SpreadPair:
    """Best venue pair for one symbol."""

    buy: VenueQuote
    sell: VenueQuote
    gross_spread_pct: float

    @property
    def combined_volume(self) -> float:
        return self.buy.volume + self.sell.volume


def find_best_pair(quotes: Sequence[VenueQuote]) -> SpreadPair | None:
    """
    Pick the ordered venue pair with the widest gross spread.

    For every ordered pair (i, j) with i != j the spread is
    (bid_j - ask_i) / ask_i x 100. Ties on spread go to the pair with the
    higher combined quote volume.

    Args:
        quotes: Fresh quotes for one symbol, at most one per venue.

    Returns:
        The best pair, or None with fewer than two venues.
    """
    best: SpreadPair | None = None

    for buy in quotes:
        for sell in quotes:
            if buy.venue == sell.venue or buy.ask <= 0:
                continue

            gross = (sell.bid - buy.ask) / buy.ask * 100
            candidate = SpreadPair(buy, sell, gross)

            if best is None or gross > best.gross_spread_pct + EPSILON:
                best = candidate
            elif (
                abs(gross - best.gross_spread_pct) <= EPSILON
                and candidate.combined_volume > best.combined_volume
            ):
                best = candidate

    return best


def classify_risk(net_spread_pct: float) -> RiskLevel:
    """Wider spreads leave more room for adverse movement."""
    if net_spread_pct >= LOW_RISK_SPREAD_PCT:
        return RiskLevel.LOW
    if net_spread_pct >= MEDIUM_RISK_SPREAD_PCT:
        return RiskLevel.MEDIUM
    return RiskLevel.HIGH


def score_confidence(net_spread_pct: float, combined_volume: float) -> float:
    """Confidence 0-100, half from spread size and half from liquidity."""
    spread_part = min(max(net_spread_pct, 0.0) / CONFIDENCE_SPREAD_SCALE_PCT, 1.0) * 50
    volume_part = min(combined_volume / CONFIDENCE_VOLUME_SCALE, 1.0) * 50
    return round(spread_part + volume_part, 1)


class OpportunityScanner:
    """
    Detects cross-venue spread opportunities.

    Features:
    - Ordered venue-pair scan with volume tie-break
    - Slippage drawn from a configured range, capped by settings
    - Scanner-local floor, looser than the downstream minimum spread
    - Capped opportunity list with TTL expiry and a visibility grace period
    """

    def __init__(
        self,
        market: MarketDataSource,
        symbols: Sequence[str],
        venues: Sequence[str],
        sizer: PositionSizer | None = None,
        rng: RandomSource | None = None,
        slippage_range_pct: tuple[float, float] = SLIPPAGE_RANGE_PCT,
        floor_pct: float = SCANNER_FLOOR_PCT,
        ttl_ms: int = OPPORTUNITY_TTL_MS,
        grace_ms: int = OPPORTUNITY_GRACE_MS,
        capacity: int = OPPORTUNITY_CAPACITY,
        history: PriceHistory | None = None,
        clock_ms: Callable[[], int] = get_timestamp_ms,
    ) -> None:
        """
        Initialize scanner.

        Args:
            market: Market data source to read quotes from.
            symbols: Symbol catalog.
            venues: Venue list (at least two).
            sizer: Position sizing policy.
            rng: Random source for slippage sampling.
            slippage_range_pct: Min/max slippage deducted from the spread.
            floor_pct: Minimum net spread for an opportunity to be emitted.
            ttl_ms: Age after which an opportunity is no longer executable.
            grace_ms: Extra time an expired opportunity stays visible.
            capacity: Maximum opportunities retained.
            history: Price history fed with the mean mid of each scan.
            clock_ms: Millisecond clock.
        """
        if len(set(venues)) < 2:
            raise ValueError("Scanner needs at least two distinct venues")

        self._market = market
        self._symbols = tuple(symbols)
        self._venues = tuple(venues)
        self._sizer = sizer or PositionSizer()
        self._rng = rng or random.Random()
        self._slippage_range = slippage_range_pct
        self._floor_pct = floor_pct
        self._ttl_ms = ttl_ms
        self._grace_ms = grace_ms
        self._history = history
        self._clock_ms = clock_ms

        self._opportunities: deque[Opportunity] = deque(maxlen=capacity)
        self._stats = ScannerStats()

    def _sample_slippage(self, settings: RiskSettings) -> float:
        low, high = self._slippage_range
        return min(self._rng.uniform(low, high), settings.slippage_limit_pct)

    def build_opportunity(
        self,
        symbol: str,
        pair: SpreadPair,
        slippage_pct: float,
        settings: RiskSettings,
        now_ms: int,
    ) -> Opportunity:
        """
        Turn a venue pair into a sized opportunity.

        Args:
            symbol: Trading symbol.
            pair: Best venue pair.
            slippage_pct: Slippage to deduct.
            settings: Current risk settings (fees, exposure cap).
            now_ms: Detection time.

        Returns:
            A new opportunity in detected status.
        """
        net = pair.gross_spread_pct - slippage_pct - settings.round_trip_fees_pct
        sizing = self._sizer.size(
            symbol,
            pair.buy.ask,
            settings.max_exposure,
            min(pair.buy.volume, pair.sell.volume),
        )

        return Opportunity(
            id=str(uuid.uuid4()),
            symbol=symbol,
            buy_venue=pair.buy.venue,
            sell_venue=pair.sell.venue,
            buy_price=pair.buy.ask,
            sell_price=pair.sell.bid,
            gross_spread_pct=pair.gross_spread_pct,
            net_spread_pct=net,
            slippage_pct=slippage_pct,
            quantity=sizing.quantity,
            notional_size=sizing.notional,
            estimated_profit=sizing.notional * net / 100,
            risk_level=classify_risk(net),
            confidence=score_confidence(net, pair.combined_volume),
            created_at_ms=now_ms,
            combined_volume=pair.combined_volume,
        )

    def scan(self, settings: RiskSettings) -> list[Opportunity]:
        """
        Scan all symbols once.

        Symbols with fewer than two fresh quotes are skipped for this scan.

        Args:
            settings: Current risk settings.

        Returns:
            Newly detected opportunities, best net spread first.
        """
        self._stats.total_scans += 1
        now_ms = self._clock_ms()
        found: list[Opportunity] = []

        for symbol in self._symbols:
            quotes = [
                quote
                for venue in self._venues
                if (quote := self._market.get_quote(symbol, venue)) is not None
            ]

            if self._history is not None and quotes:
                self._history.record(symbol, mean([q.mid for q in quotes]))

            if len(quotes) < 2:
                self._stats.symbols_skipped += 1
                continue

            pair = find_best_pair(quotes)
            if pair is None:
                continue

            opportunity = self.build_opportunity(
                symbol, pair, self._sample_slippage(settings), settings, now_ms
            )
            if opportunity.net_spread_pct <= self._floor_pct or opportunity.quantity <= 0:
                continue

            self.add(opportunity)
            found.append(opportunity)
            logger.debug(
                f"Opportunity {symbol}: buy {pair.buy.venue}@{pair.buy.ask:.6g} "
                f"sell {pair.sell.venue}@{pair.sell.bid:.6g} net={opportunity.net_spread_pct:.4f}%"
            )

        found.sort(key=lambda o: o.net_spread_pct, reverse=True)
        return found

    def add(self, opportunity: Opportunity) -> None:
        """Track an opportunity, evicting the oldest beyond capacity."""
        self._opportunities.append(opportunity)
        self._stats.record_opportunity(opportunity.net_spread_pct)

    def expire(self, now_ms: int | None = None) -> int:
        """
        Expire stale opportunities.

        Detected opportunities older than the TTL become expired. Terminal
        opportunities older than TTL plus grace are dropped entirely.

        Returns:
            Number of opportunities newly marked expired.
        """
        now_ms = self._clock_ms() if now_ms is None else now_ms
        expired = 0

        for opportunity in self._opportunities:
            if (
                opportunity.status == OpportunityStatus.DETECTED
                and opportunity.age_ms(now_ms) > self._ttl_ms
            ):
                opportunity.advance(OpportunityStatus.EXPIRED)
                expired += 1

        horizon = self._ttl_ms + self._grace_ms
        kept = [
            o for o in self._opportunities if not (o.is_terminal and o.age_ms(now_ms) > horizon)
        ]
        if len(kept) != len(self._opportunities):
            self._opportunities = deque(kept, maxlen=self._opportunities.maxlen)

        self._stats.opportunities_expired += expired
        return expired

    def executable(self, now_ms: int | None = None) -> list[Opportunity]:
        """Detected opportunities within the TTL, best estimated profit first."""
        now_ms = self._clock_ms() if now_ms is None else now_ms
        candidates = [
            o
            for o in self._opportunities
            if o.status == OpportunityStatus.DETECTED and o.age_ms(now_ms) <= self._ttl_ms
        ]
        candidates.sort(key=lambda o: o.estimated_profit, reverse=True)
        return candidates

    def recent(self, limit: int = 20) -> list[Opportunity]:
        """Most recent opportunities, newest first."""
        return list(reversed(self._opportunities))[:limit]

    def now_ms(self) -> int:
        """Current reading of the scanner's clock."""
        return self._clock_ms()

    @property
    def stats(self) -> ScannerStats:
        return self._stats

    @property
    def symbols(self) -> tuple[str, ...]:
        return self._symbols

    @property
    def venues(self) -> tuple[str, ...]:
        return self._venues

    def __len__(self) -> int:
        return len(self._opportunities)
