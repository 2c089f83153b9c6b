"""
Type definitions for the arbitrage simulator.

This module contains the dataclasses, enums and Protocol definitions
shared by the scanner, validators, executors and the session controller.
Using slots=True for memory efficiency and faster attribute access.
"""

from collections.abc import Awaitable, Callable, Iterable, Mapping
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Protocol

from arbsim.config.constants import SPEED_FAST_MS, SPEED_MEDIUM_MS, SPEED_SLOW_MS
from arbsim.config.settings import RiskSettings


# =============================================================================
# Enums
# =============================================================================


class OrderSide(str, Enum):
    """Order side enumeration."""

    BUY = "buy"
    SELL = "sell"


class OpportunityStatus(str, Enum):
    """Opportunity lifecycle: detected -> analyzing -> executing -> completed | expired."""

    DETECTED = "detected"
    ANALYZING = "analyzing"
    EXECUTING = "executing"
    COMPLETED = "completed"
    EXPIRED = "expired"


class TradeStatus(str, Enum):
    """Trade outcome status."""

    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    PARTIAL = "partial"
    STOPPED_LOSS = "stopped_loss"


class RiskLevel(str, Enum):
    """Coarse risk classification of an opportunity."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Recommendation(str, Enum):
    """Rule validator recommendation."""

    EXECUTE = "execute"
    REVIEW = "review"
    REJECT = "reject"


class TradingSpeed(str, Enum):
    """Tick cadence tiers."""

    SLOW = "slow"
    MEDIUM = "medium"
    FAST = "fast"

    @property
    def interval_ms(self) -> int:
        """Tick interval for this tier."""
        return _SPEED_INTERVALS[self]


_SPEED_INTERVALS: dict[TradingSpeed, int] = {
    TradingSpeed.SLOW: SPEED_SLOW_MS,
    TradingSpeed.MEDIUM: SPEED_MEDIUM_MS,
    TradingSpeed.FAST: SPEED_FAST_MS,
}


# =============================================================================
# Market Data Types
# =============================================================================


@dataclass(slots=True, frozen=True)
class VenueQuote:
    """
    Best bid/ask for one symbol on one venue.

    Frozen for immutability; produced fresh on every market update.
    `volume` is the venue's 24h quote-currency (notional) volume.
    """

    venue: str
    symbol: str
    bid: float
    ask: float
    volume: float
    observed_at_ms: int

    @property
    def mid(self) -> float:
        """Mid price."""
        return (self.bid + self.ask) / 2

    @property
    def spread_pct(self) -> float:
        """Bid-ask spread as percentage of mid price."""
        mid = self.mid
        return (self.ask - self.bid) / mid * 100 if mid > 0 else 0.0


# =============================================================================
# Opportunity Types
# =============================================================================


@dataclass(slots=True, frozen=True)
class RuleVerdict:
    """Outcome of running the rule battery against one opportunity."""

    passed: bool
    failed_rule_names: tuple[str, ...]
    score: float
    recommendation: Recommendation

    def to_dict(self) -> dict[str, Any]:
        return {
            "passed": self.passed,
            "failed_rule_names": list(self.failed_rule_names),
            "score": round(self.score, 2),
            "recommendation": self.recommendation.value,
        }


_TERMINAL_OPPORTUNITY = frozenset({OpportunityStatus.COMPLETED, OpportunityStatus.EXPIRED})


@dataclass(slots=True)
class Opportunity:
    """
    Cross-venue spread candidate.

    Buy at `buy_venue`'s ask and sell at `sell_venue`'s bid. Sizing is
    decided by the scanner, so `quantity` and `notional_size` are final
    by the time the opportunity reaches a validator.
    """

    id: str
    symbol: str
    buy_venue: str
    sell_venue: str
    buy_price: float
    sell_price: float
    gross_spread_pct: float
    net_spread_pct: float
    slippage_pct: float
    quantity: float
    notional_size: float
    estimated_profit: float
    risk_level: RiskLevel
    confidence: float
    created_at_ms: int
    combined_volume: float = 0.0
    status: OpportunityStatus = OpportunityStatus.DETECTED
    risk_pct: float | None = None
    reward_pct: float | None = None
    enable_trailing_stop: bool = False
    synthetic: bool = False
    verdict: RuleVerdict | None = None

    @property
    def is_terminal(self) -> bool:
        """Check if the opportunity reached completed or expired."""
        return self.status in _TERMINAL_OPPORTUNITY

    def age_ms(self, now_ms: int) -> int:
        """Milliseconds since detection."""
        return now_ms - self.created_at_ms

    def advance(self, status: OpportunityStatus) -> bool:
        """
        Move to a new lifecycle status.

        Terminal opportunities are immutable, so the call is ignored once
        completed or expired.

        Returns:
            True if the status changed.
        """
        if self.is_terminal:
            return False
        self.status = status
        return True

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "symbol": self.symbol,
            "buy_venue": self.buy_venue,
            "sell_venue": self.sell_venue,
            "buy_price": self.buy_price,
            "sell_price": self.sell_price,
            "gross_spread_pct": self.gross_spread_pct,
            "net_spread_pct": self.net_spread_pct,
            "slippage_pct": self.slippage_pct,
            "quantity": self.quantity,
            "notional_size": self.notional_size,
            "estimated_profit": self.estimated_profit,
            "risk_level": self.risk_level.value,
            "confidence": self.confidence,
            "created_at_ms": self.created_at_ms,
            "status": self.status.value,
            "risk_pct": self.risk_pct,
            "reward_pct": self.reward_pct,
            "enable_trailing_stop": self.enable_trailing_stop,
            "synthetic": self.synthetic,
            "verdict": self.verdict.to_dict() if self.verdict else None,
        }


# =============================================================================
# Execution Types
# =============================================================================


@dataclass(slots=True)
class OrderResult:
    """Gateway response for a single order leg."""

    success: bool
    order_id: str | None = None
    executed_price: float | None = None
    executed_quantity: float | None = None
    fees: float | None = None
    error: str | None = None


@dataclass(slots=True)
class Trade:
    """
    Ledger entry for one execution attempt.

    Never mutated after its terminal status is set, apart from the
    one-time trailing-stop bonus and the operator acknowledging a
    partial fill.
    """

    id: str
    opportunity_id: str
    symbol: str
    buy_venue: str
    sell_venue: str
    buy_price: float
    sell_price: float
    requested_qty: float
    executed_qty: float
    notional: float
    gross_profit: float
    fees: float
    net_profit: float
    roi_pct: float
    execution_time_ms: float
    status: TradeStatus
    risk_amount: float
    stop_loss_price: float
    timestamp: datetime
    execution_price: float | None = None
    buy_order_id: str | None = None
    sell_order_id: str | None = None
    error: str | None = None
    requires_attention: bool = False
    rule_score: float | None = None
    trailing_bonus: float = 0.0
    trailing_applied: bool = False

    @property
    def is_win(self) -> bool:
        return self.net_profit > 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "opportunity_id": self.opportunity_id,
            "symbol": self.symbol,
            "buy_venue": self.buy_venue,
            "sell_venue": self.sell_venue,
            "buy_price": self.buy_price,
            "sell_price": self.sell_price,
            "execution_price": self.execution_price,
            "requested_qty": self.requested_qty,
            "executed_qty": self.executed_qty,
            "notional": self.notional,
            "gross_profit": self.gross_profit,
            "fees": self.fees,
            "net_profit": self.net_profit,
            "roi_pct": self.roi_pct,
            "execution_time_ms": self.execution_time_ms,
            "status": self.status.value,
            "risk_amount": self.risk_amount,
            "stop_loss_price": self.stop_loss_price,
            "timestamp": self.timestamp.isoformat(),
            "buy_order_id": self.buy_order_id,
            "sell_order_id": self.sell_order_id,
            "error": self.error,
            "requires_attention": self.requires_attention,
            "rule_score": self.rule_score,
            "trailing_bonus": self.trailing_bonus,
        }


# =============================================================================
# Session Types
# =============================================================================


@dataclass(slots=True)
class SessionState:
    """Mutable lifecycle state owned by one trading session."""

    trading_interval_ms: int
    is_running: bool = False
    daily_trade_count: int = 0
    daily_pnl: float = 0.0
    last_reset_date: date | None = None
    last_loss_at: datetime | None = None
    halt_reason: str = ""

    def reset_daily(self, today: date) -> None:
        """Reset daily counters."""
        self.daily_trade_count = 0
        self.daily_pnl = 0.0
        self.last_reset_date = today


@dataclass(slots=True, frozen=True)
class PortfolioView:
    """Read-only portfolio facts the position and daily-risk rules need."""

    account_balance: float
    open_symbols: frozenset[str] = frozenset()
    open_positions: int = 0
    exposure_by_symbol: Mapping[str, float] = field(default_factory=dict)
    daily_pnl: float = 0.0
    daily_trade_count: int = 0
    last_loss_at: datetime | None = None


# =============================================================================
# Protocols (Interfaces)
# =============================================================================


QuoteCallback = Callable[[VenueQuote], None]


class MarketDataSource(Protocol):
    """Supplies current bid/ask per symbol per venue."""

    def get_quote(self, symbol: str, venue: str) -> VenueQuote | None:
        """Get a fresh quote, or None if nothing was observed recently."""
        ...

    def subscribe(
        self,
        symbols: Iterable[str],
        venues: Iterable[str],
        on_update: QuoteCallback,
    ) -> Callable[[], None]:
        """Register for quote updates; returns an unsubscribe callable."""
        ...


class ExecutionGateway(Protocol):
    """Accepts single-leg orders; two calls may run concurrently."""

    def place_order(
        self,
        venue: str,
        symbol: str,
        side: OrderSide,
        quantity: float,
        limit_price: float,
    ) -> Awaitable[OrderResult]:
        """Place one order leg."""
        ...


class SettingsStore(Protocol):
    """Holds the mutable risk parameters of a session."""

    def get(self) -> RiskSettings:
        """Current settings."""
        ...

    def set(self, partial: Mapping[str, Any]) -> RiskSettings:
        """Merge and validate a partial update."""
        ...

    def reset(self) -> RiskSettings:
        """Restore documented defaults."""
        ...


class RandomSource(Protocol):
    """Injectable randomness; `random.Random` satisfies it."""

    def random(self) -> float:
        """Uniform float in [0, 1)."""
        ...

    def uniform(self, a: float, b: float) -> float:
        """Uniform float in [a, b]."""
        ...
