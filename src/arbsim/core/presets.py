"""
Session presets.

Builds the trading session controller in each of its four flavors. All
presets share the same pipeline and differ only in their approval
policy, executor, liveliness and default risk settings.
"""

import logging
import random
from collections.abc import Callable, Sequence
from datetime import datetime
from enum import Enum

from arbsim.config.constants import DEFAULT_SYMBOLS
from arbsim.config.settings import RiskSettings
from arbsim.config.store import InMemorySettingsStore
from arbsim.core.errors import UnknownSessionError
from arbsim.core.event_bus import EventBus
from arbsim.core.session import TradingSession
from arbsim.core.types import MarketDataSource, TradingSpeed
from arbsim.execution.executor import SimulatedExecutor, TradeExecutor, TwoLegExecutor
from arbsim.execution.gateway import PaperGateway
from arbsim.execution.risk import RiskGate
from arbsim.execution.trailing import TrailingStopManager
from arbsim.market.history import PriceHistory
from arbsim.simulation.liveliness import DemoLiveliness, LivelinessConfig
from arbsim.strategy.context import ContextBuilder, RiskRewardEstimator
from arbsim.strategy.policy import DecisionPolicy, RiskGatePolicy, RuleValidationPolicy
from arbsim.strategy.rules import RuleThresholds, RuleValidator
from arbsim.strategy.scanner import OpportunityScanner
from arbsim.telemetry.metrics import MetricsCollector
from arbsim.utils.time import utc_now


logger = logging.getLogger(__name__)


class SessionMode(str, Enum):
    """Session flavors."""

    DEMO = "demo"
    LIVE = "live"
    PAPER = "paper"
    ENHANCED = "enhanced"

    @classmethod
    def parse(cls, value: "SessionMode | str") -> "SessionMode":
        """
        Resolve a mode name.

        Raises:
            UnknownSessionError: Unknown mode.
        """
        try:
            return cls(value)
        except ValueError as e:
            raise UnknownSessionError(
                f"Unknown session mode: {value}",
                {"allowed": [m.value for m in cls]},
            ) from e


_RISK_OVERRIDES: dict[SessionMode, dict[str, float | int]] = {
    SessionMode.DEMO: {},
    SessionMode.LIVE: {"max_daily_trades": 500},
    SessionMode.PAPER: {"account_balance": 100.0},
    SessionMode.ENHANCED: {"stop_loss_pct": 2.5},
}


def default_risk_settings(mode: SessionMode | str) -> RiskSettings:
    """Default risk settings for a mode."""
    return RiskSettings(**_RISK_OVERRIDES[SessionMode.parse(mode)])


def build_session(
    mode: SessionMode | str,
    market: MarketDataSource,
    *,
    venues: Sequence[str],
    symbols: Sequence[str] = DEFAULT_SYMBOLS,
    rng: random.Random | None = None,
    clock: Callable[[], datetime] = utc_now,
    speed: TradingSpeed = TradingSpeed.MEDIUM,
    event_bus: EventBus | None = None,
    thresholds: RuleThresholds | None = None,
) -> TradingSession:
    """
    Build a session for a mode.

    Args:
        mode: Session flavor.
        market: Shared market data source.
        venues: Venues to scan (at least two).
        symbols: Symbols to scan.
        rng: Random source; one per session keeps sessions independent.
        clock: Wall clock for the session and its trades.
        speed: Initial tick cadence tier.
        event_bus: Bus for session events.
        thresholds: Rule thresholds for the enhanced mode.

    Returns:
        A stopped TradingSession.

    Raises:
        UnknownSessionError: Unknown mode.
    """
    mode = SessionMode.parse(mode)
    rng = rng or random.Random()
    history = PriceHistory()
    scanner = OpportunityScanner(market, symbols, venues, rng=rng, history=history)
    store = InMemorySettingsStore(default_risk_settings(mode))

    policy: DecisionPolicy
    executor: TradeExecutor
    trailing: TrailingStopManager | None = None
    liveliness: DemoLiveliness | None = None

    if mode == SessionMode.ENHANCED:
        policy = RuleValidationPolicy(
            RuleValidator(thresholds=thresholds),
            ContextBuilder(history),
            RiskRewardEstimator(rng),
        )
        trailing = TrailingStopManager(rng)
    else:
        policy = RiskGatePolicy(RiskGate())

    if mode == SessionMode.PAPER:
        gateway = PaperGateway(market, rng)
        executor = TwoLegExecutor(gateway, clock=clock)
    else:
        executor = SimulatedExecutor(rng, clock=clock)

    if mode == SessionMode.DEMO:
        liveliness = DemoLiveliness(scanner, market, rng, LivelinessConfig(enabled=True))

    logger.debug(f"Built {mode.value} session ({policy.name}, {type(executor).__name__})")

    return TradingSession(
        mode.value,
        scanner,
        policy,
        executor,
        store,
        speed=speed,
        trailing=trailing,
        liveliness=liveliness,
        event_bus=event_bus,
        metrics=MetricsCollector(),
        clock=clock,
    )
