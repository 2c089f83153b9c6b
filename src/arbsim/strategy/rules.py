"""
Multi-category trading rule validation.

Runs a fixed battery of named, prioritized checks against an opportunity
and its market context, producing a weighted score and an
execute/review/reject recommendation. A check that raises counts as
failed and validation continues with the remaining rules.
"""

import logging
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from enum import Enum, IntEnum
from typing import Any

from arbsim.config.constants import (
    ATR_MAX_PCT,
    ATR_MIN_PCT,
    ATR_PERIOD,
    BREAKOUT_DEVIATION_PCT,
    BREAKOUT_MIN_POINTS,
    BREAKOUT_SHORT_WINDOW,
    BREAKOUT_VOLUME_FLOOR,
    CONFLUENCE_MIN_SIGNALS,
    CONFLUENCE_MOMENTUM_PCT,
    CONFLUENCE_SPREAD_FLOOR,
    CONFLUENCE_VOLUME_FLOOR,
    DAILY_LOSS_FLOOR_PCT,
    EVENT_BUFFER_MINUTES,
    EXECUTE_SCORE,
    LOSS_COOLDOWN_MINUTES,
    MAX_ASSET_EXPOSURE_PCT,
    MAX_CONCURRENT_POSITIONS,
    MIN_NET_PROFIT_PCT,
    MIN_REWARD_PCT,
    MIN_REWARD_RISK_RATIO,
    MIN_RISK_PCT,
    REVIEW_SCORE,
    RULE_DAILY_TRADE_CAP,
    SESSION_END_HOUR_UTC,
    SESSION_START_HOUR_UTC,
    SESSION_VOLUME_FLOOR,
    TREND_MIN_PCT,
)
from arbsim.core.types import Opportunity, Recommendation, RuleVerdict
from arbsim.strategy.context import MarketContext
from arbsim.utils.math import mean, pct_change, safe_divide


logger = logging.getLogger(__name__)


# =============================================================================
# Rule Model
# =============================================================================


class RuleCategory(str, Enum):
    """Rule categories; the value is the display label."""

    ENTRY = "Entry"
    RISK_REWARD = "Risk/Reward"
    VOLATILITY = "Volatility"
    MARKET_SESSION = "Market Session"
    NEWS_EVENTS = "News/Events"
    POSITION_CONTROL = "Position Control"
    DAILY_RISK = "Daily Risk Management"
    SLIPPAGE_FEES = "Slippage & Fees"
    DYNAMIC_STOPS = "Dynamic Stops"


class RulePriority(IntEnum):
    """Score weight of a rule."""

    LOW = 1
    MEDIUM = 2
    HIGH = 3


# Any failure in these categories forces a reject
BLOCKING_CATEGORIES: frozenset[RuleCategory] = frozenset(
    {RuleCategory.RISK_REWARD, RuleCategory.DAILY_RISK}
)

RuleCheck = Callable[[Opportunity, MarketContext], bool]


@dataclass(slots=True, frozen=True)
class TradingRule:
    """One named check in the battery."""

    name: str
    category: RuleCategory
    priority: RulePriority
    description: str
    check: RuleCheck
    enabled: bool = True

    @property
    def label(self) -> str:
        return f"{self.category.value}: {self.name}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "category": self.category.value,
            "priority": self.priority.name.lower(),
            "weight": int(self.priority),
            "description": self.description,
            "enabled": self.enabled,
        }


@dataclass(frozen=True)
class RuleThresholds:
    """Tunable thresholds for the default rule battery."""

    trend_min_pct: float = TREND_MIN_PCT
    breakout_min_points: int = BREAKOUT_MIN_POINTS
    breakout_short_window: int = BREAKOUT_SHORT_WINDOW
    breakout_deviation_pct: float = BREAKOUT_DEVIATION_PCT
    breakout_volume_floor: float = BREAKOUT_VOLUME_FLOOR
    confluence_volume_floor: float = CONFLUENCE_VOLUME_FLOOR
    confluence_momentum_pct: float = CONFLUENCE_MOMENTUM_PCT
    confluence_spread_floor: float = CONFLUENCE_SPREAD_FLOOR
    confluence_min_signals: int = CONFLUENCE_MIN_SIGNALS
    min_risk_pct: float = MIN_RISK_PCT
    min_reward_pct: float = MIN_REWARD_PCT
    min_reward_risk_ratio: float = MIN_REWARD_RISK_RATIO
    atr_period: int = ATR_PERIOD
    atr_min_pct: float = ATR_MIN_PCT
    atr_max_pct: float = ATR_MAX_PCT
    session_start_hour_utc: int = SESSION_START_HOUR_UTC
    session_end_hour_utc: int = SESSION_END_HOUR_UTC
    session_volume_floor: float = SESSION_VOLUME_FLOOR
    scheduled_events: tuple[datetime, ...] = ()
    event_buffer_minutes: int = EVENT_BUFFER_MINUTES
    max_concurrent_positions: int = MAX_CONCURRENT_POSITIONS
    max_asset_exposure_pct: float = MAX_ASSET_EXPOSURE_PCT
    daily_loss_floor_pct: float = DAILY_LOSS_FLOOR_PCT
    daily_trade_cap: int = RULE_DAILY_TRADE_CAP
    loss_cooldown_minutes: int = LOSS_COOLDOWN_MINUTES
    min_net_profit_pct: float = MIN_NET_PROFIT_PCT


# =============================================================================
# Indicators
# =============================================================================


def trend_strength_pct(prices: Sequence[float]) -> float | None:
    """Absolute percentage move across the window, None without two points."""
    if len(prices) < 2:
        return None
    return abs(pct_change(prices[0], prices[-1]))


def breakout_deviation_pct(
    prices: Sequence[float],
    short_window: int = BREAKOUT_SHORT_WINDOW,
    min_points: int = BREAKOUT_MIN_POINTS,
) -> float | None:
    """
    Deviation of the recent average from the prior average.

    Compares the mean of the last `short_window` prices with the mean of
    the `min_points - short_window` prices before them.

    Returns:
        Absolute deviation in percent, or None with too little history.
    """
    if len(prices) < min_points:
        return None
    window = list(prices[-min_points:])
    recent = mean(window[-short_window:])
    prior = mean(window[:-short_window])
    return abs(pct_change(prior, recent))


def momentum_pct(prices: Sequence[float]) -> float | None:
    """Last single-step percentage change."""
    if len(prices) < 2:
        return None
    return pct_change(prices[-2], prices[-1])


def average_true_range_pct(prices: Sequence[float], period: int = ATR_PERIOD) -> float | None:
    """
    ATR-style volatility over the most recent `period` steps.

    Mean absolute consecutive change, normalized by the last price.

    Returns:
        ATR in percent, or None with fewer than `period` + 1 prices.
    """
    if len(prices) < period + 1:
        return None
    window = prices[-(period + 1) :]
    changes = [abs(window[i] - window[i - 1]) for i in range(1, len(window))]
    return safe_divide(mean(changes), window[-1]) * 100


# =============================================================================
# Default Battery
# =============================================================================


def build_default_rules(t: RuleThresholds | None = None) -> list[TradingRule]:
    """
    Build the standard rule battery.

    Args:
        t: Thresholds; library defaults if omitted.

    Returns:
        Rules in evaluation order.
    """
    t = t or RuleThresholds()
    event_buffer = timedelta(minutes=t.event_buffer_minutes)
    cooldown = timedelta(minutes=t.loss_cooldown_minutes)

    def trend_confirmation(opp: Opportunity, ctx: MarketContext) -> bool:
        strength = trend_strength_pct(ctx.prices)
        return strength is not None and strength >= t.trend_min_pct

    def breakout_signal(opp: Opportunity, ctx: MarketContext) -> bool:
        deviation = breakout_deviation_pct(ctx.prices, t.breakout_short_window, t.breakout_min_points)
        return (
            deviation is not None
            and deviation > t.breakout_deviation_pct
            and ctx.volume > t.breakout_volume_floor
        )

    def indicator_confluence(opp: Opportunity, ctx: MarketContext) -> bool:
        momentum = momentum_pct(ctx.prices)
        signals = [
            ctx.volume > t.confluence_volume_floor,
            momentum is not None and momentum > t.confluence_momentum_pct,
            ctx.spread > t.confluence_spread_floor,
        ]
        return sum(signals) >= t.confluence_min_signals

    def minimum_risk(opp: Opportunity, ctx: MarketContext) -> bool:
        return opp.risk_pct is not None and opp.risk_pct >= t.min_risk_pct

    def minimum_reward(opp: Opportunity, ctx: MarketContext) -> bool:
        return opp.reward_pct is not None and opp.reward_pct >= t.min_reward_pct

    def reward_risk_ratio(opp: Opportunity, ctx: MarketContext) -> bool:
        if opp.risk_pct is None or opp.reward_pct is None or opp.risk_pct <= 0:
            return False
        return opp.reward_pct / opp.risk_pct >= t.min_reward_risk_ratio

    def atr_volatility(opp: Opportunity, ctx: MarketContext) -> bool:
        atr = average_true_range_pct(ctx.prices, t.atr_period)
        # Short history is treated as normal volatility
        if atr is None:
            atr = 1.0
        return t.atr_min_pct <= atr <= t.atr_max_pct

    def high_liquidity_hours(opp: Opportunity, ctx: MarketContext) -> bool:
        hour = ctx.now.astimezone(UTC).hour
        return t.session_start_hour_utc <= hour <= t.session_end_hour_utc

    def volume_threshold(opp: Opportunity, ctx: MarketContext) -> bool:
        return ctx.volume >= t.session_volume_floor

    def event_buffer_check(opp: Opportunity, ctx: MarketContext) -> bool:
        return all(abs(ctx.now - event) > event_buffer for event in t.scheduled_events)

    def one_trade_per_asset(opp: Opportunity, ctx: MarketContext) -> bool:
        return opp.symbol not in ctx.portfolio.open_symbols

    def max_concurrent_trades(opp: Opportunity, ctx: MarketContext) -> bool:
        return ctx.portfolio.open_positions < t.max_concurrent_positions

    def asset_exposure_limit(opp: Opportunity, ctx: MarketContext) -> bool:
        existing = ctx.portfolio.exposure_by_symbol.get(opp.symbol, 0.0)
        exposure_pct = safe_divide(existing + opp.notional_size, ctx.portfolio.account_balance) * 100
        return exposure_pct < t.max_asset_exposure_pct

    def daily_loss_limit(opp: Opportunity, ctx: MarketContext) -> bool:
        pnl_pct = safe_divide(ctx.portfolio.daily_pnl, ctx.portfolio.account_balance) * 100
        return pnl_pct > t.daily_loss_floor_pct

    def daily_trade_limit(opp: Opportunity, ctx: MarketContext) -> bool:
        return ctx.portfolio.daily_trade_count < t.daily_trade_cap

    def cooldown_period(opp: Opportunity, ctx: MarketContext) -> bool:
        last_loss = ctx.portfolio.last_loss_at
        return last_loss is None or ctx.now - last_loss >= cooldown

    def cost_adjustment(opp: Opportunity, ctx: MarketContext) -> bool:
        return opp.net_spread_pct >= t.min_net_profit_pct

    def trailing_stop_configuration(opp: Opportunity, ctx: MarketContext) -> bool:
        return opp.enable_trailing_stop

    high, medium, low = RulePriority.HIGH, RulePriority.MEDIUM, RulePriority.LOW
    c = RuleCategory

    return [
        TradingRule("Trend Confirmation", c.ENTRY, high,
                    f"Trend strength >= {t.trend_min_pct}% over the observation window",
                    trend_confirmation),
        TradingRule("Breakout Signal", c.ENTRY, high,
                    f"Recent average deviates > {t.breakout_deviation_pct}% with volume "
                    f"> {t.breakout_volume_floor:,.0f}",
                    breakout_signal),
        TradingRule("Indicator Confluence", c.ENTRY, high,
                    f"At least {t.confluence_min_signals} of volume, momentum and spread confirm",
                    indicator_confluence),
        TradingRule("Minimum Risk Percentage", c.RISK_REWARD, high,
                    f"Planned risk >= {t.min_risk_pct}%", minimum_risk),
        TradingRule("Minimum Reward Percentage", c.RISK_REWARD, high,
                    f"Planned reward >= {t.min_reward_pct}%", minimum_reward),
        TradingRule("Risk Reward Ratio", c.RISK_REWARD, high,
                    f"Reward/risk >= {t.min_reward_risk_ratio}", reward_risk_ratio),
        TradingRule("ATR Volatility Check", c.VOLATILITY, medium,
                    f"{t.atr_period}-period ATR within [{t.atr_min_pct}%, {t.atr_max_pct}%]",
                    atr_volatility),
        TradingRule("High Liquidity Hours", c.MARKET_SESSION, high,
                    f"Between {t.session_start_hour_utc}:00 and {t.session_end_hour_utc}:59 UTC",
                    high_liquidity_hours),
        TradingRule("Volume Threshold", c.MARKET_SESSION, medium,
                    f"Quote volume >= {t.session_volume_floor:,.0f}", volume_threshold),
        TradingRule("Event Buffer", c.NEWS_EVENTS, high,
                    f"Not within {t.event_buffer_minutes} minutes of a scheduled event",
                    event_buffer_check),
        TradingRule("One Trade Per Asset", c.POSITION_CONTROL, high,
                    "No open position in the same symbol", one_trade_per_asset),
        TradingRule("Maximum Concurrent Trades", c.POSITION_CONTROL, high,
                    f"Fewer than {t.max_concurrent_positions} open positions",
                    max_concurrent_trades),
        TradingRule("Asset Exposure Limit", c.POSITION_CONTROL, medium,
                    f"Per-asset exposure below {t.max_asset_exposure_pct}% of balance",
                    asset_exposure_limit),
        TradingRule("Daily Loss Limit", c.DAILY_RISK, high,
                    f"Daily P&L above {t.daily_loss_floor_pct}% of balance", daily_loss_limit),
        TradingRule("Daily Trade Limit", c.DAILY_RISK, medium,
                    f"Fewer than {t.daily_trade_cap} trades today", daily_trade_limit),
        TradingRule("Cooldown Period", c.DAILY_RISK, medium,
                    f"{t.loss_cooldown_minutes} minutes since the last losing trade",
                    cooldown_period),
        TradingRule("Cost Adjustment", c.SLIPPAGE_FEES, high,
                    f"Net spread after slippage and fees >= {t.min_net_profit_pct}%",
                    cost_adjustment),
        TradingRule("Trailing Stop Configuration", c.DYNAMIC_STOPS, low,
                    "Trailing stop enabled", trailing_stop_configuration),
    ]


# =============================================================================
# Validator
# =============================================================================


def recommend(score: float, failed_categories: Iterable[RuleCategory]) -> Recommendation:
    """
    Map a score and the failed categories to a recommendation.

    execute: score >= 80 and nothing failed.
    reject: score < 60 or any Risk/Reward or Daily Risk Management failure.
    review: everything else.
    """
    failed = set(failed_categories)
    if score < REVIEW_SCORE or failed & BLOCKING_CATEGORIES:
        return Recommendation.REJECT
    if score >= EXECUTE_SCORE and not failed:
        return Recommendation.EXECUTE
    return Recommendation.REVIEW


class RuleValidator:
    """
    Applies the rule battery to opportunities.

    Features:
    - Priority-weighted score over enabled rules
    - Fail-closed evaluation (a raising check counts as failed)
    - Category-aware recommendation policy
    - Running approval statistics
    """

    def __init__(
        self,
        rules: Sequence[TradingRule] | None = None,
        thresholds: RuleThresholds | None = None,
    ) -> None:
        """
        Initialize validator.

        Args:
            rules: Custom battery; the default battery if omitted.
            thresholds: Thresholds for the default battery.
        """
        self._rules = list(rules) if rules is not None else build_default_rules(thresholds)
        self._validations = 0
        self._recommendations: dict[Recommendation, int] = {r: 0 for r in Recommendation}
        self._score_sum = 0.0

    def validate(self, opportunity: Opportunity, context: MarketContext) -> RuleVerdict:
        """
        Run every enabled rule against an opportunity.

        Args:
            opportunity: Candidate to validate.
            context: Market and portfolio context.

        Returns:
            RuleVerdict with score, failed rule labels and recommendation.
        """
        total_weight = 0
        passed_weight = 0
        failed_names: list[str] = []
        failed_categories: list[RuleCategory] = []

        for rule in self._rules:
            if not rule.enabled:
                continue
            total_weight += rule.priority

            try:
                ok = bool(rule.check(opportunity, context))
                label = rule.label
            except Exception as e:
                logger.warning(f"Rule '{rule.label}' raised, counting as failed: {e}")
                ok = False
                label = f"{rule.label} (Error)"

            if ok:
                passed_weight += rule.priority
            else:
                failed_names.append(label)
                failed_categories.append(rule.category)

        score = passed_weight / total_weight * 100 if total_weight else 100.0
        recommendation = recommend(score, failed_categories)
        verdict = RuleVerdict(
            passed=not failed_names,
            failed_rule_names=tuple(failed_names),
            score=score,
            recommendation=recommendation,
        )

        self._validations += 1
        self._recommendations[recommendation] += 1
        self._score_sum += score

        logger.debug(
            f"Validated {opportunity.symbol} {opportunity.id[:8]}: "
            f"score={score:.1f} -> {recommendation.value} ({len(failed_names)} failed)"
        )
        return verdict

    def rules_by_category(self) -> dict[str, list[TradingRule]]:
        """Rules grouped by category label, in evaluation order."""
        grouped: dict[str, list[TradingRule]] = {}
        for rule in self._rules:
            grouped.setdefault(rule.category.value, []).append(rule)
        return grouped

    def catalog(self) -> dict[str, list[dict[str, Any]]]:
        """Serializable rule catalog grouped by category."""
        return {
            category: [rule.to_dict() for rule in rules]
            for category, rules in self.rules_by_category().items()
        }

    def set_enabled(self, name: str, enabled: bool) -> bool:
        """
        Enable or disable a rule by name.

        Returns:
            True if a rule with that name exists.
        """
        for i, rule in enumerate(self._rules):
            if rule.name == name:
                self._rules[i] = TradingRule(
                    rule.name, rule.category, rule.priority, rule.description, rule.check, enabled
                )
                return True
        return False

    @property
    def rules(self) -> list[TradingRule]:
        return list(self._rules)

    @property
    def stats(self) -> dict[str, float]:
        """Approval statistics across all validations."""
        total = self._validations
        return {
            "validations": total,
            "execute": self._recommendations[Recommendation.EXECUTE],
            "review": self._recommendations[Recommendation.REVIEW],
            "reject": self._recommendations[Recommendation.REJECT],
            "approval_rate": safe_divide(self._recommendations[Recommendation.EXECUTE], total) * 100,
            "rejection_rate": safe_divide(self._recommendations[Recommendation.REJECT], total) * 100,
            "average_score": safe_divide(self._score_sum, total),
        }
