"""
Trade execution engines.

Turns approved opportunities into ledger trades. The simulated executor
models latency, market movement, stop-loss and stochastic fills; the
two-leg executor sends buy and sell legs concurrently through an
execution gateway and records partial fills for operator follow-up.
"""

import asyncio
import logging
import random
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from arbsim.config.constants import (
    BASE_SUCCESS_RATE,
    EXECUTION_LATENCY_MS,
    FAILURE_PENALTY_FRACTION,
    MARKET_MOVE_RANGE,
    MAX_RISK_BALANCE_FRACTION,
    MAX_SPREAD_BONUS,
    MAX_SUCCESS_RATE,
    SPREAD_BONUS_SCALE_PCT,
)
from arbsim.config.settings import RiskSettings
from arbsim.core.types import (
    ExecutionGateway,
    Opportunity,
    OrderResult,
    OrderSide,
    RandomSource,
    Trade,
    TradeStatus,
)
from arbsim.utils.math import EPSILON, safe_divide
from arbsim.utils.time import LatencyTimer, utc_now


logger = logging.getLogger(__name__)


Sleeper = Callable[[float], Awaitable[None]]


@dataclass
class ExecutorConfig:
    """Executor configuration."""

    latency_ms: tuple[float, float] = EXECUTION_LATENCY_MS
    market_move_range: tuple[float, float] = MARKET_MOVE_RANGE  # fraction of sell price
    base_success_rate: float = BASE_SUCCESS_RATE
    max_success_rate: float = MAX_SUCCESS_RATE
    spread_bonus_scale_pct: float = SPREAD_BONUS_SCALE_PCT
    max_spread_bonus: float = MAX_SPREAD_BONUS
    failure_penalty_fraction: float = FAILURE_PENALTY_FRACTION
    max_risk_balance_fraction: float = MAX_RISK_BALANCE_FRACTION


@dataclass(slots=True, frozen=True)
class TradePlan:
    """Pre-execution amounts derived from the opportunity and settings."""

    notional: float
    risk_amount: float
    stop_loss_price: float
    fees: float


def plan_trade(
    opportunity: Opportunity,
    settings: RiskSettings,
    max_risk_balance_fraction: float = MAX_RISK_BALANCE_FRACTION,
) -> TradePlan:
    """
    Compute risk amount, stop price and round-trip fees.

    riskAmount = min(notional x stopLoss, balance x max risk fraction)
    stopLossPrice = buyPrice x (1 - stopLoss)
    fees = notional x fee x 2
    """
    notional = opportunity.buy_price * opportunity.quantity
    stop_fraction = settings.stop_loss_pct / 100

    return TradePlan(
        notional=notional,
        risk_amount=min(
            notional * stop_fraction,
            settings.account_balance * max_risk_balance_fraction,
        ),
        stop_loss_price=opportunity.buy_price * (1 - stop_fraction),
        fees=notional * settings.trading_fees_pct / 100 * 2,
    )


class TradeExecutor(Protocol):
    """Executes an approved opportunity into exactly one terminal trade."""

    async def execute(self, opportunity: Opportunity, settings: RiskSettings) -> Trade:
        ...

    @property
    def stats(self) -> dict[str, int]:
        ...


class _ExecutorBase:
    """Shared trade construction and statistics."""

    def __init__(self, clock: Callable[[], datetime] = utc_now) -> None:
        self._clock = clock
        self._total_executions = 0
        self._outcomes: dict[TradeStatus, int] = {status: 0 for status in TradeStatus}

    def _build_trade(
        self,
        opportunity: Opportunity,
        plan: TradePlan,
        status: TradeStatus,
        *,
        executed_qty: float,
        gross_profit: float,
        fees: float,
        net_profit: float,
        execution_time_ms: float,
        execution_price: float | None = None,
        buy_price: float | None = None,
        sell_price: float | None = None,
        error: str | None = None,
    ) -> Trade:
        trade = Trade(
            id=str(uuid.uuid4()),
            opportunity_id=opportunity.id,
            symbol=opportunity.symbol,
            buy_venue=opportunity.buy_venue,
            sell_venue=opportunity.sell_venue,
            buy_price=opportunity.buy_price if buy_price is None else buy_price,
            sell_price=opportunity.sell_price if sell_price is None else sell_price,
            requested_qty=opportunity.quantity,
            executed_qty=executed_qty,
            notional=plan.notional,
            gross_profit=gross_profit,
            fees=fees,
            net_profit=net_profit,
            roi_pct=safe_divide(net_profit, plan.notional) * 100,
            execution_time_ms=execution_time_ms,
            status=status,
            risk_amount=plan.risk_amount,
            stop_loss_price=plan.stop_loss_price,
            timestamp=self._clock(),
            execution_price=execution_price,
            error=error,
            rule_score=opportunity.verdict.score if opportunity.verdict else None,
        )
        self._outcomes[status] += 1
        return trade

    def _create_failed_trade(
        self,
        opportunity: Opportunity,
        plan: TradePlan,
        error: str,
        execution_time_ms: float,
    ) -> Trade:
        return self._build_trade(
            opportunity,
            plan,
            TradeStatus.FAILED,
            executed_qty=0.0,
            gross_profit=0.0,
            fees=0.0,
            net_profit=0.0,
            execution_time_ms=execution_time_ms,
            error=error,
        )

    @property
    def stats(self) -> dict[str, int]:
        """Get execution statistics."""
        return {
            "total": self._total_executions,
            **{status.value: count for status, count in self._outcomes.items()},
        }


class SimulatedExecutor(_ExecutorBase):
    """
    Simulates single-shot execution of an arbitrage opportunity.

    Features:
    - Awaited latency sampled from a configured range
    - Small market movement applied to the planned sell price
    - Stop-loss resolved before the fill roll
    - Success probability rising with spread size, capped
    """

    def __init__(
        self,
        rng: RandomSource | None = None,
        config: ExecutorConfig | None = None,
        clock: Callable[[], datetime] = utc_now,
        sleep: Sleeper = asyncio.sleep,
    ) -> None:
        """
        Initialize executor.

        Args:
            rng: Random source for latency, movement and fill outcome.
            config: Executor configuration.
            clock: Wall clock for trade timestamps.
            sleep: Awaitable used to model latency.
        """
        super().__init__(clock)
        self._rng = rng or random.Random()
        self._config = config or ExecutorConfig()
        self._sleep = sleep

    def success_probability(self, opportunity: Opportunity) -> float:
        """Fill probability: base rate plus a capped spread bonus."""
        cfg = self._config
        spread_bonus = min(
            max(opportunity.net_spread_pct, 0.0) / cfg.spread_bonus_scale_pct,
            cfg.max_spread_bonus,
        )
        return min(cfg.base_success_rate + spread_bonus, cfg.max_success_rate)

    async def execute(self, opportunity: Opportunity, settings: RiskSettings) -> Trade:
        """
        Execute an approved opportunity.

        Args:
            opportunity: Approved, sized opportunity.
            settings: Risk settings read for this tick.

        Returns:
            Terminal trade: completed, failed or stopped_loss.
        """
        self._total_executions += 1
        plan = plan_trade(opportunity, settings, self._config.max_risk_balance_fraction)

        with LatencyTimer() as timer:
            try:
                trade = await self._resolve(opportunity, plan, timer)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Execution error: {e}")
                trade = self._create_failed_trade(opportunity, plan, str(e), timer.latency_ms)

        trade.execution_time_ms = timer.latency_ms
        return trade

    async def _resolve(self, opportunity: Opportunity, plan: TradePlan, timer: LatencyTimer) -> Trade:
        cfg = self._config
        await self._sleep(self._rng.uniform(*cfg.latency_ms) / 1000)

        movement = self._rng.uniform(*cfg.market_move_range)
        execution_price = opportunity.sell_price * (1 + movement)
        qty = opportunity.quantity

        if execution_price <= plan.stop_loss_price:
            logger.info(
                f"Stop loss hit on {opportunity.symbol}: {execution_price:.6g} <= "
                f"{plan.stop_loss_price:.6g}"
            )
            return self._build_trade(
                opportunity,
                plan,
                TradeStatus.STOPPED_LOSS,
                executed_qty=qty,
                gross_profit=plan.fees - plan.risk_amount,
                fees=plan.fees,
                net_profit=-plan.risk_amount,
                execution_time_ms=timer.latency_ms,
                execution_price=execution_price,
            )

        if self._rng.random() < self.success_probability(opportunity):
            gross = (execution_price - opportunity.buy_price) * qty
            return self._build_trade(
                opportunity,
                plan,
                TradeStatus.COMPLETED,
                executed_qty=qty,
                gross_profit=gross,
                fees=plan.fees,
                net_profit=gross - plan.fees,
                execution_time_ms=timer.latency_ms,
                execution_price=execution_price,
            )

        penalty = plan.risk_amount * cfg.failure_penalty_fraction
        return self._build_trade(
            opportunity,
            plan,
            TradeStatus.FAILED,
            executed_qty=0.0,
            gross_profit=-penalty,
            fees=plan.fees,
            net_profit=-penalty - plan.fees,
            execution_time_ms=timer.latency_ms,
            execution_price=execution_price,
            error="Order not filled",
        )


class TwoLegExecutor(_ExecutorBase):
    """
    Executes buy and sell legs as separate concurrent gateway orders.

    A single filled leg produces a partial trade flagged for operator
    follow-up. Legs are never retried.
    """

    def __init__(
        self,
        gateway: ExecutionGateway,
        config: ExecutorConfig | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """
        Initialize executor.

        Args:
            gateway: Order gateway for both legs.
            config: Executor configuration (risk fraction).
            clock: Wall clock for trade timestamps.
        """
        super().__init__(clock)
        self._gateway = gateway
        self._config = config or ExecutorConfig()

    async def execute(self, opportunity: Opportunity, settings: RiskSettings) -> Trade:
        """
        Execute both legs concurrently.

        Returns:
            Terminal trade: completed, partial, failed or stopped_loss.
        """
        self._total_executions += 1
        plan = plan_trade(opportunity, settings, self._config.max_risk_balance_fraction)

        with LatencyTimer() as timer:
            results = await asyncio.gather(
                self._gateway.place_order(
                    opportunity.buy_venue,
                    opportunity.symbol,
                    OrderSide.BUY,
                    opportunity.quantity,
                    opportunity.buy_price,
                ),
                self._gateway.place_order(
                    opportunity.sell_venue,
                    opportunity.symbol,
                    OrderSide.SELL,
                    opportunity.quantity,
                    opportunity.sell_price,
                ),
                return_exceptions=True,
            )

        buy, sell = (self._normalize(result) for result in results)
        fee_rate = settings.trading_fees_pct / 100

        try:
            if buy.success and sell.success:
                return self._both_filled(opportunity, plan, buy, sell, fee_rate, timer.latency_ms)
            if buy.success or sell.success:
                return self._one_leg_filled(opportunity, plan, buy, sell, fee_rate, timer.latency_ms)
        except Exception as e:
            logger.error(f"Execution error: {e}")
            return self._create_failed_trade(opportunity, plan, str(e), timer.latency_ms)

        error = f"buy: {buy.error or 'rejected'}; sell: {sell.error or 'rejected'}"
        logger.warning(f"Both legs failed for {opportunity.symbol}: {error}")
        return self._create_failed_trade(opportunity, plan, error, timer.latency_ms)

    @staticmethod
    def _normalize(result: OrderResult | BaseException) -> OrderResult:
        if isinstance(result, BaseException):
            return OrderResult(success=False, error=str(result) or type(result).__name__)
        return result

    @staticmethod
    def _leg_fees(leg: OrderResult, price: float, qty: float, fee_rate: float) -> float:
        return leg.fees if leg.fees is not None else price * qty * fee_rate

    def _both_filled(
        self,
        opportunity: Opportunity,
        plan: TradePlan,
        buy: OrderResult,
        sell: OrderResult,
        fee_rate: float,
        elapsed_ms: float,
    ) -> Trade:
        buy_price = buy.executed_price or opportunity.buy_price
        sell_price = sell.executed_price or opportunity.sell_price
        buy_qty = buy.executed_quantity if buy.executed_quantity is not None else opportunity.quantity
        sell_qty = sell.executed_quantity if sell.executed_quantity is not None else opportunity.quantity
        qty = min(buy_qty, sell_qty)

        fees = self._leg_fees(buy, buy_price, buy_qty, fee_rate) + self._leg_fees(
            sell, sell_price, sell_qty, fee_rate
        )

        if sell_price <= plan.stop_loss_price:
            # Loss is capped at the risk amount, fees included
            status = TradeStatus.STOPPED_LOSS
            gross, net = fees - plan.risk_amount, -plan.risk_amount
        else:
            status = TradeStatus.COMPLETED
            gross = (sell_price - buy_price) * qty
            net = gross - fees

        trade = self._build_trade(
            opportunity,
            plan,
            status,
            executed_qty=qty,
            gross_profit=gross,
            fees=fees,
            net_profit=net,
            execution_time_ms=elapsed_ms,
            execution_price=sell_price,
            buy_price=buy_price,
            sell_price=sell_price,
        )
        trade.buy_order_id = buy.order_id
        trade.sell_order_id = sell.order_id

        unhedged = abs(buy_qty - sell_qty)
        if unhedged > EPSILON:
            trade.requires_attention = True
            trade.error = f"unhedged {unhedged:.6g} after fills of buy {buy_qty:.6g} / sell {sell_qty:.6g}"
            logger.warning(
                f"Uneven fills on {opportunity.symbol}: {trade.error}; needs manual intervention"
            )
        return trade

    def _one_leg_filled(
        self,
        opportunity: Opportunity,
        plan: TradePlan,
        buy: OrderResult,
        sell: OrderResult,
        fee_rate: float,
        elapsed_ms: float,
    ) -> Trade:
        filled, failed_side = (buy, "sell") if buy.success else (sell, "buy")
        price = filled.executed_price or (
            opportunity.buy_price if buy.success else opportunity.sell_price
        )
        qty = filled.executed_quantity if filled.executed_quantity is not None else opportunity.quantity
        fees = self._leg_fees(filled, price, qty, fee_rate)
        failed_leg = sell if buy.success else buy
        error = f"{failed_side} leg failed: {failed_leg.error or 'rejected'}"

        trade = self._build_trade(
            opportunity,
            plan,
            TradeStatus.PARTIAL,
            executed_qty=qty,
            gross_profit=0.0,
            fees=fees,
            net_profit=-fees,
            execution_time_ms=elapsed_ms,
            error=error,
        )
        trade.buy_order_id = buy.order_id if buy.success else None
        trade.sell_order_id = sell.order_id if sell.success else None
        trade.requires_attention = True

        logger.warning(
            f"Partial execution on {opportunity.symbol} ({error}); "
            f"open {'long' if buy.success else 'short'} {qty:.6g} needs manual intervention"
        )
        return trade
