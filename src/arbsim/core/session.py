"""
Trading session controller.

Owns one session's lifecycle, ledger and counters, and drives the
scan -> approve -> execute pipeline on a recurring, non-overlapping tick.
Sessions share no mutable state, so several can run side by side over
the same market data source.
"""

import asyncio
import logging
from collections import deque
from collections.abc import Callable, Mapping
from datetime import datetime
from typing import Any

from arbsim.config.constants import LEDGER_CAPACITY
from arbsim.config.settings import RiskSettings
from arbsim.config.store import InMemorySettingsStore
from arbsim.core.errors import SessionError
from arbsim.core.event_bus import Event, EventBus, EventType
from arbsim.core.statistics import TradingStatistics, compute_statistics
from arbsim.core.types import (
    Opportunity,
    OpportunityStatus,
    PortfolioView,
    SessionState,
    SettingsStore,
    Trade,
    TradeStatus,
    TradingSpeed,
)
from arbsim.execution.executor import TradeExecutor
from arbsim.execution.trailing import TrailingStopManager
from arbsim.simulation.liveliness import DemoLiveliness
from arbsim.strategy.policy import Decision, DecisionPolicy
from arbsim.strategy.scanner import OpportunityScanner
from arbsim.telemetry.metrics import MetricsCollector
from arbsim.utils.math import safe_divide
from arbsim.utils.time import get_timestamp_us, utc_now


logger = logging.getLogger(__name__)


def _current_task() -> asyncio.Task[Any] | None:
    try:
        return asyncio.current_task()
    except RuntimeError:
        return None


class TradingSession:
    """
    One independent trading session.

    Features:
    - Idempotent start/stop with a single cancellable tick task
    - Non-overlapping ticks (a tick requested mid-tick is skipped)
    - Daily counter reset on date rollover, checked at each tick
    - Drawdown fail-safe that auto-stops the session
    - Settings read afresh from the store on every tick
    - Pluggable approval policy, executor and demo liveliness
    """

    def __init__(
        self,
        name: str,
        scanner: OpportunityScanner,
        policy: DecisionPolicy,
        executor: TradeExecutor,
        settings_store: SettingsStore | None = None,
        *,
        speed: TradingSpeed = TradingSpeed.MEDIUM,
        trailing: TrailingStopManager | None = None,
        liveliness: DemoLiveliness | None = None,
        event_bus: EventBus | None = None,
        metrics: MetricsCollector | None = None,
        clock: Callable[[], datetime] = utc_now,
        ledger_capacity: int = LEDGER_CAPACITY,
    ) -> None:
        """
        Initialize session.

        Args:
            name: Session name (also the event source).
            scanner: Opportunity scanner over the shared market.
            policy: Risk gate or rule validation policy.
            executor: Simulated or two-leg executor.
            settings_store: Risk settings store; defaults if omitted.
            speed: Initial tick cadence tier.
            trailing: Trailing-stop manager for opportunities that enable it.
            liveliness: Demo liveliness helper, if any.
            event_bus: Bus for session events.
            metrics: Metrics collector.
            clock: Session-local wall clock.
            ledger_capacity: Maximum trades retained, oldest evicted first.
        """
        self._name = name
        self._scanner = scanner
        self._policy = policy
        self._executor = executor
        self._settings = settings_store or InMemorySettingsStore()
        self._speed = speed
        self._trailing = trailing
        self._liveliness = liveliness
        self._bus = event_bus or EventBus()
        self._metrics = metrics or MetricsCollector()
        self._clock = clock

        self._state = SessionState(trading_interval_ms=speed.interval_ms)
        self._state.reset_daily(clock().date())
        self._ledger: deque[Trade] = deque(maxlen=ledger_capacity)
        self._task: asyncio.Task[None] | None = None
        self._tick_lock = asyncio.Lock()
        self._interval_changed = asyncio.Event()

        self._decisions = {"evaluated": 0, "approved": 0, "rejected": 0, "reviewed": 0}
        self._score_sum = 0.0
        self._scored = 0

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def start(self) -> bool:
        """
        Start the tick loop.

        Must be called from a running event loop. Calling start() on a
        running session is a no-op.

        Returns:
            True if the session was started by this call.
        """
        if self._state.is_running:
            logger.debug(f"[{self._name}] start() ignored, already running")
            return False

        self._roll_daily(self._clock())
        self._state.is_running = True
        self._state.halt_reason = ""
        self._schedule()

        logger.info(
            f"[{self._name}] Session started ({self._speed.value}, "
            f"{self._state.trading_interval_ms}ms ticks, policy={self._policy.name})"
        )
        self._bus.publish_sync(Event(EventType.SESSION_STARTED, self._event_payload(), self._name))
        return True

    def stop(self, reason: str = "") -> bool:
        """
        Stop the tick loop.

        Cancels the scheduled tick synchronously. A trade still awaiting
        its simulated latency inside the cancelled tick is discarded.
        Idempotent.

        Returns:
            True if the session was running.
        """
        was_running = self._state.is_running
        self._state.is_running = False
        self._cancel_task()

        if was_running:
            logger.info(f"[{self._name}] Session stopped{f': {reason}' if reason else ''}")
            payload = {**self._event_payload(), "reason": reason}
            self._bus.publish_sync(Event(EventType.SESSION_STOPPED, payload, self._name))
        return was_running

    async def shutdown(self) -> None:
        """Stop, wait for the tick task to unwind and cancel trailing-stop tasks."""
        task = self._task
        self.stop("shutdown")
        if task is not None and task is not _current_task():
            await asyncio.gather(task, return_exceptions=True)
        if self._trailing is not None:
            self._trailing.cancel_all()

    def _schedule(self) -> None:
        loop = asyncio.get_running_loop()
        self._task = loop.create_task(self._run(), name=f"session-{self._name}")

    def _cancel_task(self) -> None:
        task, self._task = self._task, None
        # A tick that halts the session exits its own loop instead
        if task is not None and not task.done() and task is not _current_task():
            task.cancel()

    async def _run(self) -> None:
        """Tick loop: sleep one interval, then tick, until stopped."""
        while self._state.is_running:
            self._interval_changed.clear()
            try:
                await asyncio.wait_for(
                    self._interval_changed.wait(), self._state.trading_interval_ms / 1000
                )
                # Interval changed mid-sleep; start over with the new one
                continue
            except asyncio.TimeoutError:
                pass
            if not self._state.is_running:
                break
            await self.tick()

    def set_trading_speed(self, speed: TradingSpeed | str) -> int:
        """
        Change the tick cadence.

        A running session restarts its wait with the new interval. A tick
        already in progress is not interrupted; its trade is kept and the
        next wait uses the new interval.

        Returns:
            The new interval in milliseconds.

        Raises:
            SessionError: Unknown speed tier.
        """
        try:
            tier = TradingSpeed(speed)
        except ValueError as e:
            raise SessionError(
                f"Unknown trading speed: {speed}",
                {"allowed": [s.value for s in TradingSpeed]},
            ) from e

        self._speed = tier
        self._state.trading_interval_ms = tier.interval_ms

        if self._state.is_running:
            self._interval_changed.set()

        logger.info(f"[{self._name}] Trading speed set to {tier.value} ({tier.interval_ms}ms)")
        return tier.interval_ms

    # =========================================================================
    # Tick
    # =========================================================================

    async def tick(self) -> Trade | None:
        """
        Run one scan -> approve -> execute cycle.

        Errors are contained to the tick: they are logged, counted and
        published, and the scheduler keeps running.

        Returns:
            The trade appended this tick, if any.
        """
        if self._tick_lock.locked():
            self._metrics.increment_counter("ticks_skipped")
            return None

        async with self._tick_lock:
            self._metrics.increment_counter("ticks")
            start_us = get_timestamp_us()
            try:
                return await self._tick_once()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.exception(f"[{self._name}] Tick failed: {e}")
                self._metrics.increment_counter("tick_errors")
                await self._bus.publish(Event(EventType.ERROR, {"error": str(e)}, self._name))
                return None
            finally:
                self._metrics.record_latency("tick", get_timestamp_us() - start_us)

    async def _tick_once(self) -> Trade | None:
        now = self._clock()
        self._roll_daily(now)
        settings = self._settings.get()

        if self._state.daily_trade_count >= settings.max_daily_trades:
            self._metrics.increment_counter("ticks_capped")
            logger.debug(f"[{self._name}] Daily trade limit reached ({settings.max_daily_trades})")
            return None

        drawdown = self.get_stats(settings).max_drawdown
        if drawdown > settings.max_drawdown_pct:
            self._halt(
                f"Max drawdown {drawdown:.2f}% exceeded limit {settings.max_drawdown_pct:.2f}%"
            )
            return None

        opportunity = self._select_opportunity(settings)
        if opportunity is None:
            return None

        opportunity.advance(OpportunityStatus.ANALYZING)
        decision = self._policy.evaluate(
            opportunity, settings, self.portfolio_view(settings), drawdown, now
        )
        approved = self._record_decision(decision)

        if not approved:
            opportunity.advance(OpportunityStatus.EXPIRED)
            await self._bus.publish(
                Event(
                    EventType.OPPORTUNITY_REJECTED,
                    {"opportunity": opportunity.to_dict(), "reason": decision.reason},
                    self._name,
                )
            )
            return None

        return await self._execute(opportunity, settings)

    def _select_opportunity(self, settings: RiskSettings) -> Opportunity | None:
        """Scan, then pick the best executable candidate or a synthetic one."""
        now_ms = self._scanner.now_ms()
        self._scanner.expire(now_ms)
        found = self._scanner.scan(settings)
        self._metrics.increment_counter("opportunities_found", len(found))
        for opportunity in found:
            self._bus.publish_sync(
                Event(EventType.OPPORTUNITY_FOUND, {"opportunity": opportunity.to_dict()}, self._name)
            )

        candidates = self._scanner.executable(now_ms)
        if candidates:
            return candidates[0]

        if self._liveliness is not None:
            synthetic = self._liveliness.synthesize(settings, now_ms)
            if synthetic is not None:
                self._metrics.increment_counter("opportunities_synthesized")
            return synthetic
        return None

    def _record_decision(self, decision: Decision) -> bool:
        self._decisions["evaluated"] += 1
        if decision.verdict is not None:
            self._score_sum += decision.verdict.score
            self._scored += 1

        approved = decision.approved
        if not approved and decision.is_review:
            self._decisions["reviewed"] += 1
            self._metrics.increment_counter("opportunities_reviewed")
            if self._liveliness is not None and self._liveliness.override_review():
                logger.debug(f"[{self._name}] Review escalated to execute")
                approved = True

        key = "approved" if approved else "rejected"
        self._decisions[key] += 1
        self._metrics.increment_counter(f"opportunities_{key}")
        if not approved:
            logger.debug(f"[{self._name}] Opportunity rejected: {decision.reason}")
        return approved

    async def _execute(self, opportunity: Opportunity, settings: RiskSettings) -> Trade:
        opportunity.advance(OpportunityStatus.EXECUTING)
        start_us = get_timestamp_us()

        try:
            trade = await self._executor.execute(opportunity, settings)
        except asyncio.CancelledError:
            opportunity.advance(OpportunityStatus.EXPIRED)
            logger.info(f"[{self._name}] In-flight trade on {opportunity.symbol} discarded")
            raise

        self._metrics.record_latency("execution", get_timestamp_us() - start_us)
        self._append_trade(trade)
        opportunity.advance(
            OpportunityStatus.EXPIRED
            if trade.status == TradeStatus.FAILED
            else OpportunityStatus.COMPLETED
        )

        if self._trailing is not None and opportunity.enable_trailing_stop:
            self._trailing.schedule(trade, self._on_trailing_adjusted)

        await self._bus.publish(
            Event(EventType.TRADE_EXECUTED, {"trade": trade.to_dict()}, self._name)
        )
        return trade

    def _append_trade(self, trade: Trade) -> None:
        self._ledger.append(trade)
        self._state.daily_trade_count += 1
        self._state.daily_pnl += trade.net_profit
        if trade.net_profit < 0:
            self._state.last_loss_at = self._clock()

        self._metrics.increment_counter("trades")
        self._metrics.increment_counter(f"trades_{trade.status.value}")
        logger.info(
            f"[{self._name}] Trade {trade.status.value} {trade.symbol} "
            f"{trade.buy_venue}->{trade.sell_venue} net={trade.net_profit:+.4f} "
            f"({self._state.daily_trade_count} today)"
        )

    def _on_trailing_adjusted(self, trade: Trade, bonus: float) -> None:
        if trade.timestamp.date() == self._state.last_reset_date:
            self._state.daily_pnl += bonus
        self._bus.publish_sync(
            Event(EventType.TRADE_ADJUSTED, {"trade_id": trade.id, "bonus": bonus}, self._name)
        )

    def _roll_daily(self, now: datetime) -> None:
        today = now.date()
        if self._state.last_reset_date == today:
            return
        previous = self._state.last_reset_date
        self._state.reset_daily(today)
        logger.info(f"[{self._name}] Daily counters reset ({previous} -> {today})")
        self._bus.publish_sync(Event(EventType.DAILY_RESET, {"date": today.isoformat()}, self._name))

    def _halt(self, reason: str) -> None:
        logger.warning(f"[{self._name}] Halting session: {reason}")
        self._state.halt_reason = reason
        self.stop(reason)
        self._bus.publish_sync(Event(EventType.SESSION_HALTED, {"reason": reason}, self._name))

    # =========================================================================
    # Settings
    # =========================================================================

    def update_risk_settings(self, partial: Mapping[str, Any]) -> RiskSettings:
        """
        Merge a partial settings update, effective on the next tick.

        Raises:
            ConfigurationError: Invalid update; prior settings kept.
        """
        updated = self._settings.set(partial)
        self._bus.publish_sync(
            Event(EventType.SETTINGS_UPDATED, {"fields": sorted(partial)}, self._name)
        )
        return updated

    def reset_risk_settings(self) -> RiskSettings:
        """Restore the session's default settings."""
        settings = self._settings.reset()
        self._bus.publish_sync(Event(EventType.SETTINGS_UPDATED, {"reset": True}, self._name))
        return settings

    # =========================================================================
    # Queries
    # =========================================================================

    def get_stats(self, settings: RiskSettings | None = None) -> TradingStatistics:
        """Statistics over an immutable snapshot of the ledger."""
        settings = settings or self._settings.get()
        return compute_statistics(tuple(self._ledger), settings.account_balance)

    def portfolio_view(self, settings: RiskSettings | None = None) -> PortfolioView:
        """Open positions are unhedged fills still awaiting operator follow-up."""
        settings = settings or self._settings.get()
        open_trades = [t for t in tuple(self._ledger) if t.requires_attention]
        exposure: dict[str, float] = {}
        for trade in open_trades:
            exposure[trade.symbol] = exposure.get(trade.symbol, 0.0) + trade.notional

        return PortfolioView(
            account_balance=settings.account_balance,
            open_symbols=frozenset(exposure),
            open_positions=len(open_trades),
            exposure_by_symbol=exposure,
            daily_pnl=self._state.daily_pnl,
            daily_trade_count=self._state.daily_trade_count,
            last_loss_at=self._state.last_loss_at,
        )

    def get_recent_trades(self, limit: int = 20) -> list[Trade]:
        """Most recent trades, newest first."""
        snapshot = tuple(self._ledger)
        return list(reversed(snapshot))[: max(limit, 0)]

    def get_opportunities(self, limit: int = 20) -> list[Opportunity]:
        """Most recent opportunities, newest first."""
        return self._scanner.recent(max(limit, 0))

    def scan_now(self) -> list[Opportunity]:
        """Run a scan without executing anything."""
        self._scanner.expire()
        found = self._scanner.scan(self._settings.get())
        self._metrics.increment_counter("opportunities_found", len(found))
        return found

    def acknowledge_partial(self, trade_id: str) -> bool:
        """
        Clear the follow-up flag on a partial or unevenly filled trade.

        Returns:
            True if a flagged trade with that id was found.
        """
        for trade in tuple(self._ledger):
            if trade.id == trade_id and trade.requires_attention:
                trade.requires_attention = False
                logger.info(f"[{self._name}] Trade {trade_id[:8]} follow-up acknowledged")
                return True
        return False

    @property
    def decision_stats(self) -> dict[str, float]:
        evaluated = self._decisions["evaluated"]
        return {
            **self._decisions,
            "approval_rate": safe_divide(self._decisions["approved"], evaluated) * 100,
            "rejection_rate": safe_divide(self._decisions["rejected"], evaluated) * 100,
            "average_score": safe_divide(self._score_sum, self._scored),
        }

    def get_status(self) -> dict[str, Any]:
        """
        Consistent status snapshot for API and reporter consumers.

        Returns:
            Dict with lifecycle, balances, settings, statistics and metrics.
        """
        settings = self._settings.get()
        stats = self.get_stats(settings)
        portfolio = self.portfolio_view(settings)

        return {
            "name": self._name,
            "is_running": self._state.is_running,
            "halt_reason": self._state.halt_reason,
            "policy": self._policy.name,
            "trading_speed": self._speed.value,
            "trading_interval_ms": self._state.trading_interval_ms,
            "daily_trade_count": self._state.daily_trade_count,
            "max_daily_trades": settings.max_daily_trades,
            "daily_pnl": self._state.daily_pnl,
            "last_reset_date": (
                self._state.last_reset_date.isoformat() if self._state.last_reset_date else None
            ),
            "account_balance": settings.account_balance,
            "current_balance": settings.account_balance + stats.net_profit,
            "open_positions": portfolio.open_positions,
            "risk_settings": settings.model_dump(),
            "stats": stats.to_dict(),
            "decisions": self.decision_stats,
            "opportunities_tracked": len(self._scanner),
            "pending_trailing_stops": self._trailing.pending if self._trailing else 0,
            "executor": self._executor.stats,
            "metrics": self._metrics.to_dict(),
        }

    def _event_payload(self) -> dict[str, Any]:
        return {
            "is_running": self._state.is_running,
            "trading_interval_ms": self._state.trading_interval_ms,
        }

    @property
    def name(self) -> str:
        return self._name

    @property
    def is_running(self) -> bool:
        return self._state.is_running

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def settings(self) -> RiskSettings:
        return self._settings.get()

    @property
    def policy(self) -> DecisionPolicy:
        return self._policy

    @property
    def scanner(self) -> OpportunityScanner:
        return self._scanner

    @property
    def event_bus(self) -> EventBus:
        return self._bus

    @property
    def metrics(self) -> MetricsCollector:
        return self._metrics

    @property
    def has_scheduler(self) -> bool:
        """Check if a tick task is currently scheduled."""
        return self._task is not None and not self._task.done()

    @property
    def trade_count(self) -> int:
        return len(self._ledger)
