"""
Deferred trailing-stop adjustment.

After a profitable fill, a detached task waits a random delay and, with a
fixed probability, credits a bounded bonus to the trade's net profit. The
trade's status never changes and each trade is evaluated at most once.
"""

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable

from arbsim.config.constants import (
    TRAILING_BONUS_FRACTION,
    TRAILING_DELAY_S,
    TRAILING_PROBABILITY,
)
from arbsim.core.types import RandomSource, Trade, TradeStatus
from arbsim.utils.math import safe_divide


logger = logging.getLogger(__name__)


AdjustmentCallback = Callable[[Trade, float], None]


class TrailingStopManager:
    """Schedules and applies one-time trailing-stop bonuses."""

    def __init__(
        self,
        rng: RandomSource | None = None,
        delay_range_s: tuple[float, float] = TRAILING_DELAY_S,
        probability: float = TRAILING_PROBABILITY,
        bonus_fraction: float = TRAILING_BONUS_FRACTION,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """
        Initialize manager.

        Args:
            rng: Random source for delay and probability rolls.
            delay_range_s: Min/max seconds before re-evaluation.
            probability: Chance the bonus is captured.
            bonus_fraction: Bonus as a share of the trade's net profit.
            sleep: Awaitable used for the delay.
        """
        self._rng = rng or random.Random()
        self._delay_range_s = delay_range_s
        self._probability = probability
        self._bonus_fraction = bonus_fraction
        self._sleep = sleep
        self._tasks: set[asyncio.Task[None]] = set()
        self._applied = 0

    @staticmethod
    def is_eligible(trade: Trade) -> bool:
        """Only profitable completed trades that were never evaluated."""
        return (
            trade.status == TradeStatus.COMPLETED
            and trade.net_profit > 0
            and not trade.trailing_applied
        )

    def schedule(
        self,
        trade: Trade,
        on_adjusted: AdjustmentCallback | None = None,
    ) -> asyncio.Task[None] | None:
        """
        Schedule the deferred re-evaluation of a trade.

        Args:
            trade: Trade to re-evaluate.
            on_adjusted: Called with (trade, bonus) when a bonus is applied.

        Returns:
            The background task, or None if the trade is not eligible.
        """
        if not self.is_eligible(trade):
            return None

        delay = self._rng.uniform(*self._delay_range_s)
        task = asyncio.create_task(self._run(trade, delay, on_adjusted))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run(
        self,
        trade: Trade,
        delay: float,
        on_adjusted: AdjustmentCallback | None,
    ) -> None:
        await self._sleep(delay)
        bonus = self.evaluate(trade)
        if bonus > 0 and on_adjusted is not None:
            try:
                on_adjusted(trade, bonus)
            except Exception as e:
                logger.error(f"Trailing-stop callback error for trade {trade.id}: {e}")

    def evaluate(self, trade: Trade) -> float:
        """
        Roll the capture probability once for a trade.

        Returns:
            Bonus credited, 0 if the roll missed or the trade was already evaluated.
        """
        if not self.is_eligible(trade):
            return 0.0
        if self._rng.random() >= self._probability:
            trade.trailing_applied = True
            return 0.0
        return self.apply(trade)

    def apply(self, trade: Trade) -> float:
        """
        Credit the bonus unconditionally, at most once per trade.

        Returns:
            Bonus credited, 0 if the trade is not eligible.
        """
        if not self.is_eligible(trade):
            return 0.0

        bonus = trade.net_profit * self._bonus_fraction
        trade.trailing_applied = True
        trade.trailing_bonus = bonus
        trade.net_profit += bonus
        trade.roi_pct = safe_divide(trade.net_profit, trade.notional) * 100
        self._applied += 1

        logger.info(f"Trailing stop captured +{bonus:.4f} on {trade.symbol} trade {trade.id[:8]}")
        return bonus

    def cancel_all(self) -> int:
        """Cancel outstanding re-evaluations; returns how many were cancelled."""
        cancelled = 0
        for task in list(self._tasks):
            if not task.done():
                task.cancel()
                cancelled += 1
        return cancelled

    @property
    def pending(self) -> int:
        return sum(1 for task in self._tasks if not task.done())

    @property
    def applied(self) -> int:
        return self._applied
