"""
Trading statistics over the trade ledger.

A pure function of the ledger snapshot: nothing is cached between calls,
so the figures can never drift from the trades they describe.
"""

from collections.abc import Sequence
from dataclasses import asdict, dataclass

from arbsim.config.constants import PROFIT_FACTOR_SENTINEL
from arbsim.core.types import Trade, TradeStatus
from arbsim.utils.math import EPSILON, mean, population_stdev, safe_divide


@dataclass(slots=True, frozen=True)
class TradingStatistics:
    """Aggregates over a ledger snapshot. Percent fields hold percentages."""

    total_trades: int = 0
    successful_trades: int = 0
    failed_trades: int = 0  # includes partial fills
    partial_trades: int = 0
    stop_loss_hits: int = 0
    win_rate: float = 0.0
    total_profit: float = 0.0
    total_loss: float = 0.0
    net_profit: float = 0.0
    total_fees: float = 0.0
    average_win: float = 0.0
    average_loss: float = 0.0
    profit_factor: float = 0.0
    total_volume: float = 0.0
    average_roi_per_trade: float = 0.0
    max_drawdown: float = 0.0
    sharpe_ratio: float = 0.0

    def to_dict(self) -> dict[str, float | int]:
        return asdict(self)


def max_drawdown_pct(trades: Sequence[Trade], account_balance: float) -> float:
    """
    Largest peak-to-trough decline of the running balance.

    Args:
        trades: Ledger, oldest first.
        account_balance: Starting balance.

    Returns:
        Maximum drawdown in percent.
    """
    balance = account_balance
    peak = account_balance
    worst = 0.0

    for trade in trades:
        balance += trade.net_profit
        peak = max(peak, balance)
        drawdown = safe_divide(peak - balance, peak) * 100
        worst = max(worst, drawdown)

    return worst


def sharpe_ratio(returns_pct: Sequence[float]) -> float:
    """Mean over standard deviation of per-trade returns; 0 without variance."""
    deviation = population_stdev(returns_pct)
    if deviation < EPSILON:
        return 0.0
    return mean(returns_pct) / deviation


def compute_statistics(trades: Sequence[Trade], account_balance: float) -> TradingStatistics:
    """
    Compute statistics for a ledger snapshot.

    Args:
        trades: Terminal trades, oldest first.
        account_balance: Starting balance for drawdown and returns.

    Returns:
        TradingStatistics; all rates and ratios are 0 for an empty ledger.
    """
    total = len(trades)
    if total == 0:
        return TradingStatistics()

    successful = sum(1 for t in trades if t.status == TradeStatus.COMPLETED)
    partial = sum(1 for t in trades if t.status == TradeStatus.PARTIAL)
    failed = sum(1 for t in trades if t.status == TradeStatus.FAILED) + partial
    stopped = sum(1 for t in trades if t.status == TradeStatus.STOPPED_LOSS)

    wins = [t.net_profit for t in trades if t.net_profit > 0]
    losses = [-t.net_profit for t in trades if t.net_profit < 0]
    total_profit = sum(wins)
    total_loss = sum(losses)

    if total_loss > 0:
        profit_factor = total_profit / total_loss
    else:
        profit_factor = PROFIT_FACTOR_SENTINEL if total_profit > 0 else 0.0

    returns = [safe_divide(t.net_profit, account_balance) * 100 for t in trades]

    return TradingStatistics(
        total_trades=total,
        successful_trades=successful,
        failed_trades=failed,
        partial_trades=partial,
        stop_loss_hits=stopped,
        win_rate=successful / total * 100,
        total_profit=total_profit,
        total_loss=total_loss,
        net_profit=sum(t.net_profit for t in trades),
        total_fees=sum(t.fees for t in trades),
        average_win=mean(wins),
        average_loss=mean(losses),
        profit_factor=profit_factor,
        total_volume=sum(t.notional for t in trades),
        average_roi_per_trade=mean([t.roi_pct for t in trades]),
        max_drawdown=max_drawdown_pct(trades, account_balance),
        sharpe_ratio=sharpe_ratio(returns),
    )
