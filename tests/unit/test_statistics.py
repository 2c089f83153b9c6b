"""
Unit tests for ledger statistics.

Tests aggregates, the profit-factor sentinel, drawdown and Sharpe ratio.
"""

import pytest

from arbsim.core.statistics import compute_statistics, max_drawdown_pct, sharpe_ratio
from arbsim.core.types import TradeStatus
from tests.mocks import make_trade


class TestComputeStatistics:
    """Tests for compute_statistics."""

    def test_empty_ledger(self) -> None:
        """Test every figure is zero without trades."""
        stats = compute_statistics([], 10_000.0)

        assert stats.total_trades == 0
        assert stats.win_rate == 0.0
        assert stats.profit_factor == 0.0
        assert stats.sharpe_ratio == 0.0
        assert stats.max_drawdown == 0.0

    def test_mixed_ledger(self) -> None:
        trades = [
            make_trade(2.0),
            make_trade(-1.0),
            make_trade(4.0),
            make_trade(-1.0, status=TradeStatus.STOPPED_LOSS),
        ]

        stats = compute_statistics(trades, 10_000.0)

        assert stats.total_trades == 4
        assert stats.successful_trades == 2
        assert stats.failed_trades == 1
        assert stats.stop_loss_hits == 1
        assert stats.win_rate == pytest.approx(50.0)
        assert stats.total_profit == pytest.approx(6.0)
        assert stats.total_loss == pytest.approx(2.0)
        assert stats.net_profit == pytest.approx(4.0)
        assert stats.average_win == pytest.approx(3.0)
        assert stats.average_loss == pytest.approx(1.0)
        assert stats.profit_factor == pytest.approx(3.0)
        assert stats.total_fees == pytest.approx(0.8)
        assert stats.total_volume == pytest.approx(400.0)
        assert stats.average_roi_per_trade == pytest.approx(1.0)

    def test_outcome_counts_cover_ledger(self) -> None:
        """Test successful + failed + stopped equals the total."""
        trades = [
            make_trade(1.0),
            make_trade(-0.2, status=TradeStatus.PARTIAL),
            make_trade(-0.3),
            make_trade(-1.0, status=TradeStatus.STOPPED_LOSS),
        ]

        stats = compute_statistics(trades, 10_000.0)

        assert stats.partial_trades == 1
        assert stats.failed_trades == 2
        assert stats.successful_trades + stats.failed_trades + stats.stop_loss_hits == 4

    def test_profit_factor_sentinel(self) -> None:
        """Test profits without losses report 999."""
        stats = compute_statistics([make_trade(1.0), make_trade(0.5)], 10_000.0)

        assert stats.profit_factor == 999.0

    def test_break_even_trade_is_neither(self) -> None:
        stats = compute_statistics([make_trade(0.0)], 10_000.0)

        assert stats.total_profit == 0.0
        assert stats.total_loss == 0.0
        assert stats.profit_factor == 0.0

    def test_to_dict(self) -> None:
        data = compute_statistics([make_trade(1.0)], 10_000.0).to_dict()

        assert data["total_trades"] == 1
        assert "sharpe_ratio" in data


class TestDrawdown:
    """Tests for max_drawdown_pct."""

    def test_no_losses(self) -> None:
        assert max_drawdown_pct([make_trade(5.0), make_trade(5.0)], 100.0) == 0.0

    def test_peak_to_trough(self) -> None:
        """Test drawdown is measured from the running peak."""
        trades = [make_trade(20.0), make_trade(-30.0), make_trade(5.0), make_trade(-10.0)]

        # peak 120, trough 85
        assert max_drawdown_pct(trades, 100.0) == pytest.approx(35 / 120 * 100)

    def test_loss_from_start(self) -> None:
        assert max_drawdown_pct([make_trade(-15.0)], 100.0) == pytest.approx(15.0)


class TestSharpeRatio:
    """Tests for sharpe_ratio."""

    def test_zero_without_variance(self) -> None:
        assert sharpe_ratio([0.1, 0.1, 0.1]) == 0.0
        assert sharpe_ratio([]) == 0.0

    def test_mean_over_population_deviation(self) -> None:
        # mean 2, population stdev 1
        assert sharpe_ratio([1.0, 3.0]) == pytest.approx(2.0)

    def test_identical_stop_outs_have_no_ratio(self) -> None:
        """Test a ledger of equal capped losses reports 0, not a huge ratio."""
        trades = [make_trade(-0.7, status=TradeStatus.STOPPED_LOSS) for _ in range(5)]

        stats = compute_statistics(trades, 10_000.0)

        assert stats.sharpe_ratio == 0.0
        assert sharpe_ratio([0.1] * 7) == 0.0
