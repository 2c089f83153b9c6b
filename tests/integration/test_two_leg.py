"""
Integration tests for two-leg execution.

Tests TwoLegExecutor against scripted gateways and the paper gateway
backed by a quote book.
"""

from collections.abc import Callable

import pytest

from arbsim.config.settings import RiskSettings
from arbsim.config.store import InMemorySettingsStore
from arbsim.core.errors import ExecutionError
from arbsim.core.session import TradingSession
from arbsim.core.types import OrderSide, TradeStatus
from arbsim.execution.executor import TwoLegExecutor
from arbsim.execution.gateway import PaperGateway
from arbsim.market.quotes import QuoteBook
from arbsim.strategy.policy import RiskGatePolicy
from arbsim.strategy.scanner import OpportunityScanner
from tests.mocks import (
    NOW,
    FrozenClock,
    ScriptedGateway,
    ScriptedRandom,
    filled,
    make_opportunity,
    rejected,
)


def make_executor(gateway: ScriptedGateway | PaperGateway) -> TwoLegExecutor:
    return TwoLegExecutor(gateway, clock=FrozenClock())


class TestTwoLegExecutor:
    """Tests for TwoLegExecutor outcomes."""

    @pytest.mark.asyncio
    async def test_both_legs_fill(self, risk_settings: RiskSettings) -> None:
        """Test both fills book the spread less per-leg fees."""
        gateway = ScriptedGateway()
        executor = make_executor(gateway)

        trade = await executor.execute(make_opportunity(), risk_settings)

        assert trade.status == TradeStatus.COMPLETED
        assert trade.buy_order_id == "buy-1"
        assert trade.sell_order_id == "sell-1"
        assert trade.gross_profit == pytest.approx(0.6)
        assert trade.fees == pytest.approx(0.1 + 0.1006)
        assert trade.net_profit == pytest.approx(0.6 - 0.2006)
        assert trade.requires_attention is False
        assert trade.timestamp == NOW
        assert {o["side"] for o in gateway.orders} == {OrderSide.BUY, OrderSide.SELL}
        assert gateway.orders[0]["venue"] == "Binance"

    @pytest.mark.asyncio
    async def test_sell_leg_rejected_is_partial(self, risk_settings: RiskSettings) -> None:
        """Test a lone buy fill is flagged for operator follow-up."""
        executor = make_executor(ScriptedGateway(sell=rejected()))

        trade = await executor.execute(make_opportunity(), risk_settings)

        assert trade.status == TradeStatus.PARTIAL
        assert trade.buy_order_id == "buy-1"
        assert trade.sell_order_id is None
        assert trade.requires_attention
        assert trade.executed_qty == 1.0
        assert trade.fees == pytest.approx(0.1)
        assert trade.net_profit == pytest.approx(-0.1)
        assert trade.error == "sell leg failed: Insufficient liquidity"

    @pytest.mark.asyncio
    async def test_buy_leg_raises_is_partial(self, risk_settings: RiskSettings) -> None:
        """Test a leg that raises counts as failed, not as an execution crash."""
        gateway = ScriptedGateway(buy=ExecutionError("No fresh quote for BTCUSDT on Binance"))
        executor = make_executor(gateway)

        trade = await executor.execute(make_opportunity(), risk_settings)

        assert trade.status == TradeStatus.PARTIAL
        assert trade.buy_order_id is None
        assert trade.sell_order_id == "sell-1"
        assert trade.error == "buy leg failed: No fresh quote for BTCUSDT on Binance"

    @pytest.mark.asyncio
    async def test_both_legs_fail(self, risk_settings: RiskSettings) -> None:
        executor = make_executor(
            ScriptedGateway(buy=rejected("Rate limited"), sell=rejected())
        )

        trade = await executor.execute(make_opportunity(), risk_settings)

        assert trade.status == TradeStatus.FAILED
        assert trade.executed_qty == 0.0
        assert trade.net_profit == 0.0
        assert trade.error == "buy: Rate limited; sell: Insufficient liquidity"
        assert not trade.requires_attention

    @pytest.mark.asyncio
    async def test_sell_through_stop(self, risk_settings: RiskSettings) -> None:
        """Test a sell fill at or below the stop books the risk amount."""
        executor = make_executor(ScriptedGateway(sell=filled("sell-1", 98.0)))

        trade = await executor.execute(make_opportunity(), risk_settings)

        assert trade.status == TradeStatus.STOPPED_LOSS
        assert trade.net_profit == pytest.approx(-1.0)
        assert trade.gross_profit - trade.fees == pytest.approx(trade.net_profit)

    @pytest.mark.asyncio
    async def test_uneven_fill_quantities(self, risk_settings: RiskSettings) -> None:
        """Test profit is booked on the smaller quantity and the remainder flagged."""
        executor = make_executor(
            ScriptedGateway(
                buy=filled("buy-1", 100.0, quantity=1.0, fees=0.05),
                sell=filled("sell-1", 100.6, quantity=0.5, fees=0.05),
            )
        )

        trade = await executor.execute(make_opportunity(), risk_settings)

        assert trade.executed_qty == 0.5
        assert trade.gross_profit == pytest.approx(0.3)
        assert trade.fees == pytest.approx(0.1)
        assert trade.net_profit == pytest.approx(0.2)
        assert trade.status == TradeStatus.COMPLETED
        assert trade.requires_attention
        assert trade.error == "unhedged 0.5 after fills of buy 1 / sell 0.5"

    @pytest.mark.asyncio
    async def test_stats(self, risk_settings: RiskSettings) -> None:
        executor = make_executor(ScriptedGateway(sell=rejected()))

        await executor.execute(make_opportunity(), risk_settings)

        assert executor.stats["total"] == 1
        assert executor.stats["partial"] == 1


class TestPaperGateway:
    """Tests for PaperGateway fills against a quote book."""

    @pytest.fixture
    def gateway(self, spread_book: QuoteBook) -> PaperGateway:
        return PaperGateway(spread_book, ScriptedRandom(), latency_ms=(0.0, 0.0))

    @pytest.mark.asyncio
    async def test_buy_fills_at_ask(self, gateway: PaperGateway) -> None:
        result = await gateway.place_order("Binance", "BTCUSDT", OrderSide.BUY, 1.0, 100.0)

        assert result.success
        assert result.executed_price == 100.0
        assert result.fees is None
        assert result.order_id is not None
        assert result.order_id.startswith("binance-")

    @pytest.mark.asyncio
    async def test_sell_fills_at_bid(self, gateway: PaperGateway) -> None:
        result = await gateway.place_order("Bybit", "BTCUSDT", OrderSide.SELL, 1.0, 100.6)

        assert result.success
        assert result.executed_price == pytest.approx(100.6)

    @pytest.mark.asyncio
    async def test_price_moved(self, gateway: PaperGateway) -> None:
        """Test an ask beyond the 0.3% tolerance is refused."""
        result = await gateway.place_order("Binance", "BTCUSDT", OrderSide.BUY, 1.0, 99.0)

        assert not result.success
        assert result.error is not None
        assert "moved beyond tolerance" in result.error

    @pytest.mark.asyncio
    async def test_fill_miss(self, spread_book: QuoteBook) -> None:
        gateway = PaperGateway(spread_book, ScriptedRandom([0.0, 0.99]), latency_ms=(0.0, 0.0))

        result = await gateway.place_order("Binance", "BTCUSDT", OrderSide.BUY, 1.0, 100.0)

        assert result.error == "Order not filled"

    @pytest.mark.asyncio
    async def test_non_positive_quantity(self, gateway: PaperGateway) -> None:
        result = await gateway.place_order("Binance", "BTCUSDT", OrderSide.BUY, 0.0, 100.0)

        assert result.error == "Quantity must be positive"

    @pytest.mark.asyncio
    async def test_missing_quote_raises(self, gateway: PaperGateway) -> None:
        with pytest.raises(ExecutionError) as exc_info:
            await gateway.place_order("Kraken", "BTCUSDT", OrderSide.SELL, 1.0, 100.6)

        assert exc_info.value.context == {"venue": "Kraken", "symbol": "BTCUSDT", "side": "sell"}
        assert gateway.orders_placed == 1

    @pytest.mark.asyncio
    async def test_paper_round_trip(self, gateway: PaperGateway, risk_settings: RiskSettings) -> None:
        """Test both legs through the executor against live quotes."""
        trade = await make_executor(gateway).execute(make_opportunity(), risk_settings)

        assert trade.status == TradeStatus.COMPLETED
        assert trade.net_profit == pytest.approx(0.6 - 0.2006)

    @pytest.mark.asyncio
    async def test_missing_venue_leg_becomes_partial(
        self, gateway: PaperGateway, risk_settings: RiskSettings
    ) -> None:
        opportunity = make_opportunity(sell_venue="Kraken")

        trade = await make_executor(gateway).execute(opportunity, risk_settings)

        assert trade.status == TradeStatus.PARTIAL
        assert trade.requires_attention
        assert trade.error is not None
        assert "No fresh quote for BTCUSDT on Kraken" in trade.error

    @pytest.mark.asyncio
    async def test_fees_follow_settings(self, gateway: PaperGateway) -> None:
        """Test fills are charged the fee rate handed to each execution."""
        executor = make_executor(gateway)

        trade = await executor.execute(make_opportunity(), RiskSettings(trading_fees_pct=0.5))

        assert trade.fees == pytest.approx((100.0 + 100.6) * 0.005)
        assert trade.net_profit == pytest.approx(0.6 - 1.003)


class TestPaperSession:
    """Tests for a session trading through the paper gateway."""

    @pytest.mark.asyncio
    async def test_fee_update_applies_next_tick(
        self,
        spread_book: QuoteBook,
        make_scanner: Callable[..., OpportunityScanner],
        clock: FrozenClock,
    ) -> None:
        """Test a fee change reaches the filled legs on the following tick."""
        gateway = PaperGateway(spread_book, ScriptedRandom(), latency_ms=(0.0, 0.0))
        session = TradingSession(
            "paper",
            make_scanner(spread_book),
            RiskGatePolicy(),
            TwoLegExecutor(gateway, clock=clock),
            InMemorySettingsStore(),
            clock=clock,
        )
        first = await session.tick()

        session.update_risk_settings({"tradingFeesPct": 0.2, "minimumSpreadPct": 0.1})
        second = await session.tick()

        assert first is not None
        assert second is not None
        notional_sum = (100.0 + 100.6) * first.executed_qty
        assert first.fees == pytest.approx(notional_sum * 0.001)
        assert second.fees == pytest.approx(notional_sum * 0.002)
        assert second.status == TradeStatus.COMPLETED
