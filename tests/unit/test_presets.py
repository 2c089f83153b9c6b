"""
Unit tests for session presets.
"""

import pytest

from arbsim.core.errors import UnknownSessionError
from arbsim.core.presets import SessionMode, build_session, default_risk_settings
from arbsim.market.quotes import QuoteBook
from tests.mocks import FrozenClock, ScriptedRandom


VENUES = ("Binance", "Bybit", "OKX")


class TestSessionMode:
    """Tests for SessionMode."""

    def test_parse(self) -> None:
        assert SessionMode.parse("paper") == SessionMode.PAPER
        assert SessionMode.parse(SessionMode.DEMO) == SessionMode.DEMO

    def test_parse_unknown(self) -> None:
        with pytest.raises(UnknownSessionError) as exc_info:
            SessionMode.parse("backtest")

        assert exc_info.value.context["allowed"] == ["demo", "live", "paper", "enhanced"]


class TestDefaults:
    """Tests for per-mode default risk settings."""

    @pytest.mark.parametrize(
        "mode,field,expected",
        [
            ("demo", "max_daily_trades", 200),
            ("live", "max_daily_trades", 500),
            ("paper", "account_balance", 100.0),
            ("enhanced", "stop_loss_pct", 2.5),
        ],
    )
    def test_overrides(self, mode: str, field: str, expected: float) -> None:
        assert getattr(default_risk_settings(mode), field) == expected


class TestBuildSession:
    """Tests for build_session."""

    @pytest.mark.parametrize(
        "mode,policy",
        [
            (SessionMode.DEMO, "risk_gate"),
            (SessionMode.LIVE, "risk_gate"),
            (SessionMode.PAPER, "risk_gate"),
            (SessionMode.ENHANCED, "rule_validator"),
        ],
    )
    def test_wiring(self, quote_book: QuoteBook, mode: SessionMode, policy: str) -> None:
        session = build_session(mode, quote_book, venues=VENUES, rng=ScriptedRandom())

        assert session.name == mode.value
        assert session.policy.name == policy
        assert not session.is_running
        assert session.get_status()["executor"]["total"] == 0

    def test_enhanced_tracks_trailing_stops(self, quote_book: QuoteBook) -> None:
        session = build_session("enhanced", quote_book, venues=VENUES, rng=ScriptedRandom())

        assert session.get_status()["pending_trailing_stops"] == 0

    @pytest.mark.asyncio
    async def test_demo_trades_without_quotes(self, quote_book: QuoteBook) -> None:
        """Test the demo flavor synthesizes an opportunity on an empty book."""
        # liveliness rolls, then latency, movement and fill rolls
        rng = ScriptedRandom([0.1, 0.0, 0.0, 0.99, 0.5, 0.5, 0.0, 0.5, 0.0])
        session = build_session(
            "demo",
            quote_book,
            venues=VENUES,
            symbols=["BTCUSDT"],
            rng=rng,
            clock=FrozenClock(),
        )

        trade = await session.tick()

        assert trade is not None
        assert trade.symbol == "BTCUSDT"
        assert session.trade_count == 1
