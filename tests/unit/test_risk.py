"""
Unit tests for RiskGate and the trade-approval policies.

Tests check ordering, short-circuiting and rejection counters.
"""

import pytest

from arbsim.config.settings import RiskSettings
from arbsim.core.types import PortfolioView, Recommendation
from arbsim.execution.risk import RiskCheckResult, RiskGate
from arbsim.market.history import PriceHistory
from arbsim.strategy.context import ContextBuilder, RiskRewardEstimator
from arbsim.strategy.policy import RiskGatePolicy, RuleValidationPolicy
from arbsim.strategy.rules import RuleValidator
from tests.mocks import NOW, ScriptedRandom, make_opportunity


class TestRiskCheckResult:
    """Tests for RiskCheckResult."""

    def test_truthiness(self) -> None:
        assert RiskCheckResult(True)
        assert not RiskCheckResult(False, "nope", "spread")

    def test_repr(self) -> None:
        result = RiskCheckResult(False, "too thin", "spread")

        assert "spread" in repr(result)
        assert "too thin" in repr(result)


class TestRiskGate:
    """Tests for RiskGate."""

    @pytest.fixture
    def gate(self) -> RiskGate:
        return RiskGate()

    def test_passes_healthy_opportunity(self, gate: RiskGate, risk_settings: RiskSettings) -> None:
        """Test 0.35% net spread on a 100 notional passes defaults."""
        result = gate.check(make_opportunity(), risk_settings, 0.0)

        assert result.passed
        assert result.check == ""

    def test_rejects_thin_spread(self, gate: RiskGate, risk_settings: RiskSettings) -> None:
        """Test net spread below the minimum is rejected first."""
        result = gate.check(make_opportunity(net_spread_pct=0.05), risk_settings, 0.0)

        assert not result.passed
        assert result.check == "spread"
        assert "below minimum" in result.reason

    def test_spread_at_minimum_passes(self, gate: RiskGate, risk_settings: RiskSettings) -> None:
        result = gate.check(make_opportunity(net_spread_pct=0.15), risk_settings, 0.0)

        assert result.passed

    def test_rejects_oversized_notional(self, gate: RiskGate, risk_settings: RiskSettings) -> None:
        """Test notional above 5% of a 10,000 balance is rejected."""
        result = gate.check(make_opportunity(notional_size=500.01), risk_settings, 0.0)

        assert not result.passed
        assert result.check == "exposure"

    def test_rejects_excess_drawdown(self, gate: RiskGate, risk_settings: RiskSettings) -> None:
        result = gate.check(make_opportunity(), risk_settings, 10.5)

        assert not result.passed
        assert result.check == "drawdown"

    def test_first_failure_wins(self, gate: RiskGate, risk_settings: RiskSettings) -> None:
        """Test checks short-circuit in order: spread, exposure, drawdown."""
        opportunity = make_opportunity(net_spread_pct=0.01, notional_size=10_000.0)

        result = gate.check(opportunity, risk_settings, 50.0)

        assert result.check == "spread"
        assert gate.to_dict()["rejections"] == {"spread": 1, "exposure": 0, "drawdown": 0}

    def test_counters(self, gate: RiskGate, risk_settings: RiskSettings) -> None:
        gate.check(make_opportunity(), risk_settings, 0.0)
        gate.check(make_opportunity(notional_size=1_000.0), risk_settings, 0.0)

        stats = gate.to_dict()

        assert stats["checks"] == 2
        assert stats["rejections"] == {"spread": 0, "exposure": 1, "drawdown": 0}

    def test_reads_settings_per_call(self, gate: RiskGate) -> None:
        """Test a raised minimum applies immediately."""
        strict = RiskSettings(minimum_spread_pct=0.5)

        assert not gate.check(make_opportunity(), strict, 0.0)


class TestPolicies:
    """Tests for the pluggable approval policies."""

    def test_risk_gate_policy(self, risk_settings: RiskSettings) -> None:
        policy = RiskGatePolicy()
        portfolio = PortfolioView(account_balance=risk_settings.account_balance)

        approved = policy.evaluate(make_opportunity(), risk_settings, portfolio, 0.0, NOW)
        rejected = policy.evaluate(
            make_opportunity(net_spread_pct=0.0), risk_settings, portfolio, 0.0, NOW
        )

        assert approved.approved
        assert not rejected.approved
        assert rejected.verdict is None
        assert "below minimum" in rejected.reason

    def test_rule_policy_annotates_and_validates(self) -> None:
        """Test the rule policy sets risk/reward and attaches the verdict."""
        history = PriceHistory()
        for i in range(19):
            history.record("BTCUSDT", 100.0 + i)
        history.record("BTCUSDT", 125.0)
        # multiple 1.5 + 0.5 * (3.5 - 1.5) = 2.5 -> reward 6.25
        estimator = RiskRewardEstimator(ScriptedRandom())
        policy = RuleValidationPolicy(RuleValidator(), ContextBuilder(history), estimator)
        settings = RiskSettings(stop_loss_pct=2.5)
        opportunity = make_opportunity(net_spread_pct=0.5)

        decision = policy.evaluate(
            opportunity,
            settings,
            PortfolioView(account_balance=settings.account_balance),
            0.0,
            NOW,
        )

        assert opportunity.risk_pct == 2.5
        assert opportunity.reward_pct == pytest.approx(6.25)
        assert opportunity.enable_trailing_stop
        assert opportunity.verdict is decision.verdict
        assert decision.approved
        assert decision.verdict is not None
        assert decision.verdict.recommendation == Recommendation.EXECUTE

    def test_rule_policy_review_is_not_approved(self) -> None:
        """Test review and reject both block execution with a reason."""
        policy = RuleValidationPolicy(RuleValidator(), ContextBuilder(PriceHistory()))
        opportunity = make_opportunity(risk_pct=2.5, reward_pct=6.0, enable_trailing_stop=True)

        decision = policy.evaluate(
            opportunity,
            RiskSettings(),
            PortfolioView(account_balance=10_000.0),
            0.0,
            NOW.replace(hour=3),
        )

        assert not decision.approved
        assert decision.reason.startswith("review")
        assert "Entry: Trend Confirmation" in decision.reason
