"""
Unit tests for RuleValidator.

Tests the weighted score, blocking categories, fail-closed checks and the
indicators behind the entry and volatility rules.
"""

from datetime import timedelta

import pytest

from arbsim.core.types import Opportunity, PortfolioView, Recommendation
from arbsim.strategy.context import MarketContext
from arbsim.strategy.rules import (
    RuleCategory,
    RulePriority,
    RuleThresholds,
    RuleValidator,
    TradingRule,
    average_true_range_pct,
    breakout_deviation_pct,
    build_default_rules,
    recommend,
    trend_strength_pct,
)
from tests.mocks import NOW, make_opportunity


# 19 steady steps followed by a jump: trending, breaking out, ATR ~1.14%
TRENDING_PRICES = tuple(100.0 + i for i in range(19)) + (125.0,)


@pytest.fixture
def opportunity() -> Opportunity:
    """Opportunity that satisfies every default rule."""
    return make_opportunity(
        net_spread_pct=0.5,
        risk_pct=2.5,
        reward_pct=6.0,
        enable_trailing_stop=True,
    )


def make_context(**overrides: object) -> MarketContext:
    fields: dict[str, object] = {
        "prices": TRENDING_PRICES,
        "volume": 2_000_000.0,
        "spread": 0.006,
        "now": NOW,
        "portfolio": PortfolioView(account_balance=10_000.0),
    }
    fields.update(overrides)
    return MarketContext(**fields)  # type: ignore[arg-type]


class TestIndicators:
    """Tests for the price-series indicators."""

    def test_trend_strength(self) -> None:
        """Test absolute move across the window."""
        assert trend_strength_pct([100.0, 90.0]) == pytest.approx(10.0)
        assert trend_strength_pct([100.0]) is None

    def test_breakout_deviation(self) -> None:
        """Test recent average against the prior average."""
        deviation = breakout_deviation_pct(TRENDING_PRICES)

        # recent mean 118.2 vs prior mean 107
        assert deviation == pytest.approx((118.2 - 107.0) / 107.0 * 100)

    def test_breakout_needs_history(self) -> None:
        """Test too few points yields no signal."""
        assert breakout_deviation_pct(TRENDING_PRICES[:10]) is None

    def test_average_true_range(self) -> None:
        """Test ATR over the last 14 steps."""
        atr = average_true_range_pct(TRENDING_PRICES)

        assert atr == pytest.approx(20 / 14 / 125 * 100)
        assert average_true_range_pct(TRENDING_PRICES[:5]) is None


class TestRecommend:
    """Tests for the recommendation policy."""

    def test_execute_requires_clean_pass(self) -> None:
        assert recommend(100.0, []) == Recommendation.EXECUTE
        assert recommend(90.0, [RuleCategory.ENTRY]) == Recommendation.REVIEW

    def test_low_score_rejects(self) -> None:
        assert recommend(59.9, [RuleCategory.ENTRY]) == Recommendation.REJECT

    def test_blocking_category_rejects(self) -> None:
        """Test Risk/Reward and Daily Risk failures reject regardless of score."""
        assert recommend(95.0, [RuleCategory.RISK_REWARD]) == Recommendation.REJECT
        assert recommend(95.0, [RuleCategory.DAILY_RISK]) == Recommendation.REJECT

    def test_middle_band_reviews(self) -> None:
        assert recommend(70.0, [RuleCategory.VOLATILITY]) == Recommendation.REVIEW


class TestRuleValidator:
    """Tests for RuleValidator."""

    def test_default_battery(self) -> None:
        """Test the battery covers every category."""
        rules = build_default_rules()

        assert len(rules) == 18
        assert {r.category for r in rules} == set(RuleCategory)
        assert sum(r.priority for r in rules) == 47

    def test_all_rules_pass(self, opportunity: Opportunity) -> None:
        """Test a clean context scores 100 and executes."""
        verdict = RuleValidator().validate(opportunity, make_context())

        assert verdict.passed
        assert verdict.failed_rule_names == ()
        assert verdict.score == pytest.approx(100.0)
        assert verdict.recommendation == Recommendation.EXECUTE

    def test_risk_reward_failure_rejects(self, opportunity: Opportunity) -> None:
        """Test a single blocking failure rejects despite a high score."""
        opportunity.reward_pct = 4.5  # ratio 1.8

        verdict = RuleValidator().validate(opportunity, make_context())

        assert verdict.failed_rule_names == ("Risk/Reward: Risk Reward Ratio",)
        assert verdict.score == pytest.approx(44 / 47 * 100)
        assert verdict.recommendation == Recommendation.REJECT

    def test_off_hours_goes_to_review(self, opportunity: Opportunity) -> None:
        """Test a non-blocking failure above 80 is a review."""
        context = make_context(now=NOW.replace(hour=3))

        verdict = RuleValidator().validate(opportunity, context)

        assert verdict.failed_rule_names == ("Market Session: High Liquidity Hours",)
        assert verdict.recommendation == Recommendation.REVIEW

    def test_open_position_blocks_same_symbol(self, opportunity: Opportunity) -> None:
        """Test the position-control rule sees the portfolio."""
        portfolio = PortfolioView(
            account_balance=10_000.0,
            open_symbols=frozenset({"BTCUSDT"}),
            open_positions=1,
            exposure_by_symbol={"BTCUSDT": 100.0},
        )

        verdict = RuleValidator().validate(opportunity, make_context(portfolio=portfolio))

        assert "Position Control: One Trade Per Asset" in verdict.failed_rule_names

    def test_recent_loss_triggers_cooldown(self, opportunity: Opportunity) -> None:
        """Test a loss inside the cooldown window rejects."""
        portfolio = PortfolioView(
            account_balance=10_000.0,
            last_loss_at=NOW - timedelta(minutes=10),
        )

        verdict = RuleValidator().validate(opportunity, make_context(portfolio=portfolio))

        assert verdict.failed_rule_names == ("Daily Risk Management: Cooldown Period",)
        assert verdict.recommendation == Recommendation.REJECT

    def test_scheduled_event_buffer(self, opportunity: Opportunity) -> None:
        """Test the news rule honors configured events."""
        validator = RuleValidator(
            thresholds=RuleThresholds(scheduled_events=(NOW + timedelta(minutes=15),))
        )

        verdict = validator.validate(opportunity, make_context())

        assert verdict.failed_rule_names == ("News/Events: Event Buffer",)

    def test_short_history_fails_entry_rules(self, opportunity: Opportunity) -> None:
        """Test missing price history fails closed for entry signals."""
        verdict = RuleValidator().validate(opportunity, make_context(prices=()))

        assert "Entry: Trend Confirmation" in verdict.failed_rule_names
        assert "Entry: Breakout Signal" in verdict.failed_rule_names
        # No ATR without history counts as normal volatility
        assert "Volatility: ATR Volatility Check" not in verdict.failed_rule_names

    def test_raising_rule_counts_as_failed(self, opportunity: Opportunity) -> None:
        """Test a check that raises fails closed and validation continues."""

        def boom(opp: Opportunity, ctx: MarketContext) -> bool:
            raise ZeroDivisionError("bad input")

        rules = [
            TradingRule("Broken", RuleCategory.ENTRY, RulePriority.HIGH, "", boom),
            TradingRule("Fine", RuleCategory.ENTRY, RulePriority.HIGH, "", lambda o, c: True),
        ]

        verdict = RuleValidator(rules).validate(opportunity, make_context())

        assert verdict.failed_rule_names == ("Entry: Broken (Error)",)
        assert verdict.score == pytest.approx(50.0)
        assert verdict.recommendation == Recommendation.REJECT

    def test_disabled_rules_are_skipped(self, opportunity: Opportunity) -> None:
        """Test disabling a rule removes it from the score."""
        validator = RuleValidator()
        context = make_context(now=NOW.replace(hour=3))

        assert validator.set_enabled("High Liquidity Hours", False)
        assert not validator.set_enabled("No Such Rule", False)

        verdict = validator.validate(opportunity, context)

        assert verdict.passed
        assert verdict.recommendation == Recommendation.EXECUTE

    def test_no_enabled_rules_scores_full(self, opportunity: Opportunity) -> None:
        validator = RuleValidator(rules=[])

        verdict = validator.validate(opportunity, make_context())

        assert verdict.score == 100.0
        assert verdict.recommendation == Recommendation.EXECUTE

    def test_catalog_groups_by_category(self) -> None:
        """Test the serializable catalog."""
        catalog = RuleValidator().catalog()

        assert list(catalog)[0] == "Entry"
        assert len(catalog["Risk/Reward"]) == 3
        first = catalog["Entry"][0]
        assert first["name"] == "Trend Confirmation"
        assert first["priority"] == "high"
        assert first["weight"] == 3

    def test_stats(self, opportunity: Opportunity) -> None:
        """Test running approval statistics."""
        validator = RuleValidator()
        validator.validate(opportunity, make_context())
        opportunity.reward_pct = 4.5
        validator.validate(opportunity, make_context())

        stats = validator.stats

        assert stats["validations"] == 2
        assert stats["execute"] == 1
        assert stats["reject"] == 1
        assert stats["approval_rate"] == pytest.approx(50.0)
        assert stats["average_score"] == pytest.approx((100 + 44 / 47 * 100) / 2)
