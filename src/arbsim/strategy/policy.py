"""
Pluggable trade-approval policies.

A session asks its policy whether a sized opportunity may execute. The
basic policy runs the fast risk gate; the rule policy runs the full
validator battery.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from arbsim.config.settings import RiskSettings
from arbsim.core.types import Opportunity, PortfolioView, Recommendation, RuleVerdict
from arbsim.execution.risk import RiskGate
from arbsim.strategy.context import ContextBuilder, RiskRewardEstimator
from arbsim.strategy.rules import RuleValidator


@dataclass(slots=True, frozen=True)
class Decision:
    """Approval outcome for one opportunity."""

    approved: bool
    reason: str = ""
    verdict: RuleVerdict | None = None

    @property
    def is_review(self) -> bool:
        return self.verdict is not None and self.verdict.recommendation == Recommendation.REVIEW


class DecisionPolicy(Protocol):
    """Approves or rejects sized opportunities."""

    name: str

    def evaluate(
        self,
        opportunity: Opportunity,
        settings: RiskSettings,
        portfolio: PortfolioView,
        drawdown_pct: float,
        now: datetime,
    ) -> Decision:
        ...


class RiskGatePolicy:
    """Basic engines: three ordered risk checks."""

    name = "risk_gate"

    def __init__(self, gate: RiskGate | None = None) -> None:
        self.gate = gate or RiskGate()

    def evaluate(
        self,
        opportunity: Opportunity,
        settings: RiskSettings,
        portfolio: PortfolioView,
        drawdown_pct: float,
        now: datetime,
    ) -> Decision:
        result = self.gate.check(opportunity, settings, drawdown_pct)
        return Decision(result.passed, result.reason)


class RuleValidationPolicy:
    """Enhanced engines: annotate risk/reward, then run the rule battery."""

    name = "rule_validator"

    def __init__(
        self,
        validator: RuleValidator,
        context_builder: ContextBuilder,
        estimator: RiskRewardEstimator | None = None,
    ) -> None:
        self.validator = validator
        self._context_builder = context_builder
        self._estimator = estimator

    def evaluate(
        self,
        opportunity: Opportunity,
        settings: RiskSettings,
        portfolio: PortfolioView,
        drawdown_pct: float,
        now: datetime,
    ) -> Decision:
        if self._estimator is not None:
            self._estimator.annotate(opportunity, settings)

        context = self._context_builder.build(opportunity, portfolio, settings, now)
        verdict = self.validator.validate(opportunity, context)
        opportunity.verdict = verdict

        approved = verdict.recommendation == Recommendation.EXECUTE
        reason = "" if approved else (
            f"{verdict.recommendation.value} (score {verdict.score:.1f}): "
            + ", ".join(verdict.failed_rule_names)
        )
        return Decision(approved, reason, verdict)
