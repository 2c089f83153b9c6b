"""Strategy module for opportunity detection and trade approval."""

from arbsim.strategy.context import ContextBuilder, MarketContext, RiskRewardEstimator
from arbsim.strategy.policy import Decision, RiskGatePolicy, RuleValidationPolicy
from arbsim.strategy.rules import RuleValidator, TradingRule
from arbsim.strategy.scanner import OpportunityScanner


__all__ = [
    "ContextBuilder",
    "Decision",
    "MarketContext",
    "OpportunityScanner",
    "RiskGatePolicy",
    "RiskRewardEstimator",
    "RuleValidationPolicy",
    "RuleValidator",
    "TradingRule",
]
