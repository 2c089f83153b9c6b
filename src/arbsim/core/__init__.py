"""Core module containing shared types, errors, the event bus and statistics.

The session controller and presets live in `arbsim.core.session` and
`arbsim.core.presets` and are imported from there directly.
"""

from arbsim.core.errors import (
    ArbsimError,
    ConfigurationError,
    ExecutionError,
    SessionError,
    UnknownSessionError,
)
from arbsim.core.event_bus import Event, EventBus, EventType
from arbsim.core.statistics import TradingStatistics, compute_statistics
from arbsim.core.types import (
    Opportunity,
    OpportunityStatus,
    OrderResult,
    OrderSide,
    Recommendation,
    RiskLevel,
    RuleVerdict,
    Trade,
    TradeStatus,
    TradingSpeed,
    VenueQuote,
)


__all__ = [
    "ArbsimError",
    "ConfigurationError",
    "Event",
    "EventBus",
    "EventType",
    "ExecutionError",
    "Opportunity",
    "OpportunityStatus",
    "OrderResult",
    "OrderSide",
    "Recommendation",
    "RiskLevel",
    "RuleVerdict",
    "SessionError",
    "Trade",
    "TradeStatus",
    "TradingSpeed",
    "TradingStatistics",
    "UnknownSessionError",
    "VenueQuote",
    "compute_statistics",
]
