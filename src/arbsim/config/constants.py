"""
Simulation constants and configuration values.

This module contains all hardcoded values used throughout the simulator.
Values are organized by category for easy maintenance and auditing.
Percent-denominated values hold percentages (1.0 means 1%).
"""

from typing import Final


# =============================================================================
# Risk Settings Defaults
# =============================================================================

DEFAULT_MINIMUM_SPREAD_PCT: Final[float] = 0.15
DEFAULT_MAX_EXPOSURE_PER_TRADE_PCT: Final[float] = 5.0
DEFAULT_MAX_DAILY_TRADES: Final[int] = 200
DEFAULT_MAX_DRAWDOWN_PCT: Final[float] = 10.0
DEFAULT_SLIPPAGE_LIMIT_PCT: Final[float] = 0.3
DEFAULT_STOP_LOSS_PCT: Final[float] = 1.0
DEFAULT_TARGET_ROI_PER_TRADE_PCT: Final[float] = 0.2
DEFAULT_TRADING_FEES_PCT: Final[float] = 0.1
DEFAULT_ACCOUNT_BALANCE: Final[float] = 10_000.0


# =============================================================================
# Trading Speed Tiers
# =============================================================================

SPEED_SLOW_MS: Final[int] = 5000
SPEED_MEDIUM_MS: Final[int] = 3000
SPEED_FAST_MS: Final[int] = 1000


# =============================================================================
# Symbol Catalog
# =============================================================================

# Reference mid prices used by the simulated market
REFERENCE_PRICES: Final[dict[str, float]] = {
    "BTCUSDT": 43_000.0,
    "ETHUSDT": 2_600.0,
    "SOLUSDT": 100.0,
    "ADAUSDT": 0.45,
    "DOTUSDT": 7.5,
}

# Configured base order size per symbol (base asset units)
BASE_SIZES: Final[dict[str, float]] = {
    "BTCUSDT": 0.01,
    "ETHUSDT": 0.1,
    "SOLUSDT": 1.0,
    "ADAUSDT": 100.0,
    "DOTUSDT": 10.0,
}

DEFAULT_SYMBOLS: Final[tuple[str, ...]] = tuple(REFERENCE_PRICES)
DEFAULT_VENUES: Final[tuple[str, ...]] = ("Binance", "Bybit", "OKX")

# Fallback base size for symbols missing from the catalog
DEFAULT_BASE_SIZE: Final[float] = 1.0


# =============================================================================
# Market Data
# =============================================================================

QUOTE_FRESHNESS_MS: Final[int] = 5000
MARKET_UPDATE_INTERVAL_MS: Final[int] = 1000

# Per-venue jitter around the reference price (percent)
VENUE_JITTER_PCT: Final[float] = 0.3

# Bid-ask half spread on each venue book (percent)
BOOK_HALF_SPREAD_PCT: Final[float] = 0.02

# Reference price random walk per update (fraction)
REFERENCE_VOLATILITY: Final[float] = 0.0005

# Simulated 24h quote volume range per venue (notional)
VENUE_VOLUME_RANGE: Final[tuple[float, float]] = (500_000.0, 5_500_000.0)

PRICE_HISTORY_SIZE: Final[int] = 50


# =============================================================================
# Opportunity Scanner
# =============================================================================

OPPORTUNITY_TTL_MS: Final[int] = 30_000
OPPORTUNITY_GRACE_MS: Final[int] = 10_000
OPPORTUNITY_CAPACITY: Final[int] = 100
SCANNER_FLOOR_PCT: Final[float] = 0.0
SLIPPAGE_RANGE_PCT: Final[tuple[float, float]] = (0.05, 0.15)

# Fraction of the thinner venue's volume available to one trade
VOLUME_FRACTION: Final[float] = 0.01

# Confidence and risk-level scaling
CONFIDENCE_SPREAD_SCALE_PCT: Final[float] = 1.0
CONFIDENCE_VOLUME_SCALE: Final[float] = 10_000_000.0
LOW_RISK_SPREAD_PCT: Final[float] = 0.5
MEDIUM_RISK_SPREAD_PCT: Final[float] = 0.25


# =============================================================================
# Simulated Execution
# =============================================================================

EXECUTION_LATENCY_MS: Final[tuple[float, float]] = (50.0, 200.0)
MARKET_MOVE_RANGE: Final[tuple[float, float]] = (-0.0005, 0.0005)
BASE_SUCCESS_RATE: Final[float] = 0.85
MAX_SUCCESS_RATE: Final[float] = 0.95
SPREAD_BONUS_SCALE_PCT: Final[float] = 0.5
MAX_SPREAD_BONUS: Final[float] = 0.1

# Per-trade risk never exceeds this share of the account balance
MAX_RISK_BALANCE_FRACTION: Final[float] = 0.005

# Penalty on a failed fill, as a share of the planned risk amount
FAILURE_PENALTY_FRACTION: Final[float] = 0.1

# Paper gateway fill probability
PAPER_FILL_RATE: Final[float] = 0.95


# =============================================================================
# Trailing Stop
# =============================================================================

TRAILING_DELAY_S: Final[tuple[float, float]] = (10.0, 40.0)
TRAILING_PROBABILITY: Final[float] = 0.3
TRAILING_BONUS_FRACTION: Final[float] = 0.2


# =============================================================================
# Demo Liveliness
# =============================================================================

LIVELINESS_FORCE_PROBABILITY: Final[float] = 0.8
LIVELINESS_REVIEW_OVERRIDE_PROBABILITY: Final[float] = 0.7
LIVELINESS_SPREAD_PREMIUM_PCT: Final[float] = 0.05
LIVELINESS_SPREAD_RANGE_PCT: Final[float] = 0.3


# =============================================================================
# Rule Thresholds
# =============================================================================

TREND_MIN_PCT: Final[float] = 2.0
BREAKOUT_MIN_POINTS: Final[int] = 20
BREAKOUT_SHORT_WINDOW: Final[int] = 5
BREAKOUT_DEVIATION_PCT: Final[float] = 2.0
BREAKOUT_VOLUME_FLOOR: Final[float] = 500_000.0
CONFLUENCE_VOLUME_FLOOR: Final[float] = 1_000_000.0
CONFLUENCE_MOMENTUM_PCT: Final[float] = 1.0
CONFLUENCE_SPREAD_FLOOR: Final[float] = 0.002
CONFLUENCE_MIN_SIGNALS: Final[int] = 3
MIN_RISK_PCT: Final[float] = 2.0
MIN_REWARD_PCT: Final[float] = 4.0
MIN_REWARD_RISK_RATIO: Final[float] = 2.0
ATR_PERIOD: Final[int] = 14
ATR_MIN_PCT: Final[float] = 0.5
ATR_MAX_PCT: Final[float] = 5.0
SESSION_START_HOUR_UTC: Final[int] = 8
SESSION_END_HOUR_UTC: Final[int] = 22
SESSION_VOLUME_FLOOR: Final[float] = 1_000_000.0
EVENT_BUFFER_MINUTES: Final[int] = 30
MAX_CONCURRENT_POSITIONS: Final[int] = 3
MAX_ASSET_EXPOSURE_PCT: Final[float] = 10.0
DAILY_LOSS_FLOOR_PCT: Final[float] = -5.0
RULE_DAILY_TRADE_CAP: Final[int] = 20
LOSS_COOLDOWN_MINUTES: Final[int] = 60
MIN_NET_PROFIT_PCT: Final[float] = 0.3

EXECUTE_SCORE: Final[float] = 80.0
REVIEW_SCORE: Final[float] = 60.0

# Reward multiple drawn when annotating risk/reward (reward = risk x multiple)
REWARD_MULTIPLE_RANGE: Final[tuple[float, float]] = (1.5, 3.5)


# =============================================================================
# Statistics
# =============================================================================

# Reported profit factor when there are profits and no losses
PROFIT_FACTOR_SENTINEL: Final[float] = 999.0

LEDGER_CAPACITY: Final[int] = 1000


# =============================================================================
# Logging & Telemetry
# =============================================================================

LOG_FORMAT: Final[str] = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
LOG_DATE_FORMAT: Final[str] = "%Y-%m-%d %H:%M:%S"

# Status reporter refresh interval (seconds)
REPORT_INTERVAL: Final[float] = 1.0

# Maximum log queue size
MAX_LOG_QUEUE_SIZE: Final[int] = 10_000
