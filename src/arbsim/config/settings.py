"""
Application and risk settings.

Uses Pydantic Settings for type-safe process configuration with automatic
environment variable loading, and a frozen Pydantic model for the
per-session risk parameters that operators may change at runtime.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel
from pydantic_settings import BaseSettings, SettingsConfigDict

from arbsim.config.constants import (
    DEFAULT_ACCOUNT_BALANCE,
    DEFAULT_MAX_DAILY_TRADES,
    DEFAULT_MAX_DRAWDOWN_PCT,
    DEFAULT_MAX_EXPOSURE_PER_TRADE_PCT,
    DEFAULT_MINIMUM_SPREAD_PCT,
    DEFAULT_SLIPPAGE_LIMIT_PCT,
    DEFAULT_STOP_LOSS_PCT,
    DEFAULT_SYMBOLS,
    DEFAULT_TARGET_ROI_PER_TRADE_PCT,
    DEFAULT_TRADING_FEES_PCT,
    DEFAULT_VENUES,
    MARKET_UPDATE_INTERVAL_MS,
    QUOTE_FRESHNESS_MS,
    VENUE_JITTER_PCT,
)


class RiskSettings(BaseModel):
    """
    Risk parameters read by every component on each tick.

    Percent fields hold percentages (1.0 means 1%). Accepts either
    snake_case field names or their camelCase aliases.
    """

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        alias_generator=to_camel,
        populate_by_name=True,
    )

    minimum_spread_pct: float = Field(
        default=DEFAULT_MINIMUM_SPREAD_PCT,
        ge=0.0,
        le=10.0,
        description="Minimum net spread required to execute",
    )

    max_exposure_per_trade_pct: float = Field(
        default=DEFAULT_MAX_EXPOSURE_PER_TRADE_PCT,
        gt=0.0,
        le=100.0,
        description="Maximum notional per trade as percentage of balance",
    )

    max_daily_trades: int = Field(
        default=DEFAULT_MAX_DAILY_TRADES,
        ge=1,
        le=100_000,
        description="Maximum trades per calendar day",
    )

    max_drawdown_pct: float = Field(
        default=DEFAULT_MAX_DRAWDOWN_PCT,
        gt=0.0,
        le=100.0,
        description="Peak-to-trough decline that auto-stops the session",
    )

    slippage_limit_pct: float = Field(
        default=DEFAULT_SLIPPAGE_LIMIT_PCT,
        ge=0.0,
        le=5.0,
        description="Upper bound on the slippage deducted from a spread",
    )

    stop_loss_pct: float = Field(
        default=DEFAULT_STOP_LOSS_PCT,
        gt=0.0,
        le=50.0,
        description="Stop distance below the buy price",
    )

    target_roi_per_trade_pct: float = Field(
        default=DEFAULT_TARGET_ROI_PER_TRADE_PCT,
        ge=0.0,
        le=100.0,
        description="Target return per trade",
    )

    trading_fees_pct: float = Field(
        default=DEFAULT_TRADING_FEES_PCT,
        ge=0.0,
        le=5.0,
        description="Fee charged on each leg",
    )

    account_balance: float = Field(
        default=DEFAULT_ACCOUNT_BALANCE,
        gt=0.0,
        description="Starting account balance in quote currency",
    )

    @property
    def round_trip_fees_pct(self) -> float:
        """Fees for both legs."""
        return self.trading_fees_pct * 2

    @property
    def max_exposure(self) -> float:
        """Maximum notional allowed for one trade."""
        return self.account_balance * self.max_exposure_per_trade_pct / 100


class AppSettings(BaseSettings):
    """
    Process settings loaded from environment variables.

    All settings can be overridden via ARBSIM_-prefixed environment
    variables or a .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="ARBSIM_",
        case_sensitive=False,
        extra="ignore",
    )

    # =========================================================================
    # Session Configuration
    # =========================================================================

    default_mode: Literal["demo", "live", "paper", "enhanced"] = Field(
        default="demo",
        description="Session preset driven by the CLI run command",
    )

    trading_speed: Literal["slow", "medium", "fast"] = Field(
        default="medium",
        description="Initial tick cadence tier",
    )

    symbols: list[str] = Field(
        default_factory=lambda: list(DEFAULT_SYMBOLS),
        description="Symbol catalog to scan",
    )

    venues: list[str] = Field(
        default_factory=lambda: list(DEFAULT_VENUES),
        description="Venues quoted by the market data source",
    )

    random_seed: int | None = Field(
        default=None,
        description="Seed for reproducible simulations",
    )

    # =========================================================================
    # Market Data
    # =========================================================================

    quote_freshness_ms: int = Field(
        default=QUOTE_FRESHNESS_MS,
        ge=100,
        le=60_000,
        description="Quotes older than this are treated as missing",
    )

    market_update_interval_ms: int = Field(
        default=MARKET_UPDATE_INTERVAL_MS,
        ge=100,
        le=10_000,
        description="Simulated market refresh cadence",
    )

    venue_jitter_pct: float = Field(
        default=VENUE_JITTER_PCT,
        ge=0.0,
        le=5.0,
        description="Independent per-venue noise around the reference price",
    )

    # =========================================================================
    # Operation
    # =========================================================================

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging verbosity level",
    )

    log_file: Path | None = Field(
        default=None,
        description="Optional log file path",
    )

    api_host: str = Field(default="127.0.0.1", description="API bind host")
    api_port: int = Field(default=8000, ge=1, le=65535, description="API bind port")

    use_uvloop: bool = Field(
        default=True,
        description="Use uvloop for improved async performance",
    )

    # =========================================================================
    # Validators
    # =========================================================================

    @field_validator("symbols", "venues", mode="after")
    @classmethod
    def validate_not_blank(cls, v: list[str]) -> list[str]:
        """Strip whitespace and drop empty entries."""
        cleaned = [item.strip() for item in v if item.strip()]
        if not cleaned:
            raise ValueError("List cannot be empty")
        return cleaned

    @model_validator(mode="after")
    def validate_venue_count(self) -> "AppSettings":
        """A spread needs at least two venues."""
        if len(set(self.venues)) < 2:
            raise ValueError("At least two distinct venues are required")
        return self


@lru_cache(maxsize=1)
def get_settings() -> AppSettings:
    """
    Get cached settings instance.

    Uses LRU cache to ensure settings are loaded only once.
    Clear cache with `get_settings.cache_clear()` if needed.
    """
    return AppSettings()
