"""Configuration module for the arbitrage simulator."""

from arbsim.config.constants import (
    DEFAULT_SYMBOLS,
    DEFAULT_VENUES,
    SPEED_FAST_MS,
    SPEED_MEDIUM_MS,
    SPEED_SLOW_MS,
)
from arbsim.config.settings import AppSettings, RiskSettings, get_settings


__all__ = [
    "AppSettings",
    "DEFAULT_SYMBOLS",
    "DEFAULT_VENUES",
    "RiskSettings",
    "SPEED_FAST_MS",
    "SPEED_MEDIUM_MS",
    "SPEED_SLOW_MS",
    "get_settings",
]
