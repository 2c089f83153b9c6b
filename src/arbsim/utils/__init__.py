"""Utility functions for the arbitrage simulator."""

from arbsim.utils.math import mean, pct_change, population_stdev, safe_divide
from arbsim.utils.time import (
    LatencyTimer,
    format_duration_s,
    get_timestamp_ms,
    get_timestamp_us,
    utc_now,
)


__all__ = [
    "LatencyTimer",
    "format_duration_s",
    "get_timestamp_ms",
    "get_timestamp_us",
    "mean",
    "pct_change",
    "population_stdev",
    "safe_divide",
    "utc_now",
]
