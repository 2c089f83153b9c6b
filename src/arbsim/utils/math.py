"""
Mathematical utilities for trading statistics.

Division-safe helpers used by the scanner, executors and the
statistics engine so that empty inputs never raise.
"""

import statistics
from collections.abc import Sequence
from typing import Final


# Epsilon for floating point comparisons
EPSILON: Final[float] = 1e-10


def safe_divide(numerator: float, denominator: float, default: float = 0.0) -> float:
    """
    Safely divide two numbers, returning default on division by zero.

    Args:
        numerator: The dividend.
        denominator: The divisor.
        default: Value to return if denominator is zero.

    Returns:
        Result of division or default value.
    """
    if abs(denominator) < EPSILON:
        return default
    return numerator / denominator


def pct_change(old: float, new: float) -> float:
    """
    Percentage change from old to new.

    Example:
        >>> pct_change(100.0, 102.0)
        2.0
    """
    return safe_divide(new - old, old) * 100


def mean(values: Sequence[float]) -> float:
    """Arithmetic mean, 0 for an empty sequence."""
    if not values:
        return 0.0
    return sum(values) / len(values)


def population_stdev(values: Sequence[float]) -> float:
    """Population standard deviation, 0 for fewer than two values."""
    if len(values) < 2:
        return 0.0
    return statistics.pstdev(values)
