"""Mock implementations for testing."""

from tests.mocks.executor import ScriptedExecutor
from tests.mocks.factories import (
    NOW,
    NOW_MS,
    FrozenClock,
    make_opportunity,
    make_quote,
    make_trade,
    no_sleep,
)
from tests.mocks.gateway import ScriptedGateway, filled, rejected
from tests.mocks.rng import ScriptedRandom


__all__ = [
    "NOW",
    "NOW_MS",
    "FrozenClock",
    "ScriptedExecutor",
    "ScriptedGateway",
    "ScriptedRandom",
    "filled",
    "make_opportunity",
    "make_quote",
    "make_trade",
    "no_sleep",
    "rejected",
]
