"""Simulation module for market data and demo liveliness."""

from arbsim.simulation.liveliness import DemoLiveliness, LivelinessConfig
from arbsim.simulation.market import SimulatedMarket


__all__ = [
    "DemoLiveliness",
    "LivelinessConfig",
    "SimulatedMarket",
]
