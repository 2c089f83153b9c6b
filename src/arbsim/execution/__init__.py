"""Execution module for sizing, risk gating and simulated order execution."""

from arbsim.execution.executor import ExecutorConfig, SimulatedExecutor, TwoLegExecutor
from arbsim.execution.gateway import PaperGateway
from arbsim.execution.risk import RiskCheckResult, RiskGate
from arbsim.execution.sizing import PositionSizer
from arbsim.execution.trailing import TrailingStopManager


__all__ = [
    "ExecutorConfig",
    "PaperGateway",
    "PositionSizer",
    "RiskCheckResult",
    "RiskGate",
    "SimulatedExecutor",
    "TrailingStopManager",
    "TwoLegExecutor",
]
