"""Telemetry module for logging, metrics, and reporting."""

from arbsim.telemetry.logger import AsyncLogger, setup_logging
from arbsim.telemetry.metrics import MetricsCollector
from arbsim.telemetry.reporter import SessionReporter


__all__ = [
    "AsyncLogger",
    "MetricsCollector",
    "SessionReporter",
    "setup_logging",
]
