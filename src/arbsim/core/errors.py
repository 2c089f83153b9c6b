"""
Exception hierarchy for the simulator.

Every error carries a machine-readable code and an optional context dict
so that the API layer can surface it without string parsing.
"""

from typing import Any


class ArbsimError(Exception):
    """Base class for simulator errors."""

    code = "ARBSIM_ERROR"

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def to_dict(self) -> dict[str, Any]:
        """Serialize for API responses."""
        return {"error": self.code, "message": self.message, "context": self.context}


class ConfigurationError(ArbsimError):
    """Raised when a risk settings mutation is missing or invalid."""

    code = "CONFIGURATION_ERROR"


class SessionError(ArbsimError):
    """Raised for unknown session modes or invalid lifecycle requests."""

    code = "SESSION_ERROR"


class ExecutionError(ArbsimError):
    """Raised by execution gateways when an order leg cannot be placed."""

    code = "EXECUTION_ERROR"


class UnknownSessionError(SessionError):
    """Raised when no session exists for a requested mode."""

    code = "UNKNOWN_SESSION"
