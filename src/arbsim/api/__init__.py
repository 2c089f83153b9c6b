"""HTTP API for session control and monitoring."""

from arbsim.api.server import create_app, main


__all__ = [
    "create_app",
    "main",
]
