"""Relay module."""

from .app import create_app, main
from .routes import router, set_relay
from .service import RelayResult, UpstreamRelay, error_envelope

__all__ = [
    "create_app",
    "main",
    "router",
    "set_relay",
    "RelayResult",
    "UpstreamRelay",
    "error_envelope",
]
