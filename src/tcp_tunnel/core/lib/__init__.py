"""Core tunnel library components."""

from .session_handler import SessionHandler
from .transport import PlainTransport, TLSTransport, Transport, build_transport
from .tunnel_server import Tunnel, TunnelState
from .tunnel_stats import TunnelStats

__all__ = [
    "build_transport",
    "PlainTransport",
    "SessionHandler",
    "TLSTransport",
    "Transport",
    "Tunnel",
    "TunnelState",
    "TunnelStats",
]
