"""Main entry point for the tunnel functionality.

This module exposes the pieces a host program needs to run tunnels, keeping
the transport and session internals in ``tcp_tunnel.core.lib``.

Example:
    from tcp_tunnel.core.tunnel import Tunnel, TunnelConfig

    tunnel = Tunnel(TunnelConfig(name="web", local="127.0.0.1:8080", remote="127.0.0.1:80"))
    tunnel.start()
"""

from .config import TunnelConfig, load_config
from .lib import Tunnel, TunnelState

__all__ = ["load_config", "Tunnel", "TunnelConfig", "TunnelState"]
