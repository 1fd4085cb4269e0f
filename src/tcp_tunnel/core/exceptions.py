"""Custom exceptions for the tunnel.

Only configuration and setup problems are raised to the caller. Everything
that happens after the listener is bound (accept errors, dial failures,
handshake failures, I/O errors inside a session) is logged and stays scoped
to the session it happened in.

Example:
    try:
        tunnel.start()
    except TunnelError as e:
        console.print(f"[red]Tunnel failed to start: {e}")
"""


class TunnelError(Exception):
    """Base exception for tunnel errors."""


class ConfigError(TunnelError):
    """Raised when a tunnel configuration is malformed."""


class ResolutionError(TunnelError):
    """Raised when a local or remote address cannot be resolved."""


class SetupError(TunnelError):
    """Raised when the transport cannot be built (certificate, bind)."""
