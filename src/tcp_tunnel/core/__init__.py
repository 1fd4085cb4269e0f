"""Core tunnel implementation.

This package contains the core components of the TCP tunnel:
- Address resolution and interface checks
- Plaintext and TLS transports
- The accept loop and per-connection relay sessions
- Statistics tracking
- User interface components
- Exception handling

The command-line interface lives in ``tcp_tunnel.cmd`` and only wires these
pieces together.
"""
