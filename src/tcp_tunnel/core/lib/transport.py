"""Plaintext and TLS transports.

A transport knows how to open the listening socket for the local side, how
to finish an accepted connection (the TLS server handshake), and how to dial
the remote side. The relay engine only talks to the :class:`Transport`
protocol, so it never branches on whether TLS is enabled.

TLS specifics:
- The local side presents the certificate and key found in one combined PEM
  file (``server.crt`` by default)
- The remote side is dialed with a TLS client handshake, verifying the peer
  unless ``insecure`` is set
- TLS 1.2 is the minimum protocol version on both sides

Example:
    transport = build_transport(config, local, remote)
    listener = transport.listen()
    conn, _ = listener.accept()
    conn = transport.handshake(conn)
    upstream = transport.dial()
"""

import socket
import ssl
from pathlib import Path
from typing import Final, Protocol

from loguru import logger

from tcp_tunnel.core.config import TunnelConfig
from tcp_tunnel.core.exceptions import SetupError
from tcp_tunnel.core.network import ResolvedAddress

REQUEST_QUEUE_SIZE: Final = 100
MINIMUM_TLS_VERSION: Final = ssl.TLSVersion.TLSv1_2


class Transport(Protocol):
    """Capability the relay engine needs from a transport."""

    def listen(self) -> socket.socket:
        """Bind and return the listening socket."""
        ...

    def handshake(self, conn: socket.socket) -> socket.socket:
        """Finish an accepted connection before relaying."""
        ...

    def dial(self) -> socket.socket:
        """Open a connection to the remote address."""
        ...


class PlainTransport:
    """Plain TCP on both sides."""

    def __init__(self, local: ResolvedAddress, remote: ResolvedAddress, dial_timeout: float) -> None:
        """Initialize the transport.

        Args:
            local: Address to listen on
            remote: Address to dial
            dial_timeout: Connect timeout in seconds
        """
        self.local = local
        self.remote = remote
        self.dial_timeout = dial_timeout

    def listen(self) -> socket.socket:
        """Bind the listening socket with address reuse."""
        sock = socket.socket(self.local.family, socket.SOCK_STREAM)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind(self.local.sockaddr)
            sock.listen(REQUEST_QUEUE_SIZE)
        except OSError as e:
            sock.close()
            raise SetupError(f"Cannot listen on {self.local}: {e}") from e
        return sock

    def handshake(self, conn: socket.socket) -> socket.socket:
        return conn

    def dial(self) -> socket.socket:
        """Connect to the remote address, bounded by the dial timeout."""
        conn = socket.create_connection(self.remote.sockaddr, timeout=self.dial_timeout)
        conn.settimeout(None)
        return conn


class TLSTransport(PlainTransport):
    """TLS terminated on the local side and originated on the remote side."""

    def __init__(
        self,
        local: ResolvedAddress,
        remote: ResolvedAddress,
        dial_timeout: float,
        server_context: ssl.SSLContext,
        client_context: ssl.SSLContext,
    ) -> None:
        super().__init__(local, remote, dial_timeout)
        self.server_context = server_context
        self.client_context = client_context

    def handshake(self, conn: socket.socket) -> socket.socket:
        """Run the server side TLS handshake, bounded by the dial timeout."""
        conn.settimeout(self.dial_timeout)
        try:
            tls_conn = self.server_context.wrap_socket(conn, server_side=True)
        except Exception:
            conn.close()
            raise
        tls_conn.settimeout(None)
        return tls_conn

    def dial(self) -> socket.socket:
        """Connect and run the client side TLS handshake.

        The server name is the host as configured, or the numeric address
        for ``:port`` remotes.
        """
        conn = socket.create_connection(self.remote.sockaddr, timeout=self.dial_timeout)
        server_hostname = self.remote.hostname or self.remote.host
        try:
            tls_conn = self.client_context.wrap_socket(conn, server_hostname=server_hostname)
        except Exception:
            conn.close()
            raise
        tls_conn.settimeout(None)
        return tls_conn


def create_server_context(cert_file: Path) -> ssl.SSLContext:
    """Create the server context from a combined certificate and key file.

    Raises:
        SetupError: If the file is missing or holds no usable key pair
    """
    if not cert_file.is_file():
        raise SetupError(f"{cert_file} missing")

    context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
    context.minimum_version = MINIMUM_TLS_VERSION
    try:
        context.load_cert_chain(certfile=cert_file, keyfile=cert_file)
    except (ssl.SSLError, OSError) as e:
        raise SetupError(f"parsing certificate {cert_file} failed: {e}") from e
    return context


def create_client_context(insecure: bool) -> ssl.SSLContext:
    """Create the client context used to dial the remote side."""
    context = ssl.create_default_context()
    context.minimum_version = MINIMUM_TLS_VERSION
    if insecure:
        logger.warning("TLS certificate verification of the remote side is disabled")
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
    return context


def build_transport(config: TunnelConfig, local: ResolvedAddress, remote: ResolvedAddress) -> Transport:
    """Select and build the transport for a tunnel.

    Args:
        config: Tunnel settings
        local: Resolved listen address
        remote: Resolved remote address

    Returns:
        Transport: Plaintext or TLS transport

    Raises:
        SetupError: If the TLS certificate is missing or invalid
    """
    if not config.tls:
        return PlainTransport(local, remote, config.dial_timeout)

    return TLSTransport(
        local,
        remote,
        config.dial_timeout,
        server_context=create_server_context(config.cert_file),
        client_context=create_client_context(config.insecure),
    )
