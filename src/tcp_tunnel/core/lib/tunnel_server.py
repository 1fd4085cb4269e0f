"""Tunnel lifecycle and accept loop.

A :class:`Tunnel` listens on its local address and relays every accepted
connection to its remote address in an independent session thread.

Lifecycle:
    IDLE -> LISTENING -> STOPPING -> STOPPED

- ``listen()`` resolves both addresses, builds the transport, binds and then
  runs the accept loop in the calling thread until the tunnel is stopped
- ``start()`` does the same setup in the caller but runs the accept loop on
  a daemon thread
- ``shutdown()`` sets the stop signal and closes the listener. Sessions that
  are already relaying keep running until their own sockets finish

Setup problems (bad address, missing certificate, port in use) raise a
:class:`~tcp_tunnel.core.exceptions.TunnelError` and the tunnel never
reaches ``LISTENING``. Anything after that is logged and never escalates.

Example:
    tunnel = Tunnel(TunnelConfig(name="web", local="127.0.0.1:8080", remote="127.0.0.1:80"))
    tunnel.start()
    ...
    tunnel.shutdown()
"""

import contextlib
import enum
import selectors
import socket
import threading
from typing import Final

from loguru import logger

from tcp_tunnel.core.config import TunnelConfig
from tcp_tunnel.core.exceptions import TunnelError
from tcp_tunnel.core.lib.session_handler import SessionHandler
from tcp_tunnel.core.lib.transport import Transport, build_transport
from tcp_tunnel.core.lib.tunnel_stats import TunnelStats
from tcp_tunnel.core.network import ResolvedAddress, is_local_address, resolve_address

POLL_INTERVAL: Final = 0.5  # Seconds between stop signal checks


class TunnelState(enum.Enum):
    """Lifecycle states of a tunnel."""

    IDLE = "idle"
    LISTENING = "listening"
    STOPPING = "stopping"
    STOPPED = "stopped"


class Tunnel:
    """Relay connections from a local address to a remote address."""

    def __init__(self, config: TunnelConfig) -> None:
        """Initialize the tunnel.

        Args:
            config: Tunnel settings, not modified afterwards
        """
        self.config = config
        self.stats = TunnelStats()
        self.state = TunnelState.IDLE
        self._lock = threading.Lock()
        self._listener: socket.socket | None = None
        self._quit: threading.Event | None = None
        self._stopped = threading.Event()

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def address(self) -> tuple[str, int] | None:
        """Bound address of the listener while the tunnel is listening."""
        with self._lock:
            if self._listener is None:
                return None
            return self._listener.getsockname()[:2]

    def _open(self) -> tuple[socket.socket, threading.Event, Transport, ResolvedAddress, ResolvedAddress]:
        """Resolve, build the transport and bind; enter LISTENING."""
        with self._lock:
            if self.state in (TunnelState.LISTENING, TunnelState.STOPPING):
                raise TunnelError(f"Tunnel '{self.name}' is already {self.state.value}")

        laddr = resolve_address(self.config.local)
        raddr = resolve_address(self.config.remote)
        if not is_local_address(laddr.host):
            logger.warning(f"Tunnel '{self.name}': {laddr.host} is not assigned to a local interface")

        transport = build_transport(self.config, laddr, raddr)
        listener = transport.listen()
        listener.setblocking(False)

        with self._lock:
            self._listener = listener
            self._quit = threading.Event()
            self._stopped.clear()
            self.state = TunnelState.LISTENING
            quit_signal = self._quit

        logger.info(
            f"Starting Tunnel '{self.name}' on {laddr} -> {raddr} "
            f"(TLS: {self.config.tls}, Insecure: {self.config.insecure})"
        )
        return listener, quit_signal, transport, laddr, raddr

    def listen(self) -> None:
        """Run the tunnel in the calling thread until ``shutdown()`` is called.

        Raises:
            TunnelError: If setup fails, before anything is accepted
        """
        self._serve(*self._open())

    def start(self) -> threading.Thread:
        """Set up the tunnel and run its accept loop on a daemon thread.

        Returns:
            threading.Thread: The accept loop thread

        Raises:
            TunnelError: If setup fails
        """
        args = self._open()
        thread = threading.Thread(target=self._serve, args=args, name=f"tunnel-{self.name}", daemon=True)
        thread.start()
        return thread

    def _serve(
        self,
        listener: socket.socket,
        quit_signal: threading.Event,
        transport: Transport,
        laddr: ResolvedAddress,
        raddr: ResolvedAddress,
    ) -> None:
        try:
            self._accept_loop(listener, quit_signal, transport, laddr, raddr)
        finally:
            with self._lock:
                self.state = TunnelState.STOPPED
            self._stopped.set()
            logger.info(f"Tunnel '{self.name}' stopped")

    def _accept_loop(
        self,
        listener: socket.socket,
        quit_signal: threading.Event,
        transport: Transport,
        laddr: ResolvedAddress,
        raddr: ResolvedAddress,
    ) -> None:
        """Accept connections until the stop signal is set."""
        with selectors.DefaultSelector() as selector:
            selector.register(listener, selectors.EVENT_READ)
            while not quit_signal.is_set():
                try:
                    ready = selector.select(POLL_INTERVAL)
                    if not ready:
                        continue
                    conn, _ = listener.accept()
                except BlockingIOError:
                    continue
                except (OSError, ValueError) as e:
                    if quit_signal.is_set():
                        return
                    logger.warning(f"Failed to accept connection {e!r}")
                    continue

                conn.setblocking(True)
                handler = SessionHandler(
                    conn, transport, self.stats, name=self.name, local=laddr, remote=raddr
                )
                threading.Thread(target=handler.handle, name=f"tunnel-{self.name}-session", daemon=True).start()

    def shutdown(self) -> None:
        """Stop accepting connections and release the listener.

        Safe to call before ``listen()`` and more than once; only the first
        call after a successful setup has an effect. In-flight sessions are
        not touched.
        """
        with self._lock:
            listener, quit_signal = self._listener, self._quit
            if listener is None or quit_signal is None or quit_signal.is_set():
                return
            logger.info(f"Stopping Tunnel '{self.name}' ({self.config.local})")
            quit_signal.set()
            self._listener = None
            self.state = TunnelState.STOPPING

        with contextlib.suppress(OSError):
            listener.shutdown(socket.SHUT_RDWR)
        try:
            listener.close()
        except OSError as e:
            logger.error(f"Tunnel '{self.name}': closing listener failed: {e}")

    def wait_stopped(self, timeout: float | None = None) -> bool:
        """Block until the accept loop has returned.

        Returns:
            bool: True if the tunnel reached STOPPED within ``timeout``
        """
        return self._stopped.wait(timeout)
