"""Relay session for one accepted connection.

A session owns two sockets: the accepted local connection and the
connection dialed to the remote side. Bytes are copied in both directions by
two threads. Each copy thread publishes exactly one terminal result (``None``
for a clean EOF, the exception otherwise) to a two slot queue. The first
result ends the session: both sockets are shut down and closed, and the
second result is dropped.

Failures never leave the session:
- Unreadable peer address, failed TLS handshake or failed dial close the
  local connection and return
- An I/O error while relaying is logged as a warning

Example:
    handler = SessionHandler(conn, transport, stats, name="web", local=local, remote=remote)
    threading.Thread(target=handler.handle, daemon=True).start()
"""

import contextlib
import queue
import socket
import threading
import time
from typing import Final

from loguru import logger

from tcp_tunnel.core.lib.transport import Transport
from tcp_tunnel.core.lib.tunnel_stats import TunnelStats
from tcp_tunnel.core.network import ResolvedAddress

BUFFER_SIZE: Final = 4096
STATS_FLUSH_INTERVAL: Final = 0.5  # Seconds between byte count updates of the shared stats

# Terminal result of one copy direction
CopyResult = Exception | None


def close_connection(conn: socket.socket) -> None:
    """Shut down and close a socket.

    The shutdown wakes a copy thread that is still blocked reading from it.
    """
    with contextlib.suppress(OSError):
        conn.shutdown(socket.SHUT_RDWR)
    conn.close()


class SessionHandler:
    """Handle one accepted connection until either side finishes."""

    def __init__(
        self,
        request: socket.socket,
        transport: Transport,
        stats: TunnelStats,
        *,
        name: str,
        local: ResolvedAddress,
        remote: ResolvedAddress,
    ) -> None:
        self.request = request
        self.transport = transport
        self.stats = stats
        self.name = name
        self.local = local
        self.remote = remote

    def _copy(self, src: socket.socket, dst: socket.socket, upstream: bool, results: queue.Queue) -> None:
        """Copy from ``src`` to ``dst`` until EOF or error, then publish the result.

        Byte counts are collected locally and handed to the shared stats at
        most every ``STATS_FLUSH_INTERVAL`` seconds, and once more at the end.
        """
        result: CopyResult = None
        pending = 0
        last_flush = time.monotonic()
        try:
            while True:
                data = src.recv(BUFFER_SIZE)
                if not data:
                    break
                dst.sendall(data)
                pending += len(data)
                now = time.monotonic()
                if now - last_flush >= STATS_FLUSH_INTERVAL:
                    self._flush_bytes(pending, upstream)
                    pending, last_flush = 0, now
        except Exception as exc:
            result = exc
        finally:
            self._flush_bytes(pending, upstream)
            results.put(result)

    def _flush_bytes(self, count: int, upstream: bool) -> None:
        if not count:
            return
        if upstream:
            self.stats.update_bytes(count, 0)
        else:
            self.stats.update_bytes(0, count)

    def splice(self, lconn: socket.socket, rconn: socket.socket) -> CopyResult:
        """Relay bytes both ways and tear down on the first terminal result.

        Returns:
            CopyResult: Result of the direction that finished first
        """
        results: queue.Queue[CopyResult] = queue.Queue(maxsize=2)
        for src, dst, upstream in ((lconn, rconn, True), (rconn, lconn, False)):
            threading.Thread(
                target=self._copy,
                args=(src, dst, upstream, results),
                name=f"tunnel-{self.name}-{'up' if upstream else 'down'}",
                daemon=True,
            ).start()

        first = results.get()
        close_connection(lconn)
        close_connection(rconn)
        return first

    def handle(self) -> None:
        """Dial the remote side and relay until the session ends."""
        try:
            port = self.request.getpeername()[1]
        except OSError as e:
            logger.warning(f"Tunnel '{self.name}': cannot read peer address: {e}")
            self.request.close()
            return

        try:
            lconn = self.transport.handshake(self.request)
        except Exception as e:
            logger.warning(f"connection Tunnel '{port}' handshake failed: {e}")
            self.request.close()
            return

        try:
            rconn = self.transport.dial()
        except Exception as e:
            logger.warning(f"connection Tunnel '{port}' cannot reach {self.remote}: {e}")
            close_connection(lconn)
            return

        self.stats.session_started()
        logger.info(f"connection Tunnel '{port}' established ({self.local}->{self.remote})")
        error = self.splice(lconn, rconn)
        self.stats.session_ended(failed=error is not None)
        if error is not None:
            logger.warning(f"connection Tunnel '{port}' failed with: {error!r}")
        logger.info(f"connection Tunnel '{port}' closed ({self.local}->{self.remote})")
