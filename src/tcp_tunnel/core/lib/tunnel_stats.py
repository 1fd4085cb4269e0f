"""Statistics tracking for a tunnel.

Every :class:`~tcp_tunnel.core.lib.tunnel_server.Tunnel` owns one
:class:`TunnelStats`. Sessions report to it from their own threads, the
dashboard reads from it, so all updates go through a lock.

Tracked values:
- Active and total sessions
- Sessions that ended with an error
- Bytes relayed towards the remote side and back
- Bandwidth over the last few seconds

Example:
    stats = TunnelStats()
    stats.session_started()
    stats.update_bytes(sent=1024, received=2048)
    stats.session_ended(failed=False)
"""

import threading
import time
from collections import deque
from datetime import UTC, datetime

BANDWIDTH_WINDOW = 5  # Seconds


class TunnelStats:
    """Thread-safe statistics tracker for one tunnel."""

    def __init__(self) -> None:
        self.active_sessions = 0
        self.total_sessions = 0
        self.failed_sessions = 0
        self.total_bytes_sent = 0
        self.total_bytes_received = 0
        # One [second, bytes] bucket per wall clock second
        self.bandwidth_history: deque[list[int]] = deque(maxlen=BANDWIDTH_WINDOW + 1)
        self.start_time = datetime.now(tz=UTC)
        self._lock = threading.Lock()

    def update_bytes(self, sent: int, received: int) -> None:
        """Update byte transfer statistics.

        Args:
            sent: Bytes relayed from the local side to the remote side
            received: Bytes relayed from the remote side to the local side
        """
        with self._lock:
            second = int(time.time())
            self.total_bytes_sent += sent
            self.total_bytes_received += received
            if self.bandwidth_history and self.bandwidth_history[-1][0] == second:
                self.bandwidth_history[-1][1] += sent + received
            else:
                self.bandwidth_history.append([second, sent + received])

    def get_bandwidth(self) -> float:
        """Average bandwidth over the last few seconds in bytes per second."""
        oldest = int(time.time()) - BANDWIDTH_WINDOW + 1
        with self._lock:
            total_bytes = sum(bytes_ for second, bytes_ in self.bandwidth_history if second >= oldest)
            return total_bytes / BANDWIDTH_WINDOW

    def session_started(self) -> None:
        with self._lock:
            self.active_sessions += 1
            self.total_sessions += 1

    def session_ended(self, failed: bool) -> None:
        with self._lock:
            self.active_sessions -= 1
            if failed:
                self.failed_sessions += 1

    def snapshot(self) -> dict[str, int]:
        """Consistent copy of the counters."""
        with self._lock:
            return {
                "active_sessions": self.active_sessions,
                "total_sessions": self.total_sessions,
                "failed_sessions": self.failed_sessions,
                "bytes_sent": self.total_bytes_sent,
                "bytes_received": self.total_bytes_received,
            }
