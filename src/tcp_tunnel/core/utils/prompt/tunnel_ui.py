"""Live dashboard for running tunnels."""

import threading
import time
from datetime import UTC, datetime

from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from tcp_tunnel.core.lib.tunnel_server import Tunnel
from tcp_tunnel.core.utils.utils import format_bytes, format_uptime

from .prompt import PromptHandler


class TunnelUI(PromptHandler):
    """Render one row of statistics per tunnel."""

    def __init__(self, tunnels: list[Tunnel]) -> None:
        """Initialize the dashboard.

        Args:
            tunnels: Tunnels to display, in display order
        """
        super().__init__()
        self.tunnels = tunnels
        self.running = True
        self._start_time = time.monotonic()
        self._refresh_rate = 0.5

    def _generate_table(self) -> Table:
        """Generate statistics table."""
        table = Table(box=None, padding=(0, 1))
        table.add_column("Tunnel", style="cyan", no_wrap=True)
        table.add_column("Route", style="cyan", no_wrap=True)
        table.add_column("State", no_wrap=True)
        table.add_column("Active", style="green", justify="right")
        table.add_column("Total", style="green", justify="right")
        table.add_column("Failed", style="red", justify="right")
        table.add_column("Bandwidth", style="green", justify="right")
        table.add_column("Transferred", style="green", justify="right")
        table.add_column("Uptime", style="green", justify="right")

        spinner_text = self._spinner.render(time.monotonic() - self._start_time)
        now = datetime.now(tz=UTC)
        for tunnel in self.tunnels:
            stats = tunnel.stats.snapshot()
            table.add_row(
                tunnel.name,
                f"{tunnel.config.local} -> {tunnel.config.remote}",
                tunnel.state.value,
                str(stats["active_sessions"]),
                str(stats["total_sessions"]),
                str(stats["failed_sessions"]),
                Text.assemble(spinner_text, f" {format_bytes(tunnel.stats.get_bandwidth())}/s"),
                format_bytes(stats["bytes_sent"] + stats["bytes_received"]),
                format_uptime(now - tunnel.stats.start_time),
            )
        return table

    def _generate_display(self) -> Panel:
        """Generate the main display panel."""
        title = Text(f"TCP Tunnels ({len(self.tunnels)})", style="bold cyan")
        return Panel(
            self._generate_table(),
            title=title,
            subtitle="Press Ctrl+C to exit",
            border_style="blue",
            padding=(1, 2),
        )

    def run(self) -> None:
        """Refresh the dashboard until ``stop()`` is called."""
        with self.create_live_display(self._generate_display(), refresh_per_second=4) as live:
            while self.running:
                live.update(self._generate_display())
                time.sleep(self._refresh_rate)

    def stop(self) -> None:
        self.running = False


def create_tunnel_ui(tunnels: list[Tunnel]) -> tuple[TunnelUI, threading.Thread]:
    """Create the dashboard and the thread that runs it."""
    ui = TunnelUI(tunnels)
    return ui, threading.Thread(target=ui.run, name="tunnel-ui", daemon=True)
