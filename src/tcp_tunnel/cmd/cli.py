"""Command-line interface for the TCP tunnel.

This module is the process host for tunnels. It handles:
- Command-line argument parsing
- Loading tunnel configurations from TOML
- Starting every tunnel on its own accept thread
- Calling ``shutdown()`` on SIGINT and SIGTERM
- Error reporting
- The optional live dashboard

Example:
    # Run a single tunnel from the command line:
    $ tcp-tunnel run --local 127.0.0.1:8080 --remote 127.0.0.1:80

    # Run all tunnels of a configuration file:
    $ tcp-tunnel serve tunnels.toml --ui
"""

import signal
import threading
from pathlib import Path

import typer
from loguru import logger
from rich.console import Console

from tcp_tunnel import __version__
from tcp_tunnel.core.config import DEFAULT_CERT_FILE, DEFAULT_DIAL_TIMEOUT, TunnelConfig, load_config
from tcp_tunnel.core.exceptions import TunnelError
from tcp_tunnel.core.tunnel import Tunnel
from tcp_tunnel.core.utils.log_config import LOG_DIR, configure_logging
from tcp_tunnel.core.utils.prompt import create_tunnel_ui

console = Console()
app = typer.Typer(help="Transparent TCP tunnel with optional TLS")

JOIN_TIMEOUT = 5.0  # Seconds to wait for accept loops after shutdown


@app.callback(invoke_without_command=True)
def version_callback():
    """Show version information."""
    console.print(f"[cyan]TCP Tunnel v{__version__}[/cyan]")


def run_tunnels(configs: list[TunnelConfig], ui: bool = False) -> None:
    """Start the tunnels and block until SIGINT or SIGTERM.

    Args:
        configs: Tunnels to run
        ui: Show the live dashboard

    Raises:
        TunnelError: If any tunnel fails to start; tunnels already started are stopped
    """
    stop = threading.Event()
    tunnels: list[Tunnel] = []
    threads: list[threading.Thread] = []

    def handle_signal(signum: int, _frame) -> None:
        logger.info(f"Received {signal.Signals(signum).name}")
        stop.set()

    previous = {sig: signal.signal(sig, handle_signal) for sig in (signal.SIGINT, signal.SIGTERM)}
    dashboard = None
    try:
        for config in configs:
            tunnel = Tunnel(config)
            threads.append(tunnel.start())
            tunnels.append(tunnel)

        if ui:
            dashboard, ui_thread = create_tunnel_ui(tunnels)
            ui_thread.start()

        while not stop.wait(0.5):
            pass
    finally:
        if dashboard:
            dashboard.stop()
        for tunnel in tunnels:
            tunnel.shutdown()
        for thread in threads:
            thread.join(timeout=JOIN_TIMEOUT)
        for sig, handler in previous.items():
            signal.signal(sig, handler)
        logger.info("All tunnels stopped")


def _run_or_exit(configs: list[TunnelConfig], ui: bool) -> None:
    try:
        run_tunnels(configs, ui=ui)
    except TunnelError as e:
        logger.error(f"Tunneling failed: {e}")
        console.print(f"[red]Tunneling failed: {e}")
        raise typer.Exit(1) from e


@app.command(name="run")
def run_tunnel(
    local: str = typer.Option(..., "--local", "-l", help="Address to listen on (host:port)"),
    remote: str = typer.Option(..., "--remote", "-r", help="Address to relay to (host:port)"),
    name: str = typer.Option("tunnel", "--name", "-n", help="Label used in log lines"),
    tls: bool = typer.Option(False, "--tls", help="Terminate and originate TLS"),
    insecure: bool = typer.Option(False, "--insecure", help="Skip verification of the remote certificate"),
    cert_file: Path = typer.Option(DEFAULT_CERT_FILE, "--cert", help="Combined certificate and key (PEM)"),
    dial_timeout: float = typer.Option(DEFAULT_DIAL_TIMEOUT, "--dial-timeout", help="Connect timeout in seconds"),
    ui: bool = typer.Option(False, "--ui", help="Show a live dashboard"),
    debug: bool = typer.Option(False, "--debug", help="Enable debug logging"),
):
    """Run a single tunnel."""
    configure_logging(debug=debug)
    logger.debug(f"Writing logs to {LOG_DIR}")
    try:
        config = TunnelConfig(
            name=name,
            local=local,
            remote=remote,
            tls=tls,
            insecure=insecure,
            cert_file=cert_file,
            dial_timeout=dial_timeout,
        )
    except TunnelError as e:
        console.print(f"[red]Invalid configuration: {e}")
        raise typer.Exit(1) from e
    _run_or_exit([config], ui)


@app.command(name="serve")
def serve_config(
    config_file: Path = typer.Argument(..., help="TOML file with [[tunnel]] tables"),
    ui: bool = typer.Option(False, "--ui", help="Show a live dashboard"),
    debug: bool = typer.Option(False, "--debug", help="Enable debug logging"),
):
    """Run every tunnel of a configuration file."""
    configure_logging(debug=debug)
    try:
        configs = load_config(config_file)
    except TunnelError as e:
        console.print(f"[red]Invalid configuration: {e}")
        raise typer.Exit(1) from e
    logger.info(f"Loaded {len(configs)} tunnel(s) from {config_file}")
    _run_or_exit(configs, ui)


if __name__ == "__main__":
    app()
