"""Prompt and UI utilities."""

from tcp_tunnel.core.utils.prompt.prompt import PromptHandler, console
from tcp_tunnel.core.utils.prompt.tunnel_ui import TunnelUI, create_tunnel_ui

__all__ = ["console", "create_tunnel_ui", "PromptHandler", "TunnelUI"]
