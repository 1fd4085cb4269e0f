"""Utility functions and helpers."""

from tcp_tunnel.core.utils.prompt import PromptHandler, TunnelUI, create_tunnel_ui
from tcp_tunnel.core.utils.utils import format_bytes, format_uptime

__all__ = ["create_tunnel_ui", "format_bytes", "format_uptime", "PromptHandler", "TunnelUI"]
