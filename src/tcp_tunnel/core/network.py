"""Endpoint resolution and local interface checks.

This module turns the configured ``host:port`` strings into addresses the
transports can bind to or connect to. Resolution happens once per tunnel
start; a malformed or unresolvable address is fatal for that tunnel.

Supported forms:
- ``127.0.0.1:8080`` and ``example.com:443``
- ``[::1]:8080`` for IPv6 literals
- ``:8080`` to listen on every IPv4 interface

Example:
    address = resolve_address("localhost:8080")
    print(address.host, address.port)  # 127.0.0.1 8080
"""

import ipaddress
import socket
from dataclasses import dataclass

import psutil

from tcp_tunnel.core.dns_handler import dns_resolver
from tcp_tunnel.core.exceptions import ResolutionError

MIN_PORT = 0
MAX_PORT = 65535
WILDCARD_HOSTS = frozenset({"", "0.0.0.0", "::"})


@dataclass(frozen=True)
class ResolvedAddress:
    """A validated, dialable or listenable network address.

    Attributes:
        hostname: Host as written in the configuration
        host: Numeric IP address
        port: Port number
        family: Socket address family
    """

    hostname: str
    host: str
    port: int
    family: socket.AddressFamily

    @property
    def sockaddr(self) -> tuple[str, int]:
        """Address tuple for ``bind`` and ``connect``."""
        return (self.host, self.port)

    def __str__(self) -> str:
        if self.family == socket.AF_INET6:
            return f"[{self.host}]:{self.port}"
        return f"{self.host}:{self.port}"


def split_host_port(address: str) -> tuple[str, int]:
    """Split ``host:port`` into its parts.

    Raises:
        ResolutionError: If the syntax or the port is invalid
    """
    if address.startswith("["):
        host, sep, rest = address[1:].partition("]")
        if not sep or not rest.startswith(":"):
            raise ResolutionError(f"Invalid address {address!r}: expected [host]:port")
        port_text = rest[1:]
    else:
        host, sep, port_text = address.rpartition(":")
        if not sep:
            raise ResolutionError(f"Invalid address {address!r}: missing port")
        if ":" in host:
            raise ResolutionError(f"Invalid address {address!r}: IPv6 hosts need brackets")

    if not port_text.isdigit():
        raise ResolutionError(f"Invalid port in {address!r}")
    port = int(port_text)
    if not MIN_PORT <= port <= MAX_PORT:
        raise ResolutionError(f"Port out of range in {address!r}")
    return host, port


def resolve_address(address: str) -> ResolvedAddress:
    """Resolve a ``host:port`` string.

    Args:
        address: Address as configured

    Returns:
        ResolvedAddress: Numeric address with its family

    Raises:
        ResolutionError: If the address is malformed or the host does not resolve
    """
    hostname, port = split_host_port(address.strip())
    if not hostname:
        return ResolvedAddress(hostname, "0.0.0.0", port, socket.AF_INET)

    try:
        ip = ipaddress.ip_address(hostname)
    except ValueError:
        family, host = dns_resolver.resolve(hostname, port)
        return ResolvedAddress(hostname, host, port, socket.AddressFamily(family))

    family = socket.AF_INET6 if ip.version == 6 else socket.AF_INET
    return ResolvedAddress(hostname, str(ip), port, family)


def is_local_address(host: str) -> bool:
    """Check whether ``host`` can be bound on this machine."""
    if host in WILDCARD_HOSTS:
        return True
    try:
        if ipaddress.ip_address(host).is_loopback:
            return True
    except ValueError:
        return False

    for addrs in psutil.net_if_addrs().values():
        for addr in addrs:
            if addr.family in (socket.AF_INET, socket.AF_INET6):
                # Strip IPv6 scope ids such as fe80::1%en0
                if addr.address.split("%", 1)[0] == host:
                    return True
    return False
