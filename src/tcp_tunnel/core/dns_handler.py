"""DNS resolution with a dnspython fallback."""

import socket

import dns.exception
import dns.resolver
from loguru import logger

from tcp_tunnel.core.exceptions import ResolutionError

# DNS resolver constants
DEFAULT_TIMEOUT = 1.0  # seconds
DEFAULT_LIFETIME = 3.0  # seconds


class DNSResolver:
    """Resolve host names through the system resolver, then through dnspython."""

    def __init__(self, nameservers: list[str] | None = None) -> None:
        """Initialize the fallback resolver.

        Args:
            nameservers: Nameservers for the fallback, defaults to the system configuration
        """
        try:
            self.resolver = dns.resolver.Resolver()
        except dns.resolver.NoResolverConfiguration:
            logger.debug("No system resolver configuration, DNS fallback needs explicit nameservers")
            self.resolver = dns.resolver.Resolver(configure=False)
        self.resolver.timeout = DEFAULT_TIMEOUT
        self.resolver.lifetime = DEFAULT_LIFETIME
        if nameservers:
            self.resolver.nameservers = nameservers

    def _try_system_dns(self, host: str, port: int) -> tuple[int, str] | None:
        """Try resolving using the system resolver."""
        try:
            infos = socket.getaddrinfo(host, port, type=socket.SOCK_STREAM)
        except (socket.gaierror, UnicodeError) as e:
            logger.debug(f"System DNS resolution failed for {host}: {e}")
            return None
        family, _, _, _, sockaddr = infos[0]
        return family, sockaddr[0]

    def _try_configured_resolver(self, host: str) -> tuple[int, str] | None:
        """Try resolving A and then AAAA records with dnspython."""
        for rdtype, family in (("A", socket.AF_INET), ("AAAA", socket.AF_INET6)):
            try:
                answer = self.resolver.resolve(host, rdtype)
            except dns.exception.DNSException as e:
                logger.debug(f"Configured resolver failed for {host} ({rdtype}): {e}")
                continue
            return family, str(answer[0])
        return None

    def resolve(self, host: str, port: int) -> tuple[int, str]:
        """Resolve a host name to an address family and numeric IP.

        Args:
            host: Host name or IP literal
            port: Port, passed to the system resolver for service lookup

        Returns:
            tuple[int, str]: Address family and numeric IP

        Raises:
            ResolutionError: If no method resolves the host
        """
        if result := self._try_system_dns(host, port):
            return result

        if result := self._try_configured_resolver(host):
            return result

        raise ResolutionError(f"Could not resolve {host} using any available method")


# Global resolver instance
dns_resolver = DNSResolver()
