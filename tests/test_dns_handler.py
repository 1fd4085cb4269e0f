"""Tests for the DNS fallback resolver."""

import socket

import dns.resolver
import pytest

from tcp_tunnel.core.dns_handler import DNSResolver
from tcp_tunnel.core.exceptions import ResolutionError


@pytest.fixture
def resolver():
    return DNSResolver(nameservers=["192.0.2.53"])


def test_system_resolver_first(resolver, monkeypatch):
    monkeypatch.setattr(
        socket,
        "getaddrinfo",
        lambda host, port, type: [(socket.AF_INET, socket.SOCK_STREAM, 6, "", ("10.0.0.7", port))],
    )
    monkeypatch.setattr(resolver.resolver, "resolve", lambda *args: pytest.fail("fallback used"))

    assert resolver.resolve("service.internal", 80) == (socket.AF_INET, "10.0.0.7")


def test_falls_back_to_dnspython(resolver, monkeypatch):
    def no_system_dns(*args, **kwargs):
        raise socket.gaierror("no system dns")

    def fake_resolve(host, rdtype):
        if rdtype == "A":
            raise dns.resolver.NoAnswer()
        return ["2001:db8::5"]

    monkeypatch.setattr(socket, "getaddrinfo", no_system_dns)
    monkeypatch.setattr(resolver.resolver, "resolve", fake_resolve)

    assert resolver.resolve("service.internal", 80) == (socket.AF_INET6, "2001:db8::5")


def test_all_methods_fail(resolver, monkeypatch):
    def no_system_dns(*args, **kwargs):
        raise socket.gaierror("no system dns")

    def nxdomain(host, rdtype):
        raise dns.resolver.NXDOMAIN()

    monkeypatch.setattr(socket, "getaddrinfo", no_system_dns)
    monkeypatch.setattr(resolver.resolver, "resolve", nxdomain)

    with pytest.raises(ResolutionError, match="service.internal"):
        resolver.resolve("service.internal", 80)
