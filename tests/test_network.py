"""Tests for endpoint resolution."""

import socket
from types import SimpleNamespace

import pytest

from tcp_tunnel.core import network
from tcp_tunnel.core.exceptions import ResolutionError
from tcp_tunnel.core.network import ResolvedAddress, is_local_address, resolve_address, split_host_port


class TestSplitHostPort:
    """Syntax validation of host:port strings."""

    @pytest.mark.parametrize(
        ("address", "expected"),
        [
            ("127.0.0.1:8080", ("127.0.0.1", 8080)),
            ("example.com:443", ("example.com", 443)),
            ("[::1]:9000", ("::1", 9000)),
            (":8080", ("", 8080)),
            ("127.0.0.1:0", ("127.0.0.1", 0)),
        ],
    )
    def test_valid(self, address, expected):
        assert split_host_port(address) == expected

    @pytest.mark.parametrize(
        "address",
        ["127.0.0.1", "127.0.0.1:", "127.0.0.1:http", "127.0.0.1:70000", "::1:80", "[::1]80", "[::1", "host:-1"],
    )
    def test_invalid(self, address):
        with pytest.raises(ResolutionError):
            split_host_port(address)


class TestResolveAddress:
    """Resolution into numeric addresses."""

    def test_ipv4_literal(self):
        address = resolve_address("127.0.0.1:18080")

        assert address == ResolvedAddress("127.0.0.1", "127.0.0.1", 18080, socket.AF_INET)
        assert address.sockaddr == ("127.0.0.1", 18080)
        assert str(address) == "127.0.0.1:18080"

    def test_ipv6_literal(self):
        address = resolve_address("[::1]:8080")

        assert address.family == socket.AF_INET6
        assert address.host == "::1"
        assert str(address) == "[::1]:8080"

    def test_empty_host_listens_everywhere(self):
        address = resolve_address(":9000")

        assert address.host == "0.0.0.0"
        assert address.family == socket.AF_INET

    def test_hostname(self):
        address = resolve_address("localhost:80")

        assert address.hostname == "localhost"
        assert address.host in ("127.0.0.1", "::1")
        assert address.port == 80

    def test_unresolvable_host(self, monkeypatch):
        def fail(host, port):
            raise ResolutionError(f"Could not resolve {host}")

        monkeypatch.setattr(network.dns_resolver, "resolve", fail)

        with pytest.raises(ResolutionError, match="no-such-host.invalid"):
            resolve_address("no-such-host.invalid:80")

    def test_malformed(self):
        with pytest.raises(ResolutionError):
            resolve_address("not an address")


class TestIsLocalAddress:
    """Local interface checks with psutil."""

    @pytest.mark.parametrize("host", ["0.0.0.0", "::", "127.0.0.1", "::1", "127.1.2.3"])
    def test_wildcard_and_loopback(self, host):
        assert is_local_address(host)

    def test_interface_address(self, monkeypatch):
        monkeypatch.setattr(
            network.psutil,
            "net_if_addrs",
            lambda: {
                "eth0": [SimpleNamespace(family=socket.AF_INET, address="10.1.2.3")],
                "wlan0": [SimpleNamespace(family=socket.AF_INET6, address="fe80::1%wlan0")],
            },
        )

        assert is_local_address("10.1.2.3")
        assert is_local_address("fe80::1")
        assert not is_local_address("10.9.9.9")
