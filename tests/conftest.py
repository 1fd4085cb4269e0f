"""Shared pytest fixtures for tunnel tests."""

import datetime
import ipaddress
import socket
import ssl
import threading
import time

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID
from loguru import logger

from tcp_tunnel.core.config import TunnelConfig
from tcp_tunnel.core.tunnel import Tunnel

WAIT_TIMEOUT = 5.0


def wait_for(predicate, timeout: float = WAIT_TIMEOUT) -> bool:
    """Poll ``predicate`` until it is true or the timeout expires."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.02)
    return predicate()


def recv_exactly(sock: socket.socket, size: int) -> bytes:
    """Read ``size`` bytes or fail on EOF."""
    data = bytearray()
    while len(data) < size:
        chunk = sock.recv(size - len(data))
        if not chunk:
            raise EOFError(f"EOF after {len(data)} of {size} bytes")
        data.extend(chunk)
    return bytes(data)


def free_port() -> int:
    """Return a loopback port nothing listens on."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


class EchoServer:
    """Threaded echo server recording what every connection received."""

    def __init__(self, port: int = 0, context: ssl.SSLContext | None = None, close_on_accept: bool = False) -> None:
        self.context = context
        self.close_on_accept = close_on_accept
        self.sock = socket.create_server(("127.0.0.1", port))
        self.sock.settimeout(0.1)
        self.port = self.sock.getsockname()[1]
        self.address = f"127.0.0.1:{self.port}"
        self.received: list[bytearray] = []
        self.closed: list[threading.Event] = []
        self._lock = threading.Lock()
        self._running = True
        self._thread = threading.Thread(target=self._serve, daemon=True)
        self._thread.start()

    def _serve(self) -> None:
        while self._running:
            try:
                conn, _ = self.sock.accept()
            except TimeoutError:
                continue
            except OSError:
                return
            conn.settimeout(None)
            if self.close_on_accept:
                conn.close()
                continue
            buffer, closed = bytearray(), threading.Event()
            with self._lock:
                self.received.append(buffer)
                self.closed.append(closed)
            threading.Thread(target=self._handle, args=(conn, buffer, closed), daemon=True).start()

    def _handle(self, conn: socket.socket, buffer: bytearray, closed: threading.Event) -> None:
        try:
            if self.context is not None:
                conn = self.context.wrap_socket(conn, server_side=True)
            while data := conn.recv(4096):
                buffer.extend(data)
                conn.sendall(data)
        except OSError:
            pass
        finally:
            closed.set()
            conn.close()

    @property
    def connection_count(self) -> int:
        with self._lock:
            return len(self.received)

    def close(self) -> None:
        self._running = False
        self._thread.join(timeout=WAIT_TIMEOUT)
        self.sock.close()


@pytest.fixture
def echo_server():
    """Plain echo server on an ephemeral loopback port."""
    server = EchoServer()
    yield server
    server.close()


@pytest.fixture
def log_messages():
    """Capture loguru records as ``(level, message)`` tuples."""
    messages: list[tuple[str, str]] = []
    handler_id = logger.add(lambda msg: messages.append((msg.record["level"].name, msg.record["message"])), level="DEBUG")
    yield messages
    logger.remove(handler_id)


@pytest.fixture
def make_tunnel():
    """Build and start tunnels, shutting them down after the test."""
    tunnels: list[Tunnel] = []

    def factory(remote: str, local: str = "127.0.0.1:0", **kwargs) -> Tunnel:
        tunnel = Tunnel(TunnelConfig(name=kwargs.pop("name", "test"), local=local, remote=remote, **kwargs))
        tunnels.append(tunnel)
        tunnel.start()
        return tunnel

    yield factory
    for tunnel in tunnels:
        tunnel.shutdown()
        tunnel.wait_stopped(WAIT_TIMEOUT)


def connect(tunnel: Tunnel) -> socket.socket:
    """Open a client connection to a running tunnel."""
    sock = socket.create_connection(tunnel.address, timeout=WAIT_TIMEOUT)
    return sock


@pytest.fixture(scope="session")
def cert_file(tmp_path_factory):
    """Self-signed certificate and key for localhost, combined in one PEM file."""
    key = ec.generate_private_key(ec.SECP256R1())
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, "localhost")])
    now = datetime.datetime.now(datetime.timezone.utc)
    certificate = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - datetime.timedelta(minutes=5))
        .not_valid_after(now + datetime.timedelta(days=1))
        .add_extension(
            x509.SubjectAlternativeName([
                x509.DNSName("localhost"),
                x509.IPAddress(ipaddress.IPv4Address("127.0.0.1")),
            ]),
            critical=False,
        )
        .sign(key, hashes.SHA256())
    )

    path = tmp_path_factory.mktemp("tls") / "server.crt"
    path.write_bytes(
        certificate.public_bytes(serialization.Encoding.PEM)
        + key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        )
    )
    return path


@pytest.fixture
def tls_echo_server(cert_file):
    """Echo server speaking TLS with the self-signed certificate."""
    context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
    context.load_cert_chain(cert_file)
    server = EchoServer(context=context)
    yield server
    server.close()


def insecure_client_context() -> ssl.SSLContext:
    context = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
    context.check_hostname = False
    context.verify_mode = ssl.CERT_NONE
    return context
