"""Tunnel configuration.

A tunnel is described by a frozen :class:`TunnelConfig`. Configurations are
created once at process start, either directly, from CLI options, or from a
TOML file holding one ``[[tunnel]]`` table per tunnel:

    [[tunnel]]
    name = "web"
    local = "127.0.0.1:8080"
    remote = "127.0.0.1:80"

    [[tunnel]]
    name = "secure"
    local = ":8443"
    remote = "backend.internal:443"
    tls = true
    cert_file = "/etc/tcp-tunnel/server.crt"

Example:
    configs = load_config(Path("tunnels.toml"))
    tunnels = [Tunnel(config) for config in configs]
"""

import sys
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Final

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

from tcp_tunnel.core.exceptions import ConfigError

DEFAULT_CERT_FILE: Final = Path("server.crt")
DEFAULT_DIAL_TIMEOUT: Final = 60.0  # Seconds

_FIELD_TYPES: Final = {"name": str, "local": str, "remote": str, "tls": bool, "insecure": bool}


@dataclass(frozen=True)
class TunnelConfig:
    """Settings of a single tunnel.

    Attributes:
        name: Label used in log lines, need not be unique
        local: Address to listen on, ``host:port``
        remote: Address to relay to, ``host:port``
        tls: Terminate TLS on the local side and originate it on the remote side
        insecure: Skip verification of the remote certificate
        cert_file: Combined certificate and private key (PEM) used when ``tls`` is set
        dial_timeout: Connect timeout for the remote side in seconds
    """

    name: str
    local: str
    remote: str
    tls: bool = False
    insecure: bool = False
    cert_file: Path = DEFAULT_CERT_FILE
    dial_timeout: float = DEFAULT_DIAL_TIMEOUT

    def __post_init__(self) -> None:
        for key, expected in _FIELD_TYPES.items():
            if not isinstance(getattr(self, key), expected):
                raise ConfigError(f"Tunnel '{self.name}': {key} must be {expected.__name__}")
        if isinstance(self.dial_timeout, bool) or not isinstance(self.dial_timeout, int | float):
            raise ConfigError(f"Tunnel '{self.name}': dial_timeout must be a number")
        if not isinstance(self.cert_file, str | Path):
            raise ConfigError(f"Tunnel '{self.name}': cert_file must be a path")

        if not self.local:
            raise ConfigError(f"Tunnel '{self.name}': local address is empty")
        if not self.remote:
            raise ConfigError(f"Tunnel '{self.name}': remote address is empty")
        if self.dial_timeout <= 0:
            raise ConfigError(f"Tunnel '{self.name}': dial_timeout must be positive")
        # Accept plain strings for the certificate path
        object.__setattr__(self, "cert_file", Path(self.cert_file))


def _config_from_table(index: int, table: dict[str, Any]) -> TunnelConfig:
    known = {field.name for field in fields(TunnelConfig)}
    unknown = set(table) - known
    if unknown:
        raise ConfigError(f"tunnel #{index}: unknown keys {sorted(unknown)}")

    missing = [key for key in ("local", "remote") if key not in table]
    if missing:
        raise ConfigError(f"tunnel #{index}: missing keys {missing}")

    values = dict(table)
    values.setdefault("name", f"tunnel-{index}")
    return TunnelConfig(**values)


def load_config(path: Path) -> list[TunnelConfig]:
    """Load tunnel configurations from a TOML file.

    Args:
        path: File with one ``[[tunnel]]`` table per tunnel

    Returns:
        list[TunnelConfig]: Configurations in file order

    Raises:
        ConfigError: If the file is missing, unparsable or holds no tunnels
    """
    try:
        with path.open("rb") as f:
            data = tomllib.load(f)
    except FileNotFoundError as e:
        raise ConfigError(f"Config file not found: {path}") from e
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Invalid TOML in {path}: {e}") from e

    tables = data.get("tunnel")
    if not isinstance(tables, list) or not tables:
        raise ConfigError(f"No [[tunnel]] tables in {path}")

    return [_config_from_table(index, table) for index, table in enumerate(tables)]
