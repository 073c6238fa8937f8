"""Metastore endpoint locators and transport configuration."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from urllib.parse import urlsplit

from hmsops.core.errors import ConfigError

DEFAULT_THRIFT_PORT = 9083
DEFAULT_TIMEOUT_SECONDS = 20.0

_DEFAULT_PORTS = {"thrift": DEFAULT_THRIFT_PORT, "http": 80, "https": 443}


class TransportKind(str, Enum):
    """Substrate carrying the Thrift frames."""

    SOCKET = "SOCKET"
    HTTP = "HTTP"


@dataclass(frozen=True)
class Endpoint:
    """Address of a metastore: scheme, host, port and optional HTTP path."""

    scheme: str
    host: str
    port: int
    path: str = ""

    @property
    def kind(self) -> TransportKind:
        """Return the transport kind implied by the scheme."""
        return TransportKind.SOCKET if self.scheme == "thrift" else TransportKind.HTTP

    @property
    def url(self) -> str:
        """Return the locator in `scheme://host:port[/path]` form."""
        # IPv6 literals keep their brackets
        host = f"[{self.host}]" if ":" in self.host else self.host
        return f"{self.scheme}://{host}:{self.port}{self.path}"

    def __str__(self) -> str:
        return self.url


@dataclass(frozen=True)
class TransportConfig:
    """
    Connection settings shared by both transport kinds.

    Attributes:
        connect_timeout: Seconds allowed to establish the connection.
        read_timeout: Seconds allowed for one call round-trip.
        framed: Use the length-prefixed framed transport on sockets.
        verify: TLS verification for https (bool or CA bundle path).
    """

    connect_timeout: float = DEFAULT_TIMEOUT_SECONDS
    read_timeout: float = DEFAULT_TIMEOUT_SECONDS
    framed: bool = False
    verify: bool | str = True

    def __post_init__(self) -> None:
        if self.connect_timeout <= 0 or self.read_timeout <= 0:
            raise ConfigError("Timeouts must be positive.")

    @classmethod
    def uniform(cls, timeout: float, **kwargs) -> "TransportConfig":
        """Build a config applying one timeout to connect and read."""
        return cls(connect_timeout=timeout, read_timeout=timeout, **kwargs)


def parse_endpoint(locator: str) -> Endpoint:
    """
    Parse a metastore locator.

    Accepts `scheme://host:port[/path]` with scheme thrift, http or https, or
    a bare `host:port` which means a thrift socket. Missing ports fall back
    to the scheme default.
    """
    raw = (locator or "").strip()
    if not raw:
        raise ConfigError("Metastore URI is empty.")
    if "://" not in raw:
        raw = f"thrift://{raw}"

    parts = urlsplit(raw)
    scheme = parts.scheme.lower()
    if scheme not in _DEFAULT_PORTS:
        raise ConfigError(
            f"Unsupported metastore URI scheme '{parts.scheme}' "
            "(expected thrift, http or https)."
        )
    if not parts.hostname:
        raise ConfigError(f"Metastore URI '{locator}' has no host.")
    try:
        port = parts.port or _DEFAULT_PORTS[scheme]
    except ValueError as exc:
        raise ConfigError(f"Metastore URI '{locator}' has an invalid port.") from exc

    path = parts.path.rstrip("/")
    if scheme == "thrift" and path:
        raise ConfigError("Thrift socket URIs cannot carry a path.")
    return Endpoint(scheme=scheme, host=parts.hostname, port=port, path=path)
