"""Build ready-to-use metastore clients."""

from __future__ import annotations

import logging
from contextlib import ExitStack
from typing import Mapping

from hmsops.core.auth import AuthProvider, NoAuth
from hmsops.core.client import MetastoreClient
from hmsops.core.endpoint import (
    Endpoint,
    TransportConfig,
    TransportKind,
    parse_endpoint,
)
from hmsops.core.errors import ConstructionError, TransportError
from hmsops.core.headers import EMPTY_HEADERS, HeaderSet, parse_headers
from hmsops.core.transport import HttpConnection, open_connection

logger = logging.getLogger(__name__)


def _header_set(headers: HeaderSet | Mapping[str, str] | str | None) -> HeaderSet:
    if headers is None:
        return EMPTY_HEADERS
    if isinstance(headers, HeaderSet):
        return headers
    if isinstance(headers, str):
        return parse_headers(headers)
    return HeaderSet.of(headers)


def create_client(
    endpoint: Endpoint | str,
    *,
    config: TransportConfig | None = None,
    auth: AuthProvider | None = None,
    headers: HeaderSet | Mapping[str, str] | str | None = None,
    timeout: float | None = None,
) -> MetastoreClient:
    """
    Create a client connected to a metastore.

    Args:
        endpoint: Endpoint or locator (`thrift://host:9083`, `https://host/path`).
        config: Transport settings; defaults to `TransportConfig()`.
        auth: Authentication provider; defaults to `NoAuth()`.
        headers: Extra HTTP headers as a HeaderSet, mapping or
            `name:value, name:value` string. Only valid for http(s).
        timeout: Overrides both connect and read timeouts, in seconds.

    Returns:
        A MetastoreClient owning its connection.

    Raises:
        ConstructionError: Invalid configuration, reserved or misplaced
            headers, or an auth mode the transport cannot carry.
        ConnectError: The socket could not be connected.
        AuthError: The metastore rejected the authentication handshake.
    """
    if isinstance(endpoint, str):
        endpoint = parse_endpoint(endpoint)
    config = config or TransportConfig()
    if timeout is not None:
        config = TransportConfig.uniform(
            timeout, framed=config.framed, verify=config.verify
        )
    auth = auth or NoAuth()
    header_set = _header_set(headers)

    if header_set and endpoint.kind is not TransportKind.HTTP:
        raise ConstructionError("Custom headers require an http(s) metastore endpoint.")
    clashes = sorted(n for n in header_set if n.lower() in auth.reserved_headers)
    if clashes:
        raise ConstructionError(
            f"Header(s) {', '.join(clashes)} are controlled by {auth.mode.value} authentication."
        )
    auth.check(endpoint.kind)

    with ExitStack() as stack:
        connection = open_connection(endpoint, config)
        stack.callback(connection.close)
        if isinstance(connection, HttpConnection):
            connection = connection.with_header_set(header_set)
        try:
            connection = auth.decorate(connection)
        except TransportError as exc:
            raise ConstructionError(
                f"Could not prepare connection to {endpoint}: {exc.message}"
            ) from exc
        stack.pop_all()

    logger.debug(
        "Connected to %s (auth=%s, headers=%s)",
        endpoint,
        auth.mode.value,
        list(header_set),
    )
    return MetastoreClient(connection, endpoint, config.read_timeout)
