"""Socket and HTTP transports carrying Thrift frames to the metastore.

A connection exchanges one serialized request for one serialized response
within a deadline. The socket variant keeps a TCP stream open and delimits
responses by reading exactly one Thrift message; the HTTP variant posts each
request as the body of its own HTTP request.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Mapping, Protocol

import httpx
from thrift.protocol.TBinaryProtocol import TBinaryProtocol
from thrift.Thrift import TType
from thrift.transport.TSocket import TSocket
from thrift.transport.TTransport import (
    TBufferedTransport,
    TFramedTransport,
    TTransportBase,
    TTransportException,
)

from hmsops.core.endpoint import Endpoint, TransportConfig, TransportKind
from hmsops.core.errors import ConfigError, ConnectError, TransportError, TransportFailure
from hmsops.core.headers import EMPTY_HEADERS, HeaderSet, apply_headers

logger = logging.getLogger(__name__)

THRIFT_CONTENT_TYPE = "application/x-thrift"


class Connection(Protocol):
    """An open transport exchanging request bytes for response bytes."""

    kind: TransportKind

    def call(self, request: bytes, timeout: float) -> bytes:
        """Send one request and return the response, raising TransportError."""
        ...

    def close(self) -> None:
        """Release the underlying connection (idempotent)."""
        ...


def _failure_from_thrift(exc: TTransportException) -> TransportError:
    inner = getattr(exc, "inner", None)
    if exc.type == TTransportException.TIMED_OUT or isinstance(inner, TimeoutError):
        return TransportError(TransportFailure.TIMEOUT, str(exc) or "read timeout")
    return TransportError(TransportFailure.CONNECTION, str(exc) or "connection lost")


def _check_deadline(deadline: float) -> None:
    if time.monotonic() > deadline:
        raise TransportError(TransportFailure.TIMEOUT, "deadline exceeded")


class _RecordingTransport(TTransportBase):
    """Reads through another transport and keeps every byte it returned."""

    def __init__(self, inner: TTransportBase, before_read: Callable[[], None]):
        self._inner = inner
        self._before_read = before_read
        self._chunks: list[bytes] = []

    def isOpen(self):
        return self._inner.isOpen()

    def read(self, sz):
        self._before_read()
        chunk = self._inner.read(sz)
        self._chunks.append(chunk)
        return chunk

    def recorded(self) -> bytes:
        return b"".join(self._chunks)


class SocketConnection:
    """Thrift over a TCP stream."""

    kind = TransportKind.SOCKET

    def __init__(self, socket: TSocket, transport: TTransportBase):
        self._socket = socket
        self._transport = transport
        self._closed = False

    @property
    def socket(self) -> TSocket:
        return self._socket

    def rewrap(self, wrap: Callable[[TSocket], TTransportBase]) -> "SocketConnection":
        """
        Return a connection whose frames pass through `wrap(socket)`.

        The wrapped transport is opened immediately, so handshakes run here,
        before any call.
        """
        transport = wrap(self._socket)
        try:
            transport.open()
        except TTransportException as exc:
            raise _failure_from_thrift(exc) from exc
        except TimeoutError as exc:
            raise TransportError(TransportFailure.TIMEOUT, "handshake timed out") from exc
        except (OSError, EOFError) as exc:
            raise TransportError(TransportFailure.CONNECTION, str(exc) or "connection lost") from exc
        return SocketConnection(self._socket, transport)

    def _arm(self, deadline: float) -> None:
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise TransportError(TransportFailure.TIMEOUT, "deadline exceeded")
        self._socket.setTimeout(remaining * 1000.0)

    def call(self, request: bytes, timeout: float) -> bytes:
        if self._closed:
            raise TransportError(TransportFailure.CONNECTION, "connection is closed")
        deadline = time.monotonic() + timeout
        reader = _RecordingTransport(self._transport, lambda: self._arm(deadline))
        try:
            self._arm(deadline)
            self._transport.write(request)
            self._transport.flush()
            proto = TBinaryProtocol(reader)
            proto.readMessageBegin()
            proto.skip(TType.STRUCT)
            proto.readMessageEnd()
        except TTransportException as exc:
            raise _failure_from_thrift(exc) from exc
        except TimeoutError as exc:
            raise TransportError(TransportFailure.TIMEOUT, "read timeout") from exc
        except (OSError, EOFError) as exc:
            raise TransportError(TransportFailure.CONNECTION, str(exc) or "connection lost") from exc
        return reader.recorded()

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._transport.close()
        self._socket.close()
        logger.debug("Closed socket connection to %s:%s", self._socket.host, self._socket.port)


class HttpConnection:
    """Thrift frames posted as HTTP request bodies."""

    kind = TransportKind.HTTP

    def __init__(
        self,
        client: httpx.Client,
        url: str,
        *,
        header_set: HeaderSet = EMPTY_HEADERS,
        auth_headers: Mapping[str, str] | None = None,
    ):
        self._client = client
        self._url = url
        self._header_set = header_set
        self._auth_headers = dict(auth_headers or {})

    @property
    def url(self) -> str:
        return self._url

    def with_header_set(self, header_set: HeaderSet) -> "HttpConnection":
        """Return a connection sending `header_set` with every request."""
        return HttpConnection(
            self._client, self._url, header_set=header_set, auth_headers=self._auth_headers
        )

    def with_auth_headers(self, auth_headers: Mapping[str, str]) -> "HttpConnection":
        """Return a connection adding `auth_headers` to every request."""
        return HttpConnection(
            self._client,
            self._url,
            header_set=self._header_set,
            auth_headers={**self._auth_headers, **auth_headers},
        )

    def request_headers(self) -> dict[str, str]:
        """Return the headers of one outgoing request."""
        protocol = {"Content-Type": THRIFT_CONTENT_TYPE, "Accept": THRIFT_CONTENT_TYPE}
        protocol.update(self._auth_headers)
        return apply_headers(self._header_set, protocol)

    def call(self, request: bytes, timeout: float) -> bytes:
        """
        POST one request and read the reply within `timeout` seconds overall.

        httpx applies its timeout to each network operation, so the body is
        streamed and the overall deadline is checked after every chunk.
        """
        if self._client.is_closed:
            raise TransportError(TransportFailure.CONNECTION, "connection is closed")
        deadline = time.monotonic() + timeout
        chunks: list[bytes] = []
        try:
            with self._client.stream(
                "POST",
                self._url,
                content=request,
                headers=self.request_headers(),
                timeout=timeout,
            ) as response:
                _check_deadline(deadline)
                if not response.is_success:
                    raise TransportError(
                        TransportFailure.REMOTE_REJECTED,
                        f"HTTP {response.status_code}",
                        status_code=response.status_code,
                    )
                for chunk in response.iter_bytes():
                    chunks.append(chunk)
                    _check_deadline(deadline)
        except httpx.TimeoutException as exc:
            raise TransportError(TransportFailure.TIMEOUT, str(exc) or "timed out") from exc
        except httpx.TransportError as exc:
            raise TransportError(TransportFailure.CONNECTION, str(exc)) from exc
        except (httpx.HTTPError, httpx.InvalidURL, httpx.StreamError) as exc:
            raise TransportError(
                TransportFailure.CONNECTION, str(exc) or type(exc).__name__
            ) from exc
        return b"".join(chunks)

    def close(self) -> None:
        if self._client.is_closed:
            return
        self._client.close()
        logger.debug("Closed HTTP connection to %s", self._url)


def open_connection(endpoint: Endpoint, config: TransportConfig) -> Connection:
    """
    Open a connection to the endpoint.

    Sockets connect immediately; HTTP connections are established lazily by
    the first request.

    Raises:
        ConfigError: The endpoint does not form a valid URL.
        ConnectError: The socket could not be connected.
    """
    if endpoint.kind is TransportKind.HTTP:
        try:
            httpx.URL(endpoint.url)
        except httpx.InvalidURL as exc:
            raise ConfigError(f"Invalid metastore URL {endpoint.url}: {exc}") from exc
        client = httpx.Client(
            timeout=httpx.Timeout(config.read_timeout, connect=config.connect_timeout),
            verify=config.verify,
        )
        logger.debug("Opened HTTP connection to %s", endpoint.url)
        return HttpConnection(client, endpoint.url)

    socket = TSocket(endpoint.host, endpoint.port)
    socket.setTimeout(config.connect_timeout * 1000.0)
    transport = TFramedTransport(socket) if config.framed else TBufferedTransport(socket)
    try:
        transport.open()
    except TTransportException as exc:
        socket.close()
        raise ConnectError(
            f"Could not connect to metastore at {endpoint}: {exc}"
        ) from exc
    socket.setTimeout(config.read_timeout * 1000.0)
    logger.debug("Opened socket connection to %s:%s", endpoint.host, endpoint.port)
    return SocketConnection(socket, transport)
