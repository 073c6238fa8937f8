"""Typed metastore operations over an open connection."""

from __future__ import annotations

import logging
import threading
from typing import Any

from thrift.Thrift import TApplicationException, TException

from hmsops.core import wire
from hmsops.core.endpoint import Endpoint
from hmsops.core.errors import (
    MetastoreError,
    ProtocolError,
    RemoteError,
    TransportError,
    UnavailableError,
    map_decode_error,
    map_remote_fault,
    map_transport_error,
)
from hmsops.core.models import Database
from hmsops.core.transport import Connection

logger = logging.getLogger(__name__)

_PROTOCOL_APPLICATION_ERRORS = {
    TApplicationException.INVALID_MESSAGE_TYPE,
    TApplicationException.WRONG_METHOD_NAME,
    TApplicationException.BAD_SEQUENCE_ID,
    TApplicationException.MISSING_RESULT,
    TApplicationException.PROTOCOL_ERROR,
}


class MetastoreClient:
    """
    Client bound to one metastore connection.

    Calls block for at most `timeout` seconds and are serialized, so one
    client may be shared between threads. After a timeout or a broken
    connection the client closes itself; build a new one to retry.
    """

    def __init__(self, connection: Connection, endpoint: Endpoint, timeout: float):
        self._connection = connection
        self._endpoint = endpoint
        self._timeout = timeout
        self._lock = threading.Lock()
        self._seqid = 0
        self._closed = False

    @property
    def endpoint(self) -> Endpoint:
        return self._endpoint

    @property
    def closed(self) -> bool:
        return self._closed

    def __enter__(self) -> "MetastoreClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def close(self) -> None:
        """Release the connection; later calls raise UnavailableError."""
        with self._lock:
            self._release()

    def _release(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._connection.close()

    def list_databases(self) -> list[str]:
        """Return the names of all databases, each listed once."""
        names = self._invoke(wire.GET_ALL_DATABASES)
        return list(dict.fromkeys(names))

    def get_database(self, name: str) -> Database:
        """
        Fetch one database by name.

        Raises:
            NotFoundError: No database with this name exists.
        """
        return self._invoke(wire.GET_DATABASE, name)

    def create_database(self, database: Database) -> None:
        """
        Create a database.

        Raises:
            AlreadyExistsError: A database with this name already exists.
            InvalidArgumentError: The metastore rejected the definition.
        """
        self._invoke(wire.CREATE_DATABASE, database)

    def drop_database(
        self, name: str, *, delete_data: bool = False, cascade: bool = False
    ) -> None:
        """Drop a database, optionally with its data and tables."""
        self._invoke(wire.DROP_DATABASE, name, delete_data, cascade)

    def list_tables(self, database: str) -> list[str]:
        """Return the table names of a database."""
        return self._invoke(wire.GET_ALL_TABLES, database)

    def _invoke(self, method: wire.Method, *args: Any) -> Any:
        with self._lock:
            if self._closed:
                raise UnavailableError(
                    f"Client for {self._endpoint} is closed; build a new client."
                )
            self._seqid += 1
            seqid = self._seqid
            request = wire.encode_call(method, seqid, *args)
            logger.debug("Calling %s (seqid=%d) on %s", method.name, seqid, self._endpoint)

            try:
                data = self._connection.call(request, self._timeout)
            except TransportError as exc:
                error = map_transport_error(exc)
                self._discard(method, error)
                raise error from exc
            except TException as exc:
                error = map_decode_error(exc)
                self._discard(method, error)
                raise error from exc

            try:
                reply = wire.decode_reply(method, seqid, data)
            except TApplicationException as exc:
                if exc.type in _PROTOCOL_APPLICATION_ERRORS:
                    error = map_decode_error(exc)
                    self._discard(method, error)
                    raise error from exc
                raise RemoteError(exc.message or f"{method.name} failed") from exc
            except (TException, ValueError, EOFError, UnicodeDecodeError) as exc:
                error = map_decode_error(exc)
                self._discard(method, error)
                raise error from exc

        if reply.fault is not None:
            raise map_remote_fault(reply.fault)
        return reply.value

    def _discard(self, method: wire.Method, error: MetastoreError) -> None:
        if isinstance(error, (ProtocolError, UnavailableError)) or error.retryable:
            logger.warning(
                "Closing connection to %s after %s failed: %s",
                self._endpoint,
                method.name,
                error.kind.value,
            )
            self._release()
