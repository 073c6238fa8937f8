"""Authentication providers for metastore connections.

A provider decorates a freshly opened connection before its first call:
over HTTP it contributes request headers, over a socket it may run a SASL
handshake. Combinations a transport cannot carry are rejected at
construction time through `check`.
"""

from __future__ import annotations

import getpass
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import ClassVar

from databricks.sdk.core import Config
from puresasl import SASLError, SASLProtocolException
from thrift.transport.TTransport import TSaslClientTransport

from hmsops.core.endpoint import TransportKind
from hmsops.core.errors import (
    AuthError,
    AuthReason,
    TransportError,
    UnsupportedAuthError,
)
from hmsops.core.headers import check_header_value
from hmsops.core.transport import Connection, HttpConnection, SocketConnection

SASL_SERVICE = "hive"
ACTOR_HEADER = "x-actor-username"


class AuthMode(str, Enum):
    """Supported authentication strategies."""

    NONE = "none"
    TOKEN = "token"
    DELEGATED = "delegated"


class NoAuth:
    """Send calls without credentials."""

    mode = AuthMode.NONE
    reserved_headers: ClassVar[frozenset[str]] = frozenset()

    def check(self, kind: TransportKind) -> None:
        return None

    def decorate(self, connection: Connection) -> Connection:
        return connection

    def __repr__(self) -> str:
        return "NoAuth()"


@dataclass(frozen=True)
class TokenAuth:
    """
    Authenticate with a bearer token.

    Over HTTP the token is sent as `Authorization: Bearer <token>`. Over a
    socket it is the password of a SASL PLAIN handshake for `username`
    (the local user when not given).
    """

    token: str = field(repr=False)
    username: str | None = None

    mode = AuthMode.TOKEN
    reserved_headers: ClassVar[frozenset[str]] = frozenset()

    def __post_init__(self) -> None:
        if not self.token:
            raise AuthError(
                "Token authentication requires a token.",
                AuthReason.MISSING_CREDENTIALS,
            )
        check_header_value(self.token, what="Token")

    def check(self, kind: TransportKind) -> None:
        return None

    def decorate(self, connection: Connection) -> Connection:
        if isinstance(connection, HttpConnection):
            return connection.with_auth_headers(
                {"Authorization": f"Bearer {self.token}"}
            )
        if isinstance(connection, SocketConnection):
            return self._handshake(connection)
        raise UnsupportedAuthError(
            f"Token authentication is not supported over {type(connection).__name__}."
        )

    def _handshake(self, connection: SocketConnection) -> SocketConnection:
        socket = connection.socket
        username = self.username or getpass.getuser()
        try:
            return connection.rewrap(
                lambda s: TSaslClientTransport(
                    s,
                    socket.host,
                    SASL_SERVICE,
                    mechanism="PLAIN",
                    username=username,
                    password=self.token,
                )
            )
        except TransportError as exc:
            raise AuthError(
                f"SASL handshake with the metastore failed: {exc.message}",
                AuthReason.REJECTED,
            ) from exc
        except (SASLError, SASLProtocolException) as exc:
            raise AuthError(
                f"SASL handshake with the metastore failed: {exc}",
                AuthReason.REJECTED,
            ) from exc


@dataclass(frozen=True)
class DelegatedAuth:
    """
    Act on behalf of another principal.

    The principal is sent in the `x-actor-username` header, which is only
    available over HTTP.
    """

    principal: str

    mode = AuthMode.DELEGATED
    reserved_headers: ClassVar[frozenset[str]] = frozenset({ACTOR_HEADER})

    def __post_init__(self) -> None:
        if not self.principal:
            raise AuthError(
                "Delegated authentication requires a principal.",
                AuthReason.MISSING_CREDENTIALS,
            )
        check_header_value(self.principal, what="Principal")

    def check(self, kind: TransportKind) -> None:
        if kind is not TransportKind.HTTP:
            raise UnsupportedAuthError(
                "Delegated authentication is only supported over http(s) endpoints."
            )

    def decorate(self, connection: Connection) -> Connection:
        self.check(connection.kind)
        return connection.with_auth_headers({ACTOR_HEADER: self.principal})


AuthProvider = NoAuth | TokenAuth | DelegatedAuth


_LOGIN_HINT_RE = re.compile(r"databricks auth login\b")


def _profile_error(exc: Exception, profile: str | None) -> AuthError:
    message = str(exc)
    if _LOGIN_HINT_RE.search(message):
        login = "databricks auth login" + (f" --profile {profile}" if profile else "")
        return AuthError(
            f"Databricks credentials for the metastore token have expired; run `{login}`."
        )
    return AuthError(f"Could not read Databricks profile: {message}")


def token_from_databricks_profile(profile: str | None = None) -> str:
    """
    Resolve a bearer token from the Databricks unified configuration.

    The profile is looked up in ~/.databrickscfg, or in the environment when
    no profile is given.
    """
    try:
        cfg = Config(profile=profile) if profile else Config()
    except ValueError as exc:
        raise _profile_error(exc, profile) from exc
    if not cfg.token:
        raise AuthError(
            "Databricks profile does not define a personal access token.",
            AuthReason.MISSING_CREDENTIALS,
        )
    return cfg.token
