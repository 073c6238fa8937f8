import httpx
import pytest
from puresasl import SASLError, SASLProtocolException
from thrift.transport.TTransport import TTransportException

from hmsops.core import auth as auth_module
from hmsops.core.auth import (
    AuthMode,
    DelegatedAuth,
    NoAuth,
    TokenAuth,
    token_from_databricks_profile,
)
from hmsops.core.endpoint import TransportKind
from hmsops.core.errors import AuthError, AuthReason, ConfigError, UnsupportedAuthError
from hmsops.core.transport import HttpConnection, SocketConnection


class _SocketStub:
    host = "metastore.local"
    port = 9083

    def setTimeout(self, ms):
        return None

    def close(self):
        return None


class _TransportStub:
    def open(self):
        return None

    def close(self):
        return None


def _http_connection() -> HttpConnection:
    return HttpConnection(httpx.Client(), "http://metastore.local:9083/metastore")


@pytest.mark.parametrize("kind", list(TransportKind))
def test_none_and_token_support_every_transport(kind: TransportKind):
    NoAuth().check(kind)
    TokenAuth("t").check(kind)


def test_delegated_is_rejected_over_socket():
    with pytest.raises(UnsupportedAuthError, match="http"):
        DelegatedAuth("alice").check(TransportKind.SOCKET)
    DelegatedAuth("alice").check(TransportKind.HTTP)


def test_no_auth_returns_connection_unchanged():
    connection = _http_connection()

    assert NoAuth().decorate(connection) is connection


def test_token_auth_adds_bearer_header_over_http():
    decorated = TokenAuth("secret").decorate(_http_connection())

    assert decorated.request_headers()["Authorization"] == "Bearer secret"


def test_delegated_auth_adds_actor_header_over_http():
    decorated = DelegatedAuth("alice").decorate(_http_connection())

    headers = decorated.request_headers()
    assert headers["x-actor-username"] == "alice"
    assert "Authorization" not in headers


def test_token_auth_runs_sasl_plain_handshake_over_socket(monkeypatch):
    created = []

    class _Sasl(_TransportStub):
        def __init__(self, transport, host, service, mechanism, **kwargs):
            created.append((transport, host, service, mechanism, kwargs))

    monkeypatch.setattr(auth_module, "TSaslClientTransport", _Sasl)
    socket = _SocketStub()

    decorated = TokenAuth("secret", username="alice").decorate(
        SocketConnection(socket, _TransportStub())
    )

    assert isinstance(decorated, SocketConnection)
    assert decorated.socket is socket
    assert created == [
        (socket, "metastore.local", "hive", "PLAIN", {"username": "alice", "password": "secret"})
    ]


def test_rejected_sasl_handshake_is_auth_error(monkeypatch):
    class _Sasl(_TransportStub):
        def __init__(self, *args, **kwargs):
            pass

        def open(self):
            raise TTransportException(TTransportException.NOT_OPEN, "Bad SASL status")

    monkeypatch.setattr(auth_module, "TSaslClientTransport", _Sasl)

    with pytest.raises(AuthError) as info:
        TokenAuth("secret", username="alice").decorate(
            SocketConnection(_SocketStub(), _TransportStub())
        )
    assert info.value.reason is AuthReason.REJECTED


@pytest.mark.parametrize(
    "failure",
    [
        EOFError("server closed the socket"),
        ConnectionResetError("reset by peer"),
        SASLError("mechanism not supported"),
        SASLProtocolException("unexpected challenge"),
    ],
)
def test_interrupted_sasl_handshake_is_auth_error(monkeypatch, failure):
    class _Sasl(_TransportStub):
        def __init__(self, *args, **kwargs):
            pass

        def open(self):
            raise failure

    monkeypatch.setattr(auth_module, "TSaslClientTransport", _Sasl)

    with pytest.raises(AuthError) as info:
        TokenAuth("secret", username="alice").decorate(
            SocketConnection(_SocketStub(), _TransportStub())
        )
    assert info.value.reason is AuthReason.REJECTED


@pytest.mark.parametrize("value", ["tok\r\nX-Injected: 1", "café", "a\x00b"])
def test_credentials_must_be_printable_ascii(value: str):
    with pytest.raises(ConfigError):
        TokenAuth(value)
    with pytest.raises(ConfigError):
        DelegatedAuth(value)


def test_providers_require_credentials_and_hide_tokens():
    with pytest.raises(AuthError) as info:
        TokenAuth("")
    assert info.value.reason is AuthReason.MISSING_CREDENTIALS
    with pytest.raises(AuthError):
        DelegatedAuth("")

    assert "secret" not in repr(TokenAuth("secret"))
    assert TokenAuth("secret").mode is AuthMode.TOKEN


def test_token_from_databricks_profile_reads_named_profile(monkeypatch):
    seen = []

    class _Config:
        def __init__(self, profile=None):
            seen.append(profile)
            self.token = "dapi123"

    monkeypatch.setattr(auth_module, "Config", _Config)

    assert token_from_databricks_profile("dev") == "dapi123"
    assert seen == ["dev"]


def test_token_from_databricks_profile_formats_login_hint(monkeypatch):
    class _Config:
        def __init__(self, profile=None):
            raise ValueError(
                "refresh token is invalid, run databricks auth login https://adb-1"
            )

    monkeypatch.setattr(auth_module, "Config", _Config)

    with pytest.raises(AuthError, match="--profile dev"):
        token_from_databricks_profile("dev")


def test_token_from_databricks_profile_requires_token(monkeypatch):
    class _Config:
        token = None
        host = "https://adb-1"

        def __init__(self, profile=None):
            pass

    monkeypatch.setattr(auth_module, "Config", _Config)

    with pytest.raises(AuthError, match="access token"):
        token_from_databricks_profile()
