import threading
import time
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

import httpx
import pytest
from fake_metastore import HTTP_URI, ServerFault
from thrift.Thrift import TApplicationException

from hmsops.core.auth import DelegatedAuth, TokenAuth
from hmsops.core.errors import (
    AlreadyExistsError,
    AuthError,
    InvalidArgumentError,
    MetastoreTimeout,
    NotFoundError,
    ProtocolError,
    RemoteError,
    UnavailableError,
)
from hmsops.core.factory import create_client
from hmsops.core.models import Database


def test_http_connection_with_additional_headers(http_requests, metastore):
    with create_client(HTTP_URI, headers="key1:value1, key2:value2", timeout=20) as client:
        client.create_database(Database(name="testdb"))

        assert "testdb" in client.list_databases()
        with pytest.raises(NotFoundError):
            client.get_database("does-not-exist")

    assert len(http_requests) == 3
    for request in http_requests:
        assert request.headers["key1"] == "value1"
        assert request.headers["key2"] == "value2"
        assert "authorization" not in request.headers
        assert request.headers["content-type"] == "application/x-thrift"


def test_get_database_returns_stored_definition(http_requests, metastore):
    metastore.databases["sales"] = Database(
        name="sales", description="Sales data", parameters={"team": "finance"}
    )

    with create_client(HTTP_URI) as client:
        db = client.get_database("sales")

    assert db == metastore.databases["sales"]


def test_list_databases_lists_created_database_once(http_requests, metastore):
    with create_client(HTTP_URI) as client:
        client.create_database(Database(name="testdb"))
        client.create_database(Database(name="other"))

        assert client.list_databases().count("testdb") == 1


def test_create_existing_database_is_already_exists(http_requests, metastore):
    metastore.databases["testdb"] = Database(name="testdb")

    with create_client(HTTP_URI) as client:
        with pytest.raises(AlreadyExistsError, match="already exists"):
            client.create_database(Database(name="testdb"))
        # semantic errors leave the connection usable
        assert client.list_databases() == ["testdb"]


def test_drop_database_with_tables_needs_cascade(http_requests, metastore):
    metastore.databases["sales"] = Database(name="sales")
    metastore.tables["sales"] = ["orders", "customers"]

    with create_client(HTTP_URI) as client:
        assert client.list_tables("sales") == ["orders", "customers"]
        with pytest.raises(InvalidArgumentError):
            client.drop_database("sales")
        client.drop_database("sales", cascade=True)

        assert client.list_databases() == []


def test_token_auth_sends_bearer_token(http_requests, metastore):
    with create_client(HTTP_URI, auth=TokenAuth("test-token")) as client:
        client.list_databases()

    assert http_requests[0].headers["authorization"] == "Bearer test-token"


def test_delegated_auth_sends_actor_header(http_requests, metastore):
    with create_client(HTTP_URI, auth=DelegatedAuth("alice")) as client:
        client.list_databases()

    assert http_requests[0].headers["x-actor-username"] == "alice"
    assert "authorization" not in http_requests[0].headers


def test_timeout_raises_timeout_and_closes_client(httpx_mock):
    httpx_mock.add_exception(httpx.ReadTimeout("Read timed out"))

    client = create_client(HTTP_URI, timeout=0.5)
    with pytest.raises(MetastoreTimeout):
        client.list_databases()

    assert client.closed
    with pytest.raises(UnavailableError, match="closed"):
        client.list_databases()


def test_connection_error_is_unavailable(httpx_mock):
    httpx_mock.add_exception(httpx.ConnectError("Connection refused"))

    client = create_client(HTTP_URI)
    with pytest.raises(UnavailableError) as info:
        client.list_databases()

    assert info.value.retryable


@pytest.mark.parametrize(
    "status, error_type", [(503, UnavailableError), (401, AuthError), (403, AuthError)]
)
def test_non_success_status_is_mapped(httpx_mock, status: int, error_type):
    httpx_mock.add_response(status_code=status)

    with create_client(HTTP_URI) as client:
        with pytest.raises(error_type):
            client.list_databases()


def test_undecodable_response_is_protocol_error(httpx_mock):
    httpx_mock.add_response(content=b"<html>not thrift</html>")

    client = create_client(HTTP_URI)
    with pytest.raises(ProtocolError):
        client.list_databases()

    assert client.closed


def test_close_is_idempotent(http_requests, metastore):
    client = create_client(HTTP_URI)
    client.list_databases()

    client.close()
    client.close()

    assert client.closed


class _DripHandler(BaseHTTPRequestHandler):
    """Answers every POST with 15 body bytes, one every 0.2 s."""

    def do_POST(self):
        self.rfile.read(int(self.headers["Content-Length"]))
        self.send_response(200)
        self.send_header("Content-Type", "application/x-thrift")
        self.send_header("Content-Length", "15")
        self.end_headers()
        try:
            for _ in range(15):
                self.wfile.write(b"\x00")
                self.wfile.flush()
                time.sleep(0.2)
        except OSError:
            pass

    def log_message(self, format, *args):
        return None


@pytest.fixture
def drip_uri():
    server = ThreadingHTTPServer(("127.0.0.1", 0), _DripHandler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    yield f"http://127.0.0.1:{server.server_address[1]}/metastore"
    server.shutdown()
    server.server_close()


def test_slow_response_is_bounded_by_call_timeout(drip_uri):
    client = create_client(drip_uri, timeout=0.5)

    started = time.monotonic()
    with pytest.raises(MetastoreTimeout):
        client.list_databases()

    assert time.monotonic() - started < 1.5
    assert client.closed


def test_ipv6_endpoint_posts_to_bracketed_host(httpx_mock, metastore):
    metastore.databases["default"] = Database(name="default")
    httpx_mock.add_callback(
        lambda request: httpx.Response(200, content=metastore.handle(request.content))
    )

    with create_client("http://[::1]:8080/metastore") as client:
        assert client.list_databases() == ["default"]

    assert str(httpx_mock.get_requests()[0].url) == "http://[::1]:8080/metastore"


def test_meta_exception_is_remote_error_and_keeps_client_open(http_requests, metastore):
    def _broken():
        raise ServerFault("MetaException", "metastore database is locked")

    metastore.get_all_databases = _broken

    with create_client(HTTP_URI) as client:
        with pytest.raises(RemoteError, match="locked"):
            client.list_databases()
        assert not client.closed
        assert client.list_tables("sales") == []


@pytest.mark.parametrize(
    "kind", [TApplicationException.INTERNAL_ERROR, TApplicationException.UNKNOWN_METHOD]
)
def test_server_application_error_is_remote_error(http_requests, metastore, kind: int):
    metastore.application_error = kind

    with create_client(HTTP_URI) as client:
        with pytest.raises(RemoteError, match="get_all_databases failed"):
            client.list_databases()
        assert not client.closed

        metastore.application_error = None
        assert client.list_databases() == []


def test_bad_sequence_id_is_protocol_error_and_closes_client(http_requests, metastore):
    metastore.application_error = TApplicationException.BAD_SEQUENCE_ID

    client = create_client(HTTP_URI)
    with pytest.raises(ProtocolError):
        client.list_databases()

    assert client.closed
    with pytest.raises(UnavailableError):
        client.list_databases()
    assert len(http_requests) == 1
