from __future__ import annotations

import sys
from pathlib import Path

import httpx
import pytest

# Ensure tests always import the local src tree, not an older installed wheel.
ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
sys.path.insert(0, str(SRC))

from fake_metastore import HTTP_URI, InMemoryMetastore, SocketMetastoreServer  # noqa: E402


@pytest.fixture
def metastore() -> InMemoryMetastore:
    return InMemoryMetastore()


@pytest.fixture
def http_requests(httpx_mock, metastore) -> list[httpx.Request]:
    """Serve `metastore` over HTTP; returns the requests the server observed."""
    seen: list[httpx.Request] = []

    def _handle(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            200,
            content=metastore.handle(request.content),
            headers={"Content-Type": "application/x-thrift"},
        )

    httpx_mock.add_callback(_handle, url=HTTP_URI, method="POST", is_reusable=True)
    return seen


@pytest.fixture
def socket_server(metastore):
    server = SocketMetastoreServer(metastore).start()
    yield server
    server.stop()


@pytest.fixture
def framed_socket_server(metastore):
    server = SocketMetastoreServer(metastore, framed=True).start()
    yield server
    server.stop()
