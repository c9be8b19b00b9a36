"""Global pytest fixtures and configuration."""

import asyncio
import sys
from dataclasses import dataclass, field
from pathlib import Path

import pytest
import pytest_asyncio

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from mockhttpd.models.config import ServerConfig  # noqa: E402
from mockhttpd.services.server import MockServer  # noqa: E402

PACKAGE_NAME = "pkg-1.0.tgz"
PACKAGE_SIZE = 1000


def fixture_bytes(size: int) -> bytes:
    """Deterministic, non-repeating-per-line binary content."""
    return (bytes(range(256)) * (size // 256 + 1))[:size]


@dataclass
class RawResponse:
    """Response as it arrived on the wire, read until the server closed."""

    status: int
    header_names: list = field(default_factory=list)
    headers: dict = field(default_factory=dict)
    body: bytes = b""


def parse_raw_response(data: bytes) -> RawResponse:
    head, _, body = data.partition(b"\r\n\r\n")
    lines = head.decode("latin-1").split("\r\n")
    response = RawResponse(status=int(lines[0].split()[1]), body=body)
    for line in lines[1:]:
        name, _, value = line.partition(":")
        response.header_names.append(name)
        response.headers[name.lower()] = value.strip()
    return response


@pytest.fixture
def doc_root(tmp_path):
    """Document root with a package, a text file and a nested repository.

    root/
        pkg-1.0.tgz        (1000 bytes)
        README.txt
        repo/
            core.db
            extra-2.1.tar.gz
            sub/
                deep.pkg   (grandchild of repo)
    """
    root = tmp_path / "www"
    root.mkdir()
    (root / PACKAGE_NAME).write_bytes(fixture_bytes(PACKAGE_SIZE))
    (root / "README.txt").write_text("fixture repository\n")
    repo = root / "repo"
    repo.mkdir()
    (repo / "core.db").write_bytes(b"db" * 50)
    (repo / "extra-2.1.tar.gz").write_bytes(fixture_bytes(333))
    (repo / "sub").mkdir()
    (repo / "sub" / "deep.pkg").write_bytes(b"deep")
    return root


@pytest.fixture
def make_config(doc_root):
    """Build a ServerConfig on an ephemeral port with the given fault rules."""

    def _make(*rules, **overrides):
        settings = {"document_root": doc_root, "port": 0, "faults": tuple(rules)}
        settings.update(overrides)
        return ServerConfig(**settings)

    return _make


@pytest_asyncio.fixture
async def serve(make_config):
    """Start MockServer instances for a test and stop them afterwards."""
    servers = []

    async def _serve(*rules, **overrides):
        server = MockServer(make_config(*rules, **overrides))
        await server.start()
        servers.append(server)
        return server

    yield _serve

    for server in servers:
        await server.stop()


async def send_raw(server: MockServer, payload: bytes, timeout: float = 5.0) -> bytes:
    """Send bytes, half-close, and read everything until the server closes."""
    reader, writer = await asyncio.open_connection("127.0.0.1", server.bound_port)
    try:
        writer.write(payload)
        writer.write_eof()
        await writer.drain()
        return await asyncio.wait_for(reader.read(), timeout=timeout)
    finally:
        writer.close()
        await writer.wait_closed()


@pytest.fixture
def exchange():
    """Perform one raw HTTP exchange and parse the result."""

    async def _exchange(server: MockServer, method: str, path: str) -> RawResponse:
        payload = f"{method} {path} HTTP/1.1\r\nHost: localhost\r\n\r\n".encode()
        return parse_raw_response(await send_raw(server, payload))

    return _exchange


@pytest.fixture
def raw_send():
    """Send arbitrary bytes (malformed requests included) and return the raw reply."""
    return send_raw
