"""Integration tests running the request engine against a local HTTP server."""

import gzip
import json
import threading
import time
from collections.abc import Iterator
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path

import pytest

from src.features.config import ClientConfig
from src.features.dns_cache import AddressCache
from src.features.errors import FailureKind
from src.features.request import Failure, RequestOptions, RequestOrchestrator, Success
from src.features.timing import PHASE_DNS
from src.features.transport import HttpxTransport


GZIP_TEXT = b"compressed hello " * 20


class _Server(ThreadingHTTPServer):
    daemon_threads = True
    block_on_close = False

    def __init__(self) -> None:
        super().__init__(("127.0.0.1", 0), _Handler)
        self.flaky_calls = 0
        self.lock = threading.Lock()


class _Handler(BaseHTTPRequestHandler):
    protocol_version = "HTTP/1.1"
    server: _Server

    def log_message(self, format: str, *args: object) -> None:  # noqa: A002
        pass

    def _send(self, status: int, body: bytes, headers: dict[str, str] | None = None) -> None:
        self.send_response(status)
        for key, value in (headers or {}).items():
            self.send_header(key, value)
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def do_GET(self) -> None:  # noqa: N802
        if self.path == "/ok":
            self._send(200, b"ok", {"Content-Type": "text/plain"})
        elif self.path == "/gzip":
            self._send(200, gzip.compress(GZIP_TEXT), {"Content-Encoding": "gzip"})
        elif self.path == "/redirect":
            self._send(302, b"", {"Location": "/ok"})
        elif self.path == "/flaky":
            with self.server.lock:
                self.server.flaky_calls += 1
                calls = self.server.flaky_calls
            if calls == 1:
                self._send(500, b"try again")
            else:
                self._send(200, b"recovered")
        elif self.path == "/slow":
            time.sleep(1.0)
            self._send(200, b"late")
        elif self.path == "/host":
            self._send(200, (self.headers.get("Host") or "").encode())
        else:
            self._send(404, b"not found")

    def do_POST(self) -> None:  # noqa: N802
        length = int(self.headers.get("Content-Length") or 0)
        body = self.rfile.read(length)
        document = {
            "body": body.decode(),
            "content_type": self.headers.get("Content-Type"),
        }
        self._send(200, json.dumps(document).encode(), {"Content-Type": "application/json"})


class _StubResolver:
    """Resolves every hostname to the loopback address."""

    def __init__(self) -> None:
        self.calls: list[str] = []

    async def resolve(self, hostname: str, port: int) -> str:
        self.calls.append(hostname)
        return "127.0.0.1"


@pytest.fixture
def server() -> Iterator[_Server]:
    """Run a local HTTP server on an ephemeral port."""
    httpd = _Server()
    thread = threading.Thread(target=httpd.serve_forever, daemon=True)
    thread.start()
    yield httpd
    httpd.shutdown()
    httpd.server_close()


def _base(server: _Server) -> str:
    return f"http://127.0.0.1:{server.server_address[1]}"


def _orchestrator(
    resolver: _StubResolver | None = None, **config: object
) -> RequestOrchestrator:
    return RequestOrchestrator(
        config=ClientConfig(**config),  # type: ignore[arg-type]
        transport=HttpxTransport(resolver=resolver),
        address_cache=AddressCache(),
    )


@pytest.mark.integration
class TestHttpEngine:
    """End-to-end exchanges over real sockets."""

    @pytest.mark.asyncio
    async def test_simple_get(self, server: _Server) -> None:
        """Test a plain GET with timing."""
        outcome = await _orchestrator().request(f"{_base(server)}/ok")

        assert isinstance(outcome, Success)
        assert outcome.status == 200
        assert outcome.body == b"ok"
        assert outcome.headers["content-type"] == "text/plain"
        assert outcome.timing.elapsed("total") is not None

    @pytest.mark.asyncio
    async def test_gzip_decompressed(self, server: _Server) -> None:
        """Test that gzip bodies are decompressed."""
        outcome = await _orchestrator().request(f"{_base(server)}/gzip")

        assert isinstance(outcome, Success)
        assert outcome.body == GZIP_TEXT

    @pytest.mark.asyncio
    async def test_gzip_kept_without_decompression(self, server: _Server) -> None:
        """Test that auto_decompress=False returns the encoded bytes."""
        outcome = await _orchestrator(auto_decompress=False).request(
            f"{_base(server)}/gzip"
        )

        assert isinstance(outcome, Success)
        assert gzip.decompress(outcome.body or b"") == GZIP_TEXT

    @pytest.mark.asyncio
    async def test_redirect_followed(self, server: _Server) -> None:
        """Test following a relative redirect."""
        outcome = await _orchestrator(follow=True).request(f"{_base(server)}/redirect")

        assert isinstance(outcome, Success)
        assert outcome.status == 200
        assert outcome.url.endswith("/ok")

    @pytest.mark.asyncio
    async def test_redirect_returned_without_follow(self, server: _Server) -> None:
        """Test that redirects are returned when following is off."""
        outcome = await _orchestrator().request(f"{_base(server)}/redirect")

        assert isinstance(outcome, Success)
        assert outcome.status == 302
        assert outcome.headers["location"] == "/ok"

    @pytest.mark.asyncio
    async def test_retry_after_server_error(self, server: _Server) -> None:
        """Test that a 5xx is retried."""
        outcome = await _orchestrator(retries=2).request(f"{_base(server)}/flaky")

        assert isinstance(outcome, Success)
        assert outcome.body == b"recovered"
        assert server.flaky_calls == 2

    @pytest.mark.asyncio
    async def test_first_byte_timeout(self, server: _Server) -> None:
        """Test that a slow server trips the first-byte timeout."""
        outcome = await _orchestrator(timeout_ms=100).request(f"{_base(server)}/slow")

        assert isinstance(outcome, Failure)
        assert outcome.kind == FailureKind.TIMEOUT
        assert outcome.message == "Socket Timeout (100 ms)"

    @pytest.mark.asyncio
    async def test_connection_refused(self) -> None:
        """Test that a closed port reports a refused connection."""
        httpd = _Server()
        port = httpd.server_address[1]
        httpd.server_close()

        outcome = await _orchestrator().request(f"http://127.0.0.1:{port}/ok")

        assert isinstance(outcome, Failure)
        assert outcome.kind == FailureKind.CONNECTION_REFUSED

    @pytest.mark.asyncio
    async def test_post_form_body(self, server: _Server) -> None:
        """Test posting a buffered body with Content-Length."""
        outcome = await _orchestrator().request(
            f"{_base(server)}/echo",
            RequestOptions(
                method="POST",
                body=b"a=1&b=2",
                headers={"Content-Type": "application/x-www-form-urlencoded"},
            ),
        )

        assert isinstance(outcome, Success)
        document = json.loads(outcome.body or b"")
        assert document["body"] == "a=1&b=2"
        assert document["content_type"] == "application/x-www-form-urlencoded"

    @pytest.mark.asyncio
    async def test_hostname_resolution_and_cache(self, server: _Server) -> None:
        """Test connecting by resolved address while keeping the Host header."""
        resolver = _StubResolver()
        orchestrator = _orchestrator(resolver, dns_ttl_seconds=60)
        port = server.server_address[1]
        url = f"http://engine.test:{port}/host"

        first = await orchestrator.request(url)
        second = await orchestrator.request(url)

        assert isinstance(first, Success)
        assert first.body == f"engine.test:{port}".encode()
        assert first.timing.elapsed(PHASE_DNS) is not None
        assert isinstance(second, Success)
        assert second.body == f"engine.test:{port}".encode()
        assert second.timing.elapsed(PHASE_DNS) is None
        assert resolver.calls == ["engine.test"]

    @pytest.mark.asyncio
    async def test_download_to_file(self, server: _Server, tmp_path: Path) -> None:
        """Test streaming a decompressed body to a file."""
        target = tmp_path / "download.txt"

        outcome = await _orchestrator().request(
            f"{_base(server)}/gzip", RequestOptions(download=target)
        )

        assert isinstance(outcome, Success)
        assert outcome.body is None
        assert target.read_bytes() == GZIP_TEXT
