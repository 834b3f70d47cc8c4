"""Default transport built on httpx."""

import socket
import ssl
from collections.abc import AsyncIterable, AsyncIterator
from typing import Any

import httpx
import structlog

from src.features.access.filter import is_ip_literal
from src.features.dns_cache.resolver import AddressResolver, SystemResolver
from src.features.transport.base import QueuedTransportHandle
from src.features.transport.errors import DnsLookupError, classify_os_error
from src.features.transport.events import (
    AddressResolved,
    Connected,
    DataChunk,
    RequestSent,
    ResponseEnd,
    ResponseHeaders,
)
from src.features.transport.protocols import TransportRequest


logger = structlog.get_logger()

# Favor latency over throughput: disable Nagle's send coalescing
NO_DELAY_SOCKET_OPTIONS: list[tuple[int, int, int]] = [
    (socket.IPPROTO_TCP, socket.TCP_NODELAY, 1),
]

DEFAULT_POOL_SIZE = 20


def _estimate_head_size(request: TransportRequest, headers: dict[str, str]) -> int:
    request_line = f"{request.method} {request.path} HTTP/1.1\r\n"
    header_lines = sum(len(key) + len(value) + 4 for key, value in headers.items())
    return len(request_line) + header_lines + 2


class HttpxTransportHandle(QueuedTransportHandle):
    """One httpx exchange, reported as transport events."""

    def __init__(
        self,
        request: TransportRequest,
        client: httpx.AsyncClient,
        resolver: AddressResolver,
        owns_client: bool,
    ) -> None:
        """Initialize the handle.

        Args:
            request: Attempt to perform.
            client: Client used for the exchange.
            resolver: Hostname resolver.
            owns_client: Close the client when the handle is closed.
        """
        super().__init__(request)
        self._client = client
        self._resolver = resolver
        self._owns_client = owns_client
        self._bytes_sent = 0

    async def _pump(self) -> None:
        request = self._request
        address = request.connect_address

        if address is None and not is_ip_literal(request.hostname):
            try:
                address = await self._resolver.resolve(request.hostname, request.port)
            except OSError as e:
                raise DnsLookupError(request.hostname) from e
            await self.emit(AddressResolved(hostname=request.hostname, address=address))

        headers = dict(request.headers)
        extensions: dict[str, Any] = {"trace": self._trace}
        if address is not None and address != request.hostname:
            if not any(key.lower() == "host" for key in headers):
                headers["Host"] = request.host_header
            if request.scheme == "https":
                extensions["sni_hostname"] = request.hostname

        self._bytes_sent = _estimate_head_size(request, headers)

        try:
            async with self._client.stream(
                request.method,
                request.connect_url(address),
                headers=headers,
                content=self._content(request),
                extensions=extensions,
            ) as response:
                await self.emit(
                    ResponseHeaders(
                        status=response.status_code,
                        reason=response.reason_phrase,
                        headers=dict(response.headers.items()),
                    )
                )
                # Raw bytes: decompression belongs to the orchestrator
                async for chunk in response.aiter_raw():
                    if chunk:
                        await self.emit(DataChunk(chunk))
        except httpx.TransportError as e:
            raise classify_os_error(e, request.hostname) from e

        await self.emit(ResponseEnd())

    def _content(self, request: TransportRequest) -> bytes | AsyncIterable[bytes] | None:
        body = request.body
        if body is None:
            return None
        if isinstance(body, bytes):
            if request.chunked:
                return self._counting(_single_chunk(body))
            self._bytes_sent += len(body)
            return body
        return self._counting(body)

    async def _counting(self, body: AsyncIterable[bytes]) -> AsyncIterator[bytes]:
        async for chunk in body:
            self._bytes_sent += len(chunk)
            yield chunk

    async def _trace(self, event_name: str, info: dict[str, Any]) -> None:
        if event_name == "connection.connect_tcp.complete":
            await self.emit(Connected())
        elif event_name.endswith(".send_request_body.complete"):
            await self.emit(RequestSent(bytes_sent=self._bytes_sent))

    async def _release(self) -> None:
        if self._owns_client:
            await self._client.aclose()


async def _single_chunk(body: bytes) -> AsyncIterator[bytes]:
    yield body


class HttpxTransport:
    """Transport performing real HTTP/HTTPS exchanges through httpx.

    Hostnames are resolved through the injected resolver and the connection
    is made to the resolved (or cached) address, keeping the original host
    in the Host header and in TLS SNI. Without keep-alive every attempt uses
    its own client and closes its connection when done.
    """

    def __init__(
        self,
        resolver: AddressResolver | None = None,
        keep_alive: bool = False,
        verify: bool | ssl.SSLContext = True,
        pool_size: int = DEFAULT_POOL_SIZE,
    ) -> None:
        """Initialize the transport.

        Args:
            resolver: Hostname resolver (default: system getaddrinfo).
            keep_alive: Reuse pooled connections across attempts.
            verify: TLS certificate verification setting.
            pool_size: Maximum pooled connections when keep-alive is on.
        """
        self._resolver = resolver or SystemResolver()
        self._keep_alive = keep_alive
        self._verify = verify
        self._pool_size = pool_size
        self._shared: httpx.AsyncClient | None = None
        self._log = logger.bind(component="transport", keep_alive=keep_alive)

    @property
    def keep_alive(self) -> bool:
        """Check if connections are pooled."""
        return self._keep_alive

    def _build_client(self) -> httpx.AsyncClient:
        keepalive = self._pool_size if self._keep_alive else 0
        transport = httpx.AsyncHTTPTransport(
            verify=self._verify,
            retries=0,
            socket_options=NO_DELAY_SOCKET_OPTIONS,
            limits=httpx.Limits(
                max_connections=self._pool_size,
                max_keepalive_connections=keepalive,
            ),
        )
        return httpx.AsyncClient(
            transport=transport,
            follow_redirects=False,
            timeout=None,
            trust_env=False,
        )

    def open(self, request: TransportRequest) -> HttpxTransportHandle:
        """Start an exchange.

        Args:
            request: Attempt to perform.

        Returns:
            Running handle.
        """
        if self._keep_alive:
            if self._shared is None:
                self._shared = self._build_client()
            handle = HttpxTransportHandle(
                request, self._shared, self._resolver, owns_client=False
            )
        else:
            handle = HttpxTransportHandle(
                request, self._build_client(), self._resolver, owns_client=True
            )
        handle.start()
        return handle

    async def aclose(self) -> None:
        """Close the pooled client, if any."""
        if self._shared is not None:
            shared, self._shared = self._shared, None
            await shared.aclose()
            self._log.debug("transport_pool_closed")
