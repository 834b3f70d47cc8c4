"""Scripted transport replaying canned exchanges.

Provides a transport that:
- Replays scripted events for every opened request
- Never touches the network
- Records every opened request for assertions
"""

import asyncio
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field

import structlog

from src.features.access.filter import is_ip_literal
from src.features.transport.base import QueuedTransportHandle
from src.features.transport.errors import DnsLookupError, TransportError
from src.features.transport.events import (
    AddressResolved,
    Connected,
    DataChunk,
    RequestSent,
    ResponseEnd,
    ResponseHeaders,
    TransportEvent,
)
from src.features.transport.protocols import TransportRequest


logger = structlog.get_logger()


@dataclass(frozen=True)
class Delay:
    """Pause the script."""

    seconds: float


@dataclass(frozen=True)
class Hang:
    """Stop producing events until the handle is aborted or closed."""


@dataclass(frozen=True)
class Fail:
    """Fail the exchange with a transport error."""

    error: TransportError


ScriptStep = TransportEvent | Delay | Hang | Fail


@dataclass
class ScriptedExchange:
    """Script for one attempt, replayed after connect and send.

    Attributes:
        steps: Events and control steps, in order.
        connect: Emit Connected before the steps.
        resolve_delay: Seconds spent "resolving" the hostname.
    """

    steps: list[ScriptStep] = field(default_factory=list)
    connect: bool = True
    resolve_delay: float = 0.0


@dataclass
class RecordedRequest:
    """Request seen by the scripted transport.

    Attributes:
        request: Request as opened.
        body: Request body bytes (streams are consumed).
        address: Address the request would have connected to.
    """

    request: TransportRequest
    body: bytes = b""
    address: str | None = None

    @property
    def url(self) -> str:
        """Get the URL addressed by hostname."""
        return self.request.url


def scripted_response(
    status: int = 200,
    body: bytes = b"",
    headers: dict[str, str] | None = None,
    reason: str = "",
    chunks: Sequence[bytes] | None = None,
) -> ScriptedExchange:
    """Build the script of a complete response.

    Args:
        status: HTTP status code.
        body: Response body (ignored when chunks is given).
        headers: Response headers.
        reason: Reason phrase.
        chunks: Body split in chunks.

    Returns:
        ScriptedExchange delivering the response.
    """
    steps: list[ScriptStep] = [
        ResponseHeaders(
            status=status,
            reason=reason,
            headers={key.lower(): value for key, value in (headers or {}).items()},
        )
    ]
    parts = list(chunks) if chunks is not None else ([body] if body else [])
    steps.extend(DataChunk(part) for part in parts)
    steps.append(ResponseEnd())
    return ScriptedExchange(steps=steps)


def scripted_failure(error: TransportError, connect: bool = False) -> ScriptedExchange:
    """Build the script of an exchange failing with a transport error.

    Args:
        error: Error to raise.
        connect: Emit Connected before failing.

    Returns:
        ScriptedExchange raising the error.
    """
    return ScriptedExchange(steps=[Fail(error)], connect=connect)


class ScriptedTransportHandle(QueuedTransportHandle):
    """Handle replaying one scripted exchange."""

    def __init__(
        self,
        request: TransportRequest,
        exchange: ScriptedExchange,
        record: RecordedRequest,
        address: str | None,
    ) -> None:
        """Initialize the handle.

        Args:
            request: Attempt to perform.
            exchange: Script to replay.
            record: Record to fill in.
            address: Address the hostname resolves to, or None if unknown.
        """
        super().__init__(request)
        self._exchange = exchange
        self._record = record
        self._address = address

    async def _pump(self) -> None:
        request = self._request
        exchange = self._exchange
        address = request.connect_address

        if address is None and not is_ip_literal(request.hostname):
            if exchange.resolve_delay:
                await asyncio.sleep(exchange.resolve_delay)
            if self._address is None:
                raise DnsLookupError(request.hostname)
            address = self._address
            await self.emit(AddressResolved(hostname=request.hostname, address=address))
        self._record.address = address or request.hostname

        if exchange.connect:
            await self.emit(Connected())
        elif exchange.steps and isinstance(exchange.steps[0], Fail):
            # Failed before a connection was made
            raise exchange.steps[0].error

        self._record.body = await self._read_body()
        await self.emit(RequestSent(bytes_sent=len(self._record.body)))

        for step in exchange.steps:
            if isinstance(step, Delay):
                await asyncio.sleep(step.seconds)
            elif isinstance(step, Hang):
                await asyncio.Event().wait()
            elif isinstance(step, Fail):
                raise step.error
            else:
                await self.emit(step)

    async def _read_body(self) -> bytes:
        body = self._request.body
        if body is None:
            return b""
        if isinstance(body, bytes):
            return body
        parts = [chunk async for chunk in body]
        return b"".join(parts)


class ScriptedTransport:
    """Transport returning scripted exchanges instead of touching the network.

    Exchanges are consumed in order; once the list runs out the last one is
    replayed for every further request. A callable may be given instead to
    choose the exchange per request.
    """

    def __init__(
        self,
        exchanges: Sequence[ScriptedExchange]
        | Callable[[TransportRequest], ScriptedExchange],
        addresses: dict[str, str] | None = None,
        default_address: str | None = "127.0.0.1",
    ) -> None:
        """Initialize the transport.

        Args:
            exchanges: Scripts in order, or a function choosing one per request.
            addresses: Hostname to address mapping used for resolution.
            default_address: Address for hostnames missing from the mapping
                (None makes them fail with a DNS error).
        """
        self._exchanges = exchanges
        self._addresses = dict(addresses or {})
        self._default_address = default_address
        self._handles: list[ScriptedTransportHandle] = []
        self.requests: list[RecordedRequest] = []
        self.closed = False
        self._log = logger.bind(component="transport", transport="scripted")

    @property
    def open_count(self) -> int:
        """Get the number of opened requests."""
        return len(self.requests)

    @property
    def active_count(self) -> int:
        """Get the number of handles not yet closed."""
        return sum(1 for handle in self._handles if not handle.closed)

    def _next_exchange(self, request: TransportRequest) -> ScriptedExchange:
        if callable(self._exchanges):
            return self._exchanges(request)
        index = min(len(self.requests) - 1, len(self._exchanges) - 1)
        return self._exchanges[index]

    def open(self, request: TransportRequest) -> ScriptedTransportHandle:
        """Start replaying the next exchange.

        Args:
            request: Attempt to perform.

        Returns:
            Running handle.
        """
        record = RecordedRequest(request=request)
        self.requests.append(record)
        exchange = self._next_exchange(request)
        address = self._addresses.get(request.hostname, self._default_address)

        self._log.debug(
            "scripted_request_opened",
            method=request.method,
            url=request.url,
            attempt=len(self.requests),
        )

        handle = ScriptedTransportHandle(request, exchange, record, address)
        self._handles.append(handle)
        handle.start()
        return handle

    async def aclose(self) -> None:
        """Mark the transport closed."""
        self.closed = True
