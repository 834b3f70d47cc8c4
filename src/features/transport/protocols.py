"""Transport contracts consumed by the request orchestrator."""

import time
from collections.abc import AsyncIterable, AsyncIterator, Callable
from dataclasses import dataclass, field
from typing import Protocol

from src.features.transport.events import TransportEvent


DEFAULT_PORTS = {"http": 80, "https": 443}


@dataclass
class TransportRequest:
    """Everything a transport needs to perform one attempt.

    Attributes:
        method: HTTP method.
        scheme: "http" or "https".
        hostname: Original hostname from the target URL.
        port: Port to connect to.
        path: Path including the query string.
        headers: Final request headers (validated).
        body: Request body, raw bytes or an async byte stream.
        connect_address: Address to connect to instead of resolving
            the hostname (cache hit or literal address).
        chunked: Send the body with chunked transfer encoding.
        clock: Clock used to stamp emitted events, in seconds.
    """

    method: str
    scheme: str
    hostname: str
    port: int
    path: str
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes | AsyncIterable[bytes] | None = None
    connect_address: str | None = None
    chunked: bool = False
    clock: Callable[[], float] = field(
        default=time.perf_counter, repr=False, compare=False
    )

    @property
    def url(self) -> str:
        """URL addressed by hostname."""
        return self._build_url(self.hostname)

    @property
    def host_header(self) -> str:
        """Value for a Host header naming the original host."""
        if DEFAULT_PORTS.get(self.scheme) == self.port:
            return self.hostname
        return f"{_bracket(self.hostname)}:{self.port}"

    def connect_url(self, address: str | None) -> str:
        """URL addressed by a resolved address.

        Args:
            address: Address to connect to, or None to use the hostname.

        Returns:
            Absolute URL.
        """
        return self._build_url(address or self.hostname)

    def _build_url(self, host: str) -> str:
        netloc = _bracket(host)
        if DEFAULT_PORTS.get(self.scheme) != self.port:
            netloc = f"{netloc}:{self.port}"
        return f"{self.scheme}://{netloc}{self.path}"


def _bracket(host: str) -> str:
    if ":" in host and not host.startswith("["):
        return f"[{host}]"
    return host


class TransportHandle(Protocol):
    """An in-flight transport call."""

    def events(self) -> AsyncIterator[TransportEvent]:
        """Iterate events until the response ends.

        Raises:
            TransportError: On socket-level failures.
            TransportAbortedError: After abort() was called.
        """
        ...

    def pending(self) -> int:
        """Number of events received but not yet consumed."""
        ...

    def abort(self) -> None:
        """Abort the call; the event stream raises TransportAbortedError."""
        ...

    async def aclose(self) -> None:
        """Release the call and its connection. Safe to call repeatedly."""
        ...


class Transport(Protocol):
    """Factory of transport calls."""

    def open(self, request: TransportRequest) -> TransportHandle:
        """Start a transport call. Must be called from a running event loop.

        Args:
            request: Attempt to perform.

        Returns:
            Handle emitting the call's events.
        """
        ...

    async def aclose(self) -> None:
        """Release pooled resources."""
        ...
