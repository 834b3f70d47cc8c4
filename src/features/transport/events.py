"""Events emitted by a transport handle during one attempt.

Every event carries ``at``, the clock value when the transport emitted it.
Queued transport handles stamp it on ``emit()``; it is excluded from
equality.
"""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class AddressResolved:
    """Hostname lookup finished."""

    hostname: str
    address: str
    at: float | None = field(default=None, compare=False, kw_only=True)


@dataclass(frozen=True)
class Connected:
    """TCP connection established."""

    at: float | None = field(default=None, compare=False, kw_only=True)


@dataclass(frozen=True)
class RequestSent:
    """Request line, headers and body fully written."""

    bytes_sent: int = 0
    at: float | None = field(default=None, compare=False, kw_only=True)


@dataclass(frozen=True)
class ResponseHeaders:
    """Response status line and headers received.

    Header names are lower-cased.
    """

    status: int
    reason: str = ""
    headers: dict[str, str] = field(default_factory=dict)
    at: float | None = field(default=None, compare=False, kw_only=True)


@dataclass(frozen=True)
class DataChunk:
    """Raw (still encoded) response body bytes."""

    data: bytes
    at: float | None = field(default=None, compare=False, kw_only=True)


@dataclass(frozen=True)
class ResponseEnd:
    """Response body complete."""

    at: float | None = field(default=None, compare=False, kw_only=True)


TransportEvent = (
    AddressResolved | Connected | RequestSent | ResponseHeaders | DataChunk | ResponseEnd
)
