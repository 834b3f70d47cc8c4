"""Transport collaborators performing the physical HTTP exchange."""

from src.features.transport.base import QueuedTransportHandle
from src.features.transport.errors import (
    ConnectionRefusedTransportError,
    ConnectionResetTransportError,
    DnsLookupError,
    TransportAbortedError,
    TransportError,
    classify_os_error,
)
from src.features.transport.events import (
    AddressResolved,
    Connected,
    DataChunk,
    RequestSent,
    ResponseEnd,
    ResponseHeaders,
    TransportEvent,
)
from src.features.transport.httpx_transport import HttpxTransport, HttpxTransportHandle
from src.features.transport.protocols import Transport, TransportHandle, TransportRequest
from src.features.transport.scripted import (
    Delay,
    Fail,
    Hang,
    RecordedRequest,
    ScriptedExchange,
    ScriptedTransport,
    scripted_failure,
    scripted_response,
)


__all__ = [
    # Contracts
    "Transport",
    "TransportHandle",
    "TransportRequest",
    "QueuedTransportHandle",
    # Events
    "AddressResolved",
    "Connected",
    "DataChunk",
    "RequestSent",
    "ResponseEnd",
    "ResponseHeaders",
    "TransportEvent",
    # Errors
    "ConnectionRefusedTransportError",
    "ConnectionResetTransportError",
    "DnsLookupError",
    "TransportAbortedError",
    "TransportError",
    "classify_os_error",
    # Implementations
    "HttpxTransport",
    "HttpxTransportHandle",
    "ScriptedTransport",
    "ScriptedExchange",
    "RecordedRequest",
    "Delay",
    "Fail",
    "Hang",
    "scripted_failure",
    "scripted_response",
]
