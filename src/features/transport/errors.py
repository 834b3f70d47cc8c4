"""Transport error types and human-readable classification."""

import errno
import os
import socket

from src.features.errors import FailureKind, RequestError


class TransportError(RequestError):
    """Socket-level failure of a transport call. Retryable."""

    retryable = True

    def __init__(
        self,
        message: str,
        kind: FailureKind = FailureKind.TRANSPORT,
        hostname: str | None = None,
    ) -> None:
        """Initialize the transport error.

        Args:
            message: Human-readable error message.
            kind: Classification of the failure.
            hostname: Host the transport was talking to.
        """
        super().__init__(kind, message, {"hostname": hostname})
        self.hostname = hostname


class DnsLookupError(TransportError):
    """Hostname could not be resolved."""

    def __init__(self, hostname: str) -> None:
        """Initialize the error.

        Args:
            hostname: Hostname that failed to resolve.
        """
        super().__init__(
            f"DNS: Failed to lookup IP from hostname: {hostname}",
            kind=FailureKind.DNS,
            hostname=hostname,
        )


class ConnectionRefusedTransportError(TransportError):
    """Remote host refused the connection."""

    def __init__(self, hostname: str) -> None:
        """Initialize the error.

        Args:
            hostname: Host that refused the connection.
        """
        super().__init__(
            f"Connection Refused: Failed to connect to host: {hostname}",
            kind=FailureKind.CONNECTION_REFUSED,
            hostname=hostname,
        )


class ConnectionResetTransportError(TransportError):
    """Connection dropped before the response completed."""

    def __init__(self, message: str, hostname: str | None = None) -> None:
        """Initialize the error.

        Args:
            message: Human-readable error message.
            hostname: Host the connection was open to.
        """
        super().__init__(message, kind=FailureKind.CONNECTION_RESET, hostname=hostname)


class TransportAbortedError(Exception):
    """Raised from a handle's event stream after abort() was called."""


def find_os_error(exc: BaseException) -> OSError | None:
    """Walk an exception's cause chain for the underlying OSError.

    Exception groups (raised by anyio when every connection attempt fails)
    are searched member by member.

    Args:
        exc: Exception raised by a transport library.

    Returns:
        The first OSError with an errno in the chain, or None.
    """
    seen: set[int] = set()
    pending: list[BaseException] = [exc]
    while pending:
        current = pending.pop(0)
        if id(current) in seen:
            continue
        seen.add(id(current))
        if isinstance(current, OSError) and current.errno is not None:
            return current
        if isinstance(current, BaseExceptionGroup):
            pending.extend(current.exceptions)
        chained = current.__cause__ or current.__context__
        if chained is not None:
            pending.append(chained)
    return None


def classify_os_error(exc: BaseException, hostname: str) -> TransportError:
    """Turn a low-level exception into a classified TransportError.

    Args:
        exc: Exception raised while talking to the host.
        hostname: Host the transport was talking to.

    Returns:
        TransportError with a human-readable message.
    """
    if isinstance(exc, socket.gaierror):
        return DnsLookupError(hostname)

    os_error = find_os_error(exc)
    if os_error is None:
        return TransportError(str(exc) or type(exc).__name__, hostname=hostname)

    if isinstance(os_error, socket.gaierror):
        return DnsLookupError(hostname)
    if os_error.errno == errno.ECONNREFUSED:
        return ConnectionRefusedTransportError(hostname)

    description = os.strerror(os_error.errno) if os_error.errno else ""
    message = f"{description.capitalize()} ({exc})" if description else str(exc)
    if os_error.errno in (errno.ECONNRESET, errno.EPIPE, errno.ECONNABORTED):
        return ConnectionResetTransportError(message, hostname=hostname)
    return TransportError(message, hostname=hostname)
