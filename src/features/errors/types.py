"""Error types for the request engine."""

from enum import Enum
from typing import Annotated

from pydantic import Field

from src.data_model import StrictBaseModel


class FailureKind(str, Enum):
    """Classification of terminal request failures.

    - INVALID_HEADER: Header name or value contains illegal characters
    - INVALID_URL: Target URL could not be parsed
    - BLOCKED_ADDRESS: Address refused by the access control policy
    - DNS: Hostname lookup failed
    - CONNECTION_REFUSED: Remote host refused the connection
    - CONNECTION_RESET: Connection dropped mid-exchange
    - TRANSPORT: Other socket or protocol error
    - TIMEOUT: First-byte or idle timeout elapsed
    - ABORTED: Request cancelled by the caller
    - DECOMPRESS: Response body could not be decompressed
    - SINK: Download sink could not be opened or written
    - UNKNOWN: Unclassified error
    """

    INVALID_HEADER = "INVALID_HEADER"
    INVALID_URL = "INVALID_URL"
    BLOCKED_ADDRESS = "BLOCKED_ADDRESS"
    DNS = "DNS"
    CONNECTION_REFUSED = "CONNECTION_REFUSED"
    CONNECTION_RESET = "CONNECTION_RESET"
    TRANSPORT = "TRANSPORT"
    TIMEOUT = "TIMEOUT"
    ABORTED = "ABORTED"
    DECOMPRESS = "DECOMPRESS"
    SINK = "SINK"
    UNKNOWN = "UNKNOWN"


class RequestError(Exception):
    """Base exception for errors that end an attempt.

    Retryable errors are retried by the orchestrator while the retry budget
    lasts; everything else is surfaced immediately.
    """

    retryable: bool = False

    def __init__(
        self,
        kind: FailureKind,
        message: str,
        details: dict[str, str | int | bool | None] | None = None,
    ) -> None:
        """Initialize the request error.

        Args:
            kind: Classification of the error.
            message: Human-readable error message.
            details: Additional structured error details.
        """
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.details = details or {}

    def to_dict(
        self,
    ) -> dict[str, str | bool | dict[str, str | int | bool | None]]:
        """Convert error to dictionary for logging.

        Returns:
            Dictionary representation of the error.
        """
        return {
            "kind": self.kind.value,
            "message": self.message,
            "retryable": self.retryable,
            "details": self.details,
        }


class InvalidHeaderError(RequestError):
    """Header name is not a token, or header value has control characters."""

    def __init__(self, message: str, header: str) -> None:
        """Initialize the error.

        Args:
            message: Human-readable error message.
            header: Offending header name.
        """
        super().__init__(FailureKind.INVALID_HEADER, message, {"header": header})
        self.header = header


class InvalidUrlError(RequestError):
    """Target URL is malformed or uses an unsupported scheme."""

    def __init__(self, url: str, reason: str) -> None:
        """Initialize the error.

        Args:
            url: Offending URL (already redacted by the caller if needed).
            reason: Why the URL was rejected.
        """
        super().__init__(FailureKind.INVALID_URL, f"Invalid URL: {url} ({reason})")
        self.url = url


class BlockedAddressError(RequestError):
    """Address refused by the access control policy."""

    def __init__(self, address: str, hostname: str | None = None) -> None:
        """Initialize the error.

        Args:
            address: Refused address.
            hostname: Hostname that resolved to the address, if any.
        """
        target = f"{hostname} ({address})" if hostname and hostname != address else address
        super().__init__(
            FailureKind.BLOCKED_ADDRESS,
            f"Address blocked by access policy: {target}",
            {"address": address, "hostname": hostname},
        )
        self.address = address
        self.hostname = hostname


class RequestTimeoutError(RequestError):
    """First-byte or idle timer elapsed before the attempt completed."""

    retryable = True

    def __init__(self, message: str, timeout_ms: float, idle: bool = False) -> None:
        """Initialize the error.

        Args:
            message: Human-readable error message.
            timeout_ms: Timeout that elapsed, in milliseconds.
            idle: True for the idle timer, False for the first-byte timer.
        """
        super().__init__(
            FailureKind.TIMEOUT,
            message,
            {"timeout_ms": int(timeout_ms), "idle": idle},
        )
        self.timeout_ms = timeout_ms
        self.idle = idle


class DecompressionFailedError(RequestError):
    """Compressed response body could not be decoded."""

    def __init__(self, algorithm: str, reason: str) -> None:
        """Initialize the error.

        Args:
            algorithm: Content encoding that failed.
            reason: Underlying codec error message.
        """
        super().__init__(
            FailureKind.DECOMPRESS,
            f"Failed to decompress {algorithm} response: {reason}",
            {"algorithm": algorithm},
        )
        self.algorithm = algorithm


class SinkError(RequestError):
    """Download sink could not be opened or written."""

    def __init__(self, message: str) -> None:
        """Initialize the error.

        Args:
            message: Human-readable error message.
        """
        super().__init__(FailureKind.SINK, message)


class HttpStatusError(StrictBaseModel):
    """Synthetic HTTP error for a status outside the success pattern.

    Delivered alongside a successful exchange when auto-error is enabled;
    headers and body remain available to the caller.
    """

    code: int = Field(ge=100, le=999, description="HTTP status code")
    message: Annotated[str, Field(min_length=1, description="Human-readable message")]

    @classmethod
    def from_status(cls, status: int, reason: str) -> "HttpStatusError":
        """Build the error for a response status line.

        Args:
            status: HTTP status code.
            reason: Reason phrase.

        Returns:
            HttpStatusError instance.
        """
        message = f"HTTP {status} {reason}".rstrip()
        return cls(code=status, message=message)
