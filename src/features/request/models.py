"""Data models for logical requests, attempts and outcomes."""

from collections.abc import AsyncIterable, Callable
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Annotated, Any, BinaryIO, Literal
from urllib.parse import SplitResult, unquote, urljoin, urlsplit

from pydantic import BaseModel, ConfigDict, Field

from src.features.config.constants import SUPPORTED_SCHEMES
from src.features.config.schemas.client import Budget
from src.features.errors import FailureKind, HttpStatusError, InvalidUrlError
from src.features.request.body import BodySource
from src.features.request.cancellation import CancellationSignal
from src.features.request.redact import redact_url_credentials
from src.features.timing import TimingReport
from src.features.transport.protocols import DEFAULT_PORTS


def budget_allows(budget: Budget) -> bool:
    """Check if a retry or redirect budget permits another attempt.

    Args:
        budget: Remaining budget.

    Returns:
        True if another attempt is allowed.
    """
    if budget is None:
        return False
    if isinstance(budget, bool):
        return budget
    return budget > 0


def consume_budget(budget: Budget) -> Budget:
    """Spend one unit of a budget. Booleans and None are unchanged.

    Args:
        budget: Remaining budget.

    Returns:
        Remaining budget after one attempt.
    """
    if budget is None or isinstance(budget, bool):
        return budget
    return max(0, budget - 1)


@dataclass(frozen=True)
class Target:
    """Normalized request target.

    Attributes:
        url: Absolute URL as given (may include credentials).
        scheme: "http" or "https".
        hostname: Lower-cased hostname or literal address (no brackets).
        port: Explicit or default port.
        path: Path with query string, never empty.
        username: Userinfo user, if any.
        password: Userinfo password, if any.
    """

    url: str
    scheme: str
    hostname: str
    port: int
    path: str
    username: str | None = None
    password: str | None = None

    @classmethod
    def parse(cls, url: str) -> "Target":
        """Normalize a URL into its parts.

        Args:
            url: Absolute http or https URL.

        Returns:
            Target instance.

        Raises:
            InvalidUrlError: If the URL cannot be used.
        """
        safe_url = redact_url_credentials(url)
        try:
            parts: SplitResult = urlsplit(url)
            port = parts.port
        except ValueError as e:
            raise InvalidUrlError(safe_url, str(e)) from e

        scheme = parts.scheme.lower()
        if scheme not in SUPPORTED_SCHEMES:
            raise InvalidUrlError(safe_url, f"unsupported scheme '{parts.scheme}'")
        if not parts.hostname:
            raise InvalidUrlError(safe_url, "missing hostname")

        path = parts.path or "/"
        if parts.query:
            path = f"{path}?{parts.query}"

        return cls(
            url=url,
            scheme=scheme,
            hostname=parts.hostname,
            port=port or DEFAULT_PORTS[scheme],
            path=path,
            username=unquote(parts.username) if parts.username is not None else None,
            password=unquote(parts.password) if parts.password is not None else None,
        )

    @property
    def safe_url(self) -> str:
        """Get the URL with credentials redacted, for logging."""
        return redact_url_credentials(self.url)

    def join(self, location: str) -> "Target":
        """Resolve a Location header against this target.

        Args:
            location: Absolute or relative location.

        Returns:
            Target of the redirect.
        """
        return Target.parse(urljoin(self.url, location))


class RawResponse:
    """Status line and headers handed to a preflight hook, with the raw body.

    A hook that returns True takes over the body: it attaches consumers with
    ``pipe()`` and receives the undecoded bytes chunk by chunk, then the
    ``on_end()`` callbacks once the response is complete. The runner writes
    nothing to the sink itself in that case.

    Attributes:
        status: HTTP status code.
        reason: Reason phrase.
        headers: Lower-cased response headers.
        url: URL of the attempt that produced the response.
    """

    def __init__(self, status: int, reason: str, headers: dict[str, str], url: str) -> None:
        self.status = status
        self.reason = reason
        self.headers = headers
        self.url = url
        self._consumers: list[Callable[[bytes], object]] = []
        self._end_callbacks: list[Callable[[], object]] = []

    def pipe(self, consumer: Callable[[bytes], object]) -> None:
        """Deliver every raw body chunk to a consumer, e.g. ``sink.write``."""
        self._consumers.append(consumer)

    def on_end(self, callback: Callable[[], object]) -> None:
        """Call back once the raw body is complete."""
        self._end_callbacks.append(callback)

    def feed(self, data: bytes) -> None:
        """Pass a raw chunk to every consumer."""
        for consumer in self._consumers:
            consumer(data)

    def finish(self) -> None:
        """Signal the end of the body to every callback."""
        for callback in self._end_callbacks:
            callback()


RequestBody = bytes | str | BodySource | AsyncIterable[bytes]
DownloadTarget = BinaryIO | str | Path

# True: the hook consumes the raw body. False: buffer instead. None: stream as usual
PreflightHook = Callable[[RawResponse, BinaryIO], bool | None]


@dataclass
class RequestOptions:
    """Per-request options. Unset values inherit the client configuration.

    Attributes:
        method: HTTP method.
        headers: Headers for this request (win over default headers).
        body: Request body.
        timeout_ms: First-byte timeout in milliseconds (0 disables).
        idle_timeout_ms: Idle timeout in milliseconds (0 disables).
        follow: Redirect budget.
        retries: Retry budget.
        download: Sink (binary file object or path) enabling stream mode.
        preflight: Hook called with the raw response before streaming
            (see RawResponse).
        signal: Cancellation signal.
        auto_decompress: Decompress encoded response bodies.
        auto_error: Attach an HTTP error for statuses outside the
            success pattern.
        auto_content_length: Send Content-Length for buffered bodies
            (False makes POST use chunked transfer encoding).
    """

    method: str = "GET"
    headers: dict[str, str] = field(default_factory=dict)
    body: RequestBody | None = None
    timeout_ms: float | None = None
    idle_timeout_ms: float | None = None
    follow: Budget = None
    retries: Budget = None
    download: DownloadTarget | None = None
    preflight: PreflightHook | None = None
    signal: CancellationSignal | None = None
    auto_decompress: bool | None = None
    auto_error: bool | None = None
    auto_content_length: bool | None = None


@dataclass
class AttemptState:
    """State of one physical attempt, owned by the logical request driving it.

    Attributes:
        target: Target of this attempt.
        method: HTTP method.
        headers: Caller headers merged over the defaults.
        body: Request body carried across attempts.
        retries: Remaining retry budget.
        follow: Remaining redirect budget.
        timeout_ms: First-byte timeout in milliseconds (0 disables).
        idle_timeout_ms: Idle timeout in milliseconds (0 disables).
        download: Download sink, if in stream mode.
        preflight: Preflight hook.
        auto_decompress: Decompress encoded response bodies.
        auto_error: Attach an HTTP error outside the success pattern.
        auto_content_length: Send Content-Length for buffered bodies.
        number: Attempt number within the logical request, from 1.
        address: Address the attempt connected to, once known.
    """

    target: Target
    method: str = "GET"
    headers: dict[str, str] = field(default_factory=dict)
    body: RequestBody | None = None
    retries: Budget = None
    follow: Budget = None
    timeout_ms: float = 0
    idle_timeout_ms: float = 0
    download: DownloadTarget | None = None
    preflight: PreflightHook | None = None
    auto_decompress: bool = True
    auto_error: bool = False
    auto_content_length: bool = True
    number: int = 1
    address: str | None = None

    @property
    def can_retry(self) -> bool:
        """Check if the retry budget permits another attempt."""
        return budget_allows(self.retries)

    def for_retry(self) -> "AttemptState":
        """Build the next attempt of a retry against the same target."""
        return replace(
            self,
            retries=consume_budget(self.retries),
            number=self.number + 1,
            address=None,
        )

    def for_redirect(self, location: str) -> "AttemptState":
        """Build the next attempt following a Location header.

        Args:
            location: Location header value.

        Returns:
            AttemptState targeting the resolved location.

        Raises:
            InvalidUrlError: If the location cannot be used.
        """
        return replace(
            self,
            target=self.target.join(location),
            follow=consume_budget(self.follow),
            number=self.number + 1,
            address=None,
        )


class Success(BaseModel):
    """Structurally successful exchange.

    With auto-error enabled, ``http_error`` is set when the status does not
    match the success pattern; headers and body are delivered regardless.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    ok: Literal[True] = True
    status: int = Field(ge=100, le=999)
    reason: str = ""
    url: str
    headers: dict[str, str] = Field(default_factory=dict)
    body: bytes | None = None
    sink: Any = None
    timing: TimingReport
    http_error: HttpStatusError | None = None

    @property
    def text(self) -> str:
        """Decode the buffered body as UTF-8."""
        return (self.body or b"").decode("utf-8", errors="replace")


class Failure(BaseModel):
    """Terminal failure of a logical request."""

    model_config = ConfigDict(frozen=True)

    ok: Literal[False] = False
    kind: FailureKind
    message: Annotated[str, Field(min_length=1)]
    timing: TimingReport
    status: int | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert the failure to a dictionary for logging and output."""
        return {
            "kind": self.kind.value,
            "message": self.message,
            "status": self.status,
            "timing": self.timing.to_dict(),
        }


Outcome = Success | Failure
