"""One physical attempt of a logical request."""

import asyncio
import base64
from collections.abc import AsyncIterable
from contextlib import aclosing
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO

import structlog

from src.features.access import AccessControlFilter, is_ip_literal
from src.features.codec import Algorithm, CodecError, CompressionCodec, StreamDecompressor
from src.features.config import ClientConfig
from src.features.dns_cache import AddressCache
from src.features.errors import (
    DecompressionFailedError,
    HttpStatusError,
    RequestTimeoutError,
    SinkError,
)
from src.features.request.body import BodySource
from src.features.request.classifier import Decision, ResponseClassifier
from src.features.request.headers import (
    find_header,
    merge_headers,
    replace_header,
    set_default_header,
    validate_headers,
)
from src.features.request.metrics import RequestMetrics
from src.features.request.models import AttemptState, RawResponse, Success
from src.features.request.redact import redact_headers
from src.features.request.state_machine import AttemptMachine, AttemptPhase
from src.features.timing import (
    COUNTER_BYTES_RECEIVED,
    COUNTER_BYTES_SENT,
    PHASE_CONNECT,
    PHASE_DECOMPRESS,
    PHASE_DNS,
    PHASE_RECEIVE,
    PHASE_SEND,
    PHASE_WAIT,
    TimingTracker,
)
from src.features.transport import (
    AddressResolved,
    Connected,
    DataChunk,
    RequestSent,
    ResponseEnd,
    ResponseHeaders,
    Transport,
    TransportAbortedError,
    TransportError,
    TransportEvent,
    TransportHandle,
    TransportRequest,
)


logger = structlog.get_logger()


@dataclass(frozen=True)
class FollowUp:
    """Attempt ended in a redirect or a retryable status.

    Attributes:
        decision: REDIRECT or RETRY.
        state: State of the next attempt.
        status: Status that triggered the follow-up.
    """

    decision: Decision
    state: AttemptState
    status: int


AttemptResult = Success | FollowUp


class AttemptRunner:
    """Drives one transport call from preparation to a result.

    Every transport event goes through ``_dispatch()``. Timers never touch
    the attempt directly: on expiry they record the timeout and abort the
    transport handle, whose event stream then ends with
    TransportAbortedError.

    Timer tie-break: a timer firing while a chunk arrived since it was
    armed, or while events are queued but not yet dispatched, counts as
    "not timed out" and is re-armed.
    """

    def __init__(
        self,
        state: AttemptState,
        *,
        config: ClientConfig,
        transport: Transport,
        tracker: TimingTracker,
        address_cache: AddressCache,
        classifier: ResponseClassifier,
        codec: CompressionCodec,
        access_filter: AccessControlFilter | None = None,
        metrics: RequestMetrics | None = None,
        request_id: str = "",
    ) -> None:
        """Initialize the runner.

        Args:
            state: State of this attempt.
            config: Client configuration (default headers, TTL, patterns).
            transport: Transport performing the exchange.
            tracker: Timing tracker of this attempt.
            address_cache: Shared address cache.
            classifier: Response classifier.
            codec: Compression codec.
            access_filter: Address filter, if a policy is configured.
            metrics: Metrics collector.
            request_id: Identifier of the logical request.
        """
        self._state = state
        self._config = config
        self._transport = transport
        self._tracker = tracker
        self._cache = address_cache
        self._classifier = classifier
        self._codec = codec
        self._access_filter = access_filter
        self._metrics = metrics or RequestMetrics.get_instance()
        self._machine = AttemptMachine(request_id, state.number)
        self._log = logger.bind(
            component="request",
            request_id=request_id,
            attempt=state.number,
        )

        self._handle: TransportHandle | None = None
        self._first_byte_timer: asyncio.TimerHandle | None = None
        self._idle_timer: asyncio.TimerHandle | None = None
        self._touched = False
        self._abort_reason: RequestTimeoutError | None = None

        self._response: ResponseHeaders | None = None
        self._follow_up: FollowUp | None = None
        self._http_error: HttpStatusError | None = None
        self._algorithm: Algorithm | None = None
        self._chunks: list[bytes] = []
        self._sink: BinaryIO | None = None
        self._owns_sink = False
        self._decoder: StreamDecompressor | None = None
        self._raw: RawResponse | None = None
        self._created_file: Path | None = None
        self._sink_origin: int | None = None
        self._sink_written = False

    @property
    def state(self) -> AttemptState:
        """Get the attempt state."""
        return self._state

    @property
    def phase(self) -> AttemptPhase:
        """Get the current attempt phase."""
        return self._machine.state

    async def run(self) -> AttemptResult:
        """Perform the attempt.

        Returns:
            Success, or the follow-up attempt for a redirect or retry.

        Raises:
            RequestError: On validation, policy, transport, timeout, sink or
                decompression failures.
        """
        self._tracker.begin()
        self._metrics.record_attempt()
        try:
            request = self._prepare()
            self._log.info(
                "attempt_started",
                method=request.method,
                url=self._state.target.safe_url,
                cached_address=request.connect_address,
                headers=redact_headers(request.headers),
            )

            self._handle = self._transport.open(request)
            self._machine.to_connecting()
            self._arm_first_byte_timer()

            try:
                async with aclosing(self._handle.events()) as events:
                    async for event in events:
                        result = self._dispatch(event)
                        if result is not None:
                            return result
            except TransportAbortedError:
                if self._abort_reason is not None:
                    raise self._abort_reason from None
                raise TransportError(
                    "Transport call aborted", hostname=self._state.target.hostname
                ) from None

            raise TransportError(
                "Response ended before completion", hostname=self._state.target.hostname
            )
        finally:
            self._clear_timers()
            if self._handle is not None:
                await self._handle.aclose()
            self._close_sink()
            self._machine.to_done()

    def _prepare(self) -> TransportRequest:
        state = self._state
        target = state.target

        headers = validate_headers(merge_headers(self._config.headers(), state.headers))

        if target.username is not None and find_header(headers, "Authorization") is None:
            credentials = f"{target.username}:{target.password or ''}".encode()
            token = base64.b64encode(credentials).decode("ascii")
            headers["Authorization"] = f"Basic {token}"

        literal = is_ip_literal(target.hostname)
        if literal and self._access_filter is not None:
            self._access_filter.check(target.hostname, None)

        connect_address: str | None = None
        if not literal and self._config.dns_ttl_seconds > 0:
            connect_address = self._cache.lookup(target.hostname)
            if connect_address is not None:
                if self._access_filter is not None:
                    self._access_filter.check(connect_address, target.hostname)
                state.address = connect_address
                self._log.debug(
                    "dns_cache_hit",
                    hostname=target.hostname,
                    address=connect_address,
                )

        body, chunked = self._prepare_body(headers)

        request = TransportRequest(
            method=state.method,
            scheme=target.scheme,
            hostname=target.hostname,
            port=target.port,
            path=target.path,
            headers=headers,
            body=body,
            connect_address=connect_address,
            chunked=chunked,
            clock=self._tracker.clock,
        )
        if connect_address is not None:
            # Keep virtual hosting working when connecting by address
            replace_header(request.headers, "Host", request.host_header)
        return request

    def _prepare_body(
        self, headers: dict[str, str]
    ) -> tuple[bytes | AsyncIterable[bytes] | None, bool]:
        state = self._state
        body = state.body
        if body is None:
            return None, False

        if isinstance(body, str):
            body = body.encode("utf-8")
        if isinstance(body, bytes):
            if state.auto_content_length or state.method != "POST":
                set_default_header(headers, "Content-Length", str(len(body)))
                return body, False
            return body, True

        if isinstance(body, BodySource):
            # Source headers never override headers the caller set
            for key, value in body.headers().items():
                set_default_header(headers, key, value)
            return body, find_header(headers, "Content-Length") is None

        return body, True

    def _dispatch(self, event: TransportEvent) -> AttemptResult | None:
        if isinstance(event, AddressResolved):
            self._on_address_resolved(event)
        elif isinstance(event, Connected):
            self._tracker.end(PHASE_CONNECT, at=event.at)
        elif isinstance(event, RequestSent):
            self._on_request_sent(event)
        elif isinstance(event, ResponseHeaders):
            self._on_headers(event)
        elif isinstance(event, DataChunk):
            self._on_data(event)
        elif isinstance(event, ResponseEnd):
            return self._on_end(event)
        return None

    def _on_address_resolved(self, event: AddressResolved) -> None:
        self._tracker.end(PHASE_DNS, at=event.at)
        if self._access_filter is not None:
            self._access_filter.check(event.address, event.hostname)
        self._state.address = event.address
        self._cache.store(event.hostname, event.address, self._config.dns_ttl_seconds)

    def _on_request_sent(self, event: RequestSent) -> None:
        self._tracker.end(PHASE_SEND, at=event.at)
        self._tracker.count(COUNTER_BYTES_SENT, event.bytes_sent)
        if self._machine.state == AttemptPhase.CONNECTING:
            self._machine.to_awaiting_headers()

    def _on_headers(self, event: ResponseHeaders) -> None:
        self._tracker.end(PHASE_WAIT, at=event.at)
        self._cancel_first_byte_timer()
        self._arm_idle_timer()

        if self._machine.state == AttemptPhase.CONNECTING:
            self._machine.to_awaiting_headers()
        self._machine.to_streaming()
        self._metrics.record_response(event.status)

        state = self._state
        location = event.headers.get("location")
        decision = self._classifier.classify(
            event.status, state.retries, state.follow, bool(location)
        )

        if decision == Decision.REDIRECT and location:
            next_state = state.for_redirect(location)
            self._follow_up = FollowUp(decision, next_state, event.status)
            self._log.info(
                "attempt_redirect",
                status=event.status,
                location=next_state.target.safe_url,
                follow_remaining=next_state.follow,
            )
            return

        if decision == Decision.RETRY:
            next_state = state.for_retry()
            self._follow_up = FollowUp(decision, next_state, event.status)
            self._log.info(
                "attempt_retry",
                status=event.status,
                retries_remaining=next_state.retries,
            )
            return

        self._response = event
        if state.auto_error and not self._config.matches_success(event.status):
            self._http_error = HttpStatusError.from_status(event.status, event.reason)

        if state.auto_decompress:
            self._algorithm = self._codec.detect(event.headers.get("content-encoding"))

        if state.download is not None:
            self._start_stream(event)

    def _start_stream(self, event: ResponseHeaders) -> None:
        state = self._state
        self._open_sink()
        sink = self._sink
        if sink is None:
            return

        handled: bool | None = None
        if state.preflight is not None:
            raw = RawResponse(
                status=event.status,
                reason=event.reason,
                headers=dict(event.headers),
                url=state.target.url,
            )
            handled = state.preflight(raw, sink)
            if handled:
                self._raw = raw

        if handled is False:
            self._log.debug("preflight_switched_to_buffer")
            self._discard_sink()
            return

        if handled is None and self._algorithm is not None:
            self._decoder = self._codec.stream(self._algorithm)

    def _open_sink(self) -> None:
        download = self._state.download
        if isinstance(download, str | Path):
            path = Path(download)
            created = not path.exists()
            try:
                self._sink = path.open("wb")
            except OSError as e:
                raise SinkError(f"Failed to open download file {download}: {e}") from e
            self._owns_sink = True
            self._created_file = path if created else None
            return

        self._sink = download
        try:
            self._sink_origin = download.tell() if download.seekable() else None
        except OSError:
            self._sink_origin = None

    def _discard_sink(self) -> None:
        self._close_sink()
        self._sink = None
        path = self._created_file
        if path is not None:
            self._created_file = None
            try:
                path.unlink(missing_ok=True)
            except OSError as e:
                raise SinkError(f"Failed to remove download file {path}: {e}") from e

    def rewind_sink(self) -> bool:
        """Undo partial writes of this attempt to the download target.

        A download path is reopened (and so truncated) by the next attempt.
        A caller stream is seeked back to where this attempt started and
        truncated; that needs a seekable stream.

        Returns:
            True when the next attempt can write from a clean start.
        """
        if not self._sink_written or isinstance(self._state.download, str | Path):
            return True

        sink = self._state.download
        if self._sink_origin is not None and sink is not None:
            try:
                sink.seek(self._sink_origin)
                sink.truncate()
            except OSError as e:
                self._log.warning("sink_rewind_failed", error=str(e))
                return False
            self._log.debug("sink_rewound", position=self._sink_origin)
            return True

        self._log.warning("sink_not_rewindable")
        return False

    def _on_data(self, event: DataChunk) -> None:
        self._touched = True
        self._tracker.count(COUNTER_BYTES_RECEIVED, len(event.data))

        if self._follow_up is not None:
            # Draining before the next attempt
            return

        if self._raw is not None:
            self._sink_written = True
            try:
                self._raw.feed(event.data)
            except OSError as e:
                raise SinkError(f"Failed to write download: {e}") from e
            return

        if self._sink is None:
            self._chunks.append(event.data)
            return

        data = event.data
        if self._decoder is not None:
            try:
                data = self._decoder.feed(data)
            except CodecError as e:
                raise DecompressionFailedError(e.algorithm, str(e)) from e
        self._write_sink(data)

    def _write_sink(self, data: bytes) -> None:
        if not data or self._sink is None:
            return
        self._sink_written = True
        try:
            self._sink.write(data)
        except OSError as e:
            raise SinkError(f"Failed to write download: {e}") from e

    def _on_end(self, event: ResponseEnd) -> AttemptResult:
        self._tracker.end(PHASE_RECEIVE, at=event.at)
        self._clear_timers()

        if self._follow_up is not None:
            return self._follow_up

        response = self._response
        if response is None:
            raise TransportError(
                "Response ended before headers", hostname=self._state.target.hostname
            )

        body: bytes | None
        sink: object = None
        if self._raw is not None:
            try:
                self._raw.finish()
            except OSError as e:
                raise SinkError(f"Failed to finish download: {e}") from e
            body = None
            sink = self._state.download
        elif self._sink is not None:
            if self._decoder is not None:
                try:
                    self._write_sink(self._decoder.flush())
                except CodecError as e:
                    raise DecompressionFailedError(e.algorithm, str(e)) from e
            try:
                self._sink.flush()
            except OSError as e:
                raise SinkError(f"Failed to flush download: {e}") from e
            body = None
            sink = self._state.download
        else:
            body = b"".join(self._chunks)
            if body and self._algorithm is not None:
                try:
                    body = self._codec.decompress(body, self._algorithm)
                except CodecError as e:
                    raise DecompressionFailedError(e.algorithm, str(e)) from e
                self._tracker.end(PHASE_DECOMPRESS)

        return Success(
            status=response.status,
            reason=response.reason,
            url=self._state.target.url,
            headers=dict(response.headers),
            body=body,
            sink=sink,
            timing=self._tracker.finish(),
            http_error=self._http_error,
        )

    def _arm_first_byte_timer(self) -> None:
        timeout_ms = self._state.timeout_ms
        if timeout_ms > 0:
            self._first_byte_timer = asyncio.get_running_loop().call_later(
                timeout_ms / 1000, self._on_first_byte_timeout
            )

    def _on_first_byte_timeout(self) -> None:
        self._first_byte_timer = None
        if self._handle is not None and self._handle.pending() > 0:
            self._arm_first_byte_timer()
            return
        timeout_ms = self._state.timeout_ms
        self._abort(RequestTimeoutError(f"Socket Timeout ({timeout_ms:g} ms)", timeout_ms))

    def _arm_idle_timer(self) -> None:
        idle_ms = self._state.idle_timeout_ms
        if idle_ms > 0:
            self._touched = False
            self._idle_timer = asyncio.get_running_loop().call_later(
                idle_ms / 1000, self._on_idle_timeout
            )

    def _on_idle_timeout(self) -> None:
        self._idle_timer = None
        if self._touched or (self._handle is not None and self._handle.pending() > 0):
            self._arm_idle_timer()
            return
        idle_ms = self._state.idle_timeout_ms
        self._abort(
            RequestTimeoutError(f"Idle Timeout ({idle_ms:g} ms)", idle_ms, idle=True)
        )

    def _abort(self, reason: RequestTimeoutError) -> None:
        if self._abort_reason is not None or self._handle is None:
            return
        self._abort_reason = reason
        self._log.warning(
            "attempt_timeout",
            phase=self._machine.state.value,
            timeout_ms=reason.timeout_ms,
            idle=reason.idle,
        )
        self._handle.abort()

    def _cancel_first_byte_timer(self) -> None:
        if self._first_byte_timer is not None:
            self._first_byte_timer.cancel()
            self._first_byte_timer = None

    def _clear_timers(self) -> None:
        self._cancel_first_byte_timer()
        if self._idle_timer is not None:
            self._idle_timer.cancel()
            self._idle_timer = None

    def _close_sink(self) -> None:
        if self._owns_sink and self._sink is not None:
            self._sink.close()
            self._owns_sink = False

