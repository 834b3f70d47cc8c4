"""Request orchestrator: one logical request, many attempts, one outcome."""

import asyncio
import time
import uuid
from collections.abc import Callable
from typing import TypeVar

import structlog

from src.features.access import AccessControlFilter
from src.features.codec import CompressionCodec
from src.features.config import ClientConfig
from src.features.dns_cache import AddressCache, get_default_address_cache
from src.features.errors import FailureKind, RequestError
from src.features.observability import bind_request_context
from src.features.request.attempt import AttemptRunner, FollowUp
from src.features.request.body import BodySource, ReplayableBody
from src.features.request.classifier import Decision, ResponseClassifier
from src.features.request.metrics import RequestMetrics
from src.features.request.models import (
    AttemptState,
    Failure,
    Outcome,
    RequestOptions,
    RequestBody,
    Success,
    Target,
)
from src.features.request.resolver import OutcomeResolver
from src.features.timing import (
    COUNTER_BYTES_RECEIVED,
    COUNTER_BYTES_SENT,
    COUNTER_REDIRECTS,
    COUNTER_RETRIES,
    TimingReport,
    TimingTracker,
)
from src.features.transport import HttpxTransport, Transport


logger = structlog.get_logger()

T = TypeVar("T")


def _inherit(value: T | None, default: T) -> T:
    """Use the per-request value unless it is unset."""
    return default if value is None else value


def _replayable(body: RequestBody | None) -> RequestBody | None:
    """Wrap a one-shot async iterable so later attempts resend the same bytes."""
    if body is None or isinstance(body, bytes | str | BodySource):
        return body
    return ReplayableBody(body)


class RequestOrchestrator:
    """Carries logical requests through retries and redirects to an Outcome.

    Attempts of one logical request are strictly sequential: the next
    attempt is built only after the previous transport call was closed.
    Independent logical requests run concurrently and share the address
    cache and, with keep-alive, the transport's connection pool.
    """

    def __init__(
        self,
        config: ClientConfig | None = None,
        transport: Transport | None = None,
        address_cache: AddressCache | None = None,
        access_filter: AccessControlFilter | None = None,
        codec: CompressionCodec | None = None,
        clock: Callable[[], float] = time.perf_counter,
        metrics: RequestMetrics | None = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            config: Client configuration (default: ClientConfig()).
            transport: Transport (default: HttpxTransport).
            address_cache: Address cache (default: process-wide cache).
            access_filter: Address filter (default: built from the
                configuration's access policy, if any).
            codec: Compression codec.
            clock: Monotonic clock used for timing, in seconds.
            metrics: Metrics collector (default: singleton).
        """
        self._config = config or ClientConfig()
        self._transport = transport or HttpxTransport(
            keep_alive=self._config.keep_alive,
            verify=self._config.verify_tls,
        )
        self._cache = address_cache or get_default_address_cache()
        if access_filter is None and self._config.access_policy is not None:
            if not self._config.access_policy.is_empty:
                access_filter = AccessControlFilter(self._config.access_policy)
        self._access_filter = access_filter
        self._codec = codec or CompressionCodec()
        self._classifier = ResponseClassifier(
            redirect_statuses=self._config.redirect_statuses,
            retry_status_range=self._config.retry_status_range,
        )
        self._clock = clock
        self._metrics = metrics or RequestMetrics.get_instance()

    @property
    def config(self) -> ClientConfig:
        """Get the client configuration."""
        return self._config

    @property
    def address_cache(self) -> AddressCache:
        """Get the address cache."""
        return self._cache

    @property
    def transport(self) -> Transport:
        """Get the transport."""
        return self._transport

    @property
    def metrics(self) -> RequestMetrics:
        """Get the metrics collector."""
        return self._metrics

    def new_tracker(self) -> TimingTracker:
        """Create a timing tracker on the orchestrator's clock."""
        return TimingTracker(clock=self._clock)

    def build_state(self, url: str, options: RequestOptions) -> AttemptState:
        """Build the first attempt of a logical request.

        Args:
            url: Target URL.
            options: Request options; unset values use the configuration.

        Returns:
            AttemptState for attempt 1.

        Raises:
            InvalidUrlError: If the URL cannot be used.
        """
        config = self._config

        return AttemptState(
            target=Target.parse(url),
            method=options.method.upper(),
            headers=dict(options.headers),
            body=_replayable(options.body),
            retries=_inherit(options.retries, config.retries),
            follow=_inherit(options.follow, config.follow),
            timeout_ms=_inherit(options.timeout_ms, config.timeout_ms),
            idle_timeout_ms=_inherit(options.idle_timeout_ms, config.idle_timeout_ms),
            download=options.download,
            preflight=options.preflight,
            auto_decompress=_inherit(options.auto_decompress, config.auto_decompress),
            auto_error=_inherit(options.auto_error, config.auto_error),
            auto_content_length=_inherit(
                options.auto_content_length, config.auto_content_length
            ),
        )

    def runner(
        self, state: AttemptState, tracker: TimingTracker, request_id: str
    ) -> AttemptRunner:
        """Create the runner of one attempt."""
        return AttemptRunner(
            state,
            config=self._config,
            transport=self._transport,
            tracker=tracker,
            address_cache=self._cache,
            classifier=self._classifier,
            codec=self._codec,
            access_filter=self._access_filter,
            metrics=self._metrics,
            request_id=request_id,
        )

    async def request(self, url: str, options: RequestOptions | None = None) -> Outcome:
        """Perform a logical request.

        Never raises for request failures: every failure is delivered as a
        Failure outcome. Cancelling the signal in ``options`` resolves
        Failure(ABORTED) immediately and tears down the in-flight attempt.

        Args:
            url: Target URL.
            options: Request options.

        Returns:
            Exactly one Outcome.
        """
        options = options or RequestOptions()
        request_id = uuid.uuid4().hex[:12]
        resolver = OutcomeResolver(request_id)
        logical = _LogicalRequest(self, resolver, request_id)

        signal = options.signal
        if signal is not None and signal.cancelled:
            logical.fail(FailureKind.ABORTED, signal.reason)
            return await resolver.wait()

        try:
            state = self.build_state(url, options)
        except RequestError as e:
            logical.fail(e.kind, e.message)
            return await resolver.wait()

        task = asyncio.get_running_loop().create_task(logical.run(state))

        def on_cancel(reason: str) -> None:
            logical.fail(FailureKind.ABORTED, reason)
            task.cancel()

        if signal is not None:
            signal.add_listener(on_cancel)
        try:
            return await resolver.wait()
        finally:
            if signal is not None:
                signal.remove_listener(on_cancel)
            if not task.done():
                task.cancel()
            await asyncio.wait({task})

    async def aclose(self) -> None:
        """Release the transport's pooled resources."""
        await self._transport.aclose()


class _LogicalRequest:
    """Loop over attempts of one logical request.

    Retry and redirect continuations are iterations of ``drive()``. At each
    loop boundary the finished timing of the previous attempt is merged into
    a fresh tracker, so the final report spans the whole chain.
    """

    def __init__(
        self,
        orchestrator: RequestOrchestrator,
        resolver: OutcomeResolver,
        request_id: str,
    ) -> None:
        self._orchestrator = orchestrator
        self._resolver = resolver
        self._request_id = request_id
        self._tracker = orchestrator.new_tracker()
        self._tracker.begin()
        self._metrics = orchestrator.metrics
        self._log = logger.bind(component="request", request_id=request_id)

    @property
    def tracker(self) -> TimingTracker:
        """Get the tracker of the current attempt."""
        return self._tracker

    async def run(self, state: AttemptState) -> None:
        """Drive the request, turning unexpected errors into a failure."""
        bind_request_context(self._request_id)
        try:
            await self.drive(state)
        except Exception as e:  # noqa: BLE001
            self._log.exception("request_driver_failed", error=str(e))
            self.fail(FailureKind.UNKNOWN, str(e) or type(e).__name__)

    async def drive(self, state: AttemptState) -> None:
        """Run attempts until one produces an outcome."""
        while True:
            runner = self._orchestrator.runner(state, self._tracker, self._request_id)
            try:
                result = await runner.run()
            except RequestError as e:
                if e.retryable and state.can_retry and runner.rewind_sink():
                    self._log.info(
                        "attempt_retry",
                        attempt=state.number,
                        error_kind=e.kind.value,
                        error=e.message,
                    )
                    state = state.for_retry()
                    self._next_attempt(COUNTER_RETRIES)
                    continue
                self._log.warning(
                    "attempt_failed",
                    attempt=state.number,
                    error=e.to_dict(),
                )
                self.fail(e.kind, e.message)
                return

            if isinstance(result, Success):
                self.deliver(result)
                return

            state = self._follow(result)

    def _follow(self, follow_up: FollowUp) -> AttemptState:
        if follow_up.decision == Decision.REDIRECT:
            self._next_attempt(COUNTER_REDIRECTS)
        else:
            self._next_attempt(COUNTER_RETRIES)
        return follow_up.state

    def _next_attempt(self, counter: str) -> None:
        if counter == COUNTER_REDIRECTS:
            self._metrics.record_redirect()
        else:
            self._metrics.record_retry()

        report = self._tracker.finish()
        tracker = self._orchestrator.new_tracker()
        tracker.merge(report)
        tracker.count(counter)
        self._tracker = tracker

    def deliver(self, outcome: Outcome) -> bool:
        """Deliver an outcome through the single-use resolver."""
        if not self._resolver.resolve(outcome):
            return False

        report = outcome.timing
        self._record(report)
        if isinstance(outcome, Failure):
            self._metrics.record_failure(outcome.kind)
            self._log.info(
                "request_resolved",
                ok=False,
                kind=outcome.kind.value,
                message=outcome.message,
                timing=report.to_dict(),
            )
        else:
            self._log.info(
                "request_resolved",
                ok=True,
                status=outcome.status,
                http_error=outcome.http_error.message if outcome.http_error else None,
                timing=report.to_dict(),
            )
        return True

    def fail(self, kind: FailureKind, message: str) -> bool:
        """Deliver a failure with the timing collected so far."""
        failure = Failure(kind=kind, message=message, timing=self._tracker.finish())
        return self.deliver(failure)

    def _record(self, report: TimingReport) -> None:
        self._metrics.record_completion(
            duration_ms=report.total,
            bytes_sent=report.counter(COUNTER_BYTES_SENT),
            bytes_received=report.counter(COUNTER_BYTES_RECEIVED),
        )
