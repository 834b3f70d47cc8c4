"""Queue-backed transport handle shared by transport implementations."""

import asyncio
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from dataclasses import replace

import structlog

from src.features.transport.errors import (
    TransportAbortedError,
    TransportError,
    classify_os_error,
)
from src.features.transport.events import TransportEvent
from src.features.transport.protocols import TransportRequest


logger = structlog.get_logger()

_END_OF_EVENTS = object()

# Events buffered ahead of the consumer before the pump waits
DEFAULT_QUEUE_SIZE = 64


class QueuedTransportHandle(ABC):
    """Runs a transport call in a background task and queues its events.

    Subclasses implement ``_pump()``, which performs the call and reports
    progress through ``emit()``. Errors raised by ``_pump()`` are queued
    and re-raised to the consumer in order, after any events emitted
    before them.

    The queue is bounded: once ``queue_size`` events wait undelivered,
    ``emit()`` blocks the pump until the consumer catches up.
    """

    def __init__(
        self, request: TransportRequest, queue_size: int = DEFAULT_QUEUE_SIZE
    ) -> None:
        """Initialize the handle.

        Args:
            request: Attempt to perform.
            queue_size: Maximum number of undelivered events.
        """
        self._request = request
        self._queue: asyncio.Queue[object] = asyncio.Queue(maxsize=queue_size)
        self._task: asyncio.Task[None] | None = None
        self._aborted = False
        self._closed = False

    @property
    def request(self) -> TransportRequest:
        """Get the request performed by this handle."""
        return self._request

    @property
    def aborted(self) -> bool:
        """Check if abort() was called."""
        return self._aborted

    @property
    def closed(self) -> bool:
        """Check if aclose() was called."""
        return self._closed

    def start(self) -> None:
        """Start the background task. Requires a running event loop."""
        self._task = asyncio.get_running_loop().create_task(self._run())

    async def _run(self) -> None:
        try:
            await self._pump()
        except TransportError as e:
            await self._finish(e)
        except Exception as e:  # noqa: BLE001
            await self._finish(classify_os_error(e, self._request.hostname))
        else:
            await self._finish(_END_OF_EVENTS)

    async def _finish(self, item: object) -> None:
        if not self._aborted:
            await self._queue.put(item)

    @abstractmethod
    async def _pump(self) -> None:
        """Perform the call, emitting events as they happen."""

    async def emit(self, event: TransportEvent) -> None:
        """Stamp an event and queue it for the consumer.

        Waits while ``queue_size`` events are already undelivered.

        Args:
            event: Event to deliver.
        """
        if self._aborted:
            return
        if event.at is None:
            event = replace(event, at=self._request.clock())
        await self._queue.put(event)

    def pending(self) -> int:
        """Number of queued events not yet consumed."""
        return self._queue.qsize()

    async def events(self) -> AsyncIterator[TransportEvent]:
        """Iterate events until the response ends.

        Raises:
            TransportError: On socket-level failures.
            TransportAbortedError: After abort() was called.
        """
        while True:
            item = await self._queue.get()
            if item is _END_OF_EVENTS:
                return
            if isinstance(item, TransportError | TransportAbortedError):
                raise item
            yield item

    def abort(self) -> None:
        """Abort the call. Undelivered events are dropped."""
        if self._aborted:
            return
        self._aborted = True

        if self._task is not None and not self._task.done():
            self._task.cancel()

        while not self._queue.empty():
            self._queue.get_nowait()
        self._queue.put_nowait(TransportAbortedError())

        logger.debug(
            "transport_aborted",
            component="transport",
            hostname=self._request.hostname,
        )

    async def aclose(self) -> None:
        """Stop the background task and release resources."""
        if self._closed:
            return
        self._closed = True

        if self._task is not None:
            if not self._task.done():
                self._task.cancel()
            await asyncio.wait({self._task})

        await self._release()

    async def _release(self) -> None:
        """Release implementation resources after the task has stopped."""
