"""Caller-side cancellation of logical requests."""

from collections.abc import Callable

import structlog


logger = structlog.get_logger()


class CancellationSignal:
    """Cancellation handle shared between a caller and a request.

    ``cancel()`` is idempotent and safe to call at any time, including
    after the request already resolved.
    """

    def __init__(self) -> None:
        """Initialize an uncancelled signal."""
        self._cancelled = False
        self._reason = "Request aborted"
        self._listeners: list[Callable[[str], None]] = []

    @property
    def cancelled(self) -> bool:
        """Check if cancel() was called."""
        return self._cancelled

    @property
    def reason(self) -> str:
        """Get the cancellation reason."""
        return self._reason

    def cancel(self, reason: str | None = None) -> None:
        """Cancel every request listening to this signal.

        Args:
            reason: Message carried by the resulting failure.
        """
        if self._cancelled:
            return
        self._cancelled = True
        if reason:
            self._reason = reason

        listeners, self._listeners = self._listeners, []
        logger.debug(
            "cancellation_requested",
            component="request",
            listeners=len(listeners),
        )
        for listener in listeners:
            listener(self._reason)

    def add_listener(self, listener: Callable[[str], None]) -> None:
        """Register a callback invoked once with the reason on cancel()."""
        self._listeners.append(listener)

    def remove_listener(self, listener: Callable[[str], None]) -> None:
        """Unregister a callback. Unknown callbacks are ignored."""
        if listener in self._listeners:
            self._listeners.remove(listener)
