"""Single-delivery latch for the outcome of a logical request."""

import asyncio

import structlog

from src.features.request.models import Outcome


logger = structlog.get_logger()


class OutcomeResolver:
    """Delivers exactly one Outcome per logical request.

    Timers, transport errors, completed bodies and cancellation race each
    other; the first call to ``resolve()`` wins and every later call is a
    logged no-op.
    """

    def __init__(self, request_id: str = "") -> None:
        """Initialize an unresolved latch. Requires a running event loop.

        Args:
            request_id: Identifier used in log events.
        """
        self._future: asyncio.Future[Outcome] = asyncio.get_running_loop().create_future()
        self._log = logger.bind(component="request", request_id=request_id)

    @property
    def is_resolved(self) -> bool:
        """Check if an outcome was delivered."""
        return self._future.done()

    @property
    def outcome(self) -> Outcome | None:
        """Get the delivered outcome, if any."""
        if not self._future.done():
            return None
        return self._future.result()

    def resolve(self, outcome: Outcome) -> bool:
        """Deliver the outcome unless one was already delivered.

        Args:
            outcome: Terminal outcome.

        Returns:
            True if this call delivered the outcome.
        """
        if self._future.done():
            self._log.debug(
                "duplicate_resolution_suppressed",
                ok=outcome.ok,
                delivered_ok=self._future.result().ok,
            )
            return False

        self._future.set_result(outcome)
        return True

    async def wait(self) -> Outcome:
        """Wait for the outcome."""
        return await asyncio.shield(self._future)
