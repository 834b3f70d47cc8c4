"""Unit tests for the outcome resolver, cancellation and attempt states."""

import asyncio

import pytest

from src.features.errors import FailureKind
from src.features.request.cancellation import CancellationSignal
from src.features.request.models import Failure, Success
from src.features.request.resolver import OutcomeResolver
from src.features.request.state_machine import (
    AttemptMachine,
    AttemptPhase,
    AttemptTransitionError,
)
from src.features.timing import TimingReport


def _success() -> Success:
    return Success(status=200, url="http://example.com/", timing=TimingReport())


def _failure() -> Failure:
    return Failure(kind=FailureKind.ABORTED, message="Request aborted", timing=TimingReport())


class TestOutcomeResolver:
    """Tests for OutcomeResolver."""

    @pytest.mark.asyncio
    async def test_first_resolution_wins(self) -> None:
        """Test that later resolutions are suppressed."""
        resolver = OutcomeResolver("req-1")
        success = _success()

        assert resolver.resolve(success) is True
        assert resolver.resolve(_failure()) is False

        assert resolver.is_resolved
        assert resolver.outcome is success
        assert await resolver.wait() is success

    @pytest.mark.asyncio
    async def test_wait_blocks_until_resolved(self) -> None:
        """Test that waiters are released by resolve."""
        resolver = OutcomeResolver()
        waiter = asyncio.create_task(resolver.wait())
        await asyncio.sleep(0)
        assert not waiter.done()

        failure = _failure()
        resolver.resolve(failure)

        assert await waiter is failure

    @pytest.mark.asyncio
    async def test_cancelled_waiter_keeps_outcome(self) -> None:
        """Test that cancelling a waiter does not cancel the latch."""
        resolver = OutcomeResolver()
        waiter = asyncio.create_task(resolver.wait())
        await asyncio.sleep(0)
        waiter.cancel()
        await asyncio.gather(waiter, return_exceptions=True)

        assert resolver.resolve(_success()) is True
        assert resolver.outcome is not None

    @pytest.mark.asyncio
    async def test_unresolved_outcome_is_none(self) -> None:
        """Test the initial state."""
        resolver = OutcomeResolver()
        assert not resolver.is_resolved
        assert resolver.outcome is None


class TestCancellationSignal:
    """Tests for CancellationSignal."""

    @pytest.mark.unit
    def test_cancel_notifies_listeners_once(self) -> None:
        """Test that listeners are called once with the reason."""
        signal = CancellationSignal()
        reasons: list[str] = []
        signal.add_listener(reasons.append)

        signal.cancel("user navigated away")
        signal.cancel("again")

        assert signal.cancelled
        assert signal.reason == "user navigated away"
        assert reasons == ["user navigated away"]

    @pytest.mark.unit
    def test_default_reason(self) -> None:
        """Test the reason used when none is given."""
        signal = CancellationSignal()
        signal.cancel()
        assert signal.reason == "Request aborted"

    @pytest.mark.unit
    def test_removed_listener_not_called(self) -> None:
        """Test listener removal, including unknown listeners."""
        signal = CancellationSignal()
        reasons: list[str] = []
        signal.add_listener(reasons.append)
        signal.remove_listener(reasons.append)
        signal.remove_listener(print)

        signal.cancel()

        assert reasons == []


class TestAttemptMachine:
    """Tests for AttemptMachine."""

    @pytest.mark.unit
    def test_initial_state(self) -> None:
        """Test that attempts start in PREPARING."""
        machine = AttemptMachine("req", 1)
        assert machine.state == AttemptPhase.PREPARING
        assert not machine.is_done

    @pytest.mark.unit
    def test_happy_path(self) -> None:
        """Test the full sequence of phases."""
        machine = AttemptMachine("req", 1)
        machine.to_connecting()
        machine.to_awaiting_headers()
        machine.to_streaming()
        machine.to_done()

        assert machine.is_done

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "steps",
        [
            [],
            ["to_connecting"],
            ["to_connecting", "to_awaiting_headers"],
            ["to_connecting", "to_awaiting_headers", "to_streaming"],
        ],
    )
    def test_any_state_can_finish(self, steps: list[str]) -> None:
        """Test that every state may end the attempt."""
        machine = AttemptMachine("req", 1)
        for step in steps:
            getattr(machine, step)()

        machine.to_done()

        assert machine.state == AttemptPhase.DONE

    @pytest.mark.unit
    def test_to_done_idempotent(self) -> None:
        """Test that finishing twice is allowed."""
        machine = AttemptMachine("req", 1)
        machine.to_done()
        machine.to_done()
        assert machine.is_done

    @pytest.mark.unit
    def test_illegal_transition(self) -> None:
        """Test that skipping states raises."""
        machine = AttemptMachine("req", 3)

        with pytest.raises(AttemptTransitionError) as exc_info:
            machine.to_streaming()

        assert exc_info.value.attempt == 3
        assert exc_info.value.from_state == AttemptPhase.PREPARING
        assert exc_info.value.to_state == AttemptPhase.STREAMING

    @pytest.mark.unit
    def test_done_is_terminal(self) -> None:
        """Test that nothing follows DONE."""
        machine = AttemptMachine("req", 1)
        machine.to_done()

        assert not machine.can_transition_to(AttemptPhase.CONNECTING)
        with pytest.raises(AttemptTransitionError):
            machine.to_connecting()
