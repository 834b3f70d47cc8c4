"""State machine for a single request attempt."""

from enum import Enum

import structlog


logger = structlog.get_logger()


class AttemptPhase(str, Enum):
    """State of one physical attempt.

    - PREPARING: Headers, address and body being prepared
    - CONNECTING: Transport call open, no response yet
    - AWAITING_HEADERS: Request sent, waiting for the status line
    - STREAMING: Response headers received, body flowing
    - DONE: Attempt finished (any outcome)
    """

    PREPARING = "PREPARING"
    CONNECTING = "CONNECTING"
    AWAITING_HEADERS = "AWAITING_HEADERS"
    STREAMING = "STREAMING"
    DONE = "DONE"


# Valid state transitions; every state may end the attempt
_VALID_TRANSITIONS: dict[AttemptPhase, set[AttemptPhase]] = {
    AttemptPhase.PREPARING: {AttemptPhase.CONNECTING, AttemptPhase.DONE},
    AttemptPhase.CONNECTING: {AttemptPhase.AWAITING_HEADERS, AttemptPhase.DONE},
    AttemptPhase.AWAITING_HEADERS: {AttemptPhase.STREAMING, AttemptPhase.DONE},
    AttemptPhase.STREAMING: {AttemptPhase.DONE},
    AttemptPhase.DONE: set(),  # Terminal state
}


class AttemptTransitionError(Exception):
    """Raised when an illegal state transition is attempted."""

    def __init__(
        self,
        attempt: int,
        from_state: AttemptPhase,
        to_state: AttemptPhase,
    ) -> None:
        """Initialize the transition error.

        Args:
            attempt: Attempt number.
            from_state: Current state.
            to_state: Attempted target state.
        """
        self.attempt = attempt
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(
            f"Illegal state transition for attempt {attempt}: "
            f"{from_state.value} -> {to_state.value}"
        )


class AttemptMachine:
    """Tracks the state of one attempt and enforces valid transitions."""

    def __init__(self, request_id: str, attempt: int) -> None:
        """Initialize the state machine in PREPARING.

        Args:
            request_id: Identifier of the logical request.
            attempt: Attempt number within the logical request.
        """
        self._attempt = attempt
        self._state = AttemptPhase.PREPARING
        self._log = logger.bind(
            component="request",
            request_id=request_id,
            attempt=attempt,
        )

    @property
    def state(self) -> AttemptPhase:
        """Get the current state."""
        return self._state

    @property
    def is_done(self) -> bool:
        """Check if the attempt finished."""
        return self._state == AttemptPhase.DONE

    def can_transition_to(self, target: AttemptPhase) -> bool:
        """Check if a transition to the target state is valid."""
        return target in _VALID_TRANSITIONS[self._state]

    def transition_to(self, target: AttemptPhase) -> None:
        """Transition to a new state.

        Args:
            target: The target state.

        Raises:
            AttemptTransitionError: If the transition is invalid.
        """
        if not self.can_transition_to(target):
            self._log.error(
                "illegal_state_transition",
                from_state=self._state.value,
                to_state=target.value,
            )
            raise AttemptTransitionError(self._attempt, self._state, target)

        old_state = self._state
        self._state = target
        self._log.debug(
            "state_transition",
            from_state=old_state.value,
            to_state=target.value,
        )

    def to_connecting(self) -> None:
        """Transition to CONNECTING."""
        self.transition_to(AttemptPhase.CONNECTING)

    def to_awaiting_headers(self) -> None:
        """Transition to AWAITING_HEADERS."""
        self.transition_to(AttemptPhase.AWAITING_HEADERS)

    def to_streaming(self) -> None:
        """Transition to STREAMING."""
        self.transition_to(AttemptPhase.STREAMING)

    def to_done(self) -> None:
        """Transition to DONE. Repeated calls are ignored."""
        if self._state != AttemptPhase.DONE:
            self.transition_to(AttemptPhase.DONE)
