"""Phase timing tracker for a chain of request attempts."""

import time
from collections.abc import Callable

from src.features.timing.constants import (
    DEFAULT_SCALE,
    PHASE_EXCLUSIONS,
    PHASE_TOTAL,
)
from src.features.timing.models import PhaseTiming, TimingReport


class TimingTracker:
    """Records where time was spent during one attempt.

    Phase boundaries are recorded as "end of phase = elapsed since attempt
    start". Exclusive durations are derived in ``finish()`` by subtracting
    each phase's predecessor in a fixed order (dns, connect, send, wait,
    receive, decompress) and clamping the result at zero.

    A tracker for a retry or redirect continuation merges the finished
    report of its predecessor: the total start is inherited, phase values
    and counters accumulate.
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.perf_counter,
        scale: float = DEFAULT_SCALE,
    ) -> None:
        """Initialize the tracker.

        Args:
            clock: Monotonic clock returning seconds.
            scale: Multiplier applied to clock seconds (1000 = milliseconds).
        """
        self._clock = clock
        self._scale = scale
        self._attempt_start: float | None = None
        self._total_start: float | None = None
        self._marks: dict[str, float] = {}
        self._carried: dict[str, float] = {}
        self._counters: dict[str, int] = {}

    @property
    def scale(self) -> float:
        """Get the unit scale of this tracker."""
        return self._scale

    @property
    def started(self) -> bool:
        """Check if begin() has been called."""
        return self._attempt_start is not None

    def begin(self) -> float:
        """Mark the start of the attempt (and of the chain, if not inherited).

        Returns:
            Raw clock value of the attempt start.
        """
        now = self._clock()
        self._attempt_start = now
        if self._total_start is None:
            self._total_start = now
        return now

    @property
    def clock(self) -> Callable[[], float]:
        """Get the clock of this tracker."""
        return self._clock

    def end(self, phase: str, at: float | None = None) -> None:
        """Mark the end of a phase.

        Args:
            phase: Phase name.
            at: Raw clock value of the phase end (default: now).
        """
        start = self._attempt_start
        if start is None:
            start = self.begin()
        now = self._clock() if at is None else at
        self._marks[phase] = (now - start) * self._scale

    def has_phase(self, phase: str) -> bool:
        """Check if a phase end was recorded during this attempt."""
        return phase in self._marks

    def count(self, name: str, amount: int = 1) -> None:
        """Increment a counter.

        Args:
            name: Counter name.
            amount: Amount to add.
        """
        self._counters[name] = self._counters.get(name, 0) + amount

    def merge(self, report: TimingReport) -> None:
        """Fold a predecessor attempt's finished report into this tracker.

        Args:
            report: Finished report of the previous attempt chain.
        """
        factor = self._scale / report.scale
        self._total_start = report.total_start

        for name, timing in report.phases.items():
            if name == PHASE_TOTAL:
                continue
            self._carried[name] = self._carried.get(name, 0.0) + timing.elapsed * factor

        for name, value in report.counters.items():
            self.count(name, value)

    def finish(self) -> TimingReport:
        """Build the timing report. Does not modify tracker state.

        Returns:
            TimingReport with exclusive, non-negative phase durations.
        """
        if self._attempt_start is None:
            self.begin()
        total_start = self._total_start if self._total_start is not None else 0.0

        phases: dict[str, PhaseTiming] = {}
        for name, mark in self._marks.items():
            phases[name] = PhaseTiming(start=0.0, elapsed=max(0.0, mark))

        for phase, previous in PHASE_EXCLUSIONS:
            if phase in self._marks and previous in self._marks:
                previous_mark = self._marks[previous]
                phases[phase] = PhaseTiming(
                    start=max(0.0, previous_mark),
                    elapsed=max(0.0, self._marks[phase] - previous_mark),
                )

        for name, value in self._carried.items():
            current = phases.get(name)
            if current is None:
                phases[name] = PhaseTiming(elapsed=max(0.0, value))
            else:
                phases[name] = PhaseTiming(
                    start=current.start, elapsed=max(0.0, current.elapsed + value)
                )

        total = (self._clock() - total_start) * self._scale
        phases[PHASE_TOTAL] = PhaseTiming(start=0.0, elapsed=max(0.0, total))

        return TimingReport(
            scale=self._scale,
            total_start=total_start,
            phases=phases,
            counters=dict(self._counters),
        )
