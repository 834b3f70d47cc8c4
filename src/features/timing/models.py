"""Data models for request timing reports."""

from typing import Annotated

from pydantic import Field

from src.data_model import StrictBaseModel
from src.features.timing.constants import DEFAULT_SCALE, PHASE_TOTAL


class PhaseTiming(StrictBaseModel):
    """Timing of a single named phase.

    Attributes:
        start: Offset of the phase start from the attempt start (scaled units).
        elapsed: Exclusive duration of the phase (scaled units).
    """

    start: float = 0.0
    elapsed: Annotated[float, Field(ge=0.0)] = 0.0


class TimingReport(StrictBaseModel):
    """Finished timing breakdown for one logical request.

    A report covers every attempt of the request: phase durations from
    earlier attempts are already folded in, and the total phase spans the
    whole chain.
    """

    scale: Annotated[float, Field(gt=0.0)] = DEFAULT_SCALE
    total_start: float = Field(
        default=0.0, description="Raw clock value at the start of the chain"
    )
    phases: dict[str, PhaseTiming] = Field(default_factory=dict)
    counters: dict[str, int] = Field(default_factory=dict)

    def elapsed(self, phase: str) -> float | None:
        """Get the elapsed value of a phase.

        Args:
            phase: Phase name.

        Returns:
            Elapsed value, or None if the phase was never recorded.
        """
        timing = self.phases.get(phase)
        return timing.elapsed if timing is not None else None

    def counter(self, name: str) -> int:
        """Get a counter value, defaulting to zero."""
        return self.counters.get(name, 0)

    @property
    def total(self) -> float:
        """Total elapsed value across all attempts."""
        return self.elapsed(PHASE_TOTAL) or 0.0

    def to_dict(self) -> dict[str, float | int]:
        """Flatten the report into phase elapsed values and counters.

        Returns:
            Dictionary keyed by phase and counter name.
        """
        result: dict[str, float | int] = {
            name: round(timing.elapsed, 3) for name, timing in self.phases.items()
        }
        result.update(self.counters)
        return result
