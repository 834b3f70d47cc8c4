"""Phase timing for logical requests spanning several attempts."""

from src.features.timing.constants import (
    COUNTER_BYTES_RECEIVED,
    COUNTER_BYTES_SENT,
    COUNTER_REDIRECTS,
    COUNTER_RETRIES,
    PHASE_CONNECT,
    PHASE_DECOMPRESS,
    PHASE_DNS,
    PHASE_RECEIVE,
    PHASE_SEND,
    PHASE_TOTAL,
    PHASE_WAIT,
)
from src.features.timing.models import PhaseTiming, TimingReport
from src.features.timing.tracker import TimingTracker


__all__ = [
    # Tracker
    "TimingTracker",
    # Models
    "PhaseTiming",
    "TimingReport",
    # Phases
    "PHASE_DNS",
    "PHASE_CONNECT",
    "PHASE_SEND",
    "PHASE_WAIT",
    "PHASE_RECEIVE",
    "PHASE_DECOMPRESS",
    "PHASE_TOTAL",
    # Counters
    "COUNTER_BYTES_SENT",
    "COUNTER_BYTES_RECEIVED",
    "COUNTER_RETRIES",
    "COUNTER_REDIRECTS",
]
