"""Phase and counter names used in timing reports."""

from typing import Final


PHASE_DNS: Final = "dns"
PHASE_CONNECT: Final = "connect"
PHASE_SEND: Final = "send"
PHASE_WAIT: Final = "wait"
PHASE_RECEIVE: Final = "receive"
PHASE_DECOMPRESS: Final = "decompress"
PHASE_TOTAL: Final = "total"

# Each phase excludes the span of the phase it follows
PHASE_EXCLUSIONS: Final[tuple[tuple[str, str], ...]] = (
    (PHASE_DECOMPRESS, PHASE_RECEIVE),
    (PHASE_RECEIVE, PHASE_WAIT),
    (PHASE_WAIT, PHASE_SEND),
    (PHASE_SEND, PHASE_CONNECT),
    (PHASE_CONNECT, PHASE_DNS),
)

COUNTER_BYTES_SENT: Final = "bytes_sent"
COUNTER_BYTES_RECEIVED: Final = "bytes_received"
COUNTER_RETRIES: Final = "retries"
COUNTER_REDIRECTS: Final = "redirects"

# Milliseconds per second
DEFAULT_SCALE: Final = 1000.0
