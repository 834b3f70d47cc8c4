"""Request engine defaults.

Centralizes status sets, default headers and timer defaults shared by the
configuration, the orchestrator, the classifier and the client.
"""

# Redirect statuses followed when follow is enabled
DEFAULT_REDIRECT_STATUSES: frozenset[int] = frozenset({301, 302, 307, 308})

# Inclusive status range retried when retries are enabled
DEFAULT_RETRY_STATUS_RANGE: tuple[int, int] = (500, 599)

# Statuses matching this pattern are successes for auto-error and json()
DEFAULT_SUCCESS_PATTERN = r"^2\d\d$"

DEFAULT_USER_AGENT = "request-engine/0.1"
DEFAULT_ACCEPT_ENCODING = "gzip, deflate, br"

# First-byte timeout in milliseconds
DEFAULT_TIMEOUT_MS = 30_000

# Idle timeout in milliseconds, 0 disables the idle timer
DEFAULT_IDLE_TIMEOUT_MS = 0

# Address cache TTL in seconds, 0 disables caching
DEFAULT_DNS_TTL_SECONDS = 0

SUPPORTED_SCHEMES: frozenset[str] = frozenset({"http", "https"})
