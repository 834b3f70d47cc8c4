"""Response classification: redirect, retry or proceed."""

from enum import Enum

from src.features.config.constants import (
    DEFAULT_REDIRECT_STATUSES,
    DEFAULT_RETRY_STATUS_RANGE,
)
from src.features.request.models import Budget, budget_allows


class Decision(str, Enum):
    """What to do with a response once its headers arrived.

    - REDIRECT: Drain the body and follow the Location header
    - RETRY: Drain the body and repeat the attempt
    - PROCEED: Deliver the response
    """

    REDIRECT = "REDIRECT"
    RETRY = "RETRY"
    PROCEED = "PROCEED"


class ResponseClassifier:
    """Pure decision function over status codes and remaining budgets.

    Redirect takes priority: it needs a follow budget, a redirect status and
    a Location header. Retry needs a retry budget and a status inside the
    inclusive retry range. Anything else proceeds.
    """

    def __init__(
        self,
        redirect_statuses: frozenset[int] | set[int] = DEFAULT_REDIRECT_STATUSES,
        retry_status_range: tuple[int, int] = DEFAULT_RETRY_STATUS_RANGE,
    ) -> None:
        """Initialize the classifier.

        Args:
            redirect_statuses: Statuses followed as redirects.
            retry_status_range: Inclusive (low, high) range of retried statuses.
        """
        low, high = retry_status_range
        if low > high:
            raise ValueError(f"Invalid retry status range: {low}-{high}")
        self._redirect_statuses = frozenset(redirect_statuses)
        self._retry_low = low
        self._retry_high = high

    @property
    def redirect_statuses(self) -> frozenset[int]:
        """Get the statuses followed as redirects."""
        return self._redirect_statuses

    @property
    def retry_status_range(self) -> tuple[int, int]:
        """Get the inclusive retry status range."""
        return (self._retry_low, self._retry_high)

    def is_redirect_status(self, status: int) -> bool:
        """Check if a status is in the redirect set."""
        return status in self._redirect_statuses

    def is_retry_status(self, status: int) -> bool:
        """Check if a status is in the retry range."""
        return self._retry_low <= status <= self._retry_high

    def classify(
        self,
        status: int,
        retries_remaining: Budget,
        follow_remaining: Budget,
        has_location: bool,
    ) -> Decision:
        """Classify a response.

        Args:
            status: HTTP status code.
            retries_remaining: Remaining retry budget.
            follow_remaining: Remaining redirect budget.
            has_location: Whether the response has a Location header.

        Returns:
            Decision for the response.
        """
        if (
            budget_allows(follow_remaining)
            and self.is_redirect_status(status)
            and has_location
        ):
            return Decision.REDIRECT
        if budget_allows(retries_remaining) and self.is_retry_status(status):
            return Decision.RETRY
        return Decision.PROCEED
