"""Metrics collection for the request engine."""

from dataclasses import dataclass, field
from typing import ClassVar

from src.features.errors import FailureKind


@dataclass
class RequestMetrics:
    """Metrics for logical requests and their attempts.

    Singleton class that tracks attempt counts by status, retries,
    redirects, failures and transferred bytes.
    """

    attempts_total: int = 0
    responses_total: dict[int, int] = field(default_factory=dict)
    retries_total: int = 0
    redirects_total: int = 0
    failures_total: dict[str, int] = field(default_factory=dict)
    bytes_sent_total: int = 0
    bytes_received_total: int = 0
    duration_ms_total: float = 0.0
    request_count: int = 0

    _instance: ClassVar["RequestMetrics | None"] = None

    @classmethod
    def get_instance(cls) -> "RequestMetrics":
        """Get singleton metrics instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Reset metrics (primarily for testing)."""
        cls._instance = None

    def record_attempt(self) -> None:
        """Record a physical attempt."""
        self.attempts_total += 1

    def record_response(self, status_code: int) -> None:
        """Record response headers received by an attempt.

        Args:
            status_code: HTTP status code.
        """
        self.responses_total[status_code] = self.responses_total.get(status_code, 0) + 1

    def record_retry(self) -> None:
        """Record a retry."""
        self.retries_total += 1

    def record_redirect(self) -> None:
        """Record a followed redirect."""
        self.redirects_total += 1

    def record_failure(self, kind: FailureKind) -> None:
        """Record a logical request that resolved as a failure.

        Args:
            kind: Classification of the failure.
        """
        key = kind.value
        self.failures_total[key] = self.failures_total.get(key, 0) + 1

    def record_completion(
        self, duration_ms: float, bytes_sent: int, bytes_received: int
    ) -> None:
        """Record a resolved logical request.

        Args:
            duration_ms: Total duration in milliseconds.
            bytes_sent: Bytes sent across all attempts.
            bytes_received: Bytes received across all attempts.
        """
        self.request_count += 1
        self.duration_ms_total += duration_ms
        self.bytes_sent_total += bytes_sent
        self.bytes_received_total += bytes_received

    def to_dict(self) -> dict[str, int | float | dict[str, int] | dict[int, int]]:
        """Convert metrics to dictionary.

        Returns:
            Dictionary of metric name to value.
        """
        return {
            "attempts_total": self.attempts_total,
            "responses_total": dict(self.responses_total),
            "retries_total": self.retries_total,
            "redirects_total": self.redirects_total,
            "failures_total": dict(self.failures_total),
            "bytes_sent_total": self.bytes_sent_total,
            "bytes_received_total": self.bytes_received_total,
            "duration_ms_total": self.duration_ms_total,
            "request_count": self.request_count,
        }

    @property
    def avg_duration_ms(self) -> float:
        """Calculate average request duration.

        Returns:
            Average duration in milliseconds.
        """
        if self.request_count == 0:
            return 0.0
        return self.duration_ms_total / self.request_count
