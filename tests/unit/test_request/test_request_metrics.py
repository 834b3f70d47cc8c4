"""Unit tests for request metrics."""

import pytest

from src.features.errors import FailureKind
from src.features.request.metrics import RequestMetrics


class TestRequestMetrics:
    """Tests for RequestMetrics."""

    @pytest.mark.unit
    def test_singleton(self) -> None:
        """Test that get_instance returns the same collector until reset."""
        first = RequestMetrics.get_instance()
        assert RequestMetrics.get_instance() is first

        RequestMetrics.reset()

        assert RequestMetrics.get_instance() is not first

    @pytest.mark.unit
    def test_records(self) -> None:
        """Test that every recorder updates its metric."""
        metrics = RequestMetrics()
        metrics.record_attempt()
        metrics.record_attempt()
        metrics.record_response(500)
        metrics.record_response(200)
        metrics.record_response(200)
        metrics.record_retry()
        metrics.record_redirect()
        metrics.record_failure(FailureKind.TIMEOUT)
        metrics.record_completion(duration_ms=30.0, bytes_sent=10, bytes_received=100)
        metrics.record_completion(duration_ms=10.0, bytes_sent=0, bytes_received=50)

        result = metrics.to_dict()

        assert result["attempts_total"] == 2
        assert result["responses_total"] == {500: 1, 200: 2}
        assert result["retries_total"] == 1
        assert result["redirects_total"] == 1
        assert result["failures_total"] == {"TIMEOUT": 1}
        assert result["bytes_sent_total"] == 10
        assert result["bytes_received_total"] == 150
        assert result["request_count"] == 2
        assert metrics.avg_duration_ms == pytest.approx(20.0)

    @pytest.mark.unit
    def test_avg_duration_without_requests(self) -> None:
        """Test the average of an empty collector."""
        assert RequestMetrics().avg_duration_ms == 0.0
