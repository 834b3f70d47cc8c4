"""Shared fixtures."""

from collections.abc import Iterator

import pytest

from src.features.dns_cache import reset_default_address_cache
from src.features.request.metrics import RequestMetrics
from tests.helpers.time import FakeClock


@pytest.fixture(autouse=True)
def reset_singletons() -> Iterator[None]:
    """Reset process-wide metrics and address cache around each test."""
    RequestMetrics.reset()
    reset_default_address_cache()
    yield
    RequestMetrics.reset()
    reset_default_address_cache()


@pytest.fixture
def fake_clock() -> FakeClock:
    """Clock starting at a fixed wall time."""
    return FakeClock(start=1_000_000.0)
