"""Unit tests for the address cache."""

import pytest

from src.features.dns_cache import (
    AddressCache,
    get_default_address_cache,
    reset_default_address_cache,
)
from tests.helpers.time import FakeClock


class TestAddressCache:
    """Tests for AddressCache."""

    @pytest.mark.unit
    def test_store_and_lookup(self, fake_clock: FakeClock) -> None:
        """Test that a stored address is returned while fresh."""
        cache = AddressCache(clock=fake_clock)
        cache.store("example.com", "93.184.216.34", ttl=300)

        assert cache.lookup("example.com") == "93.184.216.34"
        assert "example.com" in cache
        assert len(cache) == 1

    @pytest.mark.unit
    def test_lookup_unknown_host(self, fake_clock: FakeClock) -> None:
        """Test lookup of a host never stored."""
        cache = AddressCache(clock=fake_clock)
        assert cache.lookup("unknown.example") is None

    @pytest.mark.unit
    def test_expired_entry_evicted(self, fake_clock: FakeClock) -> None:
        """Test that an entry past its TTL is dropped on lookup."""
        cache = AddressCache(clock=fake_clock)
        cache.store("example.com", "10.0.0.1", ttl=300)

        fake_clock.advance(299)
        assert cache.lookup("example.com") == "10.0.0.1"

        fake_clock.advance(2)
        assert cache.lookup("example.com") is None
        assert "example.com" not in cache

    @pytest.mark.unit
    def test_zero_ttl_disables_caching(self, fake_clock: FakeClock) -> None:
        """Test that a zero TTL stores nothing."""
        cache = AddressCache(clock=fake_clock)
        cache.store("example.com", "10.0.0.1", ttl=0)

        assert len(cache) == 0
        assert cache.lookup("example.com") is None

    @pytest.mark.unit
    def test_store_replaces_entry(self, fake_clock: FakeClock) -> None:
        """Test that a later store wins."""
        cache = AddressCache(clock=fake_clock)
        cache.store("example.com", "10.0.0.1", ttl=300)
        cache.store("example.com", "10.0.0.2", ttl=300)

        assert cache.lookup("example.com") == "10.0.0.2"

    @pytest.mark.unit
    def test_flush(self, fake_clock: FakeClock) -> None:
        """Test that flush removes every entry."""
        cache = AddressCache(clock=fake_clock)
        cache.store("a.example", "10.0.0.1", ttl=300)
        cache.store("b.example", "10.0.0.2", ttl=300)

        cache.flush()

        assert len(cache) == 0


class TestDefaultAddressCache:
    """Tests for the process-wide cache."""

    @pytest.mark.unit
    def test_default_cache_is_shared(self) -> None:
        """Test that the default cache is a singleton."""
        assert get_default_address_cache() is get_default_address_cache()

    @pytest.mark.unit
    def test_reset_default_cache(self) -> None:
        """Test that reset creates a fresh cache."""
        first = get_default_address_cache()
        first.store("example.com", "10.0.0.1", ttl=300)

        reset_default_address_cache()

        second = get_default_address_cache()
        assert second is not first
        assert second.lookup("example.com") is None
