"""Hostname to address cache with TTL expiry."""

import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import ClassVar

import structlog


logger = structlog.get_logger()


@dataclass(frozen=True)
class AddressCacheEntry:
    """Resolved address with its expiry timestamp.

    Attributes:
        address: Resolved IP address.
        expires_at: Wall clock time (seconds) after which the entry is stale.
    """

    address: str
    expires_at: float

    def is_fresh(self, now: float) -> bool:
        """Check if the entry is still usable at the given time."""
        return self.expires_at > now


class AddressCache:
    """Maps hostnames to resolved addresses.

    Entries are immutable value pairs; a store replaces the whole entry in a
    single dict assignment, so concurrent requests sharing the cache never
    observe a half-written entry. Expired entries are evicted lazily on
    lookup. A TTL of zero disables caching: nothing is ever stored.
    """

    _default: ClassVar["AddressCache | None"] = None

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        """Initialize an empty cache.

        Args:
            clock: Wall clock returning seconds.
        """
        self._clock = clock
        self._entries: dict[str, AddressCacheEntry] = {}
        self._log = logger.bind(component="dns_cache")

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, hostname: object) -> bool:
        return hostname in self._entries

    def lookup(self, hostname: str) -> str | None:
        """Look up a fresh address for a hostname.

        Args:
            hostname: Hostname to look up.

        Returns:
            Cached address, or None if absent or expired.
        """
        entry = self._entries.get(hostname)
        if entry is None:
            return None

        if not entry.is_fresh(self._clock()):
            # Only evict the entry we looked at, not a newer replacement
            if self._entries.get(hostname) is entry:
                del self._entries[hostname]
            self._log.debug("dns_cache_expired", hostname=hostname)
            return None

        return entry.address

    def store(self, hostname: str, address: str, ttl: float) -> None:
        """Store a resolved address.

        Args:
            hostname: Hostname that was resolved.
            address: Resolved address.
            ttl: Time to live in seconds; zero or less disables caching.
        """
        if ttl <= 0:
            return

        self._entries[hostname] = AddressCacheEntry(
            address=address,
            expires_at=self._clock() + ttl,
        )
        self._log.debug("dns_cache_store", hostname=hostname, address=address, ttl=ttl)

    def flush(self) -> None:
        """Remove every cached entry."""
        self._entries = {}
        self._log.debug("dns_cache_flushed")

    @classmethod
    def get_default(cls) -> "AddressCache":
        """Get the process-wide shared cache."""
        if cls._default is None:
            cls._default = cls()
        return cls._default

    @classmethod
    def reset_default(cls) -> None:
        """Drop the process-wide cache (primarily for testing)."""
        cls._default = None


def get_default_address_cache() -> AddressCache:
    """Get the process-wide address cache shared by all orchestrators."""
    return AddressCache.get_default()


def reset_default_address_cache() -> None:
    """Reset the process-wide address cache."""
    AddressCache.reset_default()
