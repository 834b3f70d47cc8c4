"""Address cache and hostname resolution."""

from src.features.dns_cache.cache import (
    AddressCache,
    AddressCacheEntry,
    get_default_address_cache,
    reset_default_address_cache,
)
from src.features.dns_cache.resolver import AddressResolver, SystemResolver


__all__ = [
    "AddressCache",
    "AddressCacheEntry",
    "AddressResolver",
    "SystemResolver",
    "get_default_address_cache",
    "reset_default_address_cache",
]
