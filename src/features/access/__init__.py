"""Access control for resolved addresses."""

from src.features.access.filter import AccessControlFilter, AccessPolicy, is_ip_literal


__all__ = [
    "AccessControlFilter",
    "AccessPolicy",
    "is_ip_literal",
]
