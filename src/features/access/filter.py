"""Allow/deny evaluation of resolved addresses."""

import ipaddress

import structlog
from pydantic import Field, field_validator

from src.data_model import StrictBaseModel
from src.features.errors import BlockedAddressError


logger = structlog.get_logger()

IPNetwork = ipaddress.IPv4Network | ipaddress.IPv6Network
IPAddress = ipaddress.IPv4Address | ipaddress.IPv6Address


def is_ip_literal(host: str) -> bool:
    """Check if a hostname is already a literal IP address.

    Args:
        host: Hostname, optionally with IPv6 brackets.

    Returns:
        True if the host parses as an IPv4 or IPv6 address.
    """
    try:
        ipaddress.ip_address(host.strip("[]"))
    except ValueError:
        return False
    return True


class AccessPolicy(StrictBaseModel):
    """Address allow/deny rules.

    Deny rules always win. A non-empty allow list refuses every address it
    does not contain. With ``block_private`` set, private, loopback,
    link-local, reserved and multicast addresses are refused unless an allow
    rule covers them explicitly.
    """

    allow: list[str] = Field(default_factory=list, description="Allowed CIDR networks")
    deny: list[str] = Field(default_factory=list, description="Denied CIDR networks")
    block_private: bool = Field(
        default=False, description="Refuse non-public addresses"
    )

    @field_validator("allow", "deny")
    @classmethod
    def validate_networks(cls, v: list[str]) -> list[str]:
        """Validate that every rule is an address or CIDR network."""
        for rule in v:
            try:
                ipaddress.ip_network(rule, strict=False)
            except ValueError as e:
                msg = f"Invalid network rule '{rule}': {e}"
                raise ValueError(msg) from e
        return v

    @property
    def is_empty(self) -> bool:
        """Check if the policy has no effect."""
        return not (self.allow or self.deny or self.block_private)


class AccessControlFilter:
    """Evaluates addresses against an AccessPolicy before they are trusted."""

    def __init__(self, policy: AccessPolicy) -> None:
        """Initialize the filter.

        Args:
            policy: Rules to enforce.
        """
        self._policy = policy
        self._allow: list[IPNetwork] = [
            ipaddress.ip_network(rule, strict=False) for rule in policy.allow
        ]
        self._deny: list[IPNetwork] = [
            ipaddress.ip_network(rule, strict=False) for rule in policy.deny
        ]
        self._log = logger.bind(component="access")

    @property
    def policy(self) -> AccessPolicy:
        """Get the enforced policy."""
        return self._policy

    def is_allowed(self, address: str) -> bool:
        """Check an address against the policy.

        Args:
            address: IP address to evaluate.

        Returns:
            True if the address may be connected to.
        """
        try:
            ip = ipaddress.ip_address(address.strip("[]"))
        except ValueError:
            # Not an address; nothing to evaluate until it resolves
            return True

        if any(ip in network for network in self._deny if ip.version == network.version):
            return False

        explicitly_allowed = any(
            ip in network for network in self._allow if ip.version == network.version
        )
        if self._allow and not explicitly_allowed:
            return False

        if self._policy.block_private and not explicitly_allowed:
            return not _is_non_public(ip)

        return True

    def check(self, address: str, hostname: str | None = None) -> None:
        """Raise if an address is refused.

        Args:
            address: IP address to evaluate.
            hostname: Hostname the address belongs to, for error context.

        Raises:
            BlockedAddressError: If the policy refuses the address.
        """
        if self.is_allowed(address):
            return

        self._log.warning("address_blocked", address=address, hostname=hostname)
        raise BlockedAddressError(address=address, hostname=hostname)


def _is_non_public(ip: IPAddress) -> bool:
    return (
        ip.is_private
        or ip.is_loopback
        or ip.is_link_local
        or ip.is_reserved
        or ip.is_multicast
        or ip.is_unspecified
    )
