"""Hostname resolution capability consumed by transports."""

import asyncio
import socket
from typing import Protocol


class AddressResolver(Protocol):
    """Protocol for resolving a hostname to a single address."""

    async def resolve(self, hostname: str, port: int) -> str:
        """Resolve a hostname.

        Args:
            hostname: Hostname to resolve.
            port: Port the caller intends to connect to.

        Returns:
            Resolved IP address as a string.

        Raises:
            socket.gaierror: If the hostname cannot be resolved.
        """
        ...


class SystemResolver:
    """Resolves hostnames with the event loop's getaddrinfo."""

    def __init__(self, family: int = socket.AF_UNSPEC) -> None:
        """Initialize the resolver.

        Args:
            family: Address family to request (AF_UNSPEC, AF_INET, AF_INET6).
        """
        self._family = family

    async def resolve(self, hostname: str, port: int) -> str:
        """Resolve a hostname to the first address returned by the system."""
        loop = asyncio.get_running_loop()
        infos = await loop.getaddrinfo(
            hostname, port, family=self._family, type=socket.SOCK_STREAM
        )
        if not infos:
            raise socket.gaierror(socket.EAI_NONAME, f"No address for {hostname}")
        address: str = infos[0][4][0]
        return address
