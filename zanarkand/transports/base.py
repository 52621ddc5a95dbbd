"""Transport interfaces."""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Protocol


class Connection(Protocol):
    async def send(self, message: str) -> None:
        """Send one whole text frame."""

    async def close(self) -> None:
        """Close the connection; iteration ends afterwards."""

    def __aiter__(self) -> AsyncIterator[str | bytes]:
        """Yield inbound frames until the connection closes."""


class Connector(Protocol):
    async def open(self, uri: str) -> Connection:
        """Open a connection to `uri`, raising `TransportConnectError` on failure."""
