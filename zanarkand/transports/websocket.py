"""WebSocket transport implementation."""

from __future__ import annotations

from websockets.asyncio.client import connect
from websockets.exceptions import InvalidHandshake, InvalidURI

from zanarkand.core.errors import TransportConnectError, TransportTimeoutError
from zanarkand.transports.base import Connection


class WebSocketConnector:
    def __init__(self, *, open_timeout: float | None = 10.0) -> None:
        self.open_timeout = open_timeout

    async def open(self, uri: str) -> Connection:
        try:
            # The wrapper does not negotiate permessage-deflate.
            return await connect(uri, compression=None, open_timeout=self.open_timeout)
        except TimeoutError as exc:
            raise TransportTimeoutError(f"WebSocket connect to {uri} timed out") from exc
        except (InvalidURI, InvalidHandshake) as exc:
            raise TransportConnectError(f"WebSocket handshake with {uri} failed: {exc}") from exc
        except OSError as exc:
            raise TransportConnectError(f"WebSocket connect to {uri} failed: {exc}") from exc
