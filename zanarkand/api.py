"""Stable public API for building tooling on top of zanarkand.

This module is the supported integration surface for third-party callers.
Avoid importing from private/internal modules unless intentionally depending on
non-stable internals.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable, Mapping
from typing import Any

from zanarkand.core.commands import CommandCallback
from zanarkand.core.errors import (
    ChannelClosedError,
    CommandError,
    ConfigError,
    ConfigTypeError,
    DecodeError,
    DefinitionLoadError,
    DefinitionValidationError,
    ExecutableNotFoundError,
    SupervisorError,
    TransportConnectError,
    TransportError,
    TransportSendError,
    TransportTimeoutError,
    ZanarkandError,
)
from zanarkand.core.events import Handler
from zanarkand.core.model import (
    CATCH_ALL_EVENT,
    ChannelState,
    DecodedPacket,
    LaunchSpec,
    PacketEnvelope,
    WrapperConfig,
)
from zanarkand.core.registry import DefinitionRegistry, PacketRegistry
from zanarkand.core.service import WrapperService
from zanarkand.core.supervisor import Spawner
from zanarkand.transports.base import Connection, Connector

__all__ = [
    "ZanarkandError",
    "ConfigError",
    "ConfigTypeError",
    "ExecutableNotFoundError",
    "SupervisorError",
    "CommandError",
    "DecodeError",
    "DefinitionLoadError",
    "DefinitionValidationError",
    "TransportError",
    "TransportConnectError",
    "TransportSendError",
    "TransportTimeoutError",
    "ChannelClosedError",
    "CATCH_ALL_EVENT",
    "ChannelState",
    "DecodedPacket",
    "LaunchSpec",
    "PacketEnvelope",
    "WrapperConfig",
    "DefinitionRegistry",
    "PacketRegistry",
    "Connection",
    "Connector",
    "Client",
]


class Client:
    """Public client for a supervised ZanarkandWrapper.

    Construction validates the options and, unless `no_exe` is set, checks that
    the wrapper executable exists. Nothing is spawned or connected until
    `open()` (or `async with`).

        async with Client({"region": "Global"}) as client:
            client.on("raw", print)
            await client.start()
    """

    def __init__(
        self,
        options: Mapping[str, Any] | None = None,
        *,
        registry: PacketRegistry | None = None,
        connector: Connector | None = None,
        spawner: Spawner | None = None,
    ) -> None:
        self._service = WrapperService(options, registry=registry, connector=connector, spawner=spawner)

    async def __aenter__(self) -> Client:
        await self.open()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    @property
    def config(self) -> WrapperConfig:
        return self._service.config

    @property
    def channel_state(self) -> ChannelState | None:
        return self._service.channel_state

    @property
    def filter(self) -> frozenset[str]:
        return self._service.demux.filters

    async def open(self) -> None:
        """Launch the wrapper (unless `no_exe`) and connect the channel."""
        await self._service.open()

    def connect(self) -> None:
        self._service.connect()

    async def close(self) -> None:
        """Close the channel without reconnecting and terminate the wrapper."""
        await self._service.close()

    def on(self, name: str, handler: Handler) -> None:
        self._service.on(name, handler)

    def off(self, name: str, handler: Handler) -> None:
        self._service.off(name, handler)

    def once_packet(self, name: str) -> asyncio.Future[Any]:
        """Future resolved by the next event called `name`. Never times out by itself."""
        return self._service.once_packet(name)

    def set_filter(self, names: Iterable[str] | str | None) -> None:
        self._service.set_filter(names)

    def parse(self, envelope: PacketEnvelope) -> list[DecodedPacket]:
        return self._service.parse(envelope)

    async def send_command(self, verb: str, callback: CommandCallback | None = None) -> bool:
        return await self._service.send_command(verb, callback)

    async def start(self, callback: CommandCallback | None = None) -> None:
        await self._service.start(callback)

    async def stop(self, callback: CommandCallback | None = None) -> None:
        await self._service.stop(callback)

    async def kill(self, callback: CommandCallback | None = None) -> None:
        await self._service.kill(callback)

    async def reset(self, callback: CommandCallback | None = None) -> None:
        await self._service.reset(callback)
