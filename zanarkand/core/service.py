"""Service layer used by the public client and the CLI."""

from __future__ import annotations

import asyncio
from collections.abc import Iterable, Mapping
from typing import Any

from zanarkand.core.channel import ChannelManager
from zanarkand.core.commands import CommandCallback, CommandChannel
from zanarkand.core.config import validate_options
from zanarkand.core.demux import PacketDemultiplexer
from zanarkand.core.errors import SupervisorError, TransportSendError
from zanarkand.core.events import EventBus, Handler
from zanarkand.core.model import ChannelState, DecodedPacket, PacketEnvelope
from zanarkand.core.registry import DefinitionRegistry, PacketRegistry
from zanarkand.core.reporting import Reporter
from zanarkand.core.supervisor import ProcessHandle, ProcessSupervisor, Spawner
from zanarkand.transports.base import Connector
from zanarkand.transports.websocket import WebSocketConnector


class WrapperService:
    def __init__(
        self,
        options: Mapping[str, Any] | None = None,
        *,
        registry: PacketRegistry | None = None,
        connector: Connector | None = None,
        spawner: Spawner | None = None,
    ) -> None:
        self.config = validate_options(options)
        self.reporter = Reporter(self.config.logger)
        self.supervisor = ProcessSupervisor(
            self.config,
            self.reporter,
            spawner=spawner,
            on_exit=self._on_process_exit,
        )
        self.registry = registry or DefinitionRegistry.load(self.config.definitions_dir)
        self.bus = EventBus(self.reporter)
        self.demux = PacketDemultiplexer(self.bus, self.registry, self.reporter, no_data=self.config.no_data)
        self.channels = ChannelManager(
            self.config.endpoint,
            connector=connector or WebSocketConnector(),
            on_message=self.demux.handle_message,
            reporter=self.reporter,
            reconnect_delay=self.config.reconnect_delay,
        )
        self.commands = CommandChannel(self.config, self.supervisor, self.channels, self.reporter)
        # open, close and reset each swap the process generation; one at a time.
        self._lifecycle = asyncio.Lock()

    @property
    def channel_state(self) -> ChannelState | None:
        return self.channels.state

    async def open(self) -> None:
        async with self._lifecycle:
            if not self.config.no_exe:
                await self.supervisor.launch()
            self.connect()

    def connect(self) -> None:
        self.channels.connect()

    async def close(self) -> None:
        # Release a reset that is still waiting for its channel.
        self.channels.interrupt("ZanarkandWrapper service is closing")
        async with self._lifecycle:
            handle = self.supervisor.retire()
            await self.channels.close()
            if handle is not None:
                await self.supervisor.terminate(handle)

    def on(self, name: str, handler: Handler) -> None:
        self.bus.on(name, handler)

    def off(self, name: str, handler: Handler) -> None:
        self.bus.off(name, handler)

    def once_packet(self, name: str) -> asyncio.Future[Any]:
        return self.bus.next(name)

    def set_filter(self, names: Iterable[str] | str | None) -> None:
        self.demux.set_filter(names)

    def parse(self, envelope: PacketEnvelope) -> list[DecodedPacket]:
        return self.registry.parse(envelope, no_data=self.config.no_data)

    async def send_command(self, verb: str, callback: CommandCallback | None = None) -> bool:
        return await self.commands.send(verb, callback)

    async def start(self, callback: CommandCallback | None = None) -> None:
        if await self.commands.send("start", callback):
            self.reporter.info("ZanarkandWrapper started!")

    async def stop(self, callback: CommandCallback | None = None) -> None:
        if await self.commands.send("stop", callback):
            self.reporter.info("ZanarkandWrapper stopped!")

    async def kill(self, callback: CommandCallback | None = None) -> None:
        if await self.commands.send("kill", callback):
            self.reporter.info("ZanarkandWrapper killed!")

    async def reset(self, callback: CommandCallback | None = None) -> None:
        async with self._lifecycle:
            if not self.supervisor.launched:
                raise SupervisorError("No instance to reset.")

            # Detach first so the old process's exit cannot close the new channel.
            handle = self.supervisor.retire()
            channel = self.channels.current
            if channel is not None and channel.is_open:
                try:
                    await channel.send("kill")
                except TransportSendError as exc:
                    self.reporter.error(f"Could not send 'kill' during reset: {exc}")
            await self.channels.close()
            if handle is not None:
                await self.supervisor.terminate(handle)

            await self.supervisor.launch()
            self.channels.connect()
            await self.start(callback)
        self.reporter.info("ZanarkandWrapper reset!")

    def _on_process_exit(self, handle: ProcessHandle) -> None:
        self.channels.interrupt(f"ZanarkandWrapper (pid {handle.pid}) exited")
        self.channels.drop_current()
