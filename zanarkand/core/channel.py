"""Channel management: connect, reconnect-with-delay, and readiness waits."""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import Callable

from zanarkand.core.errors import (
    ChannelClosedError,
    TransportError,
    TransportSendError,
    TransportTimeoutError,
)
from zanarkand.core.model import ChannelState
from zanarkand.core.reporting import Reporter
from zanarkand.transports.base import Connection, Connector


class Channel:
    """One connection attempt and its lifetime. Never reused after closing."""

    def __init__(self, generation: int, uri: str) -> None:
        self.generation = generation
        self.uri = uri
        self.state = ChannelState.CONNECTING
        self.connection: Connection | None = None
        self.caller_closed = False

    @property
    def is_open(self) -> bool:
        return self.state is ChannelState.OPEN and self.connection is not None

    async def send(self, message: str) -> None:
        if not self.is_open:
            raise TransportSendError(
                f"Channel #{self.generation} is {self.state.value}, cannot send '{message}'"
            )
        try:
            await self.connection.send(message)
        except Exception as exc:
            raise TransportSendError(f"Sending '{message}' on channel #{self.generation} failed: {exc}") from exc

    def __repr__(self) -> str:
        return f"Channel(generation={self.generation}, state={self.state.value})"


class ChannelManager:
    def __init__(
        self,
        uri: str,
        *,
        connector: Connector,
        on_message: Callable[[str | bytes], None],
        reporter: Reporter,
        reconnect_delay: float = 1.0,
    ) -> None:
        if reconnect_delay <= 0:
            raise ValueError("reconnect_delay must be greater than zero")
        self.uri = uri
        self.reconnect_delay = reconnect_delay
        self._connector = connector
        self._on_message = on_message
        self._reporter = reporter
        self._current: Channel | None = None
        self._reader: asyncio.Task[None] | None = None
        self._reconnect: asyncio.Task[None] | None = None
        self._closed_by_caller = False
        self._generation = 0
        self._interrupts = 0
        self._interrupt_reason = ""
        self._changed = asyncio.Event()
        self._background: set[asyncio.Task[None]] = set()

    @property
    def current(self) -> Channel | None:
        return self._current

    @property
    def state(self) -> ChannelState | None:
        return self._current.state if self._current is not None else None

    @property
    def reconnect_pending(self) -> bool:
        return self._reconnect is not None and not self._reconnect.done()

    def connect(self) -> Channel:
        """Start a fresh channel, superseding the current one."""
        loop = asyncio.get_running_loop()
        self._closed_by_caller = False
        self._cancel_reconnect()

        previous = self._current
        self._generation += 1
        channel = Channel(self._generation, self.uri)
        self._current = channel
        if previous is not None and previous.state in (ChannelState.CONNECTING, ChannelState.OPEN):
            previous.caller_closed = True
            self._spawn(self._shutdown(previous, self._reader))

        self._reader = loop.create_task(self._run(channel))
        self._notify()
        return channel

    async def close(self) -> None:
        """Caller-initiated close. No reconnect follows."""
        self._closed_by_caller = True
        self._cancel_reconnect()
        channel = self._current
        if channel is not None:
            channel.caller_closed = True
            await self._shutdown(channel, self._reader)
        self._notify()

    async def close_current(self) -> None:
        """Drop the current connection as if the transport closed it."""
        channel = self._current
        if channel is not None and channel.connection is not None:
            with contextlib.suppress(Exception):
                await channel.connection.close()

    def drop_current(self) -> None:
        """Schedule close_current() from synchronous code."""
        self._spawn(self.close_current())

    def interrupt(self, reason: str) -> None:
        """Fail every readiness wait that is pending right now."""
        self._interrupts += 1
        self._interrupt_reason = reason
        self._notify()

    async def wait_until_open(self, timeout: float | None = None) -> Channel:
        try:
            return await asyncio.wait_for(self._wait_open(), timeout=timeout)
        except asyncio.TimeoutError as exc:
            raise TransportTimeoutError(
                f"Channel to {self.uri} did not open within {timeout} seconds"
            ) from exc

    async def _wait_open(self) -> Channel:
        interrupts = self._interrupts
        while True:
            channel = self._current
            if channel is not None and channel.is_open:
                return channel
            if self._closed_by_caller:
                raise ChannelClosedError(f"Channel to {self.uri} was closed")
            if self._interrupts != interrupts:
                raise ChannelClosedError(self._interrupt_reason)
            await self._changed.wait()

    def _spawn(self, coro) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    def _notify(self) -> None:
        changed, self._changed = self._changed, asyncio.Event()
        changed.set()

    def _set_state(self, channel: Channel, state: ChannelState) -> None:
        channel.state = state
        self._notify()

    def _cancel_reconnect(self) -> None:
        if self._reconnect is not None and not self._reconnect.done():
            self._reconnect.cancel()
        self._reconnect = None

    async def _shutdown(self, channel: Channel, reader: asyncio.Task[None] | None) -> None:
        if channel.connection is not None:
            with contextlib.suppress(Exception):
                await channel.connection.close()
        if reader is not None and reader is not asyncio.current_task() and not reader.done():
            if channel.connection is None:
                reader.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await reader
        if channel.state in (ChannelState.CONNECTING, ChannelState.OPEN):
            self._set_state(channel, ChannelState.CLOSED)

    async def _run(self, channel: Channel) -> None:
        try:
            connection = await self._connector.open(channel.uri)
        except (TransportError, OSError) as exc:
            self._fail(channel, f"Connection errored with message {exc}")
            return

        if channel.caller_closed or channel is not self._current:
            with contextlib.suppress(Exception):
                await connection.close()
            self._set_state(channel, ChannelState.CLOSED)
            return

        channel.connection = connection
        self._set_state(channel, ChannelState.OPEN)
        self._reporter.info(f"Connected to ZanarkandWrapper on {channel.uri}!")

        try:
            async for message in connection:
                try:
                    self._on_message(message)
                except Exception as exc:
                    self._reporter.error(f"Message handler failed: {exc}")
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            if channel.caller_closed:
                self._set_state(channel, ChannelState.CLOSED)
            else:
                self._fail(channel, f"Connection errored with message {exc}")
            return

        self._set_state(channel, ChannelState.CLOSED)
        self._reporter.info("Connection with ZanarkandWrapper closed.")
        if not channel.caller_closed:
            self._schedule_reconnect(channel)

    def _fail(self, channel: Channel, message: str) -> None:
        self._set_state(channel, ChannelState.FAILED)
        if not self._should_reconnect(channel):
            self._reporter.error(message)
            return
        self._reporter.error(f"{message}, reconnecting in {self.reconnect_delay:g} second(s)...")
        self._schedule_reconnect(channel)

    def _should_reconnect(self, channel: Channel) -> bool:
        return not (self._closed_by_caller or channel.caller_closed or channel is not self._current)

    def _schedule_reconnect(self, channel: Channel) -> None:
        if not self._should_reconnect(channel) or self.reconnect_pending:
            return
        self._reconnect = asyncio.get_running_loop().create_task(self._reconnect_later())

    async def _reconnect_later(self) -> None:
        await asyncio.sleep(self.reconnect_delay)
        self._reconnect = None
        if self._closed_by_caller:
            return
        self.connect()
