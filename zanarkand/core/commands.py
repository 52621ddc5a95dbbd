"""Control verbs sent to the wrapper over the channel."""

from __future__ import annotations

from collections.abc import Callable

from zanarkand.core.channel import ChannelManager
from zanarkand.core.errors import CommandError, TransportError
from zanarkand.core.model import WrapperConfig
from zanarkand.core.reporting import Reporter
from zanarkand.core.supervisor import ProcessSupervisor

COMMANDS = ("start", "stop", "kill")
CLOSING_COMMANDS = frozenset({"stop", "kill"})

CommandCallback = Callable[..., None]


class CommandChannel:
    def __init__(
        self,
        config: WrapperConfig,
        supervisor: ProcessSupervisor,
        channels: ChannelManager,
        reporter: Reporter,
    ) -> None:
        self._config = config
        self._supervisor = supervisor
        self._channels = channels
        self._reporter = reporter

    async def send(self, verb: str, callback: CommandCallback | None = None) -> bool:
        """Send `verb` once the channel is open.

        With a callback, failures are reported as `callback(exc)` and success as
        `callback()`; without one, failures raise `CommandError`. Returns whether
        the command was delivered (always True in no_exe mode).
        """
        try:
            await self._deliver(verb)
        except CommandError as exc:
            if callback is None:
                raise
            callback(exc)
            return False
        if callback is not None:
            callback()
        return True

    async def _deliver(self, verb: str) -> None:
        if verb not in COMMANDS:
            raise CommandError(f"Unknown command '{verb}'. Expected one of: {', '.join(COMMANDS)}")
        if self._config.no_exe:
            return
        if not self._supervisor.launched:
            raise CommandError("ZanarkandWrapper is uninitialized.")

        try:
            channel = await self._channels.wait_until_open(timeout=self._config.command_timeout)
            await channel.send(verb)
        except TransportError as exc:
            raise CommandError(f"Could not send '{verb}' to ZanarkandWrapper: {exc}") from exc
        self._reporter.debug(f"Sent '{verb}' on channel #{channel.generation}")

        if verb in CLOSING_COMMANDS:
            await self._channels.close()
