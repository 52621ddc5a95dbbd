"""Lifetime management for the ZanarkandWrapper capture process."""

from __future__ import annotations

import asyncio
import os
import signal
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from zanarkand.core.config import data_home
from zanarkand.core.errors import ExecutableNotFoundError, SupervisorError
from zanarkand.core.model import LaunchSpec, WrapperConfig
from zanarkand.core.reporting import Reporter

Spawner = Callable[..., Awaitable[Any]]


def default_executable() -> Path:
    return data_home() / "ZanarkandWrapper" / "ZanarkandWrapperJSON.exe"


def resolve_executable(config: WrapperConfig) -> Path:
    return Path(config.exe_path).expanduser() if config.exe_path else default_executable()


def build_arguments(config: WrapperConfig) -> tuple[str, ...]:
    args: list[str] = []
    if config.ip:
        args += ["-LocalIP", config.ip]
    if config.region:
        args += ["-Region", config.region]
    if config.port:
        args += ["-Port", str(config.port)]
    if config.data_path:
        args += ["-DataPath", config.data_path]
    if config.no_data:
        args += ["-Dev", "true"]
    return tuple(args)


def build_launch_spec(config: WrapperConfig) -> LaunchSpec:
    executable = str(resolve_executable(config))
    args = build_arguments(config)
    if config.has_wine:
        env = dict(os.environ)
        env["WINEPREFIX"] = os.path.expandvars(os.path.expanduser(config.wine_prefix))
        return LaunchSpec(program="wine", args=(executable, *args), env=env)
    return LaunchSpec(program=executable, args=args)


def describe_exit(returncode: int | None) -> str:
    if returncode is None:
        return "unknown"
    if returncode < 0:
        try:
            return signal.Signals(-returncode).name
        except ValueError:
            return f"signal {-returncode}"
    return str(returncode)


@dataclass
class ProcessHandle:
    generation: int
    process: Any
    spec: LaunchSpec
    tasks: list[asyncio.Task[None]] = field(default_factory=list)

    @property
    def pid(self) -> int | None:
        return getattr(self.process, "pid", None)

    @property
    def exited(self) -> bool:
        return self.process.returncode is not None


class ProcessSupervisor:
    """Owns the wrapper process.

    Each launch produces a new `ProcessHandle`. Only the current handle's exit
    triggers `on_exit`; handles detached with `retire()` are torn down silently
    apart from the exit log line.
    """

    def __init__(
        self,
        config: WrapperConfig,
        reporter: Reporter,
        *,
        spawner: Spawner | None = None,
        on_exit: Callable[[ProcessHandle], None] | None = None,
    ) -> None:
        self._config = config
        self._reporter = reporter
        self._spawner = spawner or asyncio.create_subprocess_exec
        self._on_exit = on_exit
        self._handle: ProcessHandle | None = None
        self._generation = 0
        self.spec: LaunchSpec | None = None

        if not config.no_exe:
            executable = resolve_executable(config)
            if not executable.exists():
                raise ExecutableNotFoundError(f"ZanarkandWrapperJSON not found in {executable}")
            self.spec = build_launch_spec(config)

    @property
    def launched(self) -> bool:
        return self._generation > 0

    @property
    def current(self) -> ProcessHandle | None:
        return self._handle

    async def launch(self) -> ProcessHandle:
        if self.spec is None:
            raise SupervisorError("Process launch is disabled (no_exe is set).")
        if self._handle is not None and not self._handle.exited:
            raise SupervisorError(
                f"ZanarkandWrapper is already running (pid {self._handle.pid}); terminate it first."
            )

        spec = self.spec
        self._reporter.info(f"Starting ZanarkandWrapper from executable {resolve_executable(self._config)}.")
        try:
            process = await self._spawner(
                spec.program,
                *spec.args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=spec.env,
            )
        except OSError as exc:
            raise SupervisorError(f"Could not start ZanarkandWrapper: {exc}") from exc

        self._generation += 1
        handle = ProcessHandle(generation=self._generation, process=process, spec=spec)
        self._handle = handle

        loop = asyncio.get_running_loop()
        handle.tasks.append(loop.create_task(self._pump(process.stdout, "info")))
        handle.tasks.append(loop.create_task(self._pump(process.stderr, "error")))
        handle.tasks.append(loop.create_task(self._observe(handle)))

        self._reporter.info(f'ZanarkandWrapper spawned with arguments "{",".join(spec.args)}"')
        return handle

    def retire(self) -> ProcessHandle | None:
        handle, self._handle = self._handle, None
        return handle

    async def terminate(self, handle: ProcessHandle | None = None) -> None:
        if handle is None:
            handle = self.retire()
        if handle is None:
            return

        process = handle.process
        if process.returncode is None:
            try:
                process.terminate()
            except ProcessLookupError:
                pass
            try:
                await asyncio.wait_for(process.wait(), timeout=self._config.terminate_timeout)
            except asyncio.TimeoutError:
                self._reporter.error(
                    f"ZanarkandWrapper (pid {handle.pid}) ignored SIGTERM, killing it."
                )
                try:
                    process.kill()
                except ProcessLookupError:
                    pass
                await process.wait()

        current = asyncio.current_task()
        pending = [task for task in handle.tasks if task is not current]
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    async def _pump(self, stream: asyncio.StreamReader | None, level: str) -> None:
        if stream is None:
            return
        try:
            while True:
                line = await stream.readline()
                if not line:
                    return
                text = line.decode("utf-8", errors="replace").rstrip()
                if text:
                    self._reporter.log(level, text)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            self._reporter.error(f"Could not read ZanarkandWrapper output: {exc}")

    async def _observe(self, handle: ProcessHandle) -> None:
        returncode = await handle.process.wait()
        self._reporter.info(f"ZanarkandWrapper closed with code: {describe_exit(returncode)}")
        if handle is not self._handle:
            return
        if self._on_exit is not None:
            self._on_exit(handle)
