"""Typer CLI entrypoint."""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import shlex
import signal
from typing import Any

import typer

from zanarkand.api import CATCH_ALL_EVENT, ChannelState, Client, DecodedPacket, PacketEnvelope
from zanarkand.core.config import validate_options
from zanarkand.core.errors import ZanarkandError
from zanarkand.core.registry import DefinitionRegistry
from zanarkand.core.supervisor import build_launch_spec

app = typer.Typer(help="Supervise ZanarkandWrapper and stream its captured packets")


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
    )


def _options(**values: Any) -> dict[str, Any]:
    return {key: value for key, value in values.items() if value is not None and value is not False}


def _print_envelope(envelope: PacketEnvelope) -> None:
    typer.echo(json.dumps(envelope.to_dict()))


def _print_decoded(packet: DecodedPacket) -> None:
    fields = {key: value.hex() if isinstance(value, bytes) else value for key, value in packet.fields.items()}
    typer.echo(json.dumps({"name": packet.name, "opcode": packet.envelope.opcode, "fields": fields}))


async def _capture(client: Client, registry: DefinitionRegistry, filters: list[str], decoded: bool) -> None:
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(sig, stop.set)

    client.set_filter(filters)
    if decoded:
        for model in registry.models():
            client.on(model.name, _print_decoded)
    else:
        client.on(CATCH_ALL_EVENT, _print_envelope)

    async with client:
        starter = asyncio.create_task(client.start())
        await stop.wait()
        if not starter.done():
            starter.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await starter
        elif starter.exception() is not None:
            typer.echo(f"Error: {starter.exception()}", err=True)
        elif client.channel_state is ChannelState.OPEN:
            await client.stop()


@app.command("run")
def run_capture(
    region: str | None = typer.Option(None, "--region", help="Game region passed to the wrapper"),
    ip: str | None = typer.Option(None, "--ip", help="Local IP the wrapper captures on"),
    port: int | None = typer.Option(None, "--port", help="Wrapper WebSocket port (default 13346)"),
    data_path: str | None = typer.Option(None, "--data-path", help="Wrapper data directory"),
    no_data: bool = typer.Option(False, "--no-data", help="Run the wrapper in dev mode, skip field decoding"),
    no_exe: bool = typer.Option(False, "--no-exe", help="Connect to an already running wrapper"),
    wine: bool = typer.Option(False, "--wine", help="Launch the wrapper through wine"),
    wine_prefix: str | None = typer.Option(None, "--wine-prefix", help="WINEPREFIX used with --wine"),
    exe_path: str | None = typer.Option(None, "--exe", help="Path to ZanarkandWrapperJSON.exe"),
    definitions_dir: str | None = typer.Option(None, "--definitions", help="Extra packet definitions directory"),
    network_device: str | None = typer.Option(None, "--host", help="Host the wrapper listens on"),
    filters: list[str] | None = typer.Option(None, "--filter", help="Packet type to keep (repeatable)"),
    decoded: bool = typer.Option(False, "--decoded", help="Print decoded named packets instead of raw envelopes"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Launch the wrapper, send 'start', and print packets until interrupted."""
    _configure_logging(verbose)
    try:
        registry = DefinitionRegistry.load(definitions_dir)
        for warning in registry.warnings:
            typer.echo(f"Warning: {warning}", err=True)
        client = Client(
            _options(
                region=region,
                ip=ip,
                port=port,
                data_path=data_path,
                no_data=no_data,
                no_exe=no_exe,
                has_wine=wine,
                wine_prefix=wine_prefix,
                exe_path=exe_path,
                definitions_dir=definitions_dir,
                network_device=network_device,
            ),
            registry=registry,
        )
        asyncio.run(_capture(client, registry, filters or [], decoded))
    except ZanarkandError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("definitions")
def list_definitions(
    definitions_dir: str | None = typer.Option(None, "--definitions", help="Extra packet definitions directory"),
) -> None:
    """List loaded packet definitions and their fields."""
    try:
        registry = DefinitionRegistry.load(definitions_dir)
        for warning in registry.warnings:
            typer.echo(f"Warning: {warning}", err=True)
        models = registry.models()
        if not models:
            typer.echo("No packet definitions loaded")
            raise typer.Exit(code=1)

        for model in models:
            match = []
            if model.match_type is not None:
                match.append(f"type={model.match_type}")
            if model.match_opcode is not None:
                match.append(f"opcode={model.match_opcode}")
            typer.echo(f"{model.name} ({model.source_id}): {' '.join(match)}")
            for spec in model.fields:
                size = f"[{spec.length}]" if spec.length else ""
                typer.echo(f"  {spec.name}: {spec.kind}{size} @ {spec.offset}")
    except ZanarkandError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("launch-args")
def show_launch_args(
    region: str | None = typer.Option(None, "--region"),
    ip: str | None = typer.Option(None, "--ip"),
    port: int | None = typer.Option(None, "--port"),
    data_path: str | None = typer.Option(None, "--data-path"),
    no_data: bool = typer.Option(False, "--no-data"),
    wine: bool = typer.Option(False, "--wine"),
    wine_prefix: str | None = typer.Option(None, "--wine-prefix"),
    exe_path: str | None = typer.Option(None, "--exe"),
) -> None:
    """Print the command line the wrapper would be launched with."""
    try:
        config = validate_options(
            _options(
                region=region,
                ip=ip,
                port=port,
                data_path=data_path,
                no_data=no_data,
                has_wine=wine,
                wine_prefix=wine_prefix,
                exe_path=exe_path,
            )
        )
        spec = build_launch_spec(config)
        if spec.env is not None:
            typer.echo(f"WINEPREFIX={shlex.quote(spec.env['WINEPREFIX'])}")
        typer.echo(shlex.join(spec.argv))
    except ZanarkandError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


def run() -> None:
    app()


if __name__ == "__main__":
    run()
