from __future__ import annotations

import asyncio
import json
from pathlib import Path

import pytest

from fakes import FakeConnector, FakeSpawner
from zanarkand.api import CATCH_ALL_EVENT, ChannelState, Client, ConfigTypeError, ExecutableNotFoundError


def test_public_client_no_exe_round_trip(tmp_path: Path) -> None:
    connector = FakeConnector()
    client = Client({"port": 5000, "no_exe": True, "remote_data_path": str(tmp_path)}, connector=connector)
    raw: list = []

    async def scenario() -> None:
        await client.start()
        assert connector.attempts == 0

        client.on(CATCH_ALL_EVENT, raw.append)
        client.set_filter(["ping"])
        async with client:
            await client.start()
            channel_open = await client._service.channels.wait_until_open(timeout=1)
            assert channel_open.is_open
            connector.last.push(json.dumps({"type": "ping", "data": [1, 0, 0, 0]}))
            connector.last.push(json.dumps({"type": "initZone", "data": []}))
            ping = await asyncio.wait_for(client.once_packet("ping"), timeout=1)
            assert ping.fields == {"timestamp": 1}
        assert client.channel_state is ChannelState.CLOSED

    asyncio.run(scenario())

    assert client.config.port == 5000
    assert client.filter == frozenset({"ping"})
    assert connector.uris == ["ws://127.0.0.1:5000"]
    assert [envelope.type for envelope in raw] == ["ping"]
    # no_exe never sends anything over the channel
    assert connector.last.sent == []


def test_public_client_context_manager_launches_and_terminates(tmp_path: Path, wrapper_exe: Path) -> None:
    connector = FakeConnector()
    spawner = FakeSpawner()
    client = Client(
        {"exe_path": str(wrapper_exe), "region": "Global", "remote_data_path": str(tmp_path)},
        connector=connector,
        spawner=spawner,
    )

    async def scenario() -> None:
        async with client:
            await client.start()
            assert connector.last.sent == ["start"]

    asyncio.run(scenario())

    program, args, _ = spawner.calls[0]
    assert program == str(wrapper_exe)
    assert args == ("-Region", "Global", "-Port", "13346")
    assert spawner.last.terminated


def test_public_client_parse(tmp_path: Path) -> None:
    from zanarkand.api import PacketEnvelope

    client = Client({"no_exe": True, "remote_data_path": str(tmp_path)})
    packets = client.parse(PacketEnvelope(type="actorControl", data=bytes(12)))
    assert [packet.name for packet in packets] == ["actorControl"]
    assert packets[0].fields == {"category": 0, "param1": 0, "param2": 0}


def test_constructor_errors_are_synchronous(tmp_path: Path) -> None:
    with pytest.raises(ConfigTypeError):
        Client({"port": "13346", "remote_data_path": str(tmp_path)})

    with pytest.raises(ExecutableNotFoundError):
        Client({"exe_path": str(tmp_path / "nope.exe"), "remote_data_path": str(tmp_path)})
