"""Core data models used across supervisor, channel, demultiplexer, and CLI."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from zanarkand.core.reporting import LogCallback, noop_logger

DEFAULT_PORT = 13346
DEFAULT_WINE_PREFIX = "$HOME/.Wine"
DEFAULT_NETWORK_DEVICE = "127.0.0.1"
CATCH_ALL_EVENT = "raw"


@dataclass(frozen=True)
class WrapperConfig:
    remote_data_path: Path
    ip: str | None = None
    data_path: str | None = None
    region: str | None = None
    port: int = DEFAULT_PORT
    no_data: bool = False
    no_exe: bool = False
    has_wine: bool = False
    wine_prefix: str = DEFAULT_WINE_PREFIX
    exe_path: str | None = None
    definitions_dir: str | None = None
    network_device: str = DEFAULT_NETWORK_DEVICE
    reconnect_delay: float = 1.0
    command_timeout: float | None = None
    terminate_timeout: float = 5.0
    logger: LogCallback = field(default=noop_logger, compare=False, repr=False)

    @property
    def endpoint(self) -> str:
        return f"ws://{self.network_device}:{self.port}"


@dataclass(frozen=True)
class LaunchSpec:
    program: str
    args: tuple[str, ...]
    env: dict[str, str] | None = None

    @property
    def argv(self) -> tuple[str, ...]:
        return (self.program, *self.args)


class ChannelState(str, Enum):
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"
    FAILED = "failed"


@dataclass(frozen=True)
class PacketEnvelope:
    """One decoded inbound capture message. Read-only once constructed."""

    type: str | None = None
    sub_type: str | None = None
    super_type: str | None = None
    opcode: int | None = None
    region: str | None = None
    connection: str | None = None
    operation: str | None = None
    epoch: int | None = None
    packet_size: int | None = None
    segment_type: int | None = None
    data: bytes = b""

    @property
    def type_names(self) -> tuple[str | None, str | None, str | None]:
        return (self.type, self.sub_type, self.super_type)

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "subType": self.sub_type,
            "superType": self.super_type,
            "opcode": self.opcode,
            "region": self.region,
            "connection": self.connection,
            "operation": self.operation,
            "epoch": self.epoch,
            "packetSize": self.packet_size,
            "segmentType": self.segment_type,
            "data": self.data.hex(),
        }


@dataclass(frozen=True)
class FieldSpec:
    name: str
    kind: str
    offset: int
    length: int | None = None


@dataclass(frozen=True)
class PacketModel:
    name: str
    source_id: str
    fields: tuple[FieldSpec, ...]
    match_type: str | None = None
    match_opcode: int | None = None


@dataclass(frozen=True)
class DecodedPacket:
    name: str
    envelope: PacketEnvelope
    fields: dict[str, Any]
