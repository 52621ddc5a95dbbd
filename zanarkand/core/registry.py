"""Packet model registry: turns envelope payloads into named, decoded packets."""

from __future__ import annotations

import logging
import struct
from typing import Any, Protocol

from zanarkand.core.definitions import LoadedDefinitions, load_definitions
from zanarkand.core.errors import DecodeError
from zanarkand.core.model import DecodedPacket, FieldSpec, PacketEnvelope, PacketModel

LOGGER = logging.getLogger(__name__)

_STRUCT_FORMATS = {
    "u8": "<B",
    "u16": "<H",
    "u32": "<I",
    "u64": "<Q",
    "i8": "<b",
    "i16": "<h",
    "i32": "<i",
    "i64": "<q",
    "f32": "<f",
    "f64": "<d",
}


class PacketRegistry(Protocol):
    def parse(self, envelope: PacketEnvelope, *, no_data: bool = False) -> list[DecodedPacket]:
        """Return one decoded packet per model matching the envelope."""


def _matches(model: PacketModel, envelope: PacketEnvelope) -> bool:
    if model.match_opcode is not None and model.match_opcode != envelope.opcode:
        return False
    if model.match_type is not None and model.match_type not in envelope.type_names:
        return False
    return True


def _decode_field(spec: FieldSpec, data: bytes) -> Any:
    fmt = _STRUCT_FORMATS.get(spec.kind)
    if fmt is not None:
        try:
            return struct.unpack_from(fmt, data, spec.offset)[0]
        except struct.error as exc:
            raise DecodeError(
                f"Field '{spec.name}' ({spec.kind} at offset {spec.offset}) is out of range "
                f"for a {len(data)}-byte payload"
            ) from exc

    end = spec.offset + (spec.length or 0)
    if end > len(data):
        raise DecodeError(
            f"Field '{spec.name}' ({spec.kind}[{spec.length}] at offset {spec.offset}) is out of range "
            f"for a {len(data)}-byte payload"
        )
    chunk = data[spec.offset:end]
    if spec.kind == "string":
        return chunk.split(b"\0", 1)[0].decode("utf-8", errors="replace")
    return chunk


class DefinitionRegistry:
    def __init__(self, definitions: LoadedDefinitions) -> None:
        self.definitions = definitions
        self._models = tuple(definitions.packets.values())

    @classmethod
    def load(cls, definitions_dir: str | None = None) -> DefinitionRegistry:
        return cls(load_definitions(definitions_dir))

    @property
    def warnings(self) -> tuple[str, ...]:
        return self.definitions.warnings

    def models(self) -> list[PacketModel]:
        return sorted(self._models, key=lambda m: m.name)

    def parse(self, envelope: PacketEnvelope, *, no_data: bool = False) -> list[DecodedPacket]:
        """Decode every matching model.

        A model whose fields do not fit the payload is skipped. DecodeError is
        raised only when every matching model failed.
        """
        decoded: list[DecodedPacket] = []
        failures: list[DecodeError] = []
        for model in self._models:
            if not _matches(model, envelope):
                continue
            fields: dict[str, Any] = {}
            if not no_data:
                try:
                    fields = {spec.name: _decode_field(spec, envelope.data) for spec in model.fields}
                except DecodeError as exc:
                    failures.append(DecodeError(f"{model.name}: {exc}"))
                    continue
            decoded.append(DecodedPacket(name=model.name, envelope=envelope, fields=fields))

        if failures and not decoded:
            raise failures[0]
        for exc in failures:
            LOGGER.warning("Skipped packet model: %s", exc)
        return decoded
