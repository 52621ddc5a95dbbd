"""Inbound frame decoding, type filtering, and event fan-out."""

from __future__ import annotations

import json
from collections.abc import Iterable, Mapping
from typing import Any

from zanarkand.core.errors import DecodeError
from zanarkand.core.events import EventBus
from zanarkand.core.model import CATCH_ALL_EVENT, PacketEnvelope
from zanarkand.core.registry import PacketRegistry
from zanarkand.core.reporting import Reporter

_ENVELOPE_KEYS = {
    "type": "type",
    "subType": "sub_type",
    "superType": "super_type",
    "opcode": "opcode",
    "region": "region",
    "connection": "connection",
    "operation": "operation",
    "epoch": "epoch",
    "packetSize": "packet_size",
    "segmentType": "segment_type",
}


def decode_envelope(content: Any) -> PacketEnvelope:
    if not isinstance(content, Mapping):
        raise DecodeError(f"Expected a JSON object, got {type(content).__name__}")

    data = content.get("data")
    if data is None:
        payload = b""
    elif isinstance(data, list):
        try:
            payload = bytes(data)
        except (TypeError, ValueError) as exc:
            raise DecodeError(f"'data' must contain byte values 0-255: {exc}") from exc
    else:
        raise DecodeError(f"'data' must be a list of byte values, got {type(data).__name__}")

    fields = {attr: content.get(key) for key, attr in _ENVELOPE_KEYS.items()}
    for key in ("type", "sub_type", "super_type"):
        if fields[key] is not None and not isinstance(fields[key], str):
            raise DecodeError(f"'{key}' must be a string, got {type(fields[key]).__name__}")
    return PacketEnvelope(data=payload, **fields)


def envelope_matches(envelope: PacketEnvelope, filters: frozenset[str]) -> bool:
    if not filters:
        return True
    return any(name in filters for name in envelope.type_names if name is not None)


class PacketDemultiplexer:
    def __init__(
        self,
        bus: EventBus,
        registry: PacketRegistry,
        reporter: Reporter,
        *,
        no_data: bool = False,
    ) -> None:
        self._bus = bus
        self._registry = registry
        self._reporter = reporter
        self._no_data = no_data
        self._filters: frozenset[str] = frozenset()

    @property
    def filters(self) -> frozenset[str]:
        return self._filters

    def set_filter(self, names: Iterable[str] | str | None) -> None:
        if names is None:
            return
        if isinstance(names, str):
            names = (names,)
        self._filters = frozenset(names)

    def handle_message(self, raw: str | bytes) -> PacketEnvelope | None:
        try:
            envelope = decode_envelope(json.loads(raw))
        except (ValueError, DecodeError) as exc:
            text = raw.decode("utf-8", errors="replace") if isinstance(raw, bytes) else raw
            self._reporter.error(f"Message threw an error: {exc}\nMessage content:\n{text}")
            return None

        filters = self._filters
        if not envelope_matches(envelope, filters):
            return None

        try:
            packets = self._registry.parse(envelope, no_data=self._no_data)
        except Exception as exc:
            self._reporter.error(f"Could not decode '{envelope.type}' packet (opcode {envelope.opcode}): {exc}")
            packets = []

        for packet in packets:
            self._bus.emit(packet.name, packet)
        self._bus.emit(CATCH_ALL_EVENT, envelope)
        return envelope
