"""Loading and validation of YAML packet definitions."""

from __future__ import annotations

import functools
import json
import logging
from dataclasses import dataclass
from importlib import resources
from importlib.resources.abc import Traversable
from pathlib import Path
from typing import Any

import yaml
from jsonschema import ValidationError, validators

from zanarkand.core.config import config_home
from zanarkand.core.errors import DefinitionLoadError, DefinitionValidationError
from zanarkand.core.model import FieldSpec, PacketModel

_SIZED_KINDS = frozenset({"bytes", "string"})
LOGGER = logging.getLogger(__name__)


class UniqueKeyLoader(yaml.SafeLoader):
    """YAML loader that rejects duplicate mapping keys."""


# Keys such as `on`/`off`/`yes` must stay strings.
UniqueKeyLoader.yaml_implicit_resolvers = {
    first_char: [(tag, regexp) for tag, regexp in mappings if tag != "tag:yaml.org,2002:bool"]
    for first_char, mappings in yaml.SafeLoader.yaml_implicit_resolvers.items()
}


def _construct_mapping(loader: UniqueKeyLoader, node: yaml.Node, deep: bool = False) -> dict[str, Any]:
    mapping: dict[str, Any] = {}
    for key_node, value_node in node.value:
        key = loader.construct_object(key_node, deep=deep)
        if key in mapping:
            raise DefinitionValidationError(f"Duplicate key '{key}' in YAML document")
        mapping[key] = loader.construct_object(value_node, deep=deep)
    return mapping


UniqueKeyLoader.add_constructor(
    yaml.resolver.BaseResolver.DEFAULT_MAPPING_TAG,
    _construct_mapping,
)


@dataclass(frozen=True)
class LoadedDefinitions:
    packets: dict[str, PacketModel]
    warnings: tuple[str, ...]


@functools.lru_cache(maxsize=1)
def _schema_validator() -> Any:
    schema_text = resources.files("zanarkand.schemas").joinpath("definitions.schema.json").read_text(
        encoding="utf-8"
    )
    schema = json.loads(schema_text)
    validator_cls = validators.validator_for(schema)
    validator_cls.check_schema(schema)
    return validator_cls(schema)


def _read_yaml(path: Path | Traversable) -> dict[str, Any]:
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise DefinitionLoadError(f"Could not read definition file {path}: {exc}") from exc

    try:
        loaded = yaml.load(content, Loader=UniqueKeyLoader)
    except yaml.YAMLError as exc:
        raise DefinitionValidationError(f"Invalid YAML in {path}: {exc}") from exc

    if not isinstance(loaded, dict):
        raise DefinitionValidationError(f"Definition file {path} must contain a mapping at root")
    return loaded


def _build_models(doc: dict[str, Any], source: Path | Traversable) -> list[PacketModel]:
    try:
        _schema_validator().validate(doc)
    except ValidationError as exc:
        path = ".".join(str(p) for p in exc.path)
        where = f" ({path})" if path else ""
        raise DefinitionValidationError(f"Schema validation failed for {source}{where}: {exc.message}") from exc

    models: list[PacketModel] = []
    for packet_name, packet_spec in doc["packets"].items():
        fields: list[FieldSpec] = []
        for field_name, field_spec in packet_spec["fields"].items():
            kind = field_spec["kind"]
            length = field_spec.get("length")
            if kind in _SIZED_KINDS and length is None:
                raise DefinitionValidationError(
                    f"{doc['id']}.{packet_name}.{field_name} of kind '{kind}' requires a length"
                )
            fields.append(FieldSpec(name=field_name, kind=kind, offset=field_spec["offset"], length=length))

        match = packet_spec["match"]
        models.append(
            PacketModel(
                name=packet_name,
                source_id=doc["id"],
                fields=tuple(fields),
                match_type=match.get("type"),
                match_opcode=match.get("opcode"),
            )
        )
    return models


def _iter_packaged_paths() -> list[Traversable]:
    root = resources.files("zanarkand.definitions")
    return sorted(
        (item for item in root.iterdir() if item.name.endswith((".yml", ".yaml"))),
        key=lambda p: p.name,
    )


def _iter_directory(directory: Path) -> list[Path]:
    if not directory.exists() or not directory.is_dir():
        return []
    return sorted(p for p in directory.iterdir() if p.suffix in {".yml", ".yaml"})


@functools.lru_cache(maxsize=None)
def load_definitions(definitions_dir: str | None = None) -> LoadedDefinitions:
    """Load packaged, user, and custom definitions once per process and directory."""
    packets: dict[str, PacketModel] = {}
    warnings: list[str] = []

    for path in _iter_packaged_paths():
        for model in _build_models(_read_yaml(path), path):
            packets[model.name] = model

    extra_dirs = [config_home() / "definitions"]
    if definitions_dir:
        custom = Path(definitions_dir).expanduser()
        if not custom.is_dir():
            raise DefinitionLoadError(f"Definitions directory {custom} does not exist")
        extra_dirs.append(custom)

    for directory in extra_dirs:
        for path in _iter_directory(directory):
            for model in _build_models(_read_yaml(path), path):
                previous = packets.get(model.name)
                if previous is not None:
                    warning = f"Packet '{model.name}' from {path} overrides definition from '{previous.source_id}'"
                    LOGGER.warning(warning)
                    warnings.append(warning)
                packets[model.name] = model

    return LoadedDefinitions(packets=packets, warnings=tuple(warnings))
