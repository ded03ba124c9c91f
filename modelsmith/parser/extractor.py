"""Structural decoding of schema documents.

Turns raw schema text (YAML, or JSON which is a YAML subset) into a
``SchemaDocument``: the shape of the input with every shorthand expanded but
with no semantic judgement applied.  Closed vocabularies (field types, hook
events, auth modes, ...) are kept as plain strings here so that the validator
can report every bad value at once.

Any failure in this stage is reported as a single structural ``SchemaError``;
semantic validation never runs on a document that could not be decoded.
"""

from __future__ import annotations

import asyncio
from collections.abc import Hashable
from pathlib import Path
from typing import Any, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from modelsmith.errors import Diagnostic, SchemaError

Scalar = Union[str, int, float, bool]


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

# Keys that introduce a section (rather than a field) in the flat model form.
_SECTION_KEYS = ("methods", "hooks", "relations", "features")
_SUFFIXES = (".yaml", ".yml", ".json", "")


# ---------------------------------------------------------------------------
# Duplicate-preserving YAML loader
# ---------------------------------------------------------------------------

class DocumentMapping(dict):
    """A dict that remembers every ``(key, value)`` pair in document order.

    Plain YAML/JSON loading keeps only the last value of a repeated key, which
    would hide duplicate field or model names from validation.  ``pairs``
    keeps all of them.
    """

    def __init__(self) -> None:
        super().__init__()
        self.pairs: list[tuple[Any, Any]] = []

    def add(self, key: Any, value: Any) -> None:
        self.pairs.append((key, value))
        self[key] = value


class _SchemaLoader(yaml.SafeLoader):
    """SafeLoader whose mappings are ``DocumentMapping`` instances."""


def _construct_mapping(loader: _SchemaLoader, node: yaml.MappingNode) -> DocumentMapping:
    loader.flatten_mapping(node)
    mapping = DocumentMapping()
    for key_node, value_node in node.value:
        key = loader.construct_object(key_node, deep=True)
        if not isinstance(key, Hashable):
            raise yaml.constructor.ConstructorError(
                "while constructing a mapping", node.start_mark,
                "found unhashable key", key_node.start_mark,
            )
        mapping.add(key, loader.construct_object(value_node, deep=True))
    return mapping


_SchemaLoader.add_constructor(
    yaml.resolver.BaseResolver.DEFAULT_MAPPING_TAG, _construct_mapping
)


def parse_document(text: str, *, source: str = "schema") -> Any:
    """Decode YAML/JSON *text*, preserving duplicate keys.

    Raises:
        SchemaError: (structural) when the text is not a valid document.
    """
    try:
        return yaml.load(text, Loader=_SchemaLoader)  # noqa: S506 - SafeLoader subclass
    except yaml.YAMLError as exc:
        raise SchemaError.malformed(f"{source} is not a valid YAML/JSON document: {exc}") from exc


def _pairs(mapping: dict[Any, Any]) -> list[tuple[Any, Any]]:
    if isinstance(mapping, DocumentMapping):
        return list(mapping.pairs)
    return list(mapping.items())


# ---------------------------------------------------------------------------
# Document models (structure only, vocabularies unchecked)
# ---------------------------------------------------------------------------

class _Document(BaseModel):
    model_config = ConfigDict(extra="forbid")


class FieldDocument(_Document):
    name: str
    type: str = "string"
    required: bool = False
    unique: bool = False
    default: Optional[Scalar] = None
    values: list[str] = Field(default_factory=list)
    target: Optional[str] = None
    credential: bool = False
    description: str = ""
    storage: dict[str, dict[str, Scalar]] = Field(default_factory=dict)


class ParameterDocument(_Document):
    name: str
    type: str = "any"


class MethodDocument(_Document):
    name: str
    params: list[ParameterDocument] = Field(default_factory=list)
    returns: str = "void"
    description: str = ""
    body: str = ""


class HookDocument(_Document):
    event: str
    description: str = ""
    body: str = ""


class RelationDocument(_Document):
    name: str
    target: str
    cardinality: str = "one"
    ownership: str = "owning"
    description: str = ""


class FeaturesDocument(_Document):
    auth: bool = False
    audit: bool = False
    search: bool = False
    soft_delete: bool = False
    timestamps: bool = True


class ModelDocument(_Document):
    name: str
    description: str = ""
    fields: list[FieldDocument] = Field(default_factory=list)
    methods: list[MethodDocument] = Field(default_factory=list)
    hooks: list[HookDocument] = Field(default_factory=list)
    relations: list[RelationDocument] = Field(default_factory=list)
    features: FeaturesDocument = Field(default_factory=FeaturesDocument)


class CorsDocument(_Document):
    enabled: bool = True
    origins: list[str] = Field(default_factory=lambda: ["*"])
    credentials: bool = False


class ConfigDocument(_Document):
    name: str = "generated-app"
    description: str = ""
    target: str = "express"
    auth: str = "none"
    storage: str = "mongodb"
    email: str = "none"
    cors: CorsDocument = Field(default_factory=CorsDocument)
    docs: bool = True
    tests: bool = True


class SchemaDocument(_Document):
    """A decoded schema document, ready for semantic validation."""
    models: list[ModelDocument] = Field(default_factory=list)
    config: ConfigDocument = Field(default_factory=ConfigDocument)


# ---------------------------------------------------------------------------
# Shorthand expansion
# ---------------------------------------------------------------------------

def _require_mapping(value: Any, where: str) -> dict[Any, Any]:
    if not isinstance(value, dict):
        raise SchemaError.malformed(f"{where} must be a mapping, got {type(value).__name__}")
    return value


def _named_entries(raw: Any, where: str, expand) -> list[Any]:
    """Expand a ``name -> descriptor`` mapping (or a list of named mappings)."""
    if raw is None:
        return []
    if isinstance(raw, list):
        entries = []
        for index, item in enumerate(raw):
            if not isinstance(item, dict):
                raise SchemaError.malformed(f"{where}[{index}] must be a mapping")
            entries.append(dict(item))
        return entries
    if isinstance(raw, dict):
        return [expand(name, descriptor) for name, descriptor in _pairs(raw)]
    raise SchemaError.malformed(f"{where} must be a mapping or a list")


def _expand_field(name: Any, descriptor: Any) -> Any:
    if descriptor is None:
        return {"name": name}
    if isinstance(descriptor, str):
        return {"name": name, "type": descriptor}
    if isinstance(descriptor, dict):
        return {"name": name, **descriptor}
    return {"name": name, "type": descriptor}


def _expand_method(name: Any, descriptor: Any) -> Any:
    if isinstance(descriptor, dict):
        return {"name": name, **descriptor}
    return {"name": name, "body": descriptor if descriptor is not None else ""}


def _expand_param(name: Any, type_name: Any) -> Any:
    if isinstance(type_name, dict):
        return {"name": name, **type_name}
    return {"name": name, "type": type_name if type_name is not None else "any"}


def _expand_hook(event: Any, descriptor: Any) -> Any:
    if isinstance(descriptor, dict):
        return {"event": event, **descriptor}
    return {"event": event, "body": descriptor if descriptor is not None else ""}


def _expand_relation(name: Any, descriptor: Any) -> Any:
    if isinstance(descriptor, str):
        return {"name": name, "target": descriptor}
    if isinstance(descriptor, dict):
        return {"name": name, **descriptor}
    return {"name": name, "target": descriptor}


def _expand_features(raw: Any, where: str) -> Any:
    if raw is None:
        return {}
    if isinstance(raw, list):
        return {str(name): True for name in raw}
    return raw if isinstance(raw, dict) else _require_mapping(raw, where)


def _expand_model(name: Any, descriptor: Any) -> dict[str, Any]:
    where = f"model '{name}'"
    body = _require_mapping(descriptor if descriptor is not None else {}, where)

    if "fields" in body:
        sections = dict(body)
        raw_fields = sections.pop("fields")
    else:
        # Flat form: every non-section key is a field.
        sections = {k: v for k, v in _pairs(body) if k in _SECTION_KEYS}
        raw_fields = DocumentMapping()
        for key, value in _pairs(body):
            if key not in _SECTION_KEYS:
                raw_fields.add(key, value)

    model: dict[str, Any] = {"name": name, **sections}
    model["fields"] = _named_entries(raw_fields, f"{where} fields", _expand_field)
    model["methods"] = _named_entries(sections.get("methods"), f"{where} methods", _expand_method)
    for method in model["methods"]:
        method["params"] = _named_entries(
            method.get("params"), f"{where} method '{method.get('name')}' params", _expand_param
        )
    model["hooks"] = _named_entries(sections.get("hooks"), f"{where} hooks", _expand_hook)
    model["relations"] = _named_entries(
        sections.get("relations"), f"{where} relations", _expand_relation
    )
    model["features"] = _expand_features(sections.get("features"), f"{where} features")
    return model


def _expand_config(raw: Any) -> dict[str, Any]:
    config = dict(_require_mapping(raw if raw is not None else {}, "config"))
    cors = config.get("cors")
    if isinstance(cors, bool):
        config["cors"] = {"enabled": cors}
    elif isinstance(cors, list):
        config["cors"] = {"enabled": True, "origins": cors}
    return config


# ---------------------------------------------------------------------------
# Structural error reporting
# ---------------------------------------------------------------------------

def _describe_location(loc: tuple[Any, ...], data: Any) -> str:
    """Render a pydantic error location using entry names instead of indexes."""
    parts: list[str] = []
    node = data
    for part in loc:
        if isinstance(part, int) and isinstance(node, list) and 0 <= part < len(node):
            node = node[part]
            label = node.get("name") or node.get("event") if isinstance(node, dict) else None
            parts.append(str(label) if label else f"[{part}]")
        else:
            node = node.get(part) if isinstance(node, dict) else None
            parts.append(str(part))
    return ".".join(parts)


def _structural_error(exc: ValidationError, data: dict[str, Any]) -> SchemaError:
    diagnostics = [
        Diagnostic(
            code="structural",
            message=f"{_describe_location(tuple(err['loc']), data)}: {err['msg']}",
        )
        for err in exc.errors()
    ]
    return SchemaError(diagnostics, structural=True)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def parse_schema(text: str, config_text: Optional[str] = None) -> SchemaDocument:
    """Decode schema *text* (and an optional separate config document).

    The config document may either be a bare mapping of config keys or carry
    them under a top-level ``config`` key; its keys override the schema's own
    ``config`` section.

    Raises:
        SchemaError: (structural) for any malformed input.
    """
    raw = parse_document(text, source="schema")
    if not isinstance(raw, dict):
        raise SchemaError.malformed("schema must be a mapping with a 'models' section")
    if "models" not in raw:
        raise SchemaError.malformed("schema has no 'models' section")

    config = _expand_config(raw.get("config"))
    if config_text is not None:
        overlay = parse_document(config_text, source="config")
        overlay = _require_mapping(overlay if overlay is not None else {}, "config document")
        if "config" in overlay and len(overlay) == 1:
            overlay = overlay["config"]
        config.update(_expand_config(overlay))

    data: dict[str, Any] = {
        key: value for key, value in raw.items() if key not in ("models", "config")
    }
    models_raw = raw["models"]
    if isinstance(models_raw, list):
        data["models"] = [
            _expand_model(item.get("name"), {k: v for k, v in item.items() if k != "name"})
            if isinstance(item, dict) else _require_mapping(item, "models entry")
            for item in models_raw
        ]
    else:
        models = _require_mapping(models_raw if models_raw is not None else {}, "models")
        data["models"] = [_expand_model(name, body) for name, body in _pairs(models)]
    data["config"] = config

    try:
        return SchemaDocument.model_validate(data)
    except ValidationError as exc:
        raise _structural_error(exc, data) from exc


async def _read_file(path: Union[str, Path], what: str) -> str:
    """Read a document asynchronously using asyncio.to_thread."""
    file_path = Path(path)
    if not file_path.is_file():
        raise SchemaError.malformed(f"{what} file not found: {path}")
    if file_path.suffix.lower() not in _SUFFIXES:
        raise SchemaError.malformed(f"expected a YAML or JSON {what} file, got: {file_path.suffix}")
    try:
        return await asyncio.to_thread(file_path.read_text, "utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise SchemaError.malformed(f"cannot read {what} file {path}: {exc}") from exc


async def read_schema(
    schema_path: Union[str, Path],
    config_path: Union[str, Path, None] = None,
) -> SchemaDocument:
    """Read and structurally decode a schema file (plus optional config file)."""
    text = await _read_file(schema_path, "schema")
    config_text = await _read_file(config_path, "config") if config_path else None
    return parse_schema(text, config_text)
