"""modelsmith schema parser.

Decodes YAML/JSON schema documents, validates them semantically and builds
the frozen IR consumed by the scaffolder.

Usage::

    from modelsmith.parser import load_schema

    schema = await load_schema("path/to/schema.yaml")
    print(schema.model_names)
    print(schema.config.storage)
"""

from __future__ import annotations

from pathlib import Path
from typing import Union

from modelsmith.parser.extractor import parse_schema, read_schema
from modelsmith.parser.models import (
    AuthMode,
    FieldModel,
    FieldType,
    HookEvent,
    Model,
    Relation,
    Schema,
    SchemaConfig,
    StorageBackend,
)
from modelsmith.parser.validator import validate_schema


async def load_schema(
    schema_path: Union[str, Path],
    config_path: Union[str, Path, None] = None,
) -> Schema:
    """Read, decode and validate a schema file into the IR.

    Raises:
        SchemaError: structural or semantic problems.
    """
    document = await read_schema(schema_path, config_path)
    return validate_schema(document)


def loads_schema(text: str, config_text: str | None = None) -> Schema:
    """Synchronous counterpart of :func:`load_schema` for in-memory text."""
    return validate_schema(parse_schema(text, config_text))


__all__ = [
    "load_schema",
    "loads_schema",
    "parse_schema",
    "validate_schema",
    "AuthMode",
    "FieldModel",
    "FieldType",
    "HookEvent",
    "Model",
    "Relation",
    "Schema",
    "SchemaConfig",
    "StorageBackend",
]
