"""Semantic validation of decoded schema documents.

Validation is aggregate-then-report: every rule runs over the whole document
and each violation becomes one ``Diagnostic``.  Only when no diagnostic was
produced is the frozen IR (``Schema``) built, so downstream stages can rely on
it being sound: no relation dangles and no name is duplicated where it must
be unique.
"""

from __future__ import annotations

import re
from collections import Counter

from modelsmith.errors import Diagnostic, SchemaError
from modelsmith.parser.extractor import (
    ConfigDocument,
    FieldDocument,
    ModelDocument,
    SchemaDocument,
)
from modelsmith.parser.models import (
    AuthMode,
    Cardinality,
    CorsPolicy,
    EmailService,
    FieldModel,
    FieldType,
    Hook,
    HookEvent,
    Method,
    Model,
    ModelFeatures,
    Ownership,
    Parameter,
    Relation,
    Schema,
    SchemaConfig,
    StorageBackend,
    TargetFamily,
)


# ---------------------------------------------------------------------------
# Vocabulary helpers
# ---------------------------------------------------------------------------

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

_CONFIG_AXES: dict[str, type] = {
    "target": TargetFamily,
    "auth": AuthMode,
    "storage": StorageBackend,
    "email": EmailService,
}


def _token(value: str) -> str:
    """Normalise a vocabulary value: ``PRE_SAVE`` -> ``pre-save``."""
    return value.strip().lower().replace("_", "-")


def _choices(enum_type: type) -> str:
    return ", ".join(member.value for member in enum_type)


def _in_vocabulary(value: str, enum_type: type) -> bool:
    return _token(value) in {member.value for member in enum_type}


def _normalised_name(name: str) -> str:
    """Case- and separator-insensitive key used for artifact path derivation."""
    return re.sub(r"[^a-z0-9]", "", name.lower())


# ---------------------------------------------------------------------------
# Rules
# ---------------------------------------------------------------------------

def _check_config(config: ConfigDocument) -> list[Diagnostic]:
    diagnostics: list[Diagnostic] = []
    for axis, enum_type in _CONFIG_AXES.items():
        value = getattr(config, axis)
        if not _in_vocabulary(value, enum_type):
            diagnostics.append(Diagnostic(
                code="invalid-config",
                field=axis,
                message=f"'{value}' is not a valid {axis} setting (expected one of: {_choices(enum_type)})",
            ))
    return diagnostics


def _check_model_names(models: list[ModelDocument]) -> list[Diagnostic]:
    diagnostics: list[Diagnostic] = []
    seen: dict[str, str] = {}
    reported: set[str] = set()
    for model in models:
        if not _IDENTIFIER.match(model.name):
            diagnostics.append(Diagnostic(
                code="invalid-name", model=model.name,
                message="model names must be identifiers (letters, digits, underscores)",
            ))
            continue
        key = _normalised_name(model.name)
        if key in seen and key not in reported:
            reported.add(key)
            first = seen[key]
            detail = "is declared more than once" if first == model.name else f"collides with '{first}'"
            diagnostics.append(Diagnostic(
                code="duplicate-model", model=model.name,
                message=f"model name {detail} (names are compared case-insensitively)",
            ))
        seen.setdefault(key, model.name)
    return diagnostics


def _duplicates(names: list[str]) -> list[str]:
    counts = Counter(names)
    ordered: list[str] = []
    for name in names:
        if counts[name] > 1 and name not in ordered:
            ordered.append(name)
    return ordered


def _check_field(
    model: ModelDocument, field: FieldDocument, model_names: set[str]
) -> list[Diagnostic]:
    diagnostics: list[Diagnostic] = []

    def report(code: str, message: str) -> None:
        diagnostics.append(Diagnostic(code=code, model=model.name, field=field.name, message=message))

    if not _IDENTIFIER.match(field.name):
        report("invalid-name", "field names must be identifiers (letters, digits, underscores)")

    if not _in_vocabulary(field.type, FieldType):
        report("unknown-field-type", f"'{field.type}' is not a field type (expected one of: {_choices(FieldType)})")
        return diagnostics

    field_type = FieldType(_token(field.type))
    if field_type is FieldType.ENUM and not field.values:
        report("empty-enum", "enum field declares no values")
    if field_type is FieldType.REFERENCE:
        if not field.target:
            report("unknown-reference-target", "reference field declares no target model")
        elif field.target not in model_names:
            report(
                "unknown-reference-target",
                f"{model.name} → {field.target}: reference targets a model that does not exist",
            )

    for backend in field.storage:
        if not _in_vocabulary(backend, StorageBackend):
            report(
                "unknown-storage-backend",
                f"storage annotations for unknown backend '{backend}' (expected one of: {_choices(StorageBackend)})",
            )
    return diagnostics


def _check_model(model: ModelDocument, model_names: set[str]) -> list[Diagnostic]:
    diagnostics: list[Diagnostic] = []

    if not model.fields:
        diagnostics.append(Diagnostic(code="empty-model", model=model.name, message="model declares no fields"))

    for name in _duplicates([f.name for f in model.fields]):
        diagnostics.append(Diagnostic(
            code="duplicate-field", model=model.name, field=name,
            message="field name is declared more than once",
        ))

    for field in model.fields:
        diagnostics.extend(_check_field(model, field, model_names))

    for name in _duplicates([m.name for m in model.methods]):
        diagnostics.append(Diagnostic(
            code="duplicate-method", model=model.name, field=name,
            message="method name is declared more than once",
        ))

    for hook in model.hooks:
        if not _in_vocabulary(hook.event, HookEvent):
            diagnostics.append(Diagnostic(
                code="unknown-hook-event", model=model.name, field=hook.event,
                message=f"'{hook.event}' is not a lifecycle event (expected one of: {_choices(HookEvent)})",
            ))

    for name in _duplicates([r.name for r in model.relations]):
        diagnostics.append(Diagnostic(
            code="duplicate-relation", model=model.name, field=name,
            message="relation name is declared more than once",
        ))

    for relation in model.relations:
        if not _in_vocabulary(relation.cardinality, Cardinality):
            diagnostics.append(Diagnostic(
                code="invalid-relation", model=model.name, field=relation.name,
                message=f"'{relation.cardinality}' is not a cardinality (expected one of: {_choices(Cardinality)})",
            ))
        if not _in_vocabulary(relation.ownership, Ownership):
            diagnostics.append(Diagnostic(
                code="invalid-relation", model=model.name, field=relation.name,
                message=f"'{relation.ownership}' is not an ownership direction (expected one of: {_choices(Ownership)})",
            ))
        if relation.target not in model_names:
            diagnostics.append(Diagnostic(
                code="unknown-relation-target", model=model.name, field=relation.name,
                message=f"{model.name} → {relation.target}: relation targets a model that does not exist",
            ))

    if model.features.auth and model.fields and not _has_credential(model):
        diagnostics.append(Diagnostic(
            code="missing-credential-field", model=model.name,
            message="auth-enabled model needs a 'password' field or a field marked 'credential'",
        ))

    return diagnostics


def _has_credential(model: ModelDocument) -> bool:
    return any(f.credential or f.name.lower() == "password" for f in model.fields)


# ---------------------------------------------------------------------------
# IR construction (only ever called on a clean document)
# ---------------------------------------------------------------------------

def _build_field(field: FieldDocument) -> FieldModel:
    return FieldModel(
        name=field.name,
        type=FieldType(_token(field.type)),
        required=field.required,
        unique=field.unique,
        default=field.default,
        values=tuple(field.values),
        target=field.target,
        credential=field.credential,
        description=field.description,
        storage={
            StorageBackend(_token(backend)): dict(options)
            for backend, options in field.storage.items()
        },
    )


def _build_model(model: ModelDocument) -> Model:
    return Model(
        name=model.name,
        description=model.description,
        fields=tuple(_build_field(f) for f in model.fields),
        methods=tuple(
            Method(
                name=m.name,
                params=tuple(Parameter(name=p.name, type=p.type) for p in m.params),
                returns=m.returns,
                description=m.description,
                body=m.body,
            )
            for m in model.methods
        ),
        hooks=tuple(
            Hook(event=HookEvent(_token(h.event)), description=h.description, body=h.body)
            for h in model.hooks
        ),
        relations=tuple(
            Relation(
                name=r.name,
                source=model.name,
                target=r.target,
                cardinality=Cardinality(_token(r.cardinality)),
                ownership=Ownership(_token(r.ownership)),
                description=r.description,
            )
            for r in model.relations
        ),
        features=ModelFeatures(**model.features.model_dump()),
    )


def _build_config(config: ConfigDocument) -> SchemaConfig:
    return SchemaConfig(
        name=config.name,
        description=config.description,
        target=TargetFamily(_token(config.target)),
        auth=AuthMode(_token(config.auth)),
        storage=StorageBackend(_token(config.storage)),
        email=EmailService(_token(config.email)),
        cors=CorsPolicy(
            enabled=config.cors.enabled,
            origins=tuple(config.cors.origins),
            credentials=config.cors.credentials,
        ),
        docs=config.docs,
        tests=config.tests,
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def collect_diagnostics(document: SchemaDocument) -> list[Diagnostic]:
    """Run every semantic rule and return all violations in a stable order."""
    diagnostics = _check_config(document.config)
    if not document.models:
        diagnostics.append(Diagnostic(code="no-models", message="schema declares no models"))
    diagnostics.extend(_check_model_names(document.models))

    model_names = {m.name for m in document.models}
    for model in document.models:
        diagnostics.extend(_check_model(model, model_names))
    return diagnostics


def validate_schema(document: SchemaDocument) -> Schema:
    """Validate *document* and build the IR.

    Raises:
        SchemaError: carrying the complete list of violations.
    """
    diagnostics = collect_diagnostics(document)
    if diagnostics:
        raise SchemaError(diagnostics)
    return Schema(
        models={m.name: _build_model(m) for m in document.models},
        config=_build_config(document.config),
    )
