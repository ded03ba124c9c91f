"""Render-context construction.

Builds the plain-dict contexts templates are rendered with.  Everything a
template needs is precomputed here (name forms, storage-specific column
types, literal defaults, hook event names) so templates stay declarative.
Contexts are derived only from the IR, never from the clock or filesystem,
so identical input always yields identical context.

Context shape::

    project     -- name / slug / description, npm dependencies, flags
    config      -- the schema config (JSON-mode dump)
    model       -- the enriched model (model-level templates only)
    models      -- every enriched model (project-level templates only)
    extensions  -- values contributed by before-* hooks
"""

from __future__ import annotations

import json
from typing import Any, Optional

from modelsmith.parser.models import (
    AuthMode,
    EmailService,
    FieldModel,
    FieldType,
    Hook,
    Model,
    Relation,
    Schema,
    StorageBackend,
)
from modelsmith.utils import camel_case, kebab_case, pascal_case, pluralize, snake_case


# ---------------------------------------------------------------------------
# Type maps
# ---------------------------------------------------------------------------

_TS_TYPES: dict[FieldType, str] = {
    FieldType.STRING: "string",
    FieldType.NUMBER: "number",
    FieldType.BOOLEAN: "boolean",
    FieldType.ENUM: "string",
    FieldType.DECIMAL: "number",
    FieldType.DATE: "Date",
    FieldType.REFERENCE: "string",
}

# Column / schema type per storage backend.
_DB_TYPES: dict[StorageBackend, dict[FieldType, str]] = {
    StorageBackend.MONGODB: {
        FieldType.STRING: "String",
        FieldType.NUMBER: "Number",
        FieldType.BOOLEAN: "Boolean",
        FieldType.ENUM: "String",
        FieldType.DECIMAL: "Schema.Types.Decimal128",
        FieldType.DATE: "Date",
        FieldType.REFERENCE: "Schema.Types.ObjectId",
    },
    StorageBackend.POSTGRES: {
        FieldType.STRING: "DataTypes.STRING",
        FieldType.NUMBER: "DataTypes.DOUBLE",
        FieldType.BOOLEAN: "DataTypes.BOOLEAN",
        FieldType.ENUM: "DataTypes.ENUM",
        FieldType.DECIMAL: "DataTypes.DECIMAL(12, 2)",
        FieldType.DATE: "DataTypes.DATE",
        FieldType.REFERENCE: "DataTypes.UUID",
    },
    StorageBackend.SUPABASE: {
        FieldType.STRING: "text",
        FieldType.NUMBER: "double precision",
        FieldType.BOOLEAN: "boolean",
        FieldType.ENUM: "text",
        FieldType.DECIMAL: "numeric(12, 2)",
        FieldType.DATE: "timestamptz",
        FieldType.REFERENCE: "uuid",
    },
    StorageBackend.FIREBASE: {
        FieldType.STRING: "string",
        FieldType.NUMBER: "number",
        FieldType.BOOLEAN: "boolean",
        FieldType.ENUM: "string",
        FieldType.DECIMAL: "number",
        FieldType.DATE: "object",
        FieldType.REFERENCE: "string",
    },
}

_MONGOOSE_ACTIONS = {"validate": "validate", "save": "save", "update": "findOneAndUpdate", "remove": "deleteOne"}
_SEQUELIZE_ACTIONS = {"validate": "Validate", "save": "Save", "update": "Update", "remove": "Destroy"}

_BASE_DEPENDENCIES: dict[str, str] = {
    "cors": "^2.8.5",
    "dotenv": "^16.4.5",
    "express": "^4.19.2",
}
_STORAGE_DEPENDENCIES: dict[StorageBackend, dict[str, str]] = {
    StorageBackend.MONGODB: {"mongoose": "^8.4.0"},
    StorageBackend.POSTGRES: {"pg": "^8.11.5", "sequelize": "^6.37.3"},
    StorageBackend.SUPABASE: {"@supabase/supabase-js": "^2.43.4"},
    StorageBackend.FIREBASE: {"firebase-admin": "^12.1.1"},
}
_AUTH_DEPENDENCIES: dict[AuthMode, dict[str, str]] = {
    AuthMode.NONE: {},
    AuthMode.JWT: {"jsonwebtoken": "^9.0.2"},
    AuthMode.SESSION: {"express-session": "^1.18.0"},
}
_EMAIL_DEPENDENCIES: dict[EmailService, dict[str, str]] = {
    EmailService.NONE: {},
    EmailService.RESEND: {"resend": "^3.2.0"},
    EmailService.SENDGRID: {"@sendgrid/mail": "^8.1.3"},
    EmailService.MAILGUN: {"mailgun.js": "^10.2.1", "form-data": "^4.0.0"},
}
_DEV_DEPENDENCIES: dict[str, str] = {
    "@types/cors": "^2.8.17",
    "@types/express": "^4.17.21",
    "@types/node": "^20.12.12",
    "ts-node-dev": "^2.0.0",
    "typescript": "^5.4.5",
}
_TEST_DEPENDENCIES: dict[str, str] = {
    "@types/jest": "^29.5.12",
    "@types/supertest": "^6.0.2",
    "jest": "^29.7.0",
    "supertest": "^7.0.0",
    "ts-jest": "^29.1.2",
}


# ---------------------------------------------------------------------------
# Model enrichment
# ---------------------------------------------------------------------------


def _literal(value: Any) -> Optional[str]:
    return None if value is None else json.dumps(value, ensure_ascii=False)


def _db_type(field: FieldModel, storage: StorageBackend) -> str:
    base = _DB_TYPES[storage][field.type]
    if storage is StorageBackend.POSTGRES and field.type is FieldType.ENUM:
        return f"{base}({', '.join(_literal(v) for v in field.values)})"
    return base


def _ts_type(field: FieldModel) -> str:
    if field.type is FieldType.ENUM and field.values:
        return " | ".join(_literal(v) for v in field.values)
    return _TS_TYPES[field.type]


def field_context(field: FieldModel, storage: StorageBackend) -> dict[str, Any]:
    """Template-facing view of a single field."""
    return {
        "name": field.name,
        "camel": camel_case(field.name),
        "snake": snake_case(field.name),
        "type": field.type.value,
        "ts_type": _ts_type(field),
        "db_type": _db_type(field, storage),
        "required": field.required,
        "unique": field.unique,
        "credential": field.credential,
        "description": field.description,
        "values": list(field.values),
        "target": field.target,
        "target_pascal": pascal_case(field.target) if field.target else None,
        "target_table": pluralize(snake_case(field.target)) if field.target else None,
        "has_default": field.default is not None,
        "default": field.default,
        "default_literal": _literal(field.default),
        "storage_options": [
            {"name": name, "value": _literal(value)}
            for name, value in field.storage_options(storage).items()
        ],
    }


def _backend_event(hook: Hook, storage: StorageBackend) -> str:
    timing, action = hook.event.timing, hook.event.action
    if storage is StorageBackend.MONGODB:
        return _MONGOOSE_ACTIONS[action]
    if storage is StorageBackend.POSTGRES:
        return ("before" if timing == "pre" else "after") + _SEQUELIZE_ACTIONS[action]
    return camel_case(f"{timing}_{action}")


def hook_context(hook: Hook, storage: StorageBackend) -> dict[str, Any]:
    return {
        "event": hook.event.value,
        "timing": hook.event.timing,
        "action": hook.event.action,
        "backend_event": _backend_event(hook, storage),
        "description": hook.description,
        "body": hook.body,
    }


def hook_groups(hooks: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Hook contexts grouped by backend event, in first-declaration order."""
    groups: dict[str, list[dict[str, Any]]] = {}
    for hook in hooks:
        groups.setdefault(hook["backend_event"], []).append(hook)
    return [{"backend_event": event, "hooks": members} for event, members in groups.items()]


def relation_context(relation: Relation) -> dict[str, Any]:
    many = relation.cardinality.value == "many"
    return {
        "name": relation.name,
        "source": relation.source,
        "target": relation.target,
        "target_pascal": pascal_case(relation.target),
        "target_camel": camel_case(relation.target),
        "target_table": pluralize(snake_case(relation.target)),
        "cardinality": relation.cardinality.value,
        "ownership": relation.ownership.value,
        "many": many,
        "owning": relation.ownership.value == "owning",
        "foreign_key": f"{camel_case(relation.name)}Id{'s' if many else ''}",
        "description": relation.description,
    }


def model_context(model: Model, storage: StorageBackend) -> dict[str, Any]:
    """Template-facing view of a model, enriched with derived names."""
    credential = model.credential_field
    hooks = [hook_context(h, storage) for h in model.hooks]
    return {
        "name": model.name,
        "description": model.description,
        "pascal": pascal_case(model.name),
        "camel": camel_case(model.name),
        "snake": snake_case(model.name),
        "kebab": kebab_case(model.name),
        "plural": pluralize(camel_case(model.name)),
        "table": pluralize(snake_case(model.name)),
        "route_path": "/" + pluralize(kebab_case(model.name)),
        "fields": [field_context(f, storage) for f in model.fields],
        "required_fields": [f.name for f in model.fields if f.required],
        "unique_fields": [f.name for f in model.fields if f.unique],
        "searchable_fields": [
            f.name for f in model.fields
            if f.type in (FieldType.STRING, FieldType.ENUM) and not f.credential
            and f.name.lower() != "password"
        ],
        "methods": [
            {
                "name": m.name,
                "params": [{"name": p.name, "type": p.type} for p in m.params],
                "signature": ", ".join(f"{p.name}: {p.type}" for p in m.params),
                "returns": m.returns,
                "description": m.description,
                "body": m.body,
            }
            for m in model.methods
        ],
        "hooks": hooks,
        "hook_groups": hook_groups(hooks),
        "relations": [relation_context(r) for r in model.relations],
        "features": model.features.model_dump(),
        "credential_field": credential.name if credential else None,
        "has_credential_hook": model.features.auth and credential is not None,
    }


# ---------------------------------------------------------------------------
# Project-level data
# ---------------------------------------------------------------------------


def npm_dependencies(schema: Schema) -> tuple[dict[str, str], dict[str, str]]:
    """``(dependencies, devDependencies)`` for the generated ``package.json``."""
    config = schema.config
    deps = dict(_BASE_DEPENDENCIES)
    deps.update(_STORAGE_DEPENDENCIES[config.storage])
    deps.update(_AUTH_DEPENDENCIES[config.auth])
    deps.update(_EMAIL_DEPENDENCIES[config.email])
    if any(m.features.auth for m in schema.models.values()):
        deps["bcryptjs"] = "^2.4.3"
    dev = dict(_DEV_DEPENDENCIES)
    if config.tests:
        dev.update(_TEST_DEPENDENCIES)
    return dict(sorted(deps.items())), dict(sorted(dev.items()))


def project_context(schema: Schema) -> dict[str, Any]:
    config = schema.config
    deps, dev_deps = npm_dependencies(schema)
    return {
        "name": config.name,
        "slug": kebab_case(config.name),
        "description": config.description,
        "auth_enabled": config.auth is not AuthMode.NONE,
        "email_enabled": config.email is not EmailService.NONE,
        "auth_models": [m.name for m in schema.models.values() if m.features.auth],
        "audit_models": [m.name for m in schema.models.values() if m.features.audit],
        "search_models": [m.name for m in schema.models.values() if m.features.search],
        "dependencies": [{"name": k, "version": v} for k, v in deps.items()],
        "dev_dependencies": [{"name": k, "version": v} for k, v in dev_deps.items()],
    }


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def build_model_context(
    schema: Schema, model: Model, extensions: Optional[dict[str, Any]] = None
) -> dict[str, Any]:
    """Context for a model-level template."""
    return {
        "project": project_context(schema),
        "config": schema.config.model_dump(mode="json"),
        "model": model_context(model, schema.config.storage),
        "extensions": dict(extensions or {}),
    }


def build_project_context(
    schema: Schema, extensions: Optional[dict[str, Any]] = None
) -> dict[str, Any]:
    """Context for a project-level template."""
    storage = schema.config.storage
    return {
        "project": project_context(schema),
        "config": schema.config.model_dump(mode="json"),
        "models": [model_context(m, storage) for m in schema.models.values()],
        "extensions": dict(extensions or {}),
    }
