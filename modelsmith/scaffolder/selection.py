"""Template selection.

Decides which templates render for each model and for the project as a
whole, and where each artifact lands in the output tree.  Selection is a
pure function of the IR: the same schema always selects the same templates,
in the same order.
"""

from __future__ import annotations

from dataclasses import dataclass

from modelsmith.parser.models import (
    AuthMode,
    EmailService,
    Model,
    Schema,
    SchemaConfig,
    StorageBackend,
)
from modelsmith.utils import camel_case, kebab_case, snake_case


@dataclass(frozen=True)
class TemplateSpec:
    """One template to render: identifier, output path and artifact kind."""

    identifier: str
    path: str
    kind: str


# Artifact kinds
DATA_MODEL = "data-model"
REQUEST_HANDLER = "request-handler"
ROUTING = "routing"
AUTH_HANDLER = "auth-handler"
SEARCH_INDEX = "search-index"
AUDIT_LOG = "audit-log"
MIGRATION = "migration"
TEST = "test"
DOCS = "docs"
PROJECT = "project"


def select_model_templates(model: Model, config: SchemaConfig) -> list[TemplateSpec]:
    """Templates rendered once per model."""
    family = config.target.value
    name = camel_case(model.name)
    specs = [
        TemplateSpec(f"{family}/model/{config.storage.value}", f"src/models/{name}.model.ts", DATA_MODEL),
        TemplateSpec(f"{family}/controller", f"src/controllers/{name}.controller.ts", REQUEST_HANDLER),
        TemplateSpec(f"{family}/route", f"src/routes/{name}.routes.ts", ROUTING),
    ]
    if config.storage is StorageBackend.SUPABASE:
        specs.append(TemplateSpec(
            f"{family}/migration/supabase", f"supabase/migrations/{snake_case(model.name)}.sql", MIGRATION,
        ))
    if model.features.auth and config.auth is not AuthMode.NONE:
        specs.append(TemplateSpec(f"{family}/auth_controller", f"src/controllers/{name}.auth.controller.ts", AUTH_HANDLER))
    if model.features.search:
        specs.append(TemplateSpec(f"{family}/search_index", f"src/search/{name}.search.ts", SEARCH_INDEX))
    if model.features.audit:
        specs.append(TemplateSpec(f"{family}/audit", f"src/audit/{name}.audit.ts", AUDIT_LOG))
    if config.tests:
        specs.append(TemplateSpec(f"{family}/test", f"tests/{name}.test.ts", TEST))
    if config.docs:
        specs.append(TemplateSpec(f"{family}/model_doc", f"docs/models/{kebab_case(model.name)}.md", DOCS))
    return specs


def select_project_templates(schema: Schema) -> list[TemplateSpec]:
    """Templates rendered once per project, after every model."""
    config = schema.config
    family = config.target.value
    specs = [
        TemplateSpec(f"{family}/app", "src/app.ts", PROJECT),
        TemplateSpec(f"{family}/server", "src/server.ts", PROJECT),
        TemplateSpec(f"{family}/config", "src/config/config.ts", PROJECT),
        TemplateSpec(f"{family}/db/{config.storage.value}", "src/db/connection.ts", PROJECT),
        TemplateSpec(f"{family}/error_handler", "src/middleware/errorHandler.ts", PROJECT),
        TemplateSpec(f"{family}/types", "src/types/express.d.ts", PROJECT),
        TemplateSpec(f"{family}/package_json", "package.json", PROJECT),
        TemplateSpec(f"{family}/tsconfig", "tsconfig.json", PROJECT),
        TemplateSpec(f"{family}/env_example", ".env.example", PROJECT),
        TemplateSpec(f"{family}/readme", "README.md", PROJECT),
    ]
    if config.auth is not AuthMode.NONE:
        specs.append(TemplateSpec(f"{family}/auth_middleware", "src/middleware/auth.middleware.ts", PROJECT))
    if config.email is not EmailService.NONE:
        specs.append(TemplateSpec(f"{family}/email/{config.email.value}", "src/services/email.service.ts", PROJECT))
    if any(m.features.audit for m in schema.models.values()):
        specs.append(TemplateSpec(f"{family}/audit_log", "src/audit/auditLog.ts", PROJECT))
    if config.tests:
        specs.append(TemplateSpec(f"{family}/jest_config", "jest.config.js", PROJECT))
    if config.docs:
        specs.append(TemplateSpec(f"{family}/api_doc", "docs/api.md", DOCS))
    return specs
