"""Tests for template selection (modelsmith.scaffolder.selection)."""

from __future__ import annotations

import textwrap

import pytest

from modelsmith.parser import loads_schema
from modelsmith.scaffolder.selection import (
    AUTH_HANDLER,
    DATA_MODEL,
    DOCS,
    MIGRATION,
    REQUEST_HANDLER,
    select_model_templates,
    select_project_templates,
)


pytestmark = pytest.mark.unit


def _identifiers(specs) -> list[str]:
    return [spec.identifier for spec in specs]


class TestModelSelection:
    def test_plain_model(self, item_schema):
        specs = select_model_templates(item_schema.models["Item"], item_schema.config)
        assert _identifiers(specs) == [
            "express/model/mongodb",
            "express/controller",
            "express/route",
            "express/test",
            "express/model_doc",
        ]
        assert [s.kind for s in specs].count(DATA_MODEL) == 1
        assert [s.kind for s in specs].count(REQUEST_HANDLER) == 1
        assert specs[0].path == "src/models/item.model.ts"

    def test_auth_handler_needs_global_auth(self, auth_schema):
        specs = select_model_templates(auth_schema.models["User"], auth_schema.config)
        assert AUTH_HANDLER not in [s.kind for s in specs]

        jwt = loads_schema(textwrap.dedent("""\
            config: { auth: jwt }
            models:
              User:
                email: string
                password: string
                features: [auth]
        """))
        specs = select_model_templates(jwt.models["User"], jwt.config)
        assert "src/controllers/user.auth.controller.ts" in [s.path for s in specs]

    def test_feature_templates(self, rich_schema):
        author = _identifiers(select_model_templates(rich_schema.models["Author"], rich_schema.config))
        book = _identifiers(select_model_templates(rich_schema.models["Book"], rich_schema.config))
        assert "express/search_index" in author
        assert "express/audit" not in author
        assert "express/audit" in book

    def test_storage_selects_model_template_and_migration(self):
        schema = loads_schema("config: { storage: supabase }\nmodels:\n  LineItem:\n    label: string\n")
        specs = select_model_templates(schema.models["LineItem"], schema.config)
        assert specs[0].identifier == "express/model/supabase"
        migration = [s for s in specs if s.kind == MIGRATION]
        assert migration[0].path == "supabase/migrations/line_item.sql"

    def test_docs_and_tests_can_be_disabled(self):
        schema = loads_schema("config: { docs: false, tests: false }\nmodels:\n  Item:\n    name: string\n")
        specs = select_model_templates(schema.models["Item"], schema.config)
        assert _identifiers(specs) == ["express/model/mongodb", "express/controller", "express/route"]

    def test_selection_is_deterministic(self, rich_schema):
        model = rich_schema.models["Book"]
        assert select_model_templates(model, rich_schema.config) == select_model_templates(model, rich_schema.config)


class TestProjectSelection:
    def test_baseline(self, item_schema):
        paths = [s.path for s in select_project_templates(item_schema)]
        for expected in ("src/app.ts", "src/server.ts", "src/db/connection.ts", "package.json", "README.md"):
            assert expected in paths
        assert "src/middleware/auth.middleware.ts" not in paths
        assert "src/services/email.service.ts" not in paths
        assert "src/audit/auditLog.ts" not in paths

    def test_feature_gated_templates(self, rich_schema):
        specs = select_project_templates(rich_schema)
        identifiers = _identifiers(specs)
        assert "express/auth_middleware" in identifiers
        assert "express/email/resend" in identifiers
        assert "express/audit_log" in identifiers
        assert [s for s in specs if s.identifier == "express/api_doc"][0].kind == DOCS

    def test_db_template_follows_storage(self):
        schema = loads_schema("config: { storage: firebase }\nmodels:\n  Item:\n    name: string\n")
        assert "express/db/firebase" in _identifiers(select_project_templates(schema))
