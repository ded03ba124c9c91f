"""Tests for template resolution and rendering (modelsmith.scaffolder.templates).

Covers:
- Override directory takes precedence over built-ins (top level and includes)
- Unresolvable identifiers name the identifier and the searched directories
- Resolution is cached for the resolver's lifetime, and concurrent misses load once
- Strict rendering: undefined context paths fail with the full dotted path
- Read-only context views
- Custom filters (case forms, plural, indent_body, literal)
"""

from __future__ import annotations

import threading
import time
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from unittest.mock import patch

import pytest

from modelsmith.errors import TemplateError
from modelsmith.scaffolder.results import ArtifactOrigin
from modelsmith.scaffolder.templates import (
    BUILTIN_TEMPLATE_DIR,
    ContextView,
    TemplateRenderer,
    TemplateResolver,
    render_source,
)


# ---------------------------------------------------------------------------
# Markers
# ---------------------------------------------------------------------------

pytestmark = pytest.mark.unit


# ---------------------------------------------------------------------------
# TemplateResolver
# ---------------------------------------------------------------------------


class TestTemplateResolver:
    def test_builtin_resolution(self):
        resolved = TemplateResolver().resolve("express/controller")
        assert resolved.origin is ArtifactOrigin.BUILTIN
        assert "Repository" in resolved.source
        assert resolved.filename == str(BUILTIN_TEMPLATE_DIR / "express" / "controller.j2")

    def test_override_takes_precedence(self, override_dir: Path):
        (override_dir / "express" / "controller.j2").write_text("// custom\n", encoding="utf-8")
        resolver = TemplateResolver(override_dir)
        resolved = resolver.resolve("express/controller")
        assert resolved.origin is ArtifactOrigin.OVERRIDE
        assert resolved.source == "// custom\n"
        assert resolver.resolve("express/route").origin is ArtifactOrigin.BUILTIN

    def test_search_order(self, override_dir: Path):
        resolver = TemplateResolver(override_dir)
        assert resolver.search_dirs == [str(override_dir), str(BUILTIN_TEMPLATE_DIR)]

    def test_unresolvable_identifier(self, override_dir: Path):
        resolver = TemplateResolver(override_dir)
        with pytest.raises(TemplateError) as exc_info:
            resolver.resolve("express/nothing")
        error = exc_info.value
        assert error.identifier == "express/nothing"
        assert error.searched == [str(override_dir), str(BUILTIN_TEMPLATE_DIR)]
        assert str(override_dir) in str(error)

    @pytest.mark.parametrize("identifier", ["../secrets", "/etc/passwd", "", "a\\b"])
    def test_invalid_identifiers(self, identifier):
        with pytest.raises(TemplateError):
            TemplateResolver().resolve(identifier)

    def test_resolution_is_cached(self, override_dir: Path):
        template = override_dir / "express" / "controller.j2"
        template.write_text("first\n", encoding="utf-8")
        resolver = TemplateResolver(override_dir)
        assert resolver.resolve("express/controller").source == "first\n"

        template.write_text("second\n", encoding="utf-8")
        assert resolver.resolve("express/controller").source == "first\n"
        assert resolver.resolve("express/controller") is resolver.resolve("express/controller")

    def test_concurrent_misses_load_once(self):
        resolver = TemplateResolver()
        real_load = resolver._load
        calls: list[str] = []
        barrier = threading.Barrier(16)

        def slow_load(identifier):
            calls.append(identifier)
            time.sleep(0.05)
            return real_load(identifier)

        def resolve(_):
            barrier.wait()
            return resolver.resolve("express/controller")

        with patch.object(resolver, "_load", side_effect=slow_load):
            with ThreadPoolExecutor(max_workers=16) as pool:
                results = list(pool.map(resolve, range(16)))

        assert calls == ["express/controller"]
        assert all(result is results[0] for result in results)

    def test_list_templates_merges_directories(self, override_dir: Path):
        (override_dir / "express" / "extra.j2").write_text("x", encoding="utf-8")
        listed = TemplateResolver(override_dir).list_templates("express")
        assert "express/extra" in listed
        assert "express/model/postgres" in listed
        assert listed == sorted(listed)


# ---------------------------------------------------------------------------
# TemplateRenderer
# ---------------------------------------------------------------------------


class TestTemplateRenderer:
    def test_render_string(self):
        out = TemplateRenderer().render_string("Hello {{ model.name }}", {"model": {"name": "Item"}})
        assert out == "Hello Item"

    def test_undefined_path_names_full_path(self):
        renderer = TemplateRenderer()
        with pytest.raises(TemplateError) as exc_info:
            renderer.render_string(
                "{{ model.fields[0].colour }}",
                {"model": {"fields": [{"name": "title"}]}},
                identifier="express/test",
            )
        error = exc_info.value
        assert error.path == "model.fields[0].colour"
        assert error.identifier == "express/test"
        assert "model.fields[0].colour" in str(error)

    def test_undefined_top_level_variable(self):
        with pytest.raises(TemplateError) as exc_info:
            TemplateRenderer().render_string("{{ missing }}", {})
        assert exc_info.value.path == "missing"

    def test_undefined_is_never_empty_in_conditions(self):
        with pytest.raises(TemplateError):
            TemplateRenderer().render_string("{% if model.nope %}x{% endif %}", {"model": {}})

    def test_defined_test_is_allowed(self):
        out = TemplateRenderer().render_string(
            "{{ 'yes' if model.nope is defined else 'no' }}", {"model": {}}
        )
        assert out == "no"

    def test_context_is_read_only(self):
        with pytest.raises(TemplateError):
            TemplateRenderer().render_string("{% set _ = model.update({'a': 1}) %}", {"model": {"name": "x"}})

    def test_keys_shadowing_dict_methods(self):
        out = TemplateRenderer().render_string(
            "{{ field.values | join(',') }}|{{ field['items'] }}",
            {"field": {"values": ["a", "b"], "items": 3}},
        )
        assert out == "a,b|3"

    def test_syntax_error(self):
        with pytest.raises(TemplateError) as exc_info:
            TemplateRenderer().render_string("{% for %}", {})
        assert "syntax error" in str(exc_info.value)

    def test_python_error_in_template(self):
        with pytest.raises(TemplateError) as exc_info:
            TemplateRenderer().render_string(
                "{{ model.fields | length / 0 }}", {"model": {"fields": []}}, identifier="express/controller"
            )
        assert exc_info.value.identifier == "express/controller"
        assert "ZeroDivisionError" in str(exc_info.value)
        assert isinstance(exc_info.value.__cause__, ZeroDivisionError)

    def test_include_uses_override(self, override_dir: Path):
        (override_dir / "express" / "page.j2").write_text(
            '[{% include "express/part" %}]', encoding="utf-8"
        )
        (override_dir / "express" / "part.j2").write_text("{{ name }}", encoding="utf-8")
        renderer = TemplateRenderer(TemplateResolver(override_dir))
        assert renderer.render("express/page", {"name": "ok"}) == "[ok]"
        assert renderer.origin("express/page") is ArtifactOrigin.OVERRIDE

    def test_missing_include(self, override_dir: Path):
        (override_dir / "express" / "page.j2").write_text('{% include "express/gone" %}', encoding="utf-8")
        renderer = TemplateRenderer(TemplateResolver(override_dir))
        with pytest.raises(TemplateError) as exc_info:
            renderer.render("express/page", {})
        assert "express/gone" in str(exc_info.value)

    def test_render_is_deterministic(self):
        renderer = TemplateRenderer()
        source = "{% for f in fields %}{{ f.name | camel_case }};{% endfor %}"
        context = {"fields": [{"name": "first_name"}, {"name": "last_name"}]}
        assert renderer.render_string(source, context) == renderer.render_string(source, context)

    def test_render_source_function(self):
        assert render_source("{{ word | plural }}", {"word": "category"}) == "categories"


# ---------------------------------------------------------------------------
# ContextView
# ---------------------------------------------------------------------------


class TestContextView:
    def test_attribute_and_item_access(self):
        view = ContextView({"name": "Item", "meta": {"plural": "items"}}, "model")
        assert view.name == "Item"
        assert view["meta"].plural == "items"
        assert "name" in view
        assert len(view) == 2
        assert list(view) == ["name", "meta"]

    def test_immutable(self):
        view = ContextView({"name": "Item"})
        with pytest.raises(TypeError):
            view.name = "Other"

    def test_missing_attribute(self):
        with pytest.raises(AttributeError):
            ContextView({}).nope


# ---------------------------------------------------------------------------
# Filters
# ---------------------------------------------------------------------------


class TestFilters:
    @pytest.mark.parametrize(
        "expression, expected",
        [
            ("{{ 'OrderItem' | snake_case }}", "order_item"),
            ("{{ 'order_item' | camel_case }}", "orderItem"),
            ("{{ 'order_item' | pascal_case }}", "OrderItem"),
            ("{{ 'OrderItem' | kebab_case }}", "order-item"),
            ("{{ 'box' | plural }}", "boxes"),
            ("{{ values | literal }}", '["a", "b"]'),
            ("{{ 'say \"hi\"' | literal }}", '"say \\"hi\\""'),
            ("{{ 3 | literal }}", "3"),
        ],
    )
    def test_filters(self, expression, expected):
        assert TemplateRenderer().render_string(expression, {"values": ["a", "b"]}) == expected

    def test_indent_body(self):
        out = TemplateRenderer().render_string(
            "{{ body | indent_body(2) }}", {"body": "\nif (x) {\n  y();\n\n}\n"}
        )
        assert out == "\n  if (x) {\n    y();\n\n  }"

    def test_indent_body_keeps_first_line(self):
        out = TemplateRenderer().render_string("{{ body | indent_body(4, false) }}", {"body": "a\nb"})
        assert out == "a\n    b"

    def test_indent_body_keeps_line_content(self):
        out = TemplateRenderer().render_string(
            "{{ body | indent_body(2) }}", {"body": "const s = `a  \n  b`;   \n"}
        )
        assert out == "  const s = `a  \n    b`;   "
