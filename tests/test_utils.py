"""Unit tests for shared utilities (modelsmith.utils)."""

from __future__ import annotations

from pathlib import Path

import pytest

from modelsmith.errors import Diagnostic
from modelsmith.utils import (
    camel_case,
    console,
    deep_merge,
    dump_document,
    ensure_dir,
    format_duration,
    kebab_case,
    load_document,
    pascal_case,
    pluralize,
    print_diagnostics,
    print_error,
    print_summary_table,
    snake_case,
)


pytestmark = pytest.mark.unit


# ---------------------------------------------------------------------------
# Case helpers
# ---------------------------------------------------------------------------


class TestCaseConversion:
    @pytest.mark.parametrize(
        "value, snake, kebab, pascal, camel",
        [
            ("OrderItem", "order_item", "order-item", "OrderItem", "orderItem"),
            ("order_item", "order_item", "order-item", "OrderItem", "orderItem"),
            ("order-item", "order_item", "order-item", "OrderItem", "orderItem"),
            ("HTTPServer", "http_server", "http-server", "HttpServer", "httpServer"),
            ("user", "user", "user", "User", "user"),
        ],
    )
    def test_forms(self, value, snake, kebab, pascal, camel):
        assert snake_case(value) == snake
        assert kebab_case(value) == kebab
        assert pascal_case(value) == pascal
        assert camel_case(value) == camel

    def test_empty(self):
        assert camel_case("") == ""


class TestPluralize:
    @pytest.mark.parametrize(
        "word, plural",
        [
            ("item", "items"),
            ("category", "categories"),
            ("day", "days"),
            ("address", "addresses"),
            ("box", "boxes"),
            ("batch", "batches"),
            ("", ""),
        ],
    )
    def test_plural(self, word, plural):
        assert pluralize(word) == plural


# ---------------------------------------------------------------------------
# Structured documents
# ---------------------------------------------------------------------------


class TestDocuments:
    def test_json_dump_is_stable(self):
        text = dump_document({"b": 1, "a": [1, 2]}, ".json")
        assert text == '{\n  "b": 1,\n  "a": [\n    1,\n    2\n  ]\n}\n'
        assert load_document(text, ".json") == {"b": 1, "a": [1, 2]}

    def test_yaml_preserves_order(self):
        text = dump_document({"z": 1, "a": 2}, ".yaml")
        assert text.index("z:") < text.index("a:")
        assert load_document(text, ".yml") == {"z": 1, "a": 2}

    def test_deep_merge_new_value_wins(self):
        existing = {"name": "old", "scripts": {"lint": "eslint", "test": "mocha"}, "private": True}
        incoming = {"name": "new", "scripts": {"test": "jest"}}
        assert deep_merge(existing, incoming) == {
            "name": "new",
            "scripts": {"lint": "eslint", "test": "jest"},
            "private": True,
        }

    def test_deep_merge_does_not_mutate(self):
        existing = {"a": {"b": 1}}
        deep_merge(existing, {"a": {"c": 2}})
        assert existing == {"a": {"b": 1}}

    def test_non_mapping_is_replaced(self):
        assert deep_merge({"a": [1]}, {"a": [2]}) == {"a": [2]}


# ---------------------------------------------------------------------------
# Filesystem / formatting
# ---------------------------------------------------------------------------


class TestHelpers:
    def test_ensure_dir(self, tmp_path: Path):
        created = ensure_dir(tmp_path / "a" / "b")
        assert created.is_dir()
        assert ensure_dir(created) == created

    @pytest.mark.parametrize(
        "seconds, expected",
        [(3.7, "3.7s"), (65.2, "1m 5s"), (-1, "0.0s"), (0, "0.0s")],
    )
    def test_format_duration(self, seconds, expected):
        assert format_duration(seconds) == expected


# ---------------------------------------------------------------------------
# Console output
# ---------------------------------------------------------------------------


class TestPrinting:
    def test_diagnostics_table(self):
        with console.capture() as capture:
            print_diagnostics([Diagnostic(code="unknown-relation-target", message="Order → Shipment", model="Order")])
        output = capture.get()
        assert "unknown-relation-target" in output
        assert "Order → Shipment" in output

    def test_markup_is_escaped(self):
        with console.capture() as capture:
            print_error("value [bold]kept[/bold]")
        assert "[bold]kept[/bold]" in capture.get()

    def test_summary_table(self):
        with console.capture() as capture:
            print_summary_table({"Created": 3}, title="Output")
        output = capture.get()
        assert "Created" in output
        assert "3" in output
