"""Tests for structural schema decoding (modelsmith.parser.extractor).

Covers:
- Flat and explicit (``fields:``) model forms
- Shorthand expansion for fields, methods, hooks, relations, features
- Duplicate keys preserved for validation
- Separate config documents overriding the schema's own config
- Structural failures (not a mapping, missing models, unknown keys, bad YAML)
- Async file reading (missing file, wrong suffix)
"""

from __future__ import annotations

import textwrap
from pathlib import Path

import pytest

from modelsmith.errors import SchemaError
from modelsmith.parser.extractor import (
    DocumentMapping,
    SchemaDocument,
    parse_document,
    parse_schema,
    read_schema,
)


# ---------------------------------------------------------------------------
# Markers
# ---------------------------------------------------------------------------

pytestmark = pytest.mark.unit


# ---------------------------------------------------------------------------
# parse_document
# ---------------------------------------------------------------------------


class TestParseDocument:
    def test_mappings_keep_duplicate_pairs(self):
        data = parse_document("a: 1\nb: 2\na: 3\n")
        assert isinstance(data, DocumentMapping)
        assert data.pairs == [("a", 1), ("b", 2), ("a", 3)]
        assert data["a"] == 3

    def test_json_is_accepted(self):
        data = parse_document('{"models": {"Item": {"name": "string"}}}')
        assert data["models"]["Item"]["name"] == "string"

    def test_invalid_yaml_is_structural(self):
        with pytest.raises(SchemaError) as exc_info:
            parse_document("models: [unclosed\n")
        assert exc_info.value.structural is True
        assert exc_info.value.diagnostics[0].code == "structural"


# ---------------------------------------------------------------------------
# parse_schema: model forms and shorthands
# ---------------------------------------------------------------------------


class TestModelForms:
    def test_flat_form(self, item_schema_text):
        doc = parse_schema(item_schema_text)
        assert isinstance(doc, SchemaDocument)
        item = doc.models[0]
        assert item.name == "Item"
        assert [f.name for f in item.fields] == ["name", "price"]
        assert item.fields[0].required is True
        assert item.fields[1].type == "decimal"

    def test_explicit_fields_form(self, rich_schema_text):
        doc = parse_schema(rich_schema_text)
        author = doc.models[0]
        assert [f.name for f in author.fields] == ["name", "bio"]
        assert author.relations[0].target == "Book"
        assert author.relations[0].cardinality == "many"
        assert author.features.search is True

    def test_declaration_order_is_preserved(self, rich_schema_text):
        doc = parse_schema(rich_schema_text)
        assert [m.name for m in doc.models] == ["Author", "Book", "Member"]

    def test_list_of_models(self):
        doc = parse_schema(textwrap.dedent("""\
            models:
              - name: Item
                fields:
                  - name: title
                    type: string
        """))
        assert doc.models[0].name == "Item"
        assert doc.models[0].fields[0].name == "title"

    def test_section_keys_are_not_fields(self):
        doc = parse_schema(textwrap.dedent("""\
            models:
              Post:
                title: string
                methods:
                  publish: this.published = true;
                hooks:
                  pre-save: this.slug = this.title;
                relations:
                  author: User
                features: [audit]
        """))
        post = doc.models[0]
        assert [f.name for f in post.fields] == ["title"]
        assert post.methods[0].name == "publish"
        assert post.methods[0].body == "this.published = true;"
        assert post.hooks[0].event == "pre-save"
        assert post.relations[0].name == "author"
        assert post.relations[0].target == "User"
        assert post.features.audit is True

    def test_null_field_defaults_to_string(self):
        doc = parse_schema("models:\n  Tag:\n    label:\n")
        assert doc.models[0].fields[0].type == "string"

    def test_method_params_shorthand(self):
        doc = parse_schema(textwrap.dedent("""\
            models:
              Account:
                balance: decimal
                methods:
                  deposit:
                    params: { amount: number }
                    returns: number
                    body: return this.balance + amount;
        """))
        method = doc.models[0].methods[0]
        assert method.params[0].name == "amount"
        assert method.params[0].type == "number"
        assert method.returns == "number"

    def test_duplicate_field_keys_are_kept(self):
        doc = parse_schema("models:\n  Item:\n    name: string\n    name: number\n")
        assert [f.name for f in doc.models[0].fields] == ["name", "name"]

    def test_storage_annotations(self):
        doc = parse_schema(textwrap.dedent("""\
            models:
              Item:
                sku:
                  type: string
                  storage:
                    mongodb: { index: true }
        """))
        assert doc.models[0].fields[0].storage == {"mongodb": {"index": True}}


# ---------------------------------------------------------------------------
# parse_schema: config
# ---------------------------------------------------------------------------


class TestConfig:
    def test_defaults(self):
        doc = parse_schema("models:\n  Item:\n    name: string\n")
        assert doc.config.target == "express"
        assert doc.config.auth == "none"
        assert doc.config.storage == "mongodb"
        assert doc.config.docs is True
        assert doc.config.tests is True

    def test_cors_shorthands(self):
        off = parse_schema("config:\n  cors: false\nmodels:\n  Item:\n    name: string\n")
        assert off.config.cors.enabled is False
        listed = parse_schema("config:\n  cors: [https://a.test]\nmodels:\n  Item:\n    name: string\n")
        assert listed.config.cors.origins == ["https://a.test"]

    def test_separate_config_document_overrides(self, item_schema_text):
        doc = parse_schema(item_schema_text, "auth: jwt\nstorage: postgres\n")
        assert doc.config.auth == "jwt"
        assert doc.config.storage == "postgres"
        assert doc.config.name == "shop-api"

    def test_config_document_with_config_key(self, item_schema_text):
        doc = parse_schema(item_schema_text, "config:\n  email: resend\n")
        assert doc.config.email == "resend"


# ---------------------------------------------------------------------------
# Structural failures
# ---------------------------------------------------------------------------


class TestStructuralErrors:
    @pytest.mark.parametrize(
        "text",
        [
            "- just\n- a list\n",
            "config:\n  name: x\n",
            "models: 42\n",
            "models:\n  Item: 7\n",
        ],
    )
    def test_malformed_documents(self, text):
        with pytest.raises(SchemaError) as exc_info:
            parse_schema(text)
        assert exc_info.value.structural is True

    def test_unknown_key_names_its_location(self):
        with pytest.raises(SchemaError) as exc_info:
            parse_schema("models:\n  Item:\n    name: { type: string, colour: red }\n")
        message = exc_info.value.diagnostics[0].message
        assert "Item" in message
        assert "colour" in message

    def test_wrong_scalar_type(self):
        with pytest.raises(SchemaError) as exc_info:
            parse_schema("models:\n  Item:\n    name: { type: string, required: maybe }\n")
        assert exc_info.value.structural is True


# ---------------------------------------------------------------------------
# read_schema (async file IO)
# ---------------------------------------------------------------------------


class TestReadSchema:
    @pytest.mark.asyncio
    async def test_reads_schema_and_config(self, write_schema, item_schema_text):
        schema_path = write_schema(item_schema_text)
        config_path = write_schema("auth: session\n", name="config.yaml")
        doc = await read_schema(schema_path, config_path)
        assert doc.models[0].name == "Item"
        assert doc.config.auth == "session"

    @pytest.mark.asyncio
    async def test_missing_file(self, tmp_path: Path):
        with pytest.raises(SchemaError) as exc_info:
            await read_schema(tmp_path / "nope.yaml")
        assert "not found" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_wrong_suffix(self, write_schema, item_schema_text):
        path = write_schema(item_schema_text, name="schema.txt")
        with pytest.raises(SchemaError) as exc_info:
            await read_schema(path)
        assert exc_info.value.structural is True
