"""Shared pytest fixtures for the modelsmith test suite.

Provides reusable fixtures for:
- Temporary output directories
- Sample schema documents (plain, auth-enabled, broken relation)
- Pre-validated ``Schema`` objects
- Template override directories
"""

from __future__ import annotations

import textwrap
from pathlib import Path
from typing import Callable

import pytest

from modelsmith.parser import loads_schema
from modelsmith.parser.models import Schema


# ---------------------------------------------------------------------------
# Schema documents
# ---------------------------------------------------------------------------

ITEM_SCHEMA = textwrap.dedent("""\
    config:
      name: shop-api
      description: A tiny catalogue service.
    models:
      Item:
        name:
          type: string
          required: true
        price: decimal
""")

AUTH_SCHEMA = textwrap.dedent("""\
    config:
      name: shop-api
    models:
      User:
        email:
          type: string
          required: true
          unique: true
        password:
          type: string
          required: true
        features: [auth]
      Item:
        name:
          type: string
          required: true
        price: decimal
""")

BROKEN_RELATION_SCHEMA = textwrap.dedent("""\
    models:
      Order:
        total: decimal
        relations:
          shipment: Shipment
""")

RICH_SCHEMA = textwrap.dedent("""\
    config:
      name: Library Service
      auth: jwt
      storage: mongodb
      email: resend
    models:
      Author:
        fields:
          name: { type: string, required: true }
          bio: string
        relations:
          books:
            target: Book
            cardinality: many
            ownership: owned
        features: [search]
      Book:
        fields:
          title: { type: string, required: true }
          genre: { type: enum, values: [fiction, science, history], default: fiction }
          published: date
          author: { type: reference, target: Author }
        methods:
          summary:
            returns: string
            body: return `${this.title}`;
        hooks:
          pre-save: this.title = this.title.trim();
        features:
          audit: true
          soft_delete: true
      Member:
        email: { type: string, required: true, unique: true }
        password: { type: string, required: true }
        features: [auth]
""")


@pytest.fixture
def item_schema_text() -> str:
    return ITEM_SCHEMA


@pytest.fixture
def auth_schema_text() -> str:
    return AUTH_SCHEMA


@pytest.fixture
def broken_relation_schema_text() -> str:
    return BROKEN_RELATION_SCHEMA


@pytest.fixture
def rich_schema_text() -> str:
    return RICH_SCHEMA


# ---------------------------------------------------------------------------
# Validated schemas
# ---------------------------------------------------------------------------

@pytest.fixture
def item_schema() -> Schema:
    """Scenario A: a single ``Item`` model, no feature flags."""
    return loads_schema(ITEM_SCHEMA)


@pytest.fixture
def auth_schema() -> Schema:
    """Scenario B: ``User`` with the auth feature next to a plain ``Item``."""
    return loads_schema(AUTH_SCHEMA)


@pytest.fixture
def rich_schema() -> Schema:
    """Relations, methods, hooks, audit, search, jwt auth and email."""
    return loads_schema(RICH_SCHEMA)


# ---------------------------------------------------------------------------
# Paths & Directories
# ---------------------------------------------------------------------------

@pytest.fixture
def output_dir(tmp_path: Path) -> Path:
    """Target directory for generated projects (not created up front)."""
    return tmp_path / "generated"


@pytest.fixture
def write_schema(tmp_path: Path) -> Callable[..., Path]:
    """Factory writing schema text to a file under ``tmp_path``."""

    def _write(text: str, name: str = "schema.yaml") -> Path:
        path = tmp_path / name
        path.write_text(text, encoding="utf-8")
        return path

    return _write


@pytest.fixture
def override_dir(tmp_path: Path) -> Path:
    """Empty template override directory laid out like the built-in one."""
    directory = tmp_path / "overrides"
    (directory / "express").mkdir(parents=True)
    return directory


def _snapshot(root: Path) -> dict[str, bytes]:
    if not root.exists():
        return {}
    return {
        path.relative_to(root).as_posix(): path.read_bytes()
        for path in sorted(root.rglob("*"))
        if path.is_file()
    }


@pytest.fixture
def tree_snapshot() -> Callable[[Path], dict[str, bytes]]:
    """Every file under a root as ``{relative posix path: bytes}``."""
    return _snapshot
