"""Shared utility functions for modelsmith.

Provides Rich-based console reporting, identifier case conversion used by the
template filters and artifact paths, and the JSON/YAML document helpers the
output manager uses for structured merges.
"""

from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Any, Iterable

import yaml
from rich.console import Console
from rich.markup import escape
from rich.rule import Rule
from rich.table import Table

console = Console()


# ---------------------------------------------------------------------------
# String / name helpers
# ---------------------------------------------------------------------------


def _words(value: str) -> list[str]:
    """Split an identifier into lowercase words.

    Handles ``camelCase``, ``PascalCase``, ``snake_case``, ``kebab-case`` and
    acronyms (``HTTPServer`` -> ``http``, ``server``).
    """
    s1 = re.sub(r"([A-Z]+)([A-Z][a-z])", r"\1 \2", value)
    s2 = re.sub(r"([a-z0-9])([A-Z])", r"\1 \2", s1)
    return [w.lower() for w in re.split(r"[-_\s]+", s2) if w]


def snake_case(value: str) -> str:
    """``OrderItem`` / ``order-item`` -> ``order_item``."""
    return "_".join(_words(value))


def kebab_case(value: str) -> str:
    """``OrderItem`` / ``order_item`` -> ``order-item``."""
    return "-".join(_words(value))


def pascal_case(value: str) -> str:
    """``order_item`` / ``order-item`` -> ``OrderItem``."""
    return "".join(word.capitalize() for word in _words(value))


def camel_case(value: str) -> str:
    """``order_item`` / ``OrderItem`` -> ``orderItem``."""
    pascal = pascal_case(value)
    if pascal:
        return pascal[0].lower() + pascal[1:]
    return ""


def pluralize(word: str) -> str:
    """Naive English plural used for collection names and route paths.

    Examples::

        pluralize("item")     -> "items"
        pluralize("category") -> "categories"
        pluralize("address")  -> "addresses"
    """
    if not word:
        return word
    lower = word.lower()
    if re.search(r"[^aeiou]y$", lower):
        return word[:-1] + "ies"
    if re.search(r"(s|x|z|ch|sh)$", lower):
        return word + "es"
    return word + "s"


# ---------------------------------------------------------------------------
# Structured document I/O
# ---------------------------------------------------------------------------


def load_document(text: str, suffix: str) -> Any:
    """Parse a JSON or YAML document according to its file *suffix*."""
    if suffix.lower() == ".json":
        return json.loads(text)
    return yaml.safe_load(text)


def dump_document(data: Any, suffix: str) -> str:
    """Serialise *data* back to JSON or YAML according to *suffix*.

    Key order is preserved so that repeated merges are byte-stable.
    """
    if suffix.lower() == ".json":
        return json.dumps(data, indent=2, ensure_ascii=False) + "\n"
    return yaml.safe_dump(data, sort_keys=False, allow_unicode=True)


def deep_merge(existing: Any, incoming: Any) -> Any:
    """Recursively merge *incoming* into *existing*.

    Nested mappings merge key by key; on any other conflict the incoming value
    wins.  Keys present only in *existing* are preserved.
    """
    if isinstance(existing, dict) and isinstance(incoming, dict):
        merged = dict(existing)
        for key, value in incoming.items():
            merged[key] = deep_merge(existing[key], value) if key in existing else value
        return merged
    return incoming


# ---------------------------------------------------------------------------
# File-system helpers
# ---------------------------------------------------------------------------


def ensure_dir(path: str | Path) -> Path:
    """Create a directory (and parents) if it does not exist."""
    dir_path = Path(path)
    dir_path.mkdir(parents=True, exist_ok=True)
    return dir_path.resolve()


# ---------------------------------------------------------------------------
# Formatting helpers
# ---------------------------------------------------------------------------


def format_duration(seconds: float) -> str:
    """Format a duration in seconds to a human-readable string.

    Examples::

        format_duration(3.7)    -> "3.7s"
        format_duration(65.2)   -> "1m 5s"
    """
    if seconds < 0:
        return "0.0s"

    minutes = int(seconds // 60)
    secs = seconds % 60
    if minutes > 0:
        return f"{minutes}m {int(secs)}s"
    return f"{secs:.1f}s"


# ---------------------------------------------------------------------------
# Rich output helpers
# ---------------------------------------------------------------------------


PHASE_NAMES: dict[int, str] = {
    1: "PARSE",
    2: "GENERATE",
    3: "WRITE",
}

PHASE_COLORS: dict[int, str] = {
    1: "bright_cyan",
    2: "bright_green",
    3: "bright_blue",
}


def print_phase_header(phase: int, name: str) -> None:
    """Print a full-width rule announcing a pipeline phase."""
    color = PHASE_COLORS.get(phase, "white")
    console.print()
    console.print(
        Rule(
            f"[bold {color}] Phase {phase}: {name.upper()} [/bold {color}]",
            style=color,
        )
    )
    console.print()


def print_summary_table(data: dict[str, Any], title: str = "Summary") -> None:
    """Print a two-column key/value summary table."""
    table = Table(title=title, show_header=True, header_style="bold cyan")
    table.add_column("Item", style="dim", no_wrap=True)
    table.add_column("Value")

    for key, value in data.items():
        table.add_row(escape(key), escape(str(value)))

    console.print(table)
    console.print()


def print_diagnostics(diagnostics: Iterable[Any], title: str = "Schema problems") -> None:
    """Print schema diagnostics as a table: rule code, location, message."""
    table = Table(title=title, show_header=True, header_style="bold red")
    table.add_column("Rule", style="yellow", no_wrap=True)
    table.add_column("Location", style="cyan")
    table.add_column("Problem")

    for diagnostic in diagnostics:
        table.add_row(escape(diagnostic.code), escape(diagnostic.location), escape(diagnostic.message))

    console.print(table)
    console.print()


def print_success(message: str) -> None:
    """Print a green success message."""
    console.print(f"[bold green]{escape(message)}[/bold green]")


def print_error(message: str) -> None:
    """Print a red error message."""
    console.print(f"[bold red]{escape(message)}[/bold red]")


def print_warning(message: str) -> None:
    """Print a yellow warning message."""
    console.print(f"[bold yellow]{escape(message)}[/bold yellow]")
