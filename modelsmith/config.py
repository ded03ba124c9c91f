"""modelsmith runtime configuration.

Centralised, typed configuration for a generation run. Settings use Pydantic
v2 models so they are validated at construction time and can be serialised
to/from JSON or environment variables without boiler-plate.

This is *runtime* configuration (where to write, how to resolve conflicts,
how many workers).  The schema's own ``config`` section, which gates template
selection, lives in :class:`modelsmith.parser.models.SchemaConfig`.
"""

from __future__ import annotations

import os
from enum import Enum
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, Field

from modelsmith.utils import ensure_dir


class ConflictPolicy(str, Enum):
    """What to do when an artifact's path already exists in the target tree."""

    OVERWRITE = "overwrite"
    SKIP = "skip"
    MERGE = "merge"


class Config(BaseModel):
    """Global modelsmith configuration.

    Instances are typically created once by ``Pipeline`` or by the CLI entry
    point and then passed through the rest of the system.
    """

    output_dir: Path = Field(default=Path("./output"))
    template_dir: Optional[Path] = Field(
        default=None, description="Override directory searched before the built-in templates"
    )
    conflict_policy: ConflictPolicy = Field(default=ConflictPolicy.OVERWRITE)
    max_workers: int = Field(default=4, ge=1, description="Models rendered concurrently")
    merge_suffixes: list[str] = Field(
        default=[".json", ".yaml", ".yml"],
        description="Artifact suffixes eligible for structured merge",
    )
    dry_run: bool = Field(default=False, description="Plan writes without touching disk")

    # ------------------------------------------------------------------
    # Derived paths (read-only properties)
    # ------------------------------------------------------------------

    @property
    def output_path(self) -> Path:
        """Absolute root of the target tree."""
        return self.output_dir.resolve()

    @property
    def config_path(self) -> Path:
        """Default location used by :meth:`save`."""
        return self.output_dir / ".modelsmith.json"

    def is_mergeable(self, path: str) -> bool:
        """``True`` if *path* names a structured document eligible for merge."""
        return Path(path).suffix.lower() in {s.lower() for s in self.merge_suffixes}

    # ------------------------------------------------------------------
    # Serialisation helpers
    # ------------------------------------------------------------------

    def save(self, path: Path | None = None) -> Path:
        """Persist the configuration to a JSON file.

        Args:
            path: Destination file. Defaults to ``<output_dir>/.modelsmith.json``.

        Returns:
            The path where the file was written.
        """
        target = path or self.config_path
        ensure_dir(target.parent)
        target.write_text(self.model_dump_json(indent=2), encoding="utf-8")
        return target

    @classmethod
    def load(cls, path: Path) -> "Config":
        """Load a previously-saved configuration from JSON."""
        raw = Path(path).read_text(encoding="utf-8")
        return cls.model_validate_json(raw)

    @classmethod
    def from_env(cls) -> "Config":
        """Build a ``Config`` from environment variables.

        Recognised variables (all optional):
            MODELSMITH_OUTPUT_DIR, MODELSMITH_TEMPLATE_DIR,
            MODELSMITH_CONFLICT, MODELSMITH_MAX_WORKERS.
        """
        kwargs: dict[str, Any] = {}
        if os.environ.get("MODELSMITH_OUTPUT_DIR"):
            kwargs["output_dir"] = Path(os.environ["MODELSMITH_OUTPUT_DIR"])
        if os.environ.get("MODELSMITH_TEMPLATE_DIR"):
            kwargs["template_dir"] = Path(os.environ["MODELSMITH_TEMPLATE_DIR"])
        if os.environ.get("MODELSMITH_CONFLICT"):
            kwargs["conflict_policy"] = ConflictPolicy(os.environ["MODELSMITH_CONFLICT"].strip().lower())
        workers = os.environ.get("MODELSMITH_MAX_WORKERS")
        if workers:
            try:
                kwargs["max_workers"] = int(workers)
            except ValueError:
                raise ValueError(f"MODELSMITH_MAX_WORKERS must be an integer, got {workers!r}") from None
        return cls(**kwargs)
