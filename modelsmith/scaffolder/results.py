"""Artifacts and run results.

Provides Pydantic v2 models for everything a generation run produces:
individual artifacts, recorded failures, the aggregate generation result, and
the per-file outcomes of committing artifacts to the target tree.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field

from modelsmith.errors import GenerationError


# ---------------------------------------------------------------------------
# Artifacts
# ---------------------------------------------------------------------------

class ArtifactOrigin(str, Enum):
    """Where the template (or content) of an artifact came from."""

    BUILTIN = "builtin"
    OVERRIDE = "override"
    EXTENSION = "extension"


class Artifact(BaseModel):
    """A rendered output file: relative path plus content.

    Artifacts are immutable once produced; extension hooks can add new ones
    but never modify or remove existing ones.
    """

    model_config = ConfigDict(frozen=True)

    path: str = Field(..., description="POSIX path relative to the output root")
    content: str = Field(..., description="Rendered file content")
    template: str = Field(default="", description="Template identifier (or 'hook:<name>')")
    origin: ArtifactOrigin = Field(default=ArtifactOrigin.BUILTIN)
    kind: str = Field(default="file", description="Artifact kind, e.g. 'data-model'")
    model: Optional[str] = Field(default=None, description="Model the artifact belongs to, if any")


# ---------------------------------------------------------------------------
# Failures / generation result
# ---------------------------------------------------------------------------

class GenerationFailure(BaseModel):
    """One failure recorded during generation."""

    stage: str = Field(..., description="'render' or 'extension'")
    message: str
    model: Optional[str] = Field(default=None)
    template: Optional[str] = Field(default=None)
    path: Optional[str] = Field(default=None, description="Undefined context path, for render failures")

    def __str__(self) -> str:
        where = " / ".join(part for part in (self.model, self.template) if part)
        return f"{self.stage} [{where or 'project'}]: {self.message}"


class GenerationResult(BaseModel):
    """The ordered artifact list (sorted by path) plus every recorded failure."""

    artifacts: list[Artifact] = Field(default_factory=list)
    failures: list[GenerationFailure] = Field(default_factory=list)

    @computed_field  # type: ignore[misc]
    @property
    def success(self) -> bool:
        """True when no failure was recorded."""
        return not self.failures

    def artifact(self, path: str) -> Optional[Artifact]:
        for artifact in self.artifacts:
            if artifact.path == path:
                return artifact
        return None

    def for_model(self, name: str) -> list[Artifact]:
        """Artifacts produced for model *name*, in path order."""
        return [a for a in self.artifacts if a.model == name]

    def raise_for_failures(self) -> None:
        """Raise ``GenerationError`` if the run recorded any failure."""
        if self.failures:
            raise GenerationError(self.failures)


# ---------------------------------------------------------------------------
# Write outcomes
# ---------------------------------------------------------------------------

class WriteOutcome(str, Enum):
    CREATED = "created"
    OVERWRITTEN = "overwritten"
    MERGED = "merged"
    SKIPPED = "skipped"
    UNCHANGED = "unchanged"


class PlannedWrite(BaseModel):
    """What the output manager will do (or did) for a single artifact."""

    model_config = ConfigDict(frozen=True)

    path: str
    outcome: WriteOutcome
    content: str = Field(default="", description="Final file content; empty for skipped files")


class WriteReport(BaseModel):
    """Summary of a commit to the target tree."""

    root: str = Field(..., description="Absolute output root")
    dry_run: bool = Field(default=False)
    entries: list[PlannedWrite] = Field(default_factory=list)

    def paths_with(self, outcome: WriteOutcome) -> list[str]:
        return [entry.path for entry in self.entries if entry.outcome == outcome]

    @computed_field  # type: ignore[misc]
    @property
    def written(self) -> int:
        """Number of files whose on-disk content changed."""
        return sum(
            1 for entry in self.entries
            if entry.outcome in (WriteOutcome.CREATED, WriteOutcome.OVERWRITTEN, WriteOutcome.MERGED)
        )

    def counts(self) -> dict[str, int]:
        """``{outcome: count}`` for every outcome, used by the CLI summary."""
        return {outcome.value: len(self.paths_with(outcome)) for outcome in WriteOutcome}
