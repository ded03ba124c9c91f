"""Error taxonomy shared by every modelsmith stage.

Each stage raises exactly one family of exceptions:

* ``SchemaError``     -- structural decode failure, or the complete list of
  semantic violations found by the validator.  Blocks all generation.
* ``TemplateError``   -- an identifier could not be resolved, or a template
  referenced an undefined context path.  Aborts a single artifact.
* ``ExtensionError``  -- a registered hook raised.  Aborts the phase it wraps.
* ``OutputError``     -- staging or writing failed.  Aborts the commit phase.
* ``GenerationError`` -- the aggregate of every failure recorded during a run.
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Diagnostics
# ---------------------------------------------------------------------------


class Diagnostic(BaseModel):
    """A single problem found while parsing or validating a schema."""

    code: str = Field(..., description="Stable rule identifier, e.g. 'duplicate-field'")
    message: str = Field(..., description="Human-readable explanation")
    model: Optional[str] = Field(default=None, description="Offending model, if any")
    field: Optional[str] = Field(default=None, description="Offending field / member, if any")

    @property
    def location(self) -> str:
        """``Model.field`` style location, or ``<schema>`` for global problems."""
        if self.model and self.field:
            return f"{self.model}.{self.field}"
        return self.model or "<schema>"

    def __str__(self) -> str:
        return f"[{self.code}] {self.location}: {self.message}"


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class ModelsmithError(Exception):
    """Base class for every error raised by modelsmith."""


class SchemaError(ModelsmithError):
    """Raised when a schema document cannot be decoded or fails validation.

    Attributes:
        diagnostics: Every problem found, in declaration order.
        structural: ``True`` when the document could not be decoded at all
            (semantic validation never ran).
    """

    def __init__(self, diagnostics: list[Diagnostic], *, structural: bool = False) -> None:
        self.diagnostics = list(diagnostics)
        self.structural = structural
        if structural:
            summary = "Malformed schema document"
        else:
            count = len(self.diagnostics)
            summary = f"Schema validation failed with {count} problem{'s' if count != 1 else ''}"
        details = "\n".join(f"  - {d}" for d in self.diagnostics)
        super().__init__(f"{summary}\n{details}" if details else summary)

    @classmethod
    def malformed(cls, message: str) -> "SchemaError":
        """Build the single structural error reported for an undecodable document."""
        return cls([Diagnostic(code="structural", message=message)], structural=True)


class TemplateError(ModelsmithError):
    """Raised when a template cannot be resolved or rendered.

    Attributes:
        identifier: Logical template identifier (e.g. ``express/controller``).
        path: Dotted context path that was undefined, if that was the cause.
        searched: Directories searched when the identifier was unresolvable.
    """

    def __init__(
        self,
        identifier: str,
        message: str,
        *,
        path: Optional[str] = None,
        searched: Optional[list[str]] = None,
    ) -> None:
        self.identifier = identifier
        self.path = path
        self.searched = list(searched or [])
        super().__init__(f"Template '{identifier}': {message}")


class ExtensionError(ModelsmithError):
    """Raised when a registered extension hook fails."""

    def __init__(self, hook: str, point: str, message: str) -> None:
        self.hook = hook
        self.point = point
        super().__init__(f"Hook '{hook}' at '{point}' failed: {message}")


class OutputError(ModelsmithError):
    """Raised when artifacts cannot be staged or written to the target tree."""

    def __init__(self, path: str, message: str) -> None:
        self.path = path
        super().__init__(f"{path}: {message}")


class ArtifactConflictError(OutputError):
    """Raised when two artifacts of one run target the same output path."""

    def __init__(self, paths: list[str]) -> None:
        self.paths = sorted(paths)
        super().__init__(
            ", ".join(self.paths),
            "more than one artifact targets this path",
        )


class GenerationError(ModelsmithError):
    """Raised when a generation run recorded one or more failures."""

    def __init__(self, failures: list[Any]) -> None:
        self.failures = list(failures)
        count = len(self.failures)
        details = "\n".join(f"  - {f}" for f in self.failures)
        super().__init__(
            f"Generation failed with {count} error{'s' if count != 1 else ''}\n{details}"
        )
