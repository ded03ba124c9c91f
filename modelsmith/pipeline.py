"""modelsmith pipeline orchestrator.

Implements the three-phase generation pipeline:

Phase 1: PARSE    -- Decode the schema document and validate it into the IR.
Phase 2: GENERATE -- Render every selected template into in-memory artifacts.
Phase 3: WRITE    -- Commit the artifacts to the target tree atomically.

A failing phase stops the pipeline; nothing is written unless every phase
before WRITE succeeded.

Usage::

    modelsmith schema.yaml --output ./my-api
    python -m modelsmith.pipeline schema.yaml -o ./my-api --conflict merge
"""

from __future__ import annotations

import asyncio
import os
import sys
import time
from pathlib import Path
from typing import Optional, Sequence

from pydantic import BaseModel, Field
from rich.panel import Panel

from modelsmith.config import Config, ConflictPolicy
from modelsmith.errors import Diagnostic, GenerationError, OutputError, SchemaError
from modelsmith.parser import load_schema
from modelsmith.parser.models import Schema
from modelsmith.scaffolder.generator import ProjectGenerator
from modelsmith.scaffolder.hooks import HookRegistry
from modelsmith.scaffolder.output import OutputManager, summarize
from modelsmith.scaffolder.results import GenerationFailure, GenerationResult, WriteReport
from modelsmith.utils import (
    PHASE_NAMES,
    console,
    format_duration,
    print_diagnostics,
    print_error,
    print_phase_header,
    print_success,
    print_summary_table,
    print_warning,
)

EXIT_OK = 0
EXIT_SCHEMA = 1
EXIT_GENERATION = 2


# ---------------------------------------------------------------------------
# Exceptions / results
# ---------------------------------------------------------------------------


class PipelineResult(BaseModel):
    """Outcome of a pipeline run."""

    exit_code: int = Field(default=EXIT_OK)
    phases_completed: list[int] = Field(default_factory=list)
    diagnostics: list[Diagnostic] = Field(default_factory=list)
    failures: list[GenerationFailure] = Field(default_factory=list)
    error: str = Field(default="")
    report: Optional[WriteReport] = Field(default=None)

    @property
    def success(self) -> bool:
        return self.exit_code == EXIT_OK


# ---------------------------------------------------------------------------
# Pipeline Orchestrator
# ---------------------------------------------------------------------------


class Pipeline:
    """modelsmith pipeline orchestrator.

    Attributes:
        config: Runtime configuration (output root, conflict policy, ...).
        hooks: Extension hooks handed to the generator.
    """

    def __init__(self, config: Config, hooks: Optional[HookRegistry] = None) -> None:
        self.config = config
        self.hooks = hooks or HookRegistry()

    async def run(
        self, schema_path: str | Path, config_path: str | Path | None = None
    ) -> PipelineResult:
        """Run every phase, mapping failures to exit codes.

        Returns:
            A ``PipelineResult``; ``exit_code`` is 0 on success, 1 for schema
            problems and 2 for generation or I/O failures.
        """
        pipeline_start = time.monotonic()
        outcome = PipelineResult()

        console.print(
            Panel(
                f"[bold bright_cyan]modelsmith[/bold bright_cyan]\n"
                f"Schema    : {schema_path}\n"
                f"Output    : {self.config.output_path}\n"
                f"Conflicts : {self.config.conflict_policy.value}"
                + ("\nMode      : dry run" if self.config.dry_run else ""),
                title="[bold]Generation Start[/bold]",
                border_style="bright_cyan",
            )
        )
        if self.config.template_dir is not None and not self.config.template_dir.is_dir():
            print_warning(f"Template override directory not found: {self.config.template_dir}")

        phase = 1
        try:
            phase_start = self._start(phase)
            schema = await self.phase1_parse(schema_path, config_path)
            self._finish(phase, phase_start, outcome)
            print_summary_table({k: str(v) for k, v in schema.summary().items()}, title="Schema")

            phase = 2
            phase_start = self._start(phase)
            result = await self.phase2_generate(schema)
            self._finish(phase, phase_start, outcome)

            phase = 3
            phase_start = self._start(phase)
            outcome.report = await self.phase3_write(result)
            self._finish(phase, phase_start, outcome)
            print_summary_table(summarize(outcome.report), title="Output")

        except SchemaError as exc:
            outcome.exit_code = EXIT_SCHEMA
            outcome.diagnostics = exc.diagnostics
            outcome.error = str(exc)
            print_diagnostics(exc.diagnostics, title="Malformed schema" if exc.structural else "Schema problems")
            print_error(f"Phase {phase} ({PHASE_NAMES[phase]}) FAILED: {str(exc).splitlines()[0]}")

        except GenerationError as exc:
            outcome.exit_code = EXIT_GENERATION
            outcome.failures = exc.failures
            outcome.error = str(exc)
            for failure in exc.failures:
                print_error(f"  - {failure}")
            print_error(f"Phase {phase} ({PHASE_NAMES[phase]}) FAILED: {len(exc.failures)} error(s); nothing written")

        except OutputError as exc:
            outcome.exit_code = EXIT_GENERATION
            outcome.error = str(exc)
            print_error(f"Phase {phase} ({PHASE_NAMES[phase]}) FAILED: {exc}")

        self._print_final_summary(outcome, time.monotonic() - pipeline_start)
        return outcome

    # ------------------------------------------------------------------
    # Phases
    # ------------------------------------------------------------------

    async def phase1_parse(self, schema_path: str | Path, config_path: str | Path | None = None) -> Schema:
        """Decode and validate the schema (raises ``SchemaError``)."""
        return await load_schema(schema_path, config_path)

    async def phase2_generate(self, schema: Schema) -> GenerationResult:
        """Render all artifacts (raises ``GenerationError`` on any failure)."""
        result = await ProjectGenerator(schema, self.config, self.hooks).generate()
        result.raise_for_failures()
        console.print(f"  [green]+[/green] {len(result.artifacts)} artifacts rendered")
        return result

    async def phase3_write(self, result: GenerationResult) -> WriteReport:
        """Commit artifacts (raises ``OutputError`` and leaves the tree untouched)."""
        manager = OutputManager.from_config(self.config)
        return await manager.write(result, dry_run=self.config.dry_run)

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    @staticmethod
    def _start(phase: int) -> float:
        print_phase_header(phase, PHASE_NAMES[phase])
        return time.monotonic()

    @staticmethod
    def _finish(phase: int, started: float, outcome: PipelineResult) -> None:
        outcome.phases_completed.append(phase)
        print_success(
            f"Phase {phase} ({PHASE_NAMES[phase]}) completed in {format_duration(time.monotonic() - started)}"
        )

    def _print_final_summary(self, outcome: PipelineResult, total_elapsed: float) -> None:
        if outcome.success:
            border_style = "bold green"
            status_text = "[bold green]GENERATION SUCCEEDED[/bold green]"
        else:
            border_style = "bold red"
            status_text = "[bold red]GENERATION FAILED[/bold red]"

        detail_lines = [
            status_text,
            "",
            f"Duration  : {format_duration(total_elapsed)}",
            f"Completed : {', '.join(str(p) for p in outcome.phases_completed) or 'none'}",
            f"Exit code : {outcome.exit_code}",
        ]
        if outcome.report is not None:
            detail_lines.append(f"Written   : {outcome.report.written} file(s)")

        console.print()
        console.print(
            Panel(
                "\n".join(detail_lines),
                title="[bold]Generation Complete[/bold]",
                border_style=border_style,
            )
        )


# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------


def build_config(args) -> Config:
    """Runtime config from (optional) settings file, environment and CLI flags."""
    config = Config.load(Path(args.settings)) if args.settings else Config.from_env()
    updates: dict[str, object] = {"output_dir": Path(args.output)}
    if args.templates:
        updates["template_dir"] = Path(args.templates)
    if args.conflict:
        updates["conflict_policy"] = ConflictPolicy(args.conflict)
    if args.workers:
        updates["max_workers"] = args.workers
    if args.dry_run:
        updates["dry_run"] = True
    return config.model_copy(update=updates)


def main(argv: Optional[Sequence[str]] = None) -> int:
    """CLI entry point for ``modelsmith`` / ``python -m modelsmith.pipeline``."""
    import argparse

    parser = argparse.ArgumentParser(
        prog="modelsmith",
        description="modelsmith -- generate a backend project from a data-model schema",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Exit codes: 0 success, 1 schema validation failure, 2 generation or I/O failure.\n\n"
            "Examples:\n"
            "  modelsmith schema.yaml -o ./my-api\n"
            "  modelsmith schema.yaml -o ./my-api --templates ./overrides --conflict merge\n"
            "  modelsmith schema.yaml -o ./my-api --dry-run\n"
        ),
    )
    parser.add_argument("schema", help="Path to the schema document (YAML or JSON)")
    parser.add_argument(
        "--output", "-o",
        required=not os.environ.get("MODELSMITH_OUTPUT_DIR"),
        default=os.environ.get("MODELSMITH_OUTPUT_DIR"),
        help="Target directory for the generated project",
    )
    parser.add_argument("--templates", "-t", default=None, help="Template override directory")
    parser.add_argument(
        "--conflict",
        choices=[policy.value for policy in ConflictPolicy],
        default=None,
        help="What to do with files that already exist (default: overwrite)",
    )
    parser.add_argument("--config", "-c", default=None, help="Separate schema config document")
    parser.add_argument("--settings", default=None, help="Saved runtime settings (JSON)")
    parser.add_argument("--workers", "-w", type=int, default=None, help="Models rendered concurrently")
    parser.add_argument("--dry-run", action="store_true", help="Plan the write without touching disk")

    args = parser.parse_args(argv)
    if args.workers is not None and args.workers < 1:
        parser.error("--workers must be at least 1")

    try:
        config = build_config(args)
    except (OSError, ValueError) as exc:
        parser.error(f"invalid settings: {exc}")

    result = asyncio.run(Pipeline(config).run(args.schema, args.config))
    return result.exit_code


if __name__ == "__main__":
    sys.exit(main())
