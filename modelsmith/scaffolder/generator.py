"""Main generation orchestrator.

Takes a validated ``Schema`` and renders every selected template into an
ordered list of in-memory artifacts.  Nothing touches the target tree here;
committing artifacts is the output manager's job.

Models are independent, so they render concurrently on a worker pool bounded
by ``Config.max_workers``.  Project-level artifacts (app entrypoint, package
manifest, ...) render only once every model has finished.  Extension hooks
run on the event loop thread, never concurrently with each other.
"""

from __future__ import annotations

import asyncio
from typing import Any, Optional

from modelsmith.config import Config
from modelsmith.errors import ExtensionError, TemplateError
from modelsmith.parser.models import Model, Schema
from modelsmith.scaffolder.context import build_model_context, build_project_context
from modelsmith.scaffolder.hooks import ExtensionEvent, ExtensionPoint, HookRegistry
from modelsmith.scaffolder.results import Artifact, GenerationFailure, GenerationResult
from modelsmith.scaffolder.selection import (
    TemplateSpec,
    select_model_templates,
    select_project_templates,
)
from modelsmith.scaffolder.templates import TemplateRenderer, TemplateResolver

_Outcome = tuple[list[Artifact], list[GenerationFailure]]


class ProjectGenerator:
    """Main generation orchestrator.

    Given a ``Schema``, produces:
    - per model: data model, request handler and routes, plus auth, search,
      audit, test and docs artifacts as the model's features and the schema
      config select them
    - per project: app entrypoint wiring every router, server, config,
      storage connection, middleware, manifests and docs

    Failures are recorded, never raised, so one bad template does not hide
    problems in the others; see :meth:`GenerationResult.raise_for_failures`.
    """

    def __init__(
        self,
        schema: Schema,
        config: Optional[Config] = None,
        hooks: Optional[HookRegistry] = None,
        *,
        renderer: Optional[TemplateRenderer] = None,
    ) -> None:
        self.schema = schema
        self.config = config or Config()
        self.hooks = hooks or HookRegistry()
        self.renderer = renderer or TemplateRenderer(TemplateResolver(self.config.template_dir))

    # -- Public API --------------------------------------------------------

    async def generate(self) -> GenerationResult:
        """Render every artifact for the schema.

        Returns:
            A ``GenerationResult`` whose artifacts are sorted by path.
        """
        semaphore = asyncio.Semaphore(self.config.max_workers)
        outcomes = await asyncio.gather(
            *(self._generate_model(model, semaphore) for model in self.schema.models.values())
        )

        artifacts: list[Artifact] = []
        failures: list[GenerationFailure] = []
        for produced, failed in outcomes:
            artifacts.extend(produced)
            failures.extend(failed)

        produced, failed = await self._generate_project(tuple(artifacts))
        artifacts.extend(produced)
        failures.extend(failed)

        artifacts.sort(key=lambda artifact: artifact.path)
        return GenerationResult(artifacts=artifacts, failures=failures)

    def plan(self) -> dict[str, list[TemplateSpec]]:
        """Selected templates per model name, plus ``"<project>"``."""
        planned = {
            name: select_model_templates(model, self.schema.config)
            for name, model in self.schema.models.items()
        }
        planned["<project>"] = select_project_templates(self.schema)
        return planned

    # -- Phases ------------------------------------------------------------

    async def _generate_model(self, model: Model, semaphore: asyncio.Semaphore) -> _Outcome:
        artifacts: list[Artifact] = []
        failures: list[GenerationFailure] = []

        before = self._run_hooks(ExtensionPoint.BEFORE_MODEL, failures, model=model)
        if before is None:
            return artifacts, failures
        artifacts.extend(before.added)

        context = build_model_context(self.schema, model, before.context)
        specs = select_model_templates(model, self.schema.config)
        async with semaphore:
            rendered, failed = await asyncio.to_thread(self._render_all, specs, context, model.name)
        artifacts.extend(rendered)
        failures.extend(failed)

        after = self._run_hooks(ExtensionPoint.AFTER_MODEL, failures, model=model, artifacts=tuple(artifacts))
        if after is not None:
            artifacts.extend(after.added)
        return artifacts, failures

    async def _generate_project(self, model_artifacts: tuple[Artifact, ...]) -> _Outcome:
        artifacts: list[Artifact] = []
        failures: list[GenerationFailure] = []

        before = self._run_hooks(ExtensionPoint.BEFORE_PROJECT, failures, artifacts=model_artifacts)
        if before is None:
            return artifacts, failures
        artifacts.extend(before.added)

        context = build_project_context(self.schema, before.context)
        specs = select_project_templates(self.schema)
        rendered, failed = await asyncio.to_thread(self._render_all, specs, context, None)
        artifacts.extend(rendered)
        failures.extend(failed)

        after = self._run_hooks(
            ExtensionPoint.AFTER_PROJECT, failures, artifacts=model_artifacts + tuple(artifacts)
        )
        if after is not None:
            artifacts.extend(after.added)
        return artifacts, failures

    # -- Internal helpers --------------------------------------------------

    def _run_hooks(
        self,
        point: ExtensionPoint,
        failures: list[GenerationFailure],
        *,
        model: Optional[Model] = None,
        artifacts: tuple[Artifact, ...] = (),
    ) -> Optional[ExtensionEvent]:
        """Run the hooks at *point*; on failure record it and return ``None``."""
        event = ExtensionEvent(point=point, schema=self.schema, model=model, artifacts=artifacts)
        try:
            return self.hooks.run(event)
        except ExtensionError as exc:
            failures.append(GenerationFailure(
                stage="extension",
                message=str(exc),
                model=model.name if model else None,
                template=f"hook:{exc.hook}",
            ))
            return None

    def _render_all(
        self, specs: list[TemplateSpec], context: dict[str, Any], model: Optional[str]
    ) -> _Outcome:
        artifacts: list[Artifact] = []
        failures: list[GenerationFailure] = []
        for spec in specs:
            try:
                content = self.renderer.render(spec.identifier, context)
                origin = self.renderer.origin(spec.identifier)
            except TemplateError as exc:
                failures.append(GenerationFailure(
                    stage="render",
                    message=str(exc),
                    model=model,
                    template=spec.identifier,
                    path=exc.path,
                ))
                continue
            artifacts.append(Artifact(
                path=spec.path,
                content=content,
                template=spec.identifier,
                origin=origin,
                kind=spec.kind,
                model=model,
            ))
        return artifacts, failures
