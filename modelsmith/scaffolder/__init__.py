"""modelsmith scaffolder -- renders a validated schema into project files.

Takes a ``Schema`` (see :mod:`modelsmith.parser`) and renders the selected
template family into an ordered list of artifacts, which the
``OutputManager`` then commits to the target tree atomically.

Quick usage::

    from modelsmith.scaffolder import OutputManager, ProjectGenerator

    result = await ProjectGenerator(schema, config).generate()
    result.raise_for_failures()
    report = await OutputManager("/tmp/out").write(result)
"""

from modelsmith.scaffolder.generator import ProjectGenerator
from modelsmith.scaffolder.hooks import ExtensionEvent, ExtensionPoint, HookRegistry, PriorityChain
from modelsmith.scaffolder.output import OutputManager
from modelsmith.scaffolder.results import Artifact, ArtifactOrigin, GenerationResult, WriteOutcome, WriteReport
from modelsmith.scaffolder.templates import TemplateRenderer, TemplateResolver, render_source

__all__ = [
    "Artifact",
    "ArtifactOrigin",
    "ExtensionEvent",
    "ExtensionPoint",
    "GenerationResult",
    "HookRegistry",
    "OutputManager",
    "PriorityChain",
    "ProjectGenerator",
    "TemplateRenderer",
    "TemplateResolver",
    "WriteOutcome",
    "WriteReport",
    "render_source",
]
