"""Extension hooks and the prioritized lookup chain.

Hooks let callers run custom logic at fixed points of a generation run:

- ``before-model`` / ``after-model``: once per model, around its templates
- ``before-project`` / ``after-project``: around the project-level templates

A hook is any callable taking an :class:`ExtensionEvent`.  It may add
artifacts and, at ``before-*`` points, contribute render context (visible to
templates under ``extensions``).  It can never modify or remove artifacts
that were already produced.

:class:`PriorityChain` is the single prioritized-lookup structure used both
here (hook order) and by the template resolver (search order).
"""

from __future__ import annotations

import itertools
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Generic, Iterator, Optional, TypeVar, Union

from modelsmith.errors import ExtensionError
from modelsmith.parser.models import Model, Schema
from modelsmith.scaffolder.results import Artifact, ArtifactOrigin

T = TypeVar("T")
R = TypeVar("R")


# ---------------------------------------------------------------------------
# Priority chain
# ---------------------------------------------------------------------------


class PriorityChain(Generic[T]):
    """An ordered collection: higher priority first, ties in insertion order."""

    def __init__(self) -> None:
        self._entries: list[tuple[int, int, str, T]] = []
        self._counter = itertools.count()

    def add(self, item: T, *, priority: int = 0, name: Optional[str] = None) -> None:
        seq = next(self._counter)
        self._entries.append((priority, seq, name or f"entry-{seq}", item))
        self._entries.sort(key=lambda entry: (-entry[0], entry[1]))

    def entries(self) -> list[tuple[str, T]]:
        """``(name, item)`` pairs in lookup order."""
        return [(name, item) for _, _, name, item in self._entries]

    def first(self, lookup: Callable[[T], Optional[R]]) -> Optional[tuple[str, R]]:
        """Return ``(name, result)`` for the first item whose *lookup* is not ``None``."""
        for _, _, name, item in self._entries:
            result = lookup(item)
            if result is not None:
                return name, result
        return None

    def __iter__(self) -> Iterator[T]:
        return (item for _, _, _, item in self._entries)

    def __len__(self) -> int:
        return len(self._entries)


# ---------------------------------------------------------------------------
# Extension points / events
# ---------------------------------------------------------------------------


class ExtensionPoint(str, Enum):
    BEFORE_MODEL = "before-model"
    AFTER_MODEL = "after-model"
    BEFORE_PROJECT = "before-project"
    AFTER_PROJECT = "after-project"

    @property
    def is_before(self) -> bool:
        return self.value.startswith("before-")


@dataclass
class ExtensionEvent:
    """What a hook sees when it is invoked.

    Attributes:
        point: The extension point being run.
        schema: The validated (read-only) schema.
        model: The model being generated (model-level points only).
        artifacts: Artifacts produced so far for this scope (read-only).
        added: Artifacts contributed by hooks during this event.
        context: Render context contributed by hooks during this event.
    """

    point: ExtensionPoint
    schema: Schema
    model: Optional[Model] = None
    artifacts: tuple[Artifact, ...] = ()
    added: list[Artifact] = field(default_factory=list)
    context: dict[str, Any] = field(default_factory=dict)
    hook_name: str = ""

    def add_artifact(self, path: str, content: str, *, kind: str = "extension") -> Artifact:
        artifact = Artifact(
            path=path,
            content=content,
            template=f"hook:{self.hook_name}",
            origin=ArtifactOrigin.EXTENSION,
            kind=kind,
            model=self.model.name if self.model else None,
        )
        self.added.append(artifact)
        return artifact

    def add_context(self, key: str, value: Any) -> None:
        """Expose *value* to templates as ``extensions.<key>``."""
        if not self.point.is_before:
            raise ExtensionError(
                self.hook_name, self.point.value,
                "render context can only be contributed at before-* points",
            )
        self.context[key] = value


Hook = Callable[[ExtensionEvent], Any]


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


class HookRegistry:
    """Registers hooks per extension point and runs them in priority order."""

    def __init__(self) -> None:
        self._chains: dict[ExtensionPoint, PriorityChain[Hook]] = {
            point: PriorityChain() for point in ExtensionPoint
        }

    def register(
        self,
        point: Union[ExtensionPoint, str],
        hook: Hook,
        *,
        priority: int = 0,
        name: Optional[str] = None,
    ) -> None:
        point = ExtensionPoint(point)
        self._chains[point].add(hook, priority=priority, name=name or getattr(hook, "__name__", None))

    def hook(
        self, point: Union[ExtensionPoint, str], *, priority: int = 0, name: Optional[str] = None
    ) -> Callable[[Hook], Hook]:
        """Decorator form of :meth:`register`."""

        def decorator(func: Hook) -> Hook:
            self.register(point, func, priority=priority, name=name)
            return func

        return decorator

    def hooks_for(self, point: Union[ExtensionPoint, str]) -> list[str]:
        """Names of the hooks registered at *point*, in run order."""
        return [name for name, _ in self._chains[ExtensionPoint(point)].entries()]

    def run(self, event: ExtensionEvent) -> ExtensionEvent:
        """Run every hook for ``event.point``.

        The first failing hook stops the chain.

        Raises:
            ExtensionError: wrapping whatever the hook raised.
        """
        for name, hook in self._chains[event.point].entries():
            event.hook_name = name
            try:
                hook(event)
            except ExtensionError:
                raise
            except Exception as exc:
                raise ExtensionError(name, event.point.value, str(exc)) from exc
        return event

    def __len__(self) -> int:
        return sum(len(chain) for chain in self._chains.values())
