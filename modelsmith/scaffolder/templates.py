"""Template resolution and Jinja2 rendering.

Templates are addressed by logical identifiers such as
``express/model/mongodb``, which map to ``<dir>/express/model/mongodb.j2``.
:class:`TemplateResolver` searches a user override directory before the
built-in ``templates/`` directory shipped with this package, and caches what
it finds so that concurrent renders always observe the same source.

:class:`TemplateRenderer` wraps a Jinja2 environment whose loader *is* the
resolver (so ``{% include %}`` partials are overridable as well) and renders
with a strict undefined type: referencing a context path that does not exist
is an error naming the template and the full dotted path, never an empty
string.
"""

from __future__ import annotations

import functools
import json
import threading
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Any, Callable, Iterator, Optional

from jinja2 import BaseLoader, Environment, StrictUndefined, TemplateNotFound
from jinja2.exceptions import TemplateError as JinjaTemplateError
from jinja2.exceptions import TemplateSyntaxError, UndefinedError
from jinja2.utils import missing

from modelsmith.errors import TemplateError
from modelsmith.scaffolder.hooks import PriorityChain
from modelsmith.scaffolder.results import ArtifactOrigin
from modelsmith.utils import camel_case, kebab_case, pascal_case, pluralize, snake_case


# ---------------------------------------------------------------------------
# Template directory discovery
# ---------------------------------------------------------------------------

BUILTIN_TEMPLATE_DIR = Path(__file__).parent / "templates"
TEMPLATE_SUFFIX = ".j2"

OVERRIDE_PRIORITY = 100
BUILTIN_PRIORITY = 0


def _identifier_path(identifier: str) -> str:
    """Validate *identifier* and return its relative template file path."""
    name = identifier[: -len(TEMPLATE_SUFFIX)] if identifier.endswith(TEMPLATE_SUFFIX) else identifier
    pure = PurePosixPath(name)
    if not name or pure.is_absolute() or ".." in pure.parts or "\\" in name:
        raise TemplateError(identifier, "invalid template identifier")
    return str(pure) + TEMPLATE_SUFFIX


# ---------------------------------------------------------------------------
# TemplateResolver
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ResolvedTemplate:
    """Template source found for an identifier, and where it came from."""

    identifier: str
    source: str
    origin: ArtifactOrigin
    filename: str


class TemplateResolver:
    """Maps logical identifiers to template sources.

    Search order is a :class:`PriorityChain` of directories: the override
    directory (if any) first, then the built-in templates.  Each identifier
    is resolved at most once; the result is cached for the resolver's
    lifetime.
    """

    def __init__(
        self,
        override_dir: str | Path | None = None,
        *,
        builtin_dir: str | Path = BUILTIN_TEMPLATE_DIR,
    ) -> None:
        self.chain: PriorityChain[Path] = PriorityChain()
        self.chain.add(Path(builtin_dir), priority=BUILTIN_PRIORITY, name=ArtifactOrigin.BUILTIN.value)
        if override_dir is not None:
            self.chain.add(Path(override_dir), priority=OVERRIDE_PRIORITY, name=ArtifactOrigin.OVERRIDE.value)
        self._cache: dict[str, ResolvedTemplate] = {}
        self._lock = threading.Lock()

    @property
    def search_dirs(self) -> list[str]:
        """Searched directories, in lookup order."""
        return [str(directory) for directory in self.chain]

    def resolve(self, identifier: str) -> ResolvedTemplate:
        """Return the (cached) template for *identifier*.

        Raises:
            TemplateError: no directory in the chain provides the identifier.
        """
        cached = self._cache.get(identifier)
        if cached is not None:
            return cached
        with self._lock:
            cached = self._cache.get(identifier)
            if cached is None:
                cached = self._load(identifier)
                self._cache[identifier] = cached
            return cached

    def list_templates(self, prefix: str = "") -> list[str]:
        """Sorted identifiers available under *prefix* across every directory."""
        found: set[str] = set()
        for directory in self.chain:
            search_dir = directory / prefix if prefix else directory
            if not search_dir.is_dir():
                continue
            for path in search_dir.rglob(f"*{TEMPLATE_SUFFIX}"):
                found.add(path.relative_to(directory).as_posix()[: -len(TEMPLATE_SUFFIX)])
        return sorted(found)

    def _load(self, identifier: str) -> ResolvedTemplate:
        relative = _identifier_path(identifier)

        def locate(directory: Path) -> Optional[Path]:
            candidate = directory / relative
            return candidate if candidate.is_file() else None

        found = self.chain.first(locate)
        if found is None:
            raise TemplateError(
                identifier,
                f"not found (searched: {', '.join(self.search_dirs)})",
                searched=self.search_dirs,
            )
        origin, path = found
        try:
            source = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise TemplateError(identifier, f"cannot read {path}: {exc}") from exc
        return ResolvedTemplate(identifier, source, ArtifactOrigin(origin), str(path))


class _ResolverLoader(BaseLoader):
    """Jinja2 loader that delegates every lookup (includes too) to a resolver."""

    def __init__(self, resolver: TemplateResolver) -> None:
        self.resolver = resolver

    def get_source(self, environment: Environment, template: str) -> tuple[str, str, Callable[[], bool]]:
        try:
            resolved = self.resolver.resolve(template)
        except TemplateError as exc:
            raise TemplateNotFound(template) from exc
        return resolved.source, resolved.filename, lambda: True

    def list_templates(self) -> list[str]:
        return self.resolver.list_templates()


# ---------------------------------------------------------------------------
# Render contexts
# ---------------------------------------------------------------------------


def _wrap(value: Any, path: str) -> Any:
    if isinstance(value, ContextView):
        return value
    if isinstance(value, dict):
        return ContextView(value, path)
    if isinstance(value, (list, tuple)):
        return tuple(_wrap(item, f"{path}[{index}]") for index, item in enumerate(value))
    return value


class ContextView:
    """Read-only, path-aware view over a render context mapping.

    Keys are reachable both as attributes (``model.name``) and items
    (``model["name"]``).  The view deliberately has no public methods so that
    a key such as ``values`` or ``items`` always means the data.
    """

    __slots__ = ("_data", "_path")

    def __init__(self, data: dict[str, Any], path: str = "") -> None:
        object.__setattr__(self, "_data", data)
        object.__setattr__(self, "_path", path)

    def _child_path(self, key: Any) -> str:
        return f"{self._path}.{key}" if self._path else str(key)

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)
        try:
            return self[name]
        except KeyError:
            raise AttributeError(name) from None

    def __getitem__(self, key: Any) -> Any:
        return _wrap(self._data[key], self._child_path(key))

    def __setattr__(self, name: str, value: Any) -> None:
        raise TypeError("render context is read-only")

    def __contains__(self, key: Any) -> bool:
        return key in self._data

    def __iter__(self) -> Iterator[Any]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __bool__(self) -> bool:
        return bool(self._data)

    def __repr__(self) -> str:
        return f"ContextView({self._path or '<root>'})"


class UndefinedPathError(UndefinedError):
    """Raised when a template references a context path that does not exist."""

    def __init__(self, message: Optional[str] = None, *, path: str = "") -> None:
        super().__init__(message)
        self.path = path


def _dotted_path(obj: Any, name: Optional[str]) -> str:
    if obj is missing:
        return name or "<unknown>"
    if isinstance(obj, ContextView):
        return obj._child_path(name)
    return f"<{type(obj).__name__}>.{name}"


class _ContextUndefined(StrictUndefined):
    """StrictUndefined that knows the full dotted path it stands for."""

    __slots__ = ()

    def __init__(self, hint: Optional[str] = None, obj: Any = missing, name: Optional[str] = None,
                 exc: type = UndefinedError) -> None:
        path = _dotted_path(obj, name)
        super().__init__(hint, obj, name, functools.partial(UndefinedPathError, path=path))

    @property
    def _undefined_message(self) -> str:
        if self._undefined_hint:
            return self._undefined_hint
        return f"'{_dotted_path(self._undefined_obj, self._undefined_name)}' is undefined"


# ---------------------------------------------------------------------------
# TemplateRenderer
# ---------------------------------------------------------------------------


class TemplateRenderer:
    """Renders resolved templates against read-only contexts.

    Rendering is a pure function of (template source, context): no clock,
    randomness or filesystem ordering leaks into the output.
    """

    def __init__(self, resolver: Optional[TemplateResolver] = None) -> None:
        self.resolver = resolver or TemplateResolver()
        self.env = Environment(
            loader=_ResolverLoader(self.resolver),
            undefined=_ContextUndefined,
            autoescape=False,
            keep_trailing_newline=True,
            trim_blocks=True,
            lstrip_blocks=True,
        )
        self.env.filters["snake_case"] = snake_case
        self.env.filters["camel_case"] = camel_case
        self.env.filters["pascal_case"] = pascal_case
        self.env.filters["kebab_case"] = kebab_case
        self.env.filters["plural"] = pluralize
        self.env.filters["indent_body"] = _indent_body_filter
        self.env.filters["literal"] = _literal_filter

    # -- Single template rendering -----------------------------------------

    def render(self, identifier: str, context: dict[str, Any]) -> str:
        """Resolve *identifier* and render it with *context*.

        Raises:
            TemplateError: unresolvable identifier (or include), syntax
                error, or reference to an undefined context path.
        """
        self.resolver.resolve(identifier)
        return self._render(identifier, context, lambda: self.env.get_template(identifier))

    def render_string(self, source: str, context: dict[str, Any], *, identifier: str = "<string>") -> str:
        """Render an inline template string with the same filters and strictness."""
        return self._render(identifier, context, lambda: self.env.from_string(source))

    def origin(self, identifier: str) -> ArtifactOrigin:
        return self.resolver.resolve(identifier).origin

    def _render(self, identifier: str, context: dict[str, Any], load: Callable[[], Any]) -> str:
        variables = {key: _wrap(value, key) for key, value in context.items()}
        try:
            return load().render(**variables)
        except UndefinedPathError as exc:
            raise TemplateError(identifier, f"undefined context path '{exc.path}'", path=exc.path) from exc
        except TemplateNotFound as exc:
            raise TemplateError(
                identifier,
                f"included template '{exc.name}' not found",
                searched=self.resolver.search_dirs,
            ) from exc
        except TemplateSyntaxError as exc:
            raise TemplateError(identifier, f"syntax error on line {exc.lineno}: {exc.message}") from exc
        except JinjaTemplateError as exc:
            raise TemplateError(identifier, str(exc)) from exc
        except Exception as exc:
            # Plain Python errors raised by template code.
            raise TemplateError(identifier, f"{type(exc).__name__}: {exc}") from exc


@functools.lru_cache(maxsize=1)
def _default_renderer() -> TemplateRenderer:
    return TemplateRenderer()


def render_source(source: str, context: dict[str, Any]) -> str:
    """Render template *source* against *context* (pure function form)."""
    return _default_renderer().render_string(source, context)


# ---------------------------------------------------------------------------
# Jinja2 custom filters
# ---------------------------------------------------------------------------

def _indent_body_filter(value: str, width: int = 4, first: bool = True) -> str:
    """Indent every non-blank line of an opaque body by *width* spaces.

    Line content is never changed; only the final line terminator is dropped
    so the template controls what follows the body.
    """
    pad = " " * width
    lines = str(value).splitlines()
    out = [
        (pad + line if line.strip() and (first or index) else line)
        for index, line in enumerate(lines)
    ]
    return "\n".join(out)


def _literal_filter(value: Any) -> str:
    """Render a scalar (or list of scalars) as a JSON / TypeScript literal."""
    if isinstance(value, tuple):
        value = list(value)
    return json.dumps(value, ensure_ascii=False)
