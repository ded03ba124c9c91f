"""Committing artifacts to the target tree.

The output manager is the only component that touches the target directory.
A commit is all-or-nothing:

1. ``check``  -- duplicate or unsafe artifact paths are rejected before any
   filesystem access.
2. ``plan``   -- every artifact is assigned an outcome (created, overwritten,
   merged, skipped, unchanged) according to the conflict policy.
3. ``write``  -- changed files are staged in a temporary directory inside the
   target, then moved into place; files they replace are moved aside first.
   Any I/O error restores every moved file, so the prior state of the tree is
   left untouched.
"""

from __future__ import annotations

import asyncio
import os
import shutil
import tempfile
from collections import Counter
from pathlib import Path, PurePosixPath
from typing import Any, Optional, Sequence, Union

import yaml

from modelsmith.config import Config, ConflictPolicy
from modelsmith.errors import ArtifactConflictError, GenerationError, OutputError
from modelsmith.scaffolder.results import (
    Artifact,
    GenerationResult,
    PlannedWrite,
    WriteOutcome,
    WriteReport,
)
from modelsmith.utils import deep_merge, dump_document, load_document

_CHANGES = (WriteOutcome.CREATED, WriteOutcome.OVERWRITTEN, WriteOutcome.MERGED)
_STAGING_PREFIX = ".modelsmith-staging-"
_BACKUP_PREFIX = ".modelsmith-backup-"


def _safe_relative(path: str) -> str:
    """Normalise an artifact path, rejecting anything that escapes the root."""
    pure = PurePosixPath(path)
    if not path or "\\" in path or pure.is_absolute() or ".." in pure.parts or str(pure) == ".":
        raise OutputError(path, "artifact paths must be relative and stay inside the output root")
    return str(pure)


class OutputManager:
    """Writes artifacts under *root* according to a conflict policy."""

    def __init__(
        self,
        root: Union[str, Path],
        policy: Union[ConflictPolicy, str] = ConflictPolicy.OVERWRITE,
        *,
        config: Optional[Config] = None,
    ) -> None:
        self.root = Path(root)
        self.policy = ConflictPolicy(policy)
        self.config = config or Config(output_dir=self.root, conflict_policy=self.policy)

    @classmethod
    def from_config(cls, config: Config) -> "OutputManager":
        return cls(config.output_dir, config.conflict_policy, config=config)

    # -- Checks / planning -------------------------------------------------

    def check(self, artifacts: Sequence[Artifact]) -> None:
        """Reject unsafe paths and paths targeted by more than one artifact.

        Raises:
            OutputError: an artifact path is absolute or escapes the root.
            ArtifactConflictError: two artifacts share a path, or one
                artifact's path is a parent directory of another's.
        """
        paths = [_safe_relative(artifact.path) for artifact in artifacts]
        counts = Counter(paths)
        clashes = {path for path, count in counts.items() if count > 1}
        files = set(paths)
        for path in files:
            for parent in PurePosixPath(path).parents:
                if str(parent) in files:
                    clashes.update((path, str(parent)))
        if clashes:
            raise ArtifactConflictError(sorted(clashes))

    def plan(self, artifacts: Sequence[Artifact]) -> list[PlannedWrite]:
        """Decide the outcome for every artifact without writing anything."""
        self.check(artifacts)
        return [self._plan_one(artifact) for artifact in sorted(artifacts, key=lambda a: a.path)]

    def _plan_one(self, artifact: Artifact) -> PlannedWrite:
        path = _safe_relative(artifact.path)
        target = self.root / path
        if target.is_dir():
            raise OutputError(path, "a directory already exists at this path")
        if not target.exists():
            return PlannedWrite(path=path, outcome=WriteOutcome.CREATED, content=artifact.content)

        existing = self._read(target, path)
        if existing == artifact.content:
            return PlannedWrite(path=path, outcome=WriteOutcome.UNCHANGED, content=existing)
        if self.policy is ConflictPolicy.SKIP:
            return PlannedWrite(path=path, outcome=WriteOutcome.SKIPPED)
        if self.policy is ConflictPolicy.MERGE and self.config.is_mergeable(path):
            merged = self._merge(path, target.suffix, existing, artifact.content)
            if merged == existing:
                return PlannedWrite(path=path, outcome=WriteOutcome.UNCHANGED, content=existing)
            return PlannedWrite(path=path, outcome=WriteOutcome.MERGED, content=merged)
        return PlannedWrite(path=path, outcome=WriteOutcome.OVERWRITTEN, content=artifact.content)

    @staticmethod
    def _read(target: Path, path: str) -> str:
        try:
            return target.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise OutputError(path, f"cannot read existing file: {exc}") from exc

    @staticmethod
    def _merge(path: str, suffix: str, existing: str, incoming: str) -> str:
        """Structured merge: new values win, unrelated existing keys survive."""
        try:
            old = load_document(existing, suffix)
            new = load_document(incoming, suffix)
        except (ValueError, yaml.YAMLError) as exc:
            raise OutputError(path, f"cannot merge, not a valid document: {exc}") from exc
        if old is None:
            old = {}
        if not isinstance(old, dict) or not isinstance(new, dict):
            raise OutputError(path, "cannot merge, both documents must be mappings")
        return dump_document(deep_merge(old, new), suffix)

    # -- Commit ------------------------------------------------------------

    async def write(
        self,
        result: Union[GenerationResult, Sequence[Artifact]],
        *,
        dry_run: bool = False,
    ) -> WriteReport:
        """Plan and (unless *dry_run*) commit artifacts to the target tree.

        Raises:
            GenerationError: *result* recorded failures; nothing is written.
            ArtifactConflictError / OutputError: nothing (or, after a
                rollback, nothing new) is written.
        """
        if isinstance(result, GenerationResult):
            if not result.success:
                raise GenerationError(result.failures)
            artifacts: Sequence[Artifact] = result.artifacts
        else:
            artifacts = result

        entries = await asyncio.to_thread(self.plan, artifacts)
        if not dry_run:
            await asyncio.to_thread(self._commit, entries)
        return WriteReport(root=str(self.root.resolve()), dry_run=dry_run, entries=entries)

    def _commit(self, entries: list[PlannedWrite]) -> None:
        changes = [entry for entry in entries if entry.outcome in _CHANGES]
        if not changes:
            return

        created_dirs: list[Path] = []
        try:
            self._make_dirs(self.root, None, created_dirs)
            staging = Path(tempfile.mkdtemp(prefix=_STAGING_PREFIX, dir=self.root))
            backups = Path(tempfile.mkdtemp(prefix=_BACKUP_PREFIX, dir=self.root))
        except OSError as exc:
            self._remove_dirs(created_dirs)
            raise OutputError(str(self.root), f"cannot create output root or staging area: {exc}") from exc

        try:
            self._stage(staging, changes)
            self._apply(staging, backups, changes, created_dirs)
        except OutputError:
            shutil.rmtree(staging, ignore_errors=True)
            shutil.rmtree(backups, ignore_errors=True)
            self._remove_dirs(created_dirs)
            raise
        finally:
            shutil.rmtree(staging, ignore_errors=True)
            shutil.rmtree(backups, ignore_errors=True)

    def _stage(self, staging: Path, changes: list[PlannedWrite]) -> None:
        for entry in changes:
            staged = staging / entry.path
            try:
                staged.parent.mkdir(parents=True, exist_ok=True)
                staged.write_text(entry.content, encoding="utf-8")
            except OSError as exc:
                raise OutputError(entry.path, f"staging failed, nothing was written: {exc}") from exc

    def _apply(
        self,
        staging: Path,
        backups: Path,
        changes: list[PlannedWrite],
        created_dirs: list[Path],
    ) -> None:
        applied: list[tuple[Path, Optional[Path]]] = []
        for entry in changes:
            target = self.root / entry.path
            try:
                self._make_dirs(target.parent, self.root, created_dirs)
                backup: Optional[Path] = None
                if target.exists():
                    backup = backups / entry.path
                    backup.parent.mkdir(parents=True, exist_ok=True)
                    os.replace(target, backup)
                applied.append((target, backup))
                os.replace(staging / entry.path, target)
            except OSError as exc:
                self._rollback(applied)
                raise OutputError(entry.path, f"write failed, previous state restored: {exc}") from exc

    @staticmethod
    def _rollback(applied: list[tuple[Path, Optional[Path]]]) -> None:
        for target, backup in reversed(applied):
            if target.exists():
                target.unlink()
            if backup is not None and backup.exists():
                os.replace(backup, target)

    @staticmethod
    def _make_dirs(directory: Path, stop: Optional[Path], created: list[Path]) -> None:
        """Create *directory* and missing parents, appending each to *created* as it is made."""
        missing: list[Path] = []
        current = directory
        while not current.exists() and current != stop and current != current.parent:
            missing.append(current)
            current = current.parent
        for path in reversed(missing):
            path.mkdir()
            created.append(path)

    @staticmethod
    def _remove_dirs(created: list[Path]) -> None:
        for directory in reversed(created):
            try:
                directory.rmdir()
            except OSError:
                # Not empty: something else lives there now.
                continue


def summarize(report: WriteReport) -> dict[str, Any]:
    """Key/value rows for the CLI summary table."""
    rows: dict[str, Any] = {"Output": report.root}
    for outcome, count in report.counts().items():
        if count:
            rows[outcome.capitalize()] = count
    if report.dry_run:
        rows["Mode"] = "dry run (nothing written)"
    return rows
