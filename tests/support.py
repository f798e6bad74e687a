"""Helpers shared by the test modules: tree builders and capability doubles."""

from __future__ import annotations

import os
import shutil
import time
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path

from devreclaim.core.errors import RemovalError, TrashUnavailableError, VcsReadError
from devreclaim.core.rules import CategoryGroup, Marker, Matcher, Rule
from devreclaim.types.models import Candidate, CandidateState, Protection

# ``None`` creates a directory, a string creates a file with that content
type TreeSpec = Mapping[str, str | None]

NODE_RULE = Rule(
    category="node-modules",
    group=CategoryGroup.PROJECTS,
    matcher=Matcher(names=("node_modules",), markers=(Marker("package.json"),)),
)

# Older than any minimum age the tests configure
SETTLED = timedelta(days=30)


def build_tree(base: Path, spec: TreeSpec, *, age: timedelta | None = SETTLED) -> Path:
    """Create files and directories below ``base`` from a flat mapping.

    Everything below ``base`` is backdated by ``age`` so it looks like long
    finished build output; pass ``None`` to keep fresh timestamps.
    """
    for relative, content in spec.items():
        target = base / relative
        if content is None:
            target.mkdir(parents=True, exist_ok=True)
        else:
            target.parent.mkdir(parents=True, exist_ok=True)
            _ = target.write_text(content)
    if age is not None:
        backdate(base, age)
    return base


def backdate(base: Path, age: timedelta) -> None:
    """Move every modification time below ``base`` ``age`` into the past."""
    stamp = time.time() - age.total_seconds()
    for directory, _, filenames in os.walk(base):
        for name in filenames:
            os.utime(os.path.join(directory, name), (stamp, stamp), follow_symlinks=False)
        os.utime(directory, (stamp, stamp))


def make_candidate(
    path: Path,
    *,
    rule: Rule = NODE_RULE,
    state: CandidateState = CandidateState.SIZED,
    size: int | None = 0,
    protection: Protection | None = None,
    root: Path | None = None,
) -> Candidate:
    """Build a candidate snapshot directly in ``state``."""
    if protection is None and state >= CandidateState.SAFETY_CHECKED:
        protection = Protection.approved()
    return Candidate(
        path=path,
        rule=rule,
        root=root if root is not None else path.parent,
        state=state,
        size=size if state >= CandidateState.SIZED else None,
        protection=protection,
    )


@dataclass
class FakeRepository:
    """Version-control state reported by :class:`FakeVcsReader`."""

    dirty: bool = False
    remote: bool = True
    broken: bool = False


@dataclass
class FakeVcsReader:
    """VcsStatusReader double keyed by repository root."""

    repositories: dict[Path, FakeRepository] = field(default_factory=dict)
    calls: list[tuple[str, Path]] = field(default_factory=list)

    def is_repo_root(self, path: Path) -> bool:
        return path in self.repositories

    def has_uncommitted_changes(self, repo_root: Path) -> bool:
        self.calls.append(("dirty", repo_root))
        repository = self.repositories[repo_root]
        if repository.broken:
            raise VcsReadError(repo_root, "corrupt index")
        return repository.dirty

    def has_remote(self, repo_root: Path) -> bool:
        self.calls.append(("remote", repo_root))
        return self.repositories[repo_root].remote


@dataclass
class FakeRemover:
    """RemovalCapability double that really deletes, unless told to fail."""

    trash_available: bool = True
    failing: set[Path] = field(default_factory=set)
    crashing: set[Path] = field(default_factory=set)
    trashed: list[Path] = field(default_factory=list)
    deleted: list[Path] = field(default_factory=list)

    def move_to_recoverable(self, path: Path) -> None:
        if not self.trash_available:
            raise TrashUnavailableError(path, "no trash on this volume")
        self._remove(path)
        self.trashed.append(path)

    def remove_permanently(self, path: Path) -> None:
        self._remove(path)
        self.deleted.append(path)

    def _remove(self, path: Path) -> None:
        if path in self.failing:
            raise RemovalError(path, "Permission denied")
        if path in self.crashing:
            raise RuntimeError("trash binding crashed")
        if path.is_dir() and not path.is_symlink():
            shutil.rmtree(path)
        elif path.exists() or path.is_symlink():
            path.unlink()
