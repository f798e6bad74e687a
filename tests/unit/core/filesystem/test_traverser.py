"""Tests for the concurrent directory traverser."""

from __future__ import annotations

import os
from collections.abc import Iterable
from pathlib import Path

import pytest

from devreclaim.core.cancellation import CancellationToken
from devreclaim.core.errors import InvalidRootError
from devreclaim.core.filesystem.filters import PathFilter
from devreclaim.core.filesystem.traverser import DirectoryTraverser, validate_root
from devreclaim.core.rules import CategoryGroup, Matcher, Rule, RuleRegistry, default_registry
from devreclaim.types.models import Candidate, CandidateState, WarningKind
from support import build_tree

PROJECT_TREE = {
    "web/package.json": "{}",
    "web/src/index.js": "export {}",
    "web/node_modules/left-pad/index.js": "module.exports = 1",
    "web/node_modules/nested/package.json": "{}",
    "web/node_modules/nested/node_modules/x/index.js": "",
    "crate/Cargo.toml": "[package]",
    "crate/target/debug/app": "binary",
    "docs/readme.md": "# docs",
    ".git/package.json": "{}",
    ".git/node_modules": None,
}

_is_root = hasattr(os, "geteuid") and os.geteuid() == 0


def _paths(candidates: Iterable[Candidate]) -> set[Path]:
    return {candidate.path for candidate in candidates}


@pytest.mark.unit
class TestDirectoryTraverser:
    """Test candidate discovery."""

    def test_finds_candidates(self, tmp_path: Path) -> None:
        """Test artifacts are found and classified."""
        root = build_tree(tmp_path, PROJECT_TREE).resolve()

        result = DirectoryTraverser(default_registry(), workers=4).scan([root])

        assert _paths(result.candidates) == {root / "web" / "node_modules", root / "crate" / "target"}
        assert all(candidate.state is CandidateState.CLASSIFIED for candidate in result.candidates)
        assert all(candidate.root == root for candidate in result.candidates)
        assert {candidate.category for candidate in result.candidates} == {"node-modules", "rust-target"}
        assert result.warnings == ()
        assert not result.cancelled

    def test_matched_subtree_is_pruned(self, tmp_path: Path) -> None:
        """Test nothing inside a pruning match is reported."""
        root = build_tree(tmp_path, PROJECT_TREE).resolve()

        result = DirectoryTraverser(default_registry()).scan([root])

        assert root / "web" / "node_modules" / "nested" / "node_modules" not in _paths(result.candidates)

    def test_default_excludes_skip_git(self, tmp_path: Path) -> None:
        """Test repository metadata is never walked."""
        root = build_tree(tmp_path, PROJECT_TREE).resolve()

        result = DirectoryTraverser(default_registry()).scan([root])

        assert not any(".git" in candidate.path.parts for candidate in result.candidates)

    def test_result_independent_of_worker_count(self, tmp_path: Path) -> None:
        """Test the candidate set does not depend on concurrency."""
        root = build_tree(tmp_path, PROJECT_TREE).resolve()
        registry = default_registry()

        single = DirectoryTraverser(registry, workers=1).scan([root])
        many = DirectoryTraverser(registry, workers=16).scan([root])

        assert _paths(single.candidates) == _paths(many.candidates)

    def test_non_pruning_rule_descends(self, tmp_path: Path) -> None:
        """Test candidates below a non-pruning match record their parent."""
        registry = RuleRegistry(
            [
                Rule("outer", CategoryGroup.PROJECTS, Matcher(names=("outer",)), prune=False),
                Rule("inner", CategoryGroup.PROJECTS, Matcher(names=("inner",))),
            ]
        )
        root = build_tree(tmp_path, {"outer/a/inner/file": "x"}).resolve()

        result = DirectoryTraverser(registry).scan([root])
        by_path = {candidate.path: candidate for candidate in result.candidates}

        assert set(by_path) == {root / "outer", root / "outer" / "a" / "inner"}
        assert by_path[root / "outer"].parent is None
        assert by_path[root / "outer" / "a" / "inner"].parent == root / "outer"

    def test_root_itself_is_candidate(self, tmp_path: Path) -> None:
        """Test a root that matches a pruning rule yields only itself."""
        _ = build_tree(tmp_path, {"app/package.json": "{}", "app/node_modules/pkg/node_modules": None})
        root = (tmp_path / "app" / "node_modules").resolve()

        candidates = list(DirectoryTraverser(default_registry()).walk(root))

        assert [candidate.path for candidate in candidates] == [root]

    def test_exclude_skips_subtree(self, tmp_path: Path) -> None:
        """Test excluded directories are neither classified nor entered."""
        root = build_tree(tmp_path, PROJECT_TREE).resolve()

        traverser = DirectoryTraverser(default_registry(), path_filter=PathFilter(exclude=["web"]))

        assert _paths(traverser.scan([root]).candidates) == {root / "crate" / "target"}

    def test_include_restricts_reported(self, tmp_path: Path) -> None:
        """Test include patterns limit which matches are reported."""
        root = build_tree(tmp_path, PROJECT_TREE).resolve()

        traverser = DirectoryTraverser(default_registry(), path_filter=PathFilter(include=["*/crate/*"]))

        assert _paths(traverser.scan([root]).candidates) == {root / "crate" / "target"}

    def test_overlapping_roots_reported_once(self, tmp_path: Path) -> None:
        """Test a candidate reachable from two roots appears once."""
        root = build_tree(tmp_path, PROJECT_TREE).resolve()

        result = DirectoryTraverser(default_registry()).scan([root, root / "web"])
        paths = [candidate.path for candidate in result.candidates]

        assert len(paths) == len(set(paths))
        assert result.roots == (root, root / "web")

    def test_walk_is_repeatable(self, tmp_path: Path) -> None:
        """Test iterating a walk twice repeats the traversal."""
        root = build_tree(tmp_path, PROJECT_TREE).resolve()
        walk = DirectoryTraverser(default_registry()).walk(root)

        assert _paths(walk) == _paths(walk)


@pytest.mark.unit
class TestTraverserRoots:
    """Test root validation."""

    def test_missing_root(self, tmp_path: Path) -> None:
        """Test a missing root is fatal."""
        with pytest.raises(InvalidRootError, match="does not exist"):
            _ = DirectoryTraverser(default_registry()).walk(tmp_path / "missing")

    def test_file_root(self, tmp_path: Path) -> None:
        """Test a file root is fatal."""
        _ = build_tree(tmp_path, {"file.txt": "x"})

        with pytest.raises(InvalidRootError, match="not a directory"):
            _ = validate_root(tmp_path / "file.txt")

    def test_all_roots_validated_before_walking(self, tmp_path: Path) -> None:
        """Test one bad root fails the whole request up front."""
        traverser = DirectoryTraverser(default_registry())

        with pytest.raises(InvalidRootError):
            _ = traverser.walks([tmp_path, tmp_path / "missing"])

    def test_root_expands_user(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test ``~`` is expanded."""
        monkeypatch.setenv("HOME", str(tmp_path))

        assert validate_root("~") == tmp_path.resolve()


@pytest.mark.unit
class TestTraverserSymlinks:
    """Test symlink policy."""

    def test_symlinks_not_followed_by_default(self, tmp_path: Path) -> None:
        """Test a symlinked directory is ignored without follow_symlinks."""
        base = build_tree(
            tmp_path,
            {"root/app/package.json": "{}", "elsewhere/package.json": "{}", "elsewhere/node_modules": None},
        ).resolve()
        root = base / "root"
        (root / "link").symlink_to(base / "elsewhere", target_is_directory=True)

        result = DirectoryTraverser(default_registry()).scan([root])

        assert result.candidates == ()
        assert result.warnings == ()

    def test_cycle_reported_once(self, tmp_path: Path) -> None:
        """Test a symlink back to the root ends with a cycle warning."""
        root = build_tree(tmp_path, {"app/package.json": "{}", "app/node_modules": None}).resolve()
        (root / "app" / "loop").symlink_to(root, target_is_directory=True)

        result = DirectoryTraverser(default_registry(), follow_symlinks=True).scan([root])

        assert _paths(result.candidates) == {root / "app" / "node_modules"}
        assert [warning.kind for warning in result.warnings] == [WarningKind.SYMLINK_CYCLE]

    def test_external_symlink_refused(self, tmp_path: Path) -> None:
        """Test a followed symlink may not leave the root unless allowed."""
        base = build_tree(
            tmp_path,
            {"root/readme": "", "outside/package.json": "{}", "outside/node_modules": None},
        ).resolve()
        root = base / "root"
        (root / "ext").symlink_to(base / "outside", target_is_directory=True)

        refused = DirectoryTraverser(default_registry(), follow_symlinks=True).scan([root])
        allowed = DirectoryTraverser(
            default_registry(), follow_symlinks=True, allow_external_symlinks=True
        ).scan([root])

        assert refused.candidates == ()
        assert [warning.kind for warning in refused.warnings] == [WarningKind.EXTERNAL_SYMLINK]
        assert _paths(allowed.candidates) == {root / "ext" / "node_modules"}


@pytest.mark.unit
class TestTraverserFailures:
    """Test warnings and cancellation."""

    @pytest.mark.skipif(_is_root, reason="root ignores directory permissions")
    def test_unreadable_directory_is_a_warning(self, tmp_path: Path) -> None:
        """Test a permission error skips the subtree and the walk continues."""
        root = build_tree(tmp_path, PROJECT_TREE).resolve()
        locked = root / "docs"
        locked.chmod(0o000)
        try:
            result = DirectoryTraverser(default_registry()).scan([root])
        finally:
            locked.chmod(0o755)

        assert _paths(result.candidates) == {root / "web" / "node_modules", root / "crate" / "target"}
        assert [(warning.path, warning.kind) for warning in result.warnings] == [
            (locked, WarningKind.PERMISSION_DENIED)
        ]

    @pytest.mark.skipif(_is_root, reason="root ignores directory permissions")
    def test_unreadable_marker_is_a_warning(self, tmp_path: Path) -> None:
        """Test a directory whose marker cannot be checked is reported and left unclassified."""
        root = build_tree(tmp_path, {"tool/.venv/pyvenv.cfg": "home = /usr/bin"}).resolve()
        locked = root / "tool" / ".venv"
        locked.chmod(0o000)
        try:
            result = DirectoryTraverser(default_registry()).scan([root])
        finally:
            locked.chmod(0o755)

        assert result.candidates == ()
        assert (locked, WarningKind.MARKER_UNREADABLE) in [(warning.path, warning.kind) for warning in result.warnings]

    def test_cancelled_before_start(self, tmp_path: Path) -> None:
        """Test a cancelled token yields a partial, flagged result."""
        root = build_tree(tmp_path, PROJECT_TREE).resolve()
        token = CancellationToken()
        token.cancel()

        result = DirectoryTraverser(default_registry(), cancellation=token).scan([root])

        assert result.candidates == ()
        assert result.cancelled

    def test_abandoned_walk_stops_pool(self, tmp_path: Path) -> None:
        """Test closing the iterator early shuts the workers down."""
        root = build_tree(tmp_path, PROJECT_TREE).resolve()
        walk = DirectoryTraverser(default_registry(), workers=2).walk(root)

        iterator = iter(walk)
        first = next(iterator)
        iterator.close()  # pyright: ignore[reportAttributeAccessIssue]

        assert first.path in {root / "web" / "node_modules", root / "crate" / "target"}
        assert walk.cancelled
