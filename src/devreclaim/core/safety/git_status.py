"""Git working-tree state read without a ``git`` executable.

Repository metadata is read with GitPython's pure-Python pieces only: the
gitdb object database for HEAD and its tree, the index parser, and the
config reader for remotes. Ignore rules are evaluated with ``pathspec``.
Nothing here spawns a ``git`` process.

Every failure to read repository metadata is raised as
:class:`VcsReadError` so the Safety Guard can fail closed.
"""

from __future__ import annotations

import hashlib
import logging
import os
import stat
from collections.abc import Iterator, Mapping
from pathlib import Path
from typing import NamedTuple

# GitPython looks for the executable on import; only its pure-Python readers are used here
_ = os.environ.setdefault("GIT_PYTHON_REFRESH", "quiet")

import git  # noqa: E402
import pathspec  # noqa: E402
from git.exc import GitError  # noqa: E402

from devreclaim.core.errors import VcsReadError  # noqa: E402

logger = logging.getLogger(__name__)

GIT_DIR = ".git"
GITIGNORE = ".gitignore"

_GITLINK_MODE = 0o160000
_SYMLINK_MODE = 0o120000

SHA256_DIGEST_SIZE = 32


class GitStatusReader:
    """VcsStatusReader reading git metadata directly."""

    def is_repo_root(self, path: Path) -> bool:
        # ``.git`` is a directory in a normal clone and a file in worktrees and submodules
        return (path / GIT_DIR).exists()

    def has_uncommitted_changes(self, repo_root: Path) -> bool:
        """Check for staged, unstaged or untracked (non-ignored) changes.

        Works on repositories without any commit yet, where everything staged
        or untracked counts as a change. Content filters (line-ending
        conversion, clean filters) are not applied, so a file they would
        normalise reads as modified.

        Raises:
            VcsReadError: If the repository cannot be read
        """
        try:
            with git.Repo(repo_root, odbt=git.GitDB) as repo:
                index = _index_entries(repo)
                change = _staged_change(repo, index) or _unstaged_change(repo_root, index)
                if change is None:
                    change = _untracked_change(repo_root, repo.git_dir, index)
        except (GitError, OSError, ValueError) as exc:
            raise VcsReadError(repo_root, f"{type(exc).__name__}: {exc}") from exc

        if change is not None:
            logger.debug("Working tree has uncommitted changes", extra={"repo": str(repo_root), "change": change})
        return change is not None

    def has_remote(self, repo_root: Path) -> bool:
        """Check whether any ``[remote "..."]`` section is configured.

        Raises:
            VcsReadError: If the repository configuration cannot be read
        """
        try:
            with git.Repo(repo_root, odbt=git.GitDB) as repo:
                return len(repo.remotes) > 0
        except (GitError, OSError, ValueError) as exc:
            raise VcsReadError(repo_root, f"{type(exc).__name__}: {exc}") from exc


class _Tracked(NamedTuple):
    """One stage-0 index entry, or a conflict marker."""

    binsha: bytes
    mode: int
    size: int = 0
    mtime: tuple[int, int] = (0, 0)

    @property
    def conflicted(self) -> bool:
        return self.mode < 0


def _index_entries(repo: git.Repo) -> dict[str, _Tracked]:
    entries: dict[str, _Tracked] = {}
    for (path, stage), entry in repo.index.entries.items():
        if stage != 0:
            entries[path] = _Tracked(b"", -1)
            continue
        entries[path] = _Tracked(entry.binsha, entry.mode, entry.size, entry.mtime)
    return entries


def _head_entries(repo: git.Repo) -> dict[str, tuple[bytes, int]]:
    if not repo.head.is_valid():
        return {}
    return {item.path: (item.binsha, item.mode) for item in repo.head.commit.tree.traverse() if item.type != "tree"}


def _staged_change(repo: git.Repo, index: Mapping[str, _Tracked]) -> str | None:
    head = _head_entries(repo)
    for path, entry in index.items():
        if head.get(path) != (entry.binsha, entry.mode):
            return f"staged {path}"
    for path in head.keys() - index.keys():
        return f"staged deletion {path}"
    return None


def _unstaged_change(repo_root: Path, index: Mapping[str, _Tracked]) -> str | None:
    for path, entry in index.items():
        if entry.mode == _GITLINK_MODE:
            continue
        if entry.conflicted:
            return f"conflict {path}"
        target = repo_root / path
        try:
            stat_result = os.lstat(target)
        except FileNotFoundError:
            return f"deleted {path}"
        if _mode_of(stat_result) != entry.mode:
            return f"mode changed {path}"
        if _stat_unchanged(stat_result, entry):
            continue
        if _object_id(target, stat_result, len(entry.binsha)) != entry.binsha:
            return f"modified {path}"
    return None


def _untracked_change(repo_root: Path, git_dir: str, index: Mapping[str, _Tracked]) -> str | None:
    ignores = _IgnoreRules(repo_root, Path(git_dir))
    for relative in _untracked_files(repo_root, index, ignores):
        return f"untracked {relative}"
    return None


def _mode_of(stat_result: os.stat_result) -> int:
    if stat.S_ISLNK(stat_result.st_mode):
        return _SYMLINK_MODE
    if stat_result.st_mode & stat.S_IXUSR:
        return 0o100755
    return 0o100644


def _stat_unchanged(stat_result: os.stat_result, entry: _Tracked) -> bool:
    # The index keeps the low 32 bits of the size
    if stat_result.st_size & 0xFFFFFFFF != entry.size:
        return False
    seconds, nanoseconds = divmod(stat_result.st_mtime_ns, 1_000_000_000)
    return (seconds & 0xFFFFFFFF, nanoseconds) == entry.mtime


def _object_id(path: Path, stat_result: os.stat_result, digest_size: int) -> bytes:
    """Blob object id of a working-tree file, the way git hashes it."""
    if stat.S_ISLNK(stat_result.st_mode):
        content = os.fsencode(os.readlink(path))
    else:
        content = path.read_bytes()
    digest = hashlib.sha256() if digest_size == SHA256_DIGEST_SIZE else hashlib.sha1()
    digest.update(b"blob %d\0" % len(content))
    digest.update(content)
    return digest.digest()


class _IgnoreRules:
    """``.gitignore`` files per directory plus ``info/exclude``."""

    def __init__(self, repo_root: Path, git_dir: Path) -> None:
        self.repo_root: Path = repo_root
        self._specs: dict[str, pathspec.PathSpec] = {}
        root_lines = _read_lines(git_dir / "info" / "exclude") + _read_lines(repo_root / GITIGNORE)
        if root_lines:
            self._specs[""] = pathspec.GitIgnoreSpec.from_lines(root_lines)

    def load(self, relative_dir: str) -> None:
        if relative_dir == "":
            return
        lines = _read_lines(self.repo_root / relative_dir / GITIGNORE)
        if lines:
            self._specs[relative_dir] = pathspec.GitIgnoreSpec.from_lines(lines)

    def ignored(self, relative: str, *, is_dir: bool) -> bool:
        """Decide with the deepest ``.gitignore`` holding a matching pattern."""
        candidate = f"{relative}/" if is_dir else relative
        # Specs are loaded top-down, so reversed order visits deeper directories first
        for base, spec in reversed(self._specs.items()):
            if base == "":
                result = spec.check_file(candidate)
            elif candidate.startswith(f"{base}/"):
                result = spec.check_file(candidate[len(base) + 1 :])
            else:
                continue
            if result.include is not None:
                return result.include
        return False


def _read_lines(path: Path) -> list[str]:
    try:
        return path.read_text(encoding="utf-8", errors="surrogateescape").splitlines()
    except FileNotFoundError:
        return []


def _untracked_files(repo_root: Path, index: Mapping[str, _Tracked], ignores: _IgnoreRules) -> Iterator[str]:
    def fail(error: OSError) -> None:
        raise error

    for directory, dirnames, filenames in os.walk(repo_root, onerror=fail):
        relative_dir = Path(directory).relative_to(repo_root).as_posix()
        relative_dir = "" if relative_dir == "." else relative_dir
        ignores.load(relative_dir)

        kept: list[str] = []
        for name in dirnames:
            relative = f"{relative_dir}/{name}" if relative_dir else name
            if name == GIT_DIR or relative in index:
                continue
            if os.path.islink(os.path.join(directory, name)):
                filenames.append(name)
                continue
            if ignores.ignored(relative, is_dir=True):
                continue
            if os.path.lexists(os.path.join(directory, name, GIT_DIR)):
                # Nested repository that is not a submodule
                yield f"{relative}/"
                continue
            kept.append(name)
        dirnames[:] = kept

        for name in filenames:
            relative = f"{relative_dir}/{name}" if relative_dir else name
            if name == GIT_DIR or relative in index:
                continue
            if not ignores.ignored(relative, is_dir=False):
                yield relative
