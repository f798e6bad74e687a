"""Safety Guard: decide whether a candidate may be deleted.

Checks, strongest first:

1. The path is, or is inside, a ``.git`` directory: protected, never overridable.
2. The path equals or contains a deny-listed path (home directory, filesystem
   root, user configured paths), or lies inside the running interpreter's
   install prefix: protected, never overridable.
3. The enclosing working tree, or any repository found below the path, has
   uncommitted changes: protected, overridable.
4. The path is itself a repository root, or contains one, with no remote:
   protected, overridable.
5. Something below the path changed more recently than the minimum age:
   protected, overridable.

Version-control state that cannot be read, including a subtree that cannot
be listed while looking for nested repositories, fails closed as
``vcs-unreadable`` (overridable).
"""

from __future__ import annotations

import logging
import os
import sys
import threading
import time
from collections.abc import Callable, Iterable
from datetime import timedelta
from pathlib import Path

from devreclaim.core.safety.git_status import GIT_DIR
from devreclaim.types.models import Candidate, CandidateState, Protection, ProtectionReason
from devreclaim.types.protocols import VcsStatusReader
from devreclaim.utils.formatting import format_duration

logger = logging.getLogger(__name__)


def default_deny_paths() -> tuple[Path, ...]:
    """Home directory and filesystem root."""
    home = Path.home().resolve()
    return (home, Path(home.anchor))


def interpreter_prefixes() -> tuple[Path, ...]:
    """Install prefixes of the running interpreter."""
    prefixes = {Path(prefix).resolve() for prefix in (sys.prefix, sys.base_prefix, sys.exec_prefix)}
    return tuple(sorted(prefixes))


class SafetyGuard:
    """Annotates candidates with a Protection verdict.

    Repository lookups are cached per path for the lifetime of the guard,
    so a tree with thousands of candidates reads each repository once.
    The guard is safe to share between threads.
    """

    def __init__(
        self,
        reader: VcsStatusReader,
        *,
        deny_paths: Iterable[Path] = (),
        include_default_denies: bool = True,
        min_age: timedelta | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the guard.

        Args:
            reader: Version-control state reader
            deny_paths: Extra paths that must never be deleted or contain a deletion
            include_default_denies: Also deny home, filesystem root and interpreter prefixes
            min_age: Protect paths with anything modified more recently than this
            clock: Current time in seconds since the epoch
        """
        self.reader: VcsStatusReader = reader
        self.min_age: timedelta | None = min_age if min_age else None
        self.clock: Callable[[], float] = clock
        denied = [Path(os.path.abspath(path.expanduser())) for path in deny_paths]
        self.protected_prefixes: tuple[Path, ...] = ()
        if include_default_denies:
            denied.extend(default_deny_paths())
            self.protected_prefixes = interpreter_prefixes()
            denied.extend(self.protected_prefixes)
        self.deny_paths: tuple[Path, ...] = tuple(dict.fromkeys(denied))

        self._lock: threading.Lock = threading.Lock()
        self._repo_roots: dict[Path, bool] = {}
        self._dirty: dict[Path, bool] = {}
        self._remotes: dict[Path, bool] = {}

    def check(self, candidate: Candidate) -> Candidate:
        """Return the ``safety-checked`` snapshot of a classified candidate.

        Raises:
            LifecycleError: If the candidate is not classified
        """
        candidate.require(CandidateState.CLASSIFIED)
        protection = self.evaluate(candidate.path)
        if protection.is_protected:
            logger.info(
                "Candidate protected",
                extra={
                    "path": str(candidate.path),
                    "category": candidate.category,
                    "reason": protection.reason.value if protection.reason else None,
                    "overridable": protection.overridable,
                },
            )
        return candidate.advance(CandidateState.SAFETY_CHECKED, protection=protection)

    def check_all(self, candidates: Iterable[Candidate]) -> list[Candidate]:
        return [self.check(candidate) for candidate in candidates]

    def evaluate(self, path: Path) -> Protection:
        """Decide whether ``path`` may be deleted."""
        path = Path(os.path.abspath(path))

        if GIT_DIR in path.parts:
            return Protection.protected(
                ProtectionReason.GIT_METADATA,
                overridable=False,
                detail="Path is repository metadata",
            )

        denied = self._denied_by(path)
        if denied is not None:
            return Protection.protected(
                ProtectionReason.DENY_LISTED,
                overridable=False,
                detail=f"Protected location {denied}",
            )

        try:
            repo_root = self._enclosing_repository(path)
            if repo_root is not None:
                protection = self._repository_protection(repo_root, check_remote=repo_root == path)
                if protection is not None:
                    return protection
            nested, newest = self._survey(path)
            for nested_root in nested:
                protection = self._repository_protection(nested_root, check_remote=True)
                if protection is not None:
                    return protection
        except Exception as exc:
            # Any reader failure is a protection, never an approval
            logger.warning(
                "Cannot read repository state, protecting path",
                extra={"path": str(path), "error": str(exc), "error_type": type(exc).__name__},
            )
            return Protection.protected(
                ProtectionReason.VCS_UNREADABLE,
                overridable=True,
                detail=str(exc),
            )

        if self.min_age is not None and newest is not None:
            age = self.clock() - newest
            if age < self.min_age.total_seconds():
                return Protection.protected(
                    ProtectionReason.RECENTLY_MODIFIED,
                    overridable=True,
                    detail=f"Modified {format_duration(max(age, 0.0))} ago",
                )

        return Protection.approved()

    def _repository_protection(self, repo_root: Path, *, check_remote: bool) -> Protection | None:
        if self._cached(self._dirty, repo_root, self.reader.has_uncommitted_changes):
            return Protection.protected(
                ProtectionReason.UNCOMMITTED_CHANGES,
                overridable=True,
                detail=f"Uncommitted changes in {repo_root}",
            )
        if check_remote and not self._cached(self._remotes, repo_root, self.reader.has_remote):
            return Protection.protected(
                ProtectionReason.NO_REMOTE,
                overridable=True,
                detail=f"Repository {repo_root} has no remote; its history exists only here",
            )
        return None

    def _survey(self, path: Path) -> tuple[list[Path], float | None]:
        """Find repositories below ``path`` and the newest modification time in it.

        Modification times are only collected when a minimum age is set.

        Raises:
            OSError: If a directory below ``path`` cannot be listed
        """
        nested: list[Path] = []
        newest: float | None = None

        def fail(error: OSError) -> None:
            if not isinstance(error, FileNotFoundError):
                raise error

        for directory, dirnames, filenames in os.walk(path, onerror=fail):
            current = Path(directory)
            if current != path and self.reader.is_repo_root(current):
                nested.append(current)
            if GIT_DIR in dirnames:
                dirnames.remove(GIT_DIR)
            if self.min_age is None:
                continue
            for name in (None, *filenames):
                try:
                    mtime = os.lstat(current if name is None else current / name).st_mtime
                except FileNotFoundError:
                    continue
                if newest is None or mtime > newest:
                    newest = mtime

        if nested:
            logger.debug(
                "Repositories found inside candidate",
                extra={"path": str(path), "repositories": [str(root) for root in nested]},
            )
        return nested, newest

    def _denied_by(self, path: Path) -> Path | None:
        for denied in self.deny_paths:
            if path == denied or path in denied.parents:
                return denied
        for prefix in self.protected_prefixes:
            if path.is_relative_to(prefix):
                return prefix
        return None

    def _enclosing_repository(self, path: Path) -> Path | None:
        for directory in (path, *path.parents):
            if self._cached(self._repo_roots, directory, self.reader.is_repo_root):
                return directory
        return None

    def _cached(self, cache: dict[Path, bool], key: Path, compute: Callable[[Path], bool]) -> bool:
        with self._lock:
            if key in cache:
                return cache[key]
        value = compute(key)
        with self._lock:
            cache[key] = value
        return value
