"""Concurrent directory traverser that classifies directories as it walks.

Every directory is classified against the rule registry while its parent is
being listed, before its own entries are read. A match on a pruning rule
emits one Candidate and the subtree is never entered; a match on a
non-pruning rule emits a Candidate and traversal continues beneath it.

Symlinks are not followed by default. When they are, each directory is
keyed by ``(st_dev, st_ino)`` in a per-walk visited set so cycles end the
descent; on platforms reporting no inode numbers the resolved real path is
checked against the ancestry of the directory being listed instead.
"""

from __future__ import annotations

import contextvars
import functools
import logging
import os
import queue
import threading
from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass
from pathlib import Path
from typing import Final

from devreclaim.core.cancellation import CancellationToken
from devreclaim.core.errors import InvalidRootError, WorkerPoolError
from devreclaim.core.filesystem.filters import PathFilter
from devreclaim.core.filesystem.workqueue import Submit, WorkQueue
from devreclaim.core.rules.models import ParentContext
from devreclaim.core.rules.registry import RuleRegistry
from devreclaim.types.aliases import PathInput
from devreclaim.types.models import Candidate, CandidateState, ScanResult, ScanWarning, WarningKind

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class _Directory:
    path: Path
    enclosing_candidate: Path | None


class _Done:
    __slots__ = ()


_DONE: Final[_Done] = _Done()


class _WalkState:
    """Mutable state shared by the workers of one walk."""

    def __init__(self, root: Path) -> None:
        self.root: Path = root
        self._lock: threading.Lock = threading.Lock()
        self._visited: set[tuple[int, int]] = set()
        self._visited_real: set[Path] = set()
        self._emitted: set[Path] = set()
        self._warnings: list[ScanWarning] = []

    def claim(self, path: Path, stat_result: os.stat_result, listing: Path) -> bool:
        """Record a directory as visited; False if it was reached before."""
        if stat_result.st_ino:
            key = (stat_result.st_dev, stat_result.st_ino)
            with self._lock:
                if key in self._visited:
                    return False
                self._visited.add(key)
                return True

        real = Path(os.path.realpath(path))
        listing_real = Path(os.path.realpath(listing))
        if real == listing_real or real in listing_real.parents:
            return False
        with self._lock:
            if real in self._visited_real:
                return False
            self._visited_real.add(real)
            return True

    def first_emission(self, path: Path) -> bool:
        with self._lock:
            if path in self._emitted:
                return False
            self._emitted.add(path)
            return True

    def warn(self, path: Path, kind: WarningKind, message: str) -> None:
        logger.debug("Skipping subtree", extra={"path": str(path), "kind": kind.value, "reason": message})
        with self._lock:
            self._warnings.append(ScanWarning(path=path, kind=kind, message=message))

    def marker_unreadable(self, directory: Path, error: OSError) -> None:
        self.warn(directory, WarningKind.MARKER_UNREADABLE, str(error))

    def warnings(self) -> tuple[ScanWarning, ...]:
        with self._lock:
            return tuple(self._warnings)


class TraversalWalk:
    """Lazy walk over one root.

    Iterating yields classified Candidates as workers find them. Each
    iteration is a fresh walk; ``warnings`` and ``cancelled`` describe the
    most recent one once it has been consumed or abandoned.
    """

    def __init__(self, traverser: DirectoryTraverser, root: Path) -> None:
        self.root: Path = root
        self.warnings: tuple[ScanWarning, ...] = ()
        self.cancelled: bool = False
        self._traverser: DirectoryTraverser = traverser

    def __iter__(self) -> Iterator[Candidate]:
        return self._traverser._iterate(self)  # pyright: ignore[reportPrivateUsage]


class DirectoryTraverser:
    """Walks directory trees concurrently and emits classified Candidates.

    Provides:
    - A bounded worker pool sharing one work queue
    - Pruning of matched subtrees
    - Include/exclude filtering
    - Symlink cycle and escape detection
    - Per-subtree warnings instead of failures for unreadable entries
    """

    def __init__(
        self,
        registry: RuleRegistry,
        *,
        workers: int | None = None,
        path_filter: PathFilter | None = None,
        follow_symlinks: bool = False,
        allow_external_symlinks: bool = False,
        cancellation: CancellationToken | None = None,
    ) -> None:
        """Initialize the traverser.

        Args:
            registry: Rules used to classify directories
            workers: Worker pool size, defaults to the I/O-bound default
            path_filter: Include/exclude patterns, defaults to the system excludes
            follow_symlinks: Whether to descend through symlinked directories
            allow_external_symlinks: Follow symlinks whose target lies outside the root
            cancellation: Shared cancellation token
        """
        self.registry: RuleRegistry = registry
        self.workers: int | None = workers
        self.path_filter: PathFilter = path_filter if path_filter is not None else PathFilter()
        self.follow_symlinks: bool = follow_symlinks
        self.allow_external_symlinks: bool = allow_external_symlinks
        self.cancellation: CancellationToken | None = cancellation

    def walk(self, root: PathInput) -> TraversalWalk:
        """Prepare a lazy walk over ``root``.

        Raises:
            InvalidRootError: If ``root`` does not exist or is not a directory
        """
        return TraversalWalk(self, validate_root(root))

    def walks(self, roots: Iterable[PathInput]) -> list[TraversalWalk]:
        """Prepare walks for several roots, validating all of them first."""
        resolved = [validate_root(root) for root in roots]
        return [TraversalWalk(self, root) for root in resolved]

    def scan(self, roots: Iterable[PathInput]) -> ScanResult:
        """Walk every root to completion and collect the results.

        Candidates reached from more than one root are reported once.
        """
        walks = self.walks(roots)
        candidates: list[Candidate] = []
        warnings: list[ScanWarning] = []
        seen: set[Path] = set()
        cancelled = False

        for walk in walks:
            for candidate in walk:
                if candidate.path in seen:
                    continue
                seen.add(candidate.path)
                candidates.append(candidate)
            warnings.extend(walk.warnings)
            cancelled = cancelled or walk.cancelled

        return ScanResult(
            roots=tuple(walk.root for walk in walks),
            candidates=tuple(candidates),
            warnings=tuple(warnings),
            cancelled=cancelled,
        )

    def _iterate(self, walk: TraversalWalk) -> Iterator[Candidate]:
        root = walk.root
        state = _WalkState(root)
        walk.warnings = ()
        walk.cancelled = False

        try:
            _ = state.claim(root, os.stat(root), root.parent)
        except OSError as exc:
            raise InvalidRootError(root, str(exc)) from exc

        seed = _Directory(root, None)
        rule = self.registry.match(root, ParentContext.for_path(root, root), state.marker_unreadable)
        if rule is not None:
            reported = self.path_filter.includes(root)
            if reported and state.first_emission(root):
                yield Candidate(path=root, rule=rule, root=root, state=CandidateState.CLASSIFIED)
            if rule.prune:
                logger.info("Scan root is itself a candidate", extra={"root": str(root), "category": rule.category})
                return
            seed = _Directory(root, root if reported else None)

        output: queue.Queue[Candidate | _Done] = queue.Queue()
        pool: WorkQueue[_Directory] = WorkQueue(
            functools.partial(self._visit, state, output.put),
            workers=self.workers,
            cancellation=self.cancellation,
            thread_name_prefix="devreclaim-walk",
        )
        pool.start([seed])

        failures: list[WorkerPoolError] = []

        def finish() -> None:
            try:
                pool.join()
            except WorkerPoolError as exc:
                failures.append(exc)
            finally:
                output.put(_DONE)

        finisher = threading.Thread(
            target=contextvars.copy_context().run,
            args=(finish,),
            name="devreclaim-walk-finisher",
            daemon=True,
        )
        finisher.start()

        emitted = 0
        exhausted = False
        try:
            while True:
                item = output.get()
                if isinstance(item, _Done):
                    break
                emitted += 1
                yield item
            exhausted = True
        finally:
            if not exhausted:
                pool.stop()
            finisher.join()
            walk.warnings = state.warnings()
            walk.cancelled = pool.cancelled
            logger.info(
                "Walk finished",
                extra={
                    "root": str(root),
                    "candidates": emitted,
                    "warnings": len(walk.warnings),
                    "cancelled": walk.cancelled,
                },
            )

        if failures:
            raise failures[0]

    def _visit(
        self,
        state: _WalkState,
        emit: Callable[[Candidate], None],
        directory: _Directory,
        submit: Submit[_Directory],
    ) -> None:
        try:
            with os.scandir(directory.path) as iterator:
                entries = list(iterator)
        except FileNotFoundError as exc:
            state.warn(directory.path, WarningKind.VANISHED, str(exc))
            return
        except PermissionError as exc:
            state.warn(directory.path, WarningKind.PERMISSION_DENIED, str(exc))
            return
        except OSError as exc:
            state.warn(directory.path, WarningKind.IO_ERROR, str(exc))
            return

        context = ParentContext(directory=directory.path, root=state.root)
        for entry in entries:
            child = Path(entry.path)
            stat_result = self._directory_stat(state, entry, child)
            if stat_result is None:
                continue
            if self.path_filter.excludes(child):
                continue
            if not state.claim(child, stat_result, directory.path):
                if entry.is_symlink():
                    state.warn(child, WarningKind.SYMLINK_CYCLE, "Directory already visited through another path")
                continue

            rule = self.registry.match(child, context, state.marker_unreadable)
            if rule is None:
                submit(_Directory(child, directory.enclosing_candidate))
                continue

            reported = self.path_filter.includes(child)
            if reported and state.first_emission(child):
                emit(
                    Candidate(
                        path=child,
                        rule=rule,
                        root=state.root,
                        state=CandidateState.CLASSIFIED,
                        parent=directory.enclosing_candidate,
                    )
                )
            if not rule.prune:
                submit(_Directory(child, child if reported else directory.enclosing_candidate))

    def _directory_stat(self, state: _WalkState, entry: os.DirEntry[str], child: Path) -> os.stat_result | None:
        """Stat a directory entry that should be descended into, None otherwise."""
        try:
            if entry.is_symlink():
                if not self.follow_symlinks or not entry.is_dir():
                    return None
                target = Path(os.path.realpath(child))
                if not self.allow_external_symlinks and not target.is_relative_to(state.root):
                    state.warn(child, WarningKind.EXTERNAL_SYMLINK, f"Target {target} is outside {state.root}")
                    return None
                return entry.stat()
            if not entry.is_dir(follow_symlinks=False):
                return None
            return entry.stat(follow_symlinks=False)
        except FileNotFoundError as exc:
            state.warn(child, WarningKind.VANISHED, str(exc))
        except PermissionError as exc:
            state.warn(child, WarningKind.PERMISSION_DENIED, str(exc))
        except OSError as exc:
            state.warn(child, WarningKind.IO_ERROR, str(exc))
        return None


def validate_root(root: PathInput) -> Path:
    """Resolve a scan root.

    Raises:
        InvalidRootError: If ``root`` does not exist or is not a directory
    """
    path = Path(root).expanduser()
    try:
        resolved = path.resolve(strict=True)
    except FileNotFoundError as exc:
        raise InvalidRootError(path, "does not exist") from exc
    except OSError as exc:
        raise InvalidRootError(path, str(exc)) from exc
    if not resolved.is_dir():
        raise InvalidRootError(path, "not a directory")
    return resolved
