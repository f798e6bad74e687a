"""Size accounting for candidate subtrees."""

from __future__ import annotations

import functools
import logging
import os
import stat
import threading
from collections.abc import Iterable
from enum import Enum
from pathlib import Path

from devreclaim.core.cancellation import CancellationToken
from devreclaim.core.filesystem.workqueue import Submit, WorkQueue
from devreclaim.types.aliases import WarningCallback
from devreclaim.types.models import Candidate, CandidateState, Measurement, ScanWarning, WarningKind

logger = logging.getLogger(__name__)

BLOCK_SIZE = 512


class SizeMode(str, Enum):
    """Enumeration for size calculation modes."""

    APPARENT = "apparent"  # Apparent size (file content size)
    DISK_USAGE = "disk_usage"  # Allocated blocks


class _Tally:
    """Running totals for one measurement."""

    def __init__(self) -> None:
        self.total_bytes: int = 0
        self.file_count: int = 0
        self.warnings: list[ScanWarning] = []
        self._inodes: set[tuple[int, int]] = set()
        self._lock: threading.Lock = threading.Lock()

    def first_link(self, stat_result: os.stat_result) -> bool:
        key = (stat_result.st_dev, stat_result.st_ino)
        with self._lock:
            if key in self._inodes:
                return False
            self._inodes.add(key)
            return True

    def add(self, total_bytes: int, file_count: int) -> None:
        with self._lock:
            self.total_bytes += total_bytes
            self.file_count += file_count

    def warn(self, path: Path, kind: WarningKind, message: str) -> None:
        with self._lock:
            self.warnings.append(ScanWarning(path=path, kind=kind, message=message))


class SizeAggregator:
    """Measures the bytes a candidate occupies.

    Provides:
    - Regular files only; symlinks are never followed or counted
    - Hard-linked inodes counted once per measurement
    - Apparent size or allocated disk usage
    - Unreadable subpaths counted as zero with a warning
    """

    def __init__(
        self,
        *,
        workers: int | None = None,
        mode: SizeMode = SizeMode.APPARENT,
        cancellation: CancellationToken | None = None,
        on_warning: WarningCallback | None = None,
    ) -> None:
        """Initialize the size aggregator.

        Args:
            workers: Worker pool size per measurement
            mode: Size calculation mode (apparent size vs disk usage)
            cancellation: Shared cancellation token
            on_warning: Receives warnings produced while sizing candidates
        """
        self.workers: int | None = workers
        self.mode: SizeMode = mode
        self.cancellation: CancellationToken | None = cancellation
        self.on_warning: WarningCallback | None = on_warning

    def measure(self, path: Path) -> Measurement:
        """Measure a file or directory tree.

        Args:
            path: Path to measure

        Returns:
            Total bytes, regular file count and warnings for skipped subpaths
        """
        tally = _Tally()
        try:
            stat_result = os.lstat(path)
        except FileNotFoundError as exc:
            return Measurement(0, 0, (ScanWarning(path, WarningKind.VANISHED, str(exc)),))
        except OSError as exc:
            return Measurement(0, 0, (ScanWarning(path, WarningKind.IO_ERROR, str(exc)),))

        if stat.S_ISREG(stat_result.st_mode):
            return Measurement(self._file_bytes(stat_result), 1)
        if not stat.S_ISDIR(stat_result.st_mode):
            return Measurement(0, 0)

        pool: WorkQueue[Path] = WorkQueue(
            functools.partial(self._visit, tally),
            workers=self.workers,
            cancellation=self.cancellation,
            thread_name_prefix="devreclaim-size",
        )
        pool.run([path])

        return Measurement(
            total_bytes=tally.total_bytes,
            file_count=tally.file_count,
            warnings=tuple(tally.warnings),
            cancelled=pool.cancelled,
        )

    def size(self, candidate: Candidate) -> Candidate:
        """Return the ``sized`` snapshot of a safety-checked candidate.

        Raises:
            LifecycleError: If the candidate is not safety-checked
        """
        candidate.require(CandidateState.SAFETY_CHECKED)
        measurement = self.measure(candidate.path)
        for warning in measurement.warnings:
            logger.debug(
                "Subpath skipped while sizing",
                extra={"path": str(warning.path), "kind": warning.kind.value, "candidate": str(candidate.path)},
            )
            if self.on_warning is not None:
                self.on_warning(warning)
        return candidate.advance(CandidateState.SIZED, size=measurement.total_bytes)

    def size_all(self, candidates: Iterable[Candidate]) -> list[Candidate]:
        """Size candidates one after another, each measurement using the pool."""
        return [self.size(candidate) for candidate in candidates]

    def _visit(self, tally: _Tally, directory: Path, submit: Submit[Path]) -> None:
        try:
            with os.scandir(directory) as iterator:
                entries = list(iterator)
        except FileNotFoundError as exc:
            tally.warn(directory, WarningKind.VANISHED, str(exc))
            return
        except PermissionError as exc:
            tally.warn(directory, WarningKind.PERMISSION_DENIED, str(exc))
            return
        except OSError as exc:
            tally.warn(directory, WarningKind.IO_ERROR, str(exc))
            return

        subtotal = 0
        files = 0
        for entry in entries:
            try:
                if entry.is_dir(follow_symlinks=False):
                    submit(Path(entry.path))
                    continue
                if not entry.is_file(follow_symlinks=False):
                    continue
                stat_result = entry.stat(follow_symlinks=False)
            except FileNotFoundError:
                continue
            except OSError as exc:
                tally.warn(Path(entry.path), WarningKind.IO_ERROR, str(exc))
                continue

            if stat_result.st_nlink > 1 and not tally.first_link(stat_result):
                continue
            subtotal += self._file_bytes(stat_result)
            files += 1

        tally.add(subtotal, files)

    def _file_bytes(self, stat_result: os.stat_result) -> int:
        if self.mode is SizeMode.APPARENT:
            return stat_result.st_size
        blocks: int | None = getattr(stat_result, "st_blocks", None)
        if blocks is None:
            return stat_result.st_size
        return blocks * BLOCK_SIZE
