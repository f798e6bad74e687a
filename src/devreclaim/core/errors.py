"""Exception hierarchy for the devreclaim core.

Transient filesystem problems never surface as exceptions: they are turned
into ``ScanWarning`` records by the traverser and size aggregator. The
exceptions below are reserved for conditions the caller has to act on.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any


class ReclaimError(Exception):
    """Base exception for all devreclaim errors."""

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:  # pyright: ignore[reportExplicitAny]
        """Initialize ReclaimError.

        Args:
            message: Error message
            context: Additional context information for debugging
        """
        super().__init__(message)
        self.context: dict[str, Any] = context or {}  # pyright: ignore[reportExplicitAny]


class ScanError(ReclaimError):
    """Fatal error that prevents a scan from starting."""


class InvalidRootError(ScanError):
    """Raised when a scan root does not exist or is not a directory."""

    def __init__(self, root: Path, reason: str) -> None:
        super().__init__(f"Invalid scan root {root}: {reason}", context={"root": str(root)})
        self.root: Path = root
        self.reason: str = reason


class WorkerPoolError(ScanError):
    """Raised when the worker pool cannot start or a worker crashes."""


class LifecycleError(ReclaimError):
    """Raised on a backward or skipped candidate lifecycle transition."""


class UnknownCategoryError(ReclaimError):
    """Raised when a category selector names no known category or group."""

    def __init__(self, unknown: set[str], known: set[str]) -> None:
        message = (
            f"Unknown categor{'y' if len(unknown) == 1 else 'ies'}: {', '.join(sorted(unknown))}. "
            f"Known categories and groups: {', '.join(sorted(known))}"
        )
        super().__init__(message, context={"unknown": sorted(unknown)})
        self.unknown: set[str] = unknown


class VcsReadError(ReclaimError):
    """Raised when version-control metadata cannot be read or parsed."""

    def __init__(self, path: Path, reason: str) -> None:
        super().__init__(f"Cannot read repository state at {path}: {reason}", context={"path": str(path)})
        self.path: Path = path


class RemovalError(ReclaimError):
    """Raised by a removal capability when a path cannot be removed."""

    def __init__(self, path: Path, reason: str) -> None:
        super().__init__(f"Cannot remove {path}: {reason}", context={"path": str(path)})
        self.path: Path = path
        self.reason: str = reason


class TrashUnavailableError(RemovalError):
    """Raised when no recoverable location is available for a path."""
