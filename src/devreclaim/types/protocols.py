"""Protocol definitions for the capabilities the core consumes.

This module defines structural subtyping protocols so that the Safety
Guard, the Executor and the Pipeline can be driven by real implementations
or by test doubles without inheritance.
"""

from pathlib import Path
from typing import Protocol, runtime_checkable

from devreclaim.types.models import Candidate, Outcome, ScanWarning


@runtime_checkable
class VcsStatusReader(Protocol):
    """Read-only view of version-control state.

    Implementations may raise any exception when metadata cannot be read;
    the Safety Guard treats that as a protection.
    """

    def is_repo_root(self, path: Path) -> bool:
        """Check whether ``path`` is the top of a working tree.

        Args:
            path: Directory to inspect

        Returns:
            True if ``path`` holds repository metadata
        """
        ...

    def has_uncommitted_changes(self, repo_root: Path) -> bool:
        """Check a working tree for staged, modified or untracked changes.

        Args:
            repo_root: Top of the working tree

        Returns:
            True if anything would be lost by deleting files in the tree
        """
        ...

    def has_remote(self, repo_root: Path) -> bool:
        """Check whether the repository has at least one remote configured.

        Args:
            repo_root: Top of the working tree

        Returns:
            True if a remote exists
        """
        ...


@runtime_checkable
class RemovalCapability(Protocol):
    """Filesystem removal used by the Executor."""

    def move_to_recoverable(self, path: Path) -> None:
        """Move ``path`` somewhere it can be restored from.

        Raises:
            TrashUnavailableError: If no recoverable location exists for ``path``
            RemovalError: If the move fails for another reason
        """
        ...

    def remove_permanently(self, path: Path) -> None:
        """Delete ``path`` and everything under it.

        Raises:
            RemovalError: If the removal fails
        """
        ...


class ReportSink(Protocol):
    """Receives pipeline events as they happen."""

    def on_candidate(self, candidate: Candidate) -> None: ...

    def on_warning(self, warning: ScanWarning) -> None: ...

    def on_outcome(self, outcome: Outcome) -> None: ...
