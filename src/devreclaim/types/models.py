"""Data models for devreclaim.

This module defines the immutable records passed between pipeline stages.
A stage never mutates a Candidate; it returns a new snapshot one lifecycle
state further along.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Iterator
from dataclasses import dataclass
from enum import Enum, IntEnum
from pathlib import Path
from typing import Any

from devreclaim.core.errors import LifecycleError
from devreclaim.core.rules.models import Rule


class CandidateState(IntEnum):
    """Lifecycle of a Candidate; only forward transitions are allowed."""

    DISCOVERED = 1
    CLASSIFIED = 2
    SAFETY_CHECKED = 3
    SIZED = 4
    PLANNED = 5
    EXECUTED = 6

    @property
    def label(self) -> str:
        return self.name.lower().replace("_", "-")


class ProtectionStatus(str, Enum):
    APPROVED = "approved"
    PROTECTED = "protected"


class ProtectionReason(str, Enum):
    """Why the Safety Guard protected a path."""

    GIT_METADATA = "git-metadata"
    UNCOMMITTED_CHANGES = "uncommitted-changes"
    NO_REMOTE = "no-remote"
    DENY_LISTED = "deny-listed"
    VCS_UNREADABLE = "vcs-unreadable"
    RECENTLY_MODIFIED = "recently-modified"


class OutcomeStatus(str, Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"


class ExecutionMode(str, Enum):
    """Trash moves items to a recoverable location; permanent removes them."""

    TRASH = "trash"
    PERMANENT = "permanent"


class TrashFallback(str, Enum):
    """What the Executor does when no recoverable location is available."""

    ERROR = "error"
    PERMANENT = "permanent"


class WarningKind(str, Enum):
    PERMISSION_DENIED = "permission-denied"
    VANISHED = "vanished"
    IO_ERROR = "io-error"
    SYMLINK_CYCLE = "symlink-cycle"
    EXTERNAL_SYMLINK = "external-symlink"
    MARKER_UNREADABLE = "marker-unreadable"


@dataclass(slots=True, frozen=True)
class Protection:
    """Safety Guard verdict for one path."""

    status: ProtectionStatus
    reason: ProtectionReason | None = None
    overridable: bool = False
    detail: str | None = None

    @classmethod
    def approved(cls) -> Protection:
        return cls(status=ProtectionStatus.APPROVED)

    @classmethod
    def protected(
        cls,
        reason: ProtectionReason,
        *,
        overridable: bool,
        detail: str | None = None,
    ) -> Protection:
        return cls(status=ProtectionStatus.PROTECTED, reason=reason, overridable=overridable, detail=detail)

    @property
    def is_protected(self) -> bool:
        return self.status is ProtectionStatus.PROTECTED


@dataclass(slots=True, frozen=True)
class Candidate:
    """A directory matched by a rule.

    Attributes:
        path: Absolute path, unique within one scan
        rule: The rule that classified the directory
        root: Scan root the directory was found under
        state: Lifecycle state of this snapshot
        size: Bytes on disk, None until sized
        protection: Safety verdict, None until checked
        parent: Path of the enclosing non-pruning Candidate, if any
    """

    path: Path
    rule: Rule
    root: Path
    state: CandidateState = CandidateState.DISCOVERED
    size: int | None = None
    protection: Protection | None = None
    parent: Path | None = None

    @property
    def category(self) -> str:
        return self.rule.category

    def advance(self, state: CandidateState, **changes: Any) -> Candidate:  # pyright: ignore[reportAny, reportExplicitAny]
        """Return a snapshot moved forward to ``state``.

        Args:
            state: Target lifecycle state, strictly later than the current one
            **changes: Other fields to replace on the snapshot

        Raises:
            LifecycleError: If ``state`` is not after the current state
        """
        if state <= self.state:
            msg = f"Cannot move {self.path} from {self.state.label} to {state.label}"
            raise LifecycleError(msg, context={"path": str(self.path)})
        return dataclasses.replace(self, state=state, **changes)  # pyright: ignore[reportAny]

    def require(self, state: CandidateState) -> None:
        """Raise LifecycleError unless the snapshot is exactly in ``state``."""
        if self.state is not state:
            msg = f"{self.path} must be {state.label}, is {self.state.label}"
            raise LifecycleError(msg, context={"path": str(self.path)})


@dataclass(slots=True, frozen=True)
class ScanWarning:
    """Recoverable problem met while walking or measuring a subtree."""

    path: Path
    kind: WarningKind
    message: str


@dataclass(slots=True, frozen=True)
class ScanResult:
    """Everything a scan over one or more roots produced."""

    roots: tuple[Path, ...]
    candidates: tuple[Candidate, ...]
    warnings: tuple[ScanWarning, ...] = ()
    cancelled: bool = False


@dataclass(slots=True, frozen=True)
class Measurement:
    """Size of one subtree."""

    total_bytes: int
    file_count: int
    warnings: tuple[ScanWarning, ...] = ()
    cancelled: bool = False


@dataclass(slots=True, frozen=True)
class Plan:
    """Ordered, de-duplicated set of Candidates approved for removal.

    ``withheld`` lists the sized Candidates that did not make it into the
    plan, because they are protected or nested under a planned Candidate.
    """

    items: tuple[Candidate, ...]
    total_bytes: int
    override_protections: bool = False
    withheld: tuple[Candidate, ...] = ()

    @property
    def total_count(self) -> int:
        return len(self.items)

    def __len__(self) -> int:
        return len(self.items)

    def __iter__(self) -> Iterator[Candidate]:
        return iter(self.items)


@dataclass(slots=True, frozen=True)
class Outcome:
    """Result of executing one plan item."""

    candidate: Candidate
    status: OutcomeStatus
    reason: str | None = None
    bytes_freed: int = 0

    @property
    def path(self) -> Path:
        return self.candidate.path

    @classmethod
    def succeeded(cls, candidate: Candidate, bytes_freed: int) -> Outcome:
        return cls(candidate=candidate, status=OutcomeStatus.SUCCEEDED, bytes_freed=bytes_freed)

    @classmethod
    def failed(cls, candidate: Candidate, reason: str) -> Outcome:
        return cls(candidate=candidate, status=OutcomeStatus.FAILED, reason=reason)

    @classmethod
    def skipped(cls, candidate: Candidate, reason: str) -> Outcome:
        return cls(candidate=candidate, status=OutcomeStatus.SKIPPED, reason=reason)
