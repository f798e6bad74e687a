"""Executor: carry out a plan one item at a time."""

from __future__ import annotations

import logging
from collections.abc import Iterator

from devreclaim.core.cancellation import CancellationToken
from devreclaim.core.errors import RemovalError, TrashUnavailableError
from devreclaim.types.models import (
    Candidate,
    CandidateState,
    ExecutionMode,
    Outcome,
    Plan,
    TrashFallback,
)
from devreclaim.types.protocols import RemovalCapability

logger = logging.getLogger(__name__)

DRY_RUN_REASON = "dry-run"
CANCELLED_REASON = "cancelled"


class Executor:
    """Turns a plan into reclaimed space.

    A failed item never stops the run: it is reported as ``failed`` and
    the next item proceeds. Cancellation is checked between items; items
    not started when it is observed are reported as ``skipped``.
    """

    def __init__(
        self,
        remover: RemovalCapability,
        *,
        fallback: TrashFallback = TrashFallback.ERROR,
        cancellation: CancellationToken | None = None,
    ) -> None:
        """Initialize the executor.

        Args:
            remover: Filesystem removal capability
            fallback: What to do when trash is unavailable for an item
            cancellation: Shared cancellation token
        """
        self.remover: RemovalCapability = remover
        self.fallback: TrashFallback = fallback
        self.cancellation: CancellationToken | None = cancellation

    def execute(self, plan: Plan, mode: ExecutionMode, *, dry_run: bool = False) -> tuple[Outcome, ...]:
        """Execute every plan item and return one Outcome per item, in plan order."""
        return tuple(self.iter_execute(plan, mode, dry_run=dry_run))

    def iter_execute(self, plan: Plan, mode: ExecutionMode, *, dry_run: bool = False) -> Iterator[Outcome]:
        """Execute plan items lazily, yielding each Outcome as it is known."""
        freed = 0
        for candidate in plan:
            candidate.require(CandidateState.PLANNED)
            executed = candidate.advance(CandidateState.EXECUTED)
            if dry_run:
                yield Outcome.skipped(executed, DRY_RUN_REASON)
                continue
            if self.cancellation is not None and self.cancellation.cancelled:
                yield Outcome.skipped(executed, CANCELLED_REASON)
                continue

            outcome = self._execute_one(executed, mode)
            freed += outcome.bytes_freed
            yield outcome

        logger.info(
            "Plan executed",
            extra={"items": len(plan), "bytes_freed": freed, "mode": mode.value, "dry_run": dry_run},
        )

    def _execute_one(self, candidate: Candidate, mode: ExecutionMode) -> Outcome:
        try:
            if mode is ExecutionMode.TRASH:
                self._move_to_trash(candidate)
            else:
                self.remover.remove_permanently(candidate.path)
        except (RemovalError, OSError) as exc:
            logger.warning(
                "Removal failed",
                extra={"path": str(candidate.path), "category": candidate.category, "error": str(exc)},
            )
            return Outcome.failed(candidate, str(exc))
        except Exception as exc:
            # A faulty removal capability fails this item only
            logger.error(
                "Unexpected error while removing",
                extra={"path": str(candidate.path), "category": candidate.category, "error_type": type(exc).__name__},
                exc_info=True,
            )
            return Outcome.failed(candidate, f"{type(exc).__name__}: {exc}")

        logger.info(
            "Removed candidate",
            extra={"path": str(candidate.path), "category": candidate.category, "bytes": candidate.size},
        )
        return Outcome.succeeded(candidate, candidate.size or 0)

    def _move_to_trash(self, candidate: Candidate) -> None:
        try:
            self.remover.move_to_recoverable(candidate.path)
        except TrashUnavailableError:
            if self.fallback is not TrashFallback.PERMANENT:
                raise
            logger.warning(
                "Trash unavailable, removing permanently",
                extra={"path": str(candidate.path)},
            )
            self.remover.remove_permanently(candidate.path)
