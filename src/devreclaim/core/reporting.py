"""Report sinks receiving pipeline events."""

from __future__ import annotations

import logging

from devreclaim.types.models import Candidate, Outcome, OutcomeStatus, ScanWarning, WarningKind

logger = logging.getLogger(__name__)


class LoggingReportSink:
    """ReportSink that writes every event to the log."""

    def __init__(self, log: logging.Logger | None = None) -> None:
        self._logger: logging.Logger = log if log is not None else logger

    def on_candidate(self, candidate: Candidate) -> None:
        self._logger.info(
            "Candidate found",
            extra={"path": str(candidate.path), "category": candidate.category},
        )

    def on_warning(self, warning: ScanWarning) -> None:
        # Permission problems are routine when scanning a home directory
        level = logging.DEBUG if warning.kind is WarningKind.PERMISSION_DENIED else logging.WARNING
        self._logger.log(
            level,
            "Scan warning",
            extra={"path": str(warning.path), "kind": warning.kind.value, "reason": warning.message},
        )

    def on_outcome(self, outcome: Outcome) -> None:
        level = logging.WARNING if outcome.status is OutcomeStatus.FAILED else logging.INFO
        self._logger.log(
            level,
            "Item %s",
            outcome.status.value,
            extra={"path": str(outcome.path), "reason": outcome.reason, "bytes_freed": outcome.bytes_freed},
        )


class CollectingReportSink:
    """ReportSink that keeps every event in memory."""

    def __init__(self) -> None:
        self.candidates: list[Candidate] = []
        self.warnings: list[ScanWarning] = []
        self.outcomes: list[Outcome] = []

    def on_candidate(self, candidate: Candidate) -> None:
        self.candidates.append(candidate)

    def on_warning(self, warning: ScanWarning) -> None:
        self.warnings.append(warning)

    def on_outcome(self, outcome: Outcome) -> None:
        self.outcomes.append(outcome)
