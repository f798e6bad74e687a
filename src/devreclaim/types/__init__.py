"""Type definitions and protocols for devreclaim.

This package provides:
- Data models (immutable dataclasses)
- Protocol definitions (structural subtyping interfaces)
- Type aliases (PEP 695 syntax)
"""

from devreclaim.types.aliases import (
    CategorySelectors,
    PathInput,
    WarningCallback,
)
from devreclaim.types.models import (
    Candidate,
    CandidateState,
    ExecutionMode,
    Measurement,
    Outcome,
    OutcomeStatus,
    Plan,
    Protection,
    ProtectionReason,
    ProtectionStatus,
    ScanResult,
    ScanWarning,
    TrashFallback,
    WarningKind,
)
from devreclaim.types.protocols import (
    RemovalCapability,
    ReportSink,
    VcsStatusReader,
)

__all__ = [
    # Type aliases
    "CategorySelectors",
    "PathInput",
    "WarningCallback",
    # Data models
    "Candidate",
    "CandidateState",
    "ExecutionMode",
    "Measurement",
    "Outcome",
    "OutcomeStatus",
    "Plan",
    "Protection",
    "ProtectionReason",
    "ProtectionStatus",
    "ScanResult",
    "ScanWarning",
    "TrashFallback",
    "WarningKind",
    # Protocols
    "RemovalCapability",
    "ReportSink",
    "VcsStatusReader",
]
