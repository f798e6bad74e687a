"""Pipeline facade wiring traversal, safety, sizing, planning and execution."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from datetime import timedelta
from pathlib import Path

from devreclaim.core.cancellation import CancellationToken
from devreclaim.core.config import MainConfig
from devreclaim.core.executor import Executor
from devreclaim.core.filesystem.filters import PathFilter
from devreclaim.core.filesystem.size_aggregator import SizeAggregator
from devreclaim.core.filesystem.traverser import DirectoryTraverser, TraversalWalk
from devreclaim.core.plan import build_plan
from devreclaim.core.removal import SystemRemover
from devreclaim.core.reporting import LoggingReportSink
from devreclaim.core.rules.registry import RuleRegistry
from devreclaim.core.safety.git_status import GitStatusReader
from devreclaim.core.safety.guard import SafetyGuard
from devreclaim.types.aliases import CategorySelectors, PathInput
from devreclaim.types.models import (
    Candidate,
    CandidateState,
    ExecutionMode,
    Outcome,
    Plan,
    ScanResult,
    ScanWarning,
)
from devreclaim.types.protocols import RemovalCapability, ReportSink, VcsStatusReader

logger = logging.getLogger(__name__)


class Pipeline:
    """Scan, classify, protect and delete.

    Example:
        >>> pipeline = Pipeline.from_config(MainConfig())
        >>> result = pipeline.scan([Path("~/src").expanduser()], categories=["projects"])
        >>> plan = pipeline.plan(result.candidates)
        >>> outcomes = pipeline.execute(plan, ExecutionMode.TRASH, dry_run=True)
    """

    def __init__(
        self,
        registry: RuleRegistry,
        *,
        guard: SafetyGuard,
        aggregator: SizeAggregator,
        executor: Executor,
        path_filter: PathFilter | None = None,
        workers: int | None = None,
        follow_symlinks: bool = False,
        allow_external_symlinks: bool = False,
        sink: ReportSink | None = None,
        cancellation: CancellationToken | None = None,
    ) -> None:
        self.registry: RuleRegistry = registry
        self.guard: SafetyGuard = guard
        self.aggregator: SizeAggregator = aggregator
        self.executor: Executor = executor
        self.path_filter: PathFilter = path_filter if path_filter is not None else PathFilter()
        self.workers: int | None = workers
        self.follow_symlinks: bool = follow_symlinks
        self.allow_external_symlinks: bool = allow_external_symlinks
        self.sink: ReportSink = sink if sink is not None else LoggingReportSink()
        self.cancellation: CancellationToken = cancellation if cancellation is not None else CancellationToken()
        if self.aggregator.on_warning is None:
            self.aggregator.on_warning = self.sink.on_warning

    @classmethod
    def from_config(
        cls,
        config: MainConfig,
        *,
        reader: VcsStatusReader | None = None,
        remover: RemovalCapability | None = None,
        sink: ReportSink | None = None,
        cancellation: CancellationToken | None = None,
    ) -> Pipeline:
        """Build a pipeline from validated configuration.

        Args:
            config: Validated configuration
            reader: VCS reader, defaults to :class:`GitStatusReader`
            remover: Removal capability, defaults to :class:`SystemRemover`
            sink: Event sink, defaults to :class:`LoggingReportSink`
            cancellation: Shared token, a fresh one when omitted
        """
        token = cancellation if cancellation is not None else CancellationToken()
        scan = config.scan
        guard = SafetyGuard(
            reader if reader is not None else GitStatusReader(),
            deny_paths=config.safety.deny_paths,
            include_default_denies=config.safety.include_default_denies,
            min_age=timedelta(days=config.safety.min_age_days),
        )
        aggregator = SizeAggregator(workers=scan.workers, mode=scan.size_mode, cancellation=token)
        executor = Executor(
            remover if remover is not None else SystemRemover(),
            fallback=config.execution.trash_fallback,
            cancellation=token,
        )
        return cls(
            config.rules.build_registry(),
            guard=guard,
            aggregator=aggregator,
            executor=executor,
            path_filter=PathFilter(include=scan.include, exclude=scan.exclude),
            workers=scan.workers,
            follow_symlinks=scan.follow_symlinks,
            allow_external_symlinks=scan.allow_external_symlinks,
            sink=sink,
            cancellation=token,
        )

    def traverser(self, categories: CategorySelectors | None = None) -> DirectoryTraverser:
        """Build a traverser over the registry, restricted to ``categories``.

        Raises:
            UnknownCategoryError: If a selector names no category or group
        """
        registry = self.registry.subset(categories) if categories else self.registry
        return DirectoryTraverser(
            registry,
            workers=self.workers,
            path_filter=self.path_filter,
            follow_symlinks=self.follow_symlinks,
            allow_external_symlinks=self.allow_external_symlinks,
            cancellation=self.cancellation,
        )

    def iter_candidates(
        self,
        roots: Iterable[PathInput],
        categories: CategorySelectors | None = None,
    ) -> Iterator[Candidate]:
        """Lazily yield candidates root by root.

        Roots and selectors are validated before this returns, so a bad root
        fails before any traversal starts.

        Raises:
            InvalidRootError: If a root does not exist or is not a directory
            UnknownCategoryError: If a selector names no category or group
        """
        walks = self.traverser(categories).walks(roots)
        return self._stream(walks, [])

    def scan(self, roots: Iterable[PathInput], categories: CategorySelectors | None = None) -> ScanResult:
        """Walk every root and collect the candidates.

        Raises:
            InvalidRootError: If a root does not exist or is not a directory
            UnknownCategoryError: If a selector names no category or group
        """
        walks = self.traverser(categories).walks(roots)
        warnings: list[ScanWarning] = []
        candidates = tuple(self._stream(walks, warnings))
        cancelled = self.cancellation.cancelled or any(walk.cancelled for walk in walks)
        return ScanResult(
            roots=tuple(walk.root for walk in walks),
            candidates=candidates,
            warnings=tuple(warnings),
            cancelled=cancelled,
        )

    def assess(self, candidates: Iterable[Candidate]) -> list[Candidate]:
        """Run the Safety Guard and the Size Aggregator on each candidate."""
        assessed: list[Candidate] = []
        for candidate in candidates:
            current = candidate
            if current.state is CandidateState.CLASSIFIED:
                current = self.guard.check(current)
            if current.state is CandidateState.SAFETY_CHECKED:
                current = self.aggregator.size(current)
            assessed.append(current)
        return assessed

    def plan(self, candidates: Iterable[Candidate], *, override_protections: bool = False) -> Plan:
        """Check, size and plan candidates.

        Raises:
            LifecycleError: If a candidate is in a state the pipeline cannot advance
        """
        return build_plan(self.assess(candidates), override_protections=override_protections)

    def execute(self, plan: Plan, mode: ExecutionMode, *, dry_run: bool = False) -> tuple[Outcome, ...]:
        """Execute a plan, reporting each outcome to the sink as it happens."""
        outcomes: list[Outcome] = []
        for outcome in self.executor.iter_execute(plan, mode, dry_run=dry_run):
            self.sink.on_outcome(outcome)
            outcomes.append(outcome)
        return tuple(outcomes)

    def _stream(self, walks: list[TraversalWalk], warnings: list[ScanWarning]) -> Iterator[Candidate]:
        seen: set[Path] = set()
        for walk in walks:
            for candidate in walk:
                if candidate.path in seen:
                    continue
                seen.add(candidate.path)
                self.sink.on_candidate(candidate)
                yield candidate
            for warning in walk.warnings:
                self.sink.on_warning(warning)
            warnings.extend(walk.warnings)
