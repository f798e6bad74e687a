"""Application runner: configuration, logging, signals and pipeline runs."""

from __future__ import annotations

import logging
import signal
import time
from collections.abc import Callable, Iterator, Sequence
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from types import FrameType

from devreclaim.core.cancellation import CancellationToken
from devreclaim.core.config import MainConfig, load_main_config
from devreclaim.core.filesystem.size_aggregator import SizeMode
from devreclaim.core.pipeline import Pipeline
from devreclaim.types.models import (
    ExecutionMode,
    Outcome,
    OutcomeStatus,
    Plan,
    ScanResult,
    TrashFallback,
)
from devreclaim.types.protocols import RemovalCapability, ReportSink, VcsStatusReader
from devreclaim.utils.logging import configure_logging, new_run_id, set_run_id

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class RunOptions:
    """Command-line values that override the configuration file; None keeps the file's value."""

    workers: int | None = None
    include: Sequence[str] = ()
    exclude: Sequence[str] = ()
    follow_symlinks: bool | None = None
    size_mode: SizeMode | None = None
    min_age_days: float | None = None
    override_protections: bool | None = None
    mode: ExecutionMode | None = None
    dry_run: bool | None = None
    trash_fallback: TrashFallback | None = None


@dataclass(slots=True)
class PreviewReport:
    """Scan result and the plan it leads to."""

    scan: ScanResult
    plan: Plan
    elapsed: float


@dataclass(slots=True)
class CleanReport:
    """What a clean run planned and did."""

    preview: PreviewReport
    confirmed: bool
    dry_run: bool
    mode: ExecutionMode
    outcomes: tuple[Outcome, ...] = ()
    cancelled: bool = False

    @property
    def bytes_freed(self) -> int:
        return sum(outcome.bytes_freed for outcome in self.outcomes)

    @property
    def failures(self) -> list[Outcome]:
        return [outcome for outcome in self.outcomes if outcome.status is OutcomeStatus.FAILED]


def apply_overrides(config: MainConfig, options: RunOptions) -> MainConfig:
    """Return a copy of ``config`` with command-line overrides applied."""
    scan_updates: dict[str, object] = {}
    if options.workers is not None:
        scan_updates["workers"] = options.workers
    if options.include:
        scan_updates["include"] = [*config.scan.include, *options.include]
    if options.exclude:
        scan_updates["exclude"] = [*config.scan.exclude, *options.exclude]
    if options.follow_symlinks is not None:
        scan_updates["follow_symlinks"] = options.follow_symlinks
    if options.size_mode is not None:
        scan_updates["size_mode"] = options.size_mode

    safety_updates: dict[str, object] = {}
    if options.override_protections is not None:
        safety_updates["override_protections"] = options.override_protections
    if options.min_age_days is not None:
        safety_updates["min_age_days"] = options.min_age_days

    execution_updates: dict[str, object] = {}
    if options.mode is not None:
        execution_updates["mode"] = options.mode
    if options.dry_run is not None:
        execution_updates["dry_run"] = options.dry_run
    if options.trash_fallback is not None:
        execution_updates["trash_fallback"] = options.trash_fallback

    return config.model_copy(
        update={
            "scan": config.scan.model_copy(update=scan_updates),
            "safety": config.safety.model_copy(update=safety_updates),
            "execution": config.execution.model_copy(update=execution_updates),
        }
    )


class ApplicationRunner:
    """Coordinates configuration, logging and the pipeline for one CLI invocation."""

    def __init__(
        self,
        config_path: Path | None = None,
        *,
        log_level: str | None = None,
        options: RunOptions | None = None,
        reader: VcsStatusReader | None = None,
        remover: RemovalCapability | None = None,
        sink: ReportSink | None = None,
    ) -> None:
        """Initialize the application runner.

        Args:
            config_path: Configuration file, or None to run on defaults
            log_level: Overrides the configured log level
            options: Command-line overrides
            reader: VCS reader, for tests
            remover: Removal capability, for tests
            sink: Event sink, for tests
        """
        self.config_path: Path | None = config_path
        self.log_level: str | None = log_level
        self.options: RunOptions = options if options is not None else RunOptions()
        self.cancellation: CancellationToken = CancellationToken()
        self._reader: VcsStatusReader | None = reader
        self._remover: RemovalCapability | None = remover
        self._sink: ReportSink | None = sink
        self._config: MainConfig | None = None
        self._pipeline: Pipeline | None = None

    @property
    def config(self) -> MainConfig:
        """Loaded and overridden configuration.

        Raises:
            ConfigurationError: If the configuration file is invalid
        """
        if self._config is None:
            base = load_main_config(self.config_path) if self.config_path is not None else MainConfig()
            self._config = apply_overrides(base, self.options)
        return self._config

    @property
    def pipeline(self) -> Pipeline:
        if self._pipeline is None:
            self._pipeline = Pipeline.from_config(
                self.config,
                reader=self._reader,
                remover=self._remover,
                sink=self._sink,
                cancellation=self.cancellation,
            )
        return self._pipeline

    def setup(self) -> MainConfig:
        """Load configuration, configure logging and start a new run ID."""
        config = self.config
        configure_logging(
            log_level=self.log_level or config.application.log_level,
            enable_syslog=config.application.syslog_enabled,
        )
        set_run_id(new_run_id())
        logger.info(
            "Configuration loaded",
            extra={"config_path": str(self.config_path) if self.config_path else None},
        )
        return config

    def preview(self, roots: Sequence[Path], categories: Sequence[str] = ()) -> PreviewReport:
        """Scan ``roots`` and build the plan without executing it.

        Raises:
            ScanError: If a root is invalid or the worker pool fails
            UnknownCategoryError: If a category selector is unknown
        """
        started = time.monotonic()
        with self._interruptible():
            scan = self.pipeline.scan(roots or self.config.scan.roots, categories or self.config.scan.categories)
            plan = self.pipeline.plan(
                scan.candidates,
                override_protections=self.config.safety.override_protections,
            )
        return PreviewReport(scan=scan, plan=plan, elapsed=time.monotonic() - started)

    def clean(
        self,
        roots: Sequence[Path],
        categories: Sequence[str] = (),
        *,
        confirm: Callable[[Plan, ExecutionMode], bool],
    ) -> CleanReport:
        """Scan, plan, ask for confirmation and execute.

        Args:
            roots: Scan roots
            categories: Category selectors
            confirm: Asked before anything is removed; not asked for dry runs
                or empty plans
        """
        execution = self.config.execution
        preview = self.preview(roots, categories)
        report = CleanReport(
            preview=preview,
            confirmed=False,
            dry_run=execution.dry_run,
            mode=execution.mode,
            cancelled=preview.scan.cancelled,
        )
        if not preview.plan.items or self.cancellation.cancelled:
            return report

        if not execution.dry_run and not confirm(preview.plan, execution.mode):
            logger.info("Clean declined", extra={"items": preview.plan.total_count})
            return report

        report.confirmed = True
        with self._interruptible():
            report.outcomes = self.pipeline.execute(preview.plan, execution.mode, dry_run=execution.dry_run)
        report.cancelled = self.cancellation.cancelled
        return report

    @contextmanager
    def _interruptible(self) -> Iterator[None]:
        """Turn the first Ctrl+C into cooperative cancellation, the second into an abort."""
        previous = signal.getsignal(signal.SIGINT)

        def request_cancel(signum: int, frame: FrameType | None) -> None:  # pyright: ignore[reportUnusedParameter]
            if self.cancellation.cancelled:
                raise KeyboardInterrupt
            logger.warning("Interrupt received, finishing current work")
            self.cancellation.cancel()

        try:
            _ = signal.signal(signal.SIGINT, request_cancel)
        except ValueError:
            # Not the main thread; signals stay with the caller
            yield
            return
        try:
            yield
        finally:
            if previous is not None:
                _ = signal.signal(signal.SIGINT, previous)
