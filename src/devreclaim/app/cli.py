"""Command-line interface for devreclaim."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from pathlib import Path
from typing import Final

import click

from devreclaim import __version__
from devreclaim.app.runner import ApplicationRunner, CleanReport, PreviewReport, RunOptions
from devreclaim.core.config import ConfigurationError, EnvironmentVariableError
from devreclaim.core.errors import ReclaimError
from devreclaim.core.filesystem.size_aggregator import SizeMode
from devreclaim.core.rules import CategoryGroup, default_registry
from devreclaim.types.models import Candidate, ExecutionMode, OutcomeStatus, Plan, TrashFallback
from devreclaim.utils.formatting import format_duration, format_size, pluralize, shorten_path

# Configuration file discovery paths in order of precedence
CURRENT_DIR_CONFIG_FILES: Final[tuple[str, ...]] = ("devreclaim.yaml", "devreclaim.yml", ".devreclaim.yaml")
HOME_CONFIG_FILES: Final[tuple[str, ...]] = (
    ".config/devreclaim/config.yaml",
    ".config/devreclaim/config.yml",
    ".devreclaim.yaml",
)

EXIT_REMOVAL_FAILED: Final[int] = 2

# Groups whose artifacts live in shared locations under the home directory
_HOME_GROUPS: Final[frozenset[CategoryGroup]] = frozenset(
    {CategoryGroup.CACHES, CategoryGroup.XCODE, CategoryGroup.DOCKER, CategoryGroup.IDE, CategoryGroup.ML}
)


def discover_config_file() -> Path | None:
    """Discover a configuration file in standard locations.

    Searches the current directory first, then the home directory.

    Returns:
        Path to the first configuration file found, or None to run on defaults
    """
    for config_file in CURRENT_DIR_CONFIG_FILES:
        config_path = Path(config_file)
        if config_path.is_file():
            return config_path

    try:
        home_dir = Path.home()
    except RuntimeError:
        # Path.home() can fail when HOME is unset and the user has no passwd entry
        return None
    for config_file in HOME_CONFIG_FILES:
        config_path = home_dir / config_file
        if config_path.is_file():
            return config_path
    return None


def validate_config_path(
    ctx: click.Context,  # pyright: ignore[reportUnusedParameter] # required by Click callback signature
    param: click.Parameter,  # pyright: ignore[reportUnusedParameter] # required by Click callback signature
    value: Path | None,
) -> Path | None:
    """Validate configuration file path.

    Raises:
        click.BadParameter: If the path is a directory or not a YAML file
    """
    if value is None:
        return value

    if value.exists() and value.is_dir():
        raise click.BadParameter("Configuration path must be a file, not a directory")

    valid_extensions = {".yaml", ".yml"}
    if value.suffix.lower() not in valid_extensions:
        extensions_str = ", ".join(sorted(valid_extensions))
        raise click.BadParameter(f"Invalid configuration file extension. Supported extensions: {extensions_str}")

    return value


def validate_log_level(
    ctx: click.Context,  # pyright: ignore[reportUnusedParameter] # required by Click callback signature
    param: click.Parameter,  # pyright: ignore[reportUnusedParameter] # required by Click callback signature
    value: str | None,
) -> str | None:
    """Validate and normalize log level.

    Raises:
        click.BadParameter: If the level is unknown
    """
    if value is None:
        return value

    normalized_value = value.upper().strip()

    valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR"}
    if normalized_value not in valid_levels:
        raise click.BadParameter(f'Invalid log level "{value}". Valid options: {", ".join(sorted(valid_levels))}')

    return normalized_value


class CliState:
    """Options given to the top-level group."""

    def __init__(self, config_path: Path | None, log_level: str | None) -> None:
        self.config_path: Path | None = config_path
        self.log_level: str | None = log_level


def default_roots(categories: Sequence[str]) -> list[Path]:
    """Current directory for project scans, home directory for shared caches."""
    if not categories:
        return [Path.cwd()]

    registry = default_registry()
    group_names = {group.value: group for group in CategoryGroup}
    groups: set[CategoryGroup | None] = set()
    for selector in categories:
        rule = registry.get(selector)
        groups.add(rule.group if rule is not None else group_names.get(selector))
    if groups <= _HOME_GROUPS:
        return [Path.home()]
    return [Path.cwd()]


def _scan_options[F: Callable[..., object]](func: F) -> F:
    options = (
        click.argument("roots", nargs=-1, type=click.Path(path_type=Path, file_okay=False)),
        click.option(
            "--category",
            "-C",
            "categories",
            multiple=True,
            help="Category tag or group to include (repeatable). Default: all",
        ),
        click.option("--include", multiple=True, help="Only report candidates matching this glob (repeatable)"),
        click.option("--exclude", multiple=True, help="Skip subtrees matching this glob (repeatable)"),
        click.option("--workers", "-w", type=click.IntRange(1, 256), default=None, help="Worker threads"),
        click.option("--follow-symlinks", is_flag=True, default=False, help="Descend through symlinked directories"),
        click.option("--disk-usage", is_flag=True, default=False, help="Report allocated blocks, not file sizes"),
        click.option(
            "--min-age",
            "min_age_days",
            type=click.FloatRange(min=0),
            default=None,
            help="Protect candidates modified within this many days (0 disables)",
        ),
        click.option(
            "--force",
            "override_protections",
            is_flag=True,
            default=False,
            help="Include candidates in dirty, remote-less or recently modified trees",
        ),
    )
    for option in reversed(options):
        func = option(func)
    return func


def _clean_options[F: Callable[..., object]](func: F) -> F:
    options = (
        click.option("--permanent", is_flag=True, default=False, help="Delete instead of moving to trash"),
        click.option("--dry-run", "-n", is_flag=True, default=False, help="Show what would be removed"),
        click.option("--yes", "-y", is_flag=True, default=False, help="Do not ask for confirmation"),
        click.option(
            "--trash-fallback",
            type=click.Choice([fallback.value for fallback in TrashFallback]),
            default=None,
            help="When trash is unavailable: fail the item (error) or delete it (permanent)",
        ),
    )
    for option in reversed(options):
        func = option(func)
    return func


def _build_runner(
    state: CliState,
    *,
    include: Sequence[str],
    exclude: Sequence[str],
    workers: int | None,
    follow_symlinks: bool,
    disk_usage: bool,
    min_age_days: float | None,
    override_protections: bool,
    permanent: bool = False,
    dry_run: bool = False,
    trash_fallback: str | None = None,
) -> ApplicationRunner:
    options = RunOptions(
        workers=workers,
        include=include,
        exclude=exclude,
        # Flags only switch behaviour on; absent flags keep the configured value
        follow_symlinks=True if follow_symlinks else None,
        size_mode=SizeMode.DISK_USAGE if disk_usage else None,
        min_age_days=min_age_days,
        override_protections=True if override_protections else None,
        mode=ExecutionMode.PERMANENT if permanent else None,
        dry_run=True if dry_run else None,
        trash_fallback=TrashFallback(trash_fallback) if trash_fallback else None,
    )
    runner = ApplicationRunner(state.config_path, log_level=state.log_level, options=options)
    try:
        _ = runner.setup()
    except (ConfigurationError, EnvironmentVariableError) as e:
        raise click.ClickException(f"Configuration error:\n{e}") from e
    return runner


def _describe(candidate: Candidate) -> str:
    size = format_size(candidate.size or 0)
    return f"{size:>10}  {candidate.category:<24} {shorten_path(candidate.path)}"


def _render_preview(report: PreviewReport) -> None:
    plan = report.plan
    if plan.items:
        click.echo(click.style("Reclaimable:", bold=True))
        for candidate in plan:
            marker = " *" if candidate.rule.requires_confirmation else ""
            click.echo(f"{_describe(candidate)}{marker}")

    protected = [
        (candidate, candidate.protection)
        for candidate in plan.withheld
        if candidate.protection is not None and candidate.protection.is_protected
    ]
    if protected:
        click.echo(click.style("Protected:", bold=True))
        for candidate, protection in protected:
            reason = protection.reason.value if protection.reason else "protected"
            hint = ", --force to include" if protection.overridable else ""
            click.echo(f"{_describe(candidate)}  [{reason}{hint}]")

    scan = report.scan
    click.echo(
        f"{pluralize(plan.total_count, 'item')}, {format_size(plan.total_bytes)} reclaimable "
        f"({pluralize(len(scan.candidates), 'candidate')} found in {format_duration(report.elapsed)})"
    )
    if any(candidate.rule.requires_confirmation for candidate in plan):
        click.echo("* may hold data that is slow or impossible to regenerate")
    if scan.warnings:
        click.echo(
            f"{pluralize(len(scan.warnings), 'path')} could not be read (--log-level DEBUG for details)",
            err=True,
        )
    if scan.cancelled:
        click.echo("Scan interrupted; results are partial", err=True)


def _confirm(assume_yes: bool) -> Callable[[Plan, ExecutionMode], bool]:
    def confirm(plan: Plan, mode: ExecutionMode) -> bool:
        if assume_yes:
            return True
        verb = "Move" if mode is ExecutionMode.TRASH else "Permanently delete"
        target = " to trash" if mode is ExecutionMode.TRASH else ""
        return click.confirm(
            f"{verb} {pluralize(plan.total_count, 'item')} ({format_size(plan.total_bytes)}){target}?",
            default=False,
        )

    return confirm


def _render_clean(report: CleanReport) -> int:
    _render_preview(report.preview)
    if not report.preview.plan.items:
        click.echo("Nothing to clean")
        return 0
    if not report.confirmed:
        click.echo("Aborted, nothing removed")
        return 0
    if report.dry_run:
        click.echo("Dry run, nothing removed")
        return 0

    for outcome in report.outcomes:
        if outcome.status is OutcomeStatus.FAILED:
            click.echo(f"Failed: {shorten_path(outcome.path)}: {outcome.reason}", err=True)
    skipped = sum(1 for outcome in report.outcomes if outcome.status is OutcomeStatus.SKIPPED)
    removed = sum(1 for outcome in report.outcomes if outcome.status is OutcomeStatus.SUCCEEDED)
    verb = "trashed" if report.mode is ExecutionMode.TRASH else "deleted"
    click.echo(f"{pluralize(removed, 'item')} {verb}, {format_size(report.bytes_freed)} freed")
    if skipped:
        click.echo(f"{pluralize(skipped, 'item')} skipped after interrupt", err=True)
    return EXIT_REMOVAL_FAILED if report.failures else 0


def _resolve_roots(runner: ApplicationRunner, roots: Sequence[Path], categories: Sequence[str]) -> list[Path]:
    """Command-line roots, then configured roots, then a default for the categories."""
    if roots:
        return list(roots)
    scan_config = runner.config.scan
    if scan_config.roots:
        return list(scan_config.roots)
    return default_roots(list(categories) or scan_config.categories)


def _run_preview(runner: ApplicationRunner, roots: Sequence[Path], categories: Sequence[str]) -> None:
    try:
        report = runner.preview(_resolve_roots(runner, roots, categories), categories)
    except ReclaimError as e:
        raise click.ClickException(str(e)) from e
    _render_preview(report)


def _run_clean(
    ctx: click.Context,
    runner: ApplicationRunner,
    roots: Sequence[Path],
    categories: Sequence[str],
    *,
    assume_yes: bool,
) -> None:
    try:
        report = runner.clean(
            _resolve_roots(runner, roots, categories),
            categories,
            confirm=_confirm(assume_yes),
        )
    except ReclaimError as e:
        raise click.ClickException(str(e)) from e
    ctx.exit(_render_clean(report))


@click.group()
@click.option(
    "--config",
    "-c",
    type=click.Path(path_type=Path),
    default=None,
    callback=validate_config_path,
    help="Configuration file (.yaml). If not specified, searches standard locations.",
)
@click.option(
    "--log-level",
    "-l",
    type=str,
    default=None,
    callback=validate_log_level,
    help="Logging verbosity level (DEBUG, INFO, WARNING, ERROR)",
)
@click.version_option(version=__version__, prog_name="devreclaim")
@click.pass_context
def cli(ctx: click.Context, config: Path | None, log_level: str | None) -> None:
    """devreclaim - reclaim disk space from build artifacts and caches.

    Examples:

        # Show what could be reclaimed under the current directory
        devreclaim scan

        # Trash node_modules and Rust targets under ~/src
        devreclaim clean ~/src -C node-modules -C rust-target

        # Review Xcode caches
        devreclaim xcode
    """
    ctx.obj = CliState(config_path=config if config is not None else discover_config_file(), log_level=log_level)


@cli.command()
@_scan_options
@click.pass_obj
def scan(
    state: CliState,
    roots: tuple[Path, ...],
    categories: tuple[str, ...],
    include: tuple[str, ...],
    exclude: tuple[str, ...],
    workers: int | None,
    follow_symlinks: bool,
    disk_usage: bool,
    min_age_days: float | None,
    override_protections: bool,
) -> None:
    """Find reclaimable artifacts without removing anything."""
    runner = _build_runner(
        state,
        include=include,
        exclude=exclude,
        workers=workers,
        follow_symlinks=follow_symlinks,
        disk_usage=disk_usage,
        min_age_days=min_age_days,
        override_protections=override_protections,
    )
    _run_preview(runner, roots, categories)


@cli.command()
@_scan_options
@_clean_options
@click.pass_context
def clean(
    ctx: click.Context,
    roots: tuple[Path, ...],
    categories: tuple[str, ...],
    include: tuple[str, ...],
    exclude: tuple[str, ...],
    workers: int | None,
    follow_symlinks: bool,
    disk_usage: bool,
    min_age_days: float | None,
    override_protections: bool,
    permanent: bool,
    dry_run: bool,
    yes: bool,
    trash_fallback: str | None,
) -> None:
    """Find reclaimable artifacts and remove them after confirmation."""
    state: CliState = ctx.obj  # pyright: ignore[reportAny]
    runner = _build_runner(
        state,
        include=include,
        exclude=exclude,
        workers=workers,
        follow_symlinks=follow_symlinks,
        disk_usage=disk_usage,
        min_age_days=min_age_days,
        override_protections=override_protections,
        permanent=permanent,
        dry_run=dry_run,
        trash_fallback=trash_fallback,
    )
    _run_clean(ctx, runner, roots, categories, assume_yes=yes)


def _group_command(group: CategoryGroup) -> click.Command:
    """Build the shortcut command that scans (or cleans, with --clean) one group."""

    @_scan_options
    @_clean_options
    @click.option("--clean", "do_clean", is_flag=True, default=False, help="Remove after confirmation")
    @click.pass_context
    def command(
        ctx: click.Context,
        roots: tuple[Path, ...],
        categories: tuple[str, ...],
        include: tuple[str, ...],
        exclude: tuple[str, ...],
        workers: int | None,
        follow_symlinks: bool,
        disk_usage: bool,
        min_age_days: float | None,
        override_protections: bool,
        permanent: bool,
        dry_run: bool,
        yes: bool,
        trash_fallback: str | None,
        do_clean: bool,
    ) -> None:
        state: CliState = ctx.obj  # pyright: ignore[reportAny]
        selectors = list(categories) or [group.value]
        runner = _build_runner(
            state,
            include=include,
            exclude=exclude,
            workers=workers,
            follow_symlinks=follow_symlinks,
            disk_usage=disk_usage,
            min_age_days=min_age_days,
            override_protections=override_protections,
            permanent=permanent,
            dry_run=dry_run,
            trash_fallback=trash_fallback,
        )
        if do_clean:
            _run_clean(ctx, runner, roots, selectors, assume_yes=yes)
        else:
            _run_preview(runner, roots, selectors)

    return click.command(name=group.value, help=f"Scan {group.value} artifacts (--clean to remove them).")(command)


for _group in CategoryGroup:
    cli.add_command(_group_command(_group))


@cli.command(name="rules")
@click.option(
    "--group",
    "-g",
    "groups",
    type=click.Choice([group.value for group in CategoryGroup]),
    multiple=True,
    help="Only list rules of this group (repeatable)",
)
def list_rules(groups: tuple[str, ...]) -> None:
    """List the built-in artifact rules."""
    registry = default_registry()
    if groups:
        registry = registry.subset(groups)
    for rule in registry:
        markers = ", ".join(marker.name for marker in rule.matcher.markers)
        names = ", ".join(rule.matcher.names)
        line = f"{rule.category:<24} {rule.group.value:<9} {rule.action.value:<17} {names}"
        if markers:
            line += f"  (with {markers})"
        click.echo(line)
    click.echo(pluralize(len(registry), "rule"))
