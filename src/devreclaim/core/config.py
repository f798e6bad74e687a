"""Configuration system for devreclaim.

This module implements the configuration schema using Pydantic for
validation, with support for environment variable resolution and fail-fast
validation with actionable error messages. Every section has defaults, so
running without a configuration file is valid.
"""

import os
import re
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Annotated, Final

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from devreclaim.core.filesystem.size_aggregator import SizeMode
from devreclaim.core.filesystem.workqueue import default_worker_count
from devreclaim.core.rules import (
    DEFAULT_RULES,
    ActionClass,
    CategoryGroup,
    Marker,
    MarkerLocation,
    MarkerMode,
    Matcher,
    Rule,
    RuleRegistry,
    TieBreak,
)
from devreclaim.core.rules.models import CATEGORY_PATTERN
from devreclaim.types.models import ExecutionMode, TrashFallback

# Regular expression pattern for environment variable references
# Matches ${VARIABLE_NAME} syntax where VARIABLE_NAME can contain letters, digits, and underscores
ENV_VAR_PATTERN: Final[re.Pattern[str]] = re.compile(r"\$\{([A-Z0-9_]+)\}")


def _expand_paths(paths: Sequence[Path]) -> list[Path]:
    return [path.expanduser() for path in paths]


class ScanConfig(BaseModel):
    """Configuration for directory traversal.

    Defines where to look, which categories to look for, and how the
    worker pool treats symlinks and filtered subtrees.
    """

    roots: Annotated[
        list[Path],
        Field(description="Directories to scan; the current directory when empty"),
    ] = []
    categories: Annotated[
        list[str],
        Field(description="Category tags or group names to restrict the scan to"),
    ] = []
    include: Annotated[
        list[str],
        Field(description="Glob patterns a candidate must match to be reported"),
    ] = []
    exclude: Annotated[
        list[str],
        Field(description="Glob patterns of subtrees to skip entirely"),
    ] = []
    workers: Annotated[
        int,
        Field(gt=0, le=256, description="Traversal and sizing worker threads"),
    ] = Field(default_factory=default_worker_count)
    follow_symlinks: Annotated[
        bool,
        Field(description="Descend through symlinked directories"),
    ] = False
    allow_external_symlinks: Annotated[
        bool,
        Field(description="Follow symlinks whose targets are outside the scan root"),
    ] = False
    size_mode: Annotated[
        SizeMode,
        Field(description="Apparent file size or allocated disk usage"),
    ] = SizeMode.APPARENT

    @field_validator("roots", mode="after")
    @classmethod
    def expand_roots(cls, v: list[Path]) -> list[Path]:
        """Expand ``~`` in scan roots."""
        return _expand_paths(v)

    @field_validator("categories", mode="after")
    @classmethod
    def normalize_categories(cls, v: list[str]) -> list[str]:
        """Lowercase selectors and drop blanks."""
        return [selector.strip().lower() for selector in v if selector.strip()]


class MarkerConfig(BaseModel):
    """Marker file of a user-defined rule."""

    name: Annotated[str, Field(min_length=1, description="File name or glob")]
    location: Annotated[
        MarkerLocation,
        Field(description="Look beside (sibling) or inside (child) the directory"),
    ] = MarkerLocation.SIBLING


class RuleConfig(BaseModel):
    """User-defined artifact rule, appended after the built-in catalog."""

    category: Annotated[str, Field(description="Unique kebab-case category tag")]
    group: Annotated[CategoryGroup, Field(description="Group the rule belongs to")] = CategoryGroup.PROJECTS
    names: Annotated[list[str], Field(min_length=1, description="Directory names or globs")]
    markers: Annotated[list[MarkerConfig], Field(description="Marker files confirming a match")] = []
    marker_mode: Annotated[MarkerMode, Field(description="Whether any or all markers are required")] = (
        MarkerMode.ANY
    )
    parent: Annotated[list[str], Field(description="Globs the parent directory path must match")] = []
    action: Annotated[ActionClass, Field(description="Removal ceremony")] = ActionClass.CONFIRM_REQUIRED
    prune: Annotated[bool, Field(description="Do not descend into matching directories")] = True
    description: Annotated[str, Field(description="Human readable description")] = ""

    @field_validator("category", mode="after")
    @classmethod
    def validate_category(cls, v: str) -> str:
        """Validate the category tag format.

        Raises:
            ValueError: If the tag is not lowercase kebab-case
        """
        if not CATEGORY_PATTERN.match(v):
            msg = f"Category must be lowercase kebab-case (e.g. 'my-build'), got: {v}"
            raise ValueError(msg)
        return v

    def to_rule(self) -> Rule:
        return Rule(
            category=self.category,
            group=self.group,
            matcher=Matcher(
                names=tuple(self.names),
                markers=tuple(Marker(marker.name, marker.location) for marker in self.markers),
                marker_mode=self.marker_mode,
                parent=tuple(self.parent),
            ),
            action=self.action,
            prune=self.prune,
            description=self.description,
        )


class RulesConfig(BaseModel):
    """Configuration for the rule registry."""

    tie_break: Annotated[
        TieBreak,
        Field(description="Winner between equally specific rules"),
    ] = TieBreak.FIRST_DECLARED
    disabled: Annotated[
        list[str],
        Field(description="Built-in categories to switch off"),
    ] = []
    custom: Annotated[
        list[RuleConfig],
        Field(description="Additional rules"),
    ] = []

    def build_registry(self) -> RuleRegistry:
        """Build the registry from the built-in catalog plus custom rules.

        Raises:
            ValueError: If a disabled category is unknown or a custom category is duplicated
        """
        known = {rule.category for rule in DEFAULT_RULES}
        unknown = set(self.disabled) - known
        if unknown:
            msg = f"Cannot disable unknown categories: {', '.join(sorted(unknown))}"
            raise ValueError(msg)
        disabled = set(self.disabled)
        rules = [rule for rule in DEFAULT_RULES if rule.category not in disabled]
        rules.extend(custom.to_rule() for custom in self.custom)
        return RuleRegistry(rules, tie_break=self.tie_break)


class SafetyConfig(BaseModel):
    """Configuration for the Safety Guard."""

    override_protections: Annotated[
        bool,
        Field(description="Admit candidates whose protection is overridable"),
    ] = False
    deny_paths: Annotated[
        list[Path],
        Field(description="Paths that must never be deleted or contain a deletion"),
    ] = []
    include_default_denies: Annotated[
        bool,
        Field(description="Also deny home, filesystem root and the interpreter prefix"),
    ] = True
    min_age_days: Annotated[
        float,
        Field(ge=0, description="Protect candidates with anything modified more recently; 0 disables the check"),
    ] = 7

    @field_validator("deny_paths", mode="after")
    @classmethod
    def expand_deny_paths(cls, v: list[Path]) -> list[Path]:
        """Expand ``~`` in deny paths."""
        return _expand_paths(v)


class ExecutionConfig(BaseModel):
    """Configuration for plan execution."""

    mode: Annotated[
        ExecutionMode,
        Field(description="Move to trash or remove permanently"),
    ] = ExecutionMode.TRASH
    dry_run: Annotated[
        bool,
        Field(description="Report what would be removed without touching the filesystem"),
    ] = False
    trash_fallback: Annotated[
        TrashFallback,
        Field(description="When trash is unavailable: fail the item or remove permanently"),
    ] = TrashFallback.ERROR
    confirm: Annotated[
        bool,
        Field(description="Ask before executing a plan"),
    ] = True


class ApplicationConfig(BaseModel):
    """Configuration for application-level settings.

    Defines logging level and syslog integration.
    """

    log_level: Annotated[
        str,
        Field(
            description="Logging level",
            pattern=r"^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        ),
    ] = "WARNING"
    syslog_enabled: Annotated[
        bool,
        Field(
            description="Enable syslog integration",
        ),
    ] = False


class MainConfig(BaseModel):
    """Main application configuration schema.

    Top-level configuration container aggregating all configuration sections:
    - scan: Traversal settings
    - rules: Registry tie-break, disabled and custom rules
    - safety: Safety Guard settings
    - execution: Plan execution settings
    - application: Application-level settings
    """

    scan: Annotated[ScanConfig, Field(description="Traversal configuration")] = Field(
        default_factory=ScanConfig
    )
    rules: Annotated[RulesConfig, Field(description="Rule registry configuration")] = Field(
        default_factory=RulesConfig
    )
    safety: Annotated[SafetyConfig, Field(description="Safety configuration")] = Field(
        default_factory=SafetyConfig
    )
    execution: Annotated[ExecutionConfig, Field(description="Execution configuration")] = Field(
        default_factory=ExecutionConfig
    )
    application: Annotated[ApplicationConfig, Field(description="Application-level configuration")] = Field(
        default_factory=ApplicationConfig
    )


class EnvironmentVariableError(Exception):
    """Exception raised when environment variable resolution fails."""


def resolve_env_var(value: str) -> str:
    """Resolve environment variable references in a string value.

    Parses ${VARIABLE_NAME} syntax and replaces with environment variable values.

    Args:
        value: String potentially containing environment variable references

    Returns:
        String with environment variables resolved

    Raises:
        EnvironmentVariableError: If a required environment variable is missing

    Examples:
        >>> os.environ["PROJECTS"] = "/home/me/src"
        >>> resolve_env_var("${PROJECTS}/work")
        '/home/me/src/work'
    """

    def replace_match(match: re.Match[str]) -> str:
        var_name = match.group(1)
        env_value = os.environ.get(var_name)

        if env_value is None:
            msg = (
                f"Required environment variable '{var_name}' is not set. "
                f"Please set this variable before starting devreclaim."
            )
            raise EnvironmentVariableError(msg)

        return env_value

    return ENV_VAR_PATTERN.sub(replace_match, value)


def _resolve_value(value: object) -> object:
    if isinstance(value, str):
        return resolve_env_var(value)
    if isinstance(value, dict):
        # YAML data is untyped at load time; validated by Pydantic after resolution
        return resolve_env_vars_in_dict(value)  # pyright: ignore[reportUnknownArgumentType]  # YAML boundary
    if isinstance(value, list):
        return [_resolve_value(item) for item in value]  # pyright: ignore[reportUnknownVariableType]  # YAML list items
    return value


def resolve_env_vars_in_dict(data: Mapping[str, object]) -> dict[str, object]:
    """Recursively resolve environment variables in a dictionary.

    Traverses nested dictionaries and lists, resolving environment variable
    references in string values. Non-string values are preserved as-is.

    Args:
        data: Dictionary potentially containing environment variable references

    Returns:
        New dictionary with environment variables resolved

    Raises:
        EnvironmentVariableError: If a required environment variable is missing
    """
    return {key: _resolve_value(value) for key, value in data.items()}


class ConfigurationError(Exception):
    """Exception raised when configuration loading or validation fails.

    This exception provides detailed, actionable error messages for configuration
    issues including file not found, YAML parsing errors, and validation failures.
    """


def format_validation_error(error: ValidationError, config_path: Path | None) -> str:
    """Format pydantic errors with one block per failing field."""
    error_lines = ["Configuration validation failed:", ""]
    for detail in error.errors():
        field_path = " → ".join(str(loc) for loc in detail["loc"])
        error_lines.append(f"  Field: {field_path}")
        error_lines.append(f"  Error: {detail['msg']}")
        error_lines.append(f"  Type: {detail['type']}")
        error_lines.append("")

    if config_path is not None:
        error_lines.append(f"Configuration file: {config_path}")
    error_lines.append("Please fix the above errors and try again.")
    return "\n".join(error_lines)


def load_main_config(config_path: Path) -> MainConfig:
    """Load and validate the configuration from a YAML file.

    Args:
        config_path: Path to the configuration YAML file

    Returns:
        Validated MainConfig instance

    Raises:
        ConfigurationError: If the file cannot be loaded, references a missing
            environment variable, or is invalid

    Examples:
        >>> config = load_main_config(Path("~/.config/devreclaim/config.yaml").expanduser())
        >>> config.execution.mode
        <ExecutionMode.TRASH: 'trash'>
    """
    if not config_path.exists():
        msg = (
            f"Configuration file not found: {config_path}\n"
            f"Please create a configuration file at this location or omit --config."
        )
        raise ConfigurationError(msg)

    try:
        with config_path.open("r") as f:
            raw_data: object = yaml.safe_load(f)  # pyright: ignore[reportAny]  # YAML boundary
    except yaml.YAMLError as e:
        msg = (
            f"Failed to parse YAML configuration file: {config_path}\n"
            f"YAML parsing error: {e}\n"
            f"Please check the file for syntax errors."
        )
        raise ConfigurationError(msg) from e
    except OSError as e:
        msg = f"Failed to read configuration file: {config_path}\nError: {e}\nPlease check file permissions."
        raise ConfigurationError(msg) from e

    # An empty file means all defaults
    if raw_data is None:
        raw_data = {}

    if not isinstance(raw_data, dict):
        msg = (
            f"Invalid configuration file format: {config_path}\n"
            f"Expected YAML dictionary at root level, got: {type(raw_data).__name__}\n"
            f"Configuration file must contain key-value pairs."
        )
        raise ConfigurationError(msg)

    try:
        resolved_data = resolve_env_vars_in_dict(raw_data)  # pyright: ignore[reportUnknownArgumentType]  # YAML boundary
    except EnvironmentVariableError as e:
        msg = (
            f"Environment variable resolution failed in: {config_path}\n"
            f"{e}\n"
            f"Set the required environment variable before starting devreclaim."
        )
        raise ConfigurationError(msg) from e

    try:
        config = MainConfig.model_validate(resolved_data)
    except ValidationError as e:
        raise ConfigurationError(format_validation_error(e, config_path)) from e

    try:
        _ = config.rules.build_registry()
    except ValueError as e:
        msg = f"Invalid rule configuration in: {config_path}\n{e}"
        raise ConfigurationError(msg) from e

    return config
