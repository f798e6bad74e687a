"""Artifact category rules and the registry that matches them."""

from devreclaim.core.rules.catalog import DEFAULT_RULES
from devreclaim.core.rules.models import (
    ActionClass,
    CategoryGroup,
    Marker,
    MarkerLocation,
    MarkerMode,
    Matcher,
    ParentContext,
    Rule,
)
from devreclaim.core.rules.registry import RuleRegistry, TieBreak


def default_registry(*, tie_break: TieBreak = TieBreak.FIRST_DECLARED) -> RuleRegistry:
    """Build a registry over the built-in catalog."""
    return RuleRegistry(DEFAULT_RULES, tie_break=tie_break)


__all__ = [
    "DEFAULT_RULES",
    "ActionClass",
    "CategoryGroup",
    "Marker",
    "MarkerLocation",
    "MarkerMode",
    "Matcher",
    "ParentContext",
    "Rule",
    "RuleRegistry",
    "TieBreak",
    "default_registry",
]
