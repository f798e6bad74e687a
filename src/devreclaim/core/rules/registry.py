"""Rule registry: classify a directory into at most one artifact category.

The registry is read-only after construction and safe to share between
traversal workers. The only I/O performed by :meth:`RuleRegistry.match` is
the bounded marker lookup next to (or inside) the directory being classified.
"""

from __future__ import annotations

import fnmatch
import logging
import os
from collections.abc import Callable, Iterable, Iterator
from enum import Enum
from pathlib import Path

from devreclaim.core.errors import UnknownCategoryError
from devreclaim.core.rules.models import (
    CategoryGroup,
    Marker,
    MarkerLocation,
    MarkerMode,
    Matcher,
    ParentContext,
    Rule,
)

logger = logging.getLogger(__name__)

ALL_SELECTOR = "all"

# Receives the directory whose listing failed and the error
type MarkerErrorCallback = Callable[[Path, OSError], None]


class TieBreak(str, Enum):
    """Which rule wins when two matching rules are equally specific."""

    FIRST_DECLARED = "first-declared"
    LAST_DECLARED = "last-declared"


class RuleRegistry:
    """Ordered collection of rules with most-specific-wins matching.

    Rules are ranked once at construction by specificity, then declaration
    order according to ``tie_break``. Matching walks the ranked rules that
    accept the directory name and returns the first one whose parent
    constraint and markers are satisfied, so markers of a lower ranked rule
    are never read once a better rule matched.

    Example:
        >>> registry = RuleRegistry(DEFAULT_RULES)
        >>> rule = registry.match(path, ParentContext.for_path(path, root))
        >>> rule.category if rule else None
        'node-modules'
    """

    def __init__(
        self,
        rules: Iterable[Rule],
        *,
        tie_break: TieBreak = TieBreak.FIRST_DECLARED,
    ) -> None:
        """Initialize the registry.

        Args:
            rules: Rules in declaration order
            tie_break: Policy for equally specific matches

        Raises:
            ValueError: If two rules share a category tag
        """
        self._rules: tuple[Rule, ...] = tuple(rules)
        self.tie_break: TieBreak = tie_break

        seen: set[str] = set()
        for rule in self._rules:
            if rule.category in seen:
                msg = f"Duplicate rule category: {rule.category}"
                raise ValueError(msg)
            seen.add(rule.category)

        order = {rule.category: index for index, rule in enumerate(self._rules)}
        direction = 1 if tie_break is TieBreak.FIRST_DECLARED else -1
        self._rank: dict[str, tuple[int, int]] = {
            rule.category: (-rule.specificity, direction * order[rule.category]) for rule in self._rules
        }

        self._by_name: dict[str, list[Rule]] = {}
        self._glob_rules: list[Rule] = []
        for rule in self._rules:
            for name in rule.matcher.exact_names:
                self._by_name.setdefault(name, []).append(rule)
            if rule.matcher.glob_names:
                self._glob_rules.append(rule)

    def __len__(self) -> int:
        return len(self._rules)

    def __iter__(self) -> Iterator[Rule]:
        return iter(self._rules)

    @property
    def rules(self) -> tuple[Rule, ...]:
        return self._rules

    def categories(self) -> set[str]:
        """Category tags known to this registry."""
        return {rule.category for rule in self._rules}

    def groups(self) -> set[CategoryGroup]:
        """Groups that have at least one rule in this registry."""
        return {rule.group for rule in self._rules}

    def get(self, category: str) -> Rule | None:
        """Look up a rule by its category tag."""
        for rule in self._rules:
            if rule.category == category:
                return rule
        return None

    def match(
        self,
        path: Path,
        context: ParentContext,
        on_marker_error: MarkerErrorCallback | None = None,
    ) -> Rule | None:
        """Classify a directory.

        A marker that cannot be looked up counts as absent.

        Args:
            path: Directory to classify
            context: Parent directory and scan root of ``path``
            on_marker_error: Told about each marker lookup that failed

        Returns:
            The most specific matching rule, or None when nothing matches
        """
        for rule in self._name_matches(path.name):
            matcher = rule.matcher
            if not matcher.matches_parent(context.directory):
                continue
            if not self._markers_present(matcher, path, on_marker_error):
                continue
            return rule
        return None

    def subset(self, selectors: Iterable[str]) -> RuleRegistry:
        """Restrict the registry to the named categories and groups.

        Args:
            selectors: Category tags and/or group names; ``all`` selects everything

        Returns:
            A new registry with the same tie-break policy

        Raises:
            UnknownCategoryError: If a selector names nothing in this registry
        """
        wanted = {selector.strip().lower() for selector in selectors if selector.strip()}
        if not wanted or ALL_SELECTOR in wanted:
            return self

        known = self.categories() | {group.value for group in self.groups()}
        unknown = wanted - known
        if unknown:
            raise UnknownCategoryError(unknown, known)

        selected = [rule for rule in self._rules if rule.category in wanted or rule.group.value in wanted]
        return RuleRegistry(selected, tie_break=self.tie_break)

    def _name_matches(self, name: str) -> list[Rule]:
        found = list(self._by_name.get(name, ()))
        found.extend(rule for rule in self._glob_rules if rule.matcher.matches_name(name) and rule not in found)
        found.sort(key=lambda rule: self._rank[rule.category])
        return found

    def _markers_present(self, matcher: Matcher, path: Path, on_error: MarkerErrorCallback | None) -> bool:
        if not matcher.markers:
            return True
        checks = (_marker_present(marker, path, on_error) for marker in matcher.markers)
        if matcher.marker_mode is MarkerMode.ALL:
            return all(checks)
        return any(checks)


def _marker_present(marker: Marker, path: Path, on_error: MarkerErrorCallback | None) -> bool:
    base = path.parent if marker.location is MarkerLocation.SIBLING else path
    try:
        if not marker.is_glob:
            _ = os.lstat(base / marker.name)
            return True
        with os.scandir(base) as entries:
            return any(fnmatch.fnmatchcase(entry.name, marker.name) for entry in entries)
    except (FileNotFoundError, NotADirectoryError):
        return False
    except OSError as exc:
        logger.debug(
            "Marker lookup failed, treating as no match",
            extra={"path": str(base), "marker": marker.name, "error": str(exc)},
        )
        if on_error is not None:
            on_error(base, exc)
        return False
