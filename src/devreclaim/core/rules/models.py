"""Rule records describing artifact categories.

A rule is pure data: a category tag, the group it belongs to, a matcher
(directory names, optional marker files and an optional parent constraint),
the action class that governs confirmation, and whether matching directories
are pruned from traversal.
"""

from __future__ import annotations

import fnmatch
import re
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Final

_GLOB_CHARS: Final[frozenset[str]] = frozenset("*?[")
CATEGORY_PATTERN: Final[re.Pattern[str]] = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")


def is_glob(pattern: str) -> bool:
    """Return True when ``pattern`` contains glob metacharacters."""
    return any(char in _GLOB_CHARS for char in pattern)


class CategoryGroup(str, Enum):
    """Namespaces that the grouping subcommands select as rule subsets."""

    PROJECTS = "projects"
    CACHES = "caches"
    XCODE = "xcode"
    DOCKER = "docker"
    IDE = "ide"
    ML = "ml"


class ActionClass(str, Enum):
    """How much ceremony removal of a category needs."""

    TRASH_SAFE = "trash-safe"
    CONFIRM_REQUIRED = "confirm-required"


class MarkerLocation(str, Enum):
    """Where a marker file is looked up relative to the candidate directory."""

    SIBLING = "sibling"
    CHILD = "child"


class MarkerMode(str, Enum):
    """Whether any or all of a matcher's markers must be present."""

    ANY = "any"
    ALL = "all"


@dataclass(slots=True, frozen=True)
class Marker:
    """A file whose presence confirms a directory match.

    ``package.json`` beside ``node_modules`` or ``pyvenv.cfg`` inside a
    virtual environment. The name may be a glob (``*.csproj``).
    """

    name: str
    location: MarkerLocation = MarkerLocation.SIBLING

    @property
    def is_glob(self) -> bool:
        return is_glob(self.name)


@dataclass(slots=True, frozen=True)
class Matcher:
    """Name, marker and parent constraints a directory must satisfy.

    Attributes:
        names: Directory names, exact or glob
        markers: Marker files confirming the match
        marker_mode: ANY or ALL of ``markers`` must be present
        parent: Globs matched against the parent directory's POSIX path;
            the constraint holds when any of them matches
    """

    names: tuple[str, ...]
    markers: tuple[Marker, ...] = ()
    marker_mode: MarkerMode = MarkerMode.ANY
    parent: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if not self.names:
            msg = "Matcher requires at least one directory name"
            raise ValueError(msg)

    @property
    def exact_names(self) -> tuple[str, ...]:
        return tuple(name for name in self.names if not is_glob(name))

    @property
    def glob_names(self) -> tuple[str, ...]:
        return tuple(name for name in self.names if is_glob(name))

    def matches_name(self, name: str) -> bool:
        """Check a directory name against the exact and glob names."""
        if name in self.exact_names:
            return True
        return any(fnmatch.fnmatchcase(name, pattern) for pattern in self.glob_names)

    def matches_parent(self, directory: Path) -> bool:
        """Check the parent constraint against a parent directory path."""
        if not self.parent:
            return True
        posix = directory.as_posix()
        return any(fnmatch.fnmatchcase(posix, pattern) for pattern in self.parent)

    @property
    def specificity(self) -> int:
        """One point each for exact names, marker requirements and a parent constraint."""
        score = 0
        if not self.glob_names:
            score += 1
        if self.markers:
            score += 1
        if self.parent:
            score += 1
        return score


@dataclass(slots=True, frozen=True)
class Rule:
    """Signature of one artifact category."""

    category: str
    group: CategoryGroup
    matcher: Matcher
    action: ActionClass = ActionClass.TRASH_SAFE
    prune: bool = True
    description: str = ""

    def __post_init__(self) -> None:
        if not CATEGORY_PATTERN.match(self.category):
            msg = f"Category must be a lowercase kebab-case tag, got {self.category!r}"
            raise ValueError(msg)

    @property
    def specificity(self) -> int:
        return self.matcher.specificity

    @property
    def requires_confirmation(self) -> bool:
        return self.action is ActionClass.CONFIRM_REQUIRED


@dataclass(slots=True, frozen=True)
class ParentContext:
    """Where a directory sits: its parent directory and the scan root."""

    directory: Path
    root: Path

    @classmethod
    def for_path(cls, path: Path, root: Path) -> ParentContext:
        return cls(directory=path.parent, root=root)
