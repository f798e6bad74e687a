"""Include and exclude patterns applied during traversal."""

from __future__ import annotations

import fnmatch
import re
from abc import ABC, abstractmethod
from collections.abc import Iterable
from enum import Enum
from pathlib import Path
from typing import Final

# System and recycle locations that never hold build artifacts
DEFAULT_EXCLUDES: Final[tuple[str, ...]] = (
    ".git",
    ".hg",
    ".svn",
    ".Trash",
    ".Trashes",
    "$RECYCLE.BIN",
    "System Volume Information",
    "lost+found",
    ".snapshots",
)


class PatternType(str, Enum):
    """Enumeration for different pattern types."""

    GLOB = "glob"
    REGEX = "regex"
    EXACT = "exact"


class PathPattern(ABC):
    """Base class for path patterns."""

    def __init__(self, pattern: str, case_sensitive: bool = True) -> None:
        """Initialize the pattern.

        Args:
            pattern: The pattern string
            case_sensitive: Whether pattern matching is case-sensitive
        """
        self.pattern: str = pattern
        self.case_sensitive: bool = case_sensitive

    @abstractmethod
    def matches(self, path: Path) -> bool:
        """Check if the pattern matches the given path.

        Args:
            path: Path to check

        Returns:
            True if the pattern matches, False otherwise
        """

    def _fold(self, value: str) -> str:
        return value if self.case_sensitive else value.lower()


class GlobPattern(PathPattern):
    """Glob matched against the directory name, or the full path if it contains a slash."""

    def __init__(self, pattern: str, case_sensitive: bool = True) -> None:
        super().__init__(pattern, case_sensitive)
        self._anchored: bool = "/" in pattern
        self._compiled: re.Pattern[str] = re.compile(fnmatch.translate(self._fold(pattern)))

    def matches(self, path: Path) -> bool:
        target = path.as_posix() if self._anchored else path.name
        return self._compiled.match(self._fold(target)) is not None


class RegexPattern(PathPattern):
    """Regular expression searched in the full POSIX path."""

    def __init__(self, pattern: str, case_sensitive: bool = True) -> None:
        super().__init__(pattern, case_sensitive)
        flags = 0 if case_sensitive else re.IGNORECASE
        self._compiled: re.Pattern[str] = re.compile(pattern, flags)

    def matches(self, path: Path) -> bool:
        return self._compiled.search(path.as_posix()) is not None


class ExactPattern(PathPattern):
    """Exact directory name."""

    def matches(self, path: Path) -> bool:
        return self._fold(path.name) == self._fold(self.pattern)


_PATTERN_CLASSES: Final[dict[PatternType, type[PathPattern]]] = {
    PatternType.GLOB: GlobPattern,
    PatternType.REGEX: RegexPattern,
    PatternType.EXACT: ExactPattern,
}


class PathFilter:
    """Include/exclude filter used by the traverser.

    Exclude patterns prune whole subtrees: an excluded directory is neither
    classified nor descended into. Include patterns restrict which matched
    directories are reported as candidates; with no include patterns every
    match is reported.
    """

    def __init__(
        self,
        include: Iterable[str] = (),
        exclude: Iterable[str] = (),
        *,
        use_default_excludes: bool = True,
        case_sensitive: bool = True,
    ) -> None:
        """Initialize the filter.

        Args:
            include: Glob patterns a candidate must match to be reported
            exclude: Glob patterns of subtrees to skip
            use_default_excludes: Also skip VCS metadata and recycle directories
            case_sensitive: Whether pattern matching is case-sensitive
        """
        self.case_sensitive: bool = case_sensitive
        self._include: list[PathPattern] = []
        self._exclude: list[PathPattern] = []
        if use_default_excludes:
            self.add_excludes(DEFAULT_EXCLUDES, PatternType.EXACT)
        self.add_includes(include)
        self.add_excludes(exclude)

    def add_includes(self, patterns: Iterable[str], pattern_type: PatternType = PatternType.GLOB) -> None:
        pattern_class = _PATTERN_CLASSES[pattern_type]
        self._include.extend(pattern_class(pattern, self.case_sensitive) for pattern in patterns)

    def add_excludes(self, patterns: Iterable[str], pattern_type: PatternType = PatternType.GLOB) -> None:
        pattern_class = _PATTERN_CLASSES[pattern_type]
        self._exclude.extend(pattern_class(pattern, self.case_sensitive) for pattern in patterns)

    def excludes(self, path: Path) -> bool:
        """Check if a directory and its subtree should be skipped."""
        return any(pattern.matches(path) for pattern in self._exclude)

    def includes(self, path: Path) -> bool:
        """Check if a matched directory should be reported."""
        if not self._include:
            return True
        return any(pattern.matches(path) for pattern in self._include)

    @property
    def include_count(self) -> int:
        return len(self._include)

    @property
    def exclude_count(self) -> int:
        return len(self._exclude)
