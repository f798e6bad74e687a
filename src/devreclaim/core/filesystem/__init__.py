"""Filesystem traversal, filtering and size accounting."""

from devreclaim.core.filesystem.filters import DEFAULT_EXCLUDES, PathFilter, PatternType
from devreclaim.core.filesystem.size_aggregator import SizeAggregator, SizeMode
from devreclaim.core.filesystem.traverser import DirectoryTraverser, TraversalWalk, validate_root
from devreclaim.core.filesystem.workqueue import WorkQueue, default_worker_count

__all__ = [
    "DEFAULT_EXCLUDES",
    "DirectoryTraverser",
    "PathFilter",
    "PatternType",
    "SizeAggregator",
    "SizeMode",
    "TraversalWalk",
    "WorkQueue",
    "default_worker_count",
    "validate_root",
]
