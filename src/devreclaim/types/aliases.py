"""Type aliases using PEP 695 syntax."""

from collections.abc import Callable, Iterable
from os import PathLike
from pathlib import Path

from devreclaim.types.models import ScanWarning

# Anything accepted where a filesystem location is expected
type PathInput = str | PathLike[str] | Path

# Category tags or group names selecting a rule subset
type CategorySelectors = Iterable[str]

# Receives warnings as a stage produces them
type WarningCallback = Callable[[ScanWarning], None]
