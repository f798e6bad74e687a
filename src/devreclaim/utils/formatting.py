"""Pure formatting utilities for human-readable output.

This module provides stateless formatting functions used by the CLI
reports. All functions are pure with no side effects.
"""

from pathlib import Path

# Binary unit constants (1024-based)
_KB = 1024
_MB = _KB * 1024
_GB = _MB * 1024
_TB = _GB * 1024

# Time unit constants
_MINUTE = 60
_HOUR = _MINUTE * 60


def format_size(num_bytes: int, *, precision: int = 1) -> str:
    """Convert bytes to human-readable size format.

    Uses binary units (1024-based) for consistency with system tools.

    Args:
        num_bytes: Number of bytes to format (must be non-negative)
        precision: Number of decimal places for KB and above

    Returns:
        Human-readable string representation of the size

    Examples:
        >>> format_size(512)
        '512 B'
        >>> format_size(1536)
        '1.5 KB'
        >>> format_size(5242880)
        '5.0 MB'
        >>> format_size(2748779069440)
        '2.5 TB'
    """
    if num_bytes < 0:
        msg = "num_bytes must be non-negative"
        raise ValueError(msg)

    for unit, factor in (("TB", _TB), ("GB", _GB), ("MB", _MB), ("KB", _KB)):
        if num_bytes >= factor:
            return f"{num_bytes / factor:.{precision}f} {unit}"
    return f"{num_bytes} B"


def format_duration(seconds: float) -> str:
    """Convert seconds to a short duration.

    Examples:
        >>> format_duration(0.25)
        '0.2s'
        >>> format_duration(90)
        '1m 30s'
        >>> format_duration(3665)
        '1h 1m'
    """
    if seconds < 0:
        msg = "seconds must be non-negative"
        raise ValueError(msg)

    if seconds < _MINUTE:
        return f"{seconds:.1f}s" if seconds < 10 else f"{int(seconds)}s"

    total_seconds = int(seconds)
    if total_seconds >= _HOUR:
        hours, remaining = divmod(total_seconds, _HOUR)
        minutes = remaining // _MINUTE
        return f"{hours}h {minutes}m" if minutes else f"{hours}h"

    minutes, remaining = divmod(total_seconds, _MINUTE)
    return f"{minutes}m {remaining}s" if remaining else f"{minutes}m"


def pluralize(count: int, noun: str, plural: str | None = None) -> str:
    """Format a count with a singular or plural noun.

    Examples:
        >>> pluralize(1, "candidate")
        '1 candidate'
        >>> pluralize(3, "directory", "directories")
        '3 directories'
    """
    word = noun if count == 1 else (plural or f"{noun}s")
    return f"{count} {word}"


def shorten_path(path: Path, *, home: Path | None = None) -> str:
    """Display a path relative to the home directory as ``~/...``.

    Examples:
        >>> shorten_path(Path("/home/me/src/app/node_modules"), home=Path("/home/me"))
        '~/src/app/node_modules'
    """
    home = home if home is not None else Path.home()
    if path == home:
        return "~"
    if path.is_relative_to(home):
        return f"~/{path.relative_to(home).as_posix()}"
    return str(path)
