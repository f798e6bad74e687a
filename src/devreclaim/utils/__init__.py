"""Shared utility modules for logging and human-readable output."""

from devreclaim.utils.formatting import (
    format_duration,
    format_size,
    pluralize,
    shorten_path,
)

__all__ = [
    "format_duration",
    "format_size",
    "pluralize",
    "shorten_path",
]
