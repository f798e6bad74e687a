"""Command-line application for devreclaim."""

from __future__ import annotations

from devreclaim.app.cli import cli
from devreclaim.app.runner import ApplicationRunner, CleanReport, PreviewReport, RunOptions

__all__ = [
    "cli",
    "ApplicationRunner",
    "CleanReport",
    "PreviewReport",
    "RunOptions",
]
