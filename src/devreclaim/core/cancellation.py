"""Cooperative cancellation shared by worker pools and the executor."""

from __future__ import annotations

import threading


class CancellationToken:
    """Shared flag that workers poll at the start of each unit of work.

    Cancelling never interrupts an I/O call in flight; it only stops new
    directories, files or plan items from being started.
    """

    __slots__ = ("_event",)

    def __init__(self) -> None:
        self._event: threading.Event = threading.Event()

    def cancel(self) -> None:
        """Request cancellation."""
        self._event.set()

    @property
    def cancelled(self) -> bool:
        """Whether cancellation has been requested."""
        return self._event.is_set()

    def wait(self, timeout: float | None = None) -> bool:
        """Block until cancelled or until ``timeout`` elapses."""
        return self._event.wait(timeout)
