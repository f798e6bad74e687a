"""Bounded worker pool draining a shared work queue.

Workers pull items from one ``queue.Queue`` and may push follow-up items
(subdirectories) back onto it. The pool is finished when the queue's
unfinished-task count drops to zero. Each worker runs inside a copy of the
caller's ``contextvars`` context so the run id reaches log records emitted
from worker threads.
"""

from __future__ import annotations

import contextvars
import logging
import os
import queue
import threading
from collections.abc import Callable, Iterable
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Final

from devreclaim.core.cancellation import CancellationToken
from devreclaim.core.errors import WorkerPoolError

logger = logging.getLogger(__name__)

MAX_DEFAULT_WORKERS: Final[int] = 32

type Submit[T] = Callable[[T], None]
type Visitor[T] = Callable[[T, Submit[T]], None]


def default_worker_count() -> int:
    """Worker count used when none is configured, sized for I/O-bound work."""
    return min(MAX_DEFAULT_WORKERS, (os.cpu_count() or 1) + 4)


class _Stop:
    __slots__ = ()


_STOP: Final[_Stop] = _Stop()


class WorkQueue[T]:
    """Run a visitor over a growing set of work items on a thread pool.

    Example:
        >>> def visit(directory: Path, submit: Submit[Path]) -> None:
        ...     for child in directory.iterdir():
        ...         if child.is_dir():
        ...             submit(child)
        >>> pool = WorkQueue(visit, workers=8)
        >>> pool.run([root])
    """

    def __init__(
        self,
        visit: Visitor[T],
        *,
        workers: int | None = None,
        cancellation: CancellationToken | None = None,
        thread_name_prefix: str = "devreclaim",
    ) -> None:
        """Initialize the work queue.

        Args:
            visit: Called once per item with the item and a submit callback
            workers: Pool size, defaults to :func:`default_worker_count`
            cancellation: Shared token checked before each item
            thread_name_prefix: Prefix for worker thread names

        Raises:
            ValueError: If ``workers`` is smaller than one
        """
        self.workers: int = workers if workers is not None else default_worker_count()
        if self.workers < 1:
            msg = f"workers must be at least 1, got {self.workers}"
            raise ValueError(msg)

        self._visit: Visitor[T] = visit
        self._cancellation: CancellationToken | None = cancellation
        self._thread_name_prefix: str = thread_name_prefix
        self._pending: queue.Queue[T | _Stop] = queue.Queue()
        self._stopped: threading.Event = threading.Event()
        self._executor: ThreadPoolExecutor | None = None
        self._futures: list[Future[None]] = []
        self._errors: list[Exception] = []
        self._errors_lock: threading.Lock = threading.Lock()

    @property
    def cancelled(self) -> bool:
        """Whether work was abandoned through the token or :meth:`stop`."""
        token_cancelled = self._cancellation is not None and self._cancellation.cancelled
        return token_cancelled or self._stopped.is_set()

    def submit(self, item: T) -> None:
        """Queue a follow-up item; ignored once cancelled."""
        if self.cancelled:
            return
        self._pending.put(item)

    def start(self, seeds: Iterable[T]) -> None:
        """Queue the seed items and start the workers without blocking.

        Raises:
            WorkerPoolError: If the thread pool cannot be started
        """
        for seed in seeds:
            self._pending.put(seed)

        try:
            self._executor = ThreadPoolExecutor(
                max_workers=self.workers,
                thread_name_prefix=self._thread_name_prefix,
            )
            self._futures = [
                self._executor.submit(contextvars.copy_context().run, self._worker) for _ in range(self.workers)
            ]
        except RuntimeError as exc:
            raise WorkerPoolError(
                f"Failed to start worker pool: {exc}",
                context={"workers": self.workers},
            ) from exc

    def join(self) -> None:
        """Block until every queued item is processed, then shut the pool down.

        Raises:
            WorkerPoolError: If a visitor raised an unexpected exception
        """
        self._pending.join()
        for _ in self._futures:
            self._pending.put(_STOP)
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None

        with self._errors_lock:
            errors = list(self._errors)
        if errors:
            raise WorkerPoolError(
                f"Worker crashed: {errors[0]}",
                context={"error_count": len(errors)},
            ) from errors[0]

    def run(self, seeds: Iterable[T]) -> None:
        """Start the pool and wait for it to drain."""
        self.start(seeds)
        self.join()

    def stop(self) -> None:
        """Stop taking on new items; queued items are drained without visiting."""
        self._stopped.set()

    def _worker(self) -> None:
        while True:
            item = self._pending.get()
            try:
                if isinstance(item, _Stop):
                    return
                if self.cancelled:
                    continue
                self._visit(item, self.submit)
            except Exception as exc:
                logger.exception("Unexpected error in worker", extra={"item": str(item)})
                with self._errors_lock:
                    self._errors.append(exc)
                self.stop()
            finally:
                self._pending.task_done()
