"""Tests for the bounded worker pool."""

from __future__ import annotations

import threading

import pytest

from devreclaim.core.cancellation import CancellationToken
from devreclaim.core.errors import WorkerPoolError
from devreclaim.core.filesystem.workqueue import MAX_DEFAULT_WORKERS, Submit, WorkQueue, default_worker_count
from devreclaim.utils.logging import clear_run_id, get_run_id, set_run_id


@pytest.mark.unit
class TestWorkQueue:
    """Test the WorkQueue class."""

    def test_default_worker_count_bounded(self) -> None:
        """Test the default pool size is between one and the cap."""
        assert 1 <= default_worker_count() <= MAX_DEFAULT_WORKERS

    def test_invalid_worker_count(self) -> None:
        """Test a pool needs at least one worker."""
        with pytest.raises(ValueError, match="at least 1"):
            _ = WorkQueue[int](lambda item, submit: None, workers=0)

    def test_visits_submitted_items(self) -> None:
        """Test follow-up items are processed until the queue drains."""
        seen: list[int] = []
        lock = threading.Lock()

        def visit(item: int, submit: Submit[int]) -> None:
            with lock:
                seen.append(item)
            if item < 50:
                submit(item * 2)
                submit(item * 2 + 1)

        WorkQueue(visit, workers=4).run([1])

        assert sorted(seen) == list(range(1, 100))

    def test_single_worker(self) -> None:
        """Test a pool of one still drains everything."""
        seen: list[int] = []

        def visit(item: int, submit: Submit[int]) -> None:
            seen.append(item)
            if item < 10:
                submit(item + 1)

        WorkQueue(visit, workers=1).run([0])

        assert seen == list(range(11))

    def test_worker_error_raised_at_join(self) -> None:
        """Test an unexpected visitor exception surfaces as WorkerPoolError."""

        def visit(item: int, submit: Submit[int]) -> None:
            if item == 3:
                raise RuntimeError("boom")
            submit(item + 1)

        with pytest.raises(WorkerPoolError, match="boom") as exc_info:
            WorkQueue(visit, workers=2).run([0])

        assert isinstance(exc_info.value.__cause__, RuntimeError)

    def test_cancellation_stops_new_items(self) -> None:
        """Test items are not visited once the token is cancelled."""
        token = CancellationToken()
        seen: list[int] = []

        def visit(item: int, submit: Submit[int]) -> None:
            seen.append(item)
            if item == 5:
                token.cancel()
            submit(item + 1)

        pool = WorkQueue(visit, workers=1, cancellation=token)
        pool.run([0])

        assert seen == [0, 1, 2, 3, 4, 5]
        assert pool.cancelled

    def test_stop(self) -> None:
        """Test stop() drains queued items without visiting them."""
        seen: list[int] = []
        pool: WorkQueue[int]

        def visit(item: int, submit: Submit[int]) -> None:
            seen.append(item)
            pool.stop()

        pool = WorkQueue(visit, workers=1)
        pool.run([1, 2, 3])

        assert seen == [1]
        assert pool.cancelled

    def test_workers_inherit_context(self) -> None:
        """Test the caller's run ID is visible inside worker threads."""
        observed: list[str | None] = []
        lock = threading.Lock()

        def visit(item: int, submit: Submit[int]) -> None:  # pyright: ignore[reportUnusedParameter]
            with lock:
                observed.append(get_run_id())

        set_run_id("abc123")
        try:
            WorkQueue(visit, workers=3).run([1, 2, 3, 4])
        finally:
            clear_run_id()

        assert observed == ["abc123"] * 4
