"""
Unit tests for the worker pool.
"""

import threading
import time

import pytest

from routekit.core.thread_pool import ThreadPool


@pytest.fixture
def pool():
    pool = ThreadPool(min_workers=2, max_workers=4, queue_size=10, idle_timeout=0.1)
    pool.start()
    yield pool
    pool.shutdown(wait=False)


class TestThreadPool:
    def test_runs_tasks(self, pool):
        done = threading.Event()
        results = []

        def task(a, b=0):
            results.append(a + b)
            done.set()

        assert pool.submit(task, 1, b=2) is True
        assert done.wait(2.0)
        assert results == [3]

    def test_starts_min_workers(self, pool):
        assert pool.size == 2

    def test_failing_task_does_not_kill_worker(self, pool):
        done = threading.Event()

        def bad():
            raise RuntimeError("task failed")

        pool.submit(bad)
        pool.submit(done.set)

        assert done.wait(2.0)
        assert pool.size == 2

    def test_scales_up_under_load(self, pool):
        release = threading.Event()
        for _ in range(6):
            pool.submit(release.wait, 2.0)
            time.sleep(0.05)

        size = pool.size
        release.set()

        assert 2 < size <= 4

    def test_full_queue_rejects(self):
        pool = ThreadPool(min_workers=1, max_workers=1, queue_size=1, idle_timeout=0.1)
        pool.start()
        release = threading.Event()
        started = threading.Event()

        def blocker():
            started.set()
            release.wait(2.0)

        try:
            assert pool.submit(blocker)
            assert started.wait(2.0)
            assert pool.submit(release.wait, 2.0)
            assert pool.submit(release.wait, 2.0) is False
        finally:
            release.set()
            pool.shutdown(wait=True, timeout=2.0)

    def test_submit_requires_running_pool(self):
        pool = ThreadPool(min_workers=1, max_workers=1)

        with pytest.raises(RuntimeError):
            pool.submit(print)

    def test_shutdown_waits_for_queued_tasks(self):
        pool = ThreadPool(min_workers=1, max_workers=1, idle_timeout=0.1)
        pool.start()
        results = []
        for n in range(5):
            pool.submit(results.append, n)

        pool.shutdown(wait=True, timeout=5.0)

        assert results == [0, 1, 2, 3, 4]
        assert pool.size == 0

    def test_invalid_sizes(self):
        with pytest.raises(ValueError):
            ThreadPool(min_workers=0)
        with pytest.raises(ValueError):
            ThreadPool(min_workers=4, max_workers=2)

    def test_stats(self, pool):
        stats = pool.stats

        assert stats["workers"]["total"] == 2
        assert stats["tasks"]["queued"] == 0
